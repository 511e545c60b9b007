import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.openapi.utils import get_openapi
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from taskboard.api.middleware import api_version_middleware, request_id_middleware
from taskboard.api.v1.api import api_router
from taskboard.core.config import settings
from taskboard.core.errors import AppError, ConflictError, error_envelope
from taskboard.core.logging import configure_logging
from taskboard.core.rate_limit import limiter, rate_limit_exceeded_handler
from taskboard.db.init_db import init_first_owner
from taskboard.db.session import AsyncSessionLocal, engine, run_migrations
from taskboard.services import idempotency as idempotency_service

configure_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

HTTP_ERROR_CODES = {
    400: "BAD_REQUEST",
    401: "AUTH_REQUIRED",
    403: "ACCESS_DENIED",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    409: "CONFLICT",
    429: "RATE_LIMIT_EXCEEDED",
}

app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    docs_url=f"{settings.API_V1_STR}/docs",
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    redoc_url=None,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)
app.middleware("http")(api_version_middleware)
# Added after the version check so it wraps it; rejections still get an id
app.middleware("http")(request_id_middleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Update with frontend URL(s) in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Request-Id"],
)

app.include_router(api_router, prefix=settings.API_V1_STR)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s on %s %s: %s", exc.code, request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


def _format_validation_message(errors: list[dict]) -> str:
    messages = []
    for error in errors:
        # Drop the "body"/"query" prefix pydantic puts on the location
        location = [str(part) for part in error.get("loc", ())[1:]]
        field = ".".join(location) or "body"
        if error.get("type") == "missing":
            messages.append(f"{field} is required")
        else:
            messages.append(f"{field}: {error.get('msg')}")
    return ", ".join(messages) or "Invalid request"


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    return JSONResponse(
        status_code=400,
        content=error_envelope(
            _format_validation_message(errors),
            "VALIDATION_ERROR",
            details=jsonable_encoder(errors, custom_encoder={ValueError: str}),
        ),
    )


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    code = HTTP_ERROR_CODES.get(exc.status_code, "HTTP_ERROR")
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    return JSONResponse(
        status_code=exc.status_code,
        content=error_envelope(message, code),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(IntegrityError)
async def integrity_error_handler(request: Request, exc: IntegrityError) -> JSONResponse:
    logger.info("Integrity violation on %s %s: %s", request.method, request.url.path, exc.orig)
    conflict = ConflictError()
    return JSONResponse(status_code=conflict.status_code, content=conflict.to_payload())


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content=error_envelope("Internal server error", "INTERNAL_ERROR"))


@app.get("/", include_in_schema=False)
async def service_info() -> dict:
    return {
        "name": settings.PROJECT_NAME,
        "version": settings.VERSION,
        "api": settings.API_V1_STR,
        "documentation": f"{settings.API_V1_STR}/docs",
        "openapi": f"{settings.API_V1_STR}/openapi.json",
    }


def custom_openapi() -> dict:
    if app.openapi_schema:
        return app.openapi_schema

    openapi_schema = get_openapi(
        title=app.title,
        version=app.version,
        description=app.description,
        routes=app.routes,
    )

    components = openapi_schema.setdefault("components", {})
    security_schemes = components.setdefault("securitySchemes", {})
    security_schemes.setdefault(
        "HTTPBearer",
        {
            "type": "http",
            "scheme": "bearer",
            "bearerFormat": "JWT",
            "description": "Token returned by /auth/register or /auth/login.",
        },
    )

    idempotency_header = {
        "name": settings.IDEMPOTENCY_HEADER,
        "in": "header",
        "required": False,
        "schema": {"type": "string"},
        "description": "Repeat a POST safely; a repeated key replays the first 201 response with status 200.",
    }
    idempotent_paths = {
        f"{settings.API_V1_STR}/projects",
        f"{settings.API_V1_STR}/projects/{{project_id}}/members",
        f"{settings.API_V1_STR}/projects/{{project_id}}/tasks",
        f"{settings.API_V1_STR}/tasks/{{task_id}}/comments",
    }
    for path, path_item in openapi_schema.get("paths", {}).items():
        operation = path_item.get("post")
        if path in idempotent_paths and isinstance(operation, dict):
            operation.setdefault("parameters", []).append(idempotency_header)

    app.openapi_schema = openapi_schema
    return app.openapi_schema


app.openapi = custom_openapi


@app.on_event("startup")
async def on_startup() -> None:
    if settings.RUN_MIGRATIONS_ON_STARTUP:
        await run_migrations()
    await init_first_owner()
    try:
        async with AsyncSessionLocal() as session:
            purged = await idempotency_service.purge_expired(session)
    except SQLAlchemyError:
        logger.exception("Could not purge expired idempotency records")
    else:
        if purged:
            logger.info("Purged %s expired idempotency records", purged)


@app.on_event("shutdown")
async def on_shutdown() -> None:
    await engine.dispose()
