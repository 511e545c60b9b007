"""HTTP middleware stamping request ids and negotiating the API version."""

import logging
import uuid

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import RequestResponseEndpoint

from taskboard.core.config import settings
from taskboard.core.errors import error_envelope
from taskboard.core.logging import request_id_var

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-Id"
ACCEPT_VERSION_HEADER = "Accept-Version"
DEFAULT_API_VERSION = "v1"


def normalize_api_version(raw: str) -> str:
    value = raw.strip().lower()
    return value if value.startswith("v") else f"v{value}"


async def request_id_middleware(request: Request, call_next: RequestResponseEndpoint) -> Response:
    request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
    request.state.request_id = request_id
    token = request_id_var.set(request_id)
    try:
        response = await call_next(request)
    finally:
        request_id_var.reset(token)
    response.headers[REQUEST_ID_HEADER] = request_id
    return response


async def api_version_middleware(request: Request, call_next: RequestResponseEndpoint) -> Response:
    requested = request.headers.get(ACCEPT_VERSION_HEADER)
    if requested is None:
        request.state.api_version = DEFAULT_API_VERSION
        return await call_next(request)

    version = normalize_api_version(requested)
    if version not in settings.SUPPORTED_API_VERSIONS:
        logger.info("Rejected unsupported API version %r", requested)
        return JSONResponse(
            status_code=400,
            content=error_envelope(
                "Unsupported API version",
                "UNSUPPORTED_API_VERSION",
                details={
                    "supported_versions": settings.SUPPORTED_API_VERSIONS,
                    "requested_version": requested,
                },
            ),
        )
    request.state.api_version = version
    return await call_next(request)
