from fastapi import APIRouter, Request, status

from taskboard.api.deps import CurrentUser, SessionDep
from taskboard.core.config import settings
from taskboard.core.rate_limit import limiter
from taskboard.schemas.auth import AuthResponse, LoginRequest, RegisterRequest
from taskboard.schemas.user import UserEnvelope, UserRead
from taskboard.services import auth as auth_service

router = APIRouter()


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(settings.RATE_LIMIT_AUTH)
async def register(request: Request, payload: RegisterRequest, session: SessionDep) -> AuthResponse:
    user, token = await auth_service.register(session, payload)
    return AuthResponse(user=UserRead.model_validate(user), token=token)


@router.post("/login", response_model=AuthResponse)
@limiter.limit(settings.RATE_LIMIT_AUTH)
async def login(request: Request, payload: LoginRequest, session: SessionDep) -> AuthResponse:
    user, token = await auth_service.login(session, payload)
    return AuthResponse(user=UserRead.model_validate(user), token=token)


@router.get("/me", response_model=UserEnvelope)
async def read_current_user(current_user: CurrentUser) -> UserEnvelope:
    return UserEnvelope(user=UserRead.model_validate(current_user))
