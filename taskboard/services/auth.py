import logging

from sqlalchemy.exc import IntegrityError
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from taskboard.core.errors import AuthenticationError, ConflictError
from taskboard.core.security import create_access_token, get_password_hash, verify_password
from taskboard.models.user import User, UserRole
from taskboard.schemas.auth import LoginRequest, RegisterRequest

logger = logging.getLogger(__name__)


class DuplicateEmailError(ConflictError):
    code = "DUPLICATE_EMAIL"
    message = "User with this email already exists"


class InvalidCredentialsError(AuthenticationError):
    code = "INVALID_CREDENTIALS"
    message = "Invalid email or password"


def _normalize_email(email: str) -> str:
    return email.strip().lower()


def issue_token(user: User) -> str:
    return create_access_token(user.id, email=user.email, role=UserRole(user.role).value)


async def get_user_by_email(session: AsyncSession, email: str) -> User | None:
    result = await session.exec(select(User).where(User.email == _normalize_email(email)))
    return result.one_or_none()


async def register(session: AsyncSession, payload: RegisterRequest) -> tuple[User, str]:
    """Create a ``member`` account; global owners are only bootstrapped."""
    if await get_user_by_email(session, payload.email):
        raise DuplicateEmailError()

    user = User(
        email=_normalize_email(payload.email),
        name=payload.name,
        hashed_password=get_password_hash(payload.password),
        role=UserRole.member,
    )
    session.add(user)
    try:
        await session.commit()
    except IntegrityError as exc:
        await session.rollback()
        raise DuplicateEmailError() from exc
    await session.refresh(user)
    logger.info("Registered user %s", user.id)
    return user, issue_token(user)


async def login(session: AsyncSession, payload: LoginRequest) -> tuple[User, str]:
    user = await get_user_by_email(session, payload.email)
    # Same error whether the email or the password is wrong
    if user is None or not verify_password(payload.password, user.hashed_password):
        raise InvalidCredentialsError()
    return user, issue_token(user)
