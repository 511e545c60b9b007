"""Token signing and password hashing collaborators."""

from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from jose import JWTError, jwt
from pwdlib import PasswordHash
from pwdlib.exceptions import UnknownHashError
from pydantic import ValidationError

from taskboard.core.config import settings
from taskboard.schemas.token import TokenPayload

_password_hash = PasswordHash.recommended()


def get_password_hash(password: str) -> str:
    return _password_hash.hash(password)


def verify_password(password: str, hashed_password: str) -> bool:
    try:
        return _password_hash.verify(password, hashed_password)
    except UnknownHashError:
        return False


def create_access_token(
    subject: str | int,
    *,
    email: Optional[str] = None,
    role: Optional[str] = None,
    expires_delta: Optional[timedelta] = None,
) -> str:
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode: dict[str, Any] = {"sub": str(subject), "exp": expire}
    if email is not None:
        to_encode["email"] = email
    if role is not None:
        to_encode["role"] = role
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> TokenPayload:
    """Decode and validate a bearer token.

    Raises ``JWTError`` when the signature, expiry or payload is invalid.
    """
    payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    try:
        token_data = TokenPayload(**payload)
    except ValidationError as exc:
        raise JWTError("Invalid token payload") from exc
    if not token_data.sub or not token_data.sub.isdigit():
        raise JWTError("Invalid token payload")
    return token_data
