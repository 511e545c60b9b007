"""Application error hierarchy and the standard error envelope.

Every error the API reports to a client is rendered as::

    {"error": {"message": "...", "code": "..."}}

Services raise subclasses of :class:`AppError`; the exception handlers in
``taskboard.main`` turn them into responses.  Subclasses fix the HTTP status
and a default ``code``/``message`` so call sites usually raise them bare.
"""

from __future__ import annotations

from typing import Any, Optional


def error_envelope(message: str, code: str, details: Any = None) -> dict[str, Any]:
    error: dict[str, Any] = {"message": message, "code": code}
    if details is not None:
        error["details"] = details
    return {"error": error}


class AppError(Exception):
    """Base error carrying an explicit code and HTTP status."""

    status_code: int = 500
    code: str = "INTERNAL_ERROR"
    message: str = "Internal server error"

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        code: Optional[str] = None,
        status_code: Optional[int] = None,
    ) -> None:
        if message is not None:
            self.message = message
        if code is not None:
            self.code = code
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)

    def to_payload(self) -> dict[str, Any]:
        return error_envelope(self.message, self.code)


class NotFoundError(AppError):
    status_code = 404
    code = "NOT_FOUND"
    message = "Record not found"


class AccessDeniedError(AppError):
    status_code = 403
    code = "ACCESS_DENIED"
    message = "Access denied"


class ValidationFailedError(AppError):
    status_code = 400
    code = "VALIDATION_ERROR"
    message = "Invalid request"


class ConflictError(AppError):
    status_code = 409
    code = "DUPLICATE_ENTRY"
    message = "A record with this value already exists"


class AuthenticationError(AppError):
    status_code = 401
    code = "AUTH_REQUIRED"
    message = "Authentication required"


class InvalidTokenError(AuthenticationError):
    code = "INVALID_TOKEN"
    message = "Invalid or expired token"


class InvalidIdempotencyKeyError(AppError):
    status_code = 400
    code = "INVALID_IDEMPOTENCY_KEY"
    message = "Invalid idempotency key format"


class IdempotencyUnauthorizedError(AuthenticationError):
    code = "UNAUTHORIZED"
    message = "Authentication required for idempotency"


class IdempotencyKeyInUseError(ConflictError):
    code = "IDEMPOTENCY_KEY_IN_USE"
    message = "A request with this idempotency key is still being processed"
