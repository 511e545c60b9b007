"""Route class that deduplicates POSTs carrying an ``Idempotency-Key`` header.

Routers opt in with ``APIRouter(route_class=IdempotentRoute)``.  The wrapper
runs before dependency resolution, so replays short-circuit ahead of the
authorization guards, and it sees the final ``Response`` the endpoint
produced, which is what gets cached.
"""

from typing import Callable, Coroutine, Any

from fastapi import Request, Response
from fastapi.routing import APIRoute
from jose import JWTError

from taskboard.core.config import settings
from taskboard.core.errors import IdempotencyUnauthorizedError
from taskboard.core.principal import Principal, RequestContext, principal_for
from taskboard.core.security import decode_access_token
from taskboard.db.session import AsyncSessionLocal
from taskboard.services.idempotency import IdempotencyCoordinator, normalize_key


def _principal_from_request(request: Request) -> Principal:
    """Identity from the bearer token alone; no database round trip."""
    scheme, _, token = request.headers.get("Authorization", "").partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise IdempotencyUnauthorizedError()
    try:
        payload = decode_access_token(token.strip())
        return principal_for(int(payload.sub), payload.role or "member")
    except (JWTError, ValueError) as exc:
        raise IdempotencyUnauthorizedError() from exc


def get_coordinator(request: Request) -> IdempotencyCoordinator:
    session_factory = getattr(request.app.state, "session_factory", AsyncSessionLocal)
    return IdempotencyCoordinator(session_factory=session_factory)


class IdempotentRoute(APIRoute):
    def get_route_handler(self) -> Callable[[Request], Coroutine[Any, Any, Response]]:
        original_route_handler = super().get_route_handler()

        async def idempotent_route_handler(request: Request) -> Response:
            raw_key = request.headers.get(settings.IDEMPOTENCY_HEADER)
            if request.method != "POST" or raw_key is None:
                return await original_route_handler(request)

            key = normalize_key(raw_key)
            context = RequestContext(
                principal=_principal_from_request(request),
                method=request.method,
                path=request.url.path,
            )
            coordinator = get_coordinator(request)
            return await coordinator.execute(context, key, lambda: original_route_handler(request))

        return idempotent_route_handler
