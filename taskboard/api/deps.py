from typing import Annotated, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from sqlmodel.ext.asyncio.session import AsyncSession

from taskboard.core.errors import AuthenticationError, InvalidTokenError
from taskboard.core.principal import Principal, RequestContext, principal_for
from taskboard.core.security import decode_access_token
from taskboard.db.session import get_session
from taskboard.models.user import User
from taskboard.services.access import Action, authorize_project

SessionDep = Annotated[AsyncSession, Depends(get_session)]

bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_user(
    session: SessionDep,
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(bearer_scheme)],
) -> User:
    if credentials is None or not credentials.credentials:
        raise AuthenticationError()

    try:
        token_data = decode_access_token(credentials.credentials)
    except JWTError as exc:
        raise InvalidTokenError() from exc

    user = await session.get(User, int(token_data.sub))
    if user is None:
        raise InvalidTokenError()
    return user


CurrentUser = Annotated[User, Depends(get_current_user)]


async def get_principal(current_user: CurrentUser) -> Principal:
    return principal_for(current_user.id, current_user.role)


async def get_request_context(
    request: Request,
    principal: Annotated[Principal, Depends(get_principal)],
) -> RequestContext:
    return RequestContext(principal=principal, method=request.method, path=request.url.path)


ContextDep = Annotated[RequestContext, Depends(get_request_context)]


async def require_project_member(
    project_id: int,
    session: SessionDep,
    context: ContextDep,
) -> RequestContext:
    await authorize_project(session, project_id, context.principal, Action.read)
    return context


async def require_project_owner(
    project_id: int,
    session: SessionDep,
    context: ContextDep,
) -> RequestContext:
    await authorize_project(session, project_id, context.principal, Action.update)
    return context


ProjectMemberContext = Annotated[RequestContext, Depends(require_project_member)]
ProjectOwnerContext = Annotated[RequestContext, Depends(require_project_owner)]
