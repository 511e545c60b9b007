from datetime import datetime
from typing import Any, Optional

from fastapi import APIRouter, Query

from taskboard.api.deps import CurrentUser, SessionDep
from taskboard.db.query import build_pagination
from taskboard.models.user import UserRole
from taskboard.schemas.query import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from taskboard.schemas.user import UserEnvelope, UserRead, select_user_fields
from taskboard.services import users as users_service
from taskboard.services.users import UserFilters

router = APIRouter()


@router.get("")
async def list_users(
    session: SessionDep,
    current_user: CurrentUser,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    search: Optional[str] = Query(default=None),
    name: Optional[str] = Query(default=None),
    email: Optional[str] = Query(default=None),
    role: Optional[UserRole] = Query(default=None),
    created_after: Optional[datetime] = Query(default=None),
    created_before: Optional[datetime] = Query(default=None),
    updated_after: Optional[datetime] = Query(default=None),
    updated_before: Optional[datetime] = Query(default=None),
    sort_by: Optional[str] = Query(default=None),
    sort_order: Optional[str] = Query(default=None),
    fields: Optional[str] = Query(default=None, description="Comma-separated subset of user fields"),
) -> dict[str, Any]:
    users, total = await users_service.list_users(
        session,
        filters=UserFilters(
            search=search,
            name=name,
            email=email,
            role=role,
            created_after=created_after,
            created_before=created_before,
            updated_after=updated_after,
            updated_before=updated_before,
        ),
        page=page,
        limit=limit,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    selected = [item.strip() for item in fields.split(",")] if fields else None
    return {
        "users": [select_user_fields(UserRead.model_validate(user), selected) for user in users],
        "pagination": build_pagination(total, page, limit).model_dump(),
    }


@router.get("/{user_id}", response_model=UserEnvelope)
async def read_user(user_id: int, session: SessionDep, current_user: CurrentUser) -> UserEnvelope:
    user = await users_service.get_user(session, user_id)
    return UserEnvelope(user=UserRead.model_validate(user))
