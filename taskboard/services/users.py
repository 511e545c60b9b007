from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy import func
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from taskboard.core.errors import NotFoundError
from taskboard.db.query import (
    apply_filters,
    apply_sorting,
    date_range_conditions,
    paginated_query,
    resolve_sort,
    search_group,
)
from taskboard.models.user import User, UserRole
from taskboard.schemas.query import FilterCondition, FilterOp

USER_SORT_FIELDS = ("name", "email", "created_at", "updated_at")


class UserNotFoundError(NotFoundError):
    code = "USER_NOT_FOUND"
    message = "User not found"


@dataclass
class UserFilters:
    search: Optional[str] = None
    name: Optional[str] = None
    email: Optional[str] = None
    role: Optional[UserRole] = None
    created_after: Optional[datetime] = None
    created_before: Optional[datetime] = None
    updated_after: Optional[datetime] = None
    updated_before: Optional[datetime] = None


async def get_user(session: AsyncSession, user_id: int) -> User:
    user = await session.get(User, user_id)
    if user is None:
        raise UserNotFoundError()
    return user


async def list_users(
    session: AsyncSession,
    *,
    filters: UserFilters,
    page: int,
    limit: int,
    sort_by: Optional[str] = None,
    sort_order: Optional[str] = None,
) -> tuple[list[User], int]:
    conditions: list = [
        *search_group(filters.search, "name", "email"),
        *date_range_conditions(
            created_after=filters.created_after,
            created_before=filters.created_before,
            updated_after=filters.updated_after,
            updated_before=filters.updated_before,
        ),
    ]
    if filters.name:
        conditions.append(FilterCondition(field="name", op=FilterOp.ilike, value=filters.name))
    if filters.email:
        conditions.append(FilterCondition(field="email", op=FilterOp.ilike, value=filters.email))
    if filters.role is not None:
        conditions.append(FilterCondition(field="role", value=filters.role))

    data_stmt = apply_filters(select(User), User, conditions)
    data_stmt = apply_sorting(data_stmt, User, resolve_sort(sort_by, sort_order, USER_SORT_FIELDS))
    count_stmt = apply_filters(select(func.count()).select_from(User), User, conditions)
    return await paginated_query(session, data_stmt, count_stmt, page, limit)
