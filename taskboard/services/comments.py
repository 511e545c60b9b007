from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional

from sqlalchemy import func
from sqlalchemy.orm import selectinload
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from taskboard.db.query import (
    apply_filters,
    apply_sorting,
    date_range_conditions,
    paginated_query,
    resolve_sort,
    search_group,
)
from taskboard.models.comment import Comment
from taskboard.schemas.comment import CommentCreate, CommentRead, CommentTask
from taskboard.schemas.query import FilterCondition
from taskboard.schemas.user import UserPublic

logger = logging.getLogger(__name__)

COMMENT_SORT_FIELDS = ("created_at", "updated_at")
COMMENT_INCLUDES = frozenset({"author", "task"})
DEFAULT_COMMENT_INCLUDES = frozenset({"author"})


@dataclass
class CommentFilters:
    search: Optional[str] = None
    author_id: Optional[int] = None
    # True: only mine; False: everyone else's. Overrides author_id.
    my_comments: Optional[bool] = None
    created_after: Optional[datetime] = None
    created_before: Optional[datetime] = None
    updated_after: Optional[datetime] = None
    updated_before: Optional[datetime] = None


def _load_options(include: Iterable[str]) -> list:
    options = []
    if "author" in include:
        options.append(selectinload(Comment.author))
    if "task" in include:
        options.append(selectinload(Comment.task))
    return options


def comment_to_read(comment: Comment, include: Iterable[str] = DEFAULT_COMMENT_INCLUDES) -> CommentRead:
    data = {
        "id": comment.id,
        "content": comment.content,
        "task_id": comment.task_id,
        "author_id": comment.author_id,
        "created_at": comment.created_at,
        "updated_at": comment.updated_at,
    }
    if "author" in include:
        data["author"] = UserPublic.model_validate(comment.author)
    if "task" in include:
        data["task"] = CommentTask.model_validate(comment.task)
    return CommentRead(**data)


async def create_comment(
    session: AsyncSession,
    *,
    task_id: int,
    author_id: int,
    payload: CommentCreate,
) -> Comment:
    comment = Comment(content=payload.content, task_id=task_id, author_id=author_id)
    session.add(comment)
    await session.commit()
    logger.info("User %s commented on task %s", author_id, task_id)

    stmt = (
        select(Comment)
        .where(Comment.id == comment.id)
        .options(*_load_options(DEFAULT_COMMENT_INCLUDES))
        .execution_options(populate_existing=True)
    )
    return (await session.exec(stmt)).one()


async def list_comments(
    session: AsyncSession,
    *,
    task_id: int,
    user_id: int,
    filters: CommentFilters,
    include: Iterable[str],
    page: int,
    limit: int,
    sort_by: Optional[str] = None,
    sort_order: Optional[str] = None,
) -> tuple[list[Comment], int]:
    conditions: list = [
        FilterCondition(field="task_id", value=task_id),
        *search_group(filters.search, "content"),
        *date_range_conditions(
            created_after=filters.created_after,
            created_before=filters.created_before,
            updated_after=filters.updated_after,
            updated_before=filters.updated_before,
        ),
    ]
    if filters.my_comments is not None:
        conditions.append(FilterCondition(field="author_id", value=user_id, negate=not filters.my_comments))
    elif filters.author_id is not None:
        conditions.append(FilterCondition(field="author_id", value=filters.author_id))

    data_stmt = apply_filters(select(Comment).options(*_load_options(include)), Comment, conditions)
    data_stmt = apply_sorting(data_stmt, Comment, resolve_sort(sort_by, sort_order, COMMENT_SORT_FIELDS))
    count_stmt = apply_filters(select(func.count()).select_from(Comment), Comment, conditions)
    return await paginated_query(session, data_stmt, count_stmt, page, limit)


async def delete_comment(session: AsyncSession, comment: Comment) -> None:
    comment_id = comment.id
    await session.delete(comment)
    await session.commit()
    logger.info("Deleted comment %s", comment_id)
