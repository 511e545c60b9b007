from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
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
from taskboard.models.task import DEFAULT_TASK_PRIORITY, DEFAULT_TASK_STATUS, Task
from taskboard.schemas.query import FilterCondition, FilterOp
from taskboard.schemas.task import TaskCreate, TaskProject, TaskRead, TaskUpdate
from taskboard.schemas.user import UserPublic
from taskboard.services import users as users_service
from taskboard.services.access import TaskNotFoundError
from taskboard.services.comments import comment_to_read

logger = logging.getLogger(__name__)

TASK_SORT_FIELDS = ("title", "status", "priority", "created_at", "updated_at")
TASK_INCLUDES = frozenset({"project", "assigned_to", "created_by", "comments"})
DEFAULT_TASK_INCLUDES = frozenset({"project", "assigned_to", "created_by"})


@dataclass
class TaskFilters:
    search: Optional[str] = None
    title: Optional[str] = None
    status: Optional[str] = None
    priority: Optional[str] = None
    assigned_to_id: Optional[int] = None
    created_by_id: Optional[int] = None
    unassigned: Optional[bool] = None
    created_after: Optional[datetime] = None
    created_before: Optional[datetime] = None
    updated_after: Optional[datetime] = None
    updated_before: Optional[datetime] = None


def _load_options(include: Iterable[str]) -> list:
    options = []
    if "project" in include:
        options.append(selectinload(Task.project))
    if "assigned_to" in include:
        options.append(selectinload(Task.assigned_to))
    if "created_by" in include:
        options.append(selectinload(Task.created_by))
    if "comments" in include:
        options.append(selectinload(Task.comments).selectinload(Comment.author))
    return options


def task_to_read(task: Task, include: Iterable[str] = DEFAULT_TASK_INCLUDES) -> TaskRead:
    data = {
        "id": task.id,
        "project_id": task.project_id,
        "title": task.title,
        "description": task.description,
        "status": task.status,
        "priority": task.priority,
        "assigned_to_id": task.assigned_to_id,
        "created_by_id": task.created_by_id,
        "created_at": task.created_at,
        "updated_at": task.updated_at,
    }
    if "project" in include:
        data["project"] = TaskProject.model_validate(task.project)
    if "assigned_to" in include:
        data["assigned_to"] = UserPublic.model_validate(task.assigned_to) if task.assigned_to else None
    if "created_by" in include:
        data["created_by"] = UserPublic.model_validate(task.created_by)
    if "comments" in include:
        data["comments"] = [comment_to_read(comment, include=("author",)) for comment in task.comments]
    return TaskRead(**data)


async def get_task(
    session: AsyncSession,
    task_id: int,
    include: Iterable[str] = DEFAULT_TASK_INCLUDES,
) -> Task:
    stmt = select(Task).where(Task.id == task_id).options(*_load_options(include))
    task = (await session.exec(stmt.execution_options(populate_existing=True))).one_or_none()
    if task is None:
        raise TaskNotFoundError()
    return task


async def _ensure_assignee_exists(session: AsyncSession, assigned_to_id: Optional[int]) -> None:
    if assigned_to_id is not None:
        await users_service.get_user(session, assigned_to_id)


async def create_task(
    session: AsyncSession,
    *,
    project_id: int,
    created_by_id: int,
    payload: TaskCreate,
) -> Task:
    await _ensure_assignee_exists(session, payload.assigned_to_id)
    task = Task(
        project_id=project_id,
        title=payload.title,
        description=payload.description,
        status=payload.status or DEFAULT_TASK_STATUS,
        priority=payload.priority or DEFAULT_TASK_PRIORITY,
        assigned_to_id=payload.assigned_to_id,
        created_by_id=created_by_id,
    )
    session.add(task)
    await session.commit()
    logger.info("User %s created task %s in project %s", created_by_id, task.id, project_id)
    return await get_task(session, task.id)


async def list_tasks(
    session: AsyncSession,
    *,
    project_id: int,
    filters: TaskFilters,
    include: Iterable[str],
    page: int,
    limit: int,
    sort_by: Optional[str] = None,
    sort_order: Optional[str] = None,
) -> tuple[list[Task], int]:
    conditions: list = [FilterCondition(field="project_id", value=project_id)]
    if filters.title:
        conditions.append(FilterCondition(field="title", value=filters.title))
        # An exact title already pins the title column; search the description only
        conditions.extend(search_group(filters.search, "description"))
    else:
        conditions.extend(search_group(filters.search, "title", "description"))
    if filters.status:
        conditions.append(FilterCondition(field="status", value=filters.status))
    if filters.priority:
        conditions.append(FilterCondition(field="priority", value=filters.priority))
    # assigned_to_id wins over unassigned
    if filters.assigned_to_id is not None:
        conditions.append(FilterCondition(field="assigned_to_id", value=filters.assigned_to_id))
    elif filters.unassigned is not None:
        conditions.append(FilterCondition(field="assigned_to_id", op=FilterOp.is_null, value=filters.unassigned))
    if filters.created_by_id is not None:
        conditions.append(FilterCondition(field="created_by_id", value=filters.created_by_id))
    conditions.extend(
        date_range_conditions(
            created_after=filters.created_after,
            created_before=filters.created_before,
            updated_after=filters.updated_after,
            updated_before=filters.updated_before,
        )
    )

    data_stmt = apply_filters(select(Task).options(*_load_options(include)), Task, conditions)
    data_stmt = apply_sorting(data_stmt, Task, resolve_sort(sort_by, sort_order, TASK_SORT_FIELDS))
    count_stmt = apply_filters(select(func.count()).select_from(Task), Task, conditions)
    return await paginated_query(session, data_stmt, count_stmt, page, limit)


async def update_task(session: AsyncSession, task: Task, payload: TaskUpdate) -> Task:
    update_data = payload.model_dump(exclude_unset=True)
    for required in ("title", "status", "priority"):
        if update_data.get(required, "") is None:
            update_data.pop(required)
    if "assigned_to_id" in update_data:
        await _ensure_assignee_exists(session, update_data["assigned_to_id"])
    for field, value in update_data.items():
        setattr(task, field, value)
    task.updated_at = datetime.now(timezone.utc)
    session.add(task)
    await session.commit()
    return await get_task(session, task.id)


async def delete_task(session: AsyncSession, task: Task) -> None:
    task_id = task.id
    await session.delete(task)
    await session.commit()
    logger.info("Deleted task %s", task_id)
