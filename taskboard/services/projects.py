from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable, Literal, Optional

from sqlalchemy import func
from sqlalchemy.orm import selectinload
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from taskboard.core.principal import Principal, is_superuser
from taskboard.db.query import (
    apply_filters,
    apply_sorting,
    date_range_conditions,
    paginated_query,
    resolve_sort,
    search_group,
)
from taskboard.models.project import Project, ProjectMember
from taskboard.schemas.project import (
    ProjectCreate,
    ProjectMemberCreate,
    ProjectMemberRead,
    ProjectRead,
    ProjectUpdate,
)
from taskboard.schemas.query import FilterCondition
from taskboard.schemas.task import TaskSummary
from taskboard.schemas.user import UserPublic
from taskboard.services import membership
from taskboard.services import users as users_service
from taskboard.services.access import visible_project_ids_subquery
from taskboard.services.membership import ProjectNotFoundError

logger = logging.getLogger(__name__)

PROJECT_SORT_FIELDS = ("name", "created_at", "updated_at")
PROJECT_INCLUDES = frozenset({"owner", "members", "tasks"})
DETAIL_INCLUDES = frozenset({"owner", "members"})


@dataclass
class ProjectFilters:
    search: Optional[str] = None
    name: Optional[str] = None
    owner_id: Optional[int] = None
    my_role: Optional[Literal["owner", "member"]] = None
    created_after: Optional[datetime] = None
    created_before: Optional[datetime] = None
    updated_after: Optional[datetime] = None
    updated_before: Optional[datetime] = None


def parse_includes(raw: Optional[str], allowed: Iterable[str]) -> set[str]:
    """Comma-separated relation names; unknown names are ignored."""
    if not raw:
        return set()
    allowed = set(allowed)
    return {item.strip() for item in raw.split(",") if item.strip() in allowed}


def _load_options(include: Iterable[str]) -> list:
    options = []
    if "owner" in include:
        options.append(selectinload(Project.owner))
    if "members" in include:
        options.append(selectinload(Project.members).selectinload(ProjectMember.user))
    if "tasks" in include:
        options.append(selectinload(Project.tasks))
    return options


def member_to_read(member: ProjectMember) -> ProjectMemberRead:
    return ProjectMemberRead(
        project_id=member.project_id,
        user_id=member.user_id,
        role=member.role,
        joined_at=member.joined_at,
        user=UserPublic.model_validate(member.user),
    )


def project_to_read(project: Project, include: Iterable[str] = DETAIL_INCLUDES) -> ProjectRead:
    """Relations outside *include* are left unset so responses omit them."""
    data = {
        "id": project.id,
        "name": project.name,
        "description": project.description,
        "owner_id": project.owner_id,
        "created_at": project.created_at,
        "updated_at": project.updated_at,
    }
    if "owner" in include:
        data["owner"] = UserPublic.model_validate(project.owner)
    if "members" in include:
        data["members"] = [member_to_read(member) for member in project.members]
    if "tasks" in include:
        data["tasks"] = [TaskSummary.model_validate(task) for task in project.tasks]
    return ProjectRead(**data)


async def get_project(
    session: AsyncSession,
    project_id: int,
    include: Iterable[str] = DETAIL_INCLUDES,
) -> Project:
    stmt = select(Project).where(Project.id == project_id).options(*_load_options(include))
    result = await session.exec(stmt.execution_options(populate_existing=True))
    project = result.one_or_none()
    if project is None:
        raise ProjectNotFoundError()
    return project


async def create_project(session: AsyncSession, *, owner_id: int, payload: ProjectCreate) -> Project:
    project = Project(name=payload.name, description=payload.description, owner_id=owner_id)
    session.add(project)
    await session.commit()
    logger.info("User %s created project %s", owner_id, project.id)
    return await get_project(session, project.id)


async def list_projects(
    session: AsyncSession,
    *,
    principal: Principal,
    filters: ProjectFilters,
    include: Iterable[str],
    page: int,
    limit: int,
    sort_by: Optional[str] = None,
    sort_order: Optional[str] = None,
) -> tuple[list[Project], int]:
    user_id = principal.user_id
    conditions: list = [
        *search_group(filters.search, "name", "description"),
        *date_range_conditions(
            created_after=filters.created_after,
            created_before=filters.created_before,
            updated_after=filters.updated_after,
            updated_before=filters.updated_before,
        ),
    ]
    if filters.name:
        conditions.append(FilterCondition(field="name", value=filters.name))
    if filters.my_role == "owner":
        conditions.append(FilterCondition(field="owner_id", value=user_id))
    elif filters.owner_id is not None:
        conditions.append(FilterCondition(field="owner_id", value=filters.owner_id))
    if filters.my_role == "member" and filters.owner_id is None:
        # Projects the user joined, not ones they own
        conditions.append(FilterCondition(field="owner_id", value=user_id, negate=True))

    def _scoped(stmt):
        stmt = apply_filters(stmt, Project, conditions)
        if not is_superuser(principal):
            stmt = stmt.where(Project.id.in_(visible_project_ids_subquery(user_id)))
        if filters.my_role == "member":
            joined = select(ProjectMember.project_id).where(ProjectMember.user_id == user_id)
            stmt = stmt.where(Project.id.in_(joined))
        return stmt

    data_stmt = _scoped(select(Project).options(*_load_options(include)))
    data_stmt = apply_sorting(data_stmt, Project, resolve_sort(sort_by, sort_order, PROJECT_SORT_FIELDS))
    count_stmt = _scoped(select(func.count()).select_from(Project))
    return await paginated_query(session, data_stmt, count_stmt, page, limit)


async def update_project(session: AsyncSession, project_id: int, payload: ProjectUpdate) -> Project:
    project = await get_project(session, project_id, include=())
    update_data = payload.model_dump(exclude_unset=True)
    # Name cannot be cleared; description can
    if update_data.get("name", "") is None:
        update_data.pop("name")
    for field, value in update_data.items():
        setattr(project, field, value)
    project.updated_at = datetime.now(timezone.utc)
    session.add(project)
    await session.commit()
    return await get_project(session, project_id)


async def delete_project(session: AsyncSession, project_id: int) -> None:
    project = await get_project(session, project_id, include=())
    await session.delete(project)
    await session.commit()
    logger.info("Deleted project %s", project_id)


async def add_member(session: AsyncSession, project_id: int, payload: ProjectMemberCreate) -> ProjectMember:
    await users_service.get_user(session, payload.user_id)
    member = await membership.create_membership(
        session,
        project_id=project_id,
        user_id=payload.user_id,
        role=payload.role,
    )
    await session.commit()
    stmt = (
        select(ProjectMember)
        .where(ProjectMember.project_id == project_id, ProjectMember.user_id == member.user_id)
        .options(selectinload(ProjectMember.user))
        .execution_options(populate_existing=True)
    )
    return (await session.exec(stmt)).one()


async def remove_member(session: AsyncSession, project_id: int, user_id: int) -> None:
    await membership.delete_membership(session, project_id=project_id, user_id=user_id)
    await session.commit()
