"""Project ownership and membership lookups.

Every authorization decision about a project bottoms out here.  The checks
are read-only; the mutating helpers at the bottom are the persistence side of
member management.
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from taskboard.core.errors import ConflictError, NotFoundError
from taskboard.core.principal import Principal, is_superuser
from taskboard.models.project import Project, ProjectMember


class ProjectNotFoundError(NotFoundError):
    code = "PROJECT_NOT_FOUND"
    message = "Project not found"


class MemberNotFoundError(NotFoundError):
    code = "MEMBER_NOT_FOUND"
    message = "Member not found"


class MemberAlreadyExistsError(ConflictError):
    code = "DUPLICATE_MEMBER"
    message = "User is already a member of this project"


async def find_project_owner(session: AsyncSession, project_id: int) -> int:
    result = await session.exec(select(Project.owner_id).where(Project.id == project_id))
    owner_id = result.one_or_none()
    if owner_id is None:
        raise ProjectNotFoundError()
    return owner_id


async def find_membership(
    session: AsyncSession,
    *,
    project_id: int,
    user_id: int,
) -> Optional[ProjectMember]:
    stmt = select(ProjectMember).where(
        ProjectMember.project_id == project_id,
        ProjectMember.user_id == user_id,
    )
    result = await session.exec(stmt)
    return result.one_or_none()


async def is_owner(session: AsyncSession, project_id: int, principal: Principal) -> bool:
    owner_id = await find_project_owner(session, project_id)
    if is_superuser(principal):
        return True
    return owner_id == principal.user_id


async def is_member(session: AsyncSession, project_id: int, principal: Principal) -> bool:
    """Owners count as members; global owners are members of everything."""
    if await is_owner(session, project_id, principal):
        return True
    membership = await find_membership(session, project_id=project_id, user_id=principal.user_id)
    return membership is not None


async def create_membership(
    session: AsyncSession,
    *,
    project_id: int,
    user_id: int,
    role: str,
) -> ProjectMember:
    if await find_membership(session, project_id=project_id, user_id=user_id):
        raise MemberAlreadyExistsError()

    membership = ProjectMember(project_id=project_id, user_id=user_id, role=role)
    session.add(membership)
    try:
        # Two concurrent adds can both pass the lookup above
        await session.flush()
    except IntegrityError as exc:
        await session.rollback()
        raise MemberAlreadyExistsError() from exc
    return membership


async def delete_membership(session: AsyncSession, *, project_id: int, user_id: int) -> None:
    membership = await find_membership(session, project_id=project_id, user_id=user_id)
    if membership is None:
        raise MemberNotFoundError()
    await session.delete(membership)
    await session.flush()
