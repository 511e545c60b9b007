"""Authorization gate for projects, tasks and comments.

Each (resource, action) pair maps to the relationship the acting principal
must have with the owning project:

  - ``member``: project member or owner (global owners always qualify)
  - ``owner``: project owner (global owners always qualify)
  - ``author_or_owner``: the comment's author, or the project owner

Existence is checked before permission, so a missing resource is a 404 even
for someone who could never have seen it.  Listing endpoints use
:func:`visible_project_ids_subquery` instead of per-row checks.
"""

from __future__ import annotations

from enum import Enum

from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from taskboard.core.errors import AccessDeniedError, NotFoundError
from taskboard.core.principal import Principal
from taskboard.models.comment import Comment
from taskboard.models.project import Project, ProjectMember
from taskboard.models.task import Task
from taskboard.services import membership


class TaskNotFoundError(NotFoundError):
    code = "TASK_NOT_FOUND"
    message = "Task not found"


class CommentNotFoundError(NotFoundError):
    code = "COMMENT_NOT_FOUND"
    message = "Comment not found"


class Requirement(str, Enum):
    member = "member"
    owner = "owner"
    author_or_owner = "author_or_owner"


class Action(str, Enum):
    read = "read"
    list = "list"
    create = "create"
    update = "update"
    delete = "delete"
    manage_members = "manage_members"


PROJECT_POLICY: dict[Action, Requirement] = {
    Action.read: Requirement.member,
    Action.update: Requirement.owner,
    Action.delete: Requirement.owner,
    Action.manage_members: Requirement.owner,
}

TASK_POLICY: dict[Action, Requirement] = {
    Action.create: Requirement.member,
    Action.read: Requirement.member,
    Action.list: Requirement.member,
    Action.update: Requirement.member,
    Action.delete: Requirement.owner,
}

COMMENT_POLICY: dict[Action, Requirement] = {
    Action.create: Requirement.member,
    Action.read: Requirement.member,
    Action.list: Requirement.member,
    Action.delete: Requirement.author_or_owner,
}


async def _check(
    session: AsyncSession,
    *,
    project_id: int,
    principal: Principal,
    requirement: Requirement,
    author_id: int | None = None,
) -> None:
    if requirement == Requirement.member:
        allowed = await membership.is_member(session, project_id, principal)
    elif requirement == Requirement.owner:
        allowed = await membership.is_owner(session, project_id, principal)
    else:
        allowed = author_id == principal.user_id or await membership.is_owner(
            session, project_id, principal
        )
    if not allowed:
        raise AccessDeniedError()


async def authorize_project(
    session: AsyncSession,
    project_id: int,
    principal: Principal,
    action: Action,
) -> None:
    """Raise unless *principal* may perform *action* on the project.

    ``ProjectNotFoundError`` comes out of the membership lookup itself.
    """
    await _check(
        session,
        project_id=project_id,
        principal=principal,
        requirement=PROJECT_POLICY[action],
    )


async def authorize_task(
    session: AsyncSession,
    task_id: int,
    principal: Principal,
    action: Action,
    *,
    policy: dict[Action, Requirement] = TASK_POLICY,
) -> Task:
    """Load the task and check *action* against *policy*.

    Comment creation and listing pass ``COMMENT_POLICY``; the task is their
    parent resource.
    """
    task = await session.get(Task, task_id)
    if task is None:
        raise TaskNotFoundError()
    await _check(
        session,
        project_id=task.project_id,
        principal=principal,
        requirement=policy[action],
    )
    return task


async def authorize_comment(
    session: AsyncSession,
    comment_id: int,
    principal: Principal,
    action: Action,
) -> Comment:
    stmt = (
        select(Comment, Task.project_id)
        .join(Task, Task.id == Comment.task_id)
        .where(Comment.id == comment_id)
    )
    row = (await session.exec(stmt)).one_or_none()
    if row is None:
        raise CommentNotFoundError()
    comment, project_id = row
    await _check(
        session,
        project_id=project_id,
        principal=principal,
        requirement=COMMENT_POLICY[action],
        author_id=comment.author_id,
    )
    return comment


def visible_project_ids_subquery(user_id: int):
    """Return a subquery of project IDs the user owns or belongs to."""
    owned = select(Project.id).where(Project.owner_id == user_id)
    joined = select(ProjectMember.project_id).where(ProjectMember.user_id == user_id)
    return owned.union(joined)
