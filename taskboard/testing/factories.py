"""
Test data factories for creating database models.

Each factory persists a model with sensible defaults and accepts overrides
for any field.  Pass ``commit=False`` to stage several rows and commit once.
"""

from functools import lru_cache
from itertools import count
from typing import Any

from sqlmodel.ext.asyncio.session import AsyncSession

from taskboard.core.security import create_access_token, get_password_hash
from taskboard.models.comment import Comment
from taskboard.models.project import DEFAULT_MEMBER_ROLE, Project, ProjectMember
from taskboard.models.task import Task
from taskboard.models.user import User, UserRole

DEFAULT_PASSWORD = "testpassword123"

_sequence = count(1)


# Argon2 is slow; reuse one hash per distinct password across factory users
@lru_cache
def _password_hash(password: str) -> str:
    return get_password_hash(password)


async def create_user(
    session: AsyncSession,
    commit: bool = True,
    password: str = DEFAULT_PASSWORD,
    **overrides: Any,
) -> User:
    """
    Create a test user.

    Example:
        owner = await create_user(session, email="boss@example.com", role=UserRole.owner)
    """
    n = next(_sequence)
    defaults = {
        "email": f"user-{n}@example.com",
        "name": f"Test User {n}",
        "hashed_password": _password_hash(password),
        "role": UserRole.member,
    }
    user = User(**{**defaults, **overrides})
    user.email = user.email.strip().lower()
    session.add(user)

    if commit:
        await session.commit()
        await session.refresh(user)

    return user


async def create_project(
    session: AsyncSession,
    owner: User | None = None,
    commit: bool = True,
    **overrides: Any,
) -> Project:
    if owner is None:
        owner = await create_user(session, commit=commit)

    defaults = {
        "name": f"Test Project {next(_sequence)}",
        "description": "A project for testing",
        "owner_id": owner.id,
    }
    project = Project(**{**defaults, **overrides})
    session.add(project)

    if commit:
        await session.commit()
        await session.refresh(project)

    return project


async def add_project_member(
    session: AsyncSession,
    project: Project,
    user: User,
    role: str = DEFAULT_MEMBER_ROLE,
    commit: bool = True,
) -> ProjectMember:
    membership = ProjectMember(project_id=project.id, user_id=user.id, role=role)
    session.add(membership)

    if commit:
        await session.commit()
        await session.refresh(membership)

    return membership


async def create_task(
    session: AsyncSession,
    project: Project,
    created_by: User,
    commit: bool = True,
    **overrides: Any,
) -> Task:
    defaults = {
        "title": f"Test Task {next(_sequence)}",
        "project_id": project.id,
        "created_by_id": created_by.id,
    }
    task = Task(**{**defaults, **overrides})
    session.add(task)

    if commit:
        await session.commit()
        await session.refresh(task)

    return task


async def create_comment(
    session: AsyncSession,
    task: Task,
    author: User,
    commit: bool = True,
    **overrides: Any,
) -> Comment:
    defaults = {
        "content": "A test comment",
        "task_id": task.id,
        "author_id": author.id,
    }
    comment = Comment(**{**defaults, **overrides})
    session.add(comment)

    if commit:
        await session.commit()
        await session.refresh(comment)

    return comment


def get_auth_token(user: User) -> str:
    """Mint a valid bearer token for *user* without going through login."""
    return create_access_token(subject=user.id, email=user.email, role=UserRole(user.role).value)


def get_auth_headers(user: User) -> dict[str, str]:
    """
    Authorization headers for API requests.

    Example:
        response = await client.get("/api/v1/auth/me", headers=get_auth_headers(user))
    """
    return {"Authorization": f"Bearer {get_auth_token(user)}"}
