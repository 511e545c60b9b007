"""
Integration tests for task endpoints.

Tests the task API endpoints including:
- Creating and listing tasks under /api/v1/projects/{id}/tasks
- Reading, updating and deleting tasks at /api/v1/tasks/{id}
- Filters, includes and the owner-only delete rule
"""

import pytest
from httpx import AsyncClient
from sqlmodel.ext.asyncio.session import AsyncSession

from taskboard.models.task import Task
from taskboard.models.user import UserRole
from taskboard.testing import (
    add_project_member,
    create_comment,
    create_project,
    create_task,
    create_user,
    get_auth_headers,
)


async def _project_with_member(session: AsyncSession, role: str = "developer"):
    owner = await create_user(session)
    member = await create_user(session)
    project = await create_project(session, owner=owner)
    await add_project_member(session, project, member, role=role)
    return owner, member, project


@pytest.mark.integration
async def test_member_creates_task_with_defaults(client: AsyncClient, session: AsyncSession):
    owner, member, project = await _project_with_member(session)

    response = await client.post(
        f"/api/v1/projects/{project.id}/tasks",
        headers=get_auth_headers(member),
        json={"title": " Write docs ", "assigned_to_id": owner.id},
    )

    assert response.status_code == 201
    task = response.json()["task"]
    assert task["title"] == "Write docs"
    assert task["status"] == "todo"
    assert task["priority"] == "medium"
    assert task["project_id"] == project.id
    assert task["created_by_id"] == member.id
    assert task["project"] == {"id": project.id, "name": project.name}
    assert task["assigned_to"]["id"] == owner.id
    assert task["created_by"]["id"] == member.id


@pytest.mark.integration
async def test_outsider_cannot_create_task(client: AsyncClient, session: AsyncSession):
    project = await create_project(session)
    outsider = await create_user(session)

    response = await client.post(
        f"/api/v1/projects/{project.id}/tasks",
        headers=get_auth_headers(outsider),
        json={"title": "Sneaky"},
    )

    assert response.status_code == 403
    assert response.json()["error"]["code"] == "ACCESS_DENIED"


@pytest.mark.integration
async def test_create_task_in_missing_project(client: AsyncClient, session: AsyncSession):
    user = await create_user(session)

    response = await client.post(
        "/api/v1/projects/9999/tasks",
        headers=get_auth_headers(user),
        json={"title": "Lost"},
    )

    assert response.status_code == 404
    assert response.json()["error"]["code"] == "PROJECT_NOT_FOUND"


@pytest.mark.integration
async def test_create_task_requires_title(client: AsyncClient, session: AsyncSession):
    owner = await create_user(session)
    project = await create_project(session, owner=owner)

    response = await client.post(
        f"/api/v1/projects/{project.id}/tasks",
        headers=get_auth_headers(owner),
        json={"description": "No title"},
    )

    assert response.status_code == 400
    assert response.json()["error"]["message"] == "title is required"


@pytest.mark.integration
async def test_create_task_with_unknown_assignee(client: AsyncClient, session: AsyncSession):
    owner = await create_user(session)
    project = await create_project(session, owner=owner)

    response = await client.post(
        f"/api/v1/projects/{project.id}/tasks",
        headers=get_auth_headers(owner),
        json={"title": "Orphan", "assigned_to_id": 9999},
    )

    assert response.status_code == 404
    assert response.json()["error"]["code"] == "USER_NOT_FOUND"


@pytest.mark.integration
async def test_list_tasks_filters(client: AsyncClient, session: AsyncSession):
    owner, member, project = await _project_with_member(session)
    await create_task(session, project, owner, title="Design", status="done", assigned_to_id=member.id)
    await create_task(session, project, member, title="Build", status="in_progress", priority="high")
    await create_task(session, project, member, title="Test", description="design review")
    other_project = await create_project(session, owner=owner)
    await create_task(session, other_project, owner, title="Elsewhere")
    headers = get_auth_headers(member)
    url = f"/api/v1/projects/{project.id}/tasks"

    async def titles(**params):
        response = await client.get(url, headers=headers, params=params)
        assert response.status_code == 200
        return sorted(task["title"] for task in response.json()["tasks"])

    assert await titles() == ["Build", "Design", "Test"]
    assert await titles(status="done") == ["Design"]
    assert await titles(priority="high") == ["Build"]
    assert await titles(assigned_to_id=member.id) == ["Design"]
    assert await titles(unassigned="true") == ["Build", "Test"]
    assert await titles(unassigned="false") == ["Design"]
    assert await titles(created_by_id=member.id) == ["Build", "Test"]
    assert await titles(search="design") == ["Design", "Test"]
    # An exact title narrows search to the description
    assert await titles(title="Test", search="review") == ["Test"]
    assert await titles(title="Design", search="design") == []


@pytest.mark.integration
async def test_list_tasks_assignee_wins_over_unassigned(client: AsyncClient, session: AsyncSession):
    owner, member, project = await _project_with_member(session)
    await create_task(session, project, owner, title="Mine", assigned_to_id=member.id)
    await create_task(session, project, owner, title="Nobody's")

    response = await client.get(
        f"/api/v1/projects/{project.id}/tasks",
        headers=get_auth_headers(owner),
        params={"assigned_to_id": member.id, "unassigned": "true"},
    )

    assert [t["title"] for t in response.json()["tasks"]] == ["Mine"]


@pytest.mark.integration
async def test_list_tasks_default_and_explicit_includes(client: AsyncClient, session: AsyncSession):
    owner = await create_user(session)
    project = await create_project(session, owner=owner)
    task = await create_task(session, project, owner)
    await create_comment(session, task, owner, content="Looks good")
    headers = get_auth_headers(owner)
    url = f"/api/v1/projects/{project.id}/tasks"

    default = (await client.get(url, headers=headers)).json()["tasks"][0]
    assert default["project"]["id"] == project.id
    assert default["created_by"]["id"] == owner.id
    assert default["assigned_to"] is None
    assert "comments" not in default

    explicit = (await client.get(url, headers=headers, params={"include": "comments"})).json()["tasks"][0]
    assert [c["content"] for c in explicit["comments"]] == ["Looks good"]
    assert explicit["comments"][0]["author"]["id"] == owner.id
    assert "project" not in explicit


@pytest.mark.integration
async def test_list_tasks_sorted_by_title(client: AsyncClient, session: AsyncSession):
    owner = await create_user(session)
    project = await create_project(session, owner=owner)
    for title in ("b", "c", "a"):
        await create_task(session, project, owner, title=title)

    response = await client.get(
        f"/api/v1/projects/{project.id}/tasks",
        headers=get_auth_headers(owner),
        params={"sort_by": "title", "sort_order": "asc"},
    )

    assert [t["title"] for t in response.json()["tasks"]] == ["a", "b", "c"]


@pytest.mark.integration
async def test_read_task(client: AsyncClient, session: AsyncSession):
    owner, member, project = await _project_with_member(session)
    task = await create_task(session, project, owner, title="Readable")

    response = await client.get(f"/api/v1/tasks/{task.id}", headers=get_auth_headers(member))

    assert response.status_code == 200
    assert response.json()["task"]["title"] == "Readable"


@pytest.mark.integration
async def test_read_missing_task(client: AsyncClient, session: AsyncSession):
    user = await create_user(session)

    response = await client.get("/api/v1/tasks/9999", headers=get_auth_headers(user))

    assert response.status_code == 404
    assert response.json()["error"]["code"] == "TASK_NOT_FOUND"


@pytest.mark.integration
async def test_read_task_as_outsider(client: AsyncClient, session: AsyncSession):
    owner = await create_user(session)
    project = await create_project(session, owner=owner)
    task = await create_task(session, project, owner)
    outsider = await create_user(session)

    response = await client.get(f"/api/v1/tasks/{task.id}", headers=get_auth_headers(outsider))

    assert response.status_code == 403


@pytest.mark.integration
async def test_member_updates_task(client: AsyncClient, session: AsyncSession):
    owner, member, project = await _project_with_member(session)
    task = await create_task(session, project, owner, title="Draft", assigned_to_id=owner.id)

    response = await client.put(
        f"/api/v1/tasks/{task.id}",
        headers=get_auth_headers(member),
        json={"status": "in_progress", "assigned_to_id": None, "title": None},
    )

    assert response.status_code == 200
    data = response.json()["task"]
    assert data["status"] == "in_progress"
    assert data["assigned_to_id"] is None
    # A null title leaves the title alone
    assert data["title"] == "Draft"


@pytest.mark.integration
async def test_delete_task_is_owner_only(client: AsyncClient, session: AsyncSession):
    owner, member, project = await _project_with_member(session)
    task = await create_task(session, project, member)
    task_id = task.id

    denied = await client.delete(f"/api/v1/tasks/{task_id}", headers=get_auth_headers(member))
    assert denied.status_code == 403
    assert denied.json()["error"]["code"] == "ACCESS_DENIED"

    response = await client.delete(f"/api/v1/tasks/{task_id}", headers=get_auth_headers(owner))
    assert response.status_code == 204
    session.expire_all()
    assert await session.get(Task, task_id) is None


@pytest.mark.integration
async def test_global_owner_deletes_any_task(client: AsyncClient, session: AsyncSession):
    admin = await create_user(session, role=UserRole.owner)
    owner = await create_user(session)
    project = await create_project(session, owner=owner)
    task = await create_task(session, project, owner)

    response = await client.delete(f"/api/v1/tasks/{task.id}", headers=get_auth_headers(admin))

    assert response.status_code == 204
