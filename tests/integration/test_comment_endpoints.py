"""
Integration tests for comment endpoints.

Covers /api/v1/tasks/{id}/comments and /api/v1/comments/{id}, in particular
that a comment can be deleted by its author or the project owner only.
"""

import pytest
from httpx import AsyncClient
from sqlmodel.ext.asyncio.session import AsyncSession

from taskboard.models.comment import Comment
from taskboard.testing import (
    add_project_member,
    create_comment,
    create_project,
    create_task,
    create_user,
    get_auth_headers,
)


async def _task_with_members(session: AsyncSession):
    owner = await create_user(session)
    alice = await create_user(session)
    bob = await create_user(session)
    project = await create_project(session, owner=owner)
    await add_project_member(session, project, alice)
    await add_project_member(session, project, bob)
    task = await create_task(session, project, owner)
    return owner, alice, bob, task


@pytest.mark.integration
async def test_member_comments_on_task(client: AsyncClient, session: AsyncSession):
    _, alice, _, task = await _task_with_members(session)

    response = await client.post(
        f"/api/v1/tasks/{task.id}/comments",
        headers=get_auth_headers(alice),
        json={"content": "  On it  "},
    )

    assert response.status_code == 201
    comment = response.json()["comment"]
    assert comment["content"] == "On it"
    assert comment["task_id"] == task.id
    assert comment["author_id"] == alice.id
    assert comment["author"]["id"] == alice.id
    assert "task" not in comment


@pytest.mark.integration
async def test_empty_comment_rejected(client: AsyncClient, session: AsyncSession):
    _, alice, _, task = await _task_with_members(session)

    response = await client.post(
        f"/api/v1/tasks/{task.id}/comments",
        headers=get_auth_headers(alice),
        json={"content": "   "},
    )

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"


@pytest.mark.integration
async def test_outsider_cannot_comment_or_read(client: AsyncClient, session: AsyncSession):
    _, _, _, task = await _task_with_members(session)
    outsider = await create_user(session)
    headers = get_auth_headers(outsider)

    post = await client.post(f"/api/v1/tasks/{task.id}/comments", headers=headers, json={"content": "Hi"})
    listing = await client.get(f"/api/v1/tasks/{task.id}/comments", headers=headers)

    assert post.status_code == 403
    assert listing.status_code == 403


@pytest.mark.integration
async def test_comment_on_missing_task(client: AsyncClient, session: AsyncSession):
    user = await create_user(session)

    response = await client.post(
        "/api/v1/tasks/9999/comments",
        headers=get_auth_headers(user),
        json={"content": "Hello?"},
    )

    assert response.status_code == 404
    assert response.json()["error"]["code"] == "TASK_NOT_FOUND"


@pytest.mark.integration
async def test_list_comments_filters(client: AsyncClient, session: AsyncSession):
    owner, alice, bob, task = await _task_with_members(session)
    await create_comment(session, task, alice, content="First pass done")
    await create_comment(session, task, bob, content="Reviewed")
    await create_comment(session, task, alice, content="Second pass done")
    headers = get_auth_headers(alice)
    url = f"/api/v1/tasks/{task.id}/comments"

    async def contents(**params):
        response = await client.get(url, headers=headers, params=params)
        assert response.status_code == 200
        return sorted(c["content"] for c in response.json()["comments"])

    assert await contents() == ["First pass done", "Reviewed", "Second pass done"]
    assert await contents(search="PASS") == ["First pass done", "Second pass done"]
    assert await contents(author_id=bob.id) == ["Reviewed"]
    assert await contents(my_comments="true") == ["First pass done", "Second pass done"]
    assert await contents(my_comments="false") == ["Reviewed"]
    # my_comments overrides author_id
    assert await contents(my_comments="true", author_id=bob.id) == ["First pass done", "Second pass done"]


@pytest.mark.integration
async def test_list_comments_includes_task_on_request(client: AsyncClient, session: AsyncSession):
    owner, _, _, task = await _task_with_members(session)
    await create_comment(session, task, owner)

    response = await client.get(
        f"/api/v1/tasks/{task.id}/comments",
        headers=get_auth_headers(owner),
        params={"include": "task"},
    )

    comment = response.json()["comments"][0]
    assert comment["task"] == {"id": task.id, "title": task.title, "project_id": task.project_id}
    assert "author" not in comment


@pytest.mark.integration
async def test_author_deletes_own_comment(client: AsyncClient, session: AsyncSession):
    _, alice, _, task = await _task_with_members(session)
    comment = await create_comment(session, task, alice)
    comment_id = comment.id

    response = await client.delete(f"/api/v1/comments/{comment_id}", headers=get_auth_headers(alice))

    assert response.status_code == 204
    session.expire_all()
    assert await session.get(Comment, comment_id) is None


@pytest.mark.integration
async def test_other_member_cannot_delete_comment(client: AsyncClient, session: AsyncSession):
    _, alice, bob, task = await _task_with_members(session)
    comment = await create_comment(session, task, alice)

    response = await client.delete(f"/api/v1/comments/{comment.id}", headers=get_auth_headers(bob))

    assert response.status_code == 403
    assert response.json()["error"]["code"] == "ACCESS_DENIED"


@pytest.mark.integration
async def test_project_owner_deletes_any_comment(client: AsyncClient, session: AsyncSession):
    owner, alice, _, task = await _task_with_members(session)
    comment = await create_comment(session, task, alice)

    response = await client.delete(f"/api/v1/comments/{comment.id}", headers=get_auth_headers(owner))

    assert response.status_code == 204


@pytest.mark.integration
async def test_delete_missing_comment(client: AsyncClient, session: AsyncSession):
    user = await create_user(session)

    response = await client.delete("/api/v1/comments/9999", headers=get_auth_headers(user))

    assert response.status_code == 404
    assert response.json()["error"]["code"] == "COMMENT_NOT_FOUND"
