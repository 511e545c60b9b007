from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Query, Response, status

from taskboard.api.deps import ContextDep, SessionDep
from taskboard.api.idempotency import IdempotentRoute
from taskboard.db.query import build_pagination
from taskboard.schemas.comment import CommentCreate, CommentEnvelope, CommentListResponse
from taskboard.schemas.query import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from taskboard.services import comments as comments_service
from taskboard.services.access import COMMENT_POLICY, Action, authorize_comment, authorize_task
from taskboard.services.comments import COMMENT_INCLUDES, DEFAULT_COMMENT_INCLUDES, CommentFilters
from taskboard.services.projects import parse_includes

# Mounted under /tasks: the comment thread of one task
task_comments_router = APIRouter(route_class=IdempotentRoute)
router = APIRouter(route_class=IdempotentRoute)


@task_comments_router.post(
    "/{task_id}/comments",
    response_model=CommentEnvelope,
    response_model_exclude_unset=True,
    status_code=status.HTTP_201_CREATED,
)
async def create_comment(
    task_id: int,
    payload: CommentCreate,
    session: SessionDep,
    context: ContextDep,
) -> CommentEnvelope:
    await authorize_task(session, task_id, context.principal, Action.create, policy=COMMENT_POLICY)
    comment = await comments_service.create_comment(
        session,
        task_id=task_id,
        author_id=context.user_id,
        payload=payload,
    )
    return CommentEnvelope(comment=comments_service.comment_to_read(comment))


@task_comments_router.get(
    "/{task_id}/comments",
    response_model=CommentListResponse,
    response_model_exclude_unset=True,
)
async def list_task_comments(
    task_id: int,
    session: SessionDep,
    context: ContextDep,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    include: Optional[str] = Query(default=None, description="Comma-separated: author,task"),
    search: Optional[str] = Query(default=None),
    author_id: Optional[int] = Query(default=None),
    my_comments: Optional[bool] = Query(default=None),
    created_after: Optional[datetime] = Query(default=None),
    created_before: Optional[datetime] = Query(default=None),
    updated_after: Optional[datetime] = Query(default=None),
    updated_before: Optional[datetime] = Query(default=None),
    sort_by: Optional[str] = Query(default=None),
    sort_order: Optional[str] = Query(default=None),
) -> CommentListResponse:
    await authorize_task(session, task_id, context.principal, Action.list, policy=COMMENT_POLICY)
    includes = parse_includes(include, COMMENT_INCLUDES) if include is not None else DEFAULT_COMMENT_INCLUDES
    comments, total = await comments_service.list_comments(
        session,
        task_id=task_id,
        user_id=context.user_id,
        filters=CommentFilters(
            search=search,
            author_id=author_id,
            my_comments=my_comments,
            created_after=created_after,
            created_before=created_before,
            updated_after=updated_after,
            updated_before=updated_before,
        ),
        include=includes,
        page=page,
        limit=limit,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    return CommentListResponse(
        comments=[comments_service.comment_to_read(comment, includes) for comment in comments],
        pagination=build_pagination(total, page, limit),
    )


@router.delete("/{comment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_comment(comment_id: int, session: SessionDep, context: ContextDep) -> Response:
    comment = await authorize_comment(session, comment_id, context.principal, Action.delete)
    await comments_service.delete_comment(session, comment)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
