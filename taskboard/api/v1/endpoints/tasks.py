from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Query, Response, status

from taskboard.api.deps import ContextDep, ProjectMemberContext, SessionDep
from taskboard.api.idempotency import IdempotentRoute
from taskboard.db.query import build_pagination
from taskboard.schemas.query import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from taskboard.schemas.task import TaskCreate, TaskEnvelope, TaskListResponse, TaskUpdate
from taskboard.services import tasks as tasks_service
from taskboard.services.access import Action, authorize_task
from taskboard.services.projects import parse_includes
from taskboard.services.tasks import DEFAULT_TASK_INCLUDES, TASK_INCLUDES, TaskFilters

# Mounted under /projects: the task collection of one project
project_tasks_router = APIRouter(route_class=IdempotentRoute)
router = APIRouter(route_class=IdempotentRoute)


@project_tasks_router.post(
    "/{project_id}/tasks",
    response_model=TaskEnvelope,
    response_model_exclude_unset=True,
    status_code=status.HTTP_201_CREATED,
)
async def create_task(
    project_id: int,
    payload: TaskCreate,
    session: SessionDep,
    context: ProjectMemberContext,
) -> TaskEnvelope:
    task = await tasks_service.create_task(
        session,
        project_id=project_id,
        created_by_id=context.user_id,
        payload=payload,
    )
    return TaskEnvelope(task=tasks_service.task_to_read(task))


@project_tasks_router.get(
    "/{project_id}/tasks",
    response_model=TaskListResponse,
    response_model_exclude_unset=True,
)
async def list_project_tasks(
    project_id: int,
    session: SessionDep,
    context: ProjectMemberContext,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    include: Optional[str] = Query(
        default=None,
        description="Comma-separated: project,assigned_to,created_by,comments",
    ),
    search: Optional[str] = Query(default=None),
    title: Optional[str] = Query(default=None),
    status_filter: Optional[str] = Query(default=None, alias="status"),
    priority: Optional[str] = Query(default=None),
    assigned_to_id: Optional[int] = Query(default=None),
    created_by_id: Optional[int] = Query(default=None),
    unassigned: Optional[bool] = Query(default=None),
    created_after: Optional[datetime] = Query(default=None),
    created_before: Optional[datetime] = Query(default=None),
    updated_after: Optional[datetime] = Query(default=None),
    updated_before: Optional[datetime] = Query(default=None),
    sort_by: Optional[str] = Query(default=None),
    sort_order: Optional[str] = Query(default=None),
) -> TaskListResponse:
    includes = parse_includes(include, TASK_INCLUDES) if include is not None else DEFAULT_TASK_INCLUDES
    tasks, total = await tasks_service.list_tasks(
        session,
        project_id=project_id,
        filters=TaskFilters(
            search=search,
            title=title,
            status=status_filter,
            priority=priority,
            assigned_to_id=assigned_to_id,
            created_by_id=created_by_id,
            unassigned=unassigned,
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
    return TaskListResponse(
        tasks=[tasks_service.task_to_read(task, includes) for task in tasks],
        pagination=build_pagination(total, page, limit),
    )


@router.get("/{task_id}", response_model=TaskEnvelope, response_model_exclude_unset=True)
async def read_task(task_id: int, session: SessionDep, context: ContextDep) -> TaskEnvelope:
    await authorize_task(session, task_id, context.principal, Action.read)
    task = await tasks_service.get_task(session, task_id)
    return TaskEnvelope(task=tasks_service.task_to_read(task))


@router.put("/{task_id}", response_model=TaskEnvelope, response_model_exclude_unset=True)
async def update_task(
    task_id: int,
    payload: TaskUpdate,
    session: SessionDep,
    context: ContextDep,
) -> TaskEnvelope:
    task = await authorize_task(session, task_id, context.principal, Action.update)
    task = await tasks_service.update_task(session, task, payload)
    return TaskEnvelope(task=tasks_service.task_to_read(task))


@router.delete("/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_task(task_id: int, session: SessionDep, context: ContextDep) -> Response:
    task = await authorize_task(session, task_id, context.principal, Action.delete)
    await tasks_service.delete_task(session, task)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
