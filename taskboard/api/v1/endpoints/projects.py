from datetime import datetime
from typing import Literal, Optional

from fastapi import APIRouter, Query, Response, status

from taskboard.api.deps import ContextDep, ProjectMemberContext, ProjectOwnerContext, SessionDep
from taskboard.api.idempotency import IdempotentRoute
from taskboard.db.query import build_pagination
from taskboard.schemas.project import (
    ProjectCreate,
    ProjectEnvelope,
    ProjectListResponse,
    ProjectMemberCreate,
    ProjectMemberEnvelope,
    ProjectUpdate,
)
from taskboard.schemas.query import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from taskboard.services import projects as projects_service
from taskboard.services.projects import PROJECT_INCLUDES, ProjectFilters, parse_includes

router = APIRouter(route_class=IdempotentRoute)


@router.post(
    "",
    response_model=ProjectEnvelope,
    response_model_exclude_unset=True,
    status_code=status.HTTP_201_CREATED,
)
async def create_project(payload: ProjectCreate, session: SessionDep, context: ContextDep) -> ProjectEnvelope:
    project = await projects_service.create_project(session, owner_id=context.user_id, payload=payload)
    return ProjectEnvelope(project=projects_service.project_to_read(project))


@router.get("", response_model=ProjectListResponse, response_model_exclude_unset=True)
async def list_projects(
    session: SessionDep,
    context: ContextDep,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    include: Optional[str] = Query(default=None, description="Comma-separated: owner,members,tasks"),
    search: Optional[str] = Query(default=None),
    name: Optional[str] = Query(default=None),
    owner_id: Optional[int] = Query(default=None),
    my_role: Optional[Literal["owner", "member"]] = Query(default=None),
    created_after: Optional[datetime] = Query(default=None),
    created_before: Optional[datetime] = Query(default=None),
    updated_after: Optional[datetime] = Query(default=None),
    updated_before: Optional[datetime] = Query(default=None),
    sort_by: Optional[str] = Query(default=None),
    sort_order: Optional[str] = Query(default=None),
) -> ProjectListResponse:
    includes = parse_includes(include, PROJECT_INCLUDES)
    projects, total = await projects_service.list_projects(
        session,
        principal=context.principal,
        filters=ProjectFilters(
            search=search,
            name=name,
            owner_id=owner_id,
            my_role=my_role,
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
    return ProjectListResponse(
        projects=[projects_service.project_to_read(project, includes) for project in projects],
        pagination=build_pagination(total, page, limit),
    )


@router.get("/{project_id}", response_model=ProjectEnvelope, response_model_exclude_unset=True)
async def read_project(project_id: int, session: SessionDep, context: ProjectMemberContext) -> ProjectEnvelope:
    project = await projects_service.get_project(session, project_id)
    return ProjectEnvelope(project=projects_service.project_to_read(project))


@router.put("/{project_id}", response_model=ProjectEnvelope, response_model_exclude_unset=True)
async def update_project(
    project_id: int,
    payload: ProjectUpdate,
    session: SessionDep,
    context: ProjectOwnerContext,
) -> ProjectEnvelope:
    project = await projects_service.update_project(session, project_id, payload)
    return ProjectEnvelope(project=projects_service.project_to_read(project))


@router.delete("/{project_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_project(project_id: int, session: SessionDep, context: ProjectOwnerContext) -> Response:
    await projects_service.delete_project(session, project_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/{project_id}/members",
    response_model=ProjectMemberEnvelope,
    status_code=status.HTTP_201_CREATED,
)
async def add_project_member(
    project_id: int,
    payload: ProjectMemberCreate,
    session: SessionDep,
    context: ProjectOwnerContext,
) -> ProjectMemberEnvelope:
    member = await projects_service.add_member(session, project_id, payload)
    return ProjectMemberEnvelope(member=projects_service.member_to_read(member))


@router.delete("/{project_id}/members/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_project_member(
    project_id: int,
    user_id: int,
    session: SessionDep,
    context: ProjectOwnerContext,
) -> Response:
    await projects_service.remove_member(session, project_id, user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
