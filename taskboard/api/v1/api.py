from fastapi import APIRouter

from taskboard.api.v1.endpoints import auth, comments, health, projects, tasks, users

api_router = APIRouter()
api_router.include_router(health.router, tags=["health"])
api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_router.include_router(users.router, prefix="/users", tags=["users"])
api_router.include_router(projects.router, prefix="/projects", tags=["projects"])
api_router.include_router(tasks.project_tasks_router, prefix="/projects", tags=["tasks"])
api_router.include_router(tasks.router, prefix="/tasks", tags=["tasks"])
api_router.include_router(comments.task_comments_router, prefix="/tasks", tags=["comments"])
api_router.include_router(comments.router, prefix="/comments", tags=["comments"])
