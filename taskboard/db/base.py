"""Import all models for Alembic or metadata creation."""

from taskboard.models.comment import Comment
from taskboard.models.idempotency import IdempotencyRecord
from taskboard.models.project import Project, ProjectMember
from taskboard.models.task import Task
from taskboard.models.user import User

__all__ = [
    "User",
    "Project",
    "ProjectMember",
    "Task",
    "Comment",
    "IdempotencyRecord",
]
