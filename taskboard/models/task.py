from datetime import datetime, timezone
from typing import List, Optional, TYPE_CHECKING

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String
from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:  # pragma: no cover
    from taskboard.models.comment import Comment
    from taskboard.models.project import Project
    from taskboard.models.user import User


DEFAULT_TASK_STATUS = "todo"
DEFAULT_TASK_PRIORITY = "medium"


class Task(SQLModel, table=True):
    __tablename__ = "tasks"

    id: Optional[int] = Field(default=None, primary_key=True)
    project_id: int = Field(
        sa_column=Column(Integer, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True),
    )
    title: str = Field(nullable=False)
    description: Optional[str] = Field(default=None)
    status: str = Field(
        default=DEFAULT_TASK_STATUS,
        sa_column=Column(String(32), nullable=False, server_default=DEFAULT_TASK_STATUS),
    )
    priority: str = Field(
        default=DEFAULT_TASK_PRIORITY,
        sa_column=Column(String(32), nullable=False, server_default=DEFAULT_TASK_PRIORITY),
    )
    assigned_to_id: Optional[int] = Field(
        default=None,
        sa_column=Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True),
    )
    created_by_id: int = Field(
        sa_column=Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True),
    )
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )

    project: Optional["Project"] = Relationship(back_populates="tasks")
    assigned_to: Optional["User"] = Relationship(
        sa_relationship_kwargs={"foreign_keys": "[Task.assigned_to_id]"},
    )
    created_by: Optional["User"] = Relationship(
        sa_relationship_kwargs={"foreign_keys": "[Task.created_by_id]"},
    )
    comments: List["Comment"] = Relationship(
        back_populates="task",
        sa_relationship_kwargs={"cascade": "all, delete-orphan", "passive_deletes": True},
    )
