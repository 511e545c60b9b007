from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from taskboard.schemas.comment import CommentRead
from taskboard.schemas.query import Pagination
from taskboard.schemas.user import UserPublic


class TaskBase(BaseModel):
    description: Optional[str] = None
    # Free-form labels
    status: Optional[str] = Field(default=None, min_length=1, max_length=32)
    priority: Optional[str] = Field(default=None, min_length=1, max_length=32)
    assigned_to_id: Optional[int] = Field(default=None, gt=0)


class TaskCreate(TaskBase):
    title: str = Field(max_length=255)

    @field_validator("title")
    @classmethod
    def validate_title(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError("Title is required")
        return normalized


class TaskUpdate(TaskBase):
    title: Optional[str] = Field(default=None, max_length=255)

    @field_validator("title")
    @classmethod
    def validate_title(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        normalized = value.strip()
        if not normalized:
            raise ValueError("Title is required")
        return normalized


class TaskProject(BaseModel):
    id: int
    name: str

    class Config:
        from_attributes = True


class TaskSummary(BaseModel):
    id: int
    project_id: int
    title: str
    description: Optional[str] = None
    status: str
    priority: str
    assigned_to_id: Optional[int] = None
    created_by_id: int
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class TaskRead(TaskSummary):
    project: Optional[TaskProject] = None
    assigned_to: Optional[UserPublic] = None
    created_by: Optional[UserPublic] = None
    comments: Optional[List[CommentRead]] = None


class TaskEnvelope(BaseModel):
    task: TaskRead


class TaskListResponse(BaseModel):
    tasks: List[TaskRead]
    pagination: Pagination
