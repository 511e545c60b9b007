from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from taskboard.schemas.query import Pagination
from taskboard.schemas.user import UserPublic


class CommentBase(BaseModel):
    content: str = Field(max_length=10_000)

    @field_validator("content")
    @classmethod
    def validate_content(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError("Content is required")
        return normalized


class CommentCreate(CommentBase):
    pass


class CommentTask(BaseModel):
    id: int
    title: str
    project_id: int

    class Config:
        from_attributes = True


class CommentRead(BaseModel):
    id: int
    content: str
    task_id: int
    author_id: int
    created_at: datetime
    updated_at: datetime
    author: Optional[UserPublic] = None
    task: Optional[CommentTask] = None

    class Config:
        from_attributes = True


class CommentEnvelope(BaseModel):
    comment: CommentRead


class CommentListResponse(BaseModel):
    comments: list[CommentRead]
    pagination: Pagination
