from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from taskboard.schemas.query import Pagination
from taskboard.schemas.task import TaskSummary
from taskboard.schemas.user import UserPublic


class ProjectBase(BaseModel):
    name: str = Field(max_length=255)
    description: Optional[str] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError("Name is required")
        return normalized


class ProjectCreate(ProjectBase):
    pass


class ProjectUpdate(BaseModel):
    name: Optional[str] = Field(default=None, max_length=255)
    description: Optional[str] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        normalized = value.strip()
        if not normalized:
            raise ValueError("Name is required")
        return normalized


class ProjectMemberCreate(BaseModel):
    user_id: int = Field(gt=0)
    # Label only ("developer", "designer"); grants nothing beyond membership
    role: str = Field(min_length=1, max_length=64)

    @field_validator("role")
    @classmethod
    def validate_role(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError("Role is required")
        return normalized


class ProjectMemberRead(BaseModel):
    project_id: int
    user_id: int
    role: str
    joined_at: datetime
    user: Optional[UserPublic] = None

    class Config:
        from_attributes = True


class ProjectRead(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    owner_id: int
    created_at: datetime
    updated_at: datetime
    owner: Optional[UserPublic] = None
    members: Optional[List[ProjectMemberRead]] = None
    tasks: Optional[List[TaskSummary]] = None

    class Config:
        from_attributes = True


class ProjectEnvelope(BaseModel):
    project: ProjectRead


class ProjectListResponse(BaseModel):
    projects: List[ProjectRead]
    pagination: Pagination


class ProjectMemberEnvelope(BaseModel):
    member: ProjectMemberRead
