from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel

from taskboard.models.user import UserRole


class UserPublic(BaseModel):
    """Public user information embedded in other resources"""
    id: int
    email: str
    name: str
    role: UserRole

    class Config:
        from_attributes = True


class UserRead(UserPublic):
    created_at: datetime
    updated_at: datetime


USER_SELECTABLE_FIELDS = ("id", "name", "email", "role", "created_at", "updated_at")


def select_user_fields(user: UserRead, fields: Optional[List[str]]) -> dict:
    """Project a user onto the requested field subset; ``id`` is always kept."""
    data = user.model_dump(mode="json")
    if not fields:
        return data
    wanted = {"id", *(field for field in fields if field in USER_SELECTABLE_FIELDS)}
    return {key: value for key, value in data.items() if key in wanted}


class UserEnvelope(BaseModel):
    user: UserRead
