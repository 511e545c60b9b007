from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from sqlalchemy import JSON, Column, DateTime, Index, Integer, String, Text
from sqlmodel import Enum as SQLEnum, Field, SQLModel


class IdempotencyState(str, Enum):
    pending = "pending"
    completed = "completed"


class IdempotencyRecord(SQLModel, table=True):
    """Stored outcome of a POST replayed for repeated idempotency keys.

    ``fingerprint`` is the primary key, so two writers racing on the same
    (method, path, user, key) cannot both insert a row.
    """

    __tablename__ = "idempotency_records"
    __table_args__ = (Index("ix_idempotency_records_expires_at", "expires_at"),)

    fingerprint: str = Field(sa_column=Column(String(64), primary_key=True))
    method: str = Field(sa_column=Column(String(10), nullable=False))
    path: str = Field(sa_column=Column(Text, nullable=False))
    user_id: int = Field(sa_column=Column(Integer, nullable=False, index=True))
    idempotency_key: str = Field(sa_column=Column(String(255), nullable=False))
    state: IdempotencyState = Field(
        default=IdempotencyState.pending,
        sa_column=Column(SQLEnum(IdempotencyState, name="idempotency_state"), nullable=False),
    )
    status_code: Optional[int] = Field(default=None, sa_column=Column(Integer, nullable=True))
    response_body: Optional[Any] = Field(default=None, sa_column=Column(JSON, nullable=True))
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
    expires_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        now = now or datetime.now(timezone.utc)
        expires_at = self.expires_at
        # SQLite drops tzinfo on the way back out
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        return now > expires_at
