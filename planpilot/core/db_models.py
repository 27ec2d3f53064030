"""SQLModel definitions for the planpilot store schema.

Identities use SQLite AUTOINCREMENT so ids are never reused after deletion.
Timestamps are stored as naive UTC and handed back timezone-aware.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime, Index
from sqlalchemy.types import TypeDecorator
from sqlmodel import Field, SQLModel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UtcDateTime(TypeDecorator):
    """DateTime column that always round-trips aware UTC values."""

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


def timestamp_field():
    return Field(default_factory=utcnow, sa_type=UtcDateTime)


class Plan(SQLModel, table=True):
    """plans table."""

    __tablename__ = "plans"
    __table_args__ = {"sqlite_autoincrement": True, "extend_existing": True}

    id: Optional[int] = Field(default=None, primary_key=True)
    title: str
    content: str
    status: str = "todo"
    comment: Optional[str] = None
    last_session_id: Optional[str] = None
    created_at: datetime = timestamp_field()
    updated_at: datetime = timestamp_field()


class Step(SQLModel, table=True):
    """steps table."""

    __tablename__ = "steps"
    __table_args__ = (
        Index("idx_steps_plan_order", "plan_id", "sort_order"),
        {"sqlite_autoincrement": True, "extend_existing": True},
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    plan_id: int = Field(foreign_key="plans.id", ondelete="CASCADE")
    content: str
    status: str = "todo"
    executor: str = "ai"
    sort_order: int
    comment: Optional[str] = None
    created_at: datetime = timestamp_field()
    updated_at: datetime = timestamp_field()


class Goal(SQLModel, table=True):
    """goals table."""

    __tablename__ = "goals"
    __table_args__ = (
        Index("idx_goals_step", "step_id"),
        {"sqlite_autoincrement": True, "extend_existing": True},
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    step_id: int = Field(foreign_key="steps.id", ondelete="CASCADE")
    content: str
    status: str = "todo"
    comment: Optional[str] = None
    created_at: datetime = timestamp_field()
    updated_at: datetime = timestamp_field()


class ActivePlan(SQLModel, table=True):
    """active_plan table: session -> plan binding, unique on both sides."""

    __tablename__ = "active_plan"
    __table_args__ = (
        Index("idx_active_plan_session", "session_id", unique=True),
        Index("idx_active_plan_plan", "plan_id", unique=True),
        {"extend_existing": True},
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    session_id: str
    plan_id: int = Field(foreign_key="plans.id", ondelete="CASCADE")
    updated_at: datetime = timestamp_field()
