"""
Goal and milestone models for request/response schemas.

Copyright (C) 2025 Goal Tracker

Licensed under the Business Source License 1.1 (BUSL-1.1).
See LICENSE file in the repository root for details.
"""

from datetime import UTC, datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

GoalCategory = Literal["personal", "professional", "health", "education", "other"]
GoalStatus = Literal["not_started", "in_progress", "completed", "on_hold"]
GoalPriority = Literal["low", "medium", "high"]


def _as_utc(value: datetime | None) -> datetime | None:
    """Treat naive datetimes as UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def _require_future(value: datetime | None) -> datetime | None:
    value = _as_utc(value)
    if value is not None and value <= datetime.now(UTC):
        raise ValueError("Target date must be in the future")
    return value


def _reject_null(value):
    # Partial updates: null would clear a required column
    if value is None:
        raise ValueError("Field may be omitted but not null")
    return value


# --- Milestones ---


class MilestoneCreate(BaseModel):
    """Schema for adding a milestone to a goal."""

    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(..., min_length=3, max_length=100)
    description: str | None = Field(None, min_length=10, max_length=500)
    completed: bool = False
    dueDate: datetime | None = None  # noqa: N815

    @field_validator("dueDate")
    @classmethod
    def normalize_due_date(cls, value: datetime | None) -> datetime | None:
        return _as_utc(value)


class MilestoneUpdate(BaseModel):
    """Schema for updating a milestone. Only supplied fields change."""

    model_config = ConfigDict(str_strip_whitespace=True)

    title: str | None = Field(None, min_length=3, max_length=100)
    description: str | None = Field(None, min_length=10, max_length=500)
    completed: bool | None = None
    dueDate: datetime | None = None  # noqa: N815

    @field_validator("title", "completed", mode="before")
    @classmethod
    def not_null(cls, value):
        return _reject_null(value)

    @field_validator("dueDate")
    @classmethod
    def normalize_due_date(cls, value: datetime | None) -> datetime | None:
        return _as_utc(value)


class MilestoneResponse(BaseModel):
    """Schema for milestone response."""

    id: str
    goalId: str  # noqa: N815
    ownerId: str  # noqa: N815
    title: str
    description: str | None = None
    completed: bool
    completedAt: datetime | None = None  # noqa: N815
    dueDate: datetime | None = None  # noqa: N815
    createdAt: datetime  # noqa: N815
    updatedAt: datetime  # noqa: N815

    model_config = ConfigDict(from_attributes=True)


# --- Goals ---


class GoalCreate(BaseModel):
    """
    Schema for creating a new goal.

    There is no owner field: the owner always comes from the authenticated
    principal, and unknown fields in the body are ignored.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(..., min_length=3, max_length=100)
    description: str = Field(..., min_length=10, max_length=1000)
    category: GoalCategory
    status: GoalStatus = "not_started"
    priority: GoalPriority = "medium"
    startDate: datetime | None = None  # noqa: N815
    targetDate: datetime  # noqa: N815
    progress: float = Field(0.0, ge=0.0, le=100.0)
    milestones: list[MilestoneCreate] = Field(default_factory=list)

    @field_validator("startDate")
    @classmethod
    def normalize_start_date(cls, value: datetime | None) -> datetime | None:
        return _as_utc(value)

    @field_validator("targetDate")
    @classmethod
    def target_in_future(cls, value: datetime | None) -> datetime | None:
        return _require_future(value)


class GoalUpdate(BaseModel):
    """Schema for updating a goal. Only supplied fields change."""

    model_config = ConfigDict(str_strip_whitespace=True)

    title: str | None = Field(None, min_length=3, max_length=100)
    description: str | None = Field(None, min_length=10, max_length=1000)
    category: GoalCategory | None = None
    status: GoalStatus | None = None
    priority: GoalPriority | None = None
    startDate: datetime | None = None  # noqa: N815
    targetDate: datetime | None = None  # noqa: N815
    progress: float | None = Field(None, ge=0.0, le=100.0)

    @field_validator(
        "title",
        "description",
        "category",
        "status",
        "priority",
        "startDate",
        "targetDate",
        "progress",
        mode="before",
    )
    @classmethod
    def not_null(cls, value):
        return _reject_null(value)

    @field_validator("startDate")
    @classmethod
    def normalize_start_date(cls, value: datetime | None) -> datetime | None:
        return _as_utc(value)

    @field_validator("targetDate")
    @classmethod
    def target_in_future(cls, value: datetime | None) -> datetime | None:
        return _require_future(value)


class GoalProgressUpdate(BaseModel):
    """Schema for recording progress on a goal."""

    progress: float = Field(..., ge=0.0, le=100.0, description="Progress from 0.0 to 100.0")


class GoalResponse(BaseModel):
    """Schema for goal response."""

    id: str
    ownerId: str  # noqa: N815
    title: str
    description: str
    category: str
    status: str
    priority: str
    startDate: datetime  # noqa: N815
    targetDate: datetime  # noqa: N815
    progress: float
    milestones: list[MilestoneResponse] = Field(default_factory=list)
    createdAt: datetime  # noqa: N815
    updatedAt: datetime  # noqa: N815

    model_config = ConfigDict(from_attributes=True)

    @field_validator("milestones", mode="before")
    @classmethod
    def relation_not_loaded(cls, value):
        # Prisma leaves relations that were not included as None
        return [] if value is None else value


class GoalListResponse(BaseModel):
    """Schema for paginated goal list response."""

    goals: list[GoalResponse]
    total: int
    page: int
    pageSize: int  # noqa: N815
    hasMore: bool  # noqa: N815
