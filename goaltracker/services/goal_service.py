"""
Service for Goal management.

Every lookup of an existing goal goes through owner_scope, so a goal that
belongs to someone else behaves exactly like a goal that does not exist.

Copyright (C) 2025 Goal Tracker

Licensed under the Business Source License 1.1 (BUSL-1.1).
See LICENSE file in the repository root for details.
"""

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from ..exceptions import ResourceNotFoundError
from ..models.goals import GoalCreate, GoalProgressUpdate, GoalUpdate

if TYPE_CHECKING:
    from prisma import Prisma
    from prisma.models import Goal

logger = logging.getLogger(__name__)

GOAL_INCLUDE = {"milestones": True}


def owner_scope(owner_id: str, **keys) -> dict:
    """Build a where clause restricted to records owned by owner_id."""
    return {**keys, "ownerId": owner_id}


async def create_goal(db: "Prisma", owner_id: str, data: GoalCreate) -> "Goal":
    """
    Create a new goal owned by owner_id.

    Inline milestones are created in the same statement and stamped with the
    same owner.
    """
    goal_data = data.model_dump(exclude={"milestones"})
    goal_data["ownerId"] = owner_id
    if goal_data.get("startDate") is None:
        goal_data["startDate"] = datetime.now(UTC)

    if data.milestones:
        goal_data["milestones"] = {
            "create": [
                _milestone_create_data(m.model_dump(), owner_id) for m in data.milestones
            ]
        }

    goal = await db.goal.create(data=goal_data, include=GOAL_INCLUDE)
    logger.info("Goal created", extra={"goal_id": goal.id, "user_id": owner_id})
    return goal


def _milestone_create_data(values: dict, owner_id: str) -> dict:
    values = dict(values)
    values["ownerId"] = owner_id
    values["completedAt"] = datetime.now(UTC) if values.get("completed") else None
    return values


async def list_goals(
    db: "Prisma",
    owner_id: str,
    page: int = 1,
    size: int = 20,
    status: str | None = None,
    category: str | None = None,
) -> tuple[list["Goal"], int]:
    """
    List the owner's goals with filtering and pagination.
    """
    skip = (page - 1) * size

    where_clause = owner_scope(owner_id)
    if status:
        where_clause["status"] = status
    if category:
        where_clause["category"] = category

    total = await db.goal.count(where=where_clause)
    goals = await db.goal.find_many(
        where=where_clause,
        skip=skip,
        take=size,
        order={"createdAt": "desc"},
        include=GOAL_INCLUDE,
    )
    return goals, total


async def get_goal(db: "Prisma", goal_id: str, owner_id: str) -> "Goal":
    """
    Get a goal owned by owner_id.

    Raises:
        ResourceNotFoundError: If the goal does not exist or is owned by
            someone else
    """
    goal = await db.goal.find_first(
        where=owner_scope(owner_id, id=goal_id),
        include=GOAL_INCLUDE,
    )
    if goal is None:
        raise ResourceNotFoundError("Goal", goal_id)
    return goal


async def update_goal(db: "Prisma", goal_id: str, owner_id: str, data: GoalUpdate) -> "Goal":
    """Update the supplied fields of an owned goal."""
    update_data = data.model_dump(exclude_unset=True)
    return await _scoped_update(db, goal_id, owner_id, update_data)


async def record_progress(
    db: "Prisma", goal_id: str, owner_id: str, data: GoalProgressUpdate
) -> "Goal":
    """Set progress; reaching 100 completes the goal, anything else marks it in progress."""
    update_data = {
        "progress": data.progress,
        "status": "completed" if data.progress >= 100 else "in_progress",
    }
    return await _scoped_update(db, goal_id, owner_id, update_data)


async def delete_goal(db: "Prisma", goal_id: str, owner_id: str) -> None:
    """Delete an owned goal; its milestones go with it."""
    deleted = await db.goal.delete_many(where=owner_scope(owner_id, id=goal_id))
    if not deleted:
        raise ResourceNotFoundError("Goal", goal_id)
    logger.info("Goal deleted", extra={"goal_id": goal_id, "user_id": owner_id})


async def _scoped_update(db: "Prisma", goal_id: str, owner_id: str, update_data: dict) -> "Goal":
    # Ownership check and write are a single statement
    if update_data:
        updated = await db.goal.update_many(
            where=owner_scope(owner_id, id=goal_id),
            data=update_data,
        )
        if not updated:
            raise ResourceNotFoundError("Goal", goal_id)
        logger.info(
            "Goal updated",
            extra={"goal_id": goal_id, "user_id": owner_id, "fields": sorted(update_data)},
        )
    return await get_goal(db, goal_id, owner_id)
