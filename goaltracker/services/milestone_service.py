"""
Service for milestones nested under a goal.

A milestone is reachable only through a goal the caller owns: the parent is
loaded with the ownership filter first, then the milestone is located inside
it.

Copyright (C) 2025 Goal Tracker

Licensed under the Business Source License 1.1 (BUSL-1.1).
See LICENSE file in the repository root for details.
"""

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from ..exceptions import ResourceNotFoundError
from ..models.goals import MilestoneCreate, MilestoneUpdate
from .goal_service import get_goal, owner_scope

if TYPE_CHECKING:
    from prisma import Prisma
    from prisma.models import Milestone

logger = logging.getLogger(__name__)


async def list_milestones(db: "Prisma", goal_id: str, owner_id: str) -> list["Milestone"]:
    """List the milestones of an owned goal, oldest first."""
    goal = await get_goal(db, goal_id, owner_id)
    return await db.milestone.find_many(
        where=owner_scope(owner_id, goalId=goal.id),
        order={"createdAt": "asc"},
    )


async def add_milestone(
    db: "Prisma", goal_id: str, owner_id: str, data: MilestoneCreate
) -> "Milestone":
    """Add a milestone to an owned goal; it inherits the goal owner."""
    goal = await get_goal(db, goal_id, owner_id)
    values = data.model_dump()
    milestone = await db.milestone.create(
        data={
            **values,
            "goalId": goal.id,
            "ownerId": owner_id,
            "completedAt": datetime.now(UTC) if values["completed"] else None,
        }
    )
    logger.info(
        "Milestone added",
        extra={"goal_id": goal.id, "milestone_id": milestone.id, "user_id": owner_id},
    )
    return milestone


async def get_milestone(
    db: "Prisma", goal_id: str, milestone_id: str, owner_id: str
) -> "Milestone":
    """
    Get one milestone of an owned goal.

    Raises:
        ResourceNotFoundError: If the goal or the milestone is missing for
            this owner
    """
    goal = await get_goal(db, goal_id, owner_id)
    milestone = await db.milestone.find_first(
        where=owner_scope(owner_id, id=milestone_id, goalId=goal.id),
    )
    if milestone is None:
        raise ResourceNotFoundError("Milestone", milestone_id)
    return milestone


async def update_milestone(
    db: "Prisma", goal_id: str, milestone_id: str, owner_id: str, data: MilestoneUpdate
) -> "Milestone":
    """Update the supplied fields of a milestone."""
    goal = await get_goal(db, goal_id, owner_id)
    update_data = data.model_dump(exclude_unset=True)

    # completedAt follows the completed flag
    if "completed" in update_data:
        update_data["completedAt"] = datetime.now(UTC) if update_data["completed"] else None

    if update_data:
        updated = await db.milestone.update_many(
            where=owner_scope(owner_id, id=milestone_id, goalId=goal.id),
            data=update_data,
        )
        if not updated:
            raise ResourceNotFoundError("Milestone", milestone_id)

    return await get_milestone(db, goal_id, milestone_id, owner_id)


async def delete_milestone(
    db: "Prisma", goal_id: str, milestone_id: str, owner_id: str
) -> None:
    """Delete a milestone of an owned goal."""
    goal = await get_goal(db, goal_id, owner_id)
    deleted = await db.milestone.delete_many(
        where=owner_scope(owner_id, id=milestone_id, goalId=goal.id),
    )
    if not deleted:
        raise ResourceNotFoundError("Milestone", milestone_id)
    logger.info(
        "Milestone deleted",
        extra={"goal_id": goal.id, "milestone_id": milestone_id, "user_id": owner_id},
    )
