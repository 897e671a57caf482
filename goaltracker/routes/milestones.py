"""
Milestone routes, nested under their goal.

Copyright (C) 2025 Goal Tracker

Licensed under the Business Source License 1.1 (BUSL-1.1).
See LICENSE file in the repository root for details.
"""

from fastapi import APIRouter, Depends, status

from ..dependencies import CurrentUser, DBDep, get_current_user
from ..models.auth import MessageResponse
from ..models.goals import MilestoneCreate, MilestoneResponse, MilestoneUpdate
from ..services import milestone_service

router = APIRouter(
    prefix="/goals/{goal_id}/milestones",
    tags=["milestones"],
    dependencies=[Depends(get_current_user)],
)


@router.get("", response_model=list[MilestoneResponse])
async def list_milestones(goal_id: str, current_user: CurrentUser, db: DBDep):
    """List milestones of a goal."""
    return await milestone_service.list_milestones(db, goal_id, current_user.id)


@router.post("", response_model=MilestoneResponse, status_code=status.HTTP_201_CREATED)
async def add_milestone(
    goal_id: str, data: MilestoneCreate, current_user: CurrentUser, db: DBDep
):
    """Add a milestone to a goal."""
    return await milestone_service.add_milestone(db, goal_id, current_user.id, data)


@router.get("/{milestone_id}", response_model=MilestoneResponse)
async def get_milestone(goal_id: str, milestone_id: str, current_user: CurrentUser, db: DBDep):
    return await milestone_service.get_milestone(db, goal_id, milestone_id, current_user.id)


@router.put("/{milestone_id}", response_model=MilestoneResponse)
async def update_milestone(
    goal_id: str,
    milestone_id: str,
    data: MilestoneUpdate,
    current_user: CurrentUser,
    db: DBDep,
):
    return await milestone_service.update_milestone(
        db, goal_id, milestone_id, current_user.id, data
    )


@router.delete("/{milestone_id}", response_model=MessageResponse)
async def delete_milestone(
    goal_id: str, milestone_id: str, current_user: CurrentUser, db: DBDep
):
    await milestone_service.delete_milestone(db, goal_id, milestone_id, current_user.id)
    return {"message": "Milestone deleted successfully"}
