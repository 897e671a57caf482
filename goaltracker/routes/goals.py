"""
Goal routes.

Copyright (C) 2025 Goal Tracker

Licensed under the Business Source License 1.1 (BUSL-1.1).
See LICENSE file in the repository root for details.
"""

from fastapi import APIRouter, Depends, Query, status

from ..dependencies import CurrentUser, DBDep, get_current_user
from ..models.auth import MessageResponse
from ..models.goals import (
    GoalCategory,
    GoalCreate,
    GoalListResponse,
    GoalProgressUpdate,
    GoalResponse,
    GoalStatus,
    GoalUpdate,
)
from ..services import goal_service

# The gate runs for every route on this router
router = APIRouter(
    prefix="/goals",
    tags=["goals"],
    dependencies=[Depends(get_current_user)],
)


@router.get("", response_model=GoalListResponse)
async def list_goals(
    current_user: CurrentUser,
    db: DBDep,
    page: int = Query(1, ge=1),
    size: int = Query(20, ge=1, le=100),
    goal_status: GoalStatus | None = Query(None, alias="status"),
    category: GoalCategory | None = None,
):
    """List the caller's goals."""
    goals, total = await goal_service.list_goals(
        db,
        current_user.id,
        page=page,
        size=size,
        status=goal_status,
        category=category,
    )
    return {
        "goals": goals,
        "total": total,
        "page": page,
        "pageSize": size,
        "hasMore": page * size < total,
    }


@router.post("", response_model=GoalResponse, status_code=status.HTTP_201_CREATED)
async def create_goal(data: GoalCreate, current_user: CurrentUser, db: DBDep):
    """Create a new goal."""
    return await goal_service.create_goal(db, current_user.id, data)


@router.get("/{goal_id}", response_model=GoalResponse)
async def get_goal(goal_id: str, current_user: CurrentUser, db: DBDep):
    """Get a specific goal by ID."""
    return await goal_service.get_goal(db, goal_id, current_user.id)


@router.put("/{goal_id}", response_model=GoalResponse)
async def update_goal(goal_id: str, data: GoalUpdate, current_user: CurrentUser, db: DBDep):
    """Update a goal."""
    return await goal_service.update_goal(db, goal_id, current_user.id, data)


@router.delete("/{goal_id}", response_model=MessageResponse)
async def delete_goal(goal_id: str, current_user: CurrentUser, db: DBDep):
    """Delete a goal and its milestones."""
    await goal_service.delete_goal(db, goal_id, current_user.id)
    return {"message": "Goal deleted successfully"}


@router.put("/{goal_id}/progress", response_model=GoalResponse)
async def record_progress(
    goal_id: str, data: GoalProgressUpdate, current_user: CurrentUser, db: DBDep
):
    """Record progress for a goal."""
    return await goal_service.record_progress(db, goal_id, current_user.id, data)
