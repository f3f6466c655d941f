"""Admin endpoints — season launch and plan management. Every route requires ADMIN."""

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from db.database import get_db
from deps import require_admin
from schemas import (
    ActionResponse,
    BatchResponse,
    LaunchSeasonRequest,
    PlanInput,
    PlanResponse,
    PlanUpdate,
    SeasonUpdate,
)
from services import seasons

router = APIRouter(dependencies=[Depends(require_admin)])


# ── Seasons ────────────────────────────────────────────────

@router.post("/seasons", response_model=BatchResponse)
async def launch_season(data: LaunchSeasonRequest, db: AsyncSession = Depends(get_db)):
    """Archive the current season and open a new one with its plans."""
    return await seasons.launch_season(db, data)


@router.patch("/seasons/{batch_id}", response_model=BatchResponse)
async def update_season(batch_id: uuid.UUID, data: SeasonUpdate, db: AsyncSession = Depends(get_db)):
    return await seasons.update_season(db, batch_id, data)


@router.delete("/seasons/{batch_id}", response_model=ActionResponse)
async def delete_season(batch_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    await seasons.delete_batch(db, batch_id)
    return ActionResponse(message="Season deleted")


# ── Plans ──────────────────────────────────────────────────

@router.post("/plans", response_model=PlanResponse)
async def create_plan(data: PlanInput, db: AsyncSession = Depends(get_db)):
    """Add a plan to the ACTIVE season."""
    return await seasons.create_plan(db, data)


@router.put("/plans/{plan_id}", response_model=PlanResponse)
async def update_plan(plan_id: uuid.UUID, data: PlanUpdate, db: AsyncSession = Depends(get_db)):
    return await seasons.update_plan(db, plan_id, data)


@router.delete("/plans/{plan_id}", response_model=ActionResponse)
async def delete_plan(plan_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    """Archives the plan instead when it has been purchased."""
    message = await seasons.delete_or_archive_plan(db, plan_id)
    return ActionResponse(message=message)
