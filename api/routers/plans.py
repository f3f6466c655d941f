"""Pricing catalog — seasons and their plans."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from db.database import get_db
from deps import SessionUser, get_optional_session_user
from schemas import BatchResponse, PlanResponse
from services.seasons import list_catalog

router = APIRouter()


@router.get("", response_model=list[BatchResponse])
async def get_catalog(
    user: SessionUser | None = Depends(get_optional_session_user),
    db: AsyncSession = Depends(get_db),
):
    """ACTIVE season first. Admins also see archived seasons and hidden plans."""
    catalog = await list_catalog(db, include_hidden=bool(user and user.is_admin))
    return [
        BatchResponse(
            id=batch.id,
            name=batch.name,
            status=batch.status,
            start_date=batch.start_date,
            registration_close_date=batch.registration_close_date,
            end_date=batch.end_date,
            plans=[PlanResponse.model_validate(p) for p in plans],
        )
        for batch, plans in catalog
    ]
