"""
Season & Plan lifecycle.

Launch is one transaction: archive every ACTIVE season, create the new one,
create its plans. The partial unique index on batches.status (ACTIVE) makes a
concurrent second launch fail instead of producing two ACTIVE seasons.
"""

import logging
import uuid
from datetime import datetime

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from db.database import as_utc_naive, utcnow
from models.batch import Batch
from models.enums import BatchStatus
from models.plan import Plan
from models.subscription import Subscription
from schemas import LaunchSeasonRequest, PlanInput, PlanUpdate, SeasonUpdate
from services.exceptions import (
    ConflictError,
    IntegrityViolationError,
    NotFoundError,
    ValidationError,
)

logger = logging.getLogger(__name__)


def to_paise(rupees: float) -> int:
    return int(round(rupees * 100))


def normalized_installments(allow_installments: bool, total_installments: int) -> int:
    """Installment count actually stored: 1 unless installments are enabled and > 1."""
    if allow_installments and total_installments > 1:
        return total_installments
    return 1


def _plan_values(data: PlanInput) -> dict:
    return {
        "title": data.title,
        "description": data.description or "",
        "price": to_paise(data.price),
        "features": list(data.features),
        "validity_days": data.validity_days,
        "allow_installments": data.allow_installments,
        "total_installments": normalized_installments(data.allow_installments, data.total_installments),
        "full_payment_discount": data.full_payment_discount,
    }


def ensure_registration_open(batch: Batch | None, now: datetime | None = None) -> None:
    """Sales are allowed only in an ACTIVE season whose registration has not closed."""
    if batch is None or batch.status != BatchStatus.ACTIVE:
        raise ValidationError(
            "This season has ended. New subscriptions are no longer accepted.",
            code="SEASON_ENDED",
        )
    now = now or utcnow()
    if batch.registration_close_date and now > batch.registration_close_date:
        raise ValidationError("Registration for this season is closed.", code="REGISTRATION_CLOSED")


async def get_active_batch(db: AsyncSession) -> Batch | None:
    result = await db.execute(select(Batch).where(Batch.status == BatchStatus.ACTIVE))
    return result.scalars().first()


async def _count_subscriptions(db: AsyncSession, plan_ids: list[uuid.UUID]) -> int:
    if not plan_ids:
        return 0
    return (await db.execute(
        select(func.count(Subscription.id)).where(Subscription.plan_id.in_(plan_ids))
    )).scalar() or 0


# ── Seasons ────────────────────────────────────────────────

async def launch_season(db: AsyncSession, data: LaunchSeasonRequest, now: datetime | None = None) -> Batch:
    """
    Archive the current season and open a new one with its plans.

    All or nothing: any failure rolls the whole launch back.
    """
    now = now or utcnow()
    close_date = as_utc_naive(data.registration_close_date)
    if close_date and close_date < now:
        raise ValidationError("registration_close_date: must be in the future")

    try:
        # Lock the rows we are about to archive
        await db.execute(
            select(Batch.id).where(Batch.status == BatchStatus.ACTIVE).with_for_update()
        )
        await db.execute(
            update(Batch)
            .where(Batch.status == BatchStatus.ACTIVE)
            .values(status=BatchStatus.ARCHIVED, end_date=now)
        )

        batch = Batch(
            name=data.season_name,
            status=BatchStatus.ACTIVE,
            start_date=now,
            registration_close_date=close_date,
        )
        db.add(batch)
        await db.flush()

        for plan_data in data.plans:
            db.add(Plan(batch_id=batch.id, is_active=True, created_at=now, **_plan_values(plan_data)))

        await db.commit()
        await db.refresh(batch, attribute_names=["plans"])
    except IntegrityError as e:
        await db.rollback()
        logger.warning("Season launch lost a race: %s", e)
        raise ConflictError("Another season launch is in progress. Please retry.") from e
    except Exception:
        await db.rollback()
        logger.exception("Season launch failed; transaction rolled back")
        raise

    logger.info("Season launched: %s (%s) with %d plans", batch.name, batch.id, len(data.plans))
    return batch


async def update_season(db: AsyncSession, batch_id: uuid.UUID, data: SeasonUpdate) -> Batch:
    """Rename a season and/or move its registration close date (blank reopens indefinitely)."""
    batch = await db.get(Batch, batch_id)
    if not batch:
        raise NotFoundError("Season not found")

    if data.name is not None:
        batch.name = data.name
    if "registration_close_date" in data.model_fields_set:
        batch.registration_close_date = as_utc_naive(data.registration_close_date)

    await db.commit()
    logger.info("Season updated: %s", batch_id)
    return batch


async def delete_batch(db: AsyncSession, batch_id: uuid.UUID) -> None:
    """Hard-delete a season, refused outright if any of its plans was ever purchased."""
    batch = await db.get(Batch, batch_id)
    if not batch:
        raise NotFoundError("Season not found")

    plan_ids = list((await db.execute(
        select(Plan.id).where(Plan.batch_id == batch_id)
    )).scalars().all())

    if await _count_subscriptions(db, plan_ids) > 0:
        raise IntegrityViolationError(
            "Cannot delete: Users have purchased plans in this season. Please archive it instead."
        )

    # Plans reaching this point have no subscriptions
    await db.execute(delete(Plan).where(Plan.batch_id == batch_id))
    await db.execute(delete(Batch).where(Batch.id == batch_id))
    await db.commit()
    db.expunge(batch)
    logger.info("Season deleted: %s (%d plans)", batch_id, len(plan_ids))


# ── Plans ──────────────────────────────────────────────────

async def create_plan(db: AsyncSession, data: PlanInput, now: datetime | None = None) -> Plan:
    """Add a plan to the currently ACTIVE season."""
    batch = await get_active_batch(db)
    if not batch:
        raise ValidationError("No active season found. Please launch a season first.")
    ensure_registration_open(batch, now)

    plan = Plan(batch_id=batch.id, is_active=True, **_plan_values(data))
    db.add(plan)
    await db.commit()
    logger.info("Plan created: %s in season %s", plan.id, batch.id)
    return plan


async def update_plan(db: AsyncSession, plan_id: uuid.UUID, data: PlanUpdate) -> Plan:
    plan = await db.get(Plan, plan_id)
    if not plan:
        raise NotFoundError("Plan not found")

    for field, value in _plan_values(data).items():
        setattr(plan, field, value)
    plan.is_active = data.is_active

    await db.commit()
    logger.info("Plan updated: %s", plan_id)
    return plan


async def delete_or_archive_plan(db: AsyncSession, plan_id: uuid.UUID) -> str:
    """Hide a plan that has sales, delete one that has none. Returns the outcome message."""
    plan = await db.get(Plan, plan_id)
    if not plan:
        raise NotFoundError("Plan not found")

    if await _count_subscriptions(db, [plan_id]) > 0:
        plan.is_active = False
        await db.commit()
        logger.info("Plan archived (has subscriptions): %s", plan_id)
        return "Plan archived (sales exist)"

    await db.execute(delete(Plan).where(Plan.id == plan_id))
    await db.commit()
    db.expunge(plan)
    logger.info("Plan deleted: %s", plan_id)
    return "Plan deleted permanently"


async def list_catalog(db: AsyncSession, include_hidden: bool = False) -> list[tuple[Batch, list[Plan]]]:
    """
    Seasons with their plans for the pricing page, ACTIVE season first.

    Without `include_hidden` only visible plans (plan active, season ACTIVE) are kept
    and seasons left without plans are dropped.
    """
    batches = (await db.execute(
        select(Batch)
        .order_by(Batch.start_date.desc())
        .execution_options(populate_existing=True)
    )).scalars().all()

    catalog = []
    for batch in batches:
        plans = list(batch.plans)
        if not include_hidden:
            plans = [p for p in plans if p.is_visible]
            if not plans:
                continue
        catalog.append((batch, plans))

    catalog.sort(key=lambda entry: entry[0].status != BatchStatus.ACTIVE)
    return catalog
