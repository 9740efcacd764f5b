"""Availability rule service: open and blocked windows per lot."""

import logging
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from showings.models.availability import AvailabilityRule
from showings.schemas.availability import AvailabilityCreate
from showings.services.showing_service import get_lot, validate_range

logger = logging.getLogger(__name__)


async def list_availability(db: AsyncSession, lot_id: uuid.UUID) -> list[AvailabilityRule]:
    result = await db.execute(
        select(AvailabilityRule).where(AvailabilityRule.lot_id == lot_id).order_by(AvailabilityRule.start_time)
    )
    return list(result.scalars().all())


async def get_availability_rule(db: AsyncSession, rule_id: uuid.UUID) -> AvailabilityRule | None:
    result = await db.execute(select(AvailabilityRule).where(AvailabilityRule.id == rule_id))
    return result.scalar_one_or_none()


async def create_availability(db: AsyncSession, lot_id: uuid.UUID, data: AvailabilityCreate) -> AvailabilityRule:
    """Attach a rule to a lot. Existing showings are not re-checked."""
    validate_range(data.start_time, data.end_time)
    lot = await get_lot(db, lot_id)

    rule = AvailabilityRule(lot_id=lot.id, **data.model_dump())
    db.add(rule)
    await db.flush()
    await db.refresh(rule)
    logger.info("Added %s rule %s on lot %s", rule.rule_type, rule.id, lot.id)
    return rule


async def delete_availability(db: AsyncSession, rule: AvailabilityRule) -> None:
    await db.delete(rule)
    await db.flush()
