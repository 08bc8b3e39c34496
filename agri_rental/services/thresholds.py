"""
RENT / LEASE classification against per-category threshold configs.

A request becomes a LEASE as soon as either requested amount exceeds its
limit; staying within both limits (or giving no amount at all) keeps it a
RENT, the smallest commitment.
"""
import logging
from datetime import date
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from agri_rental.core.enums import OrderKind, RecordStatus
from agri_rental.core.events import ThresholdConfigSaved
from agri_rental.core.exceptions import NotFoundError, ValidationFailedError
from agri_rental.models.threshold_config import ThresholdConfig

logger = logging.getLogger(__name__)


def classify_order_kind(
    max_rental_hours: float,
    max_rental_area: float,
    requested_hours: Optional[float] = None,
    requested_area: Optional[float] = None,
) -> OrderKind:
    """Pure OR-policy: exceeding either limit alone forces LEASE."""
    if requested_hours is not None and requested_hours > max_rental_hours:
        return OrderKind.LEASE
    if requested_area is not None and requested_area > max_rental_area:
        return OrderKind.LEASE
    return OrderKind.RENT


class ThresholdResolver:

    def __init__(self, db: AsyncSession, bus=None):
        self.db = db
        self.bus = bus

    async def get_active_threshold(self, category_id: str) -> ThresholdConfig:
        res = await self.db.execute(
            select(ThresholdConfig).where(
                ThresholdConfig.category_id == category_id,
                ThresholdConfig.status == RecordStatus.ACTIVE,
            )
        )
        config = res.scalars().first()
        if config is None:
            raise NotFoundError("Threshold config for category", category_id)
        return config

    async def derive_order_kind(
        self,
        category_id: str,
        requested_hours: Optional[float] = None,
        requested_area: Optional[float] = None,
    ) -> OrderKind:
        config = await self.get_active_threshold(category_id)
        kind = classify_order_kind(
            config.max_rental_hours,
            config.max_rental_area,
            requested_hours,
            requested_area,
        )
        logger.debug(
            f"Classified category {category_id} request (hours={requested_hours}, "
            f"area={requested_area}) as {kind}"
        )
        return kind

    async def save_threshold(
        self,
        category_id: str,
        max_rental_hours: float,
        max_rental_area: float,
        actor_id: str,
        effective_from: Optional[date] = None,
        effective_to: Optional[date] = None,
        status: RecordStatus = RecordStatus.ACTIVE,
    ) -> ThresholdConfig:
        """Create or replace the single config held for a category."""
        if max_rental_hours < 0 or max_rental_area < 0:
            raise ValidationFailedError("Threshold limits must not be negative")
        if effective_from and effective_to and effective_to < effective_from:
            raise ValidationFailedError("effective_to must not precede effective_from")

        res = await self.db.execute(
            select(ThresholdConfig).where(ThresholdConfig.category_id == category_id)
        )
        config = res.scalars().first()
        created = config is None
        if created:
            config = ThresholdConfig(category_id=category_id)

        config.max_rental_hours = max_rental_hours
        config.max_rental_area = max_rental_area
        config.effective_from = effective_from
        config.effective_to = effective_to
        config.status = status

        self.db.add(config)
        await self.db.commit()
        await self.db.refresh(config)

        logger.info(
            f"{'Created' if created else 'Updated'} threshold config {config.id} for category "
            f"{category_id}: hours<={max_rental_hours}, area<={max_rental_area}"
        )

        if self.bus is not None:
            await self.bus.publish(ThresholdConfigSaved(
                config_id=config.id,
                category_id=category_id,
                max_rental_hours=max_rental_hours,
                max_rental_area=max_rental_area,
                actor_id=actor_id,
                created=created,
            ))
        return config
