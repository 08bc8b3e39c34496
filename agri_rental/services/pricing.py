"""
Pricing rule resolution.

Each (category, location) pair has at most one ACTIVE standing rule
(effective_to is NULL) and any number of ACTIVE time-bounded rules whose
windows must not overlap. For a given date a time-bounded rule covering it
wins over the standing rule.
"""
import logging
from datetime import date
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from agri_rental.core.enums import PricingMetric, RecordStatus
from agri_rental.core.events import PricingRuleCreated
from agri_rental.core.exceptions import ConflictError, NotFoundError, ValidationFailedError
from agri_rental.models.pricing_rule import PricingRule

logger = logging.getLogger(__name__)


def estimate_price(
    rule: Optional[PricingRule],
    requested_hours: Optional[float] = None,
    requested_area: Optional[float] = None,
) -> Optional[float]:
    """One metric only: PER_HOUR when hours were requested, else PER_ACRE."""
    if rule is None:
        return None
    if requested_hours is not None:
        rate = rule.rate_for(PricingMetric.PER_HOUR)
        return rate * requested_hours if rate is not None else None
    if requested_area is not None:
        rate = rule.rate_for(PricingMetric.PER_ACRE)
        return rate * requested_area if rate is not None else None
    return None


class PricingResolver:

    def __init__(self, db: AsyncSession, bus=None):
        self.db = db
        self.bus = bus

    def _active_rules(self, category_id: str, location_code: str):
        return select(PricingRule).where(
            PricingRule.category_id == category_id,
            PricingRule.location_code == location_code,
            PricingRule.status == RecordStatus.ACTIVE,
        )

    async def get_default_rule(self, category_id: str, location_code: str) -> Optional[PricingRule]:
        res = await self.db.execute(
            self._active_rules(category_id, location_code)
            .where(PricingRule.effective_to.is_(None))
            .order_by(PricingRule.created_at)
        )
        return res.scalars().first()

    async def get_time_specific_rules(
        self,
        category_id: str,
        location_code: str,
        on_date: date,
    ) -> List[PricingRule]:
        res = await self.db.execute(
            self._active_rules(category_id, location_code)
            .where(
                PricingRule.effective_to.is_not(None),
                PricingRule.effective_from <= on_date,
                PricingRule.effective_to >= on_date,
            )
            .order_by(PricingRule.effective_from, PricingRule.created_at)
        )
        return list(res.scalars().all())

    async def get_active_rule_for_date(
        self,
        category_id: str,
        location_code: str,
        on_date: date,
    ) -> Optional[PricingRule]:
        time_specific = await self.get_time_specific_rules(category_id, location_code, on_date)
        if time_specific:
            return time_specific[0]
        return await self.get_default_rule(category_id, location_code)

    async def has_active_default_rule(self, category_id: str, location_code: str) -> bool:
        return await self.get_default_rule(category_id, location_code) is not None

    async def check_for_conflicts(self, candidate: PricingRule) -> List[PricingRule]:
        """
        Existing ACTIVE rules that would make ``candidate`` ambiguous.

        A standing candidate conflicts with the current standing rule; a
        time-bounded candidate conflicts with every time-bounded rule whose
        closed window intersects its own (from <= other.to and other.from <= to).
        """
        if candidate.effective_to is None:
            existing = await self.get_default_rule(candidate.category_id, candidate.location_code)
            return [existing] if existing is not None and existing.id != candidate.id else []

        res = await self.db.execute(
            self._active_rules(candidate.category_id, candidate.location_code)
            .where(
                PricingRule.effective_to.is_not(None),
                PricingRule.effective_from <= candidate.effective_to,
                PricingRule.effective_to >= candidate.effective_from,
            )
            .order_by(PricingRule.effective_from)
        )
        return [rule for rule in res.scalars().all() if rule.id != candidate.id]

    async def create_rule(
        self,
        category_id: str,
        location_code: str,
        rates: List[dict],
        effective_from: date,
        actor_id: str,
        effective_to: Optional[date] = None,
    ) -> PricingRule:
        if not rates:
            raise ValidationFailedError("A pricing rule needs at least one rate")
        metrics_seen = set()
        for item in rates:
            metric = str(item["metric"])
            if metric in metrics_seen:
                raise ValidationFailedError(f"Duplicate rate for metric {metric}")
            metrics_seen.add(metric)
            if item["rate"] < 0:
                raise ValidationFailedError("Rates must not be negative")
        if effective_to is not None and effective_to < effective_from:
            raise ValidationFailedError("effective_to must not precede effective_from")

        rule = PricingRule(
            category_id=category_id,
            location_code=location_code,
            rates=[{"metric": str(item["metric"]), "rate": float(item["rate"])} for item in rates],
            effective_from=effective_from,
            effective_to=effective_to,
            status=RecordStatus.ACTIVE,
        )

        conflicts = await self.check_for_conflicts(rule)
        if conflicts:
            ids = [c.id for c in conflicts]
            kind = "standing" if effective_to is None else "time-bounded"
            raise ConflictError(
                f"New {kind} pricing rule for {category_id}/{location_code} overlaps existing rules",
                ids,
            )

        self.db.add(rule)
        await self.db.commit()
        await self.db.refresh(rule)
        logger.info(
            f"Created pricing rule {rule.id} for {category_id}/{location_code} "
            f"[{effective_from} .. {effective_to or 'open'}]"
        )

        if self.bus is not None:
            await self.bus.publish(PricingRuleCreated(
                rule_id=rule.id,
                category_id=category_id,
                location_code=location_code,
                effective_from=effective_from,
                effective_to=effective_to,
                actor_id=actor_id,
            ))
        return rule

    async def get_rule(self, rule_id: str) -> PricingRule:
        res = await self.db.execute(select(PricingRule).where(PricingRule.id == rule_id))
        rule = res.scalars().first()
        if rule is None:
            raise NotFoundError("Pricing rule", rule_id)
        return rule

    async def deactivate_rule(self, rule_id: str) -> PricingRule:
        rule = await self.get_rule(rule_id)
        rule.status = RecordStatus.INACTIVE
        self.db.add(rule)
        await self.db.commit()
        await self.db.refresh(rule)
        logger.info(f"Deactivated pricing rule {rule_id}")
        return rule

    async def list_rules(
        self,
        category_id: Optional[str] = None,
        location_code: Optional[str] = None,
        status: Optional[RecordStatus] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> List[PricingRule]:
        q = select(PricingRule)
        if category_id:
            q = q.where(PricingRule.category_id == category_id)
        if location_code:
            q = q.where(PricingRule.location_code == location_code)
        if status:
            q = q.where(PricingRule.status == status)
        q = q.order_by(PricingRule.created_at).limit(limit).offset(offset)
        res = await self.db.execute(q)
        return list(res.scalars().all())
