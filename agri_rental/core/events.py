"""
Domain event models.

Events are immutable facts published by the lifecycle services after their
write has committed. They carry plain values only (no ORM instances) so a
subscriber never touches the publisher's session.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Optional

from agri_rental.core.enums import (
    HandlerType,
    OperatorRole,
    OrderKind,
    OrderStatus,
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True, slots=True)
class OrderCreated:
    order_id: str
    kind: OrderKind
    status: OrderStatus
    device_id: str
    requester_id: str
    handler_type: HandlerType
    handler_id: str
    requested_hours: Optional[float]
    requested_area: Optional[float]
    actor_id: str
    note: Optional[str] = None
    occurred_at: datetime = field(default_factory=_utcnow)


@dataclass(frozen=True, slots=True)
class OrderStatusChanged:
    order_id: str
    kind: OrderKind
    from_status: OrderStatus
    to_status: OrderStatus
    requester_id: str
    handler_type: HandlerType
    handler_id: str
    actor_id: str
    note: Optional[str] = None
    occurred_at: datetime = field(default_factory=_utcnow)


@dataclass(frozen=True, slots=True)
class LeaseCreated:
    lease_id: str
    order_id: str
    device_id: str
    intermediary_id: str
    estimated_price: Optional[float]
    actor_id: str
    note: Optional[str] = None
    occurred_at: datetime = field(default_factory=_utcnow)


@dataclass(frozen=True, slots=True)
class OperatorAssigned:
    lease_id: str
    operator_id: str
    role: OperatorRole
    actor_id: str
    occurred_at: datetime = field(default_factory=_utcnow)


@dataclass(frozen=True, slots=True)
class LeaseCompleted:
    lease_id: str
    device_id: str
    end_date: date
    actor_id: str
    occurred_at: datetime = field(default_factory=_utcnow)


@dataclass(frozen=True, slots=True)
class PricingRuleCreated:
    rule_id: str
    category_id: str
    location_code: str
    effective_from: date
    effective_to: Optional[date]
    actor_id: str
    occurred_at: datetime = field(default_factory=_utcnow)


@dataclass(frozen=True, slots=True)
class ThresholdConfigSaved:
    config_id: str
    category_id: str
    max_rental_hours: float
    max_rental_area: float
    actor_id: str
    created: bool = True
    occurred_at: datetime = field(default_factory=_utcnow)
