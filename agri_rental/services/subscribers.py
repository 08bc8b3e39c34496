"""
Domain event subscribers: audit trail, notifications and metrics.

Each subscriber opens its own session from ``session_factory``; the
publisher's session has already committed and is never shared.
"""
import logging
from typing import Callable, List, Optional

from sqlalchemy.future import select

from agri_rental.core.audit_log import log_audit
from agri_rental.core.enums import (
    AuditAction,
    EntityType,
    HandlerType,
    NotificationStatus,
    OrderStatus,
    UserRole,
)
from agri_rental.core.event_bus import EventBus
from agri_rental.core.events import (
    LeaseCompleted,
    LeaseCreated,
    OperatorAssigned,
    OrderCreated,
    OrderStatusChanged,
    PricingRuleCreated,
    ThresholdConfigSaved,
)
from agri_rental.core.metrics import (
    leases_created,
    operator_assignments,
    order_transitions,
    orders_created,
)
from agri_rental.db.session import AsyncSessionLocal
from agri_rental.models.intermediary import Intermediary
from agri_rental.models.lease import Lease
from agri_rental.models.notification import Notification
from agri_rental.models.operator import Operator
from agri_rental.models.user import User

logger = logging.getLogger(__name__)

# Status changes recorded under their own audit action
_STATUS_ACTIONS = {
    OrderStatus.CANCELLED: AuditAction.CANCEL,
    OrderStatus.REJECTED: AuditAction.REJECT,
}


class AuditSubscriber:

    def __init__(self, session_factory=AsyncSessionLocal):
        self.session_factory = session_factory

    async def on_event(self, event) -> None:
        entry = self._entry_for(event)
        if entry is None:
            return
        async with self.session_factory() as db:
            await log_audit(db, **entry)

    @staticmethod
    def _entry_for(event) -> Optional[dict]:
        if isinstance(event, OrderCreated):
            return dict(
                entity_type=EntityType.ORDER, entity_id=event.order_id, action=AuditAction.CREATE,
                actor_id=event.actor_id, to_state=event.status, note=event.note,
            )
        if isinstance(event, OrderStatusChanged):
            return dict(
                entity_type=EntityType.ORDER, entity_id=event.order_id,
                action=_STATUS_ACTIONS.get(event.to_status, AuditAction.UPDATE),
                actor_id=event.actor_id, from_state=event.from_status, to_state=event.to_status,
                note=event.note,
            )
        if isinstance(event, LeaseCreated):
            return dict(
                entity_type=EntityType.LEASE, entity_id=event.lease_id, action=AuditAction.CREATE,
                actor_id=event.actor_id, to_state="ACTIVE", note=f"order {event.order_id}",
            )
        if isinstance(event, OperatorAssigned):
            return dict(
                entity_type=EntityType.LEASE, entity_id=event.lease_id,
                action=AuditAction.ASSIGN_OPERATOR, actor_id=event.actor_id,
                note=f"{event.role} {event.operator_id}",
            )
        if isinstance(event, LeaseCompleted):
            return dict(
                entity_type=EntityType.LEASE, entity_id=event.lease_id, action=AuditAction.COMPLETE,
                actor_id=event.actor_id, from_state="ACTIVE", to_state="COMPLETED",
            )
        if isinstance(event, PricingRuleCreated):
            return dict(
                entity_type=EntityType.PRICING_RULE, entity_id=event.rule_id,
                action=AuditAction.CREATE, actor_id=event.actor_id,
                note=f"{event.category_id}/{event.location_code} "
                     f"{event.effective_from}..{event.effective_to or 'open'}",
            )
        if isinstance(event, ThresholdConfigSaved):
            return dict(
                entity_type=EntityType.THRESHOLD_CONFIG, entity_id=event.config_id,
                action=AuditAction.CREATE if event.created else AuditAction.UPDATE,
                actor_id=event.actor_id,
                note=f"hours<={event.max_rental_hours} area<={event.max_rental_area}",
            )
        return None


def _default_dispatch(notification_id: str) -> None:
    from agri_rental.services.tasks import deliver_notification
    deliver_notification.delay(notification_id)


class NotificationSubscriber:
    """Stores one PENDING notification per recipient and queues its delivery."""

    def __init__(self, session_factory=AsyncSessionLocal, dispatch: Optional[Callable[[str], None]] = None):
        self.session_factory = session_factory
        self.dispatch = dispatch or _default_dispatch

    async def on_event(self, event) -> None:
        async with self.session_factory() as db:
            built = await self._build(db, event)
            if not built:
                return
            recipients, entity_type, entity_id, message = built

            notifications = []
            for recipient_id in dict.fromkeys(r for r in recipients if r):
                notification = Notification(
                    recipient_id=recipient_id,
                    event_type=type(event).__name__,
                    entity_type=str(entity_type),
                    entity_id=entity_id,
                    message=message,
                    payload={"occurred_at": event.occurred_at.isoformat()},
                    status=NotificationStatus.PENDING,
                )
                db.add(notification)
                notifications.append(notification)
            await db.commit()

        for notification in notifications:
            logger.debug(f"Queued notification {notification.id} for {notification.recipient_id}")
            self.dispatch(notification.id)

    async def _build(self, db, event):
        if isinstance(event, OrderCreated):
            handlers = await self._handler_users(db, event.handler_type, event.handler_id)
            return (
                [*handlers, event.requester_id],
                EntityType.ORDER, event.order_id,
                f"New {event.kind} order {event.order_id} raised for device {event.device_id}",
            )
        if isinstance(event, OrderStatusChanged):
            recipients: List[Optional[str]] = [event.requester_id]
            if event.actor_id == event.requester_id:
                recipients = await self._handler_users(db, event.handler_type, event.handler_id)
            return (
                recipients,
                EntityType.ORDER, event.order_id,
                f"Order {event.order_id} moved from {event.from_status} to {event.to_status}",
            )
        if isinstance(event, LeaseCreated):
            return (
                [await self._intermediary_user(db, event.intermediary_id)],
                EntityType.LEASE, event.lease_id,
                f"Lease {event.lease_id} created for device {event.device_id}",
            )
        if isinstance(event, OperatorAssigned):
            res = await db.execute(select(Operator).where(Operator.id == event.operator_id))
            operator = res.scalars().first()
            return (
                [operator.user_id if operator else None],
                EntityType.LEASE, event.lease_id,
                f"You were assigned as {event.role} operator on lease {event.lease_id}",
            )
        if isinstance(event, LeaseCompleted):
            res = await db.execute(select(Lease).where(Lease.id == event.lease_id))
            lease = res.scalars().first()
            intermediary_user = await self._intermediary_user(db, lease.intermediary_id) if lease else None
            return (
                [intermediary_user],
                EntityType.LEASE, event.lease_id,
                f"Lease {event.lease_id} completed on {event.end_date}",
            )
        return None

    @staticmethod
    async def _handler_users(db, handler_type, handler_id) -> List[Optional[str]]:
        # the ADMIN handler is the role, so every admin user is a recipient
        if handler_type == HandlerType.ADMIN:
            res = await db.execute(select(User.id).where(User.role == UserRole.ADMIN).order_by(User.created_at))
            return list(res.scalars().all())
        return [await NotificationSubscriber._intermediary_user(db, handler_id)]

    @staticmethod
    async def _intermediary_user(db, intermediary_id) -> Optional[str]:
        res = await db.execute(select(Intermediary).where(Intermediary.id == intermediary_id))
        intermediary = res.scalars().first()
        return intermediary.user_id if intermediary else None


class MetricsSubscriber:

    async def on_event(self, event) -> None:
        if isinstance(event, OrderCreated):
            orders_created.labels(kind=str(event.kind)).inc()
        elif isinstance(event, OrderStatusChanged):
            order_transitions.labels(
                from_status=str(event.from_status), to_status=str(event.to_status)
            ).inc()
        elif isinstance(event, LeaseCreated):
            leases_created.inc()
        elif isinstance(event, OperatorAssigned):
            operator_assignments.labels(role=str(event.role)).inc()


def build_event_bus(session_factory=AsyncSessionLocal, dispatch=None) -> EventBus:
    return EventBus([
        AuditSubscriber(session_factory),
        NotificationSubscriber(session_factory, dispatch),
        MetricsSubscriber(),
    ])


_event_bus: Optional[EventBus] = None


def get_event_bus() -> EventBus:
    global _event_bus
    if _event_bus is None:
        _event_bus = build_event_bus()
    return _event_bus
