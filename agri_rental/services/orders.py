"""
Order lifecycle orchestration.

Creation classifies the request (RENT or LEASE) from the category thresholds
and fixes kind and handler on the order for good. Every later status change
goes through ``_transition`` and therefore through the state machine; no
other code path assigns ``Order.status``.

Audit and notification side effects are not called from here: the service
publishes a domain event after its commit and the subscribers do the rest.
"""
import logging
from datetime import date
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.orm.exc import StaleDataError

from agri_rental.core.auth_utils import check_not_found, check_requester, check_role
from agri_rental.core.config import settings
from agri_rental.core.enums import HandlerType, OrderKind, OrderStatus, UserRole
from agri_rental.core.event_bus import EventBus
from agri_rental.core.events import OrderCreated, OrderStatusChanged
from agri_rental.core.exceptions import (
    ConcurrentModificationError,
    ForbiddenError,
    InvalidTransitionError,
    PreconditionFailedError,
    ValidationFailedError,
)
from agri_rental.core.state_machine import OrderStateMachine
from agri_rental.models.intermediary import Intermediary
from agri_rental.models.order import Order
from agri_rental.services.devices import DeviceService
from agri_rental.services.thresholds import ThresholdResolver

logger = logging.getLogger(__name__)


def validate_order_request(
    start_date: Optional[date],
    end_date: Optional[date],
    requested_hours: Optional[float],
    requested_area: Optional[float],
) -> None:
    if start_date is None or end_date is None:
        raise ValidationFailedError("start_date and end_date are required")
    if end_date < start_date:
        raise ValidationFailedError("end_date must not precede start_date")
    if requested_hours is not None and requested_hours < 0:
        raise ValidationFailedError("requested_hours must not be negative")
    if requested_area is not None and requested_area < 0:
        raise ValidationFailedError("requested_area must not be negative")


class OrderLifecycleService:

    def __init__(
        self,
        db: AsyncSession,
        bus: EventBus,
        thresholds: Optional[ThresholdResolver] = None,
        devices: Optional[DeviceService] = None,
        state_machine: OrderStateMachine = OrderStateMachine(),
    ):
        self.db = db
        self.bus = bus
        self.thresholds = thresholds or ThresholdResolver(db)
        self.devices = devices or DeviceService(db)
        self.state_machine = state_machine

    async def create_order(
        self,
        actor,
        device_id: str,
        start_date: Optional[date],
        end_date: Optional[date],
        requested_hours: Optional[float] = None,
        requested_area: Optional[float] = None,
        note: Optional[str] = None,
        submit: bool = True,
    ) -> Order:
        validate_order_request(start_date, end_date, requested_hours, requested_area)

        device = await self.devices.get_device(device_id)
        if str(device.status) not in settings.BOOKABLE_DEVICE_STATUSES:
            raise ValidationFailedError(
                f"Device {device_id} is not available for ordering (status {device.status})"
            )
        if not device.category_id:
            raise PreconditionFailedError(f"Device {device_id} has no category")

        kind = await self.thresholds.derive_order_kind(
            device.category_id, requested_hours, requested_area
        )
        handler_type, handler_id = await self._determine_handler(kind, device)

        order = Order(
            kind=kind,
            status=OrderStatus.INTEREST_RAISED if submit else OrderStatus.DRAFT,
            device_id=device.id,
            requester_id=actor.id,
            handler_type=handler_type,
            handler_id=handler_id,
            requested_hours=requested_hours,
            requested_area=requested_area,
            note=note,
            requester_phone=actor.phone,
            requester_name=actor.name,
            start_date=start_date,
            end_date=end_date,
        )
        self.db.add(order)
        await self.db.commit()
        await self.db.refresh(order)

        logger.info(
            f"Created order {order.id} of kind {kind} for device {device_id} by user {actor.id}, "
            f"handled by {handler_type}:{handler_id}"
        )

        await self.bus.publish(OrderCreated(
            order_id=order.id,
            kind=order.kind,
            status=order.status,
            device_id=order.device_id,
            requester_id=order.requester_id,
            handler_type=order.handler_type,
            handler_id=order.handler_id,
            requested_hours=order.requested_hours,
            requested_area=order.requested_area,
            actor_id=actor.id,
            note=note,
        ))
        return order

    async def _determine_handler(self, kind: OrderKind, device):
        intermediary_id = await self.devices.serving_intermediary_id(device)
        if kind == OrderKind.LEASE:
            if intermediary_id is not None:
                raise PreconditionFailedError(
                    f"Device {device.id} is already leased; LEASE orders need an unleased device",
                    {"lease_id": device.current_lease_id},
                )
            return HandlerType.ADMIN, settings.ADMIN_HANDLER_ID

        if intermediary_id is None:
            raise PreconditionFailedError(
                f"Device {device.id} must be leased to an intermediary for RENT orders"
            )
        return HandlerType.INTERMEDIARY, intermediary_id

    async def get_order(self, order_id: str) -> Order:
        res = await self.db.execute(select(Order).where(Order.id == order_id))
        order = res.scalars().first()
        check_not_found(order, "Order", order_id)
        return order

    async def update_status(
        self,
        order_id: str,
        to_status: OrderStatus,
        actor,
        note: Optional[str] = None,
    ) -> Order:
        order = await self.get_order(order_id)
        self._check_transition(order, to_status)
        await self._check_handler(order, actor)
        return await self._transition(order, to_status, actor, note)

    async def submit_order(self, order_id: str, actor, note: Optional[str] = None) -> Order:
        """Requester promotes a DRAFT order to INTEREST_RAISED."""
        order = await self.get_order(order_id)
        check_requester(order, actor, "submit it")
        return await self._transition(order, OrderStatus.INTEREST_RAISED, actor, note)

    async def cancel_order(self, order_id: str, actor, note: Optional[str] = None) -> Order:
        order = await self.get_order(order_id)
        check_requester(order, actor, "cancel it")
        return await self._transition(order, OrderStatus.CANCELLED, actor, note)

    async def reject_order(self, order_id: str, actor, note: Optional[str] = None) -> Order:
        order = await self.get_order(order_id)
        await self._check_handler(order, actor)
        return await self._transition(order, OrderStatus.REJECTED, actor, note)

    def _check_transition(self, order: Order, to_status: OrderStatus) -> None:
        if not self.state_machine.can_transition(order.status, to_status):
            raise InvalidTransitionError(order.status, to_status)

    async def _transition(
        self,
        order: Order,
        to_status: OrderStatus,
        actor,
        note: Optional[str],
    ) -> Order:
        self._check_transition(order, to_status)

        order_id = order.id
        from_status = order.status
        order.status = to_status
        if note is not None:
            order.note = note
        self.db.add(order)
        try:
            await self.db.commit()
        except StaleDataError:
            await self.db.rollback()
            logger.warning(f"Lost update on order {order_id} ({from_status} -> {to_status})")
            raise ConcurrentModificationError("Order", order_id)
        await self.db.refresh(order)

        logger.info(f"Updated order {order.id} status from {from_status} to {to_status} by {actor.id}")

        await self.bus.publish(OrderStatusChanged(
            order_id=order.id,
            kind=order.kind,
            from_status=from_status,
            to_status=to_status,
            requester_id=order.requester_id,
            handler_type=order.handler_type,
            handler_id=order.handler_id,
            actor_id=actor.id,
            note=note,
        ))
        return order

    async def _check_handler(self, order: Order, actor) -> None:
        if order.handler_type == HandlerType.ADMIN:
            check_role(actor, [UserRole.ADMIN], "handling LEASE orders")
            return

        intermediary = await self._intermediary_for(actor)
        if intermediary is None or intermediary.id != order.handler_id:
            raise ForbiddenError("Forbidden: only the assigned intermediary can handle this RENT order")

    async def _intermediary_for(self, actor) -> Optional[Intermediary]:
        if actor is None:
            return None
        res = await self.db.execute(select(Intermediary).where(Intermediary.user_id == actor.id))
        return res.scalars().first()

    async def list_orders_for_requester(
        self,
        actor,
        status: Optional[OrderStatus] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> List[Order]:
        q = select(Order).where(Order.requester_id == actor.id)
        if status:
            q = q.where(Order.status == status)
        q = q.order_by(Order.created_at.desc()).limit(limit).offset(offset)
        res = await self.db.execute(q)
        return list(res.scalars().all())

    async def list_lease_orders(
        self,
        actor,
        status: Optional[OrderStatus] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> List[Order]:
        check_role(actor, [UserRole.ADMIN], "viewing LEASE orders")
        q = select(Order).where(Order.kind == OrderKind.LEASE)
        if status:
            q = q.where(Order.status == status)
        q = q.order_by(Order.created_at.desc()).limit(limit).offset(offset)
        res = await self.db.execute(q)
        return list(res.scalars().all())

    async def list_rent_orders_for_intermediary(
        self,
        actor,
        status: Optional[OrderStatus] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> List[Order]:
        intermediary = await self._intermediary_for(actor)
        check_not_found(intermediary, "Intermediary profile for user", getattr(actor, "id", None))
        q = select(Order).where(
            Order.kind == OrderKind.RENT,
            Order.handler_type == HandlerType.INTERMEDIARY,
            Order.handler_id == intermediary.id,
        )
        if status:
            q = q.where(Order.status == status)
        q = q.order_by(Order.created_at.desc()).limit(limit).offset(offset)
        res = await self.db.execute(q)
        return list(res.scalars().all())
