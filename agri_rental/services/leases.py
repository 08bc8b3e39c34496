"""
Lease lifecycle: turning an accepted LEASE order into a Lease and managing
the operators attached to it.
"""
import logging
from datetime import date, datetime, timezone
from typing import Iterable, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.orm.exc import StaleDataError

from agri_rental.core.auth_utils import check_not_found, check_role, is_admin
from agri_rental.core.config import settings
from agri_rental.core.enums import (
    CommitmentType,
    LeaseStatus,
    OperatorRole,
    OrderKind,
    OrderStatus,
    PrimaryOperatorPolicy,
    UserRole,
)
from agri_rental.core.event_bus import EventBus
from agri_rental.core.events import LeaseCompleted, LeaseCreated, OperatorAssigned
from agri_rental.core.exceptions import (
    ConcurrentModificationError,
    ConflictError,
    ForbiddenError,
    PreconditionFailedError,
)
from agri_rental.models.intermediary import Intermediary
from agri_rental.models.lease import Lease
from agri_rental.models.operator import Operator
from agri_rental.models.order import Order
from agri_rental.services.devices import DeviceService
from agri_rental.services.pricing import PricingResolver, estimate_price

logger = logging.getLogger(__name__)


def commitment_from_order(order: Order):
    """Hours win over area when both were requested."""
    if order.requested_hours is not None:
        return CommitmentType.HOURS, order.requested_hours
    if order.requested_area is not None:
        return CommitmentType.ACRES, order.requested_area
    return CommitmentType.HOURS, 0.0


def add_operator_assignment(
    assignments: Iterable[dict],
    operator_id: str,
    role: OperatorRole,
    policy: PrimaryOperatorPolicy,
    assigned_at: Optional[datetime] = None,
) -> List[dict]:
    """Return a new assignment list with ``operator_id`` appended under ``policy``."""
    current = list(assignments or [])
    role = OperatorRole(role)

    if role == OperatorRole.PRIMARY:
        primaries = [a["operator_id"] for a in current if a.get("role") == OperatorRole.PRIMARY.value]
        if primaries and policy == PrimaryOperatorPolicy.REJECT:
            raise ConflictError("Lease already has a PRIMARY operator", primaries)
        if primaries and policy == PrimaryOperatorPolicy.REPLACE:
            current = [a for a in current if a.get("role") != OperatorRole.PRIMARY.value]

    assigned_at = assigned_at or datetime.now(timezone.utc)
    current.append({
        "operator_id": operator_id,
        "role": role.value,
        "assigned_at": assigned_at.isoformat(),
    })
    return current


class LeaseLifecycleService:

    def __init__(
        self,
        db: AsyncSession,
        bus: EventBus,
        devices: Optional[DeviceService] = None,
        pricing: Optional[PricingResolver] = None,
    ):
        self.db = db
        self.bus = bus
        self.pricing = pricing or PricingResolver(db)
        self.devices = devices or DeviceService(db, self.pricing)

    async def create_lease_from_order(
        self,
        order_id: str,
        actor,
        deposit_amount: Optional[float] = None,
        notes: Optional[str] = None,
        operators: Optional[List[dict]] = None,
        attachments: Optional[List[dict]] = None,
    ) -> Lease:
        check_role(actor, [UserRole.ADMIN], "creating leases")

        res = await self.db.execute(select(Order).where(Order.id == order_id))
        order = res.scalars().first()
        check_not_found(order, "Order", order_id)

        if order.kind != OrderKind.LEASE:
            raise PreconditionFailedError(
                f"Order {order_id} is a {order.kind} order; only LEASE orders become leases"
            )
        if order.status != OrderStatus.ACCEPTED:
            raise PreconditionFailedError(
                f"Order {order_id} must be ACCEPTED to create a lease (current status {order.status})",
                {"current": str(order.status), "required": OrderStatus.ACCEPTED.value},
            )

        res = await self.db.execute(select(Lease).where(Lease.order_id == order_id))
        existing = res.scalars().first()
        if existing is not None:
            raise PreconditionFailedError(
                f"Order {order_id} already has lease {existing.id}", {"lease_id": existing.id}
            )

        device = await self.devices.get_device(order.device_id)
        if await self.devices.serving_intermediary_id(device) is not None:
            raise PreconditionFailedError(
                f"Device {device.id} is already leased", {"lease_id": device.current_lease_id}
            )

        res = await self.db.execute(
            select(Intermediary).where(Intermediary.user_id == order.requester_id)
        )
        intermediary = res.scalars().first()
        check_not_found(intermediary, "Intermediary profile for user", order.requester_id)

        policy = settings.PRIMARY_OPERATOR_POLICY
        assignments: List[dict] = []
        for item in operators or []:
            await self._get_operator(item["operator_id"])
            assignments = add_operator_assignment(
                assignments, item["operator_id"], item.get("role", OperatorRole.PRIMARY), policy
            )

        commitment_type, commitment_value = commitment_from_order(order)
        lease = Lease(
            order_id=order.id,
            device_id=device.id,
            intermediary_id=intermediary.id,
            status=LeaseStatus.ACTIVE,
            commitment_type=commitment_type,
            commitment_value=commitment_value,
            estimated_price=await self._estimate(order, device),
            deposit_amount=deposit_amount,
            start_date=order.start_date,
            operators=assignments,
            attachments=[
                {**a, "type": str(a["type"]), "uploaded_at": datetime.now(timezone.utc).isoformat()}
                for a in attachments or []
            ],
            signed_by_admin_id=actor.id,
            notes=notes,
        )
        self.db.add(lease)
        await self.db.flush()

        device.current_lease_id = lease.id
        self.db.add(device)
        await self.db.commit()
        await self.db.refresh(lease)

        logger.info(
            f"Created lease {lease.id} from order {order_id} for intermediary {intermediary.id} "
            f"on device {device.id} ({commitment_type} {commitment_value})"
        )

        await self.bus.publish(LeaseCreated(
            lease_id=lease.id,
            order_id=order.id,
            device_id=device.id,
            intermediary_id=intermediary.id,
            estimated_price=lease.estimated_price,
            actor_id=actor.id,
            note=notes,
        ))
        return lease

    async def _estimate(self, order: Order, device) -> Optional[float]:
        if not device.category_id or not device.location_code:
            return None
        rule = await self.pricing.get_active_rule_for_date(
            device.category_id, device.location_code, order.start_date
        )
        try:
            return estimate_price(rule, order.requested_hours, order.requested_area)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Price estimation failed for order {order.id}: {e}")
            return None

    async def _get_operator(self, operator_id: str) -> Operator:
        res = await self.db.execute(select(Operator).where(Operator.id == operator_id))
        operator = res.scalars().first()
        check_not_found(operator, "Operator", operator_id)
        return operator

    async def get_lease(self, lease_id: str, actor=None) -> Lease:
        res = await self.db.execute(select(Lease).where(Lease.id == lease_id))
        lease = res.scalars().first()
        check_not_found(lease, "Lease", lease_id)
        if actor is not None:
            await self._check_lease_access(lease, actor)
        return lease

    async def intermediary_for_user(self, user) -> Intermediary:
        res = await self.db.execute(select(Intermediary).where(Intermediary.user_id == user.id))
        intermediary = res.scalars().first()
        check_not_found(intermediary, "Intermediary profile for user", user.id)
        return intermediary

    async def _check_lease_access(self, lease: Lease, actor) -> None:
        if is_admin(actor):
            return
        res = await self.db.execute(select(Intermediary).where(Intermediary.user_id == actor.id))
        intermediary = res.scalars().first()
        if intermediary is None or intermediary.id != lease.intermediary_id:
            raise ForbiddenError("Forbidden: lease belongs to another intermediary")

    async def assign_operator(
        self,
        lease_id: str,
        operator_id: str,
        role: OperatorRole,
        actor,
    ) -> Lease:
        lease = await self.get_lease(lease_id)
        await self._get_operator(operator_id)
        await self._check_lease_access(lease, actor)

        # JSON columns only track reassignment, never in-place mutation
        lease.operators = add_operator_assignment(
            lease.operators, operator_id, role, settings.PRIMARY_OPERATOR_POLICY
        )
        await self._commit(lease)

        logger.info(f"Assigned operator {operator_id} as {role} to lease {lease_id} by {actor.id}")

        await self.bus.publish(OperatorAssigned(
            lease_id=lease.id,
            operator_id=operator_id,
            role=OperatorRole(role),
            actor_id=actor.id,
        ))
        return lease

    async def complete_lease(self, lease_id: str, actor, end_date: Optional[date] = None) -> Lease:
        check_role(actor, [UserRole.ADMIN], "completing leases")
        lease = await self.get_lease(lease_id)
        if lease.status != LeaseStatus.ACTIVE:
            raise PreconditionFailedError(
                f"Lease {lease_id} is {lease.status}; only ACTIVE leases can be completed"
            )

        lease.status = LeaseStatus.COMPLETED
        lease.end_date = end_date or date.today()
        await self._commit(lease, flush_only=True)

        device = await self.devices.get_device(lease.device_id)
        if device.current_lease_id == lease.id:
            device.current_lease_id = None
            self.db.add(device)
        await self.db.commit()
        await self.db.refresh(lease)

        logger.info(f"Completed lease {lease_id} on {lease.end_date}")

        await self.bus.publish(LeaseCompleted(
            lease_id=lease.id,
            device_id=lease.device_id,
            end_date=lease.end_date,
            actor_id=actor.id,
        ))
        return lease

    async def _commit(self, lease: Lease, flush_only: bool = False) -> None:
        lease_id = lease.id
        self.db.add(lease)
        try:
            if flush_only:
                await self.db.flush()
            else:
                await self.db.commit()
        except StaleDataError:
            await self.db.rollback()
            logger.warning(f"Lost update on lease {lease_id}")
            raise ConcurrentModificationError("Lease", lease_id)
        if not flush_only:
            await self.db.refresh(lease)

    async def list_leases_for_intermediary(
        self,
        intermediary_id: str,
        status: Optional[LeaseStatus] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> List[Lease]:
        q = select(Lease).where(Lease.intermediary_id == intermediary_id)
        if status:
            q = q.where(Lease.status == status)
        q = q.order_by(Lease.created_at.desc()).limit(limit).offset(offset)
        res = await self.db.execute(q)
        return list(res.scalars().all())
