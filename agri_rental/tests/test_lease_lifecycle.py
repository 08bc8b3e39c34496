from datetime import date

import pytest
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.future import select

from agri_rental.core.config import settings
from agri_rental.core.enums import (
    CommitmentType,
    LeaseStatus,
    OperatorRole,
    OrderStatus,
    PrimaryOperatorPolicy,
)
from agri_rental.core.events import LeaseCompleted, LeaseCreated, OperatorAssigned
from agri_rental.core.exceptions import (
    ConcurrentModificationError,
    ConflictError,
    ForbiddenError,
    NotFoundError,
    PreconditionFailedError,
)
from agri_rental.models.audit import AuditLog
from agri_rental.models.lease import Lease
from agri_rental.services import leases as leases_module
from agri_rental.services.leases import LeaseLifecycleService, add_operator_assignment, commitment_from_order


@pytest.fixture
async def device(make_device):
    return await make_device()


@pytest.fixture
def lease_order(order_service, admin, intermediary_pair, device, threshold, order_dates):
    """LEASE order raised by an intermediary, optionally accepted by the admin"""
    async def _lease_order(accept=True, **amounts):
        user, _ = intermediary_pair
        start, end = order_dates
        amounts = amounts or {"requested_hours": 120}
        order = await order_service.create_order(user, device.id, start, end, **amounts)
        if accept:
            order = await order_service.update_status(order.id, OrderStatus.ACCEPTED, admin)
        return order
    return _lease_order


@pytest.fixture
def primary_policy(monkeypatch):
    def _primary_policy(policy):
        monkeypatch.setattr(settings, "PRIMARY_OPERATOR_POLICY", policy)
    return _primary_policy


@pytest.mark.leases
class TestCreateLeaseFromOrder:

    async def test_not_accepted_order_creates_nothing(self, lease_service, db, admin, lease_order):
        order = await lease_order(accept=False)
        assert order.status == OrderStatus.INTEREST_RAISED

        with pytest.raises(PreconditionFailedError):
            await lease_service.create_lease_from_order(order.id, admin)
        assert (await db.execute(select(Lease))).scalars().all() == []

    async def test_rent_order_is_rejected(
        self, lease_service, order_service, admin, farmer, device, threshold, intermediary_pair,
        lease_device_to, order_dates,
    ):
        _, intermediary = intermediary_pair
        await lease_device_to(device, intermediary)
        start, end = order_dates
        order = await order_service.create_order(farmer, device.id, start, end, requested_hours=2)
        with pytest.raises(PreconditionFailedError):
            await lease_service.create_lease_from_order(order.id, admin)

    async def test_unknown_order(self, lease_service, admin):
        with pytest.raises(NotFoundError):
            await lease_service.create_lease_from_order("missing", admin)

    async def test_accepted_order_becomes_active_lease(
        self, lease_service, devices, admin, intermediary_pair, lease_order, default_rule, recorder
    ):
        _, intermediary = intermediary_pair
        order = await lease_order(requested_hours=120)

        lease = await lease_service.create_lease_from_order(order.id, admin, deposit_amount=5000, notes="season")

        assert lease.status == LeaseStatus.ACTIVE
        assert lease.intermediary_id == intermediary.id
        assert lease.commitment == {"type": CommitmentType.HOURS, "value": 120}
        assert lease.estimated_price == 120 * 500.0
        assert lease.signed_by_admin_id == admin.id
        device = await devices.get_device(order.device_id)
        assert device.current_lease_id == lease.id
        assert [e.lease_id for e in recorder.of_type(LeaseCreated)] == [lease.id]

    async def test_area_commitment_without_pricing(self, lease_service, admin, lease_order):
        order = await lease_order(requested_area=40)
        lease = await lease_service.create_lease_from_order(order.id, admin)
        assert lease.commitment_type == CommitmentType.ACRES
        assert lease.commitment_value == 40
        assert lease.estimated_price is None

    async def test_unusable_rule_leaves_price_empty(self, lease_service, admin, lease_order, default_rule, monkeypatch):
        def malformed(rule, hours, area):
            raise KeyError("rate")

        monkeypatch.setattr(leases_module, "estimate_price", malformed)
        order = await lease_order()
        lease = await lease_service.create_lease_from_order(order.id, admin)
        assert lease.estimated_price is None

    async def test_pricing_lookup_failure_propagates(self, lease_service, db, admin, lease_order, monkeypatch):
        async def broken_lookup(*args):
            raise SQLAlchemyError("pricing table unavailable")

        monkeypatch.setattr(lease_service.pricing, "get_active_rule_for_date", broken_lookup)
        order = await lease_order()
        with pytest.raises(SQLAlchemyError):
            await lease_service.create_lease_from_order(order.id, admin)
        assert (await db.execute(select(Lease))).scalars().all() == []

    async def test_only_admin_creates_leases(self, lease_service, intermediary_pair, lease_order):
        user, _ = intermediary_pair
        order = await lease_order()
        with pytest.raises(ForbiddenError):
            await lease_service.create_lease_from_order(order.id, user)

    async def test_order_converts_once(self, lease_service, admin, lease_order):
        order = await lease_order()
        await lease_service.create_lease_from_order(order.id, admin)
        with pytest.raises(PreconditionFailedError):
            await lease_service.create_lease_from_order(order.id, admin)

    async def test_requester_without_intermediary_profile(
        self, lease_service, order_service, admin, farmer, device, threshold, order_dates
    ):
        start, end = order_dates
        order = await order_service.create_order(farmer, device.id, start, end, requested_hours=120)
        await order_service.update_status(order.id, OrderStatus.ACCEPTED, admin)
        with pytest.raises(NotFoundError):
            await lease_service.create_lease_from_order(order.id, admin)

    async def test_initial_operators_and_audit(
        self, lease_service, session_factory, admin, lease_order, make_operator
    ):
        operator = await make_operator()
        order = await lease_order()
        lease = await lease_service.create_lease_from_order(
            order.id, admin,
            operators=[{"operator_id": operator.id, "role": OperatorRole.PRIMARY}],
            attachments=[{"type": "LEASE_AGREEMENT", "url": "https://files.test/agreement.pdf"}],
        )
        assert lease.primary_operator_ids() == [operator.id]
        assert lease.attachments[0]["type"] == "LEASE_AGREEMENT"

        async with session_factory() as s:
            logs = (await s.execute(select(AuditLog).where(AuditLog.entity_id == lease.id))).scalars().all()
        assert [log.action for log in logs] == ["CREATE"]


@pytest.mark.unit
@pytest.mark.leases
class TestCommitmentAndAssignmentRules:

    class _Order:
        def __init__(self, hours=None, area=None):
            self.requested_hours = hours
            self.requested_area = area

    def test_hours_take_precedence(self):
        assert commitment_from_order(self._Order(10, 3)) == (CommitmentType.HOURS, 10)

    def test_area_only(self):
        assert commitment_from_order(self._Order(area=3)) == (CommitmentType.ACRES, 3)

    def test_nothing_requested(self):
        assert commitment_from_order(self._Order()) == (CommitmentType.HOURS, 0.0)

    def test_assignment_returns_new_list(self):
        original = []
        updated = add_operator_assignment(original, "op-1", OperatorRole.SECONDARY, PrimaryOperatorPolicy.REJECT)
        assert original == []
        assert updated[0]["operator_id"] == "op-1"
        assert updated[0]["role"] == "SECONDARY"
        assert "assigned_at" in updated[0]

    def test_reject_policy(self):
        current = add_operator_assignment([], "op-1", OperatorRole.PRIMARY, PrimaryOperatorPolicy.REJECT)
        with pytest.raises(ConflictError) as exc_info:
            add_operator_assignment(current, "op-2", OperatorRole.PRIMARY, PrimaryOperatorPolicy.REJECT)
        assert exc_info.value.conflicting_ids == ["op-1"]

    def test_replace_policy_keeps_secondaries(self):
        current = add_operator_assignment([], "op-1", OperatorRole.PRIMARY, PrimaryOperatorPolicy.REPLACE)
        current = add_operator_assignment(current, "op-2", OperatorRole.SECONDARY, PrimaryOperatorPolicy.REPLACE)
        current = add_operator_assignment(current, "op-3", OperatorRole.PRIMARY, PrimaryOperatorPolicy.REPLACE)
        assert [(a["operator_id"], a["role"]) for a in current] == [("op-2", "SECONDARY"), ("op-3", "PRIMARY")]


@pytest.mark.leases
class TestAssignOperator:

    @pytest.fixture
    async def lease(self, lease_service, admin, lease_order):
        order = await lease_order()
        return await lease_service.create_lease_from_order(order.id, admin)

    async def test_append_in_order(self, lease_service, admin, lease, make_operator, recorder):
        first = await make_operator("First")
        second = await make_operator("Second")

        await lease_service.assign_operator(lease.id, first.id, OperatorRole.PRIMARY, admin)
        updated = await lease_service.assign_operator(lease.id, second.id, OperatorRole.SECONDARY, admin)

        assert [a["operator_id"] for a in updated.operators] == [first.id, second.id]
        assert [e.operator_id for e in recorder.of_type(OperatorAssigned)] == [first.id, second.id]

    async def test_permissive_policy_allows_two_primaries(self, lease_service, admin, lease, make_operator, primary_policy):
        primary_policy(PrimaryOperatorPolicy.ALLOW_MULTIPLE)
        first = await make_operator("First")
        second = await make_operator("Second")

        await lease_service.assign_operator(lease.id, first.id, OperatorRole.PRIMARY, admin)
        updated = await lease_service.assign_operator(lease.id, second.id, OperatorRole.PRIMARY, admin)
        assert updated.primary_operator_ids() == [first.id, second.id]

    async def test_reject_policy(self, lease_service, admin, lease, make_operator, primary_policy):
        primary_policy(PrimaryOperatorPolicy.REJECT)
        first = await make_operator("First")
        second = await make_operator("Second")

        await lease_service.assign_operator(lease.id, first.id, OperatorRole.PRIMARY, admin)
        with pytest.raises(ConflictError):
            await lease_service.assign_operator(lease.id, second.id, OperatorRole.PRIMARY, admin)

    async def test_replace_policy(self, lease_service, admin, lease, make_operator, primary_policy):
        primary_policy(PrimaryOperatorPolicy.REPLACE)
        first = await make_operator("First")
        second = await make_operator("Second")

        await lease_service.assign_operator(lease.id, first.id, OperatorRole.PRIMARY, admin)
        updated = await lease_service.assign_operator(lease.id, second.id, OperatorRole.PRIMARY, admin)
        assert updated.primary_operator_ids() == [second.id]

    async def test_holding_intermediary_may_assign(self, lease_service, intermediary_pair, lease, make_operator):
        user, _ = intermediary_pair
        operator = await make_operator()
        updated = await lease_service.assign_operator(lease.id, operator.id, OperatorRole.SECONDARY, user)
        assert len(updated.operators) == 1

    async def test_other_intermediary_may_not(self, lease_service, make_intermediary, lease, make_operator):
        other_user, _ = await make_intermediary(business_name="Other Hub")
        operator = await make_operator()
        with pytest.raises(ForbiddenError):
            await lease_service.assign_operator(lease.id, operator.id, OperatorRole.SECONDARY, other_user)

    async def test_concurrent_assignment_is_reported(
        self, lease_service, session_factory, bus, admin, lease, make_operator
    ):
        lease_id = lease.id
        first = await make_operator("First")
        second = await make_operator("Second")

        async with session_factory() as other_db:
            await LeaseLifecycleService(other_db, bus).assign_operator(
                lease_id, first.id, OperatorRole.PRIMARY, admin
            )

        # ``lease`` in this session still carries the pre-assignment version
        with pytest.raises(ConcurrentModificationError) as exc_info:
            await lease_service.assign_operator(lease_id, second.id, OperatorRole.SECONDARY, admin)
        assert exc_info.value.details == {"resource": "Lease", "id": lease_id}

        async with session_factory() as fresh:
            stored = (await fresh.execute(select(Lease).where(Lease.id == lease_id))).scalars().one()
        assert [a["operator_id"] for a in stored.operators] == [first.id]

    async def test_missing_lease_or_operator(self, lease_service, admin, lease, make_operator):
        operator = await make_operator()
        with pytest.raises(NotFoundError):
            await lease_service.assign_operator("missing", operator.id, OperatorRole.PRIMARY, admin)
        with pytest.raises(NotFoundError):
            await lease_service.assign_operator(lease.id, "missing", OperatorRole.PRIMARY, admin)


@pytest.mark.leases
class TestCompleteLease:

    async def test_complete_releases_device(self, lease_service, devices, admin, lease_order, recorder):
        order = await lease_order()
        lease = await lease_service.create_lease_from_order(order.id, admin)

        done = await lease_service.complete_lease(lease.id, admin, end_date=date(2025, 3, 31))

        assert done.status == LeaseStatus.COMPLETED
        assert done.end_date == date(2025, 3, 31)
        device = await devices.get_device(lease.device_id)
        assert device.current_lease_id is None
        assert [e.lease_id for e in recorder.of_type(LeaseCompleted)] == [lease.id]

    async def test_complete_twice_fails(self, lease_service, admin, lease_order):
        order = await lease_order()
        lease = await lease_service.create_lease_from_order(order.id, admin)
        await lease_service.complete_lease(lease.id, admin)
        with pytest.raises(PreconditionFailedError):
            await lease_service.complete_lease(lease.id, admin)

    async def test_listing_for_intermediary(self, lease_service, admin, intermediary_pair, lease_order):
        _, intermediary = intermediary_pair
        order = await lease_order()
        lease = await lease_service.create_lease_from_order(order.id, admin)

        leases = await lease_service.list_leases_for_intermediary(intermediary.id)
        assert [item.id for item in leases] == [lease.id]
        assert await lease_service.list_leases_for_intermediary(intermediary.id, LeaseStatus.COMPLETED) == []
