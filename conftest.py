import os
import sys
import uuid
from datetime import date, timedelta

import pytest

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/15")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("NOTIFICATION_WEBHOOK_URL", "http://webhook.test/notify")
os.environ.setdefault("CELERY_BROKER_URL", "memory://")
os.environ.setdefault("CELERY_BACKEND", "cache+memory://")

from fastapi import Depends
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession
from sqlalchemy.orm import sessionmaker

from agri_rental.main import app
from agri_rental.db.base import Base
from agri_rental.db.session import get_db
from agri_rental.core.security import create_access_token, get_current_user
from agri_rental.core.rate_limit import rate_limited_user
from agri_rental.core.enums import (
    DeviceStatus,
    HandlerType,
    LeaseStatus,
    CommitmentType,
    OrderKind,
    OrderStatus,
    RecordStatus,
    UserRole,
)
from agri_rental.core.event_bus import EventBus
from agri_rental.models.user import User
from agri_rental.models.intermediary import Intermediary
from agri_rental.models.operator import Operator
from agri_rental.models.device import Device
from agri_rental.models.threshold_config import ThresholdConfig
from agri_rental.models.pricing_rule import PricingRule
from agri_rental.models.order import Order
from agri_rental.models.lease import Lease
from agri_rental.services.subscribers import (
    AuditSubscriber,
    MetricsSubscriber,
    NotificationSubscriber,
    get_event_bus,
)
from agri_rental.services.orders import OrderLifecycleService
from agri_rental.services.leases import LeaseLifecycleService
from agri_rental.services.pricing import PricingResolver
from agri_rental.services.thresholds import ThresholdResolver
from agri_rental.services.devices import DeviceService

CATEGORY = "TRACTOR"
LOCATION = "KA-BLR"


class RecordingSubscriber:
    def __init__(self):
        self.events = []

    async def on_event(self, event):
        self.events.append(event)

    def of_type(self, event_type):
        return [e for e in self.events if isinstance(e, event_type)]


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", future=True)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, future=True)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def recorder():
    return RecordingSubscriber()


@pytest.fixture
def dispatched():
    """Notification ids handed to the delivery queue"""
    return []


@pytest.fixture
def bus(session_factory, recorder, dispatched):
    return EventBus([
        AuditSubscriber(session_factory),
        NotificationSubscriber(session_factory, dispatch=dispatched.append),
        MetricsSubscriber(),
        recorder,
    ])


@pytest.fixture
def thresholds(db, bus):
    return ThresholdResolver(db, bus)


@pytest.fixture
def pricing(db, bus):
    return PricingResolver(db, bus)


@pytest.fixture
def devices(db, pricing):
    return DeviceService(db, pricing)


@pytest.fixture
def order_service(db, bus, thresholds, devices):
    return OrderLifecycleService(db, bus, thresholds=thresholds, devices=devices)


@pytest.fixture
def lease_service(db, bus, devices, pricing):
    return LeaseLifecycleService(db, bus, devices=devices, pricing=pricing)


@pytest.fixture
def make_user(db):
    async def _make_user(role=UserRole.FARMER, name="Test User", phone=None, password_hash="x"):
        user = User(
            phone=phone or f"9{uuid.uuid4().int % 10**9:09d}",
            name=name,
            password_hash=password_hash,
            role=role,
        )
        db.add(user)
        await db.commit()
        await db.refresh(user)
        return user
    return _make_user


@pytest.fixture
async def admin(make_user):
    return await make_user(UserRole.ADMIN, name="Admin")


@pytest.fixture
async def farmer(make_user):
    return await make_user(UserRole.FARMER, name="Ravi Farmer")


@pytest.fixture
def make_intermediary(db, make_user):
    async def _make_intermediary(business_name="Green Agro Hub", location_code=LOCATION):
        user = await make_user(UserRole.INTERMEDIARY, name=business_name)
        intermediary = Intermediary(user_id=user.id, business_name=business_name, location_code=location_code)
        db.add(intermediary)
        await db.commit()
        await db.refresh(intermediary)
        return user, intermediary
    return _make_intermediary


@pytest.fixture
async def intermediary_pair(make_intermediary):
    return await make_intermediary()


@pytest.fixture
def make_operator(db, make_user):
    async def _make_operator(name="Operator"):
        user = await make_user(UserRole.OPERATOR, name=name)
        operator = Operator(user_id=user.id, status=RecordStatus.ACTIVE)
        db.add(operator)
        await db.commit()
        await db.refresh(operator)
        return operator
    return _make_operator


@pytest.fixture
def make_device(db):
    async def _make_device(status=DeviceStatus.LIVE, category_id=CATEGORY, location_code=LOCATION, name="Tractor 45HP"):
        device = Device(name=name, category_id=category_id, location_code=location_code, status=status)
        db.add(device)
        await db.commit()
        await db.refresh(device)
        return device
    return _make_device


@pytest.fixture
async def threshold(db):
    config = ThresholdConfig(
        category_id=CATEGORY,
        max_rental_hours=8.0,
        max_rental_area=5.0,
        status=RecordStatus.ACTIVE,
    )
    db.add(config)
    await db.commit()
    await db.refresh(config)
    return config


@pytest.fixture
async def default_rule(db):
    rule = PricingRule(
        category_id=CATEGORY,
        location_code=LOCATION,
        rates=[{"metric": "PER_HOUR", "rate": 500.0}, {"metric": "PER_ACRE", "rate": 1200.0}],
        effective_from=date(2024, 1, 1),
        effective_to=None,
        status=RecordStatus.ACTIVE,
    )
    db.add(rule)
    await db.commit()
    await db.refresh(rule)
    return rule


@pytest.fixture
def lease_device_to(db):
    """Put a device under an ACTIVE lease held by ``intermediary``"""
    async def _lease_device_to(device, intermediary):
        order = Order(
            kind=OrderKind.LEASE,
            status=OrderStatus.ACTIVE,
            device_id=device.id,
            requester_id=intermediary.user_id,
            handler_type=HandlerType.ADMIN,
            handler_id="admin",
            requested_hours=200.0,
            start_date=date.today(),
            end_date=date.today() + timedelta(days=180),
        )
        db.add(order)
        await db.flush()
        lease = Lease(
            order_id=order.id,
            device_id=device.id,
            intermediary_id=intermediary.id,
            status=LeaseStatus.ACTIVE,
            commitment_type=CommitmentType.HOURS,
            commitment_value=200.0,
            start_date=date.today(),
            operators=[],
            attachments=[],
        )
        db.add(lease)
        await db.flush()
        device.current_lease_id = lease.id
        db.add(device)
        await db.commit()
        await db.refresh(lease)
        return lease
    return _lease_device_to


@pytest.fixture
def order_dates():
    start = date.today() + timedelta(days=2)
    return start, start + timedelta(days=3)


@pytest.fixture
async def client(session_factory, bus):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    async def override_rate_limited_user(current_user=Depends(get_current_user)):
        return current_user

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_event_bus] = lambda: bus
    app.dependency_overrides[rate_limited_user] = override_rate_limited_user

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    def _auth_headers(user):
        return {"Authorization": f"Bearer {create_access_token(user)}"}
    return _auth_headers


def pytest_configure(config):
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
    config.addinivalue_line(
        "markers", "unit: marks tests as unit tests"
    )
    config.addinivalue_line(
        "markers", "pricing: marks tests related to pricing rules and thresholds"
    )
    config.addinivalue_line(
        "markers", "orders: marks tests related to the order lifecycle"
    )
    config.addinivalue_line(
        "markers", "leases: marks tests related to the lease lifecycle"
    )
    config.addinivalue_line(
        "markers", "audit: marks tests related to audit logging"
    )
