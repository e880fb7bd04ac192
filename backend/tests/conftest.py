"""
Pytest fixtures for test database, client, users, vehicles and fakes.

The database comes from TEST_DATABASE_URL (in-memory SQLite by default).
Tables are created and dropped per test for isolation. The event bus and the
payment gateway are swapped for in-memory fakes through dependency overrides.
"""

import os

os.environ.setdefault("REDIS_ENABLED", "false")
os.environ.setdefault("NOTIFICATION_BACKEND", "log")

from datetime import date, timedelta
from decimal import Decimal
from typing import AsyncGenerator, Optional

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from autofleet.main import app
from autofleet.db.base import Base
from autofleet.db.session import get_db
from autofleet.core.security import Actor, create_access_token
from autofleet.infrastructure.paypack_client import get_payment_gateway
from autofleet.models import Booking, User, Vehicle
from autofleet.models.enums import BookingStatus, ListingType, UserRole, VehicleStatus
from autofleet.services.event_bus import EventBus, get_event_bus
from autofleet.services.interfaces.payment_gateway import GatewayTransaction, PaymentGateway
from autofleet.services.notification_service import LoggingNotificationDispatcher

TEST_DATABASE_URL = os.environ.get("TEST_DATABASE_URL", "sqlite+aiosqlite:///:memory:")

IS_POSTGRES = TEST_DATABASE_URL.startswith("postgresql")


class CapturingEventBus(EventBus):
    """Keeps published events in memory instead of delivering them."""

    def __init__(self):
        super().__init__(LoggingNotificationDispatcher())
        self.published = []

    def publish(self, event) -> None:
        self.published.append(event)

    def types(self) -> list[str]:
        return [e.event_type for e in self.published]


class FakeGateway(PaymentGateway):
    name = "paypack"

    def __init__(self):
        self.status = "completed"
        self.amount: Optional[Decimal] = None
        self.error: Optional[Exception] = None
        self.calls: list[str] = []

    async def verify_transaction(self, reference: str) -> GatewayTransaction:
        self.calls.append(reference)
        if self.error is not None:
            raise self.error
        return GatewayTransaction(
            reference=reference,
            status=self.status,
            amount_paid=self.amount,
            currency="RWF",
        )


@pytest_asyncio.fixture(scope="function")
async def session_factory() -> AsyncGenerator[async_sessionmaker, None]:
    """Fresh schema per test; yields the session factory bound to it."""
    if IS_POSTGRES:
        engine = create_async_engine(TEST_DATABASE_URL, echo=False)
    else:
        engine = create_async_engine(
            TEST_DATABASE_URL,
            echo=False,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def event_bus() -> CapturingEventBus:
    return CapturingEventBus()


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest_asyncio.fixture(scope="function")
async def client(
    db_session: AsyncSession,
    event_bus: CapturingEventBus,
    gateway: FakeGateway,
) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client that overrides the DB, event bus and gateway dependencies."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_event_bus] = lambda: event_bus
    app.dependency_overrides[get_payment_gateway] = lambda: gateway

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


async def _add(db_session: AsyncSession, obj):
    db_session.add(obj)
    await db_session.commit()
    await db_session.refresh(obj)
    return obj


@pytest_asyncio.fixture
async def customer(db_session: AsyncSession) -> User:
    return await _add(db_session, User(
        email="customer@example.com",
        first_name="Alice",
        last_name="Mukamana",
        phone="+250788000001",
        role=UserRole.CUSTOMER,
    ))


@pytest_asyncio.fixture
async def other_customer(db_session: AsyncSession) -> User:
    return await _add(db_session, User(
        email="other@example.com",
        first_name="Bob",
        last_name="Habimana",
        role=UserRole.CUSTOMER,
    ))


@pytest_asyncio.fixture
async def owner(db_session: AsyncSession) -> User:
    return await _add(db_session, User(
        email="owner@example.com",
        first_name="Olivier",
        last_name="Nkusi",
        phone="+250788000002",
        role=UserRole.OWNER,
    ))


@pytest_asyncio.fixture
async def admin(db_session: AsyncSession) -> User:
    return await _add(db_session, User(
        email="admin@example.com",
        first_name="Ada",
        last_name="Admin",
        role=UserRole.ADMIN,
    ))


def headers_for(user: User) -> dict:
    """Authorization headers with a Bearer token for `user`."""
    return {"Authorization": f"Bearer {create_access_token(data={'sub': str(user.id)})}"}


def actor_for(user: User) -> Actor:
    return Actor(user_id=user.id, role=UserRole(user.role))


@pytest.fixture
def customer_headers(customer: User) -> dict:
    return headers_for(customer)


@pytest.fixture
def owner_headers(owner: User) -> dict:
    return headers_for(owner)


@pytest.fixture
def admin_headers(admin: User) -> dict:
    return headers_for(admin)


@pytest_asyncio.fixture
async def rental_vehicle(db_session: AsyncSession, owner: User) -> Vehicle:
    """Rental listing at 50 per day."""
    return await _add(db_session, Vehicle(
        owner_id=owner.id,
        make="Toyota",
        model="RAV4",
        year=2021,
        license_plate="RAD 123 A",
        vehicle_type="suv",
        listing_type=ListingType.RENT,
        daily_rate=Decimal("50.00"),
        status=VehicleStatus.AVAILABLE,
    ))


@pytest_asyncio.fixture
async def sale_vehicle(db_session: AsyncSession, owner: User) -> Vehicle:
    """Sale listing at 20000."""
    return await _add(db_session, Vehicle(
        owner_id=owner.id,
        make="Honda",
        model="Civic",
        year=2019,
        license_plate="RAE 456 B",
        vehicle_type="sedan",
        listing_type=ListingType.SALE,
        selling_price=Decimal("20000.00"),
        status=VehicleStatus.AVAILABLE,
    ))


@pytest.fixture
def future():
    """Date `n` days from today."""
    def _future(days: int) -> date:
        return date.today() + timedelta(days=days)
    return _future


def rental_payload(vehicle: Vehicle, start: date, end: date, **overrides) -> dict:
    payload = {
        "vehicle_id": vehicle.id,
        "pickup_location": "Kigali Airport",
        "pickup_date": start.isoformat(),
        "return_date": end.isoformat(),
        "payment_method": "card",
    }
    payload.update(overrides)
    return payload


async def make_booking(
    db_session: AsyncSession,
    customer: User,
    vehicle: Vehicle,
    start: date,
    end: date,
    status: BookingStatus = BookingStatus.PENDING,
    total_amount: Decimal = Decimal("100.00"),
) -> Booking:
    """Insert a booking directly, bypassing the lifecycle checks."""
    return await _add(db_session, Booking(
        customer_id=customer.id,
        vehicle_id=vehicle.id,
        start_date=start,
        end_date=end,
        pickup_location="Kigali",
        total_amount=total_amount,
        status=status,
        payment_method="card",
        payment_transaction_id="TXN_seed",
    ))
