"""
Concurrent booking attempts on one vehicle.

Row locks only exist on PostgreSQL; run with
TEST_DATABASE_URL=postgresql+asyncpg://.../autofleet_test to enable.
"""

import asyncio
from datetime import date

import pytest

from autofleet.core.exceptions import Conflict, InvalidState
from autofleet.schemas.booking import BookingCreate
from autofleet.services import booking_service
from conftest import IS_POSTGRES, CapturingEventBus, actor_for

pytestmark = pytest.mark.skipif(not IS_POSTGRES, reason="row locks need PostgreSQL")

TODAY = date(2023, 12, 20)


async def _attempt(session_factory, user, data):
    async with session_factory() as session:
        try:
            return await booking_service.create_booking(
                session, CapturingEventBus(), actor_for(user), data, today=TODAY
            )
        except (Conflict, InvalidState) as exc:
            return exc


@pytest.mark.asyncio
async def test_concurrent_sale_bookings_one_wins(session_factory, customer, other_customer, sale_vehicle):
    data = BookingCreate(vehicle_id=sale_vehicle.id, pickup_location="Showroom", payment_method="card")

    results = await asyncio.gather(
        _attempt(session_factory, customer, data),
        _attempt(session_factory, other_customer, data),
    )

    failures = [r for r in results if isinstance(r, Exception)]
    assert len(failures) == 1
    assert isinstance(failures[0], InvalidState)


@pytest.mark.asyncio
async def test_concurrent_overlapping_rentals_one_wins(session_factory, customer, other_customer, rental_vehicle):
    data = BookingCreate(
        vehicle_id=rental_vehicle.id,
        pickup_location="Kigali",
        pickup_date=date(2024, 1, 1),
        return_date=date(2024, 1, 3),
        payment_method="card",
    )

    results = await asyncio.gather(*[
        _attempt(session_factory, user, data)
        for user in (customer, other_customer, customer, other_customer)
    ])

    failures = [r for r in results if isinstance(r, Exception)]
    assert len(failures) == 3
    assert all(isinstance(f, Conflict) for f in failures)
