"""
Tests for the app shell: health, request ids and log value flattening.
"""

from datetime import date
from decimal import Decimal

import pytest
from httpx import AsyncClient

from autofleet.core.logging import flatten_domain_values
from autofleet.models.enums import BookingStatus


@pytest.mark.asyncio
async def test_health_reports_database_and_cache(client: AsyncClient):
    response = await client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["database"] == "ok"
    assert data["cache"] == {"status": "disabled"}


@pytest.mark.asyncio
async def test_request_id_is_echoed(client: AsyncClient):
    response = await client.get("/", headers={"X-Request-ID": "trace-42"})
    assert response.headers["X-Request-ID"] == "trace-42"
    assert response.headers["X-Response-Time"].endswith("ms")


@pytest.mark.asyncio
async def test_request_id_is_generated(client: AsyncClient):
    response = await client.get("/")
    assert response.headers["X-Request-ID"]


def test_log_values_are_flattened():
    event = flatten_domain_values(None, "info", {
        "event": "booking_created",
        "status": BookingStatus.CONFIRMED,
        "start_date": date(2024, 1, 3),
        "total_amount": Decimal("150.00"),
        "booking_id": 7,
    })
    assert event == {
        "event": "booking_created",
        "status": "confirmed",
        "start_date": "2024-01-03",
        "total_amount": "150.00",
        "booking_id": 7,
    }
