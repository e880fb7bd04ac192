"""
Tests for vehicle listing endpoints and date availability.
"""

from datetime import date

import pytest
from httpx import AsyncClient

from autofleet.models.enums import BookingStatus
from conftest import make_booking


@pytest.mark.asyncio
async def test_owner_lists_rental_vehicle(client: AsyncClient, owner_headers, owner):
    response = await client.post(
        "/api/v1/vehicles/",
        json={
            "make": "Suzuki",
            "model": "Swift",
            "year": 2022,
            "license_plate": "RAF 789 C",
            "listing_type": "rent",
            "daily_rate": "35.00",
        },
        headers=owner_headers,
    )
    assert response.status_code == 201
    data = response.json()
    assert data["owner_id"] == owner.id
    assert data["status"] == "available"
    assert data["selling_price"] is None


@pytest.mark.asyncio
async def test_customer_cannot_list_vehicle(client: AsyncClient, customer_headers):
    response = await client.post(
        "/api/v1/vehicles/",
        json={"make": "Kia", "model": "Rio", "year": 2020, "license_plate": "RAG 1", "daily_rate": "20"},
        headers=customer_headers,
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_sale_listing_with_daily_rate_is_rejected(client: AsyncClient, owner_headers):
    response = await client.post(
        "/api/v1/vehicles/",
        json={
            "make": "Kia",
            "model": "Rio",
            "year": 2020,
            "license_plate": "RAG 2",
            "listing_type": "sale",
            "daily_rate": "20",
            "selling_price": "9000",
        },
        headers=owner_headers,
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_duplicate_license_plate_conflicts(client: AsyncClient, owner_headers, rental_vehicle):
    response = await client.post(
        "/api/v1/vehicles/",
        json={"make": "Kia", "model": "Rio", "year": 2020, "license_plate": rental_vehicle.license_plate, "daily_rate": "20"},
        headers=owner_headers,
    )
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_list_vehicles_filters_by_listing_type(client: AsyncClient, rental_vehicle, sale_vehicle):
    response = await client.get("/api/v1/vehicles/", params={"listing_type": "sale"})
    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 1
    assert data["vehicles"][0]["id"] == sale_vehicle.id
    assert data["cached"] is False


@pytest.mark.asyncio
async def test_get_vehicle_not_found(client: AsyncClient):
    response = await client.get("/api/v1/vehicles/9999")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_availability_reports_conflicts(client: AsyncClient, db_session, customer, rental_vehicle, future):
    await make_booking(db_session, customer, rental_vehicle, future(10), future(12), status=BookingStatus.CONFIRMED)

    busy = await client.get(
        f"/api/v1/vehicles/{rental_vehicle.id}/availability",
        params={"start_date": future(11).isoformat(), "end_date": future(13).isoformat()},
    )
    assert busy.status_code == 200
    assert busy.json()["available"] is False
    assert busy.json()["booked_ranges"] == [
        {"start_date": future(10).isoformat(), "end_date": future(12).isoformat()}
    ]

    free = await client.get(
        f"/api/v1/vehicles/{rental_vehicle.id}/availability",
        params={"start_date": future(13).isoformat(), "end_date": future(15).isoformat()},
    )
    assert free.json()["available"] is True


@pytest.mark.asyncio
async def test_availability_needs_both_dates(client: AsyncClient, rental_vehicle):
    response = await client.get(
        f"/api/v1/vehicles/{rental_vehicle.id}/availability",
        params={"start_date": date(2030, 1, 1).isoformat()},
    )
    assert response.status_code == 400
