"""
Tests for booking endpoints: creation, listing, status changes and cancellation.
"""

from datetime import date, datetime, timezone
from decimal import Decimal

import pytest
from httpx import AsyncClient

from autofleet.models.enums import BookingStatus, VehicleStatus
from conftest import headers_for, make_booking, rental_payload


@pytest.mark.asyncio
async def test_create_rental_booking(client: AsyncClient, customer_headers, rental_vehicle, future, event_bus):
    """Successful booking returns the joined projection with both durations."""
    response = await client.post(
        "/api/v1/bookings/",
        json=rental_payload(rental_vehicle, future(10), future(13)),
        headers=customer_headers,
    )
    assert response.status_code == 201
    data = response.json()
    assert data["status"] == "pending"
    assert data["payment_status"] == "pending"
    assert Decimal(data["total_amount"]) == Decimal("150")
    assert data["duration_days"] == 3
    assert data["calendar_days"] == 4
    assert data["vehicle"]["id"] == rental_vehicle.id
    assert data["owner"]["email"] == "owner@example.com"
    assert data["customer"]["email"] == "customer@example.com"
    assert event_bus.types() == ["booking.created"]


@pytest.mark.asyncio
async def test_create_booking_unauthenticated(client: AsyncClient, rental_vehicle, future):
    response = await client.post(
        "/api/v1/bookings/",
        json=rental_payload(rental_vehicle, future(1), future(2)),
    )
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_overlapping_booking_returns_409(client: AsyncClient, customer, other_customer, rental_vehicle, future):
    first = await client.post(
        "/api/v1/bookings/",
        json=rental_payload(rental_vehicle, future(10), future(12)),
        headers=headers_for(customer),
    )
    assert first.status_code == 201

    second = await client.post(
        "/api/v1/bookings/",
        json=rental_payload(rental_vehicle, future(11), future(14)),
        headers=headers_for(other_customer),
    )
    assert second.status_code == 409
    assert second.json()["error"] == "conflict"

    adjacent = await client.post(
        "/api/v1/bookings/",
        json=rental_payload(rental_vehicle, future(13), future(15)),
        headers=headers_for(other_customer),
    )
    assert adjacent.status_code == 201


@pytest.mark.asyncio
async def test_unavailable_vehicle_returns_invalid_state(client: AsyncClient, db_session, customer_headers, rental_vehicle, future):
    rental_vehicle.status = VehicleStatus.INACTIVE
    await db_session.commit()

    response = await client.post(
        "/api/v1/bookings/",
        json=rental_payload(rental_vehicle, future(1), future(2)),
        headers=customer_headers,
    )
    assert response.status_code == 400
    assert response.json() == {"error": "invalid_state", "detail": "Vehicle is not available"}


@pytest.mark.asyncio
async def test_past_pickup_is_a_validation_error(client: AsyncClient, customer_headers, rental_vehicle, future):
    response = await client.post(
        "/api/v1/bookings/",
        json=rental_payload(rental_vehicle, future(-2), future(1)),
        headers=customer_headers,
    )
    assert response.status_code == 400
    assert response.json()["error"] == "validation_error"


@pytest.mark.asyncio
async def test_unknown_payment_method_is_schema_error(client: AsyncClient, customer_headers, rental_vehicle, future):
    response = await client.post(
        "/api/v1/bookings/",
        json=rental_payload(rental_vehicle, future(1), future(2), payment_method="cash"),
        headers=customer_headers,
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_book_nonexistent_vehicle(client: AsyncClient, customer_headers):
    response = await client.post(
        "/api/v1/bookings/",
        json={"vehicle_id": 99999, "pickup_location": "Kigali", "payment_method": "card"},
        headers=customer_headers,
    )
    assert response.status_code == 404
    assert response.json()["error"] == "not_found"


@pytest.mark.asyncio
async def test_second_sale_booking_fails(client: AsyncClient, customer, other_customer, sale_vehicle):
    payload = {"vehicle_id": sale_vehicle.id, "pickup_location": "Showroom", "payment_method": "card"}
    first = await client.post("/api/v1/bookings/", json=payload, headers=headers_for(customer))
    assert first.status_code == 201
    assert first.json()["calendar_days"] is None

    second = await client.post("/api/v1/bookings/", json=payload, headers=headers_for(other_customer))
    assert second.status_code == 400
    assert second.json()["error"] == "invalid_state"


@pytest.mark.asyncio
async def test_create_then_cancel_round_trip(client: AsyncClient, db_session, customer_headers, rental_vehicle, future):
    """Vehicle ends up where it started after create -> cancel."""
    created = await client.post(
        "/api/v1/bookings/",
        json=rental_payload(rental_vehicle, future(5), future(7)),
        headers=customer_headers,
    )
    booking_id = created.json()["id"]

    cancel = await client.delete(f"/api/v1/bookings/{booking_id}", headers=customer_headers)
    assert cancel.status_code == 200
    assert cancel.json()["status"] == "cancelled"

    await db_session.refresh(rental_vehicle)
    assert rental_vehicle.status == VehicleStatus.AVAILABLE

    again = await client.delete(f"/api/v1/bookings/{booking_id}", headers=customer_headers)
    assert again.status_code == 400
    assert again.json()["error"] == "invalid_state"


@pytest.mark.asyncio
async def test_owner_confirms_booking(client: AsyncClient, db_session, customer, owner_headers, rental_vehicle):
    booking = await make_booking(db_session, customer, rental_vehicle, date(2024, 1, 1), date(2024, 1, 3))

    response = await client.put(
        f"/api/v1/bookings/{booking.id}/status",
        json={"status": "confirmed"},
        headers=owner_headers,
    )
    assert response.status_code == 200
    assert response.json()["status"] == "confirmed"


@pytest.mark.asyncio
async def test_customer_cannot_confirm(client: AsyncClient, db_session, customer, customer_headers, rental_vehicle):
    booking = await make_booking(db_session, customer, rental_vehicle, date(2024, 1, 1), date(2024, 1, 3))

    response = await client.put(
        f"/api/v1/bookings/{booking.id}/status",
        json={"status": "confirmed"},
        headers=customer_headers,
    )
    assert response.status_code == 403
    assert response.json()["error"] == "forbidden"


@pytest.mark.asyncio
async def test_admin_activation_marks_vehicle_rented(client: AsyncClient, db_session, customer, admin_headers, rental_vehicle):
    booking = await make_booking(
        db_session, customer, rental_vehicle,
        date(2024, 1, 1), date(2024, 1, 3), status=BookingStatus.CONFIRMED,
    )
    response = await client.put(
        f"/api/v1/bookings/{booking.id}/status",
        json={"status": "active"},
        headers=admin_headers,
    )
    assert response.status_code == 200
    assert response.json()["vehicle"]["status"] == "rented"


@pytest.mark.asyncio
async def test_get_booking_access(client: AsyncClient, db_session, customer, other_customer, owner_headers, rental_vehicle):
    booking = await make_booking(db_session, customer, rental_vehicle, date(2024, 1, 1), date(2024, 1, 3))

    assert (await client.get(f"/api/v1/bookings/{booking.id}", headers=headers_for(customer))).status_code == 200
    assert (await client.get(f"/api/v1/bookings/{booking.id}", headers=owner_headers)).status_code == 200
    assert (await client.get(f"/api/v1/bookings/{booking.id}", headers=headers_for(other_customer))).status_code == 403
    assert (await client.get("/api/v1/bookings/4242", headers=headers_for(customer))).status_code == 404


@pytest.mark.asyncio
async def test_list_bookings_is_role_scoped(client: AsyncClient, db_session, customer, other_customer, owner_headers, admin_headers, rental_vehicle):
    await make_booking(db_session, customer, rental_vehicle, date(2024, 1, 1), date(2024, 1, 3))
    await make_booking(db_session, other_customer, rental_vehicle, date(2024, 2, 1), date(2024, 2, 3))

    mine = await client.get("/api/v1/bookings/", headers=headers_for(customer))
    assert mine.status_code == 200
    assert mine.json()["total"] == 1
    assert mine.json()["bookings"][0]["customer_id"] == customer.id

    assert (await client.get("/api/v1/bookings/", headers=owner_headers)).json()["total"] == 2

    filtered = await client.get(
        "/api/v1/bookings/",
        params={"customer_id": other_customer.id},
        headers=admin_headers,
    )
    assert filtered.json()["total"] == 1


@pytest.mark.asyncio
async def test_active_bookings_cover_today(client: AsyncClient, db_session, customer, customer_headers, rental_vehicle, sale_vehicle, future):
    running = await make_booking(
        db_session, customer, rental_vehicle, future(-1), future(1), status=BookingStatus.ACTIVE,
    )
    await make_booking(db_session, customer, sale_vehicle, future(5), future(5), status=BookingStatus.CONFIRMED)

    response = await client.get("/api/v1/bookings/active", headers=customer_headers)
    assert response.status_code == 200
    assert [b["id"] for b in response.json()] == [running.id]


@pytest.mark.asyncio
async def test_purge_cancelled_is_admin_only(client: AsyncClient, db_session, customer, customer_headers, admin_headers, rental_vehicle):
    old = await make_booking(
        db_session, customer, rental_vehicle,
        date(2020, 1, 1), date(2020, 1, 3), status=BookingStatus.CANCELLED,
    )
    old.updated_at = datetime(2020, 1, 4, tzinfo=timezone.utc)
    await db_session.commit()
    await make_booking(
        db_session, customer, rental_vehicle,
        date(2024, 1, 1), date(2024, 1, 3), status=BookingStatus.CANCELLED,
    )

    denied = await client.delete("/api/v1/bookings/admin/cancelled", headers=customer_headers)
    assert denied.status_code == 403

    response = await client.delete(
        "/api/v1/bookings/admin/cancelled",
        params={"older_than_days": 90},
        headers=admin_headers,
    )
    assert response.status_code == 200
    assert response.json() == {"deleted": 1, "older_than_days": 90}
