"""
Booking endpoints: creation, listing, status transitions, cancellation and
payments.

Fixed paths (/active, /verify-payment, /admin/cancelled) are declared before
/{booking_id} so they are not captured by it.
"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from autofleet.core.config import get_settings
from autofleet.core.security import Actor, get_current_actor
from autofleet.db.session import get_db
from autofleet.infrastructure.paypack_client import get_payment_gateway
from autofleet.models.enums import BookingStatus
from autofleet.schemas.booking import (
    BookingActionResponse,
    BookingCreate,
    BookingDetail,
    BookingListResponse,
    BookingStatusUpdate,
    PaymentRecord,
    PaymentVerify,
    PurgeResponse,
)
from autofleet.services import booking_service, payment_service
from autofleet.services.event_bus import EventBus, get_event_bus
from autofleet.services.interfaces.payment_gateway import PaymentGateway

settings = get_settings()
router = APIRouter(prefix="/bookings", tags=["Bookings"])


@router.post("/", response_model=BookingDetail, status_code=status.HTTP_201_CREATED)
async def create_booking(
    booking_data: BookingCreate,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
    events: EventBus = Depends(get_event_bus),
):
    """
    Book a vehicle.

    Rentals need pickup and return dates and fail with 409 when the range
    overlaps an existing pending, confirmed or active booking. Sales ignore
    the dates; a vehicle that is no longer available fails with 400.
    """
    return await booking_service.create_booking(db, events, actor, booking_data)


@router.get("/", response_model=BookingListResponse)
async def list_bookings(
    status_filter: Optional[BookingStatus] = Query(None, alias="status"),
    vehicle_id: Optional[int] = Query(None),
    customer_id: Optional[int] = Query(None),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    """Bookings visible to the caller: own bookings, own vehicles' bookings, or all for admins."""
    return await booking_service.list_bookings(
        db,
        actor,
        status=status_filter,
        vehicle_id=vehicle_id,
        customer_id=customer_id,
        start_date=start_date,
        end_date=end_date,
        page=page,
        limit=limit,
    )


@router.get("/active", response_model=list[BookingDetail])
async def list_active_bookings(
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    """Confirmed or active bookings running today."""
    return await booking_service.list_active_bookings(db, actor)


@router.post("/verify-payment", response_model=BookingDetail)
async def verify_payment(
    payload: PaymentVerify,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
    events: EventBus = Depends(get_event_bus),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    """Confirm a booking after the payment gateway reports its transaction as completed."""
    return await payment_service.verify_payment(
        db, events, gateway, payload.booking_id, payload.transaction_ref, actor=actor
    )


@router.delete("/admin/cancelled", response_model=PurgeResponse)
async def purge_cancelled_bookings(
    older_than_days: int = Query(settings.CANCELLED_RETENTION_DAYS, ge=0),
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    """Maintenance: delete cancelled bookings older than the retention window. Admin only."""
    return await booking_service.purge_cancelled_bookings(db, actor, older_than_days)


@router.get("/{booking_id}", response_model=BookingDetail)
async def get_booking(
    booking_id: int,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    return await booking_service.get_booking(db, booking_id, actor)


@router.put("/{booking_id}/status", response_model=BookingDetail)
async def update_booking_status(
    booking_id: int,
    payload: BookingStatusUpdate,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
    events: EventBus = Depends(get_event_bus),
):
    """
    Move a booking through its lifecycle.

    Owners confirm or cancel bookings on their vehicles, customers may only
    cancel, admins may set any status.
    """
    return await booking_service.update_status(db, events, booking_id, actor, payload.status)


@router.post("/{booking_id}/payment", response_model=BookingActionResponse)
async def record_payment(
    booking_id: int,
    payload: PaymentRecord,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
    events: EventBus = Depends(get_event_bus),
):
    booking = await payment_service.record_payment(
        db, events, booking_id, actor, payload.payment_method, payload.transaction_id
    )
    return BookingActionResponse(
        message="Payment recorded successfully",
        booking_id=booking.id,
        status=booking.status,
        payment_status=booking.payment_status,
    )


@router.delete("/{booking_id}", response_model=BookingActionResponse)
async def cancel_booking(
    booking_id: int,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
    events: EventBus = Depends(get_event_bus),
):
    """Cancel a pending or confirmed booking."""
    booking = await booking_service.cancel_booking(db, events, booking_id, actor)
    return BookingActionResponse(
        message="Booking cancelled successfully",
        booking_id=booking.id,
        status=booking.status,
        payment_status=booking.payment_status,
    )
