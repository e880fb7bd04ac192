"""
Booking lifecycle: creation, status transitions, cancellation and cleanup.

CONCURRENCY STRATEGY: Pessimistic Vehicle Lock
==============================================

Problem:
  Two customers ask for the same car on overlapping dates at the same time.
  Both run the conflict query, both see a free calendar, both insert.
  Result: a double-booked vehicle.

Solution:
  Every operation that reads a vehicle's calendar or writes its status starts
  by locking the vehicle row (SELECT ... FOR UPDATE). The second request
  blocks on the lock until the first commits, then re-reads the vehicle
  status and re-runs the conflict query against the committed data.

  1. Lock the vehicle row
  2. Check vehicle status, validate, run the conflict query
  3. Insert the booking (or write the new status plus the vehicle side
     effect) and commit once
  4. After the commit: publish the domain event, invalidate the listing cache

  Contention is per vehicle, so throughput across the fleet is unaffected.
  On PostgreSQL the `bookings_no_overlap` exclusion constraint is the final
  safety net; SQLite (tests) has no row locks and relies on the query alone.

Alternative approaches considered:
  - Optimistic locking with a version column: the calendar is a set of rows,
    not a counter on the vehicle, so there is no single version to compare.
  - SERIALIZABLE isolation: correct but surfaces as retryable serialization
    failures on every hot vehicle.
  - Exclusion constraint alone: catches rentals, but sales have no date
    range to exclude on.

Notifications never run inside the transaction: events go to the EventBus
after commit and a failed delivery is only logged.
"""

import random
import string
import time
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from autofleet.core.config import get_settings
from autofleet.core.exceptions import (
    BookingError,
    Conflict,
    Forbidden,
    InvalidState,
    NotFound,
    ValidationError,
)
from autofleet.core.logging import get_logger
from autofleet.core.metrics import (
    booking_latency,
    booking_price_mismatch,
    record_booking_attempt,
    record_transition,
)
from autofleet.core.security import Actor
from autofleet.models.booking import Booking
from autofleet.models.enums import (
    OCCUPYING_STATUSES,
    BookingStatus,
    ListingType,
    PaymentMethod,
    PaymentStatus,
    UserRole,
    VehicleStatus,
)
from autofleet.models.vehicle import Vehicle
from autofleet.schemas.booking import BookingCreate, BookingDetail
from autofleet.schemas.user import PartySummary
from autofleet.schemas.vehicle import VehicleSummary
from autofleet.services import cache_service
from autofleet.services.booking_repository import BookingRepository
from autofleet.services.booking_state_machine import (
    CANCELLABLE_STATUSES,
    authorize_transition,
    is_party,
    vehicle_status_after,
)
from autofleet.services.event_bus import (
    BookingCancelled,
    BookingCreated,
    BookingStatusChanged,
    EventBus,
)
from autofleet.services.pricing_service import (
    amounts_match,
    compute_expected_price,
    display_duration_days,
    pricing_duration_days,
)

logger = get_logger(__name__)
settings = get_settings()

# Statuses in which a booking holds the vehicle out of the available pool
HOLDING_STATUSES = frozenset({BookingStatus.CONFIRMED, BookingStatus.ACTIVE, BookingStatus.DISPUTED})

_REF_ALPHABET = string.digits + string.ascii_lowercase


def generate_transaction_ref() -> str:
    """TXN_<epoch milliseconds>_<9 base36 characters>."""
    suffix = "".join(random.choices(_REF_ALPHABET, k=9))
    return f"TXN_{int(time.time() * 1000)}_{suffix}"


def build_booking_detail(booking: Booking) -> BookingDetail:
    """Project a booking loaded by find_detail into the API shape."""
    vehicle = booking.vehicle
    if vehicle.is_sale:
        duration, calendar_days = 0, None
    else:
        duration = pricing_duration_days(booking.start_date, booking.end_date)
        calendar_days = display_duration_days(booking.start_date, booking.end_date)

    base = {
        column.name: getattr(booking, column.name)
        for column in Booking.__table__.columns
        if column.name != "notes"
    }
    return BookingDetail(
        **base,
        duration_days=duration,
        calendar_days=calendar_days,
        vehicle=VehicleSummary.model_validate(vehicle),
        customer=PartySummary.model_validate(booking.customer),
        owner=PartySummary.model_validate(vehicle.owner),
    )


async def load_detail(repo: BookingRepository, booking_id: int) -> Booking:
    booking = await repo.find_detail(booking_id)
    if booking is None:
        raise NotFound(f"Booking {booking_id} not found")
    return booking


async def apply_vehicle_status(
    repo: BookingRepository,
    booking: Booking,
    vehicle: Vehicle,
    new_status: Optional[VehicleStatus],
) -> None:
    """
    Stage the vehicle side effect of a booking transition.

    Releasing a vehicle back to `available` keeps it `rented` while another
    booking on it is still active.
    """
    if new_status is None or vehicle.status == new_status:
        return
    if new_status == VehicleStatus.AVAILABLE and await repo.has_active_booking(
        vehicle.id, exclude_id=booking.id
    ):
        new_status = VehicleStatus.RENTED
        if vehicle.status == new_status:
            return
    logger.info(
        "vehicle_status_changed",
        vehicle_id=vehicle.id,
        booking_id=booking.id,
        old_status=vehicle.status.value,
        new_status=new_status.value,
    )
    repo.update_vehicle_status(vehicle, new_status)


def _validate_rental_dates(data: BookingCreate, today: date) -> tuple[date, date]:
    if data.pickup_date is None or data.return_date is None:
        raise ValidationError("Pickup date and return date are required for rentals")
    if data.pickup_date < today:
        raise ValidationError("Pickup date cannot be in the past")
    if data.return_date <= data.pickup_date:
        raise ValidationError("Return date must be after pickup date")
    return data.pickup_date, data.return_date


async def create_booking(
    db: AsyncSession,
    events: EventBus,
    actor: Actor,
    data: BookingCreate,
    today: Optional[date] = None,
) -> BookingDetail:
    """
    Create a pending booking for a rental or a sale.

    The vehicle row stays locked from the status check to the commit, so a
    concurrent request for the same vehicle sees this booking once it gets
    the lock.
    """
    today = today or date.today()
    repo = BookingRepository(db)

    with booking_latency.time():
        try:
            vehicle = await repo.lock_vehicle(data.vehicle_id)
            if vehicle is None:
                raise NotFound(f"Vehicle {data.vehicle_id} not found")

            if vehicle.status != VehicleStatus.AVAILABLE:
                logger.warning(
                    "booking_vehicle_unavailable",
                    vehicle_id=vehicle.id,
                    vehicle_status=vehicle.status.value,
                )
                raise InvalidState("Vehicle is not available")

            if vehicle.is_sale:
                if data.pickup_date is not None and data.pickup_date < today:
                    raise ValidationError("Pickup date cannot be in the past")
                if await repo.has_open_booking(vehicle.id):
                    logger.warning("booking_sale_already_claimed", vehicle_id=vehicle.id)
                    raise InvalidState("Vehicle is not available")
                start_date = end_date = data.pickup_date or today
            else:
                start_date, end_date = _validate_rental_dates(data, today)

            if data.payment_method == PaymentMethod.MOBILE and not data.telephone:
                raise ValidationError("Telephone number is required for mobile payment")

            if not vehicle.is_sale:
                conflicts = await repo.find_conflicting(vehicle.id, start_date, end_date)
                if conflicts:
                    logger.warning(
                        "booking_conflict",
                        vehicle_id=vehicle.id,
                        start_date=str(start_date),
                        end_date=str(end_date),
                        conflicting_ids=[b.id for b in conflicts],
                    )
                    raise Conflict("Vehicle is already booked for the selected dates")

            expected = compute_expected_price(vehicle, start_date, end_date)
            total_amount = expected if data.total_price is None else Decimal(data.total_price)
            if not amounts_match(expected, total_amount, settings.PRICE_MISMATCH_TOLERANCE):
                booking_price_mismatch.inc()
                logger.warning(
                    "booking_price_mismatch",
                    vehicle_id=vehicle.id,
                    expected=str(expected),
                    client_price=str(total_amount),
                )

            booking = repo.insert(Booking(
                customer_id=actor.user_id,
                vehicle_id=vehicle.id,
                start_date=start_date,
                end_date=end_date,
                pickup_location=data.pickup_location,
                total_amount=total_amount,
                status=BookingStatus.PENDING,
                payment_status=PaymentStatus.PENDING,
                payment_method=data.payment_method.value,
                payment_transaction_id=generate_transaction_ref(),
                notes=data.notes,
            ))
            await repo.commit()
        except Conflict:
            record_booking_attempt("conflict")
            raise
        except InvalidState:
            record_booking_attempt("unavailable")
            raise
        except (ValidationError, NotFound):
            record_booking_attempt("invalid")
            raise
        except BookingError:
            record_booking_attempt("error")
            raise

    record_booking_attempt("success")
    detail = await load_detail(repo, booking.id)
    vehicle = detail.vehicle

    logger.info(
        "booking_created",
        booking_id=detail.id,
        customer_id=actor.user_id,
        vehicle_id=vehicle.id,
        listing_type=vehicle.listing_type.value,
        start_date=str(start_date),
        end_date=str(end_date),
        total_amount=str(total_amount),
    )

    events.publish(BookingCreated(
        booking_id=detail.id,
        customer_id=detail.customer_id,
        owner_id=vehicle.owner_id,
        vehicle_id=vehicle.id,
        vehicle_name=vehicle.display_name,
        listing_type=vehicle.listing_type.value,
        start_date=start_date,
        end_date=end_date,
        total_amount=total_amount,
        pickup_location=detail.pickup_location,
        payment_method=detail.payment_method,
        duration_days=0 if vehicle.is_sale else pricing_duration_days(start_date, end_date),
    ))
    return build_booking_detail(detail)


async def get_booking(db: AsyncSession, booking_id: int, actor: Actor) -> BookingDetail:
    booking = await load_detail(BookingRepository(db), booking_id)
    if not is_party(actor, booking, booking.vehicle.owner_id):
        raise Forbidden("Access denied")
    return build_booking_detail(booking)


async def list_bookings(
    db: AsyncSession,
    actor: Actor,
    status: Optional[BookingStatus] = None,
    vehicle_id: Optional[int] = None,
    customer_id: Optional[int] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    page: int = 1,
    limit: int = 10,
) -> dict:
    bookings, total = await BookingRepository(db).list_for_actor(
        actor.user_id,
        actor.role,
        status=status,
        vehicle_id=vehicle_id,
        customer_id=customer_id,
        start_date=start_date,
        end_date=end_date,
        page=page,
        limit=limit,
    )
    return {
        "bookings": [build_booking_detail(b) for b in bookings],
        "total": total,
        "page": page,
        "limit": limit,
        "total_pages": (total + limit - 1) // limit if limit else 0,
    }


async def list_active_bookings(
    db: AsyncSession,
    actor: Actor,
    today: Optional[date] = None,
) -> list[BookingDetail]:
    """Confirmed or active bookings whose range covers today."""
    bookings, _ = await BookingRepository(db).list_for_actor(
        actor.user_id,
        actor.role,
        covering=today or date.today(),
        statuses=(BookingStatus.CONFIRMED, BookingStatus.ACTIVE),
        page=1,
        limit=100,
    )
    return [build_booking_detail(b) for b in bookings]


async def locked_detail(repo: BookingRepository, booking_id: int) -> Booking:
    """Lock the booking's vehicle, then load the booking fresh under the lock."""
    booking = await repo.find_by_id(booking_id)
    if booking is None:
        raise NotFound(f"Booking {booking_id} not found")
    await repo.lock_vehicle(booking.vehicle_id)
    return await load_detail(repo, booking_id)


def _status_event(event_cls, booking: Booking, old_status: BookingStatus, actor: Actor):
    vehicle = booking.vehicle
    return event_cls(
        booking_id=booking.id,
        customer_id=booking.customer_id,
        owner_id=vehicle.owner_id,
        vehicle_id=vehicle.id,
        vehicle_name=vehicle.display_name,
        old_status=old_status.value,
        new_status=booking.status.value,
        actor_id=actor.user_id,
    )


async def _check_reoccupation(repo: BookingRepository, booking: Booking, vehicle: Vehicle) -> None:
    """A booking revived out of a terminal state must not collide with the live calendar."""
    if vehicle.is_sale:
        taken = await repo.has_open_booking(vehicle.id, exclude_id=booking.id)
    else:
        taken = bool(await repo.find_conflicting(
            vehicle.id, booking.start_date, booking.end_date, exclude_id=booking.id,
        ))
    if taken:
        logger.warning(
            "booking_reoccupation_conflict",
            booking_id=booking.id,
            vehicle_id=vehicle.id,
            start_date=str(booking.start_date),
            end_date=str(booking.end_date),
        )
        await repo.rollback()
        raise Conflict("Vehicle is already booked for the selected dates")


async def update_status(
    db: AsyncSession,
    events: EventBus,
    booking_id: int,
    actor: Actor,
    new_status: BookingStatus,
) -> BookingDetail:
    """
    Move a booking to `new_status` and apply the paired vehicle side effect.

    The booking write and the vehicle write commit together or not at all.
    """
    repo = BookingRepository(db)
    booking = await locked_detail(repo, booking_id)
    vehicle = booking.vehicle
    authorize_transition(actor, booking, vehicle.owner_id, new_status)

    old_status = BookingStatus(booking.status)
    if old_status == new_status:
        await repo.rollback()
        return build_booking_detail(booking)
    if old_status not in OCCUPYING_STATUSES and new_status in OCCUPYING_STATUSES:
        await _check_reoccupation(repo, booking, vehicle)

    repo.update_status(booking, new_status)
    vehicle_target = vehicle_status_after(new_status, ListingType(vehicle.listing_type))
    if new_status == BookingStatus.CANCELLED and old_status not in HOLDING_STATUSES:
        vehicle_target = None
    await apply_vehicle_status(repo, booking, vehicle, vehicle_target)
    await repo.commit()

    record_transition(old_status.value, new_status.value)
    booking = await load_detail(repo, booking_id)
    logger.info(
        "booking_status_changed",
        booking_id=booking_id,
        actor_id=actor.user_id,
        actor_role=actor.role.value,
        old_status=old_status.value,
        new_status=new_status.value,
        vehicle_status=booking.vehicle.status.value,
    )

    event_cls = BookingCancelled if new_status == BookingStatus.CANCELLED else BookingStatusChanged
    events.publish(_status_event(event_cls, booking, old_status, actor))
    if vehicle_target is not None:
        await cache_service.invalidate_vehicle_cache()
    return build_booking_detail(booking)


async def cancel_booking(
    db: AsyncSession,
    events: EventBus,
    booking_id: int,
    actor: Actor,
) -> BookingDetail:
    """
    Cancel a pending or confirmed booking.

    The customer, the vehicle owner or an admin may cancel. A confirmed
    booking gives its vehicle back to the available pool.
    """
    repo = BookingRepository(db)
    booking = await locked_detail(repo, booking_id)
    vehicle = booking.vehicle

    old_status = BookingStatus(booking.status)
    if old_status not in CANCELLABLE_STATUSES:
        await repo.rollback()
        raise InvalidState(f"Cannot cancel a booking that is {old_status.value}")
    if not is_party(actor, booking, vehicle.owner_id):
        await repo.rollback()
        raise Forbidden("Access denied")

    repo.update_status(booking, BookingStatus.CANCELLED)
    released = old_status == BookingStatus.CONFIRMED
    if released:
        await apply_vehicle_status(repo, booking, vehicle, VehicleStatus.AVAILABLE)
    await repo.commit()

    record_transition(old_status.value, BookingStatus.CANCELLED.value)
    booking = await load_detail(repo, booking_id)
    logger.info(
        "booking_cancelled",
        booking_id=booking_id,
        actor_id=actor.user_id,
        old_status=old_status.value,
        vehicle_released=released,
    )

    events.publish(_status_event(BookingCancelled, booking, old_status, actor))
    if released:
        await cache_service.invalidate_vehicle_cache()
    return build_booking_detail(booking)


async def purge_cancelled_bookings(
    db: AsyncSession,
    actor: Actor,
    older_than_days: Optional[int] = None,
) -> dict:
    """Hard-delete cancelled bookings untouched for `older_than_days`."""
    if actor.role != UserRole.ADMIN:
        raise Forbidden("Admin access required")

    days = settings.CANCELLED_RETENTION_DAYS if older_than_days is None else older_than_days
    cutoff = datetime.now(timezone.utc) - timedelta(days=days)

    repo = BookingRepository(db)
    deleted = await repo.purge_cancelled(cutoff)
    await repo.commit()

    logger.info("cancelled_bookings_purged", deleted=deleted, older_than_days=days, actor_id=actor.user_id)
    return {"deleted": deleted, "older_than_days": days}
