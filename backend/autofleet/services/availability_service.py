"""
Vehicle availability checks for rentals.

A booking occupies a vehicle's calendar while it is pending, confirmed or
active. Two inclusive ranges [s1, e1] and [s2, e2] overlap when
s1 <= e2 and e1 >= s2. The SQL predicate below spells the same test as three
containment cases (new start inside, new end inside, new range covering an
existing one), which is the shape the conflict query has always had.

Sale listings have no calendar: their availability is the vehicle status.
"""

from datetime import date
from typing import Optional

from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from autofleet.models.booking import Booking
from autofleet.models.enums import OCCUPYING_STATUSES, VehicleStatus
from autofleet.models.vehicle import Vehicle


def ranges_overlap(start_a: date, end_a: date, start_b: date, end_b: date) -> bool:
    return start_a <= end_b and end_a >= start_b


def overlap_clause(start_date: date, end_date: date):
    return or_(
        and_(Booking.start_date <= start_date, Booking.end_date >= start_date),
        and_(Booking.start_date <= end_date, Booking.end_date >= end_date),
        and_(Booking.start_date >= start_date, Booking.end_date <= end_date),
    )


def conflicting_bookings_query(
    vehicle_id: int,
    start_date: date,
    end_date: date,
    exclude_booking_id: Optional[int] = None,
):
    query = select(Booking).where(
        Booking.vehicle_id == vehicle_id,
        Booking.status.in_(OCCUPYING_STATUSES),
        overlap_clause(start_date, end_date),
    )
    if exclude_booking_id is not None:
        query = query.where(Booking.id != exclude_booking_id)
    return query


async def find_conflicts(
    db: AsyncSession,
    vehicle_id: int,
    start_date: date,
    end_date: date,
    exclude_booking_id: Optional[int] = None,
) -> list[Booking]:
    result = await db.execute(
        conflicting_bookings_query(vehicle_id, start_date, end_date, exclude_booking_id)
        .order_by(Booking.start_date.asc())
    )
    return list(result.scalars().all())


async def has_conflict(
    db: AsyncSession,
    vehicle_id: int,
    start_date: date,
    end_date: date,
    exclude_booking_id: Optional[int] = None,
) -> bool:
    result = await db.execute(
        conflicting_bookings_query(vehicle_id, start_date, end_date, exclude_booking_id)
        .with_only_columns(Booking.id)
        .limit(1)
    )
    return result.first() is not None


async def check_vehicle_availability(
    db: AsyncSession,
    vehicle: Vehicle,
    start_date: Optional[date],
    end_date: Optional[date],
) -> bool:
    """Whether a vehicle can take a new booking for the given range."""
    if vehicle.status != VehicleStatus.AVAILABLE:
        return False
    if vehicle.is_sale or start_date is None or end_date is None:
        return True
    return not await has_conflict(db, vehicle.id, start_date, end_date)


async def booked_ranges(db: AsyncSession, vehicle_id: int, from_date: date) -> list[tuple[date, date]]:
    """Occupied ranges ending on or after from_date, in calendar order."""
    result = await db.execute(
        select(Booking.start_date, Booking.end_date)
        .where(
            Booking.vehicle_id == vehicle_id,
            Booking.status.in_(OCCUPYING_STATUSES),
            Booking.end_date >= from_date,
        )
        .order_by(Booking.start_date.asc())
    )
    return [(row.start_date, row.end_date) for row in result.all()]
