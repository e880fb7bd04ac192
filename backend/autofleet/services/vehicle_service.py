"""
Vehicle listing service: creation, lookup, listing and date availability.

Vehicle status is not writable here once a listing exists; only the booking
lifecycle moves a vehicle between available, rented and sold.
"""

from datetime import date
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from autofleet.core.exceptions import Conflict, Forbidden, NotFound, ValidationError
from autofleet.core.logging import get_logger
from autofleet.core.security import Actor
from autofleet.models.enums import ListingType, UserRole, VehicleStatus
from autofleet.models.vehicle import Vehicle
from autofleet.schemas.vehicle import VehicleCreate
from autofleet.services.availability_service import booked_ranges, check_vehicle_availability

logger = get_logger(__name__)


async def create_vehicle(db: AsyncSession, actor: Actor, data: VehicleCreate) -> Vehicle:
    """Create a listing owned by the calling owner (or admin)."""
    if actor.role not in (UserRole.OWNER, UserRole.ADMIN):
        raise Forbidden("Only vehicle owners can list vehicles")

    if data.listing_type == ListingType.RENT and data.daily_rate is None:
        raise ValidationError("Daily rate is required for rental listings")
    if data.listing_type == ListingType.SALE and data.selling_price is None:
        raise ValidationError("Selling price is required for sale listings")

    vehicle = Vehicle(
        owner_id=actor.user_id,
        make=data.make,
        model=data.model,
        year=data.year,
        license_plate=data.license_plate,
        vehicle_type=data.vehicle_type,
        color=data.color,
        location_address=data.location_address,
        listing_type=data.listing_type,
        daily_rate=data.daily_rate if data.listing_type == ListingType.RENT else None,
        selling_price=data.selling_price if data.listing_type == ListingType.SALE else None,
        status=VehicleStatus.AVAILABLE,
    )
    db.add(vehicle)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise Conflict(f"A vehicle with license plate {data.license_plate} already exists")
    await db.refresh(vehicle)

    logger.info(
        "vehicle_created",
        vehicle_id=vehicle.id,
        owner_id=actor.user_id,
        listing_type=vehicle.listing_type.value,
    )
    return vehicle


async def get_vehicle(db: AsyncSession, vehicle_id: int) -> Vehicle:
    result = await db.execute(select(Vehicle).where(Vehicle.id == vehicle_id))
    vehicle = result.scalar_one_or_none()
    if not vehicle:
        raise NotFound(f"Vehicle {vehicle_id} not found")
    return vehicle


async def list_vehicles(
    db: AsyncSession,
    listing_type: Optional[ListingType] = None,
    status: Optional[VehicleStatus] = None,
    page: int = 1,
    page_size: int = 20,
) -> tuple[list[Vehicle], int]:
    """
    List vehicles with pagination.
    Uses the ix_vehicles_listing_status composite index for the usual
    "available rentals" browse.
    """
    query = select(Vehicle)
    if listing_type is not None:
        query = query.where(Vehicle.listing_type == listing_type)
    if status is not None:
        query = query.where(Vehicle.status == status)

    count_query = select(func.count()).select_from(query.subquery())
    total = (await db.execute(count_query)).scalar() or 0

    result = await db.execute(
        query
        .order_by(Vehicle.created_at.desc(), Vehicle.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    return list(result.scalars().all()), total


async def get_availability(
    db: AsyncSession,
    vehicle_id: int,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    today: Optional[date] = None,
) -> dict:
    """Whether the vehicle can be booked for a range, plus its occupied ranges."""
    if (start_date is None) != (end_date is None):
        raise ValidationError("Provide both start_date and end_date, or neither")
    if start_date is not None and end_date < start_date:
        raise ValidationError("end_date must not be before start_date")

    vehicle = await get_vehicle(db, vehicle_id)
    available = await check_vehicle_availability(db, vehicle, start_date, end_date)
    ranges = [] if vehicle.is_sale else await booked_ranges(db, vehicle.id, today or date.today())

    return {
        "vehicle_id": vehicle.id,
        "listing_type": vehicle.listing_type,
        "status": vehicle.status,
        "available": available,
        "start_date": start_date,
        "end_date": end_date,
        "booked_ranges": [{"start_date": s, "end_date": e} for s, e in ranges],
    }
