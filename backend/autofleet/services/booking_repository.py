"""
Persistence for bookings and the vehicle-status writes paired with them.

Every lifecycle operation runs as one unit of work on a single AsyncSession:
reads, the booking write and the vehicle write are flushed together and made
durable by `commit()`. A failed commit rolls the whole unit back, so callers
can assume that nothing changed.

LOCKING
=======

`lock_vehicle` issues SELECT ... FOR UPDATE on the vehicle row. Every write
that touches a vehicle's calendar or status takes this lock first, so two
requests for the same vehicle serialize on it: the second one re-reads the
vehicle status and re-runs the conflict query after the first has committed.
On PostgreSQL the `bookings_no_overlap` exclusion constraint backs this up at
the storage layer; a violation surfaces as Conflict instead of a 500.
"""

from datetime import date, datetime
from typing import Optional

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from autofleet.core.exceptions import Conflict, PersistenceError
from autofleet.core.logging import get_logger
from autofleet.models.booking import NO_OVERLAP_CONSTRAINT, Booking
from autofleet.models.enums import (
    OCCUPYING_STATUSES,
    BookingStatus,
    PaymentStatus,
    UserRole,
    VehicleStatus,
)
from autofleet.models.vehicle import Vehicle
from autofleet.services.availability_service import conflicting_bookings_query

logger = get_logger(__name__)


class BookingRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    # Reads

    async def find_by_id(self, booking_id: int, for_update: bool = False) -> Optional[Booking]:
        query = select(Booking).where(Booking.id == booking_id)
        if for_update:
            query = query.with_for_update()
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def find_detail(self, booking_id: int) -> Optional[Booking]:
        """Booking with its vehicle, the vehicle's owner and the customer loaded."""
        result = await self.db.execute(
            select(Booking)
            .where(Booking.id == booking_id)
            .options(
                selectinload(Booking.vehicle).selectinload(Vehicle.owner),
                selectinload(Booking.customer),
            )
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_vehicle(self, vehicle_id: int) -> Optional[Vehicle]:
        result = await self.db.execute(select(Vehicle).where(Vehicle.id == vehicle_id))
        return result.scalar_one_or_none()

    async def lock_vehicle(self, vehicle_id: int) -> Optional[Vehicle]:
        result = await self.db.execute(
            select(Vehicle)
            .where(Vehicle.id == vehicle_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def find_conflicting(
        self,
        vehicle_id: int,
        start_date: date,
        end_date: date,
        exclude_id: Optional[int] = None,
    ) -> list[Booking]:
        result = await self.db.execute(
            conflicting_bookings_query(vehicle_id, start_date, end_date, exclude_id)
        )
        return list(result.scalars().all())

    async def has_open_booking(self, vehicle_id: int, exclude_id: Optional[int] = None) -> bool:
        """Whether any pending, confirmed or active booking holds the vehicle."""
        query = select(Booking.id).where(
            Booking.vehicle_id == vehicle_id,
            Booking.status.in_(OCCUPYING_STATUSES),
        )
        if exclude_id is not None:
            query = query.where(Booking.id != exclude_id)
        result = await self.db.execute(query.limit(1))
        return result.first() is not None

    async def has_active_booking(self, vehicle_id: int, exclude_id: Optional[int] = None) -> bool:
        query = select(Booking.id).where(
            Booking.vehicle_id == vehicle_id,
            Booking.status == BookingStatus.ACTIVE,
        )
        if exclude_id is not None:
            query = query.where(Booking.id != exclude_id)
        result = await self.db.execute(query.limit(1))
        return result.first() is not None

    async def list_for_actor(
        self,
        user_id: int,
        role: UserRole,
        status: Optional[BookingStatus] = None,
        vehicle_id: Optional[int] = None,
        customer_id: Optional[int] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        covering: Optional[date] = None,
        statuses: Optional[tuple[BookingStatus, ...]] = None,
        page: int = 1,
        limit: int = 10,
    ) -> tuple[list[Booking], int]:
        """
        Role-scoped booking listing: customers see their own bookings, owners
        see bookings on their vehicles, admins see everything.
        """
        query = select(Booking).join(Vehicle, Booking.vehicle_id == Vehicle.id)

        if role == UserRole.CUSTOMER:
            query = query.where(Booking.customer_id == user_id)
        elif role == UserRole.OWNER:
            query = query.where(Vehicle.owner_id == user_id)
        elif customer_id is not None:
            query = query.where(Booking.customer_id == customer_id)

        if status is not None:
            query = query.where(Booking.status == status)
        if statuses:
            query = query.where(Booking.status.in_(statuses))
        if vehicle_id is not None:
            query = query.where(Booking.vehicle_id == vehicle_id)
        if start_date is not None:
            query = query.where(Booking.start_date >= start_date)
        if end_date is not None:
            query = query.where(Booking.end_date <= end_date)
        if covering is not None:
            query = query.where(Booking.start_date <= covering, Booking.end_date >= covering)

        count_query = select(func.count()).select_from(query.subquery())
        total = (await self.db.execute(count_query)).scalar() or 0

        result = await self.db.execute(
            query.options(
                selectinload(Booking.vehicle).selectinload(Vehicle.owner),
                selectinload(Booking.customer),
            )
            .order_by(Booking.created_at.desc(), Booking.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all()), total

    # Writes: staged on the session, made durable by commit()

    def insert(self, booking: Booking) -> Booking:
        self.db.add(booking)
        return booking

    def update_status(
        self,
        booking: Booking,
        new_status: BookingStatus,
        payment_status: Optional[PaymentStatus] = None,
        payment_method: Optional[str] = None,
        payment_transaction_id: Optional[str] = None,
    ) -> None:
        booking.status = new_status
        if payment_status is not None:
            booking.payment_status = payment_status
        if payment_method is not None:
            booking.payment_method = payment_method
        if payment_transaction_id is not None:
            booking.payment_transaction_id = payment_transaction_id

    def update_payment(
        self,
        booking: Booking,
        payment_status: PaymentStatus,
        payment_method: Optional[str],
        payment_transaction_id: Optional[str],
    ) -> None:
        booking.payment_status = payment_status
        booking.payment_method = payment_method
        booking.payment_transaction_id = payment_transaction_id

    def update_vehicle_status(self, vehicle: Vehicle, new_status: VehicleStatus) -> None:
        vehicle.status = new_status

    async def purge_cancelled(self, updated_before: datetime) -> int:
        result = await self.db.execute(
            delete(Booking)
            .where(
                Booking.status == BookingStatus.CANCELLED,
                Booking.updated_at < updated_before,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0

    # Unit of work

    async def commit(self) -> None:
        """Flush and commit everything staged; on failure nothing is kept."""
        try:
            await self.db.commit()
        except SQLAlchemyError as exc:
            await self.db.rollback()
            if isinstance(exc, IntegrityError) and NO_OVERLAP_CONSTRAINT in str(exc.orig):
                logger.warning("booking_conflict_at_storage", constraint=NO_OVERLAP_CONSTRAINT)
                raise Conflict("Vehicle is already booked for the selected dates")
            logger.error("booking_commit_failed", error_type=type(exc).__name__)
            raise PersistenceError("Failed to save booking changes")

    async def rollback(self) -> None:
        await self.db.rollback()
