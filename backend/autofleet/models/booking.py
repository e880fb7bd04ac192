"""
Booking model: a customer's rental or purchase of one vehicle.

Key design decisions:
- Dates are inclusive calendar dates; sales collapse to start_date == end_date
- Status never goes back to a deleted row: cancellation is a state, and only
  the maintenance purge hard-deletes old cancelled bookings
- Non-overlap of occupying bookings is enforced by the vehicle row lock in
  the service layer and, on PostgreSQL, by the `bookings_no_overlap`
  exclusion constraint created in the initial migration
"""

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from autofleet.db.base import Base, TimestampMixin
from autofleet.models.enums import (
    BookingStatus,
    PaymentStatus,
    check_in,
    enum_column_type,
)

NO_OVERLAP_CONSTRAINT = "bookings_no_overlap"


class Booking(Base, TimestampMixin):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    customer_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    vehicle_id = Column(Integer, ForeignKey("vehicles.id"), nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    pickup_location = Column(String(255), nullable=True)
    total_amount = Column(Numeric(12, 2), nullable=False)
    status = Column(enum_column_type(BookingStatus), nullable=False, default=BookingStatus.PENDING)
    payment_status = Column(enum_column_type(PaymentStatus), nullable=False, default=PaymentStatus.PENDING)
    payment_method = Column(String(50), nullable=True)
    payment_transaction_id = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)

    # Relationships
    customer = relationship("User", back_populates="bookings")
    vehicle = relationship("Vehicle", back_populates="bookings")

    __table_args__ = (
        CheckConstraint(check_in("status", BookingStatus), name="check_booking_status"),
        CheckConstraint(check_in("payment_status", PaymentStatus), name="check_booking_payment_status"),
        CheckConstraint("end_date >= start_date", name="check_booking_dates_ordered"),
        CheckConstraint("total_amount >= 0", name="check_booking_amount_non_negative"),
        # Conflict query: bookings for one vehicle filtered by date range
        Index("ix_bookings_vehicle_dates", "vehicle_id", "start_date", "end_date"),
        Index("ix_bookings_status_updated", "status", "updated_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<Booking(id={self.id}, vehicle={self.vehicle_id}, customer={self.customer_id}, "
            f"{self.start_date}..{self.end_date}, status={self.status})>"
        )
