"""
Vehicle model: a listing offered either for rent (priced per day) or for sale
(fixed selling price).

Key design decisions:
- daily_rate and selling_price are mutually exclusive, pinned by a CHECK
- status is only written by the booking lifecycle once a listing exists
- Composite index on (listing_type, status) backs the public listing query
"""

from sqlalchemy import CheckConstraint, Column, ForeignKey, Index, Integer, Numeric, String
from sqlalchemy.orm import relationship

from autofleet.db.base import Base, TimestampMixin
from autofleet.models.enums import (
    ListingType,
    VehicleStatus,
    check_in,
    enum_column_type,
)


class Vehicle(Base, TimestampMixin):
    __tablename__ = "vehicles"

    id = Column(Integer, primary_key=True, index=True)
    owner_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    make = Column(String(100), nullable=False)
    model = Column(String(100), nullable=False)
    year = Column(Integer, nullable=False)
    license_plate = Column(String(20), unique=True, nullable=False)
    vehicle_type = Column(String(20), nullable=True)
    color = Column(String(50), nullable=True)
    location_address = Column(String(255), nullable=True)
    listing_type = Column(enum_column_type(ListingType), nullable=False, default=ListingType.RENT)
    daily_rate = Column(Numeric(10, 2), nullable=True)
    selling_price = Column(Numeric(12, 2), nullable=True)
    status = Column(enum_column_type(VehicleStatus), nullable=False, default=VehicleStatus.AVAILABLE)

    # Relationships
    owner = relationship("User", back_populates="vehicles")
    bookings = relationship("Booking", back_populates="vehicle")

    __table_args__ = (
        CheckConstraint(check_in("listing_type", ListingType), name="check_vehicle_listing_type"),
        CheckConstraint(check_in("status", VehicleStatus), name="check_vehicle_status"),
        CheckConstraint(
            "(listing_type = 'rent' AND daily_rate IS NOT NULL AND selling_price IS NULL) OR "
            "(listing_type = 'sale' AND selling_price IS NOT NULL AND daily_rate IS NULL)",
            name="check_vehicle_price_matches_listing",
        ),
        CheckConstraint("daily_rate IS NULL OR daily_rate >= 0", name="check_daily_rate_non_negative"),
        CheckConstraint("selling_price IS NULL OR selling_price >= 0", name="check_selling_price_non_negative"),
        Index("ix_vehicles_listing_status", "listing_type", "status"),
    )

    @property
    def is_sale(self) -> bool:
        return self.listing_type == ListingType.SALE

    @property
    def display_name(self) -> str:
        return f"{self.year} {self.make} {self.model}"

    def __repr__(self) -> str:
        return f"<Vehicle(id={self.id}, {self.display_name}, listing={self.listing_type}, status={self.status})>"
