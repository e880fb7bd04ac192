"""
Closed status and role vocabularies.

Stored as plain strings (non-native enums) so the same schema works on
PostgreSQL and SQLite; CHECK constraints on each table pin the values.
"""

import enum

from sqlalchemy import Enum as SAEnum


class UserRole(str, enum.Enum):
    CUSTOMER = "customer"
    OWNER = "owner"
    ADMIN = "admin"


class ListingType(str, enum.Enum):
    RENT = "rent"
    SALE = "sale"


class VehicleStatus(str, enum.Enum):
    AVAILABLE = "available"
    RENTED = "rented"
    MAINTENANCE = "maintenance"
    INACTIVE = "inactive"
    SOLD = "sold"


class BookingStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    DISPUTED = "disputed"


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"
    REFUNDED = "refunded"


class PaymentMethod(str, enum.Enum):
    MOBILE = "mobile"
    CARD = "card"


class NotificationType(str, enum.Enum):
    BOOKING = "booking"
    PAYMENT = "payment"
    REMINDER = "reminder"
    SYSTEM = "system"


# Bookings in these states hold the vehicle's calendar
OCCUPYING_STATUSES = (BookingStatus.PENDING, BookingStatus.CONFIRMED, BookingStatus.ACTIVE)
TERMINAL_STATUSES = (BookingStatus.COMPLETED, BookingStatus.CANCELLED)


def enum_column_type(enum_cls: type[enum.Enum]) -> SAEnum:
    return SAEnum(
        enum_cls,
        native_enum=False,
        create_constraint=False,
        length=20,
        values_callable=lambda members: [member.value for member in members],
    )


def check_in(column: str, enum_cls: type[enum.Enum]) -> str:
    values = ", ".join(f"'{member.value}'" for member in enum_cls)
    return f"{column} IN ({values})"
