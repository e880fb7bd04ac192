"""
Pydantic schemas for booking-related request/response validation.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from autofleet.models.enums import BookingStatus, PaymentMethod, PaymentStatus
from autofleet.schemas.user import PartySummary
from autofleet.schemas.vehicle import VehicleSummary


class BookingCreate(BaseModel):
    vehicle_id: int
    pickup_location: str = Field(..., min_length=1, max_length=255)
    pickup_date: Optional[date] = None
    return_date: Optional[date] = None
    payment_method: PaymentMethod
    total_price: Optional[Decimal] = Field(default=None, ge=0, max_digits=12, decimal_places=2)
    telephone: Optional[str] = Field(default=None, max_length=20)
    notes: Optional[str] = Field(default=None, max_length=1000)


class BookingStatusUpdate(BaseModel):
    status: BookingStatus


class PaymentRecord(BaseModel):
    payment_method: str = Field(..., min_length=1, max_length=50)
    transaction_id: Optional[str] = Field(default=None, max_length=255)


class PaymentVerify(BaseModel):
    booking_id: int
    transaction_ref: str = Field(..., min_length=1, max_length=255)


class BookingResponse(BaseModel):
    id: int
    customer_id: int
    vehicle_id: int
    start_date: date
    end_date: date
    pickup_location: Optional[str]
    total_amount: Decimal
    status: BookingStatus
    payment_status: PaymentStatus
    payment_method: Optional[str]
    payment_transaction_id: Optional[str]
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class BookingDetail(BookingResponse):
    """Booking joined with its vehicle, customer and owner."""

    duration_days: int  # billed days
    calendar_days: Optional[int]  # inclusive days shown to users, None for sales
    vehicle: VehicleSummary
    customer: PartySummary
    owner: PartySummary


class BookingListResponse(BaseModel):
    bookings: list[BookingDetail]
    total: int
    page: int
    limit: int
    total_pages: int


class BookingActionResponse(BaseModel):
    message: str
    booking_id: int
    status: BookingStatus
    payment_status: PaymentStatus


class PurgeResponse(BaseModel):
    deleted: int
    older_than_days: int
