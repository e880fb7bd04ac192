"""
Pydantic schemas for vehicle listing request/response validation.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, model_validator

from autofleet.models.enums import ListingType, VehicleStatus


class VehicleCreate(BaseModel):
    make: str = Field(..., min_length=1, max_length=100)
    model: str = Field(..., min_length=1, max_length=100)
    year: int = Field(..., ge=1950, le=2100)
    license_plate: str = Field(..., min_length=1, max_length=20)
    vehicle_type: Optional[str] = Field(None, max_length=20)
    color: Optional[str] = Field(None, max_length=50)
    location_address: Optional[str] = Field(None, max_length=255)
    listing_type: ListingType = ListingType.RENT
    daily_rate: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)
    selling_price: Optional[Decimal] = Field(None, ge=0, max_digits=12, decimal_places=2)

    @model_validator(mode="after")
    def price_matches_listing(self):
        if self.listing_type == ListingType.RENT:
            if self.daily_rate is None or self.selling_price is not None:
                raise ValueError("Rental listings need a daily_rate and no selling_price")
        elif self.selling_price is None or self.daily_rate is not None:
            raise ValueError("Sale listings need a selling_price and no daily_rate")
        return self


class VehicleSummary(BaseModel):
    id: int
    owner_id: int
    make: str
    model: str
    year: int
    license_plate: str
    vehicle_type: Optional[str]
    color: Optional[str]
    location_address: Optional[str]
    listing_type: ListingType
    daily_rate: Optional[Decimal]
    selling_price: Optional[Decimal]
    status: VehicleStatus

    model_config = {"from_attributes": True}


class VehicleResponse(VehicleSummary):
    created_at: datetime


class VehicleListResponse(BaseModel):
    vehicles: list[VehicleResponse]
    total: int
    page: int
    page_size: int
    cached: bool = False


class DateRange(BaseModel):
    start_date: date
    end_date: date


class AvailabilityResponse(BaseModel):
    vehicle_id: int
    listing_type: ListingType
    status: VehicleStatus
    available: bool
    start_date: Optional[date]
    end_date: Optional[date]
    booked_ranges: list[DateRange]
