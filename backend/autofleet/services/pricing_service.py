"""
Pricing for rentals and sales.

DURATION RULES
==============

Two duration rules exist on purpose and must not be mixed:

  pricing_duration_days  ceil((end - start) / 1 day)
      The billed number of days. Pickup on the 1st and return on the 3rd is
      two rental days. Used for every price computation.

  display_duration_days  (end - start).days + 1
      The number of calendar days the booking touches, both endpoints
      included. Pickup on the 1st and return on the 3rd shows as three days.
      Used only for presentation.
"""

import math
from datetime import date, datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Union

from autofleet.core.exceptions import ValidationError
from autofleet.models.vehicle import Vehicle

DateLike = Union[date, datetime]

_ONE_DAY = timedelta(days=1).total_seconds()
_CENTS = Decimal("0.01")


def pricing_duration_days(start: DateLike, end: DateLike) -> int:
    """Billed rental days between pickup and return."""
    seconds = (end - start).total_seconds()
    return max(math.ceil(seconds / _ONE_DAY), 0)


def display_duration_days(start: DateLike, end: DateLike) -> int:
    """Calendar days covered by the booking, inclusive of both endpoints."""
    start_day = start.date() if isinstance(start, datetime) else start
    end_day = end.date() if isinstance(end, datetime) else end
    return (end_day - start_day).days + 1


def compute_expected_price(
    vehicle: Vehicle,
    start: Optional[DateLike],
    end: Optional[DateLike],
) -> Decimal:
    """
    Expected charge for a booking at creation time.

    Rentals cost duration x daily rate; sales cost the selling price and
    ignore the dates.
    """
    if vehicle.is_sale:
        if vehicle.selling_price is None:
            raise ValidationError("Vehicle has no selling price")
        return Decimal(vehicle.selling_price).quantize(_CENTS, rounding=ROUND_HALF_UP)

    if start is None or end is None:
        raise ValidationError("Dates are required for rentals")
    if vehicle.daily_rate is None:
        raise ValidationError("Vehicle has no daily rate")

    amount = Decimal(vehicle.daily_rate) * pricing_duration_days(start, end)
    return amount.quantize(_CENTS, rounding=ROUND_HALF_UP)


def amounts_match(expected: Decimal, actual: Decimal, tolerance: Decimal) -> bool:
    return abs(Decimal(expected) - Decimal(actual)) <= tolerance
