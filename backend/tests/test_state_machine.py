"""
Tests for the booking transition table and role gating.
"""

import pytest

from autofleet.core.exceptions import Forbidden, InvalidState
from autofleet.core.security import Actor
from autofleet.models import Booking
from autofleet.models.enums import BookingStatus, ListingType, UserRole, VehicleStatus
from autofleet.services.booking_state_machine import (
    TRANSITIONS,
    authorize_transition,
    can_transition,
    is_terminal,
    vehicle_status_after,
    vehicle_status_after_payment,
)

CUSTOMER_ID = 1
OWNER_ID = 2
STRANGER_ID = 3


def booking(status: BookingStatus) -> Booking:
    return Booking(id=10, customer_id=CUSTOMER_ID, vehicle_id=5, status=status)


def test_terminal_states_have_no_exits():
    assert is_terminal(BookingStatus.COMPLETED)
    assert is_terminal(BookingStatus.CANCELLED)
    assert not is_terminal(BookingStatus.PENDING)


def test_every_status_has_a_row():
    assert set(TRANSITIONS) == set(BookingStatus)


@pytest.mark.parametrize("current,target,allowed", [
    (BookingStatus.PENDING, BookingStatus.CONFIRMED, True),
    (BookingStatus.PENDING, BookingStatus.ACTIVE, False),
    (BookingStatus.CONFIRMED, BookingStatus.ACTIVE, True),
    (BookingStatus.ACTIVE, BookingStatus.COMPLETED, True),
    (BookingStatus.COMPLETED, BookingStatus.CANCELLED, False),
    (BookingStatus.CANCELLED, BookingStatus.PENDING, False),
])
def test_can_transition(current, target, allowed):
    assert can_transition(current, target) is allowed


def test_admin_overrides_everything():
    admin = Actor(user_id=99, role=UserRole.ADMIN)
    authorize_transition(admin, booking(BookingStatus.COMPLETED), OWNER_ID, BookingStatus.PENDING)


def test_owner_confirms_pending():
    owner = Actor(user_id=OWNER_ID, role=UserRole.OWNER)
    authorize_transition(owner, booking(BookingStatus.PENDING), OWNER_ID, BookingStatus.CONFIRMED)


def test_owner_cannot_activate():
    owner = Actor(user_id=OWNER_ID, role=UserRole.OWNER)
    with pytest.raises(Forbidden):
        authorize_transition(owner, booking(BookingStatus.CONFIRMED), OWNER_ID, BookingStatus.ACTIVE)


def test_owner_of_another_vehicle_is_forbidden():
    owner = Actor(user_id=STRANGER_ID, role=UserRole.OWNER)
    with pytest.raises(Forbidden):
        authorize_transition(owner, booking(BookingStatus.PENDING), OWNER_ID, BookingStatus.CONFIRMED)


def test_customer_may_only_cancel():
    customer = Actor(user_id=CUSTOMER_ID, role=UserRole.CUSTOMER)
    authorize_transition(customer, booking(BookingStatus.CONFIRMED), OWNER_ID, BookingStatus.CANCELLED)
    with pytest.raises(Forbidden):
        authorize_transition(customer, booking(BookingStatus.PENDING), OWNER_ID, BookingStatus.CONFIRMED)


def test_customer_cannot_cancel_active_booking():
    customer = Actor(user_id=CUSTOMER_ID, role=UserRole.CUSTOMER)
    with pytest.raises(InvalidState):
        authorize_transition(customer, booking(BookingStatus.ACTIVE), OWNER_ID, BookingStatus.CANCELLED)


def test_owner_cannot_reconfirm_cancelled():
    owner = Actor(user_id=OWNER_ID, role=UserRole.OWNER)
    with pytest.raises(InvalidState):
        authorize_transition(owner, booking(BookingStatus.CANCELLED), OWNER_ID, BookingStatus.CONFIRMED)


def test_vehicle_side_effects():
    assert vehicle_status_after(BookingStatus.ACTIVE, ListingType.RENT) == VehicleStatus.RENTED
    assert vehicle_status_after(BookingStatus.COMPLETED, ListingType.RENT) == VehicleStatus.AVAILABLE
    assert vehicle_status_after(BookingStatus.COMPLETED, ListingType.SALE) == VehicleStatus.SOLD
    assert vehicle_status_after(BookingStatus.CANCELLED, ListingType.SALE) == VehicleStatus.AVAILABLE
    assert vehicle_status_after(BookingStatus.CONFIRMED, ListingType.RENT) is None


def test_vehicle_status_after_payment():
    assert vehicle_status_after_payment(ListingType.RENT) == VehicleStatus.RENTED
    assert vehicle_status_after_payment(ListingType.SALE) == VehicleStatus.SOLD
