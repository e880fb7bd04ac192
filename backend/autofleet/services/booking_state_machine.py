"""Booking state machine and role-gated transitions."""

from typing import Optional

from autofleet.core.exceptions import Forbidden, InvalidState
from autofleet.core.security import Actor
from autofleet.models.booking import Booking
from autofleet.models.enums import BookingStatus, ListingType, UserRole, VehicleStatus

TRANSITIONS: dict[BookingStatus, frozenset[BookingStatus]] = {
    BookingStatus.PENDING: frozenset({BookingStatus.CONFIRMED, BookingStatus.CANCELLED}),
    BookingStatus.CONFIRMED: frozenset({BookingStatus.ACTIVE, BookingStatus.CANCELLED}),
    BookingStatus.ACTIVE: frozenset(
        {BookingStatus.COMPLETED, BookingStatus.CANCELLED, BookingStatus.DISPUTED}
    ),
    BookingStatus.DISPUTED: frozenset({BookingStatus.COMPLETED, BookingStatus.CANCELLED}),
    BookingStatus.COMPLETED: frozenset(),
    BookingStatus.CANCELLED: frozenset(),
}

# Non-admin roles: which targets they may request, and from which states
ROLE_TARGETS: dict[UserRole, frozenset[BookingStatus]] = {
    UserRole.OWNER: frozenset({BookingStatus.CONFIRMED, BookingStatus.CANCELLED}),
    UserRole.CUSTOMER: frozenset({BookingStatus.CANCELLED}),
}
ROLE_SOURCES: dict[UserRole, frozenset[BookingStatus]] = {
    UserRole.OWNER: frozenset({BookingStatus.PENDING, BookingStatus.CONFIRMED}),
    UserRole.CUSTOMER: frozenset({BookingStatus.PENDING, BookingStatus.CONFIRMED}),
}

CANCELLABLE_STATUSES = frozenset({BookingStatus.PENDING, BookingStatus.CONFIRMED})


def is_terminal(status: BookingStatus) -> bool:
    return not TRANSITIONS[status]


def can_transition(current: BookingStatus, target: BookingStatus) -> bool:
    return target in TRANSITIONS[current]


def is_party(actor: Actor, booking: Booking, owner_id: int) -> bool:
    """Admin, the booking's customer, or the vehicle's owner."""
    return actor.is_admin or actor.user_id in (booking.customer_id, owner_id)


def authorize_transition(
    actor: Actor,
    booking: Booking,
    owner_id: int,
    target: BookingStatus,
) -> None:
    """
    Raise unless `actor` may move `booking` to `target`.

    Admins override both the role table and the state machine. Everyone else
    must act in their own capacity (owner of the vehicle, customer of the
    booking), request a target their role allows, and follow a legal edge.
    """
    if actor.is_admin:
        return

    if actor.role == UserRole.OWNER and actor.user_id == owner_id:
        role = UserRole.OWNER
    elif actor.user_id == booking.customer_id:
        role = UserRole.CUSTOMER
    else:
        raise Forbidden("Access denied")

    if target not in ROLE_TARGETS[role]:
        raise Forbidden(f"A {role.value} cannot set a booking to {target.value}")

    current = BookingStatus(booking.status)
    if current not in ROLE_SOURCES[role] or not can_transition(current, target):
        raise InvalidState(f"Cannot change booking from {current.value} to {target.value}")


def vehicle_status_after(target: BookingStatus, listing_type: ListingType) -> Optional[VehicleStatus]:
    """Vehicle status implied by a booking entering `target`, or None for no change."""
    if target == BookingStatus.ACTIVE:
        return VehicleStatus.RENTED
    if target == BookingStatus.COMPLETED:
        return VehicleStatus.SOLD if listing_type == ListingType.SALE else VehicleStatus.AVAILABLE
    if target == BookingStatus.CANCELLED:
        return VehicleStatus.AVAILABLE
    return None


def vehicle_status_after_payment(listing_type: ListingType) -> VehicleStatus:
    return VehicleStatus.SOLD if listing_type == ListingType.SALE else VehicleStatus.RENTED
