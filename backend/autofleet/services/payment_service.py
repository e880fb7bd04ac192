"""
Payment recording and gateway verification for bookings.

The gateway lookup in verify_payment runs before any local transaction is
opened, so a slow gateway never holds the vehicle lock. Once the gateway has
answered, the booking and vehicle writes run under the vehicle lock like any
other lifecycle transition.
"""

from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from autofleet.core.config import get_settings
from autofleet.core.exceptions import (
    AlreadyPaid,
    Forbidden,
    InvalidState,
    PaymentVerificationFailed,
)
from autofleet.core.logging import get_logger
from autofleet.core.metrics import record_payment_verification, record_transition
from autofleet.core.security import Actor
from autofleet.models.enums import BookingStatus, ListingType, PaymentStatus, TERMINAL_STATUSES
from autofleet.schemas.booking import BookingDetail
from autofleet.services import cache_service
from autofleet.services.booking_repository import BookingRepository
from autofleet.services.booking_service import (
    apply_vehicle_status,
    load_detail,
    locked_detail,
    build_booking_detail,
)
from autofleet.services.booking_state_machine import is_party, vehicle_status_after_payment
from autofleet.services.event_bus import EventBus, PaymentRecorded, PaymentVerified
from autofleet.services.interfaces.payment_gateway import PaymentGateway

logger = get_logger(__name__)
settings = get_settings()


async def record_payment(
    db: AsyncSession,
    events: EventBus,
    booking_id: int,
    actor: Actor,
    payment_method: str,
    transaction_id: Optional[str] = None,
) -> BookingDetail:
    """
    Mark a booking as paid by the customer.

    Only the booking's customer or an admin may record a payment, and only
    once: a second call fails with AlreadyPaid and changes nothing.
    """
    repo = BookingRepository(db)
    booking = await load_detail(repo, booking_id)

    if not (actor.is_admin or actor.user_id == booking.customer_id):
        raise Forbidden("Access denied")
    if booking.payment_status == PaymentStatus.PAID:
        raise AlreadyPaid("Payment already recorded for this booking")

    repo.update_payment(
        booking,
        PaymentStatus.PAID,
        payment_method,
        transaction_id or booking.payment_transaction_id,
    )
    await repo.commit()

    booking = await load_detail(repo, booking_id)
    logger.info(
        "payment_recorded",
        booking_id=booking_id,
        actor_id=actor.user_id,
        payment_method=payment_method,
        transaction_id=booking.payment_transaction_id,
    )

    events.publish(PaymentRecorded(
        booking_id=booking.id,
        customer_id=booking.customer_id,
        owner_id=booking.vehicle.owner_id,
        vehicle_name=booking.vehicle.display_name,
        total_amount=booking.total_amount,
        payment_method=payment_method,
        transaction_id=booking.payment_transaction_id,
    ))
    return build_booking_detail(booking)


def _check_verifiable(status: BookingStatus) -> None:
    if status in TERMINAL_STATUSES:
        raise InvalidState(f"Cannot verify payment for a booking that is {status.value}")


async def verify_payment(
    db: AsyncSession,
    events: EventBus,
    gateway: PaymentGateway,
    booking_id: int,
    transaction_ref: str,
    actor: Optional[Actor] = None,
) -> BookingDetail:
    """
    Confirm a booking once the gateway reports its transaction as completed.

    The gateway amount is authoritative: a difference from total_amount is
    logged, never rejected. Verifying a booking that is already paid and
    confirmed with the same reference returns it unchanged.
    """
    repo = BookingRepository(db)
    booking = await load_detail(repo, booking_id)
    if actor is not None and not is_party(actor, booking, booking.vehicle.owner_id):
        raise Forbidden("Access denied")

    # Recorded but unconfirmed payments still go through the gateway
    if (
        booking.payment_status == PaymentStatus.PAID
        and booking.payment_transaction_id == transaction_ref
        and BookingStatus(booking.status) != BookingStatus.PENDING
    ):
        logger.info("payment_already_verified", booking_id=booking_id, transaction_ref=transaction_ref)
        return build_booking_detail(booking)
    _check_verifiable(BookingStatus(booking.status))

    # End the read transaction before talking to the gateway
    await repo.rollback()

    try:
        transaction = await gateway.verify_transaction(transaction_ref)
    except PaymentVerificationFailed:
        record_payment_verification("error")
        raise

    if not transaction.succeeded:
        record_payment_verification("rejected")
        logger.warning(
            "payment_verification_rejected",
            booking_id=booking_id,
            transaction_ref=transaction_ref,
            gateway_status=transaction.status,
        )
        raise PaymentVerificationFailed(f"Payment not completed (status: {transaction.status})")

    booking = await locked_detail(repo, booking_id)
    vehicle = booking.vehicle
    old_status = BookingStatus(booking.status)
    _check_verifiable(old_status)

    if transaction.amount_paid is not None and transaction.amount_paid != booking.total_amount:
        difference = abs(transaction.amount_paid - booking.total_amount)
        log = logger.warning if difference > settings.PAYMENT_AMOUNT_TOLERANCE else logger.info
        log(
            "payment_amount_mismatch",
            booking_id=booking_id,
            expected=str(booking.total_amount),
            paid=str(transaction.amount_paid),
            difference=str(difference),
            currency=transaction.currency,
        )

    new_status = BookingStatus.CONFIRMED if old_status == BookingStatus.PENDING else old_status
    repo.update_status(
        booking,
        new_status,
        payment_status=PaymentStatus.PAID,
        payment_method=gateway.name,
        payment_transaction_id=transaction_ref,
    )
    await apply_vehicle_status(
        repo, booking, vehicle, vehicle_status_after_payment(ListingType(vehicle.listing_type))
    )
    await repo.commit()

    record_payment_verification("verified")
    if new_status != old_status:
        record_transition(old_status.value, new_status.value)

    booking = await load_detail(repo, booking_id)
    logger.info(
        "payment_verified",
        booking_id=booking_id,
        transaction_ref=transaction_ref,
        amount_paid=str(transaction.amount_paid),
        currency=transaction.currency,
        vehicle_status=booking.vehicle.status.value,
    )

    events.publish(PaymentVerified(
        booking_id=booking.id,
        customer_id=booking.customer_id,
        owner_id=booking.vehicle.owner_id,
        vehicle_id=booking.vehicle_id,
        vehicle_name=booking.vehicle.display_name,
        transaction_ref=transaction_ref,
        amount_paid=transaction.amount_paid,
        currency=transaction.currency,
        vehicle_status=booking.vehicle.status.value,
    ))
    await cache_service.invalidate_vehicle_cache()
    return build_booking_detail(booking)
