"""
Notification delivery for booking events, and the in-app notification inbox.
"""

from dataclasses import dataclass
from typing import Callable

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from autofleet.core.config import get_settings
from autofleet.core.exceptions import NotFound
from autofleet.core.logging import get_logger
from autofleet.db.session import SessionLocal
from autofleet.models.enums import NotificationType
from autofleet.models.notification import Notification
from autofleet.services.interfaces.notifier import NotificationDispatcher

logger = get_logger(__name__)
settings = get_settings()

# Status changes the admin team is emailed about
ADMIN_ALERT_STATUSES = frozenset({"cancelled", "completed"})


@dataclass(frozen=True)
class OutgoingMessage:
    user_id: int
    type: NotificationType
    title: str
    message: str


def build_messages(event_type: str, payload: dict) -> list[OutgoingMessage]:
    """In-app messages for the customer and the owner of one booking event."""
    booking_id = payload["booking_id"]
    customer_id = payload["customer_id"]
    owner_id = payload["owner_id"]
    vehicle = payload.get("vehicle_name", "your vehicle")
    messages: list[OutgoingMessage] = []

    if event_type == "booking.created":
        messages.append(OutgoingMessage(
            customer_id,
            NotificationType.BOOKING,
            "Booking Created",
            f"Your booking request #{booking_id} for {vehicle} has been submitted and is pending confirmation.",
        ))
        messages.append(OutgoingMessage(
            owner_id,
            NotificationType.BOOKING,
            "New Booking Request",
            f"You have received a new booking request #{booking_id} for {vehicle}. Please review and confirm.",
        ))
    elif event_type in ("booking.status_changed", "booking.cancelled"):
        new_status = payload["new_status"]
        messages.append(OutgoingMessage(
            customer_id,
            NotificationType.BOOKING,
            f"Booking {new_status.capitalize()}",
            f"Your booking #{booking_id} for {vehicle} changed from {payload['old_status']} to {new_status}.",
        ))
        messages.append(OutgoingMessage(
            owner_id,
            NotificationType.BOOKING,
            f"Booking {new_status.capitalize()}",
            f"Booking #{booking_id} for {vehicle} changed from {payload['old_status']} to {new_status}.",
        ))
    elif event_type == "payment.recorded":
        messages.append(OutgoingMessage(
            customer_id,
            NotificationType.PAYMENT,
            "Payment Recorded",
            f"Your payment for booking #{booking_id} has been recorded. "
            "Your reservation will be confirmed once the payment is verified.",
        ))
        messages.append(OutgoingMessage(
            owner_id,
            NotificationType.PAYMENT,
            "Payment Recorded",
            f"A payment has been recorded for booking #{booking_id} ({vehicle}) and is awaiting verification.",
        ))
    elif event_type == "payment.verified":
        messages.append(OutgoingMessage(
            customer_id,
            NotificationType.PAYMENT,
            "Payment Confirmed",
            f"Your payment for booking #{booking_id} has been received. Your reservation is confirmed.",
        ))
        messages.append(OutgoingMessage(
            owner_id,
            NotificationType.PAYMENT,
            "Payment Received",
            f"Payment has been received for booking #{booking_id}. {vehicle} is now reserved.",
        ))

    # The owner is not told twice about their own booking
    if customer_id == owner_id:
        messages = messages[:1]
    return messages


def admin_recipients(event_type: str, payload: dict) -> list[str]:
    if event_type == "booking.created":
        return settings.admin_email_list
    if event_type in ("booking.status_changed", "booking.cancelled") and payload.get("new_status") in ADMIN_ALERT_STATUSES:
        return settings.admin_email_list
    return []


class InAppNotificationDispatcher(NotificationDispatcher):
    """
    Writes notification rows for the parties of a booking and records one
    email dispatch request per recipient. Email transport is external; the
    dispatch log line is the hand-off point.
    """

    def __init__(self, session_factory: Callable[[], AsyncSession]):
        self.session_factory = session_factory

    async def notify(self, event_type: str, payload: dict) -> None:
        messages = build_messages(event_type, payload)
        if messages:
            async with self.session_factory() as session:
                session.add_all(
                    Notification(
                        user_id=m.user_id,
                        type=m.type,
                        title=m.title,
                        message=m.message,
                    )
                    for m in messages
                )
                await session.commit()

        for m in messages:
            logger.info(
                "email_dispatch_requested",
                event_type=event_type,
                booking_id=payload["booking_id"],
                user_id=m.user_id,
                subject=m.title,
            )
        for email in admin_recipients(event_type, payload):
            logger.info(
                "email_dispatch_requested",
                event_type=event_type,
                booking_id=payload["booking_id"],
                admin_email=email,
            )


class LoggingNotificationDispatcher(NotificationDispatcher):
    """Logs events without storing anything."""

    async def notify(self, event_type: str, payload: dict) -> None:
        logger.info("notification", event_type=event_type, **{k: v for k, v in payload.items() if k != "event_type"})


def get_notification_dispatcher() -> NotificationDispatcher:
    """
    Dispatcher selected by NOTIFICATION_BACKEND:
    - "in_app" (default): notifications table + email dispatch log
    - "log": log only
    """
    if settings.NOTIFICATION_BACKEND == "log":
        return LoggingNotificationDispatcher()

    return InAppNotificationDispatcher(SessionLocal)


# Inbox


async def list_notifications(
    db: AsyncSession,
    user_id: int,
    unread_only: bool = False,
    page: int = 1,
    page_size: int = 20,
) -> tuple[list[Notification], int]:
    query = select(Notification).where(Notification.user_id == user_id)
    if unread_only:
        query = query.where(Notification.is_read.is_(False))

    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar() or 0
    result = await db.execute(
        query.order_by(Notification.created_at.desc(), Notification.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    return list(result.scalars().all()), total


async def unread_count(db: AsyncSession, user_id: int) -> int:
    result = await db.execute(
        select(func.count(Notification.id)).where(
            Notification.user_id == user_id,
            Notification.is_read.is_(False),
        )
    )
    return result.scalar() or 0


async def mark_read(db: AsyncSession, user_id: int, notification_id: int) -> Notification:
    result = await db.execute(
        select(Notification).where(
            Notification.id == notification_id,
            Notification.user_id == user_id,
        )
    )
    notification = result.scalar_one_or_none()
    if notification is None:
        raise NotFound("Notification not found")

    notification.is_read = True
    await db.commit()
    return notification


async def mark_all_read(db: AsyncSession, user_id: int) -> int:
    result = await db.execute(
        update(Notification)
        .where(Notification.user_id == user_id, Notification.is_read.is_(False))
        .values(is_read=True)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    return result.rowcount or 0
