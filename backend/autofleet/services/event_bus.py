"""
Domain events and the in-process queue that carries them to notifications.

DELIVERY MODEL
==============

The lifecycle operations publish an event only after their transaction has
committed. `publish` is synchronous and never raises: the event goes onto an
asyncio.Queue and a single consumer task hands it to the notification
dispatcher. Whatever the dispatcher raises is logged and counted, and the
consumer moves on to the next event. A booking outcome therefore never
depends on notification delivery, and a slow mail server never holds a
database transaction open.

If the queue is full the event is dropped with an error log rather than
blocking the request.
"""

import asyncio
from dataclasses import asdict, dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import ClassVar, Optional

from autofleet.core.config import get_settings
from autofleet.core.logging import get_logger
from autofleet.core.metrics import record_notification
from autofleet.services.interfaces.notifier import NotificationDispatcher
from autofleet.services.notification_service import get_notification_dispatcher

logger = get_logger(__name__)
settings = get_settings()


def _jsonable(value):
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    return value


@dataclass(frozen=True)
class DomainEvent:
    event_type: ClassVar[str] = "domain.event"

    booking_id: int

    def payload(self) -> dict:
        data = {key: _jsonable(value) for key, value in asdict(self).items()}
        data["event_type"] = self.event_type
        return data


@dataclass(frozen=True)
class BookingCreated(DomainEvent):
    event_type: ClassVar[str] = "booking.created"

    customer_id: int
    owner_id: int
    vehicle_id: int
    vehicle_name: str
    listing_type: str
    start_date: date
    end_date: date
    total_amount: Decimal
    pickup_location: Optional[str]
    payment_method: Optional[str]
    duration_days: int


@dataclass(frozen=True)
class BookingStatusChanged(DomainEvent):
    event_type: ClassVar[str] = "booking.status_changed"

    customer_id: int
    owner_id: int
    vehicle_id: int
    vehicle_name: str
    old_status: str
    new_status: str
    actor_id: int


@dataclass(frozen=True)
class BookingCancelled(BookingStatusChanged):
    event_type: ClassVar[str] = "booking.cancelled"


@dataclass(frozen=True)
class PaymentRecorded(DomainEvent):
    event_type: ClassVar[str] = "payment.recorded"

    customer_id: int
    owner_id: int
    vehicle_name: str
    total_amount: Decimal
    payment_method: str
    transaction_id: Optional[str]


@dataclass(frozen=True)
class PaymentVerified(DomainEvent):
    event_type: ClassVar[str] = "payment.verified"

    customer_id: int
    owner_id: int
    vehicle_id: int
    vehicle_name: str
    transaction_ref: str
    amount_paid: Optional[Decimal]
    currency: str
    vehicle_status: str


class EventBus:
    """Fire-and-forget channel from the booking core to a NotificationDispatcher."""

    def __init__(self, dispatcher: NotificationDispatcher, maxsize: int = 1000):
        self.dispatcher = dispatcher
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self._worker: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    def publish(self, event: DomainEvent) -> None:
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            record_notification("dropped")
            logger.error(
                "notification_dropped",
                event_type=event.event_type,
                booking_id=event.booking_id,
                reason="queue_full",
            )
            return
        logger.debug("event_published", event_type=event.event_type, booking_id=event.booking_id)

    async def start(self) -> None:
        if not self.running:
            self._worker = asyncio.create_task(self._run(), name="notification-consumer")
            logger.info("event_bus_started")

    async def stop(self, timeout: float = 5.0) -> None:
        """Give queued events a chance to go out, then stop the consumer."""
        if self._worker is None:
            return
        try:
            await asyncio.wait_for(self._queue.join(), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning("event_bus_stop_timeout", pending=self._queue.qsize())
        self._worker.cancel()
        try:
            await self._worker
        except asyncio.CancelledError:
            pass
        self._worker = None
        logger.info("event_bus_stopped")

    async def drain(self) -> None:
        """Deliver everything queued so far, with or without a running consumer."""
        if self.running:
            await self._queue.join()
            return
        while not self._queue.empty():
            event = self._queue.get_nowait()
            try:
                await self._deliver(event)
            finally:
                self._queue.task_done()

    async def _run(self) -> None:
        while True:
            event = await self._queue.get()
            try:
                await self._deliver(event)
            finally:
                self._queue.task_done()

    async def _deliver(self, event: DomainEvent) -> None:
        try:
            await self.dispatcher.notify(event.event_type, event.payload())
        except Exception as e:
            record_notification("failed")
            logger.error(
                "notification_failed",
                event_type=event.event_type,
                booking_id=event.booking_id,
                error=str(e),
            )
            return
        record_notification("delivered")


_bus: Optional[EventBus] = None


def get_event_bus() -> EventBus:
    """Application-wide event bus singleton."""
    global _bus
    if _bus is None:
        _bus = EventBus(get_notification_dispatcher(), maxsize=settings.EVENT_QUEUE_MAXSIZE)
    return _bus
