"""
Notification dispatcher interface.
The booking core publishes domain events; a dispatcher turns them into
messages for customers, owners and admins.
"""

from abc import ABC, abstractmethod


class NotificationDispatcher(ABC):
    """
    Interface for notification delivery.

    Implementations:
    - InAppNotificationDispatcher: notifications table + email dispatch log
    - LoggingNotificationDispatcher: log only (local development)

    Delivery is best-effort. The event bus calls `notify` outside any booking
    transaction and swallows whatever it raises.
    """

    @abstractmethod
    async def notify(self, event_type: str, payload: dict) -> None:
        """
        Deliver one domain event.

        Args:
            event_type: Dotted event name, e.g. "booking.created"
            payload: JSON-serializable event data
        """
        pass
