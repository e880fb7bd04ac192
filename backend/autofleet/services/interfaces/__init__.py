"""
Service interfaces for dependency inversion.
Collaborators the booking core consumes without knowing their transport.
"""

from .notifier import NotificationDispatcher
from .payment_gateway import GatewayTransaction, PaymentGateway

__all__ = ['NotificationDispatcher', 'GatewayTransaction', 'PaymentGateway']
