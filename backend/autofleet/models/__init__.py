from autofleet.models.user import User
from autofleet.models.vehicle import Vehicle
from autofleet.models.booking import Booking
from autofleet.models.notification import Notification

__all__ = ["User", "Vehicle", "Booking", "Notification"]
