from autofleet.schemas.user import PartySummary
from autofleet.schemas.vehicle import (
    AvailabilityResponse,
    VehicleCreate,
    VehicleListResponse,
    VehicleResponse,
    VehicleSummary,
)
from autofleet.schemas.booking import (
    BookingActionResponse,
    BookingCreate,
    BookingDetail,
    BookingListResponse,
    BookingResponse,
    BookingStatusUpdate,
    PaymentRecord,
    PaymentVerify,
    PurgeResponse,
)
from autofleet.schemas.notification import (
    NotificationListResponse,
    NotificationResponse,
    UnreadCountResponse,
)

__all__ = [
    "PartySummary",
    "AvailabilityResponse", "VehicleCreate", "VehicleListResponse", "VehicleResponse", "VehicleSummary",
    "BookingActionResponse", "BookingCreate", "BookingDetail", "BookingListResponse", "BookingResponse",
    "BookingStatusUpdate", "PaymentRecord", "PaymentVerify", "PurgeResponse",
    "NotificationListResponse", "NotificationResponse", "UnreadCountResponse",
]
