"""Service layer package."""

from .availability_service import AvailabilityService
from .booking_status_service import BookingStatusService
from .notification_service import NotificationService
from .pricing_service import PricingService
from .reservation_service import ReservationService
from .voucher_service import VoucherService

__all__ = [
    "AvailabilityService",
    "BookingStatusService",
    "NotificationService",
    "PricingService",
    "ReservationService",
    "VoucherService",
]
