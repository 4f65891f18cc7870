"""Background workers for the resort booking service."""

from .base import BaseWorker
from .booking_expiry_worker import BookingExpiryWorker

__all__ = ["BaseWorker", "BookingExpiryWorker"]
