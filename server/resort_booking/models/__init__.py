"""Models module exporting all database models."""

from .accommodation import AccommodationType, Room
from .booking import (
    Booking,
    BookingAddon,
    BookingGroup,
    BookingSource,
    BookingStatus,
    BookingStatusLog,
    ChangeSource,
    PaymentStatus,
)
from .day_tour import DayTourBooking, DayTourBookingAddon
from .guest import Guest
from .pricing import Addon, AdjustmentScope, AdjustmentType, BookingType, PricingModel, RateAdjustment
from .tenant import Tenant
from .voucher import DiscountType, Voucher

__all__ = [
    # Tenancy
    "Tenant",

    # Inventory
    "AccommodationType",
    "Room",

    # Pricing
    "RateAdjustment",
    "AdjustmentType",
    "AdjustmentScope",
    "Addon",
    "PricingModel",
    "BookingType",
    "Voucher",
    "DiscountType",

    # Bookings
    "Guest",
    "Booking",
    "BookingAddon",
    "BookingGroup",
    "BookingStatusLog",
    "BookingStatus",
    "PaymentStatus",
    "BookingSource",
    "ChangeSource",
    "DayTourBooking",
    "DayTourBookingAddon",
]
