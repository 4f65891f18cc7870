"""Booking-related Pydantic schemas."""

import datetime as dt
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ..models.booking import BookingStatus, PaymentStatus
from .common import EMAIL_PATTERN, Money
from .pricing import AddonSelectionMixin, check_stay


class GuestDetails(BaseModel):
    """Guest contact fields shared by booking requests."""

    guest_first_name: str = Field(..., min_length=1, max_length=255)
    guest_last_name: str = Field(..., min_length=1, max_length=255)
    guest_email: str = Field(..., max_length=255, pattern=EMAIL_PATTERN)
    guest_phone: str = Field(..., min_length=1, max_length=50)
    special_requests: Optional[str] = Field(None, max_length=1000)
    voucher_code: Optional[str] = Field(None, max_length=50, description="Voucher to redeem")

    @field_validator("guest_email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.strip().lower()

    @field_validator("voucher_code")
    @classmethod
    def normalize_voucher_code(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        return v.strip().upper() or None

    @property
    def guest_name(self) -> str:
        return f"{self.guest_first_name.strip()} {self.guest_last_name.strip()}"


class StayDetails(BaseModel):
    """Dates and party size of a stay."""

    check_in_date: dt.date = Field(..., description="First night of the stay")
    check_out_date: dt.date = Field(..., description="Departure day (not a night)")
    num_adults: int = Field(..., ge=1, le=20)
    num_children: int = Field(0, ge=0, le=20)

    @model_validator(mode="after")
    def validate_stay(self):
        check_stay(self.check_in_date, self.check_out_date)
        return self


class CreateBookingRequest(GuestDetails, StayDetails, AddonSelectionMixin):
    """Request schema for reserving one room. Amounts are always computed server-side."""

    room_id: UUID = Field(..., description="Room to reserve")
    accommodation_type_id: UUID = Field(..., description="Accommodation type of the room")


class GroupRoomSelection(AddonSelectionMixin):
    """One room of a group booking; party size defaults to the group's."""

    room_id: UUID
    accommodation_type_id: UUID
    num_adults: Optional[int] = Field(None, ge=1, le=20)
    num_children: Optional[int] = Field(None, ge=0, le=20)


class CreateGroupBookingRequest(GuestDetails, StayDetails):
    """Request schema for reserving several rooms under one group reference."""

    rooms: List[GroupRoomSelection] = Field(..., min_length=1, max_length=20)

    @model_validator(mode="after")
    def validate_rooms(self):
        room_ids = [r.room_id for r in self.rooms]
        if len(set(room_ids)) != len(room_ids):
            raise ValueError("A room can only appear once in a group booking")
        return self


class BookingCreated(BaseModel):
    """Reservation result for one booking."""

    booking_id: UUID
    reference_number: str
    room_id: UUID
    total_amount: Money
    discount_amount: Money
    status: str
    payment_status: str


class CreateDayTourBookingRequest(GuestDetails, AddonSelectionMixin):
    """Request schema for a day tour. Amounts are always computed server-side."""

    tour_date: dt.date = Field(..., description="Date of the visit")
    num_adults: int = Field(..., ge=1, le=50)
    num_children: int = Field(0, ge=0, le=50)


class DayTourBookingCreated(BaseModel):
    """Reservation result for a day tour."""

    booking_id: UUID
    reference_number: str
    tour_date: dt.date
    num_adults: int
    num_children: int
    base_amount: Money
    addons_amount: Money
    discount_amount: Money
    total_amount: Money
    status: str
    payment_status: str


class GroupBookingCreated(BaseModel):
    """Reservation result for a group booking."""

    group_id: UUID
    group_reference_number: str
    total_amount: Money
    discount_amount: Money
    bookings: List[BookingCreated]


class GetBookingRequest(BaseModel):
    """Request schema for getting a booking."""

    booking_id: UUID = Field(..., description="Booking to retrieve")


class GetBookingGroupRequest(BaseModel):
    """Request schema for getting a booking group."""

    group_id: UUID = Field(..., description="Booking group to retrieve")


class BookingChange(BaseModel):
    """Either a status change or a payment status change, with optional notes."""

    status: Optional[BookingStatus] = None
    payment_status: Optional[PaymentStatus] = None
    payment_method: Optional[str] = Field(None, max_length=30)
    payment_reference: Optional[str] = Field(None, max_length=255)
    cancellation_reason: Optional[str] = Field(None, max_length=500)
    notes: Optional[str] = Field(None, max_length=500)

    @model_validator(mode="after")
    def validate_single_change(self):
        if (self.status is None) == (self.payment_status is None):
            raise ValueError("Provide exactly one of status or payment_status")
        return self


class UpdateBookingRequest(BookingChange):
    """Request schema for an admin status or payment update."""

    booking_id: UUID


class UpdateBookingGroupRequest(BookingChange):
    """Request schema for applying one status or payment update to a whole group."""

    group_id: UUID


class BookingAddonLine(BaseModel):
    """Add-on line of a booking."""

    model_config = ConfigDict(from_attributes=True)

    addon_id: UUID
    addon_name: str
    pricing_model: str
    requested_quantity: int
    quantity: int
    unit_price: Money
    total_price: Money


class StatusLogEntry(BaseModel):
    """Audit trail entry."""

    model_config = ConfigDict(from_attributes=True)

    field_changed: str
    old_value: Optional[str] = None
    new_value: str
    changed_by: str
    change_source: str
    notes: Optional[str] = None
    created_at: dt.datetime


class BookingDetail(BaseModel):
    """Booking response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    reference_number: str
    group_id: Optional[UUID] = None
    room_id: UUID
    accommodation_type_id: UUID
    guest_name: str
    guest_email: str
    guest_phone: Optional[str] = None
    check_in_date: dt.date
    check_out_date: dt.date
    num_nights: int
    num_adults: int
    num_children: int
    base_amount: Money
    pax_surcharge: Money
    addons_amount: Money
    discount_amount: Money
    total_amount: Money
    voucher_code: Optional[str] = None
    status: str
    payment_status: str
    payment_method: Optional[str] = None
    payment_reference: Optional[str] = None
    source: str
    special_requests: Optional[str] = None
    created_by: Optional[str] = None
    cancelled_at: Optional[dt.datetime] = None
    cancellation_reason: Optional[str] = None
    checked_in_at: Optional[dt.datetime] = None
    checked_out_at: Optional[dt.datetime] = None
    paid_at: Optional[dt.datetime] = None
    created_at: dt.datetime
    addons: List[BookingAddonLine] = Field(default_factory=list)
    status_logs: List[StatusLogEntry] = Field(default_factory=list)


class BookingGroupDetail(BaseModel):
    """Booking group response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    reference_number: str
    guest_name: str
    guest_email: str
    guest_phone: Optional[str] = None
    total_amount: Money
    discount_amount: Money
    voucher_code: Optional[str] = None
    created_at: dt.datetime
    bookings: List[BookingDetail] = Field(default_factory=list)
