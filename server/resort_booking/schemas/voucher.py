"""Voucher validation schemas."""

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from ..models.pricing import BookingType
from .common import Money


class ValidateVoucherRequest(BaseModel):
    """Request schema for previewing a voucher."""

    code: str = Field(..., min_length=1, max_length=50, description="Voucher code (case-insensitive)")
    booking_type: BookingType = Field(BookingType.OVERNIGHT, description="overnight or day_tour")
    booking_amount: Decimal = Field(..., ge=0, le=Decimal("9999999"), description="Amount the voucher applies to")

    @field_validator("code")
    @classmethod
    def normalize_code(cls, v: str) -> str:
        v = v.strip().upper()
        if not v:
            raise ValueError("code must not be blank")
        return v

    @field_validator("booking_type")
    @classmethod
    def validate_booking_type(cls, v: BookingType) -> BookingType:
        if v == BookingType.BOTH:
            raise ValueError("booking_type must be overnight or day_tour")
        return v


class VoucherValidationResponse(BaseModel):
    """Accepted voucher and the discount it grants."""

    code: str
    description: Optional[str] = None
    discount_type: str
    discount_value: Money
    discount_amount: Money
    max_discount: Optional[Money] = None
