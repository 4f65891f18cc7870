"""Voucher model definition."""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID, uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from ..core.database import Base, utcnow
from .pricing import BookingType


class DiscountType(str, Enum):
    """Voucher discount kind."""
    PERCENTAGE = "percentage"
    FIXED = "fixed"


class Voucher(Base):
    """Discount code redeemable against a booking."""

    __tablename__ = "vouchers"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    tenant_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    # Stored upper-case
    code: Mapped[str] = mapped_column(String(50), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    discount_type: Mapped[DiscountType] = mapped_column(String(20), nullable=False)
    discount_value: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    max_discount: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    min_booking_amount: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)

    valid_from: Mapped[date | None] = mapped_column(Date, nullable=True)
    valid_until: Mapped[date | None] = mapped_column(Date, nullable=True)

    usage_limit: Mapped[int | None] = mapped_column(Integer, nullable=True)
    # Only a successful reservation increments this
    times_used: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    applies_to: Mapped[BookingType] = mapped_column(
        String(20),
        nullable=False,
        default=BookingType.BOTH
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint("tenant_id", "code", name="uq_voucher_tenant_code"),
        CheckConstraint("discount_value >= 0", name="ck_voucher_discount_value_non_negative"),
        CheckConstraint("times_used >= 0", name="ck_voucher_times_used_non_negative"),
        CheckConstraint("usage_limit IS NULL OR usage_limit >= 0", name="ck_voucher_usage_limit_non_negative"),
    )

    def __repr__(self) -> str:
        return (
            f"<Voucher(id={self.id}, code='{self.code}', {self.discount_type}={self.discount_value}, "
            f"used={self.times_used}/{self.usage_limit})>"
        )
