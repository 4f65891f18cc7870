"""Rate adjustment and add-on model definitions."""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID, uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from ..core.database import Base, utcnow


class BookingType(str, Enum):
    """Kind of stay a voucher or add-on is offered for."""
    OVERNIGHT = "overnight"
    DAY_TOUR = "day_tour"
    BOTH = "both"


class AdjustmentType(str, Enum):
    """How a rate adjustment changes the nightly base rate."""
    PERCENTAGE_DISCOUNT = "percentage_discount"
    PERCENTAGE_SURCHARGE = "percentage_surcharge"
    FIXED_OVERRIDE = "fixed_override"


class AdjustmentScope(str, Enum):
    """Which accommodation types a rate adjustment covers."""
    ALL = "all"
    SPECIFIC = "specific"


class PricingModel(str, Enum):
    """How an add-on's unit price scales with the booking."""
    PER_BOOKING = "per_booking"
    PER_PERSON = "per_person"


class RateAdjustment(Base):
    """Seasonal override of base rates over an inclusive date range."""

    __tablename__ = "rate_adjustments"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    tenant_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    # Last night covered by the adjustment
    end_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)

    adjustment_type: Mapped[AdjustmentType] = mapped_column(String(30), nullable=False)
    adjustment_value: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    applies_to: Mapped[AdjustmentScope] = mapped_column(
        String(20),
        nullable=False,
        default=AdjustmentScope.ALL
    )
    accommodation_type_ids: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)

    # Higher priority wins when several adjustments cover the same night
    priority: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, index=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=func.now()
    )

    __table_args__ = (
        CheckConstraint("start_date <= end_date", name="ck_rate_adjustment_date_order"),
        CheckConstraint("adjustment_value >= 0", name="ck_rate_adjustment_value_non_negative"),
    )

    def __repr__(self) -> str:
        return (
            f"<RateAdjustment(id={self.id}, name='{self.name}', "
            f"{self.start_date}..{self.end_date}, {self.adjustment_type}={self.adjustment_value})>"
        )


class Addon(Base):
    """Optional extra sold alongside a booking."""

    __tablename__ = "addons"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    tenant_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    pricing_model: Mapped[PricingModel] = mapped_column(
        String(20),
        nullable=False,
        default=PricingModel.PER_BOOKING
    )
    applies_to: Mapped[BookingType] = mapped_column(
        String(20),
        nullable=False,
        default=BookingType.BOTH
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, index=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=func.now()
    )

    __table_args__ = (
        CheckConstraint("price >= 0", name="ck_addon_price_non_negative"),
    )

    def __repr__(self) -> str:
        return f"<Addon(id={self.id}, name='{self.name}', price={self.price}, model={self.pricing_model})>"
