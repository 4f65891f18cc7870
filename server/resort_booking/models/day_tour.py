"""Day-tour booking and add-on line model definitions."""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import (
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
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..core.database import Base, utcnow
from .booking import BookingSource, BookingStatus, PaymentStatus


class DayTourBooking(Base):
    """Daytime visit by a party on one date; holds no room."""

    __tablename__ = "day_tour_bookings"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    tenant_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    reference_number: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    guest_id: Mapped[UUID | None] = mapped_column(
        Uuid,
        ForeignKey("guests.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )

    guest_name: Mapped[str] = mapped_column(String(255), nullable=False)
    guest_email: Mapped[str] = mapped_column(String(255), nullable=False)
    guest_phone: Mapped[str | None] = mapped_column(String(50), nullable=True)

    tour_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    num_adults: Mapped[int] = mapped_column(Integer, nullable=False)
    num_children: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    base_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    addons_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    discount_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    total_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    voucher_id: Mapped[UUID | None] = mapped_column(
        Uuid,
        ForeignKey("vouchers.id", ondelete="SET NULL"),
        nullable=True
    )
    voucher_code: Mapped[str | None] = mapped_column(String(50), nullable=True)

    status: Mapped[BookingStatus] = mapped_column(
        String(20),
        nullable=False,
        default=BookingStatus.PENDING,
        index=True
    )
    payment_status: Mapped[PaymentStatus] = mapped_column(
        String(30),
        nullable=False,
        default=PaymentStatus.UNPAID
    )
    source: Mapped[BookingSource] = mapped_column(String(20), nullable=False, default=BookingSource.ONLINE)
    special_requests: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_by: Mapped[str | None] = mapped_column(String(255), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
        server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint("tenant_id", "reference_number", name="uq_day_tour_tenant_reference"),
        CheckConstraint("num_adults >= 1", name="ck_day_tour_adults_positive"),
        CheckConstraint("num_children >= 0", name="ck_day_tour_children_non_negative"),
        CheckConstraint("total_amount >= 0", name="ck_day_tour_total_non_negative"),
    )

    addons: Mapped[list["DayTourBookingAddon"]] = relationship(
        "DayTourBookingAddon",
        back_populates="booking",
        cascade="all, delete-orphan"
    )

    @property
    def total_pax(self) -> int:
        return self.num_adults + self.num_children

    def __repr__(self) -> str:
        return (
            f"<DayTourBooking(id={self.id}, reference='{self.reference_number}', "
            f"date={self.tour_date}, pax={self.total_pax}, status={self.status})>"
        )


class DayTourBookingAddon(Base):
    """Priced add-on line of a day-tour booking."""

    __tablename__ = "day_tour_booking_addons"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    booking_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("day_tour_bookings.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    addon_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("addons.id", ondelete="RESTRICT"),
        nullable=False
    )

    addon_name: Mapped[str] = mapped_column(String(255), nullable=False)
    pricing_model: Mapped[str] = mapped_column(String(20), nullable=False)
    requested_quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    total_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    booking: Mapped["DayTourBooking"] = relationship("DayTourBooking", back_populates="addons")
