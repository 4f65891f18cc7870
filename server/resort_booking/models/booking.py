"""Booking, booking group, add-on line and audit log model definitions."""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING
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

if TYPE_CHECKING:
    from .accommodation import AccommodationType, Room


class BookingStatus(str, Enum):
    """Booking lifecycle status."""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CHECKED_IN = "checked_in"
    CHECKED_OUT = "checked_out"
    CANCELLED = "cancelled"
    EXPIRED = "expired"
    NO_SHOW = "no_show"


class PaymentStatus(str, Enum):
    """Payment state; the only record of whether a booking is paid."""
    UNPAID = "unpaid"
    PENDING_VERIFICATION = "pending_verification"
    PAID = "paid"
    REFUNDED = "refunded"


class BookingSource(str, Enum):
    """Channel a booking was created through."""
    ONLINE = "online"
    MANUAL = "manual"


class ChangeSource(str, Enum):
    """Origin of an audited change."""
    ADMIN = "admin"
    SYSTEM = "system"


# Statuses that no longer hold a room
INVENTORY_RELEASING_STATUSES = frozenset({
    BookingStatus.CANCELLED,
    BookingStatus.EXPIRED,
    BookingStatus.NO_SHOW,
})

STATUS_TRANSITIONS: dict[BookingStatus, frozenset[BookingStatus]] = {
    BookingStatus.PENDING: frozenset({
        BookingStatus.CONFIRMED,
        BookingStatus.CANCELLED,
        BookingStatus.EXPIRED,
        BookingStatus.NO_SHOW,
    }),
    BookingStatus.CONFIRMED: frozenset({
        BookingStatus.CHECKED_IN,
        BookingStatus.CANCELLED,
        BookingStatus.EXPIRED,
        BookingStatus.NO_SHOW,
    }),
    BookingStatus.CHECKED_IN: frozenset({BookingStatus.CHECKED_OUT}),
    BookingStatus.CHECKED_OUT: frozenset(),
    BookingStatus.CANCELLED: frozenset(),
    BookingStatus.EXPIRED: frozenset(),
    BookingStatus.NO_SHOW: frozenset(),
}

PAYMENT_TRANSITIONS: dict[PaymentStatus, frozenset[PaymentStatus]] = {
    PaymentStatus.UNPAID: frozenset({PaymentStatus.PENDING_VERIFICATION, PaymentStatus.PAID}),
    PaymentStatus.PENDING_VERIFICATION: frozenset({PaymentStatus.PAID, PaymentStatus.UNPAID}),
    PaymentStatus.PAID: frozenset({PaymentStatus.REFUNDED}),
    PaymentStatus.REFUNDED: frozenset(),
}


class BookingGroup(Base):
    """Several bookings reserved together by one guest under one reference."""

    __tablename__ = "booking_groups"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    tenant_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    reference_number: Mapped[str] = mapped_column(String(32), nullable=False)

    guest_name: Mapped[str] = mapped_column(String(255), nullable=False)
    guest_email: Mapped[str] = mapped_column(String(255), nullable=False)
    guest_phone: Mapped[str | None] = mapped_column(String(50), nullable=True)

    # Always the sum of the member bookings' total_amount
    total_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    discount_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    voucher_code: Mapped[str | None] = mapped_column(String(50), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint("tenant_id", "reference_number", name="uq_booking_group_tenant_reference"),
    )

    bookings: Mapped[list["Booking"]] = relationship(
        "Booking",
        back_populates="group",
        order_by="Booking.created_at"
    )

    def __repr__(self) -> str:
        return f"<BookingGroup(id={self.id}, reference='{self.reference_number}', total={self.total_amount})>"


class Booking(Base):
    """Reservation of one room for the half-open interval [check_in_date, check_out_date)."""

    __tablename__ = "bookings"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    tenant_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    reference_number: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    group_id: Mapped[UUID | None] = mapped_column(
        Uuid,
        ForeignKey("booking_groups.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )

    room_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("rooms.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )
    accommodation_type_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("accommodation_types.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )
    guest_id: Mapped[UUID | None] = mapped_column(
        Uuid,
        ForeignKey("guests.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )

    # Guest contact details as entered for this booking
    guest_name: Mapped[str] = mapped_column(String(255), nullable=False)
    guest_email: Mapped[str] = mapped_column(String(255), nullable=False)
    guest_phone: Mapped[str | None] = mapped_column(String(50), nullable=True)

    check_in_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    check_out_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    num_adults: Mapped[int] = mapped_column(Integer, nullable=False)
    num_children: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Server-computed money
    base_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    pax_surcharge: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
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
        default=PaymentStatus.UNPAID,
        index=True
    )
    payment_method: Mapped[str | None] = mapped_column(String(50), nullable=True)
    payment_reference: Mapped[str | None] = mapped_column(String(255), nullable=True)

    source: Mapped[BookingSource] = mapped_column(String(20), nullable=False, default=BookingSource.ONLINE)
    special_requests: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_by: Mapped[str | None] = mapped_column(String(255), nullable=True)

    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    cancellation_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    checked_in_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    checked_out_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=func.now(),
        index=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
        server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint("tenant_id", "reference_number", name="uq_booking_tenant_reference"),
        CheckConstraint("check_in_date < check_out_date", name="ck_booking_date_order"),
        CheckConstraint("num_adults >= 1", name="ck_booking_adults_positive"),
        CheckConstraint("num_children >= 0", name="ck_booking_children_non_negative"),
        CheckConstraint("total_amount >= 0", name="ck_booking_total_non_negative"),
        CheckConstraint("discount_amount >= 0", name="ck_booking_discount_non_negative"),
    )

    room: Mapped["Room"] = relationship("Room")
    accommodation_type: Mapped["AccommodationType"] = relationship("AccommodationType")
    group: Mapped["BookingGroup | None"] = relationship("BookingGroup", back_populates="bookings")
    addons: Mapped[list["BookingAddon"]] = relationship(
        "BookingAddon",
        back_populates="booking",
        cascade="all, delete-orphan"
    )
    status_logs: Mapped[list["BookingStatusLog"]] = relationship(
        "BookingStatusLog",
        back_populates="booking",
        order_by="BookingStatusLog.created_at"
    )

    @property
    def num_nights(self) -> int:
        return (self.check_out_date - self.check_in_date).days

    def __repr__(self) -> str:
        return (
            f"<Booking(id={self.id}, reference='{self.reference_number}', room_id={self.room_id}, "
            f"{self.check_in_date}..{self.check_out_date}, status={self.status})>"
        )


class BookingAddon(Base):
    """Priced add-on line of a booking."""

    __tablename__ = "booking_addons"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    booking_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("bookings.id", ondelete="CASCADE"),
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
    # Units charged after applying the pricing model
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    total_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    __table_args__ = (
        CheckConstraint("requested_quantity > 0", name="ck_booking_addon_quantity_positive"),
    )

    booking: Mapped["Booking"] = relationship("Booking", back_populates="addons")

    def __repr__(self) -> str:
        return f"<BookingAddon(booking_id={self.booking_id}, addon='{self.addon_name}', total={self.total_price})>"


class BookingStatusLog(Base):
    """Append-only audit row for a status or payment change."""

    __tablename__ = "booking_status_logs"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    tenant_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    booking_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("bookings.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    field_changed: Mapped[str] = mapped_column(String(50), nullable=False)
    old_value: Mapped[str | None] = mapped_column(String(50), nullable=True)
    new_value: Mapped[str] = mapped_column(String(50), nullable=False)
    changed_by: Mapped[str] = mapped_column(String(255), nullable=False)
    change_source: Mapped[ChangeSource] = mapped_column(String(20), nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=func.now()
    )

    booking: Mapped["Booking"] = relationship("Booking", back_populates="status_logs")

    def __repr__(self) -> str:
        return (
            f"<BookingStatusLog(booking_id={self.booking_id}, {self.field_changed}: "
            f"{self.old_value} -> {self.new_value}, by={self.changed_by})>"
        )
