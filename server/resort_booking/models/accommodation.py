"""Accommodation type and room model definitions."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
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


class AccommodationType(Base):
    """Rate card for a category of rooms."""

    __tablename__ = "accommodation_types"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    tenant_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Rate card
    base_rate_weekday: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    base_rate_weekend: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    base_pax: Mapped[int] = mapped_column(Integer, nullable=False, default=2)
    max_pax: Mapped[int] = mapped_column(Integer, nullable=False, default=2)
    additional_pax_fee: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))

    # Soft delete; bookings keep referencing inactive types
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, index=True)

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
        CheckConstraint("base_pax >= 1", name="ck_accommodation_type_base_pax_positive"),
        CheckConstraint("base_pax <= max_pax", name="ck_accommodation_type_base_pax_lte_max"),
        CheckConstraint("base_rate_weekday >= 0", name="ck_accommodation_type_weekday_rate_non_negative"),
        CheckConstraint("base_rate_weekend >= 0", name="ck_accommodation_type_weekend_rate_non_negative"),
        CheckConstraint("additional_pax_fee >= 0", name="ck_accommodation_type_pax_fee_non_negative"),
    )

    rooms: Mapped[list["Room"]] = relationship("Room", back_populates="accommodation_type")

    def __repr__(self) -> str:
        return (
            f"<AccommodationType(id={self.id}, name='{self.name}', "
            f"pax={self.base_pax}/{self.max_pax}, active={self.is_active})>"
        )


class Room(Base):
    """One bookable unit of an accommodation type."""

    __tablename__ = "rooms"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    tenant_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    accommodation_type_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("accommodation_types.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )

    room_number: Mapped[str] = mapped_column(String(50), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, index=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint("tenant_id", "room_number", name="uq_room_tenant_number"),
    )

    accommodation_type: Mapped["AccommodationType"] = relationship(
        "AccommodationType",
        back_populates="rooms"
    )

    def __repr__(self) -> str:
        return f"<Room(id={self.id}, number='{self.room_number}', type={self.accommodation_type_id})>"
