"""Availability calendar: per-day room occupancy for an accommodation type."""

import logging
import math
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Iterable, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import settings
from ..core.exceptions import NotFoundError, ValidationError
from ..models.accommodation import AccommodationType, Room
from ..models.booking import INVENTORY_RELEASING_STATUSES, Booking
from .calendar import iter_days, occupies

logger = logging.getLogger(__name__)

# Share of inventory at or below which a day is reported as limited
LIMITED_THRESHOLD = Decimal("0.3")


class DayStatus(str, Enum):
    AVAILABLE = "available"
    LIMITED = "limited"
    FULL = "full"


@dataclass(frozen=True)
class DayAvailability:
    total_rooms: int
    booked_rooms: int
    status: DayStatus

    @property
    def available_rooms(self) -> int:
        return self.total_rooms - self.booked_rooms


def classify(total_rooms: int, booked_rooms: int) -> DayStatus:
    """Classify a day from its room counts."""
    available = total_rooms - booked_rooms
    if available <= 0:
        return DayStatus.FULL
    if available <= math.ceil(Decimal(total_rooms) * LIMITED_THRESHOLD):
        return DayStatus.LIMITED
    return DayStatus.AVAILABLE


def build_calendar(
    start_date: date,
    end_date: date,
    total_rooms: int,
    stays: Iterable[tuple[date, date]],
) -> dict[date, DayAvailability]:
    """
    Count occupied rooms for each day of the inclusive range [start_date, end_date].

    ``stays`` holds the (check_in, check_out) pairs of inventory-holding bookings.
    """
    stays = list(stays)
    calendar = {}
    for day in iter_days(start_date, end_date):
        booked = sum(1 for check_in, check_out in stays if occupies(check_in, check_out, day))
        calendar[day] = DayAvailability(
            total_rooms=total_rooms,
            booked_rooms=booked,
            status=classify(total_rooms, booked),
        )
    return calendar


class AvailabilityService:
    """Service for read-only availability snapshots."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_calendar(
        self,
        tenant_id: UUID,
        start_date: date,
        end_date: date,
        accommodation_type_id: Optional[UUID] = None,
    ) -> dict[date, DayAvailability]:
        """
        Build the occupancy calendar for one accommodation type, or all of them.

        The result is a point-in-time snapshot; the reservation transaction
        performs its own check.

        Raises:
            ValidationError: If the range is reversed or too long
            NotFoundError: If the accommodation type does not exist for the tenant
        """
        span = (end_date - start_date).days
        if span < 0 or span > settings.availability_max_days:
            raise ValidationError(
                detail=f"Date range must be between 1 and {settings.availability_max_days} days",
                violations=[{"path": "end_date", "message": "Date range out of bounds"}],
            )

        room_stmt = select(Room.id).where(Room.tenant_id == tenant_id, Room.is_active.is_(True))
        if accommodation_type_id is not None:
            type_stmt = select(AccommodationType.id).where(
                AccommodationType.id == accommodation_type_id,
                AccommodationType.tenant_id == tenant_id,
            )
            if (await self.db.execute(type_stmt)).scalar_one_or_none() is None:
                raise NotFoundError(resource_type="accommodation type", resource_id=str(accommodation_type_id))
            room_stmt = room_stmt.where(Room.accommodation_type_id == accommodation_type_id)

        room_ids = list((await self.db.execute(room_stmt)).scalars())

        stays: list[tuple[date, date]] = []
        if room_ids:
            booking_stmt = select(Booking.check_in_date, Booking.check_out_date).where(
                Booking.tenant_id == tenant_id,
                Booking.room_id.in_(room_ids),
                Booking.status.not_in([s.value for s in INVENTORY_RELEASING_STATUSES]),
                Booking.check_in_date <= end_date,
                Booking.check_out_date > start_date,
            )
            stays = [(row.check_in_date, row.check_out_date) for row in await self.db.execute(booking_stmt)]

        calendar = build_calendar(start_date, end_date, len(room_ids), stays)

        logger.debug(
            "Availability calendar built",
            extra={
                "tenant_id": str(tenant_id),
                "accommodation_type_id": str(accommodation_type_id) if accommodation_type_id else None,
                "start_date": start_date.isoformat(),
                "end_date": end_date.isoformat(),
                "total_rooms": len(room_ids),
                "bookings_considered": len(stays),
            }
        )
        return calendar
