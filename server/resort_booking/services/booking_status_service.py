"""Booking lookups, status and payment transitions, and their audit trail."""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..core.config import settings
from ..core.database import utcnow
from ..core.exceptions import NotFoundError, ValidationError
from ..core.observability import metrics_collector
from ..models.booking import (
    PAYMENT_TRANSITIONS,
    STATUS_TRANSITIONS,
    Booking,
    BookingGroup,
    BookingStatus,
    BookingStatusLog,
    ChangeSource,
    PaymentStatus,
)
from ..models.tenant import Tenant
from ..schemas.booking import BookingChange, UpdateBookingGroupRequest, UpdateBookingRequest
from .notification_service import BookingNotice

logger = logging.getLogger(__name__)

SYSTEM_ACTOR = "system"


class InvalidTransitionError(ValidationError):
    """Exception when a status or payment change is not allowed from the current state."""

    def __init__(self, field_name: str, current: str, requested: str, reference_number: str):
        super().__init__(
            detail=f"Booking {reference_number} cannot change {field_name} from '{current}' to '{requested}'",
            violations=[{"path": field_name, "message": f"Transition {current} -> {requested} is not allowed"}],
            code="INVALID_TRANSITION",
        )


def check_transition(booking: Booking, change: BookingChange) -> None:
    """Raise InvalidTransitionError unless ``change`` is allowed for ``booking``."""
    if change.status is not None:
        current = BookingStatus(booking.status)
        if change.status not in STATUS_TRANSITIONS[current]:
            raise InvalidTransitionError("status", current.value, change.status.value, booking.reference_number)
    else:
        current = PaymentStatus(booking.payment_status)
        if change.payment_status not in PAYMENT_TRANSITIONS[current]:
            raise InvalidTransitionError(
                "payment_status", current.value, change.payment_status.value, booking.reference_number
            )


def apply_change(
    booking: Booking,
    change: BookingChange,
    actor: str,
    source: ChangeSource,
    now: datetime,
) -> BookingStatusLog:
    """
    Write a validated change and its derived timestamps onto ``booking``.

    Returns the audit row for the caller to add to the same transaction.
    """
    if change.status is not None:
        field_name = "status"
        old_value = booking.status
        new_value = change.status.value
        booking.status = new_value
        if change.status == BookingStatus.CANCELLED:
            booking.cancelled_at = now
            booking.cancellation_reason = change.cancellation_reason
        elif change.status == BookingStatus.CHECKED_IN:
            booking.checked_in_at = now
        elif change.status == BookingStatus.CHECKED_OUT:
            booking.checked_out_at = now
    else:
        field_name = "payment_status"
        old_value = booking.payment_status
        new_value = change.payment_status.value
        booking.payment_status = new_value
        if change.payment_method:
            booking.payment_method = change.payment_method
        if change.payment_reference:
            booking.payment_reference = change.payment_reference
        if change.payment_status == PaymentStatus.PAID:
            booking.paid_at = now

    return BookingStatusLog(
        tenant_id=booking.tenant_id,
        booking_id=booking.id,
        field_changed=field_name,
        old_value=old_value,
        new_value=new_value,
        changed_by=actor,
        change_source=source.value,
        notes=change.notes,
        created_at=now,
    )


@dataclass
class StatusChange:
    """Outcome of an admin update: reloaded bookings plus guest email payloads."""

    field_changed: str
    new_value: str
    bookings: list = field(default_factory=list)
    notices: list = field(default_factory=list)


class BookingStatusService:
    """Service for booking retrieval and audited state changes."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_booking_detail(self, tenant_id: UUID, booking_id: UUID) -> Booking:
        """
        Get a booking with its add-on lines and audit trail.

        Raises:
            NotFoundError: If the booking does not exist for the tenant
        """
        stmt = (
            select(Booking)
            .options(selectinload(Booking.addons), selectinload(Booking.status_logs))
            .where(Booking.id == booking_id, Booking.tenant_id == tenant_id)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        booking = result.scalar_one_or_none()
        if not booking:
            raise NotFoundError(resource_type="booking", resource_id=str(booking_id))
        return booking

    async def get_group(self, tenant_id: UUID, group_id: UUID) -> BookingGroup:
        """
        Get a booking group with every member booking.

        Raises:
            NotFoundError: If the group does not exist for the tenant
        """
        stmt = (
            select(BookingGroup)
            .options(
                selectinload(BookingGroup.bookings).selectinload(Booking.addons),
                selectinload(BookingGroup.bookings).selectinload(Booking.status_logs),
            )
            .where(BookingGroup.id == group_id, BookingGroup.tenant_id == tenant_id)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        group = result.scalar_one_or_none()
        if not group:
            raise NotFoundError(resource_type="booking group", resource_id=str(group_id))
        return group

    def _locked_bookings(self, tenant_id: UUID):
        return (
            select(Booking)
            .options(selectinload(Booking.room), selectinload(Booking.accommodation_type))
            .where(Booking.tenant_id == tenant_id)
            .order_by(Booking.id)
            .with_for_update()
        )

    async def update_booking(self, tenant_id: UUID, request: UpdateBookingRequest, actor: str) -> StatusChange:
        """
        Apply an admin status or payment change to one booking.

        Raises:
            NotFoundError: If the booking does not exist for the tenant
            InvalidTransitionError: If the change is not allowed from the current state
        """
        result = await self.db.execute(self._locked_bookings(tenant_id).where(Booking.id == request.booking_id))
        booking = result.scalar_one_or_none()
        if not booking:
            raise NotFoundError(resource_type="booking", resource_id=str(request.booking_id))

        change = await self._apply(tenant_id, [booking], request, actor, ChangeSource.ADMIN)
        change.bookings = [await self.get_booking_detail(tenant_id, booking.id)]
        return change

    async def update_group(self, tenant_id: UUID, request: UpdateBookingGroupRequest, actor: str) -> StatusChange:
        """
        Apply the same change to every booking of a group, all or nothing.

        Raises:
            NotFoundError: If the group does not exist for the tenant
            InvalidTransitionError: If any member booking cannot take the change
        """
        group_stmt = select(BookingGroup.id).where(
            BookingGroup.id == request.group_id,
            BookingGroup.tenant_id == tenant_id,
        )
        if (await self.db.execute(group_stmt)).scalar_one_or_none() is None:
            raise NotFoundError(resource_type="booking group", resource_id=str(request.group_id))

        result = await self.db.execute(self._locked_bookings(tenant_id).where(Booking.group_id == request.group_id))
        bookings = list(result.scalars())

        change = await self._apply(tenant_id, bookings, request, actor, ChangeSource.ADMIN)
        change.bookings = bookings
        return change

    async def _apply(
        self,
        tenant_id: UUID,
        bookings: list[Booking],
        change: BookingChange,
        actor: str,
        source: ChangeSource,
    ) -> StatusChange:
        try:
            for booking in bookings:
                check_transition(booking, change)
        except ValidationError:
            # Rollback expires the loaded rows, so read them first
            booking_ids = [str(b.id) for b in bookings]
            await self.db.rollback()
            logger.warning(
                "Rejected booking transition",
                extra={
                    "tenant_id": str(tenant_id),
                    "booking_ids": booking_ids,
                    "status": change.status.value if change.status else None,
                    "payment_status": change.payment_status.value if change.payment_status else None,
                }
            )
            raise

        tenant_name = (
            await self.db.execute(select(Tenant.name).where(Tenant.id == tenant_id))
        ).scalar_one_or_none() or "Resort"

        now = utcnow()
        outcome = None
        for booking in bookings:
            log = apply_change(booking, change, actor, source, now)
            self.db.add(booking)
            self.db.add(log)
            if outcome is None:
                outcome = StatusChange(field_changed=log.field_changed, new_value=log.new_value)
            outcome.notices.append(BookingNotice(
                tenant_name=tenant_name,
                reference_number=booking.reference_number,
                guest_name=booking.guest_name,
                guest_email=booking.guest_email,
                accommodation_name=booking.accommodation_type.name if booking.accommodation_type else "N/A",
                room_number=booking.room.room_number if booking.room else "N/A",
                check_in_date=booking.check_in_date,
                check_out_date=booking.check_out_date,
                total_amount=booking.total_amount,
                cancellation_reason=booking.cancellation_reason,
            ))

        await self.db.commit()

        if outcome is None:
            new_value = change.status.value if change.status else change.payment_status.value
            field_name = "status" if change.status else "payment_status"
            return StatusChange(field_changed=field_name, new_value=new_value)

        metrics_collector.record_transition(outcome.field_changed, outcome.new_value)
        logger.info(
            "Booking transition applied",
            extra={
                "tenant_id": str(tenant_id),
                "reference_numbers": [b.reference_number for b in bookings],
                "field_changed": outcome.field_changed,
                "new_value": outcome.new_value,
                "changed_by": actor,
                "change_source": source.value,
            }
        )
        return outcome

    async def expire_stale_pending(
        self,
        now: Optional[datetime] = None,
        ttl_hours: Optional[int] = None,
        batch_size: int = 100,
    ) -> int:
        """
        Move pending bookings older than the TTL to ``expired``, releasing their rooms.

        Each expiry writes a system audit row. Returns the number of bookings expired.
        """
        now = now or utcnow()
        ttl_hours = ttl_hours if ttl_hours is not None else settings.pending_booking_ttl_hours
        cutoff = now - timedelta(hours=ttl_hours)

        stmt = (
            select(Booking)
            .where(Booking.status == BookingStatus.PENDING.value, Booking.created_at < cutoff)
            .order_by(Booking.created_at)
            .limit(batch_size)
            .with_for_update(skip_locked=True)
        )
        bookings = list((await self.db.execute(stmt)).scalars())

        change = BookingChange(
            status=BookingStatus.EXPIRED,
            notes=f"Pending for more than {ttl_hours} hours",
        )
        for booking in bookings:
            self.db.add(apply_change(booking, change, SYSTEM_ACTOR, ChangeSource.SYSTEM, now))
            self.db.add(booking)
        await self.db.commit()

        pending = (
            await self.db.execute(
                select(func.count(Booking.id)).where(Booking.status == BookingStatus.PENDING.value)
            )
        ).scalar_one()
        metrics_collector.set_pending_bookings(pending)

        if bookings:
            metrics_collector.record_bookings_expired(len(bookings))
            for _ in bookings:
                metrics_collector.record_transition("status", BookingStatus.EXPIRED.value)
            logger.info(
                "Expired stale pending bookings",
                extra={
                    "count": len(bookings),
                    "cutoff": cutoff.isoformat(),
                    "reference_numbers": [b.reference_number for b in bookings],
                }
            )
        return len(bookings)
