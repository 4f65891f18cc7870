"""
Reservation transaction.

Reserving rooms is one indivisible operation: room validation, the overlap
check, pricing, voucher redemption, guest upsert and every insert run inside a
single database transaction while per-room and per-guest locks are held. Day
tours follow the same path with a per-date lock and a capacity check.
Nothing is visible to other requests until the commit, and any failure rolls
the whole attempt back.
"""

import logging
import secrets
import string
from dataclasses import dataclass
from datetime import date
from decimal import ROUND_DOWN, Decimal
from typing import Optional, Sequence
from uuid import UUID, uuid4

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import settings
from ..core.database import utcnow
from ..core.exceptions import ConflictError, InternalServerError, NotFoundError, ProblemDetailsException, ValidationError
from ..core.locking import day_tour_lock_key, guest_lock_key, reservation_guard, room_lock_key, voucher_lock_key
from ..core.observability import metrics_collector
from ..models.accommodation import AccommodationType, Room
from ..models.booking import (
    INVENTORY_RELEASING_STATUSES,
    Booking,
    BookingAddon,
    BookingGroup,
    BookingSource,
    BookingStatus,
    PaymentStatus,
)
from ..models.day_tour import DayTourBooking, DayTourBookingAddon
from ..models.guest import Guest
from ..models.pricing import BookingType
from ..models.tenant import Tenant
from ..schemas.booking import (
    CreateBookingRequest,
    CreateDayTourBookingRequest,
    CreateGroupBookingRequest,
    GuestDetails,
)
from .notification_service import BookingNotice
from .price_calculator import CENTS, ZERO, PriceBreakdown, to_money
from .pricing_service import PricingService
from .voucher_service import VoucherService

logger = logging.getLogger(__name__)

# Name of the PostgreSQL exclusion constraint that forbids overlapping stays
OVERLAP_CONSTRAINT = "ex_booking_room_no_overlap"

REFERENCE_ALPHABET = string.ascii_uppercase + string.digits


class RoomUnavailableError(ConflictError):
    """Exception when a room is already taken for part of the requested stay."""

    def __init__(self, room_ids: Sequence[str], check_in: date, check_out: date):
        super().__init__(
            detail=(
                f"Room is not available from {check_in.isoformat()} to {check_out.isoformat()}"
                if len(room_ids) == 1
                else f"{len(room_ids)} rooms are not available from {check_in.isoformat()} to {check_out.isoformat()}"
            ),
            code="ROOM_UNAVAILABLE",
            conflicting_resource={
                "room_ids": list(room_ids),
                "check_in_date": check_in.isoformat(),
                "check_out_date": check_out.isoformat(),
            },
        )
        self.problem_details["retryable"] = False


class DayTourFullError(ConflictError):
    """Exception when a day tour would exceed the tenant's capacity for the date."""

    def __init__(self, tour_date: date, capacity: int, booked_pax: int):
        super().__init__(
            detail=f"Day tours on {tour_date.isoformat()} have {max(0, capacity - booked_pax)} places left",
            code="DAY_TOUR_FULL",
            conflicting_resource={
                "tour_date": tour_date.isoformat(),
                "capacity": capacity,
                "booked_pax": booked_pax,
            },
        )


@dataclass(frozen=True)
class RoomStay:
    """One room of a reservation request, with its party and add-ons."""

    room_id: UUID
    accommodation_type_id: UUID
    num_adults: int
    num_children: int
    addon_selection: tuple = ()


@dataclass(frozen=True)
class ReservedBooking:
    booking_id: UUID
    reference_number: str
    room_id: UUID
    room_number: str
    accommodation_name: str
    total_amount: Decimal
    discount_amount: Decimal


@dataclass(frozen=True)
class ReservationResult:
    """Committed reservation, detached from the session that wrote it."""

    bookings: tuple
    total_amount: Decimal
    discount_amount: Decimal
    tenant_name: str
    notification_email: Optional[str]
    guest_name: str
    guest_email: str
    check_in_date: date
    check_out_date: date
    group_id: Optional[UUID] = None
    group_reference_number: Optional[str] = None
    voucher_code: Optional[str] = None

    def notices(self) -> list[BookingNotice]:
        """Email payloads for each reserved booking."""
        return [
            BookingNotice(
                tenant_name=self.tenant_name,
                reference_number=b.reference_number,
                guest_name=self.guest_name,
                guest_email=self.guest_email,
                accommodation_name=b.accommodation_name,
                room_number=b.room_number,
                check_in_date=self.check_in_date,
                check_out_date=self.check_out_date,
                total_amount=b.total_amount,
            )
            for b in self.bookings
        ]


@dataclass(frozen=True)
class DayTourReservation:
    """Committed day-tour booking."""

    booking_id: UUID
    reference_number: str
    tour_date: date
    num_adults: int
    num_children: int
    base_amount: Decimal
    addons_amount: Decimal
    discount_amount: Decimal
    total_amount: Decimal
    voucher_code: Optional[str] = None


def allocate_discount(subtotals: Sequence[Decimal], discount: Decimal) -> list[Decimal]:
    """
    Split ``discount`` across ``subtotals`` in proportion to their size.

    Shares are rounded down to the cent and the remainder goes to the last
    subtotal. No share exceeds its subtotal and the shares always sum to
    ``discount`` (which must not exceed the sum of the subtotals).
    """
    if not subtotals:
        return []
    discount = to_money(discount)
    total = sum(subtotals, ZERO)
    if discount <= ZERO or total <= ZERO:
        return [ZERO for _ in subtotals]

    shares = [
        (discount * subtotal / total).quantize(CENTS, rounding=ROUND_DOWN)
        for subtotal in subtotals[:-1]
    ]
    shares.append(discount - sum(shares, ZERO))

    # Push any overflow of the last share back onto earlier bookings
    for i in range(len(shares) - 1, 0, -1):
        overflow = shares[i] - subtotals[i]
        if overflow <= ZERO:
            break
        shares[i] -= overflow
        shares[i - 1] += overflow
    return shares


def generate_reference(prefix: str, today: Optional[date] = None, length: int = 6) -> str:
    """Build a reference such as ``BK-261106-7QX2MA``."""
    today = today or utcnow().date()
    suffix = "".join(secrets.choice(REFERENCE_ALPHABET) for _ in range(length))
    return f"{prefix}-{today:%y%m%d}-{suffix}"


class ReservationService:
    """Service that turns validated booking requests into committed bookings."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.pricing_service = PricingService(db)
        self.voucher_service = VoucherService(db)

    async def create_booking(
        self,
        tenant_id: UUID,
        request: CreateBookingRequest,
        source: BookingSource = BookingSource.ONLINE,
        created_by: Optional[str] = None,
    ) -> ReservationResult:
        """
        Reserve a single room.

        Raises:
            NotFoundError: If the tenant, room or accommodation type does not exist
            ValidationError: If the room, party or add-ons do not fit the request
            RoomUnavailableError: If the room is taken for part of the stay
            VoucherRejectedError: If the voucher no longer qualifies
            InternalServerError: On any unexpected failure
        """
        stay = RoomStay(
            room_id=request.room_id,
            accommodation_type_id=request.accommodation_type_id,
            num_adults=request.num_adults,
            num_children=request.num_children,
            addon_selection=tuple(request.addon_selection()),
        )
        return await self._reserve(
            tenant_id,
            request,
            request.check_in_date,
            request.check_out_date,
            [stay],
            grouped=False,
            source=source,
            created_by=created_by,
        )

    async def create_group_booking(
        self,
        tenant_id: UUID,
        request: CreateGroupBookingRequest,
        source: BookingSource = BookingSource.ONLINE,
        created_by: Optional[str] = None,
    ) -> ReservationResult:
        """
        Reserve several rooms for one guest under a group reference.

        Either every room is booked or none is. Rooms without their own party
        size use the group's.
        """
        stays = [
            RoomStay(
                room_id=selection.room_id,
                accommodation_type_id=selection.accommodation_type_id,
                num_adults=selection.num_adults if selection.num_adults is not None else request.num_adults,
                num_children=selection.num_children if selection.num_children is not None else request.num_children,
                addon_selection=tuple(selection.addon_selection()),
            )
            for selection in request.rooms
        ]
        return await self._reserve(
            tenant_id,
            request,
            request.check_in_date,
            request.check_out_date,
            stays,
            grouped=True,
            source=source,
            created_by=created_by,
        )

    async def create_day_tour_booking(
        self,
        tenant_id: UUID,
        request: CreateDayTourBookingRequest,
        source: BookingSource = BookingSource.ONLINE,
        created_by: Optional[str] = None,
    ) -> DayTourReservation:
        """
        Reserve a day tour for a party on one date.

        Runs the same guarded transaction as room reservations, keyed on the
        tour date instead of rooms: capacity check, pricing, voucher
        redemption, guest upsert and the inserts commit together.

        Raises:
            NotFoundError: If the tenant does not exist
            ValidationError: If an add-on is not offered for day tours
            DayTourFullError: If the party does not fit the date's remaining capacity
            VoucherRejectedError: If the voucher no longer qualifies
            InternalServerError: On any unexpected failure
        """
        lock_keys = [
            day_tour_lock_key(tenant_id, request.tour_date),
            guest_lock_key(tenant_id, request.guest_email),
        ]
        if request.voucher_code:
            lock_keys.append(voucher_lock_key(tenant_id, request.voucher_code))

        try:
            async with reservation_guard(self.db, lock_keys):
                result = await self._write_day_tour(tenant_id, request, source, created_by)
                await self.db.commit()
        except DayTourFullError:
            await self.db.rollback()
            metrics_collector.record_booking_conflict()
            logger.warning(
                "Day tour conflict - date is full",
                extra={"tenant_id": str(tenant_id), "tour_date": request.tour_date.isoformat()}
            )
            raise
        except ProblemDetailsException:
            await self.db.rollback()
            raise
        except Exception as e:
            await self.db.rollback()
            logger.error(
                "Unexpected error while reserving a day tour",
                exc_info=True,
                extra={"tenant_id": str(tenant_id), "error": str(e)}
            )
            raise InternalServerError(detail="Failed to create day tour booking")

        metrics_collector.record_booking_created(source.value, "day_tour", 1)
        if result.voucher_code:
            metrics_collector.record_voucher_redeemed()

        logger.info(
            "Day tour reservation committed",
            extra={
                "tenant_id": str(tenant_id),
                "source": source.value,
                "reference_number": result.reference_number,
                "tour_date": result.tour_date.isoformat(),
                "total_amount": str(result.total_amount),
                "voucher_code": result.voucher_code,
            }
        )
        return result

    async def _write_day_tour(
        self,
        tenant_id: UUID,
        request: CreateDayTourBookingRequest,
        source: BookingSource,
        created_by: Optional[str],
    ) -> DayTourReservation:
        tenant = await self._get_tenant(tenant_id)

        booked_pax = (await self.db.execute(
            select(func.coalesce(func.sum(DayTourBooking.num_adults + DayTourBooking.num_children), 0)).where(
                DayTourBooking.tenant_id == tenant_id,
                DayTourBooking.tour_date == request.tour_date,
                DayTourBooking.status.not_in([s.value for s in INVENTORY_RELEASING_STATUSES]),
            )
        )).scalar_one()
        if booked_pax + request.num_adults + request.num_children > tenant.day_tour_capacity:
            raise DayTourFullError(request.tour_date, tenant.day_tour_capacity, booked_pax)

        breakdown = await self.pricing_service.price_day_tour(
            tenant, request.num_adults, request.num_children, request.addon_selection()
        )

        voucher = None
        discount = ZERO
        if request.voucher_code:
            voucher, discount = await self.voucher_service.redeem(
                tenant_id, request.voucher_code, BookingType.DAY_TOUR, breakdown.grand_total
            )
        total = breakdown.grand_total - discount

        guest_row = await self._upsert_guest(tenant_id, request, request.tour_date, 1, total)

        booking = DayTourBooking(
            id=uuid4(),
            tenant_id=tenant_id,
            reference_number=await self._unique_reference(
                DayTourBooking, tenant_id, settings.day_tour_reference_prefix, set()
            ),
            guest_id=guest_row.id,
            guest_name=request.guest_name,
            guest_email=request.guest_email,
            guest_phone=request.guest_phone,
            tour_date=request.tour_date,
            num_adults=request.num_adults,
            num_children=request.num_children,
            base_amount=breakdown.base_amount,
            addons_amount=breakdown.addons_amount,
            discount_amount=discount,
            total_amount=total,
            voucher_id=voucher.id if voucher else None,
            voucher_code=voucher.code if voucher else None,
            status=BookingStatus.PENDING.value,
            payment_status=PaymentStatus.UNPAID.value,
            source=source.value,
            special_requests=request.special_requests,
            created_by=created_by,
        )
        self.db.add(booking)
        for charge in breakdown.addon_charges:
            self.db.add(DayTourBookingAddon(
                booking_id=booking.id,
                addon_id=UUID(charge.addon_id),
                addon_name=charge.name,
                pricing_model=charge.pricing_model.value,
                requested_quantity=charge.requested_quantity,
                quantity=charge.quantity,
                unit_price=charge.unit_price,
                total_price=charge.total_price,
            ))
        await self.db.flush()

        return DayTourReservation(
            booking_id=booking.id,
            reference_number=booking.reference_number,
            tour_date=request.tour_date,
            num_adults=request.num_adults,
            num_children=request.num_children,
            base_amount=breakdown.base_amount,
            addons_amount=breakdown.addons_amount,
            discount_amount=discount,
            total_amount=total,
            voucher_code=voucher.code if voucher else None,
        )

    async def _reserve(
        self,
        tenant_id: UUID,
        guest: GuestDetails,
        check_in: date,
        check_out: date,
        stays: list[RoomStay],
        grouped: bool,
        source: BookingSource,
        created_by: Optional[str],
    ) -> ReservationResult:
        lock_keys = [room_lock_key(s.room_id) for s in stays]
        lock_keys.append(guest_lock_key(tenant_id, guest.guest_email))
        if guest.voucher_code:
            lock_keys.append(voucher_lock_key(tenant_id, guest.voucher_code))
        kind = "group" if grouped else "single"

        try:
            async with reservation_guard(self.db, lock_keys):
                result = await self._write_reservation(
                    tenant_id, guest, check_in, check_out, stays, grouped, source, created_by
                )
                await self.db.commit()
        except RoomUnavailableError as e:
            await self.db.rollback()
            metrics_collector.record_booking_conflict()
            logger.warning(
                "Reservation conflict - room unavailable",
                extra={
                    "tenant_id": str(tenant_id),
                    "room_ids": e.problem_details.get("conflicting_resource", {}).get("room_ids"),
                    "check_in_date": check_in.isoformat(),
                    "check_out_date": check_out.isoformat(),
                }
            )
            raise
        except ProblemDetailsException:
            await self.db.rollback()
            raise
        except IntegrityError as e:
            await self.db.rollback()
            if OVERLAP_CONSTRAINT in str(e.orig):
                metrics_collector.record_booking_conflict()
                logger.warning(
                    "Reservation conflict caught by exclusion constraint",
                    extra={"tenant_id": str(tenant_id), "check_in_date": check_in.isoformat()}
                )
                raise RoomUnavailableError([str(s.room_id) for s in stays], check_in, check_out)
            logger.error(
                "Integrity error while reserving",
                exc_info=True,
                extra={"tenant_id": str(tenant_id)}
            )
            raise InternalServerError(detail="Failed to create booking")
        except Exception as e:
            await self.db.rollback()
            logger.error(
                "Unexpected error while reserving",
                exc_info=True,
                extra={"tenant_id": str(tenant_id), "error": str(e)}
            )
            raise InternalServerError(detail="Failed to create booking")

        metrics_collector.record_booking_created(source.value, kind, len(result.bookings))
        if result.voucher_code:
            metrics_collector.record_voucher_redeemed()

        logger.info(
            "Reservation committed",
            extra={
                "tenant_id": str(tenant_id),
                "kind": kind,
                "source": source.value,
                "group_reference_number": result.group_reference_number,
                "reference_numbers": [b.reference_number for b in result.bookings],
                "total_amount": str(result.total_amount),
                "discount_amount": str(result.discount_amount),
                "voucher_code": result.voucher_code,
            }
        )
        return result

    async def _write_reservation(
        self,
        tenant_id: UUID,
        guest: GuestDetails,
        check_in: date,
        check_out: date,
        stays: list[RoomStay],
        grouped: bool,
        source: BookingSource,
        created_by: Optional[str],
    ) -> ReservationResult:
        """Everything between acquiring the locks and committing."""
        tenant = await self._get_tenant(tenant_id)
        rooms = await self._lock_rooms(tenant_id, stays)
        types = await self._get_accommodation_types(tenant_id, stays)

        for stay in stays:
            room = rooms[stay.room_id]
            if room.accommodation_type_id != stay.accommodation_type_id:
                raise ValidationError(
                    detail=f"Room {room.room_number} is not of the requested accommodation type",
                    violations=[{"path": "accommodation_type_id", "message": "Room belongs to another type"}],
                )

        await self._check_overlaps(tenant_id, list(rooms), check_in, check_out)

        adjustments = await self.pricing_service.get_seasonal_rates(tenant_id, check_in, check_out)
        breakdowns: list[PriceBreakdown] = []
        for stay in stays:
            breakdowns.append(await self.pricing_service.price_stay(
                tenant_id,
                types[stay.accommodation_type_id],
                check_in,
                check_out,
                stay.num_adults,
                stay.num_children,
                stay.addon_selection,
                adjustments=adjustments,
            ))

        subtotals = [b.grand_total for b in breakdowns]
        subtotal = sum(subtotals, ZERO)

        voucher = None
        discount = ZERO
        if guest.voucher_code:
            voucher, discount = await self.voucher_service.redeem(
                tenant_id, guest.voucher_code, BookingType.OVERNIGHT, subtotal
            )
        shares = allocate_discount(subtotals, discount)

        group = None
        if grouped:
            group = BookingGroup(
                id=uuid4(),
                tenant_id=tenant_id,
                reference_number=await self._unique_reference(
                    BookingGroup, tenant_id, settings.group_reference_prefix, set()
                ),
                guest_name=guest.guest_name,
                guest_email=guest.guest_email,
                guest_phone=guest.guest_phone,
                total_amount=subtotal - discount,
                discount_amount=discount,
                voucher_code=voucher.code if voucher else None,
            )
            self.db.add(group)

        guest_row = await self._upsert_guest(tenant_id, guest, check_in, len(stays), subtotal - discount)

        reserved = []
        used_references: set[str] = set()
        for stay, breakdown, share in zip(stays, breakdowns, shares):
            room = rooms[stay.room_id]
            reference = await self._unique_reference(Booking, tenant_id, settings.reference_prefix, used_references)
            used_references.add(reference)
            booking = Booking(
                id=uuid4(),
                tenant_id=tenant_id,
                reference_number=reference,
                group_id=group.id if group else None,
                room_id=room.id,
                accommodation_type_id=stay.accommodation_type_id,
                guest_id=guest_row.id,
                guest_name=guest.guest_name,
                guest_email=guest.guest_email,
                guest_phone=guest.guest_phone,
                check_in_date=check_in,
                check_out_date=check_out,
                num_adults=stay.num_adults,
                num_children=stay.num_children,
                base_amount=breakdown.total_base_rate,
                pax_surcharge=breakdown.total_pax_surcharge,
                addons_amount=breakdown.addons_amount,
                discount_amount=share,
                total_amount=breakdown.grand_total - share,
                voucher_id=voucher.id if voucher else None,
                voucher_code=voucher.code if voucher else None,
                status=BookingStatus.PENDING.value,
                payment_status=PaymentStatus.UNPAID.value,
                source=source.value,
                special_requests=guest.special_requests,
                created_by=created_by,
            )
            self.db.add(booking)
            for charge in breakdown.addon_charges:
                self.db.add(BookingAddon(
                    booking_id=booking.id,
                    addon_id=UUID(charge.addon_id),
                    addon_name=charge.name,
                    pricing_model=charge.pricing_model.value,
                    requested_quantity=charge.requested_quantity,
                    quantity=charge.quantity,
                    unit_price=charge.unit_price,
                    total_price=charge.total_price,
                ))
            reserved.append(ReservedBooking(
                booking_id=booking.id,
                reference_number=reference,
                room_id=room.id,
                room_number=room.room_number,
                accommodation_name=types[stay.accommodation_type_id].name,
                total_amount=breakdown.grand_total - share,
                discount_amount=share,
            ))

        await self.db.flush()

        return ReservationResult(
            bookings=tuple(reserved),
            total_amount=subtotal - discount,
            discount_amount=discount,
            tenant_name=tenant.name,
            notification_email=tenant.notification_email,
            guest_name=guest.guest_name,
            guest_email=guest.guest_email,
            check_in_date=check_in,
            check_out_date=check_out,
            group_id=group.id if group else None,
            group_reference_number=group.reference_number if group else None,
            voucher_code=voucher.code if voucher else None,
        )

    async def _get_tenant(self, tenant_id: UUID) -> Tenant:
        result = await self.db.execute(
            select(Tenant).where(Tenant.id == tenant_id, Tenant.is_active.is_(True))
        )
        tenant = result.scalar_one_or_none()
        if not tenant:
            raise NotFoundError(resource_type="tenant", resource_id=str(tenant_id))
        return tenant

    async def _lock_rooms(self, tenant_id: UUID, stays: list[RoomStay]) -> dict[UUID, Room]:
        """Load and row-lock the requested rooms; all must exist and be active."""
        room_ids = [s.room_id for s in stays]
        stmt = (
            select(Room)
            .where(Room.tenant_id == tenant_id, Room.id.in_(room_ids))
            .order_by(Room.id)
            .with_for_update()
        )
        result = await self.db.execute(stmt)
        rooms = {room.id: room for room in result.scalars()}

        for room_id in room_ids:
            if room_id not in rooms:
                raise NotFoundError(resource_type="room", resource_id=str(room_id))

        inactive = [str(r.id) for r in rooms.values() if not r.is_active]
        if inactive:
            raise ValidationError(
                detail="One or more rooms are not available for booking",
                violations=[{"path": "room_id", "message": f"Room {r} is inactive"} for r in inactive],
                code="ROOM_INACTIVE",
            )
        return rooms

    async def _get_accommodation_types(self, tenant_id: UUID, stays: list[RoomStay]) -> dict[UUID, AccommodationType]:
        types = {}
        for type_id in {s.accommodation_type_id for s in stays}:
            types[type_id] = await self.pricing_service.get_accommodation_type(tenant_id, type_id)
        return types

    async def _check_overlaps(self, tenant_id: UUID, room_ids: list[UUID], check_in: date, check_out: date) -> None:
        """Raise RoomUnavailableError if any inventory-holding booking intersects the stay."""
        stmt = select(Booking.room_id, Booking.reference_number).where(
            Booking.tenant_id == tenant_id,
            Booking.room_id.in_(room_ids),
            Booking.status.not_in([s.value for s in INVENTORY_RELEASING_STATUSES]),
            Booking.check_in_date < check_out,
            Booking.check_out_date > check_in,
        )
        clashes = (await self.db.execute(stmt)).all()
        if clashes:
            raise RoomUnavailableError(
                sorted({str(row.room_id) for row in clashes}), check_in, check_out
            )

    async def _unique_reference(self, model, tenant_id: UUID, prefix: str, taken: set[str]) -> str:
        """Generate references until one is unused by the tenant and this transaction."""
        while True:
            reference = generate_reference(prefix)
            if reference in taken:
                continue
            stmt = select(model.id).where(model.tenant_id == tenant_id, model.reference_number == reference)
            if (await self.db.execute(stmt)).first() is None:
                return reference

    async def _upsert_guest(
        self,
        tenant_id: UUID,
        guest: GuestDetails,
        check_in: date,
        booking_count: int,
        amount: Decimal,
    ) -> Guest:
        result = await self.db.execute(
            select(Guest).where(Guest.tenant_id == tenant_id, Guest.email == guest.guest_email)
        )
        row = result.scalar_one_or_none()
        if row is None:
            row = Guest(
                id=uuid4(),
                tenant_id=tenant_id,
                email=guest.guest_email,
                full_name=guest.guest_name,
                phone=guest.guest_phone,
                total_bookings=booking_count,
                total_spent=to_money(amount),
                first_visit=check_in,
                last_visit=check_in,
            )
        else:
            row.full_name = guest.guest_name
            row.phone = guest.guest_phone or row.phone
            row.total_bookings += booking_count
            row.total_spent = to_money(Decimal(str(row.total_spent)) + amount)
            row.last_visit = max(row.last_visit, check_in) if row.last_visit else check_in
        self.db.add(row)
        return row
