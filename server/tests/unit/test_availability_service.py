"""Tests for the availability calendar."""

from datetime import date
from uuid import uuid4

import pytest

from resort_booking.core.exceptions import NotFoundError, ValidationError
from resort_booking.models.booking import BookingStatus
from resort_booking.services.availability_service import (
    AvailabilityService,
    DayStatus,
    build_calendar,
    classify,
)
from resort_booking.services.reservation_service import ReservationService
from resort_booking.services.booking_status_service import BookingStatusService
from resort_booking.schemas.booking import UpdateBookingRequest


class TestClassify:
    def test_five_rooms_three_booked_is_limited(self):
        """Two rooms left of five is at the ceil(5 * 0.3) threshold."""
        assert classify(5, 3) == DayStatus.LIMITED

    def test_thresholds(self):
        assert classify(5, 0) == DayStatus.AVAILABLE
        assert classify(5, 2) == DayStatus.AVAILABLE
        assert classify(5, 4) == DayStatus.LIMITED
        assert classify(5, 5) == DayStatus.FULL

    def test_single_room(self):
        assert classify(1, 0) == DayStatus.LIMITED
        assert classify(1, 1) == DayStatus.FULL

    def test_no_rooms_is_full(self):
        assert classify(0, 0) == DayStatus.FULL


def test_build_calendar_counts_half_open_stays():
    stays = [
        (date(2026, 11, 6), date(2026, 11, 8)),
        (date(2026, 11, 7), date(2026, 11, 9)),
        (date(2026, 11, 7), date(2026, 11, 8)),
    ]
    calendar = build_calendar(date(2026, 11, 6), date(2026, 11, 9), 5, stays)

    assert list(calendar) == [date(2026, 11, 6), date(2026, 11, 7), date(2026, 11, 8), date(2026, 11, 9)]
    assert calendar[date(2026, 11, 6)].booked_rooms == 1
    assert calendar[date(2026, 11, 7)].booked_rooms == 3
    assert calendar[date(2026, 11, 7)].available_rooms == 2
    assert calendar[date(2026, 11, 7)].status == DayStatus.LIMITED
    assert calendar[date(2026, 11, 8)].booked_rooms == 1
    assert calendar[date(2026, 11, 9)].booked_rooms == 0


class TestAvailabilityService:
    @pytest.mark.asyncio
    async def test_calendar_reflects_bookings_and_ignores_released_ones(
        self, test_session, resort, make_booking_request
    ):
        reservations = ReservationService(test_session)
        results = []
        for i, room_id in enumerate(resort.deluxe_room_ids[:3]):
            results.append(await reservations.create_booking(
                resort.tenant_id,
                make_booking_request(room_id=room_id, guest_email=f"guest{i}@example.com"),
            ))

        service = AvailabilityService(test_session)
        calendar = await service.get_calendar(
            resort.tenant_id, date(2026, 11, 6), date(2026, 11, 8), resort.deluxe_id
        )

        friday = calendar[date(2026, 11, 6)]
        assert friday.total_rooms == 5
        assert friday.booked_rooms == 3
        assert friday.status == DayStatus.LIMITED
        assert calendar[date(2026, 11, 8)].booked_rooms == 0

        # Cancelling releases the room
        await BookingStatusService(test_session).update_booking(
            resort.tenant_id,
            UpdateBookingRequest(
                booking_id=results[0].bookings[0].booking_id,
                status=BookingStatus.CANCELLED,
            ),
            "frontdesk",
        )
        calendar = await service.get_calendar(
            resort.tenant_id, date(2026, 11, 6), date(2026, 11, 6), resort.deluxe_id
        )
        assert calendar[date(2026, 11, 6)].booked_rooms == 2
        assert calendar[date(2026, 11, 6)].status == DayStatus.AVAILABLE

    @pytest.mark.asyncio
    async def test_inactive_rooms_are_not_counted(self, test_session, resort):
        calendar = await AvailabilityService(test_session).get_calendar(
            resort.tenant_id, date(2026, 11, 6), date(2026, 11, 6)
        )
        # Five deluxe rooms and one villa; room 199 is inactive
        assert calendar[date(2026, 11, 6)].total_rooms == 6

    @pytest.mark.asyncio
    async def test_reversed_range_is_rejected(self, test_session, resort):
        with pytest.raises(ValidationError):
            await AvailabilityService(test_session).get_calendar(
                resort.tenant_id, date(2026, 11, 8), date(2026, 11, 6)
            )

    @pytest.mark.asyncio
    async def test_too_long_range_is_rejected(self, test_session, resort):
        with pytest.raises(ValidationError):
            await AvailabilityService(test_session).get_calendar(
                resort.tenant_id, date(2026, 1, 1), date(2026, 12, 31)
            )

    @pytest.mark.asyncio
    async def test_unknown_type(self, test_session, resort):
        with pytest.raises(NotFoundError):
            await AvailabilityService(test_session).get_calendar(
                resort.tenant_id, date(2026, 11, 6), date(2026, 11, 7), uuid4()
            )
