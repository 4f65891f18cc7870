"""Booking router for guest reservations."""

import logging
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import settings
from ..core.database import get_db
from ..core.dependencies import TenantId, rate_limited
from ..core.exceptions import InternalServerError, ProblemDetailsException
from ..models.booking import BookingSource, BookingStatus, PaymentStatus
from ..schemas.booking import (
    BookingCreated,
    CreateBookingRequest,
    CreateDayTourBookingRequest,
    CreateGroupBookingRequest,
    DayTourBookingCreated,
    GroupBookingCreated,
)
from ..schemas.common import problem_responses
from ..services.notification_service import notify_new_bookings
from ..services.reservation_service import DayTourReservation, ReservationResult, ReservationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/booking", tags=["booking"], responses=problem_responses(400, 404, 409, 429))

DB_DEPENDENCY = Depends(get_db)
CREATE_RATE_LIMIT = Depends(rate_limited("booking.create", settings.rate_limit_booking))
CREATE_GROUP_RATE_LIMIT = Depends(rate_limited("booking.create_group", settings.rate_limit_booking))
CREATE_DAY_TOUR_RATE_LIMIT = Depends(rate_limited("booking.create_day_tour", settings.rate_limit_booking))


def _convert_result_to_booking(result: ReservationResult) -> BookingCreated:
    """Convert a single-room reservation to its response schema."""
    reserved = result.bookings[0]
    return BookingCreated(
        booking_id=reserved.booking_id,
        reference_number=reserved.reference_number,
        room_id=reserved.room_id,
        total_amount=reserved.total_amount,
        discount_amount=reserved.discount_amount,
        status=BookingStatus.PENDING.value,
        payment_status=PaymentStatus.UNPAID.value,
    )


def _convert_result_to_group(result: ReservationResult) -> GroupBookingCreated:
    """Convert a group reservation to its response schema."""
    return GroupBookingCreated(
        group_id=result.group_id,
        group_reference_number=result.group_reference_number,
        total_amount=result.total_amount,
        discount_amount=result.discount_amount,
        bookings=[
            BookingCreated(
                booking_id=reserved.booking_id,
                reference_number=reserved.reference_number,
                room_id=reserved.room_id,
                total_amount=reserved.total_amount,
                discount_amount=reserved.discount_amount,
                status=BookingStatus.PENDING.value,
                payment_status=PaymentStatus.UNPAID.value,
            )
            for reserved in result.bookings
        ],
    )


def _convert_day_tour(result: DayTourReservation) -> DayTourBookingCreated:
    """Convert a day-tour reservation to its response schema."""
    return DayTourBookingCreated(
        booking_id=result.booking_id,
        reference_number=result.reference_number,
        tour_date=result.tour_date,
        num_adults=result.num_adults,
        num_children=result.num_children,
        base_amount=result.base_amount,
        addons_amount=result.addons_amount,
        discount_amount=result.discount_amount,
        total_amount=result.total_amount,
        status=BookingStatus.PENDING.value,
        payment_status=PaymentStatus.UNPAID.value,
    )


def schedule_handler_notification(background_tasks: BackgroundTasks, result: ReservationResult) -> None:
    """Queue the staff email; it runs after the response and never affects it."""
    if result.notification_email:
        background_tasks.add_task(notify_new_bookings, result.notification_email, result.notices())


@router.post("/create", response_model=BookingCreated, status_code=201, dependencies=[CREATE_RATE_LIMIT])
async def create_booking(
    request: CreateBookingRequest,
    background_tasks: BackgroundTasks,
    tenant_id: UUID = TenantId,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    """
    Reserve one room.

    Prices are recomputed server-side. Returns 409 with code ROOM_UNAVAILABLE
    when the room is taken for any night of the stay, or a voucher code when
    the voucher no longer qualifies.
    """
    reservation_service = ReservationService(db)

    try:
        result = await reservation_service.create_booking(tenant_id, request, source=BookingSource.ONLINE)
        schedule_handler_notification(background_tasks, result)

        response_data = _convert_result_to_booking(result)
        return JSONResponse(
            status_code=201,
            content=response_data.model_dump(mode="json")
        )

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error in booking creation",
            extra={
                "tenant_id": str(tenant_id),
                "room_id": str(request.room_id),
                "error": str(e)
            },
            exc_info=True
        )
        raise InternalServerError(detail="Failed to create booking")


@router.post(
    "/create-group",
    response_model=GroupBookingCreated,
    status_code=201,
    dependencies=[CREATE_GROUP_RATE_LIMIT]
)
async def create_group_booking(
    request: CreateGroupBookingRequest,
    background_tasks: BackgroundTasks,
    tenant_id: UUID = TenantId,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    """
    Reserve several rooms for one guest under a group reference.

    All rooms are booked or none are.
    """
    reservation_service = ReservationService(db)

    try:
        result = await reservation_service.create_group_booking(tenant_id, request, source=BookingSource.ONLINE)
        schedule_handler_notification(background_tasks, result)

        response_data = _convert_result_to_group(result)
        return JSONResponse(
            status_code=201,
            content=response_data.model_dump(mode="json")
        )

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error in group booking creation",
            extra={
                "tenant_id": str(tenant_id),
                "room_ids": [str(r.room_id) for r in request.rooms],
                "error": str(e)
            },
            exc_info=True
        )
        raise InternalServerError(detail="Failed to create group booking")


@router.post(
    "/create-day-tour",
    response_model=DayTourBookingCreated,
    status_code=201,
    dependencies=[CREATE_DAY_TOUR_RATE_LIMIT]
)
async def create_day_tour_booking(
    request: CreateDayTourBookingRequest,
    tenant_id: UUID = TenantId,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    """
    Reserve a day tour.

    Priced at the resort's adult and child day-tour rates plus day-tour
    add-ons. Returns 409 with code DAY_TOUR_FULL when the date has no room
    for the party.
    """
    reservation_service = ReservationService(db)

    try:
        result = await reservation_service.create_day_tour_booking(tenant_id, request, source=BookingSource.ONLINE)

        response_data = _convert_day_tour(result)
        return JSONResponse(
            status_code=201,
            content=response_data.model_dump(mode="json")
        )

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error in day tour booking creation",
            extra={
                "tenant_id": str(tenant_id),
                "tour_date": request.tour_date.isoformat(),
                "error": str(e)
            },
            exc_info=True
        )
        raise InternalServerError(detail="Failed to create day tour booking")
