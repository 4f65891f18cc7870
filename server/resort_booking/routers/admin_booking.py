"""Admin router for manual bookings, booking lookups and status changes."""

import logging
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import get_db
from ..core.dependencies import AdminTenantId, RequiredAuth
from ..core.exceptions import InternalServerError, ProblemDetailsException
from ..models.booking import BookingSource, BookingStatus
from ..schemas.booking import (
    BookingCreated,
    BookingDetail,
    BookingGroupDetail,
    CreateBookingRequest,
    GetBookingGroupRequest,
    GetBookingRequest,
    UpdateBookingGroupRequest,
    UpdateBookingRequest,
)
from ..schemas.common import problem_responses
from ..services.booking_status_service import BookingStatusService, StatusChange
from ..services.notification_service import notify_status_change
from ..services.reservation_service import ReservationService
from .booking import _convert_result_to_booking, schedule_handler_notification

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/admin", tags=["admin"], responses=problem_responses(400, 401, 403, 404, 409, 500))

DB_DEPENDENCY = Depends(get_db)

# Guest emails go out for these statuses only
NOTIFIED_STATUSES = {BookingStatus.CONFIRMED.value, BookingStatus.CANCELLED.value}


def _actor(current_user: dict) -> str:
    return current_user.get("username") or current_user["user_id"]


def _schedule_guest_notifications(background_tasks: BackgroundTasks, change: StatusChange) -> None:
    if change.field_changed == "status" and change.new_value in NOTIFIED_STATUSES:
        background_tasks.add_task(notify_status_change, change.new_value, change.notices)


@router.post("/booking/create", response_model=BookingCreated, status_code=201)
async def create_manual_booking(
    request: CreateBookingRequest,
    background_tasks: BackgroundTasks,
    tenant_id: UUID = AdminTenantId,
    current_user: dict = RequiredAuth,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    """
    Create a booking on a guest's behalf.

    Goes through the same reservation transaction as online bookings;
    amounts are always computed server-side.
    """
    reservation_service = ReservationService(db)

    try:
        result = await reservation_service.create_booking(
            tenant_id,
            request,
            source=BookingSource.MANUAL,
            created_by=_actor(current_user),
        )
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
            "Unexpected error in manual booking creation",
            extra={
                "tenant_id": str(tenant_id),
                "room_id": str(request.room_id),
                "user_id": current_user["user_id"],
                "error": str(e)
            },
            exc_info=True
        )
        raise InternalServerError(detail="Failed to create booking")


@router.post("/booking/get", response_model=BookingDetail)
async def get_booking(
    request: GetBookingRequest,
    tenant_id: UUID = AdminTenantId,
    current_user: dict = RequiredAuth,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    """Get a booking with its add-ons and audit trail."""
    status_service = BookingStatusService(db)

    try:
        booking = await status_service.get_booking_detail(tenant_id, request.booking_id)
        response_data = BookingDetail.model_validate(booking)
        return JSONResponse(
            status_code=200,
            content=response_data.model_dump(mode="json")
        )

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error in booking retrieval",
            extra={"booking_id": str(request.booking_id), "error": str(e)},
            exc_info=True
        )
        raise InternalServerError(detail="Failed to retrieve booking")


@router.post("/booking/update", response_model=BookingDetail)
async def update_booking(
    request: UpdateBookingRequest,
    background_tasks: BackgroundTasks,
    tenant_id: UUID = AdminTenantId,
    current_user: dict = RequiredAuth,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    """
    Change a booking's status or payment status.

    Invalid transitions return 400 with code INVALID_TRANSITION. Every change
    is recorded in the audit trail. Confirmations and cancellations email the
    guest after the response is sent.
    """
    status_service = BookingStatusService(db)

    try:
        change = await status_service.update_booking(tenant_id, request, _actor(current_user))
        _schedule_guest_notifications(background_tasks, change)

        response_data = BookingDetail.model_validate(change.bookings[0])
        return JSONResponse(
            status_code=200,
            content=response_data.model_dump(mode="json")
        )

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error in booking update",
            extra={
                "booking_id": str(request.booking_id),
                "user_id": current_user["user_id"],
                "error": str(e)
            },
            exc_info=True
        )
        raise InternalServerError(detail="Failed to update booking")


@router.post("/booking-group/get", response_model=BookingGroupDetail)
async def get_booking_group(
    request: GetBookingGroupRequest,
    tenant_id: UUID = AdminTenantId,
    current_user: dict = RequiredAuth,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    """Get a booking group with all of its bookings."""
    status_service = BookingStatusService(db)

    try:
        group = await status_service.get_group(tenant_id, request.group_id)
        response_data = BookingGroupDetail.model_validate(group)
        return JSONResponse(
            status_code=200,
            content=response_data.model_dump(mode="json")
        )

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error in booking group retrieval",
            extra={"group_id": str(request.group_id), "error": str(e)},
            exc_info=True
        )
        raise InternalServerError(detail="Failed to retrieve booking group")


@router.post("/booking-group/update", response_model=BookingGroupDetail)
async def update_booking_group(
    request: UpdateBookingGroupRequest,
    background_tasks: BackgroundTasks,
    tenant_id: UUID = AdminTenantId,
    current_user: dict = RequiredAuth,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    """
    Apply one status or payment change to every booking of a group.

    If any booking cannot take the change, nothing is changed.
    """
    status_service = BookingStatusService(db)

    try:
        change = await status_service.update_group(tenant_id, request, _actor(current_user))
        _schedule_guest_notifications(background_tasks, change)

        group = await status_service.get_group(tenant_id, request.group_id)
        response_data = BookingGroupDetail.model_validate(group)
        return JSONResponse(
            status_code=200,
            content=response_data.model_dump(mode="json")
        )

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error in booking group update",
            extra={
                "group_id": str(request.group_id),
                "user_id": current_user["user_id"],
                "error": str(e)
            },
            exc_info=True
        )
        raise InternalServerError(detail="Failed to update booking group")
