"""Availability router for per-day occupancy calendars."""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import settings
from ..core.database import get_db
from ..core.dependencies import TenantId, rate_limited
from ..core.exceptions import InternalServerError, ProblemDetailsException
from ..schemas.availability import AvailabilityRequest, AvailabilityResponse, DayAvailability
from ..schemas.common import problem_responses
from ..services.availability_service import AvailabilityService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/availability", tags=["availability"], responses=problem_responses(400, 404, 429))

DB_DEPENDENCY = Depends(get_db)
AVAILABILITY_RATE_LIMIT = Depends(rate_limited("availability.calendar", settings.rate_limit_availability))


@router.post("/calendar", response_model=AvailabilityResponse, dependencies=[AVAILABILITY_RATE_LIMIT])
async def get_availability_calendar(
    request: AvailabilityRequest,
    tenant_id: UUID = TenantId,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    """
    Get room occupancy for each day of an inclusive date range.

    The calendar is a snapshot; a later booking attempt may still conflict.
    """
    availability_service = AvailabilityService(db)

    try:
        calendar = await availability_service.get_calendar(
            tenant_id=tenant_id,
            start_date=request.start_date,
            end_date=request.end_date,
            accommodation_type_id=request.accommodation_type_id,
        )

        response_data = AvailabilityResponse(
            accommodation_type_id=request.accommodation_type_id,
            start_date=request.start_date,
            end_date=request.end_date,
            availability={
                day: DayAvailability(
                    total_rooms=entry.total_rooms,
                    booked_rooms=entry.booked_rooms,
                    status=entry.status.value,
                )
                for day, entry in calendar.items()
            },
        )
        return JSONResponse(
            status_code=200,
            content=response_data.model_dump(mode="json")
        )

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error in availability lookup",
            extra={
                "tenant_id": str(tenant_id),
                "start_date": request.start_date.isoformat(),
                "end_date": request.end_date.isoformat(),
                "error": str(e)
            },
            exc_info=True
        )
        raise InternalServerError(detail="Failed to load availability")
