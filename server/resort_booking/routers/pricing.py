"""Pricing router for guest-facing price quotes."""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import settings
from ..core.database import get_db
from ..core.dependencies import TenantId, rate_limited
from ..core.exceptions import InternalServerError, ProblemDetailsException
from ..schemas.common import problem_responses
from ..schemas.pricing import PriceQuoteRequest, PriceQuoteResponse
from ..services.pricing_service import PricingService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/pricing", tags=["pricing"], responses=problem_responses(400, 404, 429))

DB_DEPENDENCY = Depends(get_db)
QUOTE_RATE_LIMIT = Depends(rate_limited("pricing.quote", settings.rate_limit_quote))


@router.post("/quote", response_model=PriceQuoteResponse, dependencies=[QUOTE_RATE_LIMIT])
async def quote_price(
    request: PriceQuoteRequest,
    tenant_id: UUID = TenantId,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    """
    Price a stay without reserving anything.

    Returns the nightly breakdown, occupancy surcharge, add-on lines and grand
    total. The quote is advisory; bookings are repriced when they are created.
    """
    pricing_service = PricingService(db)

    try:
        breakdown = await pricing_service.quote(
            tenant_id=tenant_id,
            accommodation_type_id=request.accommodation_type_id,
            check_in=request.check_in_date,
            check_out=request.check_out_date,
            num_adults=request.num_adults,
            num_children=request.num_children,
            addon_selection=request.addon_selection(),
        )

        response_data = PriceQuoteResponse.from_breakdown(breakdown)
        return JSONResponse(
            status_code=200,
            content=response_data.model_dump(by_alias=True, mode="json")
        )

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error in price quote",
            extra={
                "tenant_id": str(tenant_id),
                "accommodation_type_id": str(request.accommodation_type_id),
                "error": str(e)
            },
            exc_info=True
        )
        raise InternalServerError(detail="Failed to compute price quote")
