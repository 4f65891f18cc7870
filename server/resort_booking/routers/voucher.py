"""Voucher router for discount previews."""

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
from ..schemas.voucher import ValidateVoucherRequest, VoucherValidationResponse
from ..services.voucher_service import VoucherService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/voucher", tags=["voucher"], responses=problem_responses(400, 429))

DB_DEPENDENCY = Depends(get_db)
VOUCHER_RATE_LIMIT = Depends(rate_limited("voucher.validate", settings.rate_limit_voucher))


@router.post("/validate", response_model=VoucherValidationResponse, dependencies=[VOUCHER_RATE_LIMIT])
async def validate_voucher(
    request: ValidateVoucherRequest,
    tenant_id: UUID = TenantId,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    """
    Check a voucher against a booking amount.

    A rejected voucher returns 409 with one of INVALID_CODE, NOT_YET_ACTIVE,
    EXPIRED, LIMIT_REACHED, WRONG_TYPE or MIN_AMOUNT. Validation never
    consumes a use.
    """
    voucher_service = VoucherService(db)

    try:
        voucher, discount = await voucher_service.validate(
            tenant_id=tenant_id,
            code=request.code,
            booking_type=request.booking_type,
            booking_amount=request.booking_amount,
        )

        response_data = VoucherValidationResponse(
            code=voucher.code,
            description=voucher.description,
            discount_type=voucher.discount_type,
            discount_value=voucher.discount_value,
            discount_amount=discount,
            max_discount=voucher.max_discount,
        )
        return JSONResponse(
            status_code=200,
            content=response_data.model_dump(mode="json")
        )

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error in voucher validation",
            extra={
                "tenant_id": str(tenant_id),
                "voucher_code": request.code,
                "error": str(e)
            },
            exc_info=True
        )
        raise InternalServerError(detail="Failed to validate voucher")
