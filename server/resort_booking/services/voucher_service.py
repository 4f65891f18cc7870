"""Voucher validation and redemption."""

import logging
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import utcnow
from ..core.exceptions import ConflictError
from ..core.observability import metrics_collector
from ..models.pricing import BookingType
from ..models.voucher import DiscountType, Voucher
from .price_calculator import HUNDRED, ZERO, to_money

logger = logging.getLogger(__name__)


class VoucherErrorCode(str, Enum):
    """Reasons a voucher is refused, in rule-chain order."""
    INVALID_CODE = "INVALID_CODE"
    NOT_YET_ACTIVE = "NOT_YET_ACTIVE"
    EXPIRED = "EXPIRED"
    LIMIT_REACHED = "LIMIT_REACHED"
    WRONG_TYPE = "WRONG_TYPE"
    MIN_AMOUNT = "MIN_AMOUNT"


class VoucherRejectedError(ConflictError):
    """Exception when a voucher fails one of its eligibility rules."""

    def __init__(self, code: VoucherErrorCode, detail: str, voucher_code: Optional[str] = None):
        super().__init__(detail=detail, code=code.value)
        self.error_code = code
        if voucher_code:
            self.problem_details["voucher_code"] = voucher_code


def normalize_code(code: str) -> str:
    return code.strip().upper()


def compute_discount(voucher: Voucher, booking_amount: Decimal) -> Decimal:
    """
    Discount granted by ``voucher`` on ``booking_amount``.

    Percentage discounts are capped at ``max_discount`` when set; no discount
    ever exceeds the booking amount.
    """
    booking_amount = to_money(booking_amount)
    if voucher.discount_type == DiscountType.PERCENTAGE:
        raw = booking_amount * Decimal(str(voucher.discount_value)) / HUNDRED
        if voucher.max_discount is not None and raw > voucher.max_discount:
            raw = Decimal(str(voucher.max_discount))
    else:
        raw = Decimal(str(voucher.discount_value))
    return to_money(max(ZERO, min(raw, booking_amount)))


def evaluate_voucher(
    voucher: Optional[Voucher],
    booking_type: BookingType,
    booking_amount: Decimal,
    today: date,
) -> Decimal:
    """
    Run the eligibility rules against a voucher and return its discount.

    Rules are checked in order and the first failure is raised.

    Raises:
        VoucherRejectedError: With the code of the first rule that failed
    """
    if voucher is None or not voucher.is_active:
        raise VoucherRejectedError(VoucherErrorCode.INVALID_CODE, "Invalid voucher code")

    code = voucher.code
    if voucher.valid_from is not None and today < voucher.valid_from:
        raise VoucherRejectedError(VoucherErrorCode.NOT_YET_ACTIVE, "Voucher is not yet active", code)

    if voucher.valid_until is not None and today > voucher.valid_until:
        raise VoucherRejectedError(VoucherErrorCode.EXPIRED, "Voucher has expired", code)

    if voucher.usage_limit is not None and voucher.times_used >= voucher.usage_limit:
        raise VoucherRejectedError(VoucherErrorCode.LIMIT_REACHED, "Voucher usage limit reached", code)

    if voucher.applies_to != BookingType.BOTH and voucher.applies_to != booking_type:
        kind = "overnight stays" if voucher.applies_to == BookingType.OVERNIGHT else "day tours"
        raise VoucherRejectedError(VoucherErrorCode.WRONG_TYPE, f"Voucher is only valid for {kind}", code)

    if voucher.min_booking_amount is not None and booking_amount < voucher.min_booking_amount:
        raise VoucherRejectedError(
            VoucherErrorCode.MIN_AMOUNT,
            f"Minimum booking amount of {to_money(voucher.min_booking_amount)} required",
            code,
        )

    return compute_discount(voucher, booking_amount)


class VoucherService:
    """Service for voucher lookups, previews and redemptions."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_voucher(self, tenant_id: UUID, code: str, for_update: bool = False) -> Voucher | None:
        """Get a tenant's voucher by code, optionally locking the row."""
        stmt = select(Voucher).where(
            Voucher.tenant_id == tenant_id,
            Voucher.code == normalize_code(code),
        )
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def validate(
        self,
        tenant_id: UUID,
        code: str,
        booking_type: BookingType,
        booking_amount: Decimal,
    ) -> tuple[Voucher, Decimal]:
        """
        Preview a voucher against a booking amount without consuming it.

        Returns:
            The voucher and the discount it would grant

        Raises:
            VoucherRejectedError: If any eligibility rule fails
        """
        voucher = await self.get_voucher(tenant_id, code)
        try:
            discount = evaluate_voucher(voucher, booking_type, booking_amount, utcnow().date())
        except VoucherRejectedError as e:
            metrics_collector.record_voucher_rejected(e.error_code.value)
            logger.info(
                "Voucher rejected",
                extra={"tenant_id": str(tenant_id), "voucher_code": normalize_code(code), "reason": e.error_code.value}
            )
            raise

        logger.info(
            "Voucher validated",
            extra={
                "tenant_id": str(tenant_id),
                "voucher_code": voucher.code,
                "booking_amount": str(booking_amount),
                "discount_amount": str(discount),
            }
        )
        return voucher, discount

    async def redeem(
        self,
        tenant_id: UUID,
        code: str,
        booking_type: BookingType,
        booking_amount: Decimal,
    ) -> tuple[Voucher, Decimal]:
        """
        Re-validate a voucher under a row lock and consume one use.

        Must run inside the caller's transaction; the caller commits or rolls back.

        Raises:
            VoucherRejectedError: If the voucher is no longer eligible
        """
        voucher = await self.get_voucher(tenant_id, code, for_update=True)
        try:
            discount = evaluate_voucher(voucher, booking_type, booking_amount, utcnow().date())
        except VoucherRejectedError as e:
            metrics_collector.record_voucher_rejected(e.error_code.value)
            logger.warning(
                "Voucher rejected during reservation",
                extra={"tenant_id": str(tenant_id), "voucher_code": normalize_code(code), "reason": e.error_code.value}
            )
            raise

        voucher.times_used += 1
        self.db.add(voucher)
        return voucher, discount
