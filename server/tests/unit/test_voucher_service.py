"""Tests for voucher eligibility rules and the voucher service."""

from datetime import date, timedelta
from decimal import Decimal

import pytest
from sqlalchemy import select

from resort_booking.models.pricing import BookingType
from resort_booking.models.voucher import DiscountType, Voucher
from resort_booking.services.voucher_service import (
    VoucherErrorCode,
    VoucherRejectedError,
    VoucherService,
    compute_discount,
    evaluate_voucher,
)

TODAY = date(2026, 10, 19)


def make_voucher(**overrides) -> Voucher:
    data = {
        "code": "SAVE20",
        "discount_type": DiscountType.PERCENTAGE.value,
        "discount_value": Decimal("20"),
        "max_discount": None,
        "min_booking_amount": None,
        "valid_from": None,
        "valid_until": None,
        "usage_limit": None,
        "times_used": 0,
        "applies_to": BookingType.BOTH.value,
        "is_active": True,
    }
    data.update(overrides)
    return Voucher(**data)


def rejection(voucher, booking_type=BookingType.OVERNIGHT, amount=Decimal("4000")) -> VoucherErrorCode:
    with pytest.raises(VoucherRejectedError) as exc_info:
        evaluate_voucher(voucher, booking_type, amount, TODAY)
    return exc_info.value.error_code


class TestComputeDiscount:
    def test_percentage_capped_at_max_discount(self):
        """20% of 4000 is 800, capped to 500."""
        voucher = make_voucher(max_discount=Decimal("500"))
        assert compute_discount(voucher, Decimal("4000")) == Decimal("500.00")

    def test_percentage_without_cap(self):
        assert compute_discount(make_voucher(), Decimal("4000")) == Decimal("800.00")

    def test_fixed_never_exceeds_booking_amount(self):
        voucher = make_voucher(discount_type=DiscountType.FIXED.value, discount_value=Decimal("1000"))
        assert compute_discount(voucher, Decimal("600")) == Decimal("600.00")
        assert compute_discount(voucher, Decimal("4000")) == Decimal("1000.00")


class TestEvaluateVoucher:
    def test_unknown_voucher(self):
        assert rejection(None) == VoucherErrorCode.INVALID_CODE

    def test_inactive_voucher_is_invalid(self):
        assert rejection(make_voucher(is_active=False)) == VoucherErrorCode.INVALID_CODE

    def test_not_yet_active(self):
        assert rejection(make_voucher(valid_from=TODAY + timedelta(days=1))) == VoucherErrorCode.NOT_YET_ACTIVE

    def test_expired(self):
        assert rejection(make_voucher(valid_until=TODAY - timedelta(days=1))) == VoucherErrorCode.EXPIRED

    def test_validity_bounds_are_inclusive(self):
        voucher = make_voucher(valid_from=TODAY, valid_until=TODAY)
        assert evaluate_voucher(voucher, BookingType.OVERNIGHT, Decimal("1000"), TODAY) == Decimal("200.00")

    def test_limit_reached(self):
        assert rejection(make_voucher(usage_limit=3, times_used=3)) == VoucherErrorCode.LIMIT_REACHED

    def test_wrong_type(self):
        voucher = make_voucher(applies_to=BookingType.DAY_TOUR.value)
        assert rejection(voucher, BookingType.OVERNIGHT) == VoucherErrorCode.WRONG_TYPE

    def test_min_amount(self):
        voucher = make_voucher(min_booking_amount=Decimal("5000"))
        assert rejection(voucher, amount=Decimal("4999.99")) == VoucherErrorCode.MIN_AMOUNT

    def test_first_failing_rule_is_reported(self):
        """An expired voucher that is also used up reports EXPIRED."""
        voucher = make_voucher(
            valid_until=TODAY - timedelta(days=1),
            usage_limit=1,
            times_used=1,
            min_booking_amount=Decimal("99999"),
        )
        assert rejection(voucher) == VoucherErrorCode.EXPIRED

    def test_rejection_is_a_conflict_with_code(self):
        with pytest.raises(VoucherRejectedError) as exc_info:
            evaluate_voucher(make_voucher(usage_limit=0), BookingType.OVERNIGHT, Decimal("100"), TODAY)
        assert exc_info.value.status_code == 409
        assert exc_info.value.problem_details["code"] == "LIMIT_REACHED"
        assert exc_info.value.problem_details["voucher_code"] == "SAVE20"


class TestVoucherService:
    @pytest.mark.asyncio
    async def test_validate_is_case_insensitive_and_does_not_consume(self, test_session, resort):
        service = VoucherService(test_session)

        voucher, discount = await service.validate(
            resort.tenant_id, "  welcome20 ", BookingType.OVERNIGHT, Decimal("4000")
        )

        assert voucher.code == "WELCOME20"
        assert discount == Decimal("500.00")

        result = await test_session.execute(select(Voucher.times_used).where(Voucher.id == resort.welcome_voucher_id))
        assert result.scalar_one() == 0

    @pytest.mark.asyncio
    async def test_vouchers_are_tenant_scoped(self, test_session, resort):
        service = VoucherService(test_session)

        with pytest.raises(VoucherRejectedError) as exc_info:
            await service.validate(resort.other_tenant_id, "WELCOME20", BookingType.OVERNIGHT, Decimal("4000"))
        assert exc_info.value.error_code == VoucherErrorCode.INVALID_CODE

    @pytest.mark.asyncio
    async def test_redeem_consumes_one_use(self, test_session, resort):
        service = VoucherService(test_session)

        voucher, discount = await service.redeem(
            resort.tenant_id, "ONCE1000", BookingType.OVERNIGHT, Decimal("6500")
        )
        await test_session.commit()

        assert discount == Decimal("1000.00")
        assert voucher.times_used == 1

        with pytest.raises(VoucherRejectedError) as exc_info:
            await service.redeem(resort.tenant_id, "ONCE1000", BookingType.OVERNIGHT, Decimal("6500"))
        assert exc_info.value.error_code == VoucherErrorCode.LIMIT_REACHED
