"""Tests for the nightly and day-tour price calculators."""

from datetime import date, datetime, timezone
from decimal import Decimal
from types import SimpleNamespace

import pytest

from resort_booking.models.pricing import AdjustmentScope, AdjustmentType, PricingModel
from resort_booking.services.price_calculator import (
    AddonLine,
    DayTourRates,
    RateCard,
    SeasonalRate,
    calculate_day_tour_price,
    calculate_price,
    select_adjustment,
    to_money,
)

FRIDAY = date(2026, 11, 6)
SATURDAY = date(2026, 11, 7)
SUNDAY_CHECKOUT = date(2026, 11, 8)


@pytest.fixture
def rate_card():
    return RateCard(
        accommodation_type_id="deluxe",
        base_rate_weekday=Decimal("3000.00"),
        base_rate_weekend=Decimal("3500.00"),
        base_pax=2,
        max_pax=4,
        additional_pax_fee=Decimal("500.00"),
    )


def make_adjustment(**overrides) -> SeasonalRate:
    data = {
        "adjustment_id": "adj-1",
        "name": "Weekend promo",
        "start_date": SATURDAY,
        "end_date": SATURDAY,
        "adjustment_type": AdjustmentType.PERCENTAGE_DISCOUNT,
        "adjustment_value": Decimal("10"),
    }
    data.update(overrides)
    return SeasonalRate(**data)


def test_weekday_and_weekend_rates_with_extra_pax(rate_card):
    """Two nights, party of four against a base of two."""
    breakdown = calculate_price(FRIDAY, SUNDAY_CHECKOUT, 3, 1, rate_card)

    assert [n.effective_rate for n in breakdown.nights] == [Decimal("3000.00"), Decimal("3500.00")]
    assert [n.is_weekend for n in breakdown.nights] == [False, True]
    assert breakdown.total_nights == 2
    assert breakdown.total_base_rate == Decimal("6500.00")
    assert breakdown.extra_pax == 2
    assert breakdown.pax_surcharge_per_night == Decimal("1000.00")
    assert breakdown.total_pax_surcharge == Decimal("2000.00")
    assert breakdown.addons_amount == Decimal("0.00")
    assert breakdown.grand_total == Decimal("8500.00")


def test_percentage_discount_on_weekend_night_only(rate_card):
    breakdown = calculate_price(FRIDAY, SUNDAY_CHECKOUT, 3, 1, rate_card, adjustments=[make_adjustment()])

    friday, saturday = breakdown.nights
    assert friday.adjustment_name is None
    assert friday.adjustment_amount == Decimal("0.00")
    assert saturday.adjustment_name == "Weekend promo"
    assert saturday.adjustment_amount == Decimal("-350.00")
    assert abs(saturday.adjustment_amount) == Decimal("350.00")
    assert saturday.effective_rate == Decimal("3150.00")
    assert breakdown.total_base_rate == Decimal("6150.00")
    assert breakdown.grand_total == Decimal("8150.00")


def test_percentage_surcharge(rate_card):
    surcharge = make_adjustment(
        start_date=FRIDAY,
        adjustment_type=AdjustmentType.PERCENTAGE_SURCHARGE,
        adjustment_value=Decimal("20"),
    )
    breakdown = calculate_price(FRIDAY, SUNDAY_CHECKOUT, 2, 0, rate_card, adjustments=[surcharge])

    assert [n.effective_rate for n in breakdown.nights] == [Decimal("3600.00"), Decimal("4200.00")]
    assert breakdown.total_pax_surcharge == Decimal("0.00")


def test_fixed_override_replaces_rate(rate_card):
    override = make_adjustment(
        adjustment_type=AdjustmentType.FIXED_OVERRIDE,
        adjustment_value=Decimal("2000"),
    )
    breakdown = calculate_price(FRIDAY, SUNDAY_CHECKOUT, 2, 0, rate_card, adjustments=[override])

    saturday = breakdown.nights[1]
    assert saturday.effective_rate == Decimal("2000.00")
    assert saturday.adjustment_amount == Decimal("-1500.00")


def test_discount_over_100_percent_floors_at_zero(rate_card):
    adjustment = make_adjustment(adjustment_value=Decimal("150"))
    breakdown = calculate_price(FRIDAY, SUNDAY_CHECKOUT, 2, 0, rate_card, adjustments=[adjustment])

    assert breakdown.nights[1].effective_rate == Decimal("0.00")
    assert breakdown.total_base_rate == Decimal("3000.00")


def test_specific_adjustment_skips_other_types(rate_card):
    adjustment = make_adjustment(
        applies_to=AdjustmentScope.SPECIFIC,
        accommodation_type_ids=frozenset({"villa"}),
    )
    breakdown = calculate_price(FRIDAY, SUNDAY_CHECKOUT, 2, 0, rate_card, adjustments=[adjustment])
    assert breakdown.total_base_rate == Decimal("6500.00")

    targeted = make_adjustment(
        applies_to=AdjustmentScope.SPECIFIC,
        accommodation_type_ids=frozenset({"deluxe"}),
    )
    breakdown = calculate_price(FRIDAY, SUNDAY_CHECKOUT, 2, 0, rate_card, adjustments=[targeted])
    assert breakdown.total_base_rate == Decimal("6150.00")


def test_inactive_adjustment_is_ignored(rate_card):
    breakdown = calculate_price(
        FRIDAY, SUNDAY_CHECKOUT, 2, 0, rate_card, adjustments=[make_adjustment(is_active=False)]
    )
    assert breakdown.total_base_rate == Decimal("6500.00")


class TestSelectAdjustment:
    def test_highest_priority_wins(self):
        low = make_adjustment(adjustment_id="a", name="low", priority=0)
        high = make_adjustment(adjustment_id="b", name="high", priority=5)
        assert select_adjustment(SATURDAY, "deluxe", [low, high]).name == "high"
        assert select_adjustment(SATURDAY, "deluxe", [high, low]).name == "high"

    def test_narrowest_range_breaks_priority_tie(self):
        wide = make_adjustment(adjustment_id="a", name="season", start_date=date(2026, 11, 1), end_date=date(2026, 11, 30))
        narrow = make_adjustment(adjustment_id="b", name="weekend")
        assert select_adjustment(SATURDAY, "deluxe", [wide, narrow]).name == "weekend"
        assert select_adjustment(SATURDAY, "deluxe", [narrow, wide]).name == "weekend"

    def test_latest_created_then_id_break_remaining_ties(self):
        older = make_adjustment(
            adjustment_id="z", name="older", created_at=datetime(2026, 1, 1, tzinfo=timezone.utc)
        )
        newer = make_adjustment(
            adjustment_id="a", name="newer", created_at=datetime(2026, 6, 1, tzinfo=timezone.utc)
        )
        assert select_adjustment(SATURDAY, "deluxe", [older, newer]).name == "newer"

        same_a = make_adjustment(adjustment_id="a", name="a")
        same_b = make_adjustment(adjustment_id="b", name="b")
        assert select_adjustment(SATURDAY, "deluxe", [same_b, same_a]).name == "b"

    def test_no_covering_adjustment(self):
        assert select_adjustment(FRIDAY, "deluxe", [make_adjustment()]) is None


class TestAddons:
    def test_per_person_addon_scales_with_party(self, rate_card):
        breakfast = AddonLine("breakfast", "Breakfast", Decimal("450.00"), PricingModel.PER_PERSON, quantity=2)
        transfer = AddonLine("transfer", "Transfer", Decimal("1500.00"), PricingModel.PER_BOOKING)

        breakdown = calculate_price(FRIDAY, SUNDAY_CHECKOUT, 3, 1, rate_card, addons=[breakfast, transfer])

        breakfast_charge, transfer_charge = breakdown.addon_charges
        assert breakfast_charge.requested_quantity == 2
        assert breakfast_charge.quantity == 8
        assert breakfast_charge.total_price == Decimal("3600.00")
        assert transfer_charge.quantity == 1
        assert transfer_charge.total_price == Decimal("1500.00")
        assert breakdown.addons_amount == Decimal("5100.00")
        assert breakdown.grand_total == Decimal("13600.00")


class TestInvalidStays:
    def test_checkout_must_follow_checkin(self, rate_card):
        with pytest.raises(ValueError):
            calculate_price(FRIDAY, FRIDAY, 2, 0, rate_card)

    def test_needs_an_adult(self, rate_card):
        with pytest.raises(ValueError):
            calculate_price(FRIDAY, SUNDAY_CHECKOUT, 0, 2, rate_card)


class TestDayTourPrice:
    rates = DayTourRates(adult_rate=Decimal("800.00"), child_rate=Decimal("500.00"))

    def test_rates_per_adult_and_child(self):
        breakdown = calculate_day_tour_price(2, 1, self.rates)

        assert breakdown.total_pax == 3
        assert breakdown.base_amount == Decimal("2100.00")
        assert breakdown.addons_amount == Decimal("0.00")
        assert breakdown.grand_total == Decimal("2100.00")

    def test_addons_follow_pricing_model(self):
        snorkel = AddonLine("snorkel", "Snorkel set", Decimal("200.00"), PricingModel.PER_BOOKING, quantity=2)
        lunch = AddonLine("lunch", "Lunch", Decimal("450.00"), PricingModel.PER_PERSON)

        breakdown = calculate_day_tour_price(2, 1, self.rates, addons=[snorkel, lunch])

        assert [c.quantity for c in breakdown.addon_charges] == [2, 3]
        assert breakdown.addons_amount == Decimal("1750.00")
        assert breakdown.grand_total == Decimal("3850.00")

    def test_unset_rates_price_at_zero(self):
        rates = DayTourRates.from_tenant(SimpleNamespace(day_tour_rate_adult=None, day_tour_rate_child=None))
        assert calculate_day_tour_price(4, 0, rates).grand_total == Decimal("0.00")

    def test_needs_an_adult(self):
        with pytest.raises(ValueError):
            calculate_day_tour_price(0, 2, self.rates)


def test_to_money_rounds_half_up():
    assert to_money(Decimal("1.005")) == Decimal("1.01")
    assert to_money("2.344") == Decimal("2.34")
    assert to_money(3) == Decimal("3.00")
