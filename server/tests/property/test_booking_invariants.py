"""Property-based tests for pricing and reservation invariants."""

from datetime import date, timedelta
from decimal import Decimal

from hypothesis import assume, given
from hypothesis import strategies as st

from resort_booking.models.pricing import AdjustmentType, PricingModel
from resort_booking.models.voucher import DiscountType, Voucher
from resort_booking.services.availability_service import DayStatus, build_calendar, classify
from resort_booking.services.calendar import is_weekend, iter_nights, overlaps
from resort_booking.services.price_calculator import (
    AddonLine,
    RateCard,
    SeasonalRate,
    calculate_price,
    select_adjustment,
)
from resort_booking.services.reservation_service import allocate_discount
from resort_booking.services.voucher_service import compute_discount

# Strategies for generating test data
money = st.decimals(min_value=Decimal("0"), max_value=Decimal("50000"), places=2, allow_nan=False, allow_infinity=False)
positive_money = st.decimals(
    min_value=Decimal("0.01"), max_value=Decimal("50000"), places=2, allow_nan=False, allow_infinity=False
)
check_ins = st.dates(min_value=date(2026, 1, 1), max_value=date(2028, 12, 31))
stay_lengths = st.integers(min_value=1, max_value=30)
adjustment_types = st.sampled_from(list(AdjustmentType))


@st.composite
def rate_cards(draw):
    base_pax = draw(st.integers(min_value=1, max_value=6))
    return RateCard(
        accommodation_type_id="type",
        base_rate_weekday=draw(money),
        base_rate_weekend=draw(money),
        base_pax=base_pax,
        max_pax=base_pax + draw(st.integers(min_value=0, max_value=6)),
        additional_pax_fee=draw(money),
    )


@st.composite
def adjustments(draw, around: date):
    start = around + timedelta(days=draw(st.integers(min_value=-10, max_value=10)))
    end = start + timedelta(days=draw(st.integers(min_value=0, max_value=20)))
    adjustment_type = draw(adjustment_types)
    if adjustment_type == AdjustmentType.FIXED_OVERRIDE:
        value = draw(money)
    else:
        value = draw(st.decimals(min_value=Decimal("0"), max_value=Decimal("200"), places=2))
    return SeasonalRate(
        adjustment_id=draw(st.uuids()).hex,
        name="adj",
        start_date=start,
        end_date=end,
        adjustment_type=adjustment_type,
        adjustment_value=value,
        priority=draw(st.integers(min_value=0, max_value=3)),
    )


@given(
    a_start=check_ins, a_len=stay_lengths,
    b_start=check_ins, b_len=stay_lengths,
)
def test_overlap_matches_shared_nights(a_start, a_len, b_start, b_len):
    """Two stays overlap exactly when they share a night."""
    a_end = a_start + timedelta(days=a_len)
    b_end = b_start + timedelta(days=b_len)
    shared = set(iter_nights(a_start, a_end)) & set(iter_nights(b_start, b_end))
    assert overlaps(a_start, a_end, b_start, b_end) == bool(shared)
    assert overlaps(a_start, a_end, b_start, b_end) == overlaps(b_start, b_end, a_start, a_end)


@given(
    rate_card=rate_cards(),
    check_in=check_ins,
    nights=stay_lengths,
    num_adults=st.integers(min_value=1, max_value=8),
    num_children=st.integers(min_value=0, max_value=4),
    data=st.data(),
)
def test_breakdown_is_consistent(rate_card, check_in, nights, num_adults, num_children, data):
    check_out = check_in + timedelta(days=nights)
    rates = data.draw(st.lists(adjustments(check_in), max_size=4))

    breakdown = calculate_price(check_in, check_out, num_adults, num_children, rate_card, adjustments=rates)

    assert breakdown.total_nights == nights == len(breakdown.nights)
    assert all(n.effective_rate >= 0 for n in breakdown.nights)
    assert breakdown.total_base_rate == sum(n.effective_rate for n in breakdown.nights)
    assert breakdown.extra_pax == max(0, num_adults + num_children - rate_card.base_pax)
    assert breakdown.total_pax_surcharge == breakdown.pax_surcharge_per_night * nights
    assert breakdown.grand_total == breakdown.total_base_rate + breakdown.total_pax_surcharge + breakdown.addons_amount
    for night in breakdown.nights:
        expected_base = rate_card.base_rate_weekend if is_weekend(night.date) else rate_card.base_rate_weekday
        assert night.base_rate == expected_base
        if night.adjustment_name is None:
            assert night.effective_rate == night.base_rate


@given(rate_card=rate_cards(), check_in=check_ins, nights=stay_lengths, data=st.data())
def test_adjustment_choice_ignores_input_order(rate_card, check_in, nights, data):
    rates = data.draw(st.lists(adjustments(check_in), min_size=2, max_size=5))
    shuffled = data.draw(st.permutations(rates))

    for night in iter_nights(check_in, check_in + timedelta(days=nights)):
        assert select_adjustment(night, "type", rates) == select_adjustment(night, "type", shuffled)


@given(
    unit_price=money,
    quantity=st.integers(min_value=1, max_value=5),
    num_adults=st.integers(min_value=1, max_value=8),
    num_children=st.integers(min_value=0, max_value=4),
    pricing_model=st.sampled_from(list(PricingModel)),
)
def test_addon_quantity_follows_pricing_model(unit_price, quantity, num_adults, num_children, pricing_model):
    rate_card = RateCard("type", Decimal("1000.00"), Decimal("1000.00"), 2, 12)
    line = AddonLine("addon", "Addon", unit_price, pricing_model, quantity)

    breakdown = calculate_price(
        date(2026, 11, 6), date(2026, 11, 7), num_adults, num_children, rate_card, addons=[line]
    )

    (charge,) = breakdown.addon_charges
    multiplier = num_adults + num_children if pricing_model == PricingModel.PER_PERSON else 1
    assert charge.quantity == quantity * multiplier
    assert charge.total_price == unit_price * charge.quantity


@given(
    subtotals=st.lists(positive_money, min_size=1, max_size=8),
    fraction=st.decimals(min_value=Decimal("0"), max_value=Decimal("1"), places=4),
)
def test_discount_allocation_sums_and_fits(subtotals, fraction):
    total = sum(subtotals)
    discount = (total * fraction).quantize(Decimal("0.01"))
    assume(discount <= total)

    shares = allocate_discount(subtotals, discount)

    assert sum(shares) == discount
    assert all(Decimal("0") <= share <= subtotal for share, subtotal in zip(shares, subtotals))


@given(
    percentage=st.decimals(min_value=Decimal("0"), max_value=Decimal("100"), places=2),
    max_discount=st.one_of(st.none(), positive_money),
    amount=money,
)
def test_percentage_discount_never_exceeds_cap_or_amount(percentage, max_discount, amount):
    voucher = Voucher(
        code="P",
        discount_type=DiscountType.PERCENTAGE.value,
        discount_value=percentage,
        max_discount=max_discount,
    )

    discount = compute_discount(voucher, amount)

    assert Decimal("0") <= discount <= amount
    if max_discount is not None:
        assert discount <= max_discount


@given(
    total_rooms=st.integers(min_value=0, max_value=50),
    data=st.data(),
)
def test_day_status_tracks_remaining_rooms(total_rooms, data):
    booked = data.draw(st.integers(min_value=0, max_value=total_rooms))
    status = classify(total_rooms, booked)

    if booked >= total_rooms:
        assert status == DayStatus.FULL
    elif booked == 0 and total_rooms >= 4:
        assert status == DayStatus.AVAILABLE
    else:
        assert status in (DayStatus.AVAILABLE, DayStatus.LIMITED)


@given(
    start=check_ins,
    span=st.integers(min_value=0, max_value=20),
    stays=st.lists(st.tuples(check_ins, stay_lengths), max_size=10),
)
def test_calendar_never_reports_more_bookings_than_stays(start, span, stays):
    end = start + timedelta(days=span)
    pairs = [(check_in, check_in + timedelta(days=n)) for check_in, n in stays]

    calendar = build_calendar(start, end, 10, pairs)

    assert len(calendar) == span + 1
    for day, entry in calendar.items():
        assert entry.booked_rooms == sum(1 for a, b in pairs if a <= day < b)
