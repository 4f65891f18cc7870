"""
Nightly and day-tour price calculation.

Everything here is a pure function of its inputs: the same stay, rate card,
adjustments and add-ons always produce the same breakdown. Quotes and the
reservation transaction both call :func:`calculate_price`, so a booking's
amounts are always recomputed server-side.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Callable, Iterable, Optional, Sequence

from ..models.pricing import AdjustmentScope, AdjustmentType, PricingModel
from .calendar import day_of_week, is_weekend, iter_nights

CENTS = Decimal("0.01")
ZERO = Decimal("0.00")
HUNDRED = Decimal("100")


def to_money(value) -> Decimal:
    """Quantize to two decimal places, rounding half up."""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


# Units charged per requested add-on, given the party size
PRICING_MODEL_MULTIPLIERS: dict[PricingModel, Callable[[int], int]] = {
    PricingModel.PER_BOOKING: lambda total_pax: 1,
    PricingModel.PER_PERSON: lambda total_pax: total_pax,
}


@dataclass(frozen=True)
class RateCard:
    """Pricing attributes of an accommodation type."""

    accommodation_type_id: str
    base_rate_weekday: Decimal
    base_rate_weekend: Decimal
    base_pax: int
    max_pax: int
    additional_pax_fee: Decimal = ZERO

    @classmethod
    def from_model(cls, accommodation_type) -> "RateCard":
        return cls(
            accommodation_type_id=str(accommodation_type.id),
            base_rate_weekday=to_money(accommodation_type.base_rate_weekday),
            base_rate_weekend=to_money(accommodation_type.base_rate_weekend),
            base_pax=accommodation_type.base_pax,
            max_pax=accommodation_type.max_pax,
            additional_pax_fee=to_money(accommodation_type.additional_pax_fee or ZERO),
        )

    def base_rate_for(self, night: date) -> Decimal:
        return self.base_rate_weekend if is_weekend(night) else self.base_rate_weekday


@dataclass(frozen=True)
class SeasonalRate:
    """A rate adjustment covering the inclusive night range [start_date, end_date]."""

    adjustment_id: str
    name: str
    start_date: date
    end_date: date
    adjustment_type: AdjustmentType
    adjustment_value: Decimal
    applies_to: AdjustmentScope = AdjustmentScope.ALL
    accommodation_type_ids: frozenset = field(default_factory=frozenset)
    priority: int = 0
    created_at: Optional[datetime] = None
    is_active: bool = True

    @classmethod
    def from_model(cls, adjustment) -> "SeasonalRate":
        return cls(
            adjustment_id=str(adjustment.id),
            name=adjustment.name,
            start_date=adjustment.start_date,
            end_date=adjustment.end_date,
            adjustment_type=AdjustmentType(adjustment.adjustment_type),
            adjustment_value=Decimal(str(adjustment.adjustment_value)),
            applies_to=AdjustmentScope(adjustment.applies_to),
            accommodation_type_ids=frozenset(str(i) for i in (adjustment.accommodation_type_ids or [])),
            priority=adjustment.priority or 0,
            created_at=adjustment.created_at,
            is_active=adjustment.is_active,
        )

    @property
    def span_days(self) -> int:
        return (self.end_date - self.start_date).days + 1

    def covers(self, night: date, accommodation_type_id: str) -> bool:
        if not self.is_active:
            return False
        if not self.start_date <= night <= self.end_date:
            return False
        if self.applies_to == AdjustmentScope.SPECIFIC:
            return accommodation_type_id in self.accommodation_type_ids
        return True

    def apply(self, base_rate: Decimal) -> tuple[Decimal, Decimal]:
        """Return (signed adjustment amount, effective rate floored at zero)."""
        if self.adjustment_type == AdjustmentType.PERCENTAGE_DISCOUNT:
            amount = -to_money(base_rate * self.adjustment_value / HUNDRED)
        elif self.adjustment_type == AdjustmentType.PERCENTAGE_SURCHARGE:
            amount = to_money(base_rate * self.adjustment_value / HUNDRED)
        elif self.adjustment_type == AdjustmentType.FIXED_OVERRIDE:
            amount = to_money(self.adjustment_value) - base_rate
        else:
            raise ValueError(f"Unsupported adjustment type: {self.adjustment_type}")
        return amount, max(ZERO, base_rate + amount)


def _rank(adjustment: SeasonalRate) -> tuple:
    created = adjustment.created_at.timestamp() if adjustment.created_at else float("-inf")
    return (adjustment.priority, -adjustment.span_days, created, adjustment.adjustment_id)


def select_adjustment(
    night: date,
    accommodation_type_id: str,
    adjustments: Iterable[SeasonalRate],
) -> Optional[SeasonalRate]:
    """
    Pick the adjustment that prices ``night``.

    Among the adjustments covering the night, the highest priority wins,
    then the narrowest date range, then the most recently created, then the
    highest id. The order is total, so the choice never depends on input order.
    """
    candidates = [a for a in adjustments if a.covers(night, accommodation_type_id)]
    if not candidates:
        return None
    return max(candidates, key=_rank)


@dataclass(frozen=True)
class AddonLine:
    """An add-on selected for a stay."""

    addon_id: str
    name: str
    unit_price: Decimal
    pricing_model: PricingModel
    quantity: int = 1

    @classmethod
    def from_model(cls, addon, quantity: int = 1) -> "AddonLine":
        return cls(
            addon_id=str(addon.id),
            name=addon.name,
            unit_price=to_money(addon.price),
            pricing_model=PricingModel(addon.pricing_model),
            quantity=quantity,
        )


@dataclass(frozen=True)
class NightPrice:
    date: date
    day_of_week: int
    is_weekend: bool
    base_rate: Decimal
    adjustment_name: Optional[str]
    adjustment_amount: Decimal
    effective_rate: Decimal


@dataclass(frozen=True)
class AddonCharge:
    addon_id: str
    name: str
    pricing_model: PricingModel
    requested_quantity: int
    quantity: int
    unit_price: Decimal
    total_price: Decimal


@dataclass(frozen=True)
class PriceBreakdown:
    """Full price of a stay before any voucher discount."""

    nights: tuple
    total_nights: int
    total_base_rate: Decimal
    total_pax: int
    extra_pax: int
    pax_surcharge_per_night: Decimal
    total_pax_surcharge: Decimal
    addon_charges: tuple
    addons_amount: Decimal
    grand_total: Decimal


def price_nights(
    check_in: date,
    check_out: date,
    rate_card: RateCard,
    adjustments: Sequence[SeasonalRate] = (),
) -> list[NightPrice]:
    """Price each night of [check_in, check_out) against the rate card and adjustments."""
    nights = []
    for night in iter_nights(check_in, check_out):
        base_rate = rate_card.base_rate_for(night)
        adjustment = select_adjustment(night, rate_card.accommodation_type_id, adjustments)
        if adjustment is None:
            adjustment_amount, effective_rate = ZERO, base_rate
        else:
            adjustment_amount, effective_rate = adjustment.apply(base_rate)
        nights.append(NightPrice(
            date=night,
            day_of_week=day_of_week(night),
            is_weekend=is_weekend(night),
            base_rate=base_rate,
            adjustment_name=adjustment.name if adjustment else None,
            adjustment_amount=adjustment_amount,
            effective_rate=effective_rate,
        ))
    return nights


def price_addon(line: AddonLine, total_pax: int) -> AddonCharge:
    quantity = line.quantity * PRICING_MODEL_MULTIPLIERS[line.pricing_model](total_pax)
    return AddonCharge(
        addon_id=line.addon_id,
        name=line.name,
        pricing_model=line.pricing_model,
        requested_quantity=line.quantity,
        quantity=quantity,
        unit_price=line.unit_price,
        total_price=to_money(line.unit_price * quantity),
    )


def calculate_price(
    check_in: date,
    check_out: date,
    num_adults: int,
    num_children: int,
    rate_card: RateCard,
    adjustments: Sequence[SeasonalRate] = (),
    addons: Sequence[AddonLine] = (),
) -> PriceBreakdown:
    """
    Compute the full price breakdown of a stay.

    Raises:
        ValueError: If the stay has no nights or the party is empty
    """
    if check_in >= check_out:
        raise ValueError("check_out must be after check_in")
    if num_adults < 1 or num_children < 0:
        raise ValueError("A stay needs at least one adult and no negative counts")

    nights = price_nights(check_in, check_out, rate_card, adjustments)
    total_nights = len(nights)
    total_base_rate = to_money(sum((n.effective_rate for n in nights), ZERO))

    total_pax = num_adults + num_children
    extra_pax = max(0, total_pax - rate_card.base_pax)
    pax_surcharge_per_night = to_money(rate_card.additional_pax_fee * extra_pax)
    total_pax_surcharge = to_money(pax_surcharge_per_night * total_nights)

    addon_charges = tuple(price_addon(line, total_pax) for line in addons)
    addons_amount = to_money(sum((c.total_price for c in addon_charges), ZERO))

    return PriceBreakdown(
        nights=tuple(nights),
        total_nights=total_nights,
        total_base_rate=total_base_rate,
        total_pax=total_pax,
        extra_pax=extra_pax,
        pax_surcharge_per_night=pax_surcharge_per_night,
        total_pax_surcharge=total_pax_surcharge,
        addon_charges=addon_charges,
        addons_amount=addons_amount,
        grand_total=total_base_rate + total_pax_surcharge + addons_amount,
    )


@dataclass(frozen=True)
class DayTourRates:
    """Per-person day-tour rates of a tenant."""

    adult_rate: Decimal
    child_rate: Decimal

    @classmethod
    def from_tenant(cls, tenant) -> "DayTourRates":
        return cls(
            adult_rate=to_money(tenant.day_tour_rate_adult or ZERO),
            child_rate=to_money(tenant.day_tour_rate_child or ZERO),
        )


@dataclass(frozen=True)
class DayTourBreakdown:
    """Price of a day tour before any voucher discount."""

    num_adults: int
    num_children: int
    total_pax: int
    adult_rate: Decimal
    child_rate: Decimal
    base_amount: Decimal
    addon_charges: tuple
    addons_amount: Decimal
    grand_total: Decimal


def calculate_day_tour_price(
    num_adults: int,
    num_children: int,
    rates: DayTourRates,
    addons: Sequence[AddonLine] = (),
) -> DayTourBreakdown:
    """
    Price a day tour: a flat rate per adult and per child, plus add-ons.

    Per-person add-ons are charged for the whole party, as for stays.

    Raises:
        ValueError: If the party is empty
    """
    if num_adults < 1 or num_children < 0:
        raise ValueError("A day tour needs at least one adult and no negative counts")

    total_pax = num_adults + num_children
    base_amount = to_money(rates.adult_rate * num_adults + rates.child_rate * num_children)
    addon_charges = tuple(price_addon(line, total_pax) for line in addons)
    addons_amount = to_money(sum((c.total_price for c in addon_charges), ZERO))

    return DayTourBreakdown(
        num_adults=num_adults,
        num_children=num_children,
        total_pax=total_pax,
        adult_rate=rates.adult_rate,
        child_rate=rates.child_rate,
        base_amount=base_amount,
        addon_charges=addon_charges,
        addons_amount=addons_amount,
        grand_total=base_amount + addons_amount,
    )
