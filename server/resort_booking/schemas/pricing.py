"""Price quote schemas."""

import datetime as dt
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from ..core.config import settings
from .common import Money


def check_stay(check_in: dt.date, check_out: dt.date) -> None:
    """Shared stay-length rule for quote and booking requests."""
    if check_out <= check_in:
        raise ValueError("check_out_date must be after check_in_date")
    if (check_out - check_in).days > settings.max_stay_nights:
        raise ValueError(f"Stays are limited to {settings.max_stay_nights} nights")


def check_addon_selection(addon_ids: List[UUID], addon_quantities: List[int]) -> None:
    if len(set(addon_ids)) != len(addon_ids):
        raise ValueError("addon_ids must not contain duplicates")
    if len(addon_quantities) > len(addon_ids):
        raise ValueError("addon_quantities has more entries than addon_ids")


class AddonSelectionMixin(BaseModel):
    """Add-on ids with optional parallel quantities; a missing quantity means 1."""

    addon_ids: List[UUID] = Field(default_factory=list, max_length=50, description="Selected add-ons")
    addon_quantities: List[int] = Field(
        default_factory=list,
        max_length=50,
        description="Quantity per add-on, aligned with addon_ids"
    )

    @model_validator(mode="after")
    def validate_addons(self):
        check_addon_selection(self.addon_ids, self.addon_quantities)
        if any(q < 1 for q in self.addon_quantities):
            raise ValueError("addon_quantities must be at least 1")
        return self

    def addon_selection(self) -> list[tuple[UUID, int]]:
        quantities = list(self.addon_quantities) + [1] * (len(self.addon_ids) - len(self.addon_quantities))
        return list(zip(self.addon_ids, quantities))


class PriceQuoteRequest(AddonSelectionMixin):
    """Request schema for a price quote."""

    accommodation_type_id: UUID = Field(..., description="Accommodation type to price")
    check_in_date: dt.date = Field(..., description="First night of the stay")
    check_out_date: dt.date = Field(..., description="Departure day (not a night)")
    num_adults: int = Field(..., ge=1, le=20, description="Number of adults")
    num_children: int = Field(0, ge=0, le=20, description="Number of children")

    @model_validator(mode="after")
    def validate_stay(self):
        check_stay(self.check_in_date, self.check_out_date)
        return self


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class NightBreakdown(_CamelModel):
    """Price of one night."""

    date: dt.date
    day_of_week: int = Field(..., description="0 = Sunday ... 6 = Saturday")
    is_weekend: bool
    base_rate: Money
    adjustment_name: Optional[str] = None
    adjustment_amount: Money = Field(..., description="Signed; negative for discounts")
    effective_rate: Money


class AddonCharge(_CamelModel):
    """Priced add-on line."""

    addon_id: str
    name: str
    pricing_model: str
    requested_quantity: int
    quantity: int
    unit_price: Money
    total_price: Money


class PriceQuoteResponse(_CamelModel):
    """Price quote response schema (camelCase keys)."""

    nights: List[NightBreakdown]
    total_nights: int
    total_base_rate: Money
    total_pax: int
    extra_pax: int
    pax_surcharge_per_night: Money
    total_pax_surcharge: Money
    addons: List[AddonCharge]
    addons_amount: Money
    grand_total: Money

    @classmethod
    def from_breakdown(cls, breakdown) -> "PriceQuoteResponse":
        """Build the response from a calculator PriceBreakdown."""
        return cls(
            nights=[
                NightBreakdown(
                    date=n.date,
                    day_of_week=n.day_of_week,
                    is_weekend=n.is_weekend,
                    base_rate=n.base_rate,
                    adjustment_name=n.adjustment_name,
                    adjustment_amount=n.adjustment_amount,
                    effective_rate=n.effective_rate,
                )
                for n in breakdown.nights
            ],
            total_nights=breakdown.total_nights,
            total_base_rate=breakdown.total_base_rate,
            total_pax=breakdown.total_pax,
            extra_pax=breakdown.extra_pax,
            pax_surcharge_per_night=breakdown.pax_surcharge_per_night,
            total_pax_surcharge=breakdown.total_pax_surcharge,
            addons=[
                AddonCharge(
                    addon_id=c.addon_id,
                    name=c.name,
                    pricing_model=c.pricing_model.value,
                    requested_quantity=c.requested_quantity,
                    quantity=c.quantity,
                    unit_price=c.unit_price,
                    total_price=c.total_price,
                )
                for c in breakdown.addon_charges
            ],
            addons_amount=breakdown.addons_amount,
            grand_total=breakdown.grand_total,
        )
