"""Pricing service: loads rate data for a tenant and runs the price calculator."""

import logging
from datetime import date
from typing import Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.exceptions import NotFoundError, ValidationError
from ..core.observability import metrics_collector
from ..models.accommodation import AccommodationType
from ..models.pricing import Addon, BookingType, RateAdjustment
from ..models.tenant import Tenant
from .price_calculator import (
    AddonLine,
    DayTourBreakdown,
    DayTourRates,
    PriceBreakdown,
    RateCard,
    SeasonalRate,
    calculate_day_tour_price,
    calculate_price,
)

logger = logging.getLogger(__name__)

BOOKING_TYPE_LABELS = {
    BookingType.OVERNIGHT: "overnight stays",
    BookingType.DAY_TOUR: "day tours",
}


def check_occupancy(accommodation_type: AccommodationType, num_adults: int, num_children: int) -> None:
    """Raise ValidationError when the party does not fit the accommodation type."""
    total_pax = num_adults + num_children
    if total_pax > accommodation_type.max_pax:
        raise ValidationError(
            detail=f"{accommodation_type.name} sleeps at most {accommodation_type.max_pax} guests",
            violations=[{"path": "num_adults", "message": f"Party of {total_pax} exceeds max_pax"}],
            code="MAX_PAX_EXCEEDED",
        )


class PricingService:
    """Service for tenant rate data and price quotes."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_accommodation_type(self, tenant_id: UUID, accommodation_type_id: UUID) -> AccommodationType:
        """
        Get an active accommodation type of the tenant.

        Raises:
            NotFoundError: If the type is unknown, belongs to another tenant or is inactive
        """
        stmt = select(AccommodationType).where(
            AccommodationType.id == accommodation_type_id,
            AccommodationType.tenant_id == tenant_id,
            AccommodationType.is_active.is_(True),
        )
        result = await self.db.execute(stmt)
        accommodation_type = result.scalar_one_or_none()
        if not accommodation_type:
            raise NotFoundError(resource_type="accommodation type", resource_id=str(accommodation_type_id))
        return accommodation_type

    async def get_seasonal_rates(self, tenant_id: UUID, check_in: date, check_out: date) -> list[SeasonalRate]:
        """Active rate adjustments with at least one night inside [check_in, check_out)."""
        stmt = select(RateAdjustment).where(
            RateAdjustment.tenant_id == tenant_id,
            RateAdjustment.is_active.is_(True),
            RateAdjustment.start_date < check_out,
            RateAdjustment.end_date >= check_in,
        )
        result = await self.db.execute(stmt)
        return [SeasonalRate.from_model(a) for a in result.scalars()]

    async def get_addon_lines(
        self,
        tenant_id: UUID,
        selection: Sequence[tuple[UUID, int]],
        booking_type: BookingType = BookingType.OVERNIGHT,
    ) -> list[AddonLine]:
        """
        Resolve (addon id, quantity) pairs into priced add-on lines.

        Raises:
            ValidationError: If an add-on is unknown, inactive or not offered for ``booking_type``
        """
        if not selection:
            return []

        addon_ids = [addon_id for addon_id, _ in selection]
        stmt = select(Addon).where(
            Addon.tenant_id == tenant_id,
            Addon.id.in_(addon_ids),
            Addon.is_active.is_(True),
            Addon.applies_to.in_([booking_type.value, BookingType.BOTH.value]),
        )
        result = await self.db.execute(stmt)
        addons = {a.id: a for a in result.scalars()}

        missing = [str(addon_id) for addon_id in addon_ids if addon_id not in addons]
        if missing:
            raise ValidationError(
                detail=f"One or more add-ons are not available for {BOOKING_TYPE_LABELS[booking_type]}",
                violations=[{"path": "addon_ids", "message": f"Unavailable add-on {m}"} for m in missing],
            )

        return [AddonLine.from_model(addons[addon_id], quantity) for addon_id, quantity in selection]

    async def price_stay(
        self,
        tenant_id: UUID,
        accommodation_type: AccommodationType,
        check_in: date,
        check_out: date,
        num_adults: int,
        num_children: int,
        addon_selection: Sequence[tuple[UUID, int]] = (),
        adjustments: Sequence[SeasonalRate] | None = None,
    ) -> PriceBreakdown:
        """Price a stay in an already-loaded accommodation type."""
        check_occupancy(accommodation_type, num_adults, num_children)
        if adjustments is None:
            adjustments = await self.get_seasonal_rates(tenant_id, check_in, check_out)
        addons = await self.get_addon_lines(tenant_id, addon_selection)
        try:
            return calculate_price(
                check_in=check_in,
                check_out=check_out,
                num_adults=num_adults,
                num_children=num_children,
                rate_card=RateCard.from_model(accommodation_type),
                adjustments=adjustments,
                addons=addons,
            )
        except ValueError as e:
            raise ValidationError(detail=str(e))

    async def price_day_tour(
        self,
        tenant: Tenant,
        num_adults: int,
        num_children: int,
        addon_selection: Sequence[tuple[UUID, int]] = (),
    ) -> DayTourBreakdown:
        """Price a day tour at the tenant's per-person rates with day-tour add-ons."""
        addons = await self.get_addon_lines(tenant.id, addon_selection, BookingType.DAY_TOUR)
        try:
            return calculate_day_tour_price(num_adults, num_children, DayTourRates.from_tenant(tenant), addons)
        except ValueError as e:
            raise ValidationError(detail=str(e))

    async def quote(
        self,
        tenant_id: UUID,
        accommodation_type_id: UUID,
        check_in: date,
        check_out: date,
        num_adults: int,
        num_children: int,
        addon_selection: Sequence[tuple[UUID, int]] = (),
    ) -> PriceBreakdown:
        """
        Price a stay for preview. Nothing is persisted.

        Raises:
            NotFoundError: If the accommodation type is unknown or inactive
            ValidationError: If the party is too large or an add-on is unavailable
        """
        accommodation_type = await self.get_accommodation_type(tenant_id, accommodation_type_id)
        breakdown = await self.price_stay(
            tenant_id,
            accommodation_type,
            check_in,
            check_out,
            num_adults,
            num_children,
            addon_selection,
        )

        metrics_collector.record_quote()
        logger.info(
            "Price quote computed",
            extra={
                "tenant_id": str(tenant_id),
                "accommodation_type_id": str(accommodation_type_id),
                "check_in_date": check_in.isoformat(),
                "check_out_date": check_out.isoformat(),
                "total_nights": breakdown.total_nights,
                "grand_total": str(breakdown.grand_total),
            }
        )
        return breakdown
