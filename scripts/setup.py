#!/usr/bin/env python3
"""Setup script for the resort booking API: migrate the database and seed a demo resort."""

import asyncio
import logging
import sys
from datetime import date, timedelta
from decimal import Decimal
from pathlib import Path

# Add the server directory to the Python path
server_dir = Path(__file__).parent.parent / "server"
sys.path.insert(0, str(server_dir))

from alembic import command
from alembic.config import Config
from sqlalchemy import func, select

from resort_booking.core.database import async_session_factory, close_db
from resort_booking.models import (
    AccommodationType,
    Addon,
    AdjustmentType,
    BookingType,
    DiscountType,
    PricingModel,
    RateAdjustment,
    Room,
    Tenant,
    Voucher,
)

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

DEMO_SLUG = "demo-resort"


def setup_database() -> None:
    """Bring the database schema to the latest migration."""
    logger.info("Running database migrations...")
    alembic_cfg = Config(str(server_dir / "db" / "alembic.ini"))
    alembic_cfg.set_main_option("script_location", str(server_dir / "db" / "alembic"))
    command.upgrade(alembic_cfg, "head")
    logger.info("Database migrations completed")


async def create_sample_data() -> None:
    """Create a demo tenant with room types, rooms, a seasonal rate, add-ons and a voucher."""
    logger.info("Creating sample data...")

    async with async_session_factory() as db:
        try:
            existing = await db.execute(select(func.count(Tenant.id)).where(Tenant.slug == DEMO_SLUG))
            if existing.scalar_one() > 0:
                logger.info("Sample data already exists, skipping...")
                return

            tenant = Tenant(
                name="Demo Beach Resort",
                slug=DEMO_SLUG,
                notification_email="frontdesk@example.com",
                day_tour_rate_adult=Decimal("800.00"),
                day_tour_rate_child=Decimal("500.00"),
                day_tour_capacity=50,
            )
            db.add(tenant)
            await db.flush()

            deluxe = AccommodationType(
                tenant_id=tenant.id,
                name="Deluxe Room",
                description="Garden view, queen bed",
                base_rate_weekday=Decimal("3000.00"),
                base_rate_weekend=Decimal("3500.00"),
                base_pax=2,
                max_pax=4,
                additional_pax_fee=Decimal("500.00"),
            )
            villa = AccommodationType(
                tenant_id=tenant.id,
                name="Beach Villa",
                description="Beachfront, two bedrooms",
                base_rate_weekday=Decimal("8000.00"),
                base_rate_weekend=Decimal("9500.00"),
                base_pax=4,
                max_pax=8,
                additional_pax_fee=Decimal("750.00"),
            )
            db.add_all([deluxe, villa])
            await db.flush()

            for number in ("101", "102", "103", "104", "105"):
                db.add(Room(tenant_id=tenant.id, accommodation_type_id=deluxe.id, room_number=number))
            for number in ("V1", "V2"):
                db.add(Room(tenant_id=tenant.id, accommodation_type_id=villa.id, room_number=number))

            holiday_start = date(date.today().year, 12, 20)
            db.add(RateAdjustment(
                tenant_id=tenant.id,
                name="Holiday season",
                start_date=holiday_start,
                end_date=holiday_start + timedelta(days=15),
                adjustment_type=AdjustmentType.PERCENTAGE_SURCHARGE.value,
                adjustment_value=Decimal("20"),
                priority=10,
            ))

            db.add_all([
                Addon(
                    tenant_id=tenant.id,
                    name="Breakfast buffet",
                    price=Decimal("450.00"),
                    pricing_model=PricingModel.PER_PERSON.value,
                    applies_to=BookingType.BOTH.value,
                ),
                Addon(
                    tenant_id=tenant.id,
                    name="Airport transfer",
                    price=Decimal("1500.00"),
                    pricing_model=PricingModel.PER_BOOKING.value,
                    applies_to=BookingType.OVERNIGHT.value,
                ),
            ])

            db.add(Voucher(
                tenant_id=tenant.id,
                code="WELCOME20",
                description="20% off your first stay",
                discount_type=DiscountType.PERCENTAGE.value,
                discount_value=Decimal("20"),
                max_discount=Decimal("500.00"),
                usage_limit=100,
                applies_to=BookingType.BOTH.value,
            ))

            await db.commit()
            logger.info(f"Sample data created successfully! Tenant id: {tenant.id}")

        except Exception as e:
            await db.rollback()
            logger.error(f"Failed to create sample data: {e}")
            raise


async def main() -> None:
    logger.info("Starting resort booking API setup...")

    # Alembic's async env.py runs its own event loop
    await asyncio.to_thread(setup_database)
    await create_sample_data()
    await close_db()

    logger.info("Setup completed successfully!")
    logger.info("You can now start the API server with: cd server && uvicorn resort_booking.main:app --reload")


if __name__ == "__main__":
    asyncio.run(main())
