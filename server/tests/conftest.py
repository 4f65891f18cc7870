"""Test configuration and fixtures."""

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from types import SimpleNamespace

import jwt
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from resort_booking.core.config import settings
from resort_booking.core.database import Base, get_db
from resort_booking.core.rate_limit import InMemoryRateLimitStore, get_rate_limit_store
from resort_booking.models import *  # noqa: F403 - Import all models
from resort_booking.models import (
    AccommodationType,
    Addon,
    BookingType,
    DiscountType,
    PricingModel,
    Room,
    Tenant,
    Voucher,
)
from resort_booking.schemas.booking import CreateBookingRequest

# Test database URL (in-memory SQLite for speed)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# Friday and Saturday nights: one weekday rate, one weekend rate
CHECK_IN = date(2026, 11, 6)
CHECK_OUT = date(2026, 11, 8)


@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """Create a test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    """Session factory bound to the test engine, for tests that need independent sessions."""
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture(scope="function")
async def test_session(session_factory):
    """Create a test database session."""
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture(scope="function")
async def resort(test_session):
    """
    Seed one tenant with two accommodation types, rooms, add-ons and a voucher.

    Only identifiers are exposed; ORM instances would be expired by rollbacks.
    """
    tenant = Tenant(
        name="Test Resort",
        slug="test-resort",
        notification_email="staff@example.com",
        day_tour_rate_adult=Decimal("800.00"),
        day_tour_rate_child=Decimal("500.00"),
        day_tour_capacity=10,
    )
    other_tenant = Tenant(name="Other Resort", slug="other-resort")
    test_session.add_all([tenant, other_tenant])
    await test_session.flush()

    deluxe = AccommodationType(
        tenant_id=tenant.id,
        name="Deluxe Room",
        base_rate_weekday=Decimal("3000.00"),
        base_rate_weekend=Decimal("3500.00"),
        base_pax=2,
        max_pax=4,
        additional_pax_fee=Decimal("500.00"),
    )
    villa = AccommodationType(
        tenant_id=tenant.id,
        name="Villa",
        base_rate_weekday=Decimal("8000.00"),
        base_rate_weekend=Decimal("9000.00"),
        base_pax=4,
        max_pax=6,
        additional_pax_fee=Decimal("750.00"),
    )
    retired = AccommodationType(
        tenant_id=tenant.id,
        name="Old Cabin",
        base_rate_weekday=Decimal("1000.00"),
        base_rate_weekend=Decimal("1000.00"),
        base_pax=2,
        max_pax=2,
        is_active=False,
    )
    test_session.add_all([deluxe, villa, retired])
    await test_session.flush()

    deluxe_rooms = [
        Room(tenant_id=tenant.id, accommodation_type_id=deluxe.id, room_number=f"10{i}")
        for i in range(1, 6)
    ]
    villa_rooms = [Room(tenant_id=tenant.id, accommodation_type_id=villa.id, room_number="V1")]
    inactive_room = Room(tenant_id=tenant.id, accommodation_type_id=deluxe.id, room_number="199", is_active=False)
    test_session.add_all(deluxe_rooms + villa_rooms + [inactive_room])

    breakfast = Addon(
        tenant_id=tenant.id,
        name="Breakfast",
        price=Decimal("450.00"),
        pricing_model=PricingModel.PER_PERSON.value,
        applies_to=BookingType.BOTH.value,
    )
    transfer = Addon(
        tenant_id=tenant.id,
        name="Airport transfer",
        price=Decimal("1500.00"),
        pricing_model=PricingModel.PER_BOOKING.value,
        applies_to=BookingType.OVERNIGHT.value,
    )
    snorkel = Addon(
        tenant_id=tenant.id,
        name="Snorkel set",
        price=Decimal("200.00"),
        pricing_model=PricingModel.PER_BOOKING.value,
        applies_to=BookingType.DAY_TOUR.value,
    )
    test_session.add_all([breakfast, transfer, snorkel])

    today = date.today()
    welcome = Voucher(
        tenant_id=tenant.id,
        code="WELCOME20",
        description="20% off",
        discount_type=DiscountType.PERCENTAGE.value,
        discount_value=Decimal("20"),
        max_discount=Decimal("500.00"),
        valid_from=today - timedelta(days=30),
        valid_until=today + timedelta(days=30),
        usage_limit=5,
        applies_to=BookingType.BOTH.value,
    )
    once = Voucher(
        tenant_id=tenant.id,
        code="ONCE1000",
        discount_type=DiscountType.FIXED.value,
        discount_value=Decimal("1000.00"),
        usage_limit=1,
        applies_to=BookingType.OVERNIGHT.value,
    )
    test_session.add_all([welcome, once])

    await test_session.commit()

    return SimpleNamespace(
        tenant_id=tenant.id,
        other_tenant_id=other_tenant.id,
        deluxe_id=deluxe.id,
        villa_id=villa.id,
        retired_id=retired.id,
        deluxe_room_ids=[r.id for r in deluxe_rooms],
        villa_room_id=villa_rooms[0].id,
        inactive_room_id=inactive_room.id,
        breakfast_id=breakfast.id,
        transfer_id=transfer.id,
        snorkel_id=snorkel.id,
        welcome_voucher_id=welcome.id,
        once_voucher_id=once.id,
    )


@pytest.fixture
def make_booking_request(resort):
    """Build a valid single-room booking request, overriding any field."""

    def factory(**overrides) -> CreateBookingRequest:
        data = {
            "room_id": resort.deluxe_room_ids[0],
            "accommodation_type_id": resort.deluxe_id,
            "check_in_date": CHECK_IN,
            "check_out_date": CHECK_OUT,
            "num_adults": 2,
            "num_children": 0,
            "guest_first_name": "Maria",
            "guest_last_name": "Santos",
            "guest_email": "maria@example.com",
            "guest_phone": "+63 917 000 0000",
        }
        data.update(overrides)
        return CreateBookingRequest(**data)

    return factory


@pytest.fixture
def rate_limit_store():
    """Fresh in-process rate limit store per test."""
    return InMemoryRateLimitStore(max_keys=100)


@pytest_asyncio.fixture(scope="function")
async def test_app(test_session, rate_limit_store):
    """Create a test FastAPI application."""
    from fastapi import FastAPI
    from fastapi.exceptions import RequestValidationError

    from resort_booking.core.exceptions import (
        ProblemDetailsException,
        generic_exception_handler,
        problem_details_handler,
        request_validation_handler,
    )
    from resort_booking.routers import API_ROUTERS

    # Simplified app without lifespan or middleware
    app = FastAPI(title="Resort Booking API (Test)", version="1.0.0-test")

    app.add_exception_handler(ProblemDetailsException, problem_details_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    for router in API_ROUTERS:
        app.include_router(router)

    async def override_get_db():
        yield test_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_rate_limit_store] = lambda: rate_limit_store

    yield app

    app.dependency_overrides.clear()


@pytest_asyncio.fixture(scope="function")
async def test_client(test_app):
    """Create a test HTTP client."""
    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def tenant_headers(resort):
    return {"X-Tenant-ID": str(resort.tenant_id)}


@pytest.fixture
def make_admin_headers(resort):
    """Build admin headers; the token and the X-Tenant-ID header can name different tenants."""
    def _make(token_tenant_id=None, header_tenant_id=None, **claims):
        token_tenant_id = token_tenant_id or resort.tenant_id
        payload = {
            "sub": "admin-1",
            "username": "frontdesk",
            "tenant_id": str(token_tenant_id),
            "exp": int((datetime.now(timezone.utc) + timedelta(hours=1)).timestamp()),
        }
        payload.update(claims)
        token = jwt.encode(payload, settings.bearer_token_secret, algorithm="HS256")
        return {
            "X-Tenant-ID": str(header_tenant_id or token_tenant_id),
            "Authorization": f"Bearer {token}",
        }
    return _make


@pytest.fixture
def admin_headers(make_admin_headers):
    """Tenant header plus a valid admin bearer token for the same tenant."""
    return make_admin_headers()


@pytest.fixture
def booking_payload(resort):
    """JSON body of a valid single-room booking."""
    return {
        "room_id": str(resort.deluxe_room_ids[0]),
        "accommodation_type_id": str(resort.deluxe_id),
        "check_in_date": CHECK_IN.isoformat(),
        "check_out_date": CHECK_OUT.isoformat(),
        "num_adults": 2,
        "num_children": 0,
        "guest_first_name": "Maria",
        "guest_last_name": "Santos",
        "guest_email": "Maria@Example.com",
        "guest_phone": "+63 917 000 0000",
    }
