"""Integration tests for API endpoints."""

from datetime import datetime, timedelta, timezone
from uuid import uuid4

import jwt
import pytest

from resort_booking.core.config import settings

CHECK_IN = "2026-11-06"
CHECK_OUT = "2026-11-08"


@pytest.mark.asyncio
async def test_price_quote_endpoint(test_client, resort, tenant_headers):
    """Quote for a party of four over a weekday and a weekend night."""
    response = await test_client.post(
        "/v1/pricing/quote",
        json={
            "accommodation_type_id": str(resort.deluxe_id),
            "check_in_date": CHECK_IN,
            "check_out_date": CHECK_OUT,
            "num_adults": 3,
            "num_children": 1,
        },
        headers=tenant_headers,
    )

    assert response.status_code == 200
    data = response.json()
    assert [n["effectiveRate"] for n in data["nights"]] == [3000.0, 3500.0]
    assert [n["isWeekend"] for n in data["nights"]] == [False, True]
    assert data["totalBaseRate"] == 6500.0
    assert data["extraPax"] == 2
    assert data["totalPaxSurcharge"] == 2000.0
    assert data["grandTotal"] == 8500.0


@pytest.mark.asyncio
async def test_price_quote_with_addons(test_client, resort, tenant_headers):
    response = await test_client.post(
        "/v1/pricing/quote",
        json={
            "accommodation_type_id": str(resort.deluxe_id),
            "check_in_date": CHECK_IN,
            "check_out_date": CHECK_OUT,
            "num_adults": 2,
            "addon_ids": [str(resort.breakfast_id)],
        },
        headers=tenant_headers,
    )

    assert response.status_code == 200
    data = response.json()
    assert data["addons"][0]["quantity"] == 2
    assert data["addonsAmount"] == 900.0
    assert data["grandTotal"] == 7400.0


@pytest.mark.asyncio
async def test_price_quote_rejects_reversed_dates(test_client, resort, tenant_headers):
    response = await test_client.post(
        "/v1/pricing/quote",
        json={
            "accommodation_type_id": str(resort.deluxe_id),
            "check_in_date": CHECK_OUT,
            "check_out_date": CHECK_IN,
            "num_adults": 2,
        },
        headers=tenant_headers,
    )

    assert response.status_code == 400
    data = response.json()
    assert data["status"] == 400
    assert "violations" in data


@pytest.mark.asyncio
async def test_price_quote_unknown_and_inactive_types(test_client, resort, tenant_headers):
    for type_id in (uuid4(), resort.retired_id):
        response = await test_client.post(
            "/v1/pricing/quote",
            json={
                "accommodation_type_id": str(type_id),
                "check_in_date": CHECK_IN,
                "check_out_date": CHECK_OUT,
                "num_adults": 2,
            },
            headers=tenant_headers,
        )
        assert response.status_code == 404


@pytest.mark.asyncio
async def test_price_quote_over_capacity(test_client, resort, tenant_headers):
    response = await test_client.post(
        "/v1/pricing/quote",
        json={
            "accommodation_type_id": str(resort.deluxe_id),
            "check_in_date": CHECK_IN,
            "check_out_date": CHECK_OUT,
            "num_adults": 5,
        },
        headers=tenant_headers,
    )

    assert response.status_code == 400
    assert response.json()["code"] == "MAX_PAX_EXCEEDED"


@pytest.mark.asyncio
async def test_missing_tenant_header(test_client, resort):
    response = await test_client.post(
        "/v1/pricing/quote",
        json={
            "accommodation_type_id": str(resort.deluxe_id),
            "check_in_date": CHECK_IN,
            "check_out_date": CHECK_OUT,
            "num_adults": 2,
        },
    )

    assert response.status_code == 400
    assert response.json()["violations"][0]["path"] == "X-Tenant-ID"


@pytest.mark.asyncio
async def test_availability_calendar_endpoint(test_client, resort, tenant_headers, booking_payload):
    response = await test_client.post("/v1/booking/create", json=booking_payload, headers=tenant_headers)
    assert response.status_code == 201

    response = await test_client.post(
        "/v1/availability/calendar",
        json={
            "accommodation_type_id": str(resort.deluxe_id),
            "start_date": CHECK_IN,
            "end_date": CHECK_OUT,
        },
        headers=tenant_headers,
    )

    assert response.status_code == 200
    availability = response.json()["availability"]
    assert set(availability) == {"2026-11-06", "2026-11-07", "2026-11-08"}
    assert availability["2026-11-06"] == {"total_rooms": 5, "booked_rooms": 1, "status": "available"}
    assert availability["2026-11-08"]["booked_rooms"] == 0


@pytest.mark.asyncio
async def test_voucher_validate_endpoint(test_client, resort, tenant_headers):
    response = await test_client.post(
        "/v1/voucher/validate",
        json={"code": "welcome20", "booking_amount": 4000},
        headers=tenant_headers,
    )

    assert response.status_code == 200
    data = response.json()
    assert data["code"] == "WELCOME20"
    assert data["discount_amount"] == 500.0
    assert data["max_discount"] == 500.0


@pytest.mark.asyncio
async def test_voucher_validate_rejections(test_client, resort, tenant_headers):
    response = await test_client.post(
        "/v1/voucher/validate",
        json={"code": "NOPE", "booking_amount": 4000},
        headers=tenant_headers,
    )
    assert response.status_code == 409
    assert response.json()["code"] == "INVALID_CODE"

    response = await test_client.post(
        "/v1/voucher/validate",
        json={"code": "ONCE1000", "booking_type": "day_tour", "booking_amount": 4000},
        headers=tenant_headers,
    )
    assert response.status_code == 409
    assert response.json()["code"] == "WRONG_TYPE"


@pytest.mark.asyncio
async def test_voucher_validate_is_rate_limited(test_client, resort, tenant_headers):
    statuses = []
    for _ in range(31):
        response = await test_client.post(
            "/v1/voucher/validate",
            json={"code": "WELCOME20", "booking_amount": 4000},
            headers=tenant_headers,
        )
        statuses.append(response.status_code)

    assert statuses[:30] == [200] * 30
    assert statuses[30] == 429
    assert int(response.headers["Retry-After"]) >= 1
    assert response.json()["status"] == 429


@pytest.mark.asyncio
async def test_create_booking_endpoint(test_client, resort, tenant_headers, booking_payload):
    response = await test_client.post(
        "/v1/booking/create",
        json={**booking_payload, "voucher_code": "WELCOME20"},
        headers=tenant_headers,
    )

    assert response.status_code == 201
    data = response.json()
    assert data["reference_number"].startswith("BK-")
    assert data["room_id"] == booking_payload["room_id"]
    assert data["total_amount"] == 6000.0
    assert data["discount_amount"] == 500.0
    assert data["status"] == "pending"
    assert data["payment_status"] == "unpaid"


@pytest.mark.asyncio
async def test_create_booking_ignores_client_amounts(test_client, resort, tenant_headers, booking_payload):
    response = await test_client.post(
        "/v1/booking/create",
        json={**booking_payload, "total_amount": 1},
        headers=tenant_headers,
    )

    assert response.status_code == 201
    assert response.json()["total_amount"] == 6500.0


@pytest.mark.asyncio
async def test_create_day_tour_booking_endpoint(test_client, resort, tenant_headers):
    payload = {
        "tour_date": CHECK_IN,
        "num_adults": 2,
        "num_children": 1,
        "guest_first_name": "Lea",
        "guest_last_name": "Reyes",
        "guest_email": "lea@example.com",
        "guest_phone": "+63 919 000 0000",
        "addon_ids": [str(resort.snorkel_id)],
        "total_amount": 1,
    }

    response = await test_client.post("/v1/booking/create-day-tour", json=payload, headers=tenant_headers)

    assert response.status_code == 201
    data = response.json()
    assert data["reference_number"].startswith("DT-")
    assert data["base_amount"] == 2100.0
    assert data["addons_amount"] == 200.0
    assert data["total_amount"] == 2300.0
    assert data["status"] == "pending"

    response = await test_client.post(
        "/v1/booking/create-day-tour",
        json={**payload, "guest_email": "second@example.com", "voucher_code": "ONCE1000"},
        headers=tenant_headers,
    )
    assert response.status_code == 409
    assert response.json()["code"] == "WRONG_TYPE"

    response = await test_client.post(
        "/v1/booking/create-day-tour",
        json={**payload, "guest_email": "third@example.com", "num_adults": 8},
        headers=tenant_headers,
    )
    assert response.status_code == 409
    assert response.json()["code"] == "DAY_TOUR_FULL"


@pytest.mark.asyncio
async def test_create_booking_conflict(test_client, resort, tenant_headers, booking_payload):
    first = await test_client.post("/v1/booking/create", json=booking_payload, headers=tenant_headers)
    assert first.status_code == 201

    second = await test_client.post(
        "/v1/booking/create",
        json={**booking_payload, "guest_email": "someone@example.com", "check_in_date": "2026-11-07"},
        headers=tenant_headers,
    )

    assert second.status_code == 409
    data = second.json()
    assert data["code"] == "ROOM_UNAVAILABLE"
    assert data["retryable"] is False


@pytest.mark.asyncio
async def test_create_booking_invalid_email(test_client, resort, tenant_headers, booking_payload):
    response = await test_client.post(
        "/v1/booking/create",
        json={**booking_payload, "guest_email": "not-an-email"},
        headers=tenant_headers,
    )

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_create_group_booking_endpoint(test_client, resort, tenant_headers, booking_payload):
    payload = {
        key: value
        for key, value in booking_payload.items()
        if key not in ("room_id", "accommodation_type_id")
    }
    payload["rooms"] = [
        {"room_id": str(room_id), "accommodation_type_id": str(resort.deluxe_id)}
        for room_id in resort.deluxe_room_ids[:2]
    ]

    response = await test_client.post("/v1/booking/create-group", json=payload, headers=tenant_headers)

    assert response.status_code == 201
    data = response.json()
    assert data["group_reference_number"].startswith("GRP-")
    assert len(data["bookings"]) == 2
    assert data["total_amount"] == 13000.0
    assert sum(b["total_amount"] for b in data["bookings"]) == data["total_amount"]


@pytest.mark.asyncio
async def test_admin_endpoints_require_auth(test_client, resort, tenant_headers):
    response = await test_client.post(
        "/v1/admin/booking/get",
        json={"booking_id": str(uuid4())},
        headers=tenant_headers,
    )

    assert response.status_code == 401
    data = response.json()
    assert data["status"] == 401

    response = await test_client.post(
        "/v1/admin/booking/get",
        json={"booking_id": str(uuid4())},
        headers={**tenant_headers, "Authorization": "Bearer not-a-jwt"},
    )
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_admin_token_without_tenant_is_rejected(test_client, resort, tenant_headers):
    token = jwt.encode(
        {"sub": "admin-1", "exp": int((datetime.now(timezone.utc) + timedelta(hours=1)).timestamp())},
        settings.bearer_token_secret,
        algorithm="HS256",
    )

    response = await test_client.post(
        "/v1/admin/booking/get",
        json={"booking_id": str(uuid4())},
        headers={**tenant_headers, "Authorization": f"Bearer {token}"},
    )

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_admin_token_cannot_act_on_another_tenant(
    test_client, resort, tenant_headers, admin_headers, make_admin_headers, booking_payload
):
    created = await test_client.post("/v1/booking/create", json=booking_payload, headers=tenant_headers)
    booking_id = created.json()["booking_id"]

    foreign_headers = make_admin_headers(
        token_tenant_id=resort.other_tenant_id,
        header_tenant_id=resort.tenant_id,
    )
    response = await test_client.post(
        "/v1/admin/booking/update",
        json={"booking_id": booking_id, "status": "cancelled"},
        headers=foreign_headers,
    )
    assert response.status_code == 403
    assert response.json()["type"].endswith("/forbidden")

    # Without the header the token's own tenant applies, which cannot see the booking
    foreign_headers.pop("X-Tenant-ID")
    response = await test_client.post(
        "/v1/admin/booking/update",
        json={"booking_id": booking_id, "status": "cancelled"},
        headers=foreign_headers,
    )
    assert response.status_code == 404

    response = await test_client.post("/v1/admin/booking/get", json={"booking_id": booking_id}, headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["status"] == "pending"
    assert response.json()["status_logs"] == []


@pytest.mark.asyncio
async def test_admin_manual_booking_and_lifecycle(test_client, resort, admin_headers, booking_payload):
    response = await test_client.post("/v1/admin/booking/create", json=booking_payload, headers=admin_headers)
    assert response.status_code == 201
    booking_id = response.json()["booking_id"]

    response = await test_client.post(
        "/v1/admin/booking/update",
        json={"booking_id": booking_id, "status": "confirmed", "notes": "Paid deposit"},
        headers=admin_headers,
    )
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "confirmed"
    assert data["source"] == "manual"
    assert data["created_by"] == "frontdesk"
    assert data["status_logs"][0]["changed_by"] == "frontdesk"

    response = await test_client.post(
        "/v1/admin/booking/update",
        json={"booking_id": booking_id, "payment_status": "paid", "payment_method": "cash"},
        headers=admin_headers,
    )
    assert response.status_code == 200
    assert response.json()["payment_status"] == "paid"

    response = await test_client.post(
        "/v1/admin/booking/update",
        json={"booking_id": booking_id, "status": "checked_out"},
        headers=admin_headers,
    )
    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_TRANSITION"

    response = await test_client.post("/v1/admin/booking/get", json={"booking_id": booking_id}, headers=admin_headers)
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "confirmed"
    assert data["num_nights"] == 2
    assert len(data["status_logs"]) == 2


@pytest.mark.asyncio
async def test_admin_update_requires_single_change(test_client, resort, admin_headers):
    response = await test_client.post(
        "/v1/admin/booking/update",
        json={"booking_id": str(uuid4())},
        headers=admin_headers,
    )

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_admin_group_update(test_client, resort, tenant_headers, admin_headers, booking_payload):
    payload = {
        key: value
        for key, value in booking_payload.items()
        if key not in ("room_id", "accommodation_type_id")
    }
    payload["rooms"] = [
        {"room_id": str(room_id), "accommodation_type_id": str(resort.deluxe_id)}
        for room_id in resort.deluxe_room_ids[:2]
    ]
    created = await test_client.post("/v1/booking/create-group", json=payload, headers=tenant_headers)
    group_id = created.json()["group_id"]

    response = await test_client.post(
        "/v1/admin/booking-group/update",
        json={"group_id": group_id, "status": "cancelled", "cancellation_reason": "Change of plans"},
        headers=admin_headers,
    )

    assert response.status_code == 200
    data = response.json()
    assert {b["status"] for b in data["bookings"]} == {"cancelled"}
    assert {b["cancellation_reason"] for b in data["bookings"]} == {"Change of plans"}

    response = await test_client.post("/v1/admin/booking-group/get", json={"group_id": group_id}, headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["reference_number"] == created.json()["group_reference_number"]


@pytest.mark.asyncio
async def test_admin_get_unknown_booking(test_client, resort, admin_headers):
    response = await test_client.post(
        "/v1/admin/booking/get",
        json={"booking_id": str(uuid4())},
        headers=admin_headers,
    )

    assert response.status_code == 404
