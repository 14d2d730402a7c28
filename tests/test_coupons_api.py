import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from storefront.core.exceptions import ValidationFailed
from storefront.core.money import Money
from storefront.schemas.coupon import CouponUpdate
from storefront.services.coupon_ledger import CouponLedger
from storefront.services.coupon_service import CouponService

from tests.conftest import auth_headers


# ==================== Quote ====================

async def test_validate_valid_coupon(client, make_coupon):
    await make_coupon("SAVE20", discount_value="20")

    response = await client.post("/api/v1/coupons/validate", json={"code": "save20", "order_total": "83.50"})

    assert response.status_code == 200
    assert response.headers["cache-control"] == "no-store"
    body = response.json()
    assert body["valid"] is True
    assert Decimal(body["discount_amount"]) == Decimal("16.70")
    assert body["discount_type"] == "percentage"
    assert Decimal(body["discount_value"]) == Decimal("20")
    assert body["error"] is None


async def test_validate_rejection_is_not_an_http_error(client, make_coupon):
    await make_coupon(
        "OLD",
        expires_at=datetime.now(timezone.utc) - timedelta(days=1),
    )

    response = await client.post("/api/v1/coupons/validate", json={"code": "OLD", "order_total": "10"})

    assert response.status_code == 200
    assert response.json()["valid"] is False
    assert response.json()["error"] == "This coupon has expired"


async def test_validate_min_order_message(client, make_coupon):
    await make_coupon("BIG", min_order_amount=Decimal("50.00"))

    response = await client.post("/api/v1/coupons/validate", json={"code": "BIG", "order_total": "49.99"})

    assert response.json()["error"] == "Minimum order amount is $50.00"


async def test_validate_uses_caller_identity_for_per_user_limit(client, db, make_coupon):
    coupon = await make_coupon("ONEEACH", per_user_limit=1)
    await CouponLedger(db).redeem(coupon.id, uuid.uuid4(), "user-1", Money("1.00"))

    as_user = await client.post(
        "/api/v1/coupons/validate",
        json={"code": "ONEEACH", "order_total": "10"},
        headers=auth_headers("user-1"),
    )
    as_guest = await client.post("/api/v1/coupons/validate", json={"code": "ONEEACH", "order_total": "10"})

    assert as_user.json()["valid"] is False
    assert as_guest.json()["valid"] is True


async def test_validate_blank_code_is_bad_request(client):
    response = await client.post("/api/v1/coupons/validate", json={"code": "   ", "order_total": "10"})

    assert response.status_code == 400


async def test_validate_negative_total_is_unprocessable(client):
    response = await client.post("/api/v1/coupons/validate", json={"code": "SAVE20", "order_total": "-1"})

    assert response.status_code == 422


# ==================== Admin ====================

async def test_admin_routes_require_admin(client, user_headers):
    assert (await client.get("/api/v1/coupons")).status_code == 401
    assert (await client.get("/api/v1/coupons", headers=user_headers)).status_code == 403
    assert (await client.get("/api/v1/coupons", headers={"Authorization": "Bearer nonsense"})).status_code == 401


async def test_create_coupon_canonicalizes_code(client, admin_headers):
    response = await client.post(
        "/api/v1/coupons",
        json={"code": " welcome10 ", "discount_type": "fixed", "discount_value": "10.00"},
        headers=admin_headers,
    )

    assert response.status_code == 201
    body = response.json()
    assert body["code"] == "WELCOME10"
    assert body["usage_count"] == 0
    assert body["active"] is True


async def test_create_duplicate_code_conflicts(client, admin_headers, make_coupon):
    await make_coupon("SAVE20")

    response = await client.post(
        "/api/v1/coupons",
        json={"code": "save20", "discount_type": "percentage", "discount_value": "5"},
        headers=admin_headers,
    )

    assert response.status_code == 409


async def test_create_rejects_percentage_over_100(client, admin_headers):
    response = await client.post(
        "/api/v1/coupons",
        json={"code": "TOOMUCH", "discount_type": "percentage", "discount_value": "150"},
        headers=admin_headers,
    )

    assert response.status_code == 422


async def test_update_cannot_touch_usage_count(client, admin_headers, make_coupon):
    coupon = await make_coupon("SAVE20", usage_limit=10)

    response = await client.patch(
        f"/api/v1/coupons/{coupon.id}",
        json={"usage_count": 99, "usage_limit": 5, "active": False},
        headers=admin_headers,
    )

    assert response.status_code == 200
    body = response.json()
    assert body["usage_count"] == 0
    assert body["usage_limit"] == 5
    assert body["active"] is False


async def test_update_rejects_null_for_required_fields(client, admin_headers, make_coupon):
    coupon = await make_coupon("NULLME", usage_limit=10)

    for field in ("code", "discount_type", "discount_value", "active"):
        response = await client.patch(
            f"/api/v1/coupons/{coupon.id}",
            json={field: None},
            headers=admin_headers,
        )
        assert response.status_code == 422, field

    cleared = await client.patch(
        f"/api/v1/coupons/{coupon.id}",
        json={"usage_limit": None},
        headers=admin_headers,
    )
    assert cleared.status_code == 200
    assert cleared.json()["usage_limit"] is None
    assert cleared.json()["active"] is True


async def test_constraint_violation_is_not_reported_as_duplicate(db, make_coupon):
    coupon = await make_coupon("NULLME")
    patch = CouponUpdate.model_construct(_fields_set={"active"}, active=None)

    with pytest.raises(ValidationFailed) as excinfo:
        await CouponService(db).update_coupon(coupon, patch)

    assert "already exists" not in excinfo.value.message


async def test_update_missing_coupon(client, admin_headers):
    response = await client.patch(f"/api/v1/coupons/{uuid.uuid4()}", json={"active": False}, headers=admin_headers)

    assert response.status_code == 404


async def test_list_and_get(client, admin_headers, make_coupon):
    first = await make_coupon("A1")
    await make_coupon("B2")

    listing = await client.get("/api/v1/coupons", headers=admin_headers)
    single = await client.get(f"/api/v1/coupons/{first.id}", headers=admin_headers)

    assert listing.json()["total"] == 2
    assert {c["code"] for c in listing.json()["items"]} == {"A1", "B2"}
    assert single.json()["code"] == "A1"


async def test_delete_keeps_usage_log(client, db, admin_headers, make_coupon):
    coupon = await make_coupon("SAVE20")
    await CouponLedger(db).redeem(coupon.id, uuid.uuid4(), None, Money("3.00"))

    deleted = await client.delete(f"/api/v1/coupons/{coupon.id}", headers=admin_headers)
    usages = await client.get(f"/api/v1/coupons/{coupon.id}/usages", headers=admin_headers)
    gone = await client.get(f"/api/v1/coupons/{coupon.id}", headers=admin_headers)

    assert deleted.status_code == 204
    assert gone.status_code == 404
    assert len(usages.json()) == 1
    assert Decimal(usages.json()[0]["discount_amount"]) == Decimal("3.00")
