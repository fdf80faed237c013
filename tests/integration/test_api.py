"""Integration tests for API endpoints"""

import pytest
from fastapi.testclient import TestClient


@pytest.fixture
def package_id(client: TestClient) -> str:
    response = client.post(
        "/v1/admin/packages",
        json={"name": "Paket Hemat", "price": 500, "transaction_quota": 10, "validity_days": 30},
    )
    assert response.status_code == 201
    return response.json()["package_id"]


@pytest.fixture
def subscribed(client: TestClient, make_merchant, package_id: str) -> str:
    """Merchant m1 with an active 10-credit subscription"""
    make_merchant("m1", latitude=-7.2575, longitude=112.7521)
    response = client.post("/v1/admin/merchants/m1/subscription", json={"package_id": package_id})
    assert response.status_code == 201
    return response.json()["subscription_id"]


def _cod_order(client: TestClient, price: int = 20_000) -> dict:
    response = client.post(
        "/v1/orders",
        json={
            "buyer_id": "buyer-1",
            "merchant_id": "m1",
            "items": [{"price": price}],
            "payment_method": "COD",
            "distance_km": 1.5,
        },
    )
    assert response.status_code == 201
    return response.json()


def test_health_endpoint(client: TestClient):
    """Test health check endpoint"""
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_metrics_endpoint(client: TestClient):
    """Test Prometheus metrics endpoint"""
    response = client.get("/metrics")
    assert response.status_code == 200
    assert "quota_debit_total" in response.text


def test_request_id_propagated(client: TestClient):
    response = client.get("/health", headers={"X-Request-ID": "req-123"})
    assert response.headers["X-Request-ID"] == "req-123"


def test_cod_eligibility_amount_too_large(client: TestClient, make_merchant):
    """POST /v1/cod/eligibility with an 80 000 order"""
    make_merchant("m1")
    response = client.post(
        "/v1/cod/eligibility",
        json={"buyer_id": "buyer-1", "merchant_id": "m1", "total_amount": 80_000, "distance_km": 1},
    )

    assert response.status_code == 200
    assert response.json() == {"eligible": False, "reason": "amount too large for COD"}


def test_cod_eligibility_eligible(client: TestClient, make_merchant):
    make_merchant("m1")
    response = client.post(
        "/v1/cod/eligibility",
        json={"buyer_id": "buyer-1", "merchant_id": "m1", "total_amount": 50_000},
    )
    assert response.json()["eligible"] is True


def test_cod_eligibility_validation(client: TestClient):
    response = client.post("/v1/cod/eligibility", json={"buyer_id": "b", "merchant_id": "m", "total_amount": -1})
    assert response.status_code == 422


def test_buyer_cod_status_defaults(client: TestClient):
    response = client.get("/v1/buyers/someone/cod-status")
    assert response.status_code == 200
    assert response.json() == {
        "buyer_id": "someone",
        "enabled": True,
        "trust_score": 100,
        "fail_count": 0,
        "is_verified": False,
    }


def test_quota_tiers_default_table(client: TestClient):
    response = client.get("/v1/quota/tiers")
    tiers = response.json()["tiers"]
    assert [t["credit_cost"] for t in tiers] == [1, 1, 2, 3]
    assert tiers[-1]["max_price"] is None


def test_quota_cost(client: TestClient):
    assert client.post("/v1/quota/cost", json={"order_total": 7_500}).json() == {"credits": 2}
    response = client.post("/v1/quota/cost", json={"items": [{"price": 20_000, "quantity": 2}, {"price": 100}]})
    assert response.json() == {"credits": 7}
    assert client.post("/v1/quota/cost", json={}).status_code == 422


def test_assign_package_and_read_status(client: TestClient, subscribed: str):
    response = client.get("/v1/merchants/m1/subscription")

    assert response.status_code == 200
    data = response.json()
    assert data["can_transact"] is True
    assert data["remaining_quota"] == 10
    assert data["package_name"] == "Paket Hemat"
    assert data["subscription"]["subscription_id"] == subscribed


def test_assign_package_replaces_previous(client: TestClient, subscribed: str, package_id: str):
    response = client.post("/v1/admin/merchants/m1/subscription", json={"package_id": package_id})
    assert response.status_code == 201
    assert response.json()["replaced_subscription_ids"] == [subscribed]


def test_assign_unknown_package(client: TestClient, make_merchant):
    make_merchant("m1")
    response = client.post("/v1/admin/merchants/m1/subscription", json={"package_id": "missing"})
    assert response.status_code == 404


def test_assign_unknown_merchant(client: TestClient, package_id: str):
    response = client.post("/v1/admin/merchants/ghost/subscription", json={"package_id": package_id})
    assert response.status_code == 404


def test_assign_retired_package(client: TestClient, make_merchant, package_id: str):
    make_merchant("m1")
    body = {"name": "Paket Hemat", "price": 500, "transaction_quota": 10, "validity_days": 30, "is_active": False}
    assert client.put(f"/v1/admin/packages/{package_id}", json=body).status_code == 200

    response = client.post("/v1/admin/merchants/m1/subscription", json={"package_id": package_id})
    assert response.status_code == 409


def test_sold_package_cannot_be_edited(client: TestClient, subscribed: str, package_id: str):
    body = {"name": "Paket Hemat", "price": 900, "transaction_quota": 10, "validity_days": 30}
    assert client.put(f"/v1/admin/packages/{package_id}", json=body).status_code == 409


def test_list_packages_hides_retired(client: TestClient, package_id: str):
    client.post(
        "/v1/admin/packages",
        json={"name": "Paket Lama", "price": 400, "transaction_quota": 5, "is_active": False},
    )

    active = client.get("/v1/admin/packages").json()
    everything = client.get("/v1/admin/packages", params={"include_inactive": True}).json()

    assert [p["package_id"] for p in active] == [package_id]
    assert len(everything) == 2


def test_consume_quota_until_exhausted(client: TestClient, subscribed: str, notification_client):
    first = client.post("/v1/quota/consume", json={"merchant_id": "m1", "credits": 6})
    assert first.json() == {"success": True, "remaining_quota": 4, "quota_alert": "low"}

    second = client.post("/v1/quota/consume", json={"merchant_id": "m1", "credits": 5})
    assert second.json()["success"] is False

    third = client.post("/v1/quota/consume", json={"merchant_id": "m1", "credits": 4})
    assert third.json() == {"success": True, "remaining_quota": 0, "quota_alert": "empty"}

    assert [p["severity"] for p in notification_client.payloads] == ["warning", "error"]
    assert client.get("/v1/merchants/m1/subscription").json()["can_transact"] is False


def test_consume_quota_rejects_zero_credits(client: TestClient):
    response = client.post("/v1/quota/consume", json={"merchant_id": "m1", "credits": 0})
    assert response.status_code == 422


def test_checkout_prepaid(client: TestClient, subscribed: str):
    response = client.post(
        "/v1/orders",
        json={
            "buyer_id": "buyer-1",
            "merchant_id": "m1",
            "items": [{"price": 12_000, "quantity": 2}],
            "payment_method": "PREPAID",
        },
    )

    assert response.status_code == 201
    data = response.json()
    assert data["status"] == "PAID"
    assert data["credits_used"] == 6
    assert data["remaining_quota"] == 4
    assert data["service_fee"] == 0


def test_checkout_cod_ineligible(client: TestClient, subscribed: str):
    response = client.post(
        "/v1/orders",
        json={"buyer_id": "buyer-1", "merchant_id": "m1", "items": [{"price": 80_000}], "payment_method": "COD"},
    )

    assert response.status_code == 409
    assert response.json()["detail"] == {"code": "cod_ineligible", "reason": "amount too large for COD"}
    assert client.get("/v1/merchants/m1/subscription").json()["remaining_quota"] == 10


def test_checkout_cod_too_far_by_coordinates(client: TestClient, subscribed: str):
    response = client.post(
        "/v1/orders",
        json={
            "buyer_id": "buyer-1",
            "merchant_id": "m1",
            "items": [{"price": 10_000}],
            "payment_method": "COD",
            "buyer_latitude": -7.3000,
            "buyer_longitude": 112.7521,
        },
    )
    assert response.status_code == 409
    assert response.json()["detail"]["reason"] == "distance too far for COD"


def test_checkout_quota_exhausted(client: TestClient, subscribed: str):
    response = client.post(
        "/v1/orders",
        json={
            "buyer_id": "buyer-1",
            "merchant_id": "m1",
            "items": [{"price": 20_000, "quantity": 4}],
            "payment_method": "PREPAID",
        },
    )
    assert response.status_code == 409
    assert response.json()["detail"]["code"] == "quota_exhausted"


def test_checkout_unknown_merchant(client: TestClient):
    response = client.post(
        "/v1/orders",
        json={"buyer_id": "b", "merchant_id": "ghost", "items": [{"price": 1_000}], "payment_method": "PREPAID"},
    )
    assert response.status_code == 404


def test_checkout_requires_items(client: TestClient):
    response = client.post(
        "/v1/orders",
        json={"buyer_id": "b", "merchant_id": "m1", "items": [], "payment_method": "PREPAID"},
    )
    assert response.status_code == 422


def test_cod_confirm_flow(client: TestClient, subscribed: str):
    order = _cod_order(client)
    assert order["cod_status"] == "PENDING_CONFIRMATION"
    assert order["total"] == 21_000

    response = client.post(f"/v1/cod/orders/{order['order_id']}/confirm")
    assert response.status_code == 200
    assert response.json()["cod_status"] == "CONFIRMED"

    # Trust already at the cap
    assert client.get("/v1/buyers/buyer-1/cod-status").json()["trust_score"] == 100

    again = client.post(f"/v1/cod/orders/{order['order_id']}/confirm")
    assert again.status_code == 409


def test_cod_reject_flow_penalizes_buyer(client: TestClient, subscribed: str):
    order = _cod_order(client)

    response = client.post(f"/v1/cod/orders/{order['order_id']}/reject", json={"reason": "not home"})
    assert response.status_code == 200
    data = response.json()
    assert data["cod_status"] == "REJECTED"
    assert data["is_flash_sale"] is True
    assert data["cod_rejection_reason"] == "not home"

    status = client.get("/v1/buyers/buyer-1/cod-status").json()
    assert status["trust_score"] == 50
    assert status["fail_count"] == 1
    assert status["enabled"] is True

    # A second failure disables COD for this buyer
    second = _cod_order(client)
    client.post(f"/v1/cod/orders/{second['order_id']}/reject", json={"reason": "not home"})
    status = client.get("/v1/buyers/buyer-1/cod-status").json()
    assert status["trust_score"] == 0
    assert status["enabled"] is False

    blocked = client.post(
        "/v1/orders",
        json={"buyer_id": "buyer-1", "merchant_id": "m1", "items": [{"price": 1_000}], "payment_method": "COD"},
    )
    assert blocked.json()["detail"]["reason"] == "COD disabled for this buyer"


def test_cod_outcome_unknown_order(client: TestClient):
    assert client.post("/v1/cod/orders/missing/confirm").status_code == 404


def test_expire_sweep_leaves_fresh_orders(client: TestClient, subscribed: str):
    order = _cod_order(client)

    response = client.post("/v1/cod/orders/expire")
    assert response.status_code == 200
    assert response.json() == {"expired_order_ids": []}
    assert client.post(f"/v1/cod/orders/{order['order_id']}/confirm").json()["cod_status"] == "CONFIRMED"


def test_flash_sale_endpoint(client: TestClient, subscribed: str):
    order = _cod_order(client)

    response = client.post(f"/v1/cod/orders/{order['order_id']}/flash-sale", json={"discount_percent": 25})
    assert response.status_code == 200
    assert response.json()["flash_sale_discount"] == 25

    assert client.post("/v1/cod/orders/missing/flash-sale", json={}).status_code == 404
    assert client.post(f"/v1/cod/orders/{order['order_id']}/flash-sale", json={"discount_percent": 0}).status_code == 422


def test_replace_quota_tiers(client: TestClient):
    body = {
        "tiers": [
            {"min_price": 20_001, "max_price": None, "credit_cost": 5},
            {"min_price": 0, "max_price": 20_000, "credit_cost": 1},
        ]
    }
    response = client.put("/v1/admin/quota/tiers", json=body)
    assert response.status_code == 200
    assert [t["min_price"] for t in response.json()["tiers"]] == [0, 20_001]

    assert client.post("/v1/quota/cost", json={"order_total": 15_000}).json() == {"credits": 1}
    assert client.post("/v1/quota/cost", json={"order_total": 25_000}).json() == {"credits": 5}


def test_replace_quota_tiers_rejects_gaps(client: TestClient):
    body = {
        "tiers": [
            {"min_price": 0, "max_price": 1_000, "credit_cost": 1},
            {"min_price": 5_000, "max_price": None, "credit_cost": 2},
        ]
    }
    assert client.put("/v1/admin/quota/tiers", json=body).status_code == 422
    assert [t["credit_cost"] for t in client.get("/v1/quota/tiers").json()["tiers"]] == [1, 1, 2, 3]
