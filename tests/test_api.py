"""
API tests.

Runs the FastAPI app with TestClient; the Supabase stores, the Stripe
gateway and the notification sink are replaced through dependency
overrides. Webhook deliveries are signed with the test endpoint secret.
"""

from __future__ import annotations

import json
import logging
from urllib.parse import quote
from uuid import UUID, uuid4

import pytest
from fastapi.testclient import TestClient

from api import dependencies
from api.main import app
from domain.attribution import AttributionToken
from domain.errors import PaymentGatewayError
from fakes import ANA_ID, FIXED_NOW, checkout_event, sign_payload
from services.attribution_store import COOKIE_NAME

ADMIN = {"Authorization": "Bearer admin-token"}
CRON = {"Authorization": "Bearer cron-secret"}


@pytest.fixture
def client(stores, settings, gateway, notifications):
    app.dependency_overrides[dependencies.get_app_settings] = lambda: settings
    app.dependency_overrides[dependencies.get_stores] = lambda: stores
    app.dependency_overrides[dependencies.get_gateway] = lambda: gateway
    app.dependency_overrides[dependencies.get_notification_sink] = lambda: notifications
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def _order_body(**overrides) -> dict:
    body = {
        "items": [{"product_id": "ring-01", "name": "Anel Prata", "price": "45.00", "quantity": 1}],
        "customer": {"first_name": "Maria", "last_name": "Silva", "email": "maria@example.com"},
    }
    body.update(overrides)
    return body


def test_health_check(client) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


# ============================================================================
# Attribution
# ============================================================================

def test_captured_referral_attributes_later_order(client, stores) -> None:
    captured = client.post("/api/v1/attribution", json={"url": "https://loja.example/?ref=ana01"})
    assert captured.status_code == 200
    assert captured.json()["code"] == "ANA01"
    assert captured.json()["source"] == "url"

    current = client.get("/api/v1/attribution")
    assert current.json()["code"] == "ANA01"

    order = client.post("/api/v1/orders", json=_order_body())
    assert order.status_code == 200
    assert order.json()["consultant_code"] == "ANA01"
    assert stores.orders.get_order_by_id(UUID(order.json()["order_id"])).consultant_id == ANA_ID


def test_capture_without_code_is_rejected(client) -> None:
    response = client.post("/api/v1/attribution", json={"url": "https://loja.example/produtos"})

    assert response.status_code == 400


def test_clear_referral(client) -> None:
    client.post("/api/v1/attribution", json={"code": "ana01"})

    client.delete("/api/v1/attribution")

    assert client.get("/api/v1/attribution").json()["code"] is None


def test_expired_cookie_reads_as_no_referral(stores, settings) -> None:
    stale = AttributionToken(code="ANA01", issued_at=FIXED_NOW.replace(year=2020))
    app.dependency_overrides[dependencies.get_app_settings] = lambda: settings
    app.dependency_overrides[dependencies.get_stores] = lambda: stores
    try:
        with TestClient(app, cookies={COOKIE_NAME: quote(stale.to_json(), safe="")}) as stale_client:
            assert stale_client.get("/api/v1/attribution").json()["code"] is None
    finally:
        app.dependency_overrides.clear()


def test_consultant_lookup_by_code(client) -> None:
    found = client.get("/api/v1/consultants/by-code/ana01")
    suspended = client.get("/api/v1/consultants/by-code/RUI02")

    assert found.status_code == 200
    assert found.json()["full_name"] == "Ana Costa"
    assert suspended.status_code == 404


# ============================================================================
# Orders
# ============================================================================

def test_direct_order_with_explicit_code(client) -> None:
    response = client.post("/api/v1/orders", json=_order_body(consultant_code="ana01"))

    assert response.status_code == 200
    assert response.json()["total"] == "50.99"
    assert response.json()["consultant_code"] == "ANA01"


def test_direct_order_with_unknown_code_is_unattributed(client) -> None:
    response = client.post("/api/v1/orders", json=_order_body(consultant_code="GHOST"))

    assert response.status_code == 200
    assert response.json()["consultant_code"] is None


def test_opt_out_overrides_cookie(client) -> None:
    client.post("/api/v1/attribution", json={"code": "ana01"})

    response = client.post("/api/v1/orders", json=_order_body(consultant_opt_out=True))

    assert response.json()["consultant_code"] is None
    assert client.get("/api/v1/attribution").json()["code"] is None


def test_empty_cart_is_bad_request(client, stores) -> None:
    response = client.post("/api/v1/orders", json=_order_body(items=[]))

    assert response.status_code == 400
    assert response.json()["detail"] == "Cart is empty"
    assert stores.orders.orders == {}


def test_mbway_payment(client) -> None:
    ok = client.post("/api/v1/payments/mbway", json=_order_body(phone_number="+351912345678"))
    bad = client.post("/api/v1/payments/mbway", json=_order_body(phone_number="12345"))

    assert ok.status_code == 200
    assert ok.json()["status"] == "pending"
    assert ok.json()["reference"] == ok.json()["order_id"]
    assert bad.status_code == 400


def test_checkout_session(client, gateway) -> None:
    response = client.post("/api/v1/checkout/session", json=_order_body(consultant_code="ANA01"))

    assert response.status_code == 200
    assert response.json()["session_id"] == gateway.sessions[0]["id"]
    assert gateway.sessions[0]["metadata"]["consultant_code"] == "ANA01"


def test_checkout_gateway_failure_is_bad_gateway(client, gateway, monkeypatch) -> None:
    def reject(*args, **kwargs):
        raise PaymentGatewayError("card payments disabled")

    monkeypatch.setattr(gateway, "create_checkout_session", reject)

    response = client.post("/api/v1/checkout/session", json=_order_body())

    assert response.status_code == 502


def test_order_routes_require_admin_token(client) -> None:
    order_id = client.post("/api/v1/orders", json=_order_body()).json()["order_id"]

    assert client.get(f"/api/v1/orders/{order_id}").status_code == 401
    assert client.get(f"/api/v1/orders/{order_id}", headers=ADMIN).status_code == 200
    assert client.get(f"/api/v1/orders/{uuid4()}", headers=ADMIN).status_code == 404


def test_payment_confirmation_creates_commission_once(client, stores) -> None:
    order_id = client.post("/api/v1/orders", json=_order_body(consultant_code="ana01")).json()["order_id"]

    first = client.post(f"/api/v1/orders/{order_id}/payment-confirmation", headers=ADMIN)
    second = client.post(f"/api/v1/orders/{order_id}/payment-confirmation", headers=ADMIN)

    assert first.status_code == 200
    assert first.json()["order"]["payment_status"] == "paid"
    assert first.json()["commission_id"] is not None
    assert second.json()["already_confirmed"] is True
    assert len(stores.commissions.commissions) == 1


def test_payment_confirmation_unknown_order(client) -> None:
    response = client.post(f"/api/v1/orders/{uuid4()}/payment-confirmation", headers=ADMIN)

    assert response.status_code == 404


# ============================================================================
# Webhooks
# ============================================================================

def test_webhook_redelivery_is_acknowledged_as_duplicate(client, stores) -> None:
    payload = checkout_event("sess_123")
    headers = {"Stripe-Signature": sign_payload(payload), "Content-Type": "application/json"}

    first = client.post("/api/v1/webhooks/stripe", content=payload, headers=headers)
    second = client.post("/api/v1/webhooks/stripe", content=payload, headers=headers)

    assert first.status_code == 200
    assert first.json()["outcome"] == "created"
    assert second.status_code == 200
    assert second.json()["outcome"] == "duplicate"
    assert len(stores.orders.by_reference("sess_123")) == 1


def test_webhook_with_bad_signature_is_rejected(client, stores) -> None:
    payload = checkout_event("sess_bad")
    headers = {"Stripe-Signature": sign_payload(payload, secret="whsec_other")}

    response = client.post("/api/v1/webhooks/stripe", content=payload, headers=headers)

    assert response.status_code == 400
    assert stores.orders.orders == {}


# ============================================================================
# Commissions
# ============================================================================

def test_commission_listing_and_actions(client) -> None:
    order_id = client.post("/api/v1/orders", json=_order_body(consultant_code="ana01")).json()["order_id"]
    commission_id = client.post(
        f"/api/v1/orders/{order_id}/payment-confirmation", headers=ADMIN
    ).json()["commission_id"]

    listing = client.get("/api/v1/commissions", params={"consultant_id": str(ANA_ID)}, headers=ADMIN)
    assert listing.status_code == 200
    assert listing.json()["summary"]["pending"] == 1
    assert listing.json()["summary"]["pending_amount"] == "7.65"

    approved = client.post(
        "/api/v1/commissions/actions",
        json={"commission_ids": [commission_id], "action": "approve"},
        headers=ADMIN,
    )
    assert approved.status_code == 200
    assert approved.json()["commissions"][0]["status"] == "approved"

    again = client.post(
        "/api/v1/commissions/actions",
        json={"commission_ids": [commission_id], "action": "approve"},
        headers=ADMIN,
    )
    assert again.status_code == 400
    assert again.json()["detail"] == [f"Commission {commission_id} is not pending"]


def test_commission_routes_require_admin_token(client) -> None:
    assert client.get("/api/v1/commissions").status_code == 401
    assert client.get("/api/v1/commissions", headers={"Authorization": "Bearer nope"}).status_code == 401


# ============================================================================
# Reports
# ============================================================================

def test_monthly_report_requires_cron_secret(client, caplog) -> None:
    with caplog.at_level(logging.WARNING):
        response = client.post("/api/v1/consultants/monthly-report", headers={"Authorization": "Bearer wrong"})

    assert response.status_code == 401
    assert any(getattr(r, "security_event", None) == "cron_auth_failed" for r in caplog.records)


def test_monthly_report_runs_batch(client, notifications) -> None:
    response = client.post(
        "/api/v1/consultants/monthly-report",
        params={"year": 2024, "month": 1},
        headers=CRON,
    )

    assert response.status_code == 200
    assert response.json()["period_start"] == "2024-01-01"
    assert response.json()["consultants_processed"] == 1
    assert response.json()["emails_sent"] == 1
    assert len(notifications.reports) == 1


def test_webhook_without_customer_email_is_acknowledged(client, stores) -> None:
    payload = json.dumps(
        {
            "id": "evt_noemail",
            "object": "event",
            "type": "checkout.session.completed",
            "data": {"object": {"id": "sess_noemail", "payment_status": "paid", "metadata": {}}},
        }
    ).encode("utf-8")

    response = client.post(
        "/api/v1/webhooks/stripe",
        content=payload,
        headers={"Stripe-Signature": sign_payload(payload), "Content-Type": "application/json"},
    )

    assert response.status_code == 200
    assert response.json()["outcome"] == "rejected"
    assert stores.orders.orders == {}
