"""Tests for the reference API endpoints."""

import httpx
import pytest
from fastapi.testclient import TestClient

from paypal_checkout.api import app, error_status_code, get_connector
from paypal_checkout.connectors.paypal_connector import PayPalConnector
from paypal_checkout.errors import (
    ApprovalLinkMissingError,
    AuthError,
    CaptureNotCompletedError,
    ConfigurationError,
    NotFoundError,
)
from paypal_checkout.tokens import TokenProvider
from tests.conftest import APPROVAL_URL, ORDER_ID, capture_payload, order_created_payload


@pytest.fixture
def paypal_connector(paypal):
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(paypal.handler))
    return PayPalConnector(http_client, TokenProvider(http_client))


@pytest.fixture
def client(paypal_connector):
    """Test client with a fresh database and PayPal mocked out."""
    app.dependency_overrides[get_connector] = lambda: paypal_connector
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    return {"Authorization": "Bearer test_api_key_12345"}


@pytest.fixture
def payment_id(client, auth_headers):
    response = client.post("/payments", json={"amount": "10.00", "currency": "USD"}, headers=auth_headers)
    assert response.status_code == 201
    return response.json()["id"]


def checkout(client, payment_id, auth_headers):
    response = client.post(f"/payments/{payment_id}/checkout", headers=auth_headers)
    assert response.status_code == 200
    return response.json()


class TestErrorStatusCodes:

    @pytest.mark.parametrize("exc,expected", [
        (NotFoundError("missing"), 404),
        (CaptureNotCompletedError("APPROVED", ORDER_ID), 402),
        (ConfigurationError("bad"), 500),
        (AuthError("denied"), 502),
        (ApprovalLinkMissingError("no link"), 502),
    ])
    def test_mapping(self, exc, expected):
        assert error_status_code(exc) == expected


class TestAuthentication:

    def test_health_is_public(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"ok": True}

    def test_missing_api_key(self, client):
        response = client.post("/payments", json={"amount": "1.00", "currency": "USD"})
        assert response.status_code in (401, 403)

    def test_invalid_api_key(self, client):
        response = client.post(
            "/payments",
            json={"amount": "1.00", "currency": "USD"},
            headers={"Authorization": "Bearer wrong"},
        )
        assert response.status_code == 401

    def test_unconfigured_api_key(self, client, auth_headers, monkeypatch):
        monkeypatch.delenv("API_KEY")
        response = client.post("/payments", json={"amount": "1.00", "currency": "USD"}, headers=auth_headers)
        assert response.status_code == 500


class TestPayments:

    def test_create_payment(self, client, auth_headers):
        response = client.post("/payments", json={"amount": "10", "currency": "usd"}, headers=auth_headers)

        assert response.status_code == 201
        data = response.json()
        assert data["amount"] == "10.00"
        assert data["currency"] == "USD"
        assert data["status"] == "pending"
        assert data["gateway"] == "paypal"

    def test_negative_amount_rejected(self, client, auth_headers):
        response = client.post("/payments", json={"amount": "-1", "currency": "USD"}, headers=auth_headers)
        assert response.status_code == 422

    @pytest.mark.parametrize("amount", ["10.005", "1e30"])
    def test_unrepresentable_amount_rejected(self, client, auth_headers, amount):
        response = client.post("/payments", json={"amount": amount, "currency": "USD"}, headers=auth_headers)
        assert response.status_code == 400

    def test_read_payment(self, client, auth_headers, payment_id):
        response = client.get(f"/payments/{payment_id}", headers=auth_headers)

        assert response.status_code == 200
        assert response.json()["id"] == payment_id
        assert response.json()["history"] == []

    def test_read_unknown_payment(self, client, auth_headers):
        assert client.get("/payments/missing", headers=auth_headers).status_code == 404


class TestCheckout:

    def test_returns_approval_url(self, client, auth_headers, payment_id, paypal):
        data = checkout(client, payment_id, auth_headers)

        assert data == {"payment_id": payment_id, "transaction_id": ORDER_ID, "approval_url": APPROVAL_URL}
        payment = client.get(f"/payments/{payment_id}", headers=auth_headers).json()
        assert payment["status"] == "created"
        assert payment["transaction_id"] == ORDER_ID
        assert len(paypal.order_calls) == 1

    def test_redirect(self, client, auth_headers, payment_id):
        response = client.post(
            f"/payments/{payment_id}/checkout?redirect=true", headers=auth_headers, follow_redirects=False
        )
        assert response.status_code == 303
        assert response.headers["location"] == APPROVAL_URL

    def test_unknown_payment(self, client, auth_headers, paypal):
        response = client.post("/payments/missing/checkout", headers=auth_headers)
        assert response.status_code == 404
        assert paypal.requests == []

    def test_missing_approve_link(self, client, auth_headers, payment_id, paypal):
        paypal.order_response = (201, order_created_payload(links=[]))

        response = client.post(f"/payments/{payment_id}/checkout", headers=auth_headers)

        assert response.status_code == 502
        assert response.json()["error"] == "ApprovalLinkMissingError"

    def test_paypal_auth_failure(self, client, auth_headers, payment_id, paypal):
        paypal.token_response = (401, {"error": "invalid_client"})

        response = client.post(f"/payments/{payment_id}/checkout", headers=auth_headers)

        assert response.status_code == 502
        assert paypal.order_calls == []

    def test_missing_credentials(self, client, auth_headers, payment_id, monkeypatch):
        monkeypatch.delenv("PAYPAL_CLIENT_SECRET")

        response = client.post(f"/payments/{payment_id}/checkout", headers=auth_headers)

        assert response.status_code == 500
        assert "PAYPAL_CLIENT_SECRET" in response.json()["detail"]

    def test_already_paid(self, client, auth_headers, payment_id):
        checkout(client, payment_id, auth_headers)
        client.get(f"/paypal/return?token={ORDER_ID}", follow_redirects=False)

        response = client.post(f"/payments/{payment_id}/checkout", headers=auth_headers)
        assert response.status_code == 409


class TestPayPalReturn:

    def test_completes_and_redirects(self, client, auth_headers, payment_id, paypal):
        checkout(client, payment_id, auth_headers)

        response = client.get(f"/paypal/return?token={ORDER_ID}", follow_redirects=False)

        assert response.status_code == 303
        assert response.headers["location"] == f"https://shop.example.com/payments/{payment_id}/success"
        payment = client.get(f"/payments/{payment_id}", headers=auth_headers).json()
        assert payment["status"] == "completed"
        assert payment["completed_at"] is not None
        assert [h["action"] for h in payment["history"]] == ["order_created", "capture_completed"]
        assert len(paypal.capture_calls) == 1

    def test_success_page(self, client, auth_headers, payment_id):
        checkout(client, payment_id, auth_headers)
        client.get(f"/paypal/return?token={ORDER_ID}", follow_redirects=False)

        response = client.get(f"/payments/{payment_id}/success")
        assert response.json() == {"payment_id": payment_id, "status": "completed", "paid": True}

    def test_replay_does_not_capture_twice(self, client, auth_headers, payment_id, paypal):
        checkout(client, payment_id, auth_headers)

        first = client.get(f"/paypal/return?token={ORDER_ID}", follow_redirects=False)
        second = client.get(f"/paypal/return?token={ORDER_ID}", follow_redirects=False)

        assert first.status_code == second.status_code == 303
        assert len(paypal.capture_calls) == 1

    def test_unknown_token(self, client, paypal):
        response = client.get("/paypal/return?token=UNKNOWN", follow_redirects=False)

        assert response.status_code == 404
        assert response.json()["error"] == "NotFoundError"
        assert paypal.requests == []

    def test_missing_token(self, client, paypal):
        response = client.get("/paypal/return", follow_redirects=False)

        assert response.status_code == 404
        assert paypal.requests == []

    def test_approved_is_not_completed(self, client, auth_headers, payment_id, paypal):
        checkout(client, payment_id, auth_headers)
        paypal.capture_response = (201, capture_payload(status="APPROVED"))

        response = client.get(f"/paypal/return?token={ORDER_ID}", follow_redirects=False)

        assert response.status_code == 402
        assert response.json()["status"] == "APPROVED"
        payment = client.get(f"/payments/{payment_id}", headers=auth_headers).json()
        assert payment["status"] == "created"
        failure = payment["history"][-1]
        assert failure["action"] == "capture_not_completed"
        assert failure["remote_status"] == "APPROVED"

    def test_capture_failure(self, client, auth_headers, payment_id, paypal):
        checkout(client, payment_id, auth_headers)
        paypal.capture_response = (422, {"name": "UNPROCESSABLE_ENTITY"})

        response = client.get(f"/paypal/return?token={ORDER_ID}", follow_redirects=False)

        assert response.status_code == 502
        assert response.json()["error"] == "CaptureError"


class TestCancel:

    def test_cancel_pending(self, client, auth_headers, payment_id):
        response = client.get(f"/payments/{payment_id}/cancel")

        assert response.status_code == 200
        assert response.json() == {"payment_id": payment_id, "status": "cancelled"}

    def test_cancel_paid(self, client, auth_headers, payment_id):
        checkout(client, payment_id, auth_headers)
        client.get(f"/paypal/return?token={ORDER_ID}", follow_redirects=False)

        assert client.get(f"/payments/{payment_id}/cancel").status_code == 409
