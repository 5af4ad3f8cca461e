"""Shared test fixtures and configuration."""

import os
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional

import httpx
import pytest

# Set up test environment variables before importing modules
os.environ.setdefault("PAYPAL_CLIENT_ID", "test_client_id")
os.environ.setdefault("PAYPAL_CLIENT_SECRET", "test_client_secret")
os.environ.setdefault("PAYPAL_MODE", "sandbox")
os.environ.setdefault("API_KEY", "test_api_key_12345")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("PUBLIC_BASE_URL", "https://shop.example.com")
os.environ.setdefault("PAYPAL_RETURN_RATE_LIMIT", "1000/minute")

from paypal_checkout.config import Credentials, Environment
from paypal_checkout.connectors.paypal_connector import PayPalConnector
from paypal_checkout.tokens import TokenCache, TokenProvider

ORDER_ID = "5O190127TN364715T"
APPROVAL_URL = f"https://www.sandbox.paypal.com/checkoutnow?token={ORDER_ID}"


def order_created_payload(order_id: str = ORDER_ID, links: Optional[List[Dict[str, str]]] = None) -> Dict[str, Any]:
    if links is None:
        links = [
            {"href": f"https://api.sandbox.paypal.com/v2/checkout/orders/{order_id}", "rel": "self", "method": "GET"},
            {"href": f"https://www.sandbox.paypal.com/checkoutnow?token={order_id}", "rel": "approve", "method": "GET"},
            {"href": f"https://api.sandbox.paypal.com/v2/checkout/orders/{order_id}", "rel": "update", "method": "PATCH"},
            {"href": f"https://api.sandbox.paypal.com/v2/checkout/orders/{order_id}/capture", "rel": "capture", "method": "POST"},
        ]
    return {"id": order_id, "status": "CREATED", "links": links}


def capture_payload(order_id: str = ORDER_ID, status: str = "COMPLETED") -> Dict[str, Any]:
    return {
        "id": order_id,
        "status": status,
        "purchase_units": [
            {
                "reference_id": "default",
                "payments": {
                    "captures": [
                        {
                            "id": "3C679366HH908993F",
                            "status": "COMPLETED",
                            "amount": {"currency_code": "USD", "value": "10.00"},
                        }
                    ]
                },
            }
        ],
    }


class PayPalMock:
    """Routes requests to canned PayPal responses and records every call.

    Each ``*_response`` is either ``(status_code, json_body)``, a raw
    ``httpx.Response`` factory (callable), or an exception instance to raise.
    """

    def __init__(self):
        self.token_response: Any = (200, {"access_token": "A21AAF-test-token", "token_type": "Bearer", "expires_in": 32400})
        self.order_response: Any = (201, order_created_payload())
        self.capture_response: Any = (201, capture_payload())
        self.requests: List[httpx.Request] = []

    def _respond(self, spec: Any, request: httpx.Request) -> httpx.Response:
        if isinstance(spec, Exception):
            raise spec
        if callable(spec):
            return spec(request)
        status_code, body = spec
        return httpx.Response(status_code, json=body)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path == "/v1/oauth2/token":
            return self._respond(self.token_response, request)
        if path == "/v2/checkout/orders":
            return self._respond(self.order_response, request)
        if path.startswith("/v2/checkout/orders/") and path.endswith("/capture"):
            return self._respond(self.capture_response, request)
        return httpx.Response(404, json={"name": "RESOURCE_NOT_FOUND"})

    def calls(self, path_suffix: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.url.path.endswith(path_suffix)]

    @property
    def token_calls(self) -> List[httpx.Request]:
        return self.calls("/v1/oauth2/token")

    @property
    def order_calls(self) -> List[httpx.Request]:
        return self.calls("/v2/checkout/orders")

    @property
    def capture_calls(self) -> List[httpx.Request]:
        return self.calls("/capture")


class FakeClock:
    """Controllable UTC clock for token expiry tests."""

    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@dataclass
class FakePaymentRecord:
    """In-memory PaymentRecord that records every write."""
    reference_id: str = "pay_123"
    currency: str = "USD"
    amount: Decimal = Decimal("10.00")
    transaction_id: Optional[str] = None
    data: Optional[Dict[str, Any]] = None
    paid: bool = False
    events: List[str] = field(default_factory=list)
    completions: List[Dict[str, Any]] = field(default_factory=list)

    def total(self) -> Decimal:
        return self.amount

    def cancel_url(self) -> str:
        return f"https://shop.example.com/payments/{self.reference_id}/cancel"

    def return_url(self) -> str:
        return "https://shop.example.com/paypal/return"

    def success_url(self) -> str:
        return f"https://shop.example.com/payments/{self.reference_id}/success"

    def is_paid(self) -> bool:
        return self.paid

    async def attach_order(self, order_id: str, data: Dict[str, Any]) -> None:
        self.events.append("attach_order")
        self.transaction_id = order_id
        self.data = data

    async def mark_completed(self, transaction_id: str, data: Dict[str, Any]) -> None:
        self.events.append("mark_completed")
        self.completions.append({"transaction_id": transaction_id, "data": data})
        self.transaction_id = transaction_id
        self.data = data
        self.paid = True


class FakePaymentStore:
    def __init__(self, *records: FakePaymentRecord):
        self.records = list(records)
        self.lookups: List[str] = []

    async def get(self, payment_id: str) -> Optional[FakePaymentRecord]:
        return next((r for r in self.records if r.reference_id == payment_id), None)

    async def find_by_transaction_id(self, transaction_id: str) -> Optional[FakePaymentRecord]:
        self.lookups.append(transaction_id)
        return next((r for r in self.records if r.transaction_id == transaction_id), None)


@pytest.fixture
def credentials() -> Credentials:
    return Credentials(client_id="test_client_id", client_secret="test_client_secret", environment=Environment.SANDBOX)


@pytest.fixture
def live_credentials() -> Credentials:
    return Credentials(client_id="live_client_id", client_secret="live_client_secret", environment=Environment.LIVE)


@pytest.fixture
def paypal() -> PayPalMock:
    return PayPalMock()


@pytest.fixture
async def http_client(paypal):
    async with httpx.AsyncClient(transport=httpx.MockTransport(paypal.handler), timeout=5.0) as client:
        yield client


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def token_cache(clock) -> TokenCache:
    return TokenCache(clock=clock)


@pytest.fixture
def token_provider(http_client, token_cache) -> TokenProvider:
    return TokenProvider(http_client, cache=token_cache)


@pytest.fixture
def connector(http_client, token_provider) -> PayPalConnector:
    return PayPalConnector(http_client, token_provider)


@pytest.fixture
def payment() -> FakePaymentRecord:
    return FakePaymentRecord()
