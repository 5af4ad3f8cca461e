import logging
from typing import Dict, Any, Optional

import httpx
from pydantic import ValidationError

from ..config import Credentials
from ..errors import AuthError, CaptureError, OrderCreationError
from ..tokens import TokenProvider
from ..urls import ApiUrlResolver
from .base import ConnectorBase, OrderRequest, OrderResponse, CaptureResult

logger = logging.getLogger(__name__)


class PayPalConnector(ConnectorBase):
    """
    PayPal Orders v2 connector over httpx. One request attempt per call; the
    bounded timeout comes from the injected client. Every failure is raised
    as the caller-facing error type with the underlying cause chained.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        token_provider: Optional[TokenProvider] = None,
        resolver: Optional[ApiUrlResolver] = None,
    ):
        self.http_client = http_client
        self.resolver = resolver if resolver is not None else ApiUrlResolver()
        if token_provider is None:
            token_provider = TokenProvider(http_client, resolver=self.resolver)
        self.token_provider = token_provider

    async def _post_json(self, url: str, token: str, payload: Dict[str, Any]) -> httpx.Response:
        return await self.http_client.post(
            url,
            json=payload,
            headers={
                "Authorization": f"Bearer {token}",
                "Accept": "application/json",
            },
        )

    def _drop_rejected_token(self, response: httpx.Response, credentials: Credentials) -> None:
        if response.status_code == 401:
            logger.warning("PayPal rejected the cached access token, dropping it")
            self.token_provider.invalidate(credentials)

    @staticmethod
    def _json_body(response: httpx.Response) -> Optional[Dict[str, Any]]:
        try:
            body = response.json()
        except ValueError:
            return None
        return body if isinstance(body, dict) else None

    async def create_order(self, request: OrderRequest, credentials: Credentials) -> OrderResponse:
        try:
            token = await self.token_provider.get_access_token(credentials)
        except AuthError as e:
            raise OrderCreationError(f"Failed to create PayPal order: {e.message}") from e

        try:
            response = await self._post_json(
                self.resolver.orders_url(credentials.environment), token, request.to_payload()
            )
        except httpx.HTTPError as e:
            logger.error(f"PayPal order create request failed: {type(e).__name__}")
            raise OrderCreationError("Failed to create PayPal order: endpoint unreachable") from e

        body = self._json_body(response)
        if not response.is_success:
            self._drop_rejected_token(response, credentials)
            logger.error(
                f"PayPal order create for {request.reference_id} failed "
                f"with status {response.status_code}"
            )
            raise OrderCreationError(
                "Failed to create PayPal order",
                details={"status_code": response.status_code, "response": body},
            )

        if body is None or not body.get("id"):
            raise OrderCreationError(
                "Failed to create PayPal order: response has no order id",
                details={"response": body},
            )

        try:
            order = OrderResponse.from_payload(body)
        except ValidationError as e:
            raise OrderCreationError(
                "Failed to create PayPal order: malformed response", details={"response": body}
            ) from e

        logger.info(f"Created PayPal order {order.order_id} with status {order.status}")
        return order

    async def capture_order(self, order_id: str, credentials: Credentials) -> CaptureResult:
        try:
            token = await self.token_provider.get_access_token(credentials)
        except AuthError as e:
            raise CaptureError(f"Failed to capture PayPal order: {e.message}") from e

        try:
            response = await self._post_json(
                self.resolver.capture_url(order_id, credentials.environment), token, {}
            )
        except httpx.HTTPError as e:
            logger.error(f"PayPal capture request for {order_id} failed: {type(e).__name__}")
            raise CaptureError("Failed to capture PayPal order: endpoint unreachable") from e

        body = self._json_body(response)
        if not response.is_success:
            self._drop_rejected_token(response, credentials)
            logger.error(f"PayPal capture for {order_id} failed with status {response.status_code}")
            raise CaptureError(
                "Failed to capture PayPal order.",
                details={"status_code": response.status_code, "response": body},
            )

        if body is None or not body.get("status"):
            raise CaptureError(
                "Unexpected PayPal response structure, no status field found.",
                details={"response": body},
            )

        return CaptureResult(order_id=body.get("id") or order_id, status=str(body["status"]), raw=body)

    async def health_check(self, credentials: Credentials) -> Dict[str, Any]:
        try:
            await self.token_provider.get_access_token(credentials)
        except AuthError as e:
            return {"ok": False, "provider": "paypal", "error": e.message}
        return {"ok": True, "provider": "paypal", "environment": credentials.environment.value}
