"""Checkout service layer: order creation, capture and callback lookup.

These services integrate the processor connector with the host's payment
records. They own the create -> approve -> capture state machine:

    Created --(payer approves)--> Approved --capture--> Captured (COMPLETED)
                                                   \\-> NotCaptured (any other status)
"""

import logging
from typing import Iterable, Optional

from .config import Credentials
from .connectors.base import ConnectorBase, OrderRequest, CaptureResult, CaptureStatus
from .errors import (
    ApprovalLinkMissingError,
    CaptureNotCompletedError,
    NotFoundError,
    OrderCreationError,
)
from .records import PaymentRecord, PaymentRecordStore

logger = logging.getLogger(__name__)


class OrderService:
    """Create a remote order for a payment and return the payer approval link."""

    def __init__(self, connector: ConnectorBase):
        self.connector = connector

    def build_request(self, payment: PaymentRecord) -> OrderRequest:
        """Translate a payment record into an order request.

        Raises:
            OrderCreationError: If the payment's total or currency is invalid.
        """
        try:
            return OrderRequest(
                reference_id=str(payment.reference_id),
                currency=payment.currency,
                amount=str(payment.total()),
                cancel_url=payment.cancel_url(),
                return_url=payment.return_url(),
            )
        except ValueError as e:
            raise OrderCreationError(f"Invalid payment {payment.reference_id}: {e}") from e

    async def create_order(self, payment: PaymentRecord, credentials: Credentials) -> str:
        """Create the order and return its approval URL.

        The order id and raw response are written to the payment record
        before the approval link is looked at, so a crash between order
        creation and the redirect still leaves the record linked to the
        remote order.

        Args:
            payment: Host payment record.
            credentials: Merchant credentials.

        Returns:
            The approval URL the payer must be redirected to.

        Raises:
            OrderCreationError: On token, transport or response failures.
            ApprovalLinkMissingError: If the response has no approve link.
        """
        request = self.build_request(payment)
        order = await self.connector.create_order(request, credentials)

        await payment.attach_order(order.order_id, order.raw)
        logger.info(f"Linked payment {payment.reference_id} to PayPal order {order.order_id}")

        approval_url = order.approval_url()
        if not approval_url:
            logger.error(f"PayPal order {order.order_id} has no approve link")
            raise ApprovalLinkMissingError(
                "No approve link found in PayPal response.",
                details={"order_id": order.order_id, "links": [link.model_dump() for link in order.links]},
            )
        return approval_url


class CaptureService:
    """Capture an approved order and reconcile the result into the payment record."""

    def __init__(self, connector: ConnectorBase):
        self.connector = connector

    async def capture(
        self,
        payment: PaymentRecord,
        order_id: str,
        credentials: Credentials,
    ) -> CaptureResult:
        """Capture ``order_id`` for ``payment``.

        A payment that already reports paid short-circuits: no remote call and
        no completion write. The paid check and the capture are not atomic; a
        second callback racing the first completion write may still reach the
        processor, which rejects the duplicate capture.

        Raises:
            CaptureError: On token, transport or malformed-response failures.
            CaptureNotCompletedError: If the processor status is not COMPLETED.
        """
        if payment.is_paid():
            logger.info(
                f"Payment {payment.reference_id} already paid, skipping capture of {order_id}"
            )
            return CaptureResult(
                order_id=order_id,
                status=CaptureStatus.COMPLETED.value,
                raw=payment.data or {},
                already_captured=True,
            )

        result = await self.connector.capture_order(order_id, credentials)

        if not result.is_completed:
            logger.warning(
                f"PayPal order {order_id} not completed for payment "
                f"{payment.reference_id}: status {result.status}"
            )
            raise CaptureNotCompletedError(result.status, order_id=order_id, details=result.raw)

        await payment.mark_completed(order_id, result.raw)
        logger.info(f"Captured PayPal order {order_id} for payment {payment.reference_id}")
        return result


class CallbackResolver:
    """Resolve the return-redirect ``token`` to exactly one payment record."""

    def __init__(self, store: PaymentRecordStore):
        self.store = store

    async def resolve(self, token: Optional[str]) -> PaymentRecord:
        if not token:
            raise NotFoundError("No order 'token' (ID) provided in callback.")

        payment = await self.store.find_by_transaction_id(token)
        if payment is None:
            logger.warning(f"No payment found for transaction_id={token}")
            raise NotFoundError(
                f"No matching Payment found for transaction_id={token}.",
                details={"transaction_id": token},
            )
        return payment


class PayPalGateway:
    """Outbound (pay) and inbound (callback) entry points for one checkout."""

    identifier = "paypal"
    version = "1.0.0"

    def __init__(
        self,
        connector: ConnectorBase,
        store: PaymentRecordStore,
        currencies: Optional[Iterable[str]] = None,
    ):
        self.orders = OrderService(connector)
        self.captures = CaptureService(connector)
        self.callbacks = CallbackResolver(store)
        self.currencies = frozenset(c.upper() for c in (currencies or ()))

    def supports_currency(self, currency: str) -> bool:
        return not self.currencies or currency.upper() in self.currencies

    async def pay(self, payment: PaymentRecord, credentials: Credentials) -> str:
        """Create the order and return the approval URL to redirect the payer to."""
        if not self.supports_currency(payment.currency):
            raise OrderCreationError(
                f"Currency {payment.currency} is not supported by the {self.identifier} gateway"
            )
        return await self.orders.create_order(payment, credentials)

    async def callback(self, token: Optional[str], credentials: Credentials) -> PaymentRecord:
        """Handle the payer's return: look the payment up and capture it.

        Returns:
            The payment record, completed (or already paid).
        """
        payment = await self.callbacks.resolve(token)
        await self.captures.capture(payment, token, credentials)
        return payment
