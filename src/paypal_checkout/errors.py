"""Error taxonomy for the PayPal checkout flow.

Every error is terminal for the current request: nothing here is retried
automatically, and each stage wraps lower-level failures in its own type
(``raise OrderCreationError(...) from exc``) so the boundary can map them to
a user-visible failure.
"""

from typing import Any, Dict, Optional


class PayPalError(Exception):
    """Base class for all checkout errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(PayPalError, ValueError):
    """Required configuration is missing or invalid."""


class AuthError(PayPalError):
    """The OAuth2 token endpoint was unreachable or rejected the request."""


class OrderCreationError(PayPalError):
    """The create-order call failed or returned a malformed response."""


class ApprovalLinkMissingError(OrderCreationError):
    """A CAPTURE order came back without a ``rel == "approve"`` link."""


class NotFoundError(PayPalError):
    """No local payment record matches the inbound order id."""


class CaptureError(PayPalError):
    """The capture call failed or returned a malformed response."""


class CaptureNotCompletedError(CaptureError):
    """The processor answered with a status other than COMPLETED."""

    def __init__(
        self,
        status: str,
        order_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            f"PayPal order {order_id} not completed. Current status: {status}",
            details=details,
        )
        self.status = status
        self.order_id = order_id
