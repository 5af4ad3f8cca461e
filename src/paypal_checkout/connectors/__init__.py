"""Payment processor connectors."""

from .base import (
    ConnectorBase,
    OrderRequest,
    OrderResponse,
    Link,
    CaptureResult,
    CaptureStatus,
    INTENT_CAPTURE,
    APPROVE_REL,
    ZERO_DECIMAL_CURRENCIES,
    format_amount,
)
from .paypal_connector import PayPalConnector

__all__ = [
    # Base classes and models
    "ConnectorBase",
    "OrderRequest",
    "OrderResponse",
    "Link",
    "CaptureResult",
    "CaptureStatus",
    # Wire constants and helpers
    "INTENT_CAPTURE",
    "APPROVE_REL",
    "ZERO_DECIMAL_CURRENCIES",
    "format_amount",
    # Connectors
    "PayPalConnector",
]
