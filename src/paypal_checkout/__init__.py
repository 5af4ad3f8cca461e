# paypal_checkout package
__version__ = "0.1.0"

from .config import Credentials, Environment, CheckoutSettings, load_credentials
from .errors import (
    PayPalError,
    ConfigurationError,
    AuthError,
    OrderCreationError,
    ApprovalLinkMissingError,
    NotFoundError,
    CaptureError,
    CaptureNotCompletedError,
)
from .urls import ApiUrlResolver
from .tokens import CachedToken, TokenCache, TokenProvider
from .connectors import (
    ConnectorBase,
    PayPalConnector,
    OrderRequest,
    OrderResponse,
    CaptureResult,
    CaptureStatus,
)
from .records import PaymentRecord, PaymentRecordStore
from .services import OrderService, CaptureService, CallbackResolver, PayPalGateway
