"""Map logical PayPal endpoint paths to environment base URLs."""

from typing import Union
from urllib.parse import quote

from .config import Environment

LIVE_BASE_URL = "https://api.paypal.com"
SANDBOX_BASE_URL = "https://api.sandbox.paypal.com"


class ApiUrlResolver:
    """Pure path -> URL mapping. ``live`` goes to production, anything else to sandbox."""

    def __init__(self, live_base: str = LIVE_BASE_URL, sandbox_base: str = SANDBOX_BASE_URL):
        self.live_base = live_base.rstrip("/")
        self.sandbox_base = sandbox_base.rstrip("/")

    def base_url(self, environment: Union[Environment, str, None]) -> str:
        value = environment.value if isinstance(environment, Environment) else environment
        return self.live_base if value == Environment.LIVE.value else self.sandbox_base

    def resolve(self, path: str, environment: Union[Environment, str, None]) -> str:
        return f"{self.base_url(environment)}/{path.lstrip('/')}"

    def token_url(self, environment) -> str:
        return self.resolve("v1/oauth2/token", environment)

    def orders_url(self, environment) -> str:
        return self.resolve("v2/checkout/orders", environment)

    def capture_url(self, order_id: str, environment) -> str:
        return self.resolve(f"v2/checkout/orders/{quote(order_id, safe='')}/capture", environment)
