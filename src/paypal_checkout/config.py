"""Merchant credentials and checkout configuration."""

import hashlib
import os
import enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .errors import ConfigurationError

DEFAULT_HTTP_TIMEOUT = 10.0


class Environment(str, enum.Enum):
    """PayPal API environment."""
    SANDBOX = "sandbox"
    LIVE = "live"


class Credentials(BaseModel):
    """Immutable merchant credential set used for one checkout flow."""

    model_config = ConfigDict(frozen=True)

    client_id: str = Field(..., min_length=1)
    client_secret: str = Field(..., min_length=1, repr=False)
    environment: Environment = Environment.SANDBOX

    @field_validator("environment", mode="before")
    @classmethod
    def _normalize_environment(cls, value):
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @property
    def is_live(self) -> bool:
        return self.environment == Environment.LIVE

    @property
    def cache_key(self) -> str:
        """Stable token cache key; the secret is part of the digest so a
        rotated secret never reuses a token fetched with the old one."""
        raw = f"{self.environment.value}:{self.client_id}:{self.client_secret}"
        return hashlib.sha256(raw.encode()).hexdigest()


def _require_env(name: str, value: Optional[str]) -> str:
    if not value:
        raise ConfigurationError(
            f"{name} must be provided either as argument or environment variable"
        )
    return value


def load_credentials(
    client_id: Optional[str] = None,
    client_secret: Optional[str] = None,
    mode: Optional[str] = None,
) -> Credentials:
    """Build credentials from arguments, falling back to the environment.

    Args:
        client_id: PayPal REST client id. Falls back to PAYPAL_CLIENT_ID.
        client_secret: PayPal REST client secret. Falls back to PAYPAL_CLIENT_SECRET.
        mode: "sandbox" or "live". Falls back to PAYPAL_MODE.

    Returns:
        Credentials instance.

    Raises:
        ConfigurationError: If a required value is missing or the mode is unknown.
    """
    client_id = _require_env("PAYPAL_CLIENT_ID", client_id or os.getenv("PAYPAL_CLIENT_ID"))
    client_secret = _require_env(
        "PAYPAL_CLIENT_SECRET", client_secret or os.getenv("PAYPAL_CLIENT_SECRET")
    )
    mode = _require_env("PAYPAL_MODE", mode or os.getenv("PAYPAL_MODE"))

    if mode.strip().lower() not in {e.value for e in Environment}:
        raise ConfigurationError(f"PAYPAL_MODE must be 'sandbox' or 'live', got {mode!r}")

    return Credentials(client_id=client_id, client_secret=client_secret, environment=mode)


class CheckoutSettings(BaseModel):
    """Host-side settings for the reference API."""

    public_base_url: str = "http://localhost:8000"
    http_timeout: float = DEFAULT_HTTP_TIMEOUT

    @classmethod
    def from_env(cls) -> "CheckoutSettings":
        timeout = os.getenv("PAYPAL_HTTP_TIMEOUT")
        try:
            http_timeout = float(timeout) if timeout else DEFAULT_HTTP_TIMEOUT
        except ValueError as exc:
            raise ConfigurationError(f"PAYPAL_HTTP_TIMEOUT must be a number, got {timeout!r}") from exc
        if http_timeout <= 0:
            raise ConfigurationError("PAYPAL_HTTP_TIMEOUT must be positive")
        return cls(
            public_base_url=os.getenv("PUBLIC_BASE_URL", "http://localhost:8000").rstrip("/"),
            http_timeout=http_timeout,
        )
