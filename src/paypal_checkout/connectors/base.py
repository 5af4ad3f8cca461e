from abc import ABC, abstractmethod
from decimal import Decimal, InvalidOperation
from typing import Optional, Dict, Any, List, Union
import enum

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from ..config import Credentials

INTENT_CAPTURE = "CAPTURE"
APPROVE_REL = "approve"

# PayPal currencies without a minor unit
ZERO_DECIMAL_CURRENCIES = frozenset(["HUF", "JPY", "TWD"])


def format_amount(amount: Union[Decimal, str, int, float], currency: str) -> str:
    """Render an amount as a decimal string in the currency's minor-unit convention.

    Amounts are never rounded: "10.005" USD or "1500.5" JPY are rejected.

    Raises:
        ValueError: If the amount is not a finite, non-negative number, or
            carries more decimal places than the currency allows.
    """
    try:
        value = Decimal(str(amount))
    except InvalidOperation as e:
        raise ValueError(f"Invalid amount: {amount!r}") from e
    if not value.is_finite() or value < 0:
        raise ValueError(f"Amount must be a non-negative number, got {amount!r}")
    places = 0 if currency.upper() in ZERO_DECIMAL_CURRENCIES else 2
    try:
        quantized = value.quantize(Decimal(1).scaleb(-places))
    except InvalidOperation as e:
        raise ValueError(f"Amount out of range: {amount!r}") from e
    if quantized != value:
        raise ValueError(f"Amount {amount!r} has more than {places} decimal places for {currency.upper()}")
    return str(quantized)


# Canonical models
class OrderRequest(BaseModel):
    reference_id: str
    currency: str  # ISO 4217
    amount: str  # decimal string, see format_amount
    cancel_url: str
    return_url: str

    @field_validator("currency")
    @classmethod
    def _currency_code(cls, value: str) -> str:
        if len(value) != 3 or not value.isalpha():
            raise ValueError("currency must be a 3-letter ISO 4217 code")
        return value.upper()

    @model_validator(mode="after")
    def _amount_minor_units(self) -> "OrderRequest":
        self.amount = format_amount(self.amount, self.currency)
        return self

    def to_payload(self) -> Dict[str, Any]:
        return {
            "intent": INTENT_CAPTURE,
            "purchase_units": [
                {
                    "reference_id": self.reference_id,
                    "amount": {
                        "currency_code": self.currency,
                        "value": self.amount,
                    },
                }
            ],
            "application_context": {
                "cancel_url": self.cancel_url,
                "return_url": self.return_url,
                "shipping_preference": "NO_SHIPPING",
            },
        }


class Link(BaseModel):
    rel: Optional[str] = None
    href: Optional[str] = None
    method: Optional[str] = None


def _parse_links(links: Any) -> List[Link]:
    if not isinstance(links, list):
        return []
    parsed = []
    for item in links:
        try:
            parsed.append(Link.model_validate(item))
        except ValidationError:
            continue
    return parsed


class OrderResponse(BaseModel):
    order_id: str = Field(alias="id")
    status: Optional[str] = None
    links: List[Link] = []
    raw: Dict[str, Any] = {}

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "OrderResponse":
        """Build from a create-order response.

        Malformed links are skipped so the order id always reaches the
        caller; a missing approve link is reported by approval_url().
        """
        return cls(
            id=payload["id"],
            status=payload.get("status"),
            links=_parse_links(payload.get("links")),
            raw=payload,
        )

    def approval_url(self) -> Optional[str]:
        """First link with rel == "approve"; link order is not guaranteed,
        so the first occurrence wins."""
        for link in self.links:
            if link.rel == APPROVE_REL and link.href:
                return link.href
        return None


class CaptureStatus(str, enum.Enum):
    COMPLETED = "COMPLETED"
    APPROVED = "APPROVED"


class CaptureResult(BaseModel):
    order_id: str
    status: str  # COMPLETED|APPROVED|any other processor status
    raw: Dict[str, Any] = {}
    already_captured: bool = False

    @property
    def is_completed(self) -> bool:
        return self.status == CaptureStatus.COMPLETED.value


class ConnectorBase(ABC):
    """
    Minimal connector interface for an order-based processor. Implementations
    only talk to the processor; persistence belongs to the service layer.
    """

    @abstractmethod
    async def create_order(self, request: OrderRequest, credentials: Credentials) -> OrderResponse:
        """
        Create a remote order with intent CAPTURE.
        """
        raise NotImplementedError

    @abstractmethod
    async def capture_order(self, order_id: str, credentials: Credentials) -> CaptureResult:
        raise NotImplementedError

    async def health_check(self, credentials: Credentials) -> Dict[str, Any]:
        return {"ok": True}
