"""Contract for the host application's payment records.

The checkout core reads totals, currency and URLs from a payment record and
writes the order linkage and completion data back through it. Storage and
lifecycle belong to the host; ``paypal_checkout.database`` ships one
SQLAlchemy-backed implementation.
"""

from decimal import Decimal
from typing import Any, Dict, Optional, Protocol, runtime_checkable


@runtime_checkable
class PaymentRecord(Protocol):
    """A single local payment the processor order is linked to."""

    @property
    def reference_id(self) -> str: ...

    @property
    def currency(self) -> str: ...

    @property
    def transaction_id(self) -> Optional[str]: ...

    @property
    def data(self) -> Optional[Dict[str, Any]]: ...

    def total(self) -> Decimal: ...

    def cancel_url(self) -> str: ...

    def return_url(self) -> str: ...

    def success_url(self) -> str: ...

    def is_paid(self) -> bool: ...

    async def attach_order(self, order_id: str, data: Dict[str, Any]) -> None:
        """Persist transaction_id and the raw create-order response."""
        ...

    async def mark_completed(self, transaction_id: str, data: Dict[str, Any]) -> None:
        """The host's "payment completed" operation."""
        ...


@runtime_checkable
class PaymentRecordStore(Protocol):
    """Lookup side of the host's payment storage."""

    async def get(self, payment_id: str) -> Optional[PaymentRecord]: ...

    async def find_by_transaction_id(self, transaction_id: str) -> Optional[PaymentRecord]: ...
