"""Repository layer and PaymentRecord adapter for the reference store."""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Optional, Dict, Any, List, Union

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..connectors.base import format_amount
from .models import (
    Payment,
    TransactionHistory,
    PaymentStatus,
    TransactionAction,
)

logger = logging.getLogger(__name__)


class PaymentRepository:
    """Repository for Payment CRUD operations."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        amount: Union[Decimal, str, int],
        currency: str,
        gateway: str = "paypal",
    ) -> Payment:
        """Create a new pending payment.

        Args:
            amount: Payment total in major units.
            currency: Three-letter currency code.
            gateway: Gateway identifier.

        Returns:
            Created Payment instance.

        Raises:
            ValueError: If the amount is negative or not a number.
        """
        currency = currency.upper()
        payment = Payment(
            amount=format_amount(amount, currency),
            currency=currency,
            gateway=gateway,
            status=PaymentStatus.PENDING.value,
        )
        self.session.add(payment)
        await self.session.flush()

        logger.info(f"Created payment {payment.id} for {payment.amount} {payment.currency}")
        return payment

    async def get_by_id(self, payment_id: str) -> Optional[Payment]:
        result = await self.session.execute(
            select(Payment).where(Payment.id == payment_id)
        )
        return result.scalar_one_or_none()

    async def get_by_transaction_id(self, transaction_id: str) -> Optional[Payment]:
        """Get the payment linked to a processor order id.

        Returns:
            Payment instance if exactly one matches, None otherwise.
        """
        result = await self.session.execute(
            select(Payment).where(Payment.transaction_id == transaction_id).limit(2)
        )
        matches = list(result.scalars().all())
        if len(matches) > 1:
            logger.error(f"Multiple payments share transaction_id {transaction_id}")
            return None
        return matches[0] if matches else None

    async def _transition(
        self,
        payment: Payment,
        action: TransactionAction,
        new_status: PaymentStatus,
        remote_status: Optional[str] = None,
        error_message: Optional[str] = None,
    ) -> None:
        previous_status = payment.status
        payment.status = new_status.value
        payment.updated_at = datetime.utcnow()
        self.session.add(
            TransactionHistory(
                payment_id=payment.id,
                action=action.value,
                previous_status=previous_status,
                new_status=new_status.value,
                remote_status=remote_status,
                error_message=error_message,
            )
        )
        await self.session.flush()
        logger.info(f"Payment {payment.id}: {action.value} ({previous_status} -> {new_status.value})")

    async def attach_order(self, payment: Payment, order_id: str, data: Dict[str, Any]) -> Payment:
        payment.transaction_id = order_id
        payment.data = data
        await self._transition(
            payment, TransactionAction.ORDER_CREATED, PaymentStatus.CREATED, data.get("status")
        )
        return payment

    async def mark_completed(self, payment: Payment, transaction_id: str, data: Dict[str, Any]) -> Payment:
        payment.transaction_id = transaction_id
        payment.data = data
        payment.completed_at = datetime.utcnow()
        await self._transition(
            payment, TransactionAction.CAPTURE_COMPLETED, PaymentStatus.COMPLETED, data.get("status")
        )
        return payment

    async def record_capture_failure(self, payment: Payment, remote_status: Optional[str], error: str) -> Payment:
        """Log a capture that did not complete; the payment stays awaiting capture."""
        await self._transition(
            payment,
            TransactionAction.CAPTURE_NOT_COMPLETED,
            PaymentStatus(payment.status),
            remote_status,
            error,
        )
        return payment

    async def mark_cancelled(self, payment: Payment) -> Payment:
        await self._transition(payment, TransactionAction.CANCELLED, PaymentStatus.CANCELLED)
        return payment

    async def get_history(self, payment_id: str) -> List[TransactionHistory]:
        result = await self.session.execute(
            select(TransactionHistory)
            .where(TransactionHistory.payment_id == payment_id)
            .order_by(TransactionHistory.created_at)
        )
        return list(result.scalars().all())


class SqlPaymentRecord:
    """Adapts a Payment row to the checkout PaymentRecord contract.

    Writes are committed immediately so the order linkage is durable before
    the payer is redirected.
    """

    def __init__(self, payment: Payment, repository: PaymentRepository, public_base_url: str):
        self.payment = payment
        self.repository = repository
        self.public_base_url = public_base_url.rstrip("/")

    @property
    def reference_id(self) -> str:
        return self.payment.id

    @property
    def currency(self) -> str:
        return self.payment.currency

    @property
    def transaction_id(self) -> Optional[str]:
        return self.payment.transaction_id

    @property
    def data(self) -> Optional[Dict[str, Any]]:
        return self.payment.data

    def total(self) -> Decimal:
        return self.payment.total

    def cancel_url(self) -> str:
        return f"{self.public_base_url}/payments/{self.payment.id}/cancel"

    def return_url(self) -> str:
        return f"{self.public_base_url}/paypal/return"

    def success_url(self) -> str:
        return f"{self.public_base_url}/payments/{self.payment.id}/success"

    def is_paid(self) -> bool:
        return self.payment.is_paid

    async def attach_order(self, order_id: str, data: Dict[str, Any]) -> None:
        await self.repository.attach_order(self.payment, order_id, data)
        await self.repository.session.commit()

    async def mark_completed(self, transaction_id: str, data: Dict[str, Any]) -> None:
        await self.repository.mark_completed(self.payment, transaction_id, data)
        await self.repository.session.commit()


class SqlPaymentRecordStore:
    """PaymentRecordStore backed by PaymentRepository."""

    def __init__(self, session: AsyncSession, public_base_url: str):
        self.repository = PaymentRepository(session)
        self.public_base_url = public_base_url

    def wrap(self, payment: Payment) -> SqlPaymentRecord:
        return SqlPaymentRecord(payment, self.repository, self.public_base_url)

    async def get(self, payment_id: str) -> Optional[SqlPaymentRecord]:
        payment = await self.repository.get_by_id(payment_id)
        return self.wrap(payment) if payment else None

    async def find_by_transaction_id(self, transaction_id: str) -> Optional[SqlPaymentRecord]:
        payment = await self.repository.get_by_transaction_id(transaction_id)
        return self.wrap(payment) if payment else None
