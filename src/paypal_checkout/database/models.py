"""SQLAlchemy models for the reference payment record store."""

import uuid
import json
from datetime import datetime
from decimal import Decimal
from typing import Optional, Dict, Any, List

from sqlalchemy import (
    String,
    DateTime,
    ForeignKey,
    Text,
    Index,
)
from sqlalchemy.orm import DeclarativeBase, relationship, Mapped, mapped_column
import enum


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


class PaymentStatus(str, enum.Enum):
    """Local payment lifecycle."""
    PENDING = "pending"
    CREATED = "created"  # remote order exists, payer not yet returned
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class TransactionAction(str, enum.Enum):
    """Checkout steps tracked in history."""
    ORDER_CREATED = "order_created"
    CAPTURE_COMPLETED = "capture_completed"
    CAPTURE_NOT_COMPLETED = "capture_not_completed"
    CANCELLED = "cancelled"


def _dumps(value: Optional[Dict[str, Any]]) -> Optional[str]:
    return json.dumps(value) if value is not None else None


def _loads(value: Optional[str]) -> Optional[Dict[str, Any]]:
    return json.loads(value) if value else None


class Payment(Base):
    """A local payment linked to at most one PayPal order."""
    __tablename__ = "payments"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    status: Mapped[str] = mapped_column(String(50), nullable=False, default=PaymentStatus.PENDING.value)
    # Decimal string, e.g. "10.00"
    amount: Mapped[str] = mapped_column(String(32), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    gateway: Mapped[str] = mapped_column(String(50), nullable=False, default="paypal")
    transaction_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, index=True)

    # Latest processor payload: the create-order response, then the capture response
    data_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    transaction_history: Mapped[List["TransactionHistory"]] = relationship(
        "TransactionHistory",
        back_populates="payment",
        cascade="all, delete-orphan",
        order_by="TransactionHistory.created_at",
    )

    __table_args__ = (
        Index("ix_payments_status", "status"),
        Index("ix_payments_created_at", "created_at"),
    )

    @property
    def data(self) -> Optional[Dict[str, Any]]:
        return _loads(self.data_json)

    @data.setter
    def data(self, value: Optional[Dict[str, Any]]) -> None:
        self.data_json = _dumps(value)

    @property
    def total(self) -> Decimal:
        return Decimal(self.amount)

    @property
    def is_paid(self) -> bool:
        return self.status == PaymentStatus.COMPLETED.value

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "status": self.status,
            "amount": self.amount,
            "currency": self.currency,
            "gateway": self.gateway,
            "transaction_id": self.transaction_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }


class TransactionHistory(Base):
    """One row per checkout step applied to a payment."""
    __tablename__ = "transaction_history"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    payment_id: Mapped[str] = mapped_column(String(36), ForeignKey("payments.id"), nullable=False, index=True)
    action: Mapped[str] = mapped_column(String(50), nullable=False)
    previous_status: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    new_status: Mapped[str] = mapped_column(String(50), nullable=False)
    # Processor order status (COMPLETED, APPROVED, ...)
    remote_status: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    payment: Mapped["Payment"] = relationship("Payment", back_populates="transaction_history")

    __table_args__ = (
        Index("ix_transaction_history_action", "action"),
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "payment_id": self.payment_id,
            "action": self.action,
            "previous_status": self.previous_status,
            "new_status": self.new_status,
            "remote_status": self.remote_status,
            "error_message": self.error_message,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
