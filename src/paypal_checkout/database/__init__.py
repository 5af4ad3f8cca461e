"""Reference SQLAlchemy store for checkout payment records."""

from .models import (
    Payment,
    TransactionHistory,
    Base,
    PaymentStatus,
    TransactionAction,
)
from .session import (
    get_db,
    get_database_url,
    init_db,
    close_db,
    create_async_engine,
    create_tables,
    get_async_session_factory,
    get_db_context,
)
from .repository import (
    PaymentRepository,
    SqlPaymentRecord,
    SqlPaymentRecordStore,
)

__all__ = [
    # Models
    "Payment",
    "TransactionHistory",
    "Base",
    "PaymentStatus",
    "TransactionAction",
    # Session management
    "get_db",
    "get_database_url",
    "init_db",
    "close_db",
    "create_async_engine",
    "create_tables",
    "get_async_session_factory",
    "get_db_context",
    # Repositories
    "PaymentRepository",
    "SqlPaymentRecord",
    "SqlPaymentRecordStore",
]
