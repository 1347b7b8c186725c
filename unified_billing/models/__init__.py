"""SQLAlchemy base model with common fields and model exports."""

from datetime import datetime, timezone

from sqlalchemy import DateTime
from sqlalchemy.orm import Mapped, declarative_base, mapped_column

# Base class for all models
Base = declarative_base()


class BaseModel:
    """Base model with common timestamp fields."""

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )


# Import models to register them with Base (after Base is defined)
# This must be after Base declaration to avoid circular imports
from unified_billing.models.audit_log import AuditLog  # noqa: E402
from unified_billing.models.billing_config import BillingConfig  # noqa: E402
from unified_billing.models.client import Client  # noqa: E402
from unified_billing.models.credit_ledger import CreditLedgerEntry  # noqa: E402
from unified_billing.models.dues_bill import DuesBill  # noqa: E402
from unified_billing.models.payment import PaymentAllocation, PaymentTransaction  # noqa: E402
from unified_billing.models.unit import Unit  # noqa: E402
from unified_billing.models.utility_bill import UtilityBill  # noqa: E402

__all__ = [
    "Base",
    "BaseModel",
    "AuditLog",
    "BillingConfig",
    "Client",
    "CreditLedgerEntry",
    "DuesBill",
    "PaymentAllocation",
    "PaymentTransaction",
    "Unit",
    "UtilityBill",
]
