"""Entry point for previewing and committing unified payments."""

import logging
from datetime import date
from functools import lru_cache

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from unified_billing.services import AsyncSessionLocal
from unified_billing.services.billing_types import ModuleType, UnifiedPreview, UnitRef
from unified_billing.services.commit_service import CommitGuard, CommitResult
from unified_billing.services.config import Settings, get_settings
from unified_billing.services.credit_service import CreditService
from unified_billing.services.distribution_service import PaymentDistributionService
from unified_billing.services.dues_service import DuesService
from unified_billing.services.payment_recorder import PaymentMetadata, PaymentRecorder
from unified_billing.services.unit_service import UnitService
from unified_billing.services.utility_service import UtilityService

logger = logging.getLogger(__name__)


class UnifiedPaymentService:
    """Preview and commit of payments spanning HOA dues and water bills."""

    def __init__(
        self,
        distribution: PaymentDistributionService,
        guard: CommitGuard,
        recorder: PaymentRecorder,
    ):
        self.distribution = distribution
        self.guard = guard
        self.recorder = recorder

    async def preview(self, unit: UnitRef, amount: int | None, as_of_date: date) -> UnifiedPreview:
        return await self.distribution.preview(unit, amount, as_of_date)

    async def commit(
        self,
        unit: UnitRef,
        proposed: UnifiedPreview,
        metadata: PaymentMetadata,
    ) -> CommitResult:
        """
        Commit a previewed payment.

        Raises:
            ValidationError: If the preview cannot be committed
            NotFoundError: If the unit does not exist
            PreviewStaleError: If bills or credit changed since the preview
        """
        logger.debug("Commit requested for %s by %s", unit, metadata.recorded_by or "system")
        return await self.guard.verify_and_commit(unit, proposed, self.recorder.persist_fn(metadata))


def build_payment_service(
    session_factory: async_sessionmaker[AsyncSession],
    settings: Settings | None = None,
) -> UnifiedPaymentService:
    """Wire the database-backed collaborators together."""
    settings = settings or get_settings()

    dues = DuesService(session_factory)
    utility = UtilityService(session_factory)
    distribution = PaymentDistributionService(
        sources=[dues, utility],
        directory=UnitService(session_factory),
        credit_source=CreditService(session_factory),
        fetch_timeout=settings.bill_fetch_timeout_seconds,
        preview_all_amount=settings.preview_all_amount_cents,
    )
    guard = CommitGuard(distribution, tolerance_cents=settings.preview_tolerance_cents)
    recorder = PaymentRecorder(
        session_factory,
        {ModuleType.DUES: dues, ModuleType.UTILITY: utility},
    )
    return UnifiedPaymentService(distribution, guard, recorder)


@lru_cache
def get_payment_service() -> UnifiedPaymentService:
    """Process-wide service bound to the application database."""
    return build_payment_service(AsyncSessionLocal)


__all__ = ["UnifiedPaymentService", "build_payment_service", "get_payment_service"]
