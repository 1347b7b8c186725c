"""Commit guard: re-validates a preview before persisting it.

State machine:
    RECEIVED -> RE_PREVIEWED -> MATCHED -> PERSISTED
                             -> MISMATCHED -> REJECTED

The preview shown to the user is never trusted. At commit time the
distribution is recomputed from fresh bills and compared with what the user
saw; only a matching preview is handed to the persistence function. Commits
for the same unit are serialised inside this process.
"""

import asyncio
import logging
import weakref
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable

from unified_billing.services.billing_types import ModuleType, UnifiedPreview, UnitRef
from unified_billing.services.distribution_service import PaymentDistributionService
from unified_billing.services.errors import PreviewStaleError, ValidationError

logger = logging.getLogger(__name__)

PersistFn = Callable[[UnifiedPreview], Awaitable[int]]


class CommitState(str, Enum):
    """Commit lifecycle states."""

    RECEIVED = "received"
    RE_PREVIEWED = "re_previewed"
    MATCHED = "matched"
    MISMATCHED = "mismatched"
    PERSISTED = "persisted"
    REJECTED = "rejected"


@dataclass(frozen=True)
class CommitResult:
    """Outcome of a successful commit."""

    transaction_id: int
    preview: UnifiedPreview
    states: tuple[CommitState, ...]

    @property
    def success(self) -> bool:
        return bool(self.states) and self.states[-1] is CommitState.PERSISTED

    def to_dict(self) -> dict[str, Any]:
        return {
            "transaction_id": self.transaction_id,
            "states": [s.value for s in self.states],
            "preview": self.preview.to_dict(),
        }


def _paid_lines(preview: UnifiedPreview) -> dict[tuple[ModuleType, str], int]:
    return {
        (module, bill.period): bill.total_paid
        for module in ModuleType
        for bill in preview.module(module).bills_paid
    }


def compare_previews(proposed: UnifiedPreview, fresh: UnifiedPreview, tolerance: int) -> list[str]:
    """Differences between the proposed and the freshly computed preview.

    Returns:
        Human-readable reasons; empty when the previews match
    """
    reasons = []

    if abs(proposed.total_allocated - fresh.total_allocated) > tolerance:
        reasons.append(
            f"total allocated changed from {proposed.total_allocated} to {fresh.total_allocated}"
        )

    if proposed.current_credit_balance != fresh.current_credit_balance:
        reasons.append(
            f"credit balance changed from {proposed.current_credit_balance} "
            f"to {fresh.current_credit_balance}"
        )

    proposed_lines = _paid_lines(proposed)
    fresh_lines = _paid_lines(fresh)
    for module, period in sorted(proposed_lines.keys() | fresh_lines.keys()):
        before = proposed_lines.get((module, period), 0)
        after = fresh_lines.get((module, period), 0)
        if abs(before - after) > tolerance:
            reasons.append(f"{module.value} bill {period} allocation changed from {before} to {after}")

    return reasons


class CommitGuard:
    """Verifies a proposed preview against a fresh one, then persists it."""

    def __init__(self, distribution: PaymentDistributionService, tolerance_cents: int = 1):
        self.distribution = distribution
        self.tolerance_cents = tolerance_cents
        # Entries vanish once no commit holds or awaits the lock
        self._unit_locks: weakref.WeakValueDictionary[UnitRef, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    def _lock_for(self, unit: UnitRef) -> asyncio.Lock:
        lock = self._unit_locks.get(unit)
        if lock is None:
            lock = self._unit_locks[unit] = asyncio.Lock()
        return lock

    async def verify_and_commit(
        self,
        unit: UnitRef,
        proposed: UnifiedPreview,
        persist_fn: PersistFn,
    ) -> CommitResult:
        """Re-run the preview and persist only if it still matches.

        Args:
            unit: Unit the payment is for
            proposed: Preview previously shown to the user
            persist_fn: Writes the fresh preview atomically, returns the transaction id

        Raises:
            ValidationError: If the preview belongs to another unit or is a statement preview
            PreviewStaleError: If bills or credit changed since the preview
        """
        states = [CommitState.RECEIVED]

        if proposed.unit != unit:
            raise ValidationError(
                f"Preview is for unit {proposed.unit}, not {unit}", field="preview"
            )
        if proposed.preview_all:
            raise ValidationError(
                "A preview of all owed bills cannot be committed; preview a real amount",
                field="preview",
            )

        async with self._lock_for(unit):
            fresh = await self.distribution.preview(
                unit, proposed.payment_amount, proposed.as_of_date
            )
            states.append(CommitState.RE_PREVIEWED)

            reasons = compare_previews(proposed, fresh, self.tolerance_cents)
            if reasons:
                states.extend([CommitState.MISMATCHED, CommitState.REJECTED])
                logger.warning(
                    "Commit rejected for %s, bills changed since preview: %s",
                    unit,
                    "; ".join(reasons),
                )
                raise PreviewStaleError(
                    "Bills have changed since preview. Please refresh and try again. ("
                    + "; ".join(reasons)
                    + ")",
                    proposed_total=proposed.total_allocated,
                    fresh_total=fresh.total_allocated,
                )

            states.append(CommitState.MATCHED)
            transaction_id = await persist_fn(fresh)
            states.append(CommitState.PERSISTED)

        logger.info(
            "Committed payment for %s: transaction %d, allocated %d, credit final %d",
            unit,
            transaction_id,
            fresh.total_allocated,
            fresh.credit.final,
        )
        return CommitResult(transaction_id=transaction_id, preview=fresh, states=tuple(states))


__all__ = ["CommitGuard", "CommitResult", "CommitState", "PersistFn", "compare_previews"]
