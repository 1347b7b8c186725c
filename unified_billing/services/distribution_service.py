"""Unified payment distribution across HOA dues and water utility bills.

Pipeline for one unit:
1. Fetch unpaid bills from every billing module concurrently
2. Classify by business priority and drop bills that may not be paid
3. Sort by (priority, due date) and namespace periods by module
4. Allocate funds (payment + credit) tier by tier; leftover feeds the next tier
5. Whatever is left after the last tier becomes the unit's credit balance
6. Split the unified result back by module

Everything except step 1 is pure integer arithmetic on value objects. The
service holds its collaborators but no state between calls.
"""

import asyncio
import logging
from datetime import date
from typing import Iterable, Mapping, Sequence

from unified_billing.services.allocation_service import allocate_tier
from unified_billing.services.billing_types import (
    Bill,
    DistributionResult,
    FundsEnvelope,
    UnifiedPreview,
    UnitRef,
)
from unified_billing.services.errors import (
    InvariantViolation,
    NotFoundError,
    PartialSourceFailure,
)
from unified_billing.services.module_splitter import split_by_module
from unified_billing.services.priority_service import prioritize_bills
from unified_billing.services.sources import BillSource, CreditSource, UnitDirectory

logger = logging.getLogger(__name__)

DEFAULT_FETCH_TIMEOUT_SECONDS = 10.0
DEFAULT_PREVIEW_ALL_AMOUNT = 99_999_999_900


def namespace_bills(bills: Iterable[Bill]) -> dict[str, Bill]:
    """Key bills by ``module:period``, preserving order.

    Raises:
        InvariantViolation: If two bills share a namespaced period
    """
    by_key: dict[str, Bill] = {}
    for bill in bills:
        if bill.key in by_key:
            raise InvariantViolation(f"Duplicate bill period {bill.key} in one distribution")
        by_key[bill.key] = bill
    return by_key


def check_conservation(result: DistributionResult, bills_by_key: Mapping[str, Bill]) -> None:
    """Verify no money was created or destroyed.

    Raises:
        InvariantViolation: On any imbalance or over-payment
    """
    if result.final_credit < 0:
        raise InvariantViolation(f"Final credit is negative: {result.final_credit}")

    if result.total_allocated + result.final_credit != result.funds.total:
        raise InvariantViolation(
            f"Conservation failed: allocated {result.total_allocated} + credit "
            f"{result.final_credit} != available {result.funds.total}"
        )

    for allocation in result.allocations:
        bill = bills_by_key.get(allocation.period)
        if bill is None:
            raise InvariantViolation(f"Allocation for unknown bill {allocation.period}")
        if allocation.base_paid > bill.base_amount_due or allocation.penalty_paid > bill.penalty_amount_due:
            raise InvariantViolation(f"Bill {allocation.period} was paid more than it owes")


def distribute_bills(
    bills: Iterable[Bill],
    funds: FundsEnvelope,
    as_of_date: date,
    fiscal_year_start_month: int,
) -> tuple[DistributionResult, dict[str, Bill]]:
    """Allocate funds across already-fetched bills.

    Payment and credit form one pool: once money has passed through a tier it
    is fungible, and only the net change of the credit balance is reported.

    Returns:
        (distribution result, payable bills keyed by namespaced period)
    """
    ordered = prioritize_bills(bills, as_of_date, fiscal_year_start_month)
    bills_by_key = namespace_bills(ordered)

    remaining = funds.total
    allocations = []

    for rank in sorted({b.priority_rank for b in ordered}):
        if remaining <= 0:
            break

        tier = [b for b in ordered if b.priority_rank == rank]
        logger.debug("Priority %d: %d bill(s), %d available", rank, len(tier), remaining)

        tier_allocation = allocate_tier(tier, remaining)
        allocations.extend(r for r in tier_allocation.results if r.amount_paid > 0)
        remaining = tier_allocation.leftover

    result = DistributionResult(
        funds=funds,
        allocations=tuple(allocations),
        final_credit=remaining,
        total_bills=len(ordered),
    )
    check_conservation(result, bills_by_key)
    return result, bills_by_key


async def _fetch_module_bills(
    source: BillSource,
    unit: UnitRef,
    as_of_date: date,
    timeout: float,
) -> tuple[list[Bill], PartialSourceFailure | None]:
    module = source.module_type
    try:
        bills = await asyncio.wait_for(source.fetch_unpaid_bills(unit, as_of_date), timeout)
    except InvariantViolation:
        raise
    except Exception as e:
        # One module failing must not block payment of the other module's bills
        failure = PartialSourceFailure(module.value, e)
        logger.warning("%s for unit %s; continuing without it", failure.message, unit)
        return [], failure

    if not bills:
        logger.info("No unpaid %s bills for unit %s", module.value, unit)
        return [], None

    for bill in bills:
        if bill.module_type != module:
            raise InvariantViolation(
                f"Source '{module.value}' returned a {bill.module_type.value} bill ({bill.period})"
            )

    logger.info("Loaded %d %s bill(s) for unit %s", len(bills), module.value, unit)
    return list(bills), None


async def gather_bills(
    sources: Sequence[BillSource],
    unit: UnitRef,
    as_of_date: date,
    timeout: float = DEFAULT_FETCH_TIMEOUT_SECONDS,
) -> tuple[list[Bill], tuple[str, ...]]:
    """Fetch bills from every module concurrently.

    Returns:
        (all bills, names of modules whose fetch failed)
    """
    tasks = [
        asyncio.create_task(_fetch_module_bills(source, unit, as_of_date, timeout))
        for source in sources
    ]
    try:
        fetched = await asyncio.gather(*tasks)
    except BaseException:
        # A fatal source error aborts the preview; stop the sibling fetches too
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise

    bills: list[Bill] = []
    degraded = []
    for module_bills, failure in fetched:
        bills.extend(module_bills)
        if failure is not None:
            degraded.append(failure.module)
    return bills, tuple(degraded)


class PaymentDistributionService:
    """Previews how a payment would be distributed across all billing modules."""

    def __init__(
        self,
        sources: Sequence[BillSource],
        directory: UnitDirectory,
        credit_source: CreditSource,
        *,
        fetch_timeout: float = DEFAULT_FETCH_TIMEOUT_SECONDS,
        preview_all_amount: int = DEFAULT_PREVIEW_ALL_AMOUNT,
    ):
        """Initialize with explicit collaborators.

        Args:
            sources: One bill source per billing module
            directory: Unit/client lookup
            credit_source: Credit balance lookup
            fetch_timeout: Seconds allowed for each module's bill fetch
            preview_all_amount: Payment substituted when amount is None
        """
        modules = [s.module_type for s in sources]
        if len(set(modules)) != len(modules):
            raise ValueError(f"Duplicate bill sources: {modules}")
        self.sources = tuple(sources)
        self.directory = directory
        self.credit_source = credit_source
        self.fetch_timeout = fetch_timeout
        self.preview_all_amount = preview_all_amount

    async def _require_unit(self, unit: UnitRef) -> None:
        if not await self.directory.unit_exists(unit):
            raise NotFoundError(f"Unit {unit.unit_id} not found for client {unit.client_id}")

    async def preview(self, unit: UnitRef, amount: int | None, as_of_date: date) -> UnifiedPreview:
        """Preview a payment for a unit using its current credit balance.

        Args:
            unit: Client and unit
            amount: Payment in minor units; None previews every owed bill
                (statement mode) by substituting a very large payment
            as_of_date: Payment date, used for penalties and priorities

        Raises:
            NotFoundError: If the client or unit does not exist
        """
        await self._require_unit(unit)

        preview_all = amount is None
        incoming = self.preview_all_amount if preview_all else amount
        credit = await self.credit_source.fetch_credit_balance(unit)

        logger.info(
            "Preview payment for %s: amount=%s credit=%d as_of=%s%s",
            unit,
            incoming,
            credit,
            as_of_date.isoformat(),
            " (preview all)" if preview_all else "",
        )
        return await self._distribute(
            unit,
            FundsEnvelope(incoming_payment=incoming, existing_credit=credit),
            as_of_date,
            preview_all=preview_all,
        )

    async def distribute(
        self,
        unit: UnitRef,
        funds: FundsEnvelope,
        as_of_date: date,
        *,
        preview_all: bool = False,
    ) -> UnifiedPreview:
        """Distribute an explicit funds envelope for a unit.

        Raises:
            NotFoundError: If the client or unit does not exist
        """
        await self._require_unit(unit)
        return await self._distribute(unit, funds, as_of_date, preview_all=preview_all)

    async def _distribute(
        self,
        unit: UnitRef,
        funds: FundsEnvelope,
        as_of_date: date,
        *,
        preview_all: bool,
    ) -> UnifiedPreview:
        fiscal_year_start_month = await self.directory.fetch_fiscal_year_start_month(unit.client_id)
        bills, degraded = await gather_bills(self.sources, unit, as_of_date, self.fetch_timeout)

        result, bills_by_key = distribute_bills(bills, funds, as_of_date, fiscal_year_start_month)
        split = split_by_module(result, bills_by_key)

        preview = UnifiedPreview(
            unit=unit,
            as_of_date=as_of_date,
            payment_amount=funds.incoming_payment,
            current_credit_balance=funds.existing_credit,
            dues=split.dues,
            utility=split.utility,
            credit=split.credit,
            total_bills=result.total_bills,
            preview_all=preview_all,
            degraded_modules=degraded,
        )

        logger.info(
            "Preview complete for %s: dues %d bill(s) %d, utility %d bill(s) %d, "
            "credit used %d added %d final %d",
            unit,
            len(preview.dues.bills_paid),
            preview.dues.total_paid,
            len(preview.utility.bills_paid),
            preview.utility.total_paid,
            preview.credit.used,
            preview.credit.added,
            preview.credit.final,
        )
        return preview


__all__ = [
    "PaymentDistributionService",
    "check_conservation",
    "distribute_bills",
    "gather_bills",
    "namespace_bills",
]
