"""Unit tests for the commit guard."""

import asyncio
import gc
from datetime import date
from unittest.mock import AsyncMock

import pytest

from unified_billing.services.billing_types import UnitRef
from unified_billing.services.commit_service import CommitGuard, CommitState, compare_previews
from unified_billing.services.errors import PreviewStaleError, ValidationError

AS_OF = date(2026, 3, 1)


class TestVerifyAndCommit:
    """Test the verify-then-persist flow."""

    @pytest.fixture
    def setup(self, bill, make_distribution):
        service, dues_source, utility_source, credit_source = make_distribution(
            dues=[
                bill("dues", "2026-01", date(2026, 2, 1), 4500, penalty=500),
                bill("dues", "2026-02", date(2026, 3, 1), 5000),
            ],
            utility=[bill("utility", "2026-01", date(2026, 2, 10), 900)],
        )
        return CommitGuard(service), service, dues_source, credit_source

    @pytest.mark.asyncio
    async def test_matching_preview_is_persisted(self, unit, setup):
        guard, service, *_ = setup
        proposed = await service.preview(unit, 6000, AS_OF)
        persist = AsyncMock(return_value=42)

        result = await guard.verify_and_commit(unit, proposed, persist)

        assert result.transaction_id == 42
        assert result.success
        assert result.states == (
            CommitState.RECEIVED,
            CommitState.RE_PREVIEWED,
            CommitState.MATCHED,
            CommitState.PERSISTED,
        )
        persist.assert_awaited_once()
        assert persist.await_args.args[0].to_dict() == proposed.to_dict()

    @pytest.mark.asyncio
    async def test_new_bill_makes_preview_stale(self, unit, bill, setup):
        """A bill added after the preview changes the distribution."""
        guard, service, dues_source, _ = setup
        proposed = await service.preview(unit, 6000, AS_OF)
        dues_source.bills.append(bill("dues", "2025-12", date(2026, 1, 1), 5000))
        persist = AsyncMock(return_value=1)

        with pytest.raises(PreviewStaleError) as exc_info:
            await guard.verify_and_commit(unit, proposed, persist)

        assert exc_info.value.http_status == 409
        persist.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_credit_change_makes_preview_stale(self, unit, setup):
        guard, service, _, credit_source = setup
        proposed = await service.preview(unit, 6000, AS_OF)
        credit_source.balance = 500
        persist = AsyncMock(return_value=1)

        with pytest.raises(PreviewStaleError, match="credit balance changed"):
            await guard.verify_and_commit(unit, proposed, persist)

        persist.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_same_total_different_bill_is_stale(self, unit, bill, make_distribution):
        """Money moving to another bill is detected even when the total is unchanged."""
        service, dues_source, _, _ = make_distribution(
            dues=[bill("dues", "2026-02", date(2026, 3, 1), 1000)],
        )
        proposed = await service.preview(unit, 1000, AS_OF)
        dues_source.bills.insert(0, bill("dues", "2026-01", date(2026, 2, 1), 1000))
        persist = AsyncMock(return_value=1)

        with pytest.raises(PreviewStaleError, match="allocation changed") as exc_info:
            await CommitGuard(service).verify_and_commit(unit, proposed, persist)

        assert exc_info.value.proposed_total == exc_info.value.fresh_total == 1000
        persist.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_preview_for_other_unit_rejected(self, setup):
        guard, service, *_ = setup
        proposed = await service.preview(UnitRef("AVII", "101"), 6000, AS_OF)

        with pytest.raises(ValidationError):
            await guard.verify_and_commit(UnitRef("AVII", "102"), proposed, AsyncMock())

    @pytest.mark.asyncio
    async def test_preview_all_cannot_be_committed(self, unit, setup):
        guard, service, *_ = setup
        proposed = await service.preview(unit, None, AS_OF)

        with pytest.raises(ValidationError, match="cannot be committed"):
            await guard.verify_and_commit(unit, proposed, AsyncMock())

    @pytest.mark.asyncio
    async def test_concurrent_commits_for_one_unit_serialised(self, unit, bill, make_distribution):
        """The second commit re-previews after the first one has persisted."""
        service, dues_source, _, _ = make_distribution(
            dues=[bill("dues", "2026-01", date(2026, 2, 1), 5000)],
        )
        guard = CommitGuard(service)
        proposed = await service.preview(unit, 5000, AS_OF)

        async def persist(fresh):
            await asyncio.sleep(0.01)
            dues_source.bills = []
            return 7

        results = await asyncio.gather(
            guard.verify_and_commit(unit, proposed, persist),
            guard.verify_and_commit(unit, proposed, persist),
            return_exceptions=True,
        )

        assert sum(1 for r in results if isinstance(r, PreviewStaleError)) == 1
        assert [r.transaction_id for r in results if not isinstance(r, Exception)] == [7]

    @pytest.mark.asyncio
    async def test_unit_lock_released_after_commit(self, unit, setup):
        guard, service, *_ = setup
        proposed = await service.preview(unit, 6000, AS_OF)
        held = []

        async def persist(fresh):
            held.append(len(guard._unit_locks))
            return 3

        await guard.verify_and_commit(unit, proposed, persist)
        gc.collect()

        assert held == [1]
        assert len(guard._unit_locks) == 0


class TestComparePreviews:
    """Test compare_previews."""

    @pytest.mark.asyncio
    async def test_identical_previews_match(self, unit, bill, make_distribution):
        service, *_ = make_distribution(dues=[bill("dues", "2026-01", date(2026, 2, 1), 5000)])
        preview = await service.preview(unit, 3000, AS_OF)

        assert compare_previews(preview, preview, 1) == []

    @pytest.mark.asyncio
    async def test_drift_within_tolerance_ignored(self, unit, bill, make_distribution):
        service, dues_source, _, _ = make_distribution(
            dues=[bill("dues", "2026-01", date(2026, 2, 1), 5000, penalty=100)],
        )
        proposed = await service.preview(unit, None, AS_OF)
        dues_source.bills = [bill("dues", "2026-01", date(2026, 2, 1), 5000, penalty=101)]
        fresh = await service.preview(unit, None, AS_OF)

        assert compare_previews(proposed, fresh, 1) == []
        assert len(compare_previews(proposed, fresh, 0)) == 2
