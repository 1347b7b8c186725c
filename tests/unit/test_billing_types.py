"""Unit tests for distribution value types."""

from datetime import date

import pytest

from unified_billing.services.billing_types import (
    AllocationResult,
    Bill,
    BillStatus,
    FundsEnvelope,
    ModuleType,
    UnifiedPreview,
    namespace_period,
    split_namespaced_period,
)
from unified_billing.services.errors import InvariantViolation, ValidationError


class TestBill:
    """Test Bill validation."""

    def test_float_amount_rejected(self):
        with pytest.raises(InvariantViolation, match="integer"):
            Bill(ModuleType.DUES, "2026-01", date(2026, 2, 1), 50.0)

    def test_negative_penalty_rejected(self):
        with pytest.raises(InvariantViolation, match="non-negative"):
            Bill(ModuleType.DUES, "2026-01", date(2026, 2, 1), 5000, penalty_amount_due=-1)

    def test_total_and_key(self, bill):
        b = bill("utility", "2026-01", date(2026, 2, 1), 900, penalty=90)
        assert b.total_due == 990
        assert b.key == "utility:2026-01"


class TestNamespacing:
    """Test period namespacing."""

    def test_split_inverts_namespace(self):
        assert split_namespaced_period(namespace_period(ModuleType.DUES, "2026-03")) == (
            ModuleType.DUES,
            "2026-03",
        )

    @pytest.mark.parametrize("key", ["2026-03", "electricity:2026-03"])
    def test_bad_keys(self, key):
        with pytest.raises(InvariantViolation):
            split_namespaced_period(key)


class TestValueInvariants:
    """Test FundsEnvelope and AllocationResult checks."""

    def test_funds_reject_negative_credit(self):
        with pytest.raises(ValidationError):
            FundsEnvelope(1000, -1)

    def test_allocation_parts_must_add_up(self):
        with pytest.raises(InvariantViolation):
            AllocationResult("dues:2026-01", 100, 60, 30, BillStatus.PARTIAL)


class TestUnifiedPreviewSerialization:
    """Test preview dict form used by the API."""

    @pytest.mark.asyncio
    async def test_from_dict_restores_preview(self, unit, bill, make_distribution):
        service, *_ = make_distribution(
            dues=[bill("dues", "2026-01", date(2026, 2, 1), 5000, penalty=250)],
            utility=[bill("utility", "2026-01", date(2026, 2, 1), 900)],
            credit=100,
        )
        preview = await service.preview(unit, 4000, date(2026, 3, 1))

        data = preview.to_dict()

        assert data["summary"] == {"total_bills": 2, "total_allocated": 4100, "allocation_count": 1}
        assert data["new_credit_balance"] == 0
        assert UnifiedPreview.from_dict(data) == preview

    def test_malformed_preview(self):
        with pytest.raises(ValidationError, match="Malformed preview"):
            UnifiedPreview.from_dict({"client_id": "AVII"})

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "path, value",
        [
            (("payment_amount",), float("inf")),
            (("payment_amount",), 3000.9),
            (("current_credit_balance",), True),
            (("credit", "final"), "0"),
            (("summary", "total_bills"), 2.0),
        ],
    )
    async def test_non_integer_money_rejected(self, unit, bill, make_distribution, path, value):
        service, *_ = make_distribution(
            dues=[bill("dues", "2026-01", date(2026, 2, 1), 5000)],
            credit=0,
        )
        data = (await service.preview(unit, 3000, date(2026, 3, 1))).to_dict()
        target = data
        for key in path[:-1]:
            target = target[key]
        target[path[-1]] = value

        with pytest.raises(ValidationError, match="must be an integer") as exc_info:
            UnifiedPreview.from_dict(data)

        assert exc_info.value.field == "preview"

    @pytest.mark.asyncio
    async def test_fractional_bill_amount_rejected(self, unit, bill, make_distribution):
        service, *_ = make_distribution(
            dues=[bill("dues", "2026-01", date(2026, 2, 1), 5000)],
            credit=0,
        )
        data = (await service.preview(unit, 3000, date(2026, 3, 1))).to_dict()
        data["dues"]["bills_paid"][0]["base_paid"] = 3000.5

        with pytest.raises(ValidationError, match="base_paid must be an integer"):
            UnifiedPreview.from_dict(data)
