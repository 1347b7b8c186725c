"""Unit tests for penalty calculation."""

from datetime import date
from decimal import Decimal

import pytest

from unified_billing.services.penalty_service import (
    calculate_penalty,
    compound_penalty,
    months_overdue,
)

DUE = date(2026, 1, 1)


class TestMonthsOverdue:
    """Test penalty month counting with a 10 day grace period."""

    @pytest.mark.parametrize(
        "as_of, expected",
        [
            (date(2025, 12, 31), 0),
            (date(2026, 1, 11), 0),  # last day of grace
            (date(2026, 1, 12), 1),  # any day past grace is a full month
            (date(2026, 2, 10), 1),  # 30 days past grace
            (date(2026, 2, 11), 2),
        ],
    )
    def test_months_overdue(self, as_of, expected):
        assert months_overdue(DUE, as_of, 10) == expected


class TestCompoundPenalty:
    """Test compounding and rounding."""

    def test_three_months_at_ten_percent(self):
        # 10000 + 11000 + 12100
        assert compound_penalty(100000, 3, Decimal("0.10")) == 33100

    def test_rounds_half_up(self):
        # 1010 x 5% = 50.5
        assert compound_penalty(1010, 1, Decimal("0.05")) == 51

    def test_no_months_no_penalty(self):
        assert compound_penalty(100000, 0, Decimal("0.10")) == 0


class TestCalculatePenalty:
    """Test calculate_penalty."""

    def test_within_grace(self):
        assert calculate_penalty(5000, DUE, date(2026, 1, 5), Decimal("0.05"), 10) == 0

    def test_after_grace(self):
        assert calculate_penalty(5000, DUE, date(2026, 1, 20), Decimal("0.05"), 10) == 250

    def test_paid_base_has_no_penalty(self):
        assert calculate_penalty(0, DUE, date(2026, 6, 1), Decimal("0.05"), 10) == 0

    def test_negative_rate_rejected(self):
        with pytest.raises(ValueError, match="rate"):
            calculate_penalty(5000, DUE, date(2026, 2, 1), Decimal("-0.01"), 10)

    def test_negative_grace_rejected(self):
        with pytest.raises(ValueError, match="grace_days"):
            calculate_penalty(5000, DUE, date(2026, 2, 1), Decimal("0.05"), -1)
