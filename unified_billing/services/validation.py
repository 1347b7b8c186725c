"""Input validation for payment preview and record requests."""

from datetime import date
from typing import Any

from unified_billing.services.billing_types import UnitRef
from unified_billing.services.errors import ValidationError

MAX_FUTURE_YEARS = 1
MAX_PAST_YEARS = 5


def shift_years(day: date, years: int) -> date:
    """Same calendar day ``years`` later (Feb 29 falls back to Feb 28)."""
    try:
        return day.replace(year=day.year + years)
    except ValueError:
        return day.replace(year=day.year + years, day=28)


def validate_unit(client_id: Any, unit_id: Any) -> UnitRef:
    if not isinstance(client_id, str) or not client_id.strip():
        raise ValidationError("client_id is required", field="client_id")
    if not isinstance(unit_id, str) or not unit_id.strip():
        raise ValidationError("unit_id is required", field="unit_id")
    return UnitRef(client_id=client_id.strip(), unit_id=unit_id.strip())


def validate_amount(amount: Any, max_amount: int) -> int | None:
    """
    Validate a payment amount in minor units.

    None (preview every owed bill) and 0 (credit only) are both accepted.

    Raises:
        ValidationError: If amount is not an integer, negative or too large
    """
    if amount is None:
        return None
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise ValidationError("Amount must be an integer number of minor units", field="amount")
    if amount < 0:
        raise ValidationError("Amount cannot be negative", field="amount")
    if amount > max_amount:
        raise ValidationError(f"Amount cannot exceed {max_amount}", field="amount")
    return amount


def validate_payment_date(value: Any, today: date) -> date:
    """
    Parse and range-check a payment date.

    Raises:
        ValidationError: If missing, malformed, more than one year ahead or
            more than five years back
    """
    if value is None or value == "":
        raise ValidationError("payment_date is required", field="payment_date")
    if isinstance(value, date):
        payment_date = value
    else:
        try:
            payment_date = date.fromisoformat(str(value)[:10])
        except ValueError as e:
            raise ValidationError(f"Invalid payment_date: {value}", field="payment_date") from e

    if payment_date > shift_years(today, MAX_FUTURE_YEARS):
        raise ValidationError("Payment date cannot be more than 1 year in the future", field="payment_date")
    if payment_date < shift_years(today, -MAX_PAST_YEARS):
        raise ValidationError("Payment date cannot be more than 5 years in the past", field="payment_date")
    return payment_date


def validate_payment_method(value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError("payment_method is required", field="payment_method")
    return value.strip()


__all__ = [
    "shift_years",
    "validate_amount",
    "validate_payment_date",
    "validate_payment_method",
    "validate_unit",
]
