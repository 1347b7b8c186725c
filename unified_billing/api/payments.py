"""Unified payment API endpoints.

- POST /api/payments/unified/preview: how a payment would be distributed
- POST /api/payments/unified/record: re-verify a preview and record it
"""

import logging
from datetime import date
from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field

from unified_billing.services.billing_types import UnifiedPreview
from unified_billing.services.config import Settings, get_settings
from unified_billing.services.errors import ValidationError
from unified_billing.services.payment_recorder import PaymentMetadata
from unified_billing.services.unified_payment_service import (
    UnifiedPaymentService,
    get_payment_service,
)
from unified_billing.services.validation import (
    validate_amount,
    validate_payment_date,
    validate_payment_method,
    validate_unit,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/payments/unified", tags=["payments"])


class PreviewRequest(BaseModel):
    """Request payload for POST /api/payments/unified/preview."""

    client_id: str | None = Field(None, description="Client code")
    unit_id: str | None = Field(None, description="Unit code within the client")
    amount: int | None = Field(None, description="Payment in minor units; null previews every owed bill")
    payment_date: str | None = Field(None, description="Payment date (YYYY-MM-DD)")

    model_config = ConfigDict(extra="ignore")


class RecordRequest(PreviewRequest):
    """Request payload for POST /api/payments/unified/record."""

    payment_method: str | None = Field(None, description="e.g. 'bank_transfer', 'cash'")
    reference: str | None = Field(None, description="Bank or receipt reference")
    notes: str | None = Field(None, description="Free-text notes")
    recorded_by: str | None = Field(None, description="User recording the payment")
    preview: dict[str, Any] | None = Field(None, description="Preview previously returned by /preview")


@router.post("/preview")
async def preview_payment(
    payload: PreviewRequest,
    service: UnifiedPaymentService = Depends(get_payment_service),
    settings: Settings = Depends(get_settings),
) -> dict[str, Any]:
    """
    Preview the distribution of a payment across dues, water bills and credit.

    Returns:
        200: {success, preview}
        400: Invalid unit, amount or date
        404: Unknown client or unit
    """
    unit = validate_unit(payload.client_id, payload.unit_id)
    amount = validate_amount(payload.amount, settings.max_payment_cents)
    payment_date = validate_payment_date(payload.payment_date, date.today())

    preview = await service.preview(unit, amount, payment_date)
    return {"success": True, "preview": preview.to_dict()}


@router.post("/record")
async def record_payment(
    payload: RecordRequest,
    service: UnifiedPaymentService = Depends(get_payment_service),
    settings: Settings = Depends(get_settings),
) -> dict[str, Any]:
    """
    Record a previewed payment.

    The preview is recomputed and must still match what the user saw.

    Returns:
        200: {success, result}
        400: Invalid input or missing preview
        404: Unknown client or unit
        409: Bills changed since the preview
    """
    unit = validate_unit(payload.client_id, payload.unit_id)
    amount = validate_amount(payload.amount, settings.max_payment_cents)
    payment_date = validate_payment_date(payload.payment_date, date.today())
    payment_method = validate_payment_method(payload.payment_method)
    if not payload.preview:
        raise ValidationError("preview is required", field="preview")

    proposed = UnifiedPreview.from_dict(payload.preview)
    if amount is None or proposed.payment_amount != amount:
        raise ValidationError("amount does not match the preview", field="amount")
    if proposed.as_of_date != payment_date:
        raise ValidationError("payment_date does not match the preview", field="payment_date")

    metadata = PaymentMetadata(
        payment_method=payment_method,
        reference=payload.reference,
        notes=payload.notes,
        recorded_by=payload.recorded_by,
    )
    result = await service.commit(unit, proposed, metadata)
    logger.info("Payment recorded for %s: transaction %d", unit, result.transaction_id)
    return {"success": True, "result": result.to_dict()}
