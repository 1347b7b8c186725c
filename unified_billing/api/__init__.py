"""HTTP API routers."""

from unified_billing.api.payments import router as payments_router

__all__ = ["payments_router"]
