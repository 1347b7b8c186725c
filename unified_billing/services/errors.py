"""Exception taxonomy for payment distribution.

Every error carries a machine-readable ``code`` and the HTTP status the API
layer maps it to.
"""


class BillingError(Exception):
    """Base billing error."""

    code = "billing_error"
    http_status = 500

    def __init__(self, message: str, *, field: str | None = None):
        self.message = message
        self.field = field
        super().__init__(message)


class ValidationError(BillingError):
    """Bad unit, amount or date supplied by the caller. Not retryable."""

    code = "validation_error"
    http_status = 400


class NotFoundError(BillingError):
    """Client or unit does not exist."""

    code = "not_found"
    http_status = 404


class PreviewStaleError(BillingError):
    """Bills changed between preview and commit. Retry by re-previewing."""

    code = "preview_stale"
    http_status = 409

    def __init__(
        self,
        message: str,
        *,
        proposed_total: int | None = None,
        fresh_total: int | None = None,
    ):
        self.proposed_total = proposed_total
        self.fresh_total = fresh_total
        super().__init__(message)


class PartialSourceFailure(BillingError):
    """One billing module could not supply bills.

    Never propagated to callers: the distribution degrades to the modules
    that answered and the failure is logged.
    """

    code = "partial_source_failure"
    http_status = 200

    def __init__(self, module: str, cause: BaseException | None = None):
        self.module = module
        self.cause = cause
        detail = f"{type(cause).__name__}: {cause}" if cause is not None else "no data"
        super().__init__(f"Bill source '{module}' failed: {detail}")


class InvariantViolation(BillingError):
    """Engine-internal consistency failure. Always a programming bug."""

    code = "invariant_violation"
    http_status = 500


__all__ = [
    "BillingError",
    "ValidationError",
    "NotFoundError",
    "PreviewStaleError",
    "PartialSourceFailure",
    "InvariantViolation",
]
