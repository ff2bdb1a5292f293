"""
LEDGER SERVICE ERRORS

Centralized domain errors for the supplier ledger services.

Every error carries a short machine-readable ``code`` which is copied into the
``error_type`` key of failed service results and mapped to an HTTP status by
the JSON blueprints.
"""


class LedgerServiceError(Exception):
    """Base exception for all ledger service failures."""

    code = "error"


class NotFoundError(LedgerServiceError):
    """Raised when a referenced supplier or procurement does not exist."""

    code = "not_found"


class ValidationError(LedgerServiceError):
    """Raised on malformed or inconsistent input."""

    code = "validation"


class TransactionConflictError(LedgerServiceError):
    """Raised when a transaction keeps conflicting after all retries."""

    code = "conflict"
