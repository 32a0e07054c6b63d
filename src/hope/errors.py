"""Ledger error taxonomy.

Services raise these; the global handler in ``hope.middleware.error_handler``
turns them into the failure envelope. Business-rule outcomes (``NotFound``,
``InvalidOperation``, ``Rejected``, ``Unauthorized``) are expected and are
returned verbatim. ``Conflict`` and ``UpstreamFailure`` are logged and
surfaced with a generic message; callers may retry them.
"""

from __future__ import annotations


class LedgerError(Exception):
    """Base class for all domain errors."""

    status_code: int = 400
    error_code: str = "ledger_error"
    expected: bool = True

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFound(LedgerError):
    status_code = 404
    error_code = "not_found"


class InvalidOperation(LedgerError):
    """The action does not apply to this kind of campaign or state."""

    status_code = 400
    error_code = "invalid_operation"


class Rejected(LedgerError):
    """A business rule refused the request."""

    status_code = 400
    error_code = "rejected"


class Unauthorized(LedgerError):
    status_code = 403
    error_code = "unauthorized"


class Conflict(LedgerError):
    """A concurrent update won the race."""

    status_code = 409
    error_code = "conflict"
    expected = False
    public_message = "The request conflicted with a concurrent update. Please retry."


class UpstreamFailure(LedgerError):
    """The store, payment gateway or another collaborator failed."""

    status_code = 502
    error_code = "upstream_failure"
    expected = False
    public_message = "A dependent service failed. Please retry."


class InvalidCurrency(Rejected):
    def __init__(self, currency: str) -> None:
        super().__init__(f"Invalid currency: {currency}")
        self.currency = currency


class InsufficientFunds(Rejected):
    def __init__(self, required: object, currency: str) -> None:
        super().__init__(f"Insufficient balance. Required: {required} {currency}")
        self.required = required
        self.currency = currency
