# Overview: Error kinds raised by the ledger services and reported by the bridge.

from __future__ import annotations


class LedgerError(Exception):
    """
    Base class for business errors.

    `kind` is the machine-checkable tag the bridge returns in the `error`
    field; the message is what the UI shows to the cashier.
    """
    kind = "LedgerError"

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class NotFound(LedgerError):
    """Product, customer or sale does not exist."""
    kind = "NotFound"


class InsufficientStock(LedgerError):
    kind = "InsufficientStock"


class OverPayment(LedgerError):
    """Amount paid at checkout exceeds the sale total."""
    kind = "OverPayment"


class NoOutstandingBalance(LedgerError):
    kind = "NoOutstandingBalance"


class ValidationFailed(LedgerError):
    """
    One or more field-level problems, detected before any write.

    All problems are reported at once, joined by ", ".
    """
    kind = "ValidationFailed"

    def __init__(self, errors: list[str] | str, details: dict | None = None):
        if isinstance(errors, str):
            errors = [errors]
        self.errors = list(errors)
        super().__init__(", ".join(self.errors), details)


class TransactionFailed(LedgerError):
    """Storage-level failure; the transaction was rolled back."""
    kind = "TransactionFailed"
