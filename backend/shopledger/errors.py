# Overview: Error taxonomy shared by the ledger services and the API routes.

"""
Ledger error taxonomy.

Every public service operation either returns its result or raises exactly
one LedgerError subclass. Routes map each class to its status_code and
serialize it with to_dict(); nothing here is retried by the services.
"""

from __future__ import annotations


class LedgerError(Exception):
    """Base class for all expected ledger failures."""
    status_code = 400
    kind = "LedgerError"

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}

    def to_dict(self) -> dict:
        body = {"error": str(self), "kind": self.kind}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(LedgerError, ValueError):
    """400-level input problem."""
    kind = "ValidationError"


class ConflictError(LedgerError, ValueError):
    """409-level conflict (e.g., concurrent edit of the same master record)."""
    status_code = 409
    kind = "Conflict"


class NotFoundError(LedgerError):
    status_code = 404
    kind = "NotFound"


class ProductNotFound(NotFoundError):
    pass


class PartyNotFound(NotFoundError):
    pass


class InvoiceNotFound(NotFoundError):
    pass


class ProductInactive(ValidationError):
    pass


class PartyInactive(ValidationError):
    pass


class InvalidQuantity(ValidationError):
    pass


class InsufficientStock(LedgerError):
    kind = "InsufficientStock"

    def __init__(self, product_name: str, available, requested, product_id: int | None = None):
        super().__init__(
            f"Insufficient stock for {product_name}. "
            f"Available: {available}, Required: {requested}",
            details={
                "product_id": product_id,
                "product_name": product_name,
                "available": str(available),
                "requested": str(requested),
            },
        )


class PaymentExceedsDue(LedgerError):
    kind = "PaymentExceedsDue"

    def __init__(self, due_amount, amount):
        super().__init__(
            f"Payment amount cannot exceed due amount of Rs. {due_amount}",
            details={"due_amount": str(due_amount), "amount": str(amount)},
        )


class WalkInMustBeFullyPaid(LedgerError):
    kind = "WalkInMustBeFullyPaid"

    def __init__(self, total_amount, received_amount):
        super().__init__(
            "Walk-in customers must pay the full amount. No balance is allowed.",
            details={"total_amount": str(total_amount), "received_amount": str(received_amount)},
        )


class TransactionTimeout(LedgerError):
    """The store gave up on the transaction; safe for the caller to retry."""
    status_code = 503
    kind = "TransactionTimeout"
    retryable = True


class InvoiceCreationFailed(LedgerError):
    """Store-level failure while writing an invoice; wraps the cause."""
    status_code = 500
    kind = "InvoiceCreationFailed"

    def __init__(self, message: str, cause: Exception | None = None):
        details = {}
        if cause is not None:
            message = f"{message}: {cause}"
            details["cause"] = type(cause).__name__
        super().__init__(message, details=details)
        self.cause = cause
        self.retryable = isinstance(cause, TransactionTimeout)
        if self.retryable:
            self.status_code = TransactionTimeout.status_code


class PurchaseCreationFailed(InvoiceCreationFailed):
    kind = "PurchaseCreationFailed"


class SaleCreationFailed(InvoiceCreationFailed):
    kind = "SaleCreationFailed"
