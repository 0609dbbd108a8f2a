# Overview: Error taxonomy shared by the stock ledger, audit log, alert register and sale processor.

"""
Error taxonomy (authoritative)

- ValidationError: bad cart or input. No side effects; caller may correct and resubmit.
- InsufficientStock: availability check failed before any write.
- NotFound: unknown product / alert / sale id.
- InvalidState: operation would break an invariant (negative stock, editing a completed sale,
  mutating an audit row, resolving a resolved alert).
- PersistenceError: underlying store failure. Whole commit is rolled back.
- ConcurrencyConflict: lost a race for the same product's stock. Never retried silently.
"""

from __future__ import annotations


class InventoryError(Exception):
    """Base class for engine errors. `details` is safe to return to API callers."""

    http_status = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"error": self.message, "details": self.details}


class ValidationError(InventoryError):
    """400-level input problem (also raised for out-of-range discounts)."""


class InsufficientStock(InventoryError):
    http_status = 409

    def __init__(self, product_id: int, available: int, requested: int, product_name: str | None = None):
        label = product_name or f"product {product_id}"
        super().__init__(
            f"Insufficient stock for {label}. Available: {available}, Requested: {requested}",
            details={
                "product_id": product_id,
                "available": available,
                "requested": requested,
                "shortfall": requested - available,
            },
        )
        self.product_id = product_id
        self.available = available
        self.requested = requested


class NotFound(InventoryError):
    http_status = 404


class InvalidState(InventoryError):
    http_status = 409


class PersistenceError(InventoryError):
    http_status = 503

    def __init__(self, message: str = "Inventory store is unavailable; please retry", details: dict | None = None):
        super().__init__(message, details)


class ConcurrencyConflict(InventoryError):
    http_status = 409

    def __init__(
        self,
        message: str = "Stock changed while the sale was being committed; please retry",
        details: dict | None = None,
    ):
        super().__init__(message, details)


def http_status_for(exc: InventoryError) -> int:
    return exc.http_status
