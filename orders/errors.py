"""
Error taxonomy for the supplier order core.

Every failed operation raises one of these.  Nothing in the core swallows
errors or retries; the HTTP layer maps each class to a status code.
"""
from typing import Iterable, Optional

from models.supplier_order import FieldIssue, OrderItem


class OrderError(Exception):
    """Base class for all errors raised by the order core."""


class ValidationError(OrderError):
    """Input rejected before any backend write."""

    def __init__(self, issues: Iterable[FieldIssue]):
        self.issues = list(issues)
        summary = "; ".join(f"{i.field}: {i.message}" for i in self.issues)
        super().__init__(f"Invalid input: {summary}" if summary else "Invalid input")


class BackendError(OrderError):
    """Storage, query or transaction failure reported by the backend."""


class ConflictError(BackendError):
    """Integrity violation, e.g. duplicate order number or unknown foreign key."""


class NotFoundError(OrderError):
    """A referenced order, line, object or row does not exist."""


class ReceptionError(NotFoundError):
    """
    Some lines of a reception update did not exist.

    The other lines were committed; they are available as ``updated``.
    """

    def __init__(self, order_id: int, missing_ids: list[int], updated: Optional[list[OrderItem]] = None):
        self.order_id = order_id
        self.missing_ids = missing_ids
        self.updated = updated or []
        super().__init__(
            f"Order {order_id}: no such line(s) {', '.join(str(i) for i in missing_ids)}"
        )


class SequenceExhaustionError(OrderError):
    """All 999 order numbers of a month have been used."""


class InvalidTransitionError(OrderError):
    """Status change not allowed from the order's current status."""


class AuthError(OrderError):
    """Bad credentials, or an unknown or expired session."""
