"""
Input validation for supplier orders.

Checks:
  Header:     supplier present, currency is a 3-letter code, shipping/tax >= 0
  Lines:      product present, quantity >= 1, unit_price >= 0,
              0 <= received_quantity <= quantity
  Reception:  0 <= received_quantity <= stored quantity

All problems are collected and raised together as one ValidationError,
before anything is written.
"""
import logging
import re
from typing import Optional, Sequence

from models.supplier_order import FieldIssue, OrderDetails, OrderItemInput, ReceptionUpdate

from .errors import ValidationError

logger = logging.getLogger(__name__)

_CURRENCY_RE = re.compile(r"^[A-Za-z]{3}$")


class OrderValidator:
    """
    Usage:
        validator = OrderValidator(default_currency="EUR")
        details = validator.validate_order(details, items)      # raises ValidationError
    """

    def __init__(self, default_currency: Optional[str] = None):
        self.default_currency = default_currency

    def validate_order(
        self,
        details: OrderDetails,
        items: Sequence[OrderItemInput],
        require_items: bool = False,
    ) -> OrderDetails:
        """Check header and lines; return the details with currency normalised."""
        issues: list[FieldIssue] = []
        issues.extend(self._check_header(details))
        issues.extend(self.check_items(items))
        if require_items and not items:
            issues.append(FieldIssue(field="items", message="At least one item is required"))
        if issues:
            logger.debug("Order rejected: %s", issues)
            raise ValidationError(issues)
        currency = details.currency or self.default_currency
        return details.model_copy(update={"currency": currency.strip().upper()})

    def validate_items(self, items: Sequence[OrderItemInput]) -> None:
        issues = self.check_items(items)
        if not items:
            issues.append(FieldIssue(field="items", message="At least one item is required"))
        if issues:
            raise ValidationError(issues)

    def validate_reception(
        self,
        updates: Sequence[ReceptionUpdate],
        quantities: dict[int, int],
    ) -> None:
        """
        Check received quantities against the stored line quantities.
        Lines absent from ``quantities`` are only checked for sign.
        """
        issues = []
        for i, upd in enumerate(updates):
            field = f"items[{i}].received_quantity"
            if upd.received_quantity < 0:
                issues.append(FieldIssue(field=field, message="Received quantity cannot be negative"))
                continue
            ordered = quantities.get(upd.id)
            if ordered is not None and upd.received_quantity > ordered:
                issues.append(FieldIssue(
                    field=field,
                    message=f"Received quantity {upd.received_quantity} exceeds ordered quantity {ordered}",
                ))
        if issues:
            raise ValidationError(issues)

    # ------------------------------------------------------------------
    # Header checks
    # ------------------------------------------------------------------

    def _check_header(self, details: OrderDetails) -> list[FieldIssue]:
        issues = []

        if details.supplier_id is None:
            issues.append(FieldIssue(field="supplier_id", message="Supplier is required"))

        currency = details.currency or self.default_currency
        if not currency or not currency.strip():
            issues.append(FieldIssue(field="currency", message="Currency is required"))
        elif not _CURRENCY_RE.match(currency.strip()):
            issues.append(FieldIssue(
                field="currency",
                message=f"Currency must be a 3-letter ISO code, got {currency!r}",
            ))

        if details.shipping_cost < 0:
            issues.append(FieldIssue(field="shipping_cost", message="Shipping cost cannot be negative"))
        if details.tax_amount < 0:
            issues.append(FieldIssue(field="tax_amount", message="Tax amount cannot be negative"))

        return issues

    # ------------------------------------------------------------------
    # Line checks
    # ------------------------------------------------------------------

    @staticmethod
    def check_items(items: Sequence[OrderItemInput]) -> list[FieldIssue]:
        issues = []
        for i, item in enumerate(items):
            prefix = f"items[{i}]"
            if item.product_id is None:
                issues.append(FieldIssue(field=f"{prefix}.product_id", message="Product is required"))

            if item.quantity is None:
                issues.append(FieldIssue(field=f"{prefix}.quantity", message="Quantity is required"))
            elif item.quantity < 1:
                issues.append(FieldIssue(field=f"{prefix}.quantity", message="Quantity must be at least 1"))

            if item.unit_price is None:
                issues.append(FieldIssue(field=f"{prefix}.unit_price", message="Unit price is required"))
            elif item.unit_price < 0:
                issues.append(FieldIssue(field=f"{prefix}.unit_price", message="Unit price cannot be negative"))

            if item.received_quantity < 0:
                issues.append(FieldIssue(
                    field=f"{prefix}.received_quantity",
                    message="Received quantity cannot be negative",
                ))
            elif item.quantity is not None and item.received_quantity > item.quantity:
                issues.append(FieldIssue(
                    field=f"{prefix}.received_quantity",
                    message="Received quantity cannot exceed quantity",
                ))
        return issues
