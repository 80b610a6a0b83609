"""
Goods reception against supplier order lines.

Each line's received quantity is written on its own; a bad line id does not
hold back the other lines.  Line status follows the quantities:

  received == quantity       → received
  0 < received < quantity    → partially_received
  received == 0              → pending
"""
import logging
from decimal import Decimal
from typing import Optional, Sequence

from models.supplier_order import OrderItem, ReceptionUpdate

from .backend import Backend
from .errors import NotFoundError, ReceptionError
from .status import (
    STATUS_DELIVERED,
    STATUS_PARTIALLY_DELIVERED,
    STATUS_SHIPPED,
    check_transition,
    derive_item_status,
)
from .validator import OrderValidator

logger = logging.getLogger(__name__)

ORDERS = "amg_supplier_orders"
ITEMS = "amg_supplier_order_items"


def _to_item(row: dict) -> OrderItem:
    return OrderItem(
        id=row["id"],
        order_id=row["order_id"],
        product_id=row["product_id"],
        quantity=row["quantity"],
        unit_price=Decimal(row["unit_price"]),
        total_price=Decimal(row["total_price"]),
        received_quantity=row["received_quantity"],
        status=derive_item_status(row["quantity"], row["received_quantity"]),
    )


class ReceptionTracker:
    """
    Usage:
        tracker = ReceptionTracker(backend)
        lines = tracker.update_reception(order_id, [ReceptionUpdate(id=12, received_quantity=3)])
        tracker.sync_order_status(order_id)     # optional: shipped → partially_delivered / delivered
    """

    def __init__(self, backend: Backend, validator: Optional[OrderValidator] = None):
        self.backend = backend
        self.validator = validator or OrderValidator()

    def update_reception(self, order_id: int, updates: Sequence[ReceptionUpdate]) -> list[OrderItem]:
        """
        Record received quantities and return the updated lines.

        Raises:
            NotFoundError:   the order does not exist.
            ValidationError: a quantity is negative or above the ordered
                             quantity; nothing is written.
            ReceptionError:  some ids are not lines of this order; the
                             other lines were committed and are attached.
        """
        self._require_order(order_id)
        stored = {
            row["id"]: row
            for row in self.backend.select(ITEMS, filters=[("order_id", "eq", order_id)]).rows
        }
        self.validator.validate_reception(
            updates, {line_id: row["quantity"] for line_id, row in stored.items()}
        )

        updated: list[OrderItem] = []
        missing: list[int] = []
        for upd in updates:
            line = stored.get(upd.id)
            rows = []
            if line is not None:
                rows = self.backend.update(
                    ITEMS,
                    {
                        "received_quantity": upd.received_quantity,
                        "status": derive_item_status(line["quantity"], upd.received_quantity),
                    },
                    [("id", "eq", upd.id), ("order_id", "eq", order_id)],
                )
            if not rows:
                missing.append(upd.id)
                continue
            updated.append(_to_item(rows[0]))

        if missing:
            logger.warning(
                "Order %d: reception skipped unknown line(s) %s, %d line(s) updated",
                order_id, missing, len(updated),
            )
            raise ReceptionError(order_id, missing, updated)

        logger.info("Order %d: reception recorded on %d line(s)", order_id, len(updated))
        return updated

    def sync_order_status(self, order_id: int) -> str:
        """
        Advance a shipped order according to what has been received.

        Only orders in shipped or partially_delivered move.  Returns the
        order's status after the call.
        """
        with self.backend.transaction() as tx:
            header = self._require_order(order_id, tx)
            current = header["status"]
            if current not in (STATUS_SHIPPED, STATUS_PARTIALLY_DELIVERED):
                return current

            lines = tx.select(ITEMS, filters=[("order_id", "eq", order_id)]).rows
            if lines and all(r["received_quantity"] >= r["quantity"] for r in lines):
                target = STATUS_DELIVERED
            elif any(r["received_quantity"] > 0 for r in lines):
                target = STATUS_PARTIALLY_DELIVERED
            else:
                return current

            if target == current:
                return current
            check_transition(current, target)
            tx.update(ORDERS, {"status": target}, [("id", "eq", order_id)])

        logger.info("Order %s: %s -> %s after reception", header["order_number"], current, target)
        return target

    def _require_order(self, order_id: int, executor=None) -> dict:
        rows = (executor or self.backend).select(ORDERS, filters=[("id", "eq", order_id)], limit=1).rows
        if not rows:
            raise NotFoundError(f"No supplier order with id {order_id}")
        return rows[0]
