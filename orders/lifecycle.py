"""
Supplier order lifecycle: create, edit, list, status changes and deletion.

Every multi-table write (header + lines) runs in a single backend
transaction, so an order is never left half-written:

    manager = SupplierOrderManager(backend)
    order = manager.create(OrderDetails(supplier_id=3, currency="eur"), [
        OrderItemInput(product_id=7, quantity=2, unit_price=Decimal("12.00")),
    ])
    order.order_number   # "CMD2503001"
    order.status         # "draft"

Reads return fully hydrated orders: header, lines ordered by line id,
supplier summary and product summaries.  Line status is re-derived from
the quantities on every read.
"""
import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Callable, Optional, Sequence

from models.supplier_order import (
    FieldIssue,
    OrderDetails,
    OrderFilters,
    OrderItem,
    OrderItemInput,
    OrderPage,
    ProductSummary,
    SortOrder,
    SupplierOrder,
    SupplierSummary,
)

from .backend import Backend, escape_like
from .errors import InvalidTransitionError, NotFoundError, ValidationError
from .sequence import OrderNumberGenerator
from .status import (
    STATUS_CANCELLED,
    STATUS_DRAFT,
    TERMINAL_STATUSES,
    check_transition,
    derive_item_status,
)
from .totals import line_total, order_total, to_decimal, to_money
from .validator import OrderValidator

logger = logging.getLogger(__name__)

ORDERS = "amg_supplier_orders"
ITEMS = "amg_supplier_order_items"
SUPPLIERS = "amg_suppliers"
PRODUCTS = "amg_products"

SORT_COLUMNS = (
    "order_number",
    "order_date",
    "expected_delivery_date",
    "status",
    "currency",
    "total_amount",
    "created_at",
)


def _timestamp() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _item_row(order_id: int, item: OrderItemInput, received_quantity: int) -> dict:
    return {
        "order_id": order_id,
        "product_id": item.product_id,
        "quantity": item.quantity,
        "unit_price": to_decimal(item.unit_price),
        "total_price": line_total(item.quantity, item.unit_price),
        "received_quantity": received_quantity,
        "status": derive_item_status(item.quantity, received_quantity),
    }


class SupplierOrderManager:
    """
    Business operations on supplier orders.

    Args:
        backend:        Backend used for reads and transactions.
        numbers:        Order number allocator (default: CMD prefix, same clock).
        validator:      Input validator (default: no default currency).
        clock:          Returns today's date; drives order_date and numbering.
        max_page_size:  Upper bound on list_orders(limit=...); 0 is always allowed.
    """

    def __init__(
        self,
        backend: Backend,
        numbers: Optional[OrderNumberGenerator] = None,
        validator: Optional[OrderValidator] = None,
        clock: Callable[[], date] = date.today,
        max_page_size: int = 200,
    ):
        self.backend = backend
        self.clock = clock
        self.numbers = numbers or OrderNumberGenerator(clock=clock)
        self.validator = validator or OrderValidator()
        self.max_page_size = max_page_size

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create(self, details: OrderDetails, items: Sequence[OrderItemInput]) -> SupplierOrder:
        """Create a draft order with its lines, numbered for the current month."""
        details = self.validator.validate_order(details, items)
        shipping = to_money(details.shipping_cost)
        tax = to_money(details.tax_amount)
        total = order_total([(i.quantity, i.unit_price) for i in items], shipping, tax)

        with self.backend.transaction() as tx:
            order_number = self.numbers.next_number(tx)
            [header] = tx.insert(ORDERS, [{
                "order_number": order_number,
                "supplier_id": details.supplier_id,
                "order_date": details.order_date or self.clock(),
                "expected_delivery_date": details.expected_delivery_date,
                "status": STATUS_DRAFT,
                "currency": details.currency,
                "shipping_cost": shipping,
                "tax_amount": tax,
                "payment_terms": details.payment_terms,
                "notes": details.notes,
                "total_amount": total,
            }])
            # New lines start unreceived
            tx.insert(ITEMS, [_item_row(header["id"], item, 0) for item in items])

        logger.info(
            "Created order %s (id=%d, %d line(s), total %s %s)",
            order_number, header["id"], len(items), total, details.currency,
        )
        return self.get_by_id(header["id"])

    def update(self, order_id: int, details: OrderDetails, items: Sequence[OrderItemInput]) -> SupplierOrder:
        """
        Replace the header fields and the whole line set of an order.

        Lines not sent again are gone; received quantities survive only when
        the caller sends them back.
        """
        details = self.validator.validate_order(details, items)
        shipping = to_money(details.shipping_cost)
        tax = to_money(details.tax_amount)
        total = order_total([(i.quantity, i.unit_price) for i in items], shipping, tax)

        with self.backend.transaction() as tx:
            header = self._load_header(tx, order_id)
            self._check_editable(header)
            tx.update(ORDERS, {
                "supplier_id": details.supplier_id,
                "order_date": details.order_date or header["order_date"],
                "expected_delivery_date": details.expected_delivery_date,
                "currency": details.currency,
                "shipping_cost": shipping,
                "tax_amount": tax,
                "payment_terms": details.payment_terms,
                "notes": details.notes,
                "total_amount": total,
                "updated_at": _timestamp(),
            }, [("id", "eq", order_id)])
            tx.delete(ITEMS, [("order_id", "eq", order_id)])
            tx.insert(ITEMS, [_item_row(order_id, item, item.received_quantity) for item in items])

        logger.info("Updated order %s (id=%d, %d line(s))", header["order_number"], order_id, len(items))
        return self.get_by_id(order_id)

    def add_items(self, order_id: int, items: Sequence[OrderItemInput]) -> SupplierOrder:
        """Append lines to an order, leaving existing lines as they are."""
        self.validator.validate_items(items)

        with self.backend.transaction() as tx:
            header = self._load_header(tx, order_id)
            self._check_editable(header)
            tx.insert(ITEMS, [_item_row(order_id, item, item.received_quantity) for item in items])
            stored = tx.select(ITEMS, columns=["quantity", "unit_price"], filters=[("order_id", "eq", order_id)]).rows
            total = order_total(
                [(r["quantity"], r["unit_price"]) for r in stored],
                header["shipping_cost"],
                header["tax_amount"],
            )
            tx.update(ORDERS, {"total_amount": total, "updated_at": _timestamp()}, [("id", "eq", order_id)])

        logger.info("Added %d line(s) to order %s", len(items), header["order_number"])
        return self.get_by_id(order_id)

    def transition(self, order_id: int, status: str) -> SupplierOrder:
        """Move an order to another status along the allowed transitions."""
        with self.backend.transaction() as tx:
            header = self._load_header(tx, order_id)
            check_transition(header["status"], status)
            tx.update(ORDERS, {"status": status, "updated_at": _timestamp()}, [("id", "eq", order_id)])

        logger.info("Order %s: %s -> %s", header["order_number"], header["status"], status)
        return self.get_by_id(order_id)

    def cancel(self, order_id: int) -> SupplierOrder:
        """Cancel a non-terminal order.  Lines are kept unchanged."""
        return self.transition(order_id, STATUS_CANCELLED)

    def delete(self, order_id: int) -> None:
        """Hard-delete an order; its lines go with it."""
        deleted = self.backend.delete(ORDERS, [("id", "eq", order_id)])
        if not deleted:
            raise NotFoundError(f"No supplier order with id {order_id}")
        logger.info("Deleted order id=%d", order_id)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_by_id(self, order_id: int) -> SupplierOrder:
        rows = self.backend.select(ORDERS, filters=[("id", "eq", order_id)], limit=1).rows
        if not rows:
            raise NotFoundError(f"No supplier order with id {order_id}")
        return self._hydrate(self.backend, rows)[0]

    def list_orders(
        self,
        page: int = 1,
        limit: int = 10,
        search: str = "",
        filters: Optional[OrderFilters] = None,
        sort_by: str = "order_date",
        sort_order: SortOrder = "desc",
    ) -> OrderPage:
        """
        One page of orders plus the exact number of matching orders.

        ``search`` matches order numbers and supplier names, case-insensitively.
        ``limit=0`` returns every match on a single page.
        """
        issues = []
        if sort_by not in SORT_COLUMNS:
            issues.append(FieldIssue(field="sort_by", message=f"Cannot sort by {sort_by!r}"))
        if sort_order not in ("asc", "desc"):
            issues.append(FieldIssue(field="sort_order", message="Sort order must be 'asc' or 'desc'"))
        if page < 1:
            issues.append(FieldIssue(field="page", message="Page must be at least 1"))
        if limit < 0 or limit > self.max_page_size:
            issues.append(FieldIssue(
                field="limit", message=f"Limit must be between 0 and {self.max_page_size}",
            ))
        if issues:
            raise ValidationError(issues)

        conditions = []
        filters = filters or OrderFilters()
        if filters.status:
            conditions.append(("status", "eq", filters.status))
        if filters.supplier_id is not None:
            conditions.append(("supplier_id", "eq", filters.supplier_id))
        if filters.date_from:
            conditions.append(("order_date", "gte", filters.date_from))
        if filters.date_to:
            conditions.append(("order_date", "lte", filters.date_to))

        any_of = []
        term = (search or "").strip()
        if term:
            pattern = f"%{escape_like(term)}%"
            supplier_ids = [
                r["id"] for r in self.backend.select(
                    SUPPLIERS, columns=["id"], filters=[("name", "ilike", pattern)]
                ).rows
            ]
            any_of.append(("order_number", "ilike", pattern))
            if supplier_ids:
                any_of.append(("supplier_id", "in", supplier_ids))

        result = self.backend.select(
            ORDERS,
            filters=conditions,
            any_of=any_of,
            order=[(sort_by, sort_order == "asc"), ("id", sort_order == "asc")],
            limit=limit or None,
            offset=(page - 1) * limit,
            count=True,
        )
        return OrderPage(
            orders=self._hydrate(self.backend, result.rows),
            total=result.count or 0,
            page=page,
            limit=limit,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _load_header(executor, order_id: int) -> dict:
        rows = executor.select(ORDERS, filters=[("id", "eq", order_id)], limit=1).rows
        if not rows:
            raise NotFoundError(f"No supplier order with id {order_id}")
        return rows[0]

    @staticmethod
    def _check_editable(header: dict) -> None:
        if header["status"] in TERMINAL_STATUSES:
            raise InvalidTransitionError(
                f"Order {header['order_number']} is {header['status']} and can no longer be edited"
            )

    @staticmethod
    def _hydrate(executor, headers: list[dict]) -> list[SupplierOrder]:
        """Attach lines, supplier and product summaries to order header rows."""
        if not headers:
            return []
        order_ids = [h["id"] for h in headers]
        item_rows = executor.select(
            ITEMS, filters=[("order_id", "in", order_ids)], order=[("id", True)]
        ).rows

        supplier_ids = sorted({h["supplier_id"] for h in headers})
        suppliers = {
            r["id"]: SupplierSummary(id=r["id"], name=r["name"])
            for r in executor.select(
                SUPPLIERS, columns=["id", "name"], filters=[("id", "in", supplier_ids)]
            ).rows
        }
        product_ids = sorted({r["product_id"] for r in item_rows})
        products = {
            r["id"]: ProductSummary(id=r["id"], name=r["name"])
            for r in executor.select(
                PRODUCTS, columns=["id", "name"], filters=[("id", "in", product_ids)]
            ).rows
        }

        items_by_order: dict[int, list[OrderItem]] = {oid: [] for oid in order_ids}
        for row in item_rows:
            items_by_order[row["order_id"]].append(OrderItem(
                id=row["id"],
                order_id=row["order_id"],
                product_id=row["product_id"],
                quantity=row["quantity"],
                unit_price=Decimal(row["unit_price"]),
                total_price=Decimal(row["total_price"]),
                received_quantity=row["received_quantity"],
                status=derive_item_status(row["quantity"], row["received_quantity"]),
                product=products.get(row["product_id"]),
            ))

        return [
            SupplierOrder(
                **header,
                supplier=suppliers.get(header["supplier_id"]),
                items=items_by_order[header["id"]],
            )
            for header in headers
        ]
