from datetime import date
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, Field


OrderStatus = Literal[
    "draft",
    "pending",
    "confirmed",
    "shipped",
    "partially_delivered",
    "delivered",
    "cancelled",
]

ItemStatus = Literal["pending", "partially_received", "received"]

SortOrder = Literal["asc", "desc"]


class FieldIssue(BaseModel):
    """One rejected input field."""
    field: str                              # e.g. "currency", "items[1].quantity"
    message: str


class SupplierSummary(BaseModel):
    id: int
    name: str


class ProductSummary(BaseModel):
    id: int
    name: str


class OrderItemInput(BaseModel):
    """
    A line as sent by the caller on create / update / add_items.
    Fields are optional here so that missing values surface as FieldIssues
    from OrderValidator rather than as pydantic parse errors.
    """
    product_id: Optional[int] = None
    quantity: Optional[int] = None
    unit_price: Optional[Decimal] = None
    received_quantity: int = 0              # carried forward on full-replace updates


class OrderDetails(BaseModel):
    """Header fields of a supplier order as sent by the caller."""
    supplier_id: Optional[int] = None
    order_date: Optional[date] = None       # defaults to today on create
    expected_delivery_date: Optional[date] = None
    currency: Optional[str] = None          # ISO 4217, e.g. "EUR"
    shipping_cost: Decimal = Decimal("0")
    tax_amount: Decimal = Decimal("0")
    payment_terms: Optional[str] = None
    notes: Optional[str] = None


class OrderItem(BaseModel):
    """A persisted order line."""
    id: int
    order_id: int
    product_id: int
    quantity: int
    unit_price: Decimal
    total_price: Decimal
    received_quantity: int = 0
    status: ItemStatus = "pending"
    product: Optional[ProductSummary] = None


class SupplierOrder(BaseModel):
    """
    A persisted supplier purchase order with its lines.
    total_amount = sum(line totals) + shipping_cost + tax_amount.
    """
    id: int
    order_number: str                       # CMDYYMMNNN
    supplier_id: int
    order_date: Optional[date] = None
    expected_delivery_date: Optional[date] = None
    status: OrderStatus = "draft"
    currency: str
    shipping_cost: Decimal = Decimal("0.00")
    tax_amount: Decimal = Decimal("0.00")
    payment_terms: Optional[str] = None
    notes: Optional[str] = None
    total_amount: Decimal = Decimal("0.00")
    created_at: Optional[str] = None        # ISO 8601
    updated_at: Optional[str] = None
    supplier: Optional[SupplierSummary] = None
    items: List[OrderItem] = Field(default_factory=list)

    @property
    def subtotal(self) -> Decimal:
        return sum((item.total_price for item in self.items), Decimal("0.00"))


class OrderFilters(BaseModel):
    status: Optional[OrderStatus] = None
    supplier_id: Optional[int] = None
    date_from: Optional[date] = None        # inclusive, on order_date
    date_to: Optional[date] = None          # inclusive, on order_date


class OrderPage(BaseModel):
    orders: List[SupplierOrder] = Field(default_factory=list)
    total: int = 0                          # matching rows across all pages
    page: int = 1
    limit: int = 10


class ReceptionUpdate(BaseModel):
    """Received quantity for one existing line."""
    id: int
    received_quantity: int
