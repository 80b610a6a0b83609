from .supplier_order import (
    FieldIssue, SupplierSummary, ProductSummary,
    OrderItemInput, OrderDetails, OrderItem, SupplierOrder,
    OrderFilters, OrderPage, ReceptionUpdate,
    OrderStatus, ItemStatus, SortOrder,
)
from .company import CompanySettings, DEFAULT_COMPANY_NAME
from .auth import User, Session

__all__ = [
    "FieldIssue", "SupplierSummary", "ProductSummary",
    "OrderItemInput", "OrderDetails", "OrderItem", "SupplierOrder",
    "OrderFilters", "OrderPage", "ReceptionUpdate",
    "OrderStatus", "ItemStatus", "SortOrder",
    "CompanySettings", "DEFAULT_COMPANY_NAME",
    "User", "Session",
]
