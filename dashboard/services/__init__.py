"""
Dashboard business logic services.
"""
from .document import (
    render_purchase_order,
    DEFAULT_PURCHASE_ORDER_TEMPLATE,
    STATUS_LABELS,
)

__all__ = [
    "render_purchase_order",
    "DEFAULT_PURCHASE_ORDER_TEMPLATE",
    "STATUS_LABELS",
]
