"""
Status values and rules for supplier orders and their lines.

Order lifecycle
---------------
  draft → pending → confirmed → shipped → delivered
                                shipped → partially_delivered → delivered
  any non-terminal status → cancelled

  delivered and cancelled are terminal.

Line status
-----------
  Always derived from (quantity, received_quantity), never set directly.
"""
from .errors import InvalidTransitionError

STATUS_DRAFT               = "draft"
STATUS_PENDING             = "pending"
STATUS_CONFIRMED           = "confirmed"
STATUS_SHIPPED             = "shipped"
STATUS_PARTIALLY_DELIVERED = "partially_delivered"
STATUS_DELIVERED           = "delivered"
STATUS_CANCELLED           = "cancelled"

ALL_STATUSES = {
    STATUS_DRAFT, STATUS_PENDING, STATUS_CONFIRMED, STATUS_SHIPPED,
    STATUS_PARTIALLY_DELIVERED, STATUS_DELIVERED, STATUS_CANCELLED,
}
TERMINAL_STATUSES = {STATUS_DELIVERED, STATUS_CANCELLED}

ALLOWED_TRANSITIONS: dict[str, set[str]] = {
    STATUS_DRAFT:               {STATUS_PENDING, STATUS_CANCELLED},
    STATUS_PENDING:             {STATUS_CONFIRMED, STATUS_CANCELLED},
    STATUS_CONFIRMED:           {STATUS_SHIPPED, STATUS_CANCELLED},
    STATUS_SHIPPED:             {STATUS_DELIVERED, STATUS_PARTIALLY_DELIVERED, STATUS_CANCELLED},
    STATUS_PARTIALLY_DELIVERED: {STATUS_DELIVERED, STATUS_CANCELLED},
    STATUS_DELIVERED:           set(),
    STATUS_CANCELLED:           set(),
}

ITEM_PENDING            = "pending"
ITEM_PARTIALLY_RECEIVED = "partially_received"
ITEM_RECEIVED           = "received"


def derive_item_status(quantity: int, received_quantity: int) -> str:
    """Line status as a pure function of ordered vs received quantity."""
    if received_quantity == quantity:
        return ITEM_RECEIVED
    if 0 < received_quantity < quantity:
        return ITEM_PARTIALLY_RECEIVED
    return ITEM_PENDING


def check_transition(current: str, target: str) -> None:
    """Raise InvalidTransitionError unless current → target is allowed."""
    if target not in ALL_STATUSES:
        raise InvalidTransitionError(f"Unknown status {target!r}")
    if target not in ALLOWED_TRANSITIONS.get(current, set()):
        raise InvalidTransitionError(
            f"Cannot move order from {current!r} to {target!r}"
        )
