# Overview: Order state machine; the single authority on legal order transitions.

"""
Order Lifecycle

================================================================================
STATE MACHINE:
    pending -> checkout -> delivery (repeatable while items remain)
    pending | checkout | partially delivered -> cancelled

    pending:   Order taken, items counted in top sheet "pending"
    checkout:  Goods produced/ready, items counted in top sheet "checkout"
    delivery:  One or more deliveries confirmed; items_delivered grows until
               it reaches total_items (terminal once complete)
    cancelled: Terminal; undelivered items moved to top sheet "cancelled"

RULES:
1. Cannot skip states (pending -> delivery is forbidden)
2. Cannot move backwards (checkout -> pending is forbidden)
3. A fully delivered order cannot be cancelled
4. "Partially delivered" is derived from 0 < items_delivered < total_items,
   it is never stored as a status
5. Orders are editable only while pending or checkout
================================================================================
"""

from __future__ import annotations

from enum import Enum

from erpmini.validation import ConflictError


class OrderStatus(str, Enum):
    PENDING = "pending"
    CHECKOUT = "checkout"
    DELIVERY = "delivery"
    CANCELLED = "cancelled"


VALID_STATUSES = {s.value for s in OrderStatus}

# Static part of the table; delivery -> delivery and delivery -> cancelled
# additionally depend on how many items were delivered (see can_transition)
TRANSITIONS: dict[OrderStatus, set[OrderStatus]] = {
    OrderStatus.PENDING: {OrderStatus.CHECKOUT, OrderStatus.CANCELLED},
    OrderStatus.CHECKOUT: {OrderStatus.DELIVERY, OrderStatus.CANCELLED},
    OrderStatus.DELIVERY: {OrderStatus.DELIVERY, OrderStatus.CANCELLED},
    OrderStatus.CANCELLED: set(),
}

EDITABLE_STATUSES = {OrderStatus.PENDING, OrderStatus.CHECKOUT}


class OrderStateError(ConflictError):
    """
    Raised when an illegal order transition is attempted.

    This is a domain error, not a technical error. The caller can correct it
    (e.g. by reloading the order); it is never retried.
    """
    pass


def validate_status(status: str) -> OrderStatus:
    if status not in VALID_STATUSES:
        raise OrderStateError(
            f"Invalid status '{status}'. Must be one of: {', '.join(sorted(VALID_STATUSES))}",
            details={"status": status},
        )
    return OrderStatus(status)


def can_transition(order, target: OrderStatus) -> bool:
    current = validate_status(order.status)
    if target not in TRANSITIONS[current]:
        return False

    remaining = order.total_items - order.items_delivered
    if current is OrderStatus.DELIVERY and target is OrderStatus.DELIVERY:
        return remaining > 0
    if current is OrderStatus.DELIVERY and target is OrderStatus.CANCELLED:
        return order.is_partially_delivered
    return True


def require_transition(order, target: OrderStatus) -> OrderStatus:
    """Raise OrderStateError unless order may move to target. Returns the current state."""
    current = validate_status(order.status)
    if can_transition(order, target):
        return current

    details = {
        "order_id": order.id,
        "status": current.value,
        "target": target.value,
        "total_items": order.total_items,
        "items_delivered": order.items_delivered,
    }
    if current is OrderStatus.CANCELLED:
        raise OrderStateError("Order is already cancelled", details=details)
    if current is OrderStatus.DELIVERY and order.remaining_items <= 0:
        raise OrderStateError("Order is fully delivered", details=details)
    raise OrderStateError(
        f"Cannot move order from {current.value} to {target.value}",
        details=details,
    )


def require_editable(order) -> OrderStatus:
    current = validate_status(order.status)
    if current not in EDITABLE_STATUSES:
        raise OrderStateError(
            f"Order in status {current.value} cannot be edited",
            details={"order_id": order.id, "status": current.value},
        )
    return current
