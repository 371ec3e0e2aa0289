"""
Order Status Transitions

Single table of legal status changes, consulted by every order operation.
"""

from typing import Dict, FrozenSet

from .models import OrderStatus


ORDER_TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({
        OrderStatus.PAYMENT_PENDING,
        OrderStatus.PAYMENT_CONFIRMED,
        OrderStatus.PREPARING,
        OrderStatus.CANCELLED,
    }),
    OrderStatus.PAYMENT_PENDING: frozenset({
        OrderStatus.PAYMENT_CONFIRMED,
        OrderStatus.CANCELLED,
    }),
    OrderStatus.PAYMENT_CONFIRMED: frozenset({
        OrderStatus.PREPARING,
        OrderStatus.CANCELLED,
    }),
    OrderStatus.PREPARING: frozenset({
        OrderStatus.READY_FOR_PICKUP,
        OrderStatus.CANCELLED,
    }),
    OrderStatus.READY_FOR_PICKUP: frozenset({
        OrderStatus.PICKED_UP,
        OrderStatus.CANCELLED,
    }),
    OrderStatus.PICKED_UP: frozenset({
        OrderStatus.DELIVERED,
    }),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

# Statuses reachable through the generic set-status operation; the others
# belong to a dedicated operation (payment, branch handoff, scan, pickup)
SET_STATUS_TARGETS: FrozenSet[OrderStatus] = frozenset({
    OrderStatus.PAYMENT_PENDING,
    OrderStatus.DELIVERED,
    OrderStatus.CANCELLED,
})

# Buyers may cancel their own order until the seller confirms payment
BUYER_CANCELLABLE: FrozenSet[OrderStatus] = frozenset({
    OrderStatus.PENDING,
    OrderStatus.PAYMENT_PENDING,
})


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    """Whether moving from current to target is legal"""
    return target in ORDER_TRANSITIONS.get(current, frozenset())


def is_terminal(status: OrderStatus) -> bool:
    return not ORDER_TRANSITIONS.get(status)


def is_cancellable(status: OrderStatus) -> bool:
    return can_transition(status, OrderStatus.CANCELLED)
