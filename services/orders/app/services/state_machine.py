from __future__ import annotations

from services.orders.app.models.order import OrderStatus
from services.orders.app.services.errors import InvalidStatusTransitionError

# DELIVERED and CANCELLED are terminal.
ALLOWED_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.PAID, OrderStatus.CANCELLED}),
    OrderStatus.PAID: frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}


def can_transition(current: OrderStatus, requested: OrderStatus) -> bool:
    if current == requested:
        return True
    return requested in ALLOWED_TRANSITIONS.get(current, frozenset())


def ensure_transition(order_id: str, current: OrderStatus, requested: OrderStatus) -> None:
    if not can_transition(current, requested):
        raise InvalidStatusTransitionError(order_id, current.value, requested.value)
