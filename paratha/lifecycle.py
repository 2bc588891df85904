"""Order status state machine.

    pending -> confirmed -> preparing -> out_for_delivery -> delivered
    (any state before delivered) -> cancelled

Each live state may step forward once or be cancelled. Admin assignment
is a separate, forced move from any live state straight to
``out_for_delivery``.
"""
from . import errors
from .models import Order, OrderStatus

TERMINAL = frozenset({OrderStatus.delivered, OrderStatus.cancelled})
ACTIVE = frozenset(OrderStatus) - TERMINAL

_NEXT = {
    OrderStatus.pending: OrderStatus.confirmed,
    OrderStatus.confirmed: OrderStatus.preparing,
    OrderStatus.preparing: OrderStatus.out_for_delivery,
    OrderStatus.out_for_delivery: OrderStatus.delivered,
}


def is_terminal(status: OrderStatus) -> bool:
    return status in TERMINAL


def allowed_transitions(status: OrderStatus) -> frozenset:
    if is_terminal(status):
        return frozenset()
    return frozenset({_NEXT[status], OrderStatus.cancelled})


def check_transition(current: OrderStatus, target: OrderStatus):
    if target not in allowed_transitions(current):
        raise errors.InvalidTransition(current, target)


def advance(order: Order, target: OrderStatus) -> OrderStatus:
    """Apply a regular transition, returning the previous status."""
    previous = order.status
    check_transition(previous, target)
    order.status = target
    return previous


def force_assign(order: Order, delivery_partner_id: int) -> OrderStatus:
    """Attach a partner and jump to ``out_for_delivery`` from any live state."""
    previous = order.status
    if is_terminal(previous):
        raise errors.InvalidTransition(previous, OrderStatus.out_for_delivery)
    order.delivery_partner_id = delivery_partner_id
    order.status = OrderStatus.out_for_delivery
    return previous
