import pytest

from paratha import errors, lifecycle
from paratha.access import CAPABILITIES, Capability, RequestContext, ensure
from paratha.models import Order, OrderStatus, Role


def make_order(status):
    return Order(customer_id=1, business_id=1, total_price=10.0, status=status)


@pytest.mark.parametrize(
    "current,target",
    [
        (OrderStatus.pending, OrderStatus.confirmed),
        (OrderStatus.confirmed, OrderStatus.preparing),
        (OrderStatus.preparing, OrderStatus.out_for_delivery),
        (OrderStatus.out_for_delivery, OrderStatus.delivered),
        (OrderStatus.pending, OrderStatus.cancelled),
        (OrderStatus.out_for_delivery, OrderStatus.cancelled),
    ],
)
def test_regular_transitions(current, target):
    order = make_order(current)
    assert lifecycle.advance(order, target) == current
    assert order.status == target


@pytest.mark.parametrize(
    "current,target",
    [
        (OrderStatus.pending, OrderStatus.preparing),
        (OrderStatus.out_for_delivery, OrderStatus.preparing),
        (OrderStatus.confirmed, OrderStatus.confirmed),
        (OrderStatus.pending, OrderStatus.pending),
    ],
)
def test_skipping_or_going_back_is_rejected(current, target):
    order = make_order(current)
    with pytest.raises(errors.InvalidTransition):
        lifecycle.advance(order, target)
    assert order.status == current


@pytest.mark.parametrize("terminal", [OrderStatus.delivered, OrderStatus.cancelled])
def test_terminal_states_accept_nothing(terminal):
    assert lifecycle.allowed_transitions(terminal) == frozenset()
    for target in OrderStatus:
        with pytest.raises(errors.InvalidTransition):
            lifecycle.advance(make_order(terminal), target)
    with pytest.raises(errors.InvalidTransition):
        lifecycle.force_assign(make_order(terminal), 7)


@pytest.mark.parametrize("status", sorted(lifecycle.ACTIVE, key=lambda s: s.value))
def test_force_assign_from_any_live_state(status):
    order = make_order(status)
    assert lifecycle.force_assign(order, 7) == status
    assert order.status == OrderStatus.out_for_delivery
    assert order.delivery_partner_id == 7


def test_active_and_terminal_partition_the_states():
    assert lifecycle.ACTIVE | lifecycle.TERMINAL == frozenset(OrderStatus)
    assert not lifecycle.ACTIVE & lifecycle.TERMINAL


def test_invalid_transition_is_a_conflict():
    err = errors.InvalidTransition(OrderStatus.delivered, OrderStatus.pending)
    assert isinstance(err, errors.Conflict)
    assert err.status_code == 409
    assert "delivered" in err.message


def test_every_role_has_a_capability_set():
    assert set(CAPABILITIES) == set(Role)


def test_capability_checks():
    partner = RequestContext(user_id=1, role=Role.delivery)
    assert partner.can(Capability.deliver_orders)
    assert not partner.can(Capability.assign_orders)
    with pytest.raises(errors.Forbidden):
        ensure(partner, Capability.place_orders)

    admin = RequestContext(user_id=2, role=Role.admin)
    ensure(admin, Capability.assign_orders)
    assert not admin.can(Capability.place_orders)
