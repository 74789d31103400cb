"""Shared BDD fixtures and step definitions for the Ordering domain."""

import pytest
from ordering.order.order import Order
from ordering.order.status_update import UpdateOrderStatus
from ordering.order.transitions import handle_payment_status_change
from protean import current_domain
from protean.exceptions import ValidationError
from pytest_bdd import given, parsers, then, when


@pytest.fixture()
def outcome():
    """Container for a captured rejection."""
    return {"exc": None}


def _reload(order):
    return current_domain.repository_for(Order).get(order.id)


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(
    parsers.cfparse('an order in status "{status}" with payment "{payment_status}"'),
    target_fixture="order",
)
def _(order_factory, status, payment_status):
    return _reload(order_factory(status=status, payment_status=payment_status))


# ---------------------------------------------------------------------------
# When steps
# ---------------------------------------------------------------------------
@when(parsers.cfparse('an admin moves the order to "{status}"'), target_fixture="order")
def _(order, outcome, status):
    try:
        current_domain.process(
            UpdateOrderStatus(
                order_number=order.order_number,
                status=status,
                actor_id="admin-1",
                actor_email="admin@example.com",
            ),
            asynchronous=False,
        )
    except ValidationError as exc:
        outcome["exc"] = exc
    return _reload(order)


@when(parsers.cfparse('the gateway reports the payment as "{payment_status}"'), target_fixture="order")
def _(order, payment_status):
    handle_payment_status_change(order, payment_status)
    return _reload(order)


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the order status is "{status}"'))
def _(order, status):
    assert order.status == status


@then(parsers.cfparse('the payment status is "{payment_status}"'))
def _(order, payment_status):
    assert order.payment_status == payment_status


@then(parsers.cfparse('the change is rejected with "{fragment}"'))
def _(outcome, fragment):
    assert outcome["exc"] is not None, "Expected the status change to be rejected"
    assert fragment in str(outcome["exc"])


@then("the change is accepted")
def _(outcome):
    assert outcome["exc"] is None, f"Unexpected rejection: {outcome['exc']}"
