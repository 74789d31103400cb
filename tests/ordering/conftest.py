"""Order builders shared by the ordering test tiers."""

from datetime import UTC, datetime, timedelta

import pytest
from ordering.order.order import Order, PaymentStatus
from protean import current_domain

SHIPPING_ADDRESS = {
    "full_name": "Aline Uwase",
    "street": "KG 11 Ave",
    "city": "Kigali",
    "country": "Rwanda",
    "phone": "+250781234567",
}

_counter = 0


def build_order(
    status="pending",
    payment_status="pending",
    charge_id=None,
    order_number=None,
    created_at=None,
    grand_total=15000.0,
    tenant_id="store-001",
) -> Order:
    """Place an order and force it into the given (status, payment_status) pair."""
    global _counter
    _counter += 1
    order = Order.place(
        order_number=order_number or f"ORD20260114T{_counter:05d}",
        customer_email="aline@example.com",
        customer_name="Aline Uwase",
        tenant_id=tenant_id,
        items_data=[
            {
                "sku": "MUG-01",
                "name": "Coffee mug",
                "quantity": 3,
                "unit_price": 5000.0,
                "row_total": 15000.0,
            }
        ],
        totals={"subtotal": grand_total, "grand_total": grand_total},
        shipping_address=SHIPPING_ADDRESS,
        payment_method="card",
    )
    order.status = status
    order.payment_status = payment_status
    if payment_status == PaymentStatus.PAID.value:
        order.paid_at = datetime.now(UTC)
    if charge_id:
        order.gateway_charge_id = charge_id
        order.gateway_transaction_id = charge_id
    if created_at is not None:
        order.created_at = created_at
    return order


def save_order(order: Order) -> Order:
    current_domain.repository_for(Order).save(order)
    return reload(order)


def reload(order: Order) -> Order:
    return current_domain.repository_for(Order).get(order.id)


@pytest.fixture
def order_factory():
    """Build and persist an order: order_factory(status=..., payment_status=..., charge_id=...)."""

    def _factory(**kwargs) -> Order:
        return save_order(build_order(**kwargs))

    return _factory


@pytest.fixture
def stale_order_factory(order_factory):
    """Persist an order created `minutes` ago."""

    def _factory(minutes, **kwargs) -> Order:
        return order_factory(created_at=datetime.now(UTC) - timedelta(minutes=minutes), **kwargs)

    return _factory
