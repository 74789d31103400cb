"""Tests for CancelTimedOutOrders: the payment timeout reaper."""

from datetime import UTC, datetime, timedelta

from ordering.audit.audit_log import entries_for
from ordering.order.order import Order
from ordering.order.timeout import CancelTimedOutOrders
from protean import current_domain


def _sweep(**kwargs):
    return current_domain.process(CancelTimedOutOrders(**kwargs), asynchronous=False)


def _reload(order):
    return current_domain.repository_for(Order).get(order.id)


class TestSweep:
    def test_stale_pending_order_is_cancelled(self, stale_order_factory, fake_email):
        order = stale_order_factory(45)

        report = _sweep(timeout_minutes=30)

        stored = _reload(order)
        assert report["cancelled"] == [order.order_number]
        assert report["failed"] == []
        assert stored.status == "cancelled"
        assert stored.payment_status == "failed"
        assert stored.cancelled_at is not None
        assert stored.metadata.failure_reason == "Auto-cancelled: Payment timeout (30 minutes) exceeded"

        audits = entries_for(order.id, "order_auto_cancelled")
        assert len(audits) == 1
        assert audits[0].details_dict == {"timeout_minutes": 30, "payment_status": "pending"}
        assert fake_email.sent_emails == []

    def test_stale_failed_order_is_cancelled(self, stale_order_factory):
        order = stale_order_factory(90, payment_status="failed")

        report = _sweep(timeout_minutes=30)

        assert report["cancelled"] == [order.order_number]
        assert _reload(order).status == "cancelled"

    def test_recent_orders_are_left_alone(self, stale_order_factory):
        order = stale_order_factory(5)

        report = _sweep(timeout_minutes=30)

        assert report["candidates"] == []
        assert _reload(order).status == "pending"

    def test_paid_and_processing_orders_are_never_touched(self, stale_order_factory):
        paid_pending = stale_order_factory(120, payment_status="paid")
        processing = stale_order_factory(120, status="processing", payment_status="paid")

        report = _sweep(timeout_minutes=30)

        assert report["candidates"] == []
        assert _reload(paid_pending).status == "pending"
        assert _reload(processing).status == "processing"

    def test_dry_run_lists_without_cancelling(self, stale_order_factory):
        order = stale_order_factory(45, grand_total=1234.0)

        report = _sweep(timeout_minutes=30, dry_run=True)

        assert report["dry_run"] is True
        assert report["cancelled"] == []
        assert report["candidates"][0]["order_number"] == order.order_number
        assert report["candidates"][0]["payment_status"] == "pending"
        assert report["candidates"][0]["grand_total"] == "RWF 1,234.00"
        assert _reload(order).status == "pending"

    def test_as_of_controls_the_cutoff(self, order_factory):
        order = order_factory()

        report = _sweep(timeout_minutes=30, as_of=datetime.now(UTC) + timedelta(hours=1))

        assert report["cancelled"] == [order.order_number]

    def test_sweep_is_repeatable(self, stale_order_factory):
        stale_order_factory(45)
        _sweep(timeout_minutes=30)

        second = _sweep(timeout_minutes=30)

        assert second["candidates"] == []
        assert second["cancelled"] == []
