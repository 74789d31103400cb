"""Tests for ProcessPaymentCallback: the shopper's browser returning from 3DS."""

import json

from ordering.audit.audit_log import entries_for
from ordering.order.order import Order
from ordering.order.repository import ConcurrentOrderUpdate
from ordering.payment import callback as callback_module
from ordering.payment.callback import (
    CallbackResolution,
    ProcessPaymentCallback,
    callback_redirect_url,
)
from ordering.payment.webhook import ProcessChargeWebhook
from payments.gateway.port import ChargeDetails
from protean import current_domain


def _callback(charge_id=None, status=None, reference=None):
    return current_domain.process(
        ProcessPaymentCallback(charge_id=charge_id, status=status, reference=reference),
        asynchronous=False,
    )


def _reload(order):
    return current_domain.repository_for(Order).get(order.id)


def _gateway_charge(fake_gateway, charge_id, status, **kwargs):
    fake_gateway.add_charge(ChargeDetails(charge_id=charge_id, status=status, amount=15000.0, **kwargs))


class TestCallbackResolution:
    def test_missing_charge_id(self, order_factory, fake_gateway):
        order = order_factory(charge_id="chg_123")

        resolution = _callback(status="successful")

        assert resolution.error == "invalid_callback"
        assert fake_gateway.calls == []
        assert _reload(order).revision == order.revision

    def test_verification_failure(self, order_factory):
        order_factory(charge_id="chg_123")
        resolution = _callback(charge_id="chg_123", status="successful")
        assert resolution.error == "verification_failed"

    def test_verified_success_marks_order_paid(self, order_factory, fake_gateway, fake_email):
        order = order_factory(charge_id="chg_123")
        _gateway_charge(fake_gateway, "chg_123", "succeeded")

        resolution = _callback(charge_id="chg_123", status="successful")

        assert resolution == CallbackResolution(order_number=order.order_number, payment="success")
        stored = _reload(order)
        assert stored.status == "processing"
        assert stored.payment_status == "paid"
        assert stored.metadata.payment_type == "3ds_redirect"
        assert stored.metadata.callback_received_at is not None
        assert len(entries_for(order.id, "payment_received")) == 1
        assert len(fake_email.sent_of_kind("payment_successful")) == 1

    def test_query_status_is_not_trusted(self, order_factory, fake_gateway):
        order = order_factory(charge_id="chg_123")
        _gateway_charge(fake_gateway, "chg_123", "failed", processor_response={"type": "insufficient_funds"})

        resolution = _callback(charge_id="chg_123", status="successful")

        assert resolution.payment == "failed"
        stored = _reload(order)
        assert stored.payment_status == "failed"
        assert stored.metadata.failure_reason == "insufficient_funds"

    def test_non_object_processor_response_falls_back_to_status(self, order_factory, fake_gateway):
        order = order_factory(charge_id="chg_123")
        _gateway_charge(fake_gateway, "chg_123", "declined", processor_response="Do not honour")

        resolution = _callback(charge_id="chg_123")

        assert resolution.payment == "failed"
        assert _reload(order).metadata.failure_reason == "Payment was declined by bank"

    def test_oversized_processor_message_still_redirects(self, order_factory, fake_gateway):
        order = order_factory(charge_id="chg_123")
        _gateway_charge(fake_gateway, "chg_123", "failed", processor_response={"message": "x" * 600})

        resolution = _callback(charge_id="chg_123")

        assert resolution == CallbackResolution(order_number=order.order_number, payment="failed")
        assert _reload(order).metadata.failure_reason == "x" * 500

    def test_pending_charge_defers_to_webhook(self, order_factory, fake_gateway):
        order = order_factory(charge_id="chg_123")
        _gateway_charge(fake_gateway, "chg_123", "pending")

        resolution = _callback(charge_id="chg_123")

        assert resolution.payment == "pending"
        assert _reload(order).payment_status == "pending"

    def test_unknown_order(self, fake_gateway):
        _gateway_charge(fake_gateway, "chg_orphan", "succeeded")
        resolution = _callback(charge_id="chg_orphan")
        assert resolution.error == "order_not_found"


class TestWebhookAndCallbackTogether:
    def test_callback_after_webhook_sends_one_email(self, order_factory, fake_gateway, fake_email):
        order = order_factory(charge_id="chg_123")
        _gateway_charge(fake_gateway, "chg_123", "succeeded")

        current_domain.process(
            ProcessChargeWebhook(event="charge.completed", data=json.dumps({"id": "chg_123", "status": "succeeded"})),
            asynchronous=False,
        )
        resolution = _callback(charge_id="chg_123")

        assert resolution.payment == "success"
        stored = _reload(order)
        assert stored.payment_status == "paid"
        assert len(entries_for(order.id, "payment_received")) == 1
        assert len(fake_email.sent_of_kind("payment_successful")) == 1

    def test_failure_from_both_paths_is_announced_once(self, order_factory, fake_gateway, fake_email):
        order_factory(charge_id="chg_123")
        _gateway_charge(fake_gateway, "chg_123", "failed")

        _callback(charge_id="chg_123")
        current_domain.process(
            ProcessChargeWebhook(event="charge.completed", data=json.dumps({"id": "chg_123", "status": "failed"})),
            asynchronous=False,
        )

        assert len(fake_email.sent_of_kind("payment_failed")) == 1


class TestRedirectUrl:
    def test_success_page(self):
        url = callback_redirect_url(
            CallbackResolution(order_number="ORD20260114ABC123", payment="success"),
            "https://shop.example.com",
        )
        assert url == "https://shop.example.com/thank-you?order=ORD20260114ABC123&payment=success"

    def test_error_page(self):
        url = callback_redirect_url(CallbackResolution(error="invalid_callback"), "https://shop.example.com")
        assert url == "https://shop.example.com/checkout?error=invalid_callback"

    def test_missing_frontend_is_a_configuration_error(self):
        url = callback_redirect_url(CallbackResolution(order_number="ORD1", payment="success"), None)
        assert url == "/checkout?error=configuration_error"


class ContendedReconciler:
    def reconcile(self, notification):
        raise ConcurrentOrderUpdate("Order was modified concurrently")


class TestCallbackUnderContention:
    def test_gives_up_and_lands_on_pending(self, order_factory, fake_gateway, monkeypatch):
        order = order_factory(charge_id="chg_123")
        _gateway_charge(fake_gateway, "chg_123", "succeeded")
        monkeypatch.setattr(callback_module, "PaymentReconciler", ContendedReconciler)

        resolution = _callback(charge_id="chg_123")

        assert resolution == CallbackResolution(order_number=order.order_number, payment="pending")
        assert _reload(order).payment_status == "pending"
