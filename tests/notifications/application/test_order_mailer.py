"""Tests for sending order emails through the email channel."""

from types import SimpleNamespace

from notifications.channel import set_channel
from notifications.mailer import order_context, send_order_email
from notifications.templates.kinds import EmailKind


def _order(**overrides):
    fields = {
        "order_number": "ORD20260114ABC123",
        "customer_name": "Aline Uwase",
        "customer_email": "aline@example.com",
        "grand_total": 15000.0,
        "currency": "RWF",
        "items": [SimpleNamespace(sku="MUG-01", name="Coffee mug", quantity=3, row_total=15000.0)],
    }
    fields.update(overrides)
    return SimpleNamespace(**fields)


class ExplodingChannel:
    def send(self, to, subject, body, tags=None):
        raise ConnectionError("SMTP relay unreachable")


class TestOrderContext:
    def test_context_from_order(self):
        context = order_context(_order(grand_total=None), failure_reason="Declined")

        assert context["grand_total"] == 0.0
        assert context["failure_reason"] == "Declined"
        assert context["items"] == [{"sku": "MUG-01", "name": "Coffee mug", "quantity": 3, "row_total": 15000.0}]


class TestSendOrderEmail:
    def test_sends_to_customer_with_tags(self, fake_email):
        assert send_order_email(EmailKind.PAYMENT_SUCCESSFUL, _order()) is True

        [email] = fake_email.sent_emails
        assert email["to"] == "aline@example.com"
        assert email["subject"] == "Payment Successful - Order ORD20260114ABC123"
        assert email["tags"] == {"kind": "payment_successful", "order_number": "ORD20260114ABC123"}

    def test_kind_may_be_given_by_value(self, fake_email):
        assert send_order_email("payment_failed", _order(), failure_reason="Insufficient funds") is True
        assert "Reason: Insufficient funds" in fake_email.sent_of_kind("payment_failed")[0]["body"]

    def test_rejected_by_channel(self, fake_email):
        fake_email.configure(should_succeed=False)
        assert send_order_email(EmailKind.ORDER_CONFIRMATION, _order()) is False

    def test_channel_error_is_contained(self):
        set_channel(ExplodingChannel())
        assert send_order_email(EmailKind.ORDER_CONFIRMATION, _order()) is False
