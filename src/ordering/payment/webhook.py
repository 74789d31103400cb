"""Gateway webhook: command and handler for server-to-server charge events.

The HTTP route verifies the signature and always acknowledges a verified
delivery; this handler only decides what the event means for the order.
"""

import json

import structlog
from protean import handle
from protean.fields import String, Text

from ordering.domain import ordering
from ordering.order.order import Order
from ordering.payment.reconciliation import WEBHOOK, ChargeNotification, PaymentReconciler

logger = structlog.get_logger(__name__)

CHARGE_COMPLETED = "charge.completed"


@ordering.command(part_of="Order")
class ProcessChargeWebhook:
    event = String(required=True, max_length=100)
    data = Text()  # JSON object as delivered by the gateway


def notification_from_webhook(data: dict) -> ChargeNotification:
    payment_method = data.get("payment_method")
    amount = data.get("amount")
    return ChargeNotification(
        charge_id=data["id"],
        status=data.get("status"),
        source=WEBHOOK,
        reference=data.get("reference") or data.get("tx_ref"),
        amount=float(amount) if amount is not None else None,
        payment_type=payment_method.get("type") if isinstance(payment_method, dict) else None,
        processor_response=data.get("processor_response") if isinstance(data.get("processor_response"), dict) else None,
    )


@ordering.command_handler(part_of=Order)
class ChargeWebhookHandler:
    @handle(ProcessChargeWebhook)
    def process_charge_webhook(self, command):
        data = json.loads(command.data) if command.data else {}
        if not isinstance(data, dict):
            data = {}

        logger.info(
            "Gateway webhook received",
            webhook_event=command.event,
            charge_id=data.get("id"),
            reference=data.get("reference") or data.get("tx_ref"),
        )

        if command.event != CHARGE_COMPLETED:
            logger.info("Unhandled gateway webhook event", webhook_event=command.event)
            return None

        if not data.get("id"):
            logger.error("Gateway webhook missing charge id", data=data)
            return None

        return PaymentReconciler().reconcile(notification_from_webhook(data))
