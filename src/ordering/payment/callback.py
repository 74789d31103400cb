"""Browser redirect callback: verify the charge, reconcile, pick a landing page.

The shopper's browser comes back here after 3DS. The charge is verified
with the gateway by id (query parameters are never trusted for the
outcome), then reconciled exactly like a webhook.
"""

from dataclasses import dataclass
from urllib.parse import urlencode

import structlog
from protean import handle
from protean.fields import String

from ordering.domain import ordering
from ordering.order.order import Order
from ordering.order.repository import ConcurrentOrderUpdate
from ordering.payment.correlation import find_order
from ordering.payment.outcome import redirect_outcome
from ordering.payment.reconciliation import CALLBACK, ChargeNotification, PaymentReconciler
from payments.gateway import get_gateway

logger = structlog.get_logger(__name__)

INVALID_CALLBACK = "invalid_callback"
VERIFICATION_FAILED = "verification_failed"
ORDER_NOT_FOUND = "order_not_found"
CONFIGURATION_ERROR = "configuration_error"
PENDING_PAYMENT = "pending"


@ordering.command(part_of="Order")
class ProcessPaymentCallback:
    charge_id = String(max_length=255)
    status = String(max_length=50)
    reference = String(max_length=255)


@dataclass(frozen=True)
class CallbackResolution:
    """Where the shopper should land: an error code, or an order and payment outcome."""

    error: str | None = None
    order_number: str | None = None
    payment: str = "unknown"


def callback_redirect_url(resolution: CallbackResolution, frontend_base: str | None) -> str:
    base = frontend_base or ""
    if resolution.error:
        return f"{base}/checkout?{urlencode({'error': resolution.error})}"
    if not frontend_base:
        logger.error("Frontend URL not configured", order_number=resolution.order_number)
        return f"/checkout?{urlencode({'error': CONFIGURATION_ERROR})}"
    return f"{base}/thank-you?{urlencode({'order': resolution.order_number, 'payment': resolution.payment})}"


@ordering.command_handler(part_of=Order)
class PaymentCallbackHandler:
    @handle(ProcessPaymentCallback)
    def process_payment_callback(self, command) -> CallbackResolution:
        if not command.charge_id:
            logger.warning("Payment callback missing charge_id", reference=command.reference)
            return CallbackResolution(error=INVALID_CALLBACK)

        verification = get_gateway().verify_charge(command.charge_id)
        if not verification.success or verification.charge is None:
            logger.error(
                "Gateway charge verification failed",
                charge_id=command.charge_id,
                message=verification.message,
            )
            return CallbackResolution(error=VERIFICATION_FAILED)

        charge = verification.charge
        processor_response = charge.processor_response if isinstance(charge.processor_response, dict) else None
        logger.info(
            "Payment verification successful",
            charge_id=command.charge_id,
            status=charge.status,
            amount=charge.amount,
        )

        notification = ChargeNotification(
            charge_id=command.charge_id,
            status=charge.status,
            source=CALLBACK,
            reference=command.reference or charge.reference,
            transaction_id=charge.charge_id,
            amount=charge.amount,
            payment_type="3ds_redirect",
            processor_response=processor_response,
        )
        try:
            result = PaymentReconciler().reconcile(notification)
        except ConcurrentOrderUpdate:
            # The webhook settles the charge; the shopper sees it as still in flight
            order = find_order(notification.charge_id, notification.reference)
            return CallbackResolution(order_number=order.order_number, payment=PENDING_PAYMENT)
        if not result.order_found:
            return CallbackResolution(error=ORDER_NOT_FOUND)

        return CallbackResolution(order_number=result.order_number, payment=redirect_outcome(result.outcome))
