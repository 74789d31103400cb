"""Order mailer: renders an order email and hands it to the email channel.

Sending is best effort. Any failure is logged and reported as False so a
payment reconciliation or order placement never aborts because of email.
"""

import structlog

from notifications.channel import get_channel
from notifications.templates import get_template
from notifications.templates.kinds import EmailKind

logger = structlog.get_logger(__name__)


def order_context(order, failure_reason=None) -> dict:
    return {
        "order_number": order.order_number,
        "customer_name": order.customer_name,
        "grand_total": order.grand_total or 0.0,
        "currency": order.currency,
        "failure_reason": failure_reason,
        "items": [
            {
                "sku": item.sku,
                "name": item.name,
                "quantity": item.quantity,
                "row_total": item.row_total or 0.0,
            }
            for item in order.items
        ],
    }


def send_order_email(kind, order, failure_reason: str | None = None) -> bool:
    """Send the `kind` email for `order`. Returns True when the channel accepted it."""
    kind = EmailKind(kind)
    try:
        content = get_template(kind).render(order_context(order, failure_reason))
        result = get_channel().send(
            to=order.customer_email,
            subject=content["subject"],
            body=content["body"],
            tags={"kind": kind.value, "order_number": order.order_number},
        )
    except Exception as exc:
        logger.error(
            "Order email could not be sent",
            kind=kind.value,
            order_number=order.order_number,
            error=str(exc),
        )
        return False

    if result.get("status") != "sent":
        logger.warning(
            "Order email rejected by channel",
            kind=kind.value,
            order_number=order.order_number,
            error=result.get("error"),
        )
        return False

    logger.info("Order email sent", kind=kind.value, order_number=order.order_number, message_id=result["message_id"])
    return True
