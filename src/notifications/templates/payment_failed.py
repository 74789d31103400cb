"""Payment failed template: sent when the gateway reports a failed charge."""

from notifications.templates.kinds import EmailKind

DEFAULT_FAILURE_REASON = "Payment could not be processed"


class PaymentFailedTemplate:
    kind = EmailKind.PAYMENT_FAILED

    @staticmethod
    def render(context: dict) -> dict:
        order_number = context.get("order_number", "N/A")
        reason = context.get("failure_reason") or DEFAULT_FAILURE_REASON
        return {
            "subject": f"Payment Failed - Order {order_number}",
            "body": (
                f"Hi {context.get('customer_name') or 'there'},\n\n"
                f"We couldn't complete the payment of {context.get('currency', '')} "
                f"{context.get('grand_total', 0.0):.2f} for order {order_number}.\n\n"
                f"Reason: {reason}\n\n"
                "Your order is still open. You can try again or use a different payment method."
            ),
        }
