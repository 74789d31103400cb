"""Payment successful template: sent once the gateway confirms payment."""

from notifications.templates.kinds import EmailKind


class PaymentSuccessfulTemplate:
    kind = EmailKind.PAYMENT_SUCCESSFUL

    @staticmethod
    def render(context: dict) -> dict:
        order_number = context.get("order_number", "N/A")
        return {
            "subject": f"Payment Successful - Order {order_number}",
            "body": (
                f"Hi {context.get('customer_name') or 'there'},\n\n"
                f"We've received your payment of {context.get('currency', '')} "
                f"{context.get('grand_total', 0.0):.2f} for order {order_number}.\n\n"
                "Your order is now being processed."
            ),
        }
