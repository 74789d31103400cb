"""Order confirmation template: sent when an order is placed."""

from notifications.templates.kinds import EmailKind


class OrderConfirmationTemplate:
    kind = EmailKind.ORDER_CONFIRMATION

    @staticmethod
    def render(context: dict) -> dict:
        order_number = context.get("order_number", "N/A")
        lines = [
            f"  {item['quantity']} x {item['name']} ({item['sku']}): {context.get('currency', '')} {item['row_total']:.2f}"
            for item in context.get("items", [])
        ]
        return {
            "subject": f"Order Confirmation - {order_number}",
            "body": (
                f"Hi {context.get('customer_name') or 'there'},\n\n"
                f"Thank you for your order {order_number}.\n\n"
                + ("\n".join(lines) + "\n\n" if lines else "")
                + f"Order Total: {context.get('currency', '')} {context.get('grand_total', 0.0):.2f}\n\n"
                "We'll email you again as soon as your payment is confirmed."
            ),
        }
