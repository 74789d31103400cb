"""Order status transition policy.

Pure decision logic: given an order's current status, its payment status
and a requested status, decide whether the move is legal and, if not,
explain why in words an admin can act on. Nothing here touches storage.

Payment status is authoritative. No order status change may contradict
it, and a rejected request is never quietly turned into another status.
"""

from dataclasses import dataclass

from ordering.order.order import OrderStatus, PaymentStatus

REFUND_STATES = frozenset({PaymentStatus.REFUNDED, PaymentStatus.PARTIALLY_REFUNDED})

PAYMENT_PENDING_MESSAGE = (
    "Sorry, the order status can't be updated right now. Payment is still pending. "
    "Please wait for the customer to complete payment, or cancel the order if payment has failed."
)
PAYMENT_FAILED_MESSAGE = (
    "Sorry, the order status can't be updated right now. Payment has failed. "
    "You can cancel this order or wait for the customer to retry payment."
)
CANCEL_PAID_MESSAGE = (
    "Sorry, you can't cancel this order right now because payment has already been received. "
    "Please process a refund through the payment gateway first, then you can cancel the order."
)


@dataclass(frozen=True)
class TransitionDecision:
    allowed: bool
    reason: str | None = None


ALLOWED = TransitionDecision(allowed=True)


def _deny(reason: str) -> TransitionDecision:
    return TransitionDecision(allowed=False, reason=reason)


def reachable_statuses(current: OrderStatus, payment: PaymentStatus) -> list[OrderStatus]:
    """Statuses an order may move to from `current`, before business rules apply."""
    if current == OrderStatus.PENDING:
        if payment == PaymentStatus.PAID:
            return [OrderStatus.PROCESSING]
        if payment == PaymentStatus.FAILED:
            return [OrderStatus.CANCELLED]
        return []

    if current == OrderStatus.PROCESSING:
        return [OrderStatus.COMPLETE, OrderStatus.ON_HOLD, OrderStatus.CANCELLED, OrderStatus.REFUNDED]

    if current == OrderStatus.ON_HOLD:
        reachable = [OrderStatus.PROCESSING] if payment == PaymentStatus.PAID else []
        return reachable + [OrderStatus.CANCELLED]

    # complete, cancelled, refunded are final
    return []


def unreachable_reason(
    current: OrderStatus,
    requested: OrderStatus,
    payment: PaymentStatus,
    reachable: list[OrderStatus],
) -> str:
    if current == OrderStatus.PENDING and requested == OrderStatus.PROCESSING:
        if payment == PaymentStatus.PENDING:
            return PAYMENT_PENDING_MESSAGE
        if payment == PaymentStatus.FAILED:
            return PAYMENT_FAILED_MESSAGE

    if current == OrderStatus.PENDING and requested == OrderStatus.COMPLETE:
        return (
            "Sorry, you can't mark this order as complete because it's still pending payment. "
            "Orders must be paid and in 'processing' status before they can be completed."
        )

    if current == OrderStatus.COMPLETE:
        return (
            f"Sorry, you can't change a completed order back to '{requested.value}'. "
            "Completed orders are final."
        )

    if current == OrderStatus.CANCELLED:
        return "Sorry, you can't change a cancelled order. Cancelled orders are final."

    if current == OrderStatus.REFUNDED:
        return "Sorry, you can't change a refunded order. Refunded orders are final."

    valid = ", ".join(status.value for status in reachable) or "none"
    return (
        f"Sorry, you can't change the order status from '{current.value}' to '{requested.value}' right now. "
        f"Payment status is '{payment.value}'. Valid status changes from '{current.value}' are: {valid}."
    )


def business_rule_violation(
    current: OrderStatus,
    requested: OrderStatus,
    payment: PaymentStatus,
) -> str | None:
    """Re-check payment consistency for a reachable target. Returns the reason or None."""
    if requested == OrderStatus.PROCESSING and payment != PaymentStatus.PAID:
        if payment == PaymentStatus.PENDING:
            return PAYMENT_PENDING_MESSAGE
        if payment == PaymentStatus.FAILED:
            return PAYMENT_FAILED_MESSAGE
        return (
            f"Sorry, the order status can't be updated right now. Payment status is '{payment.value}'. "
            "Payment must be completed (paid) before the order can be moved to processing."
        )

    if requested == OrderStatus.CANCELLED and payment == PaymentStatus.PAID:
        return CANCEL_PAID_MESSAGE

    if requested == OrderStatus.COMPLETE and current != OrderStatus.PROCESSING:
        return (
            "Sorry, you can only mark an order as 'complete' when it's in 'processing' status. "
            f"Current order status is '{current.value}'. "
            "Please ensure the order has been paid and is being processed first."
        )

    if requested == OrderStatus.COMPLETE and payment != PaymentStatus.PAID:
        return (
            "Sorry, you can't mark this order as complete because payment hasn't been received yet. "
            f"Payment status is '{payment.value}'. Please wait for payment to be completed first."
        )

    if requested == OrderStatus.REFUNDED and payment not in REFUND_STATES:
        return (
            "Sorry, you can't set the order status to 'refunded' because the refund hasn't been processed yet. "
            f"Payment status is '{payment.value}'. Please process the refund through the payment gateway "
            "first, then the order status will be updated automatically."
        )

    return None


def validate_transition(current, requested, payment) -> TransitionDecision:
    """Decide whether an order in (`current`, `payment`) may move to `requested`.

    Accepts enum members or their string values.
    """
    current = OrderStatus(current)
    requested = OrderStatus(requested)
    payment = PaymentStatus(payment)

    if requested == current:
        return ALLOWED

    reachable = reachable_statuses(current, payment)
    if requested not in reachable:
        return _deny(unreachable_reason(current, requested, payment, reachable))

    violation = business_rule_violation(current, requested, payment)
    if violation:
        return _deny(violation)

    return ALLOWED


def validate_order_transition(order, requested) -> TransitionDecision:
    return validate_transition(order.status, requested, order.payment_status)
