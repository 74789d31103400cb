"""Order status transition executor.

Applies transitions the policy allows and persists them through the
order repository's guarded write. Two entry points:

- `transition()` for explicit requests (admin updates, the timeout reaper)
- `handle_payment_status_change()` for payment results, which records the
  gateway's verdict and then follows a small set of automatic moves

Audit entries are the caller's job; this module only logs.
"""

import structlog
from protean.exceptions import ValidationError
from protean.utils.globals import current_domain

from ordering.order.order import Order, OrderStatus, PaymentStatus
from ordering.order.policy import REFUND_STATES, validate_order_transition

logger = structlog.get_logger(__name__)


class TransitionRejected(ValidationError):
    """The policy refused a status change. `reason` is safe to show to an admin."""

    def __init__(self, reason: str):
        super().__init__({"status": [reason]})
        self.reason = reason

    def __str__(self) -> str:
        return self.reason


class OrderStatusTransitions:
    def __init__(self, repository=None):
        self.repository = repository or current_domain.repository_for(Order)

    def transition(self, order: Order, new_status, reason: str | None = None) -> Order:
        decision = validate_order_transition(order, new_status)
        if not decision.allowed:
            raise TransitionRejected(decision.reason)

        target = OrderStatus(new_status)
        old_status = order.status
        if target.value == old_status:
            return order

        order.enter_status(target, reason)
        self.repository.save(order)

        logger.info(
            "Order status transition executed",
            order_number=order.order_number,
            old_status=old_status,
            new_status=target.value,
            payment_status=order.payment_status,
            reason=reason,
        )
        return order

    def handle_payment_status_change(self, order: Order, new_payment_status) -> Order:
        """Record a payment result, then apply the automatic status moves.

        The order is saved at the end even when no status move happened, so
        the payment status itself is always durable.
        """
        new_payment = PaymentStatus(new_payment_status)
        order.record_payment_status(new_payment)
        if new_payment == PaymentStatus.PAID:
            order.stamp_paid()

        status = OrderStatus(order.status)
        if new_payment == PaymentStatus.PAID and status == OrderStatus.PENDING:
            self.transition(order, OrderStatus.PROCESSING, "Payment verified - automatic transition")
            logger.info("Order automatically moved to processing after payment", order_number=order.order_number)
        elif new_payment == PaymentStatus.FAILED and status == OrderStatus.PENDING:
            logger.info("Payment failed - order remains pending for retry", order_number=order.order_number)
        elif new_payment in REFUND_STATES and status == OrderStatus.PROCESSING:
            if new_payment == PaymentStatus.REFUNDED:
                self.transition(order, OrderStatus.REFUNDED, "Payment refunded - automatic transition")
            elif status != OrderStatus.ON_HOLD:
                self.transition(order, OrderStatus.ON_HOLD, "Partial refund processed - requires admin review")

        self.repository.save(order)
        return order


def transition(order: Order, new_status, reason: str | None = None) -> Order:
    return OrderStatusTransitions().transition(order, new_status, reason)


def handle_payment_status_change(order: Order, new_payment_status) -> Order:
    return OrderStatusTransitions().handle_payment_status_change(order, new_payment_status)
