"""Payment emails, sent after the order change that owes them has committed.

Reconciliation claims the notification marker and raises `PaymentNoticeDue`
in one write. Protean publishes the event only when that write commits, so
a delivery that loses a race never emails the shopper.
"""

from protean import handle
from protean.utils.globals import current_domain

from notifications.mailer import send_order_email
from ordering.domain import ordering
from ordering.order.events import PaymentNoticeDue
from ordering.order.order import Order


@ordering.event_handler(part_of=Order)
class PaymentNoticeHandler:
    @handle(PaymentNoticeDue)
    def send_payment_notice(self, event: PaymentNoticeDue) -> None:
        order = current_domain.repository_for(Order).get(event.order_id)
        send_order_email(event.kind, order, failure_reason=event.failure_reason)
