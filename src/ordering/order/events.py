"""Domain events for the Order aggregate.

Events are versioned, immutable facts. They land in the event store next
to every committed order change and give operators a timeline of status
and payment movements without reading the audit log.
"""

from protean.fields import DateTime, Float, Identifier, String

from ordering.domain import ordering


@ordering.event(part_of="Order")
class OrderPlaced:
    """A cart was converted into a new order awaiting payment."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    tenant_id = Identifier()
    cart_id = Identifier()
    grand_total = Float(required=True)
    currency = String(max_length=3)
    placed_at = DateTime(required=True)


@ordering.event(part_of="Order")
class PaymentInitiated:
    """A charge was created at the payment gateway for this order."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    charge_id = String(required=True)
    payment_method = String()
    initiated_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderStatusChanged:
    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    old_status = String(required=True)
    new_status = String(required=True)
    payment_status = String(required=True)
    reason = String(max_length=500)
    changed_at = DateTime(required=True)


@ordering.event(part_of="Order")
class PaymentStatusChanged:
    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    old_payment_status = String(required=True)
    new_payment_status = String(required=True)
    changed_at = DateTime(required=True)


@ordering.event(part_of="Order")
class PaymentNoticeDue:
    """The shopper is owed an email about a payment outcome.

    Raised in the same write that claims the notification marker, so the
    email goes out only if that write commits.
    """

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    kind = String(required=True, max_length=50)
    charge_id = String(max_length=255)
    failure_reason = String(max_length=500)
    due_at = DateTime(required=True)
