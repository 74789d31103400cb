"""Order aggregate (CQRS): the core of the ordering domain.

An order carries two independent axes: the fulfilment `status` and the
money-side `payment_status`. Payment status mirrors what the gateway
reports; order status only moves through the transition executor
(`ordering.order.transitions`) which consults the policy in
`ordering.order.policy`.

Status lifecycle:
    pending → processing (payment paid) → complete
    pending → cancelled (payment failed or timed out)
    processing ⇄ on_hold, processing → refunded
    complete, cancelled, refunded are final.

Every write goes through `OrderRepository.save`, which compares the
stored `revision` with the one the caller loaded and rejects stale writes.
"""

import secrets
import string
from datetime import UTC, datetime
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import (
    DateTime,
    Float,
    HasMany,
    Identifier,
    Integer,
    String,
    ValueObject,
)

from ordering.domain import ordering
from ordering.order.events import (
    OrderPlaced,
    OrderStatusChanged,
    PaymentInitiated,
    PaymentNoticeDue,
    PaymentStatusChanged,
)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETE = "complete"
    CANCELLED = "cancelled"
    ON_HOLD = "on_hold"
    REFUNDED = "refunded"


class PaymentStatus(Enum):
    PENDING = "pending"
    AUTHORIZED = "authorized"
    PAID = "paid"
    PARTIALLY_REFUNDED = "partially_refunded"
    REFUNDED = "refunded"
    FAILED = "failed"


TERMINAL_STATUSES = frozenset({OrderStatus.COMPLETE, OrderStatus.CANCELLED, OrderStatus.REFUNDED})

ORDER_NUMBER_PREFIX = "ORD"
_ORDER_NUMBER_ALPHABET = string.ascii_uppercase + string.digits


def generate_order_number(now: datetime | None = None) -> str:
    """ORD + YYYYMMDD + six random uppercase letters/digits, e.g. ORD20260114K3PZ9Q."""
    now = now or datetime.now(UTC)
    suffix = "".join(secrets.choice(_ORDER_NUMBER_ALPHABET) for _ in range(6))
    return f"{ORDER_NUMBER_PREFIX}{now:%Y%m%d}{suffix}"


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@ordering.value_object(part_of="Order")
class Address:
    """A shipping or billing address copied onto the order at placement.

    The snapshot never follows later edits to the customer's address book.
    """

    full_name = String(max_length=255)
    street = String(required=True, max_length=255)
    city = String(required=True, max_length=100)
    state = String(max_length=100)
    postal_code = String(max_length=20)
    country = String(required=True, max_length=100)
    phone = String(max_length=50)


PAYMENT_METADATA_SCHEMA_VERSION = 1
PAYMENT_METADATA_FIELDS = (
    "gateway_status",
    "tx_ref",
    "next_action_type",
    "payment_type",
    "failure_reason",
    "failure_code",
    "payment_initiated_at",
    "webhook_received_at",
    "callback_received_at",
    "payment_failed_at",
    "success_notified_at",
    "failure_notified_charge_id",
)


@ordering.value_object(part_of="Order")
class PaymentMetadata:
    """Gateway diagnostics kept alongside the order.

    Updated only through `merged()`, one named field at a time, so two
    writers can never clobber each other's keys by accident.
    """

    schema_version = Integer(default=PAYMENT_METADATA_SCHEMA_VERSION)
    gateway_status = String(max_length=50)
    tx_ref = String(max_length=100)
    next_action_type = String(max_length=50)
    payment_type = String(max_length=50)
    failure_reason = String(max_length=500)
    failure_code = String(max_length=100)
    payment_initiated_at = DateTime()
    webhook_received_at = DateTime()
    callback_received_at = DateTime()
    payment_failed_at = DateTime()
    success_notified_at = DateTime()
    failure_notified_charge_id = String(max_length=255)

    def merged(self, **changes) -> "PaymentMetadata":
        unknown = sorted(set(changes) - set(PAYMENT_METADATA_FIELDS))
        if unknown:
            raise ValidationError({"payment_metadata": [f"Unknown payment metadata fields: {', '.join(unknown)}"]})

        values = {name: getattr(self, name) for name in PAYMENT_METADATA_FIELDS}
        values.update({name: value for name, value in changes.items() if value is not None})
        return PaymentMetadata(schema_version=PAYMENT_METADATA_SCHEMA_VERSION, **values)


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@ordering.entity(part_of="Order")
class OrderItem:
    """A product line copied from the cart when the order was placed. Never updated."""

    product_id = Identifier()
    sku = String(required=True, max_length=100)
    name = String(required=True, max_length=255)
    quantity = Integer(required=True, min_value=1)
    unit_price = Float(required=True, min_value=0.0)
    row_total = Float(required=True, min_value=0.0)
    tax_amount = Float(default=0.0)
    discount_amount = Float(default=0.0)


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@ordering.aggregate
class Order:
    tenant_id = Identifier()
    order_number = String(required=True, max_length=50, unique=True)
    cart_id = Identifier()
    customer_id = Identifier()
    customer_email = String(required=True, max_length=255)
    customer_name = String(max_length=255)
    customer_phone = String(max_length=50)

    status = String(choices=OrderStatus, default=OrderStatus.PENDING.value)
    payment_status = String(choices=PaymentStatus, default=PaymentStatus.PENDING.value)

    items = HasMany(OrderItem)
    shipping_address = ValueObject(Address)
    billing_address = ValueObject(Address)

    subtotal = Float(default=0.0)
    tax_amount = Float(default=0.0)
    shipping_amount = Float(default=0.0)
    discount_amount = Float(default=0.0)
    grand_total = Float(default=0.0)
    currency = String(max_length=3, default="RWF")

    payment_method = String(max_length=50)
    gateway_charge_id = String(max_length=255)
    gateway_transaction_id = String(max_length=255)
    payment_metadata = ValueObject(PaymentMetadata)

    paid_at = DateTime()
    completed_at = DateTime()
    cancelled_at = DateTime()
    created_at = DateTime()
    updated_at = DateTime()

    revision = Integer(default=0)

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def place(
        cls,
        order_number,
        customer_email,
        items_data,
        totals,
        tenant_id=None,
        cart_id=None,
        customer_id=None,
        customer_name=None,
        customer_phone=None,
        shipping_address=None,
        billing_address=None,
        payment_method=None,
        currency="RWF",
    ):
        """Create a pending order from a cart snapshot.

        Args:
            items_data: List of dicts with product_id, sku, name, quantity,
                        unit_price, row_total, tax_amount, discount_amount.
            totals: Dict with subtotal, tax_amount, shipping_amount,
                    discount_amount, grand_total.
            shipping_address / billing_address: Address dicts, copied as-is.
        """
        now = datetime.now(UTC)
        order = cls(
            tenant_id=tenant_id,
            order_number=order_number,
            cart_id=cart_id,
            customer_id=customer_id,
            customer_email=customer_email,
            customer_name=customer_name,
            customer_phone=customer_phone,
            status=OrderStatus.PENDING.value,
            payment_status=PaymentStatus.PENDING.value,
            items=[OrderItem(**item) for item in items_data],
            shipping_address=Address(**shipping_address) if shipping_address else None,
            billing_address=Address(**(billing_address or shipping_address)) if shipping_address else None,
            subtotal=totals.get("subtotal", 0.0),
            tax_amount=totals.get("tax_amount", 0.0),
            shipping_amount=totals.get("shipping_amount", 0.0),
            discount_amount=totals.get("discount_amount", 0.0),
            grand_total=totals.get("grand_total", 0.0),
            currency=currency,
            payment_method=payment_method,
            payment_metadata=PaymentMetadata(),
            created_at=now,
            updated_at=now,
        )
        order.raise_(
            OrderPlaced(
                order_id=str(order.id),
                order_number=order_number,
                tenant_id=str(tenant_id) if tenant_id else None,
                cart_id=str(cart_id) if cart_id else None,
                grand_total=order.grand_total,
                currency=currency,
                placed_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    @property
    def is_paid(self) -> bool:
        return self.payment_status == PaymentStatus.PAID.value

    @property
    def metadata(self) -> PaymentMetadata:
        return self.payment_metadata or PaymentMetadata()

    # -------------------------------------------------------------------
    # Mutators (called by the transition executor and reconciliation)
    # -------------------------------------------------------------------
    def enter_status(self, new_status: OrderStatus, reason: str | None = None):
        """Move to `new_status`. The caller has already cleared it with the policy."""
        old_status = self.status
        if old_status == new_status.value:
            return

        now = datetime.now(UTC)
        self.status = new_status.value
        if new_status == OrderStatus.COMPLETE and self.completed_at is None:
            self.completed_at = now
        if new_status == OrderStatus.CANCELLED and self.cancelled_at is None:
            self.cancelled_at = now
        self.updated_at = now

        self.raise_(
            OrderStatusChanged(
                order_id=str(self.id),
                order_number=self.order_number,
                old_status=old_status,
                new_status=new_status.value,
                payment_status=self.payment_status,
                reason=(reason or "")[:500],
                changed_at=now,
            )
        )

    def record_payment_status(self, new_payment_status: PaymentStatus):
        """Set payment status to what the gateway reported. Not policy-gated."""
        old_payment_status = self.payment_status
        if old_payment_status == new_payment_status.value:
            return

        now = datetime.now(UTC)
        self.payment_status = new_payment_status.value
        self.updated_at = now

        self.raise_(
            PaymentStatusChanged(
                order_id=str(self.id),
                order_number=self.order_number,
                old_payment_status=old_payment_status,
                new_payment_status=new_payment_status.value,
                changed_at=now,
            )
        )

    def stamp_paid(self, at: datetime | None = None) -> bool:
        """Set paid_at unless it is already set. Returns True when stamped."""
        if self.paid_at is not None:
            return False
        self.paid_at = at or datetime.now(UTC)
        return True

    def merge_payment_metadata(self, **fields):
        self.payment_metadata = self.metadata.merged(**fields)
        self.updated_at = datetime.now(UTC)

    def claim_payment_notice(self, kind: str, charge_id: str | None = None, failure_reason: str | None = None):
        """Owe the shopper a payment email, sent once this change commits."""
        self.raise_(
            PaymentNoticeDue(
                order_id=str(self.id),
                order_number=self.order_number,
                kind=kind,
                charge_id=charge_id,
                failure_reason=failure_reason,
                due_at=datetime.now(UTC),
            )
        )

    def attach_charge(self, charge_id, transaction_id=None, payment_method=None, **metadata):
        """Store the gateway correlation ids for a freshly created charge."""
        now = datetime.now(UTC)
        self.gateway_charge_id = charge_id
        self.gateway_transaction_id = transaction_id or charge_id
        if payment_method:
            self.payment_method = payment_method
        self.payment_metadata = self.metadata.merged(payment_initiated_at=now, **metadata)
        self.updated_at = now

        self.raise_(
            PaymentInitiated(
                order_id=str(self.id),
                order_number=self.order_number,
                charge_id=charge_id,
                payment_method=self.payment_method,
                initiated_at=now,
            )
        )
