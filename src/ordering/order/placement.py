"""Order placement: turn an active cart into a pending order.

The cart's lines, totals and the customer's contact details are copied
onto the order, the cart is marked converted, and an order confirmation
email goes out (a failed email never undoes the order).
"""

import json

import structlog
from protean import handle
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain

from notifications.mailer import send_order_email
from notifications.templates.kinds import EmailKind
from ordering.audit.audit_log import record_audit
from ordering.cart.cart import ShoppingCart
from ordering.context import RequestContext
from ordering.domain import ordering
from ordering.order.order import Order, generate_order_number

logger = structlog.get_logger(__name__)

NO_ACTIVE_CART = "No active cart found. Please add items to your cart and try again."
MAX_ORDER_NUMBER_ATTEMPTS = 5


@ordering.command(part_of="Order")
class PlaceOrder:
    cart_id = Identifier(required=True)
    customer_email = String(required=True, max_length=255)
    tenant_id = Identifier()
    customer_id = Identifier()
    customer_name = String(max_length=255)
    customer_phone = String(max_length=50)
    payment_method = String(max_length=50)
    shipping_address = Text(required=True)  # JSON: address dict
    billing_address = Text()  # JSON: address dict, defaults to shipping


def _load_active_cart(command) -> ShoppingCart:
    try:
        cart = current_domain.repository_for(ShoppingCart).get(command.cart_id)
    except ObjectNotFoundError:
        raise ValidationError({"cart": [NO_ACTIVE_CART]})

    if command.tenant_id and cart.tenant_id and str(cart.tenant_id) != str(command.tenant_id):
        raise ValidationError({"cart": [NO_ACTIVE_CART]})
    if cart.customer_id and command.customer_id and str(cart.customer_id) != str(command.customer_id):
        raise ValidationError({"cart": [NO_ACTIVE_CART]})
    if cart.is_converted:
        raise ValidationError({"cart": [NO_ACTIVE_CART]})
    if not cart.items:
        raise ValidationError({"cart": ["Your cart is empty. Please add items before checkout."]})
    return cart


def _unique_order_number(repository) -> str:
    for _ in range(MAX_ORDER_NUMBER_ATTEMPTS):
        order_number = generate_order_number()
        if repository.find_by_order_number(order_number) is None:
            return order_number
    raise ValidationError({"order_number": ["Could not allocate an order number, please try again"]})


@ordering.command_handler(part_of=Order)
class PlaceOrderHandler:
    @handle(PlaceOrder)
    def place_order(self, command) -> Order:
        cart = _load_active_cart(command)
        repository = current_domain.repository_for(Order)
        order_number = _unique_order_number(repository)

        shipping_address = json.loads(command.shipping_address)
        billing_address = json.loads(command.billing_address) if command.billing_address else shipping_address

        order = Order.place(
            order_number=order_number,
            customer_email=command.customer_email,
            items_data=[item.snapshot() for item in cart.items],
            totals={
                "subtotal": cart.subtotal,
                "tax_amount": cart.tax_amount,
                "shipping_amount": cart.shipping_amount,
                "discount_amount": cart.discount_amount,
                "grand_total": cart.grand_total,
            },
            tenant_id=command.tenant_id or cart.tenant_id,
            cart_id=str(cart.id),
            customer_id=command.customer_id or cart.customer_id,
            customer_name=command.customer_name,
            customer_phone=command.customer_phone or shipping_address.get("phone"),
            shipping_address=shipping_address,
            billing_address=billing_address,
            payment_method=command.payment_method,
            currency=cart.currency,
        )
        cart.mark_converted(order_number)

        repository.save(order)
        current_domain.repository_for(ShoppingCart).add(cart)

        actor = RequestContext(tenant_id=command.tenant_id, actor_id=command.customer_id, actor_email=command.customer_email)
        record_audit(
            "order_placed",
            order,
            actor=actor,
            metadata={"order_number": order_number, "grand_total": order.grand_total, "items_count": len(order.items)},
            message=f"Order {order_number} placed by {command.customer_email}",
        )
        logger.info("Order placed", order_number=order_number, grand_total=order.grand_total, items=len(order.items))

        send_order_email(EmailKind.ORDER_CONFIRMATION, order)
        return order
