"""Payment initialization: command and handler.

Creates the gateway charge for a pending order and stores the charge id
on the order so later webhooks and redirects can find it.
"""

import time

import structlog
from protean import handle
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain

from ordering.domain import ordering
from ordering.order.order import Order
from ordering.payment.correlation import build_reference
from payments.gateway import get_gateway
from payments.gateway.port import CardCiphertext, PaymentRequest

logger = structlog.get_logger(__name__)


@ordering.command(part_of="Order")
class InitializePayment:
    order_number = String(required=True, max_length=50)
    tenant_id = Identifier()
    customer_id = Identifier()
    payment_method = String(max_length=50)
    customer_phone = String(max_length=50)
    mobile_number = String(max_length=50)
    encrypted_card_number = Text()
    encrypted_expiry_month = Text()
    encrypted_expiry_year = Text()
    encrypted_cvv = Text()
    nonce = Text()


def _owned_order(repository, command) -> Order:
    order = repository.find_by_order_number(command.order_number)
    if order is None:
        raise ObjectNotFoundError(f"Order {command.order_number} not found")
    if command.tenant_id and order.tenant_id and str(order.tenant_id) != str(command.tenant_id):
        raise ObjectNotFoundError(f"Order {command.order_number} not found")
    if command.customer_id and order.customer_id and str(order.customer_id) != str(command.customer_id):
        raise ObjectNotFoundError(f"Order {command.order_number} not found")
    return order


@ordering.command_handler(part_of=Order)
class InitializePaymentHandler:
    @handle(InitializePayment)
    def initialize_payment(self, command) -> dict:
        repository = current_domain.repository_for(Order)
        order = _owned_order(repository, command)

        if order.is_paid:
            raise ValidationError({"order": ["This order has already been paid"]})

        payment_method = command.payment_method or order.payment_method
        if not payment_method:
            raise ValidationError({"payment_method": ["Please choose a payment method"]})

        reference = build_reference(order.order_number, int(time.time()))
        phone = command.customer_phone or (order.shipping_address.phone if order.shipping_address else None)
        request = PaymentRequest(
            order_id=str(order.id),
            order_number=order.order_number,
            reference=reference,
            amount=float(order.grand_total),
            currency=order.currency,
            customer_email=order.customer_email,
            customer_name=order.customer_name or "",
            customer_phone=phone or order.customer_phone or "",
            payment_method=payment_method,
            mobile_number=command.mobile_number,
            card=CardCiphertext(
                encrypted_card_number=command.encrypted_card_number,
                encrypted_expiry_month=command.encrypted_expiry_month,
                encrypted_expiry_year=command.encrypted_expiry_year,
                encrypted_cvv=command.encrypted_cvv,
                nonce=command.nonce,
            )
            if command.encrypted_card_number
            else None,
        )

        result = get_gateway().initialize_payment(request)
        if not result.success:
            logger.error(
                "Payment initialization failed",
                order_number=order.order_number,
                payment_method=payment_method,
                error=result.message,
            )
            raise ValidationError({"payment": [result.message or "Failed to initialize payment"]})

        order.attach_charge(
            result.charge_id,
            payment_method=payment_method,
            gateway_status=result.status or "pending",
            tx_ref=reference,
            next_action_type=result.next_action_type,
        )
        repository.save(order)

        logger.info(
            "Payment initialized for order",
            order_number=order.order_number,
            charge_id=result.charge_id,
            next_action_type=result.next_action_type,
        )
        return {
            "payment_url": result.payment_url,
            "charge_id": result.charge_id,
            "status": result.status or "pending",
            "next_action_type": result.next_action_type,
            "order_number": order.order_number,
        }
