"""FastAPI routes for the Ordering domain: carts, orders and payment reconciliation."""

import json
from contextlib import contextmanager

import structlog
from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import JSONResponse, RedirectResponse
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.utils.globals import current_domain

from ordering.api.schemas import (
    AddCartItemRequest,
    CancelPendingOrdersRequest,
    CancelPendingOrdersResponse,
    CartIdResponse,
    CartItemIdResponse,
    CheckoutRequest,
    ConfigureGatewayRequest,
    CreateCartRequest,
    GatewayConfigResponse,
    InitializePaymentRequest,
    OrderResponse,
    PaymentInitResponse,
    SetChargeStatusRequest,
    SetShippingAmountRequest,
    StatusResponse,
    UpdateCartItemQuantityRequest,
    UpdateOrderStatusRequest,
)
from ordering.cart.items import AddCartItem, RemoveCartItem, SetShippingAmount, UpdateCartItemQuantity
from ordering.cart.management import CreateCart
from ordering.order.placement import PlaceOrder
from ordering.order.repository import ConcurrentOrderUpdate
from ordering.order.status_update import UpdateOrderStatus
from ordering.order.timeout import CancelTimedOutOrders
from ordering.order.transitions import TransitionRejected
from ordering.payment.callback import ProcessPaymentCallback, callback_redirect_url
from ordering.payment.initiation import InitializePayment
from ordering.payment.webhook import ProcessChargeWebhook
from payments.gateway import get_gateway
from payments.gateway.fake_adapter import FakeGateway
from shared.settings import get_settings

logger = structlog.get_logger(__name__)

CONCURRENT_UPDATE_MESSAGE = "This order was just updated by someone else. Please reload it and try again."
UNEXPECTED_ERROR_MESSAGE = "Something went wrong. Please try again or contact support."


@contextmanager
def domain_errors():
    """Turn domain exceptions into HTTP errors."""
    try:
        yield
    except TransitionRejected as exc:
        raise HTTPException(status_code=400, detail=exc.reason) from exc
    except ObjectNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=exc.messages) from exc
    except ConcurrentOrderUpdate as exc:
        raise HTTPException(status_code=409, detail=CONCURRENT_UPDATE_MESSAGE) from exc
    except Exception as exc:
        logger.exception("Unexpected error while processing request", error=str(exc))
        raise HTTPException(status_code=500, detail=UNEXPECTED_ERROR_MESSAGE) from exc


def _order_response(order) -> OrderResponse:
    return OrderResponse(
        order_number=order.order_number,
        status=order.status,
        payment_status=order.payment_status,
        grand_total=order.grand_total,
        currency=order.currency,
    )


# ---------------------------------------------------------------------------
# Cart Router
# ---------------------------------------------------------------------------
cart_router = APIRouter(prefix="/carts", tags=["carts"])


@cart_router.post("", status_code=201, response_model=CartIdResponse)
async def create_cart(body: CreateCartRequest) -> CartIdResponse:
    command = CreateCart(
        tenant_id=body.tenant_id,
        customer_id=body.customer_id,
        session_id=body.session_id,
        currency=body.currency,
    )
    with domain_errors():
        result = current_domain.process(command, asynchronous=False)
    return CartIdResponse(cart_id=result)


@cart_router.post("/{cart_id}/items", status_code=201, response_model=CartItemIdResponse)
async def add_cart_item(cart_id: str, body: AddCartItemRequest) -> CartItemIdResponse:
    command = AddCartItem(
        cart_id=cart_id,
        sku=body.sku,
        name=body.name,
        unit_price=body.unit_price,
        quantity=body.quantity,
        product_id=body.product_id,
        unit_tax=body.unit_tax,
        unit_discount=body.unit_discount,
    )
    with domain_errors():
        item_id = current_domain.process(command, asynchronous=False)
    return CartItemIdResponse(item_id=item_id)


@cart_router.put("/{cart_id}/items/{item_id}", response_model=StatusResponse)
async def update_cart_item_quantity(
    cart_id: str, item_id: str, body: UpdateCartItemQuantityRequest
) -> StatusResponse:
    command = UpdateCartItemQuantity(
        cart_id=cart_id,
        item_id=item_id,
        new_quantity=body.new_quantity,
    )
    with domain_errors():
        current_domain.process(command, asynchronous=False)
    return StatusResponse()


@cart_router.delete("/{cart_id}/items/{item_id}", response_model=StatusResponse)
async def remove_cart_item(cart_id: str, item_id: str) -> StatusResponse:
    command = RemoveCartItem(cart_id=cart_id, item_id=item_id)
    with domain_errors():
        current_domain.process(command, asynchronous=False)
    return StatusResponse()


@cart_router.put("/{cart_id}/shipping", response_model=StatusResponse)
async def set_shipping_amount(cart_id: str, body: SetShippingAmountRequest) -> StatusResponse:
    command = SetShippingAmount(cart_id=cart_id, shipping_amount=body.shipping_amount)
    with domain_errors():
        current_domain.process(command, asynchronous=False)
    return StatusResponse()


# ---------------------------------------------------------------------------
# Order Router
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


@order_router.post("/checkout", status_code=201, response_model=OrderResponse)
async def checkout(body: CheckoutRequest) -> OrderResponse:
    """Place an order from the caller's active cart."""
    command = PlaceOrder(
        cart_id=body.cart_id,
        customer_email=body.customer_email,
        tenant_id=body.tenant_id,
        customer_id=body.customer_id,
        customer_name=body.customer_name,
        customer_phone=body.customer_phone,
        payment_method=body.payment_method,
        shipping_address=json.dumps(body.shipping_address.model_dump()),
        billing_address=json.dumps(body.billing_address.model_dump()) if body.billing_address else None,
    )
    with domain_errors():
        order = current_domain.process(command, asynchronous=False)
    return _order_response(order)


@order_router.post("/maintenance/cancel-pending", response_model=CancelPendingOrdersResponse)
async def cancel_pending_orders(body: CancelPendingOrdersRequest) -> CancelPendingOrdersResponse:
    """Cancel orders that have waited longer than the payment timeout."""
    command = CancelTimedOutOrders(
        timeout_minutes=body.timeout_minutes or get_settings().payment_timeout_minutes,
        dry_run=body.dry_run,
    )
    report = current_domain.process(command, asynchronous=False)
    return CancelPendingOrdersResponse(**report)


@order_router.post("/{order_number}/payment", response_model=PaymentInitResponse)
async def initialize_payment(order_number: str, body: InitializePaymentRequest) -> PaymentInitResponse:
    command = InitializePayment(order_number=order_number, **body.model_dump())
    with domain_errors():
        result = current_domain.process(command, asynchronous=False)
    return PaymentInitResponse(**result)


@order_router.put("/{order_number}/status", response_model=OrderResponse)
async def update_order_status(order_number: str, body: UpdateOrderStatusRequest) -> OrderResponse:
    """Admin status change, checked against the transition policy."""
    command = UpdateOrderStatus(
        order_number=order_number,
        status=body.status,
        tenant_id=body.tenant_id,
        actor_id=body.actor_id,
        actor_email=body.actor_email,
    )
    with domain_errors():
        order = current_domain.process(command, asynchronous=False)
    return _order_response(order)


# ---------------------------------------------------------------------------
# Payment Router: browser redirect and provider webhook
# ---------------------------------------------------------------------------
payment_router = APIRouter(tags=["payments"])


@payment_router.get("/payment/callback")
async def payment_callback(request: Request) -> RedirectResponse:
    """Land the shopper back from the gateway and reconcile the charge."""
    params = request.query_params
    command = ProcessPaymentCallback(
        charge_id=params.get("charge_id") or params.get("transaction_id"),
        status=params.get("status"),
        reference=params.get("tx_ref") or params.get("reference"),
    )
    resolution = current_domain.process(command, asynchronous=False)
    url = callback_redirect_url(resolution, get_settings().frontend_base())
    return RedirectResponse(url=url, status_code=302)


@payment_router.post("/webhooks/flutterwave")
async def flutterwave_webhook(request: Request) -> JSONResponse:
    """Acknowledge every verified delivery, whatever happens to the order."""
    payload = await request.body()
    signature = request.headers.get("verif-hash", "")
    if not get_gateway().verify_webhook_signature(payload, signature):
        logger.warning("Invalid webhook signature", signature_present=bool(signature))
        return JSONResponse(status_code=401, content={"message": "Invalid signature"})

    try:
        body = json.loads(payload or b"{}")
        if not isinstance(body, dict):
            raise ValueError("Webhook body is not a JSON object")
        command = ProcessChargeWebhook(
            event=body.get("event") or body.get("type") or "",
            data=json.dumps(body.get("data") or {}),
        )
        current_domain.process(command, asynchronous=False)
    except Exception as exc:
        logger.exception("Webhook processing failed", error=str(exc))

    return JSONResponse(status_code=200, content={"status": "success"})


@payment_router.post("/payments/gateway/configure", response_model=GatewayConfigResponse)
async def configure_gateway(body: ConfigureGatewayRequest) -> GatewayConfigResponse:
    """Configure the FakeGateway behavior (non-production only).

    Lets a developer toggle success/failure for manual API testing.
    """
    if get_settings().is_production:
        raise HTTPException(status_code=403, detail="Gateway configuration not available in production")

    gateway = get_gateway()
    if not isinstance(gateway, FakeGateway):
        raise HTTPException(status_code=400, detail="Gateway configuration only available for FakeGateway")

    gateway.configure(
        should_succeed=body.should_succeed,
        failure_reason=body.failure_reason,
    )
    return GatewayConfigResponse(
        gateway=type(gateway).__name__,
        should_succeed=gateway.should_succeed,
        failure_reason=gateway.failure_reason,
    )


@payment_router.put("/payments/gateway/charges/{charge_id}", response_model=StatusResponse)
async def set_fake_charge_status(charge_id: str, body: SetChargeStatusRequest) -> StatusResponse:
    """Settle a FakeGateway charge so the redirect callback has something to verify."""
    if get_settings().is_production:
        raise HTTPException(status_code=403, detail="Gateway configuration not available in production")

    gateway = get_gateway()
    if not isinstance(gateway, FakeGateway):
        raise HTTPException(status_code=400, detail="Gateway configuration only available for FakeGateway")

    try:
        gateway.set_charge_status(charge_id, body.status, processor_response=body.processor_response)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail=f"Charge {charge_id} not found") from exc
    return StatusResponse(status=body.status)
