"""Pydantic request/response schemas for the Ordering API.

These are external contracts (anti-corruption layer), separate from
internal Protean commands.
"""

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Shared sub-models
# ---------------------------------------------------------------------------
class AddressSchema(BaseModel):
    full_name: str | None = None
    street: str
    city: str
    state: str | None = None
    postal_code: str | None = None
    country: str
    phone: str | None = None


# ---------------------------------------------------------------------------
# Cart Request Schemas
# ---------------------------------------------------------------------------
class CreateCartRequest(BaseModel):
    tenant_id: str | None = None
    customer_id: str | None = None
    session_id: str | None = None
    currency: str = Field(default="RWF", max_length=3)

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "tenant_id": "store-001",
                    "customer_id": "cust-001",
                    "session_id": None,
                    "currency": "RWF",
                }
            ]
        }
    }


class AddCartItemRequest(BaseModel):
    sku: str
    name: str
    unit_price: float = Field(ge=0)
    quantity: int = Field(ge=1, default=1)
    product_id: str | None = None
    unit_tax: float = Field(ge=0, default=0.0)
    unit_discount: float = Field(ge=0, default=0.0)


class UpdateCartItemQuantityRequest(BaseModel):
    new_quantity: int = Field(ge=1)


class SetShippingAmountRequest(BaseModel):
    shipping_amount: float = Field(ge=0)


# ---------------------------------------------------------------------------
# Order Request Schemas
# ---------------------------------------------------------------------------
class CheckoutRequest(BaseModel):
    cart_id: str
    customer_email: str
    tenant_id: str | None = None
    customer_id: str | None = None
    customer_name: str | None = None
    customer_phone: str | None = None
    payment_method: str | None = None
    shipping_address: AddressSchema
    billing_address: AddressSchema | None = None


class InitializePaymentRequest(BaseModel):
    tenant_id: str | None = None
    customer_id: str | None = None
    payment_method: str | None = None
    customer_phone: str | None = None
    mobile_number: str | None = None
    encrypted_card_number: str | None = None
    encrypted_expiry_month: str | None = None
    encrypted_expiry_year: str | None = None
    encrypted_cvv: str | None = None
    nonce: str | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {"payment_method": "mtn_momo", "mobile_number": "0781234567"},
                {
                    "payment_method": "card",
                    "encrypted_card_number": "<ciphertext>",
                    "encrypted_expiry_month": "<ciphertext>",
                    "encrypted_expiry_year": "<ciphertext>",
                    "encrypted_cvv": "<ciphertext>",
                    "nonce": "<nonce>",
                },
            ]
        }
    }


class UpdateOrderStatusRequest(BaseModel):
    status: str
    tenant_id: str | None = None
    actor_id: str | None = None
    actor_email: str | None = None


class CancelPendingOrdersRequest(BaseModel):
    timeout_minutes: int | None = Field(default=None, ge=1)
    dry_run: bool = False


class ConfigureGatewayRequest(BaseModel):
    should_succeed: bool = True
    failure_reason: str = "CARD_DECLINED"


class SetChargeStatusRequest(BaseModel):
    status: str
    processor_response: dict | None = None


# ---------------------------------------------------------------------------
# Response Schemas
# ---------------------------------------------------------------------------
class StatusResponse(BaseModel):
    status: str = "ok"


class CartIdResponse(BaseModel):
    cart_id: str


class CartItemIdResponse(BaseModel):
    item_id: str


class OrderResponse(BaseModel):
    order_number: str
    status: str
    payment_status: str
    grand_total: float
    currency: str


class PaymentInitResponse(BaseModel):
    order_number: str
    charge_id: str
    status: str
    payment_url: str | None = None
    next_action_type: str | None = None


class TimedOutOrderSchema(BaseModel):
    order_number: str
    created_at: str | None = None
    payment_status: str
    grand_total: str


class FailedCancellationSchema(BaseModel):
    order_number: str
    error: str


class CancelPendingOrdersResponse(BaseModel):
    timeout_minutes: int
    dry_run: bool
    candidates: list[TimedOutOrderSchema]
    cancelled: list[str]
    failed: list[FailedCancellationSchema]


class GatewayConfigResponse(BaseModel):
    gateway: str
    should_succeed: bool
    failure_reason: str
