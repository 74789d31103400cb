"""Flutterwave gateway adapter.

Talks to the provider over HTTPS with httpx: an OAuth client-credentials
token (cached until shortly before it expires), then a customer, a
payment method and a charge per payment attempt. Card data arrives
already encrypted by the browser and is forwarded as-is.
"""

import re
import time

import httpx
import structlog

from payments.gateway.errors import (
    CONFIGURATION_ERROR_MESSAGE,
    GENERIC_FAILURE_MESSAGE,
    INCOMPLETE_CARD_MESSAGE,
    UNSUPPORTED_METHOD_MESSAGE,
    GatewayError,
    message_from_error_body,
)
from payments.gateway.port import (
    MOBILE_MONEY_NETWORKS,
    ChargeDetails,
    ChargeResult,
    PaymentGateway,
    PaymentRequest,
    VerificationResult,
)
from payments.gateway.signature import verify_signature

logger = structlog.get_logger(__name__)

TOKEN_REFRESH_MARGIN_SECONDS = 60
DEFAULT_TOKEN_TTL_SECONDS = 600
DUPLICATE_CUSTOMER_CODE = "10409"
DEFAULT_COUNTRY_CODE = "250"
LOCAL_HOSTS = ("localhost", "127.0.0.1")


def extract_phone_number(phone: str | None) -> str:
    """Local subscriber number: digits only, no country code, no trunk zero, at most 9 digits."""
    digits = re.sub(r"\D", "", phone or "")
    if digits.startswith(DEFAULT_COUNTRY_CODE):
        digits = digits[len(DEFAULT_COUNTRY_CODE):]
    if digits.startswith("0"):
        digits = digits[1:]
    digits = digits[:9]
    if len(digits) < 7:
        logger.warning("Phone number looks too short", length=len(digits))
    return digits


def sanitize_reference(reference: str | None) -> str:
    return re.sub(r"[^a-zA-Z0-9]", "", reference or "")


def uniquify_email(email: str, stamp: int) -> str:
    local, _, domain = email.partition("@")
    return f"{local.split('+', 1)[0]}+{stamp}@{domain}"


def _preview(value: str | None) -> str:
    if not value:
        return ""
    return value[:20] + "..." if len(value) > 20 else value


def _json(response: httpx.Response) -> dict:
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


class FlutterwaveGateway(PaymentGateway):
    def __init__(
        self,
        client_id: str | None,
        client_secret: str | None,
        base_url: str,
        oauth_token_url: str,
        currency: str = "RWF",
        redirect_url: str | None = None,
        environment: str = "sandbox",
        webhook_secret_hash: str | None = None,
        signature_required: bool = False,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
        clock=time.time,
    ) -> None:
        self.client_id = client_id
        self.client_secret = client_secret
        self.base_url = base_url.rstrip("/")
        self.oauth_token_url = oauth_token_url
        self.currency = currency
        self.redirect_url = redirect_url
        self.environment = environment
        self.webhook_secret_hash = webhook_secret_hash
        self.signature_required = signature_required
        self._clock = clock
        self._http = httpx.Client(timeout=timeout, transport=transport)
        self._token: str | None = None
        self._token_expires_at: float = 0.0

    @classmethod
    def from_settings(cls, settings, transport: httpx.BaseTransport | None = None) -> "FlutterwaveGateway":
        return cls(
            client_id=settings.client_id,
            client_secret=settings.client_secret,
            base_url=settings.base_url,
            oauth_token_url=settings.oauth_token_url,
            currency=settings.currency,
            redirect_url=settings.redirect_url,
            environment=settings.gateway_environment,
            webhook_secret_hash=settings.webhook_secret_hash,
            signature_required=settings.webhook_signature_required,
            timeout=settings.http_timeout_seconds,
            transport=transport,
        )

    def close(self) -> None:
        self._http.close()

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------
    def _access_token(self) -> str:
        now = self._clock()
        if self._token and now < self._token_expires_at - TOKEN_REFRESH_MARGIN_SECONDS:
            return self._token

        if not self.client_id or not self.client_secret:
            raise GatewayError(CONFIGURATION_ERROR_MESSAGE, "Gateway client credentials are not configured")

        response = self._http.post(
            self.oauth_token_url,
            data={
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "grant_type": "client_credentials",
            },
        )
        body = _json(response)
        if response.is_error or not body.get("access_token"):
            logger.error("Gateway token request failed", status_code=response.status_code)
            raise GatewayError(GENERIC_FAILURE_MESSAGE, f"Token request failed with HTTP {response.status_code}")

        self._token = body["access_token"]
        self._token_expires_at = now + int(body.get("expires_in") or DEFAULT_TOKEN_TTL_SECONDS)
        return self._token

    def _headers(self) -> dict:
        return {
            "Authorization": f"Bearer {self._access_token()}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    def _post(self, path: str, payload: dict) -> httpx.Response:
        return self._http.post(f"{self.base_url}{path}", json=payload, headers=self._headers())

    # ------------------------------------------------------------------
    # Payment initialization
    # ------------------------------------------------------------------
    def _create_customer(self, request: PaymentRequest) -> str:
        first, _, last = (request.customer_name or "").strip().partition(" ")
        payload = {
            "email": request.customer_email,
            "name": {"first": first or "Customer", "last": last or first or "Customer"},
            "phone": {
                "country_code": DEFAULT_COUNTRY_CODE,
                "number": extract_phone_number(request.customer_phone),
            },
        }
        response = self._post("/customers", payload)
        body = _json(response)

        error = body.get("error") if isinstance(body.get("error"), dict) else {}
        if response.is_error and str(error.get("code")) == DUPLICATE_CUSTOMER_CODE:
            payload["email"] = uniquify_email(request.customer_email, int(self._clock()))
            logger.info("Customer already exists, retrying with unique email", order_number=request.order_number)
            response = self._post("/customers", payload)
            body = _json(response)

        customer_id = (body.get("data") or {}).get("id")
        if response.is_error or not customer_id:
            logger.error(
                "Gateway customer creation failed",
                order_number=request.order_number,
                status_code=response.status_code,
                error=body.get("error") or body.get("message"),
            )
            raise GatewayError(message_from_error_body(body), "Customer creation failed")
        return customer_id

    def _payment_method_payload(self, request: PaymentRequest) -> dict:
        if request.is_mobile_money:
            phone = request.mobile_number or request.customer_phone
            return {
                "type": "mobile_money",
                "mobile_money": {
                    "country_code": DEFAULT_COUNTRY_CODE,
                    "network": MOBILE_MONEY_NETWORKS[request.payment_method],
                    "phone_number": extract_phone_number(phone),
                },
            }

        if request.is_card:
            card = request.card
            if card is None or not card.is_complete():
                raise GatewayError(INCOMPLETE_CARD_MESSAGE, "Card payment requires all encrypted card fields")
            logger.debug(
                "Forwarding encrypted card fields",
                order_number=request.order_number,
                card_number_preview=_preview(card.encrypted_card_number),
                card_number_length=len(card.encrypted_card_number),
                nonce_length=len(card.nonce),
            )
            return {
                "type": "card",
                "card": {
                    "encrypted_card_number": card.encrypted_card_number,
                    "encrypted_expiry_month": card.encrypted_expiry_month,
                    "encrypted_expiry_year": card.encrypted_expiry_year,
                    "encrypted_cvv": card.encrypted_cvv,
                    "nonce": card.nonce,
                },
            }

        raise GatewayError(UNSUPPORTED_METHOD_MESSAGE, f"Unsupported payment method: {request.payment_method}")

    def _create_payment_method(self, request: PaymentRequest) -> str:
        response = self._post("/payment-methods", self._payment_method_payload(request))
        body = _json(response)
        method_id = (body.get("data") or {}).get("id")
        if response.is_error or not method_id:
            logger.error(
                "Gateway payment method creation failed",
                order_number=request.order_number,
                status_code=response.status_code,
                error=body.get("error") or body.get("message"),
            )
            raise GatewayError(message_from_error_body(body), "Payment method creation failed")
        return method_id

    def _card_redirect_url(self) -> str | None:
        url = self.redirect_url
        if url and any(host in url for host in LOCAL_HOSTS):
            if self.environment == "live":
                logger.critical("Local redirect URL configured for live gateway", redirect_url=url)
                raise GatewayError(CONFIGURATION_ERROR_MESSAGE, "Redirect URL points at localhost")
            logger.warning("Local redirect URL configured for sandbox gateway", redirect_url=url)
        return url

    def initialize_payment(self, request: PaymentRequest) -> ChargeResult:
        try:
            customer_id = self._create_customer(request)
            method_id = self._create_payment_method(request)

            reference = sanitize_reference(request.reference) or f"ORDER{int(self._clock())}"
            payload = {
                "currency": request.currency or self.currency,
                "customer_id": customer_id,
                "amount": float(request.amount),
                "reference": reference,
                "payment_method_id": method_id,
                "meta": {"order_id": request.order_id, "order_number": request.order_number},
            }
            if request.is_card:
                redirect_url = self._card_redirect_url()
                if redirect_url:
                    payload["redirect_url"] = redirect_url

            response = self._post("/charges", payload)
            body = _json(response)
            data = body.get("data") or {}
            if response.is_error or not data.get("id"):
                logger.error(
                    "Gateway charge creation failed",
                    order_number=request.order_number,
                    status_code=response.status_code,
                    error=body.get("error") or body.get("message"),
                )
                return ChargeResult(success=False, message=message_from_error_body(body))
        except GatewayError as exc:
            logger.warning("Payment initialization failed", order_number=request.order_number, detail=exc.detail)
            return ChargeResult(success=False, message=exc.user_message)
        except httpx.HTTPError as exc:
            logger.error("Payment gateway unreachable", order_number=request.order_number, error=str(exc))
            return ChargeResult(success=False, message=GENERIC_FAILURE_MESSAGE)

        next_action = data.get("next_action") or {}
        payment_url = None
        if next_action.get("type") == "redirect_url":
            payment_url = (next_action.get("redirect_url") or {}).get("url")

        logger.info(
            "Payment initialized",
            order_number=request.order_number,
            charge_id=data["id"],
            status=data.get("status"),
            next_action_type=next_action.get("type"),
        )
        return ChargeResult(
            success=True,
            charge_id=data["id"],
            status=data.get("status"),
            payment_url=payment_url,
            next_action_type=next_action.get("type"),
        )

    # ------------------------------------------------------------------
    # Verification
    # ------------------------------------------------------------------
    def verify_charge(self, charge_id: str) -> VerificationResult:
        try:
            response = self._http.get(f"{self.base_url}/charges/{charge_id}", headers=self._headers())
        except GatewayError as exc:
            return VerificationResult(success=False, message=exc.user_message)
        except httpx.HTTPError as exc:
            logger.error("Charge verification request failed", charge_id=charge_id, error=str(exc))
            return VerificationResult(success=False, message=GENERIC_FAILURE_MESSAGE)

        body = _json(response)
        data = body.get("data")
        if response.is_error or body.get("status") != "success" or not isinstance(data, dict):
            logger.warning("Charge verification failed", charge_id=charge_id, status_code=response.status_code)
            return VerificationResult(success=False, message=message_from_error_body(body))

        amount = data.get("amount")
        return VerificationResult(
            success=True,
            charge=ChargeDetails(
                charge_id=data.get("id") or charge_id,
                status=data.get("status") or "",
                reference=data.get("reference"),
                amount=float(amount) if amount is not None else None,
                currency=data.get("currency"),
                payment_method=(data.get("payment_method_details") or {}).get("type"),
                customer_id=data.get("customer_id"),
                processor_response=data.get("processor_response"),
                created_at=data.get("created_datetime"),
            ),
        )

    def verify_webhook_signature(self, payload: bytes | str, signature: str | None) -> bool:
        return verify_signature(payload, signature, self.webhook_secret_hash, required=self.signature_required)
