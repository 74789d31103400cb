"""Configurable fake payment gateway for development and testing.

This adapter simulates the hosted gateway without any external calls.
It can be configured at runtime to succeed or fail, making it useful for:
- Manual API testing via /payments/gateway/configure
- Automated tests with predictable outcomes
- Development without real gateway credentials

Charges it creates start out pending; tests move them along with
set_charge_status() before a webhook or callback is replayed.
"""

from uuid import uuid4

from payments.gateway.errors import user_friendly_message
from payments.gateway.port import (
    ChargeDetails,
    ChargeResult,
    PaymentGateway,
    PaymentRequest,
    VerificationResult,
)

FAKE_REDIRECT_BASE = "https://fake-gateway.test/3ds"


class FakeGateway(PaymentGateway):
    """Configurable fake payment gateway."""

    def __init__(self) -> None:
        self.should_succeed: bool = True
        self.failure_reason: str = "CARD_DECLINED"
        self.calls: list[dict] = []
        self.charges: dict[str, ChargeDetails] = {}

    def configure(self, should_succeed: bool, failure_reason: str = "CARD_DECLINED") -> None:
        """Configure gateway behavior at runtime.

        `failure_reason` is treated like a provider error code, so the
        returned message goes through the same catalogue as real errors.
        """
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def initialize_payment(self, request: PaymentRequest) -> ChargeResult:
        self.calls.append(
            {
                "method": "initialize_payment",
                "order_number": request.order_number,
                "reference": request.reference,
                "amount": request.amount,
                "payment_method": request.payment_method,
            }
        )

        if not self.should_succeed:
            return ChargeResult(
                success=False,
                message=user_friendly_message(self.failure_reason, self.failure_reason),
            )

        charge_id = f"chg_fake_{uuid4().hex[:12]}"
        self.charges[charge_id] = ChargeDetails(
            charge_id=charge_id,
            status="pending",
            reference=request.reference,
            amount=request.amount,
            currency=request.currency,
            payment_method=request.payment_method,
        )

        if request.is_card:
            return ChargeResult(
                success=True,
                charge_id=charge_id,
                status="pending",
                payment_url=f"{FAKE_REDIRECT_BASE}/{charge_id}",
                next_action_type="redirect_url",
            )
        return ChargeResult(
            success=True,
            charge_id=charge_id,
            status="pending",
            next_action_type="payment_instruction",
        )

    def set_charge_status(self, charge_id: str, status: str, processor_response: dict | None = None) -> None:
        """Move a charge to a new provider status (e.g. "succeeded", "failed")."""
        current = self.charges[charge_id]
        self.charges[charge_id] = ChargeDetails(
            charge_id=charge_id,
            status=status,
            reference=current.reference,
            amount=current.amount,
            currency=current.currency,
            payment_method=current.payment_method,
            processor_response=processor_response,
        )

    def add_charge(self, charge: ChargeDetails) -> None:
        self.charges[charge.charge_id] = charge

    def verify_charge(self, charge_id: str) -> VerificationResult:
        self.calls.append({"method": "verify_charge", "charge_id": charge_id})

        charge = self.charges.get(charge_id)
        if charge is None:
            return VerificationResult(success=False, message="Transaction verification failed")
        return VerificationResult(success=True, charge=charge)

    def verify_webhook_signature(self, payload: bytes | str, signature: str | None) -> bool:  # noqa: ARG002
        return signature == "test-signature"
