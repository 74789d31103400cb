"""Payment gateway port (abstract interface).

Defines the contract that all payment gateway adapters must implement.
This enables swapping between FakeGateway (dev/test) and FlutterwaveGateway
(production) without changing the ordering domain. Adapters never raise
for gateway trouble: every failure comes back as a result with
success=False and a message that is safe to show to a shopper.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass

from payments.gateway.status import ChargeOutcome, classify_charge_status

CARD_METHODS = frozenset({"credit_card", "card", "debit_card"})
MOBILE_MONEY_NETWORKS = {"mtn_momo": "MTN", "airtel_money": "AIRTEL"}


@dataclass(frozen=True)
class CardCiphertext:
    """Card fields encrypted by the browser. Passed through untouched."""

    encrypted_card_number: str | None = None
    encrypted_expiry_month: str | None = None
    encrypted_expiry_year: str | None = None
    encrypted_cvv: str | None = None
    nonce: str | None = None

    def is_complete(self) -> bool:
        return all(
            (
                self.encrypted_card_number,
                self.encrypted_expiry_month,
                self.encrypted_expiry_year,
                self.encrypted_cvv,
                self.nonce,
            )
        )


@dataclass(frozen=True)
class PaymentRequest:
    """Everything the gateway needs to start a charge for one order."""

    order_id: str
    order_number: str
    reference: str
    amount: float
    customer_email: str
    customer_name: str
    customer_phone: str
    payment_method: str
    currency: str | None = None
    mobile_number: str | None = None
    card: CardCiphertext | None = None

    @property
    def is_card(self) -> bool:
        return self.payment_method in CARD_METHODS

    @property
    def is_mobile_money(self) -> bool:
        return self.payment_method in MOBILE_MONEY_NETWORKS


@dataclass(frozen=True)
class ChargeResult:
    """Result of a payment initialization attempt."""

    success: bool
    charge_id: str | None = None
    status: str | None = None
    payment_url: str | None = None
    next_action_type: str | None = None
    message: str | None = None


@dataclass(frozen=True)
class ChargeDetails:
    """A charge as reported by the gateway when verified by id."""

    charge_id: str
    status: str
    reference: str | None = None
    amount: float | None = None
    currency: str | None = None
    payment_method: str | None = None
    customer_id: str | None = None
    processor_response: dict | None = None
    created_at: str | None = None

    @property
    def outcome(self) -> ChargeOutcome:
        return classify_charge_status(self.status)


@dataclass(frozen=True)
class VerificationResult:
    """Result of verifying a charge by id."""

    success: bool
    charge: ChargeDetails | None = None
    message: str | None = None


class PaymentGateway(ABC):
    """Abstract payment gateway interface."""

    @abstractmethod
    def initialize_payment(self, request: PaymentRequest) -> ChargeResult:
        """Create the customer, payment method and charge for an order."""
        ...

    @abstractmethod
    def verify_charge(self, charge_id: str) -> VerificationResult:
        """Fetch a charge by id and report its current status."""
        ...

    @abstractmethod
    def verify_webhook_signature(self, payload: bytes | str, signature: str | None) -> bool:
        """Verify that a webhook payload is authentically from the gateway."""
        ...
