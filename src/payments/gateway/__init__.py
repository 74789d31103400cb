"""Payment gateway factory.

Provides get_gateway() / set_gateway() to swap implementations:
- FakeGateway for development and testing
- FlutterwaveGateway when PAYMENT_GATEWAY=flutterwave
"""

from payments.gateway.fake_adapter import FakeGateway
from payments.gateway.flutterwave_adapter import FlutterwaveGateway
from payments.gateway.port import PaymentGateway
from shared.settings import get_settings

_current_gateway: PaymentGateway | None = None


def build_gateway(settings=None) -> PaymentGateway:
    settings = settings or get_settings()
    if settings.payment_gateway == "flutterwave":
        return FlutterwaveGateway.from_settings(settings)
    return FakeGateway()


def get_gateway() -> PaymentGateway:
    """Return the current payment gateway, built from settings on first use."""
    global _current_gateway
    if _current_gateway is None:
        _current_gateway = build_gateway()
    return _current_gateway


def set_gateway(gateway: PaymentGateway) -> None:
    """Override the active payment gateway (useful for tests)."""
    global _current_gateway
    _current_gateway = gateway


def reset_gateway() -> None:
    """Reset to default gateway."""
    global _current_gateway
    _current_gateway = None
