"""Payment gateway factory.

Provides get_gateway() / set_gateway() to swap implementations. PAYMENT_GATEWAY
selects the adapter on first use: ``stripe`` builds a StripeGateway from
STRIPE_SECRET_KEY and STRIPE_WEBHOOK_SECRET; anything else is the FakeGateway
used for development and testing.
"""

import os

from payments.gateway.fake_adapter import FakeGateway
from payments.gateway.port import PaymentGateway
from payments.gateway.stripe_adapter import StripeGateway

_current_gateway: PaymentGateway | None = None


def gateway_from_environment() -> PaymentGateway:
    if os.environ.get("PAYMENT_GATEWAY", "fake").lower() == "stripe":
        return StripeGateway(
            api_key=os.environ.get("STRIPE_SECRET_KEY", ""),
            webhook_secret=os.environ.get("STRIPE_WEBHOOK_SECRET") or None,
        )
    return FakeGateway()


def get_gateway() -> PaymentGateway:
    """Return the current payment gateway, building it from the environment on first use."""
    global _current_gateway
    if _current_gateway is None:
        _current_gateway = gateway_from_environment()
    return _current_gateway


def set_gateway(gateway: PaymentGateway) -> None:
    """Override the active payment gateway (useful for tests)."""
    global _current_gateway
    _current_gateway = gateway


def reset_gateway() -> None:
    """Reset to default gateway."""
    global _current_gateway
    _current_gateway = None
