"""Payment processor factory.

get_gateway() returns the process-wide processor adapter, built on first use
from settings: StripeGateway when both Stripe secrets are configured,
FakeGateway otherwise. set_gateway() / reset_gateway() swap it in tests.
"""

from payments.gateway.fake_adapter import FakeGateway
from payments.gateway.port import PaymentGateway

_current_gateway: PaymentGateway | None = None


def build_gateway(settings=None) -> PaymentGateway:
    from shared.config import get_settings

    settings = settings or get_settings()
    if settings.stripe_secret_key and settings.stripe_webhook_secret:
        from payments.gateway.stripe_adapter import StripeGateway

        return StripeGateway(
            api_key=settings.stripe_secret_key,
            webhook_secret=settings.stripe_webhook_secret,
            timeout=settings.payment_timeout,
        )
    if settings.is_production:
        raise RuntimeError("STRIPE_SECRET_KEY and STRIPE_WEBHOOK_SECRET are required in production")
    return FakeGateway()


def get_gateway() -> PaymentGateway:
    global _current_gateway
    if _current_gateway is None:
        _current_gateway = build_gateway()
    return _current_gateway


def set_gateway(gateway: PaymentGateway) -> None:
    """Override the active processor adapter (useful for tests)."""
    global _current_gateway
    _current_gateway = gateway


def reset_gateway() -> None:
    global _current_gateway
    _current_gateway = None
