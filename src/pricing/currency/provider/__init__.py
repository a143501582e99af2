"""Rate provider factory.

get_provider() returns the process-wide rate provider, built on first use:
ExchangeRateApiProvider when EXCHANGE_RATE_API_KEY is set, FakeRateProvider
otherwise. set_provider() / reset_provider() swap it in tests.
"""

from pricing.currency.provider.fake_adapter import FakeRateProvider
from pricing.currency.provider.port import RateProvider

_current_provider: RateProvider | None = None


def build_provider(settings=None) -> RateProvider:
    from shared.config import get_settings

    settings = settings or get_settings()
    if settings.exchange_rate_api_key:
        from pricing.currency.provider.exchangerate_api import ExchangeRateApiProvider

        return ExchangeRateApiProvider(
            api_key=settings.exchange_rate_api_key,
            timeout=settings.rate_provider_timeout,
        )
    return FakeRateProvider()


def get_provider() -> RateProvider:
    global _current_provider
    if _current_provider is None:
        _current_provider = build_provider()
    return _current_provider


def set_provider(provider: RateProvider) -> None:
    """Override the active rate provider (useful for tests)."""
    global _current_provider
    _current_provider = provider


def reset_provider() -> None:
    global _current_provider
    _current_provider = None
