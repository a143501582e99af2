"""Configurable fake rate provider for development and testing."""

from pricing.currency.provider.port import RateProvider
from shared.errors import RateProviderError


class FakeRateProvider(RateProvider):
    """Serves rates from an in-memory table and records every call."""

    def __init__(self, rates: dict[str, float] | None = None) -> None:
        self.rates: dict[str, float] = dict(rates or {"USD_NGN": 1520.0, "NGN_USD": 1 / 1520.0})
        self.should_succeed: bool = True
        self.failure_reason: str = "Rate provider unavailable"
        self.calls: list[tuple[str, str]] = []

    def configure(self, should_succeed: bool, failure_reason: str = "Rate provider unavailable") -> None:
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def set_rate(self, from_currency: str, to_currency: str, rate: float) -> None:
        self.rates[f"{from_currency}_{to_currency}"] = rate

    def fetch_rate(self, from_currency: str, to_currency: str) -> float:
        self.calls.append((from_currency, to_currency))
        if not self.should_succeed:
            raise RateProviderError(self.failure_reason)

        rate = self.rates.get(f"{from_currency}_{to_currency}")
        if rate is None:
            raise RateProviderError(f"No rate found for {from_currency} to {to_currency}")
        return rate
