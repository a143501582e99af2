"""exchangerate-api.com (v6) rate provider."""

import requests
import structlog

from pricing.currency.provider.port import RateProvider
from shared.errors import RateProviderError

logger = structlog.get_logger(__name__)

API_BASE_URL = "https://v6.exchangerate-api.com/v6"


class ExchangeRateApiProvider(RateProvider):
    def __init__(self, api_key: str, timeout: float = 5.0, session: requests.Session | None = None) -> None:
        if not api_key:
            raise ValueError("Exchange rate API key is required")
        self.api_key = api_key
        self.timeout = timeout
        self.session = session or requests.Session()

    def fetch_rate(self, from_currency: str, to_currency: str) -> float:
        url = f"{API_BASE_URL}/{self.api_key}/latest/{from_currency}"
        try:
            response = self.session.get(url, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except (requests.RequestException, ValueError) as exc:
            logger.warning("Exchange rate request failed", from_currency=from_currency, error=str(exc))
            raise RateProviderError(f"Failed to fetch exchange rate: {exc}") from exc

        rate = (data.get("conversion_rates") or {}).get(to_currency)
        if not rate:
            raise RateProviderError(f"No rate found for {from_currency} to {to_currency}")
        return float(rate)
