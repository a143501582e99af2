"""Layered exchange-rate resolution.

Resolution order for a pair:

1. fresh cache entry (younger than the TTL)
2. most recent persisted observation, unless older than ``store_max_age``
3. live provider fetch, persisted as a new observation
4. on any failure in 3: the last cache entry even if stale, then the last
   persisted observation regardless of age
5. the static fallback table, else 1

``rate()`` and ``convert()`` never raise. Concurrent misses for one pair are
coalesced so the provider sees a single request.
"""

import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime

import structlog

from pricing.currency.cache import RateCache, pair_key
from pricing.currency.exchange_rate import ExchangeRateStore
from pricing.currency.provider.port import RateProvider
from shared.concurrency import SingleFlight
from shared.config import DEFAULT_FALLBACK_RATES
from shared.errors import MarketplaceError

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Conversion:
    amount: float
    rate: float
    from_currency: str
    to_currency: str


class CurrencyConversionService:
    def __init__(
        self,
        provider: RateProvider,
        store: ExchangeRateStore | None = None,
        ttl: float = 15 * 60,
        store_max_age: float = 24 * 60 * 60,
        fallback_rates: dict[str, float] | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.provider = provider
        self.store = store or ExchangeRateStore()
        self.store_max_age = store_max_age
        self.fallback_rates = dict(fallback_rates if fallback_rates is not None else DEFAULT_FALLBACK_RATES)
        self.clock = clock
        self.cache = RateCache(ttl=ttl, clock=clock)
        self._flight = SingleFlight()

    @classmethod
    def from_settings(cls, provider: RateProvider, settings=None) -> "CurrencyConversionService":
        from shared.config import get_settings

        settings = settings or get_settings()
        return cls(
            provider=provider,
            ttl=settings.rate_cache_ttl,
            store_max_age=settings.rate_store_max_age,
            fallback_rates=settings.fallback_rates,
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def rate(self, from_currency: str, to_currency: str) -> float:
        """Return how much 1 unit of ``from_currency`` is worth in ``to_currency``."""
        from_currency = from_currency.upper()
        to_currency = to_currency.upper()
        if from_currency == to_currency:
            return 1.0

        key = pair_key(from_currency, to_currency)
        entry = self.cache.get_fresh(key)
        if entry is not None:
            return entry.rate

        try:
            return self._flight.do(key, lambda: self._resolve(from_currency, to_currency))
        except Exception as exc:
            logger.warning(
                "Exchange rate lookup failed, using fallback",
                from_currency=from_currency,
                to_currency=to_currency,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            return self._fallback(from_currency, to_currency)

    def convert(self, amount: float, from_currency: str, to_currency: str) -> Conversion:
        rate = self.rate(from_currency, to_currency)
        return Conversion(
            amount=amount * rate,
            rate=rate,
            from_currency=from_currency.upper(),
            to_currency=to_currency.upper(),
        )

    def refresh_expiring(self, lead_seconds: float) -> int:
        """Re-fetch cached pairs expiring within ``lead_seconds``.

        Returns the number of pairs refreshed. Provider failures leave the
        existing entry in place.
        """
        refreshed = 0
        for key in self.cache.expiring(lead_seconds):
            from_currency, to_currency = key.split("_", 1)
            try:
                self._flight.do(key, lambda: self._fetch(from_currency, to_currency))
            except MarketplaceError as exc:
                logger.warning("Exchange rate refresh failed", pair=key, error=exc.first_message())
                continue
            refreshed += 1

        if refreshed:
            logger.info("Exchange rates refreshed", count=refreshed)
        return refreshed

    # ------------------------------------------------------------------
    # Resolution steps
    # ------------------------------------------------------------------
    def _now(self) -> datetime:
        return datetime.fromtimestamp(self.clock(), UTC)

    def _resolve(self, from_currency: str, to_currency: str) -> float:
        key = pair_key(from_currency, to_currency)

        try:
            observation = self.store.latest(from_currency, to_currency)
        except MarketplaceError as exc:
            logger.warning("Exchange rate store unavailable", pair=key, error=exc.first_message())
            observation = None

        if observation is not None:
            age = (self._now() - observation.observed_at).total_seconds()
            if age < self.store_max_age:
                self.cache.put(key, observation.rate)
                return observation.rate
            logger.debug("Persisted exchange rate too old", pair=key, age_seconds=age)

        return self._fetch(from_currency, to_currency)

    def _fetch(self, from_currency: str, to_currency: str) -> float:
        key = pair_key(from_currency, to_currency)
        rate = self.provider.fetch_rate(from_currency, to_currency)

        try:
            self.store.append(from_currency, to_currency, rate, observed_at=self._now())
        except MarketplaceError as exc:
            logger.error("Failed to persist exchange rate", pair=key, error=exc.first_message())

        self.cache.put(key, rate)
        logger.debug("Exchange rate fetched", pair=key, rate=rate)
        return rate

    def _fallback(self, from_currency: str, to_currency: str) -> float:
        key = pair_key(from_currency, to_currency)

        stale = self.cache.get(key)
        if stale is not None:
            return stale.rate

        try:
            observation = self.store.latest(from_currency, to_currency)
        except MarketplaceError as exc:
            logger.warning("Exchange rate store unavailable", pair=key, error=exc.first_message())
            observation = None
        if observation is not None:
            return observation.rate

        return self.fallback_rates.get(key, 1.0)
