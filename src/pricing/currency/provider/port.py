"""Exchange-rate provider port (abstract interface)."""

from abc import ABC, abstractmethod


class RateProvider(ABC):
    """Abstract source of live exchange rates."""

    @abstractmethod
    def fetch_rate(self, from_currency: str, to_currency: str) -> float:
        """Return how much 1 unit of ``from_currency`` is worth in ``to_currency``.

        Raises:
            RateProviderError: the provider is unreachable, timed out, or has
                no rate for the pair.
        """
        ...
