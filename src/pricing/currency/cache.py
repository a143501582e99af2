"""In-memory rate cache owned by a conversion service instance.

Reads take no lock; each write replaces a whole immutable entry, so a
reader sees either the old entry or the new one.
"""

import time
from collections.abc import Callable
from dataclasses import dataclass


@dataclass(frozen=True)
class CachedRate:
    rate: float
    cached_at: float

    def age(self, now: float) -> float:
        return now - self.cached_at


def pair_key(from_currency: str, to_currency: str) -> str:
    return f"{from_currency}_{to_currency}"


class RateCache:
    def __init__(self, ttl: float, clock: Callable[[], float] = time.time) -> None:
        self.ttl = ttl
        self.clock = clock
        self._entries: dict[str, CachedRate] = {}

    def get(self, key: str) -> CachedRate | None:
        return self._entries.get(key)

    def get_fresh(self, key: str) -> CachedRate | None:
        entry = self._entries.get(key)
        if entry is not None and entry.age(self.clock()) < self.ttl:
            return entry
        return None

    def put(self, key: str, rate: float) -> CachedRate:
        entry = CachedRate(rate=rate, cached_at=self.clock())
        self._entries[key] = entry
        return entry

    def expiring(self, within: float) -> list[str]:
        """Keys whose entries expire within ``within`` seconds (or already have)."""
        now = self.clock()
        return [key for key, entry in list(self._entries.items()) if entry.age(now) >= self.ttl - within]

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
