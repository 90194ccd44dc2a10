"""
In-memory rate-table cache owned by a RateResolver instance.
"""

import time
from decimal import Decimal
from typing import Callable

from apps.exchange.domain.models import RateTableEntry, normalise_currency_code

DEFAULT_TABLE_TTL_SECONDS = 15 * 60


class RateTableCache:
    """
    Base currency -> rate table, last write wins.
    Entries past the TTL are ignored on read but never evicted.
    """

    def __init__(self, ttl_seconds: float = DEFAULT_TABLE_TTL_SECONDS, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, RateTableEntry] = {}

    def get(self, base_currency: str) -> dict[str, Decimal] | None:
        entry = self._entries.get(normalise_currency_code(base_currency))
        if entry is None:
            return None
        if self._clock() - entry.fetched_at >= self.ttl_seconds:
            return None
        return entry.rates

    def set(self, base_currency: str, rates: dict[str, Decimal]) -> RateTableEntry:
        key = normalise_currency_code(base_currency)
        entry = RateTableEntry(base_currency=key, fetched_at=self._clock(), rates=dict(rates))
        self._entries[key] = entry
        return entry

    def __len__(self):
        return len(self._entries)
