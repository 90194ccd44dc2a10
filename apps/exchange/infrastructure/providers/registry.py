"""
Strategy registry - builds the ordered rate fallback chain.
The first strategy that yields a usable rate wins.
"""

from datetime import timedelta

from apps.exchange.domain.interfaces import RateResolutionStrategy
from apps.exchange.infrastructure.providers.exchange_rate import ExchangeRateApiClient, LiveApiStrategy
from apps.exchange.infrastructure.providers.fallback import IdentityStrategy, StaticFallbackStrategy
from apps.exchange.infrastructure.providers.stored import (
    DEFAULT_MAX_AGE,
    FreshStoredRateStrategy,
    StaleStoredRateStrategy,
)


def build_rate_chain(
    client: ExchangeRateApiClient,
    fallback: StaticFallbackStrategy,
    max_age: timedelta = DEFAULT_MAX_AGE,
) -> list[RateResolutionStrategy]:
    """
    Resolution order:
    1. identical currencies -> 1
    2. persisted row younger than max_age
    3. live provider fetch (persisted as "api")
    4. persisted row of any age
    5. static fallback constant (persisted as "fallback")
    """
    return [
        IdentityStrategy(),
        FreshStoredRateStrategy(max_age),
        LiveApiStrategy(client),
        StaleStoredRateStrategy(),
        fallback,
    ]
