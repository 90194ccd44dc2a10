"""
Strategies backed by the persisted ExchangeRate log.
"""

import logging
from datetime import timedelta
from decimal import Decimal

from apps.exchange.domain.interfaces import RateResolutionStrategy
from apps.exchange.infrastructure.persistence.repositories import ExchangeRateRepository
from core.exceptions import PersistenceError

logger = logging.getLogger(__name__)

DEFAULT_MAX_AGE = timedelta(hours=4)


async def record_rate(from_currency: str, to_currency: str, rate: Decimal, source: str) -> bool:
    """Persist a resolved rate. Failures are logged, never raised."""
    try:
        await ExchangeRateRepository.create(from_currency, to_currency, rate, source)
    except PersistenceError as e:
        logger.error(f"Error saving exchange rate {from_currency}/{to_currency} ({source}): {e}")
        return False
    return True


class FreshStoredRateStrategy(RateResolutionStrategy):
    """Newest persisted row, only while younger than max_age."""

    name = "cache"

    def __init__(self, max_age: timedelta = DEFAULT_MAX_AGE):
        self.max_age = max_age

    async def resolve(self, from_currency: str, to_currency: str) -> Decimal | None:
        try:
            row = await ExchangeRateRepository.get_latest(from_currency, to_currency, max_age=self.max_age)
        except PersistenceError as e:
            logger.error(f"Error reading cached exchange rate: {e}")
            return None
        return row.rate if row else None


class StaleStoredRateStrategy(RateResolutionStrategy):
    """Newest persisted row of any age. Nothing is written back."""

    name = "stale"

    async def resolve(self, from_currency: str, to_currency: str) -> Decimal | None:
        try:
            row = await ExchangeRateRepository.get_latest(from_currency, to_currency)
        except PersistenceError as e:
            logger.error(f"Error reading stale exchange rate: {e}")
            return None
        if row is None:
            return None
        logger.info(f"Using stale cached exchange rate for {from_currency}/{to_currency} from {row.recorded_at}")
        return row.rate
