"""
Domain services - Core business logic.
Implements the fallback chain for exchange rate resolution.
"""

import asyncio
import logging
from datetime import timedelta
from decimal import Decimal, ROUND_HALF_UP
from functools import lru_cache
from typing import Iterable

from django.utils import timezone

from apps.exchange.application.dto import ConversionResultDTO, ExchangeRateDTO
from apps.exchange.domain.cache import RateTableCache
from apps.exchange.domain.interfaces import RateResolutionStrategy
from apps.exchange.domain.models import AMOUNT_QUANTUM, is_usable_rate, normalise_currency_code, quantize_rate
from apps.exchange.infrastructure.persistence.models import RateSource
from apps.exchange.infrastructure.persistence.repositories import ExchangeRateRepository
from apps.exchange.infrastructure.providers.exchange_rate import ExchangeRateApiClient
from apps.exchange.infrastructure.providers.fallback import StaticFallbackStrategy
from apps.exchange.infrastructure.providers.registry import build_rate_chain
from apps.exchange.infrastructure.providers.stored import DEFAULT_MAX_AGE, record_rate
from core.exceptions import (
    ConfigurationError,
    PersistenceError,
    PriceValidationError,
    RateNotFoundError,
    TransientFetchError,
)

logger = logging.getLogger(__name__)


class RateResolver:
    """
    Resolves exchange rates through an ordered chain of strategies.

    `get_rate` never raises: whatever goes wrong inside the chain, the caller
    receives the static fallback value. The rate-table cache used by
    `get_rates` belongs to this instance, so separate resolvers never share
    cached tables.
    """

    def __init__(
        self,
        client: ExchangeRateApiClient,
        fallback: StaticFallbackStrategy,
        table_cache: RateTableCache | None = None,
        max_age: timedelta = DEFAULT_MAX_AGE,
        strategies: list[RateResolutionStrategy] | None = None,
    ):
        self.client = client
        self.fallback = fallback
        self.table_cache = table_cache if table_cache is not None else RateTableCache()
        self.strategies = strategies if strategies is not None else build_rate_chain(client, fallback, max_age)
        self._background_tasks: set[asyncio.Task] = set()

    @classmethod
    def from_settings(cls) -> "RateResolver":
        from django.conf import settings

        fallback_rate = Decimal(str(settings.CURRENCY_FALLBACK_RATE))
        if not is_usable_rate(fallback_rate):
            raise ConfigurationError(f"CURRENCY_FALLBACK_RATE must be a positive number, got {fallback_rate}")

        return cls(
            client=ExchangeRateApiClient.from_settings(),
            fallback=StaticFallbackStrategy(
                fallback_rate=fallback_rate,
                base_from=settings.CURRENCY_FALLBACK_BASE_FROM,
                base_to=settings.CURRENCY_FALLBACK_BASE_TO,
                inverse_precision=settings.CURRENCY_FALLBACK_INVERSE_PRECISION,
            ),
            table_cache=RateTableCache(ttl_seconds=settings.CURRENCY_TABLE_CACHE_TTL_SECONDS),
            max_age=timedelta(hours=settings.EXCHANGE_RATE_MAX_AGE_HOURS),
        )

    @property
    def fresh_tier(self) -> RateResolutionStrategy:
        return next(s for s in self.strategies if s.name == "cache")

    async def get_rate(self, from_currency: str = "ZAR", to_currency: str = "USD") -> Decimal:
        """
        Resolve a single pair. Always returns a positive rate.

        Example:
            >>> rate = await resolver.get_rate("zar", "usd")
            >>> rate
            Decimal('0.054')
        """
        source = normalise_currency_code(from_currency)
        target = normalise_currency_code(to_currency)

        try:
            if not source or not target:
                raise PriceValidationError("Invalid currency codes supplied")

            for strategy in self.strategies:
                rate = await strategy.resolve(source, target)
                if is_usable_rate(rate):
                    logger.debug(f"{source}/{target} resolved by '{strategy.name}': {rate}")
                    return rate
                logger.debug(f"'{strategy.name}' produced no rate for {source}/{target}, trying next...")

            logger.error(f"No strategy produced a rate for {source}/{target}")
        except Exception:
            logger.exception(f"Error calculating currency rate {source}/{target}")

        rate = self.fallback.value_for(source, target)
        logger.warning(f"Fallback exchange rate applied for {source}/{target}: {rate}")
        return rate

    async def get_rates(self, base_currency: str = "USD", targets: Iterable[str] = ()) -> dict[str, Decimal]:
        """
        Resolve many targets against one base.

        1. persisted rows younger than the freshness window (looked up concurrently)
        2. one rate-table fetch for all misses; hits are persisted in the
           background as "api_batch"
        3. the single-pair chain for whatever is left (concurrently)

        A target missing from the result could not be resolved at all.
        """
        base = normalise_currency_code(base_currency)
        distinct_targets = list(dict.fromkeys(
            code for code in (normalise_currency_code(t) for t in targets or ()) if code
        ))
        if not distinct_targets:
            return {}

        result: dict[str, Decimal] = {}
        fresh_tier = self.fresh_tier
        cached = await asyncio.gather(*(fresh_tier.resolve(base, target) for target in distinct_targets))

        missing = []
        for target, rate in zip(distinct_targets, cached):
            if is_usable_rate(rate):
                result[target] = rate
            else:
                missing.append(target)

        if not missing:
            return result

        table = await self.fetch_rate_table(base)
        if table:
            for target in missing:
                rate = table.get(target)
                if is_usable_rate(rate):
                    result[target] = rate
                    self._spawn_background(record_rate(base, target, rate, RateSource.API_BATCH))

        unresolved = [target for target in missing if target not in result]
        if unresolved:
            rates = await asyncio.gather(*(self.get_rate(base, target) for target in unresolved))
            for target, rate in zip(unresolved, rates):
                if is_usable_rate(rate):
                    result[target] = rate

        return result

    async def fetch_rate_table(self, base_currency: str) -> dict[str, Decimal] | None:
        """Full rate table for a base, served from the in-memory cache while fresh."""
        base = normalise_currency_code(base_currency)
        cached = self.table_cache.get(base)
        if cached is not None:
            return cached

        try:
            rates = await self.client.fetch_latest_rates(base)
        except (ConfigurationError, TransientFetchError) as e:
            logger.warning(f"Error fetching rate table for {base}: {e}")
            return None

        self.table_cache.set(base, rates)
        return rates

    async def convert_currency(self, amount: Decimal, from_currency: str, to_currency: str) -> ConversionResultDTO:
        source = normalise_currency_code(from_currency)
        target = normalise_currency_code(to_currency)
        amount = Decimal(str(amount))

        if source == target:
            return ConversionResultDTO(source, target, amount, amount, Decimal("1"))

        rate = await self.get_rate(source, target)
        converted = (amount * rate).quantize(AMOUNT_QUANTUM, rounding=ROUND_HALF_UP)
        return ConversionResultDTO(source, target, amount, converted, rate)

    async def get_exchange_rate_history(
        self,
        from_currency: str,
        to_currency: str,
        days: int = 30,
    ) -> list[ExchangeRateDTO]:
        """Persisted rates for a pair over the last `days`, newest first."""
        since = timezone.now() - timedelta(days=days)
        try:
            rows = await ExchangeRateRepository.get_since(
                normalise_currency_code(from_currency),
                normalise_currency_code(to_currency),
                since,
            )
        except PersistenceError as e:
            logger.error(f"Error fetching exchange rate history: {e}")
            return []
        return [ExchangeRateDTO.from_model(row) for row in rows]

    async def get_latest_exchange_rate(self, from_currency: str = "ZAR", to_currency: str = "USD") -> ExchangeRateDTO:
        source = normalise_currency_code(from_currency)
        target = normalise_currency_code(to_currency)
        row = await ExchangeRateRepository.get_latest(source, target)
        if row is None:
            raise RateNotFoundError(f"Exchange rate {source}/{target} not found")
        return ExchangeRateDTO.from_model(row)

    def update_fallback_rate(self, new_rate) -> Decimal:
        try:
            rate = Decimal(str(new_rate))
        except ArithmeticError as e:
            raise PriceValidationError(f"Invalid fallback rate: {new_rate}") from e
        if not is_usable_rate(rate) or not is_usable_rate(quantize_rate(rate)):
            raise PriceValidationError("Fallback rate must be a positive number")

        rate = quantize_rate(rate)
        self.fallback.fallback_rate = rate
        logger.info(f"Fallback rate updated to {rate}")
        return rate

    def _spawn_background(self, coro) -> asyncio.Task:
        """Best-effort work the caller does not wait for."""
        task = asyncio.create_task(coro)
        self._background_tasks.add(task)
        task.add_done_callback(self._on_background_done)
        return task

    def _on_background_done(self, task: asyncio.Task) -> None:
        self._background_tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Failed to persist batch currency rate: {error}")

    async def wait_for_background_tasks(self) -> None:
        """Let pending background saves on the running loop finish."""
        loop = asyncio.get_running_loop()
        pending = [task for task in self._background_tasks if task.get_loop() is loop]
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)


@lru_cache(maxsize=1)
def get_rate_resolver() -> RateResolver:
    """Process-wide resolver built from settings."""
    return RateResolver.from_settings()
