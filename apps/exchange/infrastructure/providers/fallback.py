"""
Strategies that need neither the network nor the database to answer.
"""

import logging
from decimal import Decimal, ROUND_HALF_UP

from apps.exchange.domain.interfaces import RateResolutionStrategy
from apps.exchange.domain.models import is_usable_rate, normalise_currency_code
from apps.exchange.infrastructure.persistence.models import RateSource
from apps.exchange.infrastructure.providers.stored import record_rate

logger = logging.getLogger(__name__)

DEFAULT_INVERSE_PRECISION = 6


class IdentityStrategy(RateResolutionStrategy):
    name = "identity"

    async def resolve(self, from_currency: str, to_currency: str) -> Decimal | None:
        if from_currency == to_currency:
            return Decimal("1")
        return None


class StaticFallbackStrategy(RateResolutionStrategy):
    """
    Configured constant for one base pair (default ZAR->USD).

    - base pair          -> the constant
    - inverse pair       -> 1 / constant, rounded to inverse_precision
    - identical codes    -> 1
    - any other pair     -> the raw constant, as a last resort
    """

    name = "fallback"

    def __init__(
        self,
        fallback_rate: Decimal,
        base_from: str = "ZAR",
        base_to: str = "USD",
        inverse_precision: int = DEFAULT_INVERSE_PRECISION,
    ):
        self.fallback_rate = fallback_rate
        self.base_from = normalise_currency_code(base_from)
        self.base_to = normalise_currency_code(base_to)
        if inverse_precision is None or inverse_precision < 0:
            inverse_precision = DEFAULT_INVERSE_PRECISION
        self.inverse_precision = inverse_precision

    def resolve_configured(self, from_currency: str, to_currency: str) -> Decimal | None:
        """Rate for pairs the constant actually describes, else None."""
        if not is_usable_rate(self.fallback_rate):
            return None

        source = normalise_currency_code(from_currency)
        target = normalise_currency_code(to_currency)
        if not source or not target:
            return None

        if source == target:
            return Decimal("1")
        if source == self.base_from and target == self.base_to:
            return self.fallback_rate
        if source == self.base_to and target == self.base_from:
            quantum = Decimal(1).scaleb(-self.inverse_precision)
            return (Decimal(1) / self.fallback_rate).quantize(quantum, rounding=ROUND_HALF_UP)
        return None

    def value_for(self, from_currency: str, to_currency: str) -> Decimal:
        resolved = self.resolve_configured(from_currency, to_currency)
        return resolved if resolved is not None else self.fallback_rate

    async def resolve(self, from_currency: str, to_currency: str) -> Decimal | None:
        rate = self.value_for(from_currency, to_currency)
        if not is_usable_rate(rate):
            logger.error(f"Fallback exchange rate unavailable for {from_currency}/{to_currency}")
            return None

        logger.warning(f"Using fallback rate {rate} for {from_currency}->{to_currency}")
        await record_rate(from_currency, to_currency, rate, RateSource.FALLBACK)
        return rate
