from abc import ABC, abstractmethod
from decimal import Decimal


class RateResolutionStrategy(ABC):
    """One tier of the rate fallback chain."""

    name: str = "strategy"

    @abstractmethod
    async def resolve(self, from_currency: str, to_currency: str) -> Decimal | None:
        """Return a usable rate, or None to let the next tier try."""
        pass
