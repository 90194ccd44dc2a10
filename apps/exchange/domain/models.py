"""
Pure domain entities (POPOs).
No dependency on Django or the ORM.
"""

from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP


SUPPORTED_CURRENCIES = (
    {"code": "ZAR", "name": "South African Rand", "symbol": "R"},
    {"code": "USD", "name": "US Dollar", "symbol": "$"},
    {"code": "EUR", "name": "Euro", "symbol": "€"},
    {"code": "GBP", "name": "British Pound", "symbol": "£"},
)

AMOUNT_QUANTUM = Decimal("0.0001")
RATE_QUANTUM = Decimal("0.00000001")


def quantize_rate(rate: Decimal) -> Decimal:
    """Round a rate to the precision it is stored with."""
    return rate.quantize(RATE_QUANTUM, rounding=ROUND_HALF_UP)


def normalise_currency_code(code) -> str:
    return str(code or "").strip().upper()


def is_usable_rate(rate) -> bool:
    return isinstance(rate, Decimal) and rate.is_finite() and rate > 0


@dataclass
class RateTableEntry:
    """A full base-currency rate table as returned by the provider."""

    base_currency: str
    fetched_at: float
    rates: dict[str, Decimal] = field(default_factory=dict)
