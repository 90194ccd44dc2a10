"""
Price synthesis: bounded random prices and their cross-currency counterparts.
Pure functions over Decimal; nothing here touches the database.
"""

import random
from decimal import Decimal, InvalidOperation, ROUND_CEILING, ROUND_FLOOR, ROUND_HALF_UP
from typing import Callable, Optional

from apps.pricing.domain.models import UsdBounds

PRICE_QUANTUM = Decimal("0.0001")
PERCENT_QUANTUM = Decimal("0.01")
INVERSE_RATE_PRECISION = 6


def to_decimal(value) -> Optional[Decimal]:
    """Finite Decimal or None."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        return None
    return number if number.is_finite() else None


def round_price(value: Decimal) -> Decimal:
    return value.quantize(PRICE_QUANTUM, rounding=ROUND_HALF_UP)


def generate_price(min_price, max_price, rand: Callable[[], float] = random.random) -> Decimal:
    """
    Uniform sample from [min_price, max_price) with 4 decimal places.

    The sample is floored to the price grid so it stays below max_price.
    """
    low = to_decimal(min_price)
    high = to_decimal(max_price)
    if low is None or high is None:
        raise ValueError(f"Price bounds must be finite numbers, got {min_price!r} and {max_price!r}")
    if low >= high:
        raise ValueError(f"min_price must be lower than max_price, got {low} and {high}")

    sample = low + (high - low) * Decimal(rand())
    price = sample.quantize(PRICE_QUANTUM, rounding=ROUND_FLOOR)
    if price < low:
        price = low.quantize(PRICE_QUANTUM, rounding=ROUND_CEILING)
    return price


def change_percent(previous, current) -> Decimal:
    """
    Percentage change rounded to 2 decimals.
    Reports 0 when the previous price is missing or not positive, or when
    either value is not a finite number.
    """
    before = to_decimal(previous)
    after = to_decimal(current)
    if before is None or after is None or before <= 0:
        return Decimal("0.00")
    return ((after - before) / before * 100).quantize(PERCENT_QUANTUM, rounding=ROUND_HALF_UP)


def inverse_rate(rate: Decimal, precision: int = INVERSE_RATE_PRECISION) -> Decimal:
    quantum = Decimal(1).scaleb(-precision)
    return (Decimal(1) / rate).quantize(quantum, rounding=ROUND_HALF_UP)


def zar_to_usd(price_zar: Decimal, zar_usd_rate: Decimal) -> Decimal:
    return round_price(price_zar * zar_usd_rate)


def usd_to_zar(price_usd: Decimal, zar_usd_rate: Decimal) -> Decimal:
    return round_price(price_usd * inverse_rate(zar_usd_rate))


def resolve_usd_bounds(
    min_price_usd,
    max_price_usd,
    min_price_zar,
    max_price_zar,
    zar_usd_rate: Decimal,
) -> Optional[UsdBounds]:
    """
    USD band to sample from: the stored USD pair when complete, otherwise
    the ZAR pair converted with the cycle's rate. None when neither pair
    is complete.
    """
    low_usd, high_usd = to_decimal(min_price_usd), to_decimal(max_price_usd)
    if low_usd is not None and high_usd is not None:
        return UsdBounds(low_usd, high_usd, derived=False)

    low_zar, high_zar = to_decimal(min_price_zar), to_decimal(max_price_zar)
    if low_zar is not None and high_zar is not None:
        return UsdBounds(zar_to_usd(low_zar, zar_usd_rate), zar_to_usd(high_zar, zar_usd_rate), derived=True)

    return None
