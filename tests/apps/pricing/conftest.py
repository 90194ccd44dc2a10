import itertools
from decimal import Decimal

import pytest

from apps.pricing.infrastructure.persistence.models import Commodity, CommodityCategory, PriceRange


def _dec(value):
    return Decimal(value) if value is not None else None


@pytest.fixture
def category():
    return CommodityCategory.objects.create(name="Fuels", display_order=1)


@pytest.fixture
def make_commodity():
    """Create a commodity, optionally with a price range."""
    counter = itertools.count(1)

    def _make(
        symbol=None,
        min_usd=None,
        max_usd=None,
        min_zar=None,
        max_zar=None,
        active=True,
        range_active=True,
        with_range=True,
        category=None,
    ):
        n = next(counter)
        commodity = Commodity.objects.create(
            name=f"Commodity {n}",
            symbol=symbol or f"C{n}",
            is_active=active,
            display_order=n,
            category=category,
        )
        if with_range:
            PriceRange.objects.create(
                commodity=commodity,
                min_price_usd=_dec(min_usd),
                max_price_usd=_dec(max_usd),
                min_price_zar=_dec(min_zar),
                max_price_zar=_dec(max_zar),
                is_active=range_active,
            )
        return commodity

    return _make


@pytest.fixture
def fixed_resolver(mocker):
    """Resolver stub answering ZAR/USD = 0.05, so USD -> ZAR is exactly x20."""
    resolver = mocker.Mock()
    resolver.get_rate = mocker.AsyncMock(return_value=Decimal("0.05"))
    return resolver
