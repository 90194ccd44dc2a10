"""
Repository pattern implementation.
Abstracts database access to decouple domain logic from persistence.
All methods are coroutines backed by Django's async ORM; store failures
surface as PersistenceError.
"""

from datetime import datetime, timedelta
from decimal import Decimal
from typing import List, Optional

from django.db import DatabaseError
from django.utils import timezone

from apps.exchange.infrastructure.persistence.models import ExchangeRate, RateSource
from core.exceptions import PersistenceError


class ExchangeRateRepository:
    """Repository for the ExchangeRate log."""

    @staticmethod
    async def get_latest(
        from_currency: str,
        to_currency: str,
        max_age: Optional[timedelta] = None,
    ) -> Optional[ExchangeRate]:
        """
        Newest row for a pair, or None.
        With max_age, a newest row older than that window counts as missing.
        """
        try:
            latest = await (
                ExchangeRate.objects
                .filter(from_currency=from_currency, to_currency=to_currency)
                .order_by("-recorded_at")
                .afirst()
            )
        except DatabaseError as e:
            raise PersistenceError(f"Failed to read exchange rate {from_currency}/{to_currency}: {e}") from e

        if latest is None:
            return None
        if max_age is not None and timezone.now() - latest.recorded_at >= max_age:
            return None
        return latest

    @staticmethod
    async def create(
        from_currency: str,
        to_currency: str,
        rate: Decimal,
        source: str = RateSource.API,
    ) -> ExchangeRate:
        """Append a rate row."""
        try:
            return await ExchangeRate.objects.acreate(
                from_currency=from_currency,
                to_currency=to_currency,
                rate=rate,
                source=source,
            )
        except DatabaseError as e:
            raise PersistenceError(f"Failed to save exchange rate {from_currency}/{to_currency}: {e}") from e

    @staticmethod
    async def get_since(
        from_currency: str,
        to_currency: str,
        since: datetime,
    ) -> List[ExchangeRate]:
        """Rows for a pair recorded at or after `since`, newest first."""
        queryset = (
            ExchangeRate.objects
            .filter(from_currency=from_currency, to_currency=to_currency, recorded_at__gte=since)
            .order_by("-recorded_at")
        )
        try:
            return [row async for row in queryset]
        except DatabaseError as e:
            raise PersistenceError(f"Failed to read exchange rate history: {e}") from e
