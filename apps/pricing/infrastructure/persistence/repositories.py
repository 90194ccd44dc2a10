"""
Repositories for the pricing tables.
Every method is a coroutine on Django's async ORM; DatabaseError is
re-raised as PersistenceError.
"""

from datetime import date
from decimal import Decimal
from typing import List, Optional

from django.db import DatabaseError
from django.db.models import Avg, Count, Max, Min
from django.utils import timezone

from apps.pricing.infrastructure.persistence.models import (
    Commodity,
    CommodityCategory,
    CurrentPrice,
    PriceHistory,
    PriceRange,
    PriceUpdateRun,
)
from core.exceptions import PersistenceError


class CommodityRepository:

    @staticmethod
    async def get(commodity_id) -> Optional[Commodity]:
        try:
            return await Commodity.objects.filter(pk=commodity_id).afirst()
        except DatabaseError as e:
            raise PersistenceError(f"Failed to read commodity {commodity_id}: {e}") from e

    @staticmethod
    async def count(active_only: bool = False) -> int:
        queryset = Commodity.objects.all()
        if active_only:
            queryset = queryset.filter(is_active=True)
        try:
            return await queryset.acount()
        except DatabaseError as e:
            raise PersistenceError(f"Failed to count commodities: {e}") from e

    @staticmethod
    async def count_categories() -> int:
        try:
            return await CommodityCategory.objects.acount()
        except DatabaseError as e:
            raise PersistenceError(f"Failed to count categories: {e}") from e


class PriceRangeRepository:

    @staticmethod
    async def get_active_with_commodity() -> List[PriceRange]:
        """Active ranges whose commodity is also active."""
        queryset = (
            PriceRange.objects
            .select_related("commodity")
            .filter(is_active=True, commodity__is_active=True)
            .order_by("commodity__display_order", "commodity__symbol")
        )
        try:
            return [row async for row in queryset]
        except DatabaseError as e:
            raise PersistenceError(f"Failed to load price ranges: {e}") from e

    @staticmethod
    async def get(commodity_id) -> Optional[PriceRange]:
        try:
            return await PriceRange.objects.filter(commodity_id=commodity_id).afirst()
        except DatabaseError as e:
            raise PersistenceError(f"Failed to read price range for {commodity_id}: {e}") from e

    @staticmethod
    async def upsert(commodity_id, **values) -> PriceRange:
        try:
            row, _ = await PriceRange.objects.aupdate_or_create(commodity_id=commodity_id, defaults=values)
            return row
        except DatabaseError as e:
            raise PersistenceError(f"Failed to save price range for {commodity_id}: {e}") from e


class CurrentPriceRepository:

    @staticmethod
    async def get_previous_zar(commodity_id) -> Optional[Decimal]:
        try:
            row = await CurrentPrice.objects.filter(commodity_id=commodity_id).only("price_zar").afirst()
        except DatabaseError as e:
            raise PersistenceError(f"Failed to read current price for {commodity_id}: {e}") from e
        return row.price_zar if row is not None else None

    @staticmethod
    async def upsert(
        commodity_id,
        price_zar: Decimal,
        price_usd: Decimal,
        exchange_rate: Decimal,
        change_24h_percent: Decimal,
    ) -> CurrentPrice:
        try:
            row, _ = await CurrentPrice.objects.aupdate_or_create(
                commodity_id=commodity_id,
                defaults={
                    "price_zar": price_zar,
                    "price_usd": price_usd,
                    "exchange_rate": exchange_rate,
                    "change_24h_percent": change_24h_percent,
                    "last_updated": timezone.now(),
                },
            )
            return row
        except DatabaseError as e:
            raise PersistenceError(f"Failed to save current price for {commodity_id}: {e}") from e

    @staticmethod
    async def get_latest_update():
        try:
            return await CurrentPrice.objects.aaggregate(latest=Max("last_updated"))
        except DatabaseError as e:
            raise PersistenceError(f"Failed to read current prices: {e}") from e

    @staticmethod
    async def list_active() -> List[CurrentPrice]:
        queryset = (
            CurrentPrice.objects
            .select_related("commodity", "commodity__category")
            .filter(commodity__is_active=True)
            .order_by("commodity__display_order", "commodity__symbol")
        )
        try:
            return [row async for row in queryset]
        except DatabaseError as e:
            raise PersistenceError(f"Failed to list current prices: {e}") from e


class PriceHistoryRepository:

    @staticmethod
    async def create(
        commodity_id,
        price_zar: Decimal,
        price_usd: Decimal,
        exchange_rate: Decimal,
        recorded_date: Optional[date] = None,
    ) -> PriceHistory:
        try:
            return await PriceHistory.objects.acreate(
                commodity_id=commodity_id,
                price_zar=price_zar,
                price_usd=price_usd,
                exchange_rate=exchange_rate,
                recorded_date=recorded_date or timezone.localdate(),
            )
        except DatabaseError as e:
            raise PersistenceError(f"Failed to append price history for {commodity_id}: {e}") from e

    @staticmethod
    async def get_stats(commodity_id, since: date) -> dict:
        """Aggregates over history rows recorded on or after `since`."""
        try:
            return await PriceHistory.objects.filter(
                commodity_id=commodity_id,
                recorded_date__gte=since,
            ).aaggregate(
                data_points=Count("id"),
                min_price_zar=Min("price_zar"),
                max_price_zar=Max("price_zar"),
                avg_price_zar=Avg("price_zar"),
                min_price_usd=Min("price_usd"),
                max_price_usd=Max("price_usd"),
                avg_price_usd=Avg("price_usd"),
                period_start=Min("recorded_date"),
                period_end=Max("recorded_date"),
            )
        except DatabaseError as e:
            raise PersistenceError(f"Failed to aggregate price history for {commodity_id}: {e}") from e

    @staticmethod
    async def list_since(commodity_id, since: date, limit: int = 100) -> List[PriceHistory]:
        queryset = (
            PriceHistory.objects
            .filter(commodity_id=commodity_id, recorded_date__gte=since)
            .order_by("-recorded_date", "-recorded_at")[:limit]
        )
        try:
            return [row async for row in queryset]
        except DatabaseError as e:
            raise PersistenceError(f"Failed to list price history for {commodity_id}: {e}") from e


class PriceUpdateRunRepository:

    @staticmethod
    async def create(
        trigger_source: str,
        total_commodities: int,
        updated_commodities: int,
        status: str,
        notes: str = "",
        triggered_by_id=None,
    ) -> PriceUpdateRun:
        try:
            return await PriceUpdateRun.objects.acreate(
                trigger_source=trigger_source,
                total_commodities=total_commodities,
                updated_commodities=updated_commodities,
                status=status,
                notes=notes,
                triggered_by_id=triggered_by_id,
            )
        except DatabaseError as e:
            raise PersistenceError(f"Failed to record price update run: {e}") from e

    @staticmethod
    async def get_latest() -> Optional[PriceUpdateRun]:
        try:
            return await PriceUpdateRun.objects.order_by("-executed_at", "-id").afirst()
        except DatabaseError as e:
            raise PersistenceError(f"Failed to read price update runs: {e}") from e

    @staticmethod
    async def list_recent(limit: int = 20) -> List[PriceUpdateRun]:
        queryset = PriceUpdateRun.objects.select_related("triggered_by").order_by("-executed_at", "-id")[:limit]
        try:
            return [row async for row in queryset]
        except DatabaseError as e:
            raise PersistenceError(f"Failed to list price update runs: {e}") from e
