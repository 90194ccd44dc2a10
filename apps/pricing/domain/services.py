"""
Domain services - daily update orchestration and operator edits.
"""

import asyncio
import logging
import random
import uuid
from datetime import timedelta
from typing import Callable, Optional

from django.conf import settings
from django.core.cache import cache
from django.utils import timezone

from apps.exchange.domain.services import RateResolver, get_rate_resolver
from apps.exchange.infrastructure.persistence.models import RateSource
from apps.exchange.infrastructure.persistence.repositories import ExchangeRateRepository
from apps.pricing.domain.models import (
    CommodityUpdate,
    FailedCommodity,
    ItemState,
    SkippedCommodity,
    UpdateSummary,
    UsdBounds,
)
from apps.pricing.domain.synthesis import (
    change_percent,
    generate_price,
    round_price,
    resolve_usd_bounds,
    to_decimal,
    usd_to_zar,
    zar_to_usd,
)
from apps.pricing.infrastructure.persistence.models import PriceRange, RunStatus, TriggerSource
from apps.pricing.infrastructure.persistence.repositories import (
    CommodityRepository,
    CurrentPriceRepository,
    PriceHistoryRepository,
    PriceRangeRepository,
    PriceUpdateRunRepository,
)
from core.exceptions import (
    CommodityNotFoundError,
    FatalResolutionError,
    PersistenceError,
    PriceDataNotFoundError,
    PriceValidationError,
    RateNotFoundError,
    UpdateInProgressError,
)

logger = logging.getLogger(__name__)

RUN_LOCK_KEY = "pricing:daily-update:lock"
INCOMPLETE_RANGE = "incomplete price range"

STATS_PERIODS = {"7d": 7, "30d": 30, "90d": 90, "1y": 365}
DEFAULT_STATS_PERIOD = "30d"

DEFAULT_RUN_LIMIT = 20
MAX_RUN_LIMIT = 100


async def release_run_lock(token: str) -> bool:
    """Drop the run lock only while it still holds `token`."""
    if await cache.aget(RUN_LOCK_KEY) != token:
        logger.warning("Run lock expired or was taken over before release, leaving it in place")
        return False
    await cache.adelete(RUN_LOCK_KEY)
    return True


def price_fields(price_usd, price_zar, currency: str = "both") -> dict:
    """Price keys for a `currency` filter of usd, zar or both."""
    currency = (currency or "both").lower()
    fields = {}
    if currency in ("usd", "both"):
        fields["price_usd"] = str(price_usd)
    if currency in ("zar", "both"):
        fields["price_zar"] = str(price_zar)
    return fields


class PriceUpdateService:
    """
    Writes synthesized and operator-supplied prices.

    One daily cycle resolves the ZAR/USD rate once, fans out one task per
    priced commodity and writes its run record only after every task has
    settled. Per-commodity failures are collected, never raised.
    """

    def __init__(
        self,
        resolver: Optional[RateResolver] = None,
        rand: Callable[[], float] = random.random,
        lock_timeout: Optional[int] = None,
    ):
        self._resolver = resolver
        self.rand = rand
        self.lock_timeout = lock_timeout if lock_timeout is not None else settings.PRICE_UPDATE_LOCK_TIMEOUT

    @property
    def resolver(self) -> RateResolver:
        if self._resolver is None:
            self._resolver = get_rate_resolver()
        return self._resolver

    async def update_daily_prices(
        self,
        trigger_source: str = TriggerSource.CRON,
        triggered_by=None,
    ) -> UpdateSummary:
        """
        Run one update cycle over every active price range.

        Raises:
            UpdateInProgressError: another cycle holds the run lock
            FatalResolutionError: the rate could not be resolved at all
        """
        token = f"{uuid.uuid4()}@{timezone.now().isoformat()}"
        if not await cache.aadd(RUN_LOCK_KEY, token, timeout=self.lock_timeout):
            raise UpdateInProgressError("A daily price update is already running")

        try:
            return await self._run_cycle(trigger_source, triggered_by)
        finally:
            await release_run_lock(token)

    async def _run_cycle(self, trigger_source: str, triggered_by) -> UpdateSummary:
        logger.info(f"Starting daily price update ({trigger_source})")

        try:
            rate = await self.resolver.get_rate("ZAR", "USD")
        except Exception as e:
            logger.exception("Exchange rate resolution failed, aborting price update")
            raise FatalResolutionError(f"Could not resolve ZAR/USD rate: {e}") from e

        ranges = await PriceRangeRepository.get_active_with_commodity()
        summary = UpdateSummary(exchange_rate=rate)

        pending: list[tuple[CommodityUpdate, UsdBounds]] = []
        for price_range in ranges:
            commodity = price_range.commodity
            bounds = resolve_usd_bounds(
                price_range.min_price_usd,
                price_range.max_price_usd,
                price_range.min_price_zar,
                price_range.max_price_zar,
                rate,
            )
            if bounds is None:
                logger.warning(f"Skipping {commodity.symbol}: {INCOMPLETE_RANGE}")
                summary.skipped.append(SkippedCommodity(str(commodity.pk), commodity.symbol, INCOMPLETE_RANGE))
                continue
            pending.append((CommodityUpdate(str(commodity.pk), commodity.symbol), bounds))

        items = await asyncio.gather(*(self._update_commodity(item, bounds, rate) for item, bounds in pending))

        for item in items:
            if item.state is ItemState.PERSISTED:
                summary.updated += 1
            else:
                summary.failures.append(FailedCommodity(item.commodity_id, item.symbol, item.error or "unknown error"))
        summary.total = len(items)

        try:
            await ExchangeRateRepository.create("ZAR", "USD", rate, RateSource.DAILY_UPDATE)
        except PersistenceError as e:
            logger.error(f"Failed to record daily exchange rate: {e}")

        await self._record_run(
            trigger_source=trigger_source,
            total=summary.total,
            updated=summary.updated,
            status=summary.status,
            notes=summary.notes(),
            triggered_by=triggered_by,
        )

        logger.info(
            f"Daily price update finished: {summary.updated}/{summary.total} updated, "
            f"{len(summary.skipped)} skipped, {len(summary.failures)} failed"
        )
        return summary

    async def _update_commodity(self, item: CommodityUpdate, bounds: UsdBounds, rate) -> CommodityUpdate:
        try:
            item.price_usd = generate_price(bounds.min_price, bounds.max_price, self.rand)
            item.price_zar = usd_to_zar(item.price_usd, rate)
            item.state = ItemState.PRICED

            item.change_24h_percent = await self._write_price(item.commodity_id, item.price_usd, item.price_zar, rate)
            item.state = ItemState.PERSISTED
        except Exception as e:
            logger.error(f"Price update failed for {item.symbol}: {e}")
            item.state = ItemState.FAILED
            item.error = str(e)
        return item

    async def _write_price(self, commodity_id, price_usd, price_zar, rate):
        previous_zar = await CurrentPriceRepository.get_previous_zar(commodity_id)
        change = change_percent(previous_zar, price_zar)
        await CurrentPriceRepository.upsert(commodity_id, price_zar, price_usd, rate, change)
        await PriceHistoryRepository.create(commodity_id, price_zar, price_usd, rate)
        return change

    async def _record_run(self, trigger_source, total, updated, status, notes, triggered_by=None) -> None:
        try:
            await PriceUpdateRunRepository.create(
                trigger_source=trigger_source,
                total_commodities=total,
                updated_commodities=updated,
                status=status,
                notes=notes,
                triggered_by_id=triggered_by,
            )
        except PersistenceError as e:
            logger.error(f"Failed to record price update run: {e}")

    async def _get_commodity(self, commodity_id):
        commodity = await CommodityRepository.get(commodity_id)
        if commodity is None:
            raise CommodityNotFoundError(f"Commodity {commodity_id} not found")
        return commodity

    async def update_commodity_price(self, commodity_id, price_usd=None, price_zar=None, operator=None) -> dict:
        """
        Set one commodity's price by hand. Whichever currency is missing is
        derived from the current ZAR/USD rate.
        """
        usd = _positive_price(price_usd, "price_usd")
        zar = _positive_price(price_zar, "price_zar")
        if usd is None and zar is None:
            raise PriceValidationError("Either price_usd or price_zar must be provided")

        commodity = await self._get_commodity(commodity_id)
        rate = await self.resolver.get_rate("ZAR", "USD")

        if usd is not None and zar is not None:
            usd, zar = round_price(usd), round_price(zar)
        elif usd is not None:
            usd = round_price(usd)
            zar = usd_to_zar(usd, rate)
        else:
            zar = round_price(zar)
            usd = zar_to_usd(zar, rate)

        change = await self._write_price(commodity.pk, usd, zar, rate)
        await self._record_run(
            trigger_source=TriggerSource.MANUAL_SINGLE,
            total=1,
            updated=1,
            status=RunStatus.SUCCESS,
            notes=f"Manual price update for commodity {commodity.pk}",
            triggered_by=operator,
        )
        logger.info(f"Manual price update for {commodity.symbol}: ${usd} / R{zar}")

        return {
            "commodity_id": str(commodity.pk),
            "symbol": commodity.symbol,
            "price_usd": str(usd),
            "price_zar": str(zar),
            "exchange_rate": str(rate),
            "change_24h_percent": str(change),
        }

    async def update_price_range(
        self,
        commodity_id,
        min_price_usd=None,
        max_price_usd=None,
        min_price_zar=None,
        max_price_zar=None,
        operator=None,
    ) -> dict:
        """
        Store a commodity's price band. The USD pair wins when both pairs
        are given; the other pair is derived with the current rate. Both
        pairs must satisfy min < max or nothing is written.
        """
        min_usd = _positive_price(min_price_usd, "min_price_usd")
        max_usd = _positive_price(max_price_usd, "max_price_usd")
        min_zar = _positive_price(min_price_zar, "min_price_zar")
        max_zar = _positive_price(max_price_zar, "max_price_zar")

        has_usd = min_usd is not None and max_usd is not None
        has_zar = min_zar is not None and max_zar is not None
        if not has_usd and not has_zar:
            raise PriceValidationError("Provide both min and max prices in USD or in ZAR")

        if has_usd:
            _check_band(min_usd, max_usd, "USD")
        else:
            _check_band(min_zar, max_zar, "ZAR")

        commodity = await self._get_commodity(commodity_id)
        rate = await self.resolver.get_rate("ZAR", "USD")

        if has_usd:
            min_usd, max_usd = round_price(min_usd), round_price(max_usd)
            min_zar, max_zar = usd_to_zar(min_usd, rate), usd_to_zar(max_usd, rate)
        else:
            min_zar, max_zar = round_price(min_zar), round_price(max_zar)
            min_usd, max_usd = zar_to_usd(min_zar, rate), zar_to_usd(max_zar, rate)

        _check_band(min_usd, max_usd, "USD")
        _check_band(min_zar, max_zar, "ZAR")

        row = await PriceRangeRepository.upsert(
            commodity.pk,
            min_price_usd=min_usd,
            max_price_usd=max_usd,
            min_price_zar=min_zar,
            max_price_zar=max_zar,
            is_active=True,
            updated_by_id=operator,
            updated_at=timezone.now(),
        )
        logger.info(f"Price range updated for {commodity.symbol}: ${min_usd}-${max_usd} / R{min_zar}-R{max_zar}")
        return price_range_to_dict(row, exchange_rate=rate)

    async def get_price_range(self, commodity_id) -> Optional[dict]:
        row = await PriceRangeRepository.get(commodity_id)
        return price_range_to_dict(row) if row is not None else None

    async def get_commodity_stats(self, commodity_id, period: str = DEFAULT_STATS_PERIOD) -> dict:
        if period not in STATS_PERIODS:
            period = DEFAULT_STATS_PERIOD
        since = timezone.localdate() - timedelta(days=STATS_PERIODS[period])

        stats = await PriceHistoryRepository.get_stats(commodity_id, since)
        if not stats["data_points"]:
            raise PriceDataNotFoundError(f"No price data for commodity {commodity_id} in the last {period}")

        def _stat(key):
            value = to_decimal(stats[key])
            return str(round_price(value)) if value is not None else None

        return {
            "commodity_id": str(commodity_id),
            "period": period,
            "data_points": stats["data_points"],
            "zar": {"min": _stat("min_price_zar"), "max": _stat("max_price_zar"), "avg": _stat("avg_price_zar")},
            "usd": {"min": _stat("min_price_usd"), "max": _stat("max_price_usd"), "avg": _stat("avg_price_usd")},
            "period_start": stats["period_start"].isoformat(),
            "period_end": stats["period_end"].isoformat(),
        }

    async def get_dashboard_summary(self) -> dict:
        total, active, categories, prices, last_run, latest_rate = await asyncio.gather(
            CommodityRepository.count(),
            CommodityRepository.count(active_only=True),
            CommodityRepository.count_categories(),
            CurrentPriceRepository.get_latest_update(),
            PriceUpdateRunRepository.get_latest(),
            self._latest_rate_or_none(),
        )

        last_updated = prices.get("latest")
        return {
            "total_commodities": total,
            "active_commodities": active,
            "categories": categories,
            "prices_last_updated": last_updated.isoformat() if last_updated else None,
            "last_update_run": run_to_dict(last_run) if last_run is not None else None,
            "exchange_rate": latest_rate,
        }

    async def _latest_rate_or_none(self) -> Optional[dict]:
        try:
            latest = await self.resolver.get_latest_exchange_rate("ZAR", "USD")
        except RateNotFoundError:
            return None
        return latest.to_dict()

    async def list_update_runs(self, limit=DEFAULT_RUN_LIMIT) -> list[dict]:
        try:
            limit = int(limit)
        except (TypeError, ValueError):
            limit = DEFAULT_RUN_LIMIT
        limit = max(1, min(limit, MAX_RUN_LIMIT))

        runs = await PriceUpdateRunRepository.list_recent(limit)
        return [run_to_dict(run, include_operator=True) for run in runs]

    async def list_current_prices(self, currency: str = "both") -> list[dict]:
        rows = await CurrentPriceRepository.list_active()
        return [
            {
                "commodity_id": str(row.commodity_id),
                "symbol": row.commodity.symbol,
                "name": row.commodity.name,
                "unit": row.commodity.unit,
                "category": row.commodity.category.name if row.commodity.category else None,
                **price_fields(row.price_usd, row.price_zar, currency),
                "exchange_rate": str(row.exchange_rate),
                "change_24h_percent": str(row.change_24h_percent),
                "last_updated": row.last_updated.isoformat(),
            }
            for row in rows
        ]

    async def get_price_history(
        self,
        commodity_id,
        period: str = DEFAULT_STATS_PERIOD,
        currency: str = "both",
        limit: int = 100,
    ) -> list[dict]:
        await self._get_commodity(commodity_id)
        days = STATS_PERIODS.get(period, STATS_PERIODS[DEFAULT_STATS_PERIOD])
        since = timezone.localdate() - timedelta(days=days)

        rows = await PriceHistoryRepository.list_since(commodity_id, since, limit)
        return [
            {
                "recorded_date": row.recorded_date.isoformat(),
                **price_fields(row.price_usd, row.price_zar, currency),
                "exchange_rate": str(row.exchange_rate),
            }
            for row in rows
        ]


def _positive_price(value, field_name: str):
    if value is None or value == "":
        return None
    price = to_decimal(value)
    if price is None or price <= 0:
        raise PriceValidationError(f"{field_name} must be a positive number")
    return price


def _check_band(low, high, currency: str) -> None:
    if low >= high:
        raise PriceValidationError(f"Minimum {currency} price must be lower than maximum {currency} price")


def price_range_to_dict(row: PriceRange, exchange_rate=None) -> dict:
    data = {
        "commodity_id": str(row.commodity_id),
        "min_price_usd": _str_or_none(row.min_price_usd),
        "max_price_usd": _str_or_none(row.max_price_usd),
        "min_price_zar": _str_or_none(row.min_price_zar),
        "max_price_zar": _str_or_none(row.max_price_zar),
        "is_active": row.is_active,
        "updated_at": row.updated_at.isoformat() if row.updated_at else None,
    }
    if exchange_rate is not None:
        data["exchange_rate"] = str(exchange_rate)
    return data


def run_to_dict(run, include_operator: bool = False) -> dict:
    data = {
        "id": run.pk,
        "executed_at": run.executed_at.isoformat(),
        "trigger_source": run.trigger_source,
        "total_commodities": run.total_commodities,
        "updated_commodities": run.updated_commodities,
        "status": run.status,
        "notes": run.notes,
    }
    if include_operator:
        data["triggered_by"] = run.triggered_by.get_username() if run.triggered_by_id else None
    return data


def _str_or_none(value):
    return str(value) if value is not None else None
