import uuid
import pytest
from datetime import timedelta
from decimal import Decimal

from asgiref.sync import async_to_sync
from django.core.cache import cache
from django.utils import timezone

from apps.exchange.domain.services import RateResolver
from apps.exchange.infrastructure.persistence.models import ExchangeRate, RateSource
from apps.exchange.infrastructure.providers.exchange_rate import ExchangeRateApiClient
from apps.exchange.infrastructure.providers.fallback import StaticFallbackStrategy
from apps.pricing.domain.services import RUN_LOCK_KEY, PriceUpdateService
from apps.pricing.infrastructure.persistence.models import (
    CurrentPrice,
    PriceHistory,
    PriceRange,
    PriceUpdateRun,
    RunStatus,
    TriggerSource,
)
from apps.pricing.infrastructure.persistence.repositories import CurrentPriceRepository
from core.exceptions import (
    CommodityNotFoundError,
    FatalResolutionError,
    PersistenceError,
    PriceDataNotFoundError,
    PriceValidationError,
    UpdateInProgressError,
)


@pytest.fixture
def service(fixed_resolver):
    return PriceUpdateService(resolver=fixed_resolver, rand=lambda: 0.5)


@pytest.mark.django_db(transaction=True)
class TestDailyUpdate:
    """Tests for the daily update cycle."""

    def test_skips_incomplete_ranges_and_ignores_inactive(self, service, make_commodity):
        usd = make_commodity("USD-BAND", min_usd="10", max_usd="20")
        zar = make_commodity("ZAR-BAND", min_zar="100", max_zar="200")
        incomplete = make_commodity("HALF", min_usd="10")
        make_commodity("RETIRED", min_usd="10", max_usd="20", active=False)
        make_commodity("PAUSED", min_usd="10", max_usd="20", range_active=False)

        summary = async_to_sync(service.update_daily_prices)()

        assert summary.updated == 2
        assert summary.total == 2
        assert [(s.symbol, s.reason) for s in summary.skipped] == [("HALF", "incomplete price range")]
        assert summary.skipped[0].commodity_id == str(incomplete.pk)
        assert summary.failures == []

        usd_price = CurrentPrice.objects.get(commodity=usd)
        assert usd_price.price_usd == Decimal("15.0000")
        assert usd_price.price_zar == Decimal("300.0000")
        assert usd_price.exchange_rate == Decimal("0.05")

        zar_price = CurrentPrice.objects.get(commodity=zar)
        assert zar_price.price_usd == Decimal("7.5000")
        assert zar_price.price_zar == Decimal("150.0000")

        assert PriceHistory.objects.count() == 2
        run = PriceUpdateRun.objects.get()
        assert run.total_commodities == 2
        assert run.updated_commodities == 2
        assert run.status == RunStatus.SUCCESS
        assert run.trigger_source == TriggerSource.CRON
        assert ExchangeRate.objects.get(source=RateSource.DAILY_UPDATE).rate == Decimal("0.05")

    def test_change_is_measured_against_previous_price(self, service, make_commodity):
        commodity = make_commodity(min_usd="10", max_usd="20")
        CurrentPrice.objects.create(
            commodity=commodity,
            price_zar=Decimal("250"),
            price_usd=Decimal("12.5"),
            exchange_rate=Decimal("0.05"),
        )

        async_to_sync(service.update_daily_prices)()

        current = CurrentPrice.objects.get(commodity=commodity)
        assert current.price_zar == Decimal("300.0000")
        assert current.change_24h_percent == Decimal("20.00")
        assert CurrentPrice.objects.count() == 1

    def test_one_failure_does_not_stop_the_others(self, service, make_commodity, mocker):
        commodities = [make_commodity(min_usd="10", max_usd="20") for _ in range(5)]
        failing = commodities[2]
        original_upsert = CurrentPriceRepository.upsert

        async def flaky_upsert(commodity_id, *args, **kwargs):
            if str(commodity_id) == str(failing.pk):
                raise PersistenceError("write rejected")
            return await original_upsert(commodity_id, *args, **kwargs)

        mocker.patch.object(CurrentPriceRepository, "upsert", side_effect=flaky_upsert)

        summary = async_to_sync(service.update_daily_prices)()

        assert summary.updated == 4
        assert summary.total == 5
        assert [(f.commodity_id, f.symbol) for f in summary.failures] == [(str(failing.pk), failing.symbol)]
        assert "write rejected" in summary.failures[0].message
        assert CurrentPrice.objects.count() == 4
        assert PriceHistory.objects.count() == 4
        assert not CurrentPrice.objects.filter(commodity=failing).exists()

        run = PriceUpdateRun.objects.get()
        assert (run.total_commodities, run.updated_commodities) == (5, 4)
        assert "failed: 1" in run.notes

    def test_invalid_band_fails_only_that_item(self, service, make_commodity):
        make_commodity("OK", min_usd="10", max_usd="20")
        make_commodity("INVERTED", min_usd="20", max_usd="10")

        summary = async_to_sync(service.update_daily_prices)()

        assert summary.updated == 1
        assert [f.symbol for f in summary.failures] == ["INVERTED"]

    def test_resolution_failure_aborts_before_writes(self, fixed_resolver, make_commodity):
        make_commodity(min_usd="10", max_usd="20")
        fixed_resolver.get_rate.side_effect = RuntimeError("resolver exploded")
        service = PriceUpdateService(resolver=fixed_resolver)

        with pytest.raises(FatalResolutionError):
            async_to_sync(service.update_daily_prices)()

        assert CurrentPrice.objects.count() == 0
        assert PriceUpdateRun.objects.count() == 0
        assert ExchangeRate.objects.count() == 0
        assert cache.get(RUN_LOCK_KEY) is None

    def test_overlapping_run_is_rejected(self, service, make_commodity, fixed_resolver):
        make_commodity(min_usd="10", max_usd="20")
        cache.add(RUN_LOCK_KEY, "held elsewhere")

        with pytest.raises(UpdateInProgressError):
            async_to_sync(service.update_daily_prices)(TriggerSource.MANUAL)

        fixed_resolver.get_rate.assert_not_called()
        assert PriceUpdateRun.objects.count() == 0
        assert cache.get(RUN_LOCK_KEY) == "held elsewhere"

    def test_lock_released_after_run(self, service):
        async_to_sync(service.update_daily_prices)()

        assert cache.get(RUN_LOCK_KEY) is None

    def test_lock_taken_over_after_expiry_is_kept(self, service, fixed_resolver):
        async def expire_and_take_over(*args):
            await cache.adelete(RUN_LOCK_KEY)
            await cache.aadd(RUN_LOCK_KEY, "next run")
            return Decimal("0.05")

        fixed_resolver.get_rate.side_effect = expire_and_take_over

        async_to_sync(service.update_daily_prices)()

        assert cache.get(RUN_LOCK_KEY) == "next run"

    def test_nothing_to_update(self, service):
        summary = async_to_sync(service.update_daily_prices)(TriggerSource.MANUAL, None)

        assert summary.to_dict()["success"] is True
        assert summary.updated == 0
        run = PriceUpdateRun.objects.get()
        assert run.status == RunStatus.NO_UPDATES
        assert run.trigger_source == TriggerSource.MANUAL

    def test_rate_and_run_write_failures_are_not_fatal(self, service, make_commodity, mocker):
        make_commodity(min_usd="10", max_usd="20")
        mocker.patch(
            "apps.pricing.domain.services.ExchangeRateRepository.create",
            side_effect=PersistenceError("rate table locked"),
        )
        mocker.patch(
            "apps.pricing.domain.services.PriceUpdateRunRepository.create",
            side_effect=PersistenceError("run table locked"),
        )

        summary = async_to_sync(service.update_daily_prices)()

        assert summary.updated == 1
        assert CurrentPrice.objects.count() == 1
        assert PriceUpdateRun.objects.count() == 0

    def test_operator_is_recorded(self, service, django_user_model):
        operator = django_user_model.objects.create_user(username="ops", password="x")

        async_to_sync(service.update_daily_prices)(TriggerSource.MANUAL, operator.pk)

        assert PriceUpdateRun.objects.get().triggered_by == operator


@pytest.mark.django_db(transaction=True)
class TestManualPriceUpdate:

    def test_usd_only(self, service, make_commodity, django_user_model):
        operator = django_user_model.objects.create_user(username="ops", password="x")
        commodity = make_commodity(with_range=False)

        result = async_to_sync(service.update_commodity_price)(commodity.pk, price_usd="12.5", operator=operator.pk)

        assert result["price_usd"] == "12.5000"
        assert result["price_zar"] == "250.0000"
        current = CurrentPrice.objects.get(commodity=commodity)
        assert current.price_zar == Decimal("250")
        assert PriceHistory.objects.filter(commodity=commodity).count() == 1
        run = PriceUpdateRun.objects.get()
        assert run.trigger_source == TriggerSource.MANUAL_SINGLE
        assert run.triggered_by == operator
        assert run.notes == f"Manual price update for commodity {commodity.pk}"

    def test_zar_only(self, service, make_commodity):
        commodity = make_commodity(with_range=False)

        result = async_to_sync(service.update_commodity_price)(commodity.pk, price_zar=Decimal("100"))

        assert result["price_usd"] == "5.0000"
        assert result["price_zar"] == "100.0000"

    def test_both_prices_are_stored_as_given(self, service, make_commodity):
        commodity = make_commodity(with_range=False)

        result = async_to_sync(service.update_commodity_price)(commodity.pk, price_usd="1.23456", price_zar="30")

        assert result["price_usd"] == "1.2346"
        assert result["price_zar"] == "30.0000"

    @pytest.mark.parametrize("prices", [{}, {"price_usd": "-1"}, {"price_zar": "0"}, {"price_usd": "NaN"}])
    def test_rejects_missing_or_invalid_prices(self, service, make_commodity, prices):
        commodity = make_commodity(with_range=False)

        with pytest.raises(PriceValidationError):
            async_to_sync(service.update_commodity_price)(commodity.pk, **prices)
        assert CurrentPrice.objects.count() == 0

    def test_unknown_commodity(self, service):
        with pytest.raises(CommodityNotFoundError):
            async_to_sync(service.update_commodity_price)(uuid.uuid4(), price_usd="1")


@pytest.mark.django_db(transaction=True)
class TestPriceRangeEditor:

    def test_usd_pair_derives_zar(self, service, make_commodity, django_user_model):
        operator = django_user_model.objects.create_user(username="ops", password="x")
        commodity = make_commodity(with_range=False)

        result = async_to_sync(service.update_price_range)(
            commodity.pk, min_price_usd="10", max_price_usd="20", operator=operator.pk
        )

        assert result["min_price_zar"] == "200.0000"
        assert result["max_price_zar"] == "400.0000"
        row = PriceRange.objects.get(commodity=commodity)
        assert row.is_active is True
        assert row.updated_by == operator

    def test_zar_pair_derives_usd(self, service, make_commodity):
        commodity = make_commodity(with_range=False)

        result = async_to_sync(service.update_price_range)(commodity.pk, min_price_zar="100", max_price_zar="200")

        assert (result["min_price_usd"], result["max_price_usd"]) == ("5.0000", "10.0000")

    def test_usd_pair_wins_when_both_given(self, service, make_commodity):
        commodity = make_commodity(with_range=False)

        result = async_to_sync(service.update_price_range)(
            commodity.pk,
            min_price_usd="1",
            max_price_usd="2",
            min_price_zar="999",
            max_price_zar="1000",
        )

        assert (result["min_price_zar"], result["max_price_zar"]) == ("20.0000", "40.0000")

    def test_reactivates_existing_range(self, service, make_commodity):
        commodity = make_commodity(min_usd="1", max_usd="2", range_active=False)

        async_to_sync(service.update_price_range)(commodity.pk, min_price_usd="3", max_price_usd="4")

        row = PriceRange.objects.get(commodity=commodity)
        assert row.is_active is True
        assert row.min_price_usd == Decimal("3")
        assert PriceRange.objects.count() == 1

    @pytest.mark.parametrize(
        "values",
        [
            {"min_price_usd": "20", "max_price_usd": "10"},
            {"min_price_usd": "10", "max_price_usd": "10"},
            {"min_price_zar": "200", "max_price_zar": "100"},
            {"min_price_usd": "10"},
            {},
            {"min_price_zar": "0.0001", "max_price_zar": "0.0002"},
        ],
    )
    def test_rejects_invalid_bands_without_writing(self, service, make_commodity, values):
        commodity = make_commodity(with_range=False)

        with pytest.raises(PriceValidationError):
            async_to_sync(service.update_price_range)(commodity.pk, **values)
        assert PriceRange.objects.count() == 0

    def test_unknown_commodity(self, service):
        with pytest.raises(CommodityNotFoundError):
            async_to_sync(service.update_price_range)(uuid.uuid4(), min_price_usd="1", max_price_usd="2")

    def test_get_price_range(self, service, make_commodity):
        commodity = make_commodity(min_usd="1", max_usd="2")

        assert async_to_sync(service.get_price_range)(commodity.pk)["max_price_usd"] == "2.0000"
        assert async_to_sync(service.get_price_range)(uuid.uuid4()) is None


def add_history(commodity, days_ago, zar, usd):
    return PriceHistory.objects.create(
        commodity=commodity,
        price_zar=Decimal(zar),
        price_usd=Decimal(usd),
        exchange_rate=Decimal("0.05"),
        recorded_date=timezone.localdate() - timedelta(days=days_ago),
    )


@pytest.mark.django_db(transaction=True)
class TestReads:

    def test_commodity_stats(self, service, make_commodity):
        commodity = make_commodity()
        add_history(commodity, 2, "200", "10")
        add_history(commodity, 10, "100", "5")
        add_history(commodity, 60, "999", "50")

        stats = async_to_sync(service.get_commodity_stats)(commodity.pk, "30d")

        assert stats["data_points"] == 2
        assert stats["zar"] == {"min": "100.0000", "max": "200.0000", "avg": "150.0000"}
        assert stats["usd"] == {"min": "5.0000", "max": "10.0000", "avg": "7.5000"}
        assert stats["period_start"] == (timezone.localdate() - timedelta(days=10)).isoformat()

    def test_unknown_period_means_thirty_days(self, service, make_commodity):
        commodity = make_commodity()
        add_history(commodity, 60, "100", "5")
        add_history(commodity, 1, "100", "5")

        stats = async_to_sync(service.get_commodity_stats)(commodity.pk, "2w")

        assert stats["period"] == "30d"
        assert stats["data_points"] == 1

    def test_stats_without_data(self, service, make_commodity):
        commodity = make_commodity()
        add_history(commodity, 100, "100", "5")

        with pytest.raises(PriceDataNotFoundError):
            async_to_sync(service.get_commodity_stats)(commodity.pk, "7d")

    def test_dashboard_summary(self, make_commodity, category):
        resolver = RateResolver(ExchangeRateApiClient(""), StaticFallbackStrategy(Decimal("0.054")))
        service = PriceUpdateService(resolver=resolver, rand=lambda: 0.5)
        make_commodity(min_usd="10", max_usd="20", category=category)
        make_commodity(active=False)

        empty = async_to_sync(service.get_dashboard_summary)()
        assert empty["exchange_rate"] is None
        assert empty["last_update_run"] is None
        assert empty["prices_last_updated"] is None

        async_to_sync(service.update_daily_prices)()
        summary = async_to_sync(service.get_dashboard_summary)()

        assert summary["total_commodities"] == 2
        assert summary["active_commodities"] == 1
        assert summary["categories"] == 1
        assert summary["prices_last_updated"] is not None
        assert summary["last_update_run"]["updated_commodities"] == 1
        assert summary["exchange_rate"]["source"] == RateSource.DAILY_UPDATE

    def test_list_update_runs_is_clamped(self, service, django_user_model):
        operator = django_user_model.objects.create_user(username="ops", password="x")
        for _ in range(3):
            PriceUpdateRun.objects.create(
                trigger_source=TriggerSource.MANUAL,
                status=RunStatus.NO_UPDATES,
                triggered_by=operator,
            )

        runs = async_to_sync(service.list_update_runs)(2)
        assert len(runs) == 2
        assert runs[0]["triggered_by"] == "ops"

        assert len(async_to_sync(service.list_update_runs)(0)) == 1
        assert len(async_to_sync(service.list_update_runs)("junk")) == 3

    def test_current_prices_currency_filter(self, service, make_commodity):
        make_commodity(min_usd="10", max_usd="20")
        make_commodity(min_usd="10", max_usd="20", active=False)
        async_to_sync(service.update_daily_prices)()

        usd_only = async_to_sync(service.list_current_prices)("usd")
        both = async_to_sync(service.list_current_prices)("both")

        assert len(both) == 1
        assert "price_zar" not in usd_only[0]
        assert usd_only[0]["price_usd"] == "15.0000"
        assert both[0]["price_zar"] == "300.0000"

    def test_price_history(self, service, make_commodity):
        commodity = make_commodity()
        add_history(commodity, 1, "200", "10")
        add_history(commodity, 3, "100", "5")
        add_history(commodity, 20, "150", "7.5")

        rows = async_to_sync(service.get_price_history)(commodity.pk, "7d", "zar", 100)

        assert [row["price_zar"] for row in rows] == ["200.0000", "100.0000"]
        assert all("price_usd" not in row for row in rows)

    def test_price_history_unknown_commodity(self, service):
        with pytest.raises(CommodityNotFoundError):
            async_to_sync(service.get_price_history)(uuid.uuid4())
