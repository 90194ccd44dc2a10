import pytest
import requests
from decimal import Decimal
from unittest.mock import Mock

from asgiref.sync import async_to_sync

from apps.exchange.infrastructure.persistence.models import ExchangeRate, RateSource
from apps.exchange.infrastructure.providers.exchange_rate import (
    ExchangeRateApiClient,
    LiveApiStrategy,
    parse_rate,
)
from core.exceptions import ConfigurationError, TransientFetchError


class TestBuildLatestUrl:
    """URL shape decides where the API key goes."""

    def test_plain_url_without_key(self):
        client = ExchangeRateApiClient("https://api.exchangerate-api.com/v4/latest/")

        assert client.build_latest_url("ZAR") == "https://api.exchangerate-api.com/v4/latest/ZAR"

    def test_plain_url_with_key_adds_access_key(self):
        client = ExchangeRateApiClient("https://api.example.com/latest", api_key="secret")

        assert client.build_latest_url("ZAR") == "https://api.example.com/latest/ZAR?access_key=secret"

    def test_v6_url(self):
        client = ExchangeRateApiClient("https://v6.exchangerate-api.com/v6", api_key="secret")

        assert client.build_latest_url("USD") == "https://v6.exchangerate-api.com/v6/secret/latest/USD"

    def test_v6_url_requires_key(self):
        client = ExchangeRateApiClient("https://v6.exchangerate-api.com/v6")

        with pytest.raises(ConfigurationError):
            client.build_latest_url("USD")

    def test_placeholder_url(self):
        client = ExchangeRateApiClient("https://rates.example.com/{API_KEY}/latest", api_key="secret")

        assert client.build_latest_url("EUR") == "https://rates.example.com/secret/latest/EUR"

    def test_placeholder_url_requires_key(self):
        client = ExchangeRateApiClient("https://rates.example.com/{API_KEY}/latest")

        with pytest.raises(ConfigurationError):
            client.build_latest_url("EUR")

    def test_empty_url(self):
        with pytest.raises(ConfigurationError):
            ExchangeRateApiClient("  ").build_latest_url("ZAR")


class TestGetLatestRates:

    @pytest.fixture
    def client(self):
        return ExchangeRateApiClient("https://api.example.com/v4/latest", timeout=10, user_agent="Test-Agent/1.0")

    def test_success(self, client, mock_requests_get):
        response = Mock()
        response.json.return_value = {"base": "ZAR", "rates": {"usd": 0.054, "EUR": "0.049", "BAD": "x", "NEG": -1}}
        response.raise_for_status.return_value = None
        mock_requests_get.side_effect = None
        mock_requests_get.return_value = response

        rates = client.get_latest_rates("ZAR")

        assert rates == {"USD": Decimal("0.054"), "EUR": Decimal("0.049")}
        mock_requests_get.assert_called_once_with(
            "https://api.example.com/v4/latest/ZAR",
            timeout=10,
            headers={"User-Agent": "Test-Agent/1.0"},
        )

    def test_timeout(self, client, mock_requests_get):
        mock_requests_get.side_effect = requests.exceptions.Timeout("slow")

        with pytest.raises(TransientFetchError):
            client.get_latest_rates("ZAR")

    def test_http_error(self, client, mock_requests_get):
        response = Mock()
        response.raise_for_status.side_effect = requests.exceptions.HTTPError("503 Server Error")
        mock_requests_get.side_effect = None
        mock_requests_get.return_value = response

        with pytest.raises(TransientFetchError):
            client.get_latest_rates("ZAR")

    def test_invalid_json(self, client, mock_requests_get):
        response = Mock()
        response.raise_for_status.return_value = None
        response.json.side_effect = ValueError("not json")
        mock_requests_get.side_effect = None
        mock_requests_get.return_value = response

        with pytest.raises(TransientFetchError):
            client.get_latest_rates("ZAR")

    @pytest.mark.parametrize("payload", [{}, {"rates": None}, {"rates": [1, 2]}, ["rates"]])
    def test_missing_rate_table(self, client, mock_requests_get, payload):
        response = Mock()
        response.raise_for_status.return_value = None
        response.json.return_value = payload
        mock_requests_get.side_effect = None
        mock_requests_get.return_value = response

        with pytest.raises(TransientFetchError):
            client.get_latest_rates("ZAR")

    def test_from_settings(self, settings):
        settings.CURRENCY_API_URL = "https://v6.exchangerate-api.com/v6"
        settings.CURRENCY_API_KEY = "k"
        settings.CURRENCY_API_TIMEOUT = 5

        client = ExchangeRateApiClient.from_settings()

        assert client.timeout == 5
        assert client.build_latest_url("ZAR").endswith("/v6/k/latest/ZAR")


@pytest.mark.parametrize(
    "value, expected",
    [
        (0.054, Decimal("0.054")),
        ("18.5", Decimal("18.5")),
        (3, Decimal("3")),
        (0, None),
        (-2, None),
        ("abc", None),
        (None, None),
        (True, None),
        (float("inf"), None),
        ("0.0541234567891", Decimal("0.05412346")),
        ("0.000000001", None),
    ],
)
def test_parse_rate(value, expected):
    assert parse_rate(value) == expected


@pytest.mark.django_db(transaction=True)
class TestLiveApiStrategy:

    def test_resolves_and_persists(self, mock_requests_get, api_response):
        mock_requests_get.side_effect = None
        mock_requests_get.return_value = api_response({"USD": 0.0552})
        strategy = LiveApiStrategy(ExchangeRateApiClient("https://api.example.com/v4/latest"))

        rate = async_to_sync(strategy.resolve)("ZAR", "USD")

        assert rate == Decimal("0.0552")
        assert ExchangeRate.objects.get().source == RateSource.API

    def test_network_failure_yields_none(self):
        strategy = LiveApiStrategy(ExchangeRateApiClient("https://api.example.com/v4/latest"))

        assert async_to_sync(strategy.resolve)("ZAR", "USD") is None
        assert ExchangeRate.objects.count() == 0

    def test_unconfigured_url_yields_none(self, mock_requests_get):
        strategy = LiveApiStrategy(ExchangeRateApiClient(None))

        assert async_to_sync(strategy.resolve)("ZAR", "USD") is None
        mock_requests_get.assert_not_called()

    def test_returned_rate_matches_stored_rate(self, mock_requests_get, api_response):
        mock_requests_get.side_effect = None
        mock_requests_get.return_value = api_response({"USD": 0.0541234567891})
        strategy = LiveApiStrategy(ExchangeRateApiClient("https://api.example.com/v4/latest"))

        rate = async_to_sync(strategy.resolve)("ZAR", "USD")

        assert rate == Decimal("0.05412346")
        assert ExchangeRate.objects.get().rate == rate
