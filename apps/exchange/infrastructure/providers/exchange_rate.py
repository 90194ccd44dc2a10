import asyncio
import logging
from decimal import Decimal, InvalidOperation

import requests

from apps.exchange.domain.interfaces import RateResolutionStrategy
from apps.exchange.domain.models import quantize_rate
from apps.exchange.infrastructure.persistence.models import RateSource
from apps.exchange.infrastructure.providers.stored import record_rate
from core.exceptions import ConfigurationError, TransientFetchError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10
DEFAULT_USER_AGENT = "CommodityPricing-Backend/1.0"


def parse_rate(value) -> Decimal | None:
    """Provider numbers -> positive Decimal at stored precision, anything else -> None."""
    if isinstance(value, bool) or not isinstance(value, (int, float, str, Decimal)):
        return None
    try:
        rate = Decimal(str(value))
        if not rate.is_finite():
            return None
        rate = quantize_rate(rate)
    except (InvalidOperation, ValueError):
        return None
    if rate <= 0:
        return None
    return rate


class ExchangeRateApiClient:
    """
    Client for "latest rates" endpoints answering {"rates": {"<CODE>": number}}.
    The configured URL's shape decides where the API key goes.
    """

    def __init__(
        self,
        base_url: str | None,
        api_key: str | None = None,
        timeout: int = DEFAULT_TIMEOUT,
        user_agent: str = DEFAULT_USER_AGENT,
    ):
        self.base_url = (base_url or "").strip().rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self.user_agent = user_agent

    @classmethod
    def from_settings(cls) -> "ExchangeRateApiClient":
        from django.conf import settings

        return cls(
            base_url=settings.CURRENCY_API_URL,
            api_key=settings.CURRENCY_API_KEY,
            timeout=settings.CURRENCY_API_TIMEOUT,
            user_agent=settings.CURRENCY_API_USER_AGENT,
        )

    def build_latest_url(self, base_currency: str) -> str:
        """
        Build the "latest" URL for a base currency.

        Formats:
            https://v6.exchangerate-api.com/v6/<KEY>/latest/<BASE>
            https://example.com/{API_KEY}/latest -> https://example.com/<KEY>/latest/<BASE>
            https://api.exchangerate-api.com/v4/latest/<BASE>[?access_key=<KEY>]
        """
        if not self.base_url:
            raise ConfigurationError("CURRENCY_API_URL is not configured")

        if "exchangerate-api.com/v6" in self.base_url:
            if not self.api_key:
                raise ConfigurationError("CURRENCY_API_KEY is required for ExchangeRate-API v6")
            return f"{self.base_url}/{self.api_key}/latest/{base_currency}"

        if "{API_KEY}" in self.base_url:
            if not self.api_key:
                raise ConfigurationError("CURRENCY_API_KEY is required for the configured API URL")
            return f"{self.base_url.replace('{API_KEY}', self.api_key)}/{base_currency}"

        url = f"{self.base_url}/{base_currency}"
        if self.api_key:
            separator = "&" if "?" in url else "?"
            url = f"{url}{separator}access_key={self.api_key}"
        return url

    def get_latest_rates(self, base_currency: str) -> dict[str, Decimal]:
        """
        Fetch the full rate table for a base currency.

        Raises:
            ConfigurationError: the URL cannot be built
            TransientFetchError: network, HTTP or payload failure
        """
        url = self.build_latest_url(base_currency)

        try:
            response = requests.get(url, timeout=self.timeout, headers={"User-Agent": self.user_agent})
            response.raise_for_status()
            data = response.json()
        except requests.exceptions.Timeout as e:
            raise TransientFetchError(f"Timeout calling rate provider for {base_currency}") from e
        except requests.exceptions.HTTPError as e:
            raise TransientFetchError(f"HTTP error from rate provider: {e}") from e
        except requests.exceptions.RequestException as e:
            raise TransientFetchError(f"Rate provider request failed: {e}") from e
        except ValueError as e:
            raise TransientFetchError(f"Invalid JSON from rate provider: {e}") from e

        rates = data.get("rates") if isinstance(data, dict) else None
        if not isinstance(rates, dict):
            raise TransientFetchError("Rate table missing in API response")

        table = {}
        for code, value in rates.items():
            rate = parse_rate(value)
            if rate is not None:
                table[str(code).upper()] = rate
        return table

    async def fetch_latest_rates(self, base_currency: str) -> dict[str, Decimal]:
        """Same as get_latest_rates, run in a worker thread."""
        return await asyncio.to_thread(self.get_latest_rates, base_currency)


class LiveApiStrategy(RateResolutionStrategy):
    """Ask the provider for the base currency's table and pick the target."""

    name = "api"

    def __init__(self, client: ExchangeRateApiClient):
        self.client = client

    async def resolve(self, from_currency: str, to_currency: str) -> Decimal | None:
        try:
            rates = await self.client.fetch_latest_rates(from_currency)
        except (ConfigurationError, TransientFetchError) as e:
            logger.warning(f"Live rate fetch failed for {from_currency}/{to_currency}: {e}")
            return None

        rate = rates.get(to_currency)
        if rate is None:
            logger.warning(f"Rate for {to_currency} not found in API response for base {from_currency}")
            return None

        await record_rate(from_currency, to_currency, rate, RateSource.API)
        return rate
