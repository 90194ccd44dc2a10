from apps.exchange.infrastructure.persistence.models import ExchangeRate, RateSource  # noqa: F401
