from apps.pricing.infrastructure.persistence.models import (  # noqa: F401
    Commodity,
    CommodityCategory,
    CurrentPrice,
    PriceHistory,
    PriceRange,
    PriceUpdateRun,
    RunStatus,
    TriggerSource,
)
