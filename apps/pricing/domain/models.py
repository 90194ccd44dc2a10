"""
Pure domain entities for the daily update cycle.
No dependency on Django or the ORM.
"""

import enum
from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional


class ItemState(enum.Enum):
    PENDING = "pending"
    PRICED = "priced"
    PERSISTED = "persisted"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class UsdBounds:
    min_price: Decimal
    max_price: Decimal
    derived: bool = False


@dataclass
class CommodityUpdate:
    """One commodity's progress through a cycle."""

    commodity_id: str
    symbol: str
    state: ItemState = ItemState.PENDING
    price_usd: Optional[Decimal] = None
    price_zar: Optional[Decimal] = None
    change_24h_percent: Optional[Decimal] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class SkippedCommodity:
    commodity_id: str
    symbol: str
    reason: str

    def to_dict(self) -> dict:
        return {"commodity_id": self.commodity_id, "symbol": self.symbol, "reason": self.reason}


@dataclass(frozen=True)
class FailedCommodity:
    commodity_id: str
    symbol: str
    message: str

    def to_dict(self) -> dict:
        return {"commodity_id": self.commodity_id, "symbol": self.symbol, "error": self.message}


@dataclass
class UpdateSummary:
    updated: int = 0
    total: int = 0
    exchange_rate: Optional[Decimal] = None
    skipped: List[SkippedCommodity] = field(default_factory=list)
    failures: List[FailedCommodity] = field(default_factory=list)

    @property
    def status(self) -> str:
        return "success" if self.updated > 0 else "no_updates"

    def notes(self) -> str:
        return f"Skipped: {len(self.skipped)}, failed: {len(self.failures)}"

    def to_dict(self) -> dict:
        return {
            "success": True,
            "updated": self.updated,
            "total": self.total,
            "exchange_rate": str(self.exchange_rate) if self.exchange_rate is not None else None,
            "skipped": [item.to_dict() for item in self.skipped],
            "failures": [item.to_dict() for item in self.failures],
        }
