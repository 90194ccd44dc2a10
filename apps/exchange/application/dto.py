"""
Data Transfer Objects for the application layer.
DTOs decouple internal domain models from external API contracts.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal


@dataclass
class ExchangeRateDTO:
    """A persisted exchange rate row."""
    from_currency: str
    to_currency: str
    rate: Decimal
    recorded_at: datetime
    source: str

    @classmethod
    def from_model(cls, row) -> "ExchangeRateDTO":
        return cls(
            from_currency=row.from_currency,
            to_currency=row.to_currency,
            rate=row.rate,
            recorded_at=row.recorded_at,
            source=row.source,
        )

    def to_dict(self) -> dict:
        return {
            "from_currency": self.from_currency,
            "to_currency": self.to_currency,
            "rate": str(self.rate),
            "recorded_at": self.recorded_at.isoformat(),
            "source": self.source,
        }


@dataclass
class ConversionResultDTO:
    """Result DTO for currency conversion."""
    from_currency: str
    to_currency: str
    original_amount: Decimal
    converted_amount: Decimal
    exchange_rate: Decimal

    def to_dict(self) -> dict:
        return {
            "from": self.from_currency,
            "to": self.to_currency,
            "amount": str(self.original_amount),
            "converted_amount": str(self.converted_amount),
            "exchange_rate": str(self.exchange_rate),
        }
