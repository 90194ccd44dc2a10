"""
Django ORM models for persistence.
Infrastructure layer: storage details.
"""

import uuid

from django.db import models
from django.utils import timezone


class BaseModel(models.Model):

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


class RateSource(models.TextChoices):
    """Where a persisted rate came from."""

    API = "api", "API"
    API_BATCH = "api_batch", "API (batch)"
    FALLBACK = "fallback", "Fallback"
    DAILY_UPDATE = "daily_update", "Daily update"


class ExchangeRate(BaseModel):
    """
    Append-only rate log. The current rate of a pair is its newest row.
    """

    from_currency = models.CharField(max_length=10, db_index=True)
    to_currency = models.CharField(max_length=10, db_index=True)
    rate = models.DecimalField(max_digits=20, decimal_places=8)
    recorded_at = models.DateTimeField(default=timezone.now, db_index=True)
    source = models.CharField(
        max_length=20,
        choices=RateSource.choices,
        default=RateSource.API,
    )

    class Meta:
        db_table = "exchange_rates"
        constraints = [
            models.CheckConstraint(condition=models.Q(rate__gt=0), name="exchange_rate_positive"),
        ]
        indexes = [
            models.Index(fields=["from_currency", "to_currency", "-recorded_at"], name="exch_pair_recent_idx"),
        ]
        ordering = ["-recorded_at"]

    def __str__(self):
        return f"{self.from_currency}/{self.to_currency} | {self.recorded_at:%Y-%m-%d %H:%M} | {self.rate} ({self.source})"
