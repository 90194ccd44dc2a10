"""
Django ORM models for commodity pricing.
Infrastructure layer: storage details.
"""

import uuid

from django.conf import settings
from django.db import models
from django.utils import timezone


class BaseModel(models.Model):

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


class CommodityCategory(BaseModel):

    name = models.CharField(max_length=100, unique=True)
    display_order = models.PositiveIntegerField(default=0)

    class Meta:
        db_table = "commodity_categories"
        verbose_name_plural = "commodity categories"
        ordering = ["display_order", "name"]

    def __str__(self):
        return self.name


class Commodity(BaseModel):

    name = models.CharField(max_length=200)
    symbol = models.CharField(max_length=50, unique=True)
    description = models.TextField(blank=True)
    unit = models.CharField(max_length=20, default="L")
    category = models.ForeignKey(
        CommodityCategory,
        related_name="commodities",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
    )
    is_active = models.BooleanField(default=True)
    display_order = models.PositiveIntegerField(default=0)

    class Meta:
        db_table = "commodities"
        verbose_name_plural = "commodities"
        ordering = ["display_order", "symbol"]

    def __str__(self):
        return f"{self.symbol} ({self.name})"


class PriceRange(models.Model):
    """
    Band the daily update samples from. Only one currency pair is
    authoritative at write time; the other is derived with the rate of
    that moment and may drift afterwards.
    """

    commodity = models.OneToOneField(
        Commodity,
        related_name="price_range",
        on_delete=models.CASCADE,
        primary_key=True,
    )
    min_price_zar = models.DecimalField(max_digits=18, decimal_places=4, null=True, blank=True)
    max_price_zar = models.DecimalField(max_digits=18, decimal_places=4, null=True, blank=True)
    min_price_usd = models.DecimalField(max_digits=18, decimal_places=4, null=True, blank=True)
    max_price_usd = models.DecimalField(max_digits=18, decimal_places=4, null=True, blank=True)
    is_active = models.BooleanField(default=True)
    updated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        related_name="+",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
    )
    updated_at = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = "price_ranges"

    def __str__(self):
        return f"{self.commodity_id} USD {self.min_price_usd}-{self.max_price_usd}"


class CurrentPrice(models.Model):
    """Latest price snapshot, one row per commodity, overwritten each cycle."""

    commodity = models.OneToOneField(
        Commodity,
        related_name="current_price",
        on_delete=models.CASCADE,
        primary_key=True,
    )
    price_zar = models.DecimalField(max_digits=18, decimal_places=4)
    price_usd = models.DecimalField(max_digits=18, decimal_places=4)
    exchange_rate = models.DecimalField(max_digits=20, decimal_places=8)
    change_24h_percent = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    last_updated = models.DateTimeField(default=timezone.now, db_index=True)

    class Meta:
        db_table = "current_prices"
        ordering = ["-last_updated"]

    def __str__(self):
        return f"{self.commodity_id} R{self.price_zar} / ${self.price_usd}"


class PriceHistory(models.Model):
    """Append-only ledger of synthesized prices."""

    id = models.BigAutoField(primary_key=True)
    commodity = models.ForeignKey(
        Commodity,
        related_name="price_history",
        on_delete=models.CASCADE,
    )
    price_zar = models.DecimalField(max_digits=18, decimal_places=4)
    price_usd = models.DecimalField(max_digits=18, decimal_places=4)
    exchange_rate = models.DecimalField(max_digits=20, decimal_places=8)
    recorded_date = models.DateField(db_index=True)
    recorded_at = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = "price_history"
        verbose_name_plural = "price history"
        ordering = ["-recorded_date", "-recorded_at"]

    def __str__(self):
        return f"{self.commodity_id} | {self.recorded_date} | R{self.price_zar}"


class TriggerSource(models.TextChoices):
    CRON = "cron", "Scheduled"
    MANUAL = "manual", "Manual (all commodities)"
    MANUAL_SINGLE = "manual_single", "Manual (single commodity)"


class RunStatus(models.TextChoices):
    SUCCESS = "success", "Success"
    NO_UPDATES = "no_updates", "No updates"


class PriceUpdateRun(models.Model):
    """Audit record of one update invocation."""

    id = models.BigAutoField(primary_key=True)
    executed_at = models.DateTimeField(default=timezone.now, db_index=True)
    triggered_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        related_name="price_update_runs",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
    )
    trigger_source = models.CharField(max_length=20, choices=TriggerSource.choices)
    total_commodities = models.PositiveIntegerField(default=0)
    updated_commodities = models.PositiveIntegerField(default=0)
    status = models.CharField(max_length=20, choices=RunStatus.choices)
    notes = models.TextField(blank=True)

    class Meta:
        db_table = "price_update_runs"
        ordering = ["-executed_at"]

    def __str__(self):
        return (
            f"{self.executed_at:%Y-%m-%d %H:%M} | {self.trigger_source} "
            f"| {self.updated_commodities}/{self.total_commodities} ({self.status})"
        )
