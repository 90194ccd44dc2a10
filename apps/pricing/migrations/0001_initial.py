import uuid

import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="CommodityCategory",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("name", models.CharField(max_length=100, unique=True)),
                ("display_order", models.PositiveIntegerField(default=0)),
            ],
            options={
                "db_table": "commodity_categories",
                "verbose_name_plural": "commodity categories",
                "ordering": ["display_order", "name"],
            },
        ),
        migrations.CreateModel(
            name="Commodity",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("name", models.CharField(max_length=200)),
                ("symbol", models.CharField(max_length=50, unique=True)),
                ("description", models.TextField(blank=True)),
                ("unit", models.CharField(default="L", max_length=20)),
                ("is_active", models.BooleanField(default=True)),
                ("display_order", models.PositiveIntegerField(default=0)),
                (
                    "category",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="commodities",
                        to="pricing.commoditycategory",
                    ),
                ),
            ],
            options={
                "db_table": "commodities",
                "verbose_name_plural": "commodities",
                "ordering": ["display_order", "symbol"],
            },
        ),
        migrations.CreateModel(
            name="PriceRange",
            fields=[
                (
                    "commodity",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.CASCADE,
                        primary_key=True,
                        related_name="price_range",
                        serialize=False,
                        to="pricing.commodity",
                    ),
                ),
                ("min_price_zar", models.DecimalField(blank=True, decimal_places=4, max_digits=18, null=True)),
                ("max_price_zar", models.DecimalField(blank=True, decimal_places=4, max_digits=18, null=True)),
                ("min_price_usd", models.DecimalField(blank=True, decimal_places=4, max_digits=18, null=True)),
                ("max_price_usd", models.DecimalField(blank=True, decimal_places=4, max_digits=18, null=True)),
                ("is_active", models.BooleanField(default=True)),
                ("updated_at", models.DateTimeField(default=django.utils.timezone.now)),
                (
                    "updated_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "db_table": "price_ranges",
            },
        ),
        migrations.CreateModel(
            name="CurrentPrice",
            fields=[
                (
                    "commodity",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.CASCADE,
                        primary_key=True,
                        related_name="current_price",
                        serialize=False,
                        to="pricing.commodity",
                    ),
                ),
                ("price_zar", models.DecimalField(decimal_places=4, max_digits=18)),
                ("price_usd", models.DecimalField(decimal_places=4, max_digits=18)),
                ("exchange_rate", models.DecimalField(decimal_places=8, max_digits=20)),
                ("change_24h_percent", models.DecimalField(decimal_places=2, default=0, max_digits=12)),
                ("last_updated", models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
            ],
            options={
                "db_table": "current_prices",
                "ordering": ["-last_updated"],
            },
        ),
        migrations.CreateModel(
            name="PriceHistory",
            fields=[
                ("id", models.BigAutoField(primary_key=True, serialize=False)),
                ("price_zar", models.DecimalField(decimal_places=4, max_digits=18)),
                ("price_usd", models.DecimalField(decimal_places=4, max_digits=18)),
                ("exchange_rate", models.DecimalField(decimal_places=8, max_digits=20)),
                ("recorded_date", models.DateField(db_index=True)),
                ("recorded_at", models.DateTimeField(default=django.utils.timezone.now)),
                (
                    "commodity",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="price_history",
                        to="pricing.commodity",
                    ),
                ),
            ],
            options={
                "db_table": "price_history",
                "verbose_name_plural": "price history",
                "ordering": ["-recorded_date", "-recorded_at"],
            },
        ),
        migrations.CreateModel(
            name="PriceUpdateRun",
            fields=[
                ("id", models.BigAutoField(primary_key=True, serialize=False)),
                ("executed_at", models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                (
                    "trigger_source",
                    models.CharField(
                        choices=[
                            ("cron", "Scheduled"),
                            ("manual", "Manual (all commodities)"),
                            ("manual_single", "Manual (single commodity)"),
                        ],
                        max_length=20,
                    ),
                ),
                ("total_commodities", models.PositiveIntegerField(default=0)),
                ("updated_commodities", models.PositiveIntegerField(default=0)),
                (
                    "status",
                    models.CharField(
                        choices=[("success", "Success"), ("no_updates", "No updates")],
                        max_length=20,
                    ),
                ),
                ("notes", models.TextField(blank=True)),
                (
                    "triggered_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="price_update_runs",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "db_table": "price_update_runs",
                "ordering": ["-executed_at"],
            },
        ),
    ]
