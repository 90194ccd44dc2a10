import uuid

import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="ExchangeRate",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("from_currency", models.CharField(db_index=True, max_length=10)),
                ("to_currency", models.CharField(db_index=True, max_length=10)),
                ("rate", models.DecimalField(decimal_places=8, max_digits=20)),
                ("recorded_at", models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                (
                    "source",
                    models.CharField(
                        choices=[
                            ("api", "API"),
                            ("api_batch", "API (batch)"),
                            ("fallback", "Fallback"),
                            ("daily_update", "Daily update"),
                        ],
                        default="api",
                        max_length=20,
                    ),
                ),
            ],
            options={
                "db_table": "exchange_rates",
                "ordering": ["-recorded_at"],
                "indexes": [
                    models.Index(fields=["from_currency", "to_currency", "-recorded_at"], name="exch_pair_recent_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(condition=models.Q(("rate__gt", 0)), name="exchange_rate_positive"),
                ],
            },
        ),
    ]
