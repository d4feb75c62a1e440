from decimal import Decimal

import django.core.validators
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Bike",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=120)),
                (
                    "category",
                    models.CharField(
                        help_text="Bike type shown to customers (City, Mountain, E-Bike, ...).",
                        max_length=60,
                    ),
                ),
                ("size", models.CharField(blank=True, max_length=20)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("available", "Available"),
                            ("in-repair", "In repair"),
                            ("retired", "Retired"),
                        ],
                        default="available",
                        max_length=20,
                    ),
                ),
                ("price_2h", models.DecimalField(blank=True, decimal_places=2, max_digits=8, null=True)),
                ("price_4h", models.DecimalField(blank=True, decimal_places=2, max_digits=8, null=True)),
                (
                    "price_8h",
                    models.DecimalField(
                        blank=True,
                        decimal_places=2,
                        help_text="Full-day rate; also the first-day rate of multi-day rentals.",
                        max_digits=8,
                        null=True,
                    ),
                ),
                (
                    "price_per_day",
                    models.DecimalField(
                        blank=True,
                        decimal_places=2,
                        help_text="Rate for each additional day of a multi-day rental.",
                        max_digits=8,
                        null=True,
                    ),
                ),
                (
                    "deposit_amount",
                    models.DecimalField(
                        decimal_places=2,
                        default=Decimal("0.00"),
                        max_digits=8,
                        validators=[django.core.validators.MinValueValidator(Decimal("0.00"))],
                    ),
                ),
                ("photo_url", models.URLField(blank=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "verbose_name": "Bike",
                "verbose_name_plural": "Bikes",
                "ordering": ["category", "name", "size", "id"],
                "indexes": [
                    models.Index(fields=["status"], name="fleet_bike_status_idx"),
                    models.Index(fields=["category", "name", "size"], name="fleet_bike_variant_idx"),
                ],
            },
        ),
    ]
