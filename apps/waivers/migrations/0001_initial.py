import uuid

import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("customers", "0001_initial"),
        ("reservations", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Waiver",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("is_minor", models.BooleanField(default=False)),
                ("consent_electronic", models.BooleanField(default=True)),
                ("consent_terms", models.BooleanField(default=True)),
                ("signed_at", models.DateTimeField()),
                ("signer_ip", models.GenericIPAddressField(blank=True, null=True)),
                ("signer_user_agent", models.TextField(blank=True)),
                (
                    "document_key",
                    models.CharField(
                        blank=True,
                        help_text="Storage key of the rendered waiver document.",
                        max_length=255,
                    ),
                ),
                ("document_sha256", models.CharField(blank=True, max_length=64)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "customer",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="waivers",
                        to="customers.customer",
                    ),
                ),
                (
                    "guardian",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="guarded_waivers",
                        to="customers.customer",
                    ),
                ),
                (
                    "reservation",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="waivers",
                        to="reservations.reservation",
                    ),
                ),
            ],
            options={
                "verbose_name": "Waiver",
                "verbose_name_plural": "Waivers",
                "ordering": ["created_at"],
                "indexes": [
                    models.Index(fields=["reservation"], name="waiver_reservation_idx"),
                    models.Index(fields=["signed_at"], name="waiver_signed_at_idx"),
                ],
            },
        ),
    ]
