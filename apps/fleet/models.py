"""Fleet models: the rentable bikes."""

from __future__ import annotations

from decimal import Decimal

from django.core.validators import MinValueValidator  # type: ignore
from django.db import models  # type: ignore
from django.utils.translation import gettext_lazy as _  # type: ignore


class Bike(models.Model):
    """One physical bike that can be rented.

    Bikes sharing name, category and size are interchangeable when listing
    availability; a reservation item always points at one concrete bike.
    """

    class Status(models.TextChoices):
        AVAILABLE = "available", _("Available")
        IN_REPAIR = "in-repair", _("In repair")
        RETIRED = "retired", _("Retired")

    name = models.CharField(max_length=120)
    category = models.CharField(
        max_length=60,
        help_text=_("Bike type shown to customers (City, Mountain, E-Bike, ...)."),
    )
    size = models.CharField(max_length=20, blank=True)
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.AVAILABLE,
    )
    price_2h = models.DecimalField(max_digits=8, decimal_places=2, null=True, blank=True)
    price_4h = models.DecimalField(max_digits=8, decimal_places=2, null=True, blank=True)
    price_8h = models.DecimalField(
        max_digits=8,
        decimal_places=2,
        null=True,
        blank=True,
        help_text=_("Full-day rate; also the first-day rate of multi-day rentals."),
    )
    price_per_day = models.DecimalField(
        max_digits=8,
        decimal_places=2,
        null=True,
        blank=True,
        help_text=_("Rate for each additional day of a multi-day rental."),
    )
    deposit_amount = models.DecimalField(
        max_digits=8,
        decimal_places=2,
        default=Decimal("0.00"),
        validators=[MinValueValidator(Decimal("0.00"))],
    )
    photo_url = models.URLField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _("Bike")
        verbose_name_plural = _("Bikes")
        ordering = ["category", "name", "size", "id"]
        indexes = [
            models.Index(fields=["status"], name="fleet_bike_status_idx"),
            models.Index(fields=["category", "name", "size"], name="fleet_bike_variant_idx"),
        ]

    def __str__(self) -> str:
        label = f"{self.name} ({self.size})" if self.size else self.name
        return f"#{self.pk} {label}"

    @property
    def variant_key(self) -> tuple[str, str, str]:
        return (self.category, self.name, self.size)

    def price_for(self, field_name: str) -> Decimal | None:
        """Price stored in one of the price table columns, None when unset."""
        return getattr(self, field_name, None)
