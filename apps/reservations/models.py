"""Reservation models: booking header, per-bike line items and notes."""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal

from django.db import models  # type: ignore
from django.db.models import F, Q  # type: ignore
from django.utils.translation import gettext_lazy as _  # type: ignore

from shared.domain.base import EventRecorder
from shared.domain.value_objects import TimeInterval

from .domain.lifecycle import RELEASED_STATUSES, ReservationStatus

STATUS_CHOICES = [(status.value, status.label) for status in ReservationStatus]
RELEASED_STATUS_VALUES = [status.value for status in RELEASED_STATUSES]


class Reservation(EventRecorder, models.Model):
    """Booking aggregate header.

    ``starts_at``/``ends_at`` bound all of the booking's items and are kept
    for header-level queries; conflicts are decided on the items.
    """

    Status = ReservationStatus

    class Source(models.TextChoices):
        ONLINE = "online", _("Online")
        WALK_IN = "walk-in", _("Walk-in")

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    short_ref = models.CharField(max_length=6, unique=True, editable=False)
    customer = models.ForeignKey(
        "customers.Customer",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="reservations",
    )
    starts_at = models.DateTimeField()
    ends_at = models.DateTimeField()
    duration_type = models.CharField(max_length=20)
    status = models.CharField(
        max_length=20,
        choices=STATUS_CHOICES,
        default=ReservationStatus.HOLD.value,
    )
    source = models.CharField(
        max_length=20,
        choices=Source.choices,
        default=Source.ONLINE,
    )
    hold_expires_at = models.DateTimeField(null=True, blank=True)
    total_amount = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        default=Decimal("0.00"),
        help_text=_("Rental plus deposit."),
    )
    deposit_amount = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal("0.00"))
    payment_token = models.CharField(max_length=500, blank=True)
    gateway_txn_id = models.CharField(max_length=100, blank=True)
    deposit_captured_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _("Reservation")
        verbose_name_plural = _("Reservations")
        ordering = ["-created_at"]
        constraints = [
            models.CheckConstraint(
                condition=Q(ends_at__gte=F("starts_at")),
                name="reservation_interval_ordered",
            ),
        ]
        indexes = [
            models.Index(fields=["status"], name="reservation_status_idx"),
            models.Index(fields=["starts_at", "ends_at"], name="reservation_period_idx"),
        ]

    def __str__(self) -> str:
        return f"Reservation {self.short_ref} ({self.status})"

    @property
    def interval(self) -> TimeInterval:
        return TimeInterval(self.starts_at, self.ends_at)

    @property
    def rental_amount(self) -> Decimal:
        return self.total_amount - self.deposit_amount


class ReservationItemQuerySet(models.QuerySet):
    def live(self):
        """Items still occupying time: reservation not released, interval not collapsed."""
        return self.exclude(reservation__status__in=RELEASED_STATUS_VALUES).filter(
            starts_at__lt=F("ends_at")
        )

    def overlapping(self, interval: TimeInterval):
        return self.live().filter(starts_at__lt=interval.end, ends_at__gt=interval.start)

    def out_with_customer(self):
        return self.filter(
            reservation__status=ReservationStatus.ACTIVE.value,
            checked_out_at__isnull=False,
            checked_in_at__isnull=True,
        )

    def overdue(self, now: datetime):
        return self.out_with_customer().filter(ends_at__lt=now)


class ReservationItem(models.Model):
    """One bike committed to one reservation for ``[starts_at, ends_at)``.

    A released item is collapsed to an empty interval (``ends_at ==
    starts_at``) instead of being deleted.
    """

    reservation = models.ForeignKey(
        Reservation,
        on_delete=models.CASCADE,
        related_name="items",
    )
    bike = models.ForeignKey(
        "fleet.Bike",
        on_delete=models.PROTECT,
        related_name="reservation_items",
    )
    starts_at = models.DateTimeField()
    ends_at = models.DateTimeField()
    rental_price = models.DecimalField(max_digits=10, decimal_places=2)
    deposit_amount = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal("0.00"))
    checked_out_at = models.DateTimeField(null=True, blank=True)
    checked_in_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    objects = ReservationItemQuerySet.as_manager()

    class Meta:
        verbose_name = _("Reservation item")
        verbose_name_plural = _("Reservation items")
        ordering = ["created_at", "id"]
        constraints = [
            models.CheckConstraint(
                condition=Q(ends_at__gte=F("starts_at")),
                name="reservation_item_interval_ordered",
            ),
        ]
        indexes = [
            models.Index(fields=["bike", "starts_at", "ends_at"], name="reservation_item_bike_idx"),
        ]

    def __str__(self) -> str:
        return f"Item {self.pk} of {self.reservation_id}: bike {self.bike_id}"

    @property
    def interval(self) -> TimeInterval:
        return TimeInterval(self.starts_at, self.ends_at)

    @property
    def is_released(self) -> bool:
        return self.starts_at == self.ends_at


class Note(models.Model):
    """Append-only audit entry on a reservation."""

    reservation = models.ForeignKey(
        Reservation,
        on_delete=models.CASCADE,
        related_name="notes",
    )
    text = models.TextField()
    created_by = models.CharField(max_length=150, default="system")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = _("Note")
        verbose_name_plural = _("Notes")
        ordering = ["-created_at", "-id"]

    def __str__(self) -> str:
        return f"Note on {self.reservation_id} by {self.created_by}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValueError("Notes are append-only")
        super().save(*args, **kwargs)
