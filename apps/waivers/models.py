"""Waiver signature records."""

from __future__ import annotations

import uuid

from django.db import models  # type: ignore
from django.utils.translation import gettext_lazy as _  # type: ignore


class Waiver(models.Model):
    """A waiver signed by one customer, optionally tied to a reservation.

    Waivers signed at the counter start unlinked; staff attach them to the
    booking later.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    reservation = models.ForeignKey(
        "reservations.Reservation",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="waivers",
    )
    customer = models.ForeignKey(
        "customers.Customer",
        on_delete=models.PROTECT,
        related_name="waivers",
    )
    guardian = models.ForeignKey(
        "customers.Customer",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="guarded_waivers",
    )
    is_minor = models.BooleanField(default=False)
    consent_electronic = models.BooleanField(default=True)
    consent_terms = models.BooleanField(default=True)
    signed_at = models.DateTimeField()
    signer_ip = models.GenericIPAddressField(null=True, blank=True)
    signer_user_agent = models.TextField(blank=True)
    document_key = models.CharField(
        max_length=255,
        blank=True,
        help_text=_("Storage key of the rendered waiver document."),
    )
    document_sha256 = models.CharField(max_length=64, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = _("Waiver")
        verbose_name_plural = _("Waivers")
        ordering = ["created_at"]
        indexes = [
            models.Index(fields=["reservation"], name="waiver_reservation_idx"),
            models.Index(fields=["signed_at"], name="waiver_signed_at_idx"),
        ]

    def __str__(self) -> str:
        return f"Waiver {self.pk} ({self.customer_id})"
