"""Waiver queries and linking used by the reservation engine."""

from __future__ import annotations

from typing import Iterable
from uuid import UUID

from django.db.models import QuerySet  # type: ignore
from django.utils import timezone  # type: ignore

from .models import Waiver


def has_any_waiver(reservation_id: UUID) -> bool:
    """True when at least one waiver is linked to the reservation."""

    return Waiver.objects.filter(reservation_id=reservation_id).exists()


def signed_today() -> QuerySet:
    return Waiver.objects.filter(signed_at__date=timezone.localdate())


def unlinked_waivers() -> QuerySet:
    """Waivers signed today that are not attached to any reservation yet."""

    return (
        signed_today()
        .filter(reservation__isnull=True)
        .select_related("customer")
        .order_by("-signed_at")
    )


def link_waivers(reservation, waiver_ids: Iterable[UUID]) -> list[Waiver]:
    """Attach today's unlinked waivers among ``waiver_ids`` to ``reservation``.

    Waivers already linked elsewhere, signed on another day or unknown are
    skipped. Returns the waivers that were linked, oldest signature first.
    """

    candidates = list(
        unlinked_waivers()
        .filter(id__in=list(waiver_ids))
        .order_by("signed_at", "created_at")
    )
    if not candidates:
        return []

    Waiver.objects.filter(
        id__in=[waiver.id for waiver in candidates],
        reservation__isnull=True,
    ).update(reservation=reservation)
    for waiver in candidates:
        waiver.reservation = reservation
    return candidates
