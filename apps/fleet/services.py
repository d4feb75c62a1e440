"""Inventory lookups used by the reservation engine and the staff dashboard."""

from __future__ import annotations

from collections import OrderedDict
from datetime import datetime
from typing import Iterable

from django.db.models import Exists, OuterRef  # type: ignore
from django.utils import timezone  # type: ignore

from .models import Bike


def get_units(unit_ids: Iterable[int]) -> dict[int, Bike]:
    """Bikes by id; unknown ids are simply absent from the result."""

    return {bike.pk: bike for bike in Bike.objects.filter(id__in=list(unit_ids))}


def is_operational(unit: Bike) -> bool:
    return unit.status == Bike.Status.AVAILABLE


def operational_units():
    return Bike.objects.filter(status=Bike.Status.AVAILABLE)


def fleet_status(now: datetime | None = None) -> list[dict]:
    """Per-category counts of the fleet.

    ``rented_out`` bikes are with a customer right now; ``reserved`` bikes
    belong to a paid booking that has not been picked up and has not ended.
    """

    from apps.reservations.models import ReservationItem
    from apps.reservations.domain.lifecycle import ReservationStatus

    now = now or timezone.now()
    out_with_customer = ReservationItem.objects.out_with_customer().filter(bike=OuterRef("pk"))
    reserved = ReservationItem.objects.live().filter(
        bike=OuterRef("pk"),
        reservation__status=ReservationStatus.PAID.value,
        checked_out_at__isnull=True,
        ends_at__gt=now,
    )
    bikes = Bike.objects.annotate(
        is_rented_out=Exists(out_with_customer),
        is_reserved=Exists(reserved),
    ).order_by("category", "id")

    groups: "OrderedDict[str, dict]" = OrderedDict()
    for bike in bikes:
        group = groups.setdefault(
            bike.category,
            {
                "category": bike.category,
                "total": 0,
                "available": 0,
                "rented_out": 0,
                "reserved": 0,
                "maintenance": 0,
            },
        )
        group["total"] += 1
        if bike.is_rented_out:
            group["rented_out"] += 1
        elif is_operational(bike):
            group["available"] += 1
        if bike.is_reserved:
            group["reserved"] += 1
        if bike.status == Bike.Status.IN_REPAIR:
            group["maintenance"] += 1
    return list(groups.values())
