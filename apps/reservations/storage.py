"""Row locks, the overlap guard and interval release for reservation items."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterable
from uuid import UUID

import structlog
from django.db import IntegrityError, NotSupportedError, transaction  # type: ignore
from django.db.models import F  # type: ignore

from shared.domain.value_objects import TimeInterval

from apps.fleet.models import Bike

from .exceptions import ReservationConflict, ReservationNotFound
from .models import RELEASED_STATUS_VALUES, Reservation, ReservationItem

logger = structlog.get_logger(__name__)

# PostgreSQL SQLSTATE raised by an EXCLUDE constraint.
EXCLUSION_VIOLATION = "23P01"


def _lock_queryset_if_possible(queryset):
    """Apply select_for_update when inside transaction.atomic()."""

    if not transaction.get_connection().in_atomic_block:
        return queryset

    try:
        return queryset.select_for_update()
    except NotSupportedError:
        return queryset


def lock_reservation(reservation_id: UUID) -> Reservation:
    """Lock the reservation header row and re-read it."""

    queryset = _lock_queryset_if_possible(Reservation.objects.filter(pk=reservation_id))
    reservation = queryset.first()
    if reservation is None:
        raise ReservationNotFound()
    return reservation


def lock_items(reservation: Reservation, item_ids: Iterable[int] | None = None, **filters) -> list[ReservationItem]:
    """Lock the reservation's items, all matching ``filters`` or just ``item_ids``."""

    queryset = ReservationItem.objects.filter(reservation=reservation)
    if item_ids:
        queryset = queryset.filter(id__in=list(item_ids))
    else:
        queryset = queryset.filter(**filters)
    return list(_lock_queryset_if_possible(queryset.order_by("id")))


def lock_bikes(bike_ids: Iterable[int]) -> list[Bike]:
    """Lock bike rows in id order so writers for the same bike queue up."""

    queryset = Bike.objects.filter(id__in=list(bike_ids)).order_by("id")
    return list(_lock_queryset_if_possible(queryset))


def guard_against_overlap(
    bike_ids: Iterable[int],
    interval: TimeInterval,
    exclude_reservation_id: UUID | None = None,
) -> None:
    """Raise ReservationConflict if a live item of these bikes intersects ``interval``.

    Runs inside the writing transaction after the bikes are locked, so on
    backends without an exclusion constraint it is the storage guarantee.
    """

    if interval.is_empty:
        return
    clashes = ReservationItem.objects.overlapping(interval).filter(bike_id__in=list(bike_ids))
    if exclude_reservation_id is not None:
        clashes = clashes.exclude(reservation_id=exclude_reservation_id)
    clashing_bikes = sorted(set(clashes.values_list("bike_id", flat=True)))
    if clashing_bikes:
        logger.warning(
            "overlap_guard_rejected",
            bike_ids=clashing_bikes,
            starts_at=interval.start.isoformat(),
            ends_at=interval.end.isoformat(),
        )
        raise ReservationConflict(bike_ids=clashing_bikes)


def release_items(reservation: Reservation) -> int:
    """Collapse every item interval of the reservation to empty."""

    return ReservationItem.objects.filter(
        reservation=reservation,
        starts_at__lt=F("ends_at"),
    ).update(ends_at=F("starts_at"))


def heal_released_overlaps(bike_ids: Iterable[int], interval: TimeInterval) -> int:
    """Collapse items of released reservations that still overlap ``interval``.

    Makes a release visible even if an earlier collapse was missed.
    """

    healed = (
        ReservationItem.objects.filter(
            bike_id__in=list(bike_ids),
            reservation__status__in=RELEASED_STATUS_VALUES,
            starts_at__lt=interval.end,
            ends_at__gt=interval.start,
        )
        .filter(starts_at__lt=F("ends_at"))
        .update(ends_at=F("starts_at"))
    )
    if healed:
        logger.info("released_items_healed", count=healed)
    return healed


def is_exclusion_violation(error: IntegrityError) -> bool:
    cause = error.__cause__
    code = getattr(cause, "sqlstate", None) or getattr(cause, "pgcode", None)
    return code == EXCLUSION_VIOLATION


@contextmanager
def exclusion_violation_as_conflict(message: str | None = None):
    """Map an exclusion-constraint IntegrityError to ReservationConflict.

    Wrap the unit of work, so the transaction has already rolled back.
    """

    try:
        yield
    except IntegrityError as e:
        if not is_exclusion_violation(e):
            raise
        logger.warning("exclusion_constraint_rejected", error=str(e))
        raise ReservationConflict(message) from e
