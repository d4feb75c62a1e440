"""
Reservation Queries

Read-only views of the schedule. None of these lock: they are point-in-time
snapshots, and every write re-validates under lock.

- AvailabilityQuery: bikes free for a candidate interval, grouped by variant
- staff_reservations / reservation_detail: staff booking views
- dashboard: counters and alerts for the front desk
- public_booking: customer lookup by reference and token
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from itertools import groupby
from typing import Iterable, List
from uuid import UUID

from django.db.models import Count, Exists, OuterRef, Prefetch, Q  # type: ignore
from django.utils import timezone  # type: ignore

from shared.domain.value_objects import TimeInterval

from apps.fleet.models import Bike
from apps.fleet.services import operational_units
from apps.waivers.models import Waiver
from apps.waivers.services import signed_today

from ..domain.intervals import IntervalBuilder
from ..domain.lifecycle import PUBLIC_STATUSES, ReservationStatus
from ..domain.policies import DurationPolicy, ShopHours
from ..exceptions import ReservationNotFound
from ..models import Reservation, ReservationItem
from ..tokens import verify_booking_token

PRICE_FIELDS = ('price_2h', 'price_4h', 'price_8h', 'price_per_day', 'deposit_amount')

STATUS_FILTERS = ['all', 'overdue', *(status.value for status in ReservationStatus)]
DATE_FILTERS = ['all', 'today', 'upcoming', 'past']


def _min_price(values: Iterable[Decimal | None]) -> Decimal | None:
    present = [value for value in values if value is not None]
    return min(present) if present else None


@dataclass(frozen=True)
class AvailableGroup:
    """Interchangeable bikes (same category, name and size) free for the interval"""
    category: str
    name: str
    size: str
    bike_ids: List[int]
    rental_price: Decimal | None
    prices: dict = field(default_factory=dict)
    photo_url: str = ''

    @property
    def available_count(self) -> int:
        return len(self.bike_ids)


class AvailabilityQuery:
    """
    Which operational bikes have no live item intersecting an interval

    Items of cancelled or voided reservations and collapsed items never
    block. Expired holds still do until something cancels them.
    """

    def __init__(self, builder: IntervalBuilder):
        self.builder = builder

    @property
    def shop(self) -> ShopHours:
        return self.builder.shop

    def free_units(self, interval: TimeInterval):
        busy = ReservationItem.objects.overlapping(interval).filter(bike=OuterRef('pk'))
        return (
            operational_units()
            .annotate(is_busy=Exists(busy))
            .filter(is_busy=False)
            .order_by('category', 'name', 'size', 'id')
        )

    def unavailable_ids(self, bike_ids: Iterable[int], interval: TimeInterval) -> set[int]:
        """Requested bikes with a live booking that intersects ``interval``"""
        return set(
            ReservationItem.objects.overlapping(interval)
            .filter(bike_id__in=list(bike_ids))
            .values_list('bike_id', flat=True)
        )

    def for_interval(self, interval: TimeInterval, policy: DurationPolicy) -> list[AvailableGroup]:
        groups = []
        for (category, name, size), members in groupby(self.free_units(interval), key=lambda bike: bike.variant_key):
            members = list(members)
            groups.append(
                AvailableGroup(
                    category=category,
                    name=name,
                    size=size,
                    bike_ids=[bike.pk for bike in members],
                    rental_price=_min_price(bike.price_for(policy.price_field) for bike in members),
                    prices={
                        price_field: _min_price(getattr(bike, price_field) for bike in members)
                        for price_field in PRICE_FIELDS
                    },
                    photo_url=next((bike.photo_url for bike in members if bike.photo_url), ''),
                )
            )
        return groups

    def find(
        self,
        on: date,
        policy: DurationPolicy,
        start_time: time | None = None,
        end_date: date | None = None,
    ) -> tuple[TimeInterval, list[AvailableGroup]]:
        interval = self.builder.build(on, policy, start_time=start_time, end_date=end_date)
        return interval, self.for_interval(interval, policy)


# ===== Staff views =====

def _local_day_bounds(shop: ShopHours, now: datetime) -> TimeInterval:
    today = shop.today(now)
    return TimeInterval(shop.at(today, time.min), shop.at(today + timedelta(days=1), time.min))


def _with_overdue_flag(queryset, now: datetime):
    overdue_items = ReservationItem.objects.overdue(now).filter(reservation=OuterRef('pk'))
    return queryset.annotate(is_overdue=Exists(overdue_items))


def staff_reservations(now: datetime | None = None):
    """Every reservation with the counters the staff table shows, overdue first"""
    now = now or timezone.now()
    return (
        _with_overdue_flag(Reservation.objects.select_related('customer'), now)
        .annotate(
            item_count=Count('items', distinct=True),
            waiver_count=Count('waivers', distinct=True),
        )
        .prefetch_related(
            Prefetch('items', queryset=ReservationItem.objects.select_related('bike').order_by('created_at', 'id')),
        )
        .order_by('-is_overdue', '-created_at')
    )


def filter_by_status(queryset, status: str):
    """``status`` is a lifecycle status, ``overdue`` or ``all``; needs the overdue flag"""
    if status == 'overdue':
        return queryset.filter(status=ReservationStatus.ACTIVE.value, is_overdue=True)
    if status and status != 'all':
        return queryset.filter(status=status)
    return queryset


def filter_by_date(queryset, date_filter: str, shop: ShopHours, now: datetime):
    if date_filter == 'today':
        day = _local_day_bounds(shop, now)
        return queryset.filter(starts_at__gte=day.start, starts_at__lt=day.end)
    if date_filter == 'upcoming':
        return queryset.filter(starts_at__gt=now)
    if date_filter == 'past':
        return queryset.filter(ends_at__lt=now)
    return queryset


def search_reservations(queryset, term: str | None):
    """Case-insensitive match on customer name, email, phone or reference"""
    term = (term or '').strip()
    if not term:
        return queryset
    return queryset.filter(
        Q(customer__full_name__icontains=term)
        | Q(customer__email__icontains=term)
        | Q(customer__phone__icontains=term)
        | Q(short_ref__icontains=term)
    )


def reservation_detail(reservation_id: UUID, now: datetime | None = None) -> Reservation:
    now = now or timezone.now()
    queryset = _with_overdue_flag(Reservation.objects.select_related('customer'), now).prefetch_related(
        Prefetch('items', queryset=ReservationItem.objects.select_related('bike').order_by('created_at', 'id')),
        Prefetch('waivers', queryset=Waiver.objects.select_related('customer', 'guardian').order_by('created_at')),
        'notes',
    )
    reservation = queryset.filter(pk=reservation_id).first()
    if reservation is None:
        raise ReservationNotFound()
    return reservation


def dashboard(shop: ShopHours, now: datetime | None = None) -> dict:
    """Front-desk snapshot; eventually consistent, no locking"""
    now = now or timezone.now()
    out = ReservationItem.objects.out_with_customer()
    day = _local_day_bounds(shop, now)
    overdue = out.filter(ends_at__lt=now).select_related('reservation__customer', 'bike').order_by('ends_at')

    upcoming_without_waivers = (
        Reservation.objects.filter(
            status__in=[ReservationStatus.HOLD.value, ReservationStatus.PAID.value],
            starts_at__gte=now,
            starts_at__lte=now + timedelta(hours=24),
        )
        .select_related('customer')
        .annotate(
            item_count=Count('items', distinct=True),
            waiver_count=Count('waivers', distinct=True),
        )
        .order_by('starts_at')
    )

    return {
        'stats': {
            'active_rentals': out.count(),
            'returns_due_today': out.filter(ends_at__gte=day.start, ends_at__lt=day.end).count(),
            'overdue_count': overdue.count(),
            'available_fleet': Bike.objects.filter(status=Bike.Status.AVAILABLE).count(),
            'total_fleet': Bike.objects.count(),
            'waivers_ready': signed_today().filter(reservation__isnull=True).count(),
        },
        'alerts': {
            'overdue': [
                {
                    'reservation_id': str(item.reservation_id),
                    'short_ref': item.reservation.short_ref,
                    'customer_name': item.reservation.customer.full_name if item.reservation.customer else None,
                    'bike_name': item.bike.name,
                    'due_at': item.ends_at,
                }
                for item in overdue
            ],
            'unsigned_waivers': [
                {
                    'reservation_id': str(reservation.pk),
                    'short_ref': reservation.short_ref,
                    'customer_name': reservation.customer.full_name if reservation.customer else None,
                    'item_count': reservation.item_count,
                    'waiver_count': reservation.waiver_count,
                }
                for reservation in upcoming_without_waivers
                if reservation.waiver_count < reservation.item_count
            ],
        },
    }


def public_booking(short_ref: str, token: str | None) -> Reservation:
    """Booking visible to the customer holding its reference and token"""
    if not verify_booking_token(short_ref, token):
        raise ReservationNotFound()
    reservation = (
        Reservation.objects.select_related('customer')
        .prefetch_related(
            Prefetch('items', queryset=ReservationItem.objects.select_related('bike').order_by('created_at', 'id')),
            Prefetch('waivers', queryset=Waiver.objects.select_related('customer').order_by('created_at')),
        )
        .filter(
            short_ref=short_ref.upper(),
            status__in=[status.value for status in PUBLIC_STATUSES],
        )
        .first()
    )
    if reservation is None:
        raise ReservationNotFound()
    return reservation
