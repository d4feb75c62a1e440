"""FilterSet for the staff reservation table."""

from __future__ import annotations

import django_filters  # type: ignore
from django.utils import timezone  # type: ignore

from .application.queries import (
    DATE_FILTERS,
    STATUS_FILTERS,
    filter_by_date,
    filter_by_status,
    search_reservations,
)
from .domain.policies import ShopHours
from .models import Reservation


class ReservationFilterSet(django_filters.FilterSet):
    """Status bucket, date bucket and free-text search; unknown choices are a 400."""

    status = django_filters.ChoiceFilter(
        choices=[(value, value) for value in STATUS_FILTERS],
        method="filter_status",
    )
    date = django_filters.ChoiceFilter(
        choices=[(value, value) for value in DATE_FILTERS],
        method="filter_date",
    )
    search = django_filters.CharFilter(method="filter_search")

    class Meta:
        model = Reservation
        fields: list[str] = []

    def filter_status(self, queryset, name, value):  # type: ignore
        return filter_by_status(queryset, value)

    def filter_date(self, queryset, name, value):  # type: ignore
        return filter_by_date(queryset, value, ShopHours.from_settings(), timezone.now())

    def filter_search(self, queryset, name, value):  # type: ignore
        return search_reservations(queryset, value)
