"""Read side: availability groups, staff listing, dashboard, public lookup."""

from __future__ import annotations

from datetime import time, timedelta
from decimal import Decimal

import pytest
from django.utils import timezone

from apps.reservations.application.commands import CancelCommand, CheckOutCommand
from apps.reservations.application.queries import (
    AvailabilityQuery,
    dashboard,
    public_booking,
    reservation_detail,
    staff_reservations,
)
from apps.reservations.domain.intervals import IntervalBuilder
from apps.reservations.domain.policies import parse_policy
from apps.reservations.exceptions import ReservationNotFound
from apps.reservations.filters import ReservationFilterSet
from apps.reservations.models import Reservation, ReservationItem
from apps.reservations.tokens import booking_token

from .helpers import SHOP, Desk, booking_day, make_bike, make_customer, sign_waiver

pytestmark = pytest.mark.django_db


@pytest.fixture
def desk() -> Desk:
    return Desk()


@pytest.fixture
def query() -> AvailabilityQuery:
    return AvailabilityQuery(IntervalBuilder(SHOP))


def test_availability_groups_interchangeable_bikes(query):
    small = [make_bike(name="Commuter", size="small") for _ in range(2)]
    make_bike(name="Commuter", size="large", price_2h=Decimal("18.00"))
    make_bike(name="Trail", category="Mountain", size="medium")
    make_bike(name="Broken", status="in-repair")

    _, groups = query.find(booking_day(), parse_policy("2h", SHOP), start_time=time(10, 0))

    keys = [(group.category, group.name, group.size) for group in groups]
    assert keys == [
        ("City", "Commuter", "large"),
        ("City", "Commuter", "small"),
        ("Mountain", "Trail", "medium"),
    ]
    city_small = groups[1]
    assert city_small.bike_ids == [bike.pk for bike in small]
    assert city_small.available_count == 2
    assert city_small.rental_price == Decimal("15.00")
    assert groups[0].rental_price == Decimal("18.00")


def test_booked_bike_leaves_its_group(desk, query):
    first, second = make_bike(), make_bike()
    desk.hold([first], start=time(10, 0))
    policy = parse_policy("2h", SHOP)

    _, overlapping = query.find(booking_day(), policy, start_time=time(11, 0))
    _, later = query.find(booking_day(), policy, start_time=time(12, 0))

    assert overlapping[0].bike_ids == [second.pk]
    assert later[0].bike_ids == [first.pk, second.pk]


def test_multi_day_groups_report_per_day_price(query):
    make_bike()

    _, groups = query.find(booking_day(), parse_policy("multi-day", SHOP), end_date=booking_day(12))

    assert groups[0].rental_price == Decimal("30.00")
    assert groups[0].prices["price_8h"] == Decimal("40.00")


def _staff_table(**params):
    return ReservationFilterSet(params, queryset=staff_reservations())


def test_staff_table_filters_by_status_and_search(desk):
    bike = make_bike()
    hold = desk.hold([bike], start=time(10, 0))
    paid = desk.paid([bike], start=time(14, 0))
    customer = make_customer(email="jordan@example.com", full_name="Jordan Spokes")
    Reservation.objects.filter(pk=paid.reservation_id).update(customer=customer)

    holds = _staff_table(status="hold").qs
    found = _staff_table(search="spokes").qs
    by_ref = _staff_table(search=hold.short_ref.lower()).qs

    assert [r.pk for r in holds] == [hold.reservation_id]
    assert [r.pk for r in found] == [paid.reservation_id]
    assert [r.pk for r in by_ref] == [hold.reservation_id]
    assert _staff_table(date="upcoming").qs.count() == 2
    assert _staff_table(date="past").qs.count() == 0


def test_staff_table_rejects_unknown_filters():
    unknown_status = _staff_table(status="lost")
    unknown_date = _staff_table(date="yesterday")

    assert not unknown_status.is_valid()
    assert "status" in unknown_status.errors
    assert not unknown_date.is_valid()
    assert "date" in unknown_date.errors


def test_overdue_bookings_sort_first(desk):
    bike = make_bike()
    overdue = desk.active([bike], start=time(10, 0))
    later = desk.hold([bike], start=time(14, 0))
    past_end = timezone.now() - timedelta(hours=1)
    ReservationItem.objects.filter(reservation_id=overdue.reservation_id).update(
        starts_at=past_end - timedelta(hours=2), ends_at=past_end
    )

    listing = list(staff_reservations())
    overdue_only = list(_staff_table(status="overdue").qs)

    assert listing[0].pk == overdue.reservation_id
    assert listing[0].is_overdue
    assert not listing[1].is_overdue
    assert listing[1].pk == later.reservation_id
    assert [r.pk for r in overdue_only] == [overdue.reservation_id]


def test_reservation_detail_includes_items_waivers_and_notes(desk):
    hold = desk.paid([make_bike()])
    desk.cancel(CancelCommand(reservation_id=hold.reservation_id, reason="Rain"))

    reservation = reservation_detail(hold.reservation_id)

    assert len(reservation.items.all()) == 1
    assert len(reservation.waivers.all()) == 1
    assert [note.text for note in reservation.notes.all()] == ["Cancelled: Rain"]
    assert reservation.is_overdue is False


def test_dashboard_counts(desk):
    bikes = [make_bike(name=f"Bike {n}") for n in range(3)]
    make_bike(name="Spare", status="in-repair")
    out = desk.paid([bikes[0]])
    desk.check_out(CheckOutCommand(reservation_id=out.reservation_id))
    sign_waiver()

    snapshot = dashboard(SHOP)

    stats = snapshot["stats"]
    assert stats["active_rentals"] == 1
    assert stats["overdue_count"] == 0
    assert stats["available_fleet"] == 3
    assert stats["total_fleet"] == 4
    assert stats["waivers_ready"] == 1
    assert snapshot["alerts"]["overdue"] == []


def test_dashboard_alerts_for_upcoming_bookings_missing_waivers(desk):
    bike = make_bike()
    soon = SHOP.today(timezone.now()) + timedelta(days=1)
    hold = desk.hold([bike], on=soon, start=time(10, 0))

    alerts = dashboard(SHOP, now=SHOP.at(soon, time(8, 0)))["alerts"]["unsigned_waivers"]

    assert [alert["short_ref"] for alert in alerts] == [hold.short_ref]
    assert alerts[0]["waiver_count"] == 0


def test_public_booking_needs_the_matching_token(desk):
    hold = desk.hold([make_bike()])

    reservation = public_booking(hold.short_ref.lower(), booking_token(hold.short_ref))

    assert reservation.pk == hold.reservation_id
    with pytest.raises(ReservationNotFound):
        public_booking(hold.short_ref, "0" * 12)
    with pytest.raises(ReservationNotFound):
        public_booking(hold.short_ref, None)


def test_public_booking_hides_cancelled_reservations(desk):
    hold = desk.hold([make_bike()])
    desk.cancel(CancelCommand(reservation_id=hold.reservation_id))

    with pytest.raises(ReservationNotFound):
        public_booking(hold.short_ref, booking_token(hold.short_ref))
