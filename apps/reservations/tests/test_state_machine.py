"""Reservation lifecycle against the database: holds, payment, hand-over, release."""

from __future__ import annotations

from datetime import datetime, time, timedelta
from decimal import Decimal
from unittest.mock import patch

import pytest
from django.utils import timezone

from apps.payments.gateway import GatewayResult, SandboxGateway
from apps.reservations.application.commands import (
    CancelCommand,
    CaptureDepositCommand,
    CheckInCommand,
    CheckOutCommand,
    CompleteCommand,
    ConfirmPaymentCommand,
    CreateHoldCommand,
    CreateWalkInCommand,
    ExtendCommand,
    LinkWaiversCommand,
    VoidPaymentCommand,
)
from apps.reservations.application.queries import AvailabilityQuery
from apps.reservations.domain.intervals import IntervalBuilder
from apps.reservations.domain.policies import Hourly
from apps.reservations.exceptions import (
    DependencyFailure,
    InvalidReservationState,
    NotBookable,
    ReservationConflict,
    ReservationNotFound,
    ReservationValidationError,
)
from apps.reservations.models import Note, Reservation, ReservationItem

from .helpers import SHOP, Desk, booking_day, make_bike, sign_waiver

pytestmark = pytest.mark.django_db


@pytest.fixture
def desk() -> Desk:
    return Desk()


@pytest.fixture
def bike():
    return make_bike()


def _reload(reservation_id) -> Reservation:
    return Reservation.objects.get(pk=reservation_id)


# ===== Creating holds =====

def test_hold_records_items_prices_and_deadline(desk, bike):
    before = timezone.now()

    hold = desk.hold([bike])

    reservation = _reload(hold.reservation_id)
    assert reservation.status == "hold"
    assert reservation.source == "online"
    assert len(reservation.short_ref) == 6
    assert before + timedelta(minutes=15) <= reservation.hold_expires_at <= timezone.now() + timedelta(minutes=15)
    assert reservation.total_amount == Decimal("115.00")
    assert reservation.deposit_amount == Decimal("100.00")
    item = reservation.items.get()
    assert item.bike_id == bike.pk
    assert (item.starts_at, item.ends_at) == (hold.starts_at, hold.ends_at)
    assert item.rental_price == Decimal("15.00")
    assert len(hold.booking_token) == 12


def test_overlapping_hold_on_same_bike_conflicts(desk, bike):
    desk.hold([bike], start=time(10, 0))

    with pytest.raises(ReservationConflict) as excinfo:
        desk.hold([bike], start=time(11, 0))

    assert excinfo.value.details["bike_ids"] == [bike.pk]
    assert Reservation.objects.count() == 1


def test_adjacent_holds_do_not_conflict(desk, bike):
    desk.hold([bike], start=time(10, 0))
    desk.hold([bike], start=time(12, 0))

    assert ReservationItem.objects.filter(bike=bike).count() == 2


def test_overlap_guard_catches_a_stale_availability_check(desk, bike):
    desk.hold([bike], start=time(10, 0))

    with patch.object(AvailabilityQuery, "unavailable_ids", return_value=set()):
        with pytest.raises(ReservationConflict):
            desk.hold([bike], start=time(11, 0))

    assert Reservation.objects.count() == 1
    assert ReservationItem.objects.count() == 1


def test_multi_day_hold_prices_first_day_plus_per_day(desk, bike):
    day = booking_day()

    hold = desk.hold([bike], on=day, duration="multi-day", start=None, end_date=day + timedelta(days=2))

    item = ReservationItem.objects.get(reservation_id=hold.reservation_id)
    assert item.rental_price == Decimal("100.00")
    assert hold.total_amount == Decimal("200.00")
    assert SHOP.local(item.ends_at) == SHOP.at(day + timedelta(days=3), time.min)


def test_multi_day_longer_than_allowed_is_rejected(desk, bike):
    day = booking_day()

    with pytest.raises(ReservationValidationError):
        desk.hold([bike], on=day, duration="multi-day", start=None, end_date=day + timedelta(days=SHOP.max_rental_days))


def test_unknown_bike_is_not_found(desk):
    with pytest.raises(ReservationNotFound) as excinfo:
        desk.create_hold(CreateHoldCommand(bike_ids=[9999], on=booking_day(), duration="2h", start_time=time(10, 0)))

    assert excinfo.value.details["bike_ids"] == [9999]


def test_bike_in_repair_is_not_bookable(desk):
    bike = make_bike(status="in-repair")

    with pytest.raises(NotBookable):
        desk.hold([bike])


def test_bike_without_price_for_duration_is_not_bookable(desk):
    bike = make_bike(price_2h=None)

    with pytest.raises(NotBookable):
        desk.hold([bike])

    assert not Reservation.objects.exists()


@pytest.mark.parametrize(
    "bike_ids,message",
    [
        ([], "at least one"),
        ([1, 1], "Duplicate"),
        (list(range(1, 12)), "At most 10"),
    ],
)
def test_bike_selection_limits(desk, bike_ids, message):
    with pytest.raises(ReservationValidationError) as excinfo:
        desk.create_hold(CreateHoldCommand(bike_ids=bike_ids, on=booking_day(), duration="2h", start_time=time(10, 0)))

    assert message in excinfo.value.message


def test_start_date_in_past_is_rejected(desk, bike):
    with pytest.raises(ReservationValidationError):
        desk.hold([bike], on=booking_day(-1))


def test_unknown_duration_is_rejected(desk, bike):
    with pytest.raises(ReservationValidationError):
        desk.hold([bike], duration="3h")


def test_no_overlap_invariant_under_random_hold_attempts(desk):
    import random

    rng = random.Random(20260701)
    bikes = [make_bike(name=f"Bike {n}") for n in range(3)]
    day = booking_day()
    outcomes = {"created": 0, "conflict": 0}

    for _ in range(40):
        chosen = rng.sample(bikes, rng.randint(1, 2))
        start = time(rng.randint(8, 20), rng.choice([0, 30]))
        duration = rng.choice(["2h", "4h"])
        try:
            hold = desk.hold(chosen, on=day, duration=duration, start=start)
        except ReservationConflict:
            outcomes["conflict"] += 1
            continue
        outcomes["created"] += 1
        if rng.random() < 0.25:
            desk.cancel(CancelCommand(reservation_id=hold.reservation_id))

    assert outcomes["created"] > 0
    assert outcomes["conflict"] > 0
    for bike in bikes:
        live = list(ReservationItem.objects.live().filter(bike=bike).order_by("starts_at"))
        for earlier, later in zip(live, live[1:]):
            assert earlier.ends_at <= later.starts_at


# ===== Release =====

def test_cancel_releases_slot_for_availability(desk, bike):
    hold = desk.hold([bike])
    query = AvailabilityQuery(IntervalBuilder(SHOP))
    interval = IntervalBuilder(SHOP).build(booking_day(), Hourly(tag="2h", hours=2), start_time=time(10, 0))

    assert bike.pk not in {unit.pk for unit in query.free_units(interval)}

    desk.cancel(CancelCommand(reservation_id=hold.reservation_id, reason="Changed plans"))

    assert bike.pk in {unit.pk for unit in query.free_units(interval)}
    item = ReservationItem.objects.get(reservation_id=hold.reservation_id)
    assert item.is_released
    assert Note.objects.get(reservation_id=hold.reservation_id).text == "Cancelled: Changed plans"


def test_cancelling_twice_is_invalid_state(desk, bike):
    hold = desk.hold([bike])
    desk.cancel(CancelCommand(reservation_id=hold.reservation_id))

    with pytest.raises(InvalidReservationState) as excinfo:
        desk.cancel(CancelCommand(reservation_id=hold.reservation_id))

    assert excinfo.value.current_status == "cancelled"
    assert Note.objects.filter(reservation_id=hold.reservation_id).count() == 1


def test_new_hold_heals_cancelled_reservation_that_was_not_released(desk, bike):
    first = desk.hold([bike])
    Reservation.objects.filter(pk=first.reservation_id).update(status="cancelled")

    second = desk.hold([bike])

    assert _reload(second.reservation_id).status == "hold"
    assert ReservationItem.objects.get(reservation_id=first.reservation_id).is_released


def test_expired_hold_keeps_blocking_its_slot(desk, bike):
    hold = desk.hold([bike])
    Reservation.objects.filter(pk=hold.reservation_id).update(hold_expires_at=timezone.now() - timedelta(minutes=1))

    with pytest.raises(ReservationConflict):
        desk.hold([bike])


# ===== Payment =====

def test_booking_scenario_from_hold_to_completed(desk, bike):
    hold = desk.hold([bike])

    with pytest.raises(InvalidReservationState) as excinfo:
        desk.confirm(ConfirmPaymentCommand(reservation_id=hold.reservation_id, payment_token="ticket-1"))
    assert "Waiver required" in excinfo.value.message

    waiver = sign_waiver()
    linked = desk.link_waivers(LinkWaiversCommand(reservation_id=hold.reservation_id, waiver_ids=[waiver.pk]))
    assert linked.linked == 1

    paid = desk.confirm(ConfirmPaymentCommand(reservation_id=hold.reservation_id, payment_token="ticket-1"))
    assert paid.status == "paid"
    reservation = _reload(hold.reservation_id)
    assert reservation.customer_id == waiver.customer_id
    assert reservation.gateway_txn_id.startswith("sandbox-txn-")
    assert reservation.payment_token == "ticket-1"

    out = desk.check_out(CheckOutCommand(reservation_id=hold.reservation_id))
    assert (out.status, out.affected) == ("active", 1)

    back = desk.check_in(CheckInCommand(reservation_id=hold.reservation_id))
    assert (back.status, back.affected, back.all_returned) == ("completed", 1, True)


def test_expired_hold_cannot_be_paid(desk, bike):
    hold = desk.hold([bike])
    sign_waiver(reservation=Reservation.objects.get(pk=hold.reservation_id))
    Reservation.objects.filter(pk=hold.reservation_id).update(hold_expires_at=timezone.now() - timedelta(seconds=1))

    with pytest.raises(ReservationNotFound):
        desk.confirm(ConfirmPaymentCommand(reservation_id=hold.reservation_id, payment_token="ticket-1"))

    assert _reload(hold.reservation_id).status == "hold"


def test_declined_payment_leaves_hold_untouched(desk, bike):
    hold = desk.hold([bike])
    sign_waiver(reservation=Reservation.objects.get(pk=hold.reservation_id))

    with pytest.raises(DependencyFailure) as excinfo:
        desk.confirm(ConfirmPaymentCommand(reservation_id=hold.reservation_id, payment_token="decline-card"))

    assert excinfo.value.status_code == 402
    assert excinfo.value.code == "payment_declined"
    reservation = _reload(hold.reservation_id)
    assert reservation.status == "hold"
    assert reservation.gateway_txn_id == ""


def test_paying_twice_is_invalid_state(desk, bike):
    hold = desk.paid([bike])

    with pytest.raises(InvalidReservationState):
        desk.confirm(ConfirmPaymentCommand(reservation_id=hold.reservation_id, payment_token="ticket-2"))


def test_void_payment_releases_booking(desk, bike):
    hold = desk.paid([bike])

    result = desk.void(VoidPaymentCommand(reservation_id=hold.reservation_id))

    assert result.status == "voided"
    assert ReservationItem.objects.get(reservation_id=hold.reservation_id).is_released
    assert Note.objects.filter(reservation_id=hold.reservation_id, text="Payment voided").exists()
    desk.hold([bike])


def test_failed_void_keeps_booking_paid(desk, bike):
    hold = desk.paid([bike])

    with patch.object(SandboxGateway, "void", return_value=GatewayResult(success=False, message="VOID FAILED")):
        with pytest.raises(DependencyFailure) as excinfo:
            desk.void(VoidPaymentCommand(reservation_id=hold.reservation_id))

    assert excinfo.value.status_code == 502
    assert _reload(hold.reservation_id).status == "paid"
    assert not ReservationItem.objects.get(reservation_id=hold.reservation_id).is_released


def test_capture_deposit_keeps_status(desk, bike):
    hold = desk.paid([bike])

    result = desk.capture(CaptureDepositCommand(reservation_id=hold.reservation_id))

    assert result.status == "paid"
    assert _reload(hold.reservation_id).deposit_captured_at is not None
    with pytest.raises(InvalidReservationState):
        desk.capture(CaptureDepositCommand(reservation_id=hold.reservation_id))


def test_capture_on_hold_is_invalid_state(desk, bike):
    hold = desk.hold([bike])

    with pytest.raises(InvalidReservationState):
        desk.capture(CaptureDepositCommand(reservation_id=hold.reservation_id))


# ===== Hand-over =====

def test_check_in_completes_only_when_every_bike_is_back(desk):
    bikes = [make_bike(name="A"), make_bike(name="B")]
    hold = desk.active(bikes)
    first, second = ReservationItem.objects.filter(reservation_id=hold.reservation_id).order_by("id")

    partial = desk.check_in(CheckInCommand(reservation_id=hold.reservation_id, item_ids=[first.pk]))
    assert (partial.status, partial.all_returned) == ("active", False)

    rest = desk.check_in(CheckInCommand(reservation_id=hold.reservation_id, item_ids=[second.pk], notes="Chain squeaks"))
    assert (rest.status, rest.all_returned) == ("completed", True)
    assert Note.objects.filter(reservation_id=hold.reservation_id, text="Chain squeaks").exists()


def test_partial_check_out_moves_to_active(desk):
    bikes = [make_bike(name="A"), make_bike(name="B")]
    hold = desk.paid(bikes)
    first = ReservationItem.objects.filter(reservation_id=hold.reservation_id).order_by("id").first()

    result = desk.check_out(CheckOutCommand(reservation_id=hold.reservation_id, item_ids=[first.pk]))

    assert (result.status, result.affected) == ("active", 1)
    again = desk.check_out(CheckOutCommand(reservation_id=hold.reservation_id))
    assert again.affected == 1


def test_checking_out_same_item_twice_is_rejected(desk, bike):
    hold = desk.active([bike])

    with pytest.raises(ReservationValidationError):
        desk.check_out(CheckOutCommand(reservation_id=hold.reservation_id))


def test_check_in_on_hold_names_current_status(desk, bike):
    hold = desk.hold([bike])

    with pytest.raises(InvalidReservationState) as excinfo:
        desk.check_in(CheckInCommand(reservation_id=hold.reservation_id))

    assert excinfo.value.current_status == "hold"


def test_check_out_on_hold_is_invalid_state(desk, bike):
    hold = desk.hold([bike])

    with pytest.raises(InvalidReservationState):
        desk.check_out(CheckOutCommand(reservation_id=hold.reservation_id))


def test_active_booking_cannot_be_cancelled(desk, bike):
    hold = desk.active([bike])

    with pytest.raises(InvalidReservationState):
        desk.cancel(CancelCommand(reservation_id=hold.reservation_id))


# ===== Extend and complete =====

def test_extend_moves_return_time_of_booking_and_items(desk, bike):
    hold = desk.active([bike])
    new_end = hold.ends_at + timedelta(hours=2)

    result = desk.extend(ExtendCommand(reservation_id=hold.reservation_id, new_end=new_end))

    assert result.new_end == new_end
    assert _reload(hold.reservation_id).ends_at == new_end
    assert ReservationItem.objects.get(reservation_id=hold.reservation_id).ends_at == new_end
    assert Note.objects.filter(reservation_id=hold.reservation_id, text__startswith="Rental extended to").exists()


def test_extend_into_another_booking_conflicts(desk, bike):
    hold = desk.active([bike], start=time(10, 0))
    desk.hold([bike], start=time(13, 0))

    with pytest.raises(ReservationConflict):
        desk.extend(ExtendCommand(reservation_id=hold.reservation_id, new_end=hold.ends_at + timedelta(hours=2)))

    assert _reload(hold.reservation_id).ends_at == hold.ends_at


def test_extend_up_to_next_booking_is_allowed(desk, bike):
    hold = desk.active([bike], start=time(10, 0))
    desk.hold([bike], start=time(13, 0))

    desk.extend(ExtendCommand(reservation_id=hold.reservation_id, new_end=hold.ends_at + timedelta(hours=1)))

    assert _reload(hold.reservation_id).ends_at == hold.ends_at + timedelta(hours=1)


def test_extend_must_move_return_time_later(desk, bike):
    hold = desk.active([bike])

    with pytest.raises(ReservationValidationError):
        desk.extend(ExtendCommand(reservation_id=hold.reservation_id, new_end=hold.ends_at))


def test_extend_requires_active_booking(desk, bike):
    hold = desk.paid([bike])

    with pytest.raises(InvalidReservationState):
        desk.extend(ExtendCommand(reservation_id=hold.reservation_id, new_end=hold.ends_at + timedelta(hours=1)))


def test_manual_complete_from_paid(desk, bike):
    hold = desk.paid([bike])

    assert desk.complete(CompleteCommand(reservation_id=hold.reservation_id)).status == "completed"
    with pytest.raises(InvalidReservationState):
        desk.complete(CompleteCommand(reservation_id=hold.reservation_id))


def test_manual_complete_from_hold_is_invalid(desk, bike):
    hold = desk.hold([bike])

    with pytest.raises(InvalidReservationState):
        desk.complete(CompleteCommand(reservation_id=hold.reservation_id))


def test_unknown_reservation_is_not_found(desk):
    import uuid

    with pytest.raises(ReservationNotFound):
        desk.cancel(CancelCommand(reservation_id=uuid.uuid4()))


def test_times_are_stored_as_absolute_instants(desk, bike):
    hold = desk.hold([bike], start=time(10, 0))

    item = ReservationItem.objects.get(reservation_id=hold.reservation_id)
    assert SHOP.local(item.starts_at).time() == time(10, 0)
    assert isinstance(item.starts_at, datetime)
    assert item.starts_at.tzinfo is not None


# ===== Walk-ins =====

def _walk_in(desk, bikes, **overrides):
    fields = {
        "bike_ids": [bike.pk for bike in bikes],
        "duration": "2h",
        "full_name": "Alex Pedal",
        "phone": "555-0110",
    }
    fields.update(overrides)
    return desk.walk_in(CreateWalkInCommand(**fields))


def test_walk_in_is_active_with_every_bike_handed_over(desk, bike):
    before = timezone.now()

    result = _walk_in(desk, [bike], email="alex@example.com")

    reservation = _reload(result.reservation_id)
    assert reservation.status == "active"
    assert reservation.source == "walk-in"
    assert reservation.customer.email == "alex@example.com"
    assert reservation.total_amount == Decimal("115.00")
    assert reservation.rental_amount == Decimal("15.00")
    assert result.return_time - result.starts_at == timedelta(hours=2)
    item = ReservationItem.objects.get(reservation=reservation)
    assert item.checked_out_at is not None
    assert item.checked_out_at >= before


def test_walk_in_for_a_bike_already_out_is_a_conflict(desk, bike):
    _walk_in(desk, [bike])

    with pytest.raises(ReservationConflict):
        _walk_in(desk, [bike], full_name="Second Rider")

    assert Reservation.objects.count() == 1


def test_multi_day_walk_in_prices_first_day_plus_extra_days(desk, bike):
    tomorrow = SHOP.today(timezone.now()) + timedelta(days=1)

    result = _walk_in(desk, [bike], duration="multi-day", end_date=tomorrow)

    assert result.total_amount == Decimal("170.00")
    assert _reload(result.reservation_id).rental_amount == Decimal("70.00")
    assert SHOP.local(result.return_time).date() == tomorrow + timedelta(days=1)
