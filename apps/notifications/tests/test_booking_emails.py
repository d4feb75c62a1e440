"""Booking emails queued by reservation events after commit."""

from __future__ import annotations

from datetime import time

import pytest
from django.test import override_settings

from apps.notifications.services import send_admin_booking_notification, send_booking_confirmation_email
from apps.reservations.application.commands import CreateWalkInCommand
from apps.reservations.models import Reservation
from apps.reservations.tests.helpers import Desk, make_bike

pytestmark = pytest.mark.django_db


@pytest.fixture
def desk() -> Desk:
    return Desk()


def test_paid_booking_emails_customer_and_shop(desk, mailoutbox, django_capture_on_commit_callbacks):
    with django_capture_on_commit_callbacks(execute=True):
        hold = desk.paid([make_bike()], start=time(10, 0))

    reservation = Reservation.objects.select_related("customer").get(pk=hold.reservation_id)
    recipients = sorted(message.to[0] for message in mailoutbox)
    assert recipients == sorted([reservation.customer.email, "shop@bikeshop.local"])
    confirmation = next(m for m in mailoutbox if m.to == [reservation.customer.email])
    assert confirmation.subject == f"Booking {hold.short_ref} confirmed"
    assert "Commuter (City)" in confirmation.alternatives[0][0]


def test_hold_alone_sends_nothing(desk, mailoutbox, django_capture_on_commit_callbacks):
    with django_capture_on_commit_callbacks(execute=True):
        desk.hold([make_bike()])

    assert mailoutbox == []


def test_walk_in_only_notifies_the_shop(desk, mailoutbox, django_capture_on_commit_callbacks):
    with django_capture_on_commit_callbacks(execute=True):
        result = desk.walk_in(
            CreateWalkInCommand(
                bike_ids=[make_bike().pk],
                duration="2h",
                full_name="Alex Pedal",
                phone="555-0110",
            )
        )

    assert len(mailoutbox) == 1
    assert mailoutbox[0].to == ["shop@bikeshop.local"]
    assert mailoutbox[0].subject == f"Walk-in {result.short_ref} (1 bike(s))"


def test_confirmation_skips_placeholder_addresses(desk, mailoutbox):
    result = desk.walk_in(
        CreateWalkInCommand(bike_ids=[make_bike().pk], duration="2h", full_name="Alex Pedal", phone="555-0110")
    )
    reservation = Reservation.objects.get(pk=result.reservation_id)

    assert send_booking_confirmation_email(reservation) is False
    assert mailoutbox == []


@override_settings(ADMIN_NOTIFICATION_EMAIL="")
def test_admin_notification_needs_an_address(desk, mailoutbox):
    hold = desk.hold([make_bike()])

    assert send_admin_booking_notification(Reservation.objects.get(pk=hold.reservation_id)) is False
    assert mailoutbox == []
