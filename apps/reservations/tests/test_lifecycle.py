"""Reservation lifecycle rules."""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone

import pytest

from apps.reservations.domain.events import HoldCreated
from apps.reservations.domain.lifecycle import (
    Action,
    ReservationStatus,
    ensure_allowed,
    hold_is_live,
    is_allowed,
    is_released,
)
from apps.reservations.exceptions import InvalidReservationState

NOW = datetime(2026, 7, 1, 16, 0, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    "action,status,allowed",
    [
        (Action.CONFIRM_PAYMENT, "hold", True),
        (Action.CONFIRM_PAYMENT, "paid", False),
        (Action.CHECK_OUT, "paid", True),
        (Action.CHECK_OUT, "active", True),
        (Action.CHECK_OUT, "hold", False),
        (Action.CHECK_IN, "active", True),
        (Action.CHECK_IN, "paid", False),
        (Action.EXTEND, "active", True),
        (Action.EXTEND, "paid", False),
        (Action.CANCEL, "hold", True),
        (Action.CANCEL, "paid", True),
        (Action.CANCEL, "active", False),
        (Action.CANCEL, "cancelled", False),
        (Action.VOID_PAYMENT, "paid", True),
        (Action.VOID_PAYMENT, "active", False),
        (Action.COMPLETE, "paid", True),
        (Action.COMPLETE, "active", True),
        (Action.COMPLETE, "completed", False),
    ],
)
def test_transition_table(action, status, allowed):
    assert is_allowed(action, status) is allowed


def test_no_action_leaves_a_terminal_status():
    for status in ("completed", "cancelled", "voided"):
        assert not any(is_allowed(action, status) for action in Action)


def test_rejection_names_current_status():
    with pytest.raises(InvalidReservationState) as excinfo:
        ensure_allowed(Action.CHECK_IN, "hold")

    error = excinfo.value
    assert error.current_status == "hold"
    assert "'hold'" in error.message
    assert error.status_code == 409
    assert error.to_dict()["details"]["current_status"] == "hold"


def test_released_statuses():
    assert is_released("cancelled")
    assert is_released(ReservationStatus.VOIDED)
    assert not is_released("completed")


def test_hold_is_live_until_deadline():
    assert hold_is_live("hold", NOW + timedelta(minutes=1), NOW)
    assert not hold_is_live("hold", NOW, NOW)
    assert not hold_is_live("hold", NOW - timedelta(seconds=1), NOW)
    assert not hold_is_live("hold", None, NOW)
    assert not hold_is_live("paid", NOW + timedelta(minutes=10), NOW)


def test_events_serialise_their_payload_for_the_audit_log():
    reservation_id = uuid.uuid4()
    event = HoldCreated(
        aggregate_id=reservation_id,
        short_ref="ABC234",
        bike_ids=[3, 4],
        starts_at=NOW,
        ends_at=NOW + timedelta(hours=2),
        hold_expires_at=NOW,
    )

    payload = event.to_dict()

    assert payload["event_type"] == "HoldCreated"
    assert payload["aggregate_id"] == str(reservation_id)
    assert payload["bike_ids"] == [3, 4]
    assert payload["ends_at"] == "2026-07-01T18:00:00+00:00"
