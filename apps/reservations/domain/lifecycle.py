"""
Reservation Lifecycle

    hold -> paid -> active -> completed
    hold | paid -> cancelled
    paid -> voided        (payment reversed, then released like a cancel)
    paid | active -> completed   (manual override)

No status is re-entered once left. Cancelled and voided reservations are
released: their items no longer occupy any time.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from apps.reservations.exceptions import InvalidReservationState


class ReservationStatus(str, Enum):
    HOLD = 'hold'
    PAID = 'paid'
    ACTIVE = 'active'
    COMPLETED = 'completed'
    CANCELLED = 'cancelled'
    VOIDED = 'voided'

    @property
    def label(self) -> str:
        return self.value.title()


RELEASED_STATUSES = frozenset({ReservationStatus.CANCELLED, ReservationStatus.VOIDED})

# Statuses a customer may look up with their booking reference.
PUBLIC_STATUSES = frozenset({
    ReservationStatus.HOLD,
    ReservationStatus.PAID,
    ReservationStatus.ACTIVE,
    ReservationStatus.COMPLETED,
})


class Action(Enum):
    CONFIRM_PAYMENT = 'confirm payment for'
    PRELOAD_PAYMENT = 'start payment for'
    CHECK_OUT = 'check out'
    CHECK_IN = 'check in'
    EXTEND = 'extend'
    CANCEL = 'cancel'
    VOID_PAYMENT = 'void payment for'
    CAPTURE_DEPOSIT = 'capture the deposit of'
    COMPLETE = 'complete'


ALLOWED_FROM: dict[Action, frozenset] = {
    Action.CONFIRM_PAYMENT: frozenset({ReservationStatus.HOLD}),
    Action.PRELOAD_PAYMENT: frozenset({ReservationStatus.HOLD, ReservationStatus.PAID}),
    Action.CHECK_OUT: frozenset({ReservationStatus.PAID, ReservationStatus.ACTIVE}),
    Action.CHECK_IN: frozenset({ReservationStatus.ACTIVE}),
    Action.EXTEND: frozenset({ReservationStatus.ACTIVE}),
    Action.CANCEL: frozenset({ReservationStatus.HOLD, ReservationStatus.PAID}),
    Action.VOID_PAYMENT: frozenset({ReservationStatus.PAID}),
    Action.CAPTURE_DEPOSIT: frozenset({ReservationStatus.PAID, ReservationStatus.ACTIVE}),
    Action.COMPLETE: frozenset({ReservationStatus.PAID, ReservationStatus.ACTIVE}),
}


def is_allowed(action: Action, status: str) -> bool:
    return ReservationStatus(status) in ALLOWED_FROM[action]


def ensure_allowed(action: Action, status: str) -> None:
    """Raise InvalidReservationState naming the current status"""
    if not is_allowed(action, status):
        allowed = ' or '.join(sorted(s.value for s in ALLOWED_FROM[action]))
        raise InvalidReservationState(
            f"Cannot {action.value} a booking in '{status}' status (must be {allowed})",
            current_status=str(ReservationStatus(status).value),
        )


def is_released(status: str) -> bool:
    return ReservationStatus(status) in RELEASED_STATUSES


def hold_is_live(status: str, hold_expires_at: datetime | None, now: datetime) -> bool:
    """
    A hold counts only until its deadline

    An expired hold keeps its status column and keeps blocking its slot, but
    cannot be paid for.
    """
    return (
        ReservationStatus(status) == ReservationStatus.HOLD
        and hold_expires_at is not None
        and hold_expires_at > now
    )
