"""Celery tasks for the reservation domain.

Only side effects live here. They are queued from event handlers after the
reservation transaction has committed, so a failing mail server can never
undo or block a booking.
"""

from __future__ import annotations

import structlog
from celery import shared_task  # type: ignore

from .models import Reservation

logger = structlog.get_logger(__name__)

# Delivery problems (SMTP errors, refused connections) are OSErrors.
RETRYABLE_ERRORS = (OSError,)


def _load(reservation_id: str) -> Reservation | None:
    reservation = Reservation.objects.select_related("customer").filter(pk=reservation_id).first()
    if reservation is None:
        logger.error("notification_reservation_missing", reservation_id=reservation_id)
    return reservation


@shared_task(
    name="reservations.send_booking_confirmation",
    acks_late=True,
    autoretry_for=RETRYABLE_ERRORS,
    retry_backoff=True,
    max_retries=3,
)
def send_booking_confirmation(reservation_id: str) -> bool:
    """Email the customer that their booking is paid."""
    reservation = _load(reservation_id)
    if reservation is None:
        return False

    from apps.notifications.services import send_booking_confirmation_email

    sent = send_booking_confirmation_email(reservation)
    logger.info(
        "booking_confirmation_processed",
        reservation_id=reservation_id,
        short_ref=reservation.short_ref,
        sent=sent,
    )
    return sent


@shared_task(
    name="reservations.notify_admin_of_booking",
    acks_late=True,
    autoretry_for=RETRYABLE_ERRORS,
    retry_backoff=True,
    max_retries=3,
)
def notify_admin_of_booking(reservation_id: str) -> bool:
    """Tell the shop about a paid or walk-in booking."""
    reservation = _load(reservation_id)
    if reservation is None:
        return False

    from apps.notifications.services import send_admin_booking_notification

    sent = send_admin_booking_notification(reservation)
    logger.info(
        "admin_notification_processed",
        reservation_id=reservation_id,
        short_ref=reservation.short_ref,
        sent=sent,
    )
    return sent
