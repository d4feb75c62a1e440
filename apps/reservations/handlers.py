"""
Event subscribers and message bus wiring for the reservation engine

Subscribers run from transaction.on_commit, after the reservation is
durable. They only enqueue Celery tasks; nothing here writes to the
reservation tables.
"""

from __future__ import annotations

import structlog

from shared.application.message_bus import MessageBus
from shared.domain.base import DomainEvent

from .domain.events import (
    DepositCaptured,
    HoldCreated,
    ItemsCheckedIn,
    ItemsCheckedOut,
    PaymentConfirmed,
    PaymentVoided,
    ReservationCancelled,
    ReservationCompleted,
    ReservationExtended,
    WalkInCreated,
)
from . import tasks

logger = structlog.get_logger(__name__)

AUDITED_EVENTS = (
    HoldCreated,
    PaymentConfirmed,
    ItemsCheckedOut,
    ItemsCheckedIn,
    ReservationExtended,
    ReservationCancelled,
    PaymentVoided,
    DepositCaptured,
    ReservationCompleted,
    WalkInCreated,
)


def record_event(event: DomainEvent) -> None:
    logger.info("domain_event", **event.to_dict())


def on_payment_confirmed(event: PaymentConfirmed) -> None:
    reservation_id = str(event.aggregate_id)
    tasks.send_booking_confirmation.delay(reservation_id)
    tasks.notify_admin_of_booking.delay(reservation_id)


def on_walk_in_created(event: WalkInCreated) -> None:
    tasks.notify_admin_of_booking.delay(str(event.aggregate_id))


def register_handlers(bus: MessageBus) -> None:
    """Register every command handler and event subscriber on ``bus``"""
    from .application.command_handlers import command_handlers

    for command_type, handler in command_handlers().items():
        if not bus.has_command_handler(command_type):
            bus.register_command_handler(command_type, handler)

    for event_type in AUDITED_EVENTS:
        bus.register_event_handler(event_type, record_event)
    bus.register_event_handler(PaymentConfirmed, on_payment_confirmed)
    bus.register_event_handler(WalkInCreated, on_walk_in_created)
