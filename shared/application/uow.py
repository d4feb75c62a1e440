"""
Unit of Work

One reservation transition = one database transaction. Events recorded on
the aggregates touched inside it are handed to the message bus only once
that transaction has committed.
"""

from typing import List
import logging

from django.db import transaction

from shared.domain.base import DomainEvent

logger = logging.getLogger(__name__)


class DjangoUnitOfWork:
    """
    Outermost atomic block plus after-commit event publication

    The block is durable: a transition can never be nested inside another
    caller's transaction and silently share its fate. Any exception raised
    in the body, including an IntegrityError from a database constraint,
    rolls back every write and drops the collected events.

    Usage:
        with DjangoUnitOfWork() as uow:
            reservation = lock_reservation(reservation_id)
            reservation.status = ReservationStatus.CANCELLED.value
            reservation.save(update_fields=['status', 'updated_at'])
            reservation.add_event(ReservationCancelled(...))
            uow.collect_events(reservation)
    """

    def __init__(self):
        self._events: List[DomainEvent] = []
        self._atomic = transaction.atomic(durable=True)

    def __enter__(self):
        self._atomic.__enter__()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        try:
            if exc_type is None:
                self._schedule_publication()
            elif self._events:
                logger.warning(
                    f"Transaction failed with {exc_type.__name__}, "
                    f"discarding {len(self._events)} events"
                )
        finally:
            self._events = []
            self._atomic.__exit__(exc_type, exc_val, exc_tb)
        return False

    def collect_events(self, aggregate):
        """Move the aggregate's pending events into this unit of work"""
        pending = aggregate.events
        if not pending:
            return
        self._events.extend(pending)
        aggregate.clear_events()
        logger.debug(f"Collected {len(pending)} events from {aggregate.__class__.__name__} {aggregate.pk}")

    def _schedule_publication(self):
        if not self._events:
            return
        events = list(self._events)
        transaction.on_commit(lambda: _publish(events))


def _publish(events: List[DomainEvent]):
    from shared.application.message_bus import message_bus

    logger.info(f"Publishing {len(events)} domain events after commit")
    try:
        message_bus.publish_events(events)
    except Exception as e:
        # The reservation is already committed at this point.
        logger.error(f"Error publishing events: {e}", exc_info=True)
