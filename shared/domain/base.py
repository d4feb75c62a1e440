"""
Base Domain Classes

This module provides the foundational building blocks shared by the domain apps:
- ValueObject: Immutable objects compared by value
- DomainEvent: Events that represent something that happened
- EventRecorder: Lets a Django model act as an aggregate root that records
  domain events until the unit of work collects them
"""

from abc import ABC
from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from decimal import Decimal
from typing import List
from uuid import UUID, uuid4


@dataclass(frozen=True)
class ValueObject(ABC):
    """
    Base class for value objects

    Value objects are immutable and have no identity.
    Two value objects are equal if all their attributes are equal.
    """
    pass


@dataclass(kw_only=True)
class DomainEvent:
    """
    Base class for domain events

    Domain events represent something that happened in the domain.
    They are published only after the transaction that produced them commits.
    """
    event_id: UUID = field(default_factory=uuid4)
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    aggregate_id: UUID | None = None

    def to_dict(self) -> dict:
        """Event fields as JSON-friendly values for the audit log"""
        payload = {
            'event_id': str(self.event_id),
            'event_type': self.__class__.__name__,
            'occurred_at': self.occurred_at.isoformat(),
            'aggregate_id': str(self.aggregate_id) if self.aggregate_id else None,
        }
        for f in fields(self):
            if f.name not in payload:
                payload[f.name] = _plain(getattr(self, f.name))
        return payload


def _plain(value):
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, (UUID, Decimal)):
        return str(value)
    return value


class EventRecorder:
    """
    Mixin for ORM aggregate roots

    Django builds model instances without calling a custom __init__ for
    every code path, so the pending event list is created lazily.
    """

    def _pending_events(self) -> List[DomainEvent]:
        pending = self.__dict__.get('_recorded_events')
        if pending is None:
            pending = []
            self.__dict__['_recorded_events'] = pending
        return pending

    def add_event(self, event: DomainEvent):
        """Add a domain event to be published"""
        self._pending_events().append(event)

    def clear_events(self):
        """Clear all collected events (called after collection)"""
        self._pending_events().clear()

    @property
    def events(self) -> List[DomainEvent]:
        """Get copy of collected events"""
        return list(self._pending_events())
