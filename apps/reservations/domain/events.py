"""
Reservation Domain Events

Recorded on the reservation while a transition runs and published by the
unit of work only after the transaction commits. `aggregate_id` is the
reservation id.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import List

from shared.domain.base import DomainEvent


@dataclass(kw_only=True)
class HoldCreated(DomainEvent):
    """A provisional booking was placed for one or more bikes"""
    short_ref: str
    bike_ids: List[int]
    starts_at: datetime
    ends_at: datetime
    hold_expires_at: datetime


@dataclass(kw_only=True)
class PaymentConfirmed(DomainEvent):
    """
    Hold paid for (hold -> paid)

    Triggers:
    - Confirmation email to the customer
    - Admin notification
    """
    short_ref: str
    transaction_id: str | None


@dataclass(kw_only=True)
class ItemsCheckedOut(DomainEvent):
    """Bikes handed to the customer"""
    item_ids: List[int]
    status: str


@dataclass(kw_only=True)
class ItemsCheckedIn(DomainEvent):
    """Bikes returned"""
    item_ids: List[int]
    all_returned: bool


@dataclass(kw_only=True)
class ReservationExtended(DomainEvent):
    previous_end: datetime
    new_end: datetime


@dataclass(kw_only=True)
class ReservationCancelled(DomainEvent):
    """Booking released (hold | paid -> cancelled)"""
    previous_status: str
    reason: str = ''


@dataclass(kw_only=True)
class PaymentVoided(DomainEvent):
    """Payment reversed and booking released (paid -> voided)"""
    transaction_id: str | None


@dataclass(kw_only=True)
class DepositCaptured(DomainEvent):
    transaction_id: str
    amount: Decimal


@dataclass(kw_only=True)
class ReservationCompleted(DomainEvent):
    """Booking finished, by the last check-in or by staff override"""
    previous_status: str
    manual: bool = False


@dataclass(kw_only=True)
class WalkInCreated(DomainEvent):
    """
    Staff booked bikes for a customer in the shop

    Triggers:
    - Admin notification
    """
    short_ref: str
    bike_ids: List[int] = field(default_factory=list)
