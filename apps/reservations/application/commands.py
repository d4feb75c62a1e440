"""
Reservation Commands and Results

Commands are plain requests handed to the message bus; each has exactly one
handler in `command_handlers`. Results are what the handlers return to the
HTTP layer.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, time
from decimal import Decimal
from typing import List, Optional
from uuid import UUID


# ===== Commands =====

@dataclass
class CreateHoldCommand:
    """Place a 15-minute hold on specific bikes for an advance booking"""
    bike_ids: List[int]
    on: date
    duration: str
    start_time: Optional[time] = None
    end_date: Optional[date] = None


@dataclass
class PreloadPaymentCommand:
    """Open a hosted checkout for a held or paid booking"""
    reservation_id: UUID


@dataclass
class ConfirmPaymentCommand:
    """Confirm payment of a live hold with the gateway's checkout token"""
    reservation_id: UUID
    payment_token: str


@dataclass
class CheckOutCommand:
    """Hand bikes to the customer; all remaining items when item_ids is empty"""
    reservation_id: UUID
    item_ids: List[int] = field(default_factory=list)
    performed_by: str = 'admin'


@dataclass
class CheckInCommand:
    """Take bikes back; all bikes out when item_ids is empty"""
    reservation_id: UUID
    item_ids: List[int] = field(default_factory=list)
    notes: str = ''
    performed_by: str = 'admin'


@dataclass
class ExtendCommand:
    reservation_id: UUID
    new_end: datetime
    performed_by: str = 'admin'


@dataclass
class CancelCommand:
    reservation_id: UUID
    reason: str = ''
    performed_by: str = 'admin'


@dataclass
class VoidPaymentCommand:
    reservation_id: UUID
    performed_by: str = 'admin'


@dataclass
class CaptureDepositCommand:
    reservation_id: UUID
    performed_by: str = 'admin'


@dataclass
class CompleteCommand:
    """Staff override: finish the booking without per-item check-in"""
    reservation_id: UUID
    performed_by: str = 'admin'


@dataclass
class CreateWalkInCommand:
    """Book bikes for a customer standing in the shop, starting now"""
    bike_ids: List[int]
    duration: str
    full_name: str
    phone: str
    email: Optional[str] = None
    end_date: Optional[date] = None
    performed_by: str = 'admin'


@dataclass
class AddNoteCommand:
    reservation_id: UUID
    text: str
    author: str = 'admin'


@dataclass
class LinkWaiversCommand:
    reservation_id: UUID
    waiver_ids: List[UUID]


# ===== Results =====

@dataclass(frozen=True)
class HoldResult:
    reservation_id: UUID
    short_ref: str
    booking_token: str
    hold_expires_at: datetime
    starts_at: datetime
    ends_at: datetime
    total_amount: Decimal
    deposit_amount: Decimal


@dataclass(frozen=True)
class PreloadResult:
    ticket: str
    amount: Decimal
    is_sandbox: bool


@dataclass(frozen=True)
class PaymentResult:
    reservation_id: UUID
    short_ref: str
    booking_token: str
    status: str


@dataclass(frozen=True)
class TransitionResult:
    """Outcome of a staff transition; item actions fill in the counts"""
    reservation_id: UUID
    status: str
    affected: Optional[int] = None
    all_returned: Optional[bool] = None
    new_end: Optional[datetime] = None


@dataclass(frozen=True)
class WalkInResult:
    reservation_id: UUID
    short_ref: str
    booking_token: str
    status: str
    total_amount: Decimal
    starts_at: datetime
    return_time: datetime


@dataclass(frozen=True)
class LinkWaiversResult:
    reservation_id: UUID
    linked: int
