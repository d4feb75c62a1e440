"""
Common Value Objects

Value objects used across multiple domains:
- Money: Represents monetary amounts with currency, rounded to cents
- TimeInterval: A half-open range of instants [start, end)
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal

from shared.domain.base import ValueObject

CENT = Decimal('0.01')

SUPPORTED_CURRENCIES = ('CAD', 'USD')


def round_cents(amount) -> Decimal:
    """Round to the smallest currency unit (half up, like the card terminal)."""
    return Decimal(str(amount)).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class Money(ValueObject):
    """
    Money value object

    Represents a monetary amount with currency.
    Immutable and supports arithmetic operations.
    """
    amount: Decimal
    currency: str = 'CAD'

    def __post_init__(self):
        # Validation
        if not isinstance(self.amount, Decimal):
            object.__setattr__(self, 'amount', Decimal(str(self.amount)))
        if self.amount < 0:
            raise ValueError("Amount cannot be negative")
        if not self.currency:
            raise ValueError("Currency is required")
        if self.currency not in SUPPORTED_CURRENCIES:
            raise ValueError(f"Unsupported currency: {self.currency}")

    @classmethod
    def zero(cls, currency: str = 'CAD') -> 'Money':
        return cls(Decimal('0.00'), currency)

    def __add__(self, other: 'Money') -> 'Money':
        """Add two money objects"""
        if not isinstance(other, Money):
            raise TypeError("Can only add Money to Money")
        if self.currency != other.currency:
            raise ValueError(f"Cannot add different currencies: {self.currency} and {other.currency}")
        return Money(self.amount + other.amount, self.currency)

    def rounded(self) -> 'Money':
        """Same amount rounded to cents"""
        return Money(round_cents(self.amount), self.currency)

    def __str__(self):
        return f"{self.amount:,.2f} {self.currency}"

    def __repr__(self):
        return f"Money({self.amount}, '{self.currency}')"


@dataclass(frozen=True)
class TimeInterval(ValueObject):
    """
    Half-open interval of aware datetimes

    Represents [start, end): start is inclusive, end is exclusive, so a
    rental ending at 12:00 and another starting at 12:00 do not overlap.
    An interval with start == end is empty and overlaps nothing.
    """
    start: datetime
    end: datetime

    def __post_init__(self):
        # Validation
        if self.start.tzinfo is None or self.end.tzinfo is None:
            raise ValueError("Interval bounds must be timezone-aware")
        if self.end < self.start:
            raise ValueError(f"Interval end ({self.end}) is before its start ({self.start})")

    @classmethod
    def empty_at(cls, instant: datetime) -> 'TimeInterval':
        return cls(instant, instant)

    @property
    def is_empty(self) -> bool:
        return self.start == self.end

    def overlaps_with(self, other: 'TimeInterval') -> bool:
        """
        Check if this interval overlaps with another

        Examples:
            - [10:00, 12:00) overlaps [11:00, 13:00) -> True
            - [10:00, 12:00) overlaps [12:00, 14:00) -> False (adjacent)
            - an empty interval overlaps nothing
        """
        if not isinstance(other, TimeInterval):
            raise TypeError("Can only check overlap with another TimeInterval")
        if self.is_empty or other.is_empty:
            return False

        # Overlap formula: start1 < end2 AND end1 > start2
        return self.start < other.end and self.end > other.start

    def __str__(self):
        return f"[{self.start.isoformat()}, {self.end.isoformat()})"

    def __repr__(self):
        return f"TimeInterval({self.start.isoformat()}, {self.end.isoformat()})"
