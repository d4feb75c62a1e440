"""
Duration Policies and Shop Configuration

A booking's duration is one of three closed variants:

- Hourly: a fixed number of hours from a chosen start time (2h, 4h)
- FixedWindow: the shop's opening hours on one day (full day, 8h)
- MultiDay: whole calendar days, start date through end date inclusive

`parse_policy` is the only place a duration tag from the outside world turns
into one of these; everything downstream matches on the variant type.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Mapping, Union
from zoneinfo import ZoneInfo

from apps.reservations.exceptions import ReservationValidationError

FULL_DAY_TAG = '8h'
MULTI_DAY_TAG = 'multi-day'

# Column holding the first day's rate of a multi-day rental.
FIRST_DAY_PRICE_FIELD = 'price_8h'


def _parse_clock(value) -> time:
    if isinstance(value, time):
        return value
    hours, minutes = str(value).split(':')
    return time(int(hours), int(minutes))


@dataclass(frozen=True)
class ShopHours:
    """
    Shop configuration threaded into the interval builder and queries

    Build it once from settings with `from_settings()`; tests construct
    their own.
    """
    timezone: ZoneInfo
    opens_at: time = time(9, 30)
    closes_at: time = time(18, 0)
    hold_minutes: int = 15
    max_rental_days: int = 30
    hourly_durations: Mapping[str, int] = field(default_factory=lambda: {'2h': 2, '4h': 4})
    currency: str = 'CAD'

    def __post_init__(self):
        if self.closes_at <= self.opens_at:
            raise ValueError("Shop must close after it opens")
        if self.hold_minutes <= 0:
            raise ValueError("Hold duration must be positive")

    @classmethod
    def from_settings(cls, config: Mapping | None = None) -> 'ShopHours':
        if config is None:
            from django.conf import settings
            config = settings.RENTAL_SHOP
        return cls(
            timezone=ZoneInfo(config.get('TIMEZONE', 'America/Edmonton')),
            opens_at=_parse_clock(config.get('OPENS_AT', '09:30')),
            closes_at=_parse_clock(config.get('CLOSES_AT', '18:00')),
            hold_minutes=int(config.get('HOLD_MINUTES', 15)),
            max_rental_days=int(config.get('MAX_RENTAL_DAYS', 30)),
            hourly_durations=dict(config.get('HOURLY_DURATIONS', {'2h': 2, '4h': 4})),
            currency=config.get('CURRENCY', 'CAD'),
        )

    @property
    def hold_duration(self) -> timedelta:
        return timedelta(minutes=self.hold_minutes)

    def localize(self, wall_clock: datetime) -> datetime:
        """Attach the shop timezone to a naive local wall-clock datetime."""
        return wall_clock.replace(tzinfo=self.timezone)

    def at(self, day: date, clock: time) -> datetime:
        return self.localize(datetime.combine(day, clock))

    def local(self, instant: datetime) -> datetime:
        return instant.astimezone(self.timezone)

    def today(self, now: datetime) -> date:
        return self.local(now).date()


@dataclass(frozen=True)
class Hourly:
    tag: str
    hours: int

    @property
    def price_field(self) -> str:
        return f'price_{self.tag}'


@dataclass(frozen=True)
class FixedWindow:
    tag: str
    opens_at: time
    closes_at: time

    @property
    def price_field(self) -> str:
        return FIRST_DAY_PRICE_FIELD


@dataclass(frozen=True)
class MultiDay:
    tag: str = MULTI_DAY_TAG

    @property
    def price_field(self) -> str:
        # Listings quote the per-day rate; the first day is billed at the full-day rate.
        return 'price_per_day'


DurationPolicy = Union[Hourly, FixedWindow, MultiDay]


def duration_tags(shop: ShopHours) -> list[str]:
    return [*shop.hourly_durations, FULL_DAY_TAG, MULTI_DAY_TAG]


def parse_policy(tag: str, shop: ShopHours) -> DurationPolicy:
    """Turn a duration tag into its policy variant."""
    if tag in shop.hourly_durations:
        return Hourly(tag=tag, hours=int(shop.hourly_durations[tag]))
    if tag == FULL_DAY_TAG:
        return FixedWindow(tag=tag, opens_at=shop.opens_at, closes_at=shop.closes_at)
    if tag == MULTI_DAY_TAG:
        return MultiDay()
    raise ReservationValidationError(
        f"Unknown duration '{tag}'",
        field='duration',
        allowed=duration_tags(shop),
    )


def inclusive_day_count(start_date: date, end_date: date) -> int:
    """
    Number of calendar days from start_date through end_date, both included

    The single day-count rule shared by multi-day interval bounds and
    multi-day pricing.
    """
    if end_date < start_date:
        raise ReservationValidationError(
            "End date cannot be before the start date",
            field='end_date',
        )
    return (end_date - start_date).days + 1
