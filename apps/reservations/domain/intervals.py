"""
Interval Builder

Turns a date, a duration policy and the policy's parameters into the
half-open interval a booking occupies. Advance bookings are built with
`build()`; walk-ins that start right now use `build_immediate()`.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta

from shared.domain.value_objects import TimeInterval

from apps.reservations.domain.policies import (
    DurationPolicy,
    FixedWindow,
    Hourly,
    MultiDay,
    ShopHours,
    inclusive_day_count,
)
from apps.reservations.exceptions import ReservationValidationError


class IntervalBuilder:
    """Builds booking intervals in the shop's timezone"""

    def __init__(self, shop: ShopHours):
        self.shop = shop

    def build(
        self,
        on: date,
        policy: DurationPolicy,
        start_time: time | None = None,
        end_date: date | None = None,
    ) -> TimeInterval:
        """
        Interval for an advance booking starting on ``on``

        - Hourly: start_time required; end is start plus the policy's hours
          on the wall clock, rolling into the next day past midnight
        - FixedWindow: the shop window of that day; start_time is ignored
        - MultiDay: end_date required; midnight of ``on`` to the midnight
          after end_date
        """
        match policy:
            case Hourly(hours=hours):
                if start_time is None:
                    raise ReservationValidationError(
                        "A start time is required for hourly rentals",
                        field='start_time',
                    )
                start = datetime.combine(on, start_time)
                end = start + timedelta(hours=hours)
                return TimeInterval(self.shop.localize(start), self.shop.localize(end))

            case FixedWindow(opens_at=opens_at, closes_at=closes_at):
                return TimeInterval(self.shop.at(on, opens_at), self.shop.at(on, closes_at))

            case MultiDay():
                if end_date is None:
                    raise ReservationValidationError(
                        "An end date is required for multi-day rentals",
                        field='end_date',
                    )
                days = inclusive_day_count(on, end_date)
                return TimeInterval(
                    self.shop.at(on, time.min),
                    self.shop.at(on + timedelta(days=days), time.min),
                )

        raise TypeError(f"Unsupported duration policy: {policy!r}")

    def build_immediate(
        self,
        now: datetime,
        policy: DurationPolicy,
        end_date: date | None = None,
    ) -> TimeInterval:
        """
        Interval for a walk-in that starts at ``now``

        A full day ends at today's closing time, or tomorrow's when the shop
        has already closed. A multi-day rental ends at the midnight after
        end_date.
        """
        match policy:
            case Hourly(hours=hours):
                return TimeInterval(now, now + timedelta(hours=hours))

            case FixedWindow(closes_at=closes_at):
                today = self.shop.today(now)
                closing = self.shop.at(today, closes_at)
                if closing <= now:
                    closing = self.shop.at(today + timedelta(days=1), closes_at)
                return TimeInterval(now, closing)

            case MultiDay():
                if end_date is None:
                    raise ReservationValidationError(
                        "An end date is required for multi-day rentals",
                        field='end_date',
                    )
                days = inclusive_day_count(self.shop.today(now), end_date)
                end = self.shop.at(self.shop.today(now) + timedelta(days=days), time.min)
                return TimeInterval(now, end)

        raise TypeError(f"Unsupported duration policy: {policy!r}")

    def covered_days(self, interval: TimeInterval) -> int:
        """
        Calendar days an interval touches in shop time

        An end exactly at local midnight does not count the following day,
        so a multi-day interval built above maps back to its inclusive day
        count.
        """
        first = self.shop.local(interval.start).date()
        end = self.shop.local(interval.end)
        last = end.date() - timedelta(days=1) if end.time() == time.min else end.date()
        return inclusive_day_count(first, max(first, last))
