"""
Pricing Calculator

Rental cost and deposit for a set of bikes booked under one duration
policy. Money is rounded to cents after every accumulation step so totals
over many line items never drift.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable

from shared.domain.value_objects import Money, TimeInterval, round_cents

from apps.reservations.domain.intervals import IntervalBuilder
from apps.reservations.domain.policies import (
    FIRST_DAY_PRICE_FIELD,
    DurationPolicy,
    FixedWindow,
    Hourly,
    MultiDay,
)
from apps.reservations.exceptions import NotBookable


@dataclass(frozen=True)
class QuoteLine:
    bike_id: int
    rental_price: Decimal
    deposit_amount: Decimal


@dataclass(frozen=True)
class Quote:
    lines: tuple[QuoteLine, ...]
    rental_total: Money
    deposit_total: Money

    @property
    def total(self) -> Money:
        """Amount charged up front: rental plus deposit"""
        return (self.rental_total + self.deposit_total).rounded()

    def line_for(self, bike_id: int) -> QuoteLine:
        for line in self.lines:
            if line.bike_id == bike_id:
                return line
        raise KeyError(bike_id)


def _price(unit, field_name: str, policy: DurationPolicy) -> Decimal:
    value = unit.price_for(field_name)
    if value is None:
        raise NotBookable(
            f"{unit} has no {policy.tag} price",
            bike_id=unit.pk,
            duration=policy.tag,
        )
    return Decimal(value)


class PricingCalculator:
    """Prices line items; multi-day day counts come from the interval builder"""

    def __init__(self, builder: IntervalBuilder):
        self.builder = builder

    def rental_price(self, unit, policy: DurationPolicy, interval: TimeInterval) -> Decimal:
        match policy:
            case Hourly() | FixedWindow():
                return round_cents(_price(unit, policy.price_field, policy))
            case MultiDay():
                days = self.builder.covered_days(interval)
                first_day = _price(unit, FIRST_DAY_PRICE_FIELD, policy)
                per_day = _price(unit, policy.price_field, policy)
                return round_cents(first_day + per_day * max(0, days - 1))
        raise TypeError(f"Unsupported duration policy: {policy!r}")

    def quote(self, units: Iterable, policy: DurationPolicy, interval: TimeInterval) -> Quote:
        currency = self.builder.shop.currency
        rental_total = Money.zero(currency)
        deposit_sum = Decimal('0')
        lines = []

        for unit in units:
            rental = self.rental_price(unit, policy, interval)
            deposit = Decimal(unit.deposit_amount or 0)
            rental_total = (rental_total + Money(rental, currency)).rounded()
            deposit_sum += deposit
            lines.append(QuoteLine(bike_id=unit.pk, rental_price=rental, deposit_amount=deposit))

        return Quote(
            lines=tuple(lines),
            rental_total=rental_total,
            deposit_total=Money(deposit_sum, currency).rounded(),
        )
