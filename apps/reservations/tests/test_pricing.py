"""Pricing calculator."""

from __future__ import annotations

from datetime import date, datetime, time
from decimal import Decimal

import pytest

from apps.fleet.models import Bike
from apps.reservations.domain.intervals import IntervalBuilder
from apps.reservations.domain.policies import FixedWindow, Hourly, MultiDay
from apps.reservations.domain.pricing import PricingCalculator
from apps.reservations.exceptions import NotBookable

from .helpers import EDMONTON, SHOP

DAY = date(2026, 7, 1)
TWO_HOURS = Hourly(tag="2h", hours=2)


def bike(pk: int = 1, **prices) -> Bike:
    fields = {
        "price_2h": Decimal("15.00"),
        "price_4h": Decimal("25.00"),
        "price_8h": Decimal("40.00"),
        "price_per_day": Decimal("30.00"),
        "deposit_amount": Decimal("100.00"),
    }
    fields.update(prices)
    return Bike(pk=pk, name="Commuter", category="City", size="small", **fields)


@pytest.fixture
def builder() -> IntervalBuilder:
    return IntervalBuilder(SHOP)


@pytest.fixture
def calculator(builder) -> PricingCalculator:
    return PricingCalculator(builder)


def test_hourly_price_comes_from_its_column(calculator, builder):
    interval = builder.build(DAY, TWO_HOURS, start_time=time(10, 0))

    assert calculator.rental_price(bike(), TWO_HOURS, interval) == Decimal("15.00")


def test_full_day_price(calculator, builder):
    policy = FixedWindow(tag="8h", opens_at=time(9, 30), closes_at=time(18, 0))

    assert calculator.rental_price(bike(), policy, builder.build(DAY, policy)) == Decimal("40.00")


def test_multi_day_is_first_day_plus_per_day(calculator, builder):
    interval = builder.build(DAY, MultiDay(), end_date=date(2026, 7, 3))

    assert calculator.rental_price(bike(), MultiDay(), interval) == Decimal("100.00")


def test_one_day_multi_day_is_first_day_rate(calculator, builder):
    interval = builder.build(DAY, MultiDay(), end_date=DAY)

    assert calculator.rental_price(bike(), MultiDay(), interval) == Decimal("40.00")


def test_walk_in_multi_day_counts_days_from_today(calculator, builder):
    now = datetime(2026, 7, 1, 15, 0, tzinfo=EDMONTON)
    interval = builder.build_immediate(now, MultiDay(), end_date=date(2026, 7, 2))

    assert calculator.rental_price(bike(), MultiDay(), interval) == Decimal("70.00")


def test_missing_price_is_not_bookable(calculator, builder):
    interval = builder.build(DAY, TWO_HOURS, start_time=time(10, 0))

    with pytest.raises(NotBookable) as excinfo:
        calculator.rental_price(bike(price_2h=None), TWO_HOURS, interval)

    assert excinfo.value.details["duration"] == "2h"


def test_missing_per_day_price_is_not_bookable(calculator, builder):
    interval = builder.build(DAY, MultiDay(), end_date=date(2026, 7, 2))

    with pytest.raises(NotBookable):
        calculator.rental_price(bike(price_per_day=None), MultiDay(), interval)


def test_quote_totals_rental_and_deposit(calculator, builder):
    interval = builder.build(DAY, TWO_HOURS, start_time=time(10, 0))
    units = [bike(1), bike(2, price_2h=Decimal("20.00"), deposit_amount=Decimal("150.00"))]

    quote = calculator.quote(units, TWO_HOURS, interval)

    assert quote.rental_total.amount == Decimal("35.00")
    assert quote.deposit_total.amount == Decimal("250.00")
    assert quote.total.amount == Decimal("285.00")
    assert quote.line_for(2).rental_price == Decimal("20.00")
    assert quote.total.currency == "CAD"


def test_rental_rounds_per_line_and_deposit_rounds_once(calculator, builder):
    interval = builder.build(DAY, TWO_HOURS, start_time=time(10, 0))
    units = [
        bike(1, price_2h=Decimal("10.005"), deposit_amount=Decimal("0.005")),
        bike(2, price_2h=Decimal("10.005"), deposit_amount=Decimal("0.005")),
    ]

    quote = calculator.quote(units, TWO_HOURS, interval)

    assert quote.rental_total.amount == Decimal("20.02")
    assert quote.deposit_total.amount == Decimal("0.01")
