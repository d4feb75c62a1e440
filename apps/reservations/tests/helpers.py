"""Builders shared by the reservation test modules."""

from __future__ import annotations

import uuid
from datetime import date, time, timedelta
from decimal import Decimal
from zoneinfo import ZoneInfo

from django.utils import timezone

from apps.customers.models import Customer
from apps.fleet.models import Bike
from apps.payments.gateway import SandboxGateway
from apps.reservations.application.command_handlers import (
    CancelHandler,
    CaptureDepositHandler,
    CheckInHandler,
    CheckOutHandler,
    CompleteHandler,
    ConfirmPaymentHandler,
    CreateHoldHandler,
    CreateWalkInHandler,
    ExtendHandler,
    LinkWaiversHandler,
    VoidPaymentHandler,
)
from apps.reservations.application.commands import (
    CheckOutCommand,
    ConfirmPaymentCommand,
    CreateHoldCommand,
    LinkWaiversCommand,
)
from apps.reservations.domain.policies import ShopHours
from apps.waivers.models import Waiver

EDMONTON = ZoneInfo("America/Edmonton")
SHOP = ShopHours(timezone=EDMONTON)


def make_bike(
    name: str = "Commuter",
    category: str = "City",
    size: str = "small",
    **overrides,
) -> Bike:
    fields = {
        "price_2h": Decimal("15.00"),
        "price_4h": Decimal("25.00"),
        "price_8h": Decimal("40.00"),
        "price_per_day": Decimal("30.00"),
        "deposit_amount": Decimal("100.00"),
    }
    fields.update(overrides)
    return Bike.objects.create(name=name, category=category, size=size, **fields)


def make_customer(email: str | None = None, full_name: str = "Pat Rider") -> Customer:
    email = email or f"rider-{uuid.uuid4().hex[:8]}@example.com"
    return Customer.objects.create(full_name=full_name, email=email, phone="+1 780 555 0100")


def sign_waiver(customer: Customer | None = None, reservation=None, signed_at=None) -> Waiver:
    return Waiver.objects.create(
        customer=customer or make_customer(),
        reservation=reservation,
        signed_at=signed_at or timezone.now(),
    )


def booking_day(days_ahead: int = 10) -> date:
    return SHOP.today(timezone.now()) + timedelta(days=days_ahead)


class Desk:
    """The reservation handlers wired to the test shop and the sandbox gateway."""

    def __init__(self, shop: ShopHours = SHOP):
        gateway = SandboxGateway()
        self.create_hold = CreateHoldHandler(shop).handle
        self.walk_in = CreateWalkInHandler(shop).handle
        self.confirm = ConfirmPaymentHandler(shop, gateway).handle
        self.void = VoidPaymentHandler(shop, gateway).handle
        self.capture = CaptureDepositHandler(shop, gateway).handle
        self.check_out = CheckOutHandler(shop).handle
        self.check_in = CheckInHandler(shop).handle
        self.extend = ExtendHandler(shop).handle
        self.cancel = CancelHandler(shop).handle
        self.complete = CompleteHandler(shop).handle
        self.link_waivers = LinkWaiversHandler().handle

    def hold(self, bikes, on: date | None = None, duration: str = "2h", start: time | None = time(10, 0), end_date=None):
        return self.create_hold(
            CreateHoldCommand(
                bike_ids=[bike.pk for bike in bikes],
                on=on or booking_day(),
                duration=duration,
                start_time=start,
                end_date=end_date,
            )
        )

    def paid(self, bikes, **hold_kwargs):
        """A hold with a linked waiver, paid through the sandbox."""
        hold = self.hold(bikes, **hold_kwargs)
        waiver = sign_waiver()
        self.link_waivers(LinkWaiversCommand(reservation_id=hold.reservation_id, waiver_ids=[waiver.pk]))
        self.confirm(ConfirmPaymentCommand(reservation_id=hold.reservation_id, payment_token="ticket-ok"))
        return hold

    def active(self, bikes, **hold_kwargs):
        hold = self.paid(bikes, **hold_kwargs)
        self.check_out(CheckOutCommand(reservation_id=hold.reservation_id))
        return hold
