"""
Reservation Command Handlers

These are the use cases of the reservation engine. Each one runs inside a
single DjangoUnitOfWork, so the writes of a transition commit together or
not at all, and domain events leave only after commit.

Every mutating transition:
1. Locks the reservation header row and re-reads its status
2. Rejects with InvalidReservationState when the status does not allow it
3. Locks the targeted item rows before a conditional update
4. Records its events and lets the unit of work publish them on commit

Creating a booking (hold or walk-in) is the double-booking critical path:
1. Fail fast with the availability query before opening a transaction
2. Collapse overlapping items of released reservations (self-healing)
3. Lock the requested bikes and re-run the overlap guard under that lock
4. Insert header and items
5. PostgreSQL's exclusion constraint is the final word; a violation rolls
   everything back and surfaces as ReservationConflict
"""

from __future__ import annotations

import functools
from datetime import datetime
from typing import Iterable, List

import structlog
from django.db.models import F  # type: ignore
from django.utils import timezone  # type: ignore

from shared.application.uow import DjangoUnitOfWork
from shared.domain.value_objects import TimeInterval

from apps.customers.services import upsert_customer
from apps.fleet.models import Bike
from apps.fleet.services import get_units, is_operational
from apps.payments.gateway import PaymentGateway, get_payment_gateway
from apps.waivers.services import has_any_waiver, link_waivers

from ..domain.events import (
    DepositCaptured,
    HoldCreated,
    ItemsCheckedIn,
    ItemsCheckedOut,
    PaymentConfirmed,
    PaymentVoided,
    ReservationCancelled,
    ReservationCompleted,
    ReservationExtended,
    WalkInCreated,
)
from ..domain.intervals import IntervalBuilder
from ..domain.lifecycle import Action, ReservationStatus, ensure_allowed, hold_is_live
from ..domain.policies import DurationPolicy, MultiDay, ShopHours, parse_policy
from ..domain.pricing import PricingCalculator, Quote
from ..exceptions import (
    DependencyFailure,
    InvalidReservationState,
    NotBookable,
    ReservationConflict,
    ReservationNotFound,
    ReservationValidationError,
)
from ..models import Note, Reservation, ReservationItem
from ..storage import (
    exclusion_violation_as_conflict,
    guard_against_overlap,
    heal_released_overlaps,
    lock_bikes,
    lock_items,
    lock_reservation,
    release_items,
)
from ..tokens import booking_token, generate_unique_short_ref
from .commands import (
    AddNoteCommand,
    CancelCommand,
    CaptureDepositCommand,
    CheckInCommand,
    CheckOutCommand,
    CompleteCommand,
    ConfirmPaymentCommand,
    CreateHoldCommand,
    CreateWalkInCommand,
    ExtendCommand,
    HoldResult,
    LinkWaiversCommand,
    LinkWaiversResult,
    PaymentResult,
    PreloadPaymentCommand,
    PreloadResult,
    TransitionResult,
    VoidPaymentCommand,
    WalkInResult,
)
from .queries import AvailabilityQuery

logger = structlog.get_logger(__name__)

MAX_BIKES_PER_BOOKING = 10

BOOKING_CONFLICT_MESSAGE = "One or more bikes are no longer available for the selected time"
EXTEND_CONFLICT_MESSAGE = (
    "Cannot extend: a bike in this booking conflicts with another reservation "
    "in the requested time range"
)


def logs_rejections(handle):
    """Log rejected transitions at warning before they propagate"""

    @functools.wraps(handle)
    def wrapper(self, command):
        try:
            return handle(self, command)
        except (InvalidReservationState, ReservationConflict, DependencyFailure) as e:
            reservation_id = getattr(command, 'reservation_id', None)
            logger.warning(
                "transition_rejected",
                command=type(command).__name__,
                reservation_id=str(reservation_id) if reservation_id else None,
                code=e.code,
                reason=e.message,
            )
            raise

    return wrapper


def _format_local(shop: ShopHours, instant: datetime) -> str:
    return shop.local(instant).strftime('%Y-%m-%d %H:%M')


class ReservationHandler:
    """Shared wiring: shop configuration, interval builder, pricing, availability"""

    def __init__(self, shop: ShopHours | None = None):
        self.shop = shop or ShopHours.from_settings()
        self.builder = IntervalBuilder(self.shop)
        self.pricing = PricingCalculator(self.builder)
        self.availability = AvailabilityQuery(self.builder)


class PaymentHandlerMixin:
    """Resolves the configured gateway per call unless one was injected"""

    _gateway: PaymentGateway | None = None

    @property
    def gateway(self) -> PaymentGateway:
        return self._gateway or get_payment_gateway()


# ===== Booking creation =====

class BookingCreationHandler(ReservationHandler):
    """Validation and insertion shared by holds and walk-ins"""

    def _validate_bike_ids(self, bike_ids: List[int]) -> None:
        if not bike_ids:
            raise ReservationValidationError("Select at least one bike", field='bike_ids')
        if len(bike_ids) > MAX_BIKES_PER_BOOKING:
            raise ReservationValidationError(
                f"At most {MAX_BIKES_PER_BOOKING} bikes can be booked at once",
                field='bike_ids',
            )
        if len(set(bike_ids)) != len(bike_ids):
            raise ReservationValidationError("Duplicate bike ids in request", field='bike_ids')

    def _check_rental_length(self, policy: DurationPolicy, interval: TimeInterval) -> None:
        if isinstance(policy, MultiDay):
            days = self.builder.covered_days(interval)
            if days > self.shop.max_rental_days:
                raise ReservationValidationError(
                    f"Multi-day rentals are limited to {self.shop.max_rental_days} days",
                    field='end_date',
                )

    @staticmethod
    def _bookable(units: dict[int, Bike], bike_ids: List[int]) -> List[Bike]:
        missing = [bike_id for bike_id in bike_ids if bike_id not in units]
        if missing:
            raise ReservationNotFound(
                f"Bike(s) not found: {', '.join(map(str, missing))}",
                bike_ids=missing,
            )
        out_of_service = [bike_id for bike_id in bike_ids if not is_operational(units[bike_id])]
        if out_of_service:
            raise NotBookable(
                f"Bike(s) not available for rental: {', '.join(map(str, out_of_service))}",
                bike_ids=out_of_service,
            )
        return [units[bike_id] for bike_id in bike_ids]

    def _precheck(self, bike_ids: List[int], interval: TimeInterval) -> None:
        """Fail fast before paying for a transaction; not the correctness mechanism"""
        self._bookable(get_units(bike_ids), bike_ids)
        taken = self.availability.unavailable_ids(bike_ids, interval)
        if taken:
            raise ReservationConflict(bike_ids=sorted(taken))

    def _claim_units(self, bike_ids: List[int], interval: TimeInterval) -> List[Bike]:
        """Heal, lock and re-check the bikes inside the writing transaction"""
        heal_released_overlaps(bike_ids, interval)
        units = self._bookable({bike.pk: bike for bike in lock_bikes(bike_ids)}, bike_ids)
        guard_against_overlap(bike_ids, interval)
        return units

    def _insert(
        self,
        units: Iterable[Bike],
        policy: DurationPolicy,
        interval: TimeInterval,
        quote: Quote,
        checked_out_at: datetime | None = None,
        **fields,
    ) -> Reservation:
        reservation = Reservation.objects.create(
            short_ref=generate_unique_short_ref(),
            starts_at=interval.start,
            ends_at=interval.end,
            duration_type=policy.tag,
            total_amount=quote.total.amount,
            deposit_amount=quote.deposit_total.amount,
            **fields,
        )
        ReservationItem.objects.bulk_create([
            ReservationItem(
                reservation=reservation,
                bike=unit,
                starts_at=interval.start,
                ends_at=interval.end,
                rental_price=quote.line_for(unit.pk).rental_price,
                deposit_amount=quote.line_for(unit.pk).deposit_amount,
                checked_out_at=checked_out_at,
            )
            for unit in units
        ])
        return reservation


class CreateHoldHandler(BookingCreationHandler):
    """
    Handler for CreateHold command

    Produces a reservation in `hold` status that expires after the shop's
    hold duration unless paid for.
    """

    @logs_rejections
    def handle(self, command: CreateHoldCommand) -> HoldResult:
        bike_ids = list(command.bike_ids)
        self._validate_bike_ids(bike_ids)
        policy = parse_policy(command.duration, self.shop)
        now = timezone.now()
        if command.on < self.shop.today(now):
            raise ReservationValidationError("Start date cannot be in the past", field='date')
        interval = self.builder.build(command.on, policy, command.start_time, command.end_date)
        if interval.end <= now:
            raise ReservationValidationError("The selected time has already passed", field='start_time')
        self._check_rental_length(policy, interval)
        self._precheck(bike_ids, interval)

        with exclusion_violation_as_conflict(BOOKING_CONFLICT_MESSAGE):
            with DjangoUnitOfWork() as uow:
                units = self._claim_units(bike_ids, interval)
                quote = self.pricing.quote(units, policy, interval)
                reservation = self._insert(
                    units,
                    policy,
                    interval,
                    quote,
                    status=ReservationStatus.HOLD.value,
                    source=Reservation.Source.ONLINE,
                    hold_expires_at=now + self.shop.hold_duration,
                )
                reservation.add_event(HoldCreated(
                    aggregate_id=reservation.pk,
                    short_ref=reservation.short_ref,
                    bike_ids=bike_ids,
                    starts_at=interval.start,
                    ends_at=interval.end,
                    hold_expires_at=reservation.hold_expires_at,
                ))
                uow.collect_events(reservation)

        logger.info(
            "hold_created",
            reservation_id=str(reservation.pk),
            short_ref=reservation.short_ref,
            status=reservation.status,
            bike_ids=bike_ids,
            starts_at=interval.start.isoformat(),
            ends_at=interval.end.isoformat(),
        )
        return HoldResult(
            reservation_id=reservation.pk,
            short_ref=reservation.short_ref,
            booking_token=booking_token(reservation.short_ref),
            hold_expires_at=reservation.hold_expires_at,
            starts_at=interval.start,
            ends_at=interval.end,
            total_amount=reservation.total_amount,
            deposit_amount=reservation.deposit_amount,
        )


class CreateWalkInHandler(BookingCreationHandler):
    """
    Handler for CreateWalkIn command

    The booking starts now, is already active and every bike is handed over
    in the same transaction.
    """

    @logs_rejections
    def handle(self, command: CreateWalkInCommand) -> WalkInResult:
        bike_ids = list(command.bike_ids)
        self._validate_bike_ids(bike_ids)
        policy = parse_policy(command.duration, self.shop)
        now = timezone.now()
        interval = self.builder.build_immediate(now, policy, command.end_date)
        self._check_rental_length(policy, interval)
        self._precheck(bike_ids, interval)

        with exclusion_violation_as_conflict("One or more bikes are already booked for the requested time period"):
            with DjangoUnitOfWork() as uow:
                customer = upsert_customer(
                    full_name=command.full_name,
                    phone=command.phone,
                    email=command.email,
                )
                units = self._claim_units(bike_ids, interval)
                quote = self.pricing.quote(units, policy, interval)
                reservation = self._insert(
                    units,
                    policy,
                    interval,
                    quote,
                    checked_out_at=now,
                    customer=customer,
                    status=ReservationStatus.ACTIVE.value,
                    source=Reservation.Source.WALK_IN,
                )
                reservation.add_event(WalkInCreated(
                    aggregate_id=reservation.pk,
                    short_ref=reservation.short_ref,
                    bike_ids=bike_ids,
                ))
                uow.collect_events(reservation)

        logger.info(
            "walk_in_created",
            reservation_id=str(reservation.pk),
            short_ref=reservation.short_ref,
            status=reservation.status,
            bike_ids=bike_ids,
            performed_by=command.performed_by,
        )
        return WalkInResult(
            reservation_id=reservation.pk,
            short_ref=reservation.short_ref,
            booking_token=booking_token(reservation.short_ref),
            status=reservation.status,
            total_amount=reservation.total_amount,
            starts_at=interval.start,
            return_time=interval.end,
        )


# ===== Payment =====

class PreloadPaymentHandler(PaymentHandlerMixin, ReservationHandler):
    """Opens a hosted checkout for the booking's total"""

    def __init__(self, shop: ShopHours | None = None, gateway: PaymentGateway | None = None):
        super().__init__(shop)
        self._gateway = gateway

    @logs_rejections
    def handle(self, command: PreloadPaymentCommand) -> PreloadResult:
        reservation = (
            Reservation.objects.select_related('customer')
            .filter(pk=command.reservation_id)
            .first()
        )
        if reservation is None:
            raise ReservationNotFound()
        if reservation.status == ReservationStatus.HOLD and not hold_is_live(
            reservation.status, reservation.hold_expires_at, timezone.now()
        ):
            raise ReservationNotFound("Reservation not found or hold expired")
        ensure_allowed(Action.PRELOAD_PAYMENT, reservation.status)

        customer = reservation.customer
        email = customer.email if customer and not customer.has_placeholder_email else None
        gateway = self.gateway
        amount = reservation.deposit_amount or reservation.total_amount
        result = gateway.preauthorize(amount, reservation.short_ref, email)
        if not result.success:
            raise DependencyFailure(result.message or "Payment gateway error")

        logger.info(
            "payment_preloaded",
            reservation_id=str(reservation.pk),
            short_ref=reservation.short_ref,
            status=reservation.status,
        )
        return PreloadResult(ticket=result.ticket, amount=amount, is_sandbox=gateway.is_sandbox)


class ConfirmPaymentHandler(PaymentHandlerMixin, ReservationHandler):
    """
    Handler for ConfirmPayment command (hold -> paid)

    Requires a live hold and at least one linked waiver. The gateway is asked
    for the receipt while the header row is locked, so one hold can never be
    paid twice.
    """

    def __init__(self, shop: ShopHours | None = None, gateway: PaymentGateway | None = None):
        super().__init__(shop)
        self._gateway = gateway

    @logs_rejections
    def handle(self, command: ConfirmPaymentCommand) -> PaymentResult:
        with DjangoUnitOfWork() as uow:
            reservation = lock_reservation(command.reservation_id)
            if reservation.status == ReservationStatus.HOLD and not hold_is_live(
                reservation.status, reservation.hold_expires_at, timezone.now()
            ):
                raise ReservationNotFound("Reservation not found or hold expired")
            ensure_allowed(Action.CONFIRM_PAYMENT, reservation.status)

            if not has_any_waiver(reservation.pk):
                raise InvalidReservationState(
                    "Waiver required: a waiver must be signed before payment",
                    current_status=reservation.status,
                )

            result = self.gateway.confirm(command.payment_token)
            if not result.success:
                raise DependencyFailure(
                    result.message or "Payment declined",
                    declined=result.declined,
                )

            reservation.status = ReservationStatus.PAID.value
            reservation.payment_token = command.payment_token
            reservation.gateway_txn_id = result.transaction_id or ''
            reservation.save(update_fields=['status', 'payment_token', 'gateway_txn_id', 'updated_at'])
            reservation.add_event(PaymentConfirmed(
                aggregate_id=reservation.pk,
                short_ref=reservation.short_ref,
                transaction_id=result.transaction_id,
            ))
            uow.collect_events(reservation)

        logger.info(
            "payment_confirmed",
            reservation_id=str(reservation.pk),
            short_ref=reservation.short_ref,
            status=reservation.status,
        )
        return PaymentResult(
            reservation_id=reservation.pk,
            short_ref=reservation.short_ref,
            booking_token=booking_token(reservation.short_ref),
            status=reservation.status,
        )


class VoidPaymentHandler(PaymentHandlerMixin, ReservationHandler):
    """
    Handler for VoidPayment command (paid -> voided)

    Reverses the payment with the gateway first, then releases the booking
    the same way a cancellation does.
    """

    def __init__(self, shop: ShopHours | None = None, gateway: PaymentGateway | None = None):
        super().__init__(shop)
        self._gateway = gateway

    @logs_rejections
    def handle(self, command: VoidPaymentCommand) -> TransitionResult:
        with DjangoUnitOfWork() as uow:
            reservation = lock_reservation(command.reservation_id)
            ensure_allowed(Action.VOID_PAYMENT, reservation.status)
            if not reservation.gateway_txn_id:
                raise DependencyFailure("No payment transaction recorded for this booking")

            result = self.gateway.void(reservation.gateway_txn_id)
            if not result.success:
                raise DependencyFailure(result.message or "Void failed")

            reservation.status = ReservationStatus.VOIDED.value
            reservation.save(update_fields=['status', 'updated_at'])
            released = release_items(reservation)
            Note.objects.create(
                reservation=reservation,
                text="Payment voided",
                created_by=command.performed_by,
            )
            reservation.add_event(PaymentVoided(
                aggregate_id=reservation.pk,
                transaction_id=reservation.gateway_txn_id,
            ))
            uow.collect_events(reservation)

        logger.info(
            "payment_voided",
            reservation_id=str(reservation.pk),
            short_ref=reservation.short_ref,
            status=reservation.status,
            released_items=released,
        )
        return TransitionResult(reservation_id=reservation.pk, status=reservation.status)


class CaptureDepositHandler(PaymentHandlerMixin, ReservationHandler):
    """Captures the deposit on the recorded transaction; the status is unchanged"""

    def __init__(self, shop: ShopHours | None = None, gateway: PaymentGateway | None = None):
        super().__init__(shop)
        self._gateway = gateway

    @logs_rejections
    def handle(self, command: CaptureDepositCommand) -> TransitionResult:
        with DjangoUnitOfWork() as uow:
            reservation = lock_reservation(command.reservation_id)
            ensure_allowed(Action.CAPTURE_DEPOSIT, reservation.status)
            if reservation.deposit_captured_at is not None:
                raise InvalidReservationState(
                    "Deposit already captured",
                    current_status=reservation.status,
                )
            if not reservation.gateway_txn_id:
                raise InvalidReservationState(
                    "No card payment recorded for this booking",
                    current_status=reservation.status,
                )

            result = self.gateway.capture(reservation.gateway_txn_id, reservation.deposit_amount)
            if not result.success:
                raise DependencyFailure(result.message or "Capture failed")

            reservation.deposit_captured_at = timezone.now()
            reservation.save(update_fields=['deposit_captured_at', 'updated_at'])
            reservation.add_event(DepositCaptured(
                aggregate_id=reservation.pk,
                transaction_id=reservation.gateway_txn_id,
                amount=reservation.deposit_amount,
            ))
            uow.collect_events(reservation)

        logger.info(
            "deposit_captured",
            reservation_id=str(reservation.pk),
            short_ref=reservation.short_ref,
            status=reservation.status,
        )
        return TransitionResult(reservation_id=reservation.pk, status=reservation.status)


# ===== Staff transitions =====

class CheckOutHandler(ReservationHandler):
    """Handler for CheckOut command (paid | active -> active)"""

    @logs_rejections
    def handle(self, command: CheckOutCommand) -> TransitionResult:
        with DjangoUnitOfWork() as uow:
            reservation = lock_reservation(command.reservation_id)
            ensure_allowed(Action.CHECK_OUT, reservation.status)

            items = lock_items(reservation, command.item_ids, checked_out_at__isnull=True)
            target_ids = [item.pk for item in items if item.checked_out_at is None and not item.is_released]
            checked_out = 0
            if target_ids:
                checked_out = ReservationItem.objects.filter(
                    id__in=target_ids,
                    checked_out_at__isnull=True,
                ).update(checked_out_at=timezone.now())
            if not checked_out:
                raise ReservationValidationError(
                    "No items to check out (already checked out or invalid item ids)",
                    field='item_ids',
                )

            if reservation.status != ReservationStatus.ACTIVE:
                reservation.status = ReservationStatus.ACTIVE.value
                reservation.save(update_fields=['status', 'updated_at'])
            reservation.add_event(ItemsCheckedOut(
                aggregate_id=reservation.pk,
                item_ids=target_ids,
                status=reservation.status,
            ))
            uow.collect_events(reservation)

        logger.info(
            "items_checked_out",
            reservation_id=str(reservation.pk),
            short_ref=reservation.short_ref,
            status=reservation.status,
            checked_out=checked_out,
        )
        return TransitionResult(reservation_id=reservation.pk, status=reservation.status, affected=checked_out)


class CheckInHandler(ReservationHandler):
    """
    Handler for CheckIn command

    Completes the booking once every item has been returned.
    """

    @logs_rejections
    def handle(self, command: CheckInCommand) -> TransitionResult:
        with DjangoUnitOfWork() as uow:
            reservation = lock_reservation(command.reservation_id)
            ensure_allowed(Action.CHECK_IN, reservation.status)

            items = lock_items(
                reservation,
                command.item_ids,
                checked_out_at__isnull=False,
                checked_in_at__isnull=True,
            )
            target_ids = [
                item.pk for item in items
                if item.checked_out_at is not None and item.checked_in_at is None
            ]
            checked_in = 0
            if target_ids:
                checked_in = ReservationItem.objects.filter(
                    id__in=target_ids,
                    checked_out_at__isnull=False,
                    checked_in_at__isnull=True,
                ).update(checked_in_at=timezone.now())
            if not checked_in:
                raise ReservationValidationError(
                    "No items to check in (not checked out or already returned)",
                    field='item_ids',
                )

            if command.notes.strip():
                Note.objects.create(
                    reservation=reservation,
                    text=command.notes.strip(),
                    created_by=command.performed_by,
                )

            all_returned = not reservation.items.filter(checked_in_at__isnull=True).exists()
            reservation.add_event(ItemsCheckedIn(
                aggregate_id=reservation.pk,
                item_ids=target_ids,
                all_returned=all_returned,
            ))
            if all_returned:
                reservation.status = ReservationStatus.COMPLETED.value
                reservation.save(update_fields=['status', 'updated_at'])
                reservation.add_event(ReservationCompleted(
                    aggregate_id=reservation.pk,
                    previous_status=ReservationStatus.ACTIVE.value,
                ))
            uow.collect_events(reservation)

        logger.info(
            "items_checked_in",
            reservation_id=str(reservation.pk),
            short_ref=reservation.short_ref,
            status=reservation.status,
            checked_in=checked_in,
            all_returned=all_returned,
        )
        return TransitionResult(
            reservation_id=reservation.pk,
            status=reservation.status,
            affected=checked_in,
            all_returned=all_returned,
        )


class ExtendHandler(ReservationHandler):
    """
    Handler for Extend command

    Moves the return time of the booking and of every bike not yet returned.
    The widened part must not overlap any other live booking.
    """

    @logs_rejections
    def handle(self, command: ExtendCommand) -> TransitionResult:
        new_end = command.new_end
        if timezone.is_naive(new_end):
            raise ReservationValidationError("New return time must include a timezone", field='new_end')

        with exclusion_violation_as_conflict(EXTEND_CONFLICT_MESSAGE):
            with DjangoUnitOfWork() as uow:
                reservation = lock_reservation(command.reservation_id)
                ensure_allowed(Action.EXTEND, reservation.status)
                previous_end = reservation.ends_at
                if new_end <= previous_end:
                    raise ReservationValidationError(
                        "New return time must be after the current return time",
                        field='new_end',
                    )

                items = [
                    item for item in lock_items(reservation, checked_in_at__isnull=True)
                    if not item.is_released
                ]
                lock_bikes(item.bike_id for item in items)
                for item in items:
                    try:
                        guard_against_overlap(
                            [item.bike_id],
                            TimeInterval(item.ends_at, new_end),
                            exclude_reservation_id=reservation.pk,
                        )
                    except ReservationConflict as e:
                        raise ReservationConflict(EXTEND_CONFLICT_MESSAGE, **e.details) from e

                ReservationItem.objects.filter(id__in=[item.pk for item in items]).update(ends_at=new_end)
                reservation.ends_at = new_end
                reservation.save(update_fields=['ends_at', 'updated_at'])
                Note.objects.create(
                    reservation=reservation,
                    text=f"Rental extended to {_format_local(self.shop, new_end)}",
                    created_by=command.performed_by,
                )
                reservation.add_event(ReservationExtended(
                    aggregate_id=reservation.pk,
                    previous_end=previous_end,
                    new_end=new_end,
                ))
                uow.collect_events(reservation)

        logger.info(
            "reservation_extended",
            reservation_id=str(reservation.pk),
            short_ref=reservation.short_ref,
            status=reservation.status,
            new_end=new_end.isoformat(),
        )
        return TransitionResult(reservation_id=reservation.pk, status=reservation.status, new_end=new_end)


class CancelHandler(ReservationHandler):
    """
    Handler for Cancel command (hold | paid -> cancelled)

    Item intervals are collapsed, not deleted: the slot is bookable again at
    once and the history stays.
    """

    @logs_rejections
    def handle(self, command: CancelCommand) -> TransitionResult:
        with DjangoUnitOfWork() as uow:
            reservation = lock_reservation(command.reservation_id)
            ensure_allowed(Action.CANCEL, reservation.status)
            previous_status = reservation.status

            reservation.status = ReservationStatus.CANCELLED.value
            reservation.save(update_fields=['status', 'updated_at'])
            released = release_items(reservation)
            reason = command.reason.strip()
            Note.objects.create(
                reservation=reservation,
                text=f"Cancelled: {reason}" if reason else "Cancelled",
                created_by=command.performed_by,
            )
            reservation.add_event(ReservationCancelled(
                aggregate_id=reservation.pk,
                previous_status=previous_status,
                reason=reason,
            ))
            uow.collect_events(reservation)

        logger.info(
            "reservation_cancelled",
            reservation_id=str(reservation.pk),
            short_ref=reservation.short_ref,
            status=reservation.status,
            previous_status=previous_status,
            released_items=released,
        )
        return TransitionResult(reservation_id=reservation.pk, status=reservation.status)


class CompleteHandler(ReservationHandler):
    """Handler for Complete command: staff override (paid | active -> completed)"""

    @logs_rejections
    def handle(self, command: CompleteCommand) -> TransitionResult:
        with DjangoUnitOfWork() as uow:
            reservation = lock_reservation(command.reservation_id)
            ensure_allowed(Action.COMPLETE, reservation.status)
            previous_status = reservation.status

            reservation.status = ReservationStatus.COMPLETED.value
            reservation.save(update_fields=['status', 'updated_at'])
            Note.objects.create(
                reservation=reservation,
                text="Marked completed",
                created_by=command.performed_by,
            )
            reservation.add_event(ReservationCompleted(
                aggregate_id=reservation.pk,
                previous_status=previous_status,
                manual=True,
            ))
            uow.collect_events(reservation)

        logger.info(
            "reservation_completed",
            reservation_id=str(reservation.pk),
            short_ref=reservation.short_ref,
            status=reservation.status,
            previous_status=previous_status,
        )
        return TransitionResult(reservation_id=reservation.pk, status=reservation.status)


# ===== Notes and waivers =====

class AddNoteHandler:
    """Appends a note to a reservation"""

    def handle(self, command: AddNoteCommand) -> Note:
        text = command.text.strip()
        if not text:
            raise ReservationValidationError("Note text is required", field='text')
        if not Reservation.objects.filter(pk=command.reservation_id).exists():
            raise ReservationNotFound()
        note = Note.objects.create(
            reservation_id=command.reservation_id,
            text=text,
            created_by=command.author,
        )
        logger.info("note_added", reservation_id=str(command.reservation_id), note_id=note.pk)
        return note


class LinkWaiversHandler:
    """
    Attaches today's unlinked waivers to a reservation

    A reservation without a customer takes the signer of the first linked
    waiver.
    """

    def handle(self, command: LinkWaiversCommand) -> LinkWaiversResult:
        with DjangoUnitOfWork():
            reservation = lock_reservation(command.reservation_id)
            linked = link_waivers(reservation, command.waiver_ids)
            if linked and reservation.customer_id is None:
                reservation.customer_id = linked[0].customer_id
                reservation.save(update_fields=['customer', 'updated_at'])

        logger.info(
            "waivers_linked",
            reservation_id=str(reservation.pk),
            short_ref=reservation.short_ref,
            status=reservation.status,
            linked=len(linked),
        )
        return LinkWaiversResult(reservation_id=reservation.pk, linked=len(linked))


def command_handlers(shop: ShopHours | None = None, gateway: PaymentGateway | None = None) -> dict:
    """Command type -> bound handle() for registration on the message bus"""
    shop = shop or ShopHours.from_settings()
    return {
        CreateHoldCommand: CreateHoldHandler(shop).handle,
        CreateWalkInCommand: CreateWalkInHandler(shop).handle,
        PreloadPaymentCommand: PreloadPaymentHandler(shop, gateway).handle,
        ConfirmPaymentCommand: ConfirmPaymentHandler(shop, gateway).handle,
        VoidPaymentCommand: VoidPaymentHandler(shop, gateway).handle,
        CaptureDepositCommand: CaptureDepositHandler(shop, gateway).handle,
        CheckOutCommand: CheckOutHandler(shop).handle,
        CheckInCommand: CheckInHandler(shop).handle,
        ExtendCommand: ExtendHandler(shop).handle,
        CancelCommand: CancelHandler(shop).handle,
        CompleteCommand: CompleteHandler(shop).handle,
        AddNoteCommand: AddNoteHandler().handle,
        LinkWaiversCommand: LinkWaiversHandler().handle,
    }
