from __future__ import annotations

from django.core.management.base import BaseCommand  # type: ignore
from django.utils import timezone  # type: ignore

from shared.application.message_bus import message_bus

from apps.reservations.application.commands import CancelCommand
from apps.reservations.domain.lifecycle import ReservationStatus
from apps.reservations.exceptions import ReservationError
from apps.reservations.models import Reservation


class Command(BaseCommand):
    help = "Cancel holds whose payment deadline has passed so their bikes can be booked again"

    def add_arguments(self, parser):  # type: ignore
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="List the expired holds without cancelling them",
        )

    def handle(self, *args, **options):  # type: ignore
        expired = list(
            Reservation.objects.filter(
                status=ReservationStatus.HOLD.value,
                hold_expires_at__lte=timezone.now(),
            )
            .order_by("hold_expires_at")
            .values_list("pk", "short_ref")
        )
        if options["dry_run"]:
            for _, short_ref in expired:
                self.stdout.write(short_ref)
            self.stdout.write(f"{len(expired)} expired hold(s)")
            return

        released = 0
        for reservation_id, short_ref in expired:
            try:
                message_bus.handle_command(
                    CancelCommand(
                        reservation_id=reservation_id,
                        reason="Hold expired",
                        performed_by="system",
                    )
                )
            except ReservationError as e:
                # Paid or cancelled by someone else since the listing.
                self.stderr.write(f"{short_ref}: {e.message}")
                continue
            released += 1

        self.stdout.write(self.style.SUCCESS(f"Released {released} expired hold(s)"))
