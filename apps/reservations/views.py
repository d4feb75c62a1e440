"""API views for the reservation engine.

Views validate request shape, hand a command to the message bus and render
the result. Domain errors are turned into responses by the project's
exception handler.
"""

from __future__ import annotations

import uuid

from django.utils import timezone  # type: ignore
from django_filters.rest_framework import DjangoFilterBackend  # type: ignore
from rest_framework import permissions, status, viewsets  # type: ignore
from rest_framework.decorators import action  # type: ignore
from rest_framework.pagination import PageNumberPagination  # type: ignore
from rest_framework.response import Response  # type: ignore
from rest_framework.views import APIView  # type: ignore

from shared.application.message_bus import message_bus

from apps.fleet.services import fleet_status
from apps.waivers.services import unlinked_waivers

from .application.commands import (
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
    LinkWaiversCommand,
    PreloadPaymentCommand,
    VoidPaymentCommand,
)
from .application.queries import (
    AvailabilityQuery,
    dashboard,
    public_booking,
    reservation_detail,
    staff_reservations,
)
from .domain.intervals import IntervalBuilder
from .domain.policies import ShopHours, parse_policy
from .filters import ReservationFilterSet
from .serializers import (
    AvailabilityQuerySerializer,
    AvailableGroupSerializer,
    CancelSerializer,
    CheckInSerializer,
    ExtendSerializer,
    HoldCreateSerializer,
    ItemActionSerializer,
    LinkWaiversSerializer,
    NoteCreateSerializer,
    NoteSerializer,
    PaymentConfirmSerializer,
    PublicBookingSerializer,
    ReservationDetailSerializer,
    ReservationListSerializer,
    WaiverSerializer,
    WalkInSerializer,
)


def _staff_name(request) -> str:
    user = request.user
    return user.get_username() if user and user.is_authenticated else "admin"


def _transition_payload(result) -> dict:
    payload = {"reservation_id": str(result.reservation_id), "status": result.status}
    if result.affected is not None:
        payload["affected"] = result.affected
    if result.all_returned is not None:
        payload["all_returned"] = result.all_returned
    if result.new_end is not None:
        payload["new_end"] = result.new_end
    return payload


class ReservationPagination(PageNumberPagination):
    page_size = 20
    page_size_query_param = "page_size"
    max_page_size = 100


# ===== Public =====

class AvailabilityView(APIView):
    """Bikes free for a date and duration, grouped by variant."""

    permission_classes = [permissions.AllowAny]

    def get(self, request):  # type: ignore
        serializer = AvailabilityQuerySerializer(data=request.query_params)
        serializer.is_valid(raise_exception=True)
        params = serializer.validated_data

        shop = ShopHours.from_settings()
        policy = parse_policy(params["duration"], shop)
        interval, groups = AvailabilityQuery(IntervalBuilder(shop)).find(
            params["date"],
            policy,
            start_time=params.get("start_time"),
            end_date=params.get("end_date"),
        )
        return Response(
            {
                "date": params["date"],
                "duration": policy.tag,
                "starts_at": interval.start,
                "ends_at": interval.end,
                "groups": AvailableGroupSerializer(groups, many=True).data,
            }
        )


class PublicBookingViewSet(viewsets.ViewSet):
    """Online booking flow: hold, pay, look up."""

    permission_classes = [permissions.AllowAny]
    lookup_value_regex = "[0-9a-fA-F-]{36}"

    @action(detail=False, methods=["post"])
    def hold(self, request):  # type: ignore
        serializer = HoldCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        result = message_bus.handle_command(
            CreateHoldCommand(
                bike_ids=data["bike_ids"],
                on=data["date"],
                duration=data["duration"],
                start_time=data.get("start_time"),
                end_date=data.get("end_date"),
            )
        )
        return Response(
            {
                "reservation_id": str(result.reservation_id),
                "short_ref": result.short_ref,
                "booking_token": result.booking_token,
                "hold_expires_at": result.hold_expires_at,
                "starts_at": result.starts_at,
                "ends_at": result.ends_at,
                "total_amount": result.total_amount,
                "deposit_amount": result.deposit_amount,
            },
            status=status.HTTP_201_CREATED,
        )

    @action(detail=True, methods=["post"], url_path="preload-payment")
    def preload_payment(self, request, pk=None):  # type: ignore
        result = message_bus.handle_command(PreloadPaymentCommand(reservation_id=uuid.UUID(pk)))
        return Response(
            {"ticket": result.ticket, "amount": result.amount, "is_sandbox": result.is_sandbox}
        )

    @action(detail=False, methods=["post"])
    def pay(self, request):  # type: ignore
        serializer = PaymentConfirmSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        result = message_bus.handle_command(
            ConfirmPaymentCommand(
                reservation_id=serializer.validated_data["reservation_id"],
                payment_token=serializer.validated_data["payment_token"],
            )
        )
        return Response(
            {
                "reservation_id": str(result.reservation_id),
                "short_ref": result.short_ref,
                "booking_token": result.booking_token,
                "status": result.status,
            }
        )

    @action(detail=False, methods=["get"], url_path=r"lookup/(?P<short_ref>[A-Za-z0-9]{6})")
    def lookup(self, request, short_ref=None):  # type: ignore
        reservation = public_booking(short_ref, request.query_params.get("token"))
        return Response(PublicBookingSerializer(reservation).data)


# ===== Staff =====

class AdminReservationViewSet(viewsets.ReadOnlyModelViewSet):
    """Staff view of every booking plus the lifecycle actions."""

    permission_classes = [permissions.IsAdminUser]
    pagination_class = ReservationPagination
    filter_backends = [DjangoFilterBackend]
    filterset_class = ReservationFilterSet
    serializer_class = ReservationListSerializer
    lookup_value_regex = "[0-9a-fA-F-]{36}"

    def get_queryset(self):  # type: ignore
        return staff_reservations(timezone.now())

    def retrieve(self, request, pk=None):  # type: ignore
        reservation = reservation_detail(uuid.UUID(pk))
        return Response(ReservationDetailSerializer(reservation).data)

    def _respond(self, result):
        return Response(_transition_payload(result))

    @action(detail=True, methods=["patch"], url_path="check-out")
    def check_out(self, request, pk=None):  # type: ignore
        serializer = ItemActionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        return self._respond(
            message_bus.handle_command(
                CheckOutCommand(
                    reservation_id=uuid.UUID(pk),
                    item_ids=serializer.validated_data["item_ids"],
                    performed_by=_staff_name(request),
                )
            )
        )

    @action(detail=True, methods=["patch"], url_path="check-in")
    def check_in(self, request, pk=None):  # type: ignore
        serializer = CheckInSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        return self._respond(
            message_bus.handle_command(
                CheckInCommand(
                    reservation_id=uuid.UUID(pk),
                    item_ids=serializer.validated_data["item_ids"],
                    notes=serializer.validated_data["notes"],
                    performed_by=_staff_name(request),
                )
            )
        )

    @action(detail=True, methods=["patch"])
    def cancel(self, request, pk=None):  # type: ignore
        serializer = CancelSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        return self._respond(
            message_bus.handle_command(
                CancelCommand(
                    reservation_id=uuid.UUID(pk),
                    reason=serializer.validated_data["reason"],
                    performed_by=_staff_name(request),
                )
            )
        )

    @action(detail=True, methods=["patch"])
    def extend(self, request, pk=None):  # type: ignore
        serializer = ExtendSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        return self._respond(
            message_bus.handle_command(
                ExtendCommand(
                    reservation_id=uuid.UUID(pk),
                    new_end=serializer.validated_data["new_end"],
                    performed_by=_staff_name(request),
                )
            )
        )

    @action(detail=True, methods=["post"])
    def complete(self, request, pk=None):  # type: ignore
        return self._respond(
            message_bus.handle_command(
                CompleteCommand(reservation_id=uuid.UUID(pk), performed_by=_staff_name(request))
            )
        )

    @action(detail=True, methods=["post"], url_path="void-payment")
    def void_payment(self, request, pk=None):  # type: ignore
        return self._respond(
            message_bus.handle_command(
                VoidPaymentCommand(reservation_id=uuid.UUID(pk), performed_by=_staff_name(request))
            )
        )

    @action(detail=True, methods=["post"])
    def capture(self, request, pk=None):  # type: ignore
        return self._respond(
            message_bus.handle_command(
                CaptureDepositCommand(reservation_id=uuid.UUID(pk), performed_by=_staff_name(request))
            )
        )

    @action(detail=True, methods=["post"])
    def notes(self, request, pk=None):  # type: ignore
        serializer = NoteCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        note = message_bus.handle_command(
            AddNoteCommand(
                reservation_id=uuid.UUID(pk),
                text=serializer.validated_data["text"],
                author=_staff_name(request),
            )
        )
        return Response(NoteSerializer(note).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=["post"], url_path="link-waivers")
    def link_waivers(self, request, pk=None):  # type: ignore
        serializer = LinkWaiversSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        result = message_bus.handle_command(
            LinkWaiversCommand(
                reservation_id=uuid.UUID(pk),
                waiver_ids=serializer.validated_data["waiver_ids"],
            )
        )
        return Response({"reservation_id": str(result.reservation_id), "linked": result.linked})


class WalkInView(APIView):
    permission_classes = [permissions.IsAdminUser]

    def post(self, request):  # type: ignore
        serializer = WalkInSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        result = message_bus.handle_command(
            CreateWalkInCommand(
                bike_ids=data["bike_ids"],
                duration=data["duration"],
                full_name=data["full_name"],
                phone=data["phone"],
                email=data.get("email") or None,
                end_date=data.get("end_date"),
                performed_by=_staff_name(request),
            )
        )
        return Response(
            {
                "reservation_id": str(result.reservation_id),
                "short_ref": result.short_ref,
                "booking_token": result.booking_token,
                "status": result.status,
                "total_amount": result.total_amount,
                "starts_at": result.starts_at,
                "return_time": result.return_time,
            },
            status=status.HTTP_201_CREATED,
        )


class DashboardView(APIView):
    permission_classes = [permissions.IsAdminUser]

    def get(self, request):  # type: ignore
        return Response(dashboard(ShopHours.from_settings()))


class FleetStatusView(APIView):
    permission_classes = [permissions.IsAdminUser]

    def get(self, request):  # type: ignore
        return Response({"categories": fleet_status()})


class UnlinkedWaiversView(APIView):
    """Waivers signed today that still wait for a booking."""

    permission_classes = [permissions.IsAdminUser]

    def get(self, request):  # type: ignore
        return Response({"waivers": WaiverSerializer(unlinked_waivers(), many=True).data})
