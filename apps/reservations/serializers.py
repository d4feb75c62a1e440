"""Serializers for the reservation API.

Input serializers only check shape; every business rule (durations, dates,
availability, lifecycle) is enforced by the command handlers.
"""

from __future__ import annotations

from rest_framework import serializers  # type: ignore

from apps.customers.models import Customer
from apps.fleet.models import Bike
from apps.waivers.models import Waiver

from .application.command_handlers import MAX_BIKES_PER_BOOKING
from .models import Note, Reservation, ReservationItem
from .tokens import booking_token

def bike_ids_field() -> serializers.ListField:
    return serializers.ListField(
        child=serializers.IntegerField(min_value=1),
        allow_empty=False,
        max_length=MAX_BIKES_PER_BOOKING,
    )


# ===== Requests =====

class AvailabilityQuerySerializer(serializers.Serializer):
    date = serializers.DateField()
    duration = serializers.CharField(max_length=20)
    start_time = serializers.TimeField(required=False, allow_null=True)
    end_date = serializers.DateField(required=False, allow_null=True)


class HoldCreateSerializer(AvailabilityQuerySerializer):
    bike_ids = bike_ids_field()


class PaymentConfirmSerializer(serializers.Serializer):
    reservation_id = serializers.UUIDField()
    payment_token = serializers.CharField(max_length=500)


class ItemActionSerializer(serializers.Serializer):
    """Empty or missing ``item_ids`` targets every eligible item."""

    item_ids = serializers.ListField(
        child=serializers.IntegerField(min_value=1),
        required=False,
        default=list,
    )


class CheckInSerializer(ItemActionSerializer):
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class CancelSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default="", max_length=500)


class ExtendSerializer(serializers.Serializer):
    new_end = serializers.DateTimeField()


class WalkInSerializer(serializers.Serializer):
    bike_ids = bike_ids_field()
    duration = serializers.CharField(max_length=20)
    full_name = serializers.CharField(max_length=255)
    phone = serializers.CharField(max_length=32)
    email = serializers.EmailField(required=False, allow_blank=True, allow_null=True)
    end_date = serializers.DateField(required=False, allow_null=True)


class NoteCreateSerializer(serializers.Serializer):
    text = serializers.CharField()


class LinkWaiversSerializer(serializers.Serializer):
    waiver_ids = serializers.ListField(child=serializers.UUIDField(), allow_empty=False)


# ===== Responses =====

class AvailableGroupSerializer(serializers.Serializer):
    category = serializers.CharField()
    name = serializers.CharField()
    size = serializers.CharField()
    available_count = serializers.IntegerField()
    bike_ids = serializers.ListField(child=serializers.IntegerField())
    rental_price = serializers.DecimalField(max_digits=10, decimal_places=2, allow_null=True)
    prices = serializers.DictField(
        child=serializers.DecimalField(max_digits=10, decimal_places=2, allow_null=True),
    )
    photo_url = serializers.CharField()


class BikeSummarySerializer(serializers.ModelSerializer):
    class Meta:
        model = Bike
        fields = ["id", "name", "category", "size"]


class CustomerSerializer(serializers.ModelSerializer):
    class Meta:
        model = Customer
        fields = ["id", "full_name", "email", "phone"]


class ReservationItemSerializer(serializers.ModelSerializer):
    bike = BikeSummarySerializer(read_only=True)

    class Meta:
        model = ReservationItem
        fields = [
            "id",
            "bike",
            "starts_at",
            "ends_at",
            "rental_price",
            "deposit_amount",
            "checked_out_at",
            "checked_in_at",
        ]


class WaiverSerializer(serializers.ModelSerializer):
    customer_name = serializers.ReadOnlyField(source="customer.full_name")
    guardian_name = serializers.ReadOnlyField(source="guardian.full_name", default=None)

    class Meta:
        model = Waiver
        fields = ["id", "customer_name", "guardian_name", "is_minor", "signed_at", "reservation"]


class NoteSerializer(serializers.ModelSerializer):
    class Meta:
        model = Note
        fields = ["id", "text", "created_by", "created_at"]


class ReservationListSerializer(serializers.ModelSerializer):
    customer = CustomerSerializer(read_only=True)
    items = ReservationItemSerializer(many=True, read_only=True)
    item_count = serializers.IntegerField(read_only=True)
    waiver_count = serializers.IntegerField(read_only=True)
    is_overdue = serializers.BooleanField(read_only=True)

    class Meta:
        model = Reservation
        fields = [
            "id",
            "short_ref",
            "status",
            "source",
            "duration_type",
            "starts_at",
            "ends_at",
            "hold_expires_at",
            "total_amount",
            "deposit_amount",
            "customer",
            "items",
            "item_count",
            "waiver_count",
            "is_overdue",
            "created_at",
        ]


class ReservationDetailSerializer(ReservationListSerializer):
    waivers = WaiverSerializer(many=True, read_only=True)
    notes = NoteSerializer(many=True, read_only=True)
    item_count = serializers.SerializerMethodField()
    waiver_count = serializers.SerializerMethodField()

    class Meta(ReservationListSerializer.Meta):
        fields = ReservationListSerializer.Meta.fields + [
            "gateway_txn_id",
            "deposit_captured_at",
            "waivers",
            "notes",
        ]

    def get_item_count(self, obj: Reservation) -> int:
        return len(obj.items.all())

    def get_waiver_count(self, obj: Reservation) -> int:
        return len(obj.waivers.all())


class PublicBookingSerializer(serializers.ModelSerializer):
    """What a customer sees with their reference and token."""

    customer_name = serializers.ReadOnlyField(source="customer.full_name", default=None)
    items = serializers.SerializerMethodField()
    waiver_count = serializers.SerializerMethodField()
    booking_token = serializers.SerializerMethodField()

    class Meta:
        model = Reservation
        fields = [
            "short_ref",
            "booking_token",
            "status",
            "duration_type",
            "starts_at",
            "ends_at",
            "hold_expires_at",
            "total_amount",
            "deposit_amount",
            "customer_name",
            "items",
            "waiver_count",
        ]

    def get_items(self, obj: Reservation) -> list[dict]:
        return [
            {
                "bike": BikeSummarySerializer(item.bike).data,
                "rental_price": str(item.rental_price),
                "deposit_amount": str(item.deposit_amount),
            }
            for item in obj.items.all()
        ]

    def get_waiver_count(self, obj: Reservation) -> int:
        return len(obj.waivers.all())

    def get_booking_token(self, obj: Reservation) -> str:
        return booking_token(obj.short_ref)
