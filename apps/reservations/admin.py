"""Admin registration for reservations.

Read-mostly: lifecycle changes go through the API so they take the same
locks and checks as every other transition.
"""

from __future__ import annotations

from django.contrib import admin

from .models import Note, Reservation, ReservationItem


class ReservationItemInline(admin.TabularInline):
    model = ReservationItem
    extra = 0
    can_delete = False
    readonly_fields = (
        "bike",
        "starts_at",
        "ends_at",
        "rental_price",
        "deposit_amount",
        "checked_out_at",
        "checked_in_at",
    )

    def has_add_permission(self, request, obj=None):  # type: ignore
        return False


class NoteInline(admin.TabularInline):
    model = Note
    extra = 0
    can_delete = False
    readonly_fields = ("text", "created_by", "created_at")

    def has_add_permission(self, request, obj=None):  # type: ignore
        return False


@admin.register(Reservation)
class ReservationAdmin(admin.ModelAdmin):
    list_display = (
        "short_ref",
        "status",
        "source",
        "customer",
        "duration_type",
        "starts_at",
        "ends_at",
        "total_amount",
        "created_at",
    )
    list_filter = ("status", "source", "duration_type")
    search_fields = ("short_ref", "customer__full_name", "customer__email", "customer__phone")
    date_hierarchy = "starts_at"
    inlines = [ReservationItemInline, NoteInline]
    readonly_fields = [field.name for field in Reservation._meta.fields]

    def has_add_permission(self, request):  # type: ignore
        return False
