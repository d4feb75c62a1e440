"""Admin registration for the fleet."""

from __future__ import annotations

from django.contrib import admin

from .models import Bike


@admin.register(Bike)
class BikeAdmin(admin.ModelAdmin):
    list_display = (
        "id",
        "name",
        "category",
        "size",
        "status",
        "price_2h",
        "price_4h",
        "price_8h",
        "price_per_day",
        "deposit_amount",
    )
    list_filter = ("status", "category", "size")
    search_fields = ("name", "category")
    list_editable = ("status",)
    readonly_fields = ("created_at", "updated_at")
