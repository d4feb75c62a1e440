"""Admin registration for waivers."""

from __future__ import annotations

from django.contrib import admin

from .models import Waiver


@admin.register(Waiver)
class WaiverAdmin(admin.ModelAdmin):
    list_display = ("id", "customer", "reservation", "is_minor", "signed_at")
    list_filter = ("is_minor", "signed_at")
    search_fields = ("customer__full_name", "customer__email", "reservation__short_ref")
    readonly_fields = ("created_at", "document_sha256")
    raw_id_fields = ("reservation", "customer", "guardian")
