"""Admin registration for customers."""

from __future__ import annotations

from django.contrib import admin

from .models import Customer


@admin.register(Customer)
class CustomerAdmin(admin.ModelAdmin):
    list_display = ("full_name", "email", "phone", "date_of_birth", "created_at")
    search_fields = ("full_name", "email", "phone")
    readonly_fields = ("created_at",)
