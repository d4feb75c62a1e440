"""Customer helpers used by walk-ins and waiver signing."""

from __future__ import annotations

import uuid
from datetime import date

from .models import PLACEHOLDER_EMAIL_DOMAIN, Customer


def placeholder_email() -> str:
    """Unique throwaway address for walk-in customers who give no email."""

    return f"walkin-{uuid.uuid4()}{PLACEHOLDER_EMAIL_DOMAIN}"


def upsert_customer(
    *,
    full_name: str,
    phone: str,
    email: str | None = None,
    date_of_birth: date | None = None,
) -> Customer:
    """Create the customer or refresh name and phone of the one with this email.

    A known date of birth is never cleared by a later call that omits it.
    """

    email = (email or "").strip().lower() or placeholder_email()
    customer, created = Customer.objects.get_or_create(
        email=email,
        defaults={
            "full_name": full_name,
            "phone": phone,
            "date_of_birth": date_of_birth,
        },
    )
    if not created:
        customer.full_name = full_name
        customer.phone = phone
        update_fields = ["full_name", "phone"]
        if date_of_birth is not None:
            customer.date_of_birth = date_of_birth
            update_fields.append("date_of_birth")
        customer.save(update_fields=update_fields)
    return customer
