"""Booking references and the lookup tokens that go with them."""

from __future__ import annotations

import hashlib
import hmac
import secrets

from django.conf import settings  # type: ignore

# No 0/O, 1/I/L: references are read aloud at the counter.
REFERENCE_ALPHABET = "23456789ABCDEFGHJKMNPQRSTUVWXYZ"
REFERENCE_LENGTH = 6
TOKEN_LENGTH = 12


def generate_short_ref() -> str:
    return "".join(secrets.choice(REFERENCE_ALPHABET) for _ in range(REFERENCE_LENGTH))


def generate_unique_short_ref(attempts: int = 10) -> str:
    """Random reference not used by any reservation yet."""

    from .models import Reservation

    for _ in range(attempts):
        candidate = generate_short_ref()
        if not Reservation.objects.filter(short_ref=candidate).exists():
            return candidate
    raise RuntimeError("Could not generate a unique booking reference")


def booking_token(short_ref: str) -> str:
    """HMAC-SHA256 of the upper-cased reference, first 12 hex characters."""

    digest = hmac.new(
        settings.BOOKING_HMAC_SECRET.encode(),
        short_ref.upper().encode(),
        hashlib.sha256,
    ).hexdigest()
    return digest[:TOKEN_LENGTH]


def verify_booking_token(short_ref: str, token: str | None) -> bool:
    if not token:
        return False
    return hmac.compare_digest(booking_token(short_ref), token.lower())
