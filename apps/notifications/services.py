"""Notification services for booking emails."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from django.conf import settings  # type: ignore
from django.core.mail import send_mail  # type: ignore
from django.utils import timezone  # type: ignore
from django.utils.html import escape, strip_tags  # type: ignore

if TYPE_CHECKING:  # pragma: no cover
    from apps.reservations.models import Reservation

logger = logging.getLogger(__name__)

DURATION_LABELS = {
    "2h": "2 Hours",
    "4h": "4 Hours",
    "8h": "Full Day",
    "multi-day": "Multi-Day",
}


def send_email_notification(recipient_email: str, subject: str, html_message: str) -> None:
    """
    Send one HTML email with a plain-text alternative.

    Delivery errors propagate so the calling task can retry.
    """
    send_mail(
        subject=subject,
        message=strip_tags(html_message),
        from_email=settings.DEFAULT_FROM_EMAIL,
        recipient_list=[recipient_email],
        html_message=html_message,
        fail_silently=False,
    )
    logger.info(f"Email sent to {recipient_email}: {subject}")


def _format_instant(value) -> str:
    return timezone.localtime(value).strftime("%b %d, %Y %I:%M %p")


def _booking_summary(reservation: "Reservation") -> dict:
    items = [
        {
            "bike": escape(f"{item.bike.name} ({item.bike.category})"),
            "rental_price": f"{item.rental_price:.2f}",
            "deposit": f"{item.deposit_amount:.2f}",
        }
        for item in reservation.items.select_related("bike").order_by("created_at")
    ]
    customer = reservation.customer
    return {
        "reference": reservation.short_ref,
        "customer_name": escape(customer.full_name) if customer else "Customer",
        "customer_email": customer.email if customer else "",
        "duration": DURATION_LABELS.get(reservation.duration_type, reservation.duration_type),
        "starts": _format_instant(reservation.starts_at),
        "ends": _format_instant(reservation.ends_at),
        "total": f"{reservation.total_amount:.2f}",
        "deposit": f"{reservation.deposit_amount:.2f}",
        "items": items,
        "source": reservation.source,
    }


def _items_html(items: list[dict]) -> str:
    rows = "".join(
        f"<li>{item['bike']}: {item['rental_price']} (deposit {item['deposit']})</li>"
        for item in items
    )
    return f"<ul>{rows}</ul>"


def send_booking_confirmation_email(reservation: "Reservation") -> bool:
    """Send the paid-booking confirmation to the customer.

    Returns False without sending when there is no real address to write to.
    """
    summary = _booking_summary(reservation)
    customer = reservation.customer
    if customer is None or customer.has_placeholder_email:
        logger.info(f"No customer email for booking {summary['reference']}, skipping confirmation")
        return False

    html_message = f"""
    <html>
    <body>
        <h2>Hi {summary['customer_name']},</h2>
        <p>Your bike rental is confirmed.</p>

        <h3>Booking {summary['reference']}</h3>
        <ul>
            <li><strong>Duration:</strong> {summary['duration']}</li>
            <li><strong>Pick up:</strong> {summary['starts']}</li>
            <li><strong>Return by:</strong> {summary['ends']}</li>
            <li><strong>Total:</strong> {summary['total']} {settings.RENTAL_SHOP['CURRENCY']}</li>
            <li><strong>Deposit:</strong> {summary['deposit']} {settings.RENTAL_SHOP['CURRENCY']}</li>
        </ul>
        {_items_html(summary['items'])}

        <p>Please bring photo ID when you pick up your bike.</p>
    </body>
    </html>
    """

    send_email_notification(
        recipient_email=summary["customer_email"],
        subject=f"Booking {summary['reference']} confirmed",
        html_message=html_message,
    )
    return True


def send_admin_booking_notification(reservation: "Reservation") -> bool:
    """Tell the shop about a new paid or walk-in booking."""
    recipient = settings.ADMIN_NOTIFICATION_EMAIL
    if not recipient:
        logger.info("ADMIN_NOTIFICATION_EMAIL is not set, skipping admin notification")
        return False

    summary = _booking_summary(reservation)
    kind = "Walk-in" if summary["source"] == "walk-in" else "New booking"
    html_message = f"""
    <html>
    <body>
        <h2>{kind}: {summary['reference']}</h2>
        <ul>
            <li><strong>Customer:</strong> {summary['customer_name']} {escape(summary['customer_email'])}</li>
            <li><strong>Duration:</strong> {summary['duration']}</li>
            <li><strong>From:</strong> {summary['starts']}</li>
            <li><strong>Until:</strong> {summary['ends']}</li>
            <li><strong>Total:</strong> {summary['total']}</li>
        </ul>
        {_items_html(summary['items'])}
    </body>
    </html>
    """

    send_email_notification(
        recipient_email=recipient,
        subject=f"{kind} {summary['reference']} ({len(summary['items'])} bike(s))",
        html_message=html_message,
    )
    return True
