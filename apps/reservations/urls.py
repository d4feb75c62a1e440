"""URL routing for the reservation engine."""

from __future__ import annotations

from django.urls import include, path  # type: ignore
from rest_framework.routers import SimpleRouter  # type: ignore

from .views import (
    AdminReservationViewSet,
    AvailabilityView,
    DashboardView,
    FleetStatusView,
    PublicBookingViewSet,
    UnlinkedWaiversView,
    WalkInView,
)

router = SimpleRouter()
router.register(r"bookings", PublicBookingViewSet, basename="booking")
router.register(r"admin/bookings", AdminReservationViewSet, basename="admin-booking")

urlpatterns = [
    path("availability/", AvailabilityView.as_view(), name="availability"),
    path("admin/walk-in/", WalkInView.as_view(), name="admin-walk-in"),
    path("admin/dashboard/", DashboardView.as_view(), name="admin-dashboard"),
    path("admin/fleet/", FleetStatusView.as_view(), name="admin-fleet"),
    path("admin/waivers/unlinked/", UnlinkedWaiversView.as_view(), name="admin-unlinked-waivers"),
    path("", include(router.urls)),
]
