"""Reservations app package.

The scheduling and concurrency engine: turns duration policies into time
intervals, answers availability, and moves reservations through their
lifecycle without ever letting two live bookings claim the same bike at
the same time.
"""
