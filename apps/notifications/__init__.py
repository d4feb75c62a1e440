"""Notifications app package.

Customer and shop emails about bookings. Sending happens from Celery tasks
queued after a reservation transaction commits.
"""
