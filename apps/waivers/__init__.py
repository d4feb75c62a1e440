"""Waivers app package.

Signed liability waivers. Document rendering and storage live elsewhere;
this app keeps the signature record, links it to reservations and answers
whether a reservation has at least one waiver.
"""
