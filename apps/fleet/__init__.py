"""Fleet app package.

This app owns the physical rental inventory: one `Bike` row per rentable
unit with its price table, deposit and operational status. The reservation
engine only reads from it.
"""
