"""Customers app package.

People who rent bikes. Customers are not accounts: a row is created or
refreshed by email whenever a waiver is signed or staff books a walk-in.
"""
