"""Payments app package.

Thin client around the hosted-checkout card gateway. The reservation engine
only branches on whether a call succeeded; gateway details stay in here.
"""
