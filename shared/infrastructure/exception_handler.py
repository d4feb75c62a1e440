"""
API exception handler

Translates domain errors into JSON responses with their own status codes,
leaves DRF's own exceptions to the stock handler, and turns anything else
into a generic 500 that is logged with full context but leaks nothing.
"""

import logging

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

from shared.domain.exceptions import DomainError

logger = logging.getLogger(__name__)


def api_exception_handler(exc, context):
    if isinstance(exc, DomainError):
        return Response({'error': exc.to_dict()}, status=exc.status_code)

    response = exception_handler(exc, context)
    if response is not None:
        return response

    view = context.get('view')
    request = context.get('request')
    logger.error(
        f"Unhandled error in {view.__class__.__name__ if view else 'unknown view'} "
        f"({getattr(request, 'method', '?')} {getattr(request, 'path', '?')}): {exc}",
        exc_info=exc,
    )
    return Response(
        {'error': {'code': 'internal_error', 'message': 'Something went wrong. Please try again.'}},
        status=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )
