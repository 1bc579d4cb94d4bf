"""
Custom exception handler for DRF: logs every API error with request context
and renders a stable body for the marketplace error kinds.
"""
from rest_framework.views import exception_handler
from rest_framework.response import Response
import logging

from .exceptions import MarketplaceError

logger = logging.getLogger(__name__)


def custom_exception_handler(exc, context):
    """
    Wrap DRF's default handler. Marketplace errors become
    ``{detail, error_type, code}`` (plus ``details`` when present); anything
    DRF does not recognise becomes a 500.
    """
    response = exception_handler(exc, context)

    request = context.get('request')
    view = context.get('view')
    endpoint = f"{request.method} {request.path}" if request is not None else 'unknown endpoint'
    view_name = view.__class__.__name__ if view else 'Unknown'

    if response is None:
        logger.error(
            f"[EXCEPTION HANDLER] Unhandled {exc.__class__.__name__} at {endpoint} ({view_name}): {str(exc)}",
            exc_info=exc,
        )
        return Response({
            'detail': 'An unexpected error occurred. Please check server logs.',
            'error_type': exc.__class__.__name__,
            'code': 'internal_error',
        }, status=500)

    if isinstance(exc, MarketplaceError):
        log = logger.error if response.status_code >= 500 else logger.warning
        log(f"[EXCEPTION HANDLER] {exc.__class__.__name__} at {endpoint} ({view_name}): {exc.message}")
        response.data = {
            'detail': exc.message,
            'error_type': exc.__class__.__name__,
            'code': exc.default_code,
        }
        if exc.details:
            response.data['details'] = exc.details
    else:
        logger.warning(f"[EXCEPTION HANDLER] {exc.__class__.__name__} at {endpoint} ({view_name}): {str(exc)}")
        if isinstance(response.data, dict):
            response.data['error_type'] = exc.__class__.__name__

    return response
