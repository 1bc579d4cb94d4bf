"""
Error kinds raised by the marketplace core.

Each kind maps to a stable HTTP status so the REST layer can render it
without inspecting messages. Services raise these directly; anything else
escaping a service is an unexpected failure.
"""

import functools
import logging

from django.db import DatabaseError
from rest_framework import status
from rest_framework.exceptions import APIException

logger = logging.getLogger(__name__)


class MarketplaceError(APIException):
    """Base class for all marketplace errors."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = 'Marketplace error.'
    default_code = 'marketplace_error'

    def __init__(self, message=None, details=None):
        super().__init__(detail=message or self.default_detail, code=self.default_code)
        self.message = str(self.detail)
        self.details = details or {}


class ResourceNotFound(MarketplaceError):
    """The requested entity id does not resolve."""

    status_code = status.HTTP_404_NOT_FOUND
    default_detail = 'Resource not found.'
    default_code = 'not_found'


class StateConflict(MarketplaceError):
    """The state machine forbids the requested transition."""

    status_code = status.HTTP_409_CONFLICT
    default_detail = 'Resource conflict.'
    default_code = 'conflict'


class OperationForbidden(MarketplaceError):
    """The operation is blocked by the entity's current state."""

    status_code = status.HTTP_403_FORBIDDEN
    default_detail = 'Operation not permitted in the current state.'
    default_code = 'forbidden'


class ValidationFailed(MarketplaceError):
    """Malformed input reached the core."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Validation failed.'
    default_code = 'validation_error'


class InternalError(MarketplaceError):
    """Unexpected storage failure."""

    default_detail = 'Internal server error.'
    default_code = 'internal_error'


class MintingError(MarketplaceError):
    """The external minting collaborator failed or timed out."""

    status_code = status.HTTP_502_BAD_GATEWAY
    default_detail = 'Failed to mint token on blockchain.'
    default_code = 'minting_failed'


def translate_database_errors(tag):
    """
    Let marketplace errors through untouched and turn an unexpected
    ``DatabaseError`` into InternalError after logging it under ``tag``.
    """
    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except DatabaseError as e:
                logger.error(f"{tag} {func.__name__} failed: {str(e)}", exc_info=True)
                raise InternalError(f"Database error during {func.__name__}") from e
        return wrapper
    return decorator
