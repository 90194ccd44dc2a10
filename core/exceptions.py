"""
Custom exceptions for the commodity pricing backend,
and the DRF exception handler that maps them to responses.
"""

import logging

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class PricingServiceException(Exception):
    """Base exception for the pricing backend."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class ConfigurationError(PricingServiceException):
    """Raised for application configuration issues."""
    pass


class TransientFetchError(PricingServiceException):
    """Raised when the rate provider cannot be reached or answers garbage."""
    status_code = status.HTTP_502_BAD_GATEWAY


class NotFoundError(PricingServiceException):
    status_code = status.HTTP_404_NOT_FOUND


class RateNotFoundError(NotFoundError):
    """No persisted exchange rate exists for the requested pair."""
    pass


class CommodityNotFoundError(NotFoundError):
    pass


class PriceDataNotFoundError(NotFoundError):
    """No price history exists for the requested period."""
    pass


class PriceValidationError(PricingServiceException):
    """Raised for bad operator input: missing prices, inverted ranges."""
    status_code = status.HTTP_400_BAD_REQUEST


class PersistenceError(PricingServiceException):
    """Raised when the datastore rejects a read or write."""
    pass


class FatalResolutionError(PricingServiceException):
    """The rate resolver failed outright; an update cycle cannot proceed."""
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


class UpdateInProgressError(PricingServiceException):
    """Another daily price update currently holds the run lock."""
    status_code = status.HTTP_409_CONFLICT


def api_exception_handler(exc, context):
    """
    Handles exceptions raised in API views.
    DRF's own exceptions keep their default rendering; service exceptions
    become {"error": {"message": ...}} with the exception's status code.
    """
    response = exception_handler(exc, context)
    if response is not None:
        return response

    if isinstance(exc, PricingServiceException):
        if exc.status_code >= 500:
            logger.error(f"{exc.__class__.__name__} handled in API: {exc}", exc_info=True)
        else:
            logger.warning(f"{exc.__class__.__name__} handled in API: {exc}")
        return Response({"error": {"message": str(exc)}}, status=exc.status_code)

    logger.error(f"Unhandled exception in API view: {exc}", exc_info=True)
    return Response(
        {"error": {"message": "An unexpected server error occurred."}},
        status=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )
