"""
Error kinds surfaced to API callers.

Every failure reaches the client as {"error": <kind>, "message": <text>}
with a stable kind string; the UI decides whether to retry.
"""
import logging

from django.core.exceptions import PermissionDenied as DjangoPermissionDenied
from django.http import Http404
from rest_framework import exceptions, status
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class StorefrontError(exceptions.APIException):
    """Base class for errors with a machine-readable kind"""
    kind = 'Error'
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Request failed.'

    def __init__(self, message=None, details=None):
        super().__init__(detail=message or self.default_detail, code=self.kind)
        self.details = details


class Unauthenticated(StorefrontError):
    kind = 'Unauthenticated'
    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = 'Please login first.'


class Forbidden(StorefrontError):
    kind = 'Forbidden'
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = 'Access denied.'


class NotFound(StorefrontError):
    kind = 'NotFound'
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = 'Not found.'


class Conflict(StorefrontError):
    kind = 'Conflict'
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'Conflict with existing data.'


class InvalidCredentials(StorefrontError):
    kind = 'InvalidCredentials'
    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = 'Invalid email or password.'


class InsufficientStock(StorefrontError):
    kind = 'InsufficientStock'
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'Insufficient stock.'


class ValidationFailed(StorefrontError):
    kind = 'ValidationFailed'
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Invalid input.'


def _translate(exc):
    """Map framework exceptions onto storefront error kinds"""
    if isinstance(exc, StorefrontError):
        return exc
    if isinstance(exc, (exceptions.NotAuthenticated, exceptions.AuthenticationFailed)):
        return Unauthenticated()
    if isinstance(exc, (exceptions.PermissionDenied, DjangoPermissionDenied)):
        return Forbidden()
    if isinstance(exc, (exceptions.NotFound, Http404)):
        return NotFound()
    if isinstance(exc, exceptions.ValidationError):
        return ValidationFailed(details=exc.detail)
    if isinstance(exc, exceptions.ParseError):
        return ValidationFailed(message=str(exc.detail))
    return None


def storefront_exception_handler(exc, context):
    """DRF exception handler rendering {'error', 'message'} bodies"""
    translated = _translate(exc)
    if translated is None:
        # Other APIExceptions (MethodNotAllowed, Throttled, ...) keep DRF's shape
        return exception_handler(exc, context)

    response = exception_handler(translated, context)
    body = {
        'error': translated.kind,
        'message': str(translated.detail),
    }
    if translated.details is not None:
        body['details'] = translated.details
    response.data = body

    view = context.get('view')
    logger.info(
        f"{translated.kind} in {view.__class__.__name__ if view else 'unknown view'}: {translated.detail}"
    )
    return response
