"""
Custom exceptions and the DRF exception handler.

Domain services raise RBACException subclasses before any write happens;
the handler below turns them into consistent JSON error responses.
"""
import logging
from rest_framework.views import exception_handler
from rest_framework.response import Response
from rest_framework import status

logger = logging.getLogger(__name__)


class RBACException(Exception):
    """Base exception for school RBAC errors."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_code = 'ERROR'

    def __init__(self, message, details=None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class PermissionDenied(RBACException):
    """Raised when a caller mutates a protected role without super-admin capability."""
    status_code = status.HTTP_403_FORBIDDEN
    default_code = 'PERMISSION_DENIED'


class InvalidOperation(RBACException):
    """Raised for mutations the data model forbids, such as deleting a system role."""
    status_code = status.HTTP_400_BAD_REQUEST
    default_code = 'INVALID_OPERATION'


class Conflict(RBACException):
    """Raised on a uniqueness race between concurrent writers of the same key."""
    status_code = status.HTTP_409_CONFLICT
    default_code = 'CONFLICT'


class NotFound(RBACException):
    """Raised when a requested role, override, tenant, or user does not exist."""
    status_code = status.HTTP_404_NOT_FOUND
    default_code = 'NOT_FOUND'


class AuthenticationError(RBACException):
    """Raised when authentication fails."""
    status_code = status.HTTP_401_UNAUTHORIZED
    default_code = 'AUTHENTICATION_FAILED'


def custom_exception_handler(exc, context):
    """
    Custom exception handler that logs errors and returns consistent format.

    RBACException subclasses map to their own status codes:
    PermissionDenied -> 403, InvalidOperation -> 400, Conflict -> 409,
    NotFound -> 404. Everything else goes through DRF's default handler,
    and anything DRF does not recognise becomes a generic 500.
    """
    request = context.get('request')
    request_id = getattr(request, 'request_id', None) if request else None

    if isinstance(exc, RBACException):
        logger.warning(
            f"RBAC error: {exc.__class__.__name__}: {exc.message}",
            extra={
                'request_id': request_id,
                'path': request.path if request else None,
                'method': request.method if request else None,
                'error_code': exc.default_code,
                'details': exc.details,
            }
        )
        return Response(
            {
                'error': exc.message,
                'code': exc.default_code,
                'details': exc.details,
                'request_id': request_id,
            },
            status=exc.status_code
        )

    # Call DRF's default exception handler first
    response = exception_handler(exc, context)

    if response is None:
        logger.error(
            f"API Exception: {exc.__class__.__name__}",
            extra={
                'exception': str(exc),
                'request_id': request_id,
                'path': request.path if request else None,
                'method': request.method if request else None,
            },
            exc_info=True
        )
        return Response(
            {
                'error': 'Internal server error',
                'detail': 'An unexpected error occurred',
                'request_id': request_id,
            },
            status=status.HTTP_500_INTERNAL_SERVER_ERROR
        )

    logger.info(
        f"API Exception: {exc.__class__.__name__}",
        extra={
            'exception': str(exc),
            'status_code': response.status_code,
            'request_id': request_id,
            'path': request.path if request else None,
            'method': request.method if request else None,
        }
    )

    # Add request_id to all error responses
    if request_id and isinstance(response.data, dict):
        response.data['request_id'] = request_id

    return response
