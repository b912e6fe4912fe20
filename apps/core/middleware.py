"""
Core middleware for request processing.
"""
import uuid
import logging
import threading
from django.utils.deprecation import MiddlewareMixin

logger = logging.getLogger(__name__)

_request_context = threading.local()


def get_current_request_id():
    """Return the request_id of the request being handled on this thread, if any."""
    return getattr(_request_context, 'request_id', None)


def set_current_tenant_id(tenant_id):
    """Attach the acting user's tenant to log records for the rest of the request."""
    _request_context.tenant_id = str(tenant_id) if tenant_id else None


class RequestIDMiddleware(MiddlewareMixin):
    """
    Inject a unique request_id into each request for tracing.

    The id comes from the X-Request-ID header when the caller supplies one,
    is stored on the request and on thread-local storage for LoggingFilter,
    and is echoed back in the response header.
    """

    def process_request(self, request):
        request_id = request.META.get('HTTP_X_REQUEST_ID') or str(uuid.uuid4())
        request.request_id = request_id
        _request_context.request_id = request_id
        _request_context.tenant_id = None

    def process_response(self, request, response):
        if hasattr(request, 'request_id'):
            response['X-Request-ID'] = request.request_id
        _request_context.request_id = None
        _request_context.tenant_id = None
        return response


class LoggingFilter(logging.Filter):
    """
    Add request_id and tenant_id to log records from thread-local storage.
    """

    def filter(self, record):
        if not getattr(record, 'request_id', None):
            record.request_id = getattr(_request_context, 'request_id', None)

        if not getattr(record, 'tenant_id', None):
            record.tenant_id = getattr(_request_context, 'tenant_id', None)

        return True
