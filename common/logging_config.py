"""
Logging configuration with request ID support
"""
import logging
import re
import threading
import uuid

_thread_local = threading.local()

REQUEST_ID_HEADER = 'HTTP_X_REQUEST_ID'
REQUEST_ID_PATTERN = re.compile(r'^[A-Za-z0-9\-]{1,64}$')


def get_request_id():
    """Return the request ID bound to the current thread, if any"""
    return getattr(_thread_local, 'request_id', None)


class RequestIDFilter(logging.Filter):
    """
    Logging filter to add request ID to log records
    """
    def filter(self, record):
        request_id = getattr(record, 'request_id', None) or get_request_id()
        record.request_id = request_id or 'N/A'
        return True


class RequestIDMiddleware:
    """
    Middleware to attach a unique request ID to each request.
    Request ID is available in request.request_id, in the X-Request-ID
    response header and in all log messages.

    An incoming X-Request-ID header from a trusted proxy is reused.
    """

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        incoming = request.META.get(REQUEST_ID_HEADER, '')
        request_id = incoming if REQUEST_ID_PATTERN.match(incoming) else str(uuid.uuid4())[:8]
        request.request_id = request_id

        _thread_local.request_id = request_id
        try:
            response = self.get_response(request)
            response['X-Request-ID'] = request_id
        finally:
            try:
                del _thread_local.request_id
            except AttributeError:
                pass

        return response

    def process_exception(self, request, exception):
        """Log exceptions with request ID"""
        request_id = getattr(request, 'request_id', 'N/A')
        logger = logging.getLogger('django.request')
        logger.error(
            f"[{request_id}] Exception: {type(exception).__name__}: {str(exception)}",
            exc_info=True,
            extra={'request_id': request_id}
        )
