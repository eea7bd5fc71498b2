"""
Request context middleware.

Binds the current request to the thread so that code running outside the
view layer (model signal receivers, audit tracking) can attribute actions
to the acting user and capture request metadata.
"""

import logging
import re
import threading

logger = logging.getLogger(__name__)

_request_local = threading.local()


def get_current_request():
    """Return the request being processed by this thread, or None"""
    return getattr(_request_local, 'request', None)


def get_current_user():
    """Return the authenticated user of the current request, or None"""
    request = get_current_request()
    if request is None:
        return None
    user = getattr(request, 'user', None)
    if user is not None and user.is_authenticated:
        return user
    return None


class RequestContextMiddleware:
    """
    Store the request in thread-local storage for the duration of the call.

    DRF assigns the authenticated user back onto the underlying HttpRequest,
    so token-authenticated users are visible here once the view has run
    authentication.
    """

    # Paths that never need request context
    EXEMPT_PATHS = [
        r'^/static/',
        r'^/media/',
        r'^/health/',
    ]

    def __init__(self, get_response):
        self.get_response = get_response
        self._exempt = [re.compile(pattern) for pattern in self.EXEMPT_PATHS]

    def __call__(self, request):
        if self._is_exempt_path(request.path):
            return self.get_response(request)

        _request_local.request = request
        try:
            return self.get_response(request)
        finally:
            try:
                del _request_local.request
            except AttributeError:
                pass

    def _is_exempt_path(self, path):
        return any(pattern.match(path) for pattern in self._exempt)
