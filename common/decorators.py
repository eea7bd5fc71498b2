"""
Custom decorators for error handling with request ID logging
"""
from functools import wraps
import logging

from django.core.exceptions import PermissionDenied
from django.http import Http404, HttpRequest
from rest_framework import status
from rest_framework.exceptions import APIException
from rest_framework.request import Request
from rest_framework.response import Response

from core.exceptions import (
    BaseApplicationException,
    BusinessLogicError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)

logger = logging.getLogger(__name__)

# Most specific first
EXCEPTION_STATUS_MAP = [
    (NotFoundError, status.HTTP_404_NOT_FOUND, 'NOT_FOUND'),
    (PermissionDeniedError, status.HTTP_403_FORBIDDEN, 'PERMISSION_DENIED'),
    (ValidationError, status.HTTP_422_UNPROCESSABLE_ENTITY, 'VALIDATION_ERROR'),
    (BusinessLogicError, status.HTTP_409_CONFLICT, 'BUSINESS_RULE_VIOLATION'),
]


def _get_request_id(request):
    """Get request ID from request object"""
    return getattr(request, 'request_id', 'N/A')


def _log_with_request_id(level, request, message, exc_info=False):
    """Log message with request ID context"""
    request_id = _get_request_id(request)
    extra = {'request_id': request_id}
    if level == 'error':
        logger.error(f"[{request_id}] {message}", exc_info=exc_info, extra=extra)
    elif level == 'warning':
        logger.warning(f"[{request_id}] {message}", extra=extra)
    elif level == 'info':
        logger.info(f"[{request_id}] {message}", extra=extra)


def _extract_request(args):
    for arg in args[:2]:
        if isinstance(arg, (Request, HttpRequest)):
            return arg
    return None


def error_response(error: BaseApplicationException):
    """Build the JSON error payload for an application exception"""
    for exception_class, status_code, default_code in EXCEPTION_STATUS_MAP:
        if isinstance(error, exception_class):
            break
    else:
        status_code, default_code = status.HTTP_400_BAD_REQUEST, 'APPLICATION_ERROR'

    return Response(
        {
            'detail': error.message,
            'error_code': error.code or default_code,
            'details': error.details,
        },
        status=status_code
    )


def service_errors(view_func):
    """
    Translate application exceptions raised by services into JSON responses.

    Works on plain API views and on ViewSet methods. Application errors are
    logged at warning level, anything unexpected is logged with traceback and
    answered with a generic 500 payload.
    """
    @wraps(view_func)
    def _wrapped_view(*args, **kwargs):
        request = _extract_request(args)
        try:
            return view_func(*args, **kwargs)
        except (APIException, Http404, PermissionDenied):
            # Handled by the REST framework exception handler
            raise
        except BaseApplicationException as e:
            username = getattr(getattr(request, 'user', None), 'username', 'Anonymous') or 'Anonymous'
            _log_with_request_id(
                'warning', request,
                f"{type(e).__name__} in {view_func.__name__} for user {username}: {e.message}"
            )
            return error_response(e)
        except Exception as e:
            _log_with_request_id(
                'error', request,
                f"Unexpected error in {view_func.__name__}: {type(e).__name__}: {str(e)}",
                exc_info=True
            )
            return Response(
                {
                    'detail': 'An error occurred. Please try again or contact support.',
                    'error_code': 'SERVER_ERROR',
                },
                status=status.HTTP_500_INTERNAL_SERVER_ERROR
            )
    return _wrapped_view
