"""
Custom exceptions for the application.
Following domain-driven design principles with specific exception types.
"""


class BaseApplicationException(Exception):
    """Base exception for all application-specific exceptions"""
    default_message = "An application error occurred"

    def __init__(self, message=None, code=None, details=None):
        self.message = message or self.default_message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(BaseApplicationException):
    """Raised when validation fails"""
    default_message = "Validation failed"


class NotFoundError(BaseApplicationException):
    """Raised when a resource is not found"""
    default_message = "Resource not found"

    def __init__(self, resource_type=None, resource_id=None, **kwargs):
        self.resource_type = resource_type
        self.resource_id = resource_id
        if 'message' not in kwargs and resource_type:
            kwargs['message'] = f"{resource_type} not found"
        super().__init__(**kwargs)


class PermissionDeniedError(BaseApplicationException):
    """Raised when user doesn't have permission"""
    default_message = "Permission denied"


class BusinessLogicError(BaseApplicationException):
    """Raised when business rule is violated"""
    default_message = "Business rule violation"


class LimitExceededError(BusinessLogicError):
    """Raised when a limit is exceeded (bulk sizes, chunk sizes, etc.)"""
    default_message = "Limit exceeded"


class ConcurrentModificationError(BusinessLogicError):
    """Raised when concurrent modification is detected"""
    default_message = "Resource is being modified by another user"


class AccountError(BaseApplicationException):
    """Raised for user account related errors"""
    default_message = "Account error"


# ============================================================================
# CACHE EXCEPTIONS
# ============================================================================

class CacheException(BaseApplicationException):
    """Base exception for cache layer failures"""
    default_message = "Cache operation failed"

    def __init__(self, message=None, operation=None, key=None, tags=None, **kwargs):
        self.operation = operation
        self.key = key
        self.tags = list(tags or [])
        super().__init__(message=message, **kwargs)


class CacheConnectionException(CacheException):
    """Raised when the cache store cannot be reached"""
    default_message = "Cache connection failed"


class CacheTimeoutException(CacheException):
    """Raised when a cache operation times out"""
    default_message = "Cache operation timed out"


class CacheTagException(CacheException):
    """Raised when tag bookkeeping fails"""
    default_message = "Cache tag operation failed"
