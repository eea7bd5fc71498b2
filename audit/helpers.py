"""
Audit Logging Helper Functions

Provides a centralized way to log system actions.
"""

import logging

from django.db import transaction

from audit.models import AuditEvent, AuditLog
from common.middleware import get_current_request

logger = logging.getLogger(__name__)

USER_AGENT_MAX_LENGTH = 500


def get_client_ip(request):
    """
    Extract client IP address from request.
    Handles proxies and load balancers.
    """
    x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')

    if x_forwarded_for:
        # X-Forwarded-For can contain multiple IPs, get the first one
        ip = x_forwarded_for.split(',')[0].strip()
    else:
        ip = request.META.get('REMOTE_ADDR')

    return ip or None


def get_request_metadata(request=None):
    """
    Collect url, ip, user agent and acting user from request.
    Falls back to the request bound to the current thread.
    """
    request = request if request is not None else get_current_request()
    if request is None:
        return {'user': None, 'url': None, 'ip_address': None, 'user_agent': None}

    user = getattr(request, 'user', None)
    if user is not None and not user.is_authenticated:
        user = None

    return {
        'user': user,
        'url': request.build_absolute_uri(),
        'ip_address': get_client_ip(request),
        'user_agent': (request.META.get('HTTP_USER_AGENT') or '')[:USER_AGENT_MAX_LENGTH] or None,
    }


def log_event(event, instance=None, user=None, old_values=None, new_values=None, request=None,
              tags=None, auditable_type=None, auditable_id=None):
    """
    Log an event to the audit log.

    Args:
        event: AuditEvent name
        instance: Model instance the event is about (optional)
        user: User who performed the action, defaults to the request user
        old_values: Values before the change
        new_values: Values after the change
        request: Django request object, defaults to the current request
        tags: List of tags
        auditable_type / auditable_id: Subject when no instance is given

    Returns:
        AuditLog instance, or None when logging failed

    Example:
        log_event(
            AuditEvent.RELATIONSHIP_SYNCED,
            instance=user,
            user=request.user,
            old_values={'roles': {'1': 'Manager'}},
            new_values={'roles': {'2': 'Staff'}},
        )
    """
    try:
        metadata = get_request_metadata(request)
        if instance is not None:
            auditable_type = instance._meta.label_lower
            auditable_id = instance.pk

        with transaction.atomic():
            audit_log = AuditLog.objects.create(
                user=user or metadata['user'],
                event=event,
                auditable_type=auditable_type,
                auditable_id=str(auditable_id) if auditable_id is not None else None,
                old_values=old_values,
                new_values=new_values,
                url=metadata['url'],
                ip_address=metadata['ip_address'],
                user_agent=metadata['user_agent'],
                tags=list(tags or []),
            )

        logger.info(f"Audit: {audit_log.user_display} - {event} - {auditable_type} #{auditable_id}")
        return audit_log

    except Exception as e:
        # Don't fail the main operation if audit logging fails
        logger.error(f"Failed to create audit log: {e}", exc_info=True)
        return None


def log_login(user, request):
    """Log user login"""
    return log_event(
        AuditEvent.LOGIN,
        instance=user,
        user=user,
        request=request,
        new_values={'email': user.email, 'username': user.get_username()},
        tags=['auth'],
    )


def log_logout(user, request):
    """Log user logout"""
    return log_event(
        AuditEvent.LOGOUT,
        instance=user,
        user=user,
        request=request,
        old_values={'email': user.email, 'username': user.get_username()},
        tags=['auth'],
    )


def log_failed_login(username, request):
    """Log a failed login attempt, the subject is unknown"""
    return log_event(
        AuditEvent.FAILED_LOGIN,
        request=request,
        new_values={'username': username},
        tags=['auth', 'security'],
    )


def get_resource_audit_trail(auditable_type, auditable_id, limit=50):
    """
    Get complete audit trail for a specific record.

    Returns:
        QuerySet of AuditLog entries, newest first
    """
    return AuditLog.objects.for_model(auditable_type, auditable_id).order_by('-created_at')[:limit]


def get_user_activity(user, limit=100):
    """Get recent activity for a specific user"""
    return AuditLog.objects.for_user(user).order_by('-created_at')[:limit]
