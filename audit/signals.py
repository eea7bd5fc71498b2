"""
Audit Logging Signals

Authentication events are logged from django.contrib.auth signals.
Model changes are logged by audit.tracking.
"""

from django.contrib.auth.signals import user_logged_in, user_logged_out, user_login_failed
from django.dispatch import receiver

from audit.helpers import log_failed_login, log_login, log_logout


# ============================================================================
# AUTH SIGNALS
# ============================================================================

@receiver(user_logged_in)
def log_user_login(sender, request, user, **kwargs):
    """Log successful login"""
    log_login(user, request)


@receiver(user_logged_out)
def log_user_logout(sender, request, user, **kwargs):
    """Log logout"""
    if user:
        log_logout(user, request)


@receiver(user_login_failed)
def log_user_login_failed(sender, credentials, request=None, **kwargs):
    """Log failed login, the password is never part of credentials here"""
    username = credentials.get('username') or credentials.get('email') or ''
    log_failed_login(username, request)
