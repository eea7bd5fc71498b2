"""
Notifications sent in response to django.contrib.auth events
"""

from django.contrib.auth.signals import user_logged_in
from django.dispatch import receiver

from audit.helpers import get_client_ip
from notifications.services import SignalService


@receiver(user_logged_in)
def notify_user_login(sender, request, user, **kwargs):
    """Tell the user about a new sign-in, switched off by signal_notify_login"""
    ip_address = get_client_ip(request) if request is not None else None
    SignalService().info(
        user,
        "New Login",
        f"Your account was signed in from {ip_address or 'an unknown address'}.",
        module_source='signal',
        category='login',
    )
