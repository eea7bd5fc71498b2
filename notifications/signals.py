"""
Signal notification events
"""

from django.dispatch import Signal

# Sent after a notification is stored.
# Arguments: user, notification
notification_received = Signal()
