"""
Audit app configuration
"""

from django.apps import AppConfig


class AuditConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'audit'
    verbose_name = 'Audit Logging'

    def ready(self):
        """Connect auth signals, register the module and track user changes"""
        import audit.signals  # noqa: F401
        from django.contrib.auth import get_user_model

        from audit import registrars
        from audit.tracking import track_model

        registrars.register()
        track_model(get_user_model(), exclude=('date_joined',))
