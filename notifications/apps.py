from django.apps import AppConfig


class NotificationsConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'notifications'
    verbose_name = 'Signal Notifications'

    def ready(self):
        """Register notification settings, categories, permissions and menus"""
        import notifications.receivers  # noqa: F401
        from notifications import registrars
        registrars.register()
