from django.apps import AppConfig


class AppSettingsConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'app_settings'
    verbose_name = 'Settings'

    def ready(self):
        """Register module settings, permissions, menus and widgets"""
        from app_settings import registrars
        registrars.register()
