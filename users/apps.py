from django.apps import AppConfig


class UsersConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'users'
    verbose_name = 'Users and Roles'

    def ready(self):
        """Register core roles, permissions, menus and widgets"""
        from users import registrars
        registrars.register()
