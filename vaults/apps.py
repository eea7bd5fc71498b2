from django.apps import AppConfig


class VaultsConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'vaults'
    verbose_name = 'Vault'

    def ready(self):
        """Register vault settings, permissions, menus, categories and widgets, then track item changes"""
        from audit.tracking import track_model
        from vaults import registrars
        from vaults.models import AUDIT_EXCLUDE, Vault

        registrars.register()
        track_model(Vault, exclude=AUDIT_EXCLUDE)
