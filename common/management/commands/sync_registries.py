"""
Management command to persist module registrations.

Usage:
    python manage.py sync_registries
    python manage.py sync_registries --cleanup vaults

Seeds roles, permissions, settings, menus and categories registered by the
modules at startup, makes sure the Super Admin exists and clears the menu
and widget caches. With --cleanup the module's registrations are removed
instead.
"""

from django.core.management.base import BaseCommand, CommandError

from app_settings.registry import settings_registry
from app_settings.services import SettingsService
from common.categories import category_registry
from common.menus import menu_registry
from core.exceptions import ValidationError
from dashboard.widgets import widget_registry
from users.registries import permission_registry, role_registry
from users.services import SuperAdminService


class Command(BaseCommand):
    help = 'Seed registered roles, permissions, settings, menus and categories'

    def add_arguments(self, parser):
        parser.add_argument(
            '--cleanup',
            metavar='MODULE',
            help='Remove the registrations of MODULE instead of seeding',
        )
        parser.add_argument(
            '--strict',
            action='store_true',
            help='Stop at the first seeding error',
        )

    def handle(self, *args, **options):
        module = options.get('cleanup')
        if module:
            self._cleanup(module.lower())
        else:
            self._seed(options['strict'])

        menu_registry.clear_cache()
        widget_registry.clear_cache()
        SettingsService().clear_cache()

    def _seed(self, strict):
        steps = [
            ('Roles', role_registry),
            ('Permissions', permission_registry),
            ('Settings', settings_registry),
            ('Menus', menu_registry),
            ('Categories', category_registry),
        ]
        for label, registry in steps:
            result = registry.seed(strict=strict)
            self.stdout.write(f"  {label}: {self._summary(result)}")

        try:
            user, created = SuperAdminService().ensure_exists()
        except ValidationError as e:
            self.stdout.write(self.style.WARNING(f"  Super Admin skipped: {e.message}"))
        else:
            state = 'created' if created else 'found'
            self.stdout.write(f"  Super Admin: {user.email} ({state})")

        self.stdout.write(self.style.SUCCESS("Registries synchronized"))

    def _cleanup(self, module):
        steps = [
            ('Permissions', permission_registry),
            ('Roles', role_registry),
            ('Settings', settings_registry),
            ('Menus', menu_registry),
            ('Categories', category_registry),
        ]
        for label, registry in steps:
            try:
                result = registry.cleanup(module)
            except Exception as e:
                raise CommandError(f"{label} cleanup failed for '{module}': {e}")
            self.stdout.write(f"  {label}: {self._summary(result)}")

        self.stdout.write(self.style.SUCCESS(f"Registrations of '{module}' removed"))

    @staticmethod
    def _summary(result):
        return ', '.join(f"{key} {value}" for key, value in result.items())
