"""
Management command to create the Super Admin account.

Usage:
    python manage.py create_admin
    python manage.py create_admin --email admin@example.com --password secret123

Defaults come from the SUPER_ADMIN_EMAIL and SUPER_ADMIN_PASSWORD settings.
"""

from django.core.management.base import BaseCommand, CommandError

from core.exceptions import ValidationError
from users.registries import role_registry
from users.services import SuperAdminService


class Command(BaseCommand):
    help = 'Create the Super Admin user and role if they do not exist'

    def add_arguments(self, parser):
        parser.add_argument('--email', help='Super Admin email')
        parser.add_argument('--password', help='Super Admin password')
        parser.add_argument('--username', help='Super Admin username')

    def handle(self, *args, **options):
        role_registry.seed()

        try:
            user, created = SuperAdminService().ensure_exists(
                email=options.get('email'),
                password=options.get('password'),
                username=options.get('username'),
            )
        except ValidationError as e:
            raise CommandError(e.message)

        if created:
            self.stdout.write(self.style.SUCCESS(f"Super Admin created: {user.email}"))
        else:
            self.stdout.write(f"Super Admin already exists: {user.email}")
