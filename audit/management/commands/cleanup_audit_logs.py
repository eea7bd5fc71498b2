"""
Management command to delete audit logs older than the retention window.

Usage:
    python manage.py cleanup_audit_logs
    python manage.py cleanup_audit_logs --days 30 --dry-run

Runs daily from the background scheduler when scheduled_cleanup_enabled is on.
"""

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand, CommandError

from app_settings.services import get_setting
from audit.models import AuditLog
from core.constants import Roles
from notifications.services import SignalService

DELETE_CHUNK_SIZE = 1000


class Command(BaseCommand):
    help = 'Delete audit logs older than the retention period'

    def add_arguments(self, parser):
        parser.add_argument(
            '--days',
            type=int,
            default=None,
            help='Delete logs older than this many days (defaults to the retention_days setting)',
        )
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Show how many logs would be deleted without deleting them',
        )

    def handle(self, *args, **options):
        days = options['days']
        if days is None:
            days = int(get_setting('retention_days', 90) or 90)
        if days < 1:
            raise CommandError('--days must be at least 1.')

        queryset = AuditLog.objects.older_than(days)
        total = queryset.count()

        self.stdout.write(f"Found {total} audit logs older than {days} days")

        if options['dry_run']:
            self.stdout.write(self.style.WARNING(f"DRY RUN - would delete {total} audit logs"))
            return

        if total == 0:
            self.stdout.write(self.style.SUCCESS("Nothing to clean up"))
            return

        deleted = 0
        while True:
            ids = list(queryset.order_by('id').values_list('id', flat=True)[:DELETE_CHUNK_SIZE])
            if not ids:
                break
            count, _ = AuditLog.objects.filter(pk__in=ids).delete()
            deleted += count

        self.stdout.write(self.style.SUCCESS(f"Deleted {deleted} audit logs older than {days} days"))
        self._notify_super_admins(deleted, days)

    def _notify_super_admins(self, deleted, days):
        User = get_user_model()
        signal_service = SignalService()
        recipients = User.objects.filter(groups__name=Roles.SUPER_ADMIN, is_active=True).distinct()

        for user in recipients:
            signal_service.success(
                user,
                "Audit Log Cleanup Completed",
                f"Deleted {deleted} audit logs older than {days} days.",
                url='/audit',
                module_source='auditlog',
                category='system',
            )
