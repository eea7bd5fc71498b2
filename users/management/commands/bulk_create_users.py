"""
Management command to create large numbers of test users.

Usage:
    python manage.py bulk_create_users --count 50000
    python manage.py bulk_create_users --count 1000 --with-observer
    python manage.py bulk_create_users --count 100000 --trigger-logs --log-chunk 1000

With --with-observer users are saved one by one, so model tracking writes
their audit entries and each user gets the Guest role. Without it users are
inserted with bulk_create and no signals fire; --trigger-logs then writes
their `created` audit entries in bulk.
"""
import secrets
import time

from django.contrib.auth import get_user_model
from django.contrib.auth.hashers import make_password
from django.contrib.auth.models import Group
from django.core.management.base import BaseCommand, CommandError
from django.db import transaction

from audit.models import AuditEvent, AuditLog
from audit.tracking import get_excluded_fields, snapshot
from core.constants import Roles
from core.exceptions import ValidationError
from core.validators import RangeValidator

MAX_USERS = 1000000
DEFAULT_PASSWORD = 'password'


class Command(BaseCommand):
    help = 'Bulk create users, optionally through model tracking and with audit log entries'

    def add_arguments(self, parser):
        parser.add_argument('--count', type=int, default=1000, help='Number of users to create')
        observer = parser.add_mutually_exclusive_group()
        observer.add_argument(
            '--with-observer',
            dest='with_observer',
            action='store_true',
            help='Save users one by one so tracking fires and the Guest role is assigned',
        )
        observer.add_argument(
            '--without-observer',
            dest='with_observer',
            action='store_false',
            help='Insert users with bulk_create, no signals fire (default)',
        )
        parser.set_defaults(with_observer=False)
        parser.add_argument('--chunk', type=int, default=1000, help='Users per batch (1-10000)')
        parser.add_argument(
            '--trigger-logs',
            action='store_true',
            help='Write `created` audit entries for the new users in bulk',
        )
        parser.add_argument('--log-chunk', type=int, default=500, help='Audit entries per batch (1-5000)')

    def handle(self, *args, **options):
        count = options['count']
        chunk = options['chunk']
        log_chunk = options['log_chunk']

        try:
            RangeValidator.validate_range('count', count, 1, MAX_USERS)
            RangeValidator.validate_range('chunk', chunk, 1, 10000)
            RangeValidator.validate_range('log-chunk', log_chunk, 1, 5000)
        except ValidationError as e:
            raise CommandError(e.message)

        started = time.monotonic()
        if options['with_observer']:
            ids = self._create_with_observer(count, chunk)
        else:
            ids = self._create_without_observer(count, chunk)

        self.stdout.write(self.style.SUCCESS(f"Created {len(ids)} users in {time.monotonic() - started:.1f}s"))

        if options['trigger_logs']:
            written = self._write_audit_logs(ids, log_chunk)
            self.stdout.write(self.style.SUCCESS(f"Wrote {written} audit log entries"))

    def _build_users(self, start, size, password):
        User = get_user_model()
        stamp = int(time.time())
        users = []
        for number in range(start, start + size):
            token = secrets.token_hex(4)
            users.append(User(
                username=f"user_{stamp}_{number}_{token}",
                email=f"user_{stamp}_{number}_{token}@example.com",
                name=f"Test User {number}",
                password=password,
                is_active=True,
            ))
        return users

    def _create_with_observer(self, count, chunk):
        password = make_password(DEFAULT_PASSWORD)
        guest = Group.objects.filter(name=Roles.GUEST).first()
        ids = []

        for start in range(0, count, chunk):
            size = min(chunk, count - start)
            with transaction.atomic():
                for user in self._build_users(start, size, password):
                    user.save()
                    if guest is not None:
                        user.groups.add(guest)
                    ids.append(user.pk)
            self.stdout.write(f"  {min(start + size, count)}/{count}")

        return ids

    def _create_without_observer(self, count, chunk):
        User = get_user_model()
        password = make_password(DEFAULT_PASSWORD)
        ids = []

        for start in range(0, count, chunk):
            size = min(chunk, count - start)
            users = self._build_users(start, size, password)
            with transaction.atomic():
                User.objects.bulk_create(users, batch_size=chunk)
            usernames = [user.username for user in users]
            ids.extend(User.objects.filter(username__in=usernames).values_list('pk', flat=True))
            self.stdout.write(f"  {min(start + size, count)}/{count}")

        return ids

    def _write_audit_logs(self, ids, log_chunk):
        User = get_user_model()
        exclude = get_excluded_fields(User)
        auditable_type = User._meta.label_lower
        written = 0

        for start in range(0, len(ids), log_chunk):
            users = User.objects.filter(pk__in=ids[start:start + log_chunk])
            entries = [
                AuditLog(
                    event=AuditEvent.CREATED,
                    auditable_type=auditable_type,
                    auditable_id=str(user.pk),
                    new_values=snapshot(user, exclude),
                    tags=['user', 'bulk', 'console'],
                )
                for user in users
            ]
            AuditLog.objects.bulk_create(entries)
            written += len(entries)

        return written
