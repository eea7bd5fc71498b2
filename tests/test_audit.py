import csv
import io
from datetime import timedelta

import pytest
from django.contrib.auth import get_user_model
from django.core.exceptions import PermissionDenied
from django.core.management import call_command
from django.core.management.base import CommandError
from django.utils import timezone

from audit.formatters import (
    format_changes,
    format_field_name,
    format_file_size,
    format_value,
    get_formatter,
    GenericEventFormatter,
    RelationshipEventFormatter,
)
from audit.helpers import log_event
from audit.loaders import load_auditables
from audit.models import AuditEvent, AuditLog
from audit.tracking import without_logging
from core.constants import Roles
from notifications.models import Notification

User = get_user_model()


def make_log(event=AuditEvent.CREATED, **fields):
    return AuditLog.objects.create(event=event, **fields)


# ============================================================================
# TRACKING
# ============================================================================

@pytest.mark.django_db
def test_model_changes_are_logged_after_commit(make_user, django_capture_on_commit_callbacks):
    with django_capture_on_commit_callbacks(execute=True):
        user = make_user(username='tracked', name='Before')

    created = AuditLog.objects.for_model(user).get(event=AuditEvent.CREATED)
    assert created.new_values['username'] == 'tracked'
    assert 'password' not in created.new_values
    assert 'date_joined' not in created.new_values

    with django_capture_on_commit_callbacks(execute=True):
        user.name = 'After'
        user.save()

    updated = AuditLog.objects.for_model(user).get(event=AuditEvent.UPDATED)
    assert updated.old_values == {'name': 'Before'}
    assert updated.new_values == {'name': 'After'}

    user_id = user.pk
    with django_capture_on_commit_callbacks(execute=True):
        user.delete()

    deleted = AuditLog.objects.for_model('users.user', user_id).get(event=AuditEvent.DELETED)
    assert deleted.old_values['name'] == 'After'
    assert deleted.new_values is None


@pytest.mark.django_db
def test_saving_without_changes_writes_nothing(make_user, django_capture_on_commit_callbacks):
    user = make_user()

    with django_capture_on_commit_callbacks(execute=True):
        user.save()

    assert not AuditLog.objects.for_model(user).filter(event=AuditEvent.UPDATED).exists()


@pytest.mark.django_db
def test_without_logging_suppresses_tracking(django_capture_on_commit_callbacks, make_user):
    with django_capture_on_commit_callbacks(execute=True):
        with without_logging():
            user = make_user()

    assert not AuditLog.objects.for_model(user).exists()


@pytest.mark.django_db
def test_audit_logs_are_immutable():
    log = make_log()

    with pytest.raises(PermissionDenied):
        log.save()
    with pytest.raises(PermissionDenied):
        log.delete()

    assert AuditLog.objects.filter(pk=log.pk).delete()[0] == 1


@pytest.mark.django_db
def test_log_event_records_subject(make_user):
    user = make_user()

    log = log_event(AuditEvent.PASSWORD_CHANGED, instance=user, user=user, tags=['auth'])

    assert log.auditable_type == 'users.user'
    assert log.auditable_id == str(user.pk)
    assert log.user_display == user.display_name
    assert log.model_name == 'User'


# ============================================================================
# FORMATTERS
# ============================================================================

def test_value_formatting():
    assert format_field_name('first_name') == 'First Name'
    assert format_file_size(1024) == '1 KB'
    assert format_file_size(1536) == '1.5 KB'
    assert format_value(None) is None
    assert format_value(True) == 'Yes'
    assert format_value(['a', 'b']) == '["a", "b"]'
    assert format_value('x' * 120) == 'x' * 100 + '...'
    assert format_value('text') == "'text'"
    assert format_value('2024-03-05') == 'March 5, 2024 at 12:00 AM'


def test_generic_formatter_lines():
    formatter = GenericEventFormatter()

    assert formatter.format(None, {'name': 'x'}, AuditEvent.CREATED) == ["Added Name: 'x'"]
    assert formatter.format({'name': 'x'}, None, AuditEvent.DELETED) == ["Removed Name: 'x'"]
    assert formatter.format(
        {'name': 'a', 'email': None, 'url': 'old'},
        {'name': 'b', 'email': 'e@example.com', 'url': None},
        AuditEvent.UPDATED,
    ) == [
        "Changed Name from 'a' to 'b'",
        "Set Email to 'e@example.com'",
        "Removed Url (was 'old')",
    ]


def test_export_formatter():
    lines = GenericEventFormatter().format(None, {'format': 'CSV', 'record_count': 3}, AuditEvent.EXPORT)

    assert lines == ['Exported audit logs as CSV', 'Exported 3 records']


def test_relationship_formatter():
    lines = RelationshipEventFormatter().format(
        {'roles': {'1': 'Guest'}},
        {'roles': {'2': 'Manager', '3': 'Staff'}},
        AuditEvent.RELATIONSHIP_SYNCED,
    )

    assert lines == ['Added Roles: Manager, Staff', 'Removed Roles: Guest']
    assert RelationshipEventFormatter().format({}, {}, AuditEvent.RELATIONSHIP_SYNCED) == ['Relationship synchronized']


def test_authentication_formatter_is_selected_for_auth_events():
    login = AuditLog(event=AuditEvent.LOGIN, new_values={'email': 'a@example.com'})
    failed = AuditLog(event=AuditEvent.FAILED_LOGIN, new_values={'username': 'mallory'})

    assert format_changes(login) == ['User a@example.com logged in']
    assert format_changes(failed) == ['Failed login attempt for mallory']
    assert isinstance(get_formatter('something_new'), GenericEventFormatter)


# ============================================================================
# LOADERS
# ============================================================================

@pytest.mark.django_db
def test_load_auditables_batches_by_type(make_user):
    user = make_user()
    logs = [
        make_log(auditable_type='users.user', auditable_id=str(user.pk)),
        make_log(auditable_type='users.user', auditable_id='999999'),
        make_log(auditable_type='nothing.here', auditable_id='1'),
        make_log(),
    ]

    load_auditables(logs)

    assert logs[0].auditable == user
    assert [log.auditable for log in logs[1:]] == [None, None, None]


# ============================================================================
# API
# ============================================================================

@pytest.fixture
def auditor_client(api_client, seeded, make_user):
    api_client.force_authenticate(make_user(roles=[Roles.AUDITOR]))
    return api_client


@pytest.fixture
def logs(make_user):
    actor = make_user(username='actor')
    return [
        make_log(AuditEvent.LOGIN, user=actor, auditable_type='users.user', auditable_id=str(actor.pk),
                 new_values={'email': actor.email}),
        make_log(AuditEvent.FAILED_LOGIN, new_values={'username': 'mallory'}),
        make_log(AuditEvent.UPDATED, user=actor, auditable_type='users.user', auditable_id=str(actor.pk),
                 old_values={'name': 'a'}, new_values={'name': 'b'}),
    ]


@pytest.mark.django_db
def test_audit_list_requires_permission(guest_client, auditor_client, logs):
    assert guest_client.get('/api/audit/logs/').status_code == 403

    response = auditor_client.get('/api/audit/logs/')
    assert response.status_code == 200
    assert response.data['audit_logs']['total'] == 3
    assert {item['value'] for item in response.data['event_types']} == {'login', 'failed_login', 'updated'}


@pytest.mark.django_db
def test_audit_list_filters(auditor_client, logs):
    system_only = auditor_client.get('/api/audit/logs/', {'system': 'system'})
    assert system_only.data['audit_logs']['total'] == 1

    by_event = auditor_client.get('/api/audit/logs/', {'event': AuditEvent.UPDATED})
    assert by_event.data['audit_logs']['data'][0]['id'] == logs[2].id

    tomorrow = (timezone.localdate() + timedelta(days=1)).isoformat()
    future = auditor_client.get('/api/audit/logs/', {'start_date': tomorrow})
    assert future.data['audit_logs']['total'] == 0


@pytest.mark.django_db
def test_start_date_after_end_date_drops_end_date(auditor_client, logs):
    today = timezone.localdate()

    response = auditor_client.get('/api/audit/logs/', {
        'start_date': today.isoformat(),
        'end_date': (today - timedelta(days=3)).isoformat(),
    })

    assert response.data['audit_logs']['total'] == 3


@pytest.mark.django_db
def test_user_activity_is_paged(auditor_client, logs):
    response = auditor_client.get('/api/audit/logs/user_activity/', {'user_id': logs[0].user_id, 'per_page': 10})

    assert response.status_code == 200
    assert response.data['audit_logs']['total'] == 2
    assert response.data['audit_logs']['per_page'] == 10

    own = auditor_client.get('/api/audit/logs/user_activity/')
    assert own.data['audit_logs']['total'] == 0


@pytest.mark.django_db
def test_user_activity_rejects_malformed_id(auditor_client, logs):
    response = auditor_client.get('/api/audit/logs/user_activity/', {'user_id': 'abc'})

    assert response.status_code == 400
    assert response.data['error_code'] == 'INVALID_USER_ID'


@pytest.mark.django_db
def test_audit_detail_has_changes_and_navigation(auditor_client, logs):
    response = auditor_client.get(f'/api/audit/logs/{logs[1].id}/')

    assert response.status_code == 200
    assert response.data['audit_log']['changes'] == ['Failed login attempt for mallory']
    assert response.data['navigation'] == {'previous_id': logs[0].id, 'next_id': logs[2].id}

    updated = auditor_client.get(f'/api/audit/logs/{logs[2].id}/')
    assert updated.data['audit_log']['auditable']['type'] == 'users.user'


@pytest.mark.django_db
def test_audit_stats(auditor_client, logs):
    response = auditor_client.get('/api/audit/logs/', {'only': 'stats'})

    stats = response.data['stats']
    assert stats['total_logs'] == 3
    assert stats['by_event'] == {'login': 1, 'failed_login': 1, 'updated': 1}
    assert stats['top_users'][0]['count'] == 2


@pytest.mark.django_db
def test_export_streams_csv_and_is_audited(auditor_client, logs):
    response = auditor_client.get('/api/audit/logs/export/', {'event': AuditEvent.LOGIN})

    assert response.status_code == 200
    assert response['Content-Type'] == 'text/csv'
    rows = list(csv.reader(io.StringIO(b''.join(response.streaming_content).decode())))
    assert rows[0][:3] == ['ID', 'User', 'Event']
    assert [row[2] for row in rows[1:]] == ['login']

    export = AuditLog.objects.for_event(AuditEvent.EXPORT).get()
    assert export.new_values['record_count'] == 1


@pytest.mark.django_db
def test_summary_lists_critical_actions(auditor_client, logs):
    response = auditor_client.get('/api/audit/summary/')

    assert response.data['total_logs'] == 3
    assert [item['event'] for item in response.data['recent_critical_actions']] == ['failed_login']


# ============================================================================
# RETENTION
# ============================================================================

@pytest.fixture
def aged_logs(db):
    old = make_log(created_at=timezone.now() - timedelta(days=120))
    recent = make_log(created_at=timezone.now() - timedelta(days=5))
    return old, recent


@pytest.mark.django_db
def test_cleanup_deletes_expired_logs_and_notifies(aged_logs, super_admin):
    old, recent = aged_logs
    out = io.StringIO()

    call_command('cleanup_audit_logs', stdout=out)

    assert list(AuditLog.objects.values_list('id', flat=True)) == [recent.id]
    assert 'Deleted 1 audit logs older than 90 days' in out.getvalue()
    notification = Notification.objects.for_user(super_admin).get()
    assert notification.title == "Audit Log Cleanup Completed"


@pytest.mark.django_db
def test_cleanup_dry_run_keeps_everything(aged_logs):
    call_command('cleanup_audit_logs', days=1, dry_run=True, stdout=io.StringIO())

    assert AuditLog.objects.count() == 2


@pytest.mark.django_db
def test_cleanup_rejects_invalid_days(aged_logs):
    with pytest.raises(CommandError):
        call_command('cleanup_audit_logs', days=0)
