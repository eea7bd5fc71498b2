from datetime import timedelta

import pytest
from django.utils import timezone

from app_settings.services import SettingsService
from core.constants import NotificationType
from notifications.models import Notification
from notifications.registry import SignalCategoryRegistry
from notifications.services import SignalCacheService, SignalService


def test_category_owned_by_another_module_is_rejected():
    registry = SignalCategoryRegistry()
    registry.register('billing', 'Invoices', 'notify_invoices')

    assert registry.get_setting_key('invoices') == 'notify_invoices'
    with pytest.raises(RuntimeError):
        registry.register('reports', 'invoices', 'notify_reports')


@pytest.mark.django_db
def test_send_stores_notification_and_refreshes_unread_count(guest):
    cache_service = SignalCacheService()
    assert cache_service.get_unread_count(guest) == 0

    notification = SignalService().success(guest, "Export ready", "Your export finished.", url='/audit')

    assert notification.type == NotificationType.SUCCESS
    assert notification.action_url == '/audit'
    assert cache_service.get_unread_count(guest) == 1
    assert cache_service.get_recent_notifications(guest)[0]['title'] == "Export ready"


@pytest.mark.django_db
def test_disabled_category_is_skipped(guest):
    SettingsService().set('signal_notify_system', False)

    assert SignalService().info(guest, "Maintenance", "Tonight", category='system') is None
    assert SignalService().info(guest, "Unfiltered", "Always sent") is not None
    assert Notification.objects.for_user(guest).count() == 1


@pytest.mark.django_db
def test_unknown_type_falls_back_to_info(guest):
    notification = SignalService().send(guest, "Odd", "Odd type", type='purple')

    assert notification.type == NotificationType.INFO


@pytest.fixture
def inbox(guest):
    service = SignalService()
    now = timezone.now()
    notifications = []
    for i in range(3):
        notification = service.info(guest, f"Message {i}", "Body")
        Notification.objects.filter(pk=notification.pk).update(created_at=now - timedelta(minutes=10 - i))
        notification.refresh_from_db()
        notifications.append(notification)
    return notifications


@pytest.mark.django_db
def test_inbox_lists_with_counts(guest_client, inbox):
    inbox[0].mark_as_read()

    response = guest_client.get('/api/notifications/', {'filter': 'unread'})

    assert response.status_code == 200
    assert response.data['counts'] == {'all': 3, 'unread': 2}
    assert response.data['notifications']['total'] == 2


@pytest.mark.django_db
def test_show_marks_read_and_navigates(guest_client, inbox):
    newest_first = list(reversed(inbox))
    middle = newest_first[1]

    response = guest_client.get(f'/api/notifications/{middle.id}/')

    assert response.status_code == 200
    assert response.data['navigation'] == {
        'prev': str(newest_first[0].id),
        'next': str(newest_first[2].id),
        'current': 2,
        'total': 3,
    }
    middle.refresh_from_db()
    assert middle.is_read


@pytest.mark.django_db
def test_other_users_notification_is_not_found(api_client, make_user, inbox):
    stranger = make_user(roles=['Guest'])
    api_client.force_authenticate(stranger)

    assert api_client.get(f'/api/notifications/{inbox[0].id}/').status_code == 404
    assert api_client.post(f'/api/notifications/{inbox[0].id}/read/').status_code == 404


@pytest.mark.django_db
def test_bulk_read_and_destroy(guest_client, inbox):
    ids = [str(inbox[0].id), str(inbox[1].id)]

    response = guest_client.post('/api/notifications/bulk-read/', {'ids': ids}, format='json')
    assert response.data == {'success': True, 'updated': 2}
    assert guest_client.get('/api/notifications/unread-count/').data == {'count': 1}

    response = guest_client.post('/api/notifications/bulk-destroy/', {'ids': ids}, format='json')
    assert response.data == {'success': True, 'deleted': 2}


@pytest.mark.django_db
def test_bulk_actions_require_ids(guest_client):
    response = guest_client.post('/api/notifications/bulk-read/', {'ids': []}, format='json')

    assert response.status_code == 400


@pytest.mark.django_db
def test_read_all(guest_client, inbox):
    response = guest_client.post('/api/notifications/read-all/')

    assert response.data == {'success': True, 'updated': 3}
    assert guest_client.get('/api/notifications/recent/').data['notifications'][0]['read_at'] is not None
