import io

import pytest
from django.contrib.auth.models import Group, Permission
from django.core.management import call_command

from app_settings.models import Setting
from app_settings.services import SettingsService
from common import scheduler
from common.models import Category, Menu
from core.cache import get_cache_service
from core.constants import Roles


# ============================================================================
# HEALTH
# ============================================================================

def test_liveness(client):
    response = client.get('/health/')

    assert response.status_code == 200
    assert response.json()['status'] == 'healthy'


@pytest.mark.django_db
def test_readiness(client):
    response = client.get('/health/ready/')

    assert response.status_code == 200
    body = response.json()
    assert body['checks'] == {'database': True, 'cache': True, 'settings': True}
    assert body['cache_circuit_breaker'] == 'closed'


@pytest.mark.django_db
def test_readiness_fails_while_cache_breaker_is_open(client):
    breaker = get_cache_service().circuit_breaker
    for _ in range(breaker.failure_threshold):
        breaker.record_failure()

    response = client.get('/health/ready/')

    assert response.status_code == 503
    body = response.json()
    assert body['status'] == 'not_ready'
    assert body['checks']['cache'] is False
    assert body['checks']['database'] is True
    assert body['cache_circuit_breaker'] == 'open'
    assert 'circuit breaker' in body['errors']['cache']

    breaker.reset()
    assert client.get('/health/ready/').status_code == 200


@pytest.mark.django_db
def test_deep_health_reports_models_and_registries(client, seeded, make_user):
    make_user()

    body = client.get('/health/deep/').json()

    assert body['status'] == 'healthy'
    assert body['checks']['models']['details']['users'] == 1
    assert body['checks']['cache']['status'] is True
    assert body['checks']['cache_circuit_breaker'] == 'closed'
    assert body['checks']['registries']['menus'] > 0
    assert body['checks']['registries']['settings'] == Setting.objects.count() > 0


def test_health_is_get_only(client):
    assert client.post('/health/').status_code == 405


# ============================================================================
# MENUS AND CATEGORIES
# ============================================================================

@pytest.mark.django_db
def test_menus_follow_permissions(guest_client, admin_client):
    def routes(tree):
        found = []
        for section in tree:
            for item in section['items']:
                found.append(item['route'])
                found.extend(child['route'] for child in item.get('children', []))
        return found

    admin_routes = routes(admin_client.get('/api/menus/').data['menus'])
    guest_routes = routes(guest_client.get('/api/menus/').data['menus'])

    assert {'users.index', 'audit.index', 'vaults.index'} <= set(admin_routes)
    assert 'users.index' not in guest_routes
    assert 'notifications.index' in guest_routes


def test_menus_require_authentication(client):
    assert client.get('/api/menus/').status_code in (401, 403)


@pytest.mark.django_db
def test_categories_filter_by_type(guest_client):
    response = guest_client.get('/api/categories/', {'type': 'VAULT'})

    assert response.status_code == 200
    assert response.data['count'] == Category.objects.filter(type='vault').count() > 0
    assert {category['type'] for category in response.data['categories']} == {'vault'}


# ============================================================================
# SYNC COMMAND
# ============================================================================

@pytest.mark.django_db
def test_sync_registries_seeds_everything():
    out = io.StringIO()

    call_command('sync_registries', stdout=out)

    assert 'Registries synchronized' in out.getvalue()
    assert Group.objects.filter(name=Roles.SUPER_ADMIN).exists()
    assert Permission.objects.filter(content_type__app_label='vaults', codename='vault.view').exists()
    assert Menu.objects.filter(route='vaults.index').exists()
    assert Category.objects.filter(slug='banking').exists()


# ============================================================================
# SCHEDULER
# ============================================================================

@pytest.mark.django_db
def test_cleanup_schedule_falls_back_on_bad_time(seeded):
    assert scheduler.get_cleanup_schedule() == (2, 0)

    SettingsService().set('cleanup_schedule_time', '23:15')
    assert scheduler.get_cleanup_schedule() == (23, 15)

    Setting.objects.filter(key='cleanup_schedule_time').update(value='25:99')
    SettingsService().clear_cache()
    assert scheduler.get_cleanup_schedule() == (2, 0)


@pytest.mark.django_db
def test_cleanup_job_respects_toggle(seeded, monkeypatch):
    calls = []
    monkeypatch.setattr(scheduler, 'call_command', lambda name: calls.append(name))

    SettingsService().set('scheduled_cleanup_enabled', False)
    scheduler.cleanup_audit_logs_job()
    assert calls == []

    SettingsService().set('scheduled_cleanup_enabled', True)
    scheduler.cleanup_audit_logs_job()
    assert calls == ['cleanup_audit_logs']
