from types import SimpleNamespace

import pytest
from django.utils import timezone

from audit.models import AuditEvent, AuditLog
from audit.registrars import CHART_DAYS, RECENT_LIMIT, event_chart_data, recent_activity
from core.constants import Roles, VaultType
from dashboard.widgets import DashboardWidget, DashboardWidgetRegistry
from vaults.models import Vault


def stat(title, **fields):
    fields.setdefault('icon', 'Hash')
    fields.setdefault('module', 'reports')
    return DashboardWidget(type='stat', title=title, **fields)


# ============================================================================
# REGISTRY
# ============================================================================

@pytest.mark.parametrize('fields', [
    {'type': '', 'title': 'x', 'icon': 'Hash'},
    {'type': 'stat', 'title': '', 'icon': 'Hash'},
    {'type': 'stat', 'title': 'x', 'icon': None},
    {'type': 'gauge', 'title': 'x', 'icon': 'Hash'},
    {'type': 'stat', 'title': 'x', 'icon': 'Hash', 'scope': 'sidebar'},
])
def test_invalid_widgets_are_rejected(fields):
    with pytest.raises(ValueError):
        DashboardWidgetRegistry().register(DashboardWidget(**fields))


def test_overview_keeps_three_stats_per_module():
    registry = DashboardWidgetRegistry()
    registry.register_many([stat(f'Stat {i}', order=i) for i in range(5)])
    registry.register(stat('Detail only', scope='detail'))
    registry.register(DashboardWidget(type='chart', title='Trend', icon='Activity', module='reports',
                                      chart_type='line', data=[], scope='overview'))

    titles = [widget['title'] for widget in registry.get_overview_widgets()]

    assert titles == ['Stat 0', 'Stat 1', 'Stat 2', 'Trend']


def test_widgets_sort_by_order_with_unordered_last():
    registry = DashboardWidgetRegistry()
    registry.register(stat('Unordered'))
    registry.register(stat('Second', order=2))
    registry.register(stat('First', order=1))

    assert [widget['title'] for widget in registry.get_widgets()] == ['First', 'Second', 'Unordered']


def test_module_widgets_use_detail_scope():
    registry = DashboardWidgetRegistry()
    registry.register(stat('Overview only', scope='overview'))
    registry.register(stat('Detail', scope='detail', module='Reports'))
    registry.register(stat('Elsewhere', module='billing'))

    assert registry.has_module('REPORTS')
    assert [widget['title'] for widget in registry.get_widgets_for_module('reports')] == ['Detail']


def test_module_widgets_skip_other_modules_values():
    calls = []

    def value(name):
        def compute(user):
            calls.append(name)
            return 1
        return compute

    registry = DashboardWidgetRegistry()
    registry.register(stat('Ours', value=value('reports'), scope='detail'))
    registry.register(stat('Theirs', value=value('billing'), module='billing', scope='detail'))

    assert [widget['title'] for widget in registry.get_widgets_for_module('Reports')] == ['Ours']
    assert calls == ['reports']


def test_payload_uses_front_end_keys():
    widget = DashboardWidget(type='chart', title='Trend', icon='Activity', chart_type='bar',
                             data=[{'day': 'Mon'}], x_axis_key='day', data_keys=['total'], scope='detail')

    payload = widget.to_dict()

    assert payload['chartType'] == 'bar'
    assert payload['xAxisKey'] == 'day'
    assert payload['dataKeys'] == ['total']
    assert payload['scope'] == 'detail'


def test_failing_callable_falls_back():
    def broken(user):
        raise RuntimeError('boom')

    payload = stat('Broken', value=broken, data=broken).to_dict()

    assert payload['value'] == 0
    assert payload['data'] is None


def test_per_user_widgets_are_cached_per_user():
    calls = []

    def value(user):
        calls.append(user.pk)
        return len(calls)

    registry = DashboardWidgetRegistry()
    registry.register(stat('Mine', value=value, module='Reports', per_user=True))
    alice, bob = SimpleNamespace(pk=1), SimpleNamespace(pk=2)

    assert registry.get_widgets(alice)[0]['value'] == 1
    assert registry.get_widgets(alice)[0]['value'] == 1
    assert registry.get_widgets(bob)[0]['value'] == 2

    registry.clear_cache('reports')
    assert registry.get_widgets(alice)[0]['value'] == 3
    assert calls == [1, 2, 1]


# ============================================================================
# AUDIT WIDGET DATA
# ============================================================================

@pytest.mark.django_db
def test_event_chart_counts_today():
    AuditLog.objects.create(event=AuditEvent.LOGIN)
    AuditLog.objects.create(event=AuditEvent.LOGIN)

    data = event_chart_data()

    assert len(data) == CHART_DAYS
    assert data[-1]['date'] == timezone.localdate().strftime('%b %d')
    assert data[-1][AuditEvent.LOGIN] == 2
    assert data[0][AuditEvent.LOGIN] == 0


@pytest.mark.django_db
def test_recent_activity_is_newest_first():
    logs = [AuditLog.objects.create(event=AuditEvent.CREATED) for _ in range(RECENT_LIMIT + 1)]

    activity = recent_activity()

    assert [item['id'] for item in activity] == [log.id for log in reversed(logs)][:RECENT_LIMIT]


# ============================================================================
# API
# ============================================================================

@pytest.fixture
def manager_client(api_client, seeded, make_user):
    manager = make_user(roles=[Roles.MANAGER])
    Vault.objects.create(user=manager, name='Visa', type=VaultType.CARD)
    api_client.force_authenticate(manager)
    return api_client


@pytest.mark.django_db
def test_overview_for_admin(admin_client):
    response = admin_client.get('/api/dashboard/')

    assert response.status_code == 200
    titles = {widget['title'] for widget in response.data['widgets']}
    assert {'Total Audit Logs', 'Total Vault Items'} <= titles
    assert 'Recent Audit Logs' not in titles
    assert {'vaults', 'auditlog'} <= {module['name'] for module in response.data['modules']}


@pytest.mark.django_db
def test_overview_requires_permission(guest_client):
    assert guest_client.get('/api/dashboard/').status_code == 403


@pytest.mark.django_db
def test_module_dashboard(manager_client):
    response = manager_client.get('/api/dashboard/vaults/')

    assert response.status_code == 200
    widgets = {widget['title']: widget['value'] for widget in response.data['widgets']}
    assert widgets['Credit Cards'] == 1
    assert widgets['Login Credentials'] == 0
    assert 'Total Vault Items' not in widgets


@pytest.mark.django_db
def test_module_dashboard_permission_and_unknown_module(manager_client):
    assert manager_client.get('/api/dashboard/auditlog/').status_code == 403
    assert manager_client.get('/api/dashboard/nothing/').status_code == 404

    modules = {module['name'] for module in manager_client.get('/api/dashboard/').data['modules']}
    assert 'vaults' in modules
    assert 'auditlog' not in modules
