"""
Registrations for the audit log module.
"""
from datetime import timedelta

from django.db.models import Count
from django.db.models.functions import TruncDate
from django.utils import timezone

from app_settings.registry import settings_registry
from audit.models import AuditEvent, AuditLog
from common.menus import menu_registry
from core.constants import Roles, SettingType
from dashboard.widgets import DashboardWidget, widget_registry
from users.registries import permission_registry

MODULE = 'auditlog'

CHART_DAYS = 7
RECENT_LIMIT = 5


def register_settings():
    settings_registry.register_many(MODULE, 'auditlog', [
        {'key': 'retention_days', 'value': 90, 'type': SettingType.INTEGER, 'label': 'Retention (days)'},
        {'key': 'scheduled_cleanup_enabled', 'value': True, 'type': SettingType.BOOLEAN,
         'label': 'Scheduled Cleanup'},
        {'key': 'export_chunk_size', 'value': 500, 'type': SettingType.INTEGER, 'label': 'Export Chunk Size'},
        {'key': 'cleanup_schedule_time', 'value': '02:00', 'type': SettingType.TEXT,
         'label': 'Cleanup Time (HH:MM)'},
    ])


def register_permissions():
    permission_registry.register(
        MODULE,
        ['auditlog.view', 'auditlog.export', 'dashboard.view'],
        roles={
            Roles.ADMINISTRATOR: ['auditlog.*'],
            Roles.AUDITOR: ['auditlog.*'],
        },
    )


def register_menus():
    menu_registry.register_item(
        label='Audit Logs',
        route='audit.index',
        icon='FileText',
        order=30,
        group='System',
        permission='auditlog.auditlog.view',
        module=MODULE,
    )
    menu_registry.register_item(
        label='Audit Log Dashboard',
        route='dashboard.auditlog',
        icon='Activity',
        order=60,
        parent='dashboard',
        permission='auditlog.dashboard.view',
        module=MODULE,
    )


def event_chart_data(user=None):
    """Daily event counts for the last CHART_DAYS days, oldest first"""
    today = timezone.localdate()
    days = [today - timedelta(days=offset) for offset in range(CHART_DAYS - 1, -1, -1)]

    rows = (
        AuditLog.objects.filter(created_at__date__gte=days[0])
        .annotate(day=TruncDate('created_at'))
        .values('day', 'event')
        .annotate(total=Count('id'))
    )
    counts = {(row['day'], row['event']): row['total'] for row in rows}

    data = []
    for day in days:
        point = {'date': day.strftime('%b %d')}
        for event in AuditEvent.ALL:
            point[event] = counts.get((day, event), 0)
        data.append(point)
    return data


def recent_activity(user=None):
    logs = AuditLog.objects.order_by('-created_at', '-id')[:RECENT_LIMIT]
    return [
        {
            'id': log.id,
            'title': f"{log.event_display} {log.model_name}",
            'timestamp': log.created_at.isoformat(),
            'icon': log.event_icon,
            'iconColor': log.event_color,
        }
        for log in logs
    ]


def register_widgets():
    widget_registry.register(DashboardWidget(
        type='stat',
        title='Total Audit Logs',
        value=lambda user: AuditLog.objects.count(),
        icon='FileText',
        module=MODULE,
        order=60,
        scope='overview',
    ))
    widget_registry.register(DashboardWidget(
        type='chart',
        title='Audit Events',
        icon='Activity',
        module=MODULE,
        description=f'Audit events over the last {CHART_DAYS} days',
        chart_type='area',
        data=event_chart_data,
        x_axis_key='date',
        data_keys=list(AuditEvent.ALL),
        config={
            event: {'label': AuditEvent.label(event), 'color': f'hsl(var(--chart-{index % 12 + 1}))'}
            for index, event in enumerate(AuditEvent.ALL)
        },
        order=61,
        scope='detail',
    ))
    widget_registry.register(DashboardWidget(
        type='activity',
        title='Recent Audit Logs',
        icon='Shield',
        module=MODULE,
        data=recent_activity,
        order=62,
        scope='detail',
    ))


def register():
    register_settings()
    register_permissions()
    register_menus()
    register_widgets()
