"""
Registrations for the settings module.
"""
from app_settings.models import Setting
from app_settings.registry import settings_registry
from common.menus import menu_registry
from core.constants import SettingType
from dashboard.widgets import DashboardWidget, widget_registry
from users.registries import permission_registry

MODULE = 'settings'


def register_settings():
    settings_registry.register_many(MODULE, 'general', [
        {'key': 'app_name', 'value': 'AdminHub', 'label': 'Application Name'},
        {'key': 'app_logo', 'value': '', 'type': SettingType.FILE, 'label': 'Application Logo'},
        {'key': 'date_format', 'value': 'd/m/Y', 'label': 'Date Format'},
        {'key': 'currency_symbol', 'value': '$', 'label': 'Currency Symbol'},
        {'key': 'app_debug', 'value': False, 'type': SettingType.BOOLEAN, 'label': 'Application Debug Mode', 'is_system': True},
    ])


def register_permissions():
    permission_registry.register(MODULE, ['config.view', 'config.edit', 'dashboard.view'])


def register_menus():
    menu_registry.register_item(
        label='Settings',
        route='settings.index',
        icon='Settings',
        order=90,
        group='System',
        permission='settings.config.view',
        module=MODULE,
    )
    menu_registry.register_item(
        label='Settings Dashboard',
        route='dashboard.settings',
        icon='Settings',
        order=70,
        parent='dashboard',
        permission='settings.dashboard.view',
        module=MODULE,
    )


def _settings_table(user):
    rows = []
    for setting in Setting.objects.order_by('module', 'group', 'key'):
        value = setting.cast_value()
        if isinstance(value, bool):
            value = 'Yes' if value else 'No'
        elif value is None or value == '':
            value = 'N/A'
        rows.append({
            'id': setting.id,
            'module': setting.module,
            'group': setting.group,
            'key': setting.key,
            'label': setting.label or setting.key,
            'value': str(value)[:50],
            'type': setting.type.title(),
            'is_system': 'Yes' if setting.is_system else 'No',
        })
    return rows


def register_widgets():
    widget_registry.register(DashboardWidget(
        type='stat',
        title='Total Settings',
        value=lambda user: Setting.objects.count(),
        icon='Settings',
        module=MODULE,
        order=70,
        scope='overview',
    ))
    widget_registry.register(DashboardWidget(
        type='system',
        title='Settings Configuration',
        icon='Settings',
        module=MODULE,
        description='All application settings',
        data=_settings_table,
        config={'columns': ['module', 'group', 'key', 'label', 'value', 'type', 'is_system']},
        order=71,
        scope='detail',
    ))


def register():
    register_settings()
    register_permissions()
    register_menus()
    register_widgets()
