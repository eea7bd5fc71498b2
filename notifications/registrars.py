"""
Registrations for the Signal notification module.
"""
from app_settings.registry import settings_registry
from common.menus import menu_registry
from core.constants import Roles, SettingType
from notifications.registry import signal_category_registry
from users.registries import permission_registry

MODULE = 'signal'

CATEGORIES = {
    'login': 'signal_notify_login',
    'security': 'signal_notify_security',
    'system': 'signal_notify_system',
}


def register_settings():
    settings_registry.register_many(MODULE, 'signal', [
        {'key': 'signal_notify_login', 'value': True, 'type': SettingType.BOOLEAN, 'label': 'Login Notifications'},
        {'key': 'signal_notify_security', 'value': True, 'type': SettingType.BOOLEAN, 'label': 'Security Alerts'},
        {'key': 'signal_notify_system', 'value': True, 'type': SettingType.BOOLEAN, 'label': 'System Notifications'},
    ])


def register_categories():
    for category, setting_key in CATEGORIES.items():
        signal_category_registry.register(MODULE, category, setting_key)


def register_permissions():
    permission_registry.register(
        MODULE,
        ['signal.view', 'signal.manage'],
        roles={
            Roles.ADMINISTRATOR: ['signal.*'],
            Roles.MANAGER: ['signal.*'],
            Roles.STAFF: ['signal.*'],
            Roles.AUDITOR: ['signal.*'],
            Roles.GUEST: ['signal.*'],
        },
    )


def register_menus():
    menu_registry.register_item(
        label='Notifications',
        route='notifications.index',
        icon='Bell',
        order=20,
        group='Main',
        permission='signal.signal.view',
        module=MODULE,
    )


def register():
    register_settings()
    register_categories()
    register_permissions()
    register_menus()
