"""
Registrations for the vault module.
"""
from app_settings.registry import settings_registry
from common.categories import category_registry
from common.menus import menu_registry
from core.constants import Roles, SettingType, VaultType
from dashboard.widgets import DashboardWidget, widget_registry
from users.registries import permission_registry
from vaults.models import Vault

MODULE = 'vaults'

CATEGORIES = [
    {'name': 'Banking', 'slug': 'banking', 'color': '#10B981'},
    {'name': 'Credit Cards', 'slug': 'credit-cards', 'color': '#F59E0B'},
    {'name': 'Email Accounts', 'slug': 'email-accounts', 'color': '#3B82F6'},
    {'name': 'Social Media', 'slug': 'social-media', 'color': '#EC4899'},
    {'name': 'Cloud Storage', 'slug': 'cloud-storage', 'color': '#8B5CF6'},
    {'name': 'E-commerce', 'slug': 'ecommerce', 'color': '#EF4444'},
    {'name': 'Work Accounts', 'slug': 'work-accounts', 'color': '#06B6D4'},
    {'name': 'Server Access', 'slug': 'server-access', 'color': '#14B8A6'},
    {'name': 'Database', 'slug': 'database', 'color': '#F97316'},
    {'name': 'API Keys', 'slug': 'api-keys', 'color': '#84CC16'},
    {'name': 'Personal Notes', 'slug': 'personal-notes', 'color': '#64748B'},
]


def register_settings():
    settings_registry.register_many(MODULE, 'vault', [
        {'key': 'vault_per_page', 'value': 20, 'type': SettingType.INTEGER, 'label': 'Items Per Page'},
        {'key': 'vault_totp_code_length', 'value': 6, 'type': SettingType.INTEGER, 'label': 'TOTP Code Length'},
        {'key': 'vault_totp_period', 'value': 30, 'type': SettingType.INTEGER, 'label': 'TOTP Period (seconds)'},
        {'key': 'vault_lock_enabled', 'value': False, 'type': SettingType.BOOLEAN, 'label': 'Enable Vault Lock'},
        {'key': 'vault_lock_timeout', 'value': 15, 'type': SettingType.INTEGER, 'label': 'Vault Lock Timeout (minutes)'},
    ])


def register_permissions():
    permission_registry.register(
        MODULE,
        ['dashboard.view', 'vault.view', 'vault.create', 'vault.edit', 'vault.delete'],
        roles={
            Roles.ADMINISTRATOR: ['vaults.*'],
            Roles.MANAGER: ['vaults.*'],
        },
    )


def register_menus():
    menu_registry.register_item(
        label='Vault',
        route='vaults.index',
        icon='ShieldCheck',
        order=10,
        group='Utilities',
        permission='vaults.vault.view',
        module=MODULE,
    )
    menu_registry.register_item(
        label='Vault Dashboard',
        route='dashboard.vaults',
        icon='ShieldCheck',
        order=40,
        parent='dashboard',
        permission='vaults.dashboard.view',
        module=MODULE,
    )


def register_categories():
    category_registry.register_many(MODULE, 'vault', CATEGORIES)


def _count(**filters):
    return lambda user: Vault.objects.for_user(user).filter(**filters).count()


def register_widgets():
    widget_registry.register(DashboardWidget(
        type='stat',
        title='Total Vault Items',
        value=_count(),
        icon='ShieldCheck',
        module=MODULE,
        order=40,
        scope='overview',
        per_user=True,
    ))

    detail_widgets = [
        ('Favorite Items', 'Star', {'is_favorite': True}),
        ('Login Credentials', 'Key', {'type': VaultType.LOGIN}),
        ('Credit Cards', 'CreditCard', {'type': VaultType.CARD}),
        ('Secure Notes', 'FileText', {'type': VaultType.NOTE}),
        ('Server Credentials', 'HardDrive', {'type': VaultType.SERVER}),
    ]
    for offset, (title, icon, filters) in enumerate(detail_widgets, start=1):
        widget_registry.register(DashboardWidget(
            type='stat',
            title=title,
            value=_count(**filters),
            icon=icon,
            module=MODULE,
            order=40 + offset,
            scope='detail',
            per_user=True,
        ))


def register():
    register_settings()
    register_permissions()
    register_menus()
    register_categories()
    register_widgets()
