"""
Registrations for the core user and role module.
"""
from django.contrib.auth import get_user_model
from django.contrib.auth.models import Group

from common.menus import menu_registry
from core.constants import Roles
from dashboard.widgets import DashboardWidget, widget_registry
from users.registries import permission_registry, role_registry

MODULE = 'core'


def register_roles():
    role_registry.register_many(MODULE, Roles.ALL)


def register_permissions():
    permission_registry.register(
        MODULE,
        [
            'users.view', 'users.create', 'users.edit', 'users.delete',
            'roles.view', 'roles.create', 'roles.edit', 'roles.delete',
            'dashboard.view',
        ],
        roles={
            Roles.ADMINISTRATOR: ['core.*'],
            Roles.MANAGER: ['core.users.view', 'core.dashboard.view'],
        },
    )


def register_menus():
    menu_registry.register_item(
        label='Dashboard',
        route='dashboard',
        icon='LayoutDashboard',
        order=1,
        group='Main',
        module=MODULE,
    )
    menu_registry.register_item(
        label='Users',
        route='users.index',
        icon='Users',
        order=10,
        group='System',
        permission='core.users.view',
        module=MODULE,
    )
    menu_registry.register_item(
        label='Roles',
        route='roles.index',
        icon='ShieldCheck',
        order=20,
        group='System',
        permission='core.roles.view',
        module=MODULE,
    )


def register_widgets():
    widget_registry.register(DashboardWidget(
        type='stat',
        title='Total Users',
        value=lambda user: get_user_model().objects.count(),
        icon='Users',
        module=MODULE,
        order=1,
        scope='overview',
    ))
    widget_registry.register(DashboardWidget(
        type='stat',
        title='Roles',
        value=lambda user: Group.objects.count(),
        icon='ShieldCheck',
        module=MODULE,
        order=2,
    ))


def register():
    register_roles()
    register_permissions()
    register_menus()
    register_widgets()
