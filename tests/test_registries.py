import pytest
from django.contrib.auth import get_user_model
from django.contrib.auth.models import Group, Permission

from common.categories import CategoryRegistry
from common.menus import MenuRegistry
from common.models import Category, Menu
from users.registries import (
    PermissionRegistry,
    RoleRegistry,
    build_permission_name,
    get_permission_by_name,
    qualify_pattern,
)
from vaults.models import Vault


@pytest.fixture
def roles():
    return RoleRegistry()


@pytest.fixture
def permissions(roles):
    return PermissionRegistry(roles)


def test_build_permission_name_always_prefixes():
    assert build_permission_name('vaults', 'vault.view') == 'vaults.vault.view'
    assert build_permission_name('auditlog', 'auditlog.view') == 'auditlog.auditlog.view'


def test_role_patterns_are_full_names():
    assert qualify_pattern('auditlog', 'auditlog.*') == 'auditlog.*'
    assert qualify_pattern('core', 'users.view') == 'core.users.view'


def test_duplicate_permissions_are_skipped(permissions):
    permissions.register('Reports', ['report.view', 'report.view', '  ', 'report.export'])
    permissions.register('reports', ['report.view'])

    assert permissions.get_permission_names() == ['reports.report.view', 'reports.report.export']


def test_role_assignments_merge_across_groups(permissions):
    permissions.register('reports', ['report.view'], roles={'Manager': ['report.*']})
    permissions.register('reports', ['chart.view'], roles={'Manager': ['chart.view', 'report.*']})

    assert permissions.get_role_assignments() == {
        'Manager': ['reports.report.*', 'reports.chart.view'],
    }


@pytest.mark.django_db
def test_seed_creates_permissions_and_grants_wildcards(permissions, make_user):
    permissions.register(
        'reports',
        ['report.view', 'report.export', 'chart.view'],
        roles={'Analyst': ['report.*'], 'Viewer': ['chart.view']},
    )

    result = permissions.seed()

    assert result == {'created': 3, 'found': 0, 'errors': 0}
    analyst = Group.objects.get(name='Analyst')
    assert sorted(analyst.permissions.values_list('codename', flat=True)) == ['report.export', 'report.view']
    assert list(Group.objects.get(name='Viewer').permissions.values_list('codename', flat=True)) == ['chart.view']

    user = make_user(roles=['Analyst'])
    user = get_user_model().objects.get(pk=user.pk)
    assert user.has_perm('reports.report.export')
    assert not user.has_perm('reports.chart.view')


@pytest.mark.django_db
def test_seed_is_idempotent(permissions):
    permissions.register('reports', ['report.view'])
    permissions.seed()

    assert permissions.seed() == {'created': 0, 'found': 1, 'errors': 0}
    assert get_permission_by_name('reports.report.view') is not None
    assert get_permission_by_name('reports') is None


@pytest.mark.django_db
def test_permission_cleanup_detaches_roles(permissions):
    permissions.register('reports', ['report.view'], roles={'Analyst': ['report.view']})
    permissions.seed()

    result = permissions.cleanup('reports')

    assert result['deleted'] == 1
    assert result['roles_cleaned'] == 1
    assert not Permission.objects.filter(content_type__app_label='reports').exists()
    assert permissions.cleanup('reports') == {'deleted': 0, 'roles_cleaned': 0, 'models_cleaned': 0}


@pytest.mark.django_db
def test_role_cleanup_keeps_assigned_roles(roles, make_user):
    roles.register_many('reports', ['Analyst', 'Viewer', {'name': 'Analyst'}])
    assert roles.seed() == {'created': 2, 'found': 0, 'errors': 0}
    make_user(roles=['Viewer'])

    assert roles.cleanup('reports') == {'deleted': 1, 'skipped': 1}
    assert list(Group.objects.values_list('name', flat=True)) == ['Viewer']


# ============================================================================
# MENUS
# ============================================================================

@pytest.fixture
def menus():
    registry = MenuRegistry()
    registry.register_item('Home', 'home', group='Main', order=1)
    registry.register_item('Reports', 'reports.index', group='Reports', permission='reports.report.view', module='reports')
    registry.register_item('Charts', 'reports.charts', parent='reports.index', module='reports', order=2)
    registry.register_item('Secret', 'reports.secret', parent='reports.index', module='reports',
                           permission='reports.secret.view', order=1)
    return registry


@pytest.mark.django_db
def test_menu_seed_resolves_parents(menus):
    assert menus.seed() == {'created': 4, 'found': 0, 'errors': 0}

    charts = Menu.objects.get(route='reports.charts')
    assert charts.parent.route == 'reports.index'
    assert menus.seed() == {'created': 0, 'found': 4, 'errors': 0}


@pytest.mark.django_db
def test_menus_are_filtered_by_permission(menus, permissions, make_user):
    permissions.register('reports', ['report.view', 'secret.view'], roles={'Analyst': ['report.view']})
    permissions.seed()
    menus.seed()

    analyst = make_user(roles=['Analyst'])
    tree = menus.get_menus(analyst)

    assert [section['group'] for section in tree] == ['Main', 'Reports']
    reports = tree[1]['items'][0]
    assert reports['route'] == 'reports.index'
    assert [child['route'] for child in reports['children']] == ['reports.charts']

    assert [section['group'] for section in menus.get_menus(None)] == ['Main']


@pytest.mark.django_db
def test_menu_cleanup_removes_module_tree(menus):
    menus.seed()

    assert menus.cleanup('reports') == {'deleted': 3, 'orphaned': 0}
    assert list(Menu.objects.values_list('route', flat=True)) == ['home']


@pytest.mark.django_db
def test_menu_cleanup_keeps_children_of_other_modules():
    registry = MenuRegistry()
    registry.register_item('Dashboard', 'dashboard', module='core')
    registry.register_item('Vault Dashboard', 'dashboard.vaults', parent='dashboard', module='vaults')
    registry.seed()

    assert registry.cleanup('core') == {'deleted': 1, 'orphaned': 1}

    survivor = Menu.objects.get(route='dashboard.vaults')
    assert survivor.parent_id is None


def test_duplicate_menu_routes_are_ignored(menus):
    menus.register_item('Again', 'home')

    assert len(menus.get_registered_menus()) == 4


# ============================================================================
# CATEGORIES
# ============================================================================

@pytest.mark.django_db
def test_category_seed_links_children_by_slug():
    registry = CategoryRegistry()
    registry.register_many('reports', 'Report', [
        {'name': 'Finance Reports', 'parent_slug': None},
        {'name': 'Quarterly', 'parent_slug': 'finance-reports'},
        {'name': 'Orphan', 'parent_slug': 'missing'},
        {'name': 'Finance Reports'},
    ])

    assert registry.seed() == {'created': 2, 'found': 0, 'errors': 0}
    quarterly = Category.objects.get(slug='quarterly')
    assert quarterly.parent.slug == 'finance-reports'
    assert quarterly.type == 'report'

    assert registry.cleanup('reports') == {'deleted': 2, 'orphaned': 0}


@pytest.mark.django_db
def test_category_cleanup_keeps_children_of_other_modules(make_user):
    registry = CategoryRegistry()
    registry.register('core', 'vault', 'Accounts')
    registry.register('vaults', 'vault', 'Banking', parent_slug='accounts')
    registry.seed()
    banking = Category.objects.get(slug='banking')
    item = Vault.objects.create(user=make_user(), name='Bank', category=banking)

    assert registry.cleanup('core') == {'deleted': 1, 'orphaned': 1}

    banking.refresh_from_db()
    assert banking.parent_id is None
    item.refresh_from_db()
    assert item.category_id == banking.pk
