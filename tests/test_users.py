import pytest
from django.contrib.auth import get_user_model
from django.contrib.auth.models import Group
from django.core.management import call_command
from django.core.management.base import CommandError

from audit.models import AuditEvent, AuditLog
from core.constants import Roles
from core.exceptions import BusinessLogicError, ValidationError
from notifications.models import Notification
from users.services import RoleService, SuperAdminService, UserService

User = get_user_model()


# ============================================================================
# USER SERVICE
# ============================================================================

@pytest.mark.django_db
def test_create_user_assigns_roles(seeded, super_admin):
    user = UserService().create(
        {'username': 'jane', 'email': 'jane@example.com', 'password': 'password123', 'roles': [Roles.MANAGER]},
        actor=super_admin,
    )

    assert user.check_password('password123')
    assert user.role_names == [Roles.MANAGER]
    assert not Notification.objects.for_user(user).exists()


@pytest.mark.django_db
def test_create_user_rejects_taken_email(make_user):
    make_user(email='taken@example.com')

    with pytest.raises(ValidationError) as exc:
        UserService().create({'username': 'other', 'email': 'TAKEN@example.com', 'password': 'password123'})
    assert exc.value.code == 'EMAIL_TAKEN'


@pytest.mark.django_db
def test_sync_roles_audits_and_notifies(seeded, super_admin, make_user):
    user = make_user(roles=[Roles.GUEST])

    changed = UserService().sync_roles(user, [Roles.STAFF, Roles.AUDITOR], actor=super_admin)

    assert changed is True
    assert user.role_names == [Roles.AUDITOR, Roles.STAFF]

    log = AuditLog.objects.for_model(user).get(event=AuditEvent.RELATIONSHIP_SYNCED)
    assert log.user == super_admin
    assert sorted(log.new_values['roles'].values()) == [Roles.AUDITOR, Roles.STAFF]
    assert list(log.old_values['roles'].values()) == [Roles.GUEST]

    notification = Notification.objects.for_user(user).get()
    assert notification.title == "Your Roles Changed"


@pytest.mark.django_db
def test_sync_roles_without_change_is_noop(seeded, make_user):
    user = make_user(roles=[Roles.GUEST])

    assert UserService().sync_roles(user, [Roles.GUEST]) is False
    assert not AuditLog.objects.for_event(AuditEvent.RELATIONSHIP_SYNCED).exists()


@pytest.mark.django_db
def test_sync_roles_rejects_unknown_role(seeded, make_user):
    with pytest.raises(ValidationError) as exc:
        UserService().sync_roles(make_user(), ['Wizard'])
    assert exc.value.code == 'UNKNOWN_ROLE'


@pytest.mark.django_db
def test_last_super_admin_is_protected(super_admin, make_user):
    service = UserService()

    with pytest.raises(BusinessLogicError) as exc:
        service.delete(super_admin)
    assert exc.value.code == 'LAST_SUPER_ADMIN'

    with pytest.raises(BusinessLogicError) as exc:
        service.sync_roles(super_admin, [Roles.GUEST])
    assert exc.value.code == 'LAST_SUPER_ADMIN'

    second = make_user(roles=[Roles.SUPER_ADMIN])
    assert service.delete(second, actor=super_admin) is True


@pytest.mark.django_db
def test_user_cannot_delete_self(super_admin):
    with pytest.raises(BusinessLogicError) as exc:
        UserService().delete(super_admin, actor=super_admin)
    assert exc.value.code == 'CANNOT_DELETE_SELF'


# ============================================================================
# ROLE SERVICE
# ============================================================================

@pytest.mark.django_db
def test_super_admin_role_is_protected(seeded):
    service = RoleService()
    role = Group.objects.get(name=Roles.SUPER_ADMIN)

    for action in (lambda: service.delete(role), lambda: service.update(role, name='Root'),
                   lambda: service.create(Roles.SUPER_ADMIN)):
        with pytest.raises(BusinessLogicError) as exc:
            action()
        assert exc.value.code == 'PROTECTED_ROLE'


@pytest.mark.django_db
def test_role_permissions_are_validated(seeded):
    service = RoleService()
    role = service.create('Support', ['core.users.view'])

    assert service.get_permission_names(role) == ['core.users.view']

    with pytest.raises(ValidationError) as exc:
        service.update(role, permissions=['core.users.view', 'core.nothing.view'])
    assert exc.value.code == 'UNKNOWN_PERMISSION'

    with pytest.raises(ValidationError) as exc:
        service.create('Support')
    assert exc.value.code == 'ROLE_EXISTS'


@pytest.mark.django_db
def test_role_in_use_cannot_be_deleted(guest):
    with pytest.raises(BusinessLogicError) as exc:
        RoleService().delete(Group.objects.get(name=Roles.GUEST))
    assert exc.value.code == 'ROLE_IN_USE'


@pytest.mark.django_db
def test_default_grants(seeded, make_user):
    manager = make_user(roles=[Roles.MANAGER])

    assert manager.has_perm('core.users.view')
    assert not manager.has_perm('core.users.delete')
    assert manager.has_perm('vaults.vault.create')
    assert not manager.has_perm('auditlog.auditlog.view')


@pytest.mark.django_db
def test_super_admin_bypasses_permission_checks(super_admin):
    assert super_admin.has_perm('anything.at.all')


# ============================================================================
# SUPER ADMIN BOOTSTRAP
# ============================================================================

@pytest.mark.django_db
def test_ensure_super_admin_is_idempotent():
    user, created = SuperAdminService().ensure_exists('root@example.com', 'password123', 'root')
    again, created_again = SuperAdminService().ensure_exists('root@example.com')

    assert created is True
    assert created_again is False
    assert again.pk == user.pk
    assert user.is_super_admin


@pytest.mark.django_db
def test_create_admin_command_requires_password(settings):
    settings.SUPER_ADMIN_PASSWORD = ''

    with pytest.raises(CommandError):
        call_command('create_admin', email='nobody@example.com')


@pytest.mark.django_db
def test_bulk_create_users_command(seeded):
    call_command('bulk_create_users', count=5, chunk=2, trigger_logs=True, log_chunk=2)

    assert User.objects.count() == 5
    assert AuditLog.objects.for_event(AuditEvent.CREATED).count() == 5
    log = AuditLog.objects.for_event(AuditEvent.CREATED).first()
    assert 'password' not in log.new_values
    assert log.tags == ['user', 'bulk', 'console']


@pytest.mark.django_db
def test_bulk_create_users_rejects_out_of_range_count():
    with pytest.raises(CommandError):
        call_command('bulk_create_users', count=0)


# ============================================================================
# API
# ============================================================================

@pytest.mark.django_db
def test_login_returns_tokens_and_audits(api_client, seeded, make_user):
    user = make_user(username='login-user', password='password123')

    response = api_client.post('/api/auth/login/', {'username': 'login-user', 'password': 'password123'},
                               format='json')

    assert response.status_code == 200
    assert {'access', 'refresh'} <= set(response.data)
    assert AuditLog.objects.for_model(user).filter(event=AuditEvent.LOGIN).exists()
    assert Notification.objects.for_user(user).filter(title="New Login").exists()
    user.refresh_from_db()
    assert user.last_login is not None


@pytest.mark.django_db
def test_failed_login_is_audited(api_client, make_user):
    make_user(username='someone')

    response = api_client.post('/api/auth/login/', {'username': 'someone', 'password': 'wrong'}, format='json')

    assert response.status_code == 401
    log = AuditLog.objects.for_event(AuditEvent.FAILED_LOGIN).get()
    assert log.new_values == {'username': 'someone'}


@pytest.mark.django_db
def test_user_list_requires_permission(guest_client, admin_client):
    assert guest_client.get('/api/users/').status_code == 403

    response = admin_client.get('/api/users/', {'search': 'super'})
    assert response.status_code == 200
    assert response.data['users']['total'] == 1
    assert response.data['users']['data'][0]['roles'] == [Roles.SUPER_ADMIN]


@pytest.mark.django_db
def test_manager_can_view_but_not_create(api_client, seeded, make_user):
    api_client.force_authenticate(make_user(roles=[Roles.MANAGER]))

    assert api_client.get('/api/users/').status_code == 200
    response = api_client.post('/api/users/', {'username': 'x', 'email': 'x@example.com', 'password': 'password123'},
                               format='json')
    assert response.status_code == 403


@pytest.mark.django_db
def test_create_user_via_api(admin_client):
    response = admin_client.post(
        '/api/users/',
        {'username': 'api-user', 'email': 'api@example.com', 'password': 'password123', 'roles': [Roles.STAFF]},
        format='json',
    )

    assert response.status_code == 201
    assert response.data['roles'] == [Roles.STAFF]

    missing_password = admin_client.post('/api/users/', {'username': 'p', 'email': 'p@example.com'}, format='json')
    assert missing_password.status_code == 400


@pytest.mark.django_db
def test_business_rule_errors_map_to_conflict(admin_client, super_admin):
    response = admin_client.delete(f'/api/users/{super_admin.pk}/')

    assert response.status_code == 409
    assert response.data['error_code'] == 'CANNOT_DELETE_SELF'


@pytest.mark.django_db
def test_missing_user_is_404(admin_client):
    assert admin_client.get('/api/users/999999/').status_code == 404


@pytest.mark.django_db
def test_role_list_includes_grouped_permissions(admin_client):
    response = admin_client.get('/api/roles/')

    assert response.status_code == 200
    assert 'core' in response.data['permissions']
    names = [role['name'] for role in response.data['roles']['data']]
    assert names == sorted(names)
    assert Roles.SUPER_ADMIN in names
