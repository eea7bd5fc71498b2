"""
User, role and permission services.
"""
from typing import Iterable, Optional

from django.conf import settings
from django.contrib.auth import get_user_model
from django.contrib.auth.models import Group, Permission
from django.db import transaction
from django.db.models import Count

from audit.helpers import log_event
from audit.models import AuditEvent
from common.menus import menu_registry
from core.constants import Roles
from core.datatable import DatatableQueryService
from core.exceptions import BusinessLogicError, NotFoundError, ValidationError
from core.repositories import BaseRepository
from core.services import BaseService
from core.validators import UserValidator
from notifications.services import SignalService
from users.registries import PERMISSION_MODEL, get_permission_by_name, permission_full_name

User = get_user_model()


class UserRepository(BaseRepository):
    """Data access for users"""

    def __init__(self):
        super().__init__(User)

    def super_admin_count(self) -> int:
        return self.model.objects.filter(groups__name=Roles.SUPER_ADMIN, is_active=True).distinct().count()


class UserService(BaseService):
    """
    User management.

    Role membership is synchronized through sync_roles, which audits the
    change and notifies the affected user.
    """

    SEARCH_FIELDS = ['username', 'email', 'name']
    ALLOWED_SORTS = ['id', 'username', 'name', 'email', 'date_joined']

    def __init__(self, signal_service: Optional[SignalService] = None):
        super().__init__()
        self.repository = UserRepository()
        self.datatable = DatatableQueryService()
        self.signal_service = signal_service or SignalService()

    def list(self, params) -> dict:
        queryset = self.repository.get_queryset().prefetch_related('groups')
        return self.datatable.build(
            queryset,
            params,
            search_fields=self.SEARCH_FIELDS,
            allowed_sorts=self.ALLOWED_SORTS,
            default_sort='date_joined',
        )

    def get(self, user_id):
        return self.repository.get_by_id_or_raise(user_id)

    @transaction.atomic
    def create(self, data: dict, actor=None):
        """
        Create a user and assign roles.

        Args:
            data: username, email, password, optional name, is_active and roles
            actor: User performing the action

        Returns:
            The created user

        Raises:
            ValidationError: If username or email is taken or the password is too short
        """
        UserValidator.validate_unique_username(data.get('username'))
        UserValidator.validate_unique_email(data.get('email'))
        UserValidator.validate_password(data.get('password'))

        user = User(
            username=data['username'],
            email=data['email'],
            name=data.get('name', ''),
            is_active=data.get('is_active', True),
        )
        user.set_password(data['password'])
        user.save()

        roles = data.get('roles')
        if roles:
            self.sync_roles(user, roles, actor=actor, notify=False)

        self.log_info("User created", user_id=user.pk, actor_id=getattr(actor, 'pk', None))
        return user

    @transaction.atomic
    def update(self, user, data: dict, actor=None):
        if 'username' in data and data['username'] != user.username:
            UserValidator.validate_unique_username(data['username'], exclude_id=user.pk)
            user.username = data['username']
        if 'email' in data and data['email'] != user.email:
            UserValidator.validate_unique_email(data['email'], exclude_id=user.pk)
            user.email = data['email']
        if 'name' in data:
            user.name = data['name'] or ''
        if 'is_active' in data:
            user.is_active = bool(data['is_active'])
        if data.get('password'):
            UserValidator.validate_password(data['password'])
            user.set_password(data['password'])
        user.save()

        if 'roles' in data and data['roles'] is not None:
            self.sync_roles(user, data['roles'], actor=actor)

        self.log_info("User updated", user_id=user.pk, actor_id=getattr(actor, 'pk', None))
        return user

    @transaction.atomic
    def delete(self, user, actor=None):
        if actor is not None and actor.pk == user.pk:
            raise BusinessLogicError(
                message="You cannot delete your own account.",
                code="CANNOT_DELETE_SELF"
            )
        if user.is_super_admin and self.repository.super_admin_count() <= 1:
            raise BusinessLogicError(
                message="The last Super Admin cannot be deleted.",
                code="LAST_SUPER_ADMIN"
            )

        user_id = user.pk
        user.delete()
        menu_registry.clear_cache_for_user(user_id)
        self.log_info("User deleted", user_id=user_id, actor_id=getattr(actor, 'pk', None))
        return True

    @transaction.atomic
    def sync_roles(self, user, role_names: Iterable[str], actor=None, notify: bool = True) -> bool:
        """
        Replace the user's roles.

        Returns:
            True when membership changed

        Raises:
            ValidationError: If a role does not exist
            BusinessLogicError: If the change would remove the last Super Admin
        """
        role_names = sorted(set(role_names))
        roles = list(Group.objects.filter(name__in=role_names).order_by('name'))
        missing = sorted(set(role_names) - {role.name for role in roles})
        if missing:
            raise ValidationError(
                message=f"Unknown role(s): {', '.join(missing)}",
                code="UNKNOWN_ROLE",
                details={"roles": missing}
            )

        old_roles = {str(group.pk): group.name for group in user.groups.order_by('name')}
        new_roles = {str(group.pk): group.name for group in roles}
        if set(old_roles) == set(new_roles):
            return False

        losing_super_admin = Roles.SUPER_ADMIN in old_roles.values() and Roles.SUPER_ADMIN not in new_roles.values()
        if losing_super_admin and self.repository.super_admin_count() <= 1:
            raise BusinessLogicError(
                message="The last Super Admin cannot lose the Super Admin role.",
                code="LAST_SUPER_ADMIN"
            )

        user.groups.set(roles)
        if hasattr(user, '_is_super_admin_cache'):
            del user._is_super_admin_cache
        for cache_attr in ('_perm_cache', '_group_perm_cache', '_user_perm_cache'):
            if hasattr(user, cache_attr):
                delattr(user, cache_attr)
        menu_registry.clear_cache_for_user(user)

        log_event(
            AuditEvent.RELATIONSHIP_SYNCED,
            instance=user,
            user=actor,
            old_values={'roles': old_roles},
            new_values={'roles': new_roles},
            tags=['roles'],
        )

        if notify:
            names = ', '.join(new_roles.values()) or 'none'
            self.signal_service.info(
                user,
                "Your Roles Changed",
                f"Your roles have been updated. Current roles: {names}.",
                module_source='core',
                category='system',
            )

        self.log_info("User roles synced", user_id=user.pk, roles=list(new_roles.values()))
        return True


class RoleService(BaseService):
    """Role (group) management with Super Admin protection"""

    SEARCH_FIELDS = ['name']
    ALLOWED_SORTS = ['id', 'name', 'users_count']

    def __init__(self):
        super().__init__()
        self.datatable = DatatableQueryService()

    def list(self, params) -> dict:
        queryset = Group.objects.annotate(users_count=Count('user', distinct=True))
        return self.datatable.build(
            queryset,
            params,
            search_fields=self.SEARCH_FIELDS,
            allowed_sorts=self.ALLOWED_SORTS,
            default_sort='name',
            default_direction='asc',
        )

    def get(self, role_id) -> Group:
        role = Group.objects.filter(pk=role_id).first()
        if role is None:
            raise NotFoundError(resource_type='Role', resource_id=role_id)
        return role

    @staticmethod
    def get_permission_names(role: Group) -> list:
        return sorted(permission_full_name(p) for p in role.permissions.select_related('content_type'))

    @transaction.atomic
    def create(self, name: str, permissions: Iterable[str] = ()) -> Group:
        name = (name or '').strip()
        if not name:
            raise ValidationError(message="The role name is required.", code="ROLE_NAME_REQUIRED")
        if name == Roles.SUPER_ADMIN:
            raise BusinessLogicError(
                message="The Super Admin role cannot be created manually.",
                code="PROTECTED_ROLE"
            )
        if Group.objects.filter(name=name).exists():
            raise ValidationError(message=f"The role '{name}' already exists.", code="ROLE_EXISTS")

        role = Group.objects.create(name=name)
        self._sync_permissions(role, permissions)
        self.log_info("Role created", role=name)
        return role

    @transaction.atomic
    def update(self, role: Group, name: Optional[str] = None, permissions: Optional[Iterable[str]] = None) -> Group:
        if role.name == Roles.SUPER_ADMIN:
            raise BusinessLogicError(
                message="The Super Admin role cannot be modified.",
                code="PROTECTED_ROLE"
            )
        if name is not None:
            name = name.strip()
            if name == Roles.SUPER_ADMIN:
                raise BusinessLogicError(
                    message="A role cannot be renamed to Super Admin.",
                    code="PROTECTED_ROLE"
                )
            if Group.objects.filter(name=name).exclude(pk=role.pk).exists():
                raise ValidationError(message=f"The role '{name}' already exists.", code="ROLE_EXISTS")
            role.name = name
            role.save()
        if permissions is not None:
            self._sync_permissions(role, permissions)
        self.log_info("Role updated", role=role.name)
        return role

    @transaction.atomic
    def delete(self, role: Group):
        if role.name == Roles.SUPER_ADMIN:
            raise BusinessLogicError(
                message="The Super Admin role cannot be deleted.",
                code="PROTECTED_ROLE"
            )
        if role.user_set.exists():
            raise BusinessLogicError(
                message="Cannot delete a role that is assigned to users.",
                code="ROLE_IN_USE",
                details={"users": role.user_set.count()}
            )
        name = role.name
        role.delete()
        menu_registry.clear_cache()
        self.log_info("Role deleted", role=name)

    def _sync_permissions(self, role: Group, names: Iterable[str]):
        permissions = []
        unknown = []
        for name in names or []:
            permission = get_permission_by_name(name)
            if permission is None:
                unknown.append(name)
            else:
                permissions.append(permission)
        if unknown:
            raise ValidationError(
                message=f"Unknown permission(s): {', '.join(unknown)}",
                code="UNKNOWN_PERMISSION",
                details={"permissions": unknown}
            )
        role.permissions.set(permissions)
        menu_registry.clear_cache()


class PermissionService(BaseService):
    """Read access to registered permissions"""

    def group_by_module(self) -> dict:
        grouped = {}
        permissions = (
            Permission.objects.filter(content_type__model=PERMISSION_MODEL)
            .select_related('content_type')
            .order_by('content_type__app_label', 'codename')
        )
        for permission in permissions:
            module = permission.content_type.app_label
            grouped.setdefault(module, []).append({
                'id': permission.pk,
                'name': permission_full_name(permission),
                'label': permission.codename.replace('.', ' ').replace('_', ' ').title(),
            })
        return grouped


class SuperAdminService(BaseService):
    """Bootstraps the configured Super Admin account"""

    def ensure_exists(self, email: Optional[str] = None, password: Optional[str] = None,
                      username: Optional[str] = None):
        """
        Create the Super Admin user and role if missing.

        Returns:
            (user, created) tuple
        """
        email = email or getattr(settings, 'SUPER_ADMIN_EMAIL', 'admin@example.com')
        password = password or getattr(settings, 'SUPER_ADMIN_PASSWORD', None)
        username = username or getattr(settings, 'SUPER_ADMIN_USERNAME', None) or email.split('@')[0]

        role, _ = Group.objects.get_or_create(name=Roles.SUPER_ADMIN)
        user = User.objects.filter(email__iexact=email).first()
        created = user is None

        if created:
            if not password:
                raise ValidationError(
                    message="SUPER_ADMIN_PASSWORD must be configured to create the Super Admin.",
                    code="SUPER_ADMIN_PASSWORD_MISSING"
                )
            user = User(username=username, email=email, name='Super Admin', is_staff=True, is_active=True)
            user.set_password(password)
            user.save()
            self.log_info("Super Admin created", email=email)

        user.groups.add(role)
        return user, created
