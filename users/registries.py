"""
Role and permission registries.

Modules declare their roles and permissions at startup. `seed()` turns them
into django.contrib.auth Groups and Permissions:

- a permission named `module.resource.action` is stored with
  app_label=`module` (content type model `modulepermission`) and
  codename=`resource.action`, so `user.has_perm('module.resource.action')`
  resolves through the standard ModelBackend
- role assignments accept exact names or `prefix.*` wildcards
"""
import logging
from typing import Dict, Iterable, List, Optional

from django.contrib.auth import get_user_model
from django.contrib.auth.models import Group, Permission
from django.contrib.contenttypes.models import ContentType
from django.db import transaction

from core.constants import Roles
from core.dto import PermissionDTO, RoleDTO

logger = logging.getLogger(__name__)

PERMISSION_MODEL = 'modulepermission'


def build_permission_name(module: str, permission: str) -> str:
    """Full `module.name` of a permission registered by module"""
    return f"{module}.{permission}"


def qualify_pattern(module: str, pattern: str) -> str:
    """Role grant patterns are full names; a pattern without the module prefix gets it"""
    if pattern == module or pattern.startswith(f"{module}."):
        return pattern
    return f"{module}.{pattern}"


def get_permission_content_type(module: str) -> ContentType:
    content_type, _ = ContentType.objects.get_or_create(app_label=module, model=PERMISSION_MODEL)
    return content_type


def get_permission_by_name(full_name: str) -> Optional[Permission]:
    """Look up a registered permission by its dotted `module.resource.action` name"""
    if '.' not in full_name:
        return None
    module, codename = full_name.split('.', 1)
    return Permission.objects.filter(
        content_type__app_label=module,
        content_type__model=PERMISSION_MODEL,
        codename=codename,
    ).first()


def permission_full_name(permission: Permission) -> str:
    return f"{permission.content_type.app_label}.{permission.codename}"


# ============================================================================
# ROLE REGISTRY
# ============================================================================

class RoleRegistry:
    """Process-wide collection of module roles"""

    def __init__(self):
        self._roles: List[RoleDTO] = []
        self._registered: Dict[str, set] = {}

    def register(self, module: str, name: str):
        module = module.lower()
        module_roles = self._registered.setdefault(module, set())
        if name in module_roles:
            logger.warning(f"RoleRegistry: duplicate role registration | Context: {{'module': '{module}', 'name': '{name}'}}")
            return
        module_roles.add(name)
        self._roles.append(RoleDTO(module=module, name=name))

    def register_many(self, module: str, roles: Iterable):
        for role in roles:
            self.register(module, role['name'] if isinstance(role, dict) else role)

    def get_roles(self) -> List[RoleDTO]:
        return list(self._roles)

    def get_roles_by_module(self, module: str) -> List[RoleDTO]:
        module = module.lower()
        return [role for role in self._roles if role.module == module]

    def get_role(self, name: str) -> Optional[Group]:
        return Group.objects.filter(name=name).first()

    def clear(self):
        self._roles = []
        self._registered = {}

    @transaction.atomic
    def seed(self, strict: bool = False) -> dict:
        created = found = errors = 0
        for role in self._roles:
            try:
                _, was_created = Group.objects.get_or_create(name=role.name)
            except Exception as e:
                errors += 1
                logger.error(f"RoleRegistry: failed to create role '{role.name}': {e}")
                if strict:
                    raise
                continue
            if was_created:
                created += 1
            else:
                found += 1

        if self._roles:
            logger.debug(f"RoleRegistry: seeding completed | Context: {{'created': {created}, 'found': {found}, 'errors': {errors}}}")
        return {'created': created, 'found': found, 'errors': errors}

    @transaction.atomic
    def cleanup(self, module: str) -> dict:
        """Delete the module's roles, keeping protected roles and roles still assigned to users"""
        module = module.lower()
        deleted = skipped = 0

        for role_data in self.get_roles_by_module(module):
            role = self.get_role(role_data.name)
            if role is None:
                continue
            if role_data.name == Roles.SUPER_ADMIN:
                logger.info(f"RoleRegistry: skipping protected role '{role_data.name}'")
                skipped += 1
                continue
            if role.user_set.exists():
                logger.info(f"RoleRegistry: skipping role '{role_data.name}' (has users assigned)")
                skipped += 1
                continue
            role.permissions.clear()
            role.delete()
            deleted += 1

        logger.info(f"RoleRegistry: cleanup completed for module '{module}' | Context: {{'deleted': {deleted}, 'skipped': {skipped}}}")
        return {'deleted': deleted, 'skipped': skipped}


# ============================================================================
# PERMISSION REGISTRY
# ============================================================================

class PermissionRegistry:
    """Process-wide collection of module permissions and their default role grants"""

    def __init__(self, role_registry: RoleRegistry):
        self.role_registry = role_registry
        self._groups: List[dict] = []
        self._registered: Dict[str, set] = {}

    def register(self, module: str, permissions: Iterable[str], roles: Optional[Dict[str, List[str]]] = None):
        """
        Register permissions for a module.

        Args:
            module: Module key, lowercased and used as the permission prefix
            permissions: Names relative to the module, e.g. 'vault.view'
            roles: Default grants, {role_name: [name or 'prefix.*', ...]}
        """
        module = module.lower()
        valid = [p.strip() for p in (permissions or []) if isinstance(p, str) and p.strip()]
        if not valid:
            logger.warning(f"PermissionRegistry: no valid permission names provided | Context: {{'module': '{module}'}}")
            return

        module_permissions = self._registered.setdefault(module, set())
        unique = []
        for permission in valid:
            full_name = build_permission_name(module, permission)
            if full_name in module_permissions:
                logger.warning(f"PermissionRegistry: skipping duplicate permission | Context: {{'permission': '{full_name}'}}")
                continue
            module_permissions.add(full_name)
            unique.append(full_name)

        if not unique:
            logger.warning(f"PermissionRegistry: all permissions were duplicates | Context: {{'module': '{module}'}}")
            return

        self._groups.append({
            'module': module,
            'permissions': [PermissionDTO(module=module, name=name) for name in unique],
            'roles': dict(roles or {}),
        })

    def register_many(self, module: str, groups: Iterable[dict]):
        for group in groups:
            self.register(module, group['permissions'], group.get('roles'))

    def get_permissions(self) -> List[dict]:
        return list(self._groups)

    def get_by_module(self, module: str) -> List[dict]:
        module = module.lower()
        return [group for group in self._groups if group['module'] == module]

    def get_permission_names(self) -> List[str]:
        return [permission.name for group in self._groups for permission in group['permissions']]

    def get_role_assignments(self) -> Dict[str, List[str]]:
        """Default grants of every module as {role: [full pattern, ...]}"""
        assignments: Dict[str, List[str]] = {}
        for group in self._groups:
            for role_name, patterns in group['roles'].items():
                merged = assignments.setdefault(role_name, [])
                for pattern in patterns or []:
                    full_pattern = qualify_pattern(group['module'], pattern)
                    if full_pattern not in merged:
                        merged.append(full_pattern)
        return assignments

    def clear(self):
        self._groups = []
        self._registered = {}

    @transaction.atomic
    def seed(self, strict: bool = False) -> dict:
        created = found = errors = 0

        for group in self._groups:
            module = group['module']
            content_type = get_permission_content_type(module)
            seeded = []
            for dto in group['permissions']:
                try:
                    permission, was_created = Permission.objects.get_or_create(
                        content_type=content_type,
                        codename=dto.codename,
                        defaults={'name': dto.name},
                    )
                except Exception as e:
                    errors += 1
                    logger.error(f"PermissionRegistry: failed to create permission '{dto.name}': {e}")
                    if strict:
                        raise
                    continue
                seeded.append((dto.name, permission))
                if was_created:
                    created += 1
                else:
                    found += 1

            if group['roles'] and seeded:
                self._assign_to_roles(module, seeded, group['roles'])

        if self._groups:
            from common.menus import menu_registry
            menu_registry.clear_cache()
            logger.debug(
                f"PermissionRegistry: seeding completed | Context: "
                f"{{'created': {created}, 'found': {found}, 'errors': {errors}, 'groups': {len(self._groups)}}}"
            )
        return {'created': created, 'found': found, 'errors': errors}

    def _assign_to_roles(self, module: str, seeded: list, role_assignments: dict):
        for role_name, patterns in role_assignments.items():
            if not isinstance(role_name, str) or not role_name.strip():
                logger.warning(f"PermissionRegistry: invalid role name | Context: {{'module': '{module}'}}")
                continue
            if not patterns:
                logger.warning(f"PermissionRegistry: no permission patterns for role '{role_name}'")
                continue

            role = self.role_registry.get_role(role_name)
            if role is None:
                role, _ = Group.objects.get_or_create(name=role_name)
                logger.debug(f"PermissionRegistry: created role during permission assignment: {role_name}")

            to_assign = {}
            for pattern in patterns:
                if not isinstance(pattern, str) or not pattern.strip():
                    logger.warning(f"PermissionRegistry: invalid permission pattern for role '{role_name}'")
                    continue
                if pattern.endswith('.*'):
                    prefix = pattern[:-2]
                    if '*' in prefix:
                        logger.warning(f"PermissionRegistry: nested wildcard pattern '{pattern}' ignored")
                        continue
                    full_prefix = qualify_pattern(module, prefix)
                    for name, permission in seeded:
                        if name.startswith(f"{full_prefix}."):
                            to_assign[name] = permission
                else:
                    full_name = qualify_pattern(module, pattern)
                    for name, permission in seeded:
                        if name == full_name:
                            to_assign[name] = permission

            if to_assign:
                role.permissions.add(*to_assign.values())

    @transaction.atomic
    def cleanup(self, module: str) -> dict:
        """Delete every permission of module after detaching it from roles and users"""
        module = module.lower()
        permissions = Permission.objects.filter(content_type__app_label=module, content_type__model=PERMISSION_MODEL)
        permission_ids = list(permissions.values_list('id', flat=True))
        if not permission_ids:
            logger.info(f"PermissionRegistry: no permissions found for '{module}'")
            return {'deleted': 0, 'roles_cleaned': 0, 'models_cleaned': 0}

        roles_cleaned, _ = Group.permissions.through.objects.filter(permission_id__in=permission_ids).delete()
        models_cleaned, _ = get_user_model().user_permissions.through.objects.filter(
            permission_id__in=permission_ids
        ).delete()
        deleted, _ = Permission.objects.filter(id__in=permission_ids).delete()

        from common.menus import menu_registry
        menu_registry.clear_cache()

        logger.info(
            f"PermissionRegistry: permission cleanup completed for '{module}' | Context: "
            f"{{'deleted': {deleted}, 'roles_cleaned': {roles_cleaned}, 'models_cleaned': {models_cleaned}}}"
        )
        return {'deleted': deleted, 'roles_cleaned': roles_cleaned, 'models_cleaned': models_cleaned}


role_registry = RoleRegistry()
permission_registry = PermissionRegistry(role_registry)
