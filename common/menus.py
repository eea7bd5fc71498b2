"""
Menu registry.

Modules register navigation entries at startup; `seed()` persists them and
`get_menus(user)` returns the permission-filtered, grouped tree for a user.
"""
import logging
from typing import Optional

from django.db import transaction

from common.models import Menu
from core.cache import get_cache_service
from core.constants import MENU_PRIORITY_GROUPS
from core.dto import MenuItemDTO

logger = logging.getLogger(__name__)

CACHE_TAG = 'menus'
CACHE_TTL = 24 * 60 * 60
MAX_DEPTH = 10


class MenuRegistry:
    """Process-wide collection of module menu entries"""

    def __init__(self):
        self._items = []
        self._routes = set()

    def register_item(self, label: str, route: str, icon: Optional[str] = None, order: Optional[int] = None,
                      parent: Optional[str] = None, group: str = 'Main', permission: Optional[str] = None,
                      module: Optional[str] = None):
        """
        Register a menu entry.

        Args:
            label: Text shown in navigation
            route: Unique route name, also the key children refer to via `parent`
            icon: Icon name
            order: Sort position inside its group, defaults to registration order * 10
            parent: Route of the parent entry
            group: Sidebar section
            permission: Permission required to see the entry
            module: Owning module, used by cleanup
        """
        if route in self._routes:
            logger.warning(f"MenuRegistry: duplicate menu registration | Context: {{'route': '{route}', 'label': '{label}'}}")
            return

        self._routes.add(route)
        self._items.append(MenuItemDTO(
            label=label,
            route=route,
            icon=icon,
            order=order if order is not None else len(self._items) * 10,
            parent=parent,
            group=group,
            permission=permission,
            module=module.lower() if module else None,
        ))

    register = register_item

    def get_registered_menus(self):
        return list(self._items)

    def clear(self):
        self._items = []
        self._routes = set()

    @transaction.atomic
    def seed(self, strict: bool = False) -> dict:
        """Persist registered menus, parents first, then children level by level"""
        if not self._items:
            return {'created': 0, 'found': 0, 'errors': 0}

        existing = {menu.route: menu for menu in Menu.objects.all()}
        resolved = {}
        created = found = errors = 0

        for item in self._items:
            if item.parent:
                continue
            if item.route in existing:
                resolved[item.route] = existing[item.route]
                found += 1
                continue
            try:
                menu = self._create(item, None)
            except Exception as e:
                errors += 1
                logger.error(f"MenuRegistry: failed to create menu '{item.route}': {e}")
                if strict:
                    raise
                continue
            resolved[item.route] = existing[item.route] = menu
            created += 1

        depth = 0
        while depth < MAX_DEPTH:
            created_in_pass = False
            for item in self._items:
                if not item.parent or item.route in resolved:
                    continue
                if item.route in existing:
                    resolved[item.route] = existing[item.route]
                    found += 1
                    continue
                parent = resolved.get(item.parent) or existing.get(item.parent)
                if parent is None:
                    continue
                try:
                    menu = self._create(item, parent)
                except Exception as e:
                    errors += 1
                    logger.error(f"MenuRegistry: failed to create child menu '{item.route}': {e}")
                    if strict:
                        raise
                    continue
                resolved[item.route] = existing[item.route] = menu
                created += 1
                created_in_pass = True
            if not created_in_pass:
                break
            depth += 1

        if depth >= MAX_DEPTH:
            logger.warning("MenuRegistry: maximum depth reached while seeding menus")

        logger.debug(f"MenuRegistry: seeding completed | Context: {{'created': {created}, 'found': {found}, 'errors': {errors}}}")
        self.clear_cache()
        return {'created': created, 'found': found, 'errors': errors}

    @staticmethod
    def _create(item: MenuItemDTO, parent: Optional[Menu]) -> Menu:
        return Menu.objects.create(
            parent=parent,
            group=item.group,
            label=item.label,
            route=item.route,
            icon=item.icon,
            order=item.order,
            permission=item.permission,
            module=item.module,
            is_active=True,
        )

    @transaction.atomic
    def cleanup(self, module: str) -> dict:
        """Delete every menu owned by module. Children owned by other modules are kept as roots."""
        module = module.lower()
        menu_ids = list(Menu.objects.for_module(module).values_list('id', flat=True))
        if not menu_ids:
            logger.info(f"MenuRegistry: no menus found for module '{module}'")
            return {'deleted': 0, 'orphaned': 0}

        orphaned = Menu.objects.filter(parent_id__in=menu_ids, module__isnull=False).exclude(module=module).count()
        if orphaned:
            logger.warning(f"MenuRegistry: {orphaned} orphaned menus detected while removing module '{module}'")

        deleted, _ = Menu.objects.filter(id__in=menu_ids).delete()

        logger.info(f"MenuRegistry: cleaned up menus for module '{module}' | Context: {{'deleted': {deleted}, 'orphaned': {orphaned}}}")
        self.clear_cache()
        return {'deleted': deleted, 'orphaned': orphaned}

    def get_menus(self, user=None) -> list:
        """Return [{'group': ..., 'items': [...]}, ...] visible to user"""
        user_id = getattr(user, 'pk', None) or ''
        return get_cache_service().remember(
            f"menus:user:{user_id}",
            CACHE_TTL,
            lambda: self._load_menus(user),
            tags=CACHE_TAG,
            context='MenuRegistry',
        )

    def _load_menus(self, user) -> list:
        menus = list(Menu.objects.active().order_by('group', 'order'))
        children = {}
        for menu in menus:
            if menu.parent_id is not None:
                children.setdefault(menu.parent_id, []).append(menu)

        grouped = {}
        for menu in menus:
            if menu.parent_id is not None:
                continue
            item = self._build_item(menu, children, user)
            if item is not None:
                grouped.setdefault(menu.group, []).append(item)

        def group_key(name):
            if name in MENU_PRIORITY_GROUPS:
                return (MENU_PRIORITY_GROUPS.index(name), '')
            return (len(MENU_PRIORITY_GROUPS), name.lower())

        return [
            {'group': group, 'items': sorted(grouped[group], key=lambda entry: entry['order'])}
            for group in sorted(grouped, key=group_key)
        ]

    def _build_item(self, menu: Menu, children: dict, user) -> Optional[dict]:
        if menu.permission:
            if user is None or not user.has_perm(menu.permission):
                return None

        item = {
            'label': menu.label,
            'route': menu.route,
            'icon': menu.icon,
            'order': menu.order,
        }
        if menu.permission:
            item['permission'] = menu.permission

        visible_children = []
        for child in sorted(children.get(menu.id, []), key=lambda entry: entry.order):
            child_item = self._build_item(child, children, user)
            if child_item is not None:
                visible_children.append(child_item)
        if visible_children:
            item['children'] = visible_children
        return item

    def clear_cache(self):
        get_cache_service().clear_tag(CACHE_TAG, 'MenuRegistry')

    def clear_cache_for_user(self, user):
        user_id = getattr(user, 'pk', user)
        get_cache_service().forget(f"menus:user:{user_id}", CACHE_TAG, 'MenuRegistry')


menu_registry = MenuRegistry()
