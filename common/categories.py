"""
Category registry.

Modules register typed categories (e.g. vault categories) at startup and
`seed()` persists them, resolving parents by slug within the same type.
"""
import logging
from collections import OrderedDict
from typing import Optional

from django.db import transaction
from django.utils.text import slugify

from common.models import Category
from core.dto import CategoryDTO

logger = logging.getLogger(__name__)

MAX_DEPTH = 10


class CategoryRegistry:
    """Process-wide collection of module categories"""

    def __init__(self):
        self._categories = []
        self._registered = {}

    def register(self, module: str, type: str, name: str, slug: Optional[str] = None,
                 parent_slug: Optional[str] = None, color: Optional[str] = None,
                 description: Optional[str] = None):
        module = module.lower()
        type = type.lower()
        slug = slug or slugify(name)
        key = f"{type}:{slug}"

        module_keys = self._registered.setdefault(module, set())
        if key in module_keys:
            logger.warning(f"CategoryRegistry: duplicate category registration | Context: {{'module': '{module}', 'key': '{key}'}}")
            return
        module_keys.add(key)

        self._categories.append(CategoryDTO(
            module=module,
            name=name,
            slug=slug,
            type=type,
            color=color,
            description=description,
            parent_slug=parent_slug,
        ))

    def register_many(self, module: str, type: str, categories: list):
        for category in categories:
            self.register(
                module=module,
                type=type,
                name=category['name'],
                slug=category.get('slug'),
                parent_slug=category.get('parent_slug'),
                color=category.get('color'),
                description=category.get('description'),
            )

    def get_categories(self):
        return list(self._categories)

    def get_by_module(self, module: str):
        module = module.lower()
        return [category for category in self._categories if category.module == module]

    def get_by_type(self, type: str):
        type = type.lower()
        return [category for category in self._categories if category.type == type]

    def clear(self):
        self._categories = []
        self._registered = {}

    @transaction.atomic
    def seed(self, strict: bool = False) -> dict:
        totals = {'created': 0, 'found': 0, 'errors': 0}
        if not self._categories:
            return totals

        by_type = OrderedDict()
        for category in self._categories:
            by_type.setdefault(category.type, []).append(category)

        for type, categories in by_type.items():
            stats = self._seed_type(type, categories, strict)
            for name in totals:
                totals[name] += stats[name]

        logger.debug(f"CategoryRegistry: seeding completed | Context: {totals}")
        return totals

    def _seed_type(self, type: str, categories: list, strict: bool) -> dict:
        created = found = errors = 0
        existing = {category.slug: category for category in Category.objects.filter(type=type)}
        resolved = {}

        for category in categories:
            if category.parent_slug:
                continue
            if category.slug in existing:
                resolved[category.slug] = existing[category.slug]
                found += 1
                continue
            try:
                resolved[category.slug] = existing[category.slug] = self._create(category, None)
                created += 1
            except Exception as e:
                errors += 1
                logger.error(f"CategoryRegistry: failed to create category '{category.key}': {e}")
                if strict:
                    raise

        depth = 0
        while depth < MAX_DEPTH:
            created_in_pass = False
            for category in categories:
                if not category.parent_slug or category.slug in resolved:
                    continue
                if category.slug in existing:
                    resolved[category.slug] = existing[category.slug]
                    found += 1
                    continue
                parent = resolved.get(category.parent_slug)
                if parent is None:
                    continue
                if parent.type != category.type:
                    logger.warning(
                        f"CategoryRegistry: parent type mismatch | Context: "
                        f"{{'category': '{category.key}', 'parent_type': '{parent.type}'}}"
                    )
                    continue
                try:
                    resolved[category.slug] = existing[category.slug] = self._create(category, parent)
                    created += 1
                    created_in_pass = True
                except Exception as e:
                    errors += 1
                    logger.error(f"CategoryRegistry: failed to create child category '{category.key}': {e}")
                    if strict:
                        raise
            if not created_in_pass:
                break
            depth += 1

        if depth >= MAX_DEPTH:
            logger.warning(f"CategoryRegistry: maximum depth reached while seeding type '{type}'")

        return {'created': created, 'found': found, 'errors': errors}

    @staticmethod
    def _create(category: CategoryDTO, parent: Optional[Category]) -> Category:
        return Category.objects.create(
            parent=parent,
            module=category.module,
            type=category.type,
            name=category.name,
            slug=category.slug,
            color=category.color,
            description=category.description,
        )

    @transaction.atomic
    def cleanup(self, module: str) -> dict:
        module = module.lower()
        category_ids = list(Category.objects.filter(module=module).values_list('id', flat=True))
        if not category_ids:
            logger.info(f"CategoryRegistry: no categories found for module '{module}'")
            return {'deleted': 0, 'orphaned': 0}

        orphaned = Category.objects.filter(
            parent_id__in=category_ids, module__isnull=False
        ).exclude(module=module).count()
        if orphaned:
            logger.warning(f"CategoryRegistry: {orphaned} orphaned categories detected while removing module '{module}'")

        deleted, _ = Category.objects.filter(id__in=category_ids).delete()
        logger.info(f"CategoryRegistry: cleaned up categories for module '{module}' | Context: {{'deleted': {deleted}}}")
        return {'deleted': deleted, 'orphaned': orphaned}


category_registry = CategoryRegistry()
