"""
Settings registry.

Modules declare their settings at startup. `seed()` creates missing rows and
refreshes metadata on existing ones without touching user-edited values,
unless the declared type changed.
"""
import logging
from typing import List, Optional

from django.db import transaction

from app_settings.models import Setting
from core.constants import SettingType
from core.dto import SettingDTO

logger = logging.getLogger(__name__)


def _to_storage(value) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, bool):
        return '1' if value else '0'
    return str(value)


class SettingsRegistry:
    """Process-wide collection of module settings"""

    def __init__(self):
        self._settings: List[SettingDTO] = []
        self._owners = {}

    def register(self, module: str, group: str, key: str, value=None, type: str = SettingType.TEXT,
                 label: Optional[str] = None, is_system: bool = False):
        """
        Register a setting.

        Raises:
            RuntimeError: the key already belongs to another module
        """
        module = module.lower()
        owner = self._owners.get(key)
        if owner is not None and owner != module:
            raise RuntimeError(
                f"Setting key '{key}' is already registered by module '{owner}'. "
                f"Module '{module}' cannot register a duplicate key."
            )
        if owner == module:
            self._settings = [setting for setting in self._settings if setting.key != key]

        self._owners[key] = module
        self._settings.append(SettingDTO(
            module=module,
            group=group,
            key=key,
            value=_to_storage(value),
            type=type,
            label=label or key.replace('_', ' ').title(),
            is_system=is_system,
        ))

    def register_many(self, module: str, group: str, settings: list):
        for setting in settings:
            self.register(
                module=module,
                group=group,
                key=setting['key'],
                value=setting.get('value'),
                type=setting.get('type', SettingType.TEXT),
                label=setting.get('label'),
                is_system=setting.get('is_system', False),
            )

    def get_settings(self) -> List[SettingDTO]:
        return list(self._settings)

    def get_settings_by_module(self, module: str) -> List[SettingDTO]:
        module = module.lower()
        return [setting for setting in self._settings if setting.module == module]

    def get_module_for_key(self, key: str) -> Optional[str]:
        return self._owners.get(key)

    def clear(self):
        self._settings = []
        self._owners = {}

    @transaction.atomic
    def seed(self, strict: bool = False) -> dict:
        """Create missing settings and refresh metadata on existing ones"""
        if not self._settings:
            return {'created': 0, 'updated': 0, 'errors': 0}

        existing = Setting.objects.in_bulk([setting.key for setting in self._settings], field_name='key')
        created = updated = errors = 0

        for setting in self._settings:
            try:
                current = existing.get(setting.key)
                if current is None:
                    Setting.objects.create(
                        module=setting.module,
                        group=setting.group,
                        key=setting.key,
                        value=setting.value,
                        type=setting.type,
                        label=setting.label,
                        is_system=setting.is_system,
                    )
                    created += 1
                    continue

                if current.type != setting.type:
                    logger.info(
                        f"SettingsRegistry: type changed, resetting to default | Context: "
                        f"{{'key': '{setting.key}', 'old_type': '{current.type}', 'new_type': '{setting.type}'}}"
                    )
                    current.value = setting.value

                current.module = setting.module
                current.group = setting.group
                current.type = setting.type
                current.label = setting.label
                current.is_system = setting.is_system
                current.save()
                updated += 1
            except Exception as e:
                errors += 1
                logger.error(
                    f"SettingsRegistry: failed to seed setting | Context: "
                    f"{{'module': '{setting.module}', 'key': '{setting.key}'}}: {e}"
                )
                if strict:
                    raise

        logger.debug(f"SettingsRegistry: seeding completed | Context: {{'created': {created}, 'updated': {updated}, 'errors': {errors}}}")
        return {'created': created, 'updated': updated, 'errors': errors}

    @transaction.atomic
    def cleanup(self, module: str) -> dict:
        """Delete the settings a module registered"""
        module = module.lower()
        keys = [setting.key for setting in self.get_settings_by_module(module)]
        if not keys:
            logger.info(f"SettingsRegistry: no settings found for module '{module}'")
            return {'deleted': 0}

        deleted, _ = Setting.objects.filter(key__in=keys).delete()
        logger.info(f"SettingsRegistry: cleaned up settings | Context: {{'module': '{module}', 'count': {deleted}}}")
        return {'deleted': deleted}


settings_registry = SettingsRegistry()
