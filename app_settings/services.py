"""
Settings service.

Reads go through a single cached snapshot of every setting, stored forever
under `app_settings` and invalidated through the `settings` tag on writes.
"""
from collections import OrderedDict
from typing import Optional

from app_settings.models import Setting
from app_settings.registry import SettingsRegistry, settings_registry
from core.cache import get_cache_service
from core.exceptions import NotFoundError
from core.repositories import BaseRepository
from core.services import BaseService
from core.validators import SettingValueValidator

CACHE_KEY = 'app_settings'
CACHE_TAG = 'settings'


class SettingRepository(BaseRepository):
    """Data access for settings"""

    def __init__(self):
        super().__init__(Setting)

    def get_by_key(self, key: str) -> Optional[Setting]:
        return self.model.objects.filter(key=key).first()


def _serialize(setting: Setting) -> dict:
    return {
        'id': setting.id,
        'module': setting.module,
        'group': setting.group,
        'key': setting.key,
        'value': setting.cast_value(),
        'type': setting.type,
        'label': setting.label,
        'is_system': setting.is_system,
    }


class SettingsService(BaseService):
    """Cached access to the settings registered by modules"""

    def __init__(self, registry: Optional[SettingsRegistry] = None):
        super().__init__()
        self.registry = registry or settings_registry
        self.repository = SettingRepository()
        self.cache = get_cache_service()

    def _load(self) -> dict:
        def load():
            return {setting.key: _serialize(setting) for setting in Setting.objects.order_by('group', 'key')}

        return self.cache.remember_forever(CACHE_KEY, load, tags=CACHE_TAG, context='SettingsService')

    def get(self, key: str, default=None):
        """
        Get a setting value cast to its type.

        A key that is registered but not yet persisted triggers one sync.
        Any failure returns the default.
        """
        try:
            settings = self._load()
            if key not in settings and self.registry.get_module_for_key(key) is not None:
                self.sync()
                settings = self._load()

            setting = settings.get(key)
            if setting is None or setting['value'] is None:
                return default
            return setting['value']
        except Exception as e:
            self.logger.debug(f"Setting lookup failed, using default | Context: {{'key': '{key}'}}: {e}")
            return default

    def set(self, key: str, value) -> Setting:
        """
        Update a setting value.

        Raises:
            NotFoundError: the key is not registered
            ValidationError: the value does not match the setting type
        """
        setting = self.repository.get_by_key(key)
        if setting is None:
            raise NotFoundError(
                resource_type='Setting',
                resource_id=key,
                message=f"Setting key '{key}' does not exist.",
                code='SETTING_NOT_FOUND',
                details={'key': key}
            )

        setting.value = SettingValueValidator.validate(key, setting.type, value)
        setting.save(update_fields=['value', 'updated_at'])
        self.clear_cache()

        self.log_info("Setting updated", key=key)
        return setting

    def all(self) -> dict:
        """Settings grouped by group"""
        grouped = OrderedDict()
        for setting in self._load().values():
            grouped.setdefault(setting['group'], []).append(setting)
        return grouped

    def sync(self) -> dict:
        """Persist the registry and drop the cached snapshot"""
        result = self.registry.seed()
        self.clear_cache()
        return result

    def cleanup(self, module: str) -> dict:
        result = self.registry.cleanup(module)
        if result.get('deleted'):
            self.clear_cache()
        return result

    def clear_cache(self) -> bool:
        return self.cache.clear_tag(CACHE_TAG, context='SettingsService')


def get_setting(key: str, default=None):
    """Shortcut for SettingsService().get()"""
    return SettingsService().get(key, default)
