"""
Signal notification services.

SignalService creates notifications, honouring the per-category toggles
registered in the SignalCategoryRegistry. SignalCacheService caches the
unread count and the recent list a notification bell polls for.
"""
from typing import Optional

from app_settings.services import SettingsService
from core.cache import get_cache_service
from core.constants import NotificationType
from core.services import BaseService
from notifications.models import Notification
from notifications.registry import SignalCategoryRegistry, signal_category_registry
from notifications.serializers import NotificationSerializer
from notifications.signals import notification_received

CACHE_TAG = 'signal'
UNREAD_COUNT_TTL = 300
RECENT_TTL = 120
DEFAULT_RECENT_LIMIT = 5


class SignalCacheService(BaseService):
    """Per-user notification caches tagged `signal` and `signal:user:{id}`"""

    def __init__(self):
        super().__init__()
        self.cache = get_cache_service()

    @staticmethod
    def user_key(user, suffix: str) -> str:
        return f"signal:user:{user.pk}:{suffix}"

    @staticmethod
    def user_tag(user) -> str:
        return f"signal:user:{user.pk}"

    def user_tags(self, user) -> list:
        return [CACHE_TAG, self.user_tag(user)]

    def get_unread_count(self, user) -> int:
        return self.cache.remember(
            self.user_key(user, 'unread_count'),
            UNREAD_COUNT_TTL,
            lambda: Notification.objects.for_user(user).unread().count(),
            tags=self.user_tags(user),
            context='SignalCacheService',
        )

    def get_recent_notifications(self, user, limit: Optional[int] = None) -> list:
        limit = limit or DEFAULT_RECENT_LIMIT

        def load():
            notifications = Notification.objects.for_user(user).order_by('-created_at')[:limit]
            return self.format_notifications(notifications)

        return self.cache.remember(
            self.user_key(user, f"recent_{limit}"),
            RECENT_TTL,
            load,
            tags=self.user_tags(user),
            context='SignalCacheService',
        )

    @staticmethod
    def format_notifications(notifications) -> list:
        return [dict(item) for item in NotificationSerializer(notifications, many=True).data]

    def invalidate_user_cache(self, user) -> bool:
        return self.cache.flush(self.user_tag(user), context='SignalCacheService')

    def invalidate_all(self) -> bool:
        return self.cache.flush(CACHE_TAG, context='SignalCacheService')


class SignalPreferenceService:
    """Resolves whether a notification category is switched on"""

    def __init__(self, category_registry: Optional[SignalCategoryRegistry] = None, settings_service=None):
        self.category_registry = category_registry or signal_category_registry
        self.settings_service = settings_service

    def is_enabled(self, user, category: str) -> bool:
        setting_key = self.category_registry.get_setting_key(category)
        if setting_key is None:
            return True

        try:
            if self.settings_service is None:
                self.settings_service = SettingsService()
            value = self.settings_service.get(setting_key, True)
        except Exception:
            return True

        if isinstance(value, str):
            return value.strip().lower() in ('1', 'true', 'yes', 'on')
        return bool(value)


class SignalService(BaseService):
    """
    Send in-app notifications.

    Example:
        SignalService().success(user, "Export ready", "Your CSV export finished.", category='system')
    """

    def __init__(self, cache_service: Optional[SignalCacheService] = None,
                 preference_service: Optional[SignalPreferenceService] = None):
        super().__init__()
        self.cache_service = cache_service or SignalCacheService()
        self.preference_service = preference_service or SignalPreferenceService()

    def info(self, user, title, message, url=None, module_source=None, category=None):
        return self.send(user, title, message, NotificationType.INFO, url, module_source, category)

    def success(self, user, title, message, url=None, module_source=None, category=None):
        return self.send(user, title, message, NotificationType.SUCCESS, url, module_source, category)

    def warning(self, user, title, message, url=None, module_source=None, category=None):
        return self.send(user, title, message, NotificationType.WARNING, url, module_source, category)

    def alert(self, user, title, message, url=None, module_source=None, category=None):
        return self.send(user, title, message, NotificationType.ERROR, url, module_source, category)

    def send(self, user, title: str, message: str, type: str = NotificationType.INFO, url: Optional[str] = None,
             module_source: Optional[str] = None, category: Optional[str] = None) -> Optional[Notification]:
        """
        Store a notification for user.

        Returns None when the category is switched off.
        """
        if category is not None and not self.preference_service.is_enabled(user, category):
            self.logger.debug(f"Notification skipped, category disabled | Context: {{'category': '{category}', 'user_id': {user.pk}}}")
            return None

        notification = Notification.objects.create(
            user=user,
            type=type,
            title=title,
            message=message,
            action_url=url,
            module_source=module_source,
        )
        self.cache_service.invalidate_user_cache(user)

        try:
            notification_received.send(sender=Notification, user=user, notification=notification)
        except Exception as e:
            self.logger.debug(f"Signal broadcast failed: {e}")

        return notification
