"""
Dashboard widget registry.

Widgets are registered in memory by module registrars and computed on
demand. Callable values and data are resolved with the requesting user and
cached through the tag-aware CacheService:

- `dashboard_widgets` clears every widget
- `dashboard_widgets:{module}` clears one module's widgets
"""
import hashlib
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Union

from django.conf import settings

from core.cache import get_cache_service
from core.constants import WidgetScope, WidgetType

logger = logging.getLogger(__name__)

CACHE_TAG = 'dashboard_widgets'
CACHE_PREFIX = 'dashboard_widget:'
DEFAULT_CACHE_TTL = 300
MAX_OVERVIEW_STATS_PER_MODULE = 3


@dataclass
class DashboardWidget:
    """
    Widget definition.

    `value`, `change` and `data` may be callables taking the requesting user.
    `per_user` widgets are cached separately for every user.
    """
    type: str
    title: str
    value: Union[int, str, Callable, None] = 0
    icon: Optional[str] = None
    module: Optional[str] = None
    change: Union[str, Callable, None] = None
    trend: Optional[str] = None
    order: Optional[int] = None
    group: Optional[str] = None
    data: Union[list, dict, Callable, None] = None
    description: Optional[str] = None
    chart_type: Optional[str] = None
    config: Optional[dict] = None
    x_axis_key: Optional[str] = None
    data_keys: Optional[list] = None
    scope: str = WidgetScope.BOTH
    per_user: bool = False

    @property
    def is_dynamic(self) -> bool:
        return any(callable(item) for item in (self.value, self.change, self.data))

    def _resolve(self, attribute, user, fallback):
        item = getattr(self, attribute)
        if not callable(item):
            return item
        try:
            return item(user)
        except Exception as e:
            logger.error(
                f"DashboardWidget: error computing {attribute} | Context: "
                f"{{'module': '{self.module}', 'title': '{self.title}', 'type': '{self.type}'}}: {e}",
                exc_info=True
            )
            return fallback

    def to_dict(self, user=None) -> Dict[str, Any]:
        """Compute callables and return the front-end representation"""
        payload = {
            'type': self.type,
            'title': self.title,
            'value': self._resolve('value', user, 0),
            'icon': self.icon,
            'module': self.module,
            'change': self._resolve('change', user, None),
            'trend': self.trend,
            'order': self.order,
        }

        if self.group is not None:
            payload['group'] = self.group
        if self.data is not None:
            payload['data'] = self._resolve('data', user, None)
        if self.description is not None:
            payload['description'] = self.description
        if self.chart_type is not None:
            payload['chartType'] = self.chart_type
        if self.config is not None:
            payload['config'] = self.config
        if self.x_axis_key is not None:
            payload['xAxisKey'] = self.x_axis_key
        if self.data_keys is not None:
            payload['dataKeys'] = self.data_keys
        if self.scope and self.scope != WidgetScope.BOTH:
            payload['scope'] = self.scope

        return payload


def _sort_key(widget: dict):
    order = widget.get('order')
    return (order is None, order if order is not None else 0)


class DashboardWidgetRegistry:
    """Process-wide collection of dashboard widgets"""

    def __init__(self):
        self._widgets: List[DashboardWidget] = []

    def register(self, widget: DashboardWidget):
        """
        Validate and register a widget.

        Raises:
            ValueError: missing type, title or icon, or an unknown type or scope
        """
        self._validate(widget)
        if widget.module:
            widget.module = widget.module.lower()
        self._widgets.append(widget)

    def register_many(self, widgets):
        for widget in widgets:
            self.register(widget)

    @staticmethod
    def _validate(widget: DashboardWidget):
        if not widget.type:
            raise ValueError('DashboardWidget: type is required')
        if not widget.title:
            raise ValueError('DashboardWidget: title is required')
        if not widget.icon:
            raise ValueError('DashboardWidget: icon is required')
        if widget.type not in WidgetType.ALL:
            raise ValueError(
                f'DashboardWidget: Invalid type "{widget.type}". Valid types are: {", ".join(WidgetType.ALL)}'
            )
        if widget.scope is not None and widget.scope not in WidgetScope.ALL:
            raise ValueError(
                f'DashboardWidget: Invalid scope "{widget.scope}". Valid scopes are: {", ".join(WidgetScope.ALL)}'
            )

        context = f"{{'module': '{widget.module}', 'title': '{widget.title}'}}"
        if widget.type == WidgetType.CHART:
            if not widget.chart_type:
                logger.warning(f"DashboardWidget: chart widget missing chart_type | Context: {context}")
            if widget.data is None:
                logger.warning(f"DashboardWidget: chart widget missing data | Context: {context}")
        elif widget.type in (WidgetType.ACTIVITY, WidgetType.SYSTEM) and widget.data is None:
            logger.warning(f"DashboardWidget: {widget.type} widget missing data | Context: {context}")

    def get_registered_widgets(self) -> List[DashboardWidget]:
        return list(self._widgets)

    def get_modules(self) -> List[str]:
        modules = []
        for widget in self._widgets:
            if widget.module and widget.module not in modules:
                modules.append(widget.module)
        return modules

    def has_module(self, module: str) -> bool:
        return (module or '').lower() in self.get_modules()

    # ------------------------------------------------------------------
    # Computation
    # ------------------------------------------------------------------

    @staticmethod
    def get_cache_ttl() -> int:
        return int(getattr(settings, 'DASHBOARD_CACHE_TTL', DEFAULT_CACHE_TTL))

    @staticmethod
    def module_tag(module: str) -> str:
        return f"{CACHE_TAG}:{module.lower()}"

    def cache_tags(self, widget: DashboardWidget) -> list:
        tags = [CACHE_TAG]
        if widget.module:
            tags.append(self.module_tag(widget.module))
        return tags

    @staticmethod
    def cache_key(widget: DashboardWidget, user=None) -> str:
        """`{APP_ENV}:dashboard_widget::{module}:{type}:{md5(title)}`, plus the user id for per-user widgets"""
        parts = [
            getattr(settings, 'APP_ENV', 'local'),
            CACHE_PREFIX,
            widget.module or 'unknown',
            widget.type,
            hashlib.md5(widget.title.encode('utf-8')).hexdigest(),
        ]
        if widget.per_user:
            parts.append(str(getattr(user, 'pk', None) or 'guest'))
        return ':'.join(parts)

    def compute(self, widget: DashboardWidget, user=None) -> dict:
        ttl = self.get_cache_ttl()
        if ttl <= 0 or not widget.is_dynamic:
            return widget.to_dict(user)

        return get_cache_service().remember(
            self.cache_key(widget, user),
            ttl,
            lambda: widget.to_dict(user),
            tags=self.cache_tags(widget),
            context='DashboardWidgetRegistry',
        )

    def get_widgets(self, user=None, scope: Optional[str] = None, module: Optional[str] = None) -> List[dict]:
        """Computed widgets sorted by order (None last), optionally narrowed to a scope plus `both` and to one module"""
        if module is not None:
            module = module.lower()
        widgets = []
        for widget in self._widgets:
            if scope is not None and widget.scope not in (scope, WidgetScope.BOTH):
                continue
            if module is not None and (widget.module or '').lower() != module:
                continue
            widgets.append(self.compute(widget, user))
        return sorted(widgets, key=_sort_key)

    def get_widgets_for_module(self, module: str, user=None) -> List[dict]:
        """Widgets of one module for its own dashboard (scope detail or both)"""
        return self.get_widgets(user, scope=WidgetScope.DETAIL, module=module or '')

    def get_overview_widgets(self, user=None) -> List[dict]:
        """
        Widgets for the main dashboard.

        Keeps at most three stat widgets per module. Other widget types are
        included without limit.
        """
        stat_counts = {}
        overview = []
        for widget in self.get_widgets(user, scope=WidgetScope.OVERVIEW):
            if widget['type'] == WidgetType.STAT:
                module = widget.get('module') or 'other'
                if stat_counts.get(module, 0) >= MAX_OVERVIEW_STATS_PER_MODULE:
                    continue
                stat_counts[module] = stat_counts.get(module, 0) + 1
            overview.append(widget)
        return overview

    def clear_cache(self, module: Optional[str] = None) -> bool:
        """Flush one module's widget cache, or every widget when no module is given"""
        tag = self.module_tag(module) if module else CACHE_TAG
        cleared = get_cache_service().flush(tag, context='DashboardWidgetRegistry')
        logger.debug(f"DashboardWidgetRegistry: cleared widget cache | Context: {{'tag': '{tag}'}}")
        return cleared

    def clear(self):
        self._widgets = []


widget_registry = DashboardWidgetRegistry()


def get_registered_widgets() -> List[DashboardWidget]:
    return widget_registry.get_registered_widgets()
