"""
Signal category registry.

Maps a notification category to the boolean setting that turns it on or off.
"""
from typing import Dict, Optional


class SignalCategoryRegistry:
    """Process-wide category to setting key map"""

    def __init__(self):
        self._categories: Dict[str, str] = {}
        self._registered_by: Dict[str, str] = {}

    def register(self, module: str, category: str, setting_key: str):
        """
        Register a category.

        Raises:
            RuntimeError: the category belongs to another module
        """
        module = module.lower()
        category = category.lower()

        owner = self._registered_by.get(category)
        if owner is not None and owner != module:
            raise RuntimeError(
                f"Signal category '{category}' is already registered by module '{owner}'. "
                f"Module '{module}' cannot register a duplicate category."
            )

        self._categories[category] = setting_key
        self._registered_by[category] = module

    def get_setting_key(self, category: str) -> Optional[str]:
        return self._categories.get(category.lower())

    def has(self, category: str) -> bool:
        return category.lower() in self._categories

    def get_all(self) -> Dict[str, str]:
        return dict(self._categories)

    def get_by_module(self, module: str) -> Dict[str, str]:
        module = module.lower()
        return {
            category: self._categories[category]
            for category, owner in self._registered_by.items()
            if owner == module
        }

    def clear(self):
        self._categories = {}
        self._registered_by = {}


signal_category_registry = SignalCategoryRegistry()
