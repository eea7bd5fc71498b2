from django.db import models

from core.constants import SettingType
from core.validators import BOOLEAN_TRUE_VALUES


class Setting(models.Model):
    """
    Runtime configuration entry registered by a module.
    Values are stored as text and cast on read according to `type`.
    """
    module = models.CharField(max_length=100, db_index=True)
    group = models.CharField(max_length=100, default='general', db_index=True)
    key = models.CharField(max_length=190, unique=True)
    value = models.TextField(blank=True, null=True)
    type = models.CharField(max_length=20, choices=SettingType.CHOICES, default=SettingType.TEXT)
    label = models.CharField(max_length=255, blank=True, default='')
    is_system = models.BooleanField(default=False, help_text="System settings cannot be edited from the API")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "Setting"
        verbose_name_plural = "Settings"
        ordering = ['group', 'key']

    def __str__(self):
        return f"{self.key} ({self.module})"

    def cast_value(self):
        """Return the stored value as bool, int or str depending on the type"""
        if self.value is None:
            return None
        if self.type == SettingType.BOOLEAN:
            return str(self.value).strip().lower() in BOOLEAN_TRUE_VALUES
        if self.type == SettingType.INTEGER:
            try:
                return int(str(self.value).strip())
            except (TypeError, ValueError):
                return 0
        return str(self.value)
