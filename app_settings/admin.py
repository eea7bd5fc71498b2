from django.contrib import admin
from .models import Setting


@admin.register(Setting)
class SettingAdmin(admin.ModelAdmin):
    """
    Settings are seeded from module registrations.
    Only values are editable here.
    """
    list_display = ['key', 'group', 'module', 'type', 'value', 'is_system']
    list_filter = ['module', 'group', 'type', 'is_system']
    search_fields = ['key', 'label']
    readonly_fields = ['module', 'group', 'key', 'type', 'label', 'is_system', 'created_at', 'updated_at']
    ordering = ['group', 'key']

    def has_add_permission(self, request):
        return False
