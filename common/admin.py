from django.contrib import admin
from .models import Menu, Category


@admin.register(Menu)
class MenuAdmin(admin.ModelAdmin):
    """
    Menus are seeded from module registrations.
    Admins may toggle visibility or reorder, but routes are owned by modules.
    """
    list_display = ['label', 'group', 'route', 'parent', 'order', 'permission', 'module', 'is_active']
    list_filter = ['group', 'module', 'is_active']
    list_editable = ['order', 'is_active']
    search_fields = ['label', 'route', 'permission']
    readonly_fields = ['route', 'module', 'created_at', 'updated_at']
    ordering = ['group', 'order']


@admin.register(Category)
class CategoryAdmin(admin.ModelAdmin):
    list_display = ['name', 'type', 'slug', 'color', 'parent', 'module']
    list_filter = ['type', 'module']
    search_fields = ['name', 'slug']
    readonly_fields = ['module', 'created_at', 'updated_at']
