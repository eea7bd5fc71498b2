from django.db import models


class MenuQuerySet(models.QuerySet):
    """Queryset helpers for navigation menus"""

    def active(self):
        return self.filter(is_active=True)

    def roots(self):
        return self.filter(parent__isnull=True)

    def for_module(self, module):
        return self.filter(module=module.lower())


class Menu(models.Model):
    """
    Navigation entry seeded from the MenuRegistry.
    Menus nest through `parent` and are grouped in the sidebar by `group`.
    """
    parent = models.ForeignKey(
        'self',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='children',
        help_text="Parent menu for nested entries"
    )
    group = models.CharField(max_length=100, default='Main', db_index=True)
    label = models.CharField(max_length=150)
    route = models.CharField(max_length=190, unique=True, help_text="Route name the menu links to")
    icon = models.CharField(max_length=100, blank=True, null=True)
    order = models.IntegerField(default=0)
    permission = models.CharField(
        max_length=190,
        blank=True,
        null=True,
        help_text="Permission required to see this menu (module.resource.action)"
    )
    module = models.CharField(max_length=100, blank=True, null=True, db_index=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = MenuQuerySet.as_manager()

    class Meta:
        verbose_name = "Menu"
        verbose_name_plural = "Menus"
        ordering = ['group', 'order']

    def __str__(self):
        return f"{self.group} / {self.label}"


class Category(models.Model):
    """
    Typed, optionally nested category seeded from the CategoryRegistry.
    `type` scopes categories to a feature, e.g. 'vault'.
    """
    parent = models.ForeignKey(
        'self',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='children'
    )
    module = models.CharField(max_length=100, blank=True, null=True, db_index=True)
    type = models.CharField(max_length=50, db_index=True)
    name = models.CharField(max_length=150)
    slug = models.SlugField(max_length=190)
    color = models.CharField(max_length=20, blank=True, null=True)
    description = models.TextField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "Category"
        verbose_name_plural = "Categories"
        ordering = ['type', 'name']
        constraints = [
            models.UniqueConstraint(fields=['type', 'slug'], name='unique_category_type_slug'),
        ]

    def __str__(self):
        return f"{self.name} ({self.type})"
