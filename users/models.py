from django.contrib.auth.models import AbstractUser
from django.db import models

from core.constants import Roles


class User(AbstractUser):
    """
    Application user.
    Roles are django.contrib.auth groups, permissions are resolved through them.
    """
    name = models.CharField(max_length=255, blank=True, default='')
    
    class Meta:
        verbose_name = "User"
        verbose_name_plural = "Users"
        ordering = ['-date_joined']
    
    def __str__(self):
        return self.display_name

    @property
    def display_name(self):
        return self.name or self.get_full_name() or self.username

    @property
    def role_names(self):
        return list(self.groups.order_by('name').values_list('name', flat=True))

    @property
    def is_super_admin(self):
        """True for members of the Super Admin role (cached per instance)"""
        if not hasattr(self, '_is_super_admin_cache'):
            self._is_super_admin_cache = self.groups.filter(name=Roles.SUPER_ADMIN).exists()
        return self._is_super_admin_cache
