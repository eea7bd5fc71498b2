import logging
import uuid
from urllib.parse import urlparse

import pyotp
from django.conf import settings
from django.contrib.auth.hashers import check_password, make_password
from django.db import models

from app_settings.services import get_setting
from core.constants import VaultType
from vaults.fields import EncryptedJSONField, EncryptedTextField

logger = logging.getLogger(__name__)

AUDIT_EXCLUDE = ('value', 'totp_secret', 'fields')


class VaultQuerySet(models.QuerySet):
    """Queryset helpers for vault items"""

    def for_user(self, user):
        return self.filter(user=user)

    def favorites(self):
        return self.filter(is_favorite=True)

    def of_type(self, vault_type):
        return self.filter(type=vault_type)


class Vault(models.Model):
    """
    Encrypted credential owned by a single user.
    `value`, `totp_secret` and `fields` are encrypted at rest.
    """
    TYPES = [choice[0] for choice in VaultType.CHOICES]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='vaults'
    )
    category = models.ForeignKey(
        'common.Category',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='vaults',
        limit_choices_to={'type': 'vault'}
    )
    type = models.CharField(max_length=20, choices=VaultType.CHOICES, default=VaultType.LOGIN, db_index=True)
    name = models.CharField(max_length=255)
    username = models.CharField(max_length=255, blank=True, null=True)
    email = models.EmailField(max_length=255, blank=True, null=True)
    issuer = models.CharField(max_length=255, blank=True, null=True)
    value = EncryptedTextField(blank=True, null=True)
    totp_secret = EncryptedTextField(blank=True, null=True)
    fields = EncryptedJSONField(blank=True, null=True)
    url = models.URLField(max_length=2048, blank=True, null=True)
    is_favorite = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = VaultQuerySet.as_manager()

    class Meta:
        verbose_name = "Vault Item"
        verbose_name_plural = "Vault Items"
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['user', 'type']),
            models.Index(fields=['user', 'is_favorite']),
        ]

    def __str__(self):
        return self.name

    @property
    def favicon_url(self):
        if not self.url:
            return None
        host = urlparse(self.url).hostname
        if not host:
            return None
        return f"https://icons.duckduckgo.com/ip3/{host}.ico"

    @property
    def has_totp(self):
        return bool(self.totp_secret)

    def generate_current_totp_code(self):
        """Current TOTP code, or None without a secret or on error"""
        if not self.totp_secret:
            return None
        try:
            digits = int(get_setting('vault_totp_code_length', 6))
            interval = int(get_setting('vault_totp_period', 30))
            return pyotp.TOTP(self.totp_secret.replace(' ', '').upper(), digits=digits, interval=interval).now()
        except Exception as e:
            logger.warning(f"Vault: TOTP generation failed | Context: {{'vault_id': '{self.pk}'}}: {type(e).__name__}")
            return None

    def audit_tags(self):
        tags = ['vault']
        if self.type:
            tags.append(self.type.lower())
        if self.category_id:
            tags.append('categorized')
        return tags


class VaultLock(models.Model):
    """Hashed vault PIN for a user"""
    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='vault_lock'
    )
    pin_hash = models.CharField(max_length=255)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "Vault Lock"
        verbose_name_plural = "Vault Locks"

    def __str__(self):
        return f"Vault lock for {self.user}"

    def set_pin(self, pin: str):
        self.pin_hash = make_password(pin)

    def check_pin(self, pin: str) -> bool:
        return check_password(pin, self.pin_hash)
