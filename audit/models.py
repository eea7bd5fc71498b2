"""
Audit Log Model

IMMUTABLE: Audit logs cannot be edited or deleted after creation.
Retention cleanup deletes through the queryset.
"""

from datetime import timedelta

from django.conf import settings
from django.core.exceptions import PermissionDenied
from django.db import models
from django.utils import timezone


# ============================================================================
# EVENTS
# ============================================================================

class AuditEvent:
    """Audit event names with their display label, icon and color"""

    # CRUD
    CREATED = 'created'
    UPDATED = 'updated'
    DELETED = 'deleted'

    # Authentication
    LOGIN = 'login'
    LOGOUT = 'logout'
    FAILED_LOGIN = 'failed_login'
    REGISTERED = 'registered'
    PASSWORD_RESET = 'password_reset'
    PASSWORD_RESET_REQUESTED = 'password_reset_requested'
    PASSWORD_CHANGED = 'password_changed'

    # Account
    EMAIL_VERIFIED = 'email_verified'
    EMAIL_CHANGED = 'email_changed'
    ACCOUNT_DELETED = 'account_deleted'

    # Media
    FILE_UPLOADED = 'file_uploaded'
    FILE_DELETED = 'file_deleted'

    # Relationships
    RELATIONSHIP_SYNCED = 'relationship_synced'

    # System
    EXPORT = 'export'

    ALL = [
        CREATED,
        UPDATED,
        DELETED,
        LOGIN,
        LOGOUT,
        FAILED_LOGIN,
        REGISTERED,
        PASSWORD_RESET,
        PASSWORD_RESET_REQUESTED,
        PASSWORD_CHANGED,
        EMAIL_VERIFIED,
        EMAIL_CHANGED,
        ACCOUNT_DELETED,
        FILE_UPLOADED,
        FILE_DELETED,
        RELATIONSHIP_SYNCED,
        EXPORT,
    ]

    CHOICES = [(event, event.replace('_', ' ').capitalize()) for event in ALL]

    # Events whose subject no longer exists when the entry is written
    WITHOUT_MODEL = [DELETED, FILE_DELETED, ACCOUNT_DELETED]

    ICONS = {
        CREATED: 'Plus',
        REGISTERED: 'Plus',
        UPDATED: 'Edit',
        DELETED: 'Trash',
        ACCOUNT_DELETED: 'Trash',
        LOGIN: 'LogIn',
        LOGOUT: 'LogOut',
        FAILED_LOGIN: 'ShieldAlert',
        PASSWORD_RESET: 'Key',
        PASSWORD_RESET_REQUESTED: 'Key',
        PASSWORD_CHANGED: 'Key',
        EMAIL_VERIFIED: 'Mail',
        EMAIL_CHANGED: 'Mail',
        FILE_UPLOADED: 'Upload',
        FILE_DELETED: 'FileX',
        RELATIONSHIP_SYNCED: 'Link',
        EXPORT: 'Download',
    }

    COLORS = {
        CREATED: 'bg-green-500',
        REGISTERED: 'bg-green-500',
        UPDATED: 'bg-blue-500',
        DELETED: 'bg-red-500',
        ACCOUNT_DELETED: 'bg-red-500',
        LOGIN: 'bg-indigo-500',
        LOGOUT: 'bg-amber-500',
        FAILED_LOGIN: 'bg-rose-500',
        PASSWORD_RESET: 'bg-purple-500',
        PASSWORD_RESET_REQUESTED: 'bg-purple-500',
        PASSWORD_CHANGED: 'bg-purple-500',
        EMAIL_VERIFIED: 'bg-cyan-500',
        EMAIL_CHANGED: 'bg-cyan-500',
        FILE_UPLOADED: 'bg-emerald-500',
        FILE_DELETED: 'bg-orange-500',
        RELATIONSHIP_SYNCED: 'bg-pink-500',
        EXPORT: 'bg-teal-500',
    }

    @classmethod
    def label(cls, event):
        return (event or '').replace('_', ' ').capitalize()

    @classmethod
    def get_icon(cls, event):
        return cls.ICONS.get(event, 'Activity')

    @classmethod
    def get_color(cls, event):
        return cls.COLORS.get(event, 'bg-gray-800')


# ============================================================================
# CUSTOM MANAGER AND QUERYSET
# ============================================================================

class AuditLogQuerySet(models.QuerySet):
    """Custom queryset for audit logs with filtering helpers"""

    def for_user(self, user):
        """Filter logs for a specific user"""
        return self.filter(user=user)

    def for_model(self, auditable_type, auditable_id=None):
        """
        Filter logs for a model type, or one instance of it.
        Accepts a model instance or an `app_label.model` string.
        """
        if isinstance(auditable_type, models.Model):
            instance = auditable_type
            return self.filter(
                auditable_type=instance._meta.label_lower,
                auditable_id=str(instance.pk)
            )
        queryset = self.filter(auditable_type=auditable_type)
        if auditable_id is not None:
            queryset = queryset.filter(auditable_id=str(auditable_id))
        return queryset

    def for_event(self, event):
        """Filter logs for a specific event"""
        return self.filter(event=event)

    def recent(self, limit=100):
        """Get recent logs"""
        return self.order_by('-created_at')[:limit]

    def older_than(self, days):
        """Logs created more than `days` days ago"""
        return self.filter(created_at__lt=timezone.now() - timedelta(days=days))


class AuditLogManager(models.Manager):
    """Custom manager for audit logs"""

    def get_queryset(self):
        return AuditLogQuerySet(self.model, using=self._db)

    def for_user(self, user):
        return self.get_queryset().for_user(user)

    def for_model(self, auditable_type, auditable_id=None):
        return self.get_queryset().for_model(auditable_type, auditable_id)

    def for_event(self, event):
        return self.get_queryset().for_event(event)

    def recent(self, limit=100):
        return self.get_queryset().recent(limit)

    def older_than(self, days):
        return self.get_queryset().older_than(days)


# ============================================================================
# AUDIT LOG MODEL
# ============================================================================

class AuditLog(models.Model):
    """
    Immutable record of a model change or authentication event.

    The subject is stored as `auditable_type` (`app_label.model`) plus
    `auditable_id`, so entries survive deletion of the row they describe.
    """

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='audit_logs',
        help_text="User who performed the action, empty for system actions"
    )

    event = models.CharField(
        max_length=50,
        choices=AuditEvent.CHOICES,
        db_index=True,
        help_text="Type of event"
    )

    auditable_type = models.CharField(
        max_length=150,
        null=True,
        blank=True,
        db_index=True,
        help_text="Model label of the affected record, e.g. users.user"
    )

    auditable_id = models.CharField(
        max_length=64,
        null=True,
        blank=True,
        help_text="Primary key of the affected record"
    )

    old_values = models.JSONField(null=True, blank=True)
    new_values = models.JSONField(null=True, blank=True)

    # Request metadata
    url = models.TextField(null=True, blank=True)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    user_agent = models.TextField(null=True, blank=True)

    tags = models.JSONField(default=list, blank=True)

    created_at = models.DateTimeField(default=timezone.now, db_index=True)

    objects = AuditLogManager()

    class Meta:
        verbose_name = "Audit Log"
        verbose_name_plural = "Audit Logs"
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['auditable_type', 'auditable_id']),
            models.Index(fields=['user', '-created_at']),
            models.Index(fields=['event', '-created_at']),
        ]

    def __str__(self):
        return f"{self.user_display} - {self.event} - {self.auditable_type} #{self.auditable_id} - {self.created_at}"

    def save(self, *args, **kwargs):
        """
        Override save to enforce immutability.
        Only allow creation, not updates.
        """
        if self.pk is not None:
            raise PermissionDenied(
                "Audit logs are immutable and cannot be modified after creation."
            )
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise PermissionDenied(
            "Audit logs are immutable and cannot be deleted."
        )

    @property
    def user_display(self):
        if self.user_id and self.user:
            return self.user.display_name
        return "System"

    @property
    def event_display(self):
        return AuditEvent.label(self.event)

    @property
    def event_icon(self):
        return AuditEvent.get_icon(self.event)

    @property
    def event_color(self):
        return AuditEvent.get_color(self.event)

    @property
    def model_name(self):
        """Short model name of the subject, e.g. 'User'"""
        if not self.auditable_type:
            return 'Unknown'
        return self.auditable_type.rsplit('.', 1)[-1].replace('_', ' ').title()

    @property
    def auditable(self):
        """The audited record, loaded on demand unless batch-loaded already"""
        if not hasattr(self, '_auditable_cache'):
            from audit.loaders import load_auditables
            load_auditables([self])
        return self._auditable_cache

    @auditable.setter
    def auditable(self, value):
        self._auditable_cache = value
