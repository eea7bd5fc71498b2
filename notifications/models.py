import uuid

from django.conf import settings
from django.db import models
from django.utils import timezone

from core.constants import NotificationType


class NotificationQuerySet(models.QuerySet):
    """Queryset helpers for Signal notifications"""

    def for_user(self, user):
        return self.filter(user=user)

    def unread(self):
        return self.filter(read_at__isnull=True)

    def read(self):
        return self.filter(read_at__isnull=False)

    def mark_as_read(self):
        return self.unread().update(read_at=timezone.now())


class Notification(models.Model):
    """
    In-app notification delivered to a single user.
    Unknown types are stored as info.
    """
    TYPES = [choice[0] for choice in NotificationType.CHOICES]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='signal_notifications'
    )
    type = models.CharField(max_length=20, choices=NotificationType.CHOICES, default=NotificationType.INFO)
    title = models.CharField(max_length=255)
    message = models.TextField(blank=True, default='')
    action_url = models.CharField(max_length=500, blank=True, null=True)
    module_source = models.CharField(max_length=100, blank=True, null=True)
    read_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(default=timezone.now, db_index=True)

    objects = NotificationQuerySet.as_manager()

    class Meta:
        verbose_name = "Notification"
        verbose_name_plural = "Notifications"
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['user', 'read_at']),
        ]

    def __str__(self):
        return f"{self.title} ({self.type})"

    def save(self, *args, **kwargs):
        if self.type not in self.TYPES:
            self.type = NotificationType.INFO
        super().save(*args, **kwargs)

    @property
    def is_read(self):
        return self.read_at is not None

    def mark_as_read(self):
        if self.read_at is None:
            self.read_at = timezone.now()
            self.save(update_fields=['read_at'])
