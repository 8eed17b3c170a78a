"""
Alerts for Resellers Hub users: the in-app inbox, web push devices and
per-user channel settings.
"""

from django.db import models
from django.utils import timezone


class Notification(models.Model):
    """One inbox entry. `channels` records where it was also sent."""

    class Kind(models.TextChoices):
        ORDER = 'order', 'Order'
        COMMISSION = 'commission', 'Commission'
        WITHDRAWAL = 'withdrawal', 'Withdrawal'
        SUPPORT = 'support', 'Support'
        ANNOUNCEMENT = 'announcement', 'Announcement'

    # Money movements and support answers cannot be muted
    ALWAYS_ON = (Kind.WITHDRAWAL, Kind.SUPPORT)

    user = models.ForeignKey(
        'User',
        on_delete=models.CASCADE,
        related_name='notifications'
    )
    kind = models.CharField(
        'kind',
        max_length=20,
        choices=Kind.choices,
        db_index=True
    )
    title = models.CharField('title', max_length=200)
    body = models.TextField('body')
    link = models.CharField(
        'link',
        max_length=300,
        blank=True,
        help_text='Client route opened from the inbox'
    )
    transaction = models.ForeignKey(
        'Transaction',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='notifications'
    )
    withdrawal = models.ForeignKey(
        'Withdrawal',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='notifications'
    )
    channels = models.JSONField(
        'sent via',
        default=list,
        blank=True,
        help_text='Channels besides the inbox that accepted it, e.g. ["push", "email"]'
    )
    is_read = models.BooleanField('read', default=False)
    read_at = models.DateTimeField('read at', null=True, blank=True)
    created_at = models.DateTimeField('created at', auto_now_add=True, db_index=True)

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['user', 'is_read']),
        ]

    def __str__(self):
        return f"[{self.kind}] {self.title} ({self.user.email})"

    def mark_read(self):
        if self.is_read:
            return False
        self.is_read = True
        self.read_at = timezone.now()
        self.save(update_fields=['is_read', 'read_at'])
        return True


class PushSubscription(models.Model):
    """A browser registered for VAPID web push."""

    user = models.ForeignKey(
        'User',
        on_delete=models.CASCADE,
        related_name='push_subscriptions'
    )
    endpoint = models.URLField('endpoint', max_length=1000)
    keys = models.JSONField(
        'keys',
        default=dict,
        help_text='{"p256dh": ..., "auth": ...} from PushSubscription.toJSON()'
    )
    user_agent = models.CharField('browser', max_length=300, blank=True)
    is_active = models.BooleanField('active', default=True)
    failure_count = models.PositiveSmallIntegerField('consecutive failures', default=0)
    last_success_at = models.DateTimeField('last delivered', null=True, blank=True)
    created_at = models.DateTimeField('registered at', auto_now_add=True)

    class Meta:
        ordering = ['-created_at']
        constraints = [
            models.UniqueConstraint(fields=['user', 'endpoint'], name='unique_push_endpoint_per_user'),
        ]

    def __str__(self):
        return f"{self.user.email} via {self.endpoint[:40]}"

    def as_subscription_info(self):
        return {'endpoint': self.endpoint, 'keys': self.keys}


class NotificationPreference(models.Model):
    """Channel switches and muted kinds for one user."""

    user = models.OneToOneField(
        'User',
        on_delete=models.CASCADE,
        related_name='notification_preference'
    )
    push_enabled = models.BooleanField('web push', default=True)
    email_enabled = models.BooleanField('email', default=True)
    muted_kinds = models.JSONField(
        'muted kinds',
        default=list,
        blank=True,
        help_text='Notification kinds the user does not want in the inbox'
    )
    updated_at = models.DateTimeField('updated at', auto_now=True)

    def __str__(self):
        return f"Alert settings for {self.user.email}"

    @classmethod
    def for_user(cls, user):
        return cls.objects.get_or_create(user=user)[0]

    def allows(self, kind):
        return kind in Notification.ALWAYS_ON or kind not in (self.muted_kinds or [])

    def set_muted(self, kinds):
        """Store the muted kinds, ignoring unknown and always-on ones."""
        self.muted_kinds = sorted({
            kind for kind in kinds
            if kind in Notification.Kind.values and kind not in Notification.ALWAYS_ON
        })
