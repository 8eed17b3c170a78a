"""
Platform models for Resellers Hub.

Runtime settings, announcements, API keys and the admin audit trail.
"""

from django.db import models


# =============================================================================
# SETTING MODEL
# =============================================================================

class Setting(models.Model):
    """
    Key/value configuration editable at runtime by admins.
    Examples: paystack.secret_key, external_api.endpoint, break_mode_enabled.
    """

    key = models.CharField(
        'key',
        max_length=100,
        unique=True
    )
    value = models.TextField(
        'value',
        blank=True
    )
    description = models.CharField(
        'description',
        max_length=255,
        blank=True
    )
    updated_at = models.DateTimeField(
        'updated at',
        auto_now=True
    )

    class Meta:
        verbose_name = 'setting'
        verbose_name_plural = 'settings'
        ordering = ['key']

    def __str__(self):
        return self.key

    @classmethod
    def get_value(cls, key, default=None):
        row = cls.objects.filter(key=key).first()
        if row is None:
            return default
        return row.value

    @classmethod
    def set_value(cls, key, value, description=None):
        defaults = {'value': '' if value is None else str(value)}
        if description is not None:
            defaults['description'] = description
        row, _ = cls.objects.update_or_create(key=key, defaults=defaults)
        return row


# =============================================================================
# ANNOUNCEMENT MODEL
# =============================================================================

class Announcement(models.Model):
    """Admin broadcast shown to signed-in (non-guest) users."""

    title = models.CharField(
        'title',
        max_length=200
    )
    message = models.TextField('message')
    is_active = models.BooleanField(
        'active',
        default=True
    )
    created_by = models.CharField(
        'created by',
        max_length=150,
        blank=True
    )
    created_at = models.DateTimeField(
        'created at',
        auto_now_add=True
    )

    class Meta:
        verbose_name = 'announcement'
        verbose_name_plural = 'announcements'
        ordering = ['-created_at']

    def __str__(self):
        return self.title


# =============================================================================
# API KEY MODEL
# =============================================================================

class ApiKey(models.Model):
    """
    Secret key for programmatic ordering. Only the SHA-256 hash is stored;
    the plain key is shown once at creation.
    """

    user = models.ForeignKey(
        'User',
        on_delete=models.CASCADE,
        related_name='api_keys'
    )
    name = models.CharField(
        'name',
        max_length=100
    )
    key_prefix = models.CharField(
        'key prefix',
        max_length=12,
        help_text='First characters of the key, for display'
    )
    key_hash = models.CharField(
        'key hash',
        max_length=64,
        unique=True
    )
    permissions = models.JSONField(
        'permissions',
        default=dict,
        blank=True,
        help_text='e.g., {"orders": true, "balance": true}'
    )
    is_active = models.BooleanField(
        'active',
        default=True
    )
    last_used = models.DateTimeField(
        'last used',
        null=True,
        blank=True
    )
    created_at = models.DateTimeField(
        'created at',
        auto_now_add=True
    )

    class Meta:
        verbose_name = 'API key'
        verbose_name_plural = 'API keys'
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.name} ({self.key_prefix}…)"


# =============================================================================
# AUDIT LOG MODEL
# =============================================================================

class AuditLog(models.Model):
    """Who changed what, for admin mutations and money movements."""

    user = models.ForeignKey(
        'User',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='audit_logs'
    )
    action = models.CharField(
        'action',
        max_length=100
    )
    entity_type = models.CharField(
        'entity type',
        max_length=50
    )
    entity_id = models.CharField(
        'entity id',
        max_length=64,
        blank=True
    )
    old_value = models.JSONField(
        'old value',
        null=True,
        blank=True
    )
    new_value = models.JSONField(
        'new value',
        null=True,
        blank=True
    )
    ip_address = models.GenericIPAddressField(
        'IP address',
        null=True,
        blank=True
    )
    user_agent = models.CharField(
        'user agent',
        max_length=500,
        blank=True
    )
    created_at = models.DateTimeField(
        'created at',
        auto_now_add=True,
        db_index=True
    )

    class Meta:
        verbose_name = 'audit log'
        verbose_name_plural = 'audit logs'
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.action} {self.entity_type}:{self.entity_id}"
