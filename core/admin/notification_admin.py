"""
Alert admin: inbox entries, push browsers and per-user alert settings.
"""

from django.contrib import admin
from django.utils import timezone

from ..models import Notification, NotificationPreference, PushSubscription


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ['title', 'user', 'kind', 'sent_via', 'is_read', 'created_at']
    list_filter = ['kind', 'is_read', 'created_at']
    search_fields = ['title', 'body', 'user__email', 'transaction__reference']
    raw_id_fields = ['user', 'transaction', 'withdrawal']
    readonly_fields = ['channels', 'read_at', 'created_at']
    date_hierarchy = 'created_at'
    actions = ['mark_read']

    @admin.display(description='Sent via')
    def sent_via(self, obj):
        return ', '.join(obj.channels or []) or 'inbox'

    @admin.action(description='Mark selected as read')
    def mark_read(self, request, queryset):
        count = queryset.filter(is_read=False).update(is_read=True, read_at=timezone.now())
        self.message_user(request, f'{count} alerts marked as read.')


@admin.register(PushSubscription)
class PushSubscriptionAdmin(admin.ModelAdmin):
    list_display = ['user', 'user_agent', 'is_active', 'failure_count', 'last_success_at', 'created_at']
    list_filter = ['is_active']
    search_fields = ['user__email']
    raw_id_fields = ['user']
    readonly_fields = ['endpoint', 'keys', 'user_agent', 'failure_count', 'last_success_at', 'created_at']


@admin.register(NotificationPreference)
class NotificationPreferenceAdmin(admin.ModelAdmin):
    list_display = ['user', 'push_enabled', 'email_enabled', 'muted_kinds', 'updated_at']
    list_filter = ['push_enabled', 'email_enabled']
    search_fields = ['user__email']
    raw_id_fields = ['user']
