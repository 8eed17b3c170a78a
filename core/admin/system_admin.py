"""
Platform Admin configuration for Resellers Hub: settings, announcements,
API keys, audit log and support chats.
"""

from django.contrib import admin

from ..models import Announcement, ApiKey, AuditLog, ChatMessage, Setting, SupportChat


@admin.register(Setting)
class SettingAdmin(admin.ModelAdmin):
    list_display = ['key', 'short_value', 'description', 'updated_at']
    search_fields = ['key', 'description']

    def short_value(self, obj):
        if any(word in obj.key for word in ('secret', 'key', 'password')):
            return '****'
        return obj.value[:60]
    short_value.short_description = 'Value'

    def save_model(self, request, obj, form, change):
        """Saving Paystack keys here also flushes the cached client key."""
        from ..services import set_setting

        set_setting(obj.key, obj.value, obj.description)


@admin.register(Announcement)
class AnnouncementAdmin(admin.ModelAdmin):
    list_display = ['title', 'is_active', 'created_by', 'created_at']
    list_filter = ['is_active']
    search_fields = ['title', 'message']


@admin.register(ApiKey)
class ApiKeyAdmin(admin.ModelAdmin):
    list_display = ['name', 'user', 'key_prefix', 'is_active', 'last_used', 'created_at']
    list_filter = ['is_active']
    search_fields = ['name', 'user__email', 'key_prefix']
    readonly_fields = ['key_prefix', 'key_hash', 'last_used', 'created_at']


@admin.register(AuditLog)
class AuditLogAdmin(admin.ModelAdmin):
    list_display = ['created_at', 'user', 'action', 'entity_type', 'entity_id', 'ip_address']
    list_filter = ['action', 'entity_type']
    search_fields = ['user__email', 'action', 'entity_id']
    date_hierarchy = 'created_at'

    def has_change_permission(self, request, obj=None):
        return False


class ChatMessageInline(admin.TabularInline):
    model = ChatMessage
    extra = 0
    fields = ['sender', 'sender_type', 'message', 'is_read', 'created_at']
    readonly_fields = ['created_at']


@admin.register(SupportChat)
class SupportChatAdmin(admin.ModelAdmin):
    list_display = ['id', 'user', 'status', 'assigned_to', 'last_message_at', 'created_at']
    list_filter = ['status']
    search_fields = ['user__email']
    autocomplete_fields = ['user', 'assigned_to']
    inlines = [ChatMessageInline]
