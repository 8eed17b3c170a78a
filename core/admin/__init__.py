"""
Django Admin configuration for Resellers Hub.

This package provides admin interfaces for all models with:
- Custom list displays
- Filters and search
- Read-only money and state fields (the ledger and state machine own them)
- Bulk actions
"""

from django.contrib import admin

# Custom admin site configuration
admin.site.site_header = "Resellers Hub Administration"
admin.site.site_title = "Resellers Hub Admin"
admin.site.index_title = "Welcome to Resellers Hub Admin Dashboard"

# Import all admin registrations
from .user_admin import UserAdmin, AgentAdmin
from .transaction_admin import (
    DataBundleAdmin,
    CustomPricingAdmin,
    ResultCheckerAdmin,
    TransactionAdmin,
)
from .ledger_admin import LedgerEntryAdmin, WithdrawalAdmin
from .system_admin import (
    SettingAdmin,
    AnnouncementAdmin,
    ApiKeyAdmin,
    AuditLogAdmin,
    SupportChatAdmin,
)
from .notification_admin import (
    NotificationAdmin,
    PushSubscriptionAdmin,
    NotificationPreferenceAdmin,
)


__all__ = [
    'UserAdmin',
    'AgentAdmin',
    'DataBundleAdmin',
    'CustomPricingAdmin',
    'ResultCheckerAdmin',
    'TransactionAdmin',
    'LedgerEntryAdmin',
    'WithdrawalAdmin',
    'SettingAdmin',
    'AnnouncementAdmin',
    'ApiKeyAdmin',
    'AuditLogAdmin',
    'SupportChatAdmin',
    'NotificationAdmin',
    'PushSubscriptionAdmin',
    'NotificationPreferenceAdmin',
]
