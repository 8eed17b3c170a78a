"""
User and Agent Admin configuration for Resellers Hub.
"""

from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from django.utils.html import format_html

from ..models import Agent, User


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    """Admin configuration for custom User model."""

    list_display = [
        'email', 'display_name', 'phone', 'role',
        'wallet_display', 'is_active', 'date_joined'
    ]
    list_filter = ['role', 'is_active', 'is_staff', 'date_joined']
    search_fields = ['email', 'name', 'phone']
    ordering = ['-date_joined']

    # Override fieldsets for email-based auth
    fieldsets = (
        (None, {'fields': ('email', 'password')}),
        ('Personal Info', {'fields': ('name', 'phone')}),
        ('Reseller', {'fields': ('role', 'wallet_balance')}),
        ('Permissions', {'fields': ('is_active', 'is_staff', 'is_superuser', 'groups', 'user_permissions')}),
        ('Important Dates', {'fields': ('last_login', 'date_joined')}),
    )

    add_fieldsets = (
        (None, {
            'classes': ('wide',),
            'fields': ('email', 'password1', 'password2'),
        }),
        ('Personal Info', {
            'fields': ('name', 'phone', 'role'),
        }),
    )

    # Balances only move through the ledger
    readonly_fields = ['wallet_balance', 'date_joined', 'last_login']

    def display_name(self, obj):
        return obj.display_name
    display_name.short_description = 'Display Name'

    def wallet_display(self, obj):
        return f"GHS {obj.wallet_balance:,.2f}"
    wallet_display.short_description = 'Wallet'
    wallet_display.admin_order_field = 'wallet_balance'


@admin.register(Agent)
class AgentAdmin(admin.ModelAdmin):
    """Admin configuration for Agent storefronts."""

    list_display = [
        'storefront_slug', 'business_name', 'user', 'role_badge',
        'balance', 'total_sales', 'is_approved', 'payment_pending', 'created_at'
    ]
    list_filter = ['is_approved', 'payment_pending', 'user__role']
    search_fields = ['storefront_slug', 'business_name', 'user__email']
    autocomplete_fields = ['user', 'parent']
    readonly_fields = ['balance', 'total_sales', 'total_profit', 'created_at', 'updated_at']

    fieldsets = (
        ('Owner', {'fields': ('user', 'parent')}),
        ('Storefront', {'fields': (
            'storefront_slug', 'business_name', 'business_description',
            'whatsapp_support_link', 'whatsapp_channel_link', 'custom_pricing_markup'
        )}),
        ('Balances', {'fields': ('balance', 'total_sales', 'total_profit')}),
        ('Activation', {'fields': ('is_approved', 'payment_pending', 'activation_fee')}),
        ('Timestamps', {'fields': ('created_at', 'updated_at'), 'classes': ('collapse',)}),
    )

    def role_badge(self, obj):
        return format_html(
            '<span style="background-color: #2563eb; color: white; padding: 2px 8px; '
            'border-radius: 4px; font-size: 11px;">{}</span>',
            obj.user.get_role_display()
        )
    role_badge.short_description = 'Role'

    def get_queryset(self, request):
        return super().get_queryset(request).select_related('user', 'parent')
