"""
Catalog and Transaction Admin configuration for Resellers Hub.
"""

from django.contrib import admin
from django.utils.html import format_html

from ..models import (
    CustomPricing, DataBundle, DispatchAttempt, ResultChecker,
    RoleBasePrice, Transaction, TransactionEvent,
)

STATUS_COLORS = {
    'initiated': '#6b7280',
    'awaiting_payment': '#f59e0b',
    'paid': '#3b82f6',
    'dispatching': '#8b5cf6',
    'delivered': '#22c55e',
    'failed': '#ef4444',
    'refunded': '#0ea5e9',
}


class RoleBasePriceInline(admin.TabularInline):
    """Inline editor for per-role price overrides."""
    model = RoleBasePrice
    extra = 0
    fields = ['role', 'base_price']


@admin.register(DataBundle)
class DataBundleAdmin(admin.ModelAdmin):
    """Admin configuration for DataBundle model."""

    list_display = ['name', 'network', 'data_amount', 'validity', 'base_price', 'agent_price', 'is_active']
    list_filter = ['network', 'is_active']
    search_fields = ['name', 'data_amount', 'api_code']
    inlines = [RoleBasePriceInline]

    fieldsets = (
        ('Bundle', {'fields': ('name', 'network', 'data_amount', 'validity', 'api_code')}),
        ('Tier Prices', {'fields': (
            'base_price', 'agent_price', 'dealer_price',
            'super_dealer_price', 'master_price', 'admin_price'
        )}),
        ('Status', {'fields': ('is_active',)}),
    )


@admin.register(CustomPricing)
class CustomPricingAdmin(admin.ModelAdmin):
    list_display = ['agent', 'bundle', 'selling_price', 'updated_at']
    search_fields = ['agent__storefront_slug', 'bundle__name']
    autocomplete_fields = ['agent', 'bundle']


@admin.register(ResultChecker)
class ResultCheckerAdmin(admin.ModelAdmin):
    """Admin configuration for result checker vouchers."""

    list_display = ['serial_number', 'type', 'year', 'base_price', 'cost_price', 'is_sold', 'sold_at']
    list_filter = ['type', 'year', 'is_sold']
    search_fields = ['serial_number', 'sold_to_phone', 'transaction__reference']
    readonly_fields = ['sold_at', 'sold_to_phone', 'transaction', 'created_at']


class TransactionEventInline(admin.TabularInline):
    model = TransactionEvent
    extra = 0
    can_delete = False
    fields = ['from_status', 'to_status', 'note', 'created_at']
    readonly_fields = fields


class DispatchAttemptInline(admin.TabularInline):
    model = DispatchAttempt
    extra = 0
    can_delete = False
    fields = ['dispatch_key', 'recipient', 'capacity_mb', 'attempts', 'outcome', 'provider_reference', 'error']
    readonly_fields = fields


@admin.register(Transaction)
class TransactionAdmin(admin.ModelAdmin):
    """
    Admin configuration for Transaction model.

    Status fields are read-only: orders move through the state machine only.
    """

    list_display = [
        'reference', 'product_name', 'status_badge', 'amount_display',
        'customer_phone', 'agent', 'payment_method', 'created_at'
    ]
    list_filter = [
        'status', 'product_type', 'payment_method', 'network',
        ('created_at', admin.DateFieldListFilter),
    ]
    search_fields = ['reference', 'customer_phone', 'customer_email', 'agent__storefront_slug']
    autocomplete_fields = ['agent', 'buyer', 'bundle']
    readonly_fields = [
        'reference', 'status', 'payment_status', 'delivery_status', 'payment_reference',
        'profit', 'agent_profit', 'api_response', 'created_at', 'updated_at', 'completed_at'
    ]
    date_hierarchy = 'created_at'
    inlines = [TransactionEventInline, DispatchAttemptInline]

    fieldsets = (
        ('Order', {
            'fields': ('reference', 'product_type', 'product_name', 'bundle', 'network', 'quantity')
        }),
        ('Customer', {
            'fields': ('buyer', 'customer_phone', 'customer_email', 'phone_numbers', 'is_bulk_order')
        }),
        ('Money', {
            'fields': ('amount', 'tax', 'profit', 'agent', 'agent_profit')
        }),
        ('State', {
            'fields': ('status', 'payment_method', 'payment_status', 'payment_reference',
                       'delivery_status', 'failure_reason')
        }),
        ('Delivery Details', {
            'fields': ('checker_type', 'checker_year', 'delivered_serial', 'delivered_pin', 'api_response'),
            'classes': ('collapse',)
        }),
        ('Timestamps', {
            'fields': ('created_at', 'updated_at', 'completed_at'),
            'classes': ('collapse',)
        }),
    )

    def status_badge(self, obj):
        return format_html(
            '<span style="color: {}; font-weight: bold;">{}</span>',
            STATUS_COLORS.get(obj.status, '#6b7280'), obj.get_status_display()
        )
    status_badge.short_description = 'Status'
    status_badge.admin_order_field = 'status'

    def amount_display(self, obj):
        return format_html('<span style="font-weight: bold;">GHS {}</span>', f"{obj.amount:,.2f}")
    amount_display.short_description = 'Amount'
    amount_display.admin_order_field = 'amount'

    def get_queryset(self, request):
        return super().get_queryset(request).select_related('agent', 'buyer', 'bundle')
