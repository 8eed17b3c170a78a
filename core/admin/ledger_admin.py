"""
Ledger and Withdrawal Admin configuration for Resellers Hub.
"""

from django.contrib import admin
from django.utils.html import format_html

from ..models import LedgerEntry, Withdrawal


@admin.register(LedgerEntry)
class LedgerEntryAdmin(admin.ModelAdmin):
    """
    Read-only view of balance movements.
    Corrections are posted as adjustment entries through the admin API.
    """

    list_display = ['created_at', 'user', 'account', 'entry_type', 'amount_display', 'balance_after', 'idempotency_key']
    list_filter = ['account', 'entry_type', ('created_at', admin.DateFieldListFilter)]
    search_fields = ['user__email', 'idempotency_key', 'transaction__reference', 'description']
    date_hierarchy = 'created_at'

    def amount_display(self, obj):
        color = '#22c55e' if obj.amount >= 0 else '#ef4444'
        return format_html('<span style="color: {}; font-weight: bold;">{}</span>', color, f"{obj.amount:+,.2f}")
    amount_display.short_description = 'Amount'
    amount_display.admin_order_field = 'amount'

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(Withdrawal)
class WithdrawalAdmin(admin.ModelAdmin):
    """Admin configuration for Withdrawal model."""

    list_display = [
        'transfer_reference', 'agent', 'amount', 'payment_method',
        'account_number', 'status', 'created_at'
    ]
    list_filter = ['status', 'payment_method', 'created_at']
    search_fields = ['transfer_reference', 'agent__storefront_slug', 'account_number', 'account_name']
    readonly_fields = [
        'agent', 'amount', 'status', 'transfer_reference', 'transfer_code', 'recipient_code',
        'approved_by', 'approved_at', 'paid_at', 'created_at', 'updated_at'
    ]

    fieldsets = (
        ('Payout', {'fields': ('agent', 'amount', 'status')}),
        ('Destination', {'fields': ('payment_method', 'bank_name', 'bank_code', 'account_number', 'account_name')}),
        ('Paystack', {'fields': ('recipient_code', 'transfer_reference', 'transfer_code')}),
        ('Review', {'fields': ('admin_note', 'rejection_reason', 'approved_by', 'approved_at', 'paid_at')}),
        ('Timestamps', {'fields': ('created_at', 'updated_at'), 'classes': ('collapse',)}),
    )

    def get_queryset(self, request):
        return super().get_queryset(request).select_related('agent', 'approved_by')
