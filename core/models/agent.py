"""
Agent model for Resellers Hub.

A reseller's storefront, profit balance and place in the upline chain.
"""

from decimal import Decimal
from django.db import models
from django.core.validators import MinValueValidator, RegexValidator

from ..managers import AgentManager


slug_validator = RegexValidator(
    regex=r'^[a-z0-9-]+$',
    message='Slug may only contain lowercase letters, numbers and hyphens'
)


# =============================================================================
# AGENT MODEL
# =============================================================================

class Agent(models.Model):
    """
    Storefront owned by a reseller (agent, dealer, super dealer or master).

    `balance` is the withdrawable profit balance; it is a cache of the
    agent's profit ledger entries and is only written by core.ledger.
    """

    user = models.OneToOneField(
        'User',
        on_delete=models.CASCADE,
        related_name='agent',
        help_text='Reseller account that owns this storefront'
    )
    parent = models.ForeignKey(
        'self',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='downline',
        help_text='Upline reseller who earns the tier differential on sales'
    )

    # Storefront
    storefront_slug = models.CharField(
        'storefront slug',
        max_length=60,
        unique=True,
        validators=[slug_validator],
        help_text='Public address of the storefront, e.g. /store/kofi-data'
    )
    business_name = models.CharField(
        'business name',
        max_length=120
    )
    business_description = models.TextField(
        'business description',
        blank=True
    )
    custom_pricing_markup = models.DecimalField(
        'pricing markup (%)',
        max_digits=6,
        decimal_places=2,
        default=Decimal('0.00'),
        validators=[MinValueValidator(Decimal('0'))],
        help_text='Percentage added to the tier price when no custom price is set'
    )
    whatsapp_support_link = models.URLField(
        'WhatsApp support link',
        blank=True
    )
    whatsapp_channel_link = models.URLField(
        'WhatsApp channel link',
        blank=True
    )

    # Earnings
    balance = models.DecimalField(
        'profit balance',
        max_digits=12,
        decimal_places=2,
        default=Decimal('0.00'),
        help_text='Cached sum of profit ledger entries'
    )
    total_sales = models.DecimalField(
        'total sales',
        max_digits=14,
        decimal_places=2,
        default=Decimal('0.00')
    )
    total_profit = models.DecimalField(
        'total profit',
        max_digits=14,
        decimal_places=2,
        default=Decimal('0.00'),
        help_text='Lifetime commission earned, never reduced by withdrawals'
    )

    # Activation
    is_approved = models.BooleanField(
        'approved',
        default=False,
        help_text='Approved storefronts are publicly reachable'
    )
    payment_pending = models.BooleanField(
        'activation payment pending',
        default=True
    )
    activation_fee = models.DecimalField(
        'activation fee',
        max_digits=10,
        decimal_places=2,
        default=Decimal('60.00')
    )

    created_at = models.DateTimeField(
        'created at',
        auto_now_add=True
    )
    updated_at = models.DateTimeField(
        'updated at',
        auto_now=True
    )

    objects = AgentManager()

    class Meta:
        verbose_name = 'agent'
        verbose_name_plural = 'agents'
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.business_name} ({self.storefront_slug})"

    @property
    def role(self):
        return self.user.role
