"""
Catalog models for Resellers Hub.

Data bundles with per-role price tiers, reseller price overrides, and
result checker voucher stock.
"""

from decimal import Decimal
from django.db import models
from django.core.validators import MinValueValidator

from ..managers import ResultCheckerManager


class Network(models.TextChoices):
    MTN = 'mtn', 'MTN'
    TELECEL = 'telecel', 'Telecel'
    AT_BIGTIME = 'at_bigtime', 'AT Bigtime'
    AT_ISHARE = 'at_ishare', 'AT iShare'


# =============================================================================
# DATA BUNDLE MODEL
# =============================================================================

class DataBundle(models.Model):
    """
    A prepaid data allotment sold to a phone number.

    Prices cascade down the reseller hierarchy: each tier buys at its own
    price and the customer pays `base_price` (or the storefront price).
    """

    # Role -> field holding that role's buying price
    TIER_FIELDS = {
        'admin': 'admin_price',
        'master': 'master_price',
        'super_dealer': 'super_dealer_price',
        'dealer': 'dealer_price',
        'agent': 'agent_price',
    }

    name = models.CharField(
        'bundle name',
        max_length=100,
        help_text='e.g., MTN 5GB'
    )
    network = models.CharField(
        'network',
        max_length=20,
        choices=Network.choices,
        db_index=True
    )
    data_amount = models.CharField(
        'data amount',
        max_length=20,
        help_text='e.g., 5GB or 500MB'
    )
    validity = models.CharField(
        'validity',
        max_length=50,
        default='Non-expiry'
    )
    api_code = models.CharField(
        'provider code',
        max_length=50,
        blank=True,
        help_text='Product code at the bundle provider, if it needs one'
    )

    # Price tiers
    base_price = models.DecimalField(
        'customer price',
        max_digits=10,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0.01'))]
    )
    agent_price = models.DecimalField(
        'agent price', max_digits=10, decimal_places=2, null=True, blank=True
    )
    dealer_price = models.DecimalField(
        'dealer price', max_digits=10, decimal_places=2, null=True, blank=True
    )
    super_dealer_price = models.DecimalField(
        'super dealer price', max_digits=10, decimal_places=2, null=True, blank=True
    )
    master_price = models.DecimalField(
        'master price', max_digits=10, decimal_places=2, null=True, blank=True
    )
    admin_price = models.DecimalField(
        'admin price',
        max_digits=10,
        decimal_places=2,
        null=True,
        blank=True,
        help_text='Platform cost of the bundle'
    )

    is_active = models.BooleanField(
        'active',
        default=True
    )
    created_at = models.DateTimeField(
        'created at',
        auto_now_add=True
    )
    updated_at = models.DateTimeField(
        'updated at',
        auto_now=True
    )

    class Meta:
        verbose_name = 'data bundle'
        verbose_name_plural = 'data bundles'
        ordering = ['network', 'base_price']
        indexes = [
            models.Index(fields=['network', 'is_active']),
        ]

    def __str__(self):
        return f"{self.name} ({self.get_network_display()})"

    def tier_price(self, role):
        """Return the stored price for a role's tier, or None."""
        field = self.TIER_FIELDS.get(role)
        if field is None:
            return None
        return getattr(self, field)


class RoleBasePrice(models.Model):
    """Admin override of a tier price for one bundle and role."""

    bundle = models.ForeignKey(
        DataBundle,
        on_delete=models.CASCADE,
        related_name='role_prices'
    )
    role = models.CharField(
        'role',
        max_length=20
    )
    base_price = models.DecimalField(
        'base price',
        max_digits=10,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0'))]
    )
    updated_at = models.DateTimeField(
        'updated at',
        auto_now=True
    )

    class Meta:
        verbose_name = 'role base price'
        verbose_name_plural = 'role base prices'
        constraints = [
            models.UniqueConstraint(fields=['bundle', 'role'], name='unique_role_base_price')
        ]

    def __str__(self):
        return f"{self.bundle.name} @ {self.role}: {self.base_price}"


class CustomPricing(models.Model):
    """A reseller's own selling price for a bundle on their storefront."""

    bundle = models.ForeignKey(
        DataBundle,
        on_delete=models.CASCADE,
        related_name='custom_prices'
    )
    agent = models.ForeignKey(
        'Agent',
        on_delete=models.CASCADE,
        related_name='custom_prices'
    )
    selling_price = models.DecimalField(
        'selling price',
        max_digits=10,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0'))]
    )
    created_at = models.DateTimeField(
        'created at',
        auto_now_add=True
    )
    updated_at = models.DateTimeField(
        'updated at',
        auto_now=True
    )

    class Meta:
        verbose_name = 'custom price'
        verbose_name_plural = 'custom prices'
        constraints = [
            models.UniqueConstraint(fields=['bundle', 'agent'], name='unique_agent_bundle_price')
        ]

    def __str__(self):
        return f"{self.agent.storefront_slug}: {self.bundle.name} @ {self.selling_price}"


# =============================================================================
# RESULT CHECKER MODEL
# =============================================================================

class ResultChecker(models.Model):
    """A single exam result checker voucher (serial + PIN)."""

    class CheckerType(models.TextChoices):
        BECE = 'bece', 'BECE'
        WASSCE = 'wassce', 'WASSCE'

    type = models.CharField(
        'exam type',
        max_length=10,
        choices=CheckerType.choices
    )
    year = models.PositiveIntegerField(
        'exam year'
    )
    serial_number = models.CharField(
        'serial number',
        max_length=50,
        unique=True
    )
    pin = models.CharField(
        'PIN',
        max_length=50
    )
    base_price = models.DecimalField(
        'selling price',
        max_digits=10,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0.01'))]
    )
    cost_price = models.DecimalField(
        'cost price',
        max_digits=10,
        decimal_places=2,
        default=Decimal('0.00')
    )

    # Sale
    is_sold = models.BooleanField(
        'sold',
        default=False,
        db_index=True
    )
    sold_at = models.DateTimeField(
        'sold at',
        null=True,
        blank=True
    )
    sold_to_phone = models.CharField(
        'sold to phone',
        max_length=20,
        blank=True
    )
    transaction = models.ForeignKey(
        'Transaction',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='vouchers'
    )
    created_at = models.DateTimeField(
        'created at',
        auto_now_add=True
    )

    objects = ResultCheckerManager()

    class Meta:
        verbose_name = 'result checker'
        verbose_name_plural = 'result checkers'
        ordering = ['created_at', 'id']
        indexes = [
            models.Index(fields=['type', 'year', 'is_sold']),
        ]

    def __str__(self):
        return f"{self.get_type_display()} {self.year} #{self.serial_number}"
