"""
Transaction models for Resellers Hub.

An order moves through a one-directional state machine. Every move is
recorded as a TransactionEvent and every provider call as a DispatchAttempt.
"""

from decimal import Decimal
from django.db import models
from django.core.validators import MinValueValidator

from ..managers import TransactionManager


# =============================================================================
# TRANSACTION MODEL
# =============================================================================

class Transaction(models.Model):
    """
    A customer order: data bundle, result checker, agent activation or
    wallet top-up. The most critical table - needs good indexing.
    """

    class ProductType(models.TextChoices):
        DATA_BUNDLE = 'data_bundle', 'Data Bundle'
        RESULT_CHECKER = 'result_checker', 'Result Checker'
        AGENT_ACTIVATION = 'agent_activation', 'Agent Activation'
        WALLET_TOPUP = 'wallet_topup', 'Wallet Top-up'

    class Status(models.TextChoices):
        INITIATED = 'initiated', 'Initiated'
        AWAITING_PAYMENT = 'awaiting_payment', 'Awaiting Payment'
        PAID = 'paid', 'Paid'
        DISPATCHING = 'dispatching', 'Dispatching'
        DELIVERED = 'delivered', 'Delivered'
        FAILED = 'failed', 'Failed'
        REFUNDED = 'refunded', 'Refunded'

    class DeliveryStatus(models.TextChoices):
        PENDING = 'pending', 'Pending'
        PROCESSING = 'processing', 'Processing'
        DELIVERED = 'delivered', 'Delivered'
        FAILED = 'failed', 'Failed'

    class PaymentStatus(models.TextChoices):
        PENDING = 'pending', 'Pending'
        PAID = 'paid', 'Paid'
        FAILED = 'failed', 'Failed'
        CANCELLED = 'cancelled', 'Cancelled'
        REFUNDED = 'refunded', 'Refunded'

    class PaymentMethod(models.TextChoices):
        PAYSTACK = 'paystack', 'Paystack'
        WALLET = 'wallet', 'Wallet'

    ALLOWED_TRANSITIONS = {
        Status.INITIATED: {Status.AWAITING_PAYMENT, Status.PAID, Status.FAILED},
        Status.AWAITING_PAYMENT: {Status.PAID, Status.FAILED},
        Status.PAID: {Status.DISPATCHING, Status.DELIVERED, Status.FAILED, Status.REFUNDED},
        Status.DISPATCHING: {Status.DELIVERED, Status.FAILED},
        Status.FAILED: {Status.REFUNDED},
        Status.DELIVERED: set(),
        Status.REFUNDED: set(),
    }

    # Delivery status mirrored from the state machine
    DELIVERY_FOR_STATUS = {
        Status.DISPATCHING: DeliveryStatus.PROCESSING,
        Status.DELIVERED: DeliveryStatus.DELIVERED,
        Status.FAILED: DeliveryStatus.FAILED,
    }

    reference = models.CharField(
        'reference',
        max_length=64,
        unique=True,
        help_text='Our order reference, also used as the Paystack reference'
    )
    product_type = models.CharField(
        'product type',
        max_length=20,
        choices=ProductType.choices
    )

    # Product
    bundle = models.ForeignKey(
        'DataBundle',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='transactions'
    )
    product_name = models.CharField(
        'product name',
        max_length=200
    )
    network = models.CharField(
        'network',
        max_length=20,
        blank=True
    )
    checker_type = models.CharField(
        'result checker type',
        max_length=10,
        blank=True
    )
    checker_year = models.PositiveIntegerField(
        'result checker year',
        null=True,
        blank=True
    )
    quantity = models.PositiveIntegerField(
        'quantity',
        default=1
    )

    # Money
    amount = models.DecimalField(
        'amount',
        max_digits=12,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0.01'))],
        help_text='Total charged to the customer in GHS, tax included'
    )
    tax = models.DecimalField(
        'tax',
        max_digits=10,
        decimal_places=2,
        default=Decimal('0.00')
    )
    profit = models.DecimalField(
        'platform profit',
        max_digits=12,
        decimal_places=2,
        default=Decimal('0.00')
    )
    agent = models.ForeignKey(
        'Agent',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='transactions',
        help_text='Storefront the order was placed through'
    )
    agent_profit = models.DecimalField(
        'agent profit',
        max_digits=12,
        decimal_places=2,
        default=Decimal('0.00')
    )

    # Customer
    buyer = models.ForeignKey(
        'User',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='purchases'
    )
    customer_phone = models.CharField(
        'customer phone',
        max_length=20,
        db_index=True
    )
    customer_email = models.EmailField(
        'customer email',
        blank=True,
        db_index=True
    )
    phone_numbers = models.JSONField(
        'recipients',
        default=list,
        blank=True,
        help_text='List of {phone, bundle_name, data_amount} entries'
    )
    is_bulk_order = models.BooleanField(
        'bulk order',
        default=False
    )

    # Payment
    payment_method = models.CharField(
        'payment method',
        max_length=10,
        choices=PaymentMethod.choices,
        default=PaymentMethod.PAYSTACK
    )
    payment_reference = models.CharField(
        'payment reference',
        max_length=100,
        blank=True,
        db_index=True
    )
    payment_status = models.CharField(
        'payment status',
        max_length=12,
        choices=PaymentStatus.choices,
        default=PaymentStatus.PENDING
    )

    # Lifecycle
    status = models.CharField(
        'status',
        max_length=20,
        choices=Status.choices,
        default=Status.INITIATED,
        db_index=True
    )
    delivery_status = models.CharField(
        'delivery status',
        max_length=12,
        choices=DeliveryStatus.choices,
        default=DeliveryStatus.PENDING
    )
    api_response = models.JSONField(
        'provider response',
        null=True,
        blank=True
    )
    delivered_pin = models.CharField(
        'delivered PIN',
        max_length=50,
        blank=True
    )
    delivered_serial = models.CharField(
        'delivered serial',
        max_length=50,
        blank=True
    )
    failure_reason = models.TextField(
        'failure reason',
        blank=True
    )
    sms_status = models.CharField(
        'SMS status',
        max_length=10,
        blank=True
    )

    # Timestamps
    created_at = models.DateTimeField(
        'created at',
        auto_now_add=True,
        db_index=True
    )
    updated_at = models.DateTimeField(
        'updated at',
        auto_now=True
    )
    completed_at = models.DateTimeField(
        'completed at',
        null=True,
        blank=True
    )

    objects = TransactionManager()

    class Meta:
        verbose_name = 'transaction'
        verbose_name_plural = 'transactions'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['status', '-created_at']),
            models.Index(fields=['agent', '-created_at']),
            models.Index(fields=['buyer', '-created_at']),
            models.Index(fields=['product_type', 'status']),
        ]

    def __str__(self):
        return f"{self.reference} {self.product_name} GHS {self.amount} [{self.status}]"

    def can_transition(self, target):
        return target in self.ALLOWED_TRANSITIONS.get(self.status, set())

    @property
    def is_final(self):
        return self.status in (self.Status.DELIVERED, self.Status.REFUNDED)

    @property
    def payment_captured(self):
        return self.payment_status == self.PaymentStatus.PAID

    def recipients(self):
        """
        Return [{'phone', 'bundle_name', 'data_amount'}] for delivery.
        Single orders without a recipient list go to the customer phone.
        """
        if self.phone_numbers:
            return [
                {
                    'phone': item.get('phone', ''),
                    'bundle_name': item.get('bundle_name') or self.product_name,
                    'data_amount': item.get('data_amount', ''),
                }
                for item in self.phone_numbers
            ]
        return [{
            'phone': self.customer_phone,
            'bundle_name': self.product_name,
            'data_amount': self.bundle.data_amount if self.bundle_id else '',
        }]


class TransactionEvent(models.Model):
    """Append-only history of state machine moves."""

    transaction = models.ForeignKey(
        Transaction,
        on_delete=models.CASCADE,
        related_name='events'
    )
    from_status = models.CharField(
        'from',
        max_length=20
    )
    to_status = models.CharField(
        'to',
        max_length=20
    )
    note = models.TextField(
        'note',
        blank=True
    )
    created_at = models.DateTimeField(
        'created at',
        auto_now_add=True
    )

    class Meta:
        verbose_name = 'transaction event'
        verbose_name_plural = 'transaction events'
        ordering = ['created_at', 'id']

    def __str__(self):
        return f"{self.transaction.reference}: {self.from_status} → {self.to_status}"


# =============================================================================
# DISPATCH ATTEMPT MODEL
# =============================================================================

class DispatchAttempt(models.Model):
    """
    One delivery of one recipient line to the bundle provider.

    `dispatch_key` is `{reference}:{line}`; a key that reached the provider
    (accepted or unknown outcome) is never sent again.
    """

    class Outcome(models.TextChoices):
        PENDING = 'pending', 'Pending'
        ACCEPTED = 'accepted', 'Accepted'
        REJECTED = 'rejected', 'Rejected'
        RETRYABLE = 'retryable', 'Retryable'
        UNKNOWN = 'unknown', 'Unknown (needs reconciliation)'

    transaction = models.ForeignKey(
        Transaction,
        on_delete=models.CASCADE,
        related_name='dispatch_attempts'
    )
    dispatch_key = models.CharField(
        'dispatch key',
        max_length=80,
        unique=True
    )
    recipient = models.CharField(
        'recipient',
        max_length=20
    )
    capacity_mb = models.PositiveIntegerField(
        'capacity (MB)'
    )
    attempts = models.PositiveIntegerField(
        'attempts',
        default=0
    )
    outcome = models.CharField(
        'outcome',
        max_length=12,
        choices=Outcome.choices,
        default=Outcome.PENDING
    )
    provider_reference = models.CharField(
        'provider reference',
        max_length=100,
        blank=True
    )
    http_status = models.PositiveIntegerField(
        'HTTP status',
        null=True,
        blank=True
    )
    response = models.JSONField(
        'response',
        null=True,
        blank=True
    )
    error = models.TextField(
        'error',
        blank=True
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
        verbose_name = 'dispatch attempt'
        verbose_name_plural = 'dispatch attempts'
        ordering = ['dispatch_key']

    def __str__(self):
        return f"{self.dispatch_key} → {self.recipient} [{self.outcome}]"

    @property
    def reached_provider(self):
        return self.outcome in (self.Outcome.ACCEPTED, self.Outcome.UNKNOWN)
