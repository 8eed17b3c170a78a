"""
Withdrawal model for Resellers Hub.

Profit payouts from an agent's balance to a bank or mobile money account.
"""

from decimal import Decimal
from django.db import models
from django.core.validators import MinValueValidator


class Withdrawal(models.Model):
    """
    A payout request. The amount leaves the profit ledger when requested
    and goes back if the request is rejected or the transfer fails.
    """

    class Status(models.TextChoices):
        PENDING = 'pending', 'Pending'
        APPROVED = 'approved', 'Approved'
        REJECTED = 'rejected', 'Rejected'
        PAID = 'paid', 'Paid'

    class Method(models.TextChoices):
        BANK = 'bank', 'Bank Transfer'
        MTN_MOMO = 'mtn_momo', 'MTN Mobile Money'
        TELECEL_CASH = 'telecel_cash', 'Telecel Cash'
        AIRTEL_TIGO_CASH = 'airtel_tigo_cash', 'AirtelTigo Cash'
        VODAFONE_CASH = 'vodafone_cash', 'Vodafone Cash'

    agent = models.ForeignKey(
        'Agent',
        on_delete=models.CASCADE,
        related_name='withdrawals'
    )
    amount = models.DecimalField(
        'amount',
        max_digits=12,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0.01'))]
    )
    status = models.CharField(
        'status',
        max_length=10,
        choices=Status.choices,
        default=Status.PENDING,
        db_index=True
    )
    payment_method = models.CharField(
        'payment method',
        max_length=20,
        choices=Method.choices
    )

    # Destination account
    bank_name = models.CharField('bank name', max_length=100, blank=True)
    bank_code = models.CharField('bank code', max_length=20, blank=True)
    account_number = models.CharField('account number', max_length=30)
    account_name = models.CharField('account name', max_length=120)

    # Paystack transfer
    recipient_code = models.CharField('recipient code', max_length=60, blank=True)
    transfer_reference = models.CharField(
        'transfer reference',
        max_length=64,
        unique=True
    )
    transfer_code = models.CharField('transfer code', max_length=60, blank=True)

    # Review
    admin_note = models.TextField('admin note', blank=True)
    rejection_reason = models.TextField('rejection reason', blank=True)
    approved_by = models.ForeignKey(
        'User',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='approved_withdrawals'
    )
    approved_at = models.DateTimeField('approved at', null=True, blank=True)
    paid_at = models.DateTimeField('paid at', null=True, blank=True)

    created_at = models.DateTimeField(
        'created at',
        auto_now_add=True
    )
    updated_at = models.DateTimeField(
        'updated at',
        auto_now=True
    )

    class Meta:
        verbose_name = 'withdrawal'
        verbose_name_plural = 'withdrawals'
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.transfer_reference} GHS {self.amount} [{self.status}]"

    @property
    def is_mobile_money(self):
        return self.payment_method != self.Method.BANK
