"""
Ledger model for Resellers Hub.

Every change to a wallet or profit balance is one LedgerEntry row.
"""

from django.db import models


class LedgerEntry(models.Model):
    """
    Signed movement on a user's wallet or an agent's profit account.
    `balance_after` snapshots the account right after the entry.
    """

    class Account(models.TextChoices):
        WALLET = 'wallet', 'Wallet'
        PROFIT = 'profit', 'Profit'

    class EntryType(models.TextChoices):
        TOPUP = 'topup', 'Top-up'
        PURCHASE = 'purchase', 'Purchase'
        REFUND = 'refund', 'Refund'
        COMMISSION = 'commission', 'Commission'
        WITHDRAWAL = 'withdrawal', 'Withdrawal'
        WITHDRAWAL_REVERSAL = 'withdrawal_reversal', 'Withdrawal Reversal'
        ADJUSTMENT = 'adjustment', 'Admin Adjustment'

    user = models.ForeignKey(
        'User',
        on_delete=models.CASCADE,
        related_name='ledger_entries'
    )
    account = models.CharField(
        'account',
        max_length=10,
        choices=Account.choices
    )
    entry_type = models.CharField(
        'entry type',
        max_length=20,
        choices=EntryType.choices
    )
    amount = models.DecimalField(
        'amount',
        max_digits=12,
        decimal_places=2,
        help_text='Positive for credits, negative for debits'
    )
    balance_after = models.DecimalField(
        'balance after',
        max_digits=12,
        decimal_places=2
    )
    transaction = models.ForeignKey(
        'Transaction',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='ledger_entries'
    )
    withdrawal = models.ForeignKey(
        'Withdrawal',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='ledger_entries'
    )
    idempotency_key = models.CharField(
        'idempotency key',
        max_length=120,
        unique=True
    )
    description = models.CharField(
        'description',
        max_length=255,
        blank=True
    )
    created_by = models.ForeignKey(
        'User',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+',
        help_text='Admin who posted a manual adjustment'
    )
    created_at = models.DateTimeField(
        'created at',
        auto_now_add=True,
        db_index=True
    )

    class Meta:
        verbose_name = 'ledger entry'
        verbose_name_plural = 'ledger entries'
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['user', 'account', '-created_at']),
        ]

    def __str__(self):
        sign = '+' if self.amount >= 0 else ''
        return f"{self.user.email} {self.account} {sign}{self.amount} ({self.entry_type})"
