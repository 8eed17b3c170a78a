"""
Ledger for Resellers Hub.

All wallet and profit balance changes go through post_entry(). It locks
the balance owner row, refuses overdrafts, writes a LedgerEntry and moves
the cached balance in one database transaction. Re-posting an existing
idempotency key returns the original entry untouched.
"""

import logging
from decimal import Decimal

from django.db import IntegrityError, transaction as db_transaction
from django.db.models import Sum
from django.db.models.functions import Coalesce

from .exceptions import InsufficientFunds, ResellerError
from .pricing import quantize

logger = logging.getLogger('core.transactions')


def _lock_owner(user, account):
    """Return (locked row, balance field name) for an account."""
    from .models import Agent, LedgerEntry, User

    if account == LedgerEntry.Account.WALLET:
        return User.objects.select_for_update().get(pk=user.pk), 'wallet_balance'
    try:
        return Agent.objects.select_for_update().get(user_id=user.pk), 'balance'
    except Agent.DoesNotExist as e:
        raise ResellerError(f'{user.email} has no agent account for profit') from e


def post_entry(user, account, amount, entry_type, idempotency_key, transaction=None,
               withdrawal=None, description='', created_by=None):
    """
    Apply a signed amount to a user's wallet or profit account.

    Args:
        user: Owner of the account (for profit, the agent's user)
        account: LedgerEntry.Account value
        amount: Positive to credit, negative to debit
        entry_type: LedgerEntry.EntryType value
        idempotency_key: Unique key for this movement
        transaction / withdrawal: Optional related records
        description: Human readable note
        created_by: Admin posting a manual adjustment

    Returns:
        LedgerEntry (the existing one if the key was already posted)

    Raises:
        InsufficientFunds: if a debit would take the balance below zero
    """
    from .models import LedgerEntry

    amount = quantize(amount)

    with db_transaction.atomic():
        owner, field_name = _lock_owner(user, account)

        existing = LedgerEntry.objects.filter(idempotency_key=idempotency_key).first()
        if existing is not None:
            logger.debug(f"Ledger entry {idempotency_key} already posted, skipping")
            return existing

        current = getattr(owner, field_name)
        new_balance = current + amount
        if new_balance < 0:
            raise InsufficientFunds(current, -amount, account=account)

        try:
            with db_transaction.atomic():
                entry = LedgerEntry.objects.create(
                    user_id=user.pk,
                    account=account,
                    entry_type=entry_type,
                    amount=amount,
                    balance_after=new_balance,
                    transaction=transaction,
                    withdrawal=withdrawal,
                    idempotency_key=idempotency_key,
                    description=description[:255],
                    created_by=created_by,
                )
        except IntegrityError:
            # Lost a race with a concurrent post of the same key
            return LedgerEntry.objects.get(idempotency_key=idempotency_key)

        setattr(owner, field_name, new_balance)
        update_fields = [field_name]
        if account == LedgerEntry.Account.PROFIT and entry_type == LedgerEntry.EntryType.COMMISSION:
            owner.total_profit = owner.total_profit + amount
            update_fields.append('total_profit')
        owner.save(update_fields=update_fields)

    logger.info(
        f"Ledger: user={user.email}, account={account}, type={entry_type}, "
        f"amount={amount}, balance={new_balance}, key={idempotency_key}"
    )

    # Keep caller's instance in step with the locked row
    if account == LedgerEntry.Account.WALLET:
        user.wallet_balance = new_balance
    elif hasattr(user, 'agent'):
        user.agent.balance = new_balance

    return entry


def credit_wallet(user, amount, entry_type, idempotency_key, **kwargs):
    from .models import LedgerEntry
    return post_entry(user, LedgerEntry.Account.WALLET, abs(Decimal(str(amount))), entry_type, idempotency_key, **kwargs)


def debit_wallet(user, amount, entry_type, idempotency_key, **kwargs):
    from .models import LedgerEntry
    return post_entry(user, LedgerEntry.Account.WALLET, -abs(Decimal(str(amount))), entry_type, idempotency_key, **kwargs)


def credit_profit(agent, amount, entry_type, idempotency_key, **kwargs):
    from .models import LedgerEntry
    return post_entry(agent.user, LedgerEntry.Account.PROFIT, abs(Decimal(str(amount))), entry_type, idempotency_key, **kwargs)


def debit_profit(agent, amount, entry_type, idempotency_key, **kwargs):
    from .models import LedgerEntry
    return post_entry(agent.user, LedgerEntry.Account.PROFIT, -abs(Decimal(str(amount))), entry_type, idempotency_key, **kwargs)


# =============================================================================
# BALANCE CHECKS
# =============================================================================

def wallet_balance(user):
    """Wallet balance recomputed from entries."""
    from .models import LedgerEntry
    return LedgerEntry.objects.filter(user=user, account=LedgerEntry.Account.WALLET).aggregate(
        total=Coalesce(Sum('amount'), Decimal('0'))
    )['total']


def profit_balance(agent):
    """Profit balance recomputed from entries."""
    from .models import LedgerEntry
    return LedgerEntry.objects.filter(user=agent.user, account=LedgerEntry.Account.PROFIT).aggregate(
        total=Coalesce(Sum('amount'), Decimal('0'))
    )['total']


def verify_balances():
    """
    Compare every cached balance with its ledger sum.

    Returns:
        list of dicts describing each drift (empty when the books agree)
    """
    from .models import Agent, User

    drifts = []
    for user in User.objects.all().only('id', 'email', 'wallet_balance'):
        computed = wallet_balance(user)
        if computed != user.wallet_balance:
            drifts.append({
                'user': user.email, 'account': 'wallet',
                'cached': user.wallet_balance, 'ledger': computed,
            })
    for agent in Agent.objects.select_related('user'):
        computed = profit_balance(agent)
        if computed != agent.balance:
            drifts.append({
                'user': agent.user.email, 'account': 'profit',
                'cached': agent.balance, 'ledger': computed,
            })

    if drifts:
        logger.error(f"Ledger drift detected on {len(drifts)} account(s)")
    return drifts
