"""
Withdrawal workflow for Resellers Hub.

pending -> approved -> paid, or pending -> rejected. An approved payout
whose Paystack transfer fails or is reversed also ends up rejected. The
amount leaves the profit ledger on request and comes back on rejection.
"""

import logging
from decimal import Decimal, InvalidOperation

from django.conf import settings
from django.db import transaction as db_transaction
from django.utils import timezone

from .exceptions import NotFound, WithdrawalError

logger = logging.getLogger('core.payments')


def _validate_amount(amount):
    try:
        amount = Decimal(str(amount)).quantize(Decimal('0.01'))
    except (InvalidOperation, ValueError, TypeError) as e:
        raise WithdrawalError('Invalid withdrawal amount') from e
    if amount < settings.WITHDRAWAL_MIN_AMOUNT:
        raise WithdrawalError(f'Minimum withdrawal is GHS {settings.WITHDRAWAL_MIN_AMOUNT:.2f}')
    if amount > settings.WITHDRAWAL_MAX_AMOUNT:
        raise WithdrawalError(f'Maximum withdrawal is GHS {settings.WITHDRAWAL_MAX_AMOUNT:,.2f}')
    return amount


def request_withdrawal(agent, amount, payment_method, details):
    """
    Create a pending withdrawal and take the amount off the profit balance.

    Args:
        agent: Agent requesting the payout
        amount: GHS amount
        payment_method: Withdrawal.Method value
        details: dict with account_number, account_name and, for banks,
            bank_code and bank_name

    Returns:
        Withdrawal
    """
    from .ledger import debit_profit
    from .models import LedgerEntry, Withdrawal
    from .networks import is_valid_phone, normalize_phone
    from .services import generate_withdrawal_reference

    amount = _validate_amount(amount)
    if payment_method not in Withdrawal.Method.values:
        raise WithdrawalError('Invalid payment method')

    account_number = (details.get('account_number') or '').strip()
    account_name = (details.get('account_name') or '').strip()
    bank_code = (details.get('bank_code') or '').strip()
    bank_name = (details.get('bank_name') or '').strip()

    if not account_number or not account_name:
        raise WithdrawalError('Account number and account name are required')
    if payment_method == Withdrawal.Method.BANK:
        if not bank_code:
            raise WithdrawalError('Bank code is required for bank transfers')
    else:
        if not is_valid_phone(account_number):
            raise WithdrawalError('Invalid mobile money number')
        account_number = normalize_phone(account_number)

    # Same destination as an earlier payout: reuse its Paystack recipient
    previous = (
        Withdrawal.objects.filter(
            agent=agent,
            payment_method=payment_method,
            account_number=account_number,
            bank_code=bank_code,
        )
        .exclude(recipient_code='')
        .order_by('-created_at')
        .first()
    )

    with db_transaction.atomic():
        withdrawal = Withdrawal.objects.create(
            agent=agent,
            amount=amount,
            payment_method=payment_method,
            bank_name=bank_name,
            bank_code=bank_code,
            account_number=account_number,
            account_name=account_name,
            recipient_code=previous.recipient_code if previous else '',
            transfer_reference=generate_withdrawal_reference(),
        )
        debit_profit(
            agent, amount, LedgerEntry.EntryType.WITHDRAWAL,
            f'withdrawal:{withdrawal.transfer_reference}',
            withdrawal=withdrawal,
            description=f'Withdrawal {withdrawal.transfer_reference}',
        )

    logger.info(
        f"Withdrawal requested: ref={withdrawal.transfer_reference}, agent={agent.storefront_slug}, "
        f"amount={amount}, method={payment_method}"
    )
    return withdrawal


def approve_withdrawal(withdrawal, admin, note='', request=None):
    """
    Send the payout through a Paystack transfer.

    Raises:
        WithdrawalError: if the withdrawal is no longer pending
        PaystackError: if Paystack refuses the recipient or transfer
    """
    from .models import Withdrawal
    from .notification_service import notify_withdrawal
    from .paystack import MOBILE_MONEY_BANK_CODES, get_paystack_service
    from .services import record_audit

    withdrawal.refresh_from_db()
    if withdrawal.status != Withdrawal.Status.PENDING:
        raise WithdrawalError(f'Withdrawal is already {withdrawal.status}', http_status=409)

    paystack = get_paystack_service()

    if not withdrawal.recipient_code:
        if withdrawal.is_mobile_money:
            recipient_type = 'mobile_money'
            bank_code = MOBILE_MONEY_BANK_CODES[withdrawal.payment_method]
        else:
            recipient_type = 'ghipss'
            bank_code = withdrawal.bank_code
        withdrawal.recipient_code = paystack.create_transfer_recipient(
            recipient_type, withdrawal.account_name, withdrawal.account_number, bank_code,
        )
        withdrawal.save(update_fields=['recipient_code', 'updated_at'])

    data = paystack.initiate_transfer(
        amount=withdrawal.amount,
        recipient_code=withdrawal.recipient_code,
        reason=f'Resellers Hub withdrawal {withdrawal.transfer_reference}',
        reference=withdrawal.transfer_reference,
    )

    now = timezone.now()
    withdrawal.status = Withdrawal.Status.APPROVED
    withdrawal.transfer_code = data.get('transfer_code', '')
    withdrawal.approved_by = admin
    withdrawal.approved_at = now
    withdrawal.admin_note = note or ''
    if data.get('status') == 'success':
        withdrawal.status = Withdrawal.Status.PAID
        withdrawal.paid_at = now
    withdrawal.save()

    record_audit(admin, 'approve_withdrawal', 'withdrawal', withdrawal.pk,
                 {'status': 'pending'}, {'status': withdrawal.status}, request)
    logger.info(f"Withdrawal approved: ref={withdrawal.transfer_reference}, transfer={withdrawal.transfer_code}")
    notify_withdrawal(withdrawal)
    return withdrawal


def _return_to_balance(withdrawal, reason):
    from .ledger import credit_profit
    from .models import LedgerEntry

    credit_profit(
        withdrawal.agent, withdrawal.amount, LedgerEntry.EntryType.WITHDRAWAL_REVERSAL,
        f'withdrawal-reversal:{withdrawal.transfer_reference}',
        withdrawal=withdrawal,
        description=f'Withdrawal {withdrawal.transfer_reference} returned: {reason}',
    )


def reject_withdrawal(withdrawal, admin, reason, request=None):
    """Reject a pending withdrawal and return the amount to the agent."""
    from .models import Withdrawal
    from .notification_service import notify_withdrawal
    from .services import record_audit

    if not (reason or '').strip():
        raise WithdrawalError('A rejection reason is required')

    with db_transaction.atomic():
        locked = Withdrawal.objects.select_for_update().select_related('agent__user').get(pk=withdrawal.pk)
        if locked.status != Withdrawal.Status.PENDING:
            raise WithdrawalError(f'Withdrawal is already {locked.status}', http_status=409)
        _return_to_balance(locked, reason)
        locked.status = Withdrawal.Status.REJECTED
        locked.rejection_reason = reason.strip()
        locked.approved_by = admin
        locked.save()

    record_audit(admin, 'reject_withdrawal', 'withdrawal', locked.pk,
                 {'status': 'pending'}, {'status': 'rejected', 'reason': reason}, request)
    logger.info(f"Withdrawal rejected: ref={locked.transfer_reference}, reason={reason}")
    notify_withdrawal(locked)
    withdrawal.refresh_from_db()
    return withdrawal


def _by_reference(reference):
    from .models import Withdrawal

    withdrawal = Withdrawal.objects.select_related('agent__user').filter(transfer_reference=reference).first()
    if withdrawal is None:
        raise NotFound('Withdrawal not found')
    return withdrawal


def mark_withdrawal_paid(reference, transfer_code=''):
    """Record a successful transfer. Repeated calls are harmless."""
    from .models import Withdrawal
    from .notification_service import notify_withdrawal

    withdrawal = _by_reference(reference)
    if withdrawal.status == Withdrawal.Status.PAID:
        return withdrawal
    if withdrawal.status != Withdrawal.Status.APPROVED:
        logger.warning(f"transfer.success for {reference} in status {withdrawal.status}, ignoring")
        return withdrawal

    withdrawal.status = Withdrawal.Status.PAID
    withdrawal.paid_at = timezone.now()
    if transfer_code:
        withdrawal.transfer_code = transfer_code
    withdrawal.save()
    logger.info(f"Withdrawal paid: ref={reference}")
    notify_withdrawal(withdrawal)
    return withdrawal


def reverse_withdrawal(reference, reason):
    """A transfer failed or was reversed: reject the payout and refund it."""
    from .models import Withdrawal
    from .notification_service import notify_withdrawal

    withdrawal = _by_reference(reference)
    with db_transaction.atomic():
        locked = Withdrawal.objects.select_for_update().select_related('agent__user').get(pk=withdrawal.pk)
        if locked.status == Withdrawal.Status.REJECTED:
            return locked
        _return_to_balance(locked, reason)
        locked.status = Withdrawal.Status.REJECTED
        locked.rejection_reason = reason
        locked.save()

    logger.warning(f"Withdrawal reversed: ref={reference}, reason={reason}")
    notify_withdrawal(locked)
    return locked
