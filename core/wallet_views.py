"""
Wallet views: balance and history, Paystack top-ups and wallet checkout.
"""

import logging

from django.http import JsonResponse

from .checkout_views import order_kwargs_from_payload
from .exceptions import PermissionDenied
from .fulfillment import create_wallet_topup, get_order, pay_with_wallet, start_payment, verify_and_confirm
from .mixins import ApiLoginRequiredMixin, ApiView
from .models import LedgerEntry, Transaction
from .serializers import money, transaction_to_dict
from .services import ensure_open_for_orders

logger = logging.getLogger('core.payments')


def ledger_entry_to_dict(entry):
    return {
        'id': entry.pk,
        'entry_type': entry.entry_type,
        'amount': money(entry.amount),
        'balance_after': money(entry.balance_after),
        'description': entry.description,
        'reference': entry.transaction.reference if entry.transaction_id else None,
        'created_at': entry.created_at,
    }


class WalletStatsView(ApiLoginRequiredMixin, ApiView):
    """Balance, top-up total and the latest wallet movements."""

    def get(self, request):
        user = request.user
        user.refresh_from_db(fields=['wallet_balance'])
        topups = (
            Transaction.objects.for_buyer(user)
            .filter(product_type=Transaction.ProductType.WALLET_TOPUP)
            .delivered()
            .calculate_totals()
        )
        entries = (
            LedgerEntry.objects.filter(user=user, account=LedgerEntry.Account.WALLET)
            .select_related('transaction')
            .order_by('-created_at')[:20]
        )
        return JsonResponse({
            'balance': money(user.wallet_balance),
            'total_topups': money(topups['total_amount']),
            'topup_count': topups['count'],
            'recent_entries': [ledger_entry_to_dict(e) for e in entries],
        })


class WalletTopupInitializeView(ApiLoginRequiredMixin, ApiView):
    """POST {amount, callbackUrl?}"""

    def post(self, request):
        data = self.json_body()
        order = create_wallet_topup(request.user, data.get('amount'))
        init = start_payment(order, callback_url=data.get('callbackUrl') or data.get('callback_url'))
        return JsonResponse({
            'authorization_url': init.authorization_url,
            'access_code': init.access_code,
            'reference': order.reference,
            'amount': money(order.amount),
        }, status=201)


class WalletTopupVerifyView(ApiLoginRequiredMixin, ApiView):

    def get(self, request, reference):
        order = get_order(reference)
        if order.buyer_id != request.user.pk or order.product_type != Transaction.ProductType.WALLET_TOPUP:
            raise PermissionDenied('You do not have access to this top-up')
        order = verify_and_confirm(reference)
        request.user.refresh_from_db(fields=['wallet_balance'])
        return JsonResponse({
            'transaction': transaction_to_dict(order),
            'balance': money(request.user.wallet_balance),
        })


class WalletPayView(ApiLoginRequiredMixin, ApiView):
    """Buy a bundle or result checker with wallet funds (same body as checkout)."""

    def post(self, request):
        ensure_open_for_orders(request.user)
        kwargs = order_kwargs_from_payload(self.json_body())
        if not kwargs['customer_email']:
            kwargs['customer_email'] = request.user.email
        order = pay_with_wallet(request.user, **kwargs)
        request.user.refresh_from_db(fields=['wallet_balance'])
        return JsonResponse({
            'transaction': transaction_to_dict(order, include_secrets=order.status == 'delivered'),
            'balance': money(request.user.wallet_balance),
        }, status=201)
