"""
Management command to reconcile orders with Paystack and the bundle provider.

Should be run every few minutes via a scheduled task.

- Orders stuck in awaiting_payment are verified against Paystack
- Dispatching orders with unknown provider outcomes are looked up
- Cached wallet and profit balances are checked against the ledger
"""

import logging
from datetime import timedelta

from django.core.management.base import BaseCommand
from django.utils import timezone

from core.dispatcher import reconcile_dispatch
from core.exceptions import ResellerError
from core.fulfillment import verify_and_confirm
from core.ledger import verify_balances
from core.models import Transaction

logger = logging.getLogger('core.transactions')


class Command(BaseCommand):
    help = 'Verify stuck payments, reconcile provider dispatches and check ledger balances'

    def add_arguments(self, parser):
        parser.add_argument(
            '--minutes',
            type=int,
            default=15,
            help='Only verify payments older than this many minutes (default 15).',
        )
        parser.add_argument(
            '--skip-payments',
            action='store_true',
            help='Skip Paystack verification.',
        )
        parser.add_argument(
            '--skip-dispatch',
            action='store_true',
            help='Skip provider reconciliation.',
        )

    def handle(self, *args, **options):
        if not options['skip_payments']:
            self._verify_payments(options['minutes'])
        if not options['skip_dispatch']:
            self._reconcile_dispatches()
        self._check_ledger()

    def _verify_payments(self, minutes):
        cutoff = timezone.now() - timedelta(minutes=minutes)
        stuck = Transaction.objects.all().stuck_awaiting_payment(cutoff)
        self.stdout.write(f"Verifying {stuck.count()} payment(s) older than {minutes} minutes...")

        for order in stuck:
            try:
                order = verify_and_confirm(order.reference)
            except ResellerError as e:
                logger.warning(f"Payment verification failed: ref={order.reference}, error={e.message}")
                self.stderr.write(self.style.WARNING(f"  ✗ {order.reference}: {e.message}"))
                continue
            self.stdout.write(f"  {order.reference}: {order.status}")

    def _reconcile_dispatches(self):
        dispatching = Transaction.objects.filter(status=Transaction.Status.DISPATCHING)
        self.stdout.write(f"Reconciling {dispatching.count()} dispatching order(s)...")

        for order in dispatching:
            try:
                order = reconcile_dispatch(order)
            except ResellerError as e:
                logger.warning(f"Dispatch reconcile failed: ref={order.reference}, error={e.message}")
                self.stderr.write(self.style.WARNING(f"  ✗ {order.reference}: {e.message}"))
                continue
            self.stdout.write(f"  {order.reference}: {order.status}")

    def _check_ledger(self):
        drifts = verify_balances()
        if not drifts:
            self.stdout.write(self.style.SUCCESS('✓ Ledger balances agree'))
            return
        for drift in drifts:
            self.stderr.write(self.style.ERROR(
                f"  ✗ {drift['user']} {drift['account']}: cached={drift['cached']}, ledger={drift['ledger']}"
            ))
