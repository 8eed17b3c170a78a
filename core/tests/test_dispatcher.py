"""
Dispatcher tests for Resellers Hub.

Tests cover:
- Each recipient line is sent to the provider at most once
- Retryable outcomes are resent with exponential backoff
- Unknown outcomes hold the order in dispatching until reconciled
- Partial deliveries refund only the undelivered lines
"""

from decimal import Decimal

from django.test import TestCase, override_settings

from core.dispatcher import backoff_delay, dispatch_transaction, reconcile_dispatch
from core.exceptions import InvalidTransition, ProviderError
from core.fulfillment import create_order, pay_with_wallet, transition
from core.models import DispatchAttempt, Transaction, User
from core.services import set_setting
from core.providers import (
    OUTCOME_REJECTED, OUTCOME_RETRYABLE, OUTCOME_UNKNOWN, ProviderResult,
)

from .helpers import MTN_PHONE, MTN_PHONE_2, FakeProvider, fund, make_bundle, make_user


def retryable():
    return ProviderResult(outcome=OUTCOME_RETRYABLE, http_status=503, error='Service unavailable')


def rejected():
    return ProviderResult(outcome=OUTCOME_REJECTED, http_status=422, error='Invalid recipient')


def unknown():
    return ProviderResult(outcome=OUTCOME_UNKNOWN, error='Timed out')


@override_settings(PROVIDER_MAX_RETRIES=2, PROVIDER_BACKOFF_BASE=1.0)
class DispatchTests(TestCase):

    def setUp(self):
        self.buyer = make_user(email='buyer@example.com')
        fund(self.buyer, '50.00')
        self.bundle = make_bundle()
        self.sleeps = []
        set_setting('data_bundle_auto_processing', 'false')

    def _paid_order(self, recipients=None, bundle=None):
        """Wallet-paid order left in paid for the test to dispatch."""
        return pay_with_wallet(self.buyer, product_type='data_bundle', bundle_id=(bundle or self.bundle).pk,
                               customer_phone=MTN_PHONE, recipients=recipients)

    def _dispatch(self, order, provider):
        return dispatch_transaction(order, provider=provider, sleep=self.sleeps.append)

    def test_all_accepted_delivers(self):
        order = self._paid_order(recipients=[MTN_PHONE, MTN_PHONE_2])
        provider = FakeProvider()

        order = self._dispatch(order, provider)

        self.assertEqual(order.status, Transaction.Status.DELIVERED)
        self.assertEqual([call[3] for call in provider.calls], [f'{order.reference}:0', f'{order.reference}:1'])
        self.assertEqual(order.api_response['dispatch'][0]['provider_reference'], 'P-1')

    def test_retryable_resent_with_backoff(self):
        order = self._paid_order()
        provider = FakeProvider(outcomes=[retryable(), retryable()])

        order = self._dispatch(order, provider)

        self.assertEqual(order.status, Transaction.Status.DELIVERED)
        self.assertEqual(len(provider.calls), 3)
        self.assertEqual(self.sleeps, [1.0, 2.0])
        self.assertEqual(order.dispatch_attempts.get().attempts, 3)

    def test_retries_exhausted_fails_and_refunds(self):
        order = self._paid_order()
        provider = FakeProvider(outcomes=[retryable(), retryable(), retryable()])

        order = self._dispatch(order, provider)

        self.assertEqual(len(provider.calls), 3)
        self.assertEqual(order.status, Transaction.Status.REFUNDED)
        self.assertEqual(User.objects.get(pk=self.buyer.pk).wallet_balance, Decimal('50.00'))

    def test_rejected_not_retried(self):
        order = self._paid_order()
        provider = FakeProvider(outcomes=[rejected()])

        order = self._dispatch(order, provider)

        self.assertEqual(len(provider.calls), 1)
        self.assertEqual(self.sleeps, [])
        self.assertEqual(order.status, Transaction.Status.REFUNDED)
        self.assertIn('Invalid recipient', order.failure_reason)

    def test_unknown_outcome_never_resent(self):
        order = self._paid_order()
        provider = FakeProvider(outcomes=[unknown()])

        order = self._dispatch(order, provider)
        self.assertEqual(order.status, Transaction.Status.DISPATCHING)

        # A second dispatch run must not touch the line the provider may have
        order = self._dispatch(order, provider)
        self.assertEqual(len(provider.calls), 1)
        self.assertEqual(order.status, Transaction.Status.DISPATCHING)

    def test_partial_delivery_refunds_failed_lines(self):
        order = self._paid_order(recipients=[MTN_PHONE, MTN_PHONE_2])
        self.assertEqual(User.objects.get(pk=self.buyer.pk).wallet_balance, Decimal('38.00'))
        provider = FakeProvider(outcomes=[
            ProviderResult(outcome='accepted', provider_reference='P-9', http_status=200),
            rejected(),
        ])

        order = self._dispatch(order, provider)

        self.assertEqual(order.status, Transaction.Status.REFUNDED)
        self.assertIn('Partially delivered', order.failure_reason)
        self.assertEqual(User.objects.get(pk=self.buyer.pk).wallet_balance, Decimal('44.00'))

    def test_requires_paid_order(self):
        order = create_order('data_bundle', bundle_id=self.bundle.pk, customer_phone=MTN_PHONE,
                             customer_email='c@example.com')
        with self.assertRaises(InvalidTransition):
            self._dispatch(order, FakeProvider())

    def test_unconfigured_provider(self):
        order = self._paid_order()
        provider = FakeProvider()
        provider.is_configured = False

        with self.assertRaises(ProviderError):
            self._dispatch(order, provider)
        order.refresh_from_db()
        self.assertEqual(order.status, Transaction.Status.PAID)

    def test_unrecognised_data_amount_rejected_without_call(self):
        bundle = make_bundle(data_amount='Unlimited', base='30.00')
        order = self._paid_order(bundle=bundle)
        provider = FakeProvider()

        order = self._dispatch(order, provider)

        self.assertEqual(provider.calls, [])
        self.assertEqual(order.status, Transaction.Status.REFUNDED)

    def test_backoff_delay(self):
        self.assertEqual([backoff_delay(i) for i in range(3)], [1.0, 2.0, 4.0])


class ReconcileTests(TestCase):

    def setUp(self):
        self.bundle = make_bundle()
        self.order = create_order('data_bundle', bundle_id=self.bundle.pk, customer_phone=MTN_PHONE,
                                  customer_email='c@example.com')
        transition(self.order, Transaction.Status.PAID, payment_status=Transaction.PaymentStatus.PAID)
        dispatch_transaction(self.order, provider=FakeProvider(outcomes=[unknown()]), sleep=lambda _: None)
        self.key = f'{self.order.reference}:0'

    def test_provider_has_order(self):
        provider = FakeProvider(lookups={self.key: {'data': [{'ref': 'P-77', 'status': 'completed'}]}})

        order = reconcile_dispatch(self.order, provider=provider)

        self.assertEqual(order.status, Transaction.Status.DELIVERED)
        attempt = DispatchAttempt.objects.get(dispatch_key=self.key)
        self.assertEqual(attempt.outcome, DispatchAttempt.Outcome.ACCEPTED)
        self.assertEqual(attempt.provider_reference, 'P-77')

    def test_provider_has_no_record(self):
        order = reconcile_dispatch(self.order, provider=FakeProvider())

        # Guest order: marked refunded for a manual Paystack refund
        self.assertEqual(order.status, Transaction.Status.REFUNDED)
        self.assertEqual(DispatchAttempt.objects.get(dispatch_key=self.key).outcome, 'rejected')

    def test_unresolved_status_keeps_waiting(self):
        provider = FakeProvider(lookups={self.key: {'data': {'ref': 'P-77', 'status': 'queued'}}})

        order = reconcile_dispatch(self.order, provider=provider)
        self.assertEqual(order.status, Transaction.Status.DISPATCHING)

    def test_only_dispatching_orders(self):
        transition(self.order, Transaction.Status.DELIVERED)
        provider = FakeProvider()
        self.assertEqual(reconcile_dispatch(self.order, provider=provider).status, Transaction.Status.DELIVERED)
