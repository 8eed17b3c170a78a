"""
Order fulfillment tests for Resellers Hub.

Tests cover:
- The transaction state machine and its event log
- Server-side order pricing and recipient validation
- Payment confirmation: idempotency, underpayment, late payment
- Wallet purchases, top-ups, refunds and agent activation
- Commissions booked on storefront sales
- Bulk upload parsing and order tracking
"""

from decimal import Decimal
from unittest import mock

from django.test import TestCase, override_settings

from core.exceptions import InsufficientFunds, InvalidTransition, NotFound, OrderError
from core.fulfillment import (
    confirm_payment, create_activation_order, create_order, create_wallet_topup,
    mark_failed, parse_bulk_upload, pay_with_wallet, track_order, transition,
    update_delivery_status, verify_and_confirm,
)
from core.models import Agent, LedgerEntry, Notification, ResultChecker, Transaction, User
from core.paystack import get_paystack_service
from core.services import create_pending_agent, set_setting

from .helpers import (
    MTN_PHONE, MTN_PHONE_2, TELECEL_PHONE, FakeProvider, fund, make_agent, make_bundle,
    make_checkers, make_user, paystack_verify_response,
)


class StateMachineTests(TestCase):

    def setUp(self):
        self.bundle = make_bundle()
        self.order = create_order('data_bundle', bundle_id=self.bundle.pk, customer_phone=MTN_PHONE,
                                  customer_email='buyer@example.com')

    def test_transition_records_event(self):
        self.assertTrue(transition(self.order, Transaction.Status.AWAITING_PAYMENT, note='checkout'))

        self.assertEqual(self.order.status, Transaction.Status.AWAITING_PAYMENT)
        event = self.order.events.get()
        self.assertEqual((event.from_status, event.to_status, event.note), ('initiated', 'awaiting_payment', 'checkout'))

    def test_same_status_is_noop(self):
        self.assertFalse(transition(self.order, Transaction.Status.INITIATED))
        self.assertEqual(self.order.events.count(), 0)

    def test_forbidden_edge(self):
        with self.assertRaises(InvalidTransition) as ctx:
            transition(self.order, Transaction.Status.DELIVERED)
        self.assertEqual(ctx.exception.status_code, 409)
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, Transaction.Status.INITIATED)

    def test_refund_requires_captured_payment(self):
        transition(self.order, Transaction.Status.PAID)
        with self.assertRaises(InvalidTransition):
            transition(self.order, Transaction.Status.REFUNDED)

    def test_delivery_status_mirrors_state(self):
        transition(self.order, Transaction.Status.PAID)
        transition(self.order, Transaction.Status.DISPATCHING)
        self.assertEqual(self.order.delivery_status, Transaction.DeliveryStatus.PROCESSING)
        transition(self.order, Transaction.Status.DELIVERED)
        self.assertEqual(self.order.delivery_status, Transaction.DeliveryStatus.DELIVERED)
        self.assertIsNotNone(self.order.completed_at)

    def test_extra_fields_saved_with_move(self):
        transition(self.order, Transaction.Status.FAILED, failure_reason='Cancelled')
        self.assertEqual(self.order.failure_reason, 'Cancelled')
        self.assertEqual(self.order.delivery_status, Transaction.DeliveryStatus.FAILED)


class CreateOrderTests(TestCase):

    def setUp(self):
        self.bundle = make_bundle()

    def test_price_computed_server_side(self):
        order = create_order('data_bundle', bundle_id=self.bundle.pk, customer_phone='+233241234567',
                             customer_email='Buyer@Example.com')

        self.assertEqual(order.amount, Decimal('6.00'))
        self.assertEqual(order.customer_phone, MTN_PHONE)
        self.assertEqual(order.customer_email, 'buyer@example.com')
        self.assertTrue(order.reference.startswith('CLEC-'))
        self.assertEqual(order.phone_numbers[0]['price'], '6.00')
        self.assertFalse(order.is_bulk_order)

    def test_reseller_pays_tier_price(self):
        dealer = make_user(email='dealer@example.com', role='dealer')
        order = create_order('data_bundle', buyer=dealer, bundle_id=self.bundle.pk, customer_phone=MTN_PHONE)
        self.assertEqual(order.amount, Decimal('5.00'))
        self.assertEqual(order.customer_email, 'dealer@example.com')

    def test_storefront_price(self):
        agent = make_agent(make_user(email='agent@example.com', role='agent'), 'kofi')
        agent.custom_pricing_markup = Decimal('25')
        agent.save()

        order = create_order('data_bundle', agent_slug='kofi', bundle_id=self.bundle.pk,
                             customer_phone=MTN_PHONE, customer_email='c@example.com')
        self.assertEqual(order.agent, agent)
        self.assertEqual(order.amount, Decimal('6.50'))

    def test_bulk_order(self):
        order = create_order('data_bundle', bundle_id=self.bundle.pk, customer_email='c@example.com',
                             recipients=[{'phone': MTN_PHONE}, MTN_PHONE_2])
        self.assertTrue(order.is_bulk_order)
        self.assertEqual(order.quantity, 2)
        self.assertEqual(order.amount, Decimal('12.00'))
        self.assertEqual(order.customer_phone, MTN_PHONE)
        self.assertIn('bulk x2', order.product_name)

    def test_wrong_network_refused(self):
        with self.assertRaises(OrderError) as ctx:
            create_order('data_bundle', bundle_id=self.bundle.pk, customer_phone=TELECEL_PHONE,
                         customer_email='c@example.com')
        self.assertEqual(ctx.exception.extra['phone'], TELECEL_PHONE)

    def test_email_required_for_paystack(self):
        with self.assertRaises(OrderError):
            create_order('data_bundle', bundle_id=self.bundle.pk, customer_phone=MTN_PHONE)

    def test_unknown_bundle(self):
        with self.assertRaises(NotFound):
            create_order('data_bundle', bundle_id=9999, customer_phone=MTN_PHONE, customer_email='c@example.com')

    def test_inactive_bundle(self):
        self.bundle.is_active = False
        self.bundle.save()
        with self.assertRaises(NotFound):
            create_order('data_bundle', bundle_id=self.bundle.pk, customer_phone=MTN_PHONE,
                         customer_email='c@example.com')

    def test_unapproved_storefront(self):
        make_agent(make_user(email='agent@example.com', role='agent'), 'pending-store', approved=False)
        with self.assertRaises(NotFound):
            create_order('data_bundle', agent_slug='pending-store', bundle_id=self.bundle.pk,
                         customer_phone=MTN_PHONE, customer_email='c@example.com')

    def test_result_checker_order(self):
        make_checkers(count=3)
        order = create_order('result_checker', checker_type='bece', checker_year=2024, quantity=2,
                             customer_phone=MTN_PHONE, customer_email='c@example.com')
        self.assertEqual(order.amount, Decimal('30.00'))
        self.assertEqual(order.product_name, 'BECE 2024 Result Checker x2')

    def test_result_checker_out_of_stock(self):
        make_checkers(count=1)
        with self.assertRaises(OrderError):
            create_order('result_checker', checker_type='bece', checker_year=2024, quantity=2,
                         customer_phone=MTN_PHONE, customer_email='c@example.com')

    def test_invalid_product_type(self):
        with self.assertRaises(OrderError):
            create_order('airtime', customer_phone=MTN_PHONE, customer_email='c@example.com')


class ConfirmPaymentTests(TestCase):

    def setUp(self):
        make_checkers(count=3)
        self.buyer = make_user(email='buyer@example.com')
        self.order = create_order('result_checker', buyer=self.buyer, checker_type='bece', checker_year=2024,
                                  quantity=2, customer_phone=MTN_PHONE)
        transition(self.order, Transaction.Status.AWAITING_PAYMENT)

    def test_checker_order_delivered(self):
        order = confirm_payment(self.order.reference, paid_amount=Decimal('30.00'), payment_reference='PSK-1')

        self.assertEqual(order.status, Transaction.Status.DELIVERED)
        self.assertEqual(order.payment_status, Transaction.PaymentStatus.PAID)
        self.assertEqual(order.payment_reference, 'PSK-1')
        self.assertEqual(order.vouchers.count(), 2)
        self.assertEqual(ResultChecker.objects.available('bece', 2024).count(), 1)
        self.assertIn('BECE2024', order.delivered_serial)
        # 30.00 revenue - 2 x 11.00 cost
        self.assertEqual(order.profit, Decimal('8.00'))
        self.assertTrue(Notification.objects.filter(user=self.buyer, transaction=order).exists())

    def test_confirm_is_idempotent(self):
        confirm_payment(self.order.reference, paid_amount=Decimal('30.00'))
        confirm_payment(self.order.reference, paid_amount=Decimal('30.00'))

        self.assertEqual(ResultChecker.objects.filter(is_sold=True).count(), 2)
        self.assertEqual(self.order.events.filter(to_status='paid').count(), 1)

    def test_underpayment_fails_order(self):
        with self.assertRaises(OrderError):
            confirm_payment(self.order.reference, paid_amount=Decimal('29.99'))

        self.order.refresh_from_db()
        self.assertEqual(self.order.status, Transaction.Status.FAILED)
        self.assertEqual(self.order.payment_status, Transaction.PaymentStatus.FAILED)
        self.assertFalse(ResultChecker.objects.filter(is_sold=True).exists())

    def test_late_payment_refunded_to_wallet(self):
        transition(self.order, Transaction.Status.FAILED, failure_reason='Abandoned')

        order = confirm_payment(self.order.reference, paid_amount=Decimal('30.00'))

        self.assertEqual(order.status, Transaction.Status.REFUNDED)
        self.assertEqual(order.payment_status, Transaction.PaymentStatus.REFUNDED)
        self.buyer.refresh_from_db()
        self.assertEqual(self.buyer.wallet_balance, Decimal('30.00'))
        self.assertTrue(LedgerEntry.objects.filter(idempotency_key=f'refund:{order.reference}').exists())

    def test_stock_gone_fails_and_refunds(self):
        ResultChecker.objects.update(is_sold=True)

        order = confirm_payment(self.order.reference, paid_amount=Decimal('30.00'))

        self.assertEqual(order.status, Transaction.Status.REFUNDED)
        self.assertEqual(order.failure_reason, 'Result checkers out of stock')
        self.assertEqual(User.objects.get(pk=self.buyer.pk).wallet_balance, Decimal('30.00'))

    def test_confirm_after_refund_is_noop(self):
        ResultChecker.objects.update(is_sold=True)
        confirm_payment(self.order.reference, paid_amount=Decimal('30.00'))

        order = confirm_payment(self.order.reference, paid_amount=Decimal('30.00'))

        self.assertEqual(order.status, Transaction.Status.REFUNDED)
        self.assertEqual(User.objects.get(pk=self.buyer.pk).wallet_balance, Decimal('30.00'))
        self.assertEqual(LedgerEntry.objects.filter(transaction=order).count(), 1)

    def test_confirm_after_late_payment_refund_is_noop(self):
        transition(self.order, Transaction.Status.FAILED, failure_reason='Abandoned')
        confirm_payment(self.order.reference, paid_amount=Decimal('30.00'))

        order = confirm_payment(self.order.reference, paid_amount=Decimal('30.00'))

        self.assertEqual(order.status, Transaction.Status.REFUNDED)
        self.assertEqual(User.objects.get(pk=self.buyer.pk).wallet_balance, Decimal('30.00'))

    def test_unknown_reference(self):
        with self.assertRaises(NotFound):
            confirm_payment('CLEC-missing')


@override_settings(PAYSTACK_SECRET_KEY='sk_test_secret')
class VerifyAndConfirmTests(TestCase):

    def setUp(self):
        get_paystack_service().clear_cache()
        make_checkers(count=1)
        self.order = create_order('result_checker', checker_type='bece', checker_year=2024,
                                  customer_phone=MTN_PHONE, customer_email='c@example.com')
        transition(self.order, Transaction.Status.AWAITING_PAYMENT)

    def tearDown(self):
        get_paystack_service().clear_cache()

    @mock.patch('core.paystack.requests.request')
    def test_successful_charge_delivers(self, mock_request):
        mock_request.return_value = paystack_verify_response(self.order.reference, 1500)

        order = verify_and_confirm(self.order.reference)

        self.assertEqual(order.status, Transaction.Status.DELIVERED)
        method, url = mock_request.call_args[0]
        self.assertEqual(method, 'GET')
        self.assertTrue(url.endswith(f'/transaction/verify/{self.order.reference}'))
        self.assertEqual(mock_request.call_args[1]['headers']['Authorization'], 'Bearer sk_test_secret')

    @mock.patch('core.paystack.requests.request')
    def test_abandoned_charge_fails(self, mock_request):
        mock_request.return_value = paystack_verify_response(self.order.reference, 1500, status='abandoned')

        order = verify_and_confirm(self.order.reference)

        self.assertEqual(order.status, Transaction.Status.FAILED)
        self.assertEqual(order.failure_reason, 'Payment abandoned')

    @mock.patch('core.paystack.requests.request')
    def test_pending_charge_left_alone(self, mock_request):
        mock_request.return_value = paystack_verify_response(self.order.reference, 1500, status='ongoing')

        order = verify_and_confirm(self.order.reference)
        self.assertEqual(order.status, Transaction.Status.AWAITING_PAYMENT)

    @mock.patch('core.paystack.requests.request')
    def test_captured_order_not_reverified(self, mock_request):
        confirm_payment(self.order.reference, paid_amount=Decimal('15.00'))

        verify_and_confirm(self.order.reference)
        mock_request.assert_not_called()


class WalletPurchaseTests(TestCase):

    def setUp(self):
        self.bundle = make_bundle()
        self.buyer = make_user(email='buyer@example.com')

    @mock.patch('core.providers.BundleProviderService')
    def test_pay_with_wallet_delivers(self, mock_provider_class):
        provider = FakeProvider()
        mock_provider_class.return_value = provider
        fund(self.buyer, '20.00')

        order = pay_with_wallet(self.buyer, product_type='data_bundle', bundle_id=self.bundle.pk,
                                customer_phone=MTN_PHONE)

        self.assertEqual(order.status, Transaction.Status.DELIVERED)
        self.assertEqual(order.payment_method, Transaction.PaymentMethod.WALLET)
        self.assertTrue(order.reference.startswith('WALLET-'))
        self.assertEqual(User.objects.get(pk=self.buyer.pk).wallet_balance, Decimal('14.00'))
        self.assertEqual(provider.calls, [('MTN', MTN_PHONE, 1024, f'{order.reference}:0')])
        self.assertEqual(order.profit, Decimal('6.00'))

    def test_insufficient_funds_creates_nothing(self):
        fund(self.buyer, '5.00')

        with self.assertRaises(InsufficientFunds):
            pay_with_wallet(self.buyer, product_type='data_bundle', bundle_id=self.bundle.pk,
                            customer_phone=MTN_PHONE)

        self.assertFalse(Transaction.objects.exists())
        self.assertEqual(User.objects.get(pk=self.buyer.pk).wallet_balance, Decimal('5.00'))

    def test_manual_processing_leaves_order_paid(self):
        set_setting('data_bundle_auto_processing', 'false')
        fund(self.buyer, '20.00')

        order = pay_with_wallet(self.buyer, product_type='data_bundle', bundle_id=self.bundle.pk,
                                customer_phone=MTN_PHONE)
        self.assertEqual(order.status, Transaction.Status.PAID)

    @mock.patch('core.providers.BundleProviderService')
    def test_unconfigured_provider_leaves_order_paid(self, mock_provider_class):
        provider = FakeProvider()
        provider.is_configured = False
        mock_provider_class.return_value = provider
        fund(self.buyer, '50.00')

        order = pay_with_wallet(self.buyer, product_type='data_bundle', bundle_id=self.bundle.pk,
                                customer_phone=MTN_PHONE)

        self.assertEqual(order.status, Transaction.Status.PAID)
        self.assertEqual(provider.calls, [])
        self.assertEqual(User.objects.get(pk=self.buyer.pk).wallet_balance, Decimal('44.00'))
        self.assertEqual(Transaction.objects.count(), 1)

    def test_failed_paid_order_refunded(self):
        set_setting('data_bundle_auto_processing', 'false')
        fund(self.buyer, '20.00')
        order = pay_with_wallet(self.buyer, product_type='data_bundle', bundle_id=self.bundle.pk,
                                customer_phone=MTN_PHONE)

        mark_failed(order, 'Provider offline')

        self.assertEqual(order.status, Transaction.Status.REFUNDED)
        self.assertEqual(User.objects.get(pk=self.buyer.pk).wallet_balance, Decimal('20.00'))

    @mock.patch('core.providers.BundleProviderService')
    def test_storefront_sale_books_commissions(self, mock_provider_class):
        mock_provider_class.return_value = FakeProvider()
        dealer = make_agent(make_user(email='dealer@example.com', role='dealer'), 'dealer')
        agent = make_agent(make_user(email='agent@example.com', role='agent'), 'kofi', parent=dealer)
        fund(self.buyer, '20.00')

        order = pay_with_wallet(self.buyer, product_type='data_bundle', bundle_id=self.bundle.pk,
                                customer_phone=MTN_PHONE, agent_slug='kofi')

        agent.refresh_from_db()
        dealer.refresh_from_db()
        self.assertEqual(order.agent_profit, Decimal('0.80'))
        self.assertEqual(agent.balance, Decimal('0.80'))
        self.assertEqual(agent.total_sales, Decimal('6.00'))
        self.assertEqual(dealer.balance, Decimal('0.20'))
        self.assertEqual(dealer.total_sales, Decimal('0.00'))
        self.assertEqual(order.profit, Decimal('5.00'))
        self.assertTrue(LedgerEntry.objects.filter(idempotency_key=f'commission:{order.reference}:{agent.pk}').exists())


class TopupAndActivationTests(TestCase):

    def setUp(self):
        self.user = make_user(email='kofi@example.com', phone=MTN_PHONE)

    def test_wallet_topup_credits_wallet(self):
        order = create_wallet_topup(self.user, '25')
        order = confirm_payment(order.reference, paid_amount=Decimal('25.00'))

        self.assertEqual(order.status, Transaction.Status.DELIVERED)
        self.assertEqual(User.objects.get(pk=self.user.pk).wallet_balance, Decimal('25.00'))
        entry = LedgerEntry.objects.get(idempotency_key=f'topup:{order.reference}')
        self.assertEqual(entry.entry_type, LedgerEntry.EntryType.TOPUP)

    def test_topup_minimum(self):
        with self.assertRaises(OrderError):
            create_wallet_topup(self.user, '0.50')

    def test_activation_approves_agent(self):
        agent = create_pending_agent(self.user, 'kofi-data', 'Kofi Data')
        order = create_activation_order(agent)
        self.assertEqual(order.amount, Decimal('60.00'))

        confirm_payment(order.reference, paid_amount=Decimal('60.00'))

        agent = Agent.objects.get(pk=agent.pk)
        self.assertTrue(agent.is_approved)
        self.assertFalse(agent.payment_pending)
        self.assertEqual(User.objects.get(pk=self.user.pk).role, User.Role.AGENT)

    def test_active_storefront_needs_no_activation(self):
        agent = make_agent(self.user, 'kofi-data')
        with self.assertRaises(OrderError) as ctx:
            create_activation_order(agent)
        self.assertEqual(ctx.exception.status_code, 409)


class AdminDeliveryTests(TestCase):

    def test_mark_paid_order_delivered(self):
        bundle = make_bundle()
        order = create_order('data_bundle', bundle_id=bundle.pk, customer_phone=MTN_PHONE,
                             customer_email='c@example.com')
        transition(order, Transaction.Status.PAID, payment_status=Transaction.PaymentStatus.PAID)

        update_delivery_status(order, 'delivered')

        self.assertEqual(order.status, Transaction.Status.DELIVERED)
        self.assertEqual(
            list(order.events.values_list('to_status', flat=True)),
            ['paid', 'dispatching', 'delivered'],
        )

    def test_invalid_delivery_status(self):
        bundle = make_bundle()
        order = create_order('data_bundle', bundle_id=bundle.pk, customer_phone=MTN_PHONE,
                             customer_email='c@example.com')
        with self.assertRaises(OrderError):
            update_delivery_status(order, 'lost')


class BulkUploadTests(TestCase):

    def test_parse_lines(self):
        items, errors = parse_bulk_upload('0241234567 2\n+233551234567, 1.5GB\n\n024 5')
        self.assertEqual([i['phone'] for i in items], ['0241234567', '0551234567'])
        self.assertEqual(items[1]['data_amount'], '1.5GB')
        self.assertEqual(len(errors), 1)
        self.assertIn('Line 4', errors[0])

    def test_amount_bounds(self):
        items, errors = parse_bulk_upload('0241234567 0.5\n0241234567 101')
        self.assertEqual(items, [])
        self.assertEqual(len(errors), 2)

    def test_matches_network_bundles(self):
        bundle = make_bundle(data_amount='2GB', base='11.50')
        items, errors = parse_bulk_upload('0241234567 2\n0241234567 3\n0201234567 2', network='mtn')

        self.assertEqual(len(items), 1)
        self.assertEqual(items[0]['bundle_id'], bundle.pk)
        self.assertIn('no 3GB bundle', errors[0])
        self.assertIn('Telecel', errors[1])


class TrackOrderTests(TestCase):

    def test_by_reference_and_phone(self):
        bundle = make_bundle()
        order = create_order('data_bundle', bundle_id=bundle.pk, customer_phone=MTN_PHONE,
                             customer_email='c@example.com')

        self.assertEqual(track_order(reference=order.reference), [order])
        self.assertEqual(track_order(phone='+233241234567'), [order])
        with self.assertRaises(OrderError):
            track_order()
