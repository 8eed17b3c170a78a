"""
Model tests for Resellers Hub.

Tests cover:
- User creation with email login and roles
- Data bundle tier price lookup
- Transaction state machine edges and recipient lines
- Dispatch attempt provider reach
- Runtime settings and notification preferences
"""

from decimal import Decimal

from django.db import IntegrityError
from django.test import TestCase

from core.models import (
    DispatchAttempt, NotificationPreference, Setting, Transaction, User,
)

from .helpers import MTN_PHONE, make_agent, make_bundle, make_user


class UserModelTests(TestCase):
    """Tests for custom User model."""

    def test_create_user_with_email(self):
        """Test creating a user with email (not username)."""
        user = User.objects.create_user(
            email='Test@Example.com',
            password='testpass123',
            name='Test User'
        )

        self.assertEqual(user.email, 'test@example.com')
        self.assertEqual(user.role, User.Role.USER)
        self.assertEqual(user.wallet_balance, Decimal('0.00'))
        self.assertTrue(user.check_password('testpass123'))
        self.assertFalse(user.is_staff)
        self.assertFalse(user.is_admin)

    def test_create_superuser_is_admin(self):
        admin = User.objects.create_superuser(email='admin@example.com', password='adminpass123')

        self.assertTrue(admin.is_staff)
        self.assertTrue(admin.is_superuser)
        self.assertEqual(admin.role, User.Role.ADMIN)
        self.assertTrue(admin.is_admin)

    def test_email_is_required(self):
        with self.assertRaises(ValueError):
            User.objects.create_user(email='', password='pass')

    def test_display_name_falls_back_to_email(self):
        self.assertEqual(make_user(email='kofi@example.com').display_name, 'kofi')
        self.assertEqual(make_user(email='ama@example.com', name='Ama Mensah').display_name, 'Ama Mensah')

    def test_reseller_roles(self):
        for role in ('master', 'super_dealer', 'dealer', 'agent'):
            self.assertTrue(make_user(email=f'{role}@example.com', role=role).is_reseller)
        self.assertFalse(make_user(email='guest@example.com', role='guest').is_reseller)

    def test_admins_queryset(self):
        make_user(email='role-admin@example.com', role='admin')
        make_user(email='plain@example.com')
        User.objects.create_superuser(email='root@example.com', password='pass12345')

        emails = set(User.objects.admins().values_list('email', flat=True))
        self.assertEqual(emails, {'role-admin@example.com', 'root@example.com'})


class DataBundleModelTests(TestCase):

    def test_tier_price_per_role(self):
        bundle = make_bundle()
        self.assertEqual(bundle.tier_price('agent'), Decimal('5.20'))
        self.assertEqual(bundle.tier_price('master'), Decimal('4.60'))
        self.assertIsNone(bundle.tier_price('user'))

    def test_storefront_slug_is_unique(self):
        make_agent(make_user(email='a@example.com', role='agent'), 'kofi-data')
        with self.assertRaises(IntegrityError):
            make_agent(make_user(email='b@example.com', role='agent'), 'kofi-data')


class TransactionModelTests(TestCase):

    def setUp(self):
        self.bundle = make_bundle()

    def _order(self, **fields):
        defaults = {
            'reference': 'CLEC-test-1',
            'product_type': Transaction.ProductType.DATA_BUNDLE,
            'bundle': self.bundle,
            'product_name': self.bundle.name,
            'amount': Decimal('6.00'),
            'customer_phone': MTN_PHONE,
        }
        defaults.update(fields)
        return Transaction.objects.create(**defaults)

    def test_new_order_defaults(self):
        order = self._order()
        self.assertEqual(order.status, Transaction.Status.INITIATED)
        self.assertEqual(order.delivery_status, Transaction.DeliveryStatus.PENDING)
        self.assertEqual(order.payment_status, Transaction.PaymentStatus.PENDING)
        self.assertFalse(order.is_final)

    def test_allowed_transitions(self):
        order = self._order()
        self.assertTrue(order.can_transition(Transaction.Status.AWAITING_PAYMENT))
        self.assertTrue(order.can_transition(Transaction.Status.PAID))
        self.assertFalse(order.can_transition(Transaction.Status.DELIVERED))
        self.assertFalse(order.can_transition(Transaction.Status.REFUNDED))

    def test_final_states_have_no_exits(self):
        for status in (Transaction.Status.DELIVERED, Transaction.Status.REFUNDED):
            self.assertEqual(Transaction.ALLOWED_TRANSITIONS[status], set())
        order = self._order(status=Transaction.Status.DELIVERED)
        self.assertTrue(order.is_final)
        self.assertFalse(order.can_transition(Transaction.Status.FAILED))

    def test_recipients_default_to_customer_phone(self):
        order = self._order()
        self.assertEqual(order.recipients(), [{
            'phone': MTN_PHONE,
            'bundle_name': self.bundle.name,
            'data_amount': '1GB',
        }])

    def test_recipients_from_bulk_lines(self):
        order = self._order(phone_numbers=[
            {'phone': '0241111111', 'bundle_id': self.bundle.pk, 'data_amount': '1GB', 'price': '6.00'},
            {'phone': '0242222222', 'bundle_id': self.bundle.pk, 'bundle_name': 'MTN 2GB', 'data_amount': '2GB'},
        ])
        recipients = order.recipients()
        self.assertEqual([r['phone'] for r in recipients], ['0241111111', '0242222222'])
        self.assertEqual(recipients[0]['bundle_name'], self.bundle.name)
        self.assertEqual(recipients[1]['bundle_name'], 'MTN 2GB')

    def test_reference_is_unique(self):
        self._order()
        with self.assertRaises(IntegrityError):
            self._order()


class DispatchAttemptModelTests(TestCase):

    def test_reached_provider(self):
        order = Transaction.objects.create(
            reference='CLEC-test-2', product_type='data_bundle', product_name='MTN 1GB',
            amount=Decimal('6.00'), customer_phone=MTN_PHONE,
        )
        attempt = DispatchAttempt.objects.create(
            transaction=order, dispatch_key='CLEC-test-2:0', recipient=MTN_PHONE, capacity_mb=1024,
        )
        self.assertFalse(attempt.reached_provider)
        for outcome, reached in (('accepted', True), ('unknown', True), ('retryable', False), ('rejected', False)):
            attempt.outcome = outcome
            self.assertEqual(attempt.reached_provider, reached)


class SettingModelTests(TestCase):

    def test_get_and_set_value(self):
        self.assertEqual(Setting.get_value('break_mode_message', 'none'), 'none')
        Setting.set_value('break_mode_message', 'Back soon', 'Break message')
        Setting.set_value('break_mode_message', 'Back at noon')

        row = Setting.objects.get(key='break_mode_message')
        self.assertEqual(row.value, 'Back at noon')
        self.assertEqual(row.description, 'Break message')

    def test_notification_preferences_created_on_demand(self):
        user = make_user()
        prefs = NotificationPreference.for_user(user)
        self.assertTrue(prefs.allows('order'))
        self.assertEqual(NotificationPreference.for_user(user).pk, prefs.pk)

    def test_withdrawal_and_support_alerts_cannot_be_muted(self):
        prefs = NotificationPreference.for_user(make_user())
        prefs.set_muted(['commission', 'withdrawal', 'support', 'bogus'])

        self.assertEqual(prefs.muted_kinds, ['commission'])
        self.assertFalse(prefs.allows('commission'))
        self.assertTrue(prefs.allows('withdrawal'))
