"""
Admin API tests for Resellers Hub.

Tests cover:
- Admin-only access
- Dashboard stats and the CSV export
- Role changes and wallet adjustments
- Withdrawal review, break mode and runtime settings
"""

import csv
import io
from decimal import Decimal

from django.test import TestCase
from django.urls import reverse

from core.fulfillment import pay_with_wallet
from core.ledger import credit_profit
from core.models import Agent, AuditLog, DataBundle, LedgerEntry, User, Withdrawal
from core.services import get_break_settings, set_setting
from core.withdrawal_service import request_withdrawal

from .helpers import MTN_PHONE, fund, make_admin, make_agent, make_bundle, make_checkers, make_user


class AdminTestCase(TestCase):

    def setUp(self):
        self.admin = make_admin()
        self.client.force_login(self.admin)

    def post_json(self, name, data=None, args=None):
        return self.client.post(reverse(name, args=args), data or {}, content_type='application/json')


class AdminAccessTests(TestCase):

    def test_non_admin_forbidden(self):
        self.client.force_login(make_user())
        self.assertEqual(self.client.get(reverse('core:admin_stats')).status_code, 403)

    def test_anonymous(self):
        self.assertEqual(self.client.get(reverse('core:admin_stats')).status_code, 401)


class AdminStatsTests(AdminTestCase):

    def setUp(self):
        super().setUp()
        make_checkers(count=3)
        self.buyer = make_user(email='buyer@example.com')
        fund(self.buyer, '50.00')
        self.order = pay_with_wallet(self.buyer, product_type='result_checker', checker_type='bece',
                                     checker_year=2024, customer_phone=MTN_PHONE)

    def test_stats_exclude_topups(self):
        data = self.client.get(reverse('core:admin_stats')).json()

        self.assertEqual(data['total_revenue'], '15.00')
        self.assertEqual(data['total_profit'], '4.00')
        self.assertEqual(data['total_transactions'], 1)
        self.assertEqual(data['result_checker_stock'], 2)

    def test_csv_export(self):
        response = self.client.get(reverse('core:admin_export_transactions'), {'product_type': 'result_checker'})

        self.assertEqual(response['Content-Type'], 'text/csv')
        rows = list(csv.reader(io.StringIO(response.content.decode('utf-8'))))
        self.assertEqual(rows[0][0], 'Reference')
        self.assertEqual(len(rows), 2)
        self.assertEqual(rows[1][0], self.order.reference)
        self.assertTrue(AuditLog.objects.filter(action='export_transactions').exists())

    def test_transaction_search(self):
        response = self.client.get(reverse('core:admin_transactions'), {'search': self.order.reference[-6:]})
        self.assertEqual(len(response.json()['transactions']), 1)

    def test_bad_date_filter(self):
        response = self.client.get(reverse('core:admin_transactions'), {'date_from': '01/02/2024'})
        self.assertEqual(response.status_code, 400)


class AdminUserTests(AdminTestCase):

    def setUp(self):
        super().setUp()
        self.user = make_user(email='ama@example.com', name='Ama')

    def test_promote_creates_storefront(self):
        response = self.post_json('core:admin_user_role', {'role': 'dealer'}, args=[self.user.pk])

        self.assertEqual(response.status_code, 200)
        agent = Agent.objects.get(user=self.user)
        self.assertTrue(agent.is_approved)
        self.assertTrue(agent.storefront_slug.startswith('ama'))

    def test_demote_unapproves_storefront(self):
        make_agent(self.user, 'ama')
        self.post_json('core:admin_user_role', {'role': 'user'}, args=[self.user.pk])
        self.assertFalse(Agent.objects.get(user=self.user).is_approved)

    def test_invalid_role(self):
        response = self.post_json('core:admin_user_role', {'role': 'owner'}, args=[self.user.pk])
        self.assertEqual(response.status_code, 400)

    def test_wallet_adjustment(self):
        response = self.post_json('core:admin_wallet_adjust', {'amount': '15', 'reason': 'Failed MoMo reversal'},
                                  args=[self.user.pk])
        self.assertEqual(response.json()['balance'], '15.00')

        response = self.post_json('core:admin_wallet_adjust', {'amount': '-5', 'reason': 'Correction'},
                                  args=[self.user.pk])
        self.assertEqual(response.json()['balance'], '10.00')

        entry = LedgerEntry.objects.filter(user=self.user).latest('id')
        self.assertEqual(entry.created_by, self.admin)
        self.assertEqual(User.objects.get(pk=self.user.pk).wallet_balance, Decimal('10.00'))

    def test_wallet_adjustment_cannot_overdraw(self):
        response = self.post_json('core:admin_wallet_adjust', {'amount': '-1', 'reason': 'Oops'}, args=[self.user.pk])
        self.assertEqual(response.status_code, 402)

    def test_wallet_adjustment_needs_reason(self):
        response = self.post_json('core:admin_wallet_adjust', {'amount': '5'}, args=[self.user.pk])
        self.assertEqual(response.status_code, 400)

    def test_cannot_delete_self(self):
        response = self.client.delete(reverse('core:admin_user_detail', args=[self.admin.pk]))
        self.assertEqual(response.status_code, 400)


class AdminWithdrawalTests(AdminTestCase):

    def setUp(self):
        super().setUp()
        self.agent = make_agent(make_user(email='agent@example.com', role='agent'), 'kofi')
        credit_profit(self.agent, '50.00', LedgerEntry.EntryType.COMMISSION, 'commission:seed:2')
        self.withdrawal = request_withdrawal(self.agent, '20', 'mtn_momo',
                                             {'account_number': MTN_PHONE, 'account_name': 'Kofi'})

    def test_list_pending(self):
        data = self.client.get(reverse('core:admin_withdrawals'), {'status': 'pending'}).json()
        self.assertEqual(len(data['withdrawals']), 1)
        self.assertEqual(data['withdrawals'][0]['agent']['storefront_slug'], 'kofi')

    def test_reject(self):
        response = self.post_json('core:admin_withdrawal_reject', {'reason': 'Name mismatch'},
                                  args=[self.withdrawal.pk])

        self.assertEqual(response.status_code, 200)
        self.assertEqual(Withdrawal.objects.get(pk=self.withdrawal.pk).status, Withdrawal.Status.REJECTED)
        self.assertEqual(Agent.objects.get(pk=self.agent.pk).balance, Decimal('50.00'))

    def test_missing_withdrawal(self):
        response = self.post_json('core:admin_withdrawal_reject', {'reason': 'x'}, args=[9999])
        self.assertEqual(response.status_code, 404)


class AdminSettingsTests(AdminTestCase):

    def test_break_mode(self):
        response = self.post_json('core:admin_break_settings', {'is_enabled': True, 'message': 'Stock refill'})

        self.assertTrue(response.json()['is_enabled'])
        self.assertEqual(get_break_settings()['message'], 'Stock refill')
        self.assertEqual(self.client.get(reverse('core:break_settings')).json()['message'], 'Stock refill')

    def test_secret_values_masked(self):
        set_setting('paystack.secret_key', 'sk_live_0123456789abcdef')
        set_setting('support_whatsapp', '0241234567')

        rows = {row['key']: row['value'] for row in self.client.get(reverse('core:admin_settings')).json()['settings']}

        self.assertEqual(rows['paystack.secret_key'], 'sk_l****cdef')
        self.assertEqual(rows['support_whatsapp'], '0241234567')

    def test_api_config(self):
        response = self.post_json('core:admin_api_config', {'api_key': 'key_abcdefgh123', 'api_secret': 'sec_12345678'})
        self.assertEqual(response.status_code, 200)

        data = self.client.get(reverse('core:admin_api_config')).json()
        self.assertTrue(data['is_configured'])
        self.assertEqual(data['api_key'], 'key_****h123')

    def test_delete_unknown_setting(self):
        response = self.client.delete(reverse('core:admin_setting_detail', args=['missing']))
        self.assertEqual(response.status_code, 404)


class AdminCatalogTests(AdminTestCase):

    def test_create_bundle(self):
        response = self.post_json('core:admin_data_bundles', {
            'name': 'MTN 2GB', 'network': 'mtn', 'data_amount': '2GB', 'base_price': '11.50', 'agent_price': '10.00',
        })
        self.assertEqual(response.status_code, 201)
        self.assertEqual(DataBundle.objects.get(name='MTN 2GB').agent_price, Decimal('10.00'))

    def test_invalid_network(self):
        response = self.post_json('core:admin_data_bundles', {
            'name': 'X 1GB', 'network': 'glo', 'data_amount': '1GB', 'base_price': '5',
        })
        self.assertEqual(response.status_code, 400)

    def test_delete_sold_bundle_deactivates(self):
        bundle = make_bundle()
        buyer = make_user(email='buyer@example.com')
        fund(buyer, '10.00')
        set_setting('data_bundle_auto_processing', 'false')
        pay_with_wallet(buyer, product_type='data_bundle', bundle_id=bundle.pk, customer_phone=MTN_PHONE)

        self.client.delete(reverse('core:admin_data_bundle_detail', args=[bundle.pk]))

        self.assertFalse(DataBundle.objects.get(pk=bundle.pk).is_active)

    def test_bulk_checkers(self):
        response = self.post_json('core:admin_result_checkers_bulk', {
            'type': 'wassce', 'year': 2024, 'base_price': '20', 'cost_price': '15',
            'checkers': 'WAS001,1111\nWAS002,2222\n',
        })
        self.assertEqual(response.json()['created'], 2)
