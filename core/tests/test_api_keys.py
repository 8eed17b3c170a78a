"""
API key tests for Resellers Hub.

Tests cover:
- Key format, hashing and masking
- Creation limits and permissions
- The integrator endpoints behind X-API-Key
"""

from decimal import Decimal
from unittest import mock

from django.test import TestCase, override_settings
from django.urls import reverse

from core.api_keys import (
    authenticate_api_key, create_api_key, generate_api_key, generate_public_key, hash_api_key,
    is_valid_api_key_format, mask_api_key,
)
from core.exceptions import ApiKeyError, OrderError, PermissionDenied, ResellerError
from core.models import ApiKey

from .helpers import MTN_PHONE, FakeProvider, fund, make_bundle, make_user


class ApiKeyFormatTests(TestCase):

    def test_generated_keys_match_format(self):
        self.assertTrue(is_valid_api_key_format(generate_api_key()))
        self.assertTrue(is_valid_api_key_format(generate_public_key()))

    def test_rejects_malformed_keys(self):
        self.assertFalse(is_valid_api_key_format(''))
        self.assertFalse(is_valid_api_key_format('sk_abc_notahexvalue'))
        self.assertFalse(is_valid_api_key_format('pk_' + 'a' * 31))

    def test_mask(self):
        key = 'sk_abcdef_' + 'f' * 64
        self.assertEqual(mask_api_key(key), 'sk_abcde****ffff')
        self.assertEqual(mask_api_key('short'), '****')


class CreateApiKeyTests(TestCase):

    def setUp(self):
        self.user = make_user()

    def test_stores_only_hash_and_prefix(self):
        api_key, plain = create_api_key(self.user, 'Shop')

        self.assertEqual(api_key.key_hash, hash_api_key(plain))
        self.assertEqual(api_key.key_prefix, plain[:8])
        self.assertEqual(api_key.permissions, {'orders': True, 'balance': True})

    def test_name_required(self):
        with self.assertRaises(OrderError):
            create_api_key(self.user, '   ')

    @override_settings(API_KEY_HOURLY_LIMIT=2)
    def test_hourly_limit(self):
        create_api_key(self.user, 'One')
        create_api_key(self.user, 'Two')

        with self.assertRaises(ResellerError) as ctx:
            create_api_key(self.user, 'Three')
        self.assertEqual(ctx.exception.status_code, 429)
        self.assertEqual(ApiKey.objects.filter(user=self.user).count(), 2)


class AuthenticateApiKeyTests(TestCase):

    def setUp(self):
        self.user = make_user()
        self.api_key, self.plain = create_api_key(self.user, 'Shop', {'orders': True, 'balance': False})

    def test_valid_key_touches_last_used(self):
        api_key = authenticate_api_key(self.plain, required=('orders',))
        self.assertEqual(api_key.pk, self.api_key.pk)
        self.assertIsNotNone(api_key.last_used)

    def test_missing_permission(self):
        with self.assertRaises(PermissionDenied):
            authenticate_api_key(self.plain, required=('balance',))

    def test_inactive_key(self):
        ApiKey.objects.filter(pk=self.api_key.pk).update(is_active=False)
        with self.assertRaises(ApiKeyError):
            authenticate_api_key(self.plain)

    def test_unknown_key(self):
        with self.assertRaises(ApiKeyError):
            authenticate_api_key(generate_api_key())


class ApiKeyViewTests(TestCase):

    def setUp(self):
        self.user = make_user()
        self.client.force_login(self.user)

    def test_create_returns_plain_key_once(self):
        response = self.client.post(reverse('core:api_keys'), {'name': 'Shop'}, content_type='application/json')
        self.assertEqual(response.status_code, 201)
        plain = response.json()['api_key']

        listing = self.client.get(reverse('core:api_keys')).json()
        self.assertEqual(len(listing['keys']), 1)
        self.assertNotIn(plain, str(listing))
        self.assertEqual(listing['keys'][0]['key_prefix'], plain[:8])

    def test_delete_own_key_only(self):
        other_key, _ = create_api_key(make_user(email='other@example.com'), 'Other')

        response = self.client.delete(reverse('core:api_key_detail', args=[other_key.pk]))
        self.assertEqual(response.status_code, 404)
        self.assertTrue(ApiKey.objects.filter(pk=other_key.pk).exists())

    def test_anonymous(self):
        self.client.logout()
        self.assertEqual(self.client.get(reverse('core:api_keys')).status_code, 401)


class ExternalApiTests(TestCase):

    def setUp(self):
        self.user = make_user(email='shop@example.com')
        fund(self.user, '20.00')
        self.api_key, self.plain = create_api_key(self.user, 'Shop')

    def test_balance(self):
        response = self.client.get(reverse('core:external_balance'), HTTP_X_API_KEY=self.plain)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {'balance': '20.00', 'currency': 'GHS'})

    def test_missing_key(self):
        response = self.client.get(reverse('core:external_balance'))
        self.assertEqual(response.status_code, 401)

    def test_order_paid_from_wallet(self):
        bundle = make_bundle()
        with mock.patch('core.providers.BundleProviderService', return_value=FakeProvider()):
            response = self.client.post(
                reverse('core:external_orders'),
                {'product_type': 'data_bundle', 'bundle_id': bundle.pk, 'customer_phone': MTN_PHONE},
                content_type='application/json',
                HTTP_X_API_KEY=self.plain,
            )

        self.assertEqual(response.status_code, 201)
        reference = response.json()['transaction']['reference']
        self.user.refresh_from_db()
        self.assertEqual(self.user.wallet_balance, Decimal('14.00'))

        status = self.client.get(reverse('core:external_order_status', args=[reference]),
                                 HTTP_X_API_KEY=self.plain)
        self.assertEqual(status.status_code, 200)

    def test_order_without_permission(self):
        _, limited = create_api_key(self.user, 'Read only', {'balance': True})
        response = self.client.post(reverse('core:external_orders'), {}, content_type='application/json',
                                    HTTP_X_API_KEY=limited)
        self.assertEqual(response.status_code, 403)
