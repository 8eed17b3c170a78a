"""
Tests for Ghana phone number and network helpers.
"""

from django.test import SimpleTestCase, override_settings

from core.networks import (
    detect_network, is_valid_phone, normalize_phone, parse_data_amount_mb,
    provider_network_code, validate_phone_network,
)


class NormalizePhoneTests(SimpleTestCase):

    def test_international_formats(self):
        self.assertEqual(normalize_phone('+233 24 123 4567'), '0241234567')
        self.assertEqual(normalize_phone('233241234567'), '0241234567')

    def test_missing_leading_zero(self):
        self.assertEqual(normalize_phone('241234567'), '0241234567')

    def test_empty(self):
        self.assertEqual(normalize_phone(''), '')
        self.assertEqual(normalize_phone(None), '')

    def test_is_valid_phone(self):
        self.assertTrue(is_valid_phone('024-123-4567'))
        self.assertFalse(is_valid_phone('02412345'))
        self.assertFalse(is_valid_phone('abc'))


class DetectNetworkTests(SimpleTestCase):

    def test_prefixes(self):
        self.assertEqual(detect_network('0241234567'), 'mtn')
        self.assertEqual(detect_network('0591234567'), 'mtn')
        self.assertEqual(detect_network('0201234567'), 'telecel')
        self.assertEqual(detect_network('0501234567'), 'telecel')
        self.assertEqual(detect_network('0271234567'), 'airteltigo')
        self.assertIsNone(detect_network('0301234567'))


class ValidatePhoneNetworkTests(SimpleTestCase):

    def test_matching_network(self):
        self.assertEqual(validate_phone_network('0241234567', 'mtn'), (True, None))

    def test_at_products_accept_airteltigo_lines(self):
        self.assertTrue(validate_phone_network('0261234567', 'at_ishare')[0])
        self.assertTrue(validate_phone_network('0571234567', 'at_bigtime')[0])

    def test_wrong_network(self):
        ok, error = validate_phone_network('0201234567', 'mtn')
        self.assertFalse(ok)
        self.assertIn('Telecel', error)

    def test_invalid_number(self):
        ok, error = validate_phone_network('12345', 'mtn')
        self.assertFalse(ok)
        self.assertIn('Invalid phone number', error)

    @override_settings(PHONE_PREFIX_VALIDATION=False)
    def test_prefix_check_can_be_disabled(self):
        self.assertEqual(validate_phone_network('0201234567', 'mtn'), (True, None))


class ProviderCodeTests(SimpleTestCase):

    def test_codes(self):
        self.assertEqual(provider_network_code('mtn'), 'MTN')
        self.assertEqual(provider_network_code('TELECEL'), 'TELECEL')
        self.assertEqual(provider_network_code('at_ishare'), 'AIRTELTIGO')
        self.assertIsNone(provider_network_code('glo'))

    def test_parse_data_amount(self):
        self.assertEqual(parse_data_amount_mb('MTN 1GB'), 1024)
        self.assertEqual(parse_data_amount_mb('1.5 gb'), 1536)
        self.assertEqual(parse_data_amount_mb('500MB'), 500)
        self.assertIsNone(parse_data_amount_mb('Unlimited'))
