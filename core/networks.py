"""
Ghana mobile network helpers.

Phone number normalization, prefix-based network detection and the
mapping from our network codes to the bundle provider's codes.
"""

import re

from django.conf import settings


NETWORK_PREFIXES = {
    'mtn': ('024', '025', '053', '054', '055', '059'),
    'telecel': ('020', '050'),
    'airteltigo': ('026', '027', '056', '057'),
}

NETWORK_DISPLAY_NAMES = {
    'mtn': 'MTN Ghana',
    'telecel': 'Telecel',
    'airteltigo': 'AirtelTigo',
    'at_bigtime': 'AT Bigtime',
    'at_ishare': 'AT ishare',
}

PROVIDER_NETWORK_CODES = {
    'mtn': 'MTN',
    'telecel': 'TELECEL',
    'airteltigo': 'AIRTELTIGO',
    'at_bigtime': 'AIRTELTIGO',
    'at_ishare': 'AIRTELTIGO',
}

DATA_AMOUNT_PATTERN = re.compile(r'(\d+(?:\.\d+)?)\s*(GB|MB)', re.IGNORECASE)


def normalize_phone(phone):
    """
    Reduce a Ghana number to 10-digit local format.

    '+233 24 123 4567' -> '0241234567', '241234567' -> '0241234567'
    """
    digits = re.sub(r'\D', '', phone or '')
    if digits.startswith('233'):
        digits = '0' + digits[3:]
    if digits and not digits.startswith('0'):
        digits = '0' + digits
    return digits


def is_valid_phone(phone):
    normalized = normalize_phone(phone)
    return len(normalized) == 10 and normalized.isdigit()


def detect_network(phone):
    """Return 'mtn', 'telecel', 'airteltigo' or None for unknown prefixes."""
    prefix = normalize_phone(phone)[:3]
    for network, prefixes in NETWORK_PREFIXES.items():
        if prefix in prefixes:
            return network
    return None


def _prefix_family(network):
    # AT Bigtime and AT iShare are both sold onto AirtelTigo lines
    if network in ('at_bigtime', 'at_ishare', 'airteltigo'):
        return 'airteltigo'
    return network


def validate_phone_network(phone, network):
    """
    Check that a phone number is valid and belongs to `network`.

    Returns:
        tuple: (is_valid, error message or None)
    """
    if not is_valid_phone(phone):
        return False, f"Invalid phone number: {phone}. Use 10 digits, e.g. 0241234567"

    if not getattr(settings, 'PHONE_PREFIX_VALIDATION', True):
        return True, None

    detected = detect_network(phone)
    expected = _prefix_family(network)
    if detected != expected:
        expected_name = network_display_name(network)
        detected_name = network_display_name(detected) if detected else 'an unknown network'
        return False, f"{normalize_phone(phone)} is on {detected_name}, not {expected_name}"
    return True, None


def network_display_name(network):
    return NETWORK_DISPLAY_NAMES.get(network, (network or '').upper())


def provider_network_code(network):
    return PROVIDER_NETWORK_CODES.get((network or '').lower())


def parse_data_amount_mb(text):
    """
    Extract a data amount in MB from text like 'MTN 1.5GB' or '500 MB'.
    Returns None when no amount is present.
    """
    match = DATA_AMOUNT_PATTERN.search(text or '')
    if not match:
        return None
    value = float(match.group(1))
    if match.group(2).upper() == 'GB':
        value *= 1024
    return int(round(value))
