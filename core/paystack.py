"""
Paystack service for Resellers Hub.

Thin client over the Paystack REST API: payment initialization and
verification, webhook signature checks, and transfers for withdrawals.
"""

import hashlib
import hmac
import logging
import time
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Optional

import requests
from django.conf import settings

from .exceptions import PaystackError

logger = logging.getLogger('core.payments')


# Mobile money "bank" codes Paystack uses for GHS transfer recipients
MOBILE_MONEY_BANK_CODES = {
    'mtn_momo': 'MTN',
    'telecel_cash': 'VOD',
    'vodafone_cash': 'VOD',
    'airtel_tigo_cash': 'ATL',
}

SECRET_KEY_CACHE_SECONDS = 300


def to_pesewas(amount) -> int:
    """GHS -> pesewas, the unit Paystack expects."""
    return int((Decimal(str(amount)) * 100).quantize(Decimal('1')))


def from_pesewas(amount) -> Decimal:
    return (Decimal(str(amount)) / 100).quantize(Decimal('0.01'))


@dataclass
class PaymentInitialization:
    """Result of /transaction/initialize."""
    authorization_url: str
    access_code: str
    reference: str


@dataclass
class PaymentVerification:
    """Result of /transaction/verify."""
    reference: str
    status: str
    amount: Decimal
    channel: str = ''
    paid_at: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    raw: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_successful(self):
        return self.status == 'success'


class PaystackService:
    """
    Service for interacting with the Paystack API.

    The secret key is read from the `paystack.secret_key` Setting first and
    the PAYSTACK_SECRET_KEY environment setting second, cached for 5 minutes.
    """

    def __init__(self, base_url=None):
        self.base_url = (base_url or settings.PAYSTACK_BASE_URL).rstrip('/')
        self._secret_key = None
        self._secret_key_loaded_at = 0.0

    # -------------------------------------------------------------------------
    # Configuration
    # -------------------------------------------------------------------------

    def get_secret_key(self) -> str:
        now = time.monotonic()
        if self._secret_key and now - self._secret_key_loaded_at < SECRET_KEY_CACHE_SECONDS:
            return self._secret_key

        from .services import get_setting

        key = get_setting('paystack.secret_key') or settings.PAYSTACK_SECRET_KEY
        if not key:
            raise PaystackError('Paystack secret key is not configured')

        self._secret_key = key
        self._secret_key_loaded_at = now
        return key

    def clear_cache(self):
        self._secret_key = None
        self._secret_key_loaded_at = 0.0

    @property
    def is_configured(self):
        try:
            return bool(self.get_secret_key())
        except PaystackError:
            return False

    def is_test_mode(self) -> bool:
        try:
            return self.get_secret_key().startswith('sk_test_')
        except PaystackError:
            return True

    def _headers(self):
        return {
            'Authorization': f'Bearer {self.get_secret_key()}',
            'Content-Type': 'application/json',
        }

    def _request(self, method, path, timeout, **kwargs) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        try:
            response = requests.request(method, url, headers=self._headers(), timeout=timeout, **kwargs)
        except requests.RequestException as e:
            logger.error(f"Paystack {method} {path} failed: {e}")
            raise PaystackError(f'Could not reach Paystack: {e}') from e

        try:
            data = response.json()
        except ValueError:
            data = {}

        if not response.ok or not data.get('status'):
            message = data.get('message') or f'HTTP {response.status_code}'
            logger.warning(f"Paystack {method} {path} rejected: status={response.status_code}, message={message}")
            raise PaystackError(f'Paystack error: {message}', upstream_status=response.status_code)

        return data

    # -------------------------------------------------------------------------
    # Payments
    # -------------------------------------------------------------------------

    def initialize_payment(self, email, amount, reference, callback_url=None, metadata=None) -> PaymentInitialization:
        """
        Start a Paystack checkout.

        Args:
            email: Customer email (Paystack requires one)
            amount: Amount in GHS
            reference: Our order reference
            callback_url: Where Paystack redirects after payment
            metadata: Extra data echoed back on verification

        Returns:
            PaymentInitialization with the authorization URL
        """
        if not email or '@' not in email:
            raise PaystackError('A valid email is required for payment', http_status=400)
        if Decimal(str(amount)) <= 0:
            raise PaystackError('Payment amount must be greater than zero', http_status=400)
        if not reference or len(reference) < 5:
            raise PaystackError('Payment reference is too short', http_status=400)

        payload = {
            'email': email,
            'amount': to_pesewas(amount),
            'reference': reference,
            'currency': 'GHS',
            'metadata': metadata or {},
        }
        if callback_url:
            payload['callback_url'] = callback_url

        data = self._request('POST', '/transaction/initialize', timeout=30, json=payload)['data']
        logger.info(f"Paystack payment initialized: reference={reference}, amount={amount}")

        return PaymentInitialization(
            authorization_url=data['authorization_url'],
            access_code=data.get('access_code', ''),
            reference=data.get('reference', reference),
        )

    def verify_payment(self, reference) -> PaymentVerification:
        data = self._request('GET', f'/transaction/verify/{reference}', timeout=10)['data']
        verification = PaymentVerification(
            reference=data.get('reference', reference),
            status=data.get('status', ''),
            amount=from_pesewas(data.get('amount', 0)),
            channel=data.get('channel', ''),
            paid_at=data.get('paid_at'),
            metadata=data.get('metadata') or {},
            raw=data,
        )
        logger.info(f"Paystack payment verified: reference={reference}, status={verification.status}")
        return verification

    def validate_webhook_signature(self, raw_body: bytes, signature: Optional[str]) -> bool:
        """Check the x-paystack-signature header (HMAC-SHA512 of the raw body)."""
        if not signature:
            return False
        expected = hmac.new(
            self.get_secret_key().encode('utf-8'),
            raw_body,
            hashlib.sha512,
        ).hexdigest()
        return hmac.compare_digest(expected, signature)

    # -------------------------------------------------------------------------
    # Transfers
    # -------------------------------------------------------------------------

    def resolve_bank_account(self, account_number, bank_code) -> Dict[str, Any]:
        return self._request(
            'GET', '/bank/resolve', timeout=10,
            params={'account_number': account_number, 'bank_code': bank_code},
        )['data']

    def create_transfer_recipient(self, recipient_type, name, account_number, bank_code, currency='GHS') -> str:
        """Register a payout destination and return its recipient code."""
        data = self._request('POST', '/transferrecipient', timeout=30, json={
            'type': recipient_type,
            'name': name,
            'account_number': account_number,
            'bank_code': bank_code,
            'currency': currency,
        })['data']
        return data['recipient_code']

    def initiate_transfer(self, amount, recipient_code, reason, reference) -> Dict[str, Any]:
        data = self._request('POST', '/transfer', timeout=30, json={
            'source': 'balance',
            'amount': to_pesewas(amount),
            'recipient': recipient_code,
            'reason': reason,
            'reference': reference,
        })['data']
        logger.info(f"Paystack transfer initiated: reference={reference}, amount={amount}, status={data.get('status')}")
        return data

    def verify_transfer(self, reference) -> Dict[str, Any]:
        return self._request('GET', f'/transfer/verify/{reference}', timeout=10)['data']


# Singleton instance
_paystack_service = None


def get_paystack_service() -> PaystackService:
    """Get or create the Paystack service singleton."""
    global _paystack_service
    if _paystack_service is None:
        _paystack_service = PaystackService()
    return _paystack_service
