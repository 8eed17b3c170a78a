"""
Data bundle provider service for Resellers Hub.

Signs and sends orders to the external bundle API. Every call is signed
with HMAC-SHA256 over "{timestamp}\\n{METHOD}\\n{path}\\n{body}".
"""

import hashlib
import hmac
import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional
from urllib.parse import urlparse

import requests
from django.conf import settings
from urllib3.exceptions import NewConnectionError

from .exceptions import ProviderError

logger = logging.getLogger('core.providers')


DEFAULT_ENDPOINT = 'https://skytechgh.com/api/v1/orders'

# Statuses that mean the provider did not take the order and a resend is safe
RETRYABLE_STATUSES = (429, 503)

OUTCOME_ACCEPTED = 'accepted'
OUTCOME_REJECTED = 'rejected'
OUTCOME_RETRYABLE = 'retryable'
OUTCOME_UNKNOWN = 'unknown'


@dataclass
class ProviderResult:
    """Classified outcome of one provider order call."""
    outcome: str
    provider_reference: str = ''
    http_status: Optional[int] = None
    response: Optional[Dict[str, Any]] = None
    error: str = ''

    @property
    def accepted(self):
        return self.outcome == OUTCOME_ACCEPTED


def sign_request(secret, timestamp, method, path, body=''):
    """Hex HMAC-SHA256 signature for a provider request."""
    message = f"{timestamp}\n{method.upper()}\n{path}\n{body}"
    return hmac.new(secret.encode('utf-8'), message.encode('utf-8'), hashlib.sha256).hexdigest()


def connection_never_opened(exc):
    """
    True when a requests ConnectionError failed while connecting, before
    any part of the request was written (connect timeout, refused, DNS).
    """
    if isinstance(exc, requests.ConnectTimeout):
        return True

    seen = set()
    pending = [exc]
    while pending:
        current = pending.pop()
        if not isinstance(current, BaseException) or id(current) in seen:
            continue
        seen.add(id(current))
        if isinstance(current, NewConnectionError):
            return True
        pending.extend([current.__cause__, current.__context__, getattr(current, 'reason', None)])
        pending.extend(arg for arg in current.args if isinstance(arg, BaseException))
    return False


class BundleProviderService:
    """
    Client for the external data bundle API.

    Credentials come from the `external_api.key`, `external_api.secret` and
    `external_api.endpoint` Settings, falling back to PROVIDER_API_* settings.
    """

    def __init__(self, api_key=None, api_secret=None, endpoint=None, timeout=None):
        from .services import get_setting

        self.api_key = api_key or get_setting('external_api.key') or settings.PROVIDER_API_KEY
        self.api_secret = api_secret or get_setting('external_api.secret') or settings.PROVIDER_API_SECRET
        self.endpoint = (
            endpoint or get_setting('external_api.endpoint') or settings.PROVIDER_API_ENDPOINT or DEFAULT_ENDPOINT
        )
        self.timeout = timeout or settings.PROVIDER_TIMEOUT

        parsed = urlparse(self.endpoint)
        self.base_url = f"{parsed.scheme}://{parsed.netloc}"
        self.orders_path = parsed.path or '/api/v1/orders'

    @property
    def is_configured(self):
        return bool(self.api_key and self.api_secret)

    def _signed_headers(self, method, path, body=''):
        if not self.is_configured:
            raise ProviderError('Data bundle provider credentials are not configured')
        timestamp = str(int(time.time()))
        return {
            'Authorization': f'Bearer {self.api_key}',
            'Content-Type': 'application/json',
            'X-Timestamp': timestamp,
            'X-Signature': sign_request(self.api_secret, timestamp, method, path, body),
        }

    def _get(self, path, params=None) -> Dict[str, Any]:
        headers = self._signed_headers('GET', path)
        try:
            response = requests.get(f"{self.base_url}{path}", headers=headers, params=params, timeout=self.timeout)
            response.raise_for_status()
            return response.json()
        except requests.RequestException as e:
            logger.error(f"Provider GET {path} failed: {e}")
            raise ProviderError(f'Provider request failed: {e}') from e
        except ValueError as e:
            raise ProviderError('Provider returned invalid JSON') from e

    # -------------------------------------------------------------------------
    # Orders
    # -------------------------------------------------------------------------

    def place_order(self, network, recipient, capacity_mb, client_reference) -> ProviderResult:
        """
        Send one bundle to one recipient.

        Never raises for transport errors; the failure is classified instead
        so the dispatcher can decide whether a resend is safe.
        """
        body = json.dumps({
            'network': network,
            'recipient': recipient,
            'capacity': capacity_mb,
            'reference': client_reference,
        }, separators=(',', ':'))
        headers = self._signed_headers('POST', self.orders_path, body)

        logger.info(f"Provider order: ref={client_reference}, network={network}, recipient={recipient}, capacity={capacity_mb}MB")

        try:
            response = requests.post(
                f"{self.base_url}{self.orders_path}",
                data=body,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.ConnectionError as e:
            if connection_never_opened(e):
                return ProviderResult(outcome=OUTCOME_RETRYABLE, error=f'Connection failed: {e}')
            # Dropped mid-request: the provider may have the order
            return ProviderResult(outcome=OUTCOME_UNKNOWN, error=f'Connection lost: {e}')
        except requests.Timeout as e:
            return ProviderResult(outcome=OUTCOME_UNKNOWN, error=f'Timed out: {e}')
        except requests.RequestException as e:
            return ProviderResult(outcome=OUTCOME_UNKNOWN, error=str(e))

        try:
            data = response.json()
        except ValueError:
            data = {'raw': response.text[:500]}

        if response.ok and isinstance(data, dict) and (data.get('data') or {}).get('ref'):
            return ProviderResult(
                outcome=OUTCOME_ACCEPTED,
                provider_reference=str(data['data']['ref']),
                http_status=response.status_code,
                response=data,
            )

        if response.status_code in RETRYABLE_STATUSES:
            outcome = OUTCOME_RETRYABLE
        elif 400 <= response.status_code < 500:
            outcome = OUTCOME_REJECTED
        else:
            # 2xx without a ref, or 5xx: the order may or may not exist
            outcome = OUTCOME_UNKNOWN

        message = data.get('message') if isinstance(data, dict) else ''
        return ProviderResult(
            outcome=outcome,
            http_status=response.status_code,
            response=data,
            error=message or f'HTTP {response.status_code}',
        )

    def get_order_status(self, provider_reference) -> Dict[str, Any]:
        return self._get(f"{self.orders_path.rstrip('/')}/{provider_reference}")

    def find_order(self, client_reference) -> Dict[str, Any]:
        """Look an order up by the reference we sent with it."""
        return self._get(self.orders_path, params={'reference': client_reference})

    # -------------------------------------------------------------------------
    # Account
    # -------------------------------------------------------------------------

    def get_balance(self) -> Dict[str, Any]:
        return self._get('/api/v1/balance')

    def get_prices(self, network=None, min_capacity=None, max_capacity=None, effective=None) -> Dict[str, Any]:
        params = {}
        if network:
            params['network'] = network
        if min_capacity is not None:
            params['min_capacity'] = min_capacity
        if max_capacity is not None:
            params['max_capacity'] = max_capacity
        if effective:
            params['effective'] = effective
        return self._get('/api/v1/prices', params=params)
