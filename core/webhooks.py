"""
Webhooks for Resellers Hub.

Inbound: Paystack events (charge and transfer outcomes).
Outbound: order notifications POSTed to the URL in the `webhook.order_url`
setting.
"""

import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests
from django.utils import timezone

from .exceptions import ApiKeyError, OrderError

logger = logging.getLogger('core.payments')

WEBHOOK_USER_AGENT = 'Resellers-Hub-Webhook/1.0'
WEBHOOK_TIMEOUT = 10
WEBHOOK_MAX_RETRIES = 3


# =============================================================================
# INBOUND (PAYSTACK)
# =============================================================================

def handle_paystack_event(raw_body, signature):
    """
    Verify and apply one Paystack webhook delivery.

    Returns:
        dict describing what was done

    Raises:
        ApiKeyError: bad or missing signature (answered with 401)
        OrderError: body is not JSON
    """
    from .fulfillment import confirm_payment
    from .paystack import from_pesewas, get_paystack_service
    from .withdrawal_service import mark_withdrawal_paid, reverse_withdrawal

    if not get_paystack_service().validate_webhook_signature(raw_body, signature):
        logger.warning("Paystack webhook rejected: invalid signature")
        raise ApiKeyError('Invalid signature')

    try:
        event = json.loads(raw_body)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise OrderError('Invalid JSON') from e

    name = event.get('event', '')
    data = event.get('data') or {}
    reference = data.get('reference', '')
    logger.info(f"Paystack webhook: event={name}, reference={reference}")

    if name == 'charge.success':
        order = confirm_payment(reference, paid_amount=from_pesewas(data.get('amount', 0)), payment_reference=reference)
        return {'event': name, 'reference': reference, 'status': order.status}

    if name == 'transfer.success':
        withdrawal = mark_withdrawal_paid(reference, transfer_code=data.get('transfer_code', ''))
        return {'event': name, 'reference': reference, 'status': withdrawal.status}

    if name in ('transfer.failed', 'transfer.reversed'):
        reason = data.get('reason') or name.replace('transfer.', 'Transfer ')
        withdrawal = reverse_withdrawal(reference, reason)
        return {'event': name, 'reference': reference, 'status': withdrawal.status}

    logger.info(f"Paystack webhook {name} acknowledged without action")
    return {'event': name, 'ignored': True}


# =============================================================================
# OUTBOUND
# =============================================================================

@dataclass
class WebhookResult:
    """Result of an outbound webhook delivery."""
    success: bool
    status_code: Optional[int] = None
    attempts: int = 0
    error: str = ''


def build_webhook_payload(order, event='order.status_updated') -> Dict[str, Any]:
    """Order notification body sent to integrators."""
    products = [
        {
            'bundle_id': line.get('bundle_id') or order.bundle_id,
            'bundle_name': line.get('bundle_name') or order.product_name,
            'phone': line.get('phone', ''),
            'network': line.get('network') or order.network,
        }
        for line in (order.phone_numbers or [])
    ]
    if not products:
        products = [{
            'bundle_id': order.bundle_id,
            'bundle_name': order.product_name,
            'phone': order.customer_phone,
            'network': order.network,
        }]

    return {
        'event': event,
        'reference': order.reference,
        'status': order.status,
        'delivery_status': order.delivery_status,
        'timestamp': timezone.now().isoformat(),
        'order': {
            'id': order.pk,
            'reference': order.reference,
            'product_type': order.product_type,
            'amount': f'{order.amount:.2f}',
            'customer_phone': order.customer_phone,
            'customer_email': order.customer_email,
            'payment_status': order.payment_status,
            'created_at': order.created_at.isoformat(),
        },
        'products': products,
    }


def send_webhook(url, payload, sleep=time.sleep) -> WebhookResult:
    """
    POST a JSON payload, retrying failures with exponential backoff (1s, then 2s).

    Never raises; the outcome is reported in the result.
    """
    body = json.dumps(payload, default=str)
    headers = {
        'Content-Type': 'application/json',
        'User-Agent': WEBHOOK_USER_AGENT,
    }

    error = ''
    status_code = None
    for attempt in range(1, WEBHOOK_MAX_RETRIES + 1):
        try:
            response = requests.post(url, data=body, headers=headers, timeout=WEBHOOK_TIMEOUT)
            status_code = response.status_code
            if response.ok:
                logger.info(f"Webhook delivered: url={url}, event={payload.get('event')}, attempt={attempt}")
                return WebhookResult(success=True, status_code=status_code, attempts=attempt)
            error = f'HTTP {status_code}'
        except requests.RequestException as e:
            error = str(e)

        logger.warning(f"Webhook attempt {attempt} to {url} failed: {error}")
        if attempt < WEBHOOK_MAX_RETRIES:
            sleep(2 ** (attempt - 1))

    return WebhookResult(success=False, status_code=status_code, attempts=WEBHOOK_MAX_RETRIES, error=error)


def send_order_status_update(order, event='order.status_updated'):
    """Notify the configured integrator URL about an order, if one is set."""
    from .services import get_setting

    url = get_setting('webhook.order_url')
    if not url:
        return None
    return send_webhook(url, build_webhook_payload(order, event))
