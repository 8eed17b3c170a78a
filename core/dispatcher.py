"""
Data bundle dispatcher for Resellers Hub.

Sends each recipient line of a paid order to the bundle provider at most
once. A line is claimed by flipping its DispatchAttempt to `unknown`
before the HTTP call, so a crash or a concurrent worker can never resend
a line the provider may already have. Only `retryable` outcomes
(connection refused, 429, 503) are resent, with exponential backoff.
"""

import logging
import time
from decimal import Decimal

from django.conf import settings
from django.db.models import F

from .exceptions import InvalidTransition, ProviderError

logger = logging.getLogger('core.providers')

SETTLED_STATUSES = ('completed', 'delivered', 'success', 'successful', 'processing', 'pending', 'accepted')
FAILED_STATUSES = ('failed', 'rejected', 'cancelled', 'canceled', 'refunded')


def backoff_delay(retry_number):
    """Seconds to wait before retry `retry_number` (0-based)."""
    return float(settings.PROVIDER_BACKOFF_BASE) * (2 ** retry_number)


def dispatch_transaction(order, provider=None, sleep=time.sleep):
    """
    Send a paid data bundle order to the provider and settle it.

    Args:
        order: Transaction in `paid` or `dispatching`
        provider: BundleProviderService (a fresh one by default)
        sleep: Called with the backoff delay between retries

    Returns:
        Transaction
    """
    from .models import Transaction
    from .fulfillment import transition
    from .providers import BundleProviderService

    if order.status not in (Transaction.Status.PAID, Transaction.Status.DISPATCHING):
        raise InvalidTransition(order.reference, order.status, Transaction.Status.DISPATCHING)

    provider = provider or BundleProviderService()
    if not provider.is_configured:
        logger.error(f"Provider not configured, {order.reference} left in {order.status}")
        raise ProviderError('Data bundle provider credentials are not configured')

    transition(order, Transaction.Status.DISPATCHING, note='Sending to provider')

    for index, line in enumerate(order.recipients()):
        attempt = _attempt_for_line(order, index, line)
        if attempt.outcome in (attempt.Outcome.PENDING, attempt.Outcome.RETRYABLE):
            _send_with_retries(provider, order, attempt, line, sleep)

    return settle(order)


def _attempt_for_line(order, index, line):
    from .models import DispatchAttempt
    from .networks import parse_data_amount_mb

    key = f"{order.reference}:{index}"
    capacity = parse_data_amount_mb(line.get('data_amount') or '')
    attempt, created = DispatchAttempt.objects.get_or_create(
        dispatch_key=key,
        defaults={
            'transaction': order,
            'recipient': line['phone'],
            'capacity_mb': capacity or 0,
        }
    )
    if created and not capacity:
        attempt.outcome = DispatchAttempt.Outcome.REJECTED
        attempt.error = f"Unrecognised data amount '{line.get('data_amount')}'"
        attempt.save(update_fields=['outcome', 'error', 'updated_at'])
    return attempt


def _send_with_retries(provider, order, attempt, line, sleep):
    from .models import DispatchAttempt
    from .networks import provider_network_code

    network = provider_network_code(line.get('network') or order.network)
    max_retries = int(settings.PROVIDER_MAX_RETRIES)

    for retry in range(max_retries + 1):
        # Claim the line; if another worker got here first, leave it alone
        claimed = DispatchAttempt.objects.filter(
            pk=attempt.pk,
            outcome__in=[DispatchAttempt.Outcome.PENDING, DispatchAttempt.Outcome.RETRYABLE],
        ).update(outcome=DispatchAttempt.Outcome.UNKNOWN, attempts=F('attempts') + 1)
        attempt.refresh_from_db()
        if not claimed:
            return attempt

        result = provider.place_order(network, attempt.recipient, attempt.capacity_mb, attempt.dispatch_key)
        attempt.outcome = result.outcome
        attempt.provider_reference = result.provider_reference
        attempt.http_status = result.http_status
        attempt.response = result.response
        attempt.error = result.error
        attempt.save()

        logger.info(
            f"Dispatch {attempt.dispatch_key}: outcome={result.outcome}, attempt={attempt.attempts}, "
            f"http={result.http_status}, provider_ref={result.provider_reference or '-'}"
        )

        if result.outcome != DispatchAttempt.Outcome.RETRYABLE:
            return attempt
        if retry < max_retries:
            sleep(backoff_delay(retry))

    logger.warning(f"Dispatch {attempt.dispatch_key}: giving up after {attempt.attempts} attempts")
    return attempt


def settle(order):
    """
    Decide the order outcome from its dispatch attempts.

    All accepted -> delivered. Any unknown -> stays dispatching. Otherwise
    failed, refunding the lines the provider did not take.
    """
    from .fulfillment import mark_delivered, mark_failed

    attempts = list(order.dispatch_attempts.all())
    expected = len(order.recipients())
    summary = [
        {
            'key': a.dispatch_key,
            'recipient': a.recipient,
            'outcome': a.outcome,
            'provider_reference': a.provider_reference,
            'error': a.error,
        }
        for a in attempts
    ]
    order.api_response = {'dispatch': summary}
    order.save(update_fields=['api_response', 'updated_at'])

    outcomes = [a.outcome for a in attempts]
    if len(attempts) == expected and all(outcome == 'accepted' for outcome in outcomes):
        mark_delivered(order, note='Provider accepted all recipients')
        return order

    if 'unknown' in outcomes or 'pending' in outcomes:
        logger.warning(f"Dispatch of {order.reference} needs reconciliation: {outcomes}")
        return order

    failed = [a for a in attempts if a.outcome != 'accepted']
    reason = '; '.join(f"{a.recipient}: {a.error or a.outcome}" for a in failed)[:500]

    if len(failed) == len(attempts):
        mark_failed(order, f'Provider did not deliver: {reason}')
        return order

    # Partial delivery: keep what was sent, refund the rest
    mark_failed(order, f'Partially delivered: {reason}', refund_amount=_price_of_lines(order, failed))
    return order


def _price_of_lines(order, attempts):
    index_of = {f"{order.reference}:{i}": line for i, line in enumerate(order.phone_numbers or [])}
    total = Decimal('0')
    for attempt in attempts:
        line = index_of.get(attempt.dispatch_key)
        if line and line.get('price'):
            total += Decimal(str(line['price']))
    return total


def reconcile_dispatch(order, provider=None):
    """
    Ask the provider about every `unknown` line of a dispatching order
    and settle the order if all lines are now known.
    """
    from .models import DispatchAttempt, Transaction
    from .providers import BundleProviderService

    if order.status != Transaction.Status.DISPATCHING:
        return order

    provider = provider or BundleProviderService()
    for attempt in order.dispatch_attempts.filter(outcome=DispatchAttempt.Outcome.UNKNOWN):
        try:
            if attempt.provider_reference:
                data = provider.get_order_status(attempt.provider_reference)
            else:
                data = provider.find_order(attempt.dispatch_key)
        except ProviderError as e:
            logger.warning(f"Reconcile {attempt.dispatch_key} failed: {e.message}")
            continue

        record = _extract_order_record(data)
        if record is None:
            attempt.outcome = DispatchAttempt.Outcome.REJECTED
            attempt.error = 'Provider has no record of this order'
        else:
            status = str(record.get('status', '')).lower()
            if status in SETTLED_STATUSES:
                attempt.outcome = DispatchAttempt.Outcome.ACCEPTED
                attempt.provider_reference = str(record.get('ref') or record.get('id') or attempt.provider_reference)
            elif status in FAILED_STATUSES:
                attempt.outcome = DispatchAttempt.Outcome.REJECTED
                attempt.error = record.get('message') or f'Provider status {status}'
            else:
                logger.info(f"Reconcile {attempt.dispatch_key}: provider status '{status}' still unresolved")
                continue
        attempt.response = data
        attempt.save()
        logger.info(f"Reconciled {attempt.dispatch_key}: outcome={attempt.outcome}")

    return settle(order)


def _extract_order_record(data):
    """Pull the single order record out of a provider lookup response."""
    payload = data.get('data') if isinstance(data, dict) else None
    if isinstance(payload, list):
        return payload[0] if payload else None
    if isinstance(payload, dict) and payload:
        return payload
    return None
