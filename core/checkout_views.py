"""
Checkout views for Resellers Hub.

Handles:
- Paystack checkout initialization for bundles and result checkers
- Payment verification (browser return) and the Paystack webhook
- Result checker voucher PDFs
"""

import logging

from django.conf import settings
from django.http import HttpResponse, JsonResponse
from django.utils.decorators import method_decorator
from django.views.decorators.csrf import csrf_exempt

from .exceptions import ApiKeyError, NotFound, PermissionDenied
from .fulfillment import create_order, get_order, start_payment, verify_and_confirm
from .mixins import ApiLoginRequiredMixin, ApiView
from .serializers import transaction_to_dict
from .services import ensure_open_for_orders

logger = logging.getLogger('core.payments')


def _first(data, *keys, default=None):
    for key in keys:
        if data.get(key) not in (None, ''):
            return data[key]
    return default


def order_kwargs_from_payload(data):
    """
    Map a checkout body (camelCase or snake_case) to create_order kwargs.

    Bulk orders send `orderItems` [{phone, bundleId}] or `phoneNumbers`.
    """
    items = _first(data, 'orderItems', 'order_items', 'phoneNumbers', 'phone_numbers', default=None)
    recipients = None
    if items:
        recipients = []
        for item in items:
            if isinstance(item, dict):
                recipients.append({
                    'phone': _first(item, 'phone', 'phoneNumber', 'phone_number', default=''),
                    'bundle_id': _first(item, 'bundleId', 'bundle_id'),
                })
            else:
                recipients.append({'phone': str(item)})

    return {
        'product_type': _first(data, 'productType', 'product_type', default='data_bundle'),
        'bundle_id': _first(data, 'bundleId', 'bundle_id', 'productId'),
        'customer_phone': _first(data, 'customerPhone', 'customer_phone', 'phone', default=''),
        'customer_email': _first(data, 'customerEmail', 'customer_email', 'email', default=''),
        'recipients': recipients,
        'checker_type': _first(data, 'checkerType', 'checker_type', default=''),
        'checker_year': _first(data, 'checkerYear', 'checker_year'),
        'quantity': _first(data, 'quantity', default=1),
        'agent_slug': _first(data, 'agentSlug', 'agent_slug', 'storefrontSlug'),
    }


def can_view_order(user, order):
    if not user.is_authenticated:
        return False
    return user.is_admin or order.buyer_id == user.pk or (
        order.customer_email and order.customer_email.lower() == user.email.lower()
    )


class CheckoutInitializeView(ApiView):
    """
    Create an order and start its Paystack checkout.

    Returns the authorization URL the client redirects to.
    """

    def post(self, request):
        ensure_open_for_orders(request.user)
        data = self.json_body()

        buyer = request.user if request.user.is_authenticated else None
        order = create_order(buyer=buyer, **order_kwargs_from_payload(data))
        init = start_payment(order, callback_url=_first(data, 'callbackUrl', 'callback_url'))

        return JsonResponse({
            'authorization_url': init.authorization_url,
            'access_code': init.access_code,
            'reference': order.reference,
            'amount': f'{order.amount:.2f}',
            'transaction': transaction_to_dict(order),
        }, status=201)


class TransactionVerifyView(ApiView):
    """Check a payment with Paystack and return the (possibly delivered) order."""

    def get(self, request, reference):
        order = verify_and_confirm(reference)
        return JsonResponse({
            'transaction': transaction_to_dict(order, include_secrets=order.status == 'delivered'),
        })


class PaystackVerifyView(ApiView):
    """GET ?reference= (Paystack callback URL)."""

    def get(self, request):
        reference = request.GET.get('reference') or request.GET.get('trxref')
        if not reference:
            return JsonResponse({'error': 'Reference is required'}, status=400)
        order = verify_and_confirm(reference)
        return JsonResponse({
            'transaction': transaction_to_dict(order, include_secrets=order.status == 'delivered'),
        })


@method_decorator(csrf_exempt, name='dispatch')
class PaystackWebhookView(ApiView):
    """
    Paystack event receiver.

    Always answers 200 for events we could not match, so Paystack stops
    retrying them.
    """

    def post(self, request):
        from .webhooks import handle_paystack_event

        try:
            result = handle_paystack_event(request.body, request.headers.get('X-Paystack-Signature'))
        except ApiKeyError as e:
            return JsonResponse(e.as_dict(), status=401)
        except NotFound as e:
            logger.warning(f"Paystack webhook for unknown reference: {e.message}")
            return JsonResponse({'received': True, 'ignored': True})
        return JsonResponse({'received': True, **result})


class PaystackConfigView(ApiView):

    def get(self, request):
        from .paystack import get_paystack_service
        from .services import get_setting

        return JsonResponse({
            'public_key': get_setting('paystack.public_key') or settings.PAYSTACK_PUBLIC_KEY,
            'test_mode': get_paystack_service().is_test_mode(),
            'tax_rate': f'{settings.PAYSTACK_TAX_RATE}',
            'apply_tax': settings.CHECKOUT_APPLY_TAX,
        })


class ReceiptPdfView(ApiLoginRequiredMixin, ApiView):
    """Voucher cards for a delivered result checker order."""

    def get(self, request, reference):
        from .receipts import render_result_checker_pdf

        order = get_order(reference)
        if not can_view_order(request.user, order):
            raise PermissionDenied('You do not have access to this transaction')
        if order.product_type != 'result_checker' or order.status != 'delivered':
            raise NotFound('No vouchers for this transaction')

        pdf = render_result_checker_pdf(
            order.vouchers.order_by('id'), order.reference, order.completed_at or order.created_at)
        response = HttpResponse(pdf, content_type='application/pdf')
        response['Content-Disposition'] = f'attachment; filename="result-checker-{order.reference}.pdf"'
        return response
