"""
API key management and the integrator API.

Session users manage their keys under /api/keys. Integrators call the
/api/v1/ endpoints with the `X-API-Key` header.
"""

import logging

from django.http import JsonResponse
from django.utils.decorators import method_decorator
from django.views.decorators.csrf import csrf_exempt

from .api_keys import create_api_key
from .checkout_views import order_kwargs_from_payload
from .exceptions import NotFound
from .fulfillment import get_order, pay_with_wallet
from .mixins import ApiKeyRequiredMixin, ApiLoginRequiredMixin, ApiView
from .models import ApiKey
from .serializers import api_key_to_dict, money, transaction_to_dict
from .services import ensure_open_for_orders

logger = logging.getLogger('core.auth')


class ApiKeysView(ApiLoginRequiredMixin, ApiView):
    """
    GET: the user's keys (prefix only).
    POST {name, permissions?}: the plain key is returned once.
    """

    def get(self, request):
        keys = ApiKey.objects.filter(user=request.user).order_by('-created_at')
        return JsonResponse({'keys': [api_key_to_dict(k) for k in keys]})

    def post(self, request):
        data = self.json_body()
        api_key, plain = create_api_key(request.user, data.get('name'), data.get('permissions'))
        return JsonResponse({'key': api_key_to_dict(api_key), 'api_key': plain}, status=201)


class ApiKeyDetailView(ApiLoginRequiredMixin, ApiView):

    def delete(self, request, pk):
        deleted, _ = ApiKey.objects.filter(pk=pk, user=request.user).delete()
        if not deleted:
            raise NotFound('API key not found')
        logger.info(f"API key deleted: user={request.user.email}, id={pk}")
        return JsonResponse({'success': True})


@method_decorator(csrf_exempt, name='dispatch')
class ExternalOrderView(ApiKeyRequiredMixin, ApiView):
    """Place an order paid from the key owner's wallet."""

    required_permissions = ('orders',)

    def post(self, request):
        ensure_open_for_orders(self.api_user)
        kwargs = order_kwargs_from_payload(self.json_body())
        if not kwargs['customer_email']:
            kwargs['customer_email'] = self.api_user.email
        order = pay_with_wallet(self.api_user, **kwargs)
        logger.info(f"API order placed: ref={order.reference}, user={self.api_user.email}")
        return JsonResponse({'transaction': transaction_to_dict(order, include_secrets=order.status == 'delivered')},
                            status=201)


@method_decorator(csrf_exempt, name='dispatch')
class ExternalOrderStatusView(ApiKeyRequiredMixin, ApiView):

    def get(self, request, reference):
        order = get_order(reference)
        if order.buyer_id != self.api_user.pk:
            raise NotFound('Transaction not found')
        return JsonResponse({'transaction': transaction_to_dict(order, include_secrets=order.status == 'delivered')})


@method_decorator(csrf_exempt, name='dispatch')
class ExternalBalanceView(ApiKeyRequiredMixin, ApiView):

    required_permissions = ('balance',)

    def get(self, request):
        self.api_user.refresh_from_db(fields=['wallet_balance'])
        return JsonResponse({'balance': money(self.api_user.wallet_balance), 'currency': 'GHS'})
