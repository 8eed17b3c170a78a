"""
Agent views for Resellers Hub.

Handles:
- Agent registration (new account) and upgrade (existing account)
- Storefront slug checks and profile updates
- Agent stats, sales and withdrawals
- Custom selling prices
"""

import logging
from decimal import Decimal, InvalidOperation

from django.contrib.auth import login
from django.db import transaction as db_transaction
from django.http import JsonResponse

from .exceptions import NotFound, OrderError
from .fulfillment import create_activation_order, start_payment
from .mixins import AgentRequiredMixin, ApiLoginRequiredMixin, ApiView
from .models import CustomPricing, DataBundle, Transaction, Withdrawal
from .pricing import role_base_price, set_custom_price, storefront_price
from .serializers import agent_to_dict, money, transaction_to_dict, user_to_dict, withdrawal_to_dict
from .services import agent_stats, create_pending_agent, is_slug_available, register_user, validate_slug
from .user_views import paginate
from .withdrawal_service import request_withdrawal

logger = logging.getLogger('core')


def _activation_response(agent, order, init, status=201, **extra):
    return JsonResponse({
        'agent': agent_to_dict(agent),
        'reference': order.reference,
        'amount': money(order.amount),
        'authorization_url': init.authorization_url,
        'access_code': init.access_code,
        **extra,
    }, status=status)


def _storefront_fields(data):
    return {
        'storefront_slug': data.get('storefrontSlug') or data.get('storefront_slug') or data.get('slug'),
        'business_name': data.get('businessName') or data.get('business_name') or '',
        'business_description': data.get('businessDescription') or data.get('business_description') or '',
        'parent_slug': data.get('parentSlug') or data.get('parent_slug'),
    }


class AgentRegisterView(ApiView):
    """
    New account plus storefront, followed by the activation payment.

    POST {email, password, name, phone, storefrontSlug, businessName, ...}
    """

    def post(self, request):
        data = self.json_body()
        if not (data.get('name') or '').strip():
            raise OrderError('Name is required')
        fields = _storefront_fields(data)
        slug = validate_slug(fields['storefront_slug'])
        if not is_slug_available(slug):
            raise OrderError('Storefront slug is already taken', http_status=409)

        with db_transaction.atomic():
            user = register_user(
                email=data.get('email'),
                password=data.get('password'),
                name=data.get('name'),
                phone=data.get('phone', ''),
            )
            agent = create_pending_agent(user, **fields)
            order = create_activation_order(agent)

        login(request, user, backend='django.contrib.auth.backends.ModelBackend')
        init = start_payment(order, callback_url=data.get('callbackUrl') or data.get('callback_url'))
        return _activation_response(agent, order, init, user=user_to_dict(user))


class AgentUpgradeView(ApiLoginRequiredMixin, ApiView):
    """Open a storefront on the current account."""

    def post(self, request):
        data = self.json_body()
        with db_transaction.atomic():
            agent = create_pending_agent(request.user, **_storefront_fields(data))
            order = create_activation_order(agent)
        init = start_payment(order, callback_url=data.get('callbackUrl') or data.get('callback_url'))
        return _activation_response(agent, order, init)


class CheckSlugView(ApiView):
    """GET ?slug="""

    def get(self, request):
        try:
            slug = validate_slug(request.GET.get('slug'))
        except OrderError as e:
            return JsonResponse({'available': False, 'error': e.message})
        return JsonResponse({'slug': slug, 'available': is_slug_available(slug)})


class AgentProfileView(AgentRequiredMixin, ApiView):
    require_approved = False

    def get(self, request):
        return JsonResponse({'agent': agent_to_dict(self.agent), 'user': user_to_dict(request.user)})


class AgentStatsView(AgentRequiredMixin, ApiView):

    def get(self, request):
        stats = agent_stats(self.agent)
        return JsonResponse({key: money(value) if isinstance(value, Decimal) else value
                             for key, value in stats.items()})


class AgentTransactionsView(AgentRequiredMixin, ApiView):
    """Storefront sales. ?status= filters."""

    def get(self, request):
        orders = Transaction.objects.for_agent(self.agent).sales().order_by('-created_at')
        status = request.GET.get('status')
        if status:
            orders = orders.filter(status=status)
        items, meta = paginate(request, orders)
        return JsonResponse({'transactions': [transaction_to_dict(o) for o in items], 'pagination': meta})


class AgentRecentTransactionsView(AgentRequiredMixin, ApiView):

    def get(self, request):
        orders = Transaction.objects.for_agent(self.agent).sales().order_by('-created_at')[:10]
        return JsonResponse({'transactions': [transaction_to_dict(o) for o in orders]})


class AgentWithdrawalsView(AgentRequiredMixin, ApiView):
    """
    GET: the agent's withdrawals.
    POST {amount, paymentMethod, accountNumber, accountName, bankCode?, bankName?}
    """

    def get(self, request):
        withdrawals = Withdrawal.objects.filter(agent=self.agent).order_by('-created_at')
        return JsonResponse({
            'withdrawals': [withdrawal_to_dict(w) for w in withdrawals],
            'balance': money(self.agent.balance),
        })

    def post(self, request):
        data = self.json_body()
        withdrawal = request_withdrawal(
            self.agent,
            data.get('amount'),
            data.get('paymentMethod') or data.get('payment_method') or '',
            {
                'account_number': data.get('accountNumber') or data.get('account_number'),
                'account_name': data.get('accountName') or data.get('account_name'),
                'bank_code': data.get('bankCode') or data.get('bank_code'),
                'bank_name': data.get('bankName') or data.get('bank_name'),
            },
        )
        self.agent.refresh_from_db(fields=['balance'])
        return JsonResponse({
            'withdrawal': withdrawal_to_dict(withdrawal),
            'balance': money(self.agent.balance),
        }, status=201)


class AgentStorefrontView(AgentRequiredMixin, ApiView):
    """PATCH storefront details and default markup."""

    require_approved = False

    EDITABLE = {
        'businessName': 'business_name',
        'businessDescription': 'business_description',
        'whatsappSupportLink': 'whatsapp_support_link',
        'whatsappChannelLink': 'whatsapp_channel_link',
        'customPricingMarkup': 'custom_pricing_markup',
    }

    def patch(self, request):
        data = self.json_body()
        agent = self.agent
        changed = []

        for camel, field in self.EDITABLE.items():
            value = data.get(camel, data.get(field))
            if value is None:
                continue
            if field == 'custom_pricing_markup':
                try:
                    value = Decimal(str(value))
                except InvalidOperation as e:
                    raise OrderError('Invalid markup') from e
                if not Decimal('0') <= value <= Decimal('100'):
                    raise OrderError('Markup must be between 0 and 100 percent')
            elif field == 'business_name' and not str(value).strip():
                raise OrderError('Business name is required')
            setattr(agent, field, value)
            changed.append(field)

        if changed:
            agent.save(update_fields=changed + ['updated_at'])
            logger.info(f"Storefront updated: slug={agent.storefront_slug}, fields={','.join(changed)}")
        return JsonResponse({'agent': agent_to_dict(agent)})


class AgentPricingView(AgentRequiredMixin, ApiView):
    """
    GET: bundles with the agent's base and selling prices.
    POST {bundleId, price} or {prices: [{bundleId, price}]}; an empty price clears it.
    """

    def get(self, request):
        agent = self.agent
        custom = dict(CustomPricing.objects.filter(agent=agent).values_list('bundle_id', 'selling_price'))
        rows = []
        for bundle in DataBundle.objects.filter(is_active=True):
            base = role_base_price(bundle, agent.user.role)
            selling = storefront_price(agent, bundle)
            rows.append({
                'bundle_id': bundle.pk,
                'name': bundle.name,
                'network': bundle.network,
                'data_amount': bundle.data_amount,
                'base_price': money(base),
                'public_price': money(bundle.base_price),
                'selling_price': money(selling),
                'custom_price': money(custom.get(bundle.pk)),
                'profit': money(selling - base),
            })
        return JsonResponse({'pricing': rows, 'markup': money(agent.custom_pricing_markup)})

    def post(self, request):
        data = self.json_body()
        entries = data.get('prices')
        if entries is None:
            entries = [data]

        saved = []
        with db_transaction.atomic():
            for entry in entries:
                bundle_id = entry.get('bundleId') or entry.get('bundle_id')
                bundle = DataBundle.objects.filter(pk=bundle_id).first() if bundle_id else None
                if bundle is None:
                    raise NotFound('Data bundle not found')
                pricing = set_custom_price(self.agent, bundle, entry.get('price'))
                saved.append({
                    'bundle_id': bundle.pk,
                    'selling_price': money(pricing.selling_price) if pricing else None,
                })
        return JsonResponse({'success': True, 'prices': saved})

