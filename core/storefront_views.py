"""
Agent storefront views.

Handles:
- Public storefront page data (agent info and selling prices)
- Customer registration from a storefront
"""

import logging

from django.contrib.auth import login
from django.http import JsonResponse

from .catalog_views import checker_price
from .exceptions import NotFound, OrderError
from .mixins import ApiView
from .models import Agent, DataBundle, ResultChecker
from .pricing import storefront_price
from .serializers import agent_to_dict, bundle_to_dict, user_to_dict
from .services import register_user

logger = logging.getLogger('core')


def get_storefront(slug):
    agent = Agent.objects.approved().select_related('user').filter(storefront_slug=slug).first()
    if agent is None:
        raise NotFound('Storefront not found')
    return agent


class StorefrontView(ApiView):
    """Storefront with bundles at the agent's selling prices."""

    def get(self, request, slug):
        agent = get_storefront(slug)
        bundles = DataBundle.objects.filter(is_active=True)
        network = request.GET.get('network')
        if network:
            bundles = bundles.filter(network=network)

        checkers = []
        for checker_type in ResultChecker.CheckerType.values:
            years = (
                ResultChecker.objects.available(checker_type)
                .values_list('year', flat=True).distinct().order_by('-year')
            )
            for year in years:
                checkers.append({
                    'type': checker_type,
                    'year': year,
                    'available': ResultChecker.objects.available(checker_type, year).count(),
                    'price': checker_price(checker_type, year),
                })

        return JsonResponse({
            'agent': agent_to_dict(agent, public=True),
            'bundles': [bundle_to_dict(b, storefront_price(agent, b)) for b in bundles],
            'result_checkers': checkers,
        })


class StorefrontRegisterView(ApiView):
    """
    Customer sign-up from a storefront.

    POST {email, password, name, phone?}: creates a guest account and logs it in.
    """

    def post(self, request, slug):
        agent = get_storefront(slug)
        data = self.json_body()
        if not (data.get('name') or '').strip():
            raise OrderError('Name is required')

        user = register_user(
            email=data.get('email'),
            password=data.get('password'),
            name=data.get('name'),
            phone=data.get('phone', ''),
            role='guest',
        )
        login(request, user, backend='django.contrib.auth.backends.ModelBackend')
        logger.info(f"Storefront customer registered: email={user.email}, store={agent.storefront_slug}")
        return JsonResponse({'user': user_to_dict(user), 'store': agent.storefront_slug}, status=201)
