"""
Shared fixtures for the Resellers Hub test suite.
"""

import json
from decimal import Decimal
from unittest import mock

from core.models import Agent, DataBundle, ResultChecker, User
from core.providers import OUTCOME_ACCEPTED, ProviderResult

PASSWORD = 'SecurePass123'

MTN_PHONE = '0241234567'
MTN_PHONE_2 = '0551234567'
TELECEL_PHONE = '0201234567'


def make_user(email='user@example.com', role='user', password=PASSWORD, **extra):
    return User.objects.create_user(email=email, password=password, role=role, **extra)


def make_admin(email='admin@example.com'):
    return User.objects.create_superuser(email=email, password=PASSWORD, name='Admin')


def make_agent(user, slug, parent=None, approved=True, **extra):
    return Agent.objects.create(
        user=user,
        parent=parent,
        storefront_slug=slug,
        business_name=f'{slug.title()} Data',
        is_approved=approved,
        payment_pending=not approved,
        **extra
    )


def make_bundle(network='mtn', data_amount='1GB', base='6.00', agent='5.20', dealer='5.00',
                super_dealer='4.80', master='4.60', admin='4.40', **extra):
    return DataBundle.objects.create(
        name=f'{network.upper()} {data_amount}',
        network=network,
        data_amount=data_amount,
        base_price=Decimal(base),
        agent_price=Decimal(agent) if agent else None,
        dealer_price=Decimal(dealer) if dealer else None,
        super_dealer_price=Decimal(super_dealer) if super_dealer else None,
        master_price=Decimal(master) if master else None,
        admin_price=Decimal(admin) if admin else None,
        **extra
    )


def make_checkers(checker_type='bece', year=2024, count=3, base_price='15.00', cost_price='11.00'):
    return [
        ResultChecker.objects.create(
            type=checker_type,
            year=year,
            serial_number=f'{checker_type.upper()}{year}{i:04d}',
            pin=f'{1000000000 + i}',
            base_price=Decimal(base_price),
            cost_price=Decimal(cost_price),
        )
        for i in range(count)
    ]


def json_response(payload, status=200):
    """A stand-in for requests.Response carrying a JSON body."""
    response = mock.Mock()
    response.status_code = status
    response.ok = 200 <= status < 400
    response.json.return_value = payload
    response.text = json.dumps(payload)
    return response


def paystack_verify_response(reference, amount_pesewas, status='success'):
    return json_response({
        'status': True,
        'message': 'Verification successful',
        'data': {
            'reference': reference,
            'status': status,
            'amount': amount_pesewas,
            'channel': 'mobile_money',
            'paid_at': '2024-06-01T10:00:00.000Z',
            'metadata': {},
        },
    })


def paystack_init_response(reference):
    return json_response({
        'status': True,
        'message': 'Authorization URL created',
        'data': {
            'authorization_url': f'https://checkout.paystack.com/{reference}',
            'access_code': 'ac_test_123',
            'reference': reference,
        },
    })


class FakeProvider:
    """
    Bundle provider double. `outcomes` is consumed one result per
    place_order call; when it runs dry every call is accepted.
    """

    is_configured = True

    def __init__(self, outcomes=None, lookups=None):
        self.outcomes = list(outcomes or [])
        self.lookups = lookups or {}
        self.calls = []

    def place_order(self, network, recipient, capacity_mb, client_reference):
        self.calls.append((network, recipient, capacity_mb, client_reference))
        if self.outcomes:
            return self.outcomes.pop(0)
        return ProviderResult(
            outcome=OUTCOME_ACCEPTED,
            provider_reference=f'P-{len(self.calls)}',
            http_status=200,
            response={'data': {'ref': f'P-{len(self.calls)}'}},
        )

    def find_order(self, client_reference):
        return self.lookups.get(client_reference, {'data': []})

    def get_order_status(self, provider_reference):
        return self.lookups.get(provider_reference, {'data': {}})


def fund(user, amount):
    """Top a wallet up directly through the ledger."""
    from core.ledger import credit_wallet
    from core.models import LedgerEntry

    credit_wallet(user, amount, LedgerEntry.EntryType.TOPUP, f'topup:seed-{user.pk}-{amount}')
