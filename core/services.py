"""
Business logic services for Resellers Hub.

Contains helper functions for:
- Runtime settings and break mode
- Order and payout reference generation
- Account registration and role changes
- Agent storefront registration and activation
- Admin dashboards (stats, rankings, user housekeeping)
- Audit logging
- Catalog seeding
"""

import logging
import re
import secrets
import time
import uuid
from datetime import timedelta
from decimal import Decimal

from django.conf import settings
from django.db import transaction as db_transaction
from django.db.models import Count, Max, Sum, Q
from django.db.models.functions import Coalesce
from django.utils import timezone

from .exceptions import NotFound, OrderError, ResellerError

logger = logging.getLogger('core')
auth_logger = logging.getLogger('core.auth')

SLUG_PATTERN = re.compile(r'^[a-z0-9-]+$')
PASSWORD_PATTERN = re.compile(r'^(?=.*[A-Za-z])(?=.*\d).{8,}$')


# =============================================================================
# SETTINGS
# =============================================================================

def get_setting(key, default=None):
    from .models import Setting
    return Setting.get_value(key, default)


def set_setting(key, value, description=None):
    """Store a runtime setting; Paystack keys also flush the client cache."""
    from .models import Setting

    row = Setting.set_value(key, value, description)
    if key.startswith('paystack.'):
        from .paystack import get_paystack_service
        get_paystack_service().clear_cache()
    return row


def get_bool_setting(key, default=False):
    value = get_setting(key)
    if value is None:
        return default
    return str(value).strip().lower() in ('1', 'true', 'yes', 'on')


def get_break_settings():
    return {
        'is_enabled': get_bool_setting('break_mode_enabled', False),
        'message': get_setting('break_mode_message', '') or '',
    }


def update_break_settings(is_enabled, message):
    message = (message or '').strip()
    if is_enabled and not message:
        raise OrderError('A message is required when break mode is enabled')
    set_setting('break_mode_enabled', 'true' if is_enabled else 'false', 'Site break mode enabled/disabled')
    set_setting('break_mode_message', message, 'Site break mode message')
    return {'is_enabled': bool(is_enabled), 'message': message}


# =============================================================================
# REFERENCES
# =============================================================================

def to_base36(number):
    chars = '0123456789abcdefghijklmnopqrstuvwxyz'
    result = ''
    while number:
        number, remainder = divmod(number, 36)
        result = chars[remainder] + result
    return result or '0'


def generate_order_reference(prefix='CLEC'):
    """e.g. CLEC-m1x2k3l4-9f8e7d6c"""
    return f"{prefix}-{to_base36(int(time.time() * 1000))}-{uuid.uuid4().hex[:8]}"


def generate_wallet_reference():
    return f"WALLET-{int(time.time() * 1000)}-{secrets.token_hex(3).upper()}"


def generate_withdrawal_reference():
    return f"WD-{int(time.time() * 1000)}-{secrets.token_hex(4).upper()}"


# =============================================================================
# AUDIT
# =============================================================================

def client_ip(request):
    forwarded = request.META.get('HTTP_X_FORWARDED_FOR', '')
    if forwarded:
        return forwarded.split(',')[0].strip()
    return request.META.get('REMOTE_ADDR')


def record_audit(user, action, entity_type, entity_id='', old_value=None, new_value=None, request=None):
    from .models import AuditLog

    return AuditLog.objects.create(
        user=user if user is not None and user.is_authenticated else None,
        action=action,
        entity_type=entity_type,
        entity_id=str(entity_id),
        old_value=old_value,
        new_value=new_value,
        ip_address=client_ip(request) if request else None,
        user_agent=request.META.get('HTTP_USER_AGENT', '')[:500] if request else '',
    )


# =============================================================================
# ACCOUNTS
# =============================================================================

def validate_password_strength(password):
    if not password or not PASSWORD_PATTERN.match(password):
        raise OrderError('Password must be at least 8 characters and contain a letter and a number')


def register_user(email, password, name='', phone='', role='user'):
    """
    Create an account plus its (unverified) allauth EmailAddress.

    Raises:
        OrderError: on invalid input or an email already in use
    """
    from allauth.account.models import EmailAddress
    from .models import User
    from .networks import is_valid_phone, normalize_phone

    email = (email or '').strip().lower()
    if not email or '@' not in email:
        raise OrderError('A valid email address is required')
    validate_password_strength(password)
    if phone:
        if not is_valid_phone(phone):
            raise OrderError('Invalid phone number')
        phone = normalize_phone(phone)
    if User.objects.filter(email__iexact=email).exists():
        raise OrderError('An account with this email already exists', http_status=409)

    with db_transaction.atomic():
        user = User.objects.create_user(email=email, password=password, name=(name or '').strip(),
                                        phone=phone, role=role)
        EmailAddress.objects.create(user=user, email=email, primary=True, verified=False)

    auth_logger.info(f"User registered: email={email}, role={role}")
    return user


def change_user_role(user, new_role, actor=None, request=None):
    """
    Move a user to another role and keep their storefront in step.

    Promotion to a reseller role creates (or reactivates) an approved
    storefront; demotion unapproves it.
    """
    from .models import Agent, User

    if new_role not in User.Role.values:
        raise OrderError('Invalid role')

    old_role = user.role
    with db_transaction.atomic():
        user.role = new_role
        user.save(update_fields=['role'])

        agent = Agent.objects.filter(user=user).first()
        if new_role in User.RESELLER_ROLES:
            if agent is None:
                base_slug = re.sub(r'[^a-z0-9]', '', (user.name or 'user').lower()) or 'user'
                Agent.objects.create(
                    user=user,
                    storefront_slug=unique_storefront_slug(f"{base_slug}{str(user.pk)[-4:]}"),
                    business_name=f"{user.name or 'User'}'s Store",
                    is_approved=True,
                    payment_pending=False,
                )
            elif not agent.is_approved or agent.payment_pending:
                agent.is_approved = True
                agent.payment_pending = False
                agent.save(update_fields=['is_approved', 'payment_pending'])
        elif agent is not None and agent.is_approved:
            agent.is_approved = False
            agent.save(update_fields=['is_approved'])

    record_audit(actor, 'change_role', 'user', user.pk, {'role': old_role}, {'role': new_role}, request)
    logger.info(f"Role changed: user={user.email}, {old_role} -> {new_role}")
    return user


def update_user_credentials(user, email=None, password=None, actor=None, request=None):
    from allauth.account.models import EmailAddress
    from .models import User

    changes = {}
    if email:
        email = email.strip().lower()
        if User.objects.filter(email__iexact=email).exclude(pk=user.pk).exists():
            raise OrderError('Email already in use', http_status=409)
        user.email = email
        EmailAddress.objects.filter(user=user, primary=True).update(email=email)
        changes['email'] = email
    if password:
        validate_password_strength(password)
        user.set_password(password)
        changes['password'] = '***'
    if not changes:
        raise OrderError('Nothing to update')
    user.save()
    record_audit(actor, 'update_credentials', 'user', user.pk, None, changes, request)
    auth_logger.info(f"Credentials updated by admin: user={user.pk}, fields={list(changes)}")
    return user


def users_with_last_purchase():
    """All users annotated with their last purchase date and purchase count."""
    from .models import User

    return User.objects.annotate(
        last_purchase_at=Max('purchases__created_at', filter=Q(purchases__status='delivered')),
        purchase_count=Count('purchases', filter=Q(purchases__status='delivered')),
    ).order_by('-date_joined')


def delete_inactive_users(days, actor=None, request=None):
    """
    Delete non-admin users with no delivered purchase in the last `days`.

    Returns:
        int: number of users deleted
    """
    if not days or days < 1:
        raise OrderError('Days must be a positive number')

    cutoff = timezone.now() - timedelta(days=days)
    stale = users_with_last_purchase().exclude(role='admin').exclude(is_superuser=True).filter(
        Q(last_purchase_at__lt=cutoff) | Q(last_purchase_at__isnull=True, date_joined__lt=cutoff)
    )
    ids = list(stale.values_list('pk', flat=True))
    from .models import User
    User.objects.filter(pk__in=ids).delete()

    record_audit(actor, 'delete_inactive_users', 'user', '', None, {'days': days, 'deleted': len(ids)}, request)
    logger.info(f"Deleted {len(ids)} inactive users (no purchase in {days} days)")
    return len(ids)


# =============================================================================
# AGENTS
# =============================================================================

def validate_slug(slug):
    slug = (slug or '').strip().lower()
    if not slug or not SLUG_PATTERN.match(slug):
        raise OrderError('Storefront slug may only contain lowercase letters, numbers and hyphens')
    return slug


def is_slug_available(slug):
    from .models import Agent
    return not Agent.objects.filter(storefront_slug=slug).exists()


def unique_storefront_slug(base):
    """
    Generate a free storefront slug from `base`, appending a number
    suffix while the slug is taken.
    """
    slug = re.sub(r'[^a-z0-9-]', '', base.lower()) or 'store'
    candidate = slug
    counter = 1
    while not is_slug_available(candidate):
        candidate = f"{slug}-{counter}"
        counter += 1
    return candidate


def create_pending_agent(user, storefront_slug, business_name, business_description='', parent_slug=None):
    """
    Create an unapproved storefront awaiting the activation payment.

    Returns:
        Agent
    """
    from .models import Agent

    slug = validate_slug(storefront_slug)
    if not (business_name or '').strip():
        raise OrderError('Business name is required')

    existing = Agent.objects.filter(user=user).first()
    if existing is not None:
        if existing.is_approved:
            raise OrderError('You already have an active storefront', http_status=409)
        if existing.storefront_slug != slug and not is_slug_available(slug):
            raise OrderError('Storefront slug is already taken', http_status=409)
        existing.storefront_slug = slug
        existing.business_name = business_name.strip()
        existing.business_description = business_description or ''
        existing.save()
        return existing

    if not is_slug_available(slug):
        raise OrderError('Storefront slug is already taken', http_status=409)

    parent = None
    if parent_slug:
        parent = Agent.objects.approved().filter(storefront_slug=parent_slug).first()

    agent = Agent.objects.create(
        user=user,
        parent=parent,
        storefront_slug=slug,
        business_name=business_name.strip(),
        business_description=business_description or '',
        is_approved=False,
        payment_pending=True,
        activation_fee=settings.AGENT_ACTIVATION_FEE,
    )
    logger.info(f"Pending agent created: user={user.email}, slug={slug}")
    return agent


def activate_agent(agent):
    """Approve a storefront after its activation fee is paid."""
    from .models import User

    agent.is_approved = True
    agent.payment_pending = False
    agent.save(update_fields=['is_approved', 'payment_pending'])
    user = agent.user
    if not user.is_reseller and user.role != User.Role.ADMIN:
        user.role = User.Role.AGENT
        user.save(update_fields=['role'])
    logger.info(f"Agent activated: slug={agent.storefront_slug}, user={user.email}")
    return agent


def get_agent_for_user(user):
    from .models import Agent

    agent = Agent.objects.filter(user=user).select_related('user').first()
    if agent is None:
        raise NotFound('Agent profile not found')
    return agent


def agent_stats(agent):
    from .models import Transaction

    orders = Transaction.objects.for_agent(agent).sales()
    delivered = orders.delivered().calculate_totals()
    return {
        'balance': agent.balance,
        'total_sales': agent.total_sales,
        'total_profit': agent.total_profit,
        'total_transactions': orders.count(),
        'delivered_transactions': delivered['count'],
        'pending_transactions': orders.pending().count(),
        'today_sales': orders.delivered().today().calculate_totals()['total_amount'],
    }


# =============================================================================
# ADMIN DASHBOARD
# =============================================================================

def admin_stats():
    """Headline numbers for the admin dashboard."""
    from .models import Agent, DataBundle, ResultChecker, Transaction, Withdrawal

    delivered = Transaction.objects.delivered()
    sales = delivered.sales().calculate_totals()
    activation = delivered.filter(product_type='agent_activation').aggregate(
        revenue=Coalesce(Sum('amount'), Decimal('0'))
    )['revenue']
    today = Transaction.objects.today()

    return {
        'total_revenue': sales['total_amount'],
        'total_profit': sales['total_profit'],
        'total_transactions': Transaction.objects.sales().count(),
        'pending_withdrawals': Withdrawal.objects.filter(status='pending').count(),
        'total_agents': Agent.objects.count(),
        'pending_agents': Agent.objects.awaiting_activation().count(),
        'activation_revenue': activation,
        'today_revenue': today.delivered().sales().calculate_totals()['total_amount'],
        'today_transactions': today.sales().count(),
        'data_bundle_stock': DataBundle.objects.filter(is_active=True).count(),
        'result_checker_stock': ResultChecker.objects.available().count(),
    }


def top_customers(limit=10, public=False):
    from .models import Transaction

    rows = []
    for rank, row in enumerate(Transaction.objects.get_queryset().top_customers(limit), start=1):
        entry = {
            'rank': rank,
            'customer_phone': row['customer_phone'],
            'total_purchases': row['total_purchases'],
            'total_spent': row['total_spent'],
        }
        if not public:
            entry['last_purchase'] = row['last_purchase']
            entry['customer_email'] = (
                Transaction.objects.filter(customer_phone=row['customer_phone'])
                .exclude(customer_email='')
                .values_list('customer_email', flat=True)
                .first()
            ) or ''
        rows.append(entry)
    return rows


def user_stats(user):
    from .models import Transaction

    orders = Transaction.objects.for_buyer(user).sales()
    delivered = orders.delivered().calculate_totals()
    return {
        'total_orders': orders.count(),
        'completed_orders': delivered['count'],
        'pending_orders': orders.pending().count(),
        'total_spent': delivered['total_amount'],
        'wallet_balance': user.wallet_balance,
    }


# =============================================================================
# SEEDING
# =============================================================================

DEFAULT_BUNDLES = [
    # (network, data, base, agent, dealer, super_dealer, master, admin)
    ('mtn', '1GB', '6.00', '5.20', '5.00', '4.80', '4.60', '4.40'),
    ('mtn', '2GB', '11.50', '10.20', '9.80', '9.40', '9.00', '8.70'),
    ('mtn', '5GB', '27.00', '24.50', '23.50', '22.80', '22.00', '21.50'),
    ('mtn', '10GB', '52.00', '47.00', '45.50', '44.00', '43.00', '42.00'),
    ('telecel', '2GB', '11.00', '9.80', '9.40', '9.00', '8.70', '8.40'),
    ('telecel', '5GB', '25.00', '22.50', '21.80', '21.00', '20.40', '20.00'),
    ('at_ishare', '1GB', '5.00', '4.40', '4.20', '4.00', '3.90', '3.80'),
    ('at_bigtime', '20GB', '60.00', '55.00', '53.00', '51.00', '50.00', '49.00'),
]


def seed_default_bundles():
    """
    Create the default data bundle catalog if it doesn't exist.

    Returns:
        list: DataBundle instances (created or existing)
    """
    from .models import DataBundle
    from .networks import network_display_name

    bundles = []
    for network, data, base, agent, dealer, super_dealer, master, admin in DEFAULT_BUNDLES:
        bundle, created = DataBundle.objects.get_or_create(
            network=network,
            data_amount=data,
            defaults={
                'name': f"{network_display_name(network)} {data}",
                'base_price': Decimal(base),
                'agent_price': Decimal(agent),
                'dealer_price': Decimal(dealer),
                'super_dealer_price': Decimal(super_dealer),
                'master_price': Decimal(master),
                'admin_price': Decimal(admin),
            }
        )
        bundles.append(bundle)
    return bundles


def bulk_add_result_checkers(checker_type, year, base_price, cost_price, lines):
    """
    Add vouchers from "serial,pin" lines.

    Returns:
        int: number of vouchers created
    """
    from .models import ResultChecker

    if checker_type not in ResultChecker.CheckerType.values:
        raise OrderError('Invalid result checker type')
    try:
        year = int(year)
        base_price = Decimal(str(base_price))
        cost_price = Decimal(str(cost_price))
    except (TypeError, ValueError, ArithmeticError) as e:
        raise OrderError('Invalid year or price') from e
    if not 2000 <= year <= 2100:
        raise OrderError('Invalid year')
    if not Decimal('0') < base_price <= Decimal('10000'):
        raise OrderError('Invalid base price')
    if not Decimal('0') < cost_price <= base_price:
        raise OrderError('Invalid cost price')

    checkers = []
    for line in (lines or '').splitlines():
        parts = [part.strip() for part in line.split(',')]
        if len(parts) >= 2 and parts[0] and parts[1]:
            checkers.append(ResultChecker(
                type=checker_type, year=year, serial_number=parts[0], pin=parts[1],
                base_price=base_price, cost_price=cost_price,
            ))
    if not checkers:
        raise OrderError('No valid checkers provided')

    existing = set(ResultChecker.objects.filter(
        serial_number__in=[c.serial_number for c in checkers]
    ).values_list('serial_number', flat=True))
    fresh = [c for c in checkers if c.serial_number not in existing]
    ResultChecker.objects.bulk_create(fresh)
    logger.info(f"Added {len(fresh)} {checker_type} {year} result checkers ({len(existing)} duplicates skipped)")
    return len(fresh)


def get_object_or_error(model, message='Not found', **lookup):
    try:
        return model.objects.get(**lookup)
    except (model.DoesNotExist, ValueError) as e:
        raise NotFound(message) from e


def ensure_open_for_orders(user=None):
    """Refuse purchases while break mode is on (admins are exempt)."""
    if user is not None and user.is_authenticated and user.is_admin:
        return
    state = get_break_settings()
    if state['is_enabled']:
        raise ResellerError(state['message'] or 'We are on a short break', http_status=503, break_mode=True)
