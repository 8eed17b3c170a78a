"""
Admin API views for Resellers Hub.

Handles:
- Dashboard stats and customer rankings
- Transaction search, export, delivery overrides and provider dispatch
- Agent approval, user management and wallet adjustments
- Announcements, withdrawals, catalog and result checker stock
- Runtime settings, break mode and provider configuration
"""

import csv
import logging
from datetime import datetime
from decimal import Decimal, InvalidOperation

from django.db import transaction as db_transaction
from django.db.models import Q
from django.http import HttpResponse, JsonResponse
from django.utils import timezone

from .dispatcher import dispatch_transaction, reconcile_dispatch
from .exceptions import NotFound, OrderError, ProviderError
from .fulfillment import update_delivery_status
from .ledger import credit_wallet, debit_wallet
from .mixins import AdminRequiredMixin, ApiView
from .models import (
    Agent, Announcement, DataBundle, LedgerEntry, Network, ResultChecker, Setting,
    SupportChat, Transaction, User, Withdrawal,
)
from .serializers import (
    admin_transaction_to_dict, agent_to_dict, announcement_to_dict, bundle_to_dict,
    chat_to_dict, money, user_to_dict, withdrawal_to_dict,
)
from .services import (
    activate_agent, admin_stats, bulk_add_result_checkers, change_user_role, delete_inactive_users,
    get_break_settings, get_object_or_error, get_setting, record_audit, set_setting,
    top_customers, update_break_settings, update_user_credentials, users_with_last_purchase,
)
from .user_views import paginate
from .withdrawal_service import approve_withdrawal, reject_withdrawal

logger = logging.getLogger('core')

PROVIDER_SETTING_KEYS = ('external_api.key', 'external_api.secret', 'external_api.endpoint')

EXPORT_COLUMNS = [
    ('Reference', 'reference'),
    ('Date', 'created_at'),
    ('Product', 'product_name'),
    ('Type', 'product_type'),
    ('Network', 'network'),
    ('Customer Phone', 'customer_phone'),
    ('Customer Email', 'customer_email'),
    ('Amount', 'amount'),
    ('Profit', 'profit'),
    ('Agent Profit', 'agent_profit'),
    ('Payment', 'payment_status'),
    ('Status', 'status'),
    ('Delivery', 'delivery_status'),
]


def _parse_date(value):
    if not value:
        return None
    try:
        return datetime.strptime(value, '%Y-%m-%d').date()
    except ValueError as e:
        raise OrderError(f'Invalid date: {value}') from e


def filter_transactions(params):
    """
    Admin transaction search.

    Supports status, delivery_status, product_type, network, agent,
    date_from / date_to (YYYY-MM-DD) and a free-text `search` over
    reference, phone and email.
    """
    orders = Transaction.objects.select_related('agent', 'buyer').order_by('-created_at')
    for field in ('status', 'delivery_status', 'product_type', 'network'):
        if params.get(field):
            orders = orders.filter(**{field: params[field]})
    if params.get('agent'):
        orders = orders.filter(agent__storefront_slug=params['agent'])

    date_from = _parse_date(params.get('date_from'))
    date_to = _parse_date(params.get('date_to'))
    if date_from:
        orders = orders.filter(created_at__date__gte=date_from)
    if date_to:
        orders = orders.filter(created_at__date__lte=date_to)

    search = (params.get('search') or '').strip()
    if search:
        orders = orders.filter(
            Q(reference__icontains=search) |
            Q(customer_phone__icontains=search) |
            Q(customer_email__icontains=search)
        )
    return orders


def _decimal(value, label):
    try:
        return Decimal(str(value)).quantize(Decimal('0.01'))
    except (InvalidOperation, ValueError, TypeError) as e:
        raise OrderError(f'Invalid {label}') from e


# =============================================================================
# DASHBOARD
# =============================================================================

class AdminStatsView(AdminRequiredMixin, ApiView):

    def get(self, request):
        stats = admin_stats()
        return JsonResponse({key: money(value) if isinstance(value, Decimal) else value
                             for key, value in stats.items()})


class AdminRankingsView(AdminRequiredMixin, ApiView):

    def get(self, request):
        rows = top_customers(limit=int(request.GET.get('limit', 10) or 10))
        for row in rows:
            row['total_spent'] = money(row['total_spent'])
        return JsonResponse({'rankings': rows})


# =============================================================================
# TRANSACTIONS
# =============================================================================

class AdminTransactionsView(AdminRequiredMixin, ApiView):

    def get(self, request):
        items, meta = paginate(request, filter_transactions(request.GET), per_page=50)
        return JsonResponse({
            'transactions': [admin_transaction_to_dict(o) for o in items],
            'pagination': meta,
        })


class AdminRecentTransactionsView(AdminRequiredMixin, ApiView):

    def get(self, request):
        orders = Transaction.objects.sales().select_related('agent').order_by('-created_at')[:10]
        return JsonResponse({'transactions': [admin_transaction_to_dict(o) for o in orders]})


class AdminTransactionExportView(AdminRequiredMixin, ApiView):
    """CSV of the filtered transactions."""

    def get(self, request):
        orders = filter_transactions(request.GET)
        stamp = timezone.localdate().strftime('%Y%m%d')
        response = HttpResponse(content_type='text/csv')
        response['Content-Disposition'] = f'attachment; filename="transactions-{stamp}.csv"'

        writer = csv.writer(response)
        writer.writerow([title for title, _ in EXPORT_COLUMNS])
        for order in orders.iterator():
            writer.writerow([
                timezone.localtime(order.created_at).strftime('%Y-%m-%d %H:%M') if field == 'created_at'
                else getattr(order, field)
                for _, field in EXPORT_COLUMNS
            ])

        record_audit(request.user, 'export_transactions', 'transaction', '', None, dict(request.GET.items()), request)
        return response


class AdminDeliveryStatusView(AdminRequiredMixin, ApiView):
    """POST {delivery_status}: delivered, failed or processing."""

    def post(self, request, pk):
        order = get_object_or_error(Transaction, 'Transaction not found', pk=pk)
        data = self.json_body()
        status = data.get('delivery_status') or data.get('deliveryStatus') or data.get('status')
        order = update_delivery_status(order, status, actor=request.user, request=request)
        return JsonResponse({'transaction': admin_transaction_to_dict(order)})


class AdminDispatchView(AdminRequiredMixin, ApiView):
    """Send a paid data order to the provider, or reconcile one already sent."""

    def post(self, request, pk):
        order = get_object_or_error(Transaction, 'Transaction not found', pk=pk)
        if order.product_type != Transaction.ProductType.DATA_BUNDLE:
            raise OrderError('Only data bundle orders can be dispatched')

        if order.status == Transaction.Status.DISPATCHING and order.dispatch_attempts.filter(outcome='unknown').exists():
            order = reconcile_dispatch(order)
        else:
            order = dispatch_transaction(order)
        record_audit(request.user, 'dispatch_transaction', 'transaction', order.pk, None,
                     {'status': order.status}, request)
        return JsonResponse({'transaction': admin_transaction_to_dict(order)})


# =============================================================================
# AGENTS
# =============================================================================

class AdminAgentsView(AdminRequiredMixin, ApiView):
    """?status=approved|pending"""

    def get(self, request):
        agents = Agent.objects.select_related('user').order_by('-created_at')
        status = request.GET.get('status')
        if status == 'approved':
            agents = agents.filter(is_approved=True)
        elif status == 'pending':
            agents = agents.filter(is_approved=False)
        return JsonResponse({'agents': [agent_to_dict(a) for a in agents]})


class AdminAgentApproveView(AdminRequiredMixin, ApiView):

    def post(self, request, pk):
        agent = get_object_or_error(Agent, 'Agent not found', pk=pk)
        if agent.is_approved:
            raise OrderError('Agent is already approved', http_status=409)
        activate_agent(agent)
        record_audit(request.user, 'approve_agent', 'agent', agent.pk,
                     {'is_approved': False}, {'is_approved': True}, request)
        return JsonResponse({'agent': agent_to_dict(agent)})


class AdminAgentDetailView(AdminRequiredMixin, ApiView):

    def delete(self, request, pk):
        agent = get_object_or_error(Agent, 'Agent not found', pk=pk)
        slug = agent.storefront_slug
        user = agent.user
        with db_transaction.atomic():
            agent.delete()
            if user.is_reseller:
                user.role = User.Role.USER
                user.save(update_fields=['role'])
        record_audit(request.user, 'delete_agent', 'agent', pk, {'storefront_slug': slug}, None, request)
        logger.info(f"Agent deleted: slug={slug}, by={request.user.email}")
        return JsonResponse({'success': True})


# =============================================================================
# USERS
# =============================================================================

class AdminUsersView(AdminRequiredMixin, ApiView):
    """Users with their last delivered purchase. ?role= and ?search= filter."""

    def get(self, request):
        users = users_with_last_purchase()
        if request.GET.get('role'):
            users = users.filter(role=request.GET['role'])
        search = (request.GET.get('search') or '').strip()
        if search:
            users = users.filter(Q(email__icontains=search) | Q(name__icontains=search) | Q(phone__icontains=search))
        items, meta = paginate(request, users, per_page=50)

        rows = []
        for user in items:
            row = user_to_dict(user)
            row['last_purchase_at'] = user.last_purchase_at
            row['purchase_count'] = user.purchase_count
            rows.append(row)
        return JsonResponse({'users': rows, 'pagination': meta})


class AdminUserDetailView(AdminRequiredMixin, ApiView):

    def delete(self, request, pk):
        user = get_object_or_error(User, 'User not found', pk=pk)
        if user.pk == request.user.pk:
            raise OrderError('You cannot delete your own account')
        email = user.email
        user.delete()
        record_audit(request.user, 'delete_user', 'user', pk, {'email': email}, None, request)
        logger.info(f"User deleted: email={email}, by={request.user.email}")
        return JsonResponse({'success': True})


class AdminUserRoleView(AdminRequiredMixin, ApiView):
    """POST {role}"""

    def post(self, request, pk):
        user = get_object_or_error(User, 'User not found', pk=pk)
        user = change_user_role(user, self.json_body().get('role'), actor=request.user, request=request)
        return JsonResponse({'user': user_to_dict(user)})


class AdminUserCredentialsView(AdminRequiredMixin, ApiView):
    """POST {email?, password?}"""

    def post(self, request, pk):
        user = get_object_or_error(User, 'User not found', pk=pk)
        data = self.json_body()
        user = update_user_credentials(user, email=data.get('email'), password=data.get('password'),
                                       actor=request.user, request=request)
        return JsonResponse({'user': user_to_dict(user)})


class AdminDeleteInactiveUsersView(AdminRequiredMixin, ApiView):
    """POST {days}"""

    def post(self, request):
        deleted = delete_inactive_users(self.json_body().get('days'), actor=request.user, request=request)
        return JsonResponse({'deleted': deleted})


class AdminWalletAdjustView(AdminRequiredMixin, ApiView):
    """
    Manual wallet correction.

    POST {amount, reason}: a positive amount credits, a negative one debits.
    """

    def post(self, request, pk):
        user = get_object_or_error(User, 'User not found', pk=pk)
        data = self.json_body()
        amount = _decimal(data.get('amount'), 'amount')
        reason = (data.get('reason') or '').strip()
        if not amount:
            raise OrderError('Amount must not be zero')
        if not reason:
            raise OrderError('A reason is required')

        key = f"adjustment:{user.pk}:{int(timezone.now().timestamp() * 1000)}"
        post = credit_wallet if amount > 0 else debit_wallet
        entry = post(user, abs(amount), LedgerEntry.EntryType.ADJUSTMENT, key,
                     description=reason[:255], created_by=request.user)

        record_audit(request.user, 'adjust_wallet', 'user', user.pk, None,
                     {'amount': f'{amount}', 'reason': reason}, request)
        return JsonResponse({'balance': money(entry.balance_after), 'entry_id': entry.pk})


# =============================================================================
# ANNOUNCEMENTS
# =============================================================================

class AdminAnnouncementsView(AdminRequiredMixin, ApiView):

    def get(self, request):
        return JsonResponse({
            'announcements': [announcement_to_dict(a) for a in Announcement.objects.order_by('-created_at')]
        })

    def post(self, request):
        data = self.json_body()
        title = (data.get('title') or '').strip()
        message = (data.get('message') or '').strip()
        if not title or not message:
            raise OrderError('Title and message are required')
        announcement = Announcement.objects.create(
            title=title,
            message=message,
            is_active=bool(data.get('is_active', data.get('isActive', True))),
            created_by=request.user.email,
        )
        record_audit(request.user, 'create_announcement', 'announcement', announcement.pk, None,
                     {'title': title}, request)

        notified = 0
        if announcement.is_active and data.get('notify'):
            from .notification_service import notify_announcement
            notified = notify_announcement(announcement, User.objects.filter(is_active=True))
        return JsonResponse({'announcement': announcement_to_dict(announcement), 'notified': notified}, status=201)


class AdminAnnouncementDetailView(AdminRequiredMixin, ApiView):

    def patch(self, request, pk):
        announcement = get_object_or_error(Announcement, 'Announcement not found', pk=pk)
        data = self.json_body()
        for field in ('title', 'message'):
            if field in data:
                setattr(announcement, field, (data[field] or '').strip())
        if 'is_active' in data or 'isActive' in data:
            announcement.is_active = bool(data.get('is_active', data.get('isActive')))
        if not announcement.title or not announcement.message:
            raise OrderError('Title and message are required')
        announcement.save()
        return JsonResponse({'announcement': announcement_to_dict(announcement)})

    def delete(self, request, pk):
        announcement = get_object_or_error(Announcement, 'Announcement not found', pk=pk)
        announcement.delete()
        record_audit(request.user, 'delete_announcement', 'announcement', pk, None, None, request)
        return JsonResponse({'success': True})


# =============================================================================
# WITHDRAWALS
# =============================================================================

class AdminWithdrawalsView(AdminRequiredMixin, ApiView):

    def get(self, request):
        withdrawals = Withdrawal.objects.select_related('agent__user').order_by('-created_at')
        if request.GET.get('status'):
            withdrawals = withdrawals.filter(status=request.GET['status'])
        rows = []
        for withdrawal in withdrawals:
            row = withdrawal_to_dict(withdrawal)
            row['agent'] = {
                'storefront_slug': withdrawal.agent.storefront_slug,
                'business_name': withdrawal.agent.business_name,
                'email': withdrawal.agent.user.email,
            }
            rows.append(row)
        return JsonResponse({'withdrawals': rows})


class AdminWithdrawalApproveView(AdminRequiredMixin, ApiView):

    def post(self, request, pk):
        withdrawal = get_object_or_error(Withdrawal, 'Withdrawal not found', pk=pk)
        note = self.json_body().get('note', '')
        withdrawal = approve_withdrawal(withdrawal, request.user, note=note, request=request)
        return JsonResponse({'withdrawal': withdrawal_to_dict(withdrawal)})


class AdminWithdrawalRejectView(AdminRequiredMixin, ApiView):

    def post(self, request, pk):
        withdrawal = get_object_or_error(Withdrawal, 'Withdrawal not found', pk=pk)
        reason = self.json_body().get('reason', '')
        withdrawal = reject_withdrawal(withdrawal, request.user, reason, request=request)
        return JsonResponse({'withdrawal': withdrawal_to_dict(withdrawal)})


# =============================================================================
# CATALOG
# =============================================================================

BUNDLE_FIELDS = ('name', 'network', 'data_amount', 'validity', 'api_code')
BUNDLE_PRICE_FIELDS = ('base_price', 'agent_price', 'dealer_price', 'super_dealer_price', 'master_price', 'admin_price')


def _apply_bundle_fields(bundle, data):
    for field in BUNDLE_FIELDS:
        if field in data:
            setattr(bundle, field, (data[field] or '').strip())
    for field in BUNDLE_PRICE_FIELDS:
        if field in data:
            value = data[field]
            if value in (None, '') and field != 'base_price':
                setattr(bundle, field, None)
                continue
            price = _decimal(value, field.replace('_', ' '))
            if price <= 0:
                raise OrderError(f'{field.replace("_", " ").capitalize()} must be positive')
            setattr(bundle, field, price)
    if 'is_active' in data:
        bundle.is_active = bool(data['is_active'])

    if bundle.network not in Network.values:
        raise OrderError('Invalid network')
    if not bundle.name or not bundle.data_amount or bundle.base_price is None:
        raise OrderError('Name, data amount and base price are required')


class AdminDataBundlesView(AdminRequiredMixin, ApiView):

    def get(self, request):
        bundles = DataBundle.objects.all()
        if request.GET.get('network'):
            bundles = bundles.filter(network=request.GET['network'])
        return JsonResponse({'bundles': [bundle_to_dict(b, include_tiers=True) for b in bundles]})

    def post(self, request):
        bundle = DataBundle()
        _apply_bundle_fields(bundle, self.json_body())
        bundle.save()
        record_audit(request.user, 'create_bundle', 'data_bundle', bundle.pk, None, {'name': bundle.name}, request)
        return JsonResponse({'bundle': bundle_to_dict(bundle, include_tiers=True)}, status=201)


class AdminDataBundleDetailView(AdminRequiredMixin, ApiView):

    def patch(self, request, pk):
        bundle = get_object_or_error(DataBundle, 'Data bundle not found', pk=pk)
        before = bundle_to_dict(bundle, include_tiers=True)
        _apply_bundle_fields(bundle, self.json_body())
        bundle.save()
        after = bundle_to_dict(bundle, include_tiers=True)
        record_audit(request.user, 'update_bundle', 'data_bundle', bundle.pk, before, after, request)
        return JsonResponse({'bundle': after})

    def delete(self, request, pk):
        bundle = get_object_or_error(DataBundle, 'Data bundle not found', pk=pk)
        if bundle.transactions.exists():
            # Sold bundles stay for history
            bundle.is_active = False
            bundle.save(update_fields=['is_active', 'updated_at'])
        else:
            bundle.delete()
        record_audit(request.user, 'delete_bundle', 'data_bundle', pk, None, None, request)
        return JsonResponse({'success': True})


class AdminResultCheckersView(AdminRequiredMixin, ApiView):
    """?type=, ?year=, ?sold=true|false"""

    def get(self, request):
        checkers = ResultChecker.objects.order_by('-created_at')
        if request.GET.get('type'):
            checkers = checkers.filter(type=request.GET['type'])
        if request.GET.get('year'):
            checkers = checkers.filter(year=request.GET['year'])
        if request.GET.get('sold') in ('true', 'false'):
            checkers = checkers.filter(is_sold=request.GET['sold'] == 'true')
        items, meta = paginate(request, checkers, per_page=100)
        return JsonResponse({
            'checkers': [{
                'id': c.pk,
                'type': c.type,
                'year': c.year,
                'serial_number': c.serial_number,
                'pin': c.pin,
                'base_price': money(c.base_price),
                'cost_price': money(c.cost_price),
                'is_sold': c.is_sold,
                'sold_at': c.sold_at,
                'sold_to_phone': c.sold_to_phone,
            } for c in items],
            'pagination': meta,
        })


class AdminResultCheckersBulkView(AdminRequiredMixin, ApiView):
    """POST {type, year, base_price, cost_price, checkers: "serial,pin" lines}"""

    def post(self, request):
        data = self.json_body()
        created = bulk_add_result_checkers(
            data.get('type') or data.get('checker_type'),
            data.get('year'),
            data.get('base_price') or data.get('basePrice'),
            data.get('cost_price') or data.get('costPrice'),
            data.get('checkers') or data.get('lines') or '',
        )
        record_audit(request.user, 'bulk_add_checkers', 'result_checker', '', None,
                     {'type': data.get('type'), 'year': data.get('year'), 'count': created}, request)
        return JsonResponse({'created': created}, status=201)


class AdminResultCheckersSummaryView(AdminRequiredMixin, ApiView):

    def get(self, request):
        return JsonResponse({'summary': list(ResultChecker.objects.summary())})


# =============================================================================
# SETTINGS
# =============================================================================

class AdminBreakSettingsView(AdminRequiredMixin, ApiView):

    def get(self, request):
        return JsonResponse(get_break_settings())

    def post(self, request):
        data = self.json_body()
        before = get_break_settings()
        state = update_break_settings(
            bool(data.get('is_enabled', data.get('isEnabled', False))),
            data.get('message', ''),
        )
        record_audit(request.user, 'update_break_settings', 'setting', 'break_mode', before, state, request)
        return JsonResponse(state)


def _mask(value):
    if not value:
        return ''
    return f'{value[:4]}****{value[-4:]}' if len(value) > 8 else '****'


class AdminApiConfigView(AdminRequiredMixin, ApiView):
    """Bundle provider credentials. Secrets are returned masked."""

    def get(self, request):
        key, secret, endpoint = (get_setting(k, '') or '' for k in PROVIDER_SETTING_KEYS)
        return JsonResponse({
            'api_key': _mask(key),
            'api_secret': _mask(secret),
            'endpoint': endpoint,
            'is_configured': bool(key and secret),
        })

    def post(self, request):
        data = self.json_body()
        incoming = {
            'external_api.key': data.get('api_key') or data.get('apiKey'),
            'external_api.secret': data.get('api_secret') or data.get('apiSecret'),
            'external_api.endpoint': data.get('endpoint'),
        }
        changed = []
        for key, value in incoming.items():
            if value:
                set_setting(key, value.strip())
                changed.append(key)
        if not changed:
            raise OrderError('Nothing to update')
        record_audit(request.user, 'update_api_config', 'setting', ','.join(changed), None, None, request)
        return JsonResponse({'success': True, 'updated': changed})


class AdminSettingsView(AdminRequiredMixin, ApiView):
    """All runtime settings; values of secret-looking keys are masked."""

    def get(self, request):
        rows = []
        for setting in Setting.objects.order_by('key'):
            secret = any(word in setting.key for word in ('secret', 'key', 'password'))
            rows.append({
                'key': setting.key,
                'value': _mask(setting.value) if secret else setting.value,
                'description': setting.description,
                'updated_at': setting.updated_at,
            })
        return JsonResponse({'settings': rows})

    def post(self, request):
        data = self.json_body()
        key = (data.get('key') or '').strip()
        if not key or data.get('value') is None:
            raise OrderError('Key and value are required')
        setting = set_setting(key, str(data['value']), data.get('description'))
        record_audit(request.user, 'update_setting', 'setting', key, None, None, request)
        return JsonResponse({'key': setting.key, 'updated_at': setting.updated_at})


class AdminSettingDetailView(AdminRequiredMixin, ApiView):

    def get(self, request, key):
        setting = get_object_or_error(Setting, 'Setting not found', key=key)
        return JsonResponse({'key': setting.key, 'value': setting.value, 'description': setting.description})

    def put(self, request, key):
        data = self.json_body()
        if data.get('value') is None:
            raise OrderError('Value is required')
        setting = set_setting(key, str(data['value']), data.get('description'))
        record_audit(request.user, 'update_setting', 'setting', key, None, None, request)
        return JsonResponse({'key': setting.key, 'updated_at': setting.updated_at})

    def delete(self, request, key):
        deleted, _ = Setting.objects.filter(key=key).delete()
        if not deleted:
            raise NotFound('Setting not found')
        record_audit(request.user, 'delete_setting', 'setting', key, None, None, request)
        return JsonResponse({'success': True})


# =============================================================================
# SUPPORT AND PROVIDER
# =============================================================================

class AdminSupportChatsView(AdminRequiredMixin, ApiView):

    def get(self, request):
        from .support_service import list_chats

        chats = list_chats(request.user, status=request.GET.get('status'))
        return JsonResponse({'chats': [chat_to_dict(c) for c in chats]})


class AdminAssignChatView(AdminRequiredMixin, ApiView):
    """POST {admin_id?}: defaults to the current admin."""

    def post(self, request, pk):
        from .support_service import assign_chat

        chat = get_object_or_error(SupportChat, 'Chat not found', pk=pk)
        admin_id = self.json_body().get('admin_id')
        assignee = request.user
        if admin_id:
            assignee = User.objects.admins().filter(pk=admin_id).first()
            if assignee is None:
                raise NotFound('Admin not found')
        chat = assign_chat(chat, assignee)
        return JsonResponse({'chat': chat_to_dict(chat)})


class AdminProviderBalanceView(AdminRequiredMixin, ApiView):

    def get(self, request):
        from .providers import BundleProviderService

        provider = BundleProviderService()
        if not provider.is_configured:
            raise ProviderError('Data bundle provider credentials are not configured', http_status=400)
        return JsonResponse({'balance': provider.get_balance()})
