"""
Customer views: order history, stats and bulk upload parsing.
"""

from django.core.paginator import EmptyPage, Paginator
from django.http import JsonResponse

from .fulfillment import parse_bulk_upload
from .mixins import ApiLoginRequiredMixin, ApiView
from .models import Transaction
from .serializers import money, transaction_to_dict
from .services import user_stats

PAGE_SIZE = 20


def paginate(request, queryset, per_page=PAGE_SIZE):
    """
    Slice a queryset by ?page= and ?page_size=.

    Returns:
        (items, meta)
    """
    try:
        per_page = min(max(int(request.GET.get('page_size', per_page)), 1), 100)
        number = max(int(request.GET.get('page', 1)), 1)
    except ValueError:
        number = 1
    paginator = Paginator(queryset, per_page)
    try:
        page = paginator.page(number)
    except EmptyPage:
        page = paginator.page(paginator.num_pages)
    return page.object_list, {
        'page': page.number,
        'page_size': per_page,
        'total': paginator.count,
        'total_pages': paginator.num_pages,
    }


class UserTransactionsView(ApiLoginRequiredMixin, ApiView):
    """The user's own orders, newest first. ?status= filters."""

    def get(self, request):
        orders = Transaction.objects.for_buyer(request.user).order_by('-created_at')
        status = request.GET.get('status')
        if status:
            orders = orders.filter(status=status)
        items, meta = paginate(request, orders)
        return JsonResponse({
            'transactions': [transaction_to_dict(o, include_secrets=o.status == 'delivered') for o in items],
            'pagination': meta,
        })


class UserStatsView(ApiLoginRequiredMixin, ApiView):

    def get(self, request):
        stats = user_stats(request.user)
        stats['total_spent'] = money(stats['total_spent'])
        stats['wallet_balance'] = money(stats['wallet_balance'])
        return JsonResponse(stats)


class BulkUploadView(ApiLoginRequiredMixin, ApiView):
    """
    Validate a pasted bulk order.

    POST {text, network?} with one "phone GB" pair per line.
    """

    def post(self, request):
        data = self.json_body()
        items, errors = parse_bulk_upload(data.get('text') or data.get('content') or '', data.get('network'))
        return JsonResponse({
            'items': items,
            'errors': errors,
            'valid_count': len(items),
            'error_count': len(errors),
        })
