"""
Public catalog views: data bundles, result checker stock, order tracking,
customer rankings, announcements and break mode status.
"""

from django.http import JsonResponse

from .exceptions import NotFound, OrderError
from .mixins import ApiLoginRequiredMixin, ApiView
from .models import Announcement, DataBundle, ResultChecker
from .pricing import price_for_user
from .serializers import announcement_to_dict, bundle_to_dict, transaction_to_dict
from .services import get_break_settings, top_customers


def checker_price(checker_type, year):
    first = ResultChecker.objects.available(checker_type, year).order_by('created_at', 'id').first()
    return first.base_price if first else None


class DataBundleListView(ApiView):
    """Active bundles, priced for the current user's role. ?network= filters."""

    def get(self, request):
        bundles = DataBundle.objects.filter(is_active=True)
        network = request.GET.get('network')
        if network:
            bundles = bundles.filter(network=network)
        return JsonResponse({
            'bundles': [bundle_to_dict(b, price_for_user(b, request.user)) for b in bundles]
        })


class DataBundleDetailView(ApiView):

    def get(self, request, pk):
        bundle = DataBundle.objects.filter(pk=pk, is_active=True).first()
        if bundle is None:
            raise NotFound('Data bundle not found')
        return JsonResponse({'bundle': bundle_to_dict(bundle, price_for_user(bundle, request.user))})


class ResultCheckerStockView(ApiView):
    """Available vouchers per type and year."""

    def get(self, request):
        stock = []
        for row in ResultChecker.objects.summary():
            stock.append({
                'type': row['type'],
                'year': row['year'],
                'available': row['available'],
                'price': checker_price(row['type'], row['year']),
            })
        return JsonResponse({'stock': stock})


class ResultCheckerInfoView(ApiView):

    def get(self, request, checker_type, year):
        if checker_type not in ResultChecker.CheckerType.values:
            raise OrderError('Invalid result checker type')
        available = ResultChecker.objects.available(checker_type, year).count()
        return JsonResponse({
            'type': checker_type,
            'year': year,
            'available': available,
            'price': checker_price(checker_type, year),
        })


class TrackOrderView(ApiView):
    """GET ?reference= or ?phone="""

    def get(self, request):
        from .fulfillment import track_order

        orders = track_order(reference=request.GET.get('reference'), phone=request.GET.get('phone'))
        return JsonResponse({'transactions': [transaction_to_dict(o) for o in orders]})


class CustomerRankingsView(ApiView):
    """Public leaderboard: no emails."""

    def get(self, request):
        return JsonResponse({'rankings': top_customers(limit=10, public=True)})


class BreakSettingsView(ApiView):

    def get(self, request):
        return JsonResponse(get_break_settings())


class ActiveAnnouncementsView(ApiLoginRequiredMixin, ApiView):

    def get(self, request):
        if request.user.role == 'guest':
            return JsonResponse({'announcements': []})
        announcements = Announcement.objects.filter(is_active=True).order_by('-created_at')
        return JsonResponse({'announcements': [announcement_to_dict(a) for a in announcements]})
