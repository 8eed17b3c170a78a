"""
Inbox, web push registration and alert settings.
"""

import logging

from django.http import JsonResponse

from .exceptions import NotFound, OrderError
from .mixins import ApiLoginRequiredMixin, ApiView
from .models import Notification, NotificationPreference, PushSubscription
from .serializers import notification_to_dict, preference_to_dict
from .user_views import paginate

logger = logging.getLogger('core.notifications')


class NotificationListView(ApiLoginRequiredMixin, ApiView):
    """?kind= and ?unread=true filter."""

    def get(self, request):
        qs = Notification.objects.filter(user=request.user).select_related('transaction')
        kind = request.GET.get('kind')
        if kind:
            qs = qs.filter(kind=kind)
        if request.GET.get('unread') == 'true':
            qs = qs.filter(is_read=False)

        items, meta = paginate(request, qs.order_by('-created_at'))
        return JsonResponse({'notifications': [notification_to_dict(n) for n in items], 'pagination': meta})


class MarkAsReadView(ApiLoginRequiredMixin, ApiView):

    def post(self, request, pk):
        notification = Notification.objects.filter(pk=pk, user=request.user).first()
        if notification is None:
            raise NotFound('Notification not found')
        notification.mark_read()
        return JsonResponse({'success': True, 'link': notification.link})


class MarkAllReadView(ApiLoginRequiredMixin, ApiView):

    def post(self, request):
        from .notification_service import mark_all_as_read
        return JsonResponse({'success': True, 'count': mark_all_as_read(request.user)})


class UnreadCountView(ApiLoginRequiredMixin, ApiView):

    def get(self, request):
        from .notification_service import get_unread_count
        return JsonResponse({'count': get_unread_count(request.user)})


class RegisterPushView(ApiLoginRequiredMixin, ApiView):
    """POST the browser's PushSubscription JSON: {endpoint, keys: {p256dh, auth}}."""

    def post(self, request):
        data = self.json_body()
        endpoint = (data.get('endpoint') or '').strip()
        keys = data.get('keys') or {}
        if not endpoint.startswith('https://'):
            raise OrderError('A push endpoint URL is required')
        if not keys.get('p256dh') or not keys.get('auth'):
            raise OrderError('Push subscription keys are required')

        subscription, created = PushSubscription.objects.update_or_create(
            user=request.user,
            endpoint=endpoint,
            defaults={
                'keys': {'p256dh': keys['p256dh'], 'auth': keys['auth']},
                'user_agent': request.headers.get('User-Agent', '')[:300],
                'is_active': True,
                'failure_count': 0,
            },
        )
        logger.info(f"Push subscription {'added' if created else 'refreshed'}: user={request.user.email}")
        return JsonResponse({'success': True, 'id': subscription.pk}, status=201 if created else 200)


class UnregisterPushView(ApiLoginRequiredMixin, ApiView):
    """POST {endpoint?}: without an endpoint every browser of the user is switched off."""

    def post(self, request):
        endpoint = self.json_body().get('endpoint')
        subscriptions = PushSubscription.objects.filter(user=request.user, is_active=True)
        if endpoint:
            subscriptions = subscriptions.filter(endpoint=endpoint)
        return JsonResponse({'success': True, 'disabled': subscriptions.update(is_active=False)})


class NotificationPreferencesView(ApiLoginRequiredMixin, ApiView):
    """POST {push_enabled?, email_enabled?, muted_kinds?}"""

    def get(self, request):
        return JsonResponse(preference_to_dict(NotificationPreference.for_user(request.user)))

    def post(self, request):
        prefs = NotificationPreference.for_user(request.user)
        data = self.json_body()

        for field in ('push_enabled', 'email_enabled'):
            if field in data:
                setattr(prefs, field, bool(data[field]))
        if 'muted_kinds' in data:
            if not isinstance(data['muted_kinds'], list):
                raise OrderError('muted_kinds must be a list')
            prefs.set_muted(data['muted_kinds'])
        prefs.save()
        return JsonResponse(preference_to_dict(prefs))
