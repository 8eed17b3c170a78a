"""
Notification tests for Resellers Hub.

Tests cover:
- Inbox entries and muted kinds
- Web push delivery and dead browser cleanup
- Inbox and preference endpoints
"""

from unittest import mock

from django.test import TestCase, override_settings
from django.urls import reverse
from pywebpush import WebPushException

from core.models import Notification, NotificationPreference, PushSubscription
from core.notification_service import get_unread_count, mark_all_as_read, push_to_user, send_notification

from .helpers import make_user

PUSH_KEYS = {'p256dh': 'BNcRd', 'auth': 'tBHI'}


class SendNotificationTests(TestCase):

    def setUp(self):
        self.user = make_user()

    def test_inbox_only_without_push_setup(self):
        notification = send_notification(self.user, 'order', 'Order delivered', 'MTN 1GB delivered')

        self.assertEqual(notification.channels, [])
        self.assertEqual(get_unread_count(self.user), 1)

    def test_muted_kind_skipped(self):
        prefs = NotificationPreference.for_user(self.user)
        prefs.set_muted(['commission'])
        prefs.save()

        self.assertIsNone(send_notification(self.user, 'commission', 'Commission earned', 'GHS 0.80'))
        self.assertFalse(Notification.objects.exists())

    def test_mark_all_as_read(self):
        send_notification(self.user, 'order', 'One', 'x')
        send_notification(self.user, 'support', 'Two', 'y')

        self.assertEqual(mark_all_as_read(self.user), 2)
        self.assertEqual(get_unread_count(self.user), 0)


@override_settings(VAPID_PRIVATE_KEY='vapid-private')
class PushTests(TestCase):

    def setUp(self):
        self.user = make_user()
        self.subscription = PushSubscription.objects.create(
            user=self.user, endpoint='https://fcm.googleapis.com/fcm/send/abc', keys=PUSH_KEYS)

    @mock.patch('core.notification_service.webpush')
    def test_push_recorded_on_notification(self, mock_webpush):
        notification = send_notification(self.user, 'support', 'Support replied', 'Sorted')

        self.assertEqual(notification.channels, ['push'])
        kwargs = mock_webpush.call_args[1]
        self.assertEqual(kwargs['subscription_info']['keys'], PUSH_KEYS)
        self.subscription.refresh_from_db()
        self.assertIsNotNone(self.subscription.last_success_at)

    @mock.patch('core.notification_service.webpush')
    def test_gone_endpoint_deactivated(self, mock_webpush):
        mock_webpush.side_effect = WebPushException('Gone', response=mock.Mock(status_code=410))

        self.assertFalse(push_to_user(self.user, 'Hi', 'There'))
        self.subscription.refresh_from_db()
        self.assertFalse(self.subscription.is_active)

    @mock.patch('core.notification_service.webpush')
    def test_transient_failure_keeps_subscription(self, mock_webpush):
        mock_webpush.side_effect = WebPushException('Busy', response=mock.Mock(status_code=503))

        push_to_user(self.user, 'Hi', 'There')
        self.subscription.refresh_from_db()
        self.assertTrue(self.subscription.is_active)
        self.assertEqual(self.subscription.failure_count, 1)

    @mock.patch('core.notification_service.webpush')
    def test_push_disabled_by_user(self, mock_webpush):
        prefs = NotificationPreference.for_user(self.user)
        prefs.push_enabled = False
        prefs.save()

        send_notification(self.user, 'order', 'Order delivered', 'x')
        mock_webpush.assert_not_called()


class NotificationViewTests(TestCase):

    def setUp(self):
        self.user = make_user()
        self.client.force_login(self.user)

    def test_list_and_mark_read(self):
        notification = send_notification(self.user, 'order', 'Order delivered', 'x', link='/track-order')
        send_notification(self.user, 'support', 'Support replied', 'y')

        data = self.client.get(reverse('core:notifications'), {'kind': 'order'}).json()
        self.assertEqual([n['id'] for n in data['notifications']], [notification.pk])

        response = self.client.post(reverse('core:mark_notification_read', args=[notification.pk]))
        self.assertEqual(response.json()['link'], '/track-order')
        self.assertEqual(self.client.get(reverse('core:unread_count')).json()['count'], 1)

    def test_cannot_read_other_users_notification(self):
        other = send_notification(make_user(email='other@example.com'), 'order', 'Hi', 'x')
        response = self.client.post(reverse('core:mark_notification_read', args=[other.pk]))
        self.assertEqual(response.status_code, 404)

    def test_register_push(self):
        payload = {'endpoint': 'https://updates.push.services.mozilla.com/wpush/v2/xyz', 'keys': PUSH_KEYS}

        first = self.client.post(reverse('core:register_push'), payload, content_type='application/json')
        again = self.client.post(reverse('core:register_push'), payload, content_type='application/json')

        self.assertEqual((first.status_code, again.status_code), (201, 200))
        self.assertEqual(PushSubscription.objects.filter(user=self.user).count(), 1)

    def test_register_push_needs_keys(self):
        response = self.client.post(reverse('core:register_push'), {'endpoint': 'https://push.example/1'},
                                    content_type='application/json')
        self.assertEqual(response.status_code, 400)

    def test_preferences(self):
        response = self.client.post(reverse('core:notification_preferences'),
                                    {'email_enabled': False, 'muted_kinds': ['announcement', 'withdrawal']},
                                    content_type='application/json')

        data = response.json()
        self.assertFalse(data['email_enabled'])
        self.assertEqual(data['muted_kinds'], ['announcement'])
        self.assertNotIn('withdrawal', data['mutable_kinds'])
