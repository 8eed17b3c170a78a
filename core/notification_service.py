"""
Alerts for buyers, resellers and support users.

Every alert lands in the in-app inbox. Callers pick extra channels
(web push and email) per event; a user's NotificationPreference can turn
a channel off or mute a kind entirely.
"""

import json
import logging
import smtplib

import requests
from django.conf import settings
from django.core.mail import BadHeaderError, send_mail
from django.utils import timezone
from pywebpush import WebPushException, webpush

logger = logging.getLogger('core.notifications')

PUSH = 'push'
EMAIL = 'email'

# Push endpoints answering these are gone for good
DEAD_ENDPOINT_STATUSES = (404, 410)
MAX_PUSH_FAILURES = 5


def send_notification(user, kind, title, body, link='', channels=(PUSH,), transaction=None, withdrawal=None):
    """
    Put an alert in the user's inbox and forward it to `channels`.

    Returns:
        Notification, or None when the user muted this kind
    """
    from .models import Notification, NotificationPreference

    prefs = NotificationPreference.for_user(user)
    if not prefs.allows(kind):
        logger.debug(f"{kind} alert muted by {user.email}")
        return None

    notification = Notification.objects.create(
        user=user,
        kind=kind,
        title=title,
        body=body,
        link=link,
        transaction=transaction,
        withdrawal=withdrawal,
    )

    sent = []
    if PUSH in channels and prefs.push_enabled and push_to_user(user, title, body, link):
        sent.append(PUSH)
    if EMAIL in channels and prefs.email_enabled and email_notification(notification):
        sent.append(EMAIL)
    if sent:
        notification.channels = sent
        notification.save(update_fields=['channels'])

    logger.info(f"Alert '{title}' for {user.email}: kind={kind}, sent_via={sent or ['inbox']}")
    return notification


# =============================================================================
# CHANNELS
# =============================================================================

def push_to_user(user, title, body, link=''):
    """
    Web push to each of the user's active browsers.

    Returns:
        bool: True if at least one browser accepted it
    """
    from .models import PushSubscription

    if not settings.VAPID_PRIVATE_KEY:
        return False

    subscriptions = list(PushSubscription.objects.filter(user=user, is_active=True))
    if not subscriptions:
        return False

    payload = json.dumps({'title': title, 'body': body, 'url': link or '/notifications'})
    claims = {'sub': f'mailto:{settings.VAPID_ADMIN_EMAIL}'}

    delivered = 0
    for sub in subscriptions:
        try:
            webpush(
                subscription_info=sub.as_subscription_info(),
                data=payload,
                vapid_private_key=settings.VAPID_PRIVATE_KEY,
                vapid_claims=claims,
            )
        except WebPushException as e:
            status = e.response.status_code if e.response is not None else None
            sub.failure_count += 1
            sub.is_active = status not in DEAD_ENDPOINT_STATUSES and sub.failure_count < MAX_PUSH_FAILURES
            sub.save(update_fields=['failure_count', 'is_active'])
            logger.warning(f"Push to subscription {sub.pk} failed (status={status}, active={sub.is_active}): {e}")
            continue
        except requests.RequestException as e:
            logger.error(f"Push transport error for subscription {sub.pk}: {e}")
            continue

        sub.failure_count = 0
        sub.last_success_at = timezone.now()
        sub.save(update_fields=['failure_count', 'last_success_at'])
        delivered += 1

    return delivered > 0


def email_notification(notification):
    """Plain text copy of an alert. Returns True when the mail server took it."""
    user = notification.user
    if not user.email:
        return False

    lines = [f"Hello {user.name or user.email},", '', notification.body]
    if notification.link:
        lines += ['', f"{settings.SITE_URL}{notification.link}"]
    lines += ['', 'Resellers Hub']

    try:
        send_mail(
            subject=notification.title,
            message='\n'.join(lines),
            from_email=settings.DEFAULT_FROM_EMAIL,
            recipient_list=[user.email],
        )
    except (BadHeaderError, smtplib.SMTPException, OSError) as e:
        logger.error(f"Alert email to {user.email} failed: {e}")
        return False
    return True


# =============================================================================
# EVENTS
# =============================================================================

def notify_order_update(order):
    """Delivered, failed and refunded orders of signed-in buyers."""
    if order.buyer_id is None:
        return None

    if order.status == 'delivered':
        title = "Order delivered"
        body = f"{order.product_name} ({order.reference}) has been delivered."
        if order.delivered_serial:
            body += f" Serial: {order.delivered_serial} PIN: {order.delivered_pin}"
        channels = (PUSH,)
    elif order.status == 'refunded':
        title = "Order refunded"
        body = f"{order.product_name} ({order.reference}) could not be delivered and was refunded."
        channels = (PUSH, EMAIL)
    elif order.status == 'failed':
        title = "Order failed"
        body = f"{order.product_name} ({order.reference}) could not be completed."
        if order.failure_reason:
            body += f" {order.failure_reason}"
        channels = (PUSH, EMAIL)
    else:
        return None

    return send_notification(order.buyer, 'order', title, body, link=f"/track-order?reference={order.reference}",
                             channels=channels, transaction=order)


def notify_commission(agent, amount, order):
    return send_notification(
        agent.user, 'commission', "Commission earned",
        f"GHS {amount:,.2f} from {order.product_name} ({order.reference}).",
        link='/agent/transactions', channels=(), transaction=order,
    )


WITHDRAWAL_MESSAGES = {
    'approved': ("Withdrawal approved", "GHS {amount:,.2f} is on its way to {account}."),
    'paid': ("Withdrawal paid", "GHS {amount:,.2f} was sent to {account}."),
    'rejected': ("Withdrawal rejected", "GHS {amount:,.2f} was returned to your balance."),
}


def notify_withdrawal(withdrawal):
    if withdrawal.status not in WITHDRAWAL_MESSAGES:
        return None

    title, template = WITHDRAWAL_MESSAGES[withdrawal.status]
    body = template.format(amount=withdrawal.amount, account=withdrawal.account_number)
    if withdrawal.status == 'rejected' and withdrawal.rejection_reason:
        body += f" Reason: {withdrawal.rejection_reason}"
    return send_notification(withdrawal.agent.user, 'withdrawal', title, body, link='/agent/withdrawals',
                             channels=(PUSH, EMAIL), withdrawal=withdrawal)


def notify_support_reply(chat, message):
    return send_notification(chat.user, 'support', "Support replied", message.message[:200],
                             link=f"/support/chat/{chat.pk}")


def notify_announcement(announcement, users):
    """Inbox copy of an announcement for each user; returns how many were created."""
    created = 0
    for user in users:
        if send_notification(user, 'announcement', announcement.title, announcement.message[:500],
                             link='/announcements', channels=()):
            created += 1
    logger.info(f"Announcement {announcement.pk} sent to {created} inboxes")
    return created


# =============================================================================
# INBOX
# =============================================================================

def get_unread_count(user):
    from .models import Notification
    return Notification.objects.filter(user=user, is_read=False).count()


def mark_all_as_read(user):
    from .models import Notification

    count = Notification.objects.filter(user=user, is_read=False).update(is_read=True, read_at=timezone.now())
    logger.debug(f"Marked {count} alerts read for {user.email}")
    return count
