"""
Support chat between users and admins.
"""

import logging

from django.db.models import Count, Q
from django.utils import timezone

from .exceptions import NotFound, OrderError, PermissionDenied

logger = logging.getLogger('core')

WELCOME_MESSAGE = (
    "Thanks for reaching out to Resellers Hub support! An admin will reply "
    "shortly. Please include your order reference if your message is about a purchase."
)
MAX_MESSAGE_LENGTH = 2000


def _is_admin(user):
    return user.is_admin


def create_chat(user, message=''):
    """Open a new chat, optionally with a first message."""
    from .models import SupportChat

    chat = SupportChat.objects.create(user=user, last_message_at=timezone.now())
    logger.info(f"Support chat opened: chat={chat.pk}, user={user.email}")
    if message:
        post_message(chat, user, message)
    return chat


def list_chats(user, status=None):
    from .models import SupportChat

    chats = SupportChat.objects.select_related('user', 'assigned_to')
    if not _is_admin(user):
        chats = chats.filter(user=user)
    if status:
        chats = chats.filter(status=status)
    return chats.annotate(
        unread_user_messages=Count('messages', filter=Q(messages__sender_type='user', messages__is_read=False)),
        unread_admin_messages=Count('messages', filter=Q(messages__sender_type='admin', messages__is_read=False)),
    ).order_by('-last_message_at')


def get_chat(user, chat_id):
    """Chat visible to its owner and to admins."""
    from .models import SupportChat

    chat = SupportChat.objects.select_related('user', 'assigned_to').filter(pk=chat_id).first()
    if chat is None:
        raise NotFound('Chat not found')
    if chat.user_id != user.pk and not _is_admin(user):
        raise PermissionDenied('You do not have access to this chat')
    return chat


def post_message(chat, sender, text):
    """
    Add a message to a chat.

    The first user message in a chat gets an automatic welcome reply.
    """
    from .models import ChatMessage, SupportChat
    from .notification_service import notify_support_reply

    text = (text or '').strip()
    if not text:
        raise OrderError('Message cannot be empty')
    if len(text) > MAX_MESSAGE_LENGTH:
        raise OrderError(f'Message is too long (max {MAX_MESSAGE_LENGTH} characters)')
    if chat.status == SupportChat.Status.CLOSED:
        raise OrderError('This chat is closed', http_status=409)

    from_admin = _is_admin(sender) and sender.pk != chat.user_id
    sender_type = ChatMessage.SenderType.ADMIN if from_admin else ChatMessage.SenderType.USER

    first_user_message = (
        sender_type == ChatMessage.SenderType.USER
        and not chat.messages.filter(sender_type=ChatMessage.SenderType.USER).exists()
    )

    message = ChatMessage.objects.create(chat=chat, sender=sender, sender_type=sender_type, message=text)
    chat.last_message_at = message.created_at
    chat.save(update_fields=['last_message_at'])

    if first_user_message:
        ChatMessage.objects.create(
            chat=chat,
            sender=None,
            sender_type=ChatMessage.SenderType.ADMIN,
            message=WELCOME_MESSAGE,
        )

    if from_admin:
        notify_support_reply(chat, message)

    return message


def mark_message_read(user, message_id):
    from .models import ChatMessage

    message = ChatMessage.objects.select_related('chat').filter(pk=message_id).first()
    if message is None:
        raise NotFound('Message not found')
    get_chat(user, message.chat_id)
    if not message.is_read:
        message.is_read = True
        message.save(update_fields=['is_read'])
    return message


def mark_chat_read(user, chat):
    """Mark the other side's messages in a chat as read."""
    other_side = 'user' if _is_admin(user) and chat.user_id != user.pk else 'admin'
    return chat.messages.filter(sender_type=other_side, is_read=False).update(is_read=True)


def close_chat(user, chat):
    from .models import SupportChat

    if chat.user_id != user.pk and not _is_admin(user):
        raise PermissionDenied('You do not have access to this chat')
    if chat.status != SupportChat.Status.CLOSED:
        chat.status = SupportChat.Status.CLOSED
        chat.closed_at = timezone.now()
        chat.save(update_fields=['status', 'closed_at'])
        logger.info(f"Support chat closed: chat={chat.pk}, by={user.email}")
    return chat


def assign_chat(chat, admin_user):
    if not _is_admin(admin_user):
        raise OrderError('Chats can only be assigned to admins')
    chat.assigned_to = admin_user
    chat.save(update_fields=['assigned_to'])
    logger.info(f"Support chat assigned: chat={chat.pk}, admin={admin_user.email}")
    return chat


def unread_count(user):
    """Unread admin replies in a user's chats."""
    from .models import ChatMessage
    return ChatMessage.objects.filter(chat__user=user, sender_type='admin', is_read=False).count()


def admin_unread_count():
    """Unread user messages across all chats."""
    from .models import ChatMessage
    return ChatMessage.objects.filter(sender_type='user', is_read=False).count()
