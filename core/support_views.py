"""
Support chat views.
"""

from django.http import JsonResponse

from .mixins import AdminRequiredMixin, ApiLoginRequiredMixin, ApiView
from .serializers import chat_to_dict, message_to_dict
from .support_service import (
    admin_unread_count, close_chat, create_chat, get_chat, list_chats,
    mark_chat_read, mark_message_read, post_message, unread_count,
)


class CreateChatView(ApiLoginRequiredMixin, ApiView):
    """POST {message?}"""

    def post(self, request):
        chat = create_chat(request.user, self.json_body().get('message', ''))
        return JsonResponse({'chat': chat_to_dict(chat, messages=chat.messages.order_by('created_at'))}, status=201)


class ChatListView(ApiLoginRequiredMixin, ApiView):
    """Own chats, or all chats for admins. ?status= filters."""

    def get(self, request):
        chats = list_chats(request.user, status=request.GET.get('status'))
        return JsonResponse({'chats': [chat_to_dict(c) for c in chats]})


class ChatDetailView(ApiLoginRequiredMixin, ApiView):
    """Chat with messages; opening it marks the other side's messages read."""

    def get(self, request, pk):
        chat = get_chat(request.user, pk)
        mark_chat_read(request.user, chat)
        messages = chat.messages.order_by('created_at')
        return JsonResponse({'chat': chat_to_dict(chat, messages=messages)})


class ChatMessageView(ApiLoginRequiredMixin, ApiView):
    """POST {message}"""

    def post(self, request, pk):
        chat = get_chat(request.user, pk)
        message = post_message(chat, request.user, self.json_body().get('message'))
        return JsonResponse({'message': message_to_dict(message)}, status=201)


class ChatCloseView(ApiLoginRequiredMixin, ApiView):

    def post(self, request, pk):
        chat = close_chat(request.user, get_chat(request.user, pk))
        return JsonResponse({'chat': chat_to_dict(chat)})


class MessageReadView(ApiLoginRequiredMixin, ApiView):

    def post(self, request, pk):
        message = mark_message_read(request.user, pk)
        return JsonResponse({'message': message_to_dict(message)})


class UnreadCountView(ApiLoginRequiredMixin, ApiView):

    def get(self, request):
        return JsonResponse({'count': unread_count(request.user)})


class AdminUnreadCountView(AdminRequiredMixin, ApiView):

    def get(self, request):
        return JsonResponse({'count': admin_unread_count()})
