"""
Support chat models for Resellers Hub.
"""

from django.db import models
from django.utils import timezone


class SupportChat(models.Model):
    """A conversation between a user and the support desk."""

    class Status(models.TextChoices):
        OPEN = 'open', 'Open'
        CLOSED = 'closed', 'Closed'

    user = models.ForeignKey(
        'User',
        on_delete=models.CASCADE,
        related_name='support_chats'
    )
    status = models.CharField(
        'status',
        max_length=10,
        choices=Status.choices,
        default=Status.OPEN,
        db_index=True
    )
    assigned_to = models.ForeignKey(
        'User',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='assigned_chats'
    )
    last_message_at = models.DateTimeField(
        'last message at',
        default=timezone.now
    )
    created_at = models.DateTimeField(
        'created at',
        auto_now_add=True
    )
    closed_at = models.DateTimeField(
        'closed at',
        null=True,
        blank=True
    )

    class Meta:
        verbose_name = 'support chat'
        verbose_name_plural = 'support chats'
        ordering = ['-last_message_at']

    def __str__(self):
        return f"Chat #{self.pk} with {self.user.email} [{self.status}]"


class ChatMessage(models.Model):
    """A single message in a support chat."""

    class SenderType(models.TextChoices):
        USER = 'user', 'User'
        ADMIN = 'admin', 'Admin'

    chat = models.ForeignKey(
        SupportChat,
        on_delete=models.CASCADE,
        related_name='messages'
    )
    sender = models.ForeignKey(
        'User',
        on_delete=models.SET_NULL,
        null=True,
        related_name='chat_messages'
    )
    sender_type = models.CharField(
        'sender type',
        max_length=10,
        choices=SenderType.choices
    )
    message = models.TextField('message')
    is_read = models.BooleanField(
        'read',
        default=False
    )
    created_at = models.DateTimeField(
        'created at',
        auto_now_add=True
    )

    class Meta:
        verbose_name = 'chat message'
        verbose_name_plural = 'chat messages'
        ordering = ['created_at', 'id']

    def __str__(self):
        return f"[{self.sender_type}] {self.message[:40]}"
