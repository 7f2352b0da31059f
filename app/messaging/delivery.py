"""
Send path orchestration.

A send runs in two phases:
    1. send(): resolve the conversation (get-or-create through the
       authorization gate when addressed by recipient id) and append the
       message. This is the correctness-critical part; its failures are
       returned or raised to the sender.
    2. deliver(): after the append committed, push ``message:new`` to the
       recipient if connected. When nobody is connected the recipient will
       see the message on the next list/detail call, and an offline
       MESSAGE notification is raised if MESSAGING_NOTIFY_OFFLINE_RECIPIENTS
       is enabled. Nothing in this phase can fail the send.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from channels.db import database_sync_to_async
from django.conf import settings

from core.services import ServiceResult
from messaging.serializers import MessageSerializer
from messaging.services import ConversationService, MessageService
from notifications.models import NotificationType
from notifications.services import NotificationService

if TYPE_CHECKING:
    from typing import Any

    from accounts.models import User
    from messaging.connections import ConnectionManager
    from messaging.models import Message

logger = logging.getLogger(__name__)

PREVIEW_LENGTH = 120


def message_event(message: Message, event_type: str = "message:new") -> dict[str, Any]:
    """Client frame carrying a serialized message."""
    return {"type": event_type, "message": dict(MessageSerializer(message).data)}


class MessageDelivery:
    """
    Send path bound to one ConnectionManager.

    Usage:
        delivery = MessageDelivery(connections)
        result = delivery.send(sender, "Hello", recipient_id=mentee.id)
        if result:
            delivery.deliver_sync(result.data)
    """

    def __init__(self, connections: ConnectionManager):
        self.connections = connections

    def send(
        self,
        sender: User,
        content,
        conversation_id: int | None = None,
        recipient_id: int | None = None,
    ) -> ServiceResult[Message]:
        """Persist a message addressed by conversation id or by recipient id."""
        if (conversation_id is None) == (recipient_id is None):
            return ServiceResult.failure(
                "Provide exactly one of conversation_id or recipient_id",
                error_code="VALIDATION_ERROR",
            )

        if recipient_id is not None:
            result = ConversationService.get_or_create(sender, recipient_id)
            if not result:
                return result
            conversation = result.data.conversation
        else:
            result = ConversationService.get_participant_conversation(conversation_id, sender.pk)
            if not result:
                return result
            conversation = result.data

        return MessageService.append(conversation, sender.pk, content)

    async def deliver(self, message: Message, event: dict[str, Any] | None = None) -> bool:
        """
        Push the appended message to its recipient.

        Returns:
            True when the recipient's connection received the frame
        """
        if event is None:
            event = message_event(message)
        recipient_id = message.conversation.other_participant_id(message.sender_id)

        pushed = await self.connections.push_to_user(recipient_id, event)
        if not pushed and getattr(settings, "MESSAGING_NOTIFY_OFFLINE_RECIPIENTS", True):
            await database_sync_to_async(self.notify_offline)(message, recipient_id)
        return pushed

    def deliver_sync(self, message: Message, event: dict[str, Any] | None = None) -> bool:
        """deliver() for synchronous callers (REST views)."""
        if event is None:
            event = message_event(message)
        recipient_id = message.conversation.other_participant_id(message.sender_id)

        pushed = self.connections.push_to_user_sync(recipient_id, event)
        if not pushed and getattr(settings, "MESSAGING_NOTIFY_OFFLINE_RECIPIENTS", True):
            self.notify_offline(message, recipient_id)
        return pushed

    def notify_offline(self, message: Message, recipient_id: int) -> None:
        """Raise the advisory MESSAGE notification for an unreachable recipient."""
        content = message.content
        preview = content if len(content) <= PREVIEW_LENGTH else f"{content[:PREVIEW_LENGTH]}…"
        NotificationService.create(
            user_id=recipient_id,
            notification_type=NotificationType.MESSAGE,
            title=f"New message from {message.sender.get_full_name()}",
            message=preview,
            data={
                "conversation_id": message.conversation_id,
                "message_id": message.pk,
                "sender_id": message.sender_id,
            },
            connections=self.connections,
        )
