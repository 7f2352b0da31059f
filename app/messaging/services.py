"""
Conversation store and message log services.

Services:
    ConversationService: Canonical pair lookup/creation, listing, paging,
        deletion
    MessageService: Append, unread counting, read-state transitions

Error Codes:
    VALIDATION_ERROR: other_user_id missing or not an integer
    SELF_CONVERSATION: other_user_id is the requester
    USER_NOT_FOUND: counterpart does not exist or is inactive
    NOT_ALLOWED_TO_MESSAGE: authorization gate denied the pair
    CONVERSATION_NOT_FOUND / MESSAGE_NOT_FOUND: unknown id
    NOT_PARTICIPANT: requester is not one of the two participants
    EMPTY_CONTENT / CONTENT_TOO_LONG: message content rejected

Concurrency:
    Two requests may race to create the same pair. The unique constraint
    makes the loser fail with IntegrityError inside its savepoint; the
    loser then re-fetches the winner's row. Callers never see the race.

Ordering:
    Messages are ordered by (created_at, id). Pages are read newest-first
    and reversed so callers always receive chronological order.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from django.db import IntegrityError
from django.db.models import Count, OuterRef, Q, Subquery
from django.utils import timezone

from accounts.directory import UserDirectory
from core.services import BaseService, ServiceResult
from messaging.authorization import MessagingAuthorizationService
from messaging.constants import MESSAGE_CONFIG
from messaging.models import Conversation, Message

if TYPE_CHECKING:
    from accounts.models import User


@dataclass
class ConversationSummary:
    """A conversation as seen by one participant."""

    conversation: Conversation
    other_user: User
    last_message: Message | None
    unread_count: int
    created: bool = False


@dataclass
class ConversationDetail:
    """A conversation plus one chronological page of its messages."""

    summary: ConversationSummary
    messages: list[Message] = field(default_factory=list)
    limit: int = MESSAGE_CONFIG.DEFAULT_PAGE_SIZE
    offset: int = 0
    has_more: bool = False


def _participant_filter(user_id: int) -> Q:
    return Q(user1_id=user_id) | Q(user2_id=user_id)


class ConversationService(BaseService):
    """Conversation store keyed by the normalized participant pair."""

    @classmethod
    def get_or_create_pair(cls, user_a_id: int, user_b_id: int) -> tuple[Conversation, bool]:
        """
        Return the conversation of the unordered pair, creating it if absent.

        Returns:
            (conversation, created)
        """
        low, high = Conversation.normalize_pair(user_a_id, user_b_id)

        conversation = cls._find_pair(low, high)
        if conversation is not None:
            return conversation, False

        try:
            with cls.atomic():
                conversation = Conversation.objects.create(user1_id=low, user2_id=high)
        except IntegrityError:
            conversation = cls._find_pair(low, high)
            if conversation is None:
                raise
            cls.get_logger().info(
                f"Conversation for pair ({low}, {high}) created concurrently, "
                f"reusing {conversation.pk}"
            )
            return conversation, False

        cls.get_logger().info(f"Created conversation {conversation.pk} for pair ({low}, {high})")
        return conversation, True

    @classmethod
    def get_or_create(cls, requester: User, other_user_id) -> ServiceResult[ConversationSummary]:
        """
        Start (or reopen) the requester's conversation with another user.

        Input is validated before any query. The authorization gate runs
        for existing pairs too: reopening a conversation requires current
        eligibility, while participants keep access to it through
        get_details and append.
        """
        if other_user_id is None or isinstance(other_user_id, bool) or not isinstance(
            other_user_id, int
        ):
            return ServiceResult.failure(
                "other_user_id is required and must be an integer",
                error_code="VALIDATION_ERROR",
                errors={"other_user_id": ["A valid user id is required."]},
            )
        if other_user_id == requester.pk:
            return ServiceResult.failure(
                "Cannot start a conversation with yourself",
                error_code="SELF_CONVERSATION",
            )

        other_user = UserDirectory.get_user(other_user_id)
        if other_user is None:
            return ServiceResult.failure("User not found", error_code="USER_NOT_FOUND")

        if not MessagingAuthorizationService.can_message(
            requester.pk, other_user.pk, requester.role
        ):
            cls.get_logger().info(
                f"User {requester.pk} denied conversation with user {other_user.pk}"
            )
            return ServiceResult.failure(
                "You are not allowed to message this user",
                error_code="NOT_ALLOWED_TO_MESSAGE",
            )

        conversation, created = cls.get_or_create_pair(requester.pk, other_user.pk)
        return ServiceResult.success(
            ConversationSummary(
                conversation=conversation,
                other_user=other_user,
                last_message=MessageService.last_message(conversation.pk),
                unread_count=MessageService.count_unread_from(conversation.pk, other_user.pk),
                created=created,
            )
        )

    @classmethod
    def list_for_user(cls, user_id: int) -> list[ConversationSummary]:
        """
        Every conversation of the user, most recently active first.

        Each entry carries the counterpart, the latest message and the
        number of the counterpart's messages still unread.
        """
        latest_message = Message.objects.filter(conversation=OuterRef("pk")).order_by(
            "-created_at", "-id"
        )
        conversations = list(
            Conversation.objects.filter(_participant_filter(user_id))
            .select_related("user1", "user2")
            .annotate(
                unread=Count(
                    "messages",
                    filter=Q(messages__is_read=False) & ~Q(messages__sender_id=user_id),
                ),
                last_message_id=Subquery(latest_message.values("id")[:1]),
            )
            .order_by("-updated_at", "-id")
        )

        last_messages = Message.objects.select_related("sender").in_bulk(
            [c.last_message_id for c in conversations if c.last_message_id is not None]
        )

        return [
            ConversationSummary(
                conversation=conversation,
                other_user=cls._other_user(conversation, user_id),
                last_message=last_messages.get(conversation.last_message_id),
                unread_count=conversation.unread,
            )
            for conversation in conversations
        ]

    @classmethod
    def get_participant_conversation(
        cls, conversation_id: int, requester_id: int
    ) -> ServiceResult[Conversation]:
        """Load a conversation the requester takes part in (404, then 403)."""
        conversation = (
            Conversation.objects.select_related("user1", "user2")
            .filter(pk=conversation_id)
            .first()
        )
        if conversation is None:
            return ServiceResult.failure(
                "Conversation not found", error_code="CONVERSATION_NOT_FOUND"
            )
        if not conversation.is_participant(requester_id):
            return ServiceResult.failure(
                "You are not a participant of this conversation",
                error_code="NOT_PARTICIPANT",
            )
        return ServiceResult.success(conversation)

    @classmethod
    def get_details(
        cls,
        conversation_id: int,
        requester_id: int,
        limit: int = MESSAGE_CONFIG.DEFAULT_PAGE_SIZE,
        offset: int = 0,
    ) -> ServiceResult[ConversationDetail]:
        """
        Conversation plus a chronological page of messages.

        ``offset`` counts back from the newest message: offset 0 returns
        the latest ``limit`` messages.
        """
        result = cls.get_participant_conversation(conversation_id, requester_id)
        if not result:
            return result
        conversation = result.data

        limit = max(1, min(limit, MESSAGE_CONFIG.MAX_PAGE_SIZE))
        offset = max(0, offset)

        window = list(
            conversation.messages.select_related("sender").order_by("-created_at", "-id")[
                offset : offset + limit + 1
            ]
        )
        has_more = len(window) > limit
        window = window[:limit]
        last_message = window[0] if offset == 0 and window else MessageService.last_message(
            conversation.pk
        )
        window.reverse()

        other_user = cls._other_user(conversation, requester_id)
        return ServiceResult.success(
            ConversationDetail(
                summary=ConversationSummary(
                    conversation=conversation,
                    other_user=other_user,
                    last_message=last_message,
                    unread_count=MessageService.count_unread_from(conversation.pk, other_user.pk),
                ),
                messages=window,
                limit=limit,
                offset=offset,
                has_more=has_more,
            )
        )

    @classmethod
    def delete(cls, conversation_id: int, requester_id: int) -> ServiceResult[None]:
        """Delete the conversation and all of its messages (messages first)."""
        result = cls.get_participant_conversation(conversation_id, requester_id)
        if not result:
            return result
        conversation = result.data

        with cls.atomic():
            deleted_messages, _ = Message.objects.filter(conversation=conversation).delete()
            conversation.delete()

        cls.get_logger().info(
            f"User {requester_id} deleted conversation {conversation_id} "
            f"with {deleted_messages} messages"
        )
        return ServiceResult.success(None)

    @classmethod
    def counterpart_ids(cls, user_id: int) -> set[int]:
        """Ids of every user who shares a conversation with ``user_id``."""
        ids = set()
        for user1_id, user2_id in Conversation.objects.filter(
            _participant_filter(user_id)
        ).values_list("user1_id", "user2_id"):
            ids.add(user2_id if user1_id == user_id else user1_id)
        return ids

    @staticmethod
    def _find_pair(low: int, high: int) -> Conversation | None:
        return (
            Conversation.objects.select_related("user1", "user2")
            .filter(user1_id=low, user2_id=high)
            .first()
        )

    @staticmethod
    def _other_user(conversation: Conversation, user_id: int) -> User:
        if conversation.user1_id == user_id:
            return conversation.user2
        return conversation.user1


class MessageService(BaseService):
    """Append-only message log with one-way read state."""

    @classmethod
    def append(
        cls, conversation: Conversation, sender_id: int, content
    ) -> ServiceResult[Message]:
        """
        Append a message and bump the conversation's activity time.

        Content is trimmed. Participation is re-checked here because an
        existing conversation does not prove current eligibility of the
        caller. Database errors propagate: a send that cannot be
        persisted must fail visibly.
        """
        text = content.strip() if isinstance(content, str) else ""
        if not text:
            return ServiceResult.failure(
                "Message content cannot be empty", error_code="EMPTY_CONTENT"
            )
        if len(text) > MESSAGE_CONFIG.MAX_CONTENT_LENGTH:
            return ServiceResult.failure(
                f"Message content exceeds {MESSAGE_CONFIG.MAX_CONTENT_LENGTH} characters",
                error_code="CONTENT_TOO_LONG",
            )
        if not conversation.is_participant(sender_id):
            cls.get_logger().warning(
                f"User {sender_id} tried to post in conversation {conversation.pk}"
            )
            return ServiceResult.failure(
                "You are not a participant of this conversation",
                error_code="NOT_PARTICIPANT",
            )

        with cls.atomic():
            message = Message.objects.create(
                conversation=conversation,
                sender_id=sender_id,
                content=text,
            )
            Conversation.objects.filter(pk=conversation.pk).update(
                updated_at=message.created_at
            )
        conversation.updated_at = message.created_at

        cls.get_logger().info(
            f"Message {message.pk} appended to conversation {conversation.pk} by user {sender_id}"
        )
        return ServiceResult.success(
            Message.objects.select_related("sender", "conversation").get(pk=message.pk)
        )

    @classmethod
    def count_unread_from(cls, conversation_id: int, from_user_id: int) -> int:
        """Unread messages sent by ``from_user_id`` in the conversation."""
        return Message.objects.filter(
            conversation_id=conversation_id,
            sender_id=from_user_id,
            is_read=False,
        ).count()

    @classmethod
    def last_message(cls, conversation_id: int) -> Message | None:
        return (
            Message.objects.select_related("sender")
            .filter(conversation_id=conversation_id)
            .order_by("-created_at", "-id")
            .first()
        )

    @classmethod
    def mark_read(cls, message_id: int, requester_id: int) -> ServiceResult[Message]:
        """
        Mark one message read on behalf of its recipient.

        Marking one's own message, or an already read one, is a no-op.
        """
        message = Message.objects.select_related("conversation").filter(pk=message_id).first()
        if message is None:
            return ServiceResult.failure("Message not found", error_code="MESSAGE_NOT_FOUND")
        if not message.conversation.is_participant(requester_id):
            return ServiceResult.failure(
                "You are not a participant of this conversation",
                error_code="NOT_PARTICIPANT",
            )

        if message.sender_id != requester_id and not message.is_read:
            Message.objects.filter(pk=message.pk, is_read=False).update(
                is_read=True, updated_at=timezone.now()
            )
            message.is_read = True
            cls.get_logger().debug(f"Message {message_id} read by user {requester_id}")
        return ServiceResult.success(message)

    @classmethod
    def mark_conversation_read(cls, conversation_id: int, requester_id: int) -> ServiceResult[int]:
        """
        Mark every unread message from the counterpart as read.

        Returns:
            Number of messages that changed state (0 on repeat calls)
        """
        result = ConversationService.get_participant_conversation(conversation_id, requester_id)
        if not result:
            return result

        updated = (
            Message.objects.filter(conversation_id=conversation_id, is_read=False)
            .exclude(sender_id=requester_id)
            .update(is_read=True, updated_at=timezone.now())
        )
        if updated:
            cls.get_logger().debug(
                f"User {requester_id} read {updated} messages in conversation {conversation_id}"
            )
        return ServiceResult.success(updated)
