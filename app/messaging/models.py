"""
Conversation and message models.

Models:
    Conversation: The single conversation of an unordered pair of users
    Message: Append-only entry in a conversation

Invariants:
    - A conversation stores its participants in ascending id order
      (user1_id < user2_id); the pair is unique. Both rules are enforced
      by database constraints, so concurrent creation of the same pair
      fails with IntegrityError instead of producing a duplicate.
    - Messages are ordered by (created_at, id). is_read only ever moves
      from False to True.
"""

from __future__ import annotations

from django.conf import settings
from django.db import models
from django.db.models import F, Q

from core.models import BaseModel


class Conversation(BaseModel):
    """
    Direct conversation between two users.

    Fields:
        user1: Participant with the smaller id
        user2: Participant with the larger id
        updated_at: Bumped to the timestamp of every appended message

    Usage:
        low, high = Conversation.normalize_pair(a.id, b.id)
        Conversation.objects.filter(user1_id=low, user2_id=high).first()
    """

    user1 = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="conversations_as_user1",
        help_text="Participant with the lower user id",
    )
    user2 = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="conversations_as_user2",
        help_text="Participant with the higher user id",
    )

    class Meta:
        db_table = "messaging_conversation"
        constraints = [
            models.UniqueConstraint(
                fields=["user1", "user2"],
                name="messaging_conversation_unique_pair",
            ),
            models.CheckConstraint(
                condition=Q(user1_id__lt=F("user2_id")),
                name="messaging_conversation_ordered_pair",
            ),
        ]
        indexes = [
            models.Index(fields=["user2", "user1"], name="messaging_conv_user2_idx"),
            models.Index(fields=["-updated_at"], name="messaging_conv_updated_idx"),
        ]

    def __str__(self) -> str:
        return f"Conversation({self.user1_id}, {self.user2_id})"

    @staticmethod
    def normalize_pair(user_a_id: int, user_b_id: int) -> tuple[int, int]:
        """Return the pair in storage order (smaller id first)."""
        if user_a_id < user_b_id:
            return user_a_id, user_b_id
        return user_b_id, user_a_id

    @property
    def participant_ids(self) -> tuple[int, int]:
        return self.user1_id, self.user2_id

    def is_participant(self, user_id: int) -> bool:
        return user_id in (self.user1_id, self.user2_id)

    def other_participant_id(self, user_id: int) -> int:
        """Id of the counterpart of ``user_id``, who must be a participant."""
        if user_id == self.user1_id:
            return self.user2_id
        if user_id == self.user2_id:
            return self.user1_id
        raise ValueError(f"User {user_id} is not a participant of conversation {self.pk}")


class Message(BaseModel):
    """
    A direct message.

    ``is_read`` is recipient-scoped: it tells whether the participant who
    did not send the message has read it.
    """

    conversation = models.ForeignKey(
        Conversation,
        on_delete=models.CASCADE,
        related_name="messages",
        help_text="Conversation this message belongs to",
    )
    sender = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="sent_direct_messages",
        help_text="Participant who sent the message",
    )
    content = models.TextField(
        help_text="Message text (trimmed, at most 5000 characters)",
    )
    is_read = models.BooleanField(
        default=False,
        help_text="Whether the recipient has read the message",
    )

    class Meta:
        db_table = "messaging_message"
        ordering = ["created_at", "id"]
        indexes = [
            models.Index(
                fields=["conversation", "created_at", "id"],
                name="messaging_msg_conv_time_idx",
            ),
            models.Index(
                fields=["conversation", "sender", "is_read"],
                name="messaging_msg_unread_idx",
            ),
        ]

    def __str__(self) -> str:
        return f"Message({self.pk}) in conversation {self.conversation_id}"
