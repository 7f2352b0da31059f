"""
Notification model.

A notification is a durable, user-owned alert raised by any subsystem
(session bookings, reminders, contact activity, offline chat messages).
It is distinct from a chat message and lives in its own table.

Design Decisions:
    - ``type`` is a closed enum; each type has a fixed payload schema
      (see payloads.py) validated before the row is written
    - ``data`` holds the validated payload for that type
    - is_read only moves from False to True through the service layer

Usage:
    from notifications.services import NotificationService

    NotificationService.create(
        user_id=mentee.id,
        notification_type=NotificationType.REMINDER,
        title="Session starts soon",
        message="Your session with Ada starts in 15 minutes",
        data={...},
    )
"""

from __future__ import annotations

from django.conf import settings
from django.db import models

from core.models import BaseModel


class NotificationType(models.TextChoices):
    """Kinds of notifications; each maps to one payload schema."""

    SYSTEM = "SYSTEM", "System"
    ACTIVITY = "ACTIVITY", "Activity"
    EVENT = "EVENT", "Session event"
    REMINDER = "REMINDER", "Session reminder"
    MESSAGE = "MESSAGE", "Direct message"
    GROUP = "GROUP", "Group"
    FEEDBACK = "FEEDBACK", "Feedback"
    GOAL = "GOAL", "Goal"


class Notification(BaseModel):
    """
    A notification addressed to one user.

    Fields:
        recipient: Owner of the notification
        type: NotificationType value
        title / message: Display text
        data: Type-specific payload (validated at creation)
        is_read: Whether the owner has read it
    """

    recipient = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="notifications",
        help_text="User who receives this notification",
    )
    type = models.CharField(
        max_length=20,
        choices=NotificationType.choices,
        help_text="Kind of notification; selects the payload schema",
    )
    title = models.CharField(
        max_length=200,
        help_text="Short headline",
    )
    message = models.TextField(
        blank=True,
        help_text="Body text",
    )
    data = models.JSONField(
        default=dict,
        blank=True,
        help_text="Type-specific payload",
    )
    is_read = models.BooleanField(
        default=False,
        help_text="Whether the recipient has read this notification",
    )

    class Meta:
        db_table = "notifications_notification"
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(
                fields=["recipient", "-created_at"],
                name="notif_recipient_created_idx",
            ),
            models.Index(
                fields=["recipient", "is_read"],
                name="notif_recipient_read_idx",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.type} for user {self.recipient_id}: {self.title}"
