"""
Payload schemas for each notification type.

Every NotificationType has exactly one payload serializer. Payloads are
validated (and normalized to JSON-safe values) when a notification is
created; unknown keys are dropped, missing required keys are rejected.

Usage:
    from notifications.payloads import validate_payload

    data = validate_payload(NotificationType.REMINDER, {
        "booking_id": 12,
        "session_title": "Career chat",
        "session_start": "2026-05-01T10:00:00Z",
        "minutes_until_session": 15,
        "priority": "HIGH",
    })
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from rest_framework import serializers

from core.exceptions import ValidationError
from notifications.models import NotificationType

if TYPE_CHECKING:
    from typing import Any


PRIORITY_CHOICES = ["LOW", "NORMAL", "HIGH", "URGENT"]


class SystemPayload(serializers.Serializer):
    """Platform announcements carry no structured data."""


class ActivityPayload(serializers.Serializer):
    """Something another user did that concerns the recipient."""

    VERBS = ["CONTACT_REQUEST", "CONTACT_ACCEPTED", "RESOURCE_SHARED", "MENTION"]

    actor_id = serializers.IntegerField(min_value=1)
    verb = serializers.ChoiceField(choices=VERBS)
    target_id = serializers.IntegerField(min_value=1, required=False, allow_null=True)


class EventPayload(serializers.Serializer):
    """Lifecycle change of a booked mentoring session."""

    EVENT_TYPES = ["CREATED", "UPDATED", "CANCELLED", "CONFIRMED", "COMPLETED"]
    SESSION_TYPES = ["ONLINE", "IN_PERSON", "PHONE_CALL"]

    booking_id = serializers.IntegerField(min_value=1)
    mentor_id = serializers.IntegerField(min_value=1)
    mentee_id = serializers.IntegerField(min_value=1)
    event_type = serializers.ChoiceField(choices=EVENT_TYPES)
    session_title = serializers.CharField(max_length=200)
    session_start = serializers.DateTimeField()
    duration_minutes = serializers.IntegerField(min_value=1)
    session_type = serializers.ChoiceField(choices=SESSION_TYPES)
    meeting_link = serializers.URLField(required=False, allow_blank=True)
    location = serializers.CharField(required=False, allow_blank=True, max_length=300)
    priority = serializers.ChoiceField(choices=PRIORITY_CHOICES, default="NORMAL")


class ReminderPayload(serializers.Serializer):
    """Upcoming session reminder."""

    booking_id = serializers.IntegerField(min_value=1)
    session_title = serializers.CharField(max_length=200)
    session_start = serializers.DateTimeField()
    minutes_until_session = serializers.IntegerField(min_value=0)
    priority = serializers.ChoiceField(choices=["HIGH", "URGENT"], default="HIGH")


class MessagePayload(serializers.Serializer):
    """Direct message that could not be pushed in real time."""

    conversation_id = serializers.IntegerField(min_value=1)
    message_id = serializers.IntegerField(min_value=1)
    sender_id = serializers.IntegerField(min_value=1)


class GroupPayload(serializers.Serializer):
    group_id = serializers.IntegerField(min_value=1)
    group_name = serializers.CharField(max_length=200)
    is_mentor_group = serializers.BooleanField(default=False)


class FeedbackPayload(serializers.Serializer):
    feedback_id = serializers.IntegerField(min_value=1)
    booking_id = serializers.IntegerField(min_value=1, required=False, allow_null=True)
    rating = serializers.IntegerField(min_value=1, max_value=5, required=False, allow_null=True)


class GoalPayload(serializers.Serializer):
    goal_id = serializers.IntegerField(min_value=1)
    goal_title = serializers.CharField(max_length=200)
    progress = serializers.IntegerField(min_value=0, max_value=100, required=False, allow_null=True)


PAYLOAD_SCHEMAS: dict[str, type[serializers.Serializer]] = {
    NotificationType.SYSTEM: SystemPayload,
    NotificationType.ACTIVITY: ActivityPayload,
    NotificationType.EVENT: EventPayload,
    NotificationType.REMINDER: ReminderPayload,
    NotificationType.MESSAGE: MessagePayload,
    NotificationType.GROUP: GroupPayload,
    NotificationType.FEEDBACK: FeedbackPayload,
    NotificationType.GOAL: GoalPayload,
}


def validate_payload(notification_type: str, data: dict[str, Any] | None) -> dict[str, Any]:
    """
    Validate ``data`` against the schema of ``notification_type``.

    Returns:
        JSON-safe payload (datetimes rendered as ISO 8601 strings)

    Raises:
        ValidationError: Unknown type or payload not matching the schema
    """
    schema = PAYLOAD_SCHEMAS.get(notification_type)
    if schema is None:
        raise ValidationError(
            f"Unknown notification type: {notification_type}",
            error_code="UNKNOWN_NOTIFICATION_TYPE",
        )

    serializer = schema(data=data or {})
    if not serializer.is_valid():
        raise ValidationError(
            f"Invalid payload for {notification_type} notification",
            error_code="INVALID_PAYLOAD",
            details=serializer.errors,
        )
    return dict(serializer.data)
