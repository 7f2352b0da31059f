"""
Serializers for notification API.
"""

from rest_framework import serializers

from notifications.models import Notification


class NotificationSerializer(serializers.ModelSerializer):
    """Notification as returned to its owner (REST and realtime)."""

    user_id = serializers.IntegerField(source="recipient_id", read_only=True)

    class Meta:
        model = Notification
        fields = [
            "id",
            "user_id",
            "type",
            "title",
            "message",
            "data",
            "is_read",
            "created_at",
        ]
        read_only_fields = fields


class NotificationListQuerySerializer(serializers.Serializer):
    """Query parameters of the list endpoint."""

    is_read = serializers.BooleanField(required=False, allow_null=True, default=None)
    user_id = serializers.IntegerField(required=False, min_value=1)


class NotificationListSerializer(serializers.Serializer):
    results = NotificationSerializer(many=True)
    unread_count = serializers.IntegerField()


class UnreadCountSerializer(serializers.Serializer):
    unread_count = serializers.IntegerField()


class MarkAllReadResponseSerializer(serializers.Serializer):
    marked_count = serializers.IntegerField()
