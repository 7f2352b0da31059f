"""
Serializers for the messaging API and realtime frames.

Output serializers render service dataclasses (ConversationSummary,
ConversationDetail) and Message rows. The same message representation is
used for REST responses and WebSocket frames so clients handle one shape.

Context:
    presence: PresenceRegistry used to fill ``other_user.is_online``
"""

from rest_framework import serializers

from accounts.models import User
from accounts.serializers import PublicUserSerializer
from messaging.constants import MESSAGE_CONFIG
from messaging.models import Message


class MessageSenderSerializer(serializers.ModelSerializer):
    """Display fields of a message sender."""

    class Meta:
        model = User
        fields = ["id", "first_name", "last_name", "avatar"]
        read_only_fields = fields


class MessageSerializer(serializers.ModelSerializer):
    conversation_id = serializers.IntegerField(read_only=True)
    sender_id = serializers.IntegerField(read_only=True)
    sender = MessageSenderSerializer(read_only=True)

    class Meta:
        model = Message
        fields = [
            "id",
            "conversation_id",
            "sender_id",
            "sender",
            "content",
            "is_read",
            "created_at",
        ]
        read_only_fields = fields


class ConversationSummarySerializer(serializers.Serializer):
    """Renders a ConversationSummary for the participant who asked."""

    id = serializers.IntegerField(source="conversation.pk")
    other_user = PublicUserSerializer()
    last_message = MessageSerializer(allow_null=True)
    unread_count = serializers.IntegerField()
    created_at = serializers.DateTimeField(source="conversation.created_at")
    updated_at = serializers.DateTimeField(source="conversation.updated_at")


class ConversationDetailSerializer(serializers.Serializer):
    """Renders a ConversationDetail: summary fields plus a message page."""

    conversation = ConversationSummarySerializer(source="summary")
    messages = MessageSerializer(many=True)
    limit = serializers.IntegerField()
    offset = serializers.IntegerField()
    has_more = serializers.BooleanField()


class ConversationCreateSerializer(serializers.Serializer):
    """Input of get-or-create; presence of the id is checked by the service."""

    other_user_id = serializers.IntegerField(required=False, allow_null=True)


class ConversationPageSerializer(serializers.Serializer):
    """Query parameters of the conversation detail endpoint."""

    # Out-of-range values are clamped by ConversationService.get_details
    limit = serializers.IntegerField(required=False, default=MESSAGE_CONFIG.DEFAULT_PAGE_SIZE)
    offset = serializers.IntegerField(required=False, default=0)


class MessageCreateSerializer(serializers.Serializer):
    """Input of the REST send endpoint; trimming and limits are enforced by the service."""

    content = serializers.CharField(allow_blank=True, trim_whitespace=False)
