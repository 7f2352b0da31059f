"""
ViewSets for the messaging API.

URL Structure:
    /api/v1/messaging/conversations/                  GET (list), POST (get-or-create)
    /api/v1/messaging/conversations/{id}/             GET (detail page), DELETE
    /api/v1/messaging/conversations/{id}/messages/    POST (send)
    /api/v1/messaging/conversations/{id}/read/        POST (mark all read)
    /api/v1/messaging/messages/{id}/read/             POST (mark one read)

All business rules live in messaging.services and messaging.delivery; the
views translate ServiceResult error codes into HTTP statuses. The realtime
collaborators (presence, connections, delivery) come from the messaging
AppConfig so REST sends reach sockets held by this process.
"""

from __future__ import annotations

from django.apps import apps
from drf_spectacular.utils import (
    OpenApiParameter,
    OpenApiResponse,
    extend_schema,
    extend_schema_view,
)
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from core.services import ServiceResult
from core.views import failure_response
from messaging.constants import MESSAGE_CONFIG
from messaging.delivery import message_event
from messaging.serializers import (
    ConversationCreateSerializer,
    ConversationDetailSerializer,
    ConversationPageSerializer,
    ConversationSummarySerializer,
    MessageCreateSerializer,
    MessageSerializer,
)
from messaging.services import ConversationService, MessageService

FAILURE_STATUS = {
    "VALIDATION_ERROR": status.HTTP_400_BAD_REQUEST,
    "SELF_CONVERSATION": status.HTTP_400_BAD_REQUEST,
    "EMPTY_CONTENT": status.HTTP_400_BAD_REQUEST,
    "CONTENT_TOO_LONG": status.HTTP_400_BAD_REQUEST,
    "USER_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "CONVERSATION_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "MESSAGE_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "NOT_ALLOWED_TO_MESSAGE": status.HTTP_403_FORBIDDEN,
    "NOT_PARTICIPANT": status.HTTP_403_FORBIDDEN,
}


def _validation_failure(serializer) -> Response:
    return failure_response(
        ServiceResult.failure(
            "Invalid input", error_code="VALIDATION_ERROR", errors=serializer.errors
        ),
        FAILURE_STATUS,
    )


class RealtimeMixin:
    """Access to the process-wide realtime collaborators."""

    @property
    def messaging_config(self):
        return apps.get_app_config("messaging")

    def get_serializer_context(self):
        context = super().get_serializer_context()
        context["presence"] = self.messaging_config.presence
        return context


@extend_schema_view(
    list=extend_schema(
        operation_id="list_conversations",
        summary="List conversations",
        description="Conversations of the authenticated user, most recently active first.",
        responses={200: ConversationSummarySerializer(many=True)},
        tags=["Messaging - Conversations"],
    ),
    create=extend_schema(
        operation_id="get_or_create_conversation",
        summary="Start or reopen a conversation",
        description=(
            "Returns the conversation with other_user_id, creating it when it "
            "does not exist yet. 201 when created, 200 when it already existed."
        ),
        request=ConversationCreateSerializer,
        responses={
            200: ConversationSummarySerializer,
            201: ConversationSummarySerializer,
            400: OpenApiResponse(description="Missing id or self conversation"),
            403: OpenApiResponse(description="Not allowed to message this user"),
            404: OpenApiResponse(description="User not found"),
        },
        tags=["Messaging - Conversations"],
    ),
    retrieve=extend_schema(
        operation_id="get_conversation",
        summary="Get conversation with a page of messages",
        description=(
            "Messages are returned oldest to newest. offset counts back from "
            "the newest message."
        ),
        parameters=[
            OpenApiParameter(
                name="limit",
                type=int,
                location=OpenApiParameter.QUERY,
                description=f"Page size (1-{MESSAGE_CONFIG.MAX_PAGE_SIZE})",
                required=False,
            ),
            OpenApiParameter(
                name="offset",
                type=int,
                location=OpenApiParameter.QUERY,
                description="Number of newest messages to skip",
                required=False,
            ),
        ],
        responses={
            200: ConversationDetailSerializer,
            403: OpenApiResponse(description="Not a participant"),
            404: OpenApiResponse(description="Conversation not found"),
        },
        tags=["Messaging - Conversations"],
    ),
    destroy=extend_schema(
        operation_id="delete_conversation",
        summary="Delete conversation and its messages",
        responses={
            204: OpenApiResponse(description="Deleted"),
            403: OpenApiResponse(description="Not a participant"),
            404: OpenApiResponse(description="Conversation not found"),
        },
        tags=["Messaging - Conversations"],
    ),
)
class ConversationViewSet(RealtimeMixin, viewsets.GenericViewSet):
    """Direct conversations of the authenticated user."""

    permission_classes = [IsAuthenticated]
    lookup_value_regex = r"\d+"
    serializer_class = ConversationSummarySerializer

    def list(self, request):
        summaries = ConversationService.list_for_user(request.user.pk)
        return Response(self.get_serializer(summaries, many=True).data)

    def create(self, request):
        serializer = ConversationCreateSerializer(data=request.data)
        if not serializer.is_valid():
            return _validation_failure(serializer)

        result = ConversationService.get_or_create(
            request.user, serializer.validated_data.get("other_user_id")
        )
        if not result.success:
            return failure_response(result, FAILURE_STATUS)

        summary = result.data
        return Response(
            self.get_serializer(summary).data,
            status=status.HTTP_201_CREATED if summary.created else status.HTTP_200_OK,
        )

    def retrieve(self, request, pk=None):
        page = ConversationPageSerializer(data=request.query_params)
        if not page.is_valid():
            return _validation_failure(page)

        result = ConversationService.get_details(
            int(pk),
            request.user.pk,
            limit=page.validated_data["limit"],
            offset=page.validated_data["offset"],
        )
        if not result.success:
            return failure_response(result, FAILURE_STATUS)

        return Response(
            ConversationDetailSerializer(result.data, context=self.get_serializer_context()).data
        )

    def destroy(self, request, pk=None):
        result = ConversationService.delete(int(pk), request.user.pk)
        if not result.success:
            return failure_response(result, FAILURE_STATUS)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @extend_schema(
        operation_id="send_message",
        summary="Send a message",
        description=(
            "Appends a message and pushes it to the recipient's realtime "
            "connection when one is open."
        ),
        request=MessageCreateSerializer,
        responses={
            201: MessageSerializer,
            400: OpenApiResponse(description="Empty or too long content"),
            403: OpenApiResponse(description="Not a participant"),
            404: OpenApiResponse(description="Conversation not found"),
        },
        tags=["Messaging - Messages"],
    )
    @action(detail=True, methods=["post"])
    def messages(self, request, pk=None):
        serializer = MessageCreateSerializer(data=request.data)
        if not serializer.is_valid():
            return _validation_failure(serializer)

        delivery = self.messaging_config.delivery
        result = delivery.send(
            request.user, serializer.validated_data["content"], conversation_id=int(pk)
        )
        if not result.success:
            return failure_response(result, FAILURE_STATUS)

        event = message_event(result.data)
        delivery.deliver_sync(result.data, event)
        return Response(event["message"], status=status.HTTP_201_CREATED)

    @extend_schema(
        operation_id="mark_conversation_read",
        summary="Mark conversation as read",
        description="Marks every unread message from the counterpart as read.",
        request=None,
        responses={
            200: OpenApiResponse(description='{"marked_count": <int>}'),
            403: OpenApiResponse(description="Not a participant"),
            404: OpenApiResponse(description="Conversation not found"),
        },
        tags=["Messaging - Conversations"],
    )
    @action(detail=True, methods=["post"])
    def read(self, request, pk=None):
        result = MessageService.mark_conversation_read(int(pk), request.user.pk)
        if not result.success:
            return failure_response(result, FAILURE_STATUS)

        if result.data:
            self.messaging_config.connections.broadcast_to_conversation_sync(
                int(pk),
                {
                    "type": "message:read",
                    "conversation_id": int(pk),
                    "user_id": request.user.pk,
                    "count": result.data,
                },
            )
        return Response({"marked_count": result.data})


class MessageViewSet(RealtimeMixin, viewsets.GenericViewSet):
    """Single-message operations."""

    permission_classes = [IsAuthenticated]
    lookup_value_regex = r"\d+"
    serializer_class = MessageSerializer

    @extend_schema(
        operation_id="mark_message_read",
        summary="Mark message as read",
        description="Idempotent. Marking one's own message leaves it unchanged.",
        request=None,
        responses={
            200: MessageSerializer,
            403: OpenApiResponse(description="Not a participant"),
            404: OpenApiResponse(description="Message not found"),
        },
        tags=["Messaging - Messages"],
    )
    @action(detail=True, methods=["post"])
    def read(self, request, pk=None):
        result = MessageService.mark_read(int(pk), request.user.pk)
        if not result.success:
            return failure_response(result, FAILURE_STATUS)

        message = result.data
        if message.sender_id != request.user.pk:
            self.messaging_config.connections.broadcast_to_conversation_sync(
                message.conversation_id,
                {
                    "type": "message:read",
                    "conversation_id": message.conversation_id,
                    "user_id": request.user.pk,
                    "message_ids": [message.pk],
                },
            )
        return Response(self.get_serializer(message).data)
