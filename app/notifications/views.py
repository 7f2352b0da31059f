"""
Views for notification API.

Endpoints:
    GET    /api/v1/notifications/               - Inbox (?is_read=, admin ?user_id=)
    GET    /api/v1/notifications/unread-count/  - Badge count
    POST   /api/v1/notifications/{id}/read/     - Mark one read
    POST   /api/v1/notifications/read-all/      - Mark all read
    DELETE /api/v1/notifications/{id}/          - Delete one

Owners act on their own notifications; admins may act on anyone's.
"""

from __future__ import annotations

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

from core.views import failure_response
from notifications.serializers import (
    MarkAllReadResponseSerializer,
    NotificationListQuerySerializer,
    NotificationListSerializer,
    NotificationSerializer,
    UnreadCountSerializer,
)
from notifications.services import NotificationService

FAILURE_STATUS = {
    "NOTIFICATION_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "NOT_OWNER": status.HTTP_403_FORBIDDEN,
}


@extend_schema_view(
    list=extend_schema(
        operation_id="list_notifications",
        summary="List notifications",
        description="Newest 50 notifications of the authenticated user plus the unread count.",
        parameters=[
            OpenApiParameter(
                name="is_read",
                type=bool,
                location=OpenApiParameter.QUERY,
                description="Filter by read status (true/false)",
                required=False,
            ),
            OpenApiParameter(
                name="user_id",
                type=int,
                location=OpenApiParameter.QUERY,
                description="Admins only: list another user's notifications",
                required=False,
            ),
        ],
        responses={200: NotificationListSerializer},
        tags=["Notifications"],
    ),
    destroy=extend_schema(
        operation_id="delete_notification",
        summary="Delete notification",
        responses={
            204: OpenApiResponse(description="Deleted"),
            403: OpenApiResponse(description="Not the owner"),
            404: OpenApiResponse(description="Notification not found"),
        },
        tags=["Notifications"],
    ),
)
class NotificationViewSet(viewsets.GenericViewSet):
    """
    Notification inbox of the authenticated user.

    All reads are scoped to the requester; mutations check ownership in
    NotificationService so admins can moderate.
    """

    permission_classes = [IsAuthenticated]
    lookup_value_regex = r"\d+"
    serializer_class = NotificationSerializer

    def list(self, request):
        query = NotificationListQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)

        inbox = NotificationService.list_for_user(
            request.user,
            is_read=query.validated_data.get("is_read"),
            user_id=query.validated_data.get("user_id"),
        )
        serializer = NotificationListSerializer(
            {"results": inbox.notifications, "unread_count": inbox.unread_count}
        )
        return Response(serializer.data)

    def destroy(self, request, pk=None):
        result = NotificationService.delete(int(pk), request.user)
        if not result.success:
            return failure_response(result, FAILURE_STATUS)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @extend_schema(
        operation_id="get_unread_notification_count",
        summary="Get unread notification count",
        responses={200: UnreadCountSerializer},
        tags=["Notifications"],
    )
    @action(detail=False, methods=["get"], url_path="unread-count")
    def unread_count(self, request):
        count = NotificationService.unread_count(request.user.pk)
        return Response(UnreadCountSerializer({"unread_count": count}).data)

    @extend_schema(
        operation_id="mark_notification_read",
        summary="Mark notification as read",
        description="Idempotent: already read notifications are returned unchanged.",
        request=None,
        responses={
            200: NotificationSerializer,
            403: OpenApiResponse(description="Not the owner"),
            404: OpenApiResponse(description="Notification not found"),
        },
        tags=["Notifications"],
    )
    @action(detail=True, methods=["post"])
    def read(self, request, pk=None):
        result = NotificationService.mark_read(int(pk), request.user)
        if not result.success:
            return failure_response(result, FAILURE_STATUS)
        return Response(self.get_serializer(result.data).data)

    @extend_schema(
        operation_id="mark_all_notifications_read",
        summary="Mark all notifications as read",
        request=None,
        responses={200: MarkAllReadResponseSerializer},
        tags=["Notifications"],
    )
    @action(detail=False, methods=["post"], url_path="read-all")
    def read_all(self, request):
        result = NotificationService.mark_all_read(request.user)
        return Response(MarkAllReadResponseSerializer({"marked_count": result.data}).data)
