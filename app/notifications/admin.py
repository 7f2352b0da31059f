from django.contrib import admin

from notifications.models import Notification


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    """Support staff inspect notifications here; they are never edited by hand."""

    list_display = ["id", "recipient", "type", "title", "is_read", "created_at"]
    list_filter = ["type", "is_read"]
    search_fields = ["title", "message", "recipient__email"]
    date_hierarchy = "created_at"
    raw_id_fields = ["recipient"]

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False
