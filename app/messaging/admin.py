"""Django admin configuration for messaging models."""

from django.contrib import admin

from messaging.models import Conversation, Message


class MessageInline(admin.TabularInline):
    model = Message
    extra = 0
    fields = ["sender", "content", "is_read", "created_at"]
    readonly_fields = ["sender", "content", "created_at"]
    raw_id_fields = ["sender"]
    ordering = ["created_at", "id"]


@admin.register(Conversation)
class ConversationAdmin(admin.ModelAdmin):
    """
    Admin configuration for Conversation.

    Participants are fixed at creation; only moderation deletes are expected.
    """

    list_display = ["id", "user1", "user2", "created_at", "updated_at"]
    search_fields = ["user1__email", "user2__email"]
    ordering = ["-updated_at"]
    readonly_fields = ["user1", "user2", "created_at", "updated_at"]
    inlines = [MessageInline]


@admin.register(Message)
class MessageAdmin(admin.ModelAdmin):
    list_display = ["id", "conversation", "sender", "is_read", "created_at"]
    list_filter = ["is_read", "created_at"]
    search_fields = ["sender__email"]
    ordering = ["-created_at"]
    raw_id_fields = ["conversation", "sender"]
    readonly_fields = ["conversation", "sender", "content", "created_at", "updated_at"]
