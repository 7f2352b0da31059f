import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Conversation",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True, primary_key=True, serialize=False, verbose_name="ID"
                    ),
                ),
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                    ),
                ),
                (
                    "user1",
                    models.ForeignKey(
                        help_text="Participant with the lower user id",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="conversations_as_user1",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "user2",
                    models.ForeignKey(
                        help_text="Participant with the higher user id",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="conversations_as_user2",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "db_table": "messaging_conversation",
                "indexes": [
                    models.Index(fields=["user2", "user1"], name="messaging_conv_user2_idx"),
                    models.Index(fields=["-updated_at"], name="messaging_conv_updated_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("user1", "user2"), name="messaging_conversation_unique_pair"
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("user1_id__lt", models.F("user2_id"))),
                        name="messaging_conversation_ordered_pair",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Message",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True, primary_key=True, serialize=False, verbose_name="ID"
                    ),
                ),
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                    ),
                ),
                (
                    "content",
                    models.TextField(help_text="Message text (trimmed, at most 5000 characters)"),
                ),
                (
                    "is_read",
                    models.BooleanField(
                        default=False, help_text="Whether the recipient has read the message"
                    ),
                ),
                (
                    "conversation",
                    models.ForeignKey(
                        help_text="Conversation this message belongs to",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="messages",
                        to="messaging.conversation",
                    ),
                ),
                (
                    "sender",
                    models.ForeignKey(
                        help_text="Participant who sent the message",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="sent_direct_messages",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "db_table": "messaging_message",
                "ordering": ["created_at", "id"],
                "indexes": [
                    models.Index(
                        fields=["conversation", "created_at", "id"],
                        name="messaging_msg_conv_time_idx",
                    ),
                    models.Index(
                        fields=["conversation", "sender", "is_read"],
                        name="messaging_msg_unread_idx",
                    ),
                ],
            },
        ),
    ]
