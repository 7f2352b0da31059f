"""
Messaging application configuration.

ready() builds the process-wide realtime collaborators exactly once:
    presence: PresenceRegistry (online set + typing map)
    connections: ConnectionManager (user -> live connection registry)
    delivery: MessageDelivery (send path bound to ``connections``)

The WebSocket routing, the REST views and the notification service receive
these objects from here; nothing else constructs them.
"""

from django.apps import AppConfig


class MessagingConfig(AppConfig):
    """Configuration for the messaging application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "messaging"
    verbose_name = "Messaging"

    def ready(self):
        from messaging.connections import ConnectionManager
        from messaging.delivery import MessageDelivery
        from messaging.presence import PresenceRegistry

        self.presence = PresenceRegistry()
        self.connections = ConnectionManager(self.presence)
        self.delivery = MessageDelivery(self.connections)
