"""
Connection registry and push helpers for the realtime transport.

ConnectionManager is built once per process by the messaging app config
(MessagingConfig.ready) and handed to the WebSocket consumer, the REST
views and the notification service. Nothing imports a module-level
instance.

Registry:
    user id -> channel name of that user's single live connection.
    Registering a second connection for the same user supersedes the
    first; the consumer then closes the old socket. Unregistering only
    removes the registration owned by the calling channel, so a late
    disconnect of a superseded socket never clears its successor.

Delivery:
    - push_to_user: direct send to the user's connection channel
    - broadcast_to_conversation: channel-layer group of a conversation
    Pushes are best-effort. Failures are logged with the traceback and
    reported as False; the message log already guarantees durability.

Frames pushed to a consumer have the channel-layer shape
    {"type": "transport.push", "channel": "user" | "direct" | "conversation",
     "event": {...client frame...}}
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer

from messaging.constants import TRANSPORT_CONFIG

if TYPE_CHECKING:
    from typing import Any

    from messaging.presence import PresenceRegistry

logger = logging.getLogger(__name__)

DIRECT_CHANNEL = "direct"


def conversation_group(conversation_id: int) -> str:
    """Channel-layer group name of a conversation."""
    return f"{TRANSPORT_CONFIG.CONVERSATION_GROUP_PREFIX}{conversation_id}"


class ConnectionManager:
    """
    Owns the user -> connection registry and the online flag.

    Usage:
        presence = PresenceRegistry()
        connections = ConnectionManager(presence)

        previous = connections.register(user.id, self.channel_name)
        if previous:
            await connections.close_superseded(previous)
        ...
        await connections.push_to_user(recipient_id, {"type": "message:new", ...})
    """

    def __init__(self, presence: PresenceRegistry, channel_layer_alias: str = "default"):
        self.presence = presence
        self.channel_layer_alias = channel_layer_alias
        self._channels: dict[int, str] = {}

    @property
    def channel_layer(self):
        return get_channel_layer(self.channel_layer_alias)

    # Registry --------------------------------------------------------------

    def register(self, user_id: int, channel_name: str) -> str | None:
        """
        Register ``channel_name`` as the user's live connection.

        Returns:
            The channel name this registration superseded, if any
        """
        previous = self._channels.get(user_id)
        self._channels[user_id] = channel_name
        self.presence.set_online(user_id)
        if previous is not None and previous != channel_name:
            logger.info(f"User {user_id} reconnected, superseding {previous}")
            return previous
        return None

    def unregister(self, user_id: int, channel_name: str) -> list[int] | None:
        """
        Drop the registration if ``channel_name`` still owns it.

        Returns:
            None when another connection owns the registration. Otherwise
            the user went offline and the result lists the conversations
            whose typing entries were cleared (possibly empty).
        """
        if self._channels.get(user_id) != channel_name:
            return None
        del self._channels[user_id]
        return self.presence.set_offline(user_id)

    def is_connected(self, user_id: int) -> bool:
        return user_id in self._channels

    def channel_for(self, user_id: int) -> str | None:
        return self._channels.get(user_id)

    # Delivery --------------------------------------------------------------

    async def push_to_user(
        self,
        user_id: int,
        event: dict[str, Any],
        channel: str = DIRECT_CHANNEL,
    ) -> bool:
        """
        Push a frame to the user's live connection.

        Args:
            user_id: Recipient
            event: Client frame
            channel: "direct" frames always reach the client; "user"
                frames only when the client subscribed to its user channel

        Returns:
            True if handed to the channel layer, False if the user is not
            connected or the send failed
        """
        channel_name = self._channels.get(user_id)
        if channel_name is None:
            return False
        try:
            await self.channel_layer.send(
                channel_name,
                {"type": "transport.push", "channel": channel, "event": event},
            )
        except Exception:
            logger.exception(f"Realtime push to user {user_id} failed")
            return False
        return True

    def push_to_user_sync(
        self,
        user_id: int,
        event: dict[str, Any],
        channel: str = DIRECT_CHANNEL,
    ) -> bool:
        """push_to_user for synchronous callers (REST views, services)."""
        if not self.is_connected(user_id):
            return False
        return async_to_sync(self.push_to_user)(user_id, event, channel)

    async def broadcast_to_conversation(self, conversation_id: int, event: dict[str, Any]) -> bool:
        """Send a frame to every connection subscribed to the conversation."""
        try:
            await self.channel_layer.group_send(
                conversation_group(conversation_id),
                {
                    "type": "transport.push",
                    "channel": TRANSPORT_CONFIG.CONVERSATION_CHANNEL,
                    "event": event,
                },
            )
        except Exception:
            logger.exception(f"Broadcast to conversation {conversation_id} failed")
            return False
        return True

    def broadcast_to_conversation_sync(self, conversation_id: int, event: dict[str, Any]) -> bool:
        return async_to_sync(self.broadcast_to_conversation)(conversation_id, event)

    async def close_superseded(self, channel_name: str) -> None:
        """Ask the consumer behind ``channel_name`` to close its socket."""
        try:
            await self.channel_layer.send(channel_name, {"type": "transport.superseded"})
        except Exception:
            logger.exception(f"Could not notify superseded connection {channel_name}")
