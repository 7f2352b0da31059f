"""
WebSocket consumer for the realtime transport.

One authenticated connection per user multiplexes direct messages, typing
indicators, read receipts, presence and notifications.

Consumers:
    RealtimeConsumer: ws/realtime/

Authentication:
    JWTAuthMiddleware attaches the user to self.scope["user"]. Anonymous
    connections are closed with code 4001. A new connection for a user
    supersedes the previous one, which is closed with code 4009.

Channels:
    direct        message:new frames for this user; always delivered
    user          notification and presence frames; delivered after
                  {"type": "subscribe", "channel": "user"}
    conversation  typing and message:read frames of one conversation;
                  joined with {"type": "subscribe", "channel":
                  "conversation", "conversation_id": 12} by participants

Message Types (from client):
    - subscribe / unsubscribe
    - message:send   {"content", "conversation_id" | "recipient_id", "client_id"?}
    - typing:start / typing:stop  {"conversation_id"}
    - message:read   {"conversation_id"} or {"message_id"}
    - ping

Message Types (to client):
    - connection:ready, subscribed, unsubscribed
    - message:new, message:sent, message:read, typing, presence, notification
    - pong
    - error {"code", "message"}; the socket stays open

No backlog is replayed on connect; history comes from the REST API.
"""

from __future__ import annotations

import asyncio
import logging

from channels.db import database_sync_to_async
from channels.generic.websocket import AsyncJsonWebsocketConsumer
from django.db import DatabaseError
from django.utils import timezone

from accounts.directory import UserDirectory
from messaging.connections import conversation_group
from messaging.constants import PRESENCE_CONFIG, TRANSPORT_CONFIG
from messaging.delivery import message_event
from messaging.middleware import SUBPROTOCOL
from messaging.services import ConversationService, MessageService

logger = logging.getLogger(__name__)


class RealtimeConsumer(AsyncJsonWebsocketConsumer):
    """
    Per-connection protocol handler.

    Collaborators are injected through as_asgi() by the routing built in
    messaging.routing:
        connections: ConnectionManager
        presence: PresenceRegistry
        delivery: MessageDelivery

    Attributes:
        user_id: Authenticated user's id (None until connected)
        user_subscribed: Whether "user" channel frames are forwarded
        conversation_ids: Conversations whose group this socket joined
    """

    connections = None
    presence = None
    delivery = None

    def __init__(self, *args, connections=None, presence=None, delivery=None, **kwargs):
        super().__init__(*args, **kwargs)
        self.connections = connections
        self.presence = presence
        self.delivery = delivery
        self.user = None
        self.user_id: int | None = None
        self.user_subscribed = False
        self.conversation_ids: set[int] = set()
        self._typing_timers: dict[int, asyncio.Task] = {}
        self._handlers = {
            "subscribe": self._handle_subscribe,
            "unsubscribe": self._handle_unsubscribe,
            "message:send": self._handle_send,
            "typing:start": self._handle_typing,
            "typing:stop": self._handle_typing,
            "message:read": self._handle_read,
            "ping": self._handle_ping,
        }

    # Connection lifecycle --------------------------------------------------

    async def connect(self):
        user = self.scope.get("user")
        if user is None or not user.is_authenticated:
            logger.warning("Rejected unauthenticated realtime connection")
            await self.close(code=TRANSPORT_CONFIG.CLOSE_UNAUTHENTICATED)
            return

        self.user = user
        self.user_id = user.pk

        subprotocol = SUBPROTOCOL if SUBPROTOCOL in self.scope.get("subprotocols", []) else None
        await self.accept(subprotocol=subprotocol)

        previous = self.connections.register(self.user_id, self.channel_name)
        if previous is not None:
            await self.connections.close_superseded(previous)

        await self.send_json(
            {
                "type": "connection:ready",
                "user_id": self.user_id,
                "typing_ttl_seconds": self.presence.typing_ttl.total_seconds(),
            }
        )
        logger.info(f"User {self.user_id} connected")
        await self._broadcast_presence(is_online=True, last_seen_online=user.last_seen_online)

    async def disconnect(self, code):
        if self.user_id is None:
            return

        for conversation_id in self.conversation_ids:
            await self.channel_layer.group_discard(
                conversation_group(conversation_id), self.channel_name
            )
        self.conversation_ids.clear()

        cleared = self.connections.unregister(self.user_id, self.channel_name)
        if cleared is None:
            # The user is still online through the newer connection, so typing
            # entries started here stay live; the pending timers still expire them.
            logger.info(f"Superseded connection of user {self.user_id} closed")
            return

        for task in self._typing_timers.values():
            task.cancel()
        self._typing_timers.clear()

        for conversation_id in cleared:
            await self._broadcast_typing_stopped(conversation_id)

        last_seen = await database_sync_to_async(UserDirectory.touch_last_seen)(self.user_id)
        await self._broadcast_presence(is_online=False, last_seen_online=last_seen)
        logger.info(f"User {self.user_id} disconnected (code {code})")

    # Client frames ---------------------------------------------------------

    async def receive(self, text_data=None, bytes_data=None, **kwargs):
        if text_data is None:
            await self._send_error("INVALID_FRAME", "Frames must be JSON text")
            return
        try:
            content = await self.decode_json(text_data)
        except ValueError:
            await self._send_error("INVALID_FRAME", "Frames must be valid JSON")
            return
        await self.receive_json(content, **kwargs)

    async def receive_json(self, content, **kwargs):
        if not isinstance(content, dict):
            await self._send_error("INVALID_FRAME", "Frames must be JSON objects")
            return

        frame_type = content.get("type")
        handler = self._handlers.get(frame_type)
        if handler is None:
            await self._send_error("UNKNOWN_TYPE", f"Unknown frame type: {frame_type}")
            return
        await handler(content)

    async def _handle_subscribe(self, content):
        channel = content.get("channel")

        if channel == TRANSPORT_CONFIG.USER_CHANNEL:
            self.user_subscribed = True
            await self.send_json({"type": "subscribed", "channel": channel})
            return

        if channel != TRANSPORT_CONFIG.CONVERSATION_CHANNEL:
            await self._send_error("VALIDATION_ERROR", "channel must be 'user' or 'conversation'")
            return

        conversation_id = await self._participant_conversation_id(content)
        if conversation_id is None:
            return

        await self.channel_layer.group_add(conversation_group(conversation_id), self.channel_name)
        self.conversation_ids.add(conversation_id)
        await self.send_json(
            {
                "type": "subscribed",
                "channel": channel,
                "conversation_id": conversation_id,
                "typing_user_ids": self.presence.typing_in(conversation_id),
            }
        )

    async def _handle_unsubscribe(self, content):
        channel = content.get("channel")

        if channel == TRANSPORT_CONFIG.USER_CHANNEL:
            self.user_subscribed = False
            await self.send_json({"type": "unsubscribed", "channel": channel})
            return

        if channel != TRANSPORT_CONFIG.CONVERSATION_CHANNEL:
            await self._send_error("VALIDATION_ERROR", "channel must be 'user' or 'conversation'")
            return

        conversation_id = self._int_field(content, "conversation_id")
        if conversation_id is None:
            await self._send_error("VALIDATION_ERROR", "conversation_id must be an integer")
            return

        if conversation_id in self.conversation_ids:
            await self.channel_layer.group_discard(
                conversation_group(conversation_id), self.channel_name
            )
            self.conversation_ids.discard(conversation_id)
        await self.send_json(
            {"type": "unsubscribed", "channel": channel, "conversation_id": conversation_id}
        )

    async def _handle_send(self, content):
        """
        Persist a message, then push it to the recipient.

        The sender gets message:sent once the message is stored; delivery
        to the recipient never fails the send.
        """
        client_id = content.get("client_id")
        text = content.get("content")
        if not isinstance(text, str):
            await self._send_error("VALIDATION_ERROR", "content must be a string", client_id)
            return

        conversation_id = self._int_field(content, "conversation_id")
        recipient_id = self._int_field(content, "recipient_id")

        try:
            result = await database_sync_to_async(self.delivery.send)(
                self.user,
                text,
                conversation_id=conversation_id,
                recipient_id=recipient_id,
            )
            if not result:
                await self._send_error(result.error_code, result.error, client_id)
                return
            message = result.data
            event = await database_sync_to_async(message_event)(message)
        except DatabaseError:
            logger.exception(f"Send from user {self.user_id} could not be persisted")
            await self._send_error("SEND_FAILED", "Message could not be sent", client_id)
            return

        delivered = await self.delivery.deliver(message, event)
        await self.send_json(
            {
                "type": "message:sent",
                "client_id": client_id,
                "message": event["message"],
                "delivered": delivered,
            }
        )

    async def _handle_typing(self, content):
        is_typing = content["type"] == "typing:start"
        conversation_id = await self._participant_conversation_id(content)
        if conversation_id is None:
            return

        indicator = self.presence.set_typing(self.user_id, conversation_id, is_typing)
        if is_typing:
            self._schedule_typing_expiry(conversation_id)
        else:
            self._cancel_typing_timer(conversation_id)

        await self.connections.broadcast_to_conversation(
            conversation_id, {"type": "typing", **indicator.to_dict()}
        )

    async def _handle_read(self, content):
        message_id = self._int_field(content, "message_id")
        conversation_id = self._int_field(content, "conversation_id")

        if message_id is not None:
            result = await database_sync_to_async(MessageService.mark_read)(
                message_id, self.user_id
            )
            if not result:
                await self._send_error(result.error_code, result.error)
                return
            message = result.data
            event = {
                "type": "message:read",
                "conversation_id": message.conversation_id,
                "user_id": self.user_id,
                "message_ids": [message.pk],
            }
            if message.sender_id == self.user_id:
                event["message_ids"] = []
        elif conversation_id is not None:
            result = await database_sync_to_async(MessageService.mark_conversation_read)(
                conversation_id, self.user_id
            )
            if not result:
                await self._send_error(result.error_code, result.error)
                return
            event = {
                "type": "message:read",
                "conversation_id": conversation_id,
                "user_id": self.user_id,
                "count": result.data,
            }
        else:
            await self._send_error(
                "VALIDATION_ERROR", "message_id or conversation_id must be an integer"
            )
            return

        if event.get("message_ids") or event.get("count"):
            await self.connections.broadcast_to_conversation(event["conversation_id"], event)
        await self.send_json(event)

    async def _handle_ping(self, content):
        await self.send_json({"type": "pong", "timestamp": timezone.now().isoformat()})

    # Channel layer events --------------------------------------------------

    async def transport_push(self, event):
        """
        Forward a pushed frame to the socket.

        "user" frames need the user subscription. Conversation frames only
        arrive through joined groups; the actor's own frames are not echoed.
        """
        channel = event.get("channel")
        frame = event["event"]

        if channel == TRANSPORT_CONFIG.USER_CHANNEL and not self.user_subscribed:
            return
        if (
            channel == TRANSPORT_CONFIG.CONVERSATION_CHANNEL
            and frame.get("user_id") == self.user_id
        ):
            return
        await self.send_json(frame)

    async def transport_superseded(self, event):
        logger.info(f"Closing superseded connection of user {self.user_id}")
        await self.close(code=TRANSPORT_CONFIG.CLOSE_SUPERSEDED)

    # Helpers ---------------------------------------------------------------

    async def _send_error(self, code: str, message: str, client_id=None):
        frame = {"type": "error", "code": code, "message": message}
        if client_id is not None:
            frame["client_id"] = client_id
        await self.send_json(frame)

    @staticmethod
    def _int_field(content, key: str) -> int | None:
        value = content.get(key)
        if isinstance(value, bool) or not isinstance(value, int):
            return None
        return value

    async def _participant_conversation_id(self, content) -> int | None:
        """
        Read conversation_id from a frame and check participation.

        Sends the error frame itself and returns None on failure.
        """
        conversation_id = self._int_field(content, "conversation_id")
        if conversation_id is None:
            await self._send_error("VALIDATION_ERROR", "conversation_id must be an integer")
            return None
        if conversation_id in self.conversation_ids:
            return conversation_id

        result = await database_sync_to_async(ConversationService.get_participant_conversation)(
            conversation_id, self.user_id
        )
        if not result:
            await self._send_error(result.error_code, result.error)
            return None
        return conversation_id

    def _schedule_typing_expiry(self, conversation_id: int) -> None:
        self._cancel_typing_timer(conversation_id)
        self._typing_timers[conversation_id] = asyncio.create_task(
            self._expire_typing_after(conversation_id)
        )

    def _cancel_typing_timer(self, conversation_id: int) -> None:
        task = self._typing_timers.pop(conversation_id, None)
        if task is not None:
            task.cancel()

    async def _expire_typing_after(self, conversation_id: int) -> None:
        await asyncio.sleep(
            self.presence.typing_ttl.total_seconds() + PRESENCE_CONFIG.TYPING_TIMER_GRACE_SECONDS
        )
        self._typing_timers.pop(conversation_id, None)
        indicator = self.presence.expire_typing(self.user_id, conversation_id)
        if indicator is not None:
            await self.connections.broadcast_to_conversation(
                conversation_id, {"type": "typing", **indicator.to_dict()}
            )

    async def _broadcast_typing_stopped(self, conversation_id: int) -> None:
        indicator = self.presence.set_typing(self.user_id, conversation_id, False)
        await self.connections.broadcast_to_conversation(
            conversation_id, {"type": "typing", **indicator.to_dict()}
        )

    async def _broadcast_presence(self, is_online: bool, last_seen_online=None) -> None:
        """Tell connected counterparts that this user came online or went offline."""
        counterpart_ids = await database_sync_to_async(ConversationService.counterpart_ids)(
            self.user_id
        )
        frame = {
            "type": "presence",
            "user_id": self.user_id,
            "is_online": is_online,
            "last_seen_online": last_seen_online.isoformat() if last_seen_online else None,
        }
        for counterpart_id in counterpart_ids:
            if self.connections.is_connected(counterpart_id):
                await self.connections.push_to_user(
                    counterpart_id, frame, channel=TRANSPORT_CONFIG.USER_CHANNEL
                )
