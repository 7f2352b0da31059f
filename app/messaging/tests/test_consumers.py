"""
Tests for the realtime WebSocket consumer.

Sockets are opened through the production middleware stack
(JWTAuthMiddleware -> URLRouter -> RealtimeConsumer) with channels'
WebsocketCommunicator. The consumer reaches the database through
database_sync_to_async, so these tests use transactional databases. Each
scenario is a coroutine run with async_to_sync.

Test Classes:
    TestAuthentication: token handling and close codes
    TestMessaging: message:send over the socket
    TestSubscriptions: user and conversation channels
    TestTyping: typing indicators and their expiry
    TestReadReceipts: message:read
    TestConnectionLifecycle: superseding and presence broadcasts
    TestErrors: malformed frames keep the socket open
"""

from datetime import timedelta

import pytest
from asgiref.sync import async_to_sync
from channels.db import database_sync_to_async
from channels.routing import URLRouter
from channels.testing import WebsocketCommunicator
from rest_framework_simplejwt.tokens import AccessToken

from messaging.middleware import JWTAuthMiddleware
from messaging.routing import build_websocket_urlpatterns

pytestmark = pytest.mark.django_db(transaction=True)

TIMEOUT = 2


def realtime_app(config):
    return JWTAuthMiddleware(URLRouter(build_websocket_urlpatterns(config)))


def token_for(user):
    return str(AccessToken.for_user(user))


async def open_socket(app, token):
    communicator = WebsocketCommunicator(app, f"/ws/realtime/?token={token}")
    connected, _ = await communicator.connect()
    assert connected
    ready = await communicator.receive_json_from(timeout=TIMEOUT)
    assert ready["type"] == "connection:ready"
    return communicator


async def subscribe_conversation(communicator, conversation_id):
    await communicator.send_json_to(
        {"type": "subscribe", "channel": "conversation", "conversation_id": conversation_id}
    )
    return await communicator.receive_json_from(timeout=TIMEOUT)


class TestAuthentication:
    def test_missing_token_is_rejected(self, messaging_config):
        async def scenario():
            communicator = WebsocketCommunicator(realtime_app(messaging_config), "/ws/realtime/")
            result = await communicator.connect()
            await communicator.disconnect()
            return result

        assert async_to_sync(scenario)() == (False, 4001)

    def test_invalid_token_is_rejected(self, messaging_config):
        async def scenario():
            communicator = WebsocketCommunicator(
                realtime_app(messaging_config), "/ws/realtime/?token=not-a-jwt"
            )
            result = await communicator.connect()
            await communicator.disconnect()
            return result

        assert async_to_sync(scenario)() == (False, 4001)

    def test_inactive_user_is_rejected(self, messaging_config, mentee):
        token = token_for(mentee)
        mentee.is_active = False
        mentee.save(update_fields=["is_active"])

        async def scenario():
            communicator = WebsocketCommunicator(
                realtime_app(messaging_config), f"/ws/realtime/?token={token}"
            )
            result = await communicator.connect()
            await communicator.disconnect()
            return result

        assert async_to_sync(scenario)() == (False, 4001)

    def test_ready_frame_and_online_flag(self, messaging_config, mentee):
        token = token_for(mentee)

        async def scenario():
            communicator = WebsocketCommunicator(
                realtime_app(messaging_config), f"/ws/realtime/?token={token}"
            )
            await communicator.connect()
            ready = await communicator.receive_json_from(timeout=TIMEOUT)
            online = messaging_config.presence.is_online(mentee.pk)
            await communicator.disconnect()
            return ready, online

        ready, online = async_to_sync(scenario)()

        assert ready["user_id"] == mentee.pk
        assert ready["typing_ttl_seconds"] == messaging_config.presence.typing_ttl.total_seconds()
        assert online is True
        assert not messaging_config.presence.is_online(mentee.pk)

    def test_token_as_subprotocol(self, messaging_config, mentee):
        token = token_for(mentee)

        async def scenario():
            communicator = WebsocketCommunicator(
                realtime_app(messaging_config), "/ws/realtime/", subprotocols=["jwt", token]
            )
            result = await communicator.connect()
            await communicator.disconnect()
            return result

        assert async_to_sync(scenario)() == (True, "jwt")


class TestMessaging:
    def test_send_to_connected_recipient(self, messaging_config, conversation, mentor, mentee):
        app = realtime_app(messaging_config)
        mentor_token, mentee_token = token_for(mentor), token_for(mentee)

        async def scenario():
            mentor_socket = await open_socket(app, mentor_token)
            mentee_socket = await open_socket(app, mentee_token)

            await mentee_socket.send_json_to(
                {
                    "type": "message:send",
                    "recipient_id": mentor.pk,
                    "content": "  Hi Grace  ",
                    "client_id": "c-1",
                }
            )
            received = await mentor_socket.receive_json_from(timeout=TIMEOUT)
            ack = await mentee_socket.receive_json_from(timeout=TIMEOUT)

            await mentee_socket.disconnect()
            await mentor_socket.disconnect()
            return received, ack

        received, ack = async_to_sync(scenario)()

        assert received["type"] == "message:new"
        assert received["message"]["content"] == "Hi Grace"
        assert received["message"]["conversation_id"] == conversation.pk
        assert ack["type"] == "message:sent"
        assert ack["client_id"] == "c-1"
        assert ack["delivered"] is True
        assert ack["message"]["id"] == received["message"]["id"]

    def test_send_to_offline_recipient_raises_notification(
        self, messaging_config, conversation, mentor, mentee
    ):
        from notifications.models import Notification, NotificationType

        app = realtime_app(messaging_config)
        token = token_for(mentee)

        async def scenario():
            socket = await open_socket(app, token)
            await socket.send_json_to(
                {"type": "message:send", "conversation_id": conversation.pk, "content": "Ping"}
            )
            ack = await socket.receive_json_from(timeout=TIMEOUT)
            await socket.disconnect()
            return ack

        ack = async_to_sync(scenario)()

        assert ack["type"] == "message:sent"
        assert ack["delivered"] is False
        notification = Notification.objects.get(recipient=mentor)
        assert notification.type == NotificationType.MESSAGE
        assert notification.data["message_id"] == ack["message"]["id"]

    def test_send_rejected_by_gate(self, messaging_config, mentee, stranger):
        app = realtime_app(messaging_config)
        token = token_for(mentee)

        async def scenario():
            socket = await open_socket(app, token)
            await socket.send_json_to(
                {
                    "type": "message:send",
                    "recipient_id": stranger.pk,
                    "content": "Hello",
                    "client_id": "c-9",
                }
            )
            error = await socket.receive_json_from(timeout=TIMEOUT)
            await socket.disconnect()
            return error

        error = async_to_sync(scenario)()

        assert error == {
            "type": "error",
            "code": "NOT_ALLOWED_TO_MESSAGE",
            "message": "You are not allowed to message this user",
            "client_id": "c-9",
        }

    def test_non_string_content(self, messaging_config, conversation, mentee):
        app = realtime_app(messaging_config)
        token = token_for(mentee)

        async def scenario():
            socket = await open_socket(app, token)
            await socket.send_json_to(
                {"type": "message:send", "conversation_id": conversation.pk, "content": 5}
            )
            error = await socket.receive_json_from(timeout=TIMEOUT)
            await socket.disconnect()
            return error

        error = async_to_sync(scenario)()

        assert error["code"] == "VALIDATION_ERROR"


class TestSubscriptions:
    def test_notifications_need_user_subscription(self, messaging_config, mentee):
        from notifications.services import NotificationService

        app = realtime_app(messaging_config)
        token = token_for(mentee)
        create = database_sync_to_async(NotificationService.create)

        async def scenario():
            socket = await open_socket(app, token)

            await create(mentee.pk, "SYSTEM", "Before", connections=messaging_config.connections)
            nothing_before = await socket.receive_nothing(timeout=0.2)

            await socket.send_json_to({"type": "subscribe", "channel": "user"})
            subscribed = await socket.receive_json_from(timeout=TIMEOUT)
            await create(mentee.pk, "SYSTEM", "After", connections=messaging_config.connections)
            frame = await socket.receive_json_from(timeout=TIMEOUT)

            await socket.disconnect()
            return nothing_before, subscribed, frame

        nothing_before, subscribed, frame = async_to_sync(scenario)()

        assert nothing_before is True
        assert subscribed == {"type": "subscribed", "channel": "user"}
        assert frame["type"] == "notification"
        assert frame["notification"]["title"] == "After"

    def test_conversation_subscription_requires_participation(
        self, messaging_config, conversation, stranger
    ):
        app = realtime_app(messaging_config)
        token = token_for(stranger)

        async def scenario():
            socket = await open_socket(app, token)
            response = await subscribe_conversation(socket, conversation.pk)
            await socket.disconnect()
            return response

        response = async_to_sync(scenario)()

        assert response["type"] == "error"
        assert response["code"] == "NOT_PARTICIPANT"

    def test_conversation_subscription_reports_typists(
        self, messaging_config, conversation, mentor, mentee
    ):
        messaging_config.presence.set_typing(mentor.pk, conversation.pk, True)
        app = realtime_app(messaging_config)
        token = token_for(mentee)

        async def scenario():
            socket = await open_socket(app, token)
            response = await subscribe_conversation(socket, conversation.pk)
            await socket.send_json_to(
                {
                    "type": "unsubscribe",
                    "channel": "conversation",
                    "conversation_id": conversation.pk,
                }
            )
            unsubscribed = await socket.receive_json_from(timeout=TIMEOUT)
            await socket.disconnect()
            return response, unsubscribed

        response, unsubscribed = async_to_sync(scenario)()

        assert response == {
            "type": "subscribed",
            "channel": "conversation",
            "conversation_id": conversation.pk,
            "typing_user_ids": [mentor.pk],
        }
        assert unsubscribed["type"] == "unsubscribed"

    def test_unknown_channel(self, messaging_config, mentee):
        app = realtime_app(messaging_config)
        token = token_for(mentee)

        async def scenario():
            socket = await open_socket(app, token)
            await socket.send_json_to({"type": "subscribe", "channel": "everything"})
            error = await socket.receive_json_from(timeout=TIMEOUT)
            await socket.disconnect()
            return error

        assert async_to_sync(scenario)()["code"] == "VALIDATION_ERROR"


class TestTyping:
    def test_counterpart_sees_start_and_expiry(
        self, messaging_config, conversation, mentor, mentee
    ):
        messaging_config.presence.typing_ttl = timedelta(seconds=0.2)
        app = realtime_app(messaging_config)
        mentor_token, mentee_token = token_for(mentor), token_for(mentee)

        async def scenario():
            mentor_socket = await open_socket(app, mentor_token)
            mentee_socket = await open_socket(app, mentee_token)
            await subscribe_conversation(mentor_socket, conversation.pk)
            await subscribe_conversation(mentee_socket, conversation.pk)

            await mentee_socket.send_json_to(
                {"type": "typing:start", "conversation_id": conversation.pk}
            )
            started = await mentor_socket.receive_json_from(timeout=TIMEOUT)
            expired = await mentor_socket.receive_json_from(timeout=TIMEOUT)
            # The typist never receives its own indicator
            own_echo = not await mentee_socket.receive_nothing(timeout=0.1)

            await mentee_socket.disconnect()
            await mentor_socket.disconnect()
            return started, expired, own_echo

        started, expired, own_echo = async_to_sync(scenario)()

        assert started["type"] == "typing"
        assert started["user_id"] == mentee.pk
        assert started["is_typing"] is True
        assert expired["is_typing"] is False
        assert own_echo is False
        assert messaging_config.presence.typing_in(conversation.pk) == []

    def test_explicit_stop(self, messaging_config, conversation, mentor, mentee):
        app = realtime_app(messaging_config)
        mentor_token, mentee_token = token_for(mentor), token_for(mentee)

        async def scenario():
            mentor_socket = await open_socket(app, mentor_token)
            mentee_socket = await open_socket(app, mentee_token)
            await subscribe_conversation(mentor_socket, conversation.pk)

            for frame_type in ("typing:start", "typing:stop"):
                await mentee_socket.send_json_to(
                    {"type": frame_type, "conversation_id": conversation.pk}
                )
            frames = [
                await mentor_socket.receive_json_from(timeout=TIMEOUT),
                await mentor_socket.receive_json_from(timeout=TIMEOUT),
            ]

            await mentee_socket.disconnect()
            await mentor_socket.disconnect()
            return frames

        frames = async_to_sync(scenario)()

        assert [f["is_typing"] for f in frames] == [True, False]

    def test_typing_in_foreign_conversation(self, messaging_config, conversation, stranger):
        app = realtime_app(messaging_config)
        token = token_for(stranger)

        async def scenario():
            socket = await open_socket(app, token)
            await socket.send_json_to({"type": "typing:start", "conversation_id": conversation.pk})
            error = await socket.receive_json_from(timeout=TIMEOUT)
            await socket.disconnect()
            return error

        assert async_to_sync(scenario)()["code"] == "NOT_PARTICIPANT"
        assert messaging_config.presence.typing_in(conversation.pk) == []


class TestReadReceipts:
    def test_conversation_read_notifies_sender(
        self, messaging_config, conversation, mentor, mentee
    ):
        from messaging.tests.factories import MessageFactory

        MessageFactory.create_batch(2, conversation=conversation, sender=mentor)
        app = realtime_app(messaging_config)
        mentor_token, mentee_token = token_for(mentor), token_for(mentee)

        async def scenario():
            mentor_socket = await open_socket(app, mentor_token)
            mentee_socket = await open_socket(app, mentee_token)
            await subscribe_conversation(mentor_socket, conversation.pk)

            await mentee_socket.send_json_to(
                {"type": "message:read", "conversation_id": conversation.pk}
            )
            ack = await mentee_socket.receive_json_from(timeout=TIMEOUT)
            receipt = await mentor_socket.receive_json_from(timeout=TIMEOUT)

            await mentee_socket.disconnect()
            await mentor_socket.disconnect()
            return ack, receipt

        ack, receipt = async_to_sync(scenario)()

        expected = {
            "type": "message:read",
            "conversation_id": conversation.pk,
            "user_id": mentee.pk,
            "count": 2,
        }
        assert ack == expected
        assert receipt == expected

    def test_single_message_read(self, messaging_config, conversation, mentor, mentee):
        from messaging.models import Message
        from messaging.tests.factories import MessageFactory

        message = MessageFactory(conversation=conversation, sender=mentor)
        app = realtime_app(messaging_config)
        token = token_for(mentee)

        async def scenario():
            socket = await open_socket(app, token)
            await socket.send_json_to({"type": "message:read", "message_id": message.pk})
            ack = await socket.receive_json_from(timeout=TIMEOUT)
            await socket.disconnect()
            return ack

        ack = async_to_sync(scenario)()

        assert ack["message_ids"] == [message.pk]
        assert Message.objects.get(pk=message.pk).is_read is True

    def test_requires_an_id(self, messaging_config, mentee):
        app = realtime_app(messaging_config)
        token = token_for(mentee)

        async def scenario():
            socket = await open_socket(app, token)
            await socket.send_json_to({"type": "message:read"})
            error = await socket.receive_json_from(timeout=TIMEOUT)
            await socket.disconnect()
            return error

        assert async_to_sync(scenario)()["code"] == "VALIDATION_ERROR"


class TestConnectionLifecycle:
    def test_new_connection_supersedes_old(self, messaging_config, mentee):
        app = realtime_app(messaging_config)
        token = token_for(mentee)

        async def scenario():
            first = await open_socket(app, token)
            second = await open_socket(app, token)
            closed = await first.receive_output(timeout=TIMEOUT)
            await first.disconnect()
            still_online = messaging_config.presence.is_online(mentee.pk)
            await second.disconnect()
            return closed, still_online

        closed, still_online = async_to_sync(scenario)()

        assert closed["type"] == "websocket.close"
        assert closed["code"] == 4009
        assert still_online is True
        assert not messaging_config.connections.is_connected(mentee.pk)

    def test_presence_is_pushed_to_subscribed_counterparts(
        self, messaging_config, conversation, mentor, mentee
    ):
        app = realtime_app(messaging_config)
        mentor_token, mentee_token = token_for(mentor), token_for(mentee)

        async def scenario():
            mentor_socket = await open_socket(app, mentor_token)
            await mentor_socket.send_json_to({"type": "subscribe", "channel": "user"})
            await mentor_socket.receive_json_from(timeout=TIMEOUT)

            mentee_socket = await open_socket(app, mentee_token)
            online = await mentor_socket.receive_json_from(timeout=TIMEOUT)
            await mentee_socket.disconnect()
            offline = await mentor_socket.receive_json_from(timeout=TIMEOUT)

            await mentor_socket.disconnect()
            return online, offline

        online, offline = async_to_sync(scenario)()

        assert online["type"] == "presence"
        assert online["user_id"] == mentee.pk
        assert online["is_online"] is True
        assert offline["is_online"] is False
        assert offline["last_seen_online"] is not None
        mentee.refresh_from_db()
        assert mentee.last_seen_online is not None

    def test_disconnect_clears_typing(self, messaging_config, conversation, mentor, mentee):
        app = realtime_app(messaging_config)
        mentor_token, mentee_token = token_for(mentor), token_for(mentee)

        async def scenario():
            mentor_socket = await open_socket(app, mentor_token)
            mentee_socket = await open_socket(app, mentee_token)
            await subscribe_conversation(mentor_socket, conversation.pk)

            await mentee_socket.send_json_to(
                {"type": "typing:start", "conversation_id": conversation.pk}
            )
            await mentor_socket.receive_json_from(timeout=TIMEOUT)
            await mentee_socket.disconnect()
            stopped = await mentor_socket.receive_json_from(timeout=TIMEOUT)

            await mentor_socket.disconnect()
            return stopped

        stopped = async_to_sync(scenario)()

        assert stopped["type"] == "typing"
        assert stopped["user_id"] == mentee.pk
        assert stopped["is_typing"] is False

    def test_typing_from_superseded_connection_still_expires(
        self, messaging_config, conversation, mentor, mentee
    ):
        messaging_config.presence.typing_ttl = timedelta(seconds=0.2)
        app = realtime_app(messaging_config)
        mentor_token, mentee_token = token_for(mentor), token_for(mentee)

        async def scenario():
            mentor_socket = await open_socket(app, mentor_token)
            await subscribe_conversation(mentor_socket, conversation.pk)

            old_socket = await open_socket(app, mentee_token)
            await old_socket.send_json_to(
                {"type": "typing:start", "conversation_id": conversation.pk}
            )
            started = await mentor_socket.receive_json_from(timeout=TIMEOUT)

            new_socket = await open_socket(app, mentee_token)
            closed = await old_socket.receive_output(timeout=TIMEOUT)
            await old_socket.disconnect()

            expired = await mentor_socket.receive_json_from(timeout=TIMEOUT)

            await new_socket.disconnect()
            await mentor_socket.disconnect()
            return started, closed, expired

        started, closed, expired = async_to_sync(scenario)()

        assert started["is_typing"] is True
        assert closed["code"] == 4009
        assert expired["type"] == "typing"
        assert expired["user_id"] == mentee.pk
        assert expired["is_typing"] is False
        assert messaging_config.presence.typing_in(conversation.pk) == []


class TestErrors:
    def test_bad_frames_keep_socket_open(self, messaging_config, mentee):
        app = realtime_app(messaging_config)
        token = token_for(mentee)

        async def scenario():
            socket = await open_socket(app, token)
            await socket.send_to(text_data="{not json")
            invalid = await socket.receive_json_from(timeout=TIMEOUT)
            await socket.send_json_to(["not", "an", "object"])
            not_object = await socket.receive_json_from(timeout=TIMEOUT)
            await socket.send_json_to({"type": "dance"})
            unknown = await socket.receive_json_from(timeout=TIMEOUT)
            await socket.send_json_to({"type": "ping"})
            pong = await socket.receive_json_from(timeout=TIMEOUT)
            await socket.disconnect()
            return invalid, not_object, unknown, pong

        invalid, not_object, unknown, pong = async_to_sync(scenario)()

        assert invalid["code"] == "INVALID_FRAME"
        assert not_object["code"] == "INVALID_FRAME"
        assert unknown["code"] == "UNKNOWN_TYPE"
        assert pong["type"] == "pong"
