"""
Tests for the reconnecting realtime client.

The aiohttp session is replaced by in-memory fakes; no network is used.
"""

import asyncio
import json
import logging

import aiohttp
import pytest

from messaging.client import BackoffPolicy, RealtimeClient


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def text(frame):
    return aiohttp.WSMessage(aiohttp.WSMsgType.TEXT, json.dumps(frame), None)


READY = text({"type": "connection:ready", "user_id": 1, "typing_ttl_seconds": 5.0})


class FakeWebSocket:
    """Yields the given messages, then ends with ``close_code``."""

    def __init__(self, messages=(), close_code=1000):
        self.messages = list(messages)
        self.close_code = close_code
        self.closed = False
        self.sent = []

    async def send_json(self, data):
        self.sent.append(data)

    async def close(self):
        self.closed = True

    def exception(self):
        return None

    def __aiter__(self):
        return self

    async def __anext__(self):
        if not self.messages:
            self.closed = True
            raise StopAsyncIteration
        return self.messages.pop(0)

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        self.closed = True


class BrokenSendWebSocket(FakeWebSocket):
    async def send_json(self, data):
        raise ConnectionResetError("socket is gone")


class FakeSession:
    """
    Stands in for aiohttp.ClientSession; also acts as its own factory.

    Each ws_connect() consumes the next entry of ``sockets``; exception
    instances are raised instead.
    """

    def __init__(self, sockets):
        self.sockets = list(sockets)
        self.connects = []

    def __call__(self):
        return self

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return None

    def ws_connect(self, url, **kwargs):
        self.connects.append((url, kwargs))
        socket = self.sockets.pop(0)
        if isinstance(socket, Exception):
            raise socket
        return socket


def make_client(session, on_frame=None, **backoff_kwargs):
    backoff_kwargs.setdefault("base", 0.001)
    backoff_kwargs.setdefault("maximum", 0.01)
    return RealtimeClient(
        "ws://testserver/ws/realtime/",
        "access-token",
        on_frame or (lambda frame: None),
        backoff=BackoffPolicy(**backoff_kwargs),
        session_factory=session,
    )


class TestBackoffPolicy:
    def test_doubles_up_to_maximum(self):
        backoff = BackoffPolicy()

        delays = [backoff.next_delay() for _ in range(7)]

        assert delays == [1.0, 2.0, 4.0, 8.0, 16.0, 30.0, 30.0]

    def test_stable_connection_resets_delay(self):
        clock = FakeClock()
        backoff = BackoffPolicy(clock=clock)
        backoff.next_delay()
        backoff.next_delay()

        backoff.connected()
        clock.now += 10
        backoff.disconnected()

        assert backoff.next_delay() == 1.0

    def test_short_connection_keeps_growing(self):
        clock = FakeClock()
        backoff = BackoffPolicy(clock=clock)
        backoff.next_delay()
        backoff.next_delay()

        backoff.connected()
        clock.now += 3
        backoff.disconnected()

        assert backoff.next_delay() == 4.0

    def test_disconnect_without_connect_does_not_reset(self):
        backoff = BackoffPolicy()
        backoff.next_delay()

        backoff.disconnected()

        assert backoff.next_delay() == 2.0


class TestRealtimeClient:
    def test_authenticates_with_query_token(self):
        session = FakeSession([FakeWebSocket([READY], close_code=4009)])

        asyncio.run(make_client(session).run())

        url, kwargs = session.connects[0]
        assert url == "ws://testserver/ws/realtime/"
        assert kwargs["params"] == {"token": "access-token"}

    @pytest.mark.parametrize("close_code", [4001, 4009])
    def test_terminal_close_codes_stop_the_loop(self, close_code):
        session = FakeSession([FakeWebSocket([READY], close_code=close_code)])
        client = make_client(session)

        asyncio.run(client.run())

        assert client.close_code == close_code
        assert len(session.connects) == 1

    def test_reconnects_after_failures(self):
        session = FakeSession(
            [
                aiohttp.ClientConnectionError("refused"),
                FakeWebSocket([READY], close_code=1006),
                FakeWebSocket([READY], close_code=4009),
            ]
        )
        client = make_client(session)

        asyncio.run(client.run())

        assert len(session.connects) == 3
        assert client.backoff.attempt == 2

    def test_frames_are_handed_to_callback(self):
        frames = []

        async def on_frame(frame):
            frames.append(frame["type"])

        session = FakeSession(
            [
                FakeWebSocket(
                    [
                        READY,
                        aiohttp.WSMessage(aiohttp.WSMsgType.TEXT, "{broken", None),
                        text({"type": "message:new", "message": {"id": 3}}),
                    ],
                    close_code=4009,
                )
            ]
        )

        asyncio.run(make_client(session, on_frame).run())

        assert frames == ["connection:ready", "message:new"]

    def test_subscriptions_are_replayed_on_connect(self):
        first = FakeWebSocket([READY], close_code=1006)
        second = FakeWebSocket([READY], close_code=4009)
        session = FakeSession([first, second])
        client = make_client(session)
        client.subscribe_user()
        client.subscribe_conversation(12)
        client.subscribe_conversation(5)

        asyncio.run(client.run())

        expected = [
            {"type": "subscribe", "channel": "user"},
            {"type": "subscribe", "channel": "conversation", "conversation_id": 5},
            {"type": "subscribe", "channel": "conversation", "conversation_id": 12},
        ]
        assert first.sent == expected
        assert second.sent == expected

    def test_unsubscribed_conversation_is_not_replayed(self):
        socket = FakeWebSocket([READY], close_code=4009)
        client = make_client(FakeSession([socket]))
        client.subscribe_conversation(5)
        client.unsubscribe_conversation(5)

        asyncio.run(client.run())

        assert socket.sent == []

    def test_failed_subscribe_send_is_logged(self, caplog):
        socket = BrokenSendWebSocket([READY], close_code=4009)
        client = make_client(FakeSession([socket]))

        async def on_frame(frame):
            client.subscribe_conversation(7)
            await asyncio.sleep(0.01)

        client.on_frame = on_frame

        with caplog.at_level(logging.WARNING, logger="messaging.client"):
            asyncio.run(client.run())

        assert "Realtime frame could not be sent" in caplog.text
        assert client.conversation_ids == {7}

    def test_send_requires_open_connection(self):
        client = make_client(FakeSession([]))

        with pytest.raises(ConnectionError):
            asyncio.run(client.send({"type": "ping"}))

    def test_close_stops_reconnecting(self):
        client = make_client(FakeSession([]))

        async def scenario():
            await client.close()
            await client.run()

        asyncio.run(scenario())

        assert client.close_code is None
