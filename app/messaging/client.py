"""
Reconnecting client for the realtime transport.

Used by service-side tooling (bots, load scripts, integration checks) that
talk to ws/realtime/ like a browser would. Reconnection is the client's
job: the server only guarantees that a new connection supersedes the old
one.

BackoffPolicy:
    Exponential delay starting at 1 s, doubling per failed attempt, capped
    at 30 s. A connection that stayed up for at least 10 s resets the
    delay to the base.

RealtimeClient:
    aiohttp WebSocket client authenticating with ?token=<jwt>. Decoded
    frames are handed to ``on_frame`` (sync or async callable).
    Subscriptions requested through the client are replayed after every
    reconnect. Close codes 4001 (unauthenticated) and 4009 (superseded by
    another connection) stop the loop instead of reconnecting.

Usage:
    async def handle(frame):
        print(frame["type"])

    client = RealtimeClient("wss://api.example.com/ws/realtime/", token, handle)
    client.subscribe_user()
    task = asyncio.create_task(client.run())
    ...
    await client.send({"type": "message:send", "recipient_id": 7, "content": "Hi"})
    await client.close()
"""

from __future__ import annotations

import asyncio
import inspect
import json
import logging
import time
from typing import TYPE_CHECKING

import aiohttp

from messaging.constants import RECONNECT_CONFIG, TRANSPORT_CONFIG

if TYPE_CHECKING:
    from collections.abc import Callable
    from typing import Any

logger = logging.getLogger(__name__)

TERMINAL_CLOSE_CODES = frozenset(
    {TRANSPORT_CONFIG.CLOSE_UNAUTHENTICATED, TRANSPORT_CONFIG.CLOSE_SUPERSEDED}
)


class BackoffPolicy:
    """Exponential reconnect delay with a stability reset."""

    def __init__(
        self,
        base: float = RECONNECT_CONFIG.BASE_DELAY_SECONDS,
        maximum: float = RECONNECT_CONFIG.MAX_DELAY_SECONDS,
        multiplier: float = RECONNECT_CONFIG.MULTIPLIER,
        stable_after: float = RECONNECT_CONFIG.STABLE_CONNECTION_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.base = base
        self.maximum = maximum
        self.multiplier = multiplier
        self.stable_after = stable_after
        self.clock = clock
        self.attempt = 0
        self._connected_at: float | None = None

    def next_delay(self) -> float:
        """Delay before the next attempt; each call counts as one attempt."""
        delay = min(self.base * self.multiplier**self.attempt, self.maximum)
        self.attempt += 1
        return delay

    def connected(self) -> None:
        self._connected_at = self.clock()

    def disconnected(self) -> None:
        """Reset the delay if the connection that just ended was stable."""
        if self._connected_at is not None and (
            self.clock() - self._connected_at >= self.stable_after
        ):
            self.reset()
        self._connected_at = None

    def reset(self) -> None:
        self.attempt = 0


class RealtimeClient:
    """
    Reconnecting WebSocket client for ws/realtime/.

    Attributes:
        url: WebSocket URL of the realtime endpoint
        backoff: Reconnect policy
        subscribe_to_user: Whether the user channel is (re)subscribed
        conversation_ids: Conversations (re)subscribed after each connect
    """

    def __init__(
        self,
        url: str,
        token: str,
        on_frame: Callable[[dict[str, Any]], Any],
        backoff: BackoffPolicy | None = None,
        heartbeat: float = 20.0,
        session_factory: Callable[[], aiohttp.ClientSession] = aiohttp.ClientSession,
    ):
        self.url = url
        self.token = token
        self.on_frame = on_frame
        self.backoff = backoff or BackoffPolicy()
        self.heartbeat = heartbeat
        self.session_factory = session_factory
        self.subscribe_to_user = False
        self.conversation_ids: set[int] = set()
        self.close_code: int | None = None
        self._ws = None
        self._stop = asyncio.Event()
        self._pending_sends: set[asyncio.Task] = set()

    @property
    def connected(self) -> bool:
        return self._ws is not None and not self._ws.closed

    async def run(self) -> None:
        """Connect and keep reconnecting until close() or a terminal close code."""
        while not self._stop.is_set():
            try:
                self.close_code = await self._connect_once()
            except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as e:
                logger.warning(f"Realtime connection to {self.url} failed: {e}")
                self.close_code = None
            self.backoff.disconnected()

            if self.close_code in TERMINAL_CLOSE_CODES:
                logger.warning(f"Realtime connection closed with {self.close_code}, not reconnecting")
                break
            if self._stop.is_set():
                break

            delay = self.backoff.next_delay()
            logger.info(f"Reconnecting to {self.url} in {delay:.1f}s")
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=delay)
            except asyncio.TimeoutError:
                pass

    async def close(self) -> None:
        self._stop.set()
        if self._ws is not None:
            await self._ws.close()

    async def send(self, frame: dict[str, Any]) -> None:
        """
        Send a frame on the live connection.

        Raises:
            ConnectionError: No connection is open
        """
        if not self.connected:
            raise ConnectionError("Realtime connection is not open")
        await self._ws.send_json(frame)

    def subscribe_user(self) -> None:
        self.subscribe_to_user = True
        self._send_if_connected(
            {"type": "subscribe", "channel": TRANSPORT_CONFIG.USER_CHANNEL}
        )

    def subscribe_conversation(self, conversation_id: int) -> None:
        self.conversation_ids.add(conversation_id)
        self._send_if_connected(self._conversation_frame("subscribe", conversation_id))

    def unsubscribe_conversation(self, conversation_id: int) -> None:
        self.conversation_ids.discard(conversation_id)
        self._send_if_connected(self._conversation_frame("unsubscribe", conversation_id))

    async def _connect_once(self) -> int | None:
        async with self.session_factory() as session:
            async with session.ws_connect(
                self.url, params={"token": self.token}, heartbeat=self.heartbeat
            ) as ws:
                self._ws = ws
                self.backoff.connected()
                logger.info(f"Connected to {self.url}")
                try:
                    async for msg in ws:
                        if msg.type == aiohttp.WSMsgType.TEXT:
                            await self._handle_text(msg.data)
                        elif msg.type == aiohttp.WSMsgType.ERROR:
                            logger.warning(f"Realtime connection error: {ws.exception()}")
                            break
                finally:
                    self._ws = None
                return ws.close_code

    async def _handle_text(self, data: str) -> None:
        try:
            frame = json.loads(data)
        except json.JSONDecodeError:
            logger.warning("Dropped malformed realtime frame")
            return

        if frame.get("type") == "connection:ready":
            await self._resubscribe()

        result = self.on_frame(frame)
        if inspect.isawaitable(result):
            await result

    async def _resubscribe(self) -> None:
        if self.subscribe_to_user:
            await self._ws.send_json({"type": "subscribe", "channel": TRANSPORT_CONFIG.USER_CHANNEL})
        for conversation_id in sorted(self.conversation_ids):
            await self._ws.send_json(self._conversation_frame("subscribe", conversation_id))

    def _send_if_connected(self, frame: dict[str, Any]) -> None:
        if not self.connected:
            return
        task = asyncio.get_running_loop().create_task(self._ws.send_json(frame))
        self._pending_sends.add(task)
        task.add_done_callback(self._send_finished)

    def _send_finished(self, task: asyncio.Task) -> None:
        self._pending_sends.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            # Subscription state is re-sent by _resubscribe after the next connect
            logger.warning(f"Realtime frame could not be sent: {error!r}")

    @staticmethod
    def _conversation_frame(frame_type: str, conversation_id: int) -> dict[str, Any]:
        return {
            "type": frame_type,
            "channel": TRANSPORT_CONFIG.CONVERSATION_CHANNEL,
            "conversation_id": conversation_id,
        }
