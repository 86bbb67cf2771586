"""
qqgate Gateway Session

Connects to the bot gateway over WebSocket, identifies, keeps the connection
alive with heartbeats and turns message-create dispatches into
ChannelMessage objects for a consumer sink.

Heartbeats and reads share one task: every loop iteration waits for either
the next frame or the heartbeat deadline, whichever comes first, and an
overdue heartbeat is always sent before the next frame is handled.
"""

import asyncio
import contextlib
import json
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from websockets.asyncio.client import connect as websockets_connect
from websockets.exceptions import ConnectionClosed, ConnectionClosedOK, WebSocketException

if TYPE_CHECKING:
    from websockets.asyncio.client import ClientConnection

from qqgate.client import QQClient
from qqgate.config import QQGateConfig
from qqgate.errors import GatewayConnectionError, ParseError, SinkClosed
from qqgate.models import MESSAGE_CREATE_EVENTS, ChannelMessage, GatewayFrame, Opcode
from qqgate.sink import MessageSink

LOG = logging.getLogger(__name__)

Connector = Callable[[str], Awaitable["ClientConnection"]]


@dataclass
class GatewayState:
    """Per-connection state, owned by the event loop."""

    heartbeat_interval: float
    last_sequence: int | None = None
    next_heartbeat_at: float = 0.0

    def reset_heartbeat(self, now: float, interval: float | None = None) -> None:
        """Restart the heartbeat timer from ``now``, optionally with a new period."""
        if interval is not None:
            self.heartbeat_interval = interval
        self.next_heartbeat_at = now + self.heartbeat_interval


@dataclass
class GatewaySession:
    """
    A single gateway connection (shard 0 of 1).

    Usage:
        session = GatewaySession(client)
        await session.run(sink)

    ``run`` returns when the server closes the stream cleanly or the sink
    reports that its consumer is gone. Everything else is raised; reconnecting
    is left to the caller.
    """

    client: QQClient
    config: QQGateConfig = field(default_factory=QQGateConfig)
    connect: Connector = field(default=websockets_connect, kw_only=True)
    clock: Callable[[], float] = field(default=time.time, kw_only=True)
    state: GatewayState = field(init=False)

    def __post_init__(self) -> None:
        self.state = GatewayState(self.config.default_heartbeat_interval_seconds)

    async def run(self, sink: MessageSink) -> None:
        """
        Connect, identify and process gateway frames until the session ends.

        Raises:
            AuthError: If no access token can be obtained
            ProtocolError: If the gateway URL cannot be resolved
            GatewayConnectionError: If the stream cannot be opened, read or written
            ParseError: If the server sends a text frame that is not valid JSON
        """
        url = await self.client.resolve_endpoint()
        LOG.info("Connecting to gateway: %s", url)

        try:
            websocket = await self.connect(url)
        except (OSError, WebSocketException) as exc:
            raise GatewayConnectionError(f"Could not connect to gateway {url}: {exc}") from exc

        self.state = GatewayState(self.config.default_heartbeat_interval_seconds)

        async with websocket:
            await self.identify(websocket)
            await self.event_loop(websocket, sink)

        LOG.info("Gateway session ended (last sequence %s)", self.state.last_sequence)

    async def identify(self, websocket: "ClientConnection") -> None:
        authorization = await self.client.tokens.authorization_header()
        frame = GatewayFrame.identify(
            authorization,
            intents=self.config.intents,
            shard=list(self.config.shard),
            properties={
                "$os": self.config.client_os,
                "$browser": self.config.client_name,
                "$device": self.config.client_name,
            },
        )
        await self.send_frame(websocket, frame)
        LOG.info("Identify sent (intents=%d, shard=%s)", self.config.intents, self.config.shard)

    async def event_loop(self, websocket: "ClientConnection", sink: MessageSink) -> None:
        """Main loop: interleave heartbeats with inbound frames."""
        loop = asyncio.get_running_loop()
        self.state.reset_heartbeat(loop.time())
        receiver = asyncio.create_task(websocket.recv())

        try:
            while True:
                timeout = max(self.state.next_heartbeat_at - loop.time(), 0)
                done, _ = await asyncio.wait({receiver}, timeout=timeout)

                # A ready frame must not postpone an overdue heartbeat.
                if loop.time() >= self.state.next_heartbeat_at:
                    await self.heartbeat(websocket)
                    self.state.reset_heartbeat(loop.time())

                if not done:
                    continue

                try:
                    message = receiver.result()
                except ConnectionClosedOK:
                    LOG.info("Gateway closed the connection")
                    return
                except (ConnectionClosed, OSError) as exc:
                    raise GatewayConnectionError(f"Gateway read failed: {exc}") from exc

                if not await self.handle_message(message, sink, loop.time()):
                    return

                receiver = asyncio.create_task(websocket.recv())
        finally:
            if not receiver.done():
                receiver.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await receiver

    async def heartbeat(self, websocket: "ClientConnection") -> None:
        await self.send_frame(websocket, GatewayFrame.heartbeat(self.state.last_sequence))
        LOG.debug("Heartbeat sent (last sequence %s)", self.state.last_sequence)

    async def send_frame(self, websocket: "ClientConnection", frame: GatewayFrame) -> None:
        try:
            await websocket.send(frame.to_wire())
        except (ConnectionClosed, OSError) as exc:
            LOG.error("Failed to send op %d frame: %s", frame.op, exc)
            raise GatewayConnectionError(f"Gateway write failed: {exc}") from exc

    async def handle_message(self, message: str | bytes, sink: MessageSink, now: float) -> bool:
        """Process one inbound frame. Returns False when the session should stop."""
        if not isinstance(message, str):
            LOG.debug("Ignoring binary frame (%d bytes)", len(message))
            return True

        frame = self.parse_frame(message)

        if frame.op == Opcode.HELLO:
            self.handle_hello(frame, now)
        elif frame.op == Opcode.DISPATCH:
            return await self.handle_dispatch(frame, sink)
        else:
            LOG.debug("Ignoring frame with op %d", frame.op)
        return True

    def parse_frame(self, text: str) -> GatewayFrame:
        try:
            data = json.loads(text)
        except ValueError as exc:
            raise ParseError(text, str(exc)) from exc
        return GatewayFrame.from_wire(data)

    def handle_hello(self, frame: GatewayFrame, now: float) -> None:
        interval_ms = frame.payload.get("heartbeat_interval")
        if isinstance(interval_ms, bool) or not isinstance(interval_ms, int) or interval_ms <= 0:
            LOG.warning("Hello without a usable heartbeat_interval: %r", interval_ms)
            return

        self.state.reset_heartbeat(now, interval_ms / 1000)
        LOG.info("Hello received, heartbeat every %d ms", interval_ms)

    async def handle_dispatch(self, frame: GatewayFrame, sink: MessageSink) -> bool:
        if frame.s is not None:
            sequence = frame.sequence
            if sequence is None:
                LOG.warning("Ignoring invalid sequence number %r", frame.s)
            else:
                self.state.last_sequence = sequence

        if frame.event_type not in MESSAGE_CREATE_EVENTS:
            LOG.debug("Ignoring dispatch %s", frame.event_type)
            return True

        message = self.normalize(frame)
        try:
            await sink(message)
        except SinkClosed:
            LOG.info("Message sink closed, ending gateway session")
            return False
        return True

    def normalize(self, frame: GatewayFrame) -> ChannelMessage:
        payload = frame.payload

        def text(key: str, default: str) -> str:
            value = payload.get(key)
            return value if isinstance(value, str) else default

        return ChannelMessage(
            id=text("id", "unknown"),
            sender=text("channel_id", "unknown"),
            content=text("content", ""),
            channel=self.config.channel_tag,
            timestamp=int(self.clock()),
        )
