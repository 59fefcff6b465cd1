"""Bayeux (CometD) client over a websocket.

The transport owns one socket at a time and drives the
handshake -> connect -> connected state machine. Any failure tears the
socket down and re-enters the handshake after a backoff delay. Server advice
to re-handshake is honoured on the same socket; an outright handshake
rejection means the push subscription id is no longer valid and is escalated
through ``on_handshake_rejected``.
"""

from __future__ import annotations

import asyncio
import json
import time
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import TYPE_CHECKING, Any, Protocol

from loguru import logger
from websockets.asyncio.client import connect as ws_connect
from websockets.exceptions import ConnectionClosed, WebSocketException
from websockets.protocol import State

from avanza_api.backoff import BackoffScheduler
from avanza_api.core.config import AvanzaConfig
from avanza_api.core.constants import (
    BAYEUX_VERSION,
    CONNECTION_TYPE,
    HANDSHAKE_ACTION,
    META_CONNECT,
    META_DISCONNECT,
    META_HANDSHAKE,
    META_SUBSCRIBE,
    META_UNSUBSCRIBE,
    SUPPORTED_CONNECTION_TYPES,
    WEBSOCKET_ACTION,
)
from avanza_api.core.events import EventDispatcher
from avanza_api.core.telemetry import TelemetryReporter

if TYPE_CHECKING:
    from avanza_api.subscriptions import SubscriptionRegistry


class PushSocket(Protocol):
    """Subset of ``websockets`` ClientConnection used by the transport."""

    state: State
    transport: Any

    async def send(self, message: str) -> None: ...

    def __aiter__(self) -> Any: ...


SocketConnector = Callable[[str], Awaitable[PushSocket]]


class TransportState(str, Enum):
    """Bayeux session state."""

    DISCONNECTED = "disconnected"
    HANDSHAKING = "handshaking"
    CONNECTED = "connected"


def _current_task() -> asyncio.Task[Any] | None:
    try:
        return asyncio.current_task()
    except RuntimeError:
        return None


def _cancel(task: asyncio.Task[Any] | None) -> None:
    # Never cancel the task doing the teardown; it finishes on its own
    if task is not None and not task.done() and task is not _current_task():
        task.cancel()


class BayeuxTransport:
    """Maintain the push socket and its Bayeux session."""

    def __init__(
        self,
        config: AvanzaConfig,
        backoff: BackoffScheduler,
        dispatcher: EventDispatcher,
        *,
        subscription_id: Callable[[], str | None],
        on_handshake_rejected: Callable[[], None],
        connect: SocketConnector | None = None,
        clock: Callable[[], float] = time.monotonic,
        telemetry: TelemetryReporter | None = None,
    ) -> None:
        self.config = config
        self._backoff = backoff
        self._dispatcher = dispatcher
        self._subscription_id = subscription_id
        self._on_handshake_rejected = on_handshake_rejected
        self._connect = connect or self._default_connect
        self._clock = clock
        self._telemetry = telemetry
        self._registry: SubscriptionRegistry | None = None

        self.state = TransportState.DISCONNECTED
        self.client_id: str | None = None
        self.message_count = 1
        self.restart_count = 0
        self.last_connect_at = 0.0
        self.advice_timeout = config.advice_timeout_seconds

        self._socket: PushSocket | None = None
        self._outbox: asyncio.Queue[str] | None = None
        self._reader_task: asyncio.Task[None] | None = None
        self._writer_task: asyncio.Task[None] | None = None
        self._monitor_task: asyncio.Task[None] | None = None
        self._handshake_timer: asyncio.TimerHandle | None = None
        self._reopen_timer: asyncio.TimerHandle | None = None

    def attach_registry(self, registry: SubscriptionRegistry) -> None:
        """Attach the registry notified about connects and subscription acks."""
        self._registry = registry

    @property
    def connected(self) -> bool:
        return self.state is TransportState.CONNECTED

    @property
    def started(self) -> bool:
        return self._reader_task is not None or self._reopen_timer is not None

    @property
    def socket_open(self) -> bool:
        return self._socket is not None and self._socket.state is State.OPEN

    async def _default_connect(self, url: str) -> PushSocket:
        return await ws_connect(url, user_agent_header=self.config.user_agent)

    # Lifecycle

    def start(self) -> None:
        """Open the socket unless it is already open or scheduled to reopen."""
        if self.started:
            return
        self._open()

    def _open(self) -> None:
        self._reopen_timer = None
        self._outbox = asyncio.Queue()
        loop = asyncio.get_running_loop()
        self._reader_task = loop.create_task(self._run_socket(self._outbox))
        self._monitor_task = loop.create_task(self._monitor())

    def restart(self) -> None:
        """Terminate the socket and reopen it after a backoff delay."""
        self.restart_count += 1
        logger.debug("Restarting push socket (restart #{})", self.restart_count)
        if self._telemetry is not None:
            self._telemetry.info("push.restart", context={"count": self.restart_count})
        self._teardown()
        # A restart must not inherit handshake throttling from the dying socket
        self._backoff.reset(HANDSHAKE_ACTION)
        if self._reopen_timer is not None:
            self._reopen_timer.cancel()
        delay = self._backoff.delay_for(WEBSOCKET_ACTION)
        self._reopen_timer = asyncio.get_running_loop().call_later(delay, self._open)

    def shutdown(self) -> None:
        """Tear the socket down for good."""
        self._teardown()
        if self._reopen_timer is not None:
            self._reopen_timer.cancel()
            self._reopen_timer = None

    def _teardown(self) -> None:
        reader, writer, monitor = self._reader_task, self._writer_task, self._monitor_task
        self._reader_task = self._writer_task = self._monitor_task = None
        for task in (reader, writer, monitor):
            _cancel(task)
        if self._handshake_timer is not None:
            self._handshake_timer.cancel()
            self._handshake_timer = None

        socket, self._socket = self._socket, None
        self._outbox = None
        if socket is not None:
            socket.transport.abort()

        self.state = TransportState.DISCONNECTED
        self.client_id = None

    # Socket I/O

    async def _run_socket(self, outbox: asyncio.Queue[str]) -> None:
        try:
            socket = await self._connect(self.config.push_url)
        except (OSError, TimeoutError, WebSocketException) as exc:
            logger.debug("Could not open push socket: {}", exc)
            self.restart()
            return

        self._socket = socket
        self.last_connect_at = self._clock()
        self._writer_task = asyncio.get_running_loop().create_task(
            self._write_frames(socket, outbox)
        )
        self._handshake()

        try:
            async for frame in socket:
                self.handle_frame(frame)
        except ConnectionClosed as exc:
            logger.debug("Push socket closed: {}", exc)
        else:
            logger.debug("Push socket closed by server")
        self.restart()

    async def _write_frames(self, socket: PushSocket, outbox: asyncio.Queue[str]) -> None:
        while True:
            frame = await outbox.get()
            try:
                await socket.send(frame)
            except ConnectionClosed as exc:
                # The reader observes the same close and restarts
                logger.debug("Push socket send failed: {}", exc)
                return

    def send(self, message: dict[str, Any]) -> bool:
        """Queue one Bayeux message, wrapped in a single-element batch.

        Returns False when the socket is not open and nothing was queued.
        """
        if self._outbox is None or not self.socket_open:
            return False
        envelope = {**message, "id": str(self.message_count)}
        self.message_count += 1
        self._outbox.put_nowait(json.dumps([envelope]))
        return True

    # Liveness

    async def _monitor(self) -> None:
        while self._monitor_task is _current_task():
            await asyncio.sleep(self.config.liveness_interval_seconds)
            self.check_liveness()

    def check_liveness(self) -> bool:
        """Restart when the socket is not open or the heartbeat went stale.

        The staleness window starts when the socket opens, so a handshake in
        progress gets one full advised timeout plus grace before it is
        considered stuck. Returns False when a restart was triggered.
        """
        if not self._subscription_id():
            # Nothing to keep alive until a push subscription id exists
            return True
        if not self.socket_open:
            logger.debug("Push socket is not open; restarting")
            self.restart()
            return False
        deadline = self.last_connect_at + self.advice_timeout + self.config.liveness_grace_seconds
        if deadline < self._clock():
            logger.debug("Push heartbeat is stale; restarting")
            if self._telemetry is not None:
                self._telemetry.warning("push.liveness_stale", context={"state": self.state.value})
            self.restart()
            return False
        return True

    # Bayeux protocol

    def _handshake(self) -> None:
        self.client_id = None
        self.state = TransportState.HANDSHAKING
        if not self._subscription_id():
            logger.debug("No push subscription id yet; handshake deferred")
            return
        if self._handshake_timer is not None:
            self._handshake_timer.cancel()
        delay = self._backoff.delay_for(HANDSHAKE_ACTION)
        self._handshake_timer = asyncio.get_running_loop().call_later(
            delay, self._send_handshake
        )

    def _send_handshake(self) -> None:
        self._handshake_timer = None
        subscription_id = self._subscription_id()
        if not subscription_id:
            return
        self.send(
            {
                "advice": {"timeout": 60000, "interval": 0},
                "channel": META_HANDSHAKE,
                "ext": {"subscriptionId": subscription_id},
                "minimumVersion": BAYEUX_VERSION,
                "supportedConnectionTypes": list(SUPPORTED_CONNECTION_TYPES),
                "version": BAYEUX_VERSION,
            }
        )

    def _send_connect(self, advice: dict[str, Any] | None = None) -> None:
        message: dict[str, Any] = {
            "channel": META_CONNECT,
            "clientId": self.client_id,
            "connectionType": CONNECTION_TYPE,
        }
        if advice is not None:
            message["advice"] = advice
        self.send(message)

    def send_subscribe(self, channel_path: str) -> bool:
        return self.send(
            {"channel": META_SUBSCRIBE, "clientId": self.client_id, "subscription": channel_path}
        )

    def send_unsubscribe(self, channel_path: str) -> bool:
        return self.send(
            {"channel": META_UNSUBSCRIBE, "clientId": self.client_id, "subscription": channel_path}
        )

    def handle_frame(self, frame: str | bytes) -> None:
        """Process one inbound batch of Bayeux messages."""
        try:
            batch = json.loads(frame)
        except ValueError:
            logger.debug("Ignoring non-JSON push frame: {!r}", frame[:200])
            return
        if isinstance(batch, dict):
            batch = [batch]
        if not isinstance(batch, list):
            logger.debug("Ignoring push frame that is not a batch: {!r}", batch)
            return
        for message in batch:
            if not isinstance(message, dict) or not message:
                continue
            self._handle_message(message)

    def _handle_message(self, message: dict[str, Any]) -> None:
        if message.get("error"):
            logger.debug("Push error on {}: {}", message.get("channel"), message["error"])

        channel = message.get("channel")
        if channel == META_HANDSHAKE:
            self._on_handshake(message)
        elif channel == META_CONNECT:
            self._on_connect(message)
        elif channel == META_DISCONNECT:
            if self.client_id:
                self._handshake()
        elif channel == META_SUBSCRIBE:
            if self._registry is not None:
                self._registry.handle_subscribe_ack(message)
        elif channel == META_UNSUBSCRIBE:
            if self._registry is not None:
                self._registry.handle_unsubscribe_ack(message)
        elif isinstance(channel, str) and channel:
            self._dispatcher.dispatch(channel, message.get("data"))

    def _on_handshake(self, message: dict[str, Any]) -> None:
        if message.get("successful"):
            self.client_id = message.get("clientId")
            self._send_connect(advice={"timeout": 0})
            return

        advice = message.get("advice") or {}
        if advice.get("reconnect") == "handshake":
            self._handshake()
            return

        logger.warning("Push handshake rejected: {}", message.get("error"))
        if self._telemetry is not None:
            self._telemetry.warning(
                "push.handshake_rejected", context={"error": message.get("error")}
            )
        self.client_id = None
        self.state = TransportState.DISCONNECTED
        self._on_handshake_rejected()

    def _on_connect(self, message: dict[str, Any]) -> None:
        # Replies to a connect sent by a superseded client must not drive the state
        sender = message.get("clientId", self.client_id)
        if self.client_id is None or sender != self.client_id:
            logger.debug("Ignoring connect reply for stale client {}", sender)
            return

        advice = message.get("advice")
        keep_going = message.get("successful") and (
            not advice
            or (
                advice.get("reconnect") not in ("none", "handshake")
                and not advice.get("interval", 0) < 0
            )
        )
        if not keep_going:
            if self.client_id:
                self._handshake()
            return

        if advice and advice.get("timeout") is not None:
            self.advice_timeout = advice["timeout"] / 1000
        self.last_connect_at = self._clock()
        self._send_connect()
        if not self.connected:
            self.state = TransportState.CONNECTED
            logger.debug("Push session connected as {}", self.client_id)
            if self._registry is not None:
                self._registry.resubscribe_all(self.client_id)
