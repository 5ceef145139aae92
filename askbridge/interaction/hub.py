"""Remote sync hub.

Tracks remote WebSocket connections, authenticates them with the shared
access code, fans state-changing events out to authenticated connections,
and relays their inbound messages to the broker and queue.

Reconciliation is two-tier: incremental events via ``broadcast`` for
connections that stay up, and a full ``StateSnapshot`` on authentication
and on every ``getState``.  A snapshot always replaces whatever the client
had cached, so a client that missed events converges on its next resync.

Each connection owns a bounded outbox drained by its transport writer
task.  ``broadcast`` never blocks: when an outbox overflows, the backlog is
discarded and replaced by one fresh snapshot, which supersedes every event
that was dropped.
"""

from __future__ import annotations

import asyncio
import contextlib
import secrets
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from functools import partial
from typing import TYPE_CHECKING, Any

from loguru import logger
from pydantic import ValidationError

from askbridge.interaction.executor import ExecutorClosedError, SerialExecutor
from askbridge.interaction.models.enums import FrameType
from askbridge.interaction.models.events import (
    AuthenticateFrame,
    GetStateFrame,
    QueueAdd,
    QueueClear,
    QueueEdit,
    QueueRemove,
    QueueReorder,
    SetEnabled,
    SetPaused,
    SubmitResponse,
    parse_client_frame,
)
from askbridge.interaction.models.history import StateSnapshot

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable

    from askbridge.interaction.broker import RequestBroker
    from askbridge.interaction.history import SessionHistory
    from askbridge.interaction.models.events import HubEvent, InboundMessage
    from askbridge.interaction.queue import PromptQueue

Frame = dict[str, Any]


@dataclass
class ClientConnection:
    """One remote transport connection.  Never persisted."""

    socket_id: str
    outbox: asyncio.Queue[Frame | None]
    authenticated: bool = False
    connected_at: datetime = field(default_factory=datetime.now)


class SyncHub:
    """Authenticated fan-out and inbound relay for remote clients."""

    def __init__(self, access_code: str, *, outbox_size: int = 256) -> None:
        self._access_code = access_code
        self._outbox_size = outbox_size
        self._connections: dict[str, ClientConnection] = {}
        self._extras: dict[str, Callable[[], Any]] = {}

        self._broker: RequestBroker | None = None
        self._queue: PromptQueue | None = None
        self._history: SessionHistory | None = None
        self._executor: SerialExecutor | None = None

    def bind(
        self,
        broker: RequestBroker,
        queue: PromptQueue,
        history: SessionHistory | None = None,
        executor: SerialExecutor | None = None,
    ) -> None:
        """Attach the components the hub reads snapshots from and relays to."""
        self._broker = broker
        self._queue = queue
        self._history = history
        self._executor = executor

    def register_extra(self, name: str, provider: Callable[[], Any]) -> None:
        """Add externally-owned display state to every snapshot under *name*."""
        self._extras[name] = provider

    # -- Connections -----------------------------------------------------------

    def connect(self, socket_id: str | None = None) -> ClientConnection:
        socket_id = socket_id or f"ws_{uuid.uuid4().hex[:12]}"
        conn = ClientConnection(socket_id=socket_id, outbox=asyncio.Queue(maxsize=self._outbox_size))
        self._connections[socket_id] = conn
        logger.debug("Hub: connection {} opened ({} total)", socket_id, len(self._connections))
        return conn

    def disconnect(self, socket_id: str) -> None:
        conn = self._connections.pop(socket_id, None)
        if conn is None:
            return
        _close_outbox(conn)
        logger.debug("Hub: connection {} closed ({} remaining)", socket_id, len(self._connections))

    def get(self, socket_id: str) -> ClientConnection | None:
        return self._connections.get(socket_id)

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    @property
    def authenticated_count(self) -> int:
        return sum(1 for conn in self._connections.values() if conn.authenticated)

    def close(self) -> None:
        """Disconnect every connection.  Writers drain and exit."""
        for socket_id in list(self._connections):
            self.disconnect(socket_id)
        logger.info("Hub: all remote connections closed")

    async def messages(self, socket_id: str) -> AsyncIterator[Frame]:
        """Yield outbound frames for *socket_id* until it is disconnected."""
        conn = self._connections.get(socket_id)
        if conn is None:
            return
        while True:
            frame = await conn.outbox.get()
            if frame is None:
                return
            yield frame

    # -- Authentication --------------------------------------------------------

    def authenticate(self, socket_id: str, credential: str) -> bool:
        """Check *credential* against the access code.

        On success the connection is promoted and receives a snapshot.  On
        failure it only receives a negative acknowledgement, never state.
        """
        conn = self._connections.get(socket_id)
        if conn is None:
            return False
        if not credential or not secrets.compare_digest(credential.encode(), self._access_code.encode()):
            logger.warning("Hub: rejected access code from {}", socket_id)
            self._push(conn, {"event": FrameType.AUTHENTICATED, "success": False, "message": "Invalid access code"})
            return False
        conn.authenticated = True
        logger.info("Hub: {} authenticated", socket_id)
        snapshot = self.get_full_state().to_wire()
        self._push(conn, {"event": FrameType.AUTHENTICATED, "success": True, "snapshot": snapshot})
        return True

    # -- Outbound --------------------------------------------------------------

    def broadcast(self, event: HubEvent) -> int:
        """Send *event* to every authenticated connection.  Returns the recipient count."""
        frame: Frame = {"event": FrameType.MESSAGE, "data": event.to_wire()}
        recipients = 0
        for conn in list(self._connections.values()):
            if not conn.authenticated:
                continue
            self._push(conn, frame)
            recipients += 1
        return recipients

    def get_full_state(self) -> StateSnapshot:
        """Build an authoritative snapshot.  Side-effect free."""
        extras: dict[str, Any] = {}
        for name, provider in self._extras.items():
            try:
                extras[name] = provider()
            except Exception:
                logger.exception("Hub: extra state provider {!r} failed", name)
        broker, queue = self._broker, self._queue
        return StateSnapshot(
            pending_request=broker.current if broker is not None else None,
            queue=queue.items() if queue is not None else [],
            queue_enabled=queue.enabled if queue is not None else False,
            queue_paused=queue.paused if queue is not None else False,
            processing=broker.processing if broker is not None else False,
            history=self._history.entries() if self._history is not None else [],
            extras=extras,
        )

    def send_error(self, socket_id: str, message: str) -> None:
        conn = self._connections.get(socket_id)
        if conn is not None:
            self._push(conn, {"event": FrameType.ERROR, "message": message})

    def _push(self, conn: ClientConnection, frame: Frame) -> None:
        try:
            conn.outbox.put_nowait(frame)
        except asyncio.QueueFull:
            if not conn.authenticated:
                return
            logger.warning("Hub: outbox of {} overflowed, replacing backlog with a snapshot", conn.socket_id)
            _drain(conn.outbox)
            conn.outbox.put_nowait({"event": FrameType.STATE, "snapshot": self.get_full_state().to_wire()})

    # -- Inbound ---------------------------------------------------------------

    async def handle_frame(self, socket_id: str, raw: str | bytes | Frame) -> None:
        """Process one client frame.  Never raises for bad input."""
        conn = self._connections.get(socket_id)
        if conn is None:
            return
        try:
            frame = parse_client_frame(raw)
        except ValidationError as exc:
            logger.debug("Hub: malformed frame from {}: {}", socket_id, exc)
            self.send_error(socket_id, f"Malformed frame ({exc.error_count()} validation errors)")
            return

        if isinstance(frame, AuthenticateFrame):
            self.authenticate(socket_id, frame.code)
            return
        if not conn.authenticated:
            self.send_error(socket_id, "Not authenticated")
            return
        if isinstance(frame, GetStateFrame):
            self._push(conn, {"event": FrameType.STATE, "snapshot": self.get_full_state().to_wire()})
            return

        try:
            await self._dispatch(frame.data)
        except ExecutorClosedError:
            self.send_error(socket_id, "Server is shutting down")
        except ValueError as exc:
            self.send_error(socket_id, str(exc))

    async def _dispatch(self, message: InboundMessage) -> None:
        if self._broker is None or self._queue is None:
            msg = "Hub is not bound to a broker"
            raise ValueError(msg)
        command = self._command_for(message, self._broker, self._queue)
        if self._executor is None:
            command()
        else:
            # Raises ExecutorClosedError once the executor has stopped.
            await self._executor.call(command)

    @staticmethod
    def _command_for(message: InboundMessage, broker: RequestBroker, queue: PromptQueue) -> Callable[[], Any]:
        if isinstance(message, SubmitResponse):
            return partial(
                broker.submit_remote,
                message.request_id,
                message.value,
                message.attachments,
                answers=message.answers,
                comments=message.comments,
            )
        if isinstance(message, QueueAdd):
            return partial(broker.enqueue, message.text, message.attachments, item_id=message.id)
        if isinstance(message, QueueEdit):
            return partial(queue.edit, message.id, message.text)
        if isinstance(message, QueueRemove):
            return partial(queue.remove, message.id)
        if isinstance(message, QueueReorder):
            return partial(queue.reorder, message.from_index, message.to_index)
        if isinstance(message, QueueClear):
            return queue.clear
        if isinstance(message, SetPaused):
            return partial(broker.set_queue_paused, message.paused)
        if isinstance(message, SetEnabled):
            return partial(broker.set_queue_enabled, message.enabled)
        msg = f"Unsupported message type: {message.type}"
        raise ValueError(msg)


def _drain(outbox: asyncio.Queue[Frame | None]) -> None:
    with contextlib.suppress(asyncio.QueueEmpty):
        while True:
            outbox.get_nowait()


def _close_outbox(conn: ClientConnection) -> None:
    """Wake the writer with the end-of-stream sentinel, dropping any backlog if full."""
    try:
        conn.outbox.put_nowait(None)
    except asyncio.QueueFull:
        _drain(conn.outbox)
        conn.outbox.put_nowait(None)
