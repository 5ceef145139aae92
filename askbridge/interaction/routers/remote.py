"""Remote client WebSocket endpoint.

One socket per remote session.  The socket is registered with the hub,
a writer task drains the connection's outbox, and this handler feeds every
inbound text frame to ``SyncHub.handle_frame``.  Authentication happens
in-band with the access code, so the route is not behind the bearer token.
"""

from __future__ import annotations

import asyncio
import contextlib

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from loguru import logger

from askbridge.interaction.hub import SyncHub

router = APIRouter()


@router.websocket("/ws")
async def remote_socket(websocket: WebSocket) -> None:
    ctx = getattr(websocket.app.state, "interaction", None)
    if ctx is None:
        await websocket.close(code=1013)
        return

    await websocket.accept()
    hub: SyncHub = ctx.hub
    conn = hub.connect()
    writer = asyncio.create_task(_pump(websocket, hub, conn.socket_id), name=f"ws-writer-{conn.socket_id}")
    try:
        while True:
            raw = await websocket.receive_text()
            await hub.handle_frame(conn.socket_id, raw)
    except WebSocketDisconnect:
        logger.debug("Remote {} disconnected", conn.socket_id)
    finally:
        hub.disconnect(conn.socket_id)
        writer.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await writer


async def _pump(websocket: WebSocket, hub: SyncHub, socket_id: str) -> None:
    """Send queued frames until the hub closes the connection."""
    async for frame in hub.messages(socket_id):
        try:
            await websocket.send_json(frame)
        except (WebSocketDisconnect, RuntimeError) as exc:
            logger.debug("Remote {} send failed: {}", socket_id, exc)
            hub.disconnect(socket_id)
            return
    # Outbox closed by the hub (shutdown): end the socket so the reader exits.
    with contextlib.suppress(RuntimeError):
        await websocket.close(code=1001)
