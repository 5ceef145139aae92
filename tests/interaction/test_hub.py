"""Unit tests for SyncHub: authentication, fan-out and inbound relay."""

from __future__ import annotations

import asyncio
import json

import pytest

from askbridge.interaction.broker import RequestBroker
from askbridge.interaction.context import InteractionContext
from askbridge.interaction.history import SessionHistory
from askbridge.interaction.hub import ClientConnection, SyncHub
from askbridge.interaction.models.enums import FrameType, ResolutionSource
from askbridge.interaction.models.events import processing_changed_event
from askbridge.interaction.models.request import RequestSpec
from askbridge.interaction.queue import PromptQueue


@pytest.fixture
def sync_hub(access_code: str) -> SyncHub:
    hub = SyncHub(access_code, outbox_size=8)
    queue = PromptQueue(hub)
    broker = RequestBroker(queue, hub, SessionHistory(), processing_timeout=None)
    hub.bind(broker, queue)
    return hub


def _frames(conn: ClientConnection) -> list[dict]:
    frames = []
    while not conn.outbox.empty():
        frames.append(conn.outbox.get_nowait())
    return frames


def _authed(hub: SyncHub, access_code: str) -> ClientConnection:
    conn = hub.connect()
    assert hub.authenticate(conn.socket_id, access_code) is True
    _frames(conn)
    return conn


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------


async def test_authenticate_success_sends_snapshot(sync_hub: SyncHub, access_code: str) -> None:
    conn = sync_hub.connect()

    assert sync_hub.authenticate(conn.socket_id, access_code) is True

    [frame] = _frames(conn)
    assert frame["event"] == "authenticated"
    assert frame["success"] is True
    assert frame["snapshot"]["pendingRequest"] is None
    assert frame["snapshot"]["queue"] == []
    assert conn.authenticated is True
    assert sync_hub.authenticated_count == 1


async def test_authenticate_failure_reveals_no_state(sync_hub: SyncHub) -> None:
    sync_hub._broker.register(RequestSpec(prompt="secret question"))
    conn = sync_hub.connect()

    assert sync_hub.authenticate(conn.socket_id, "0000") is False
    assert sync_hub.authenticate(conn.socket_id, "") is False

    frames = _frames(conn)
    assert [frame["success"] for frame in frames] == [False, False]
    assert all("snapshot" not in frame for frame in frames)
    assert conn.authenticated is False


async def test_authenticate_unknown_socket(sync_hub: SyncHub, access_code: str) -> None:
    assert sync_hub.authenticate("ws_missing", access_code) is False


# ---------------------------------------------------------------------------
# Fan-out
# ---------------------------------------------------------------------------


async def test_broadcast_reaches_only_authenticated(sync_hub: SyncHub, access_code: str) -> None:
    authed = _authed(sync_hub, access_code)
    anonymous = sync_hub.connect()

    recipients = sync_hub.broadcast(processing_changed_event(True))

    assert recipients == 1
    [frame] = _frames(authed)
    assert frame == {"event": FrameType.MESSAGE, "data": {"type": "processingChanged", "active": True}}
    assert _frames(anonymous) == []


async def test_broker_activity_is_broadcast(sync_hub: SyncHub, access_code: str) -> None:
    conn = _authed(sync_hub, access_code)

    handle = sync_hub._broker.register(RequestSpec(prompt="Deploy now?"))
    sync_hub._broker.submit_local(handle.id, "yes")

    types = [frame["data"]["type"] for frame in _frames(conn)]
    assert types == ["pendingRequest", "requestResolved", "processingChanged"]


async def test_snapshot_is_side_effect_free(sync_hub: SyncHub) -> None:
    sync_hub._queue.enqueue("A")
    first = sync_hub.get_full_state().to_wire()
    second = sync_hub.get_full_state().to_wire()
    assert first == second
    assert len(sync_hub._queue) == 1


async def test_late_joiner_converges(sync_hub: SyncHub, access_code: str) -> None:
    early = _authed(sync_hub, access_code)
    sync_hub._queue.enqueue("A")
    sync_hub._queue.set_paused(True)
    handle = sync_hub._broker.register(RequestSpec(prompt="Pick one"))
    _frames(early)

    late = sync_hub.connect()
    sync_hub.authenticate(late.socket_id, access_code)

    [frame] = _frames(late)
    snapshot = frame["snapshot"]
    assert snapshot == sync_hub.get_full_state().to_wire()
    assert snapshot["pendingRequest"]["id"] == handle.id
    assert snapshot["queuePaused"] is True
    assert [item["text"] for item in snapshot["queue"]] == ["A"]


async def test_extras_are_included_and_failing_providers_skipped(sync_hub: SyncHub) -> None:
    def broken() -> None:
        msg = "boom"
        raise RuntimeError(msg)

    sync_hub.register_extra("settings", lambda: {"theme": "dark"})
    sync_hub.register_extra("broken", broken)

    extras = sync_hub.get_full_state().extras
    assert extras == {"settings": {"theme": "dark"}}


async def test_overflow_replaces_backlog_with_snapshot(sync_hub: SyncHub, access_code: str) -> None:
    conn = _authed(sync_hub, access_code)

    for index in range(20):
        sync_hub.broadcast(processing_changed_event(index % 2 == 0))

    frames = _frames(conn)
    assert len(frames) <= 8
    assert any(frame["event"] == FrameType.STATE for frame in frames)


# ---------------------------------------------------------------------------
# Inbound frames
# ---------------------------------------------------------------------------


async def test_malformed_frames_get_error(sync_hub: SyncHub) -> None:
    conn = sync_hub.connect()

    await sync_hub.handle_frame(conn.socket_id, "not json")
    await sync_hub.handle_frame(conn.socket_id, {"event": "explode"})

    frames = _frames(conn)
    assert [frame["event"] for frame in frames] == [FrameType.ERROR, FrameType.ERROR]
    assert frames[0]["message"].startswith("Malformed frame")


async def test_unauthenticated_messages_are_rejected(sync_hub: SyncHub) -> None:
    conn = sync_hub.connect()

    await sync_hub.handle_frame(conn.socket_id, {"event": "getState"})
    await sync_hub.handle_frame(conn.socket_id, {"event": "message", "data": {"type": "queueClear"}})

    frames = _frames(conn)
    assert [frame["message"] for frame in frames] == ["Not authenticated", "Not authenticated"]


async def test_authenticate_frame_and_get_state(sync_hub: SyncHub, access_code: str) -> None:
    conn = sync_hub.connect()

    await sync_hub.handle_frame(conn.socket_id, json.dumps({"event": "authenticate", "code": access_code}))
    await sync_hub.handle_frame(conn.socket_id, json.dumps({"event": "getState"}))

    auth_frame, state_frame = _frames(conn)
    assert auth_frame["success"] is True
    assert state_frame["event"] == FrameType.STATE
    assert state_frame["snapshot"] == auth_frame["snapshot"]


async def test_submit_response_resolves_request(sync_hub: SyncHub, access_code: str) -> None:
    conn = _authed(sync_hub, access_code)
    handle = sync_hub._broker.register(RequestSpec(prompt="Ship it?"))

    frame = {"event": "message", "data": {"type": "submitResponse", "requestId": handle.id, "value": "yes"}}
    await sync_hub.handle_frame(conn.socket_id, frame)

    result = handle.future.result()
    assert result.source is ResolutionSource.REMOTE
    assert result.value == "yes"


async def test_queue_messages_are_relayed(sync_hub: SyncHub, access_code: str) -> None:
    conn = _authed(sync_hub, access_code)

    for data in (
        {"type": "queueAdd", "text": "A", "id": "a"},
        {"type": "queueAdd", "text": "B", "id": "b"},
        {"type": "queueReorder", "fromIndex": 1, "toIndex": 0},
        {"type": "queueEdit", "id": "a", "text": "A2"},
        {"type": "setPaused", "paused": True},
    ):
        await sync_hub.handle_frame(conn.socket_id, {"event": "message", "data": data})

    assert [item.text for item in sync_hub._queue.items()] == ["B", "A2"]
    assert sync_hub._queue.paused is True


async def test_queue_add_answers_pending_request(sync_hub: SyncHub, access_code: str) -> None:
    conn = _authed(sync_hub, access_code)
    handle = sync_hub._broker.register(RequestSpec(prompt="Next step?"))

    await sync_hub.handle_frame(conn.socket_id, {"event": "message", "data": {"type": "queueAdd", "text": "deploy"}})

    result = handle.future.result()
    assert result.source is ResolutionSource.QUEUE
    assert result.value == "deploy"
    assert len(sync_hub._queue) == 0


async def test_resume_frame_answers_pending_request(sync_hub: SyncHub, access_code: str) -> None:
    conn = _authed(sync_hub, access_code)
    sync_hub._queue.set_paused(True)
    sync_hub._queue.enqueue("go ahead")
    handle = sync_hub._broker.register(RequestSpec(prompt="Proceed?"))
    assert handle.resolved is False

    await sync_hub.handle_frame(conn.socket_id, {"event": "message", "data": {"type": "setPaused", "paused": False}})

    assert handle.future.result().value == "go ahead"


async def test_frames_after_executor_stop_get_error(ctx: InteractionContext, access_code: str) -> None:
    conn = _authed(ctx.hub, access_code)
    await ctx.executor.stop()

    await ctx.hub.handle_frame(conn.socket_id, {"event": "message", "data": {"type": "queueAdd", "text": "late"}})

    [frame] = _frames(conn)
    assert frame == {"event": FrameType.ERROR, "message": "Server is shutting down"}
    assert len(ctx.queue) == 0


async def test_invalid_queue_text_becomes_error_frame(sync_hub: SyncHub, access_code: str) -> None:
    conn = _authed(sync_hub, access_code)

    await sync_hub.handle_frame(conn.socket_id, {"event": "message", "data": {"type": "queueAdd", "text": "  "}})

    [frame] = _frames(conn)
    assert frame["event"] == FrameType.ERROR
    assert "empty" in frame["message"]


async def test_racing_remote_submissions_through_executor(ctx: InteractionContext, access_code: str) -> None:
    hub = ctx.hub
    first = _authed(hub, access_code)
    second = _authed(hub, access_code)
    handle = await ctx.executor.call(ctx.broker.register, RequestSpec(prompt="Which?"))

    await asyncio.gather(
        hub.handle_frame(
            first.socket_id,
            {"event": "message", "data": {"type": "submitResponse", "requestId": handle.id, "value": "one"}},
        ),
        hub.handle_frame(
            second.socket_id,
            {"event": "message", "data": {"type": "submitResponse", "requestId": handle.id, "value": "two"}},
        ),
    )

    assert handle.future.result().value == "one"
    types = [frame["data"]["type"] for frame in _frames(first) if frame["event"] == FrameType.MESSAGE]
    assert types.count("requestResolved") == 1


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


async def test_messages_stream_ends_on_disconnect(sync_hub: SyncHub, access_code: str) -> None:
    conn = _authed(sync_hub, access_code)
    sync_hub.broadcast(processing_changed_event(True))
    sync_hub.disconnect(conn.socket_id)

    received = [frame async for frame in sync_hub.messages(conn.socket_id)]
    # Disconnected ids are forgotten immediately.
    assert received == []
    assert sync_hub.connection_count == 0


async def test_close_ends_every_writer(sync_hub: SyncHub, access_code: str) -> None:
    conn = _authed(sync_hub, access_code)
    stream = sync_hub.messages(conn.socket_id)
    reader = asyncio.ensure_future(anext(stream))
    await asyncio.sleep(0)

    sync_hub.broadcast(processing_changed_event(True))
    assert (await reader)["data"]["type"] == "processingChanged"

    sync_hub.close()
    with pytest.raises(StopAsyncIteration):
        await anext(stream)
    assert sync_hub.connection_count == 0
