"""Prompt queue endpoints (RPC-style).

Thin HTTP adapter over ``PromptQueue``.  Mutations are funneled through the
serial executor and answer with the resulting queue; ``changed`` is false
when the id or indices no longer matched (the queue may have been consumed
in the meantime).
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from fastapi import APIRouter, HTTPException, status

from askbridge.interaction.deps import Interaction
from askbridge.interaction.executor import ExecutorClosedError
from askbridge.interaction.models.api import (
    QueueAddBody,
    QueueEditBody,
    QueueEnableBody,
    QueuePauseBody,
    QueueReorderBody,
    QueueResponse,
)

if TYPE_CHECKING:
    from collections.abc import Callable

    from askbridge.interaction.context import InteractionContext

router = APIRouter(prefix="/queue", tags=["queue"])

_UNAVAILABLE = "Interaction service is shutting down."


def _snapshot(ctx: InteractionContext, changed: bool | None = None) -> QueueResponse:
    queue = ctx.queue
    return QueueResponse(items=queue.items(), enabled=queue.enabled, paused=queue.paused, changed=changed)


async def _mutate(ctx: InteractionContext, fn: Callable[..., Any], /, *args: Any, **kwargs: Any) -> Any:
    try:
        return await ctx.executor.call(fn, *args, **kwargs)
    except ExecutorClosedError:
        raise HTTPException(status.HTTP_503_SERVICE_UNAVAILABLE, detail=_UNAVAILABLE) from None


@router.get("/list", response_model=QueueResponse)
async def list_queue(ctx: Interaction) -> QueueResponse:
    return _snapshot(ctx)


@router.post("/add", response_model=QueueResponse, status_code=status.HTTP_201_CREATED)
async def add_item(body: QueueAddBody, ctx: Interaction) -> QueueResponse:
    """Append a prompt, answering the pending request if the queue is open.

    Blank or oversized text is rejected with 422.
    """
    try:
        await _mutate(ctx, ctx.broker.enqueue, body.text, body.attachments, item_id=body.id)
    except ValueError as exc:
        raise HTTPException(status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from None
    return _snapshot(ctx, changed=True)


@router.post("/{item_id}/edit", response_model=QueueResponse)
async def edit_item(item_id: str, body: QueueEditBody, ctx: Interaction) -> QueueResponse:
    changed = await _mutate(ctx, ctx.queue.edit, item_id, body.text)
    return _snapshot(ctx, changed=changed)


@router.post("/{item_id}/remove", response_model=QueueResponse)
async def remove_item(item_id: str, ctx: Interaction) -> QueueResponse:
    changed = await _mutate(ctx, ctx.queue.remove, item_id)
    return _snapshot(ctx, changed=changed)


@router.post("/reorder", response_model=QueueResponse)
async def reorder_items(body: QueueReorderBody, ctx: Interaction) -> QueueResponse:
    changed = await _mutate(ctx, ctx.queue.reorder, body.from_index, body.to_index)
    return _snapshot(ctx, changed=changed)


@router.post("/clear", response_model=QueueResponse)
async def clear_queue(ctx: Interaction) -> QueueResponse:
    await _mutate(ctx, ctx.queue.clear)
    return _snapshot(ctx, changed=True)


@router.post("/pause", response_model=QueueResponse)
async def pause_queue(body: QueuePauseBody, ctx: Interaction) -> QueueResponse:
    """Pause or resume auto-consumption.  Resuming answers a waiting request."""
    await _mutate(ctx, ctx.broker.set_queue_paused, body.paused)
    return _snapshot(ctx, changed=True)


@router.post("/enable", response_model=QueueResponse)
async def enable_queue(body: QueueEnableBody, ctx: Interaction) -> QueueResponse:
    await _mutate(ctx, ctx.broker.set_queue_enabled, body.enabled)
    return _snapshot(ctx, changed=True)
