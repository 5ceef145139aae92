"""State snapshot and session history endpoints (RPC-style)."""

from __future__ import annotations

from fastapi import APIRouter, Query

from askbridge.interaction.deps import Interaction
from askbridge.interaction.models.history import HistoryEntry, StateSnapshot

router = APIRouter(tags=["state"])


@router.get("/state/get", response_model=StateSnapshot)
async def get_state(ctx: Interaction) -> StateSnapshot:
    """Full snapshot, identical to what remote clients get on ``getState``."""
    return ctx.hub.get_full_state()


@router.get("/history/list", response_model=list[HistoryEntry])
async def list_history(
    ctx: Interaction,
    persisted: bool = Query(False, description="Read from the history store instead of the current session."),
    limit: int = Query(50, ge=1, le=500),
) -> list[HistoryEntry]:
    """Resolved requests, newest first."""
    entries = await ctx.history.load_persisted() if persisted else ctx.history.entries()
    return entries[:limit]


@router.post("/history/clear")
async def clear_history(ctx: Interaction) -> dict[str, str]:
    await ctx.history.clear()
    return {"status": "cleared"}
