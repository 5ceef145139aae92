"""Session history: completion records for resolved requests.

The broker calls ``record`` synchronously from inside its critical section,
so recording must never await.  Entries go into a bounded in-memory list
(the current session, shown in snapshots) right away; persistence to the
configured ``HistoryStore`` is scheduled as a background task and flushed
on shutdown.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from loguru import logger

from askbridge.interaction.models.enums import HistoryStatus, PlanReviewStatus, ResolutionSource

if TYPE_CHECKING:
    from askbridge.interaction.models.history import HistoryEntry
    from askbridge.interaction.models.request import ResolutionResult
    from askbridge.interaction.store.base import HistoryStore


def history_status_for(source: ResolutionSource) -> HistoryStatus:
    """Map a resolution source to the status recorded in history."""
    if source is ResolutionSource.CANCELLED:
        return HistoryStatus.CANCELLED
    if source is ResolutionSource.SUPERSEDED:
        return HistoryStatus.SUPERSEDED
    return HistoryStatus.COMPLETED


def plan_status_for(result: ResolutionResult) -> PlanReviewStatus:
    """Map how a plan review was resolved to the review outcome.

    A status name submitted verbatim wins.  Any other text (typically a queued
    prompt) asks for a revised plan.  A blank submission approves, with
    comments if any were attached.  Cancelled and superseded reviews are
    ``cancelled``.
    """
    if not result.from_human:
        return PlanReviewStatus.CANCELLED
    text = result.value.strip()
    for status in PlanReviewStatus:
        if text.lower() == status.value.lower():
            return status
    if text:
        return PlanReviewStatus.RECREATE_WITH_CHANGES
    return PlanReviewStatus.APPROVED_WITH_COMMENTS if result.comments else PlanReviewStatus.APPROVED


class SessionHistory:
    """Append-only record of resolved requests for the current process."""

    def __init__(self, store: HistoryStore | None = None, *, limit: int = 100) -> None:
        self._store = store
        self._limit = limit
        self._entries: list[HistoryEntry] = []
        self._pending_writes: set[asyncio.Task[None]] = set()

    def record(self, entry: HistoryEntry) -> None:
        """Record a completion.  Never blocks; persistence happens in the background."""
        self._entries.insert(0, entry)
        del self._entries[self._limit :]
        logger.debug("History: recorded {} ({}, {})", entry.id, entry.source, entry.status)

        if self._store is None:
            return
        try:
            task = asyncio.get_running_loop().create_task(self._persist(entry))
        except RuntimeError:
            logger.warning("History: no running loop, entry {} kept in memory only", entry.id)
            return
        self._pending_writes.add(task)
        task.add_done_callback(self._pending_writes.discard)

    def entries(self) -> list[HistoryEntry]:
        """Current-session entries, newest first."""
        return list(self._entries)

    async def load_persisted(self) -> list[HistoryEntry]:
        if self._store is None:
            return []
        return await self._store.read_all()

    async def clear(self) -> None:
        self._entries.clear()
        if self._store is not None:
            await self.flush()
            await self._store.clear()

    async def flush(self) -> None:
        """Wait for every scheduled write to finish."""
        if self._pending_writes:
            await asyncio.gather(*self._pending_writes, return_exceptions=True)

    async def _persist(self, entry: HistoryEntry) -> None:
        assert self._store is not None  # noqa: S101
        try:
            await self._store.append(entry)
        except OSError:
            logger.exception("History: failed to persist entry {}", entry.id)
