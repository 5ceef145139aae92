"""In-memory history store (default; nothing survives a restart)."""

from __future__ import annotations

from askbridge.interaction.models.history import HistoryEntry


class MemoryHistoryStore:
    """HistoryStore kept in a list, newest first."""

    def __init__(self, limit: int = 100) -> None:
        self._limit = limit
        self._entries: list[HistoryEntry] = []

    async def append(self, entry: HistoryEntry) -> None:
        self._entries.insert(0, entry)
        del self._entries[self._limit :]

    async def read_all(self) -> list[HistoryEntry]:
        return list(self._entries)

    async def clear(self) -> None:
        self._entries.clear()
