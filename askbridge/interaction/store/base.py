"""History store interface.

The history store is the only place resolved requests outlive the process.
It is append-only from the broker's point of view and is never consulted
for control flow.  The interface is async so file and remote backends can
share it.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from askbridge.interaction.models.history import HistoryEntry


@runtime_checkable
class HistoryStore(Protocol):
    """Async protocol for persisting completion records."""

    async def append(self, entry: HistoryEntry) -> None:
        """Append one entry.  Backends may drop the oldest beyond their limit."""
        ...

    async def read_all(self) -> list[HistoryEntry]:
        """Return stored entries, newest first.  Empty list if nothing stored."""
        ...

    async def clear(self) -> None:
        """Delete all stored entries.  No-op if nothing stored."""
        ...
