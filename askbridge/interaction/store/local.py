"""Local filesystem history store.

Stores the history as one JSON document under the data root with an
optional namespace prefix::

    {data_root}/{prefix}/history.json

When prefix is None, the path collapses to::

    {data_root}/history.json

Uses ``anyio.to_thread.run_sync`` for non-blocking file I/O.  Writes are
atomic: data is written to a temporary file in the same directory, then
renamed to the target path, so a crash mid-write never leaves a corrupt
file behind.  Appends are serialised with an ``anyio.Lock`` because each
one is a read-modify-write of the whole document.
"""

from __future__ import annotations

import contextlib
import os
import tempfile
from functools import partial
from pathlib import Path

import anyio
from anyio import to_thread
from loguru import logger
from pydantic import TypeAdapter, ValidationError

from askbridge.interaction.models.history import HistoryEntry

_entries_adapter = TypeAdapter(list[HistoryEntry])


class LocalHistoryStore:
    """Local filesystem implementation of the HistoryStore protocol."""

    def __init__(self, data_root: str | Path, *, prefix: str | None = None, limit: int = 100) -> None:
        base = Path(data_root)
        if prefix:
            base = base / prefix
        self._path = base / "history.json"
        self._limit = limit
        self._lock = anyio.Lock()

    @property
    def path(self) -> Path:
        return self._path

    # -- Write -----------------------------------------------------------------

    async def append(self, entry: HistoryEntry) -> None:
        async with self._lock:
            entries = await self._load()
            entries.insert(0, entry)
            del entries[self._limit :]
            await self._save(entries)

    async def clear(self) -> None:
        async with self._lock:
            await to_thread.run_sync(partial(_unlink, self._path))

    # -- Read ------------------------------------------------------------------

    async def read_all(self) -> list[HistoryEntry]:
        async with self._lock:
            return await self._load()

    # -- Internals -------------------------------------------------------------

    async def _load(self) -> list[HistoryEntry]:
        try:
            raw = await to_thread.run_sync(partial(_read_file, self._path))
        except FileNotFoundError:
            return []
        try:
            return _entries_adapter.validate_json(raw)
        except ValidationError:
            # A damaged file must not take the broker down; start over.
            logger.warning("History file {} is unreadable, starting a fresh history", self._path)
            return []

    async def _save(self, entries: list[HistoryEntry]) -> None:
        data = _entries_adapter.dump_json(entries, indent=2, by_alias=True).decode("utf-8")
        await to_thread.run_sync(partial(_atomic_write, self._path, data))


# -- Sync helpers (run in thread pool) -----------------------------------------


def _atomic_write(path: Path, data: str) -> None:
    """Write data atomically: temp file + rename."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=path.parent, suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(data)
        os.replace(tmp_path, path)
    except BaseException:
        with contextlib.suppress(OSError):
            os.unlink(tmp_path)
        raise


def _read_file(path: Path) -> str:
    """Read file contents.  Raises ``FileNotFoundError`` if missing."""
    return path.read_text(encoding="utf-8")


def _unlink(path: Path) -> None:
    """Remove a file.  No-op if it doesn't exist."""
    path.unlink(missing_ok=True)
