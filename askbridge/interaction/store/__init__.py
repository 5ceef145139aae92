"""History store implementations."""

from askbridge.interaction.store.base import HistoryStore
from askbridge.interaction.store.local import LocalHistoryStore
from askbridge.interaction.store.memory import MemoryHistoryStore

__all__ = ["HistoryStore", "LocalHistoryStore", "MemoryHistoryStore"]
