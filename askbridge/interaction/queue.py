"""Prompt queue: pre-authored responses waiting to be consumed.

The queue is a plain ordered list plus two flags.  It never decides on its
own whether to auto-consume; the broker checks ``enabled`` / ``paused`` when
a request is registered and after every add, resume or enable it relays.

Every mutation that changes something broadcasts ``queueUpdated`` through
the hub so all surfaces render the same list.  Mutations addressed at an
unknown id or an out-of-range index are silent no-ops: UI edits race with
consumption and that is expected.
"""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

from loguru import logger

from askbridge.interaction.models.events import queue_updated_event
from askbridge.interaction.models.request import AttachmentRef, QueueItem

if TYPE_CHECKING:
    from collections.abc import Sequence

    from askbridge.interaction.hub import SyncHub

# Prompts longer than this are refused; they would be forwarded verbatim to the agent.
MAX_PROMPT_LENGTH = 100_000


class PromptQueue:
    """Ordered holding area for human-authored prompts."""

    def __init__(self, hub: SyncHub | None = None, *, enabled: bool = True, paused: bool = False) -> None:
        self._items: list[QueueItem] = []
        self._enabled = enabled
        self._paused = paused
        self._hub = hub

    # -- Query -----------------------------------------------------------------

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def paused(self) -> bool:
        return self._paused

    def items(self) -> list[QueueItem]:
        """Return a snapshot of the queued items, head first."""
        return list(self._items)

    def get(self, item_id: str) -> QueueItem | None:
        return next((item for item in self._items if item.id == item_id), None)

    def __len__(self) -> int:
        return len(self._items)

    # -- Mutation --------------------------------------------------------------

    def enqueue(
        self,
        text: str,
        attachments: Sequence[AttachmentRef] | None = None,
        *,
        item_id: str | None = None,
    ) -> str:
        """Append a prompt and return its id.

        Raises ``ValueError`` on blank text or text longer than ``MAX_PROMPT_LENGTH``.
        """
        if not text.strip():
            msg = "Queue prompt text cannot be empty"
            raise ValueError(msg)
        if len(text.strip()) > MAX_PROMPT_LENGTH:
            msg = f"Queue prompt text exceeds {MAX_PROMPT_LENGTH} characters"
            raise ValueError(msg)
        if item_id is None or self.get(item_id) is not None:
            item_id = f"q_{uuid.uuid4().hex[:12]}"
        self._items.append(QueueItem(id=item_id, text=text.strip(), attachments=list(attachments or [])))
        logger.debug("Queue: enqueued {} (size={})", item_id, len(self._items))
        self._publish()
        return item_id

    def dequeue(self) -> QueueItem | None:
        """Remove and return the head item, or ``None`` if the queue is empty."""
        if not self._items:
            return None
        item = self._items.pop(0)
        logger.debug("Queue: dequeued {} (remaining={})", item.id, len(self._items))
        self._publish()
        return item

    def remove(self, item_id: str) -> bool:
        item = self.get(item_id)
        if item is None:
            return False
        self._items.remove(item)
        self._publish()
        return True

    def edit(self, item_id: str, new_text: str) -> bool:
        if not new_text.strip() or len(new_text.strip()) > MAX_PROMPT_LENGTH:
            return False
        for index, item in enumerate(self._items):
            if item.id == item_id:
                self._items[index] = item.model_copy(update={"text": new_text.strip()})
                self._publish()
                return True
        return False

    def reorder(self, from_index: int, to_index: int) -> bool:
        size = len(self._items)
        if not (0 <= from_index < size and 0 <= to_index < size) or from_index == to_index:
            return False
        item = self._items.pop(from_index)
        self._items.insert(to_index, item)
        self._publish()
        return True

    def clear(self) -> None:
        if not self._items:
            return
        self._items.clear()
        self._publish()

    def set_enabled(self, enabled: bool) -> None:
        if self._enabled == enabled:
            return
        self._enabled = enabled
        logger.info("Queue: {}", "enabled" if enabled else "disabled")
        self._publish()

    def set_paused(self, paused: bool) -> None:
        if self._paused == paused:
            return
        self._paused = paused
        logger.info("Queue: {}", "paused" if paused else "resumed")
        self._publish()

    # -- Internals -------------------------------------------------------------

    def attach_hub(self, hub: SyncHub) -> None:
        self._hub = hub

    def _publish(self) -> None:
        if self._hub is not None:
            self._hub.broadcast(queue_updated_event(self.items(), enabled=self._enabled, paused=self._paused))
