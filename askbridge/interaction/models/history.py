"""Session history and state snapshot models."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import Field

from askbridge.interaction.models.enums import HistoryStatus, PlanReviewStatus, RequestKind, ResolutionSource
from askbridge.interaction.models.request import AttachmentRef, PendingRequest, QueueItem, WireModel


class HistoryEntry(WireModel):
    """Completion record for one resolved request (append-only)."""

    id: str
    kind: RequestKind
    prompt: str
    context: str | None = None
    response: str = ""
    source: ResolutionSource
    status: HistoryStatus
    attachments: list[AttachmentRef] = Field(default_factory=list)
    plan_status: PlanReviewStatus | None = None
    created_at: datetime
    resolved_at: datetime = Field(default_factory=datetime.now)


class StateSnapshot(WireModel):
    """Authoritative full state sent on (re)connect and on ``getState``.

    Clients must replace any locally cached view with this; a missing
    ``pending_request`` means "nothing is pending", not "unknown".
    """

    pending_request: PendingRequest | None = None
    queue: list[QueueItem] = Field(default_factory=list)
    queue_enabled: bool = True
    queue_paused: bool = False
    processing: bool = False
    history: list[HistoryEntry] = Field(default_factory=list)
    extras: dict[str, Any] = Field(default_factory=dict)

    def to_wire(self) -> dict:
        # Keep ``pendingRequest: null`` on the wire; it is the authoritative "none".
        data = self.model_dump(mode="json", by_alias=True, exclude_none=True)
        data.setdefault("pendingRequest", None)
        return data
