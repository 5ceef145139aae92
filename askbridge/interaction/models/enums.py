"""Shared enumerations used across the interaction service."""

from __future__ import annotations

from enum import StrEnum

# -- Requests ----------------------------------------------------------------


class RequestKind(StrEnum):
    QUESTION = "question"
    APPROVAL = "approval"
    MULTI_QUESTION = "multi-question"
    PLAN_REVIEW = "plan-review"


class ResolutionSource(StrEnum):
    """Who settled a pending request."""

    LOCAL = "local"
    REMOTE = "remote"
    QUEUE = "queue"
    CANCELLED = "cancelled"
    SUPERSEDED = "superseded"


class PlanReviewStatus(StrEnum):
    APPROVED = "approved"
    APPROVED_WITH_COMMENTS = "approvedWithComments"
    RECREATE_WITH_CHANGES = "recreateWithChanges"
    CANCELLED = "cancelled"


# -- History -----------------------------------------------------------------


class HistoryStatus(StrEnum):
    """Durable outcome recorded for a resolved request."""

    COMPLETED = "completed"
    CANCELLED = "cancelled"
    SUPERSEDED = "superseded"


# -- Wire protocol -----------------------------------------------------------


class EventType(StrEnum):
    """Outbound ``message`` types broadcast to remote clients."""

    PENDING_REQUEST = "pendingRequest"
    REQUEST_RESOLVED = "requestResolved"
    QUEUE_UPDATED = "queueUpdated"
    PROCESSING_CHANGED = "processingChanged"


class FrameType(StrEnum):
    """Top-level frame names on the remote WebSocket."""

    # Client -> server
    AUTHENTICATE = "authenticate"
    GET_STATE = "getState"
    MESSAGE = "message"

    # Server -> client
    AUTHENTICATED = "authenticated"
    STATE = "state"
    ERROR = "error"
