"""Remote wire protocol models.

Outbound ``message`` payloads are built with the ``*_event`` constructors
below, which keeps the broadcast vocabulary closed (see ``EventType``).
Inbound frames are validated with ``parse_client_frame``; anything outside
the vocabulary fails validation and is answered with an ``error`` frame.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field, TypeAdapter

from askbridge.interaction.models.enums import EventType
from askbridge.interaction.models.request import (
    AttachmentRef,
    PendingRequest,
    PlanComment,
    QueueItem,
    QuestionAnswer,
    ResolutionResult,
    WireModel,
)

# ---------------------------------------------------------------------------
# Outbound
# ---------------------------------------------------------------------------


class HubEvent(BaseModel):
    """A state-changing event fanned out to every authenticated client."""

    type: EventType
    payload: dict[str, Any] = Field(default_factory=dict)

    def to_wire(self) -> dict[str, Any]:
        return {"type": self.type.value, **self.payload}


def pending_request_event(request: PendingRequest) -> HubEvent:
    return HubEvent(type=EventType.PENDING_REQUEST, payload={"request": request.to_wire()})


def request_resolved_event(request: PendingRequest, result: ResolutionResult) -> HubEvent:
    return HubEvent(
        type=EventType.REQUEST_RESOLVED,
        payload={
            "requestId": request.id,
            "kind": request.kind.value,
            "source": result.source.value,
            "value": result.value,
        },
    )


def queue_updated_event(items: list[QueueItem], *, enabled: bool, paused: bool) -> HubEvent:
    return HubEvent(
        type=EventType.QUEUE_UPDATED,
        payload={"queue": [item.to_wire() for item in items], "enabled": enabled, "paused": paused},
    )


def processing_changed_event(active: bool) -> HubEvent:
    return HubEvent(type=EventType.PROCESSING_CHANGED, payload={"active": active})


# ---------------------------------------------------------------------------
# Inbound ``message`` payloads
# ---------------------------------------------------------------------------


class SubmitResponse(WireModel):
    type: Literal["submitResponse"]
    request_id: str
    value: str = ""
    attachments: list[AttachmentRef] = Field(default_factory=list)
    answers: list[QuestionAnswer] | None = None
    comments: list[PlanComment] = Field(default_factory=list)


class QueueAdd(WireModel):
    type: Literal["queueAdd"]
    text: str
    id: str | None = None
    attachments: list[AttachmentRef] = Field(default_factory=list)


class QueueEdit(WireModel):
    type: Literal["queueEdit"]
    id: str
    text: str


class QueueRemove(WireModel):
    type: Literal["queueRemove"]
    id: str


class QueueReorder(WireModel):
    type: Literal["queueReorder"]
    from_index: int
    to_index: int


class QueueClear(WireModel):
    type: Literal["queueClear"]


class SetPaused(WireModel):
    type: Literal["setPaused"]
    paused: bool


class SetEnabled(WireModel):
    type: Literal["setEnabled"]
    enabled: bool


InboundMessage = Annotated[
    SubmitResponse | QueueAdd | QueueEdit | QueueRemove | QueueReorder | QueueClear | SetPaused | SetEnabled,
    Field(discriminator="type"),
]


# ---------------------------------------------------------------------------
# Inbound frames
# ---------------------------------------------------------------------------


class AuthenticateFrame(BaseModel):
    event: Literal["authenticate"]
    code: str = ""


class GetStateFrame(BaseModel):
    event: Literal["getState"]


class MessageFrame(BaseModel):
    event: Literal["message"]
    data: InboundMessage


ClientFrame = Annotated[AuthenticateFrame | GetStateFrame | MessageFrame, Field(discriminator="event")]

_client_frame_adapter: TypeAdapter[AuthenticateFrame | GetStateFrame | MessageFrame] = TypeAdapter(ClientFrame)


def parse_client_frame(raw: str | bytes | dict[str, Any]) -> AuthenticateFrame | GetStateFrame | MessageFrame:
    """Validate a client frame, raw JSON text or already decoded.

    Raises ``pydantic.ValidationError``, including for text that is not JSON.
    """
    if isinstance(raw, str | bytes):
        return _client_frame_adapter.validate_json(raw)
    return _client_frame_adapter.validate_python(raw)
