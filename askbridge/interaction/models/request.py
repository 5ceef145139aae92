"""Pending request, queue and resolution models.

Everything here crosses the remote wire, so fields serialise in camelCase
(``createdAt``, ``multiSelect``) while Python code keeps snake_case names.
Dump with ``model_dump(mode="json", by_alias=True, exclude_none=True)``.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from askbridge.interaction.models.enums import RequestKind, ResolutionSource


class WireModel(BaseModel):
    """Base for models with a camelCase wire representation."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# -- Building blocks ---------------------------------------------------------


class AttachmentRef(WireModel):
    """Opaque attachment reference, resolved by an external collaborator."""

    id: str
    name: str = ""
    uri: str = ""


class Choice(WireModel):
    """A clickable answer.  ``value`` is what gets submitted when clicked."""

    label: str
    value: str


class QuestionOption(WireModel):
    label: str
    description: str | None = None
    recommended: bool = False


class Question(WireModel):
    """One entry of a multi-question request."""

    header: str = "Question"
    question: str
    options: list[QuestionOption] = Field(default_factory=list)
    multi_select: bool = False
    allow_freeform: bool = True


class QuestionAnswer(WireModel):
    header: str
    selected_options: list[str] = Field(default_factory=list)
    freeform_text: str | None = None


class PlanComment(WireModel):
    """A revision the reviewer asks for on part of a plan."""

    revised_part: str = ""
    instruction: str


# -- Pending request ---------------------------------------------------------


class RequestSpec(BaseModel):
    """What a tool invocation asks the broker to register.

    ``request_id`` is normally left unset so the broker mints a fresh id.
    """

    kind: RequestKind = RequestKind.QUESTION
    prompt: str
    context: str | None = None
    choices: list[Choice] | None = None
    questions: list[Question] | None = None
    title: str | None = None
    request_id: str | None = None


class PendingRequest(WireModel):
    """The single in-flight unit of interactivity.  Immutable once created."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str
    kind: RequestKind
    prompt: str
    context: str | None = None
    choices: list[Choice] | None = None
    questions: list[Question] | None = None
    title: str | None = None
    created_at: float = Field(description="time.monotonic() at registration; diagnostics only")


class ResolutionResult(WireModel):
    """How a pending request was settled.  Consumed exactly once."""

    source: ResolutionSource
    value: str = ""
    attachments: list[AttachmentRef] = Field(default_factory=list)
    answers: list[QuestionAnswer] | None = None
    comments: list[PlanComment] = Field(default_factory=list)

    @property
    def from_human(self) -> bool:
        """True when a person (directly or via the queue) produced the value."""
        return self.source in (ResolutionSource.LOCAL, ResolutionSource.REMOTE, ResolutionSource.QUEUE)


# -- Queue -------------------------------------------------------------------


class QueueItem(WireModel):
    """A pre-authored response waiting to be consumed."""

    id: str
    text: str
    attachments: list[AttachmentRef] = Field(default_factory=list)
