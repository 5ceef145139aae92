"""API request / response schemas.

Two groups live here:

- **Tool** inputs and results (``ask_question``, ``ask_questions``,
  ``review_plan``).  Results are what the agent sees; validation failures
  come back as an ``error`` field rather than an exception.
- **Local surface** bodies for submitting, cancelling and queue edits.

HTTP bodies use snake_case.  Nested wire models (``Choice``, ``Question``,
``AttachmentRef``) accept either spelling.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from askbridge.interaction.models.enums import PlanReviewStatus, ResolutionSource
from askbridge.interaction.models.request import (
    AttachmentRef,
    Choice,
    PlanComment,
    QueueItem,
    Question,
    QuestionAnswer,
)

# ---------------------------------------------------------------------------
# Tool inputs
# ---------------------------------------------------------------------------


class AskQuestionInput(BaseModel):
    prompt: str
    context: str | None = None
    choices: list[Choice] | None = None
    request_id: str | None = Field(default=None, description="Optional; a reused id is rejected with 409.")


class AskQuestionsInput(BaseModel):
    questions: list[Question] = Field(default_factory=list)


class ReviewPlanInput(BaseModel):
    plan: str
    title: str | None = None


# ---------------------------------------------------------------------------
# Tool results
# ---------------------------------------------------------------------------


class AskUserResult(BaseModel):
    """Result of ``ask_question``."""

    response: str = ""
    attachments: list[AttachmentRef] = Field(default_factory=list)
    queued: bool = False
    """Whether queue mode is on, so the agent knows more prompts may follow."""
    source: ResolutionSource | None = None
    error: str | None = None


class MultiQuestionResult(BaseModel):
    """Result of ``ask_questions``; ``answers`` follows question order."""

    answers: list[QuestionAnswer] = Field(default_factory=list)
    source: ResolutionSource | None = None
    error: str | None = None


class PlanReviewResult(BaseModel):
    """Result of ``review_plan``."""

    status: PlanReviewStatus
    comments: list[PlanComment] = Field(default_factory=list)
    review_id: str = ""
    error: str | None = None


# ---------------------------------------------------------------------------
# Local surface
# ---------------------------------------------------------------------------


class SubmitBody(BaseModel):
    value: str = ""
    attachments: list[AttachmentRef] = Field(default_factory=list)
    answers: list[QuestionAnswer] | None = None
    comments: list[PlanComment] = Field(default_factory=list)


class CancelBody(BaseModel):
    reason: str = "Cancelled by user"


class AcceptedResponse(BaseModel):
    """``accepted`` is false when the request was no longer current."""

    request_id: str
    accepted: bool


# ---------------------------------------------------------------------------
# Queue
# ---------------------------------------------------------------------------


class QueueAddBody(BaseModel):
    text: str
    id: str | None = Field(default=None, description="Optional; generated if omitted or already taken.")
    attachments: list[AttachmentRef] = Field(default_factory=list)


class QueueEditBody(BaseModel):
    text: str


class QueueReorderBody(BaseModel):
    from_index: int = Field(ge=0)
    to_index: int = Field(ge=0)


class QueuePauseBody(BaseModel):
    paused: bool


class QueueEnableBody(BaseModel):
    enabled: bool


class QueueResponse(BaseModel):
    items: list[QueueItem]
    enabled: bool
    paused: bool
    changed: bool | None = None
    """Set on mutation responses: false when the mutation was a no-op."""
