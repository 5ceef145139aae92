"""Data models for the interaction service."""

from askbridge.interaction.models.api import (
    AcceptedResponse,
    AskQuestionInput,
    AskQuestionsInput,
    AskUserResult,
    CancelBody,
    MultiQuestionResult,
    PlanReviewResult,
    QueueAddBody,
    QueueEditBody,
    QueueEnableBody,
    QueuePauseBody,
    QueueReorderBody,
    QueueResponse,
    ReviewPlanInput,
    SubmitBody,
)
from askbridge.interaction.models.enums import (
    EventType,
    FrameType,
    HistoryStatus,
    PlanReviewStatus,
    RequestKind,
    ResolutionSource,
)
from askbridge.interaction.models.events import HubEvent, parse_client_frame
from askbridge.interaction.models.history import HistoryEntry, StateSnapshot
from askbridge.interaction.models.request import (
    AttachmentRef,
    Choice,
    PendingRequest,
    PlanComment,
    QueueItem,
    Question,
    QuestionAnswer,
    QuestionOption,
    RequestSpec,
    ResolutionResult,
)

__all__ = [
    "AcceptedResponse",
    "AskQuestionInput",
    "AskQuestionsInput",
    "AskUserResult",
    "AttachmentRef",
    "CancelBody",
    "Choice",
    "EventType",
    "FrameType",
    "HistoryEntry",
    "HistoryStatus",
    "HubEvent",
    "MultiQuestionResult",
    "PendingRequest",
    "PlanComment",
    "PlanReviewResult",
    "PlanReviewStatus",
    "Question",
    "QuestionAnswer",
    "QuestionOption",
    "QueueAddBody",
    "QueueEditBody",
    "QueueEnableBody",
    "QueueItem",
    "QueuePauseBody",
    "QueueReorderBody",
    "QueueResponse",
    "RequestKind",
    "RequestSpec",
    "ResolutionResult",
    "ResolutionSource",
    "ReviewPlanInput",
    "StateSnapshot",
    "SubmitBody",
    "parse_client_frame",
]
