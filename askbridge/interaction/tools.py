"""Agent-facing interaction tools.

Each tool maps onto exactly one ``PendingRequest``:

- ``ask_question``: a free-form question, optionally with clickable
  choices (explicit, or detected from the question text).  Choice-less
  yes/no questions are registered as ``approval``.
- ``ask_questions``: several questions answered together.  A single
  question degrades to ``ask_question``.
- ``review_plan``: a plan the human approves, comments on, or sends back.

The tool suspends while the request is pending.  Registration and
timeout-driven cancellation go through the ``SerialExecutor``.  If the
awaiting task itself is cancelled, the request is cancelled on the spot
so every surface dismisses it.

Validation failures come back as results with ``error`` set; they are
never raised to the agent.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from askbridge.interaction.choices import detect_choices, is_approval_question, normalize_choices
from askbridge.interaction.history import plan_status_for
from askbridge.interaction.models.api import AskUserResult, MultiQuestionResult, PlanReviewResult
from askbridge.interaction.models.enums import PlanReviewStatus, RequestKind
from askbridge.interaction.models.request import Choice, PlanComment, QuestionAnswer, RequestSpec

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from askbridge.interaction.broker import PendingHandle, RequestBroker
    from askbridge.interaction.executor import SerialExecutor
    from askbridge.interaction.models.request import Question, ResolutionResult
    from askbridge.interaction.queue import PromptQueue

logger = logging.getLogger(__name__)

MAX_QUESTIONS = 10
ATTACHMENTS_ONLY_TEXT = "(User attached the following files/context without additional text)"
DEFAULT_PLAN_TITLE = "Plan Review"


class QuestionValidationError(ValueError):
    """Raised for malformed tool input; converted to an ``error`` result."""


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def validate_questions(questions: Sequence[Question]) -> list[Question]:
    """Check a multi-question payload.  Raises ``QuestionValidationError``."""
    if not questions:
        msg = "Validation error: at least one question is required"
        raise QuestionValidationError(msg)
    if len(questions) > MAX_QUESTIONS:
        msg = f"Validation error: at most {MAX_QUESTIONS} questions are allowed, got {len(questions)}"
        raise QuestionValidationError(msg)
    for index, question in enumerate(questions, start=1):
        if not question.question.strip():
            msg = f"Validation error: question {index} has no text"
            raise QuestionValidationError(msg)
    return list(questions)


# ---------------------------------------------------------------------------
# Tools
# ---------------------------------------------------------------------------


class InteractionTools:
    """The tool contract, bound to one broker."""

    def __init__(
        self,
        broker: RequestBroker,
        executor: SerialExecutor,
        queue: PromptQueue | None = None,
        *,
        request_timeout: float | None = None,
    ) -> None:
        self._broker = broker
        self._executor = executor
        self._queue = queue
        self._request_timeout = request_timeout

    async def ask_question(
        self,
        prompt: str,
        context: str | None = None,
        choices: Sequence[Choice] | None = None,
        *,
        request_id: str | None = None,
    ) -> AskUserResult:
        """Ask one question and wait for the answer.

        Raises ``ConflictError`` if *request_id* was used before.
        """
        if not prompt.strip():
            return AskUserResult(error="Validation error: question cannot be empty", queued=self._queue_enabled())

        resolved_choices = normalize_choices(choices) if choices else []
        kind = RequestKind.QUESTION
        if not resolved_choices:
            resolved_choices = detect_choices(prompt)
            if not resolved_choices and is_approval_question(prompt):
                kind = RequestKind.APPROVAL

        spec = RequestSpec(
            kind=kind,
            prompt=prompt,
            context=context,
            choices=resolved_choices or None,
            request_id=request_id,
        )
        result = await self._resolve(spec)

        response = result.value
        if result.from_human and result.attachments and not response.strip():
            response = ATTACHMENTS_ONLY_TEXT
        return AskUserResult(
            response=response,
            attachments=result.attachments,
            queued=self._queue_enabled(),
            source=result.source,
        )

    async def ask_questions(self, questions: Sequence[Question]) -> MultiQuestionResult:
        """Ask several questions at once; answers come back in question order."""
        try:
            validated = validate_questions(questions)
        except QuestionValidationError as exc:
            return MultiQuestionResult(error=str(exc))

        if len(validated) == 1:
            return await self._ask_single(validated[0])

        spec = RequestSpec(
            kind=RequestKind.MULTI_QUESTION,
            prompt=f"{len(validated)} questions",
            questions=validated,
        )
        result = await self._resolve(spec)
        if not result.from_human:
            return MultiQuestionResult(source=result.source, error=result.value or f"Request {result.source}")
        return MultiQuestionResult(answers=_answers_for(validated, result), source=result.source)

    async def review_plan(self, plan: str, title: str | None = None) -> PlanReviewResult:
        """Present a plan for approval and wait for the verdict."""
        if not plan.strip():
            return PlanReviewResult(
                status=PlanReviewStatus.CANCELLED,
                error="Validation error: plan content is required and cannot be empty",
            )

        spec = RequestSpec(kind=RequestKind.PLAN_REVIEW, prompt=plan, title=title or DEFAULT_PLAN_TITLE)
        handle = await self._run(self._broker.register, spec)
        result = await self._wait(handle)

        status = plan_status_for(result)
        comments = list(result.comments)
        text = result.value.strip()
        if status is PlanReviewStatus.RECREATE_WITH_CHANGES and text.lower() != status.value.lower():
            comments.append(PlanComment(instruction=text))
        logger.info("Plan review %s finished with %s", handle.id, status)
        return PlanReviewResult(status=status, comments=comments, review_id=handle.id)

    # -- Internals -------------------------------------------------------------

    async def _ask_single(self, question: Question) -> MultiQuestionResult:
        choices = [Choice(label=option.label, value=option.label) for option in question.options]
        spec = RequestSpec(
            kind=RequestKind.QUESTION,
            prompt=question.question,
            context=question.header,
            choices=normalize_choices(choices) or None,
        )
        result = await self._resolve(spec)
        if not result.from_human:
            return MultiQuestionResult(source=result.source, error=result.value or f"Request {result.source}")
        return MultiQuestionResult(answers=_answers_for([question], result), source=result.source)

    async def _resolve(self, spec: RequestSpec) -> ResolutionResult:
        handle = await self._run(self._broker.register, spec)
        return await self._wait(handle)

    async def _wait(self, handle: PendingHandle) -> ResolutionResult:
        try:
            if self._request_timeout:
                return await asyncio.wait_for(asyncio.shield(handle.future), self._request_timeout)
            return await asyncio.shield(handle.future)
        except TimeoutError:
            logger.info("Request %s timed out after %ss", handle.id, self._request_timeout)
            await self._run(self._broker.cancel, handle.id, "Timed out waiting for a response")
            return handle.future.result()
        except asyncio.CancelledError:
            # Settle on the spot; awaiting the executor here would be interrupted.
            self._broker.cancel(handle.id, "Tool call cancelled")
            raise

    async def _run(self, fn: Callable[..., Any], /, *args: Any) -> Any:
        if self._executor.running:
            return await self._executor.call(fn, *args)
        return fn(*args)

    def _queue_enabled(self) -> bool:
        return self._queue.enabled if self._queue is not None else False


def _answers_for(questions: Sequence[Question], result: ResolutionResult) -> list[QuestionAnswer]:
    """Structured answers when the responder gave them, else the text for every question."""
    if result.answers is not None:
        return result.answers
    text = result.value.strip()
    if len(questions) == 1:
        question = questions[0]
        labels = [option.label for option in question.options]
        if text in labels:
            return [QuestionAnswer(header=question.header, selected_options=[text])]
    return [QuestionAnswer(header=question.header, freeform_text=text or None) for question in questions]
