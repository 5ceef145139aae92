"""Tests for the agent-facing tools against a fully wired context."""

from __future__ import annotations

import asyncio

import pytest

from askbridge.interaction.broker import ConflictError
from askbridge.interaction.context import InteractionContext
from askbridge.interaction.models.enums import PlanReviewStatus, RequestKind, ResolutionSource
from askbridge.interaction.models.request import (
    AttachmentRef,
    Choice,
    PendingRequest,
    PlanComment,
    Question,
    QuestionAnswer,
    QuestionOption,
)
from askbridge.interaction.store.memory import MemoryHistoryStore
from askbridge.interaction.tools import ATTACHMENTS_ONLY_TEXT, MAX_QUESTIONS, validate_questions


async def _pending(ctx: InteractionContext) -> PendingRequest:
    """Wait until the tool under test has registered its request."""
    for _ in range(100):
        if ctx.broker.current is not None:
            return ctx.broker.current
        await asyncio.sleep(0)
    pytest.fail("no request was registered")


# ---------------------------------------------------------------------------
# ask_question
# ---------------------------------------------------------------------------


async def test_ask_question_detects_choices(ctx: InteractionContext) -> None:
    task = asyncio.create_task(ctx.tools.ask_question("Which database? 1. Postgres 2. MySQL 3. SQLite"))
    request = await _pending(ctx)

    assert request.kind is RequestKind.QUESTION
    assert [choice.label for choice in request.choices] == ["Postgres", "MySQL", "SQLite"]

    await ctx.executor.call(ctx.broker.submit_remote, request.id, "2")
    result = await task
    assert result.response == "2"
    assert result.source is ResolutionSource.REMOTE
    assert result.queued is True
    assert result.error is None


async def test_explicit_choices_are_normalized(ctx: InteractionContext) -> None:
    choices = [Choice(label="Yes", value="y"), Choice(label=" Yes ", value="again"), Choice(label="No", value="")]
    task = asyncio.create_task(ctx.tools.ask_question("Continue with the migration?", choices=choices))
    request = await _pending(ctx)

    assert request.choices == [Choice(label="Yes", value="y"), Choice(label="No", value="No")]
    ctx.broker.cancel(request.id)
    await task


async def test_yes_no_question_is_an_approval(ctx: InteractionContext) -> None:
    task = asyncio.create_task(ctx.tools.ask_question("Should I proceed?"))
    request = await _pending(ctx)

    assert request.kind is RequestKind.APPROVAL
    assert request.choices is None

    await ctx.executor.call(ctx.broker.submit_local, request.id, "yes")
    assert (await task).response == "yes"


async def test_blank_prompt_is_a_validation_error(ctx: InteractionContext) -> None:
    result = await ctx.tools.ask_question("   ")
    assert result.error is not None
    assert ctx.broker.current is None


async def test_queued_prompt_answers_immediately(ctx: InteractionContext) -> None:
    await ctx.executor.call(ctx.queue.enqueue, "Use Postgres")

    result = await ctx.tools.ask_question("Which database should I use?")

    assert result.response == "Use Postgres"
    assert result.source is ResolutionSource.QUEUE
    assert len(ctx.queue) == 0


async def test_attachments_only_answer_gets_placeholder(ctx: InteractionContext) -> None:
    task = asyncio.create_task(ctx.tools.ask_question("Anything else to consider?"))
    request = await _pending(ctx)

    await ctx.executor.call(ctx.broker.submit_local, request.id, "", [AttachmentRef(id="f1", name="log.txt")])

    result = await task
    assert result.response == ATTACHMENTS_ONLY_TEXT
    assert result.attachments[0].name == "log.txt"


async def test_reused_request_id_conflicts(ctx: InteractionContext) -> None:
    await ctx.executor.call(ctx.queue.enqueue, "first")
    await ctx.tools.ask_question("Name?", request_id="req_fixed")

    with pytest.raises(ConflictError):
        await ctx.tools.ask_question("Name again?", request_id="req_fixed")


async def test_cancelling_the_tool_call_cancels_the_request(ctx: InteractionContext) -> None:
    task = asyncio.create_task(ctx.tools.ask_question("What next?"))
    request = await _pending(ctx)

    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert ctx.broker.current is None
    [entry] = ctx.history.entries()
    assert entry.id == request.id
    assert entry.source is ResolutionSource.CANCELLED


async def test_request_timeout_cancels(access_code: str) -> None:
    ctx = InteractionContext.create(
        access_code,
        store=MemoryHistoryStore(),
        processing_timeout=None,
        request_timeout=0.01,
    )
    ctx.start()
    try:
        result = await ctx.tools.ask_question("What next?")
    finally:
        await ctx.stop()

    assert result.source is ResolutionSource.CANCELLED
    assert result.response == "Timed out waiting for a response"


async def test_newer_request_supersedes_waiting_tool(ctx: InteractionContext) -> None:
    first = asyncio.create_task(ctx.tools.ask_question("First?"))
    await _pending(ctx)
    second = asyncio.create_task(ctx.tools.ask_question("Second?"))

    result = await first
    assert result.source is ResolutionSource.SUPERSEDED

    request = await _pending(ctx)
    assert request.prompt == "Second?"
    ctx.broker.cancel(request.id)
    await second


# ---------------------------------------------------------------------------
# ask_questions
# ---------------------------------------------------------------------------


def _question(text: str, header: str, *labels: str) -> Question:
    return Question(header=header, question=text, options=[QuestionOption(label=label) for label in labels])


def test_validate_questions() -> None:
    with pytest.raises(ValueError, match="at least one"):
        validate_questions([])
    with pytest.raises(ValueError, match="at most"):
        validate_questions([_question(f"Q{i}?", "H") for i in range(MAX_QUESTIONS + 1)])
    with pytest.raises(ValueError, match="question 2"):
        validate_questions([_question("Ok?", "A"), _question(" ", "B")])


async def test_ask_questions_validation_error_is_returned(ctx: InteractionContext) -> None:
    result = await ctx.tools.ask_questions([])
    assert result.error is not None
    assert result.answers == []


async def test_single_question_becomes_plain_question(ctx: InteractionContext) -> None:
    task = asyncio.create_task(ctx.tools.ask_questions([_question("Which cache?", "Cache", "Redis", "Valkey")]))
    request = await _pending(ctx)

    assert request.kind is RequestKind.QUESTION
    assert request.context == "Cache"
    assert [choice.value for choice in request.choices] == ["Redis", "Valkey"]

    await ctx.executor.call(ctx.broker.submit_remote, request.id, "Valkey")
    result = await task
    assert result.answers == [QuestionAnswer(header="Cache", selected_options=["Valkey"])]


async def test_multi_question_structured_answers(ctx: InteractionContext) -> None:
    questions = [_question("Which cache?", "Cache", "Redis", "Valkey"), _question("Which port?", "Port")]
    task = asyncio.create_task(ctx.tools.ask_questions(questions))
    request = await _pending(ctx)

    assert request.kind is RequestKind.MULTI_QUESTION
    assert request.prompt == "2 questions"
    assert len(request.questions) == 2

    answers = [
        QuestionAnswer(header="Cache", selected_options=["Redis"]),
        QuestionAnswer(header="Port", freeform_text="6380"),
    ]
    await ctx.executor.call(lambda: ctx.broker.submit_local(request.id, answers=answers))
    result = await task
    assert result.answers == answers
    assert result.source is ResolutionSource.LOCAL


async def test_multi_question_text_answer_applies_to_all(ctx: InteractionContext) -> None:
    await ctx.executor.call(ctx.queue.enqueue, "defaults are fine")

    result = await ctx.tools.ask_questions([_question("A?", "A"), _question("B?", "B")])

    assert [answer.freeform_text for answer in result.answers] == ["defaults are fine", "defaults are fine"]


async def test_cancelled_multi_question_reports_error(ctx: InteractionContext) -> None:
    task = asyncio.create_task(ctx.tools.ask_questions([_question("A?", "A"), _question("B?", "B")]))
    request = await _pending(ctx)

    ctx.broker.cancel(request.id, "User dismissed")

    result = await task
    assert result.source is ResolutionSource.CANCELLED
    assert result.error == "User dismissed"


# ---------------------------------------------------------------------------
# review_plan
# ---------------------------------------------------------------------------


async def test_blank_plan_is_rejected(ctx: InteractionContext) -> None:
    result = await ctx.tools.review_plan("")
    assert result.status is PlanReviewStatus.CANCELLED
    assert result.error is not None


@pytest.mark.parametrize(
    ("value", "comments", "status"),
    [
        ("", [], PlanReviewStatus.APPROVED),
        (
            "",
            [PlanComment(revised_part="step 2", instruction="use a transaction")],
            PlanReviewStatus.APPROVED_WITH_COMMENTS,
        ),
        ("recreateWithChanges", [], PlanReviewStatus.RECREATE_WITH_CHANGES),
        ("APPROVED", [], PlanReviewStatus.APPROVED),
    ],
)
async def test_plan_review_statuses(
    ctx: InteractionContext,
    value: str,
    comments: list[PlanComment],
    status: PlanReviewStatus,
) -> None:
    task = asyncio.create_task(ctx.tools.review_plan("1. Migrate\n2. Deploy", title="Release"))
    request = await _pending(ctx)
    assert request.kind is RequestKind.PLAN_REVIEW
    assert request.title == "Release"

    await ctx.executor.call(lambda: ctx.broker.submit_remote(request.id, value, comments=comments))

    result = await task
    assert result.status is status
    assert result.comments == comments
    assert result.review_id == request.id


async def test_queued_text_sends_plan_back(ctx: InteractionContext) -> None:
    await ctx.executor.call(ctx.queue.enqueue, "Split step 2 in two")

    result = await ctx.tools.review_plan("1. Migrate\n2. Deploy")

    assert result.status is PlanReviewStatus.RECREATE_WITH_CHANGES
    assert result.comments == [PlanComment(instruction="Split step 2 in two")]


async def test_cancelled_plan_review(ctx: InteractionContext) -> None:
    task = asyncio.create_task(ctx.tools.review_plan("1. Migrate"))
    request = await _pending(ctx)
    assert request.title == "Plan Review"

    ctx.broker.cancel(request.id)

    assert (await task).status is PlanReviewStatus.CANCELLED
