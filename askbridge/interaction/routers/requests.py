"""Pending request endpoints (RPC-style).

The three tool endpoints block until the request is resolved and return
the tool result.  If the calling client goes away first, the tool call is
cancelled and the request is settled as ``cancelled``.

``submit`` is how the local surface answers, including a human rejection,
which is just an answer.  ``cancel`` is the agent side withdrawing a
question it no longer needs answered.  Both go through the serial executor
like every other mutation.
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Awaitable
from typing import TypeVar

from fastapi import APIRouter, HTTPException, Request, status
from loguru import logger

from askbridge.interaction.broker import ConflictError, ShuttingDownError
from askbridge.interaction.deps import Interaction
from askbridge.interaction.executor import ExecutorClosedError
from askbridge.interaction.models.api import (
    AcceptedResponse,
    AskQuestionInput,
    AskQuestionsInput,
    AskUserResult,
    CancelBody,
    MultiQuestionResult,
    PlanReviewResult,
    ReviewPlanInput,
    SubmitBody,
)
from askbridge.interaction.models.request import PendingRequest

router = APIRouter(prefix="/requests", tags=["requests"])

_UNAVAILABLE = "Interaction service is shutting down."

# Seconds between checks for a vanished HTTP client while a tool call waits.
DISCONNECT_POLL_INTERVAL = 0.25

# nginx's "client closed request"; nobody is left to read it.
CLIENT_CLOSED_REQUEST = 499

T = TypeVar("T")


async def _run_tool(request: Request, call: Awaitable[T]) -> T:
    """Await *call*, cancelling it if the HTTP client disconnects first."""
    task = asyncio.ensure_future(call)
    try:
        while True:
            done, _ = await asyncio.wait({task}, timeout=DISCONNECT_POLL_INTERVAL)
            if done:
                return task.result()
            if await request.is_disconnected():
                logger.info("Client disconnected from {}, cancelling tool call", request.url.path)
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task
                raise HTTPException(CLIENT_CLOSED_REQUEST, detail="Client disconnected")
    finally:
        if not task.done():
            task.cancel()


# -- Tools -------------------------------------------------------------------


@router.post("/ask", response_model=AskUserResult)
async def ask(body: AskQuestionInput, ctx: Interaction, request: Request) -> AskUserResult:
    """Ask a question and wait for the answer."""
    try:
        return await _run_tool(
            request,
            ctx.tools.ask_question(body.prompt, body.context, body.choices, request_id=body.request_id),
        )
    except (ShuttingDownError, ExecutorClosedError):
        raise HTTPException(status.HTTP_503_SERVICE_UNAVAILABLE, detail=_UNAVAILABLE) from None
    except ConflictError as exc:
        raise HTTPException(status.HTTP_409_CONFLICT, detail=str(exc)) from None


@router.post("/ask-many", response_model=MultiQuestionResult)
async def ask_many(body: AskQuestionsInput, ctx: Interaction, request: Request) -> MultiQuestionResult:
    """Ask several questions together and wait for all answers."""
    try:
        return await _run_tool(request, ctx.tools.ask_questions(body.questions))
    except (ShuttingDownError, ExecutorClosedError):
        raise HTTPException(status.HTTP_503_SERVICE_UNAVAILABLE, detail=_UNAVAILABLE) from None


@router.post("/review-plan", response_model=PlanReviewResult)
async def review_plan(body: ReviewPlanInput, ctx: Interaction, request: Request) -> PlanReviewResult:
    """Present a plan for review and wait for the verdict."""
    try:
        return await _run_tool(request, ctx.tools.review_plan(body.plan, body.title))
    except (ShuttingDownError, ExecutorClosedError):
        raise HTTPException(status.HTTP_503_SERVICE_UNAVAILABLE, detail=_UNAVAILABLE) from None


# -- Local surface -----------------------------------------------------------


@router.get("/current/get", response_model=PendingRequest | None)
async def get_current(ctx: Interaction) -> PendingRequest | None:
    """Return the pending request, or null when nothing is pending."""
    return ctx.broker.current


@router.post("/{request_id}/submit", response_model=AcceptedResponse)
async def submit(request_id: str, body: SubmitBody, ctx: Interaction) -> AcceptedResponse:
    """Answer from the local surface.  ``accepted`` is false for stale ids."""
    try:
        accepted = await ctx.executor.call(
            ctx.broker.submit_local,
            request_id,
            body.value,
            body.attachments,
            answers=body.answers,
            comments=body.comments,
        )
    except ExecutorClosedError:
        raise HTTPException(status.HTTP_503_SERVICE_UNAVAILABLE, detail=_UNAVAILABLE) from None
    return AcceptedResponse(request_id=request_id, accepted=accepted)


@router.post("/{request_id}/cancel", response_model=AcceptedResponse)
async def cancel(request_id: str, ctx: Interaction, body: CancelBody | None = None) -> AcceptedResponse:
    """Withdraw a pending request on the agent's behalf.  Idempotent.

    Use this when the upstream tool call was abandoned.  A human declining to
    answer submits a response instead.
    """
    reason = body.reason if body is not None else CancelBody().reason
    try:
        accepted = await ctx.executor.call(ctx.broker.cancel, request_id, reason)
    except ExecutorClosedError:
        raise HTTPException(status.HTTP_503_SERVICE_UNAVAILABLE, detail=_UNAVAILABLE) from None
    return AcceptedResponse(request_id=request_id, accepted=accepted)
