"""Request broker: the single in-flight question and its race arbitration.

At most one ``PendingRequest`` exists broker-wide.  Three kinds of
responder compete to settle it -- the local surface, any remote client,
and the prompt queue -- and exactly one wins.  Arbitration is a
compare-and-clear of the current request id.  Every public method here is
synchronous and never awaits, so when commands are funneled through the
``SerialExecutor`` each one runs to completion before the next starts.

The awaiting side (the tool layer) gets a ``PendingHandle`` whose future
is settled exactly once with a ``ResolutionResult``.
"""

from __future__ import annotations

import asyncio
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from loguru import logger

from askbridge.interaction.history import history_status_for, plan_status_for
from askbridge.interaction.models.enums import RequestKind, ResolutionSource
from askbridge.interaction.models.events import (
    pending_request_event,
    processing_changed_event,
    request_resolved_event,
)
from askbridge.interaction.models.history import HistoryEntry
from askbridge.interaction.models.request import PendingRequest, ResolutionResult

if TYPE_CHECKING:
    from collections.abc import Sequence

    from askbridge.interaction.history import SessionHistory
    from askbridge.interaction.hub import SyncHub
    from askbridge.interaction.models.events import HubEvent
    from askbridge.interaction.models.request import AttachmentRef, PlanComment, QuestionAnswer, RequestSpec
    from askbridge.interaction.queue import PromptQueue

SUPERSEDED_MESSAGE = "Superseded by a newer request"

_ID_PREFIXES = {
    RequestKind.QUESTION: "req",
    RequestKind.APPROVAL: "req",
    RequestKind.MULTI_QUESTION: "mq",
    RequestKind.PLAN_REVIEW: "pr",
}


class ConflictError(ValueError):
    """Raised when registering a request id that was already issued."""


class ShuttingDownError(RuntimeError):
    """Raised when attempting to register a request during shutdown."""


@runtime_checkable
class LocalSurface(Protocol):
    """The IDE-side panel.  Rendering is someone else's problem."""

    def show_pending(self, request: PendingRequest) -> None: ...

    def dismiss(self, request_id: str, result: ResolutionResult) -> None: ...


class LoggingSurface:
    """Default local surface when no IDE panel is attached: log only."""

    def show_pending(self, request: PendingRequest) -> None:
        logger.info("Pending {} {}: {}", request.kind, request.id, request.prompt)

    def dismiss(self, request_id: str, result: ResolutionResult) -> None:
        logger.info("Dismissed {} ({})", request_id, result.source)


@dataclass
class PendingHandle:
    """Awaitable side of a registered request."""

    request: PendingRequest
    future: asyncio.Future[ResolutionResult]
    registered_at: datetime = field(default_factory=datetime.now)

    @property
    def id(self) -> str:
        return self.request.id

    @property
    def resolved(self) -> bool:
        return self.future.done()


class RequestBroker:
    """Owns the current pending request and arbitrates who resolves it."""

    def __init__(
        self,
        queue: PromptQueue,
        hub: SyncHub | None = None,
        history: SessionHistory | None = None,
        *,
        local_surface: LocalSurface | None = None,
        processing_timeout: float | None = 30.0,
    ) -> None:
        self._queue = queue
        self._hub = hub
        self._history = history
        self._local_surface: LocalSurface = local_surface or LoggingSurface()
        self._processing_timeout = processing_timeout

        self._current: PendingHandle | None = None
        self._issued_ids: set[str] = set()
        self._processing = False
        self._processing_timer: asyncio.TimerHandle | None = None
        self._shutting_down = False

    # -- Query -----------------------------------------------------------------

    @property
    def current(self) -> PendingRequest | None:
        return self._current.request if self._current is not None else None

    @property
    def current_handle(self) -> PendingHandle | None:
        return self._current

    @property
    def processing(self) -> bool:
        return self._processing

    @property
    def is_shutting_down(self) -> bool:
        return self._shutting_down

    # -- Registration ----------------------------------------------------------

    def register(self, spec: RequestSpec) -> PendingHandle:
        """Make *spec* the current request and return its handle.

        An outstanding request is resolved as ``superseded`` first, and its
        completion is broadcast before the new request is announced.  If the
        queue is enabled, not paused and non-empty, the new request may be
        settled from the queue before this method returns.

        Raises ``ShuttingDownError`` during shutdown and ``ConflictError`` if
        ``spec.request_id`` was issued before.
        """
        if self._shutting_down:
            raise ShuttingDownError
        request_id = spec.request_id or f"{_ID_PREFIXES[spec.kind]}_{uuid.uuid4().hex[:12]}"
        if request_id in self._issued_ids:
            msg = f"Request '{request_id}' is already registered"
            raise ConflictError(msg)

        if self._current is not None:
            logger.info("Broker: request {} superseded by a new registration", self._current.id)
            superseded = ResolutionResult(source=ResolutionSource.SUPERSEDED, value=SUPERSEDED_MESSAGE)
            self._accept(self._current.id, superseded)

        request = PendingRequest(
            id=request_id,
            kind=spec.kind,
            prompt=spec.prompt,
            context=spec.context,
            choices=spec.choices or None,
            questions=spec.questions or None,
            title=spec.title,
            created_at=time.monotonic(),
        )
        handle = PendingHandle(request=request, future=asyncio.get_running_loop().create_future())
        self._issued_ids.add(request_id)
        self._current = handle
        logger.debug("Broker: registered {} {}", request.kind, request_id)

        self._set_processing(False)
        self._local_surface.show_pending(request)
        self._broadcast(pending_request_event(request))
        self.try_auto_consume_from_queue()
        return handle

    def try_auto_consume_from_queue(self) -> bool:
        """Settle the current request from the queue head if the gate is open.

        The gate (enabled, not paused, non-empty) is read now, never cached.
        """
        current = self._current
        if current is None:
            return False
        if not self._queue.enabled or self._queue.paused or len(self._queue) == 0:
            return False
        item = self._queue.dequeue()
        if item is None:
            return False
        logger.info("Broker: auto-consumed queue item {} for {}", item.id, current.id)
        return self._accept(
            current.id,
            ResolutionResult(source=ResolutionSource.QUEUE, value=item.text, attachments=item.attachments),
        )

    # -- Submission ------------------------------------------------------------

    def submit_local(
        self,
        request_id: str,
        value: str = "",
        attachments: Sequence[AttachmentRef] | None = None,
        *,
        answers: Sequence[QuestionAnswer] | None = None,
        comments: Sequence[PlanComment] | None = None,
    ) -> bool:
        """Answer from the local surface.  ``False`` if *request_id* is not current."""
        return self._accept(request_id, _human_result(ResolutionSource.LOCAL, value, attachments, answers, comments))

    def submit_remote(
        self,
        request_id: str,
        value: str = "",
        attachments: Sequence[AttachmentRef] | None = None,
        *,
        answers: Sequence[QuestionAnswer] | None = None,
        comments: Sequence[PlanComment] | None = None,
    ) -> bool:
        """Answer from a remote client.  Losers of the race get ``False`` silently."""
        return self._accept(request_id, _human_result(ResolutionSource.REMOTE, value, attachments, answers, comments))

    def cancel(self, request_id: str, reason: str = "") -> bool:
        """Resolve as ``cancelled``.  Idempotent; ``False`` if already settled."""
        return self._accept(request_id, ResolutionResult(source=ResolutionSource.CANCELLED, value=reason))

    # -- Queue -----------------------------------------------------------------
    #
    # Surfaces change the queue through these so a request that is already
    # waiting gets answered as soon as the gate opens, not only at the next
    # registration.

    def enqueue(
        self,
        text: str,
        attachments: Sequence[AttachmentRef] | None = None,
        *,
        item_id: str | None = None,
    ) -> str:
        """Add a prompt to the queue, then answer the current request from it if allowed."""
        item_id = self._queue.enqueue(text, attachments, item_id=item_id)
        self.try_auto_consume_from_queue()
        return item_id

    def set_queue_paused(self, paused: bool) -> None:
        self._queue.set_paused(paused)
        self.try_auto_consume_from_queue()

    def set_queue_enabled(self, enabled: bool) -> None:
        self._queue.set_enabled(enabled)
        self.try_auto_consume_from_queue()

    # -- Lifecycle -------------------------------------------------------------

    def begin_shutdown(self) -> None:
        """Refuse new registrations and cancel whatever is still pending."""
        self._shutting_down = True
        logger.info("Broker: shutdown initiated, refusing new requests")
        if self._current is not None:
            self.cancel(self._current.id, "Server shutting down")
        self._cancel_processing_timer()

    # -- Internals -------------------------------------------------------------

    def _accept(self, request_id: str, result: ResolutionResult) -> bool:
        current = self._current
        if current is None or current.id != request_id:
            logger.debug("Broker: ignored {} response for stale request {}", result.source, request_id)
            return False
        self._current = None

        if not current.future.done():
            current.future.set_result(result)
        logger.info("Broker: {} resolved by {}", request_id, result.source)

        self._broadcast(request_resolved_event(current.request, result))
        self._local_surface.dismiss(request_id, result)
        if self._history is not None:
            self._history.record(_history_entry(current, result))
        if result.from_human:
            self._set_processing(True)
        return True

    def _broadcast(self, event: HubEvent) -> None:
        if self._hub is not None:
            self._hub.broadcast(event)

    def _set_processing(self, active: bool) -> None:
        self._cancel_processing_timer()
        if active and self._processing_timeout:
            loop = asyncio.get_running_loop()
            self._processing_timer = loop.call_later(self._processing_timeout, self._set_processing, False)
        if self._processing == active:
            return
        self._processing = active
        self._broadcast(processing_changed_event(active))

    def _cancel_processing_timer(self) -> None:
        if self._processing_timer is not None:
            self._processing_timer.cancel()
            self._processing_timer = None


def _human_result(
    source: ResolutionSource,
    value: str,
    attachments: Sequence[AttachmentRef] | None,
    answers: Sequence[QuestionAnswer] | None,
    comments: Sequence[PlanComment] | None,
) -> ResolutionResult:
    return ResolutionResult(
        source=source,
        value=value,
        attachments=list(attachments or []),
        answers=list(answers) if answers is not None else None,
        comments=list(comments or []),
    )


def _history_entry(handle: PendingHandle, result: ResolutionResult) -> HistoryEntry:
    request = handle.request
    prompt = request.title if request.kind is RequestKind.PLAN_REVIEW and request.title else request.prompt
    response = result.value
    if not response and result.answers:
        response = "; ".join(
            f"{answer.header}: {', '.join(answer.selected_options) or answer.freeform_text or ''}"
            for answer in result.answers
        )
    return HistoryEntry(
        id=request.id,
        kind=request.kind,
        prompt=prompt,
        context=request.context,
        response=response,
        source=result.source,
        status=history_status_for(result.source),
        attachments=result.attachments,
        plan_status=plan_status_for(result) if request.kind is RequestKind.PLAN_REVIEW else None,
        created_at=handle.registered_at,
    )
