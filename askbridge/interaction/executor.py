"""Single-writer executor for broker and queue state.

Every state mutation -- a local click arriving over HTTP, a remote click
arriving over a WebSocket, a queue edit -- is submitted here and executed
one at a time, in arrival order, by a single worker task.  The commands
themselves are plain synchronous callables that never await, so a
compare-and-clear inside one of them cannot interleave with another.

Foreign threads use ``call_threadsafe``; everything on the event loop uses
``call``.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
from functools import partial
from typing import TYPE_CHECKING, Any, TypeVar

from loguru import logger

if TYPE_CHECKING:
    from collections.abc import Callable

T = TypeVar("T")


class ExecutorClosedError(RuntimeError):
    """Raised when submitting to an executor that is not running."""


class SerialExecutor:
    """FIFO command queue drained by one asyncio task."""

    def __init__(self) -> None:
        self._commands: asyncio.Queue[tuple[Callable[[], Any], asyncio.Future[Any]] | None] | None = None
        self._worker: asyncio.Task[None] | None = None
        self._loop: asyncio.AbstractEventLoop | None = None

    # -- Lifecycle -------------------------------------------------------------

    def start(self) -> None:
        """Start the worker on the running loop.  Idempotent."""
        if self.running:
            return
        self._loop = asyncio.get_running_loop()
        self._commands = asyncio.Queue()
        self._worker = asyncio.create_task(self._run(), name="askbridge-serial-executor")
        logger.debug("SerialExecutor: started")

    async def stop(self) -> None:
        """Finish queued commands, then stop the worker."""
        if self._worker is None or self._commands is None:
            return
        await self._commands.put(None)
        await self._worker
        self._worker = None
        self._commands = None
        logger.debug("SerialExecutor: stopped")

    @property
    def running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    # -- Submission ------------------------------------------------------------

    async def call(self, fn: Callable[..., T], /, *args: Any, **kwargs: Any) -> T:
        """Run ``fn(*args, **kwargs)`` on the executor and return its result."""
        if not self.running or self._commands is None:
            raise ExecutorClosedError
        future: asyncio.Future[T] = asyncio.get_running_loop().create_future()
        await self._commands.put((partial(fn, *args, **kwargs), future))
        return await future

    def call_threadsafe(self, fn: Callable[..., T], /, *args: Any, **kwargs: Any) -> concurrent.futures.Future[T]:
        """Submit from a non-loop thread; returns a ``concurrent.futures.Future``."""
        if self._loop is None or not self.running:
            raise ExecutorClosedError
        return asyncio.run_coroutine_threadsafe(self.call(fn, *args, **kwargs), self._loop)

    # -- Worker ----------------------------------------------------------------

    async def _run(self) -> None:
        assert self._commands is not None  # noqa: S101
        while True:
            command = await self._commands.get()
            if command is None:
                return
            fn, future = command
            if future.done():
                # Caller gave up (cancelled) before its turn came.
                continue
            try:
                result = fn()
            except Exception as exc:
                future.set_exception(exc)
            else:
                future.set_result(result)
