"""Interaction context: the owned objects of one running service.

Wires ``SyncHub``, ``PromptQueue``, ``RequestBroker``, ``SessionHistory``
and the ``SerialExecutor`` together.  The FastAPI lifespan builds one and
stores it on ``app.state.interaction``; tests build their own.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from loguru import logger

from askbridge.interaction.broker import RequestBroker
from askbridge.interaction.executor import SerialExecutor
from askbridge.interaction.history import SessionHistory
from askbridge.interaction.hub import SyncHub
from askbridge.interaction.queue import PromptQueue
from askbridge.interaction.store.local import LocalHistoryStore
from askbridge.interaction.store.memory import MemoryHistoryStore
from askbridge.interaction.tools import InteractionTools

if TYPE_CHECKING:
    from askbridge.interaction.broker import LocalSurface
    from askbridge.interaction.settings import AskBridgeSettings
    from askbridge.interaction.store.base import HistoryStore


def create_history_store(settings: AskBridgeSettings) -> HistoryStore:
    """Create the history store backend based on configuration."""
    if settings.history_store == "local":
        return LocalHistoryStore(settings.data_root, prefix=settings.data_prefix, limit=settings.history_limit)
    return MemoryHistoryStore(limit=settings.history_limit)


@dataclass
class InteractionContext:
    """Everything a request handler or socket needs, in one place."""

    executor: SerialExecutor
    hub: SyncHub
    queue: PromptQueue
    broker: RequestBroker
    history: SessionHistory
    tools: InteractionTools
    access_code: str

    @classmethod
    def create(
        cls,
        access_code: str,
        *,
        store: HistoryStore | None = None,
        history_limit: int = 100,
        queue_enabled: bool = True,
        queue_paused: bool = False,
        processing_timeout: float | None = 30.0,
        request_timeout: float | None = None,
        outbox_size: int = 256,
        local_surface: LocalSurface | None = None,
    ) -> InteractionContext:
        executor = SerialExecutor()
        hub = SyncHub(access_code, outbox_size=outbox_size)
        queue = PromptQueue(hub, enabled=queue_enabled, paused=queue_paused)
        history = SessionHistory(store, limit=history_limit)
        broker = RequestBroker(
            queue,
            hub,
            history,
            local_surface=local_surface,
            processing_timeout=processing_timeout,
        )
        hub.bind(broker, queue, history, executor)
        tools = InteractionTools(broker, executor, queue, request_timeout=request_timeout)
        return cls(
            executor=executor,
            hub=hub,
            queue=queue,
            broker=broker,
            history=history,
            tools=tools,
            access_code=access_code,
        )

    @classmethod
    def from_settings(
        cls,
        settings: AskBridgeSettings,
        *,
        local_surface: LocalSurface | None = None,
    ) -> InteractionContext:
        return cls.create(
            settings.resolve_access_code(),
            store=create_history_store(settings),
            history_limit=settings.history_limit,
            queue_enabled=settings.queue_enabled,
            queue_paused=settings.queue_paused,
            processing_timeout=settings.processing_timeout,
            request_timeout=settings.request_timeout,
            outbox_size=settings.outbox_size,
            local_surface=local_surface,
        )

    # -- Lifecycle -------------------------------------------------------------

    def start(self) -> None:
        """Start the executor.  Must be called on the running event loop."""
        self.executor.start()

    async def stop(self) -> None:
        """Refuse new requests, settle the pending one, and release everything."""
        if self.executor.running:
            await self.executor.call(self.broker.begin_shutdown)
        else:
            self.broker.begin_shutdown()
        self.hub.close()
        await self.executor.stop()
        await self.history.flush()
        logger.info("Interaction context stopped")
