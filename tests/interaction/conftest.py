"""Shared fixtures for interaction tests."""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable
from unittest.mock import MagicMock

import pytest
from httpx import ASGITransport, AsyncClient

from askbridge.interaction.app import app
from askbridge.interaction.broker import RequestBroker
from askbridge.interaction.context import InteractionContext
from askbridge.interaction.history import SessionHistory
from askbridge.interaction.models.enums import EventType
from askbridge.interaction.queue import PromptQueue
from askbridge.interaction.store.memory import MemoryHistoryStore


@pytest.fixture
def hub() -> MagicMock:
    return MagicMock(name="SyncHub")


@pytest.fixture
def broadcasts(hub: MagicMock) -> Callable[[], list[EventType]]:
    """Event types passed to the mocked hub's ``broadcast`` so far, in call order."""
    return lambda: [call.args[0].type for call in hub.broadcast.call_args_list]


@pytest.fixture
def queue(hub: MagicMock) -> PromptQueue:
    return PromptQueue(hub)


@pytest.fixture
def history() -> SessionHistory:
    return SessionHistory(MemoryHistoryStore())


@pytest.fixture
def surface() -> MagicMock:
    return MagicMock(name="LocalSurface")


@pytest.fixture
def broker(queue: PromptQueue, hub: MagicMock, history: SessionHistory, surface: MagicMock) -> RequestBroker:
    return RequestBroker(queue, hub, history, local_surface=surface, processing_timeout=None)


@pytest.fixture
async def ctx(access_code: str) -> AsyncIterator[InteractionContext]:
    """A fully wired, started context with an in-memory history store."""
    context = InteractionContext.create(access_code, store=MemoryHistoryStore(), processing_timeout=None)
    context.start()
    yield context
    await context.stop()


@pytest.fixture
async def client(ctx: InteractionContext, auth_token: str) -> AsyncIterator[AsyncClient]:
    """Authorized async HTTP client wired to the app and the ``ctx`` fixture.

    The app lifespan does NOT run under ``ASGITransport``, so the state it
    would normally set up is assigned here.
    """
    app.state.interaction = ctx
    app.state.auth_token = auth_token

    transport = ASGITransport(app=app)
    headers = {"Authorization": f"Bearer {auth_token}"}
    async with AsyncClient(transport=transport, base_url="http://test", headers=headers) as ac:
        yield ac

    app.state.interaction = None
