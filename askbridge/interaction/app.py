from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.routing import APIRouter
from loguru import logger

from askbridge.interaction.context import InteractionContext
from askbridge.interaction.deps import require_token
from askbridge.interaction.log import setup_logging
from askbridge.interaction.settings import get_settings


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    # -- Startup ---------------------------------------------------------------
    settings = get_settings()
    setup_logging(settings.log_level, log_file=settings.log_file)

    _app.state.auth_token = settings.resolve_auth_token()
    if not settings.auth_token:
        logger.warning("No ASKBRIDGE_AUTH_TOKEN set -- generated token: {}", _app.state.auth_token)

    logger.info("askbridge starting (host={}, port={})", settings.host, settings.port)
    logger.info(
        "History: store={}, limit={}, data_root={}",
        settings.history_store,
        settings.history_limit,
        settings.data_root,
    )

    # -- Interaction context ---------------------------------------------------
    ctx = InteractionContext.from_settings(settings)
    ctx.start()
    _app.state.interaction = ctx
    if settings.access_code:
        logger.info("Remote access: code configured")
    else:
        logger.warning("No ASKBRIDGE_ACCESS_CODE set -- generated access code: {}", ctx.access_code)
    logger.info(
        "Queue: enabled={}, paused={}; request timeout={}",
        ctx.queue.enabled,
        ctx.queue.paused,
        settings.request_timeout,
    )

    yield

    # -- Shutdown --------------------------------------------------------------
    pending = ctx.broker.current
    logger.info("askbridge shutting down (pending={})", pending.id if pending else None)

    # Refuses new requests, cancels the pending one (its waiter returns a
    # cancelled result), closes remote sockets, flushes history writes.
    _app.state.interaction = None
    await ctx.stop()


app = FastAPI(title="askbridge", lifespan=lifespan)

# ---------------------------------------------------------------------------
# API router -- all HTTP endpoints live under /api
# ---------------------------------------------------------------------------
api = APIRouter(prefix="/api")


@api.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


# -- Routers -----------------------------------------------------------------
from askbridge.interaction.routers.queue import router as queue_router  # noqa: E402
from askbridge.interaction.routers.remote import router as remote_router  # noqa: E402
from askbridge.interaction.routers.requests import router as requests_router  # noqa: E402
from askbridge.interaction.routers.state import router as state_router  # noqa: E402

_protected = [Depends(require_token)]
api.include_router(requests_router, dependencies=_protected)
api.include_router(queue_router, dependencies=_protected)
api.include_router(state_router, dependencies=_protected)

app.include_router(api)
app.include_router(remote_router)
