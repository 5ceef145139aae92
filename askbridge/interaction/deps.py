"""FastAPI dependency injection for the interaction context.

Usage in route handlers::

    @router.post("/things")
    async def do_thing(ctx: Interaction) -> ThingResponse:
        ...

``get_interaction`` raises HTTP 503 when the lifespan has not built a
context (or has already torn it down).  Routers that mutate state are also
guarded by ``require_token``, which checks the bearer token stored on
``app.state.auth_token`` and raises 401 on mismatch.
"""

from __future__ import annotations

import secrets
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from askbridge.interaction.context import InteractionContext

_bearer = HTTPBearer(auto_error=False)


def get_interaction(request: Request) -> InteractionContext:
    """Return the live interaction context."""
    ctx: InteractionContext | None = getattr(request.app.state, "interaction", None)
    if ctx is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Interaction service is not running.",
        )
    return ctx


def require_token(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(_bearer)],
) -> None:
    """Reject requests without the configured bearer token."""
    expected: str | None = getattr(request.app.state, "auth_token", None)
    if expected is None:
        return
    if credentials is None or not secrets.compare_digest(credentials.credentials.encode(), expected.encode()):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing bearer token.",
            headers={"WWW-Authenticate": "Bearer"},
        )


# -- Annotated type aliases for concise route signatures ---------------------

Interaction = Annotated[InteractionContext, Depends(get_interaction)]
"""Annotated dependency: the running ``InteractionContext``."""
