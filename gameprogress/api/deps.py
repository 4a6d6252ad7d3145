"""Shared FastAPI dependencies — auth, stores, and sync coordinator injection.

Module-level singletons for each service stub. Route handlers access them
via FastAPI's Depends() system — never by importing stubs directly. When the
team swaps a stub for a real implementation, they change the class here and
every downstream handler picks it up automatically.

TEAM: To wire your real services, replace the stub class on the right side
of each singleton assignment below. The get_* functions and all route
handlers stay unchanged.

Tier 2 service module: imports from hooks/* (Tier 2), hooks/interfaces
(Tier 1), sync/coordinator (Tier 3 service), config, schemas (Tier 1).

Usage:
    from gameprogress.api.deps import get_current_user, get_coordinator

    @router.get("/something")
    async def do_thing(
        user: User = Depends(get_current_user),
        coordinator: SyncCoordinator = Depends(get_coordinator),
    ): ...
"""

import logging

from fastapi import Depends, Header, HTTPException

from gameprogress.config import get_settings
from gameprogress.hooks.auth import FakeAuthService
from gameprogress.hooks.database import InMemoryProgressStore
from gameprogress.hooks.interfaces import AuthService, ProgressStore, SessionStore
from gameprogress.hooks.sessions import InMemorySessionStore
from gameprogress.schemas import ApiError, ApiResponse, User
from gameprogress.sync.coordinator import SyncCoordinator

logger = logging.getLogger("gameprogress")

# ---------------------------------------------------------------------------
# Service singletons (the swap point)
# ---------------------------------------------------------------------------

# TEAM: Replace with your real implementations here.
_auth_service: AuthService = FakeAuthService()
_progress_store: ProgressStore = InMemoryProgressStore()
_session_store: SessionStore = InMemorySessionStore()

# Built on first use so settings are read after the app configures logging.
_coordinator: SyncCoordinator | None = None


# ---------------------------------------------------------------------------
# Dependency providers
# ---------------------------------------------------------------------------


def get_auth_service() -> AuthService:
    """Returns the auth service singleton."""
    return _auth_service


def get_progress_store() -> ProgressStore:
    """Returns the progress store singleton."""
    return _progress_store


def get_session_store() -> SessionStore:
    """Returns the session store singleton."""
    return _session_store


def get_coordinator() -> SyncCoordinator:
    """Returns the sync coordinator singleton, creating it on first call.

    The coordinator holds checkpoint coalescing state, so there must be
    exactly one per process.
    """
    global _coordinator
    if _coordinator is None:
        _coordinator = SyncCoordinator.from_settings(_progress_store, get_settings())
        logger.info("Sync coordinator created for %s", type(_progress_store).__name__)
    return _coordinator


# ---------------------------------------------------------------------------
# Auth dependency used by route handlers
# ---------------------------------------------------------------------------


def _unauthorized(message: str) -> HTTPException:
    return HTTPException(
        status_code=401,
        detail=ApiResponse(
            ok=False,
            error=ApiError(code="UNAUTHORIZED", message=message),
        ).model_dump(),
    )


async def get_current_user(
    authorization: str | None = Header(default=None),
    auth_service: AuthService = Depends(get_auth_service),
) -> User:
    """Extracts and validates a Bearer token from the Authorization header.

    Returns the authenticated User on success. Raises HTTPException(401)
    on missing header, malformed header, or invalid token.

    Args:
        authorization: The raw Authorization header value.
        auth_service: Injected auth service.

    Returns:
        The authenticated User.

    Raises:
        HTTPException: 401 with ApiResponse envelope on auth failure.
    """
    if not authorization:
        raise _unauthorized("Missing authorization header.")

    parts = authorization.split(" ", maxsplit=1)
    if len(parts) != 2 or parts[0].lower() != "bearer" or not parts[1].strip():
        raise _unauthorized("Invalid authorization header format.")

    user = await auth_service.validate_token(parts[1].strip())
    if user is None:
        raise _unauthorized("Invalid or expired token.")

    return user
