"""Progress and leaderboard API routes.

Direct access to a player's canonical progress, for modules whose game
logic runs client-side (sorting, case quiz) and for dashboards:
- GET    /progress                      — stats across modules
- GET    /progress/modules              — lock state per module
- GET    /progress/{module_id}          — canonical record + ranked attempts
- POST   /progress/{module_id}/checkpoint
- POST   /progress/{module_id}/finalize
- DELETE /progress/{module_id}          — explicit reset
- GET    /leaderboard/{module_id}       — top players (separate router)

All responses use the ApiResponse envelope. Auth is enforced on every
endpoint via get_current_user; players only ever touch their own rows.

Tier 3 orchestration module: imports from deps (Tier 2), sync/coordinator
(Tier 3), engine/* (Tier 2), catalog, schemas (Tier 1).
"""

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from gameprogress.api.deps import get_coordinator, get_current_user
from gameprogress.catalog import ModuleConfig, resolve_module
from gameprogress.engine.attempts import make_attempt
from gameprogress.engine.history import sorted_attempts
from gameprogress.schemas import ApiError, ApiResponse, User
from gameprogress.sync.coordinator import SyncCoordinator

logger = logging.getLogger(__name__)

router = APIRouter()
leaderboard_router = APIRouter()


# ---------------------------------------------------------------------------
# Request bodies (API-boundary types, local to this module)
# ---------------------------------------------------------------------------


class AttemptRequest(BaseModel):
    """Request body for checkpoint and finalize."""

    score: int = Field(ge=0)
    elapsed_seconds: int = Field(ge=0)
    progress: dict[str, Any] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def get_module_or_404(module_id: str) -> ModuleConfig:
    """Resolves a module id or raises 404 with MODULE_NOT_FOUND."""
    try:
        return resolve_module(module_id)
    except KeyError:
        raise HTTPException(
            status_code=404,
            detail=ApiResponse(
                ok=False,
                error=ApiError(
                    code="MODULE_NOT_FOUND",
                    message=f"Unknown module: {module_id}",
                ),
            ).model_dump(),
        ) from None


# ---------------------------------------------------------------------------
# Progress endpoints
# ---------------------------------------------------------------------------


@router.get("")
async def get_stats(
    user: User = Depends(get_current_user),
    coordinator: SyncCoordinator = Depends(get_coordinator),
) -> dict:
    """Returns the caller's aggregate stats across all modules."""
    stats = await coordinator.player_stats(user.id)
    return ApiResponse(ok=True, data=stats.model_dump()).model_dump()


@router.get("/modules")
async def get_module_status(
    user: User = Depends(get_current_user),
    coordinator: SyncCoordinator = Depends(get_coordinator),
) -> dict:
    """Returns every module in unlock order with the caller's status on it.

    Declared before /{module_id} so "modules" is not taken for a module id.
    """
    statuses = await coordinator.module_status(user.id)
    return ApiResponse(
        ok=True,
        data={"modules": [status.model_dump() for status in statuses]},
    ).model_dump()


@router.get("/{module_id}")
async def get_progress(
    module_id: str,
    user: User = Depends(get_current_user),
    coordinator: SyncCoordinator = Depends(get_coordinator),
) -> dict:
    """Returns the caller's canonical record and ranked attempts.

    record is null when the player has never saved this module; attempts
    is always three rows, padded with -1 placeholders.
    """
    get_module_or_404(module_id)
    record = await coordinator.load_canonical(user.id, module_id)
    return ApiResponse(
        ok=True,
        data={
            "record": record.model_dump() if record else None,
            "attempts": [view.model_dump() for view in sorted_attempts(record)],
        },
    ).model_dump()


@router.post("/{module_id}/checkpoint")
async def post_checkpoint(
    module_id: str,
    body: AttemptRequest,
    user: User = Depends(get_current_user),
    coordinator: SyncCoordinator = Depends(get_coordinator),
) -> dict:
    """Saves in-progress state. Never touches the leaderboard history."""
    get_module_or_404(module_id)
    attempt = make_attempt(
        user.id, module_id, body.score, body.elapsed_seconds,
        completed=False, progress_snapshot=body.progress,
    )
    outcome = await coordinator.checkpoint(user.id, module_id, attempt)
    return ApiResponse(ok=True, data=outcome.as_payload()).model_dump()


@router.post("/{module_id}/finalize")
async def post_finalize(
    module_id: str,
    body: AttemptRequest,
    user: User = Depends(get_current_user),
    coordinator: SyncCoordinator = Depends(get_coordinator),
) -> dict:
    """Records a finished run in the caller's top-three history."""
    get_module_or_404(module_id)
    attempt = make_attempt(
        user.id, module_id, body.score, body.elapsed_seconds,
        completed=True, progress_snapshot=body.progress,
    )
    outcome = await coordinator.finalize(user.id, module_id, attempt)
    return ApiResponse(ok=True, data=outcome.as_payload()).model_dump()


@router.delete("/{module_id}")
async def delete_progress(
    module_id: str,
    user: User = Depends(get_current_user),
    coordinator: SyncCoordinator = Depends(get_coordinator),
) -> dict:
    """Deletes all of the caller's progress for a module."""
    get_module_or_404(module_id)
    deleted = await coordinator.reset_progress(user.id, module_id)
    logger.info("Progress reset for %s/%s (%d rows)", user.id, module_id, deleted)
    return ApiResponse(
        ok=True,
        data={"module_id": module_id, "deleted": deleted},
    ).model_dump()


# ---------------------------------------------------------------------------
# Leaderboard
# ---------------------------------------------------------------------------


@leaderboard_router.get("/{module_id}")
async def get_leaderboard(
    module_id: str,
    limit: int = Query(default=10, ge=1, le=100),
    user: User = Depends(get_current_user),
    coordinator: SyncCoordinator = Depends(get_coordinator),
) -> dict:
    """Top players for a module, best score first, faster time breaking ties."""
    get_module_or_404(module_id)
    entries = await coordinator.leaderboard(module_id, limit=limit)
    return ApiResponse(
        ok=True,
        data={
            "module_id": module_id,
            "entries": [entry.model_dump() for entry in entries],
        },
    ).model_dump()
