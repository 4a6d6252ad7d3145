"""Bingo API routes — server-side boards with automatic progress sync.

Six endpoints that drive a bingo board for the authenticated player:
- POST /session                        — start, or resume an unfinished board
- GET  /session/{session_id}           — current board view
- POST /session/{session_id}/select    — answer the current prompt
- POST /session/{session_id}/checkpoint — periodic save with elapsed time
- POST /session/{session_id}/play-again — bank a finished run, new board
- POST /session/{session_id}/restart   — new board, history untouched

Gameplay never waits on persistence: a failed save is reported in the
response's ``sync`` field and the board state is returned regardless.
Definitions are never sent for cells; the player only sees terms and the
current prompt.

Tier 3 orchestration module: imports from deps (Tier 2), progress (Tier 3),
engine/* (Tier 2), sync/coordinator (Tier 3), catalog, config, schemas,
errors (Tier 1).
"""

import logging
from typing import Any
from uuid import uuid4

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from gameprogress.api.deps import get_coordinator, get_current_user, get_session_store
from gameprogress.api.progress import get_module_or_404
from gameprogress.catalog import ModuleConfig, get_deck
from gameprogress.config import get_settings
from gameprogress.engine import attempts
from gameprogress.engine.board import BoardEngine, SelectionResult
from gameprogress.errors import TransientStoreError, ValidationError
from gameprogress.hooks.interfaces import SessionStore
from gameprogress.schemas import ApiError, ApiResponse, GameSession, User
from gameprogress.sync.coordinator import SyncCoordinator, SyncOutcome

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Request bodies (API-boundary types, local to this module)
# ---------------------------------------------------------------------------


class StartSessionRequest(BaseModel):
    """Request body for POST /session."""

    module_id: str | None = None


class SelectRequest(BaseModel):
    """Request body for POST /session/{session_id}/select."""

    cell_index: int


class CheckpointRequest(BaseModel):
    """Request body for POST /session/{session_id}/checkpoint."""

    elapsed_seconds: int = Field(ge=0)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _error(status_code: int, code: str, message: str) -> HTTPException:
    return HTTPException(
        status_code=status_code,
        detail=ApiResponse(ok=False, error=ApiError(code=code, message=message)).model_dump(),
    )


def _bingo_module_or_404(module_id: str) -> ModuleConfig:
    module = get_module_or_404(module_id)
    if module.kind != "bingo":
        raise _error(404, "MODULE_NOT_FOUND", f"Module {module_id} is not a bingo module.")
    return module


def _engine_for(module: ModuleConfig) -> BoardEngine:
    return BoardEngine(side=module.board_side, line_reward=module.line_reward)


async def _get_session_or_404(session_id: str, session_store: SessionStore) -> GameSession:
    """Retrieves a session or raises 404 with SESSION_NOT_FOUND."""
    session = await session_store.get_session(session_id)
    if session is None:
        raise _error(404, "SESSION_NOT_FOUND", "Session not found or expired.")
    return session


def _check_ownership(session: GameSession, user: User) -> None:
    """Verifies the authenticated user owns the session. Raises 403 if not."""
    if session.player_id != user.id:
        raise _error(403, "FORBIDDEN", "You do not have access to this session.")


def _session_view(session: GameSession) -> dict[str, Any]:
    """Board state for the client. Cell definitions stay server-side."""
    return {
        "session_id": session.session_id,
        "module_id": session.module_id,
        "cells": [
            {"index": cell.index, "term": cell.payload.term, "selected": cell.selected}
            for cell in session.cells
        ],
        "completed_lines": session.completed_lines,
        "score": session.score,
        "elapsed_seconds": session.elapsed_seconds,
        "current_prompt": session.current_prompt,
        "is_complete": session.is_complete,
    }


def _selection_view(result: SelectionResult) -> dict[str, Any]:
    return {
        "accepted": result.accepted,
        "lines_newly_completed": result.lines_newly_completed,
        "reason": result.reason,
    }


def _sync_view(outcome: SyncOutcome | None) -> dict[str, Any] | None:
    return outcome.as_payload() if outcome is not None else None


async def _new_board(
    module: ModuleConfig, user: User, coordinator: SyncCoordinator
) -> tuple[GameSession, bool]:
    """Resumes the player's unfinished board if one is stored, else deals a new one.

    Returns:
        (session, resumed)
    """
    engine = _engine_for(module)
    deck = get_deck(module.module_id)
    try:
        record = await coordinator.load_canonical(user.id, module.module_id)
    except TransientStoreError as exc:
        logger.warning("Could not load progress for %s, starting fresh: %s", user.id, exc)
        record = None

    if record is not None and not record.completed and record.progress_snapshot:
        try:
            session = engine.restore(
                deck,
                record.progress_snapshot,
                free_cell_index=module.free_cell_index,
                session_id=str(uuid4()),
                player_id=user.id,
                module_id=module.module_id,
            )
            if not session.is_complete:
                return session, True
        except ValidationError as exc:
            logger.warning("Stored snapshot for %s/%s unusable: %s", user.id, module.module_id, exc)

    session = engine.initialize(
        deck,
        free_cell_index=module.free_cell_index,
        player_id=user.id,
        module_id=module.module_id,
    )
    return session, False


async def _load_owned(
    session_id: str, user: User, session_store: SessionStore
) -> tuple[GameSession, ModuleConfig]:
    session = await _get_session_or_404(session_id, session_store)
    _check_ownership(session, user)
    return session, _bingo_module_or_404(session.module_id or "")


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@router.post("/session")
async def start_session(
    body: StartSessionRequest,
    user: User = Depends(get_current_user),
    session_store: SessionStore = Depends(get_session_store),
    coordinator: SyncCoordinator = Depends(get_coordinator),
) -> dict:
    """Starts a board, resuming the player's saved unfinished game if any."""
    module = _bingo_module_or_404(body.module_id or get_settings().default_module)
    session, resumed = await _new_board(module, user, coordinator)
    await session_store.save_session(session)
    return ApiResponse(
        ok=True,
        data={"resumed": resumed, "session": _session_view(session)},
    ).model_dump()


@router.get("/session/{session_id}")
async def get_session(
    session_id: str,
    user: User = Depends(get_current_user),
    session_store: SessionStore = Depends(get_session_store),
) -> dict:
    """Returns the current board view."""
    session, _ = await _load_owned(session_id, user, session_store)
    return ApiResponse(ok=True, data={"session": _session_view(session)}).model_dump()


@router.post("/session/{session_id}/select")
async def select_cell(
    session_id: str,
    body: SelectRequest,
    user: User = Depends(get_current_user),
    session_store: SessionStore = Depends(get_session_store),
    coordinator: SyncCoordinator = Depends(get_coordinator),
) -> dict:
    """Answers the current prompt with a cell.

    A completed line triggers a checkpoint; completing the board triggers
    a finalize. Rejected selections change nothing and sync nothing.
    """
    session, module = await _load_owned(session_id, user, session_store)
    result = _engine_for(module).select_cell(session, body.cell_index)

    outcome: SyncOutcome | None = None
    if result.accepted:
        await session_store.save_session(session)
        if session.is_complete:
            outcome = await coordinator.finalize(
                user.id, module.module_id,
                attempts.finalize(session, user.id, module.module_id),
            )
        elif result.lines_newly_completed:
            outcome = await coordinator.checkpoint(
                user.id, module.module_id,
                attempts.checkpoint(session, user.id, module.module_id),
            )

    return ApiResponse(
        ok=True,
        data={
            "selection": _selection_view(result),
            "session": _session_view(session),
            "sync": _sync_view(outcome),
        },
    ).model_dump()


@router.post("/session/{session_id}/checkpoint")
async def checkpoint_session(
    session_id: str,
    body: CheckpointRequest,
    user: User = Depends(get_current_user),
    session_store: SessionStore = Depends(get_session_store),
    coordinator: SyncCoordinator = Depends(get_coordinator),
) -> dict:
    """Periodic save. The client reports its timer; time never runs backwards."""
    session, module = await _load_owned(session_id, user, session_store)
    engine = _engine_for(module)
    if body.elapsed_seconds > session.elapsed_seconds:
        engine.tick(session, body.elapsed_seconds - session.elapsed_seconds)
        await session_store.save_session(session)

    outcome = await coordinator.checkpoint(
        user.id, module.module_id,
        attempts.checkpoint(session, user.id, module.module_id),
    )
    return ApiResponse(
        ok=True,
        data={"session": _session_view(session), "sync": _sync_view(outcome)},
    ).model_dump()


@router.post("/session/{session_id}/play-again")
async def play_again(
    session_id: str,
    user: User = Depends(get_current_user),
    session_store: SessionStore = Depends(get_session_store),
    coordinator: SyncCoordinator = Depends(get_coordinator),
) -> dict:
    """Banks a finished run into the history, then deals a new board.

    Banking is idempotent: the run was already finalized on completion
    and score dedup keeps the history unchanged.
    """
    session, module = await _load_owned(session_id, user, session_store)
    if not session.is_complete:
        raise _error(409, "GAME_NOT_COMPLETE", "Finish the board before playing again.")

    outcome = await coordinator.finalize(
        user.id, module.module_id,
        attempts.finalize(session, user.id, module.module_id),
    )
    fresh = _engine_for(module).initialize(
        get_deck(module.module_id),
        free_cell_index=module.free_cell_index,
        player_id=user.id,
        module_id=module.module_id,
    )
    await session_store.delete_session(session.session_id)
    await session_store.save_session(fresh)
    return ApiResponse(
        ok=True,
        data={"session": _session_view(fresh), "sync": _sync_view(outcome)},
    ).model_dump()


@router.post("/session/{session_id}/restart")
async def restart(
    session_id: str,
    user: User = Depends(get_current_user),
    session_store: SessionStore = Depends(get_session_store),
) -> dict:
    """Abandons the current board for a new one. Stored progress is untouched."""
    session, module = await _load_owned(session_id, user, session_store)
    fresh = _engine_for(module).initialize(
        get_deck(module.module_id),
        free_cell_index=module.free_cell_index,
        player_id=user.id,
        module_id=module.module_id,
    )
    await session_store.delete_session(session.session_id)
    await session_store.save_session(fresh)
    return ApiResponse(ok=True, data={"session": _session_view(fresh)}).model_dump()
