"""AttemptRecord construction — checkpoint and finalize snapshots.

An AttemptRecord is the only thing the reconciler ever sees of a game.
Checkpoints are in-progress saves (history untouched); finalize marks the
attempt complete so its score/time pair enters the leaderboard history.

Tier 2 service module: imports from engine.board (Tier 2), schemas and
errors (Tier 1).
"""

from typing import Any

from pydantic import ValidationError as PydanticValidationError

from gameprogress.engine.board import snapshot
from gameprogress.errors import ValidationError
from gameprogress.schemas import AttemptRecord, GameSession


def make_attempt(
    player_id: str,
    module_id: str,
    score: int,
    elapsed_seconds: int,
    completed: bool,
    progress_snapshot: dict[str, Any] | None = None,
) -> AttemptRecord:
    """Builds an AttemptRecord from raw values.

    Args:
        player_id: Opaque player identifier. Must not be blank.
        module_id: Module identifier. Must not be blank.
        score: Non-negative score.
        elapsed_seconds: Non-negative play time.
        completed: True for a finalize, False for a checkpoint.
        progress_snapshot: Opaque game state to store alongside.

    Returns:
        A frozen AttemptRecord stamped with the current UTC time.

    Raises:
        ValidationError: Blank ids, negative numbers, or a completed
            attempt where nothing was played (score and time both 0).
    """
    if not player_id.strip() or not module_id.strip():
        raise ValidationError("Attempt needs a player_id and a module_id")
    if completed and score == 0 and elapsed_seconds == 0:
        raise ValidationError("Cannot finalize an attempt with no score and no play time")
    try:
        return AttemptRecord(
            player_id=player_id,
            module_id=module_id,
            score=score,
            elapsed_seconds=elapsed_seconds,
            completed=completed,
            progress_snapshot=progress_snapshot or {},
        )
    except PydanticValidationError as exc:
        first = exc.errors()[0]
        loc = ".".join(str(part) for part in first.get("loc", []))
        raise ValidationError(f"Invalid attempt {loc}: {first.get('msg')}") from exc


def checkpoint(session: GameSession, player_id: str, module_id: str) -> AttemptRecord:
    """Snapshots an in-progress session. Never affects history."""
    return make_attempt(
        player_id, module_id, session.score, session.elapsed_seconds,
        completed=False, progress_snapshot=snapshot(session),
    )


def finalize(session: GameSession, player_id: str, module_id: str) -> AttemptRecord:
    """Snapshots a finished run for entry into the leaderboard history."""
    return make_attempt(
        player_id, module_id, session.score, session.elapsed_seconds,
        completed=True, progress_snapshot=snapshot(session),
    )
