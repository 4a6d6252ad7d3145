"""History reconciler — merges an attempt into a canonical record.

Pure function of (existing record, attempt). Every write path in the sync
coordinator goes through reconcile(), so the top-K history rules live in
exactly one place:

1. Completed attempts append their (score, time) pair to the history.
2. Pairs are deduplicated by score; the earliest occurrence wins.
3. The history is sorted by score, descending, and cut to K entries.
4. current_score/current_time always mirror the best history entry.

Checkpoints leave history alone and only refresh the snapshot. They never
lower current_score.

Tier 2 service module: imports from schemas and errors (Tier 1).
"""

from collections.abc import Iterable

from gameprogress.errors import ValidationError
from gameprogress.schemas import (
    MAX_HISTORY_LENGTH,
    AttemptRecord,
    AttemptView,
    CanonicalRecord,
)


def rank_history(
    pairs: Iterable[tuple[int, int]],
    history_size: int = MAX_HISTORY_LENGTH,
) -> list[tuple[int, int]]:
    """Dedups by score (first wins), sorts descending, keeps the top entries."""
    by_score: dict[int, int] = {}
    for score, elapsed in pairs:
        by_score.setdefault(score, elapsed)
    ranked = sorted(by_score.items(), key=lambda pair: pair[0], reverse=True)
    return ranked[:min(history_size, MAX_HISTORY_LENGTH)]


def reconcile(
    existing: CanonicalRecord | None,
    attempt: AttemptRecord,
    *,
    update_history: bool | None = None,
    history_size: int = MAX_HISTORY_LENGTH,
) -> CanonicalRecord:
    """Computes the record that should be stored after an attempt.

    Args:
        existing: The current canonical record, or None for a first save.
        attempt: The attempt being merged.
        update_history: Whether the attempt enters the history. Defaults
            to attempt.completed.
        history_size: Maximum history length (capped at MAX_HISTORY_LENGTH).

    Returns:
        A new CanonicalRecord. Keeps the existing row id, if any.

    Raises:
        ValidationError: The attempt belongs to a different player/module.
    """
    if update_history is None:
        update_history = attempt.completed
    if existing is not None and (existing.player_id, existing.module_id) != (
        attempt.player_id,
        attempt.module_id,
    ):
        raise ValidationError(
            f"Attempt for {attempt.player_id}/{attempt.module_id} cannot merge into "
            f"record for {existing.player_id}/{existing.module_id}"
        )

    pairs = list(zip(existing.score_history, existing.time_history)) if existing else []
    if update_history:
        pairs = rank_history(pairs + [(attempt.score, attempt.elapsed_seconds)], history_size)

    if pairs:
        current_score, current_time = pairs[0]
    elif existing is not None and existing.current_score > attempt.score:
        current_score, current_time = existing.current_score, existing.current_time
    else:
        current_score, current_time = attempt.score, attempt.elapsed_seconds

    return CanonicalRecord(
        id=existing.id if existing else None,
        player_id=attempt.player_id,
        module_id=attempt.module_id,
        current_score=current_score,
        current_time=current_time,
        score_history=[score for score, _ in pairs],
        time_history=[elapsed for _, elapsed in pairs],
        completed=attempt.completed or (existing is not None and existing.completed),
        progress_snapshot=attempt.progress_snapshot,
    )


def sorted_attempts(
    record: CanonicalRecord | None,
    slots: int = MAX_HISTORY_LENGTH,
) -> list[AttemptView]:
    """Ranked attempts for display: score desc, then time asc.

    Padded with score=-1/time=-1 placeholders so the view always has
    ``slots`` rows.
    """
    pairs = list(zip(record.score_history, record.time_history)) if record else []
    pairs.sort(key=lambda pair: (-pair[0], pair[1]))
    views = [
        AttemptView(attempt=i + 1, score=score, time=elapsed)
        for i, (score, elapsed) in enumerate(pairs[:slots])
    ]
    while len(views) < slots:
        views.append(AttemptView(attempt=len(views) + 1, score=-1, time=-1))
    return views
