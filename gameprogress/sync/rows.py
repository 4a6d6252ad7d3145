"""Row boundary — strict parsing of stored rows and record/row conversion.

Stored rows are untrusted: they may come from older clients, manual edits,
or half-finished writes. parse_row decides whether a row is usable and
raises InvalidRowError when it is not. Invalid means any of:

- the row is not a mapping, or fails strict typing (missing columns,
  strings or bools where ints belong, non-dict progress)
- score and time are both zero (an empty save that never held progress)
- the row belongs to a different player or module than requested
- the history lists differ in length, or anything is negative

A row with valid columns but an out-of-order or oversized history is
usable: row_to_record re-ranks it rather than discarding the player's
scores.

Tier 2 service module: imports from engine.history (Tier 2), schemas and
errors (Tier 1).
"""

from collections.abc import Iterable, Mapping
from datetime import datetime, timezone
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from gameprogress.engine.history import rank_history
from gameprogress.errors import InvalidRowError
from gameprogress.schemas import CanonicalRecord, ProgressRow

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def parse_row(raw: Any, player_id: str, module_id: str) -> ProgressRow:
    """Validates one raw row for the given key.

    Args:
        raw: The row as returned by the store.
        player_id: Player the row must belong to.
        module_id: Module the row must belong to.

    Returns:
        The strictly typed ProgressRow.

    Raises:
        InvalidRowError: The row is unusable (see module docstring).
    """
    if not isinstance(raw, Mapping):
        raise InvalidRowError(f"Row is not a mapping: {type(raw).__name__}")
    try:
        row = ProgressRow.model_validate(dict(raw))
    except PydanticValidationError as exc:
        first = exc.errors()[0]
        loc = ".".join(str(part) for part in first.get("loc", []))
        raise InvalidRowError(f"Row {raw.get('id')!r} failed validation at {loc}: {first.get('msg')}") from exc

    if row.player_id != player_id or row.module_id != module_id:
        raise InvalidRowError(
            f"Row {row.id!r} belongs to {row.player_id}/{row.module_id}, "
            f"expected {player_id}/{module_id}"
        )
    if row.score == 0 and row.time == 0:
        raise InvalidRowError(f"Row {row.id!r} has zero score and zero time")
    if len(row.score_history) != len(row.time_history):
        raise InvalidRowError(f"Row {row.id!r} has misaligned history lists")
    if min([row.score, row.time, *row.score_history, *row.time_history]) < 0:
        raise InvalidRowError(f"Row {row.id!r} holds negative scores or times")
    return row


def partition_rows(
    raws: Iterable[Any], player_id: str, module_id: str
) -> tuple[list[ProgressRow], list[str]]:
    """Splits raw rows into valid rows and ids of invalid ones.

    Invalid rows without a string id can't be deleted and are dropped
    from both lists.
    """
    valid: list[ProgressRow] = []
    invalid_ids: list[str] = []
    for raw in raws:
        try:
            valid.append(parse_row(raw, player_id, module_id))
        except InvalidRowError:
            row_id = raw.get("id") if isinstance(raw, Mapping) else None
            if isinstance(row_id, str):
                invalid_ids.append(row_id)
    return valid, invalid_ids


def split_best(rows: list[ProgressRow]) -> tuple[ProgressRow | None, list[ProgressRow]]:
    """Picks the row to keep (max score, ties to latest update) and the rest."""
    if not rows:
        return None, []
    ordered = sorted(
        rows,
        key=lambda row: (row.score, row.updated_at or row.created_at or _EPOCH),
        reverse=True,
    )
    return ordered[0], ordered[1:]


def row_to_record(row: ProgressRow) -> CanonicalRecord:
    """Converts a valid row into a CanonicalRecord, re-ranking its history."""
    pairs = rank_history(zip(row.score_history, row.time_history))
    if pairs:
        current_score, current_time = pairs[0]
    else:
        current_score, current_time = row.score, row.time
    try:
        return CanonicalRecord(
            id=row.id,
            player_id=row.player_id,
            module_id=row.module_id,
            current_score=current_score,
            current_time=current_time,
            score_history=[score for score, _ in pairs],
            time_history=[elapsed for _, elapsed in pairs],
            completed=row.is_completed,
            progress_snapshot=row.progress,
        )
    except PydanticValidationError as exc:
        raise InvalidRowError(f"Row {row.id!r} cannot form a record: {exc.errors()[0].get('msg')}") from exc


def record_to_fields(record: CanonicalRecord) -> dict[str, Any]:
    """Column values for writing a record. The store owns id and timestamps."""
    return {
        "player_id": record.player_id,
        "module_id": record.module_id,
        "score": record.current_score,
        "time": record.current_time,
        "score_history": list(record.score_history),
        "time_history": list(record.time_history),
        "progress": dict(record.progress_snapshot),
        "is_completed": record.completed,
    }
