"""Core data models — shared Pydantic types for game progress.

Every board, attempt, canonical record, stored row, and API response flows
through these types. They are the shared vocabulary between the board
engine, the history reconciler, the sync coordinator, and the HTTP layer.

This is a Tier 1 leaf module: it imports only from pydantic and the stdlib.
No project imports allowed — everything else imports from here.

Usage:
    from gameprogress.schemas import GameSession, AttemptRecord, CanonicalRecord
"""

from datetime import datetime, timedelta, timezone
from typing import Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictBool,
    StrictInt,
    StrictStr,
    field_validator,
    model_validator,
)

# Leaderboard depth: how many best attempts a canonical record keeps.
MAX_HISTORY_LENGTH = 3


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Identity
# ---------------------------------------------------------------------------


class User(BaseModel):
    """Identity model returned by the auth layer.

    Frozen — users are identity objects, no mutation after creation.
    The id is the opaque player identifier used as half of every
    progress key.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    name: str


# ---------------------------------------------------------------------------
# Board
# ---------------------------------------------------------------------------


class ContentItem(BaseModel):
    """One term/definition pair shown on a board cell. Immutable."""

    model_config = ConfigDict(frozen=True)

    term: str
    definition: str


class Cell(BaseModel):
    """A board position. Only ``selected`` changes after creation."""

    index: int
    payload: ContentItem
    selected: bool = False


class GameSession(BaseModel):
    """In-memory state of one board playthrough (24h TTL).

    Lives in SessionStore and is never written to the progress store
    directly. Persistence goes through AttemptRecord snapshots.

    Mutable: updated on every cell selection and timer tick.
    """

    session_id: str
    player_id: str | None = None
    module_id: str | None = None
    cells: list[Cell]
    completed_lines: list[list[int]] = Field(default_factory=list)
    score: int = 0
    elapsed_seconds: int = 0
    current_prompt: str | None = None
    is_complete: bool = False
    created_at: datetime = Field(default_factory=_utcnow)
    expires_at: datetime = Field(
        default_factory=lambda: _utcnow() + timedelta(hours=24),
    )


# ---------------------------------------------------------------------------
# Attempts and canonical records
# ---------------------------------------------------------------------------


class AttemptRecord(BaseModel):
    """Snapshot of one play at a moment in time.

    Produced by checkpoint/finalize, consumed only by the reconciler.
    Frozen — an attempt is a fact, never edited.
    """

    model_config = ConfigDict(frozen=True)

    player_id: str = Field(min_length=1)
    module_id: str = Field(min_length=1)
    score: int = Field(ge=0)
    elapsed_seconds: int = Field(ge=0)
    completed: bool
    progress_snapshot: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=_utcnow)


class CanonicalRecord(BaseModel):
    """The single authoritative progress record for a (player, module) pair.

    score_history and time_history are index-aligned, strictly descending
    by score, at most MAX_HISTORY_LENGTH long. When the history is
    non-empty, current_score/current_time mirror its first entry.
    Construction fails (pydantic ValidationError) if any of this is broken.
    """

    model_config = ConfigDict(frozen=True)

    id: str | None = None
    player_id: str
    module_id: str
    current_score: int = Field(ge=0)
    current_time: int = Field(ge=0)
    score_history: list[int] = Field(default_factory=list)
    time_history: list[int] = Field(default_factory=list)
    completed: bool = False
    progress_snapshot: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _check_history(self) -> "CanonicalRecord":
        scores, times = self.score_history, self.time_history
        if len(scores) != len(times):
            raise ValueError("score_history and time_history differ in length")
        if len(scores) > MAX_HISTORY_LENGTH:
            raise ValueError(f"history longer than {MAX_HISTORY_LENGTH} entries")
        if any(a <= b for a, b in zip(scores, scores[1:])):
            raise ValueError("score_history must be strictly descending")
        if scores and (self.current_score, self.current_time) != (scores[0], times[0]):
            raise ValueError("current score/time must match the best history entry")
        return self


class AttemptView(BaseModel):
    """One row of the ranked-attempts view. -1 marks an unused slot."""

    model_config = ConfigDict(frozen=True)

    attempt: int
    score: int
    time: int


# ---------------------------------------------------------------------------
# Store boundary
# ---------------------------------------------------------------------------


class ProgressRow(BaseModel):
    """A row as read back from the progress store, strictly typed.

    No coercion on numbers or flags: "950" or True where an int belongs
    is a malformed row, not a score. Unknown columns are ignored.
    Naive timestamps are taken as UTC.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: StrictStr
    player_id: StrictStr
    module_id: StrictStr
    score: StrictInt
    time: StrictInt
    score_history: list[StrictInt] = Field(default_factory=list)
    time_history: list[StrictInt] = Field(default_factory=list)
    progress: dict[str, Any]
    is_completed: StrictBool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @field_validator("created_at", "updated_at")
    @classmethod
    def _assume_utc(cls, value: datetime | None) -> datetime | None:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


# ---------------------------------------------------------------------------
# Read models
# ---------------------------------------------------------------------------


class LeaderboardEntry(BaseModel):
    """One player's standing on a module leaderboard."""

    model_config = ConfigDict(frozen=True)

    rank: int
    player_id: str
    score: int
    time: int
    completed: bool


class PlayerStats(BaseModel):
    """Aggregate progress for one player across all modules."""

    model_config = ConfigDict(frozen=True)

    player_id: str
    modules_played: int = 0
    modules_completed: int = 0
    average_score: float = 0.0
    highest_score: int = 0
    completion_rate: float = 0.0


class ModuleStatus(BaseModel):
    """Where a player stands on one module in the unlock sequence.

    status is "locked", "unlocked", or "completed". Derived from stored
    rows on every read; writes are never refused because of it.
    """

    model_config = ConfigDict(frozen=True)

    module_id: str
    title: str
    kind: str
    unlock_after: str | None = None
    status: str
    best_score: int = 0


# ---------------------------------------------------------------------------
# API envelope
# ---------------------------------------------------------------------------


class ApiError(BaseModel):
    """Error detail inside ApiResponse.error.

    code is an uppercase string like "SESSION_NOT_FOUND" or
    "STORE_UNAVAILABLE". Not an enum — error codes grow with the API.
    """

    model_config = ConfigDict(frozen=True)

    code: str
    message: str


class ApiResponse(BaseModel):
    """Universal response envelope — every API endpoint returns this shape."""

    model_config = ConfigDict(frozen=True)

    ok: bool
    data: Any | None = None
    error: ApiError | None = None
