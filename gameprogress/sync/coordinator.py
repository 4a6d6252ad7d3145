"""Sync coordinator — keeps one canonical progress row per (player, module).

Drives every read and write between live games and the progress store:

- load_canonical: read the key's rows, repairing duplicates on the way.
- cleanup_duplicates: delete invalid rows, keep the best valid one,
  delete the rest, verify. Bounded: never loops.
- checkpoint: in-progress save. Coalesced, never regresses the score,
  ignored once the module is completed.
- finalize: completion save through full history reconciliation, always
  followed by cleanup. A racing writer that wins cleanup gets the attempt
  merged into its row (idempotent thanks to score dedup).
- reset_progress, leaderboard, player_stats, module_status: explicit
  reset and reads.

Neither write path stores a record with zero score and zero time, since
cleanup would classify that row as invalid and delete it.

Store calls are individually atomic; the load → reconcile → write
sequence is not. Races are repaired after the fact by cleanup, never
prevented by locking. Transient store failures never escape checkpoint or
finalize: the caller gets a "failed" SyncOutcome and gameplay carries on.

Tier 3 orchestration module: imports from sync/* (Tier 2),
engine/history (Tier 2), catalog, hooks/interfaces, schemas, errors (Tier 1).

Usage:
    coordinator = SyncCoordinator(store, timeout_seconds=5.0)
    outcome = await coordinator.finalize(player_id, module_id, attempt)
    if outcome.status == "failed":
        ...
"""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from gameprogress.catalog import MODULE_MAP
from gameprogress.config import Settings
from gameprogress.engine.history import reconcile
from gameprogress.errors import (
    InvalidRowError,
    InvariantViolation,
    TransientStoreError,
    ValidationError,
)
from gameprogress.hooks.interfaces import ProgressStore
from gameprogress.schemas import (
    MAX_HISTORY_LENGTH,
    AttemptRecord,
    CanonicalRecord,
    LeaderboardEntry,
    ModuleStatus,
    PlayerStats,
    ProgressRow,
)
from gameprogress.sync.events import log_sync_event
from gameprogress.sync.retry import call_with_retry
from gameprogress.sync.rows import (
    parse_row,
    partition_rows,
    record_to_fields,
    row_to_record,
    split_best,
)

logger = logging.getLogger(__name__)

# Outcome statuses
WRITTEN = "written"
COALESCED = "coalesced"
SKIPPED_COMPLETED = "skipped_completed"
SKIPPED_REGRESSION = "skipped_regression"
SKIPPED_EMPTY = "skipped_empty"
FAILED = "failed"

# Module leaderboards read this many rows per requested entry, since a
# player with stray duplicate rows occupies more than one.
_LEADERBOARD_FETCH_FACTOR = 3


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------


@dataclass
class CleanupReport:
    """What a cleanup pass did.

    Attributes:
        kept_id: Id of the surviving canonical row, None if no valid row.
        deleted_invalid: Ids of rows deleted as invalid.
        deleted_duplicates: Ids of valid rows deleted as duplicates.
        violation: Set when more than one row survived both passes.
    """

    kept_id: str | None = None
    deleted_invalid: list[str] = field(default_factory=list)
    deleted_duplicates: list[str] = field(default_factory=list)
    violation: InvariantViolation | None = None


@dataclass
class SyncOutcome:
    """Result of a checkpoint or finalize.

    Attributes:
        status: One of the module-level status constants.
        record: The stored record (written), the untouched canonical
            record (skipped), or the locally computed one (failed, when
            it got that far).
        error: Failure description for status "failed".
        cleanup: The cleanup report, for finalize.
    """

    status: str
    record: CanonicalRecord | None = None
    error: str | None = None
    cleanup: CleanupReport | None = None

    @property
    def ok(self) -> bool:
        return self.status != FAILED

    def as_payload(self) -> dict[str, Any]:
        """JSON-ready view for API responses."""
        return {
            "status": self.status,
            "record": self.record.model_dump() if self.record else None,
            "error": self.error,
        }


# ---------------------------------------------------------------------------
# Coordinator
# ---------------------------------------------------------------------------


class SyncCoordinator:
    """Reconciles attempts into the progress store.

    One instance is shared by all requests in a process. Checkpoint
    coalescing state (last checkpoint time, in-flight keys) lives on the
    instance, keyed by (player_id, module_id).
    """

    def __init__(
        self,
        store: ProgressStore,
        *,
        timeout_seconds: float = 5.0,
        max_retries: int = 2,
        backoff_base: float = 0.5,
        checkpoint_debounce_seconds: float = 1.0,
        history_size: int = MAX_HISTORY_LENGTH,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialises the coordinator.

        Args:
            store: The progress store to read and write.
            timeout_seconds: Per-attempt timeout for each store call.
            max_retries: Retries per store call after the first attempt.
            backoff_base: Seconds before the first retry; doubles after.
            checkpoint_debounce_seconds: Checkpoints for a key arriving
                within this window of the previous one are coalesced.
            history_size: Leaderboard depth per record.
            clock: Monotonic clock, injectable for tests.
        """
        self._store = store
        self._timeout = timeout_seconds
        self._max_retries = max_retries
        self._backoff_base = backoff_base
        self._debounce = checkpoint_debounce_seconds
        self._history_size = history_size
        self._clock = clock
        self._last_checkpoint: dict[tuple[str, str], float] = {}
        self._in_flight: set[tuple[str, str]] = set()

    @classmethod
    def from_settings(cls, store: ProgressStore, settings: Settings) -> "SyncCoordinator":
        """Builds a coordinator with timeouts and cadence from Settings."""
        return cls(
            store,
            timeout_seconds=settings.store_timeout_seconds,
            max_retries=settings.store_max_retries,
            backoff_base=settings.store_backoff_base,
            checkpoint_debounce_seconds=settings.checkpoint_debounce_seconds,
        )

    # -- Store access ------------------------------------------------------

    async def _call(self, label: str, func: Callable, *args: Any) -> Any:
        return await call_with_retry(
            label,
            func,
            *args,
            timeout=self._timeout,
            max_retries=self._max_retries,
            backoff_base=self._backoff_base,
        )

    async def _read_rows(self, player_id: str, module_id: str) -> list[Any]:
        rows = await self._call("select_rows", self._store.select_rows, player_id, module_id)
        return list(rows or [])

    async def _delete(self, row_ids: list[str]) -> None:
        if row_ids:
            await self._call("delete_rows", self._store.delete_rows, row_ids)

    async def _write(self, record: CanonicalRecord) -> CanonicalRecord:
        """Update-if-exists-else-insert. Returns the record with its row id."""
        fields = record_to_fields(record)
        if record.id is not None:
            if await self._call("update_row", self._store.update_row, record.id, fields):
                return record
            logger.info("Row %s vanished before update, inserting instead", record.id)
        row_id = await self._call("insert_row", self._store.insert_row, fields)
        return record.model_copy(update={"id": row_id})

    def _forget_stale_checkpoints(self, now: float) -> None:
        """Drops debounce entries that can no longer coalesce anything."""
        stale = [
            key for key, started in self._last_checkpoint.items()
            if now - started >= self._debounce and key not in self._in_flight
        ]
        for key in stale:
            del self._last_checkpoint[key]

    # -- Canonical record --------------------------------------------------

    async def load_canonical(self, player_id: str, module_id: str) -> CanonicalRecord | None:
        """Returns the canonical record for a key, or None if there is none.

        If the store holds more than one row, or any invalid row, for the
        key, cleanup runs first and the rows are read again.

        Raises:
            TransientStoreError: Store calls failed after retries.
        """
        raws = await self._read_rows(player_id, module_id)
        valid, invalid_ids = partition_rows(raws, player_id, module_id)
        if len(raws) > 1 or invalid_ids:
            await self.cleanup_duplicates(player_id, module_id)
            raws = await self._read_rows(player_id, module_id)
            valid, _ = partition_rows(raws, player_id, module_id)
        best, _ = split_best(valid)
        return row_to_record(best) if best else None

    async def cleanup_duplicates(self, player_id: str, module_id: str) -> CleanupReport:
        """Reduces a key to at most one valid row.

        Deletes invalid rows in one bulk delete, keeps the best valid row
        (highest score, ties to the latest update) and bulk-deletes the
        rest. A verification read follows; if more than one row remains,
        one more pass and a second verification read run. A key still
        holding several rows after that is reported as an invariant
        violation (logged, not raised).

        Raises:
            TransientStoreError: Store calls failed after retries.
        """
        start = time.monotonic()
        report = CleanupReport()

        await self._prune(await self._read_rows(player_id, module_id), player_id, module_id, report)
        remaining = await self._read_rows(player_id, module_id)
        if len(remaining) > 1:
            logger.warning(
                "%d rows remain for %s/%s after cleanup, running one more pass",
                len(remaining), player_id, module_id,
            )
            await self._prune(remaining, player_id, module_id, report)
            remaining = await self._read_rows(player_id, module_id)
            if len(remaining) > 1:
                report.violation = InvariantViolation(
                    f"{len(remaining)} rows remain for {player_id}/{module_id} after cleanup"
                )
                logger.error("Invariant violation: %s", report.violation)

        log_sync_event(
            operation="cleanup",
            player_id=player_id,
            module_id=module_id,
            status="violation" if report.violation else "clean",
            latency_ms=(time.monotonic() - start) * 1000,
        )
        return report

    async def _prune(
        self, raws: list[Any], player_id: str, module_id: str, report: CleanupReport
    ) -> None:
        valid, invalid_ids = partition_rows(raws, player_id, module_id)
        if invalid_ids:
            logger.info("Deleting %d invalid rows for %s/%s", len(invalid_ids), player_id, module_id)
            await self._delete(invalid_ids)
            report.deleted_invalid.extend(invalid_ids)

        keep, extra = split_best(valid)
        if keep is not None:
            report.kept_id = keep.id
        if extra:
            extra_ids = [row.id for row in extra]
            logger.info(
                "Keeping row %s (score %d) for %s/%s, deleting %d duplicates",
                keep.id, keep.score, player_id, module_id, len(extra_ids),
            )
            await self._delete(extra_ids)
            report.deleted_duplicates.extend(extra_ids)

    # -- Writes ------------------------------------------------------------

    async def checkpoint(
        self, player_id: str, module_id: str, attempt: AttemptRecord
    ) -> SyncOutcome:
        """Saves in-progress state without touching the leaderboard history.

        Dropped (status "coalesced") when another checkpoint for the key is
        in flight or the previous one started within the debounce window;
        the next checkpoint carries fresher state anyway. Completed
        attempts are never coalesced.

        Args:
            player_id: Key player. Must match the attempt.
            module_id: Key module. Must match the attempt.
            attempt: The in-progress attempt.

        Returns:
            A SyncOutcome. Never raises for store failures.

        Raises:
            ValidationError: The attempt's key differs from the arguments.
        """
        _check_key(player_id, module_id, attempt)
        key = (player_id, module_id)
        now = self._clock()
        last = self._last_checkpoint.get(key)
        if not attempt.completed and (
            key in self._in_flight or (last is not None and now - last < self._debounce)
        ):
            log_sync_event(
                operation="checkpoint", player_id=player_id, module_id=module_id,
                status=COALESCED, latency_ms=0.0, score=attempt.score,
            )
            return SyncOutcome(status=COALESCED)

        self._forget_stale_checkpoints(now)
        self._last_checkpoint[key] = now
        self._in_flight.add(key)
        start = time.monotonic()
        try:
            outcome = await self._checkpoint(player_id, module_id, attempt)
        finally:
            self._in_flight.discard(key)
        log_sync_event(
            operation="checkpoint", player_id=player_id, module_id=module_id,
            status=outcome.status, latency_ms=(time.monotonic() - start) * 1000,
            score=attempt.score,
        )
        return outcome

    async def _checkpoint(
        self, player_id: str, module_id: str, attempt: AttemptRecord
    ) -> SyncOutcome:
        record: CanonicalRecord | None = None
        try:
            existing = await self.load_canonical(player_id, module_id)
            if existing is not None and existing.completed and not attempt.completed:
                return SyncOutcome(status=SKIPPED_COMPLETED, record=existing)
            if (
                existing is not None
                and not attempt.completed
                and attempt.score < existing.current_score
            ):
                return SyncOutcome(status=SKIPPED_REGRESSION, record=existing)

            record = reconcile(existing, attempt, history_size=self._history_size)
            if _is_empty(record):
                return SyncOutcome(status=SKIPPED_EMPTY, record=existing)
            record = await self._write(record)
            return SyncOutcome(status=WRITTEN, record=record)
        except TransientStoreError as exc:
            logger.warning("Checkpoint for %s/%s failed: %s", player_id, module_id, exc)
            return SyncOutcome(status=FAILED, record=record, error=str(exc))

    async def finalize(
        self, player_id: str, module_id: str, attempt: AttemptRecord
    ) -> SyncOutcome:
        """Records a completed run in the leaderboard history.

        Always writes (no debounce, no regression check), then runs
        cleanup. If cleanup kept a row other than the one just written, a
        concurrent writer got there first: the attempt is reconciled into
        the surviving row once more.

        A merged record with zero score and zero time is never written
        (status "skipped_empty"), since cleanup would delete it as invalid.

        Args:
            player_id: Key player. Must match the attempt.
            module_id: Key module. Must match the attempt.
            attempt: The finished attempt. Marked completed if it isn't.

        Returns:
            A SyncOutcome. Never raises for store failures.

        Raises:
            ValidationError: The attempt's key differs from the arguments.
        """
        _check_key(player_id, module_id, attempt)
        if not attempt.completed:
            attempt = attempt.model_copy(update={"completed": True})

        start = time.monotonic()
        record: CanonicalRecord | None = None
        try:
            existing = await self.load_canonical(player_id, module_id)
            record = reconcile(
                existing, attempt, update_history=True, history_size=self._history_size
            )
            if _is_empty(record):
                outcome = SyncOutcome(status=SKIPPED_EMPTY, record=existing)
            else:
                record = await self._write(record)
                report = await self.cleanup_duplicates(player_id, module_id)
                if report.kept_id is not None and report.kept_id != record.id:
                    logger.warning(
                        "Finalize for %s/%s raced another writer (wrote %s, kept %s), merging",
                        player_id, module_id, record.id, report.kept_id,
                    )
                    survivor = await self.load_canonical(player_id, module_id)
                    record = reconcile(
                        survivor, attempt, update_history=True, history_size=self._history_size
                    )
                    record = await self._write(record)
                # Completed records ignore checkpoints, so the debounce entry is dead weight.
                self._last_checkpoint.pop((player_id, module_id), None)
                outcome = SyncOutcome(status=WRITTEN, record=record, cleanup=report)
        except TransientStoreError as exc:
            logger.warning("Finalize for %s/%s failed: %s", player_id, module_id, exc)
            outcome = SyncOutcome(status=FAILED, record=record, error=str(exc))

        log_sync_event(
            operation="finalize", player_id=player_id, module_id=module_id,
            status=outcome.status, latency_ms=(time.monotonic() - start) * 1000,
            score=attempt.score,
        )
        return outcome

    async def reset_progress(self, player_id: str, module_id: str) -> int:
        """Deletes every row for a key. Returns how many were deleted.

        Raises:
            TransientStoreError: Store calls failed after retries.
        """
        start = time.monotonic()
        raws = await self._read_rows(player_id, module_id)
        row_ids = [
            raw["id"] for raw in raws
            if isinstance(raw, dict) and isinstance(raw.get("id"), str)
        ]
        await self._delete(row_ids)
        self._last_checkpoint.pop((player_id, module_id), None)
        log_sync_event(
            operation="reset", player_id=player_id, module_id=module_id,
            status="deleted", latency_ms=(time.monotonic() - start) * 1000,
        )
        return len(row_ids)

    # -- Reads -------------------------------------------------------------

    async def leaderboard(self, module_id: str, limit: int = 10) -> list[LeaderboardEntry]:
        """Top players for a module: best row per player, score desc, time asc.

        Raises:
            TransientStoreError: Store calls failed after retries.
        """
        raws = await self._call(
            "select_module_rows",
            self._store.select_module_rows,
            module_id,
            limit * _LEADERBOARD_FETCH_FACTOR,
        )
        best: dict[str, ProgressRow] = {}
        for row in _parse_foreign_rows(raws, module_id=module_id):
            current = best.get(row.player_id)
            if current is None or (row.score, -row.time) > (current.score, -current.time):
                best[row.player_id] = row

        ranked = sorted(best.values(), key=lambda row: (-row.score, row.time))[:limit]
        return [
            LeaderboardEntry(
                rank=i + 1,
                player_id=row.player_id,
                score=row.score,
                time=row.time,
                completed=row.is_completed,
            )
            for i, row in enumerate(ranked)
        ]

    async def player_stats(self, player_id: str) -> PlayerStats:
        """Aggregates a player's best row per module.

        Raises:
            TransientStoreError: Store calls failed after retries.
        """
        raws = await self._call("select_player_rows", self._store.select_player_rows, player_id)
        best: dict[str, ProgressRow] = {}
        for row in _parse_foreign_rows(raws, player_id=player_id):
            current = best.get(row.module_id)
            if current is None or row.score > current.score:
                best[row.module_id] = row

        if not best:
            return PlayerStats(player_id=player_id)
        scores = [row.score for row in best.values()]
        completed = sum(1 for row in best.values() if row.is_completed)
        return PlayerStats(
            player_id=player_id,
            modules_played=len(best),
            modules_completed=completed,
            average_score=round(sum(scores) / len(scores), 2),
            highest_score=max(scores),
            completion_rate=round(completed / len(best) * 100, 2),
        )

    async def module_status(self, player_id: str) -> list[ModuleStatus]:
        """Lock state of every catalog module for a player, in catalog order.

        A module is completed once any valid row for it is completed, and
        unlocked when it has no prerequisite or its prerequisite is
        completed. Anything else is locked.

        Raises:
            TransientStoreError: Store calls failed after retries.
        """
        raws = await self._call("select_player_rows", self._store.select_player_rows, player_id)
        best_score: dict[str, int] = {}
        completed: set[str] = set()
        for row in _parse_foreign_rows(raws, player_id=player_id):
            best_score[row.module_id] = max(row.score, best_score.get(row.module_id, 0))
            if row.is_completed:
                completed.add(row.module_id)

        statuses: list[ModuleStatus] = []
        for module in MODULE_MAP.values():
            if module.module_id in completed:
                status = "completed"
            elif module.unlock_after is None or module.unlock_after in completed:
                status = "unlocked"
            else:
                status = "locked"
            statuses.append(
                ModuleStatus(
                    module_id=module.module_id,
                    title=module.title,
                    kind=module.kind,
                    unlock_after=module.unlock_after,
                    status=status,
                    best_score=best_score.get(module.module_id, 0),
                )
            )
        return statuses


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _check_key(player_id: str, module_id: str, attempt: AttemptRecord) -> None:
    if (attempt.player_id, attempt.module_id) != (player_id, module_id):
        raise ValidationError(
            f"Attempt for {attempt.player_id}/{attempt.module_id} "
            f"submitted under {player_id}/{module_id}"
        )


def _is_empty(record: CanonicalRecord) -> bool:
    """Zero score and zero time: stored, this would be an invalid row."""
    return record.current_score == 0 and record.current_time == 0


def _parse_foreign_rows(
    raws: list[Any], *, player_id: str | None = None, module_id: str | None = None
) -> list[ProgressRow]:
    """Parses rows spanning several keys, skipping invalid ones.

    Each row is validated against its own key, constrained by whichever
    of player_id/module_id the query fixed.
    """
    rows: list[ProgressRow] = []
    for raw in raws or []:
        if not isinstance(raw, dict):
            continue
        row_player = raw.get("player_id")
        row_module = raw.get("module_id")
        try:
            rows.append(
                parse_row(
                    raw,
                    player_id if player_id is not None else row_player,
                    module_id if module_id is not None else row_module,
                )
            )
        except InvalidRowError:
            logger.debug("Skipping invalid row %r in aggregate read", raw.get("id"))
    return rows
