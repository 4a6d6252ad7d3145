"""In-memory progress store — development stub for ProgressStore.

Python dict-backed row storage keyed by row id. Rows are stored as plain
dicts exactly as written, so tests can seed malformed or duplicate rows
and watch the sync coordinator repair them. Reads return deep copies:
callers can't mutate stored rows behind the store's back.

TEAM: Replace this with your real database (Postgres, Supabase, etc.).
Subclass ProgressStore from gameprogress.hooks.interfaces and implement
all six abstract methods.

Tier 2 service module: imports from gameprogress.hooks.interfaces (Tier 1).

Usage:
    from gameprogress.hooks.database import InMemoryProgressStore

    store = InMemoryProgressStore()
    row_id = await store.insert_row({"player_id": "p1", "module_id": "bingo-gmp", ...})
    await store.select_rows("p1", "bingo-gmp")
"""

import copy
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from gameprogress.hooks.interfaces import ProgressStore


def _score_key(row: dict[str, Any]) -> float:
    """Sort key that tolerates malformed score columns."""
    score = row.get("score")
    if isinstance(score, (int, float)) and not isinstance(score, bool):
        return float(score)
    return float("-inf")


class InMemoryProgressStore(ProgressStore):
    """STUB — dict-backed row storage, loses data on restart.

    Rows are keyed by a generated uuid. Nothing prevents two rows for the
    same (player_id, module_id) — neither does a real table without a
    unique constraint, which is why cleanup exists.

    TEAM: Replace with your database adapter. Satisfy the ProgressStore
    interface from gameprogress.hooks.interfaces.
    """

    def __init__(self) -> None:
        """Initialises an empty row table."""
        self._rows: dict[str, dict[str, Any]] = {}

    async def select_rows(self, player_id: str, module_id: str) -> list[dict[str, Any]]:
        """Returns copies of all rows matching the key, best score first."""
        rows = [
            row for row in self._rows.values()
            if row.get("player_id") == player_id and row.get("module_id") == module_id
        ]
        rows.sort(key=_score_key, reverse=True)
        return copy.deepcopy(rows)

    async def insert_row(self, fields: dict[str, Any]) -> str:
        """Stores a new row with a fresh id and timestamps.

        Args:
            fields: Column values to store.

        Returns:
            The generated row id.
        """
        row_id = str(uuid4())
        now = datetime.now(timezone.utc)
        self._rows[row_id] = {
            **copy.deepcopy(fields),
            "id": row_id,
            "created_at": now,
            "updated_at": now,
        }
        return row_id

    async def update_row(self, row_id: str, fields: dict[str, Any]) -> bool:
        """Merges fields into an existing row and bumps updated_at.

        Returns:
            False if the row no longer exists.
        """
        row = self._rows.get(row_id)
        if row is None:
            return False
        row.update(copy.deepcopy(fields))
        row["id"] = row_id
        row["updated_at"] = datetime.now(timezone.utc)
        return True

    async def delete_rows(self, row_ids: list[str]) -> None:
        """Deletes rows by id. Missing ids are ignored."""
        for row_id in row_ids:
            self._rows.pop(row_id, None)

    async def select_module_rows(self, module_id: str, limit: int) -> list[dict[str, Any]]:
        """Returns up to ``limit`` rows for a module, best score first."""
        rows = [row for row in self._rows.values() if row.get("module_id") == module_id]
        rows.sort(key=_score_key, reverse=True)
        return copy.deepcopy(rows[:limit])

    async def select_player_rows(self, player_id: str) -> list[dict[str, Any]]:
        """Returns copies of every row owned by the player."""
        return copy.deepcopy(
            [row for row in self._rows.values() if row.get("player_id") == player_id]
        )

    def seed_row(self, raw: dict[str, Any]) -> str:
        """Stores a row verbatim, for tests.

        Not part of the ProgressStore ABC — this is a stub convenience
        method. Unlike insert_row, it keeps whatever the caller passes
        (bad types, missing columns, explicit timestamps) so repair paths
        can be exercised. An id is generated only if the row has none.

        Args:
            raw: The row to store.

        Returns:
            The row's id.
        """
        row = copy.deepcopy(raw)
        row_id = row.get("id") if isinstance(row.get("id"), str) else str(uuid4())
        row["id"] = row_id
        self._rows[row_id] = row
        return row_id

    def row_count(self) -> int:
        """Total rows held, across all keys. Stub convenience for tests."""
        return len(self._rows)
