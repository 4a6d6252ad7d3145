"""Shared test fixtures for engine, sync, and API tests.

Factory-pattern fixtures that return callables accepting **overrides.

Fixtures:
    make_deck: Factory for board content (unique definitions per cell)
    engine: Seeded 5x5 BoardEngine
    answer: Selects a cell by first pointing the prompt at it
    make_attempt: Factory for valid AttemptRecord instances
    make_row: Factory for valid raw progress rows
    store: Fresh InMemoryProgressStore
    make_coordinator: Factory for SyncCoordinator with no backoff/debounce
    flaky_store: Factory for a FlakyStore wrapping a fresh in-memory store
"""

import random
from datetime import datetime, timezone
from typing import Any

import pytest

from gameprogress.engine.board import BoardEngine, SelectionResult
from gameprogress.errors import TransientStoreError
from gameprogress.hooks.database import InMemoryProgressStore
from gameprogress.hooks.interfaces import ProgressStore
from gameprogress.schemas import AttemptRecord, ContentItem, GameSession
from gameprogress.sync.coordinator import SyncCoordinator

PLAYER_ID = "player-test-1"
MODULE_ID = "bingo-gmp"


# ---------------------------------------------------------------------------
# Board fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def make_deck():
    """Returns a factory for decks of ContentItems with unique definitions."""

    def _make(count: int = 25) -> list[ContentItem]:
        return [
            ContentItem(term=f"Term {i}", definition=f"Definition number {i}.")
            for i in range(count)
        ]

    return _make


@pytest.fixture
def engine() -> BoardEngine:
    """A 5x5 engine with a seeded random source."""
    return BoardEngine(side=5, line_reward=10, rng=random.Random(1234))


@pytest.fixture
def answer(engine):
    """Returns a helper that answers a cell correctly.

    Points the session's prompt at the cell's definition, then selects it,
    so tests can drive any selection order regardless of the random draw.
    """

    def _answer(session: GameSession, index: int) -> SelectionResult:
        session.current_prompt = session.cells[index].payload.definition
        return engine.select_cell(session, index)

    return _answer


# ---------------------------------------------------------------------------
# Attempt / row factories
# ---------------------------------------------------------------------------


@pytest.fixture
def make_attempt():
    """Returns a factory for AttemptRecord instances.

    Defaults produce a finished attempt for PLAYER_ID on MODULE_ID.
    """

    def _make(**overrides) -> AttemptRecord:
        defaults: dict[str, Any] = {
            "player_id": PLAYER_ID,
            "module_id": MODULE_ID,
            "score": 100,
            "elapsed_seconds": 60,
            "completed": True,
            "progress_snapshot": {"cells_selected": [24]},
        }
        defaults.update(overrides)
        return AttemptRecord(**defaults)

    return _make


@pytest.fixture
def make_row():
    """Returns a factory for valid raw progress rows (as a store returns them)."""

    def _make(**overrides) -> dict[str, Any]:
        now = datetime.now(timezone.utc)
        defaults: dict[str, Any] = {
            "player_id": PLAYER_ID,
            "module_id": MODULE_ID,
            "score": 100,
            "time": 60,
            "score_history": [100],
            "time_history": [60],
            "progress": {"cells_selected": [24]},
            "is_completed": True,
            "created_at": now,
            "updated_at": now,
        }
        defaults.update(overrides)
        return defaults

    return _make


# ---------------------------------------------------------------------------
# Store / coordinator fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def store() -> InMemoryProgressStore:
    """A fresh, empty in-memory progress store."""
    return InMemoryProgressStore()


@pytest.fixture
def make_coordinator():
    """Returns a factory for SyncCoordinator with test-friendly timing.

    No backoff and no debounce unless overridden.
    """

    def _make(store: ProgressStore, **overrides) -> SyncCoordinator:
        defaults: dict[str, Any] = {
            "timeout_seconds": 1.0,
            "max_retries": 2,
            "backoff_base": 0.0,
            "checkpoint_debounce_seconds": 0.0,
        }
        defaults.update(overrides)
        return SyncCoordinator(store, **defaults)

    return _make


class FlakyStore(ProgressStore):
    """Wraps a ProgressStore and injects failures or side effects per method.

    failures[method] is how many upcoming calls to that method raise
    TransientStoreError. before[method] is an async hook run before the
    real call — used to simulate a racing writer.
    """

    def __init__(self, inner: ProgressStore) -> None:
        self.inner = inner
        self.failures: dict[str, int] = {}
        self.before: dict[str, Any] = {}
        self.calls: list[str] = []

    async def _run(self, method: str, *args: Any) -> Any:
        self.calls.append(method)
        if self.failures.get(method, 0) > 0:
            self.failures[method] -= 1
            raise TransientStoreError(f"injected failure in {method}")
        hook = self.before.pop(method, None)
        if hook is not None:
            await hook()
        return await getattr(self.inner, method)(*args)

    async def select_rows(self, player_id, module_id):
        return await self._run("select_rows", player_id, module_id)

    async def insert_row(self, fields):
        return await self._run("insert_row", fields)

    async def update_row(self, row_id, fields):
        return await self._run("update_row", row_id, fields)

    async def delete_rows(self, row_ids):
        return await self._run("delete_rows", row_ids)

    async def select_module_rows(self, module_id, limit):
        return await self._run("select_module_rows", module_id, limit)

    async def select_player_rows(self, player_id):
        return await self._run("select_player_rows", player_id)


@pytest.fixture
def flaky_store():
    """Returns a factory for FlakyStore instances over a fresh in-memory store."""

    def _make() -> FlakyStore:
        return FlakyStore(InMemoryProgressStore())

    return _make
