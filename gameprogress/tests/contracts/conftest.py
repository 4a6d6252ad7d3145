"""Fixtures for contract tests — one parameterized fixture per hook interface.

Each fixture yields a fresh implementation instance. Today there's only the
stub ("stub" param). When the team adds a real implementation (e.g., Postgres,
Redis), they add a second param value and an elif branch.

TEAM: To test your implementation against the contracts:
    1. Add your param string (e.g., "postgres") to the params list.
    2. Add an elif branch that yields your implementation instance.
    3. Run: python -m pytest gameprogress/tests/contracts/ -v
    All tests should pass. If any fail, your implementation doesn't satisfy
    the contract — read the failing test's docstring for what's expected.
"""

from datetime import datetime, timedelta, timezone

import pytest_asyncio

from gameprogress.hooks.auth import FakeAuthService
from gameprogress.hooks.database import InMemoryProgressStore
from gameprogress.hooks.sessions import InMemorySessionStore
from gameprogress.schemas import Cell, ContentItem, GameSession


# ---------------------------------------------------------------------------
# Interface fixtures (parameterized for future implementations)
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture(params=["stub"])
async def auth_service(request):
    """Yields an AuthService implementation.

    TEAM: Add your auth provider here:
        @pytest_asyncio.fixture(params=["stub", "oauth"])
        async def auth_service(request):
            if request.param == "stub":
                yield FakeAuthService()
            elif request.param == "oauth":
                yield YourOAuthService(test_config)
    """
    if request.param == "stub":
        yield FakeAuthService()


@pytest_asyncio.fixture(params=["stub"])
async def progress_store(request):
    """Yields a ProgressStore implementation.

    TEAM: Add your database adapter here:
        @pytest_asyncio.fixture(params=["stub", "postgres"])
        async def progress_store(request):
            if request.param == "stub":
                yield InMemoryProgressStore()
            elif request.param == "postgres":
                adapter = YourPostgresStore(test_dsn)
                yield adapter
                await adapter.truncate()  # if needed
    """
    if request.param == "stub":
        yield InMemoryProgressStore()


@pytest_asyncio.fixture(params=["stub"])
async def session_store(request):
    """Yields a SessionStore implementation.

    TEAM: Add your session store here:
        @pytest_asyncio.fixture(params=["stub", "redis"])
        async def session_store(request):
            if request.param == "stub":
                yield InMemorySessionStore()
            elif request.param == "redis":
                store = YourRedisSessionStore(test_url)
                yield store
                await store.flush()  # if needed
    """
    if request.param == "stub":
        yield InMemorySessionStore()


# ---------------------------------------------------------------------------
# Helper fixtures (shared test data)
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def sample_fields():
    """Column values for one well-formed progress row."""
    return {
        "player_id": "player-contract-1",
        "module_id": "bingo-gmp",
        "score": 300,
        "time": 95,
        "score_history": [300, 120],
        "time_history": [95, 40],
        "progress": {"cells_selected": [0, 1, 2, 3, 4, 24], "completed_lines": [[0, 1, 2, 3, 4]]},
        "is_completed": False,
    }


@pytest_asyncio.fixture
async def sample_session():
    """A GameSession with expires_at 24 hours in the future."""
    return GameSession(
        session_id="sess-contract-1",
        player_id="player-contract-1",
        module_id="bingo-gmp",
        cells=[
            Cell(index=i, payload=ContentItem(term=f"T{i}", definition=f"D{i}"))
            for i in range(4)
        ],
        score=10,
        current_prompt="D2",
        expires_at=datetime.now(timezone.utc) + timedelta(hours=24),
    )
