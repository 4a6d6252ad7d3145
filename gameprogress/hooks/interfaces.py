"""Hook interfaces — abstract base classes for all swappable services.

These ABCs define the contracts between the progress engine and the
infrastructure layer. Each one has an in-memory stub that lets the service
run end-to-end without real infrastructure, and a production
implementation that the team wires in when ready.

Tier 1 leaf module: imports only from abc, typing (stdlib) and
gameprogress.schemas (also Tier 1). No project services, no orchestration.

TEAM: To implement a real service, subclass the relevant ABC and implement
every abstract method. Python will raise TypeError at instantiation if
any method is missing — you'll know immediately what's left to do.

Usage:
    from gameprogress.hooks.interfaces import AuthService, ProgressStore
    from gameprogress.hooks.interfaces import SessionStore
"""

from abc import ABC, abstractmethod
from typing import Any

from gameprogress.schemas import GameSession, User


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


class AuthService(ABC):
    """Validates auth tokens and resolves players.

    The auth provider lives behind this interface. The engine never
    touches tokens directly; it asks the AuthService and gets a User back
    whose id is the opaque player id.

    TEAM: Replace the stub (FakeAuthService) with your auth provider.
    """

    @abstractmethod
    async def validate_token(self, token: str) -> User | None:
        """Validates an auth token and returns the associated user.

        Args:
            token: Bearer token from the request.

        Returns:
            The User if the token is valid and not expired, None otherwise.
        """
        ...

    @abstractmethod
    async def get_user(self, user_id: str) -> User | None:
        """Looks up a user by their ID.

        Args:
            user_id: The opaque player identifier.

        Returns:
            The User if found, None if the user doesn't exist.
        """
        ...


# ---------------------------------------------------------------------------
# Progress store (persistent, one canonical row per player + module)
# ---------------------------------------------------------------------------


class ProgressStore(ABC):
    """Persistent row storage for player progress.

    Rows are plain mappings, not models: the engine has to see malformed
    rows (wrong types, missing fields, zeroed scores) to repair them, so
    validation happens in the engine, not here. Each call is atomic on its
    own; nothing spans calls. Duplicate rows for one key can and do
    appear (racing tabs, retried inserts) and are cleaned up by the sync
    coordinator.

    Raise TransientStoreError (or let TimeoutError/ConnectionError escape)
    for failures worth retrying. Anything else is treated as fatal.

    Row columns: id, player_id, module_id, score, time, score_history,
    time_history, progress, is_completed, created_at, updated_at.

    TEAM: Replace the stub (InMemoryProgressStore) with your database.
    """

    @abstractmethod
    async def select_rows(self, player_id: str, module_id: str) -> list[dict[str, Any]]:
        """Returns every row for a (player, module) key, best score first.

        Args:
            player_id: The opaque player identifier.
            module_id: The module identifier.

        Returns:
            Zero or more raw rows ordered by score descending.
        """
        ...

    @abstractmethod
    async def insert_row(self, fields: dict[str, Any]) -> str:
        """Inserts a new row and returns its id.

        The store assigns id, created_at, and updated_at.

        Args:
            fields: Column values (everything except the store-assigned ones).

        Returns:
            The new row's id.
        """
        ...

    @abstractmethod
    async def update_row(self, row_id: str, fields: dict[str, Any]) -> bool:
        """Overwrites the given columns of an existing row.

        Args:
            row_id: The row to update.
            fields: Column values to write. updated_at is refreshed.

        Returns:
            True if the row existed and was updated, False if it is gone.
        """
        ...

    @abstractmethod
    async def delete_rows(self, row_ids: list[str]) -> None:
        """Deletes rows in one call. Unknown ids are ignored (idempotent).

        Args:
            row_ids: Ids of the rows to delete.
        """
        ...

    @abstractmethod
    async def select_module_rows(self, module_id: str, limit: int) -> list[dict[str, Any]]:
        """Returns the top rows for a module across all players.

        Args:
            module_id: The module identifier.
            limit: Maximum number of rows.

        Returns:
            Raw rows ordered by score descending.
        """
        ...

    @abstractmethod
    async def select_player_rows(self, player_id: str) -> list[dict[str, Any]]:
        """Returns every row a player has, across all modules.

        Args:
            player_id: The opaque player identifier.

        Returns:
            Raw rows in no particular order.
        """
        ...


# ---------------------------------------------------------------------------
# Session storage (ephemeral, 24h TTL)
# ---------------------------------------------------------------------------


class SessionStore(ABC):
    """Ephemeral storage for live board sessions (24h TTL).

    Holds in-progress GameSessions between requests. Deliberately separate
    from ProgressStore: sessions are disposable, progress rows are not.

    The store is responsible for TTL enforcement: get_session returns None
    for expired sessions. Callers never check expiry manually. The
    GameSession.expires_at field is the TTL source of truth.

    TEAM: Replace the stub (InMemorySessionStore) with your session store.
    """

    @abstractmethod
    async def get_session(self, session_id: str) -> GameSession | None:
        """Retrieves a live session.

        Args:
            session_id: The session identifier.

        Returns:
            The GameSession if it exists and hasn't expired, None otherwise.
        """
        ...

    @abstractmethod
    async def save_session(self, session: GameSession) -> None:
        """Creates or updates a session.

        Args:
            session: The GameSession to persist.
        """
        ...

    @abstractmethod
    async def delete_session(self, session_id: str) -> None:
        """Deletes a session immediately. No-op if it doesn't exist.

        Args:
            session_id: The session identifier.
        """
        ...
