"""In-memory session store — development stub for SessionStore.

Python dict-backed storage for live board sessions. TTL is enforced on
read: get_session checks expires_at and lazily deletes expired entries.
Sessions are copied on the way in and out, so a handler that mutates a
session without saving it doesn't change what the store holds — the same
behaviour a networked store gives.

TEAM: Replace this with your real session store (Redis, etc.). Subclass
SessionStore from gameprogress.hooks.interfaces and implement all three
abstract methods. Your implementation MUST enforce TTL.

Tier 2 service module: imports from gameprogress.hooks.interfaces (Tier 1)
and gameprogress.schemas (Tier 1).

Usage:
    from gameprogress.hooks.sessions import InMemorySessionStore

    sessions = InMemorySessionStore()
    await sessions.save_session(game_session)
    await sessions.get_session("session-id")  # None if expired
"""

from datetime import datetime, timezone

from gameprogress.hooks.interfaces import SessionStore
from gameprogress.schemas import GameSession


class InMemorySessionStore(SessionStore):
    """STUB — dict-backed session storage, loses data on restart.

    Sessions are keyed by session_id. Expired sessions are lazily
    deleted on read.

    TEAM: Replace with your session store. TTL enforcement is your
    responsibility — callers trust get_session to return None for
    expired sessions.
    """

    def __init__(self) -> None:
        """Initialises empty session store."""
        self._sessions: dict[str, GameSession] = {}

    async def get_session(self, session_id: str) -> GameSession | None:
        """Retrieves a copy of a session, or None if expired or missing."""
        session = self._sessions.get(session_id)
        if session is None:
            return None
        if session.expires_at <= datetime.now(timezone.utc):
            del self._sessions[session_id]
            return None
        return session.model_copy(deep=True)

    async def save_session(self, session: GameSession) -> None:
        """Stores a copy of the session, keyed by session_id."""
        self._sessions[session.session_id] = session.model_copy(deep=True)

    async def delete_session(self, session_id: str) -> None:
        """Deletes a session. No-op if not found (idempotent)."""
        self._sessions.pop(session_id, None)
