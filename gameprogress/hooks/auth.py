"""Fake auth service — development stub for AuthService.

Accepts any non-empty token. Tokens listed in ``token_players`` resolve to
their mapped player id, every other token resolves to the default player.
That is enough to drive multi-player leaderboard tests without a real
identity provider.

TEAM: Replace this with your real auth provider (OAuth, JWT, etc.).
Subclass AuthService from gameprogress.hooks.interfaces and implement
validate_token and get_user.

Tier 2 service module: imports from gameprogress.hooks.interfaces (Tier 1)
and gameprogress.schemas (Tier 1).

Usage:
    from gameprogress.hooks.auth import FakeAuthService

    auth = FakeAuthService()                                   # one player
    auth = FakeAuthService(token_players={"tok-b": "player-b"})  # several
"""

from gameprogress.hooks.interfaces import AuthService
from gameprogress.schemas import User

DEFAULT_PLAYER_ID = "fake-player-1"


class FakeAuthService(AuthService):
    """STUB — returns a test player for any non-empty token.

    Does not perform real authentication.

    TEAM: Replace with your auth provider. Satisfy the AuthService
    interface from gameprogress.hooks.interfaces.
    """

    def __init__(
        self,
        default_player_id: str = DEFAULT_PLAYER_ID,
        token_players: dict[str, str] | None = None,
    ) -> None:
        """Initialises the fake auth service.

        Args:
            default_player_id: Player id returned for unmapped tokens.
            token_players: Optional token -> player id overrides.
        """
        self._default_player_id = default_player_id
        self._token_players = dict(token_players or {})

    async def validate_token(self, token: str) -> User | None:
        """Returns a test player for any non-empty token.

        Args:
            token: Any string. Non-empty → valid user, empty → None.

        Returns:
            The mapped or default player, or None if token is empty.
        """
        if not token:
            return None
        player_id = self._token_players.get(token, self._default_player_id)
        return User(id=player_id, name=f"Player {player_id}")

    async def get_user(self, user_id: str) -> User | None:
        """Returns a test player with the given ID, None for an empty ID."""
        if not user_id:
            return None
        return User(id=user_id, name=f"Player {user_id}")
