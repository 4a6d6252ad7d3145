"""Contract tests for AuthService: the behaviour every implementation must have.

Verifies that any AuthService implementation satisfies the token validation
and user lookup contracts: non-empty token/user_id → User, empty → None.
Real implementations will validate JWTs, session cookies, etc. — but this
behavioral boundary must hold.

Run against registered implementations:
    python -m pytest gameprogress/tests/contracts/test_auth_contract.py -v
"""

import pytest

from gameprogress.schemas import User


class TestAuthContract:
    """Behavioral contract for AuthService implementations."""

    # -- Token validation --------------------------------------------------

    @pytest.mark.asyncio
    async def test_valid_token_returns_user(self, auth_service) -> None:
        """Non-empty token must return a User instance."""
        user = await auth_service.validate_token("any-valid-token")
        assert isinstance(user, User)

    @pytest.mark.asyncio
    async def test_valid_token_user_has_all_fields(self, auth_service) -> None:
        """Returned User must carry a non-empty id and name."""
        user = await auth_service.validate_token("test-token")
        assert user is not None
        assert isinstance(user.id, str) and user.id
        assert isinstance(user.name, str) and user.name

    @pytest.mark.asyncio
    async def test_same_token_same_player(self, auth_service) -> None:
        """A token must resolve to a stable player id across calls."""
        first = await auth_service.validate_token("stable-token")
        second = await auth_service.validate_token("stable-token")
        assert first is not None and second is not None
        assert first.id == second.id

    @pytest.mark.asyncio
    async def test_empty_token_returns_none(self, auth_service) -> None:
        """Empty token must return None (invalid/missing auth)."""
        assert await auth_service.validate_token("") is None

    # -- User lookup -------------------------------------------------------

    @pytest.mark.asyncio
    async def test_get_user_returns_user_with_matching_id(self, auth_service) -> None:
        """Non-empty user_id must return a User with that exact id."""
        user = await auth_service.get_user("user-42")
        assert isinstance(user, User)
        assert user.id == "user-42"

    @pytest.mark.asyncio
    async def test_get_user_empty_returns_none(self, auth_service) -> None:
        """Empty user_id must return None."""
        assert await auth_service.get_user("") is None
