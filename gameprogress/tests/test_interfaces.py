"""Tests for hook interfaces — ABCs cannot be instantiated, stubs satisfy them."""

import inspect

import pytest

from gameprogress.hooks.auth import FakeAuthService
from gameprogress.hooks.database import InMemoryProgressStore
from gameprogress.hooks.interfaces import AuthService, ProgressStore, SessionStore
from gameprogress.hooks.sessions import InMemorySessionStore


class TestAbstractness:
    """Interfaces are abstract."""

    @pytest.mark.parametrize("cls", [AuthService, ProgressStore, SessionStore])
    def test_cannot_instantiate(self, cls) -> None:
        with pytest.raises(TypeError):
            cls()

    @pytest.mark.parametrize("cls", [AuthService, ProgressStore, SessionStore])
    def test_methods_are_async(self, cls) -> None:
        for name in cls.__abstractmethods__:
            assert inspect.iscoroutinefunction(getattr(cls, name)), name

    def test_progress_store_methods(self) -> None:
        assert ProgressStore.__abstractmethods__ == {
            "select_rows", "insert_row", "update_row", "delete_rows",
            "select_module_rows", "select_player_rows",
        }

    def test_partial_implementation_rejected(self) -> None:
        class HalfStore(ProgressStore):
            async def select_rows(self, player_id, module_id):
                return []

        with pytest.raises(TypeError):
            HalfStore()


class TestStubsImplementInterfaces:
    """Stubs are concrete subclasses."""

    def test_auth(self) -> None:
        assert isinstance(FakeAuthService(), AuthService)

    def test_progress_store(self) -> None:
        assert isinstance(InMemoryProgressStore(), ProgressStore)

    def test_session_store(self) -> None:
        assert isinstance(InMemorySessionStore(), SessionStore)
