"""Tests for gameprogress.config — Typed configuration from environment."""

import pytest

import gameprogress.config as config_module
from gameprogress.config import get_settings


@pytest.fixture(autouse=True)
def _reset_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    """Resets the cached singleton and keeps the real .env out of the way."""
    monkeypatch.setattr(config_module, "_settings", None)
    monkeypatch.setattr(config_module, "_DOTENV_PATH", config_module.PROJECT_ROOT / ".env.absent")


@pytest.fixture()
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Removes all service env vars so defaults are tested cleanly."""
    env_vars = [
        "APP_ENV", "APP_PORT", "LOG_LEVEL", "CORS_ORIGINS",
        "STORE_TIMEOUT_SECONDS", "STORE_MAX_RETRIES", "STORE_BACKOFF_BASE",
        "CHECKPOINT_DEBOUNCE_SECONDS", "CHECKPOINT_INTERVAL_SECONDS",
        "DEFAULT_MODULE",
    ]
    for var in env_vars:
        monkeypatch.delenv(var, raising=False)


class TestDefaults:
    """Settings defaults when no env vars are set."""

    @pytest.mark.usefixtures("_clean_env")
    def test_app_defaults(self) -> None:
        s = get_settings()
        assert s.app_env == "development"
        assert s.app_port == 8000
        assert s.log_level == "info"

    @pytest.mark.usefixtures("_clean_env")
    def test_cors_origins_default(self) -> None:
        s = get_settings()
        assert s.cors_origins == ["http://localhost:3000", "http://localhost:5173"]

    @pytest.mark.usefixtures("_clean_env")
    def test_store_defaults(self) -> None:
        s = get_settings()
        assert s.store_timeout_seconds == 5.0
        assert s.store_max_retries == 2
        assert s.store_backoff_base == 0.5

    @pytest.mark.usefixtures("_clean_env")
    def test_sync_defaults(self) -> None:
        s = get_settings()
        assert s.checkpoint_debounce_seconds == 1.0
        assert s.checkpoint_interval_seconds == 30
        assert s.default_module == "bingo-gmp"


class TestOverrides:
    """Environment variables override defaults."""

    @pytest.mark.usefixtures("_clean_env")
    def test_numeric_overrides(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("STORE_TIMEOUT_SECONDS", "1.5")
        monkeypatch.setenv("STORE_MAX_RETRIES", "4")
        s = get_settings()
        assert s.store_timeout_seconds == 1.5
        assert s.store_max_retries == 4

    @pytest.mark.usefixtures("_clean_env")
    def test_cors_csv(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CORS_ORIGINS", " https://a.example , ,https://b.example")
        assert get_settings().cors_origins == ["https://a.example", "https://b.example"]

    @pytest.mark.usefixtures("_clean_env")
    def test_default_module_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("DEFAULT_MODULE", "case-quiz")
        assert get_settings().default_module == "case-quiz"


class TestInvalidValues:
    """Bad values fail loudly, naming the variable."""

    @pytest.mark.usefixtures("_clean_env")
    def test_unknown_module(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("DEFAULT_MODULE", "chess")
        with pytest.raises(ValueError, match="DEFAULT_MODULE"):
            get_settings()

    @pytest.mark.usefixtures("_clean_env")
    def test_non_numeric(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("STORE_MAX_RETRIES", "many")
        with pytest.raises(ValueError, match="STORE_MAX_RETRIES"):
            get_settings()

    @pytest.mark.usefixtures("_clean_env")
    def test_negative(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CHECKPOINT_DEBOUNCE_SECONDS", "-1")
        with pytest.raises(ValueError, match="CHECKPOINT_DEBOUNCE_SECONDS"):
            get_settings()


class TestSingleton:
    """get_settings caches."""

    @pytest.mark.usefixtures("_clean_env")
    def test_same_instance(self) -> None:
        assert get_settings() is get_settings()
