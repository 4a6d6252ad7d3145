"""App configuration — environment variable loading with typed defaults.

Loads settings from .env file (via python-dotenv) and os.environ.
Real environment variables take precedence over .env file values.

DEFAULT_MODULE is validated against the module catalog at load time, and
numeric variables fail loudly with the variable name when unparseable.

Usage:
    from gameprogress.config import get_settings
    settings = get_settings()
    print(settings.store_timeout_seconds)  # 5.0
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from gameprogress.catalog import MODULE_MAP

# Only load .env from the project root, never from parent directories.
PROJECT_ROOT = Path(__file__).resolve().parent.parent
_DOTENV_PATH = PROJECT_ROOT / ".env"


@dataclass(frozen=True)
class Settings:
    """Typed configuration for the game progress service.

    All fields have sensible defaults for local development.
    """

    # App
    app_env: str
    app_port: int
    log_level: str
    cors_origins: list[str]

    # Progress store
    store_timeout_seconds: float
    store_max_retries: int
    store_backoff_base: float

    # Sync cadence
    checkpoint_debounce_seconds: float
    checkpoint_interval_seconds: int

    # Content
    default_module: str


def _resolve_module_id(env_var: str, value: str) -> str:
    """Checks a module id against the catalog.

    Args:
        env_var: Name of the environment variable (for error messages).
        value: The module id from the environment.

    Returns:
        The module id, unchanged.

    Raises:
        ValueError: If the value doesn't match any key in MODULE_MAP.
    """
    if value in MODULE_MAP:
        return value
    valid = ", ".join(sorted(MODULE_MAP.keys()))
    raise ValueError(
        f"Invalid value for {env_var}: {value!r}. "
        f"Valid options: {valid}"
    )


def _read_number(env_var: str, default: str, cast: type) -> int | float:
    """Reads a numeric env var, naming the variable if it doesn't parse."""
    raw = os.environ.get(env_var, default)
    try:
        value = cast(raw)
    except ValueError:
        raise ValueError(f"Invalid value for {env_var}: {raw!r}. Expected a number.") from None
    if value < 0:
        raise ValueError(f"Invalid value for {env_var}: {raw!r}. Must not be negative.")
    return value


def _split_csv(value: str) -> list[str]:
    """Splits a comma-separated string into a list of stripped, non-empty values."""
    return [item.strip() for item in value.split(",") if item.strip()]


def _load_settings() -> Settings:
    """Loads configuration from .env file and environment variables.

    Returns:
        A fully resolved Settings instance.
    """
    load_dotenv(_DOTENV_PATH)

    return Settings(
        # App
        app_env=os.environ.get("APP_ENV", "development"),
        app_port=int(os.environ.get("APP_PORT", "8000")),
        log_level=os.environ.get("LOG_LEVEL", "info"),
        cors_origins=_split_csv(
            os.environ.get("CORS_ORIGINS", "http://localhost:3000,http://localhost:5173")
        ),
        # Progress store
        store_timeout_seconds=_read_number("STORE_TIMEOUT_SECONDS", "5.0", float),
        store_max_retries=_read_number("STORE_MAX_RETRIES", "2", int),
        store_backoff_base=_read_number("STORE_BACKOFF_BASE", "0.5", float),
        # Sync cadence
        checkpoint_debounce_seconds=_read_number("CHECKPOINT_DEBOUNCE_SECONDS", "1.0", float),
        checkpoint_interval_seconds=_read_number("CHECKPOINT_INTERVAL_SECONDS", "30", int),
        # Content
        default_module=_resolve_module_id(
            "DEFAULT_MODULE",
            os.environ.get("DEFAULT_MODULE", "bingo-gmp"),
        ),
    )


_settings: Settings | None = None


def get_settings() -> Settings:
    """Returns the singleton Settings instance. Loads .env on first call."""
    global _settings
    if _settings is None:
        _settings = _load_settings()
    return _settings
