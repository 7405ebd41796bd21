"""Application configuration objects and helpers."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: bool = False) -> bool:
    """Interpret environment variable values as booleans."""

    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    """Interpret environment variable values as integers."""

    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value.strip())
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {value!r}") from exc


class BaseConfig:
    """Base configuration shared across environments."""

    APP_NAME = "MicroHabits"
    DB_FILENAME = "microhabits.db"
    FREE_HABIT_LIMIT = 3
    DEFAULT_RECONCILE_INTERVAL = 60
    SQLITE_PRAGMAS = {"journal_mode": "wal", "foreign_keys": "on"}

    def __init__(self) -> None:
        self.DATA_DIR = self._resolve_data_dir()
        self.DEV_MODE = _env_bool("MICROHABITS_DEV_MODE", default=False)
        self.DATABASE_URL = os.getenv("MICROHABITS_DATABASE_URL", self._build_sqlite_url())
        self.RECONCILE_INTERVAL_SECONDS = _env_int(
            "MICROHABITS_RECONCILE_INTERVAL", self.DEFAULT_RECONCILE_INTERVAL
        )
        self.TIMEZONE: Optional[str] = os.getenv("MICROHABITS_TIMEZONE") or None
        self.DEFAULT_USERNAME = os.getenv("MICROHABITS_USER", "local").strip() or "local"
        if self.RECONCILE_INTERVAL_SECONDS <= 0:
            raise ValueError("MICROHABITS_RECONCILE_INTERVAL must be a positive number of seconds.")

    def _resolve_data_dir(self) -> Path:
        """Return the directory where the SQLite file and logs live."""

        data_root = os.getenv("MICROHABITS_DATA_DIR", "instance")
        path = Path(data_root).expanduser().resolve()
        path.mkdir(parents=True, exist_ok=True)
        return path

    def _build_sqlite_url(self) -> str:
        """Construct the default SQLite URL inside the data directory."""

        return f"sqlite:///{self.DATA_DIR / self.DB_FILENAME}"

    def sqlalchemy_engine_options(self) -> dict[str, Any]:
        """Expose engine kwargs for SQLModel to consume."""

        if self.DATABASE_URL.startswith("sqlite"):
            # Scheduler ticks run on APScheduler's worker threads.
            return {"connect_args": {"check_same_thread": False}}
        return {}


class DevConfig(BaseConfig):
    """Development configuration with verbose console logging."""

    DEBUG = True
    TESTING = False

    def __init__(self) -> None:
        super().__init__()
        self.DEV_MODE = True


class TestingConfig(BaseConfig):
    """Configuration for the test-suite: in-memory friendly, quiet logging."""

    DEBUG = False
    TESTING = True
