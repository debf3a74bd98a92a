# src/site_tasks/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object, built once and passed into the components that need it.
- No secrets required at import time.
- Every knob has a sane default so tests and the CLI run without any env.
"""

from __future__ import annotations

import functools
import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import find_dotenv, load_dotenv

ENV_PREFIX = "SITE_TASKS"


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    db_path: Path

    # ---- Store ----
    store_timeout_seconds: float

    # ---- Listing ----
    default_page_size: int
    max_page_size: int

    # ---- Stats windows ----
    due_soon_days: int
    upcoming_window_days: int
    upcoming_limit: int

    # ---- Dependency checks ----
    detect_cycles: bool

    @staticmethod
    def from_env(*, load_env_file: bool = True) -> "Settings":
        if load_env_file:
            load_dotenv(find_dotenv(usecwd=True), override=False)

        app_name = _env(_k("APP_NAME"), "site-tasks")
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/site_tasks"))
        db_path = _env_path(_k("DB_PATH"), data_dir / "tasks.sqlite3")

        store_timeout_seconds = max(0.1, _env_float(_k("STORE_TIMEOUT_SECONDS"), 5.0))

        max_page_size = max(1, _env_int(_k("MAX_PAGE_SIZE"), 100))
        default_page_size = min(max_page_size, max(1, _env_int(_k("DEFAULT_PAGE_SIZE"), 20)))

        due_soon_days = max(0, _env_int(_k("DUE_SOON_DAYS"), 7))
        upcoming_window_days = max(0, _env_int(_k("UPCOMING_WINDOW_DAYS"), 14))
        upcoming_limit = max(0, _env_int(_k("UPCOMING_LIMIT"), 10))

        detect_cycles = _env_bool(_k("DETECT_CYCLES"), True)

        return Settings(
            app_name=app_name,
            log_level=log_level,
            data_dir=data_dir,
            db_path=db_path,
            store_timeout_seconds=store_timeout_seconds,
            default_page_size=default_page_size,
            max_page_size=max_page_size,
            due_soon_days=due_soon_days,
            upcoming_window_days=upcoming_window_days,
            upcoming_limit=upcoming_limit,
            detect_cycles=detect_cycles,
        )


@functools.lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_env()
