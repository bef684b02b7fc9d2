# src/dayline/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app (normal "settings layer").
- No secrets or session required at import time.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

ENV_PREFIX = "DAYLINE"


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _load_dotenv_if_available() -> None:
    """Load .env locally if python-dotenv is installed. Safe no-op otherwise."""
    try:
        from dotenv import load_dotenv  # type: ignore
    except Exception:
        return
    load_dotenv(override=False)


_load_dotenv_if_available()


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

    # ---- Session ----
    user_id: str | None
    timezone: str | None

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    db_path: Path
    sources_path: Path

    # ---- Timeline tuning ----
    carry_over_days: int
    afternoon_start_hour: int
    evening_start_hour: int

    # ---- Store ----
    unique_instances: bool

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "dayline").strip() or "dayline"
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        user_id = _env(_k("USER_ID"), "").strip() or None
        timezone = _env(_k("TIMEZONE"), "").strip() or None

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/dayline"))
        db_path = _env_path(_k("DB_PATH"), data_dir / "instances.sqlite3")
        sources_path = _env_path(_k("SOURCES_PATH"), data_dir / "planner.json")

        carry_over_days = max(0, _env_int(_k("CARRY_OVER_DAYS"), 1))

        # Section boundaries are hours of the day; keep them ordered and in range.
        afternoon_start_hour = min(23, max(0, _env_int(_k("AFTERNOON_START_HOUR"), 12)))
        evening_start_hour = min(24, max(afternoon_start_hour, _env_int(_k("EVENING_START_HOUR"), 17)))

        unique_instances = _env_bool(_k("UNIQUE_INSTANCES"), True)

        return Settings(
            app_name=app_name,
            log_level=log_level,
            user_id=user_id,
            timezone=timezone,
            data_dir=data_dir,
            db_path=db_path,
            sources_path=sources_path,
            carry_over_days=carry_over_days,
            afternoon_start_hour=afternoon_start_hour,
            evening_start_hour=evening_start_hour,
            unique_instances=unique_instances,
        )


SETTINGS = Settings.from_env()


def get_settings() -> Settings:
    return SETTINGS
