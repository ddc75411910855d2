"""
FILE: duely/config.py
PURPOSE: Settings loaded from DUELY_* environment variables (+ optional .env)
EXPORTS:
  - Settings (frozen dataclass)
  - get_settings() -> Settings
  - current_owner_id(override) -> Optional[str]
DEPENDENCIES:
  - python-dotenv (load .env into the environment)
  - os, pathlib, dataclasses (stdlib)
NOTES:
  - Read fresh on every call so tests can monkeypatch the environment
  - Invalid numeric values fall back to defaults rather than crashing the CLI
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from .core.constants import DEFAULT_RETENTION_DAYS

ENV_PREFIX = "DUELY"

DEFAULT_HOME = Path.home() / ".duely"


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


load_dotenv(override=False)


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


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


@dataclass(frozen=True)
class Settings:
    # ---- Storage ----
    db_path: Path
    db_timeout: float

    # ---- Trash ----
    retention_days: int

    # ---- Identity ----
    user: Optional[str]

    # ---- Logging ----
    log_level: str
    log_dir: Path


def get_settings() -> Settings:
    """Build Settings from the current environment."""
    user = _env(_k("USER")).strip() or None
    return Settings(
        db_path=_env_path(_k("DB_PATH"), DEFAULT_HOME / "duely.db"),
        db_timeout=_env_float(_k("DB_TIMEOUT"), 5.0),
        retention_days=_env_int(_k("RETENTION_DAYS"), DEFAULT_RETENTION_DAYS),
        user=user,
        log_level=_env(_k("LOG_LEVEL"), "WARNING").strip().upper() or "WARNING",
        log_dir=_env_path(_k("LOG_DIR"), DEFAULT_HOME / "logs"),
    )


def current_owner_id(override: Optional[str] = None) -> Optional[str]:
    """Resolve the owner identity: explicit override first, then DUELY_USER."""
    if override is not None and override.strip():
        return override.strip()
    return get_settings().user
