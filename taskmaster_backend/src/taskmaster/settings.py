from __future__ import annotations

import os
from dataclasses import dataclass
from typing import List

from dotenv import load_dotenv

load_dotenv()


@dataclass(frozen=True)
class Settings:
    """
    Application settings loaded from environment variables.

    Env vars:
    - PERSISTENCE_BACKEND: 'memory' (default) or 'sqlite'
    - SQLITE_DB_PATH: path to sqlite db file. Default './data/taskmaster.db'
    - CORS_ALLOW_ORIGINS: comma-separated list of allowed origins; '*' by default
    - UPLOAD_DIR: directory for uploaded task images. Default './uploads'
    - MAX_UPLOAD_BYTES: largest accepted image, in bytes (default 5 MiB)
    - COUNTERS_PATH: JSON file for lifetime counters (sqlite backend only)
    - STREAK_WINDOW: number of most recent completions scanned for streaks
    - LOG_LEVEL: root log level name (default INFO)
    """

    persistence_backend: str
    sqlite_db_path: str
    cors_allow_origins: List[str]
    upload_dir: str
    max_upload_bytes: int
    counters_path: str
    streak_window: int
    log_level: str


def _get_env(name: str, default: str) -> str:
    value = os.getenv(name, default)
    if value is None or value == "":
        return default
    return value


def _parse_int(value: str, default: int) -> int:
    try:
        parsed = int(value.strip())
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _parse_origins(origins_value: str) -> List[str]:
    """
    Parse CORS origins from env. Supports:
    - '*' to allow all origins
    - Comma-separated list of origins
    """
    value = origins_value.strip()
    if value == "*":
        return ["*"]
    return [o.strip() for o in value.split(",") if o.strip()]


# PUBLIC_INTERFACE
def get_settings() -> Settings:
    """Return application settings loaded from environment variables."""
    backend = _get_env("PERSISTENCE_BACKEND", "memory").strip().lower()
    if backend not in {"memory", "sqlite"}:
        backend = "memory"

    return Settings(
        persistence_backend=backend,
        sqlite_db_path=_get_env("SQLITE_DB_PATH", "./data/taskmaster.db").strip(),
        cors_allow_origins=_parse_origins(_get_env("CORS_ALLOW_ORIGINS", "*")),
        upload_dir=_get_env("UPLOAD_DIR", "./uploads").strip(),
        max_upload_bytes=_parse_int(_get_env("MAX_UPLOAD_BYTES", "5242880"), 5 * 1024 * 1024),
        counters_path=_get_env("COUNTERS_PATH", "./data/lifetime_counters.json").strip(),
        streak_window=_parse_int(_get_env("STREAK_WINDOW", "100"), 100),
        log_level=_get_env("LOG_LEVEL", "INFO").strip().upper(),
    )
