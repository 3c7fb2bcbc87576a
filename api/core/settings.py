"""
Environment-driven settings.

Every value is read on call so tests can monkeypatch the environment.
"""

from __future__ import annotations

import os


def _env_str(name: str, default: str) -> str:
    return os.environ.get(name, default).strip() or default


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def log_level() -> str:
    return _env_str("LOG_LEVEL", "INFO").upper()


def db_pool_min_size() -> int:
    return max(_env_int("DB_POOL_MIN_SIZE", 1), 1)


def db_pool_max_size() -> int:
    return max(_env_int("DB_POOL_MAX_SIZE", 5), db_pool_min_size())


def db_command_timeout_s() -> float:
    return _env_float("DB_COMMAND_TIMEOUT_S", 30.0)


def cors_origins() -> list[str]:
    raw = _env_str("CORS_ORIGINS", "http://localhost:5173,http://127.0.0.1:5173")
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


def catalog_list_max_limit() -> int | None:
    """
    Cap applied by the HTTP layer when a list request carries no limit.
    0 (or negative) disables the cap.
    """
    value = _env_int("CATALOG_LIST_MAX_LIMIT", 500)
    return value if value > 0 else None
