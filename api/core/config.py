"""
Environment-backed settings.

Values are read on each call so tests can patch the environment with
`monkeypatch.setenv` without reloading modules.
"""

from __future__ import annotations

import os

_TRUTHY = {"1", "true", "yes", "on"}


def _env_str(name: str, default: str) -> str:
    return os.environ.get(name, "").strip() or default


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


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name, "").strip().lower()
    if not raw:
        return default
    return raw in _TRUTHY


def _env_list(name: str, default: str) -> list[str]:
    raw = os.environ.get(name)
    if raw is None:
        raw = default
    return [part.strip() for part in raw.split(",") if part.strip()]


def log_level() -> str:
    return _env_str("LOG_LEVEL", "INFO").upper()


def verbose_request_logging() -> bool:
    return _env_bool("VERBOSE_REQUEST_LOGGING", False)


def request_log_exclude_paths() -> set[str]:
    return set(_env_list("REQUEST_LOG_EXCLUDE_PATHS", "/health,/metrics"))


def request_log_max_body_bytes() -> int:
    return _env_int("REQUEST_LOG_MAX_BODY_BYTES", 10_000)


def api_token() -> str:
    # Empty means authorization is disabled (local development).
    return os.environ.get("API_TOKEN", "").strip()


def cors_origins() -> list[str]:
    return _env_list("CORS_ORIGINS", "http://localhost:5173,http://127.0.0.1:5173")


def database_url() -> str:
    return os.environ.get("DATABASE_URL", "").strip()


def db_pool_min_size() -> int:
    return _env_int("DB_POOL_MIN_SIZE", 1)


def db_pool_max_size() -> int:
    return _env_int("DB_POOL_MAX_SIZE", 10)


def db_command_timeout_s() -> float:
    return _env_float("DB_COMMAND_TIMEOUT_S", 30.0)
