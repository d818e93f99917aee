"""
app/config.py

Application-level configuration helpers.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from app.aggregation.admission import DEFAULT_MAX_CONCURRENT
from app.aggregation.engine import DEFAULT_STALL_TIMEOUT_SECONDS
from app.aggregation.fetcher import DEFAULT_CHUNK_SIZE, DEFAULT_POOL_MAXSIZE, DEFAULT_USER_AGENT

DEFAULT_PORT = 3000
DEFAULT_AGGREGATOR_PATH = "/"


def load_env_files() -> None:
    """
    Load simple KEY=VALUE pairs from `.env` and `.env.local` (if present).
    Existing process environment variables are not overwritten.
    """

    project_root = Path(__file__).resolve().parents[1]
    for filename in (".env", ".env.local"):
        env_path = project_root / filename
        if not env_path.exists():
            continue

        for raw_line in env_path.read_text(encoding="utf-8").splitlines():
            line = raw_line.strip()
            if not line or line.startswith("#") or "=" not in line:
                continue

            key, value = line.split("=", 1)
            key = key.strip()
            value = value.strip().strip('"').strip("'")
            if key and key not in os.environ:
                os.environ[key] = value


@lru_cache(maxsize=1)
def _load_env_once() -> None:
    """
    Ensure project `.env` files are loaded once before reading app settings.
    """

    load_env_files()


def _get_int_env(name: str, default: int) -> int:
    """
    Read an integer from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return int(raw_value)
    except ValueError:
        return default


def _get_float_env(name: str, default: float) -> float:
    """
    Read a float from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return float(raw_value)
    except ValueError:
        return default


def _get_str_env(name: str, default: str) -> str:
    """
    Read a string from environment variables with fallback.
    """

    _load_env_once()
    value = os.getenv(name)
    if value is None:
        return default
    stripped = value.strip()
    return stripped if stripped else default


def normalize_mount_path(path: str) -> str:
    """
    Return `path` with exactly one leading slash and no trailing slash.
    """

    stripped = path.strip().strip("/")
    return f"/{stripped}"


@dataclass(frozen=True)
class AggregatorSettings:
    """
    Runtime settings for the URL size aggregation endpoint.
    """

    max_concurrent: int = DEFAULT_MAX_CONCURRENT
    stall_timeout_seconds: float = DEFAULT_STALL_TIMEOUT_SECONDS
    path: str = DEFAULT_AGGREGATOR_PATH
    user_agent: str = DEFAULT_USER_AGENT
    chunk_size: int = DEFAULT_CHUNK_SIZE
    pool_maxsize: int = DEFAULT_POOL_MAXSIZE


@dataclass(frozen=True)
class ServerSettings:
    """
    Process-level settings for serving the API.
    """

    port: int = DEFAULT_PORT
    log_level: str = "INFO"


@lru_cache(maxsize=1)
def get_aggregator_settings() -> AggregatorSettings:
    """
    Return cached aggregator settings from environment variables.
    """

    return AggregatorSettings(
        max_concurrent=max(1, _get_int_env("AGGREGATOR_MAX_CONCURRENT", DEFAULT_MAX_CONCURRENT)),
        stall_timeout_seconds=max(
            0.01,
            _get_float_env("AGGREGATOR_STALL_TIMEOUT_SECONDS", DEFAULT_STALL_TIMEOUT_SECONDS),
        ),
        path=normalize_mount_path(_get_str_env("AGGREGATOR_PATH", DEFAULT_AGGREGATOR_PATH)),
        user_agent=_get_str_env("AGGREGATOR_USER_AGENT", DEFAULT_USER_AGENT),
        chunk_size=max(1, _get_int_env("AGGREGATOR_CHUNK_SIZE", DEFAULT_CHUNK_SIZE)),
        pool_maxsize=max(1, _get_int_env("AGGREGATOR_POOL_MAXSIZE", DEFAULT_POOL_MAXSIZE)),
    )


@lru_cache(maxsize=1)
def get_server_settings() -> ServerSettings:
    """
    Return cached server settings from environment variables.
    """

    return ServerSettings(
        port=_get_int_env("PORT", DEFAULT_PORT),
        log_level=_get_str_env("LOG_LEVEL", "INFO").upper(),
    )
