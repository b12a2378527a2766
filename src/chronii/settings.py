from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import List


@dataclass(frozen=True)
class Settings:
    """
    Application settings loaded from environment variables.

    Env vars:
    - LOCAL_STORE_BACKEND: 'memory' (default) or 'sqlite'
    - LOCAL_STORE_PATH: path to the sqlite file backing the local store. Default './data/local.db'
    - CLOUD_STORE_BACKEND: 'memory' (default) or 'sqlite'
    - CLOUD_STORE_PATH: path to the sqlite file backing the cloud store. Default './data/cloud.db'
    - NOTE_SAVE_DEBOUNCE_SECONDS: delay before an edited note is persisted (default 2.0)
    - STORE_TIMEOUT_SECONDS: per-write timeout used by synchronization passes (default 10.0)
    - CLEAR_LOCAL_AFTER_UPLOAD: 'true' to delete local items after a clean upload (default: false)
    - CORS_ALLOW_ORIGINS: comma-separated list of allowed origins; '*' by default
    - LOG_LEVEL: logging level name (default: INFO)
    """

    local_store_backend: str = "memory"
    local_store_path: str = "./data/local.db"
    cloud_store_backend: str = "memory"
    cloud_store_path: str = "./data/cloud.db"
    note_save_debounce_seconds: float = 2.0
    store_timeout_seconds: float = 10.0
    clear_local_after_upload: bool = False
    cors_allow_origins: List[str] = field(default_factory=lambda: ["*"])
    log_level: str = "INFO"


_BACKENDS = {"memory", "sqlite"}
_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def _get_env(name: str, default: str) -> str:
    value = os.getenv(name, default)
    if value is None or value == "":
        return default
    return value


def _parse_bool(value: str, default: bool = False) -> bool:
    v = value.strip().lower()
    if v in {"1", "true", "yes", "on"}:
        return True
    if v in {"0", "false", "no", "off"}:
        return False
    return default


def _parse_seconds(value: str, default: float) -> float:
    try:
        parsed = float(value.strip())
    except ValueError:
        return default
    return parsed if parsed >= 0 else default


def _parse_backend(value: str) -> str:
    backend = value.strip().lower()
    # Fallback to memory if unsupported
    return backend if backend in _BACKENDS else "memory"


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
    log_level = _get_env("LOG_LEVEL", "INFO").strip().upper()
    if log_level not in _LOG_LEVELS:
        log_level = "INFO"

    return Settings(
        local_store_backend=_parse_backend(_get_env("LOCAL_STORE_BACKEND", "memory")),
        local_store_path=_get_env("LOCAL_STORE_PATH", "./data/local.db").strip(),
        cloud_store_backend=_parse_backend(_get_env("CLOUD_STORE_BACKEND", "memory")),
        cloud_store_path=_get_env("CLOUD_STORE_PATH", "./data/cloud.db").strip(),
        note_save_debounce_seconds=_parse_seconds(_get_env("NOTE_SAVE_DEBOUNCE_SECONDS", "2.0"), 2.0),
        store_timeout_seconds=_parse_seconds(_get_env("STORE_TIMEOUT_SECONDS", "10.0"), 10.0),
        clear_local_after_upload=_parse_bool(_get_env("CLEAR_LOCAL_AFTER_UPLOAD", "false"), False),
        cors_allow_origins=_parse_origins(_get_env("CORS_ALLOW_ORIGINS", "*")),
        log_level=log_level,
    )
