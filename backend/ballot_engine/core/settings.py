from __future__ import annotations

import os
from functools import lru_cache
from typing import Optional

from pydantic import BaseModel, Field


class Settings(BaseModel):
    log_file: Optional[str] = Field(default=None)
    log_level: str = Field(default="INFO")
    log_max_bytes: int = Field(default=5 * 1024 * 1024)
    log_backup_count: int = Field(default=3)
    log_events: bool = Field(default=True)


def _env(name: str, default: Optional[str] = None) -> Optional[str]:
    value = os.getenv(name, default)
    if value is None:
        return None
    return value


def _load_settings() -> Settings:
    env = os.getenv
    log_file = _env("BALLOT_LOG_FILE")
    if log_file == "":
        log_file = None
    log_level = (env("BALLOT_LOG_LEVEL", "INFO") or "INFO").upper()
    log_max_bytes = int(env("BALLOT_LOG_MAX_BYTES", str(5 * 1024 * 1024)))
    log_backup_count = int(env("BALLOT_LOG_BACKUP_COUNT", "3"))
    log_events = env("BALLOT_LOG_EVENTS", "1") == "1"
    return Settings(
        log_file=log_file,
        log_level=log_level,
        log_max_bytes=log_max_bytes,
        log_backup_count=log_backup_count,
        log_events=log_events,
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return _load_settings()


def reload_settings() -> Settings:
    get_settings.cache_clear()
    return get_settings()


__all__ = ["Settings", "get_settings", "reload_settings"]
