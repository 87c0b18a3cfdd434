from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping

_TRUTHY = frozenset({"1", "true", "yes", "y", "on"})
_FALSY = frozenset({"0", "false", "no", "n", "off"})


def env_value(key: str, *legacy: str, environ: Mapping[str, str] | None = None) -> str | None:
    """
    Return the first non-blank value among `key` and its legacy names.

    A variable exported with an empty value (`export MYSQL_DATABASE=`) is
    treated as absent, so docker-compose style env files do not shadow defaults.
    """
    source = os.environ if environ is None else environ
    for name in (key, *legacy):
        raw = source.get(name)
        if raw is not None and raw.strip():
            return raw
    return None


def env_flag(key: str, default: bool, *, environ: Mapping[str, str] | None = None) -> bool:
    token = (env_value(key, environ=environ) or "").strip().lower()
    if token in _TRUTHY:
        return True
    if token in _FALSY:
        return False
    return default


def env_int(key: str, default: int, *, minimum: int = 1, environ: Mapping[str, str] | None = None) -> int:
    """Integer env var; unparsable values or values below `minimum` give `default`."""
    raw = env_value(key, environ=environ)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return value if value >= minimum else default


@dataclass(frozen=True)
class Settings:
    log_level: str
    log_json: bool
    log_path: str | None
    log_rotation_mb: int
    log_retention_days: int


def load_settings(environ: Mapping[str, str] | None = None) -> Settings:
    return Settings(
        log_level=(env_value("DEMIGOD_LOG_LEVEL", "LOG_LEVEL", environ=environ) or "INFO").strip().upper(),
        log_json=env_flag("DEMIGOD_LOG_JSON", False, environ=environ),
        log_path=env_value("DEMIGOD_LOG_PATH", environ=environ),
        # "0" would rotate on every write.
        log_rotation_mb=env_int("DEMIGOD_LOG_ROTATION_MB", 10, environ=environ),
        log_retention_days=env_int("DEMIGOD_LOG_RETENTION_DAYS", 14, environ=environ),
    )
