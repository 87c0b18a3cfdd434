from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import ValidationError

from demigod.domain.errors import ConfigurationError
from demigod.schemas.project import ProjectConfig
from demigod.settings import env_flag, env_value

_ENV_FIELDS: dict[str, str] = {
    "project_name": "PROJECT_NAME",
    "environment": "DEMIGOD_ENV",
    "max_retries": "DEMIGOD_MAX_RETRIES",
    "poll_interval_seconds": "DEMIGOD_POLL_INTERVAL",
    "max_age_hours": "DEMIGOD_MAX_AGE_HOURS",
}


def _database_payload() -> dict[str, Any] | None:
    password = env_value("MYSQL_ROOT_PASSWORD")
    name = env_value("MYSQL_DATABASE")
    if password is None and name is None:
        return None
    payload: dict[str, Any] = {"password": password, "name": name}
    for field, key in (("host", "DEMIGOD_DB_HOST"), ("port", "DEMIGOD_DB_PORT"), ("user", "DEMIGOD_DB_USER")):
        value = env_value(key)
        if value is not None:
            payload[field] = value
    return payload


def _describe(exc: ValidationError) -> str:
    parts = []
    for item in exc.errors():
        loc = ".".join(str(x) for x in item.get("loc", ()))
        parts.append(f"{loc}: {item.get('msg', 'invalid')}")
    return "; ".join(parts)


def load_project_config(root: Path, *, environment: str | None = None) -> ProjectConfig:
    """
    Build the validated project configuration from the process environment.

    Missing or malformed values surface here as ConfigurationError, before any
    command has been executed.
    """
    payload: dict[str, Any] = {"root": root}
    for field, key in _ENV_FIELDS.items():
        value = env_value(key)
        if value is not None:
            payload[field] = value
    if "project_name" not in payload:
        raise ConfigurationError(
            "PROJECT_NAME is not set",
            details={"missing": ["PROJECT_NAME"]},
        )
    if environment:
        payload["environment"] = environment
    payload["cleanup_after_apply"] = env_flag("DEMIGOD_CLEANUP", False)
    payload["wait_for_database"] = env_flag("DEMIGOD_WAIT_FOR_DB", True)
    database = _database_payload()
    if database is not None:
        payload["database"] = database

    try:
        return ProjectConfig.model_validate(payload)
    except ValidationError as exc:
        raise ConfigurationError(
            f"invalid configuration: {_describe(exc)}",
            details=exc.errors(include_url=False, include_context=False),
        ) from exc
