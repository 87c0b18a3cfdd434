from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, SecretStr

from demigod.config import ProjectPaths, container_name, make_paths
from demigod.domain.errors import ConfigurationError
from demigod.domain.models.remote import RemoteEnvironment


class ConfigModel(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)


class DatabaseConfig(ConfigModel):
    host: str = "127.0.0.1"
    port: int = Field(default=33067, ge=1, le=65535)
    user: str = Field(default="root", min_length=1)
    password: SecretStr
    name: str = Field(min_length=1)


class ProjectConfig(ConfigModel):
    project_name: str = Field(min_length=1, pattern=r"^[A-Za-z0-9][A-Za-z0-9_.-]*$")
    environment: str = Field(default="live", min_length=1, pattern=r"^[A-Za-z0-9][A-Za-z0-9_-]*$")
    root: Path
    database: DatabaseConfig | None = None
    max_retries: int = Field(default=10, ge=0)
    poll_interval_seconds: float = Field(default=10.0, ge=0)
    max_age_hours: int = Field(default=24, gt=0)
    cleanup_after_apply: bool = False
    wait_for_database: bool = True

    @property
    def paths(self) -> ProjectPaths:
        return make_paths(self.root, self.project_name)

    @property
    def remote(self) -> RemoteEnvironment:
        return RemoteEnvironment(project=self.project_name, environment=self.environment)

    def container(self, service: str) -> str:
        return container_name(self.project_name, service)

    def require_database(self) -> DatabaseConfig:
        if self.database is None:
            raise ConfigurationError(
                "database connection is not configured; set MYSQL_ROOT_PASSWORD and MYSQL_DATABASE",
                details={"missing": ["MYSQL_ROOT_PASSWORD", "MYSQL_DATABASE"]},
            )
        return self.database
