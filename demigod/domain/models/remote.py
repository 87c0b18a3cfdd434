from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class RemoteEnvironment:
    project: str
    environment: str = "live"

    @property
    def site_env(self) -> str:
        return f"{self.project}.{self.environment}"

    def __str__(self) -> str:
        return self.site_env
