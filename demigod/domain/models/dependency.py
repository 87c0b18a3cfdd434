from __future__ import annotations

from dataclasses import dataclass

from demigod.domain.enums import HealthStatus


@dataclass(frozen=True, slots=True)
class Dependency:
    name: str
    status: HealthStatus = HealthStatus.UNKNOWN

    @property
    def ready(self) -> bool:
        return self.status is HealthStatus.HEALTHY
