from __future__ import annotations

from enum import StrEnum


class HealthStatus(StrEnum):
    UNKNOWN = "unknown"
    STARTING = "starting"
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"

    @classmethod
    def parse(cls, raw: str | None) -> "HealthStatus":
        token = str(raw or "").strip().lower()
        try:
            return cls(token)
        except ValueError:
            return cls.UNKNOWN


class ArtifactKind(StrEnum):
    DATABASE = "database"
    FILES = "files"

    @property
    def element(self) -> str:
        # terminus names the database element "db".
        return "db" if self is ArtifactKind.DATABASE else "files"


class FetchStep(StrEnum):
    CREATE = "create"
    DOWNLOAD = "download"


class ApplyStep(StrEnum):
    IMPORT = "import"
    EXTRACT = "extract"
    RENAME = "rename"
    MERGE = "merge"
    CLEANUP = "cleanup"


class SyncStage(StrEnum):
    WAIT = "wait"
    RESOLVE = "resolve"
    FETCH = "fetch"
    APPLY = "apply"


class OutcomeStatus(StrEnum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"
