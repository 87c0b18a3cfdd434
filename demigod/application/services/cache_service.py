from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Callable

from demigod.domain.enums import ArtifactKind
from demigod.domain.errors import CacheError
from demigod.domain.models.artifact import Artifact, CacheResolution
from demigod.domain.ports.filesystem import FilesystemPort
from demigod.logger import get_logger

DEFAULT_MAX_AGE_HOURS = 24


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def age_in_hours(created_at: datetime, now: datetime) -> int:
    seconds = (now - created_at).total_seconds()
    return max(0, int(seconds // 3600))


class ArtifactCacheManager:
    """
    Decides whether a downloaded backup on disk can be reused.

    Only file metadata is consulted; a young artifact with broken content is
    still reported fresh.
    """

    def __init__(
        self,
        filesystem: FilesystemPort,
        *,
        now: Callable[[], datetime] = utc_now,
    ) -> None:
        self.filesystem = filesystem
        self._now = now
        self._logger = get_logger()

    def resolve(
        self,
        kind: ArtifactKind,
        path: Path,
        max_age_hours: int = DEFAULT_MAX_AGE_HOURS,
    ) -> CacheResolution:
        log = self._logger.bind(kind=kind.value, step="resolve")
        if not self.filesystem.exists(path):
            log.info(f"no cached backup at {path}")
            return CacheResolution()

        try:
            created_at = self.filesystem.created_at(path)
            age = age_in_hours(created_at, self._now())
            log.info(f"Backup age: {age} hours")
            if age >= max_age_hours:
                log.info(f"backup is older than {max_age_hours} hours, deleting {path}")
                self.filesystem.delete(path)
                return CacheResolution(age_hours=age)
        except OSError as exc:
            raise CacheError(kind.value, str(path), str(exc)) from exc

        artifact = Artifact(kind=kind, path=path, created_at=created_at)
        return CacheResolution(artifact=artifact, age_hours=age)
