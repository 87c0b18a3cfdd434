from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from demigod.domain.enums import ArtifactKind


_COMPRESSION: dict[ArtifactKind, str] = {
    ArtifactKind.DATABASE: "gzip",
    ArtifactKind.FILES: "tar.gz",
}


@dataclass(frozen=True, slots=True)
class Artifact:
    kind: ArtifactKind
    path: Path
    created_at: datetime
    compression: str = ""

    def __post_init__(self) -> None:
        if not self.compression:
            object.__setattr__(self, "compression", _COMPRESSION[self.kind])


@dataclass(frozen=True, slots=True)
class CacheResolution:
    artifact: Artifact | None = None
    age_hours: int | None = None

    @property
    def fresh(self) -> bool:
        return self.artifact is not None

    @property
    def stale(self) -> bool:
        return self.artifact is None
