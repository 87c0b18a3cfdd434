from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from demigod.domain.enums import ArtifactKind


@dataclass(frozen=True)
class ProjectPaths:
    root: Path
    db_dir: Path
    database_artifact: Path
    files_artifact: Path
    files_staging: Path
    live_files: Path


def make_paths(root: Path, project: str) -> ProjectPaths:
    db_dir = root / "db"
    return ProjectPaths(
        root=root,
        db_dir=db_dir,
        database_artifact=db_dir / f"{project}.sql.gz",
        files_artifact=db_dir / "files.tar.gz",
        files_staging=db_dir / "files_staging",
        live_files=root / "web" / "sites" / "default" / "files",
    )


def artifact_path(paths: ProjectPaths, kind: ArtifactKind) -> Path:
    if kind is ArtifactKind.DATABASE:
        return paths.database_artifact
    return paths.files_artifact


def site_scratch_dirs(paths: ProjectPaths) -> list[Path]:
    """
    Directories wiped before a fresh site install.
    """
    default_dir = paths.root / "web" / "sites" / "default"
    return [default_dir / "files", default_dir / "temp", default_dir / "private"]


def container_name(project: str, service: str) -> str:
    return f"{project}-{service}"
