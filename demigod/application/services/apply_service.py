from __future__ import annotations

from demigod.config import ProjectPaths
from demigod.domain.enums import ApplyStep, ArtifactKind
from demigod.domain.errors import ApplyError
from demigod.domain.models.artifact import Artifact
from demigod.domain.ports.command_executor import CommandExecutorPort, CommandResult
from demigod.domain.ports.filesystem import FilesystemPort
from demigod.logger import get_logger
from demigod.schemas.project import DatabaseConfig


def _failure_text(result: CommandResult) -> str:
    return (result.stderr or result.stdout).strip() or f"exit status {result.exit_status}"


def mysql_import_command(database: DatabaseConfig) -> list[str]:
    return [
        "mysql",
        "-u",
        database.user,
        "--host",
        database.host,
        "--port",
        str(database.port),
        "--protocol",
        "tcp",
        database.name,
    ]


class ArtifactApplier:
    def __init__(
        self,
        executor: CommandExecutorPort,
        filesystem: FilesystemPort,
        paths: ProjectPaths,
        *,
        environment: str = "live",
        database: DatabaseConfig | None = None,
        cleanup: bool = False,
    ) -> None:
        self.executor = executor
        self.filesystem = filesystem
        self.paths = paths
        self.environment = environment
        self.database = database
        self.cleanup = cleanup
        self._logger = get_logger()

    def apply(self, kind: ArtifactKind, artifact: Artifact) -> None:
        if artifact.kind is not kind:
            raise ValueError(f"artifact is a {artifact.kind} backup, not {kind}")
        if kind is ArtifactKind.DATABASE:
            self._apply_database(artifact)
        else:
            self._apply_files(artifact)
        if self.cleanup:
            self._logger.bind(kind=kind.value, step=ApplyStep.CLEANUP.value).info(
                f"removing applied backup {artifact.path}"
            )
            self._step(kind.value, ApplyStep.CLEANUP, lambda: self.filesystem.delete(artifact.path))

    def _apply_database(self, artifact: Artifact) -> None:
        kind = ArtifactKind.DATABASE.value
        step = ApplyStep.IMPORT.value
        log = self._logger.bind(kind=kind, step=step)
        if self.database is None:
            raise ApplyError(kind, step, "no database connection configured")

        log.info("Unzipping and importing data")
        try:
            result = self.executor.run_pipeline(
                [["gunzip", "-c", str(artifact.path)], mysql_import_command(self.database)],
                env={"MYSQL_PWD": self.database.password.get_secret_value()},
            )
        except OSError as exc:
            raise ApplyError(kind, step, str(exc)) from exc
        if not result.ok:
            raise ApplyError(kind, step, _failure_text(result), exit_status=result.exit_status)
        log.info("Data Import complete.")

    def _apply_files(self, artifact: Artifact) -> None:
        kind = ArtifactKind.FILES.value
        staging = self.paths.files_staging
        extracted = staging / f"files_{self.environment}"
        canonical = staging / "files"

        log = self._logger.bind(kind=kind, step=ApplyStep.EXTRACT.value)
        log.info("Unzipping archive")
        try:
            if self.filesystem.exists(staging):
                self.filesystem.remove_tree(staging)
            self.filesystem.make_dirs(staging)
            result = self.executor.run("tar", ["-x", "-C", str(staging), "-f", str(artifact.path)])
        except OSError as exc:
            raise ApplyError(kind, ApplyStep.EXTRACT.value, str(exc)) from exc
        if not result.ok:
            raise ApplyError(kind, ApplyStep.EXTRACT.value, _failure_text(result), exit_status=result.exit_status)
        if not self.filesystem.is_dir(extracted):
            raise ApplyError(kind, ApplyStep.EXTRACT.value, f"archive has no {extracted.name}/ directory")

        self._step(kind, ApplyStep.RENAME, lambda: self.filesystem.move(extracted, canonical))
        log.bind(step=ApplyStep.MERGE.value).info(f"Copying files into {self.paths.live_files}")
        self._step(kind, ApplyStep.MERGE, lambda: self.filesystem.copy_tree(canonical, self.paths.live_files))
        self._step(kind, ApplyStep.CLEANUP, lambda: self.filesystem.remove_tree(staging))
        log.bind(step=ApplyStep.MERGE.value).info("Files import complete.")

    @staticmethod
    def _step(kind: str, step: ApplyStep, action) -> None:
        try:
            action()
        except OSError as exc:
            raise ApplyError(kind, step.value, str(exc)) from exc
