from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Callable

from demigod.application.services.cache_service import utc_now
from demigod.domain.enums import ArtifactKind, FetchStep
from demigod.domain.errors import FetchError
from demigod.domain.models.artifact import Artifact
from demigod.domain.models.remote import RemoteEnvironment
from demigod.domain.ports.command_executor import CommandExecutorPort, CommandResult
from demigod.domain.ports.filesystem import FilesystemPort
from demigod.logger import get_logger

PARTIAL_SUFFIX = ".partial"


def partial_path(destination: Path) -> Path:
    return destination.with_name(destination.name + PARTIAL_SUFFIX)


class RemoteArtifactFetcher:
    """
    Creates a fresh backup on Pantheon and downloads it with terminus.

    The download lands on a `.partial` sibling first and is renamed onto the
    destination only after it finished and is non-empty.
    """

    def __init__(
        self,
        executor: CommandExecutorPort,
        filesystem: FilesystemPort,
        *,
        terminus: str = "terminus",
        now: Callable[[], datetime] = utc_now,
    ) -> None:
        self.executor = executor
        self.filesystem = filesystem
        self.terminus = terminus
        self._now = now
        self._logger = get_logger()

    def _terminus(self, kind: ArtifactKind, step: FetchStep, args: list[str]) -> CommandResult:
        try:
            result = self.executor.run(self.terminus, args)
        except OSError as exc:
            raise FetchError(kind.value, step.value, str(exc)) from exc
        if not result.ok:
            message = (result.stderr or result.stdout).strip() or f"exit status {result.exit_status}"
            raise FetchError(kind.value, step.value, message, exit_status=result.exit_status)
        return result

    def _discard(self, path: Path) -> None:
        if self.filesystem.exists(path):
            self.filesystem.delete(path)

    def _download(self, kind: ArtifactKind, remote: RemoteEnvironment, destination: Path, element: str) -> None:
        partial = partial_path(destination)
        try:
            self.filesystem.make_dirs(destination.parent)
            self._discard(partial)
            self._terminus(
                kind,
                FetchStep.DOWNLOAD,
                ["backup:get", remote.site_env, f"--to={partial}", element],
            )
            if not self.filesystem.exists(partial) or self.filesystem.size(partial) == 0:
                raise FetchError(kind.value, FetchStep.DOWNLOAD.value, f"no data was written to {partial}")
            self.filesystem.move(partial, destination)
        except OSError as exc:
            self._discard_quietly(partial)
            raise FetchError(kind.value, FetchStep.DOWNLOAD.value, str(exc)) from exc
        except FetchError:
            self._discard_quietly(partial)
            raise

    def _discard_quietly(self, partial: Path) -> None:
        try:
            self._discard(partial)
        except OSError as exc:
            self._logger.bind(step=FetchStep.DOWNLOAD.value).warning(f"could not remove {partial}: {exc}")

    def fetch(self, kind: ArtifactKind, remote: RemoteEnvironment, destination: Path) -> Artifact:
        element = f"--element={kind.element}"

        log = self._logger.bind(kind=kind.value, step=FetchStep.CREATE.value)
        log.info(f"Creating {kind.element} backup on Pantheon for {remote.site_env}.")
        self._terminus(kind, FetchStep.CREATE, ["backup:create", remote.site_env, element])

        log = self._logger.bind(kind=kind.value, step=FetchStep.DOWNLOAD.value)
        log.info(f"Downloading backup file to {destination}.")
        self._download(kind, remote, destination, element)
        log.info(f"Backup saved to {destination}.")
        return Artifact(kind=kind, path=destination, created_at=self._now())
