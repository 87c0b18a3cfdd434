from __future__ import annotations

import time
from datetime import datetime
from typing import Callable, Iterable

from demigod.application.services.apply_service import ArtifactApplier
from demigod.application.services.cache_service import ArtifactCacheManager, utc_now
from demigod.application.services.fetch_service import RemoteArtifactFetcher
from demigod.application.services.readiness_service import ContainerHealthQuery, ReadinessPoller
from demigod.config import artifact_path
from demigod.domain.enums import ArtifactKind, OutcomeStatus, SyncStage
from demigod.domain.errors import DomainError
from demigod.domain.models.sync import SyncOutcome, SyncReport
from demigod.domain.ports.command_executor import CommandExecutorPort
from demigod.domain.ports.filesystem import FilesystemPort
from demigod.logger import get_logger
from demigod.schemas.project import ProjectConfig

DEFAULT_KINDS: tuple[ArtifactKind, ...] = (ArtifactKind.DATABASE, ArtifactKind.FILES)


class _StageFailed(Exception):
    def __init__(self, stage: SyncStage, error: DomainError, fetched: bool) -> None:
        super().__init__(str(error))
        self.stage = stage
        self.error = error
        self.fetched = fetched


class SyncPipeline:
    """
    Pulls the database and/or files backup of a remote environment into the
    local site: resolve cache -> fetch when stale -> apply.
    """

    def __init__(
        self,
        config: ProjectConfig,
        *,
        cache: ArtifactCacheManager,
        fetcher: RemoteArtifactFetcher,
        applier: ArtifactApplier,
        poller: ReadinessPoller | None = None,
    ) -> None:
        self.config = config
        self.cache = cache
        self.fetcher = fetcher
        self.applier = applier
        self.poller = poller
        self._logger = get_logger()

    @classmethod
    def build(
        cls,
        config: ProjectConfig,
        executor: CommandExecutorPort,
        filesystem: FilesystemPort,
        *,
        sleep: Callable[[float], None] = time.sleep,
        now: Callable[[], datetime] = utc_now,
    ) -> "SyncPipeline":
        poller = None
        if config.wait_for_database:
            poller = ReadinessPoller(ContainerHealthQuery(executor), sleep=sleep)
        return cls(
            config,
            cache=ArtifactCacheManager(filesystem, now=now),
            fetcher=RemoteArtifactFetcher(executor, filesystem, now=now),
            applier=ArtifactApplier(
                executor,
                filesystem,
                config.paths,
                environment=config.environment,
                database=config.database,
                cleanup=config.cleanup_after_apply,
            ),
            poller=poller,
        )

    def validate(self, kinds: Iterable[ArtifactKind]) -> None:
        if ArtifactKind.DATABASE in set(kinds):
            self.config.require_database()

    def run(self, kinds: Iterable[ArtifactKind] = DEFAULT_KINDS, *, fail_fast: bool = True) -> SyncReport:
        requested = list(kinds)
        self.validate(requested)
        report = SyncReport()
        halted = False
        for kind in requested:
            if halted:
                report.outcomes.append(SyncOutcome(kind=kind, status=OutcomeStatus.SKIPPED))
                continue
            try:
                fetched = self._sync(kind)
            except _StageFailed as failed:
                self._logger.bind(kind=kind.value, step=failed.stage.value).error(
                    f"sync failed at {failed.stage}: {failed.error}"
                )
                report.outcomes.append(
                    SyncOutcome(
                        kind=kind,
                        status=OutcomeStatus.FAILED,
                        stage=failed.stage,
                        fetched=failed.fetched,
                        error=failed.error,
                    )
                )
                halted = fail_fast
                continue
            report.outcomes.append(SyncOutcome(kind=kind, status=OutcomeStatus.SUCCEEDED, fetched=fetched))
        return report

    def sync_kind(self, kind: ArtifactKind) -> bool:
        """Run one kind end to end, raising its terminal error. Returns True when a fetch happened."""
        self.validate([kind])
        try:
            return self._sync(kind)
        except _StageFailed as failed:
            raise failed.error

    def _sync(self, kind: ArtifactKind) -> bool:
        log = self._logger.bind(kind=kind.value)
        config = self.config
        fetched = False

        stage = SyncStage.WAIT
        try:
            if kind is ArtifactKind.DATABASE and self.poller is not None:
                self.poller.wait_until_ready(
                    config.container("mysql"),
                    max_retries=config.max_retries,
                    interval_seconds=config.poll_interval_seconds,
                )

            stage = SyncStage.RESOLVE
            path = artifact_path(config.paths, kind)
            resolution = self.cache.resolve(kind, path, config.max_age_hours)
            artifact = resolution.artifact

            if artifact is None:
                stage = SyncStage.FETCH
                artifact = self.fetcher.fetch(kind, config.remote, path)
                fetched = True
            else:
                log.info(f"reusing cached backup {artifact.path}")

            stage = SyncStage.APPLY
            self.applier.apply(kind, artifact)
        except DomainError as exc:
            raise _StageFailed(stage, exc, fetched) from exc
        log.info(f"{kind} sync complete")
        return fetched
