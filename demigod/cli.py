from __future__ import annotations

import argparse
import shlex
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Sequence

from demigod.application.services.config_service import load_project_config
from demigod.application.services.readiness_service import ContainerHealthQuery, ReadinessPoller
from demigod.application.services.site_service import SiteService
from demigod.application.services.sync_service import DEFAULT_KINDS, SyncPipeline
from demigod.domain.enums import ArtifactKind, OutcomeStatus
from demigod.domain.errors import DomainError
from demigod.domain.models.sync import SyncReport
from demigod.domain.ports.command_executor import CommandExecutorPort
from demigod.domain.ports.filesystem import FilesystemPort
from demigod.infrastructure.process.subprocess_executor import SubprocessCommandExecutor
from demigod.infrastructure.storage.local_filesystem import LocalFilesystem
from demigod.logger import get_logger
from demigod.schemas.project import ProjectConfig


@dataclass(slots=True)
class CliContext:
    config: ProjectConfig
    executor: CommandExecutorPort
    filesystem: FilesystemPort
    logger: Any
    assume_yes: bool = False

    def confirm(self, prompt: str) -> bool:
        if self.assume_yes:
            return True
        try:
            answer = input(f"{prompt} Type 'y' to continue: ")
        except EOFError:
            return False
        return answer.strip().lower() in {"y", "yes"}

    def poller(self) -> ReadinessPoller:
        return ReadinessPoller(ContainerHealthQuery(self.executor))

    def site(self) -> SiteService:
        return SiteService(
            self.config,
            self.executor,
            self.filesystem,
            poller=self.poller(),
            confirm=self.confirm,
        )

    def pipeline(self) -> SyncPipeline:
        return SyncPipeline.build(self.config, self.executor, self.filesystem)


def build_context(args: argparse.Namespace) -> CliContext:
    root = Path(args.root).resolve()
    config = load_project_config(root, environment=args.env)
    return CliContext(
        config=config,
        executor=SubprocessCommandExecutor(cwd=root),
        filesystem=LocalFilesystem(),
        logger=get_logger(),
        assume_yes=args.yes,
    )


def _report(ctx: CliContext, report: SyncReport) -> int:
    for outcome in report.outcomes:
        log = ctx.logger.bind(kind=outcome.kind.value)
        if outcome.status is OutcomeStatus.SUCCEEDED:
            source = "fresh backup" if outcome.fetched else "cached backup"
            log.info(f"succeeded ({source})")
        elif outcome.status is OutcomeStatus.SKIPPED:
            log.warning("skipped after an earlier failure")
        else:
            log.error(f"failed at {outcome.stage}: {outcome.error}")
    error = report.first_error
    if error is not None:
        return error.exit_code
    return 0


def cmd_docker_up(ctx: CliContext, args: argparse.Namespace) -> int:
    ctx.site().docker_up()
    return 0


def cmd_docker_down(ctx: CliContext, args: argparse.Namespace) -> int:
    ctx.site().docker_down()
    return 0


def cmd_docker_clean(ctx: CliContext, args: argparse.Namespace) -> int:
    ctx.site().docker_clean()
    return 0


def cmd_site_install(ctx: CliContext, args: argparse.Namespace) -> int:
    return 0 if ctx.site().site_install(args.profile) else 1


def cmd_site_dev_mods(ctx: CliContext, args: argparse.Namespace) -> int:
    ctx.site().site_development_modules()
    return 0


def cmd_drush(ctx: CliContext, args: argparse.Namespace) -> int:
    ctx.site().drush(shlex.join(args.drush_command) or "site:status", container=args.container)
    return 0


def cmd_site_login(ctx: CliContext, args: argparse.Namespace) -> int:
    url = ctx.site().site_login(args.user)
    if not url:
        ctx.logger.error("drush did not return a login url")
        return 1
    print(url)
    return 0


def cmd_pull_db(ctx: CliContext, args: argparse.Namespace) -> int:
    return _report(ctx, ctx.pipeline().run([ArtifactKind.DATABASE]))


def cmd_pull_files(ctx: CliContext, args: argparse.Namespace) -> int:
    return _report(ctx, ctx.pipeline().run([ArtifactKind.FILES]))


def cmd_pull(ctx: CliContext, args: argparse.Namespace) -> int:
    return _report(ctx, ctx.pipeline().run(DEFAULT_KINDS, fail_fast=not args.keep_going))


def cmd_wait(ctx: CliContext, args: argparse.Namespace) -> int:
    config = ctx.config
    container = args.container or config.container("mysql")
    ctx.poller().wait_until_ready(
        container,
        max_retries=config.max_retries if args.retries is None else args.retries,
        interval_seconds=config.poll_interval_seconds if args.interval is None else args.interval,
    )
    return 0


def cmd_redis_flush(ctx: CliContext, args: argparse.Namespace) -> int:
    ctx.site().redis_flush()
    return 0


def cmd_reset_dependencies(ctx: CliContext, args: argparse.Namespace) -> int:
    return 0 if ctx.site().reset_dependencies() else 1


def cmd_rsync_files(ctx: CliContext, args: argparse.Namespace) -> int:
    ctx.site().rsync_files(args.env)
    return 0


def make_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="demigod",
        description="Drive the local docker environment of a Pantheon-hosted Drupal site.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("--root", default=".", help="Project root (holds docker-compose.yml, db/ and web/).")
    parser.add_argument("--env", default=None, help="Pantheon environment to pull from (default: $DEMIGOD_ENV or live).")
    parser.add_argument("--yes", "-y", action="store_true", help="Answer yes to confirmation prompts.")
    sub = parser.add_subparsers(dest="command", required=True)

    def add(name: str, handler: Callable[[CliContext, argparse.Namespace], int], help_text: str, aliases=()):
        p = sub.add_parser(name, aliases=list(aliases), help=help_text)
        p.set_defaults(handler=handler)
        return p

    add("docker-up", cmd_docker_up, "Stand up the containers from docker-compose.yml.")
    add("docker-down", cmd_docker_down, "Bring down all containers in docker-compose.yml.")
    add("docker-clean", cmd_docker_clean, "Prune unused docker containers, images, networks and volumes.")
    p = add("site-install", cmd_site_install, "Erase the local database and install drupal from a profile.")
    p.add_argument("profile", nargs="?", default="demo_umami")
    add("site-dev-mods", cmd_site_dev_mods, "Enable development modules in the local site.")
    p = add("drush", cmd_drush, "Run drush inside a container.", aliases=("dd",))
    p.add_argument("drush_command", nargs=argparse.REMAINDER)
    p.add_argument("--container", default="php")
    p = add("site-login", cmd_site_login, "Generate a one-time login link and open it.")
    p.add_argument("user", nargs="?", default="admin")
    add("pull-db", cmd_pull_db, "Import the database backup from Pantheon.", aliases=("spd",))
    add("pull-files", cmd_pull_files, "Import the files backup from Pantheon.", aliases=("spf",))
    p = add("pull", cmd_pull, "Import the database, then the files backup.")
    p.add_argument("--keep-going", action="store_true", help="Still pull files when the database pull failed.")
    p = add("wait", cmd_wait, "Wait until a container reports healthy.")
    p.add_argument("container", nargs="?", default=None)
    p.add_argument("--retries", type=int, default=None)
    p.add_argument("--interval", type=float, default=None)
    add("redis-flush", cmd_redis_flush, "Flush the redis cache.")
    add("reset-dependencies", cmd_reset_dependencies, "Delete composer-managed code and reinstall it.")
    add("rsync-files", cmd_rsync_files, "Rsync the files directory straight from Pantheon over ssh.")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    parser = make_parser()
    args = parser.parse_args(argv)
    logger = get_logger()
    try:
        with logger.contextualize(task=args.command):
            ctx = build_context(args)
            return args.handler(ctx, args)
    except DomainError as exc:
        logger.error(f"[{exc.code}] {exc.message}")
        return exc.exit_code
    except KeyboardInterrupt:
        logger.warning("interrupted")
        return 130


if __name__ == "__main__":
    sys.exit(main())
