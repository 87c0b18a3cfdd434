from __future__ import annotations

import shlex
import webbrowser
from typing import Callable, Sequence

from demigod.application.services.readiness_service import ReadinessPoller
from demigod.config import site_scratch_dirs
from demigod.domain.errors import CommandError
from demigod.domain.ports.command_executor import CommandExecutorPort, CommandResult
from demigod.domain.ports.filesystem import FilesystemPort
from demigod.logger import get_logger
from demigod.schemas.project import ProjectConfig

DEVELOPMENT_MODULES: list[str] = [
    "devel",
    "search_api",
    "search_api_solr",
    "search_api_page",
    "search_api_pantheon",
    "search_api_solr_admin",
    "search_api_solr_devel",
    "search_api_pantheon_admin",
    "search_api_spellcheck",
    "search_api_autocomplete",
]
DEVELOPMENT_MODULES_REMOVED: list[str] = ["search"]

DOCKER_PRUNE_TARGETS: list[list[str]] = [
    ["system", "prune", "-f"],
    ["container", "prune", "-f"],
    ["image", "prune", "-f"],
    ["network", "prune", "-f"],
    ["volume", "prune", "-f"],
]

COMPOSER_MANAGED_PATHS: list[str] = [
    "vendor",
    "web/modules/composer",
    "web/themes/composer",
    "web/modules/contrib",
    "web/themes/contrib",
    "web/core",
    "composer.lock",
]

Confirm = Callable[[str], bool]


class SiteService:
    """Housekeeping tasks for the local docker environment. Each one stops on the first failing command."""

    def __init__(
        self,
        config: ProjectConfig,
        executor: CommandExecutorPort,
        filesystem: FilesystemPort,
        *,
        poller: ReadinessPoller | None = None,
        confirm: Confirm | None = None,
        open_url: Callable[[str], object] = webbrowser.open,
    ) -> None:
        self.config = config
        self.executor = executor
        self.filesystem = filesystem
        self.poller = poller
        self._confirm = confirm or (lambda _prompt: True)
        self._open_url = open_url
        self._logger = get_logger()

    def _run(self, command: str, args: Sequence[str] = (), *, interactive: bool = False) -> CommandResult:
        result = self.executor.run(command, args, interactive=interactive, cwd=self.config.root)
        if not result.ok:
            raise CommandError(
                shlex.join([command, *args]),
                result.exit_status,
                output=(result.stderr or result.stdout).strip(),
            )
        return result

    def docker_up(self) -> None:
        self._run("docker", ["compose", "up", "-d"])

    def docker_down(self) -> None:
        self._run("docker", ["compose", "down"])

    def docker_clean(self) -> None:
        for target in DOCKER_PRUNE_TARGETS:
            self._run("docker", target)

    def docker_exec(self, service: str, command: Sequence[str], *, interactive: bool = False) -> CommandResult:
        args = ["exec"]
        if interactive:
            args.append("-it")
        args.append(self.config.container(service))
        return self._run("docker", [*args, *command], interactive=interactive)

    def drush(self, command: str = "site:status", container: str = "php", *, interactive: bool = True) -> CommandResult:
        return self.docker_exec(container, ["drush", *shlex.split(command)], interactive=interactive)

    def enable_modules(self, modules: Sequence[str]) -> CommandResult:
        return self.drush("pm-enable --yes " + " ".join(modules))

    def disable_modules(self, modules: Sequence[str]) -> CommandResult:
        return self.drush("pm-uninstall --yes " + " ".join(modules))

    def site_development_modules(self) -> None:
        self.disable_modules(DEVELOPMENT_MODULES_REMOVED)
        self.enable_modules(DEVELOPMENT_MODULES)

    def site_install(self, profile: str = "demo_umami") -> bool:
        project = self.config.project_name
        if not self._confirm(
            f"Erase the database in the docker container and re-install drupal with the '{profile}' profile?"
        ):
            self._logger.warning("site install cancelled")
            return False
        for path in site_scratch_dirs(self.config.paths):
            if self.filesystem.exists(path):
                self.filesystem.remove_tree(path)
        if self.poller is not None:
            self.poller.wait_until_ready(
                self.config.container("mysql"),
                max_retries=self.config.max_retries,
                interval_seconds=self.config.poll_interval_seconds,
            )
        self.drush(
            f"site:install --account-name=admin --site-name={project} --locale=en --yes {profile}"
        )
        return True

    def site_login(self, user: str = "admin") -> str:
        result = self.drush(f"uli {user}", interactive=False)
        url = result.stdout.strip().splitlines()[-1] if result.stdout.strip() else ""
        if url:
            self._logger.info(f"login url -> {url}")
            self._open_url(url)
        return url

    def redis_flush(self) -> None:
        self.docker_exec("redis", ["redis-cli", "flushall"])

    def reset_dependencies(self) -> bool:
        if not self._confirm(
            "Are you sure you want to delete the vendor folder and all dependencies installed by composer?"
        ):
            return False
        self._run("composer", ["clear-cache"])
        self._run("rm", ["-Rf", *COMPOSER_MANAGED_PATHS])
        self._run("composer", ["install"])
        return True

    def rsync_files(self, environment: str | None = None) -> None:
        # The ssh key must be registered with Pantheon.
        site_env = f"{self.config.project_name}.{environment or self.config.environment}"
        info = self._run("terminus", ["connection:info", site_env, "--field=sftp_host"])
        sftp_host = info.stdout.strip()
        if not sftp_host:
            raise CommandError(f"terminus connection:info {site_env}", 1, output="empty sftp_host")
        self.filesystem.make_dirs(self.config.paths.live_files)
        self._run(
            "rsync",
            [
                "-rvlz",
                "--copy-unsafe-links",
                "--size-only",
                "--checksum",
                "--ipv4",
                "--progress",
                "-e",
                "ssh -p 2222",
                f"{sftp_host}:files/",
                f"{self.config.paths.live_files}/",
            ],
        )
