import json
import tempfile
import unittest
from datetime import datetime, timedelta, timezone
from pathlib import Path

from pydantic import SecretStr

from demigod.application.services.sync_service import SyncPipeline
from demigod.domain.enums import ArtifactKind, OutcomeStatus, SyncStage
from demigod.domain.errors import ConfigurationError, DependencyTimeout, FetchError
from demigod.domain.ports.command_executor import CommandResult
from demigod.infrastructure.storage.local_filesystem import LocalFilesystem
from demigod.schemas.project import DatabaseConfig, ProjectConfig

from _fakes import FakeExecutor, FakeSleep, extract_archive, option_value, write_archive


def _config(root: Path, **overrides) -> ProjectConfig:
    values = dict(
        project_name="mysite",
        root=root,
        database=DatabaseConfig(password=SecretStr("pw"), name="drupal"),
        max_retries=2,
        poll_interval_seconds=5,
    )
    values.update(overrides)
    return ProjectConfig(**values)


def _healthy(argv):
    return CommandResult(0, json.dumps([{"State": {"Health": {"Status": "healthy"}}}]))


def _backup_get(files_archive_members: dict[str, bytes]):
    def handler(argv):
        target = Path(option_value(argv, "--to="))
        if argv[-1] == "--element=files":
            write_archive(target, files_archive_members)
        else:
            target.write_bytes(b"\x1f\x8bdump")
        return CommandResult(0)

    return handler


class TestSyncPipeline(unittest.TestCase):
    def _executor(self) -> FakeExecutor:
        return FakeExecutor(
            {
                "docker inspect": _healthy,
                "terminus backup:get": _backup_get({"files_live/a.txt": b"a"}),
                "tar": extract_archive,
            }
        )

    def test_empty_cache_fetches_and_applies(self) -> None:
        with tempfile.TemporaryDirectory() as d:
            root = Path(d)
            config = _config(root)
            executor = self._executor()
            pipeline = SyncPipeline.build(config, executor, LocalFilesystem(), sleep=FakeSleep())

            report = pipeline.run([ArtifactKind.DATABASE, ArtifactKind.FILES])

            self.assertTrue(report.ok)
            self.assertTrue(all(o.fetched for o in report.outcomes))
            self.assertEqual(
                executor.commands(),
                [
                    "docker inspect",
                    "terminus backup:create",
                    "terminus backup:get",
                    "mysql -u",
                    "terminus backup:create",
                    "terminus backup:get",
                    "tar -x",
                ],
            )
            self.assertTrue(config.paths.database_artifact.exists())
            self.assertEqual((config.paths.live_files / "a.txt").read_bytes(), b"a")

    def test_fresh_cache_skips_fetch(self) -> None:
        with tempfile.TemporaryDirectory() as d:
            root = Path(d)
            config = _config(root, wait_for_database=False)
            dump = config.paths.database_artifact
            dump.parent.mkdir(parents=True)
            dump.write_bytes(b"dump")
            fs = LocalFilesystem()
            created = fs.created_at(dump)
            executor = self._executor()
            pipeline = SyncPipeline.build(config, executor, fs, now=lambda: created + timedelta(hours=2))

            fetched = pipeline.sync_kind(ArtifactKind.DATABASE)

            self.assertFalse(fetched)
            self.assertEqual(executor.commands(), ["mysql -u"])

    def test_stale_cache_is_deleted_and_refetched(self) -> None:
        with tempfile.TemporaryDirectory() as d:
            root = Path(d)
            config = _config(root, wait_for_database=False)
            dump = config.paths.database_artifact
            dump.parent.mkdir(parents=True)
            dump.write_bytes(b"old dump")
            fs = LocalFilesystem()
            created = fs.created_at(dump)
            executor = self._executor()
            pipeline = SyncPipeline.build(config, executor, fs, now=lambda: created + timedelta(hours=30))

            report = pipeline.run([ArtifactKind.DATABASE])

            self.assertTrue(report.ok)
            self.assertTrue(report.outcomes[0].fetched)
            self.assertIn("terminus backup:create", executor.commands())
            self.assertEqual(dump.read_bytes(), b"\x1f\x8bdump")

    def test_fetch_failure_halts_remaining_kinds(self) -> None:
        with tempfile.TemporaryDirectory() as d:
            root = Path(d)
            config = _config(root)
            executor = self._executor()
            executor.handlers["terminus backup:create"] = CommandResult(1, "", "site not found")
            pipeline = SyncPipeline.build(config, executor, LocalFilesystem(), sleep=FakeSleep())

            report = pipeline.run()

            self.assertFalse(report.ok)
            db = report.outcome_for(ArtifactKind.DATABASE)
            files = report.outcome_for(ArtifactKind.FILES)
            assert db is not None and files is not None
            self.assertEqual(db.status, OutcomeStatus.FAILED)
            self.assertEqual(db.stage, SyncStage.FETCH)
            self.assertIsInstance(db.error, FetchError)
            self.assertEqual(files.status, OutcomeStatus.SKIPPED)
            self.assertIsInstance(report.first_error, FetchError)
            self.assertNotIn("mysql -u", executor.commands())

    def test_keep_going_attempts_later_kinds(self) -> None:
        with tempfile.TemporaryDirectory() as d:
            root = Path(d)
            config = _config(root, wait_for_database=False)
            executor = self._executor()
            executor.handlers["mysql"] = CommandResult(1, "", "access denied")
            pipeline = SyncPipeline.build(config, executor, LocalFilesystem())

            report = pipeline.run(fail_fast=False)

            self.assertEqual(report.outcomes[0].status, OutcomeStatus.FAILED)
            self.assertEqual(report.outcomes[0].stage, SyncStage.APPLY)
            self.assertEqual(report.outcomes[1].status, OutcomeStatus.SUCCEEDED)

    def test_database_waits_for_container(self) -> None:
        with tempfile.TemporaryDirectory() as d:
            root = Path(d)
            config = _config(root, max_retries=2)
            executor = self._executor()
            executor.handlers["docker inspect"] = CommandResult(0, "")
            sleep = FakeSleep()
            pipeline = SyncPipeline.build(config, executor, LocalFilesystem(), sleep=sleep)

            with self.assertRaises(DependencyTimeout) as ctx:
                pipeline.sync_kind(ArtifactKind.DATABASE)

            self.assertEqual(ctx.exception.dependency, "mysite-mysql")
            self.assertEqual(sleep.calls, [5, 5])
            self.assertEqual(executor.commands(), ["docker inspect"] * 3)

    def test_missing_database_config_fails_before_any_command(self) -> None:
        with tempfile.TemporaryDirectory() as d:
            root = Path(d)
            config = _config(root, database=None)
            executor = self._executor()
            pipeline = SyncPipeline.build(config, executor, LocalFilesystem())

            with self.assertRaises(ConfigurationError):
                pipeline.run()
            self.assertEqual(executor.calls, [])

    def test_files_only_needs_no_database(self) -> None:
        with tempfile.TemporaryDirectory() as d:
            root = Path(d)
            config = _config(root, database=None)
            pipeline = SyncPipeline.build(config, self._executor(), LocalFilesystem())
            self.assertTrue(pipeline.run([ArtifactKind.FILES]).ok)

    def test_unwritable_backup_directory_is_reported_as_fetch_failure(self) -> None:
        with tempfile.TemporaryDirectory() as d:
            root = Path(d)
            (root / "db").write_text("not a directory", encoding="utf-8")
            config = _config(root, database=None)
            pipeline = SyncPipeline.build(config, self._executor(), LocalFilesystem())

            report = pipeline.run([ArtifactKind.FILES])

            files = report.outcome_for(ArtifactKind.FILES)
            assert files is not None
            self.assertEqual(files.status, OutcomeStatus.FAILED)
            self.assertEqual(files.stage, SyncStage.FETCH)
            self.assertIsInstance(files.error, FetchError)
            self.assertEqual(files.error.step, "download")
            self.assertEqual(report.first_error.exit_code, 4)


if __name__ == "__main__":
    unittest.main()
