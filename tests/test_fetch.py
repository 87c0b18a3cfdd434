import tempfile
import unittest
from datetime import datetime, timezone
from pathlib import Path

from demigod.application.services.fetch_service import RemoteArtifactFetcher, partial_path
from demigod.domain.enums import ArtifactKind
from demigod.domain.errors import FetchError
from demigod.domain.models.remote import RemoteEnvironment
from demigod.domain.ports.command_executor import CommandResult
from demigod.infrastructure.storage.local_filesystem import LocalFilesystem

from _fakes import FakeExecutor, option_value

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
REMOTE = RemoteEnvironment(project="mysite", environment="live")


def _download(payload: bytes, status: int = 0):
    def handler(argv):
        Path(option_value(argv, "--to=")).write_bytes(payload)
        return CommandResult(status, "", "" if status == 0 else "connection reset")

    return handler


def _fetcher(executor: FakeExecutor) -> RemoteArtifactFetcher:
    return RemoteArtifactFetcher(executor, LocalFilesystem(), now=lambda: NOW)


class TestRemoteArtifactFetcher(unittest.TestCase):
    def test_create_then_download(self) -> None:
        with tempfile.TemporaryDirectory() as d:
            dest = Path(d) / "db" / "mysite.sql.gz"
            executor = FakeExecutor({"terminus backup:get": _download(b"dump")})
            artifact = _fetcher(executor).fetch(ArtifactKind.DATABASE, REMOTE, dest)

            self.assertEqual(
                executor.calls[0].argv,
                ["terminus", "backup:create", "mysite.live", "--element=db"],
            )
            self.assertEqual(
                executor.calls[1].argv,
                ["terminus", "backup:get", "mysite.live", f"--to={partial_path(dest)}", "--element=db"],
            )
            self.assertEqual(artifact.path, dest)
            self.assertEqual(artifact.kind, ArtifactKind.DATABASE)
            self.assertEqual(artifact.created_at, NOW)
            self.assertEqual(dest.read_bytes(), b"dump")
            self.assertFalse(partial_path(dest).exists())

    def test_files_element(self) -> None:
        with tempfile.TemporaryDirectory() as d:
            dest = Path(d) / "files.tar.gz"
            executor = FakeExecutor({"terminus backup:get": _download(b"tar")})
            artifact = _fetcher(executor).fetch(ArtifactKind.FILES, REMOTE, dest)
            self.assertTrue(all(c.argv[-1] == "--element=files" for c in executor.calls))
            self.assertEqual(artifact.compression, "tar.gz")

    def test_create_failure_skips_download(self) -> None:
        with tempfile.TemporaryDirectory() as d:
            dest = Path(d) / "mysite.sql.gz"
            executor = FakeExecutor({"terminus backup:create": CommandResult(1, "", "not authorized")})
            with self.assertRaises(FetchError) as ctx:
                _fetcher(executor).fetch(ArtifactKind.DATABASE, REMOTE, dest)
            self.assertEqual(ctx.exception.step, "create")
            self.assertEqual(ctx.exception.kind, "database")
            self.assertIn("not authorized", str(ctx.exception))
            self.assertEqual(len(executor.calls), 1)

    def test_download_failure_after_create(self) -> None:
        with tempfile.TemporaryDirectory() as d:
            dest = Path(d) / "mysite.sql.gz"
            executor = FakeExecutor({"terminus backup:get": _download(b"half a dump", status=1)})
            with self.assertRaises(FetchError) as ctx:
                _fetcher(executor).fetch(ArtifactKind.DATABASE, REMOTE, dest)
            self.assertEqual(ctx.exception.step, "download")
            self.assertEqual(ctx.exception.details["exit_status"], 1)
            self.assertEqual(ctx.exception.exit_code, 4)
            self.assertFalse(dest.exists())
            self.assertFalse(partial_path(dest).exists())

    def test_empty_download_is_rejected(self) -> None:
        with tempfile.TemporaryDirectory() as d:
            dest = Path(d) / "files.tar.gz"
            executor = FakeExecutor({"terminus backup:get": _download(b"")})
            with self.assertRaises(FetchError) as ctx:
                _fetcher(executor).fetch(ArtifactKind.FILES, REMOTE, dest)
            self.assertEqual(ctx.exception.step, "download")
            self.assertFalse(dest.exists())

    def test_missing_terminus_binary(self) -> None:
        def boom(argv):
            raise FileNotFoundError("terminus")

        with tempfile.TemporaryDirectory() as d:
            executor = FakeExecutor({"terminus": boom})
            with self.assertRaises(FetchError) as ctx:
                _fetcher(executor).fetch(ArtifactKind.DATABASE, REMOTE, Path(d) / "x.sql.gz")
            self.assertEqual(ctx.exception.step, "create")
            self.assertIsInstance(ctx.exception.__cause__, FileNotFoundError)

    def test_new_fetch_overwrites_existing_artifact(self) -> None:
        with tempfile.TemporaryDirectory() as d:
            dest = Path(d) / "mysite.sql.gz"
            dest.write_bytes(b"previous")
            executor = FakeExecutor({"terminus backup:get": _download(b"latest")})
            _fetcher(executor).fetch(ArtifactKind.DATABASE, REMOTE, dest)
            self.assertEqual(dest.read_bytes(), b"latest")

    def test_backup_directory_that_is_a_file(self) -> None:
        with tempfile.TemporaryDirectory() as d:
            (Path(d) / "db").write_text("oops", encoding="utf-8")
            dest = Path(d) / "db" / "files.tar.gz"
            executor = FakeExecutor({"terminus backup:get": _download(b"tar")})
            with self.assertRaises(FetchError) as ctx:
                _fetcher(executor).fetch(ArtifactKind.FILES, REMOTE, dest)
            self.assertEqual(ctx.exception.step, "download")
            self.assertEqual(ctx.exception.kind, "files")
            self.assertIsInstance(ctx.exception.__cause__, OSError)
            self.assertEqual(executor.commands(), ["terminus backup:create"])

    def test_failed_rename_discards_partial(self) -> None:
        class NoRenameFilesystem(LocalFilesystem):
            def move(self, source: Path, target: Path) -> None:
                raise PermissionError(13, "Permission denied", str(target))

        with tempfile.TemporaryDirectory() as d:
            dest = Path(d) / "mysite.sql.gz"
            executor = FakeExecutor({"terminus backup:get": _download(b"dump")})
            fetcher = RemoteArtifactFetcher(executor, NoRenameFilesystem(), now=lambda: NOW)
            with self.assertRaises(FetchError) as ctx:
                fetcher.fetch(ArtifactKind.DATABASE, REMOTE, dest)
            self.assertEqual(ctx.exception.step, "download")
            self.assertFalse(dest.exists())
            self.assertFalse(partial_path(dest).exists())


if __name__ == "__main__":
    unittest.main()
