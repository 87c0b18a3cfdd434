from __future__ import annotations

import os
import shutil
from datetime import datetime, timezone
from pathlib import Path


class LocalFilesystem:
    def exists(self, path: Path) -> bool:
        return path.exists()

    def is_dir(self, path: Path) -> bool:
        return path.is_dir()

    def created_at(self, path: Path) -> datetime:
        st = path.stat()
        # st_birthtime only exists on macOS/BSD; Linux reports inode change time.
        ts = getattr(st, "st_birthtime", st.st_ctime)
        return datetime.fromtimestamp(ts, tz=timezone.utc)

    def size(self, path: Path) -> int:
        return path.stat().st_size

    def delete(self, path: Path) -> None:
        path.unlink()

    def move(self, source: Path, target: Path) -> None:
        target.parent.mkdir(parents=True, exist_ok=True)
        if target.is_dir() and source.is_dir():
            shutil.rmtree(target)
        os.replace(source, target)

    def copy_tree(self, source: Path, target: Path) -> None:
        target.mkdir(parents=True, exist_ok=True)
        shutil.copytree(source, target, symlinks=True, dirs_exist_ok=True)

    def remove_tree(self, path: Path) -> None:
        shutil.rmtree(path, ignore_errors=False)

    def make_dirs(self, path: Path) -> None:
        path.mkdir(parents=True, exist_ok=True)
