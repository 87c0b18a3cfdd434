from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Protocol


class FilesystemPort(Protocol):
    def exists(self, path: Path) -> bool: ...

    def is_dir(self, path: Path) -> bool: ...

    def created_at(self, path: Path) -> datetime: ...

    def size(self, path: Path) -> int: ...

    def delete(self, path: Path) -> None: ...

    def move(self, source: Path, target: Path) -> None: ...

    def copy_tree(self, source: Path, target: Path) -> None: ...

    def remove_tree(self, path: Path) -> None: ...

    def make_dirs(self, path: Path) -> None: ...
