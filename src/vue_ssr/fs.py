"""
Filesystem capability used by the renderer.

Everything the pipeline reads or writes goes through an object satisfying
``FileSystem`` so tests (and unusual deployments) can swap it out.
"""

from __future__ import annotations

import shutil
from pathlib import Path
from typing import Protocol, runtime_checkable


@runtime_checkable
class FileSystem(Protocol):
    """Minimal filesystem surface consumed by the renderer."""

    def exists(self, path: str) -> bool: ...

    def read(self, path: str) -> str: ...

    def write(self, path: str, content: str) -> None: ...

    def mkdir(self, path: str) -> None: ...

    def rm(self, path: str) -> None: ...


class LocalFileSystem:
    """``FileSystem`` backed by the real disk."""

    def exists(self, path: str) -> bool:
        return Path(path).exists()

    def read(self, path: str) -> str:
        return Path(path).read_text(encoding="utf-8")

    def write(self, path: str, content: str) -> None:
        Path(path).write_text(content, encoding="utf-8")

    def mkdir(self, path: str) -> None:
        Path(path).mkdir(parents=True, exist_ok=True)

    def rm(self, path: str) -> None:
        target = Path(path)
        if target.is_dir() and not target.is_symlink():
            shutil.rmtree(target)
        else:
            target.unlink()


default_fs = LocalFileSystem()

__all__ = ["FileSystem", "LocalFileSystem", "default_fs"]
