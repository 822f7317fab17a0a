"""
Filesystem helpers for lakeshift.io (file protocol baseline).

Responsibilities
- Define the FileIO capability consumed by relocation tasks and rollback: existence checks,
  recursive directory creation, listing, and rename that never overwrites.
- Provide LocalFileIO, the stdlib implementation over the local filesystem.
- Establish the atomic write path for small JSON documents: tmp write → fsync → atomic rename.

Notes
- Atomicity via os.rename/os.replace is guaranteed only when src and dst reside on the same
  filesystem. Source data and the warehouse must share a mount for relocation to be a rename.
- LocalFileIO.rename refuses an existing destination (FileExistsError) instead of replacing it.
- All helpers are synchronous; callers decide on concurrency.
"""

from __future__ import annotations

import json
import os
import shutil
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, BinaryIO, Protocol, runtime_checkable

__all__ = [
    "FileStatus",
    "FileIO",
    "LocalFileIO",
    "open_write",
    "fsync_file",
    "write_json_atomic",
    "read_json",
]


@dataclass(frozen=True, slots=True)
class FileStatus:
    """
    A directory entry.

    Attributes:
        path (str): Full path.
        name (str): Base name.
        size (int): Size in bytes (0 for directories).
        is_dir (bool): True for directories.
    """

    path: str
    name: str
    size: int
    is_dir: bool


@runtime_checkable
class FileIO(Protocol):
    """Filesystem capability used by the migration engine."""

    def exists(self, path: str) -> bool: ...

    def makedirs(self, path: str) -> None: ...

    def list_status(self, path: str) -> list[FileStatus]: ...

    def rename(self, src: str, dst: str) -> None: ...

    def delete(self, path: str, recursive: bool = False) -> None: ...

    def size(self, path: str) -> int: ...


class LocalFileIO:
    """
    FileIO over the local filesystem.

    Notes:
        - makedirs is idempotent (exist_ok).
        - rename raises FileExistsError when dst exists; partial renames are not a
          supported outcome.
    """

    def exists(self, path: str) -> bool:
        return os.path.exists(path)

    def makedirs(self, path: str) -> None:
        os.makedirs(path, exist_ok=True)

    def list_status(self, path: str) -> list[FileStatus]:
        """
        List direct children of a directory.

        Returns:
            list[FileStatus]: Entries sorted by name; [] if the directory does not exist.
        """
        try:
            entries = sorted(os.scandir(path), key=lambda e: e.name)
        except FileNotFoundError:
            return []
        out: list[FileStatus] = []
        for e in entries:
            is_dir = e.is_dir(follow_symlinks=False)
            size = 0 if is_dir else e.stat(follow_symlinks=False).st_size
            out.append(FileStatus(path=e.path, name=e.name, size=size, is_dir=is_dir))
        return out

    def rename(self, src: str, dst: str) -> None:
        if os.path.lexists(dst):
            raise FileExistsError(f"rename destination already exists: {dst}")
        os.rename(src, dst)

    def delete(self, path: str, recursive: bool = False) -> None:
        if not os.path.lexists(path):
            return
        if os.path.isdir(path) and not os.path.islink(path):
            if recursive:
                shutil.rmtree(path)
            else:
                os.rmdir(path)
        else:
            os.remove(path)

    def size(self, path: str) -> int:
        return os.path.getsize(path)


@contextmanager
def open_write(path: str) -> Iterator[BinaryIO]:
    """
    Open a file for binary write as a context manager.

    Notes:
        Caller is responsible for the atomic rename of the temporary file to its final path.
    """
    fh = open(path, "wb")
    try:
        yield fh
    finally:
        fh.close()


def fsync_file(fh: BinaryIO) -> None:
    """Flush and fsync an open file handle."""
    fh.flush()
    os.fsync(fh.fileno())


def write_json_atomic(path: str, obj: Any, *, exclusive: bool = False) -> None:
    """
    Persist a JSON document atomically: "<path>.tmp" → fsync → rename.

    Args:
        path (str): Final path.
        obj (Any): JSON-serializable object; non-JSON scalars are written via str().
        exclusive (bool): When True, fail with FileExistsError if path already exists
            (used to publish snapshots exactly once).

    Raises:
        FileExistsError: exclusive=True and the final path exists.
        OSError: Other filesystem failures (the temporary file is removed).
    """
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    tmp_path = f"{path}.{uuid.uuid4().hex}.tmp"
    payload = json.dumps(obj, indent=2, sort_keys=False, default=str).encode("utf-8")
    try:
        with open_write(tmp_path) as fh:
            fh.write(payload)
            fsync_file(fh)
        if exclusive:
            # link() fails if the destination exists, unlike rename().
            os.link(tmp_path, path)
            os.remove(tmp_path)
        else:
            os.replace(tmp_path, path)
    except BaseException:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)
        raise


def read_json(path: str) -> Any:
    with open(path, encoding="utf-8") as fh:
        return json.load(fh)
