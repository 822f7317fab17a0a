"""
FileRelocationTask: relocates one partition's files and describes them for the commit.

Algorithm
1. Ensure the destination bucket directory exists (directories created here are ledgered).
2. List files directly under the source directory, skipping hidden/temporary entries
   (names starting with "_" or ".") and sub-directories.
3. For each file: refuse an existing destination, ledger (new → original), rename.
4. Extract row count, size and column statistics from each relocated file.
5. Return one CommitMessage for the partition.

Cancellation is cooperative: the shared cancel event is checked before each file, so a
task stops at a safe checkpoint and never leaves a rename unledgered.
"""

from __future__ import annotations

import os
import threading

import structlog

from lakeshift.core.constants import HIDDEN_PREFIXES
from lakeshift.core.errors import (
    RelocationConflictError,
    RelocationError,
    UnsupportedFormatError,
)
from lakeshift.core.formats import FileFormat
from lakeshift.core.messages import CommitMessage, DataFileDescriptor
from lakeshift.io.extract import extract_file_stats, extractor_for
from lakeshift.io.fs import FileIO

from .ledger import RollbackLedger
from .partitions import PartitionPlan

__all__ = ["FileRelocationTask", "TaskCancelled", "is_hidden"]

logger = structlog.get_logger(__name__)


class TaskCancelled(Exception):
    """Raised inside a task that observed the cancel event at a checkpoint."""


def is_hidden(name: str) -> bool:
    return name.startswith(HIDDEN_PREFIXES)


class FileRelocationTask:
    """
    Unit of work over exactly one partition (or a whole unpartitioned table).

    Args:
        file_io (FileIO): Filesystem handle.
        plan (PartitionPlan): Source directory, format, partition key and destination.
        ledger (RollbackLedger): Shared undo log.
        schema_id (int): Target schema id recorded on each file.
        cancel_event (threading.Event | None): Shared advisory cancellation flag.
    """

    def __init__(
        self,
        file_io: FileIO,
        plan: PartitionPlan,
        ledger: RollbackLedger,
        *,
        schema_id: int = 0,
        cancel_event: threading.Event | None = None,
    ) -> None:
        self.file_io = file_io
        self.plan = plan
        self.ledger = ledger
        self.schema_id = schema_id
        self.cancel_event = cancel_event or threading.Event()

    def _format(self) -> FileFormat:
        if self.plan.format is None:
            raise self.plan.format_error or UnsupportedFormatError(
                f"no file format resolved for partition {self.plan.name!r}"
            )
        return self.plan.format

    def _checkpoint(self) -> None:
        if self.cancel_event.is_set():
            raise TaskCancelled(f"relocation of partition {self.plan.name!r} cancelled")

    def _ensure_dir(self, path: str) -> None:
        missing: list[str] = []
        cur = path
        while cur and not self.file_io.exists(cur):
            missing.append(cur)
            parent = os.path.dirname(cur)
            if parent == cur:
                break
            cur = parent
        # Directories are ledgered before they are created.
        for d in missing:
            self.ledger.record_directory(d)
        self.file_io.makedirs(path)

    def relocate(self) -> list[tuple[str, str]]:
        """
        Move the partition's visible files into the destination directory.

        Returns:
            list[tuple[str, str]]: (new path, original path) per relocated file.

        Raises:
            RelocationConflictError: A destination file already exists.
            RelocationError: A filesystem operation failed.
            TaskCancelled: The cancel event was observed at a checkpoint.
        """
        plan = self.plan
        moved: list[tuple[str, str]] = []
        try:
            self._ensure_dir(plan.target_dir)
            entries = self.file_io.list_status(plan.source_dir)
        except OSError as exc:
            raise RelocationError(
                f"failed to prepare relocation of partition {plan.name!r}: {exc}", plan.source_dir
            ) from exc

        for status in entries:
            if status.is_dir or is_hidden(status.name):
                continue
            self._checkpoint()
            new_path = os.path.join(plan.target_dir, status.name)
            if self.file_io.exists(new_path):
                raise RelocationConflictError(
                    f"destination {new_path} already exists; refusing to overwrite", new_path
                )
            self.ledger.record(new_path, status.path)
            try:
                self.file_io.rename(status.path, new_path)
            except OSError as exc:
                self.ledger.discard(new_path)
                raise RelocationError(
                    f"failed to move {status.path} to {new_path}: {exc}", status.path
                ) from exc
            moved.append((new_path, status.path))
        return moved

    def describe(self, new_path: str) -> DataFileDescriptor:
        """Extract statistics from a relocated file."""
        fmt = self._format()
        stats = extract_file_stats(new_path, fmt)
        try:
            size = self.file_io.size(new_path)
        except OSError as exc:
            raise RelocationError(f"failed to stat {new_path}: {exc}", new_path) from exc
        return DataFileDescriptor(
            path=new_path,
            file_name=os.path.basename(new_path),
            format=fmt,
            file_size=size,
            row_count=stats.row_count,
            column_stats=stats.column_stats,
            schema_id=self.schema_id,
        )

    def __call__(self) -> CommitMessage:
        plan = self.plan
        # Fail on an unknown tag before anything moves.
        fmt = self._format()
        extractor_for(fmt)
        self._checkpoint()

        log = logger.bind(partition=plan.name or "<unpartitioned>", target_dir=plan.target_dir)
        log.debug("relocation_started", source_dir=plan.source_dir, format=fmt.value)
        moved = self.relocate()
        files = []
        for new_path, _original in moved:
            self._checkpoint()
            files.append(self.describe(new_path))
        log.info("relocation_finished", files=len(files))
        return CommitMessage(partition=plan.partition, files=tuple(files))
