"""
Rollback ledger: the undo log of a migration.

Every relocation is recorded as new path → original path before the rename is issued, so a
sibling task that fails concurrently can always discover and undo it. Entries are
independent (each touches a disjoint file) and rename is its own inverse, so reversal order
is unconstrained. Reversal is idempotent: an entry whose new path is absent has nothing to
undo (already reversed, or the rename never happened).

The ledger also remembers destination directories created by the run; after the files are
moved back they are removed deepest-first when empty.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field

import structlog

from lakeshift.core.messages import RelocationRecord
from lakeshift.io.fs import FileIO

__all__ = ["RollbackLedger", "RollbackReport"]

logger = structlog.get_logger(__name__)


@dataclass(slots=True)
class RollbackReport:
    """
    Outcome of a ledger reversal.

    Attributes:
        restored (list[str]): Original paths files were moved back to.
        skipped (list[str]): New paths that no longer existed (nothing to undo).
        removed_dirs (list[str]): Directories created by the run and removed again.
        errors (list[BaseException]): Failures; reversal continued past each of them.
    """

    restored: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    removed_dirs: list[str] = field(default_factory=list)
    errors: list[BaseException] = field(default_factory=list)


class RollbackLedger:
    """Thread-safe mapping of relocated path → original path."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._entries: dict[str, str] = {}
        self._dirs: set[str] = set()

    def record(self, new_path: str, original_path: str) -> RelocationRecord:
        with self._lock:
            self._entries[new_path] = original_path
        return RelocationRecord(new_path=new_path, original_path=original_path)

    def discard(self, new_path: str) -> None:
        """Forget an entry whose rename was never performed."""
        with self._lock:
            self._entries.pop(new_path, None)

    def record_directory(self, path: str) -> None:
        with self._lock:
            self._dirs.add(path)

    def entries(self) -> list[RelocationRecord]:
        with self._lock:
            items = list(self._entries.items())
        return [RelocationRecord(new_path=n, original_path=o) for n, o in items]

    def directories(self) -> list[str]:
        with self._lock:
            return sorted(self._dirs)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def reverse(self, file_io: FileIO) -> RollbackReport:
        """
        Move every relocated file back to its original path.

        Args:
            file_io (FileIO): Filesystem the renames were performed on.

        Returns:
            RollbackReport: What was restored, skipped and removed, plus any failures.

        Notes:
            Must only be called once no task can still add entries.
        """
        report = RollbackReport()
        for rec in self.entries():
            try:
                if file_io.exists(rec.new_path):
                    file_io.rename(rec.new_path, rec.original_path)
                    report.restored.append(rec.original_path)
                    logger.debug("relocation_reversed", path=rec.new_path, restored_to=rec.original_path)
                else:
                    report.skipped.append(rec.new_path)
            except OSError as exc:
                logger.error("relocation_reverse_failed", path=rec.new_path, error=str(exc))
                report.errors.append(exc)

        for d in sorted(self.directories(), key=len, reverse=True):
            try:
                if file_io.exists(d) and not file_io.list_status(d):
                    file_io.delete(d)
                    report.removed_dirs.append(d)
            except OSError as exc:
                logger.error("directory_cleanup_failed", path=d, error=str(exc))
                report.errors.append(exc)
        return report
