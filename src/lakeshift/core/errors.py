"""
Exception types raised across lakeshift.

Taxonomy
- ValidationError: pre-flight incompatibility (primary key present, wrong bucket mode,
  partition column mismatch, missing source table). Raised before any filesystem mutation.
- UnsupportedFormatError, RelocationError, RelocationConflictError, ExtractionError:
  failures owned by a single relocation task. They escalate to job-level recovery.
- CommitError: the target table rejected the merged commit.
- MigrationError: the single aggregated failure raised after rollback completed.

Notes:
    - This module uses only the Python standard library and has no side effects.
    - ValidationError subclasses ValueError so callers validating inputs can catch either.
"""

from __future__ import annotations

__all__ = [
    "LakeshiftError",
    "ValidationError",
    "TableNotFoundError",
    "TableAlreadyExistsError",
    "UnsupportedFormatError",
    "RelocationError",
    "RelocationConflictError",
    "ExtractionError",
    "CommitError",
    "ConfigError",
    "ConcurrentMigrationError",
    "MigrationError",
]


class LakeshiftError(Exception):
    """Base class for every error raised by lakeshift."""


class ValidationError(LakeshiftError, ValueError):
    """Source/target incompatibility detected before any file is touched."""


class TableNotFoundError(ValidationError):
    """A table that must exist is missing from its catalog."""


class TableAlreadyExistsError(LakeshiftError):
    """A table was created over an existing one."""


class UnsupportedFormatError(LakeshiftError):
    """
    Raised when a partition's storage format is not one of the known markers.

    Notes:
        Aborts only the owning task; the coordinator escalates to a full rollback.
    """


class RelocationError(LakeshiftError):
    """
    Raised when a filesystem operation fails while relocating a partition.

    Attributes:
        path (str | None): Path being processed when the failure happened.
    """

    def __init__(self, message: str, path: str | None = None) -> None:
        super().__init__(message)
        self.path = path


class RelocationConflictError(RelocationError):
    """The destination path of a relocation already exists; nothing is overwritten."""


class ExtractionError(LakeshiftError):
    """Row count or column statistics could not be read from a relocated file."""


class CommitError(LakeshiftError):
    """The target table rejected the merged commit."""


class ConfigError(LakeshiftError, ValueError):
    """Invalid or unsupported settings."""


class ConcurrentMigrationError(LakeshiftError):
    """Another migration of the same source/target pair is already running."""


class MigrationError(LakeshiftError):
    """
    Aggregated failure raised after a failed migration has been rolled back.

    Attributes:
        errors (list[BaseException]): Every task or commit failure observed, in
            completion order. The first one is also chained as ``__cause__``.
        rolled_back (list[str]): Original paths restored by the rollback.
        rollback_errors (list[BaseException]): Failures hit while reversing entries.
        target_dropped (bool): True when the target table was created by this run
            and has been dropped again.
    """

    def __init__(
        self,
        message: str,
        errors: list[BaseException] | None = None,
        *,
        rolled_back: list[str] | None = None,
        rollback_errors: list[BaseException] | None = None,
        target_dropped: bool = False,
    ) -> None:
        self.errors = list(errors or [])
        self.rolled_back = list(rolled_back or [])
        self.rollback_errors = list(rollback_errors or [])
        self.target_dropped = target_dropped
        detail = "; ".join(f"{type(e).__name__}: {e}" for e in self.errors)
        super().__init__(f"{message}: {detail}" if detail else message)
