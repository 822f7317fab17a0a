"""
Records exchanged between relocation tasks, the rollback ledger and the target commit.

- ColumnStats: min / max / null count of one column in one file.
- DataFileDescriptor: a relocated file with its extracted statistics.
- CommitMessage: (PartitionKey, files): the unit submitted to the target's atomic commit.
- RelocationRecord: (new path, original path) pair consulted only during rollback.

Notes:
    - All records are frozen; a CommitMessage is immutable once built.
    - to_json_obj() renders the manifest form written into target snapshots.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .formats import FileFormat
from .partition import PartitionKey

__all__ = ["ColumnStats", "DataFileDescriptor", "CommitMessage", "RelocationRecord"]


def _json_scalar(value: Any) -> Any:
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    return str(value)


@dataclass(frozen=True, slots=True)
class ColumnStats:
    """
    Per-column statistics of a single data file.

    Attributes:
        min (Any): Minimum non-null value, or None when every value is null.
        max (Any): Maximum non-null value, or None when every value is null.
        null_count (int | None): Number of nulls, None when the format does not report it.
    """

    min: Any = None
    max: Any = None
    null_count: int | None = None

    def to_json_obj(self) -> dict[str, Any]:
        return {
            "min": _json_scalar(self.min),
            "max": _json_scalar(self.max),
            "null_count": self.null_count,
        }


@dataclass(frozen=True, slots=True)
class DataFileDescriptor:
    """
    A data file after relocation, described for the target manifest.

    Attributes:
        path (str): Full path of the relocated file.
        file_name (str): Base name, recorded relative to the bucket directory.
        format (FileFormat): Declared format the statistics were extracted with.
        file_size (int): Size in bytes.
        row_count (int): Number of rows.
        column_stats (dict[str, ColumnStats]): Statistics keyed by column name.
        schema_id (int): Target schema id the file was registered under.
    """

    path: str
    file_name: str
    format: FileFormat
    file_size: int
    row_count: int
    column_stats: dict[str, ColumnStats] = field(default_factory=dict)
    schema_id: int = 0

    def to_json_obj(self) -> dict[str, Any]:
        return {
            "file_name": self.file_name,
            "format": self.format.value,
            "file_size": self.file_size,
            "row_count": self.row_count,
            "schema_id": self.schema_id,
            "column_stats": {k: v.to_json_obj() for k, v in self.column_stats.items()},
        }


@dataclass(frozen=True, slots=True)
class CommitMessage:
    """
    Files added to one partition (bucket 0) of the target table.

    Attributes:
        partition (PartitionKey): Destination partition.
        files (tuple[DataFileDescriptor, ...]): Relocated files, in relocation order.
        bucket (int): Always 0 for unaware-bucket tables.
    """

    partition: PartitionKey
    files: tuple[DataFileDescriptor, ...]
    bucket: int = 0

    @property
    def row_count(self) -> int:
        return sum(f.row_count for f in self.files)

    def to_json_obj(self) -> dict[str, Any]:
        return {
            "partition": self.partition.spec(),
            "partition_key": self.partition.hex(),
            "bucket": self.bucket,
            "files": [f.to_json_obj() for f in self.files],
        }


@dataclass(frozen=True, slots=True)
class RelocationRecord:
    """A completed rename: the file now lives at new_path and came from original_path."""

    new_path: str
    original_path: str
