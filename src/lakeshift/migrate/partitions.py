"""
Enumeration of the source partitions a migration relocates.

Each source partition (or the whole table, when it is unpartitioned) becomes one
PartitionPlan: where its files are, which format they are in, and which target partition
key and bucket directory they move to. Encoders are derived once from the target schema's
partition-column order.
"""

from __future__ import annotations

from dataclasses import dataclass

from lakeshift.core.errors import UnsupportedFormatError, ValidationError
from lakeshift.core.formats import FileFormat, parse_format
from lakeshift.core.identifiers import TableIdentifier
from lakeshift.core.partition import EMPTY_PARTITION_KEY, PartitionKey
from lakeshift.io.metastore import SourceCatalog
from lakeshift.io.warehouse import FileStoreTable

__all__ = ["PartitionPlan", "PartitionEnumerator"]


@dataclass(frozen=True, slots=True)
class PartitionPlan:
    """
    One unit of relocation work.

    Attributes:
        name (str): Source partition name ("" for an unpartitioned table).
        format (FileFormat | None): Resolved file format; None when resolution failed.
        format_error (UnsupportedFormatError | None): Why the format is unknown. The
            owning task fails with it; sibling partitions are unaffected.
        source_dir (str): Directory holding the partition's files.
        partition (PartitionKey): Target partition key.
        target_dir (str): Target bucket directory the files move into.
    """

    name: str
    format: FileFormat | None
    source_dir: str
    partition: PartitionKey
    target_dir: str
    format_error: UnsupportedFormatError | None = None


def _resolve(serde: str) -> tuple[FileFormat | None, UnsupportedFormatError | None]:
    try:
        return parse_format(serde), None
    except UnsupportedFormatError as exc:
        return None, exc


class PartitionEnumerator:
    """
    Lists source partitions and plans their relocation into a target table.

    Args:
        catalog (SourceCatalog): Source metastore.
        target (FileStoreTable): Target table (its partition columns define the key order).
    """

    def __init__(self, catalog: SourceCatalog, target: FileStoreTable) -> None:
        self.catalog = catalog
        self.target = target
        self._encoder = target.partition_key_encoder()

    def plans(self, source: TableIdentifier) -> list[PartitionPlan]:
        """
        Plan every partition of the source table.

        Returns:
            list[PartitionPlan]: One plan per registered partition (none for a partitioned
            table without partitions); exactly one (empty key, table location) for an
            unpartitioned table.

        Raises:
            ValidationError: If a partition's values do not fit the target partition columns,
                or two partitions resolve to the same target directory.
        """
        table = self.catalog.get_table(source)
        if not table.partition_keys:
            fmt, err = _resolve(table.serde)
            return [
                PartitionPlan(
                    name="",
                    format=fmt,
                    format_error=err,
                    source_dir=table.location,
                    partition=EMPTY_PARTITION_KEY,
                    target_dir=self.target.bucket_dir(EMPTY_PARTITION_KEY),
                )
            ]

        out: list[PartitionPlan] = []
        seen: dict[str, str] = {}
        for name in self.catalog.list_partition_names(source):
            part = self.catalog.get_partition(source, name)
            values = self.catalog.partition_name_to_spec(name)
            key = self._encoder.encode(values)
            target_dir = self.target.bucket_dir(key)
            if target_dir in seen:
                raise ValidationError(
                    f"partitions {seen[target_dir]!r} and {name!r} both map to {target_dir}"
                )
            seen[target_dir] = name
            fmt, err = _resolve(part.serde or table.serde)
            out.append(
                PartitionPlan(
                    name=name,
                    format=fmt,
                    format_error=err,
                    source_dir=part.location,
                    partition=key,
                    target_dir=target_dir,
                )
            )
        return out
