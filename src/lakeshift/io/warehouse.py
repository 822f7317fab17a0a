"""
Target table management: a directory-backed warehouse of file-store tables.

Responsibilities
- TargetCatalog: existence check, create (from a TableSchema), lookup and drop of target tables.
- FileStoreTable: a table's schema, layout and capability flags, plus the transactional
  commit that publishes one snapshot from a list of CommitMessages, all-or-nothing.

Table kinds (closed set)
- TableKind.APPEND_ONLY / TableKind.PRIMARY_KEY, crossed with BucketMode UNAWARE / FIXED / DYNAMIC.
- Only append-only, unaware-bucket tables accept relocated files
  (FileStoreTable.supports_direct_relocation).

Snapshot layout (JSON at <table>/snapshot/snapshot-<id>.json)
{
  "id": 1,
  "schema_id": 0,
  "commit_kind": "APPEND",
  "commit_identifier": "<uuid hex>",
  "created_at": "ISO-8601",
  "delta_record_count": 3,
  "total_record_count": 3,
  "entries": [
    {"partition": {"dt": "2024-01-01"}, "partition_key": "<hex>", "bucket": 0,
     "files": [{"file_name": "part-0.parquet", "format": "parquet", "file_size": 812,
                "row_count": 3, "schema_id": 0, "column_stats": {...}}]}
  ]
}

Notes
- A snapshot is published by an exclusive link of a fully written temporary file; two
  commits racing for the same id cannot both succeed.
- File names are stored relative to the bucket directory to keep the manifest relocatable.
"""

from __future__ import annotations

import os
import shutil
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any, Protocol, runtime_checkable

import structlog

from lakeshift.core.errors import (
    CommitError,
    TableAlreadyExistsError,
    TableNotFoundError,
)
from lakeshift.core.identifiers import TableIdentifier
from lakeshift.core.messages import CommitMessage
from lakeshift.core.partition import PartitionKey, PartitionKeyEncoder
from lakeshift.core.schema import BUCKET_OPTION, UNAWARE_BUCKET, TableSchema

from .fs import read_json, write_json_atomic
from .paths import (
    bucket_dir,
    latest_hint_path,
    parse_snapshot_id,
    schema_path,
    snapshot_dir,
    snapshot_path,
    table_dir,
)

__all__ = [
    "TableKind",
    "BucketMode",
    "Snapshot",
    "FileStoreTable",
    "TargetCatalog",
    "Warehouse",
]

logger = structlog.get_logger(__name__)


def _utc_now_iso() -> str:
    return datetime.now(UTC).isoformat()


class TableKind(Enum):
    APPEND_ONLY = "append_only"
    PRIMARY_KEY = "primary_key"


class BucketMode(Enum):
    """How files of a partition are distributed over buckets."""

    UNAWARE = "unaware"  # single logical bucket per partition
    FIXED = "fixed"
    DYNAMIC = "dynamic"


@dataclass(slots=True)
class Snapshot:
    """
    One committed snapshot of a target table.

    Attributes:
        id (int): Monotonic snapshot id, starting at 1.
        schema_id (int): Schema the snapshot was written with.
        commit_kind (str): Always "APPEND" for migrations.
        commit_identifier (str): Unique id of the commit that produced the snapshot.
        created_at (str): ISO-8601 timestamp.
        delta_record_count (int): Rows added by this snapshot.
        total_record_count (int): Rows visible in this snapshot.
        entries (list[dict[str, Any]]): Per-partition manifest entries.
    """

    id: int
    schema_id: int
    commit_kind: str
    commit_identifier: str
    created_at: str
    delta_record_count: int
    total_record_count: int
    entries: list[dict[str, Any]] = field(default_factory=list)

    @property
    def file_count(self) -> int:
        return sum(len(e.get("files") or []) for e in self.entries)

    def to_json_obj(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "schema_id": self.schema_id,
            "commit_kind": self.commit_kind,
            "commit_identifier": self.commit_identifier,
            "created_at": self.created_at,
            "delta_record_count": self.delta_record_count,
            "total_record_count": self.total_record_count,
            "entries": self.entries,
        }

    @classmethod
    def from_json_obj(cls, obj: dict[str, Any]) -> Snapshot:
        return cls(
            id=int(obj["id"]),
            schema_id=int(obj.get("schema_id", 0)),
            commit_kind=obj.get("commit_kind", "APPEND"),
            commit_identifier=obj.get("commit_identifier", ""),
            created_at=obj.get("created_at") or _utc_now_iso(),
            delta_record_count=int(obj.get("delta_record_count", 0)),
            total_record_count=int(obj.get("total_record_count", 0)),
            entries=list(obj.get("entries") or []),
        )


@dataclass(frozen=True, slots=True)
class FileStoreTable:
    """
    A target table: identifier, root directory and schema.

    Notes:
        - kind and bucket_mode are derived from the schema (primary keys, "bucket" option).
        - A missing "bucket" option means fixed bucketing with a single bucket.
    """

    identifier: TableIdentifier
    location: str
    schema: TableSchema

    @property
    def kind(self) -> TableKind:
        return TableKind.PRIMARY_KEY if self.schema.primary_keys else TableKind.APPEND_ONLY

    @property
    def bucket_mode(self) -> BucketMode:
        raw = self.schema.options.get(BUCKET_OPTION)
        if raw is not None and raw.strip() == UNAWARE_BUCKET:
            return BucketMode.DYNAMIC if self.kind is TableKind.PRIMARY_KEY else BucketMode.UNAWARE
        return BucketMode.FIXED

    @property
    def supports_direct_relocation(self) -> bool:
        return self.kind is TableKind.APPEND_ONLY and self.bucket_mode is BucketMode.UNAWARE

    @property
    def partition_keys(self) -> list[str]:
        return list(self.schema.partition_keys)

    def partition_key_encoder(self) -> PartitionKeyEncoder:
        return PartitionKeyEncoder(self.schema.partition_fields())

    def bucket_dir(self, partition: PartitionKey) -> str:
        return bucket_dir(self.location, partition)

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------
    def snapshot_ids(self) -> list[int]:
        try:
            names = os.listdir(snapshot_dir(self.location))
        except FileNotFoundError:
            return []
        return sorted(i for i in (parse_snapshot_id(n) for n in names) if i is not None)

    def snapshot(self, snapshot_id: int) -> Snapshot:
        return Snapshot.from_json_obj(read_json(snapshot_path(self.location, snapshot_id)))

    def latest_snapshot(self) -> Snapshot | None:
        ids = self.snapshot_ids()
        return self.snapshot(ids[-1]) if ids else None

    def snapshots(self) -> list[Snapshot]:
        return [self.snapshot(i) for i in self.snapshot_ids()]

    def _check_message(self, message: CommitMessage) -> None:
        expected = len(self.schema.partition_keys)
        if message.partition.arity != expected:
            raise CommitError(
                f"partition key arity {message.partition.arity} does not match "
                f"{expected} partition columns of {self.identifier}"
            )
        bdir = self.bucket_dir(message.partition)
        for f in message.files:
            if os.path.dirname(f.path) != bdir:
                raise CommitError(f"file {f.path} is not under partition directory {bdir}")
            if not os.path.exists(f.path):
                raise CommitError(f"file {f.path} does not exist")

    def commit(self, messages: list[CommitMessage]) -> Snapshot:
        """
        Publish one new snapshot containing every message, or nothing.

        Args:
            messages (list[CommitMessage]): Per-partition file lists; order is preserved in
                the snapshot but carries no meaning.

        Returns:
            Snapshot: The published snapshot.

        Raises:
            CommitError: Empty commit, a message not matching the table layout, or a
                concurrent commit that already took the next snapshot id.
        """
        if not messages:
            raise CommitError(f"refusing empty commit to {self.identifier}")
        for message in messages:
            self._check_message(message)

        previous = self.latest_snapshot()
        delta = sum(m.row_count for m in messages)
        snap = Snapshot(
            id=(previous.id + 1) if previous else 1,
            schema_id=self.schema.schema_id,
            commit_kind="APPEND",
            commit_identifier=uuid.uuid4().hex,
            created_at=_utc_now_iso(),
            delta_record_count=delta,
            total_record_count=(previous.total_record_count if previous else 0) + delta,
            entries=[m.to_json_obj() for m in messages],
        )
        try:
            write_json_atomic(snapshot_path(self.location, snap.id), snap.to_json_obj(), exclusive=True)
        except FileExistsError as exc:
            raise CommitError(
                f"snapshot {snap.id} of {self.identifier} was committed concurrently"
            ) from exc
        except OSError as exc:
            raise CommitError(f"failed to write snapshot {snap.id} of {self.identifier}: {exc}") from exc

        # LATEST is a hint only; snapshot files are authoritative.
        try:
            write_json_atomic(latest_hint_path(self.location), {"id": snap.id})
        except OSError as exc:
            logger.warning("latest_hint_write_failed", table=str(self.identifier), error=str(exc))

        logger.info(
            "snapshot_committed",
            table=str(self.identifier),
            snapshot_id=snap.id,
            partitions=len(messages),
            files=snap.file_count,
            rows=delta,
        )
        return snap


@runtime_checkable
class TargetCatalog(Protocol):
    """Target table management capability consumed by the migration engine."""

    def table_location(self, identifier: TableIdentifier) -> str: ...

    def table_exists(self, identifier: TableIdentifier) -> bool: ...

    def create_table(self, identifier: TableIdentifier, schema: TableSchema) -> FileStoreTable: ...

    def get_table(self, identifier: TableIdentifier) -> FileStoreTable: ...

    def drop_table(self, identifier: TableIdentifier) -> None: ...


class Warehouse:
    """
    Directory-backed TargetCatalog rooted at warehouse_dir.

    Args:
        warehouse_dir (str): Root directory of all target databases.
    """

    def __init__(self, warehouse_dir: str) -> None:
        self.warehouse_dir = warehouse_dir

    def table_location(self, identifier: TableIdentifier) -> str:
        return table_dir(self.warehouse_dir, identifier)

    def table_exists(self, identifier: TableIdentifier) -> bool:
        return os.path.exists(schema_path(self.table_location(identifier), 0))

    def create_table(self, identifier: TableIdentifier, schema: TableSchema) -> FileStoreTable:
        """
        Create a table by writing schema-0.

        Raises:
            TableAlreadyExistsError: If the table already exists.
        """
        location = self.table_location(identifier)
        schema = schema.model_copy(update={"schema_id": 0})
        try:
            write_json_atomic(
                schema_path(location, 0), schema.model_dump(mode="json"), exclusive=True
            )
        except FileExistsError as exc:
            raise TableAlreadyExistsError(f"target table {identifier} already exists") from exc
        logger.info("target_table_created", table=str(identifier), location=location)
        return FileStoreTable(identifier=identifier, location=location, schema=schema)

    def get_table(self, identifier: TableIdentifier) -> FileStoreTable:
        location = self.table_location(identifier)
        path = schema_path(location, 0)
        if not os.path.exists(path):
            raise TableNotFoundError(f"target table {identifier} does not exist")
        schema = TableSchema.model_validate(read_json(path))
        return FileStoreTable(identifier=identifier, location=location, schema=schema)

    def drop_table(self, identifier: TableIdentifier) -> None:
        """Remove the table directory and everything under it (no error if absent)."""
        location = self.table_location(identifier)
        if os.path.isdir(location):
            shutil.rmtree(location)
        logger.info("target_table_dropped", table=str(identifier))
