"""
Source catalog capability and a directory-backed metastore.

Responsibilities
- SourceCatalog: the metastore operations a migration consumes (existence, table and schema
  lookup, partition listing and lookup, partition-name parsing, primary keys, drop).
- JsonMetastore: one JSON definition per table at <metastore>/<database>/<table>.json.

Definition document
{
  "database": "default", "name": "orders",
  "columns": [{"name": "id", "type": "bigint", "comment": null}],
  "partition_keys": [{"name": "dt", "type": "string", "comment": null}],
  "location": "/data/orders",
  "serde": "org.apache.hadoop.hive.ql.io.parquet.serde.ParquetHiveSerDe",
  "parameters": {"comment": "orders fact"},
  "primary_keys": [],
  "partitions": [{"values": {"dt": "2024-01-01"}, "location": "/data/orders/dt=2024-01-01", "serde": "..."}]
}

Notes
- Definitions are written atomically (tmp → rename); concurrent writers within one process
  are serialized by a lock.
"""

from __future__ import annotations

import os
import shutil
import threading
from typing import Any, Protocol, runtime_checkable

import structlog

from lakeshift.core.errors import TableAlreadyExistsError, TableNotFoundError, ValidationError
from lakeshift.core.identifiers import TableIdentifier
from lakeshift.core.partition import make_partition_name, parse_partition_name
from lakeshift.core.schema import SourceColumn, SourcePartition, SourceTable

from .fs import read_json, write_json_atomic
from .paths import table_definition_path

__all__ = ["SourceCatalog", "JsonMetastore"]

logger = structlog.get_logger(__name__)


@runtime_checkable
class SourceCatalog(Protocol):
    """Metastore capability consumed by the migration engine."""

    def table_exists(self, identifier: TableIdentifier) -> bool: ...

    def get_table(self, identifier: TableIdentifier) -> SourceTable: ...

    def get_schema(self, identifier: TableIdentifier) -> list[SourceColumn]: ...

    def get_primary_keys(self, identifier: TableIdentifier) -> list[str]: ...

    def list_partition_names(self, identifier: TableIdentifier) -> list[str]: ...

    def get_partition(self, identifier: TableIdentifier, partition_name: str) -> SourcePartition: ...

    def partition_name_to_spec(self, partition_name: str) -> dict[str, str]: ...

    def drop_table(self, identifier: TableIdentifier, delete_data: bool = True) -> None: ...


class JsonMetastore:
    """
    Directory-backed SourceCatalog.

    Args:
        root_dir (str): Directory holding <database>/<table>.json definitions.
    """

    def __init__(self, root_dir: str) -> None:
        self.root_dir = root_dir
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------
    def _path(self, identifier: TableIdentifier) -> str:
        return table_definition_path(self.root_dir, identifier)

    def _load(self, identifier: TableIdentifier) -> dict[str, Any]:
        path = self._path(identifier)
        if not os.path.exists(path):
            raise TableNotFoundError(f"source table {identifier} does not exist")
        return read_json(path)

    def _store(self, identifier: TableIdentifier, doc: dict[str, Any]) -> None:
        write_json_atomic(self._path(identifier), doc)

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------
    def create_table(self, table: SourceTable) -> TableIdentifier:
        """
        Register a table definition.

        Raises:
            TableAlreadyExistsError: If a definition already exists.
        """
        identifier = TableIdentifier(table.database, table.name)
        with self._lock:
            if os.path.exists(self._path(identifier)):
                raise TableAlreadyExistsError(f"source table {identifier} already exists")
            doc = table.model_dump()
            doc["partitions"] = []
            self._store(identifier, doc)
        return identifier

    def add_partition(self, identifier: TableIdentifier, partition: SourcePartition) -> str:
        """
        Register a partition and return its name.

        Raises:
            ValidationError: If the partition's columns differ from the table's partition keys
                or the partition is already registered.
        """
        with self._lock:
            doc = self._load(identifier)
            keys = [c["name"] for c in doc.get("partition_keys") or []]
            if set(partition.values) != set(keys):
                raise ValidationError(
                    f"partition values {sorted(partition.values)!r} do not match partition keys {keys!r}"
                )
            name = make_partition_name((k, partition.values[k]) for k in keys)
            parts = doc.setdefault("partitions", [])
            if any(make_partition_name((k, p["values"][k]) for k in keys) == name for p in parts):
                raise ValidationError(f"partition {name!r} already exists in {identifier}")
            parts.append(partition.model_dump())
            self._store(identifier, doc)
        return name

    # ------------------------------------------------------------------
    # SourceCatalog
    # ------------------------------------------------------------------
    def table_exists(self, identifier: TableIdentifier) -> bool:
        return os.path.exists(self._path(identifier))

    def get_table(self, identifier: TableIdentifier) -> SourceTable:
        doc = self._load(identifier)
        return SourceTable.model_validate({k: v for k, v in doc.items() if k != "partitions"})

    def get_schema(self, identifier: TableIdentifier) -> list[SourceColumn]:
        """All columns: data columns followed by partition columns."""
        table = self.get_table(identifier)
        return [*table.columns, *table.partition_keys]

    def get_primary_keys(self, identifier: TableIdentifier) -> list[str]:
        return list(self.get_table(identifier).primary_keys)

    def list_partition_names(self, identifier: TableIdentifier) -> list[str]:
        doc = self._load(identifier)
        keys = [c["name"] for c in doc.get("partition_keys") or []]
        return [
            make_partition_name((k, p["values"][k]) for k in keys)
            for p in doc.get("partitions") or []
        ]

    def get_partition(self, identifier: TableIdentifier, partition_name: str) -> SourcePartition:
        """
        Look up a partition by name.

        Raises:
            ValidationError: If the table has no such partition.
        """
        wanted = self.partition_name_to_spec(partition_name)
        for p in self._load(identifier).get("partitions") or []:
            if p["values"] == wanted:
                return SourcePartition.model_validate(p)
        raise ValidationError(f"partition {partition_name!r} not found in {identifier}")

    def partition_name_to_spec(self, partition_name: str) -> dict[str, str]:
        return parse_partition_name(partition_name)

    def drop_table(self, identifier: TableIdentifier, delete_data: bool = True) -> None:
        """
        Remove a table definition; with delete_data, also remove its data location.

        Raises:
            TableNotFoundError: If the table does not exist.
        """
        with self._lock:
            table = self.get_table(identifier)
            locations = [table.location]
            if delete_data:
                doc = self._load(identifier)
                locations.extend(p["location"] for p in doc.get("partitions") or [])
            os.remove(self._path(identifier))
        if delete_data:
            for loc in locations:
                if os.path.isdir(loc):
                    shutil.rmtree(loc)
        logger.info("source_table_dropped", table=str(identifier), delete_data=delete_data)
