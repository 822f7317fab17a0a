"""
Path and layout helpers for lakeshift.io.

Overview (file protocol baseline)
- Warehouse:
    <warehouse>/<database>.db/<table>/schema/schema-<id>.json
    <warehouse>/<database>.db/<table>/snapshot/snapshot-<id>.json
    <warehouse>/<database>.db/<table>/snapshot/LATEST
    <warehouse>/<database>.db/<table>/<k>=<v>/.../bucket-0/<data files>
- Metastore:
    <metastore>/<database>/<table>.json

Notes
- Unpartitioned tables keep their data directly under <table>/bucket-0.
- This module focuses solely on path construction; it performs no IO.
"""

from __future__ import annotations

import os
from typing import Final

from lakeshift.core.constants import BUCKET_DIR
from lakeshift.core.identifiers import TableIdentifier
from lakeshift.core.partition import PartitionKey

_DB_SUFFIX: Final[str] = ".db"
_SNAPSHOT_PREFIX: Final[str] = "snapshot-"
_SCHEMA_PREFIX: Final[str] = "schema-"
LATEST_HINT: Final[str] = "LATEST"


def database_dir(warehouse_dir: str, database: str) -> str:
    """Path "<warehouse>/<database>.db"."""
    return os.path.join(warehouse_dir, database + _DB_SUFFIX)


def table_dir(warehouse_dir: str, identifier: TableIdentifier) -> str:
    """Path "<warehouse>/<database>.db/<table>"."""
    return os.path.join(database_dir(warehouse_dir, identifier.database), identifier.name)


def schema_path(table_root: str, schema_id: int) -> str:
    return os.path.join(table_root, "schema", f"{_SCHEMA_PREFIX}{schema_id}.json")


def snapshot_dir(table_root: str) -> str:
    return os.path.join(table_root, "snapshot")


def snapshot_path(table_root: str, snapshot_id: int) -> str:
    """Path "<table>/snapshot/snapshot-<id>.json"."""
    if snapshot_id < 1:
        raise ValueError("snapshot_id must be >= 1")
    return os.path.join(snapshot_dir(table_root), f"{_SNAPSHOT_PREFIX}{snapshot_id}.json")


def parse_snapshot_id(file_name: str) -> int | None:
    """Snapshot id from "snapshot-<id>.json", or None for any other name."""
    if not (file_name.startswith(_SNAPSHOT_PREFIX) and file_name.endswith(".json")):
        return None
    raw = file_name[len(_SNAPSHOT_PREFIX) : -len(".json")]
    return int(raw) if raw.isdigit() else None


def latest_hint_path(table_root: str) -> str:
    return os.path.join(snapshot_dir(table_root), LATEST_HINT)


def bucket_dir(table_root: str, partition: PartitionKey) -> str:
    """
    Data directory of a partition's single bucket.

    Returns:
        str: "<table>/<k>=<v>/.../bucket-0", or "<table>/bucket-0" for the empty key.
    """
    rel = partition.relative_path()
    if not rel:
        return os.path.join(table_root, BUCKET_DIR)
    return os.path.join(table_root, *rel.split("/"), BUCKET_DIR)


def table_definition_path(metastore_dir: str, identifier: TableIdentifier) -> str:
    """Path "<metastore>/<database>/<table>.json"."""
    return os.path.join(metastore_dir, identifier.database, identifier.name + ".json")
