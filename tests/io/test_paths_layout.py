import os

import pytest

from lakeshift.core.identifiers import TableIdentifier
from lakeshift.core.partition import EMPTY_PARTITION_KEY, PartitionKeyEncoder
from lakeshift.core.schema import SchemaField
from lakeshift.io.paths import (
    bucket_dir,
    database_dir,
    latest_hint_path,
    parse_snapshot_id,
    schema_path,
    snapshot_path,
    table_definition_path,
    table_dir,
)


def test_parse_snapshot_id():
    assert parse_snapshot_id("snapshot-1.json") == 1
    assert parse_snapshot_id("snapshot-42.json") == 42
    assert parse_snapshot_id("LATEST") is None
    assert parse_snapshot_id("snapshot-x.json") is None
    assert parse_snapshot_id(".snapshot-1.json.tmp") is None


def test_snapshot_path_invalid():
    with pytest.raises(ValueError):
        snapshot_path("/wh/t", 0)


def test_path_layout_helpers(tmp_path):
    wh = str(tmp_path / "warehouse")
    ident = TableIdentifier("Sales", "Orders")

    assert database_dir(wh, "sales") == os.path.join(wh, "sales.db")
    troot = table_dir(wh, ident)
    assert troot == os.path.join(wh, "sales.db", "orders")
    assert schema_path(troot, 0) == os.path.join(troot, "schema", "schema-0.json")
    assert snapshot_path(troot, 3) == os.path.join(troot, "snapshot", "snapshot-3.json")
    assert latest_hint_path(troot) == os.path.join(troot, "snapshot", "LATEST")
    assert table_definition_path("/ms", ident) == os.path.join("/ms", "sales", "orders.json")


def test_bucket_dir_for_partitions():
    troot = "/wh/db.db/events"
    assert bucket_dir(troot, EMPTY_PARTITION_KEY) == os.path.join(troot, "bucket-0")

    encoder = PartitionKeyEncoder(
        [SchemaField(name="dt", type="STRING"), SchemaField(name="hour", type="INT")]
    )
    key = encoder.encode({"hour": "7", "dt": "2024-01-01"})
    assert bucket_dir(troot, key) == os.path.join(troot, "dt=2024-01-01", "hour=7", "bucket-0")
