import os
import threading
import time
from pathlib import Path

import pytest

from conftest import (
    TEXT_SERDE,
    all_files,
    register_partitioned,
    register_unpartitioned,
)

from lakeshift.core.errors import (
    CommitError,
    ConcurrentMigrationError,
    ConfigError,
    ExtractionError,
    MigrationError,
    RelocationConflictError,
    RelocationError,
    TableNotFoundError,
    UnsupportedFormatError,
    ValidationError,
)
from lakeshift.core.identifiers import TableIdentifier
from lakeshift.core.schema import schema_from_source
from lakeshift.io.fs import LocalFileIO
from lakeshift.io.metastore import JsonMetastore
from lakeshift.io.warehouse import FileStoreTable
from lakeshift.migrate.coordinator import (
    MigrationCoordinator,
    MigrationState,
    _exclusive,
)

TARGET = TableIdentifier("default", "target")


def _coordinator(lake, source, *, file_io=None, metastore=None, **kw) -> MigrationCoordinator:
    return MigrationCoordinator(
        metastore or lake.metastore,
        lake.warehouse,
        file_io or lake.file_io,
        source,
        kw.pop("target", TARGET),
        kw.pop("options", None),
        **kw,
    )


def _tree(root: Path) -> list[str]:
    out = []
    for dirpath, dirnames, filenames in os.walk(root):
        out.extend(os.path.join(dirpath, d) + "/" for d in dirnames)
        out.extend(os.path.join(dirpath, f) for f in filenames)
    return sorted(out)


class _FailOnRename(LocalFileIO):
    """Fails the rename of any source path ending with one of the given suffixes."""

    def __init__(self, *suffixes: str) -> None:
        self.suffixes = suffixes
        self.moved: list[str] = []

    def rename(self, src: str, dst: str) -> None:
        if src.endswith(self.suffixes):
            raise OSError(f"injected failure moving {src}")
        super().rename(src, dst)
        self.moved.append(src)


def test_unpartitioned_migration_relocates_and_drops_source(lake) -> None:
    source, paths = register_unpartitioned(lake)

    result = _coordinator(lake, source).migrate()

    bucket = Path(lake.warehouse.table_location(TARGET)) / "bucket-0"
    assert sorted(p.name for p in bucket.iterdir()) == ["part-0.parquet", "part-1.parquet"]
    assert not any(os.path.exists(p) for p in paths)
    assert not lake.metastore.table_exists(source)

    assert result.state is MigrationState.SOURCE_DROPPED
    assert result.target_created
    assert result.source_dropped
    assert result.source_drop_error is None
    assert (result.partitions, result.files, result.rows) == (1, 2, 6)

    table = lake.warehouse.get_table(TARGET)
    snapshots = table.snapshots()
    assert [s.id for s in snapshots] == [1]
    assert snapshots[0].file_count == 2
    assert snapshots[0].delta_record_count == 6
    assert snapshots[0].entries[0]["partition"] == {}


def test_partitioned_migration_over_a_pool(lake) -> None:
    days = tuple(f"2024-01-0{i}" for i in range(1, 7))
    source, _files = register_partitioned(lake, days=days)

    result = _coordinator(lake, source, max_workers=4).migrate()

    table = lake.warehouse.get_table(TARGET)
    (snap,) = table.snapshots()
    assert snap.file_count == 12
    assert sorted(e["partition"]["dt"] for e in snap.entries) == list(days)
    for day in days:
        bucket = Path(table.location) / f"dt={day}" / "bucket-0"
        assert sorted(p.name for p in bucket.iterdir()) == ["part-0.parquet", "part-1.parquet"]
    assert result.rows == 24
    assert table.partition_keys == ["dt"]


def test_created_target_carries_options_and_comment(lake) -> None:
    source, _files = register_partitioned(lake, days=("2024-01-01",))

    _coordinator(lake, source, options={"file.format": "parquet", "bucket": "7"}).migrate()

    schema = lake.warehouse.get_table(TARGET).schema
    assert schema.options["file.format"] == "parquet"
    assert schema.options["bucket"] == "-1"
    assert schema.options["hive.comment"] == "daily events"
    assert schema.comment == "daily events"
    assert schema.column_names() == ["id", "amount", "note", "dt"]


def test_failure_mid_partition_restores_everything(lake, single_worker) -> None:
    source, _files = register_partitioned(lake)
    before = all_files(lake.data_dir)
    file_io = _FailOnRename(os.path.join("dt=2024-01-02", "part-1.parquet"))

    with pytest.raises(MigrationError) as info:
        _coordinator(lake, source, file_io=file_io, executor=single_worker).migrate()

    err = info.value
    relocated = [p for p in file_io.moved if p.startswith(str(lake.data_dir))]
    assert len(relocated) == 3
    assert [type(e) for e in err.errors] == [RelocationError]
    assert isinstance(err.__cause__, RelocationError)
    assert err.target_dropped
    assert err.rollback_errors == []
    assert sorted(err.rolled_back) == sorted(relocated)
    assert all_files(lake.data_dir) == before
    assert not os.path.exists(lake.warehouse.table_location(TARGET))
    assert lake.metastore.table_exists(source)
    assert lake.metastore.list_partition_names(source) == ["dt=2024-01-01", "dt=2024-01-02"]


def test_existing_target_untouched_after_conflict(lake, single_worker) -> None:
    source, paths = register_unpartitioned(lake)
    schema = schema_from_source(lake.metastore.get_table(source))
    table = lake.warehouse.create_table(TARGET, schema)
    bucket = Path(table.location) / "bucket-0"
    bucket.mkdir(parents=True)
    (bucket / "part-1.parquet").write_text("leftover")
    before = _tree(Path(table.location))

    with pytest.raises(MigrationError) as info:
        _coordinator(lake, source, executor=single_worker).migrate()

    assert isinstance(info.value.errors[0], RelocationConflictError)
    assert not info.value.target_dropped
    assert _tree(Path(table.location)) == before
    assert (bucket / "part-1.parquet").read_text() == "leftover"
    assert all(os.path.exists(p) for p in paths)
    assert lake.warehouse.get_table(TARGET).snapshots() == []


def test_unsupported_format_fails_and_drops_created_target(lake) -> None:
    source, paths = register_unpartitioned(lake, serde=TEXT_SERDE)

    with pytest.raises(MigrationError) as info:
        _coordinator(lake, source).migrate()

    assert isinstance(info.value.errors[0], UnsupportedFormatError)
    assert info.value.target_dropped
    assert all(os.path.exists(p) for p in paths)
    assert not lake.warehouse.table_exists(TARGET)


def test_commit_failure_rolls_back(lake, monkeypatch) -> None:
    source, paths = register_unpartitioned(lake)

    def broken_commit(self, messages):
        raise CommitError("snapshot 1 was committed concurrently")

    monkeypatch.setattr(FileStoreTable, "commit", broken_commit)

    with pytest.raises(MigrationError) as info:
        _coordinator(lake, source).migrate()

    assert isinstance(info.value.errors[0], CommitError)
    assert all(os.path.exists(p) for p in paths)
    assert not lake.warehouse.table_exists(TARGET)
    assert lake.metastore.table_exists(source)


class _UndroppableMetastore(JsonMetastore):
    def drop_table(self, identifier, delete_data=True):
        raise PermissionError("metastore is read-only")


def test_source_drop_failure_is_reported(lake) -> None:
    metastore = _UndroppableMetastore(lake.metastore.root_dir)
    source, _paths = register_unpartitioned(lake)

    result = _coordinator(lake, source, metastore=metastore).migrate()

    assert result.state is MigrationState.COMMITTED
    assert not result.source_dropped
    assert "read-only" in result.source_drop_error
    assert lake.warehouse.get_table(TARGET).latest_snapshot().id == 1
    assert lake.metastore.table_exists(source)


def test_source_data_kept_when_not_deleting(lake) -> None:
    source, _paths = register_unpartitioned(lake)
    (lake.data_dir / "orders" / "_SUCCESS").write_text("")

    _coordinator(lake, source, drop_source_data=False).migrate()

    assert not lake.metastore.table_exists(source)
    assert (lake.data_dir / "orders" / "_SUCCESS").exists()


def test_primary_key_source_rejected_without_side_effects(lake) -> None:
    source, paths = register_unpartitioned(lake, primary_keys=["id"])

    with pytest.raises(ValidationError):
        _coordinator(lake, source).migrate()

    assert all(os.path.exists(p) for p in paths)
    assert not os.path.exists(lake.warehouse.warehouse_dir)


def test_incompatible_existing_target_rejected(lake) -> None:
    source, paths = register_unpartitioned(lake)
    schema = schema_from_source(lake.metastore.get_table(source)).model_copy(
        update={"options": {"bucket": "4"}}
    )
    table = lake.warehouse.create_table(TARGET, schema)
    before = _tree(Path(table.location))

    with pytest.raises(ValidationError):
        _coordinator(lake, source).migrate()

    assert _tree(Path(table.location)) == before
    assert all(os.path.exists(p) for p in paths)


def test_missing_source(lake) -> None:
    with pytest.raises(TableNotFoundError):
        _coordinator(lake, TableIdentifier("default", "nope")).migrate()
    assert not lake.warehouse.table_exists(TARGET)


def test_concurrent_migration_of_same_pair_refused(lake) -> None:
    source, paths = register_unpartitioned(lake)
    with _exclusive(source, TARGET):
        with pytest.raises(ConcurrentMigrationError):
            _coordinator(lake, source).migrate()
    assert all(os.path.exists(p) for p in paths)
    # the lock is released afterwards
    assert _coordinator(lake, source).migrate().source_dropped


def test_coordinator_runs_once(lake) -> None:
    source, _paths = register_unpartitioned(lake)
    coordinator = _coordinator(lake, source)
    coordinator.migrate()
    with pytest.raises(RuntimeError):
        coordinator.migrate()


def test_zero_workers_rejected_before_anything_happens(lake) -> None:
    source, paths = register_unpartitioned(lake)
    with pytest.raises(ConfigError):
        _coordinator(lake, source, max_workers=0).migrate()
    assert not lake.warehouse.table_exists(TARGET)
    assert all(os.path.exists(p) for p in paths)


def test_partitioned_source_without_partitions_rejected(lake) -> None:
    source, _files = register_partitioned(lake, days=())
    with pytest.raises(ValidationError, match="no partitions"):
        _coordinator(lake, source).migrate()
    assert not os.path.exists(lake.warehouse.warehouse_dir)
    assert lake.metastore.table_exists(source)


class _RacingIO(LocalFileIO):
    """
    Lets the slow partition move one file, fails the other partition, then lets the slow
    partition finish the file it already started.
    """

    def __init__(self, slow: str, failing: str) -> None:
        self.slow = slow
        self.failing = failing
        self.first_moved = threading.Event()
        self.failed = threading.Event()
        self.slow_moves = 0

    def rename(self, src: str, dst: str) -> None:
        if self.failing in src:
            self.first_moved.wait(5)
            self.failed.set()
            raise OSError(f"injected failure moving {src}")
        if self.slow in src:
            if self.slow_moves >= 1:
                self.failed.wait(5)
                time.sleep(0.2)
            super().rename(src, dst)
            self.slow_moves += 1
            self.first_moved.set()
            return
        super().rename(src, dst)


def test_sibling_mid_loop_stops_at_checkpoint_and_is_reversed(lake) -> None:
    source, _files = register_partitioned(lake, files_per_partition=5)
    before = all_files(lake.data_dir)
    file_io = _RacingIO(
        slow=os.path.join(str(lake.data_dir), "events", "dt=2024-01-01"),
        failing=os.path.join(str(lake.data_dir), "events", "dt=2024-01-02"),
    )

    with pytest.raises(MigrationError) as info:
        _coordinator(lake, source, file_io=file_io, max_workers=2).migrate()

    err = info.value
    assert 1 <= file_io.slow_moves < 5
    assert [type(e) for e in err.errors] == [RelocationError]
    assert len(err.rolled_back) == file_io.slow_moves
    assert err.rollback_errors == []
    assert all_files(lake.data_dir) == before
    assert not lake.warehouse.table_exists(TARGET)


def test_extraction_failure_after_rename_restores_files(lake) -> None:
    source, files = register_partitioned(lake)
    garbage = Path(files["2024-01-02"][0]).parent / "part-9.parquet"
    garbage.write_bytes(b"definitely not parquet")
    before = all_files(lake.data_dir)

    with pytest.raises(MigrationError) as info:
        _coordinator(lake, source, max_workers=2).migrate()

    assert isinstance(info.value.errors[0], ExtractionError)
    assert str(garbage) in info.value.rolled_back
    assert all_files(lake.data_dir) == before
    assert garbage.read_bytes() == b"definitely not parquet"
    assert not lake.warehouse.table_exists(TARGET)
