from __future__ import annotations

import os
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path

import polars as pl
import pytest

from lakeshift.core.identifiers import TableIdentifier
from lakeshift.core.schema import SourceColumn, SourcePartition, SourceTable
from lakeshift.io.fs import LocalFileIO
from lakeshift.io.metastore import JsonMetastore
from lakeshift.io.warehouse import Warehouse

PARQUET_SERDE = "org.apache.hadoop.hive.ql.io.parquet.serde.ParquetHiveSerDe"
ORC_SERDE = "org.apache.hadoop.hive.ql.io.orc.OrcSerde"
AVRO_SERDE = "org.apache.hadoop.hive.serde2.avro.AvroSerDe"
TEXT_SERDE = "org.apache.hadoop.hive.serde2.lazy.LazySimpleSerDe"


@dataclass
class Lake:
    root: Path
    data_dir: Path
    metastore: JsonMetastore
    warehouse: Warehouse
    file_io: LocalFileIO


@pytest.fixture
def lake(tmp_path: Path) -> Lake:
    data_dir = tmp_path / "data"
    data_dir.mkdir()
    return Lake(
        root=tmp_path,
        data_dir=data_dir,
        metastore=JsonMetastore(str(tmp_path / "metastore")),
        warehouse=Warehouse(str(tmp_path / "warehouse")),
        file_io=LocalFileIO(),
    )


@pytest.fixture
def single_worker():
    pool = ThreadPoolExecutor(max_workers=1)
    yield pool
    pool.shutdown(wait=True)


def orders_frame(start: int, n: int) -> pl.DataFrame:
    return pl.DataFrame(
        {
            "id": list(range(start, start + n)),
            "amount": [float(i) * 1.5 for i in range(start, start + n)],
            "note": [None if i % 2 else f"n{i}" for i in range(start, start + n)],
        },
        schema={"id": pl.Int64, "amount": pl.Float64, "note": pl.Utf8},
    )


def write_files(directory: Path, frames: dict[str, pl.DataFrame]) -> list[str]:
    directory.mkdir(parents=True, exist_ok=True)
    out = []
    for name, df in frames.items():
        path = directory / name
        df.write_parquet(path)
        out.append(str(path))
    return sorted(out)


ORDERS_COLUMNS = [
    SourceColumn(name="id", type="bigint"),
    SourceColumn(name="amount", type="double"),
    SourceColumn(name="note", type="string", comment="free text"),
]


def register_unpartitioned(
    lake: Lake, name: str = "orders", *, serde: str = PARQUET_SERDE, files: int = 2, **kw
) -> tuple[TableIdentifier, list[str]]:
    location = lake.data_dir / name
    paths = write_files(
        location, {f"part-{i}.parquet": orders_frame(i * 10, 3) for i in range(files)}
    )
    table = SourceTable(
        database="default",
        name=name,
        columns=ORDERS_COLUMNS,
        location=str(location),
        serde=serde,
        **kw,
    )
    return lake.metastore.create_table(table), paths


def register_partitioned(
    lake: Lake,
    name: str = "events",
    *,
    days: tuple[str, ...] = ("2024-01-01", "2024-01-02"),
    files_per_partition: int = 2,
    serde: str = PARQUET_SERDE,
) -> tuple[TableIdentifier, dict[str, list[str]]]:
    location = lake.data_dir / name
    table = SourceTable(
        database="default",
        name=name,
        columns=ORDERS_COLUMNS,
        partition_keys=[SourceColumn(name="dt", type="string")],
        location=str(location),
        serde=serde,
        parameters={"comment": "daily events"},
    )
    ident = lake.metastore.create_table(table)
    files: dict[str, list[str]] = {}
    for d in days:
        pdir = location / f"dt={d}"
        files[d] = write_files(
            pdir,
            {f"part-{i}.parquet": orders_frame(i * 100, 2) for i in range(files_per_partition)},
        )
        lake.metastore.add_partition(
            ident, SourcePartition(values={"dt": d}, location=str(pdir), serde=serde)
        )
    return ident, files


def all_files(root: Path | str) -> list[str]:
    out = []
    for dirpath, _dirnames, filenames in os.walk(root):
        for name in filenames:
            out.append(os.path.join(dirpath, name))
    return sorted(out)
