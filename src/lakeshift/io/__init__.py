"""
lakeshift.io: Concrete collaborators of the migration engine.

## Responsibilities
- Filesystem capability (FileIO / LocalFileIO) with a rename that never overwrites.
- Source metastore (SourceCatalog / JsonMetastore) holding table and partition definitions.
- Target warehouse (TargetCatalog / Warehouse / FileStoreTable) with atomic snapshot commits.
- Per-format statistics extraction (parquet, orc, avro) via pyarrow and Polars.
- Settings (MigrateSettings) with env > TOML > defaults precedence.

## Import DAG discipline
- Depends only on stdlib, polars/pyarrow, structlog, and lakeshift.core.*.
- MUST NOT import lakeshift.migrate or lakeshift.cli.

## Notes
- Relocation is a rename: source data and the warehouse must live on the same filesystem.
- Snapshot and definition documents are JSON written tmp → fsync → rename.
"""

from __future__ import annotations

from .config import MigrateSettings, parse_options
from .fs import FileIO, LocalFileIO
from .metastore import JsonMetastore, SourceCatalog
from .warehouse import FileStoreTable, TargetCatalog, Warehouse

__all__ = [
    "MigrateSettings",
    "parse_options",
    "FileIO",
    "LocalFileIO",
    "JsonMetastore",
    "SourceCatalog",
    "FileStoreTable",
    "TargetCatalog",
    "Warehouse",
]
