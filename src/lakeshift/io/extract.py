"""
Per-format row count and column statistics extraction.

Overview
- Parquet: footer metadata via pyarrow.parquet; row-group statistics are aggregated
  (min of mins, max of maxes, sum of null counts). No data pages are read.
- ORC: pyarrow.orc reads the file; statistics are computed with Polars.
- Avro: polars.read_avro; statistics are computed with Polars.

Notes
- The format tag is checked against the closed FileFormat set before any file access.
- Failures while reading a file surface as ExtractionError with the path in the message.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import polars as pl
import pyarrow.orc as orc
import pyarrow.parquet as pq

from lakeshift.core.errors import ExtractionError, UnsupportedFormatError
from lakeshift.core.formats import FileFormat
from lakeshift.core.messages import ColumnStats

__all__ = ["FileStats", "extract_file_stats", "extractor_for"]


@dataclass(frozen=True, slots=True)
class FileStats:
    """Row count and per-column statistics of one data file."""

    row_count: int
    column_stats: dict[str, ColumnStats] = field(default_factory=dict)


def _merge_min(a: Any, b: Any) -> Any:
    if a is None:
        return b
    if b is None:
        return a
    return b if b < a else a


def _merge_max(a: Any, b: Any) -> Any:
    if a is None:
        return b
    if b is None:
        return a
    return b if b > a else a


def _parquet_stats(path: str) -> FileStats:
    meta = pq.ParquetFile(path).metadata
    mins: dict[str, Any] = {}
    maxs: dict[str, Any] = {}
    nulls: dict[str, int | None] = {}
    complete: dict[str, bool] = {}
    for rg in range(meta.num_row_groups):
        group = meta.row_group(rg)
        for ci in range(group.num_columns):
            chunk = group.column(ci)
            name = chunk.path_in_schema
            stats = chunk.statistics
            complete.setdefault(name, True)
            nulls.setdefault(name, 0)
            if stats is None:
                complete[name] = False
                nulls[name] = None
                continue
            if stats.has_null_count and nulls[name] is not None:
                nulls[name] = nulls[name] + stats.null_count
            elif not stats.has_null_count:
                nulls[name] = None
            if stats.has_min_max:
                mins[name] = _merge_min(mins.get(name), stats.min)
                maxs[name] = _merge_max(maxs.get(name), stats.max)
            elif stats.num_values:
                # values present but bounds missing: bounds are unknown
                complete[name] = False
    columns = {
        name: ColumnStats(
            min=mins.get(name) if complete[name] else None,
            max=maxs.get(name) if complete[name] else None,
            null_count=nulls[name],
        )
        for name in complete
    }
    return FileStats(row_count=int(meta.num_rows), column_stats=columns)


def _frame_stats(df: pl.DataFrame) -> FileStats:
    columns: dict[str, ColumnStats] = {}
    for name in df.columns:
        s = df.get_column(name)
        lo: Any = None
        hi: Any = None
        if not isinstance(s.dtype, (pl.List, pl.Array, pl.Struct, pl.Object)):
            lo = s.min()
            hi = s.max()
        columns[name] = ColumnStats(min=lo, max=hi, null_count=int(s.null_count()))
    return FileStats(row_count=df.height, column_stats=columns)


def _orc_stats(path: str) -> FileStats:
    table = orc.ORCFile(path).read()
    return _frame_stats(pl.from_arrow(table))  # type: ignore[arg-type]


def _avro_stats(path: str) -> FileStats:
    return _frame_stats(pl.read_avro(path))


_EXTRACTORS: dict[FileFormat, Callable[[str], FileStats]] = {
    FileFormat.PARQUET: _parquet_stats,
    FileFormat.ORC: _orc_stats,
    FileFormat.AVRO: _avro_stats,
}


def extractor_for(fmt: FileFormat | str) -> Callable[[str], FileStats]:
    """
    Resolve the extractor for a format tag.

    Raises:
        UnsupportedFormatError: If the tag is not a known FileFormat.
    """
    try:
        key = fmt if isinstance(fmt, FileFormat) else FileFormat(str(fmt).lower())
    except ValueError as exc:
        raise UnsupportedFormatError(f"no statistics extractor for format {fmt!r}") from exc
    return _EXTRACTORS[key]


def extract_file_stats(path: str, fmt: FileFormat | str) -> FileStats:
    """
    Extract row count and column statistics from a data file.

    Args:
        path (str): Data file path.
        fmt (FileFormat | str): Format tag.

    Returns:
        FileStats: Row count and per-column statistics.

    Raises:
        UnsupportedFormatError: Unknown format tag (raised before the file is opened).
        ExtractionError: The file could not be read as the given format.
    """
    extractor = extractor_for(fmt)
    try:
        return extractor(path)
    except Exception as exc:
        raise ExtractionError(f"failed to extract statistics from {path}: {exc}") from exc
