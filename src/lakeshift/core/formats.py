"""
Closed set of data file formats a migration can relocate.

A partition's format is resolved from its serde / storage description by substring match
against the format markers, checked in declaration order (avro, parquet, orc).
"""

from __future__ import annotations

from enum import Enum

from .errors import UnsupportedFormatError

__all__ = ["FileFormat", "parse_format"]


class FileFormat(Enum):
    """Known data file formats (value doubles as the marker searched for)."""

    AVRO = "avro"
    PARQUET = "parquet"
    ORC = "orc"


def parse_format(serde: str) -> FileFormat:
    """
    Resolve a file format from a serde description.

    Args:
        serde (str): Serde or storage descriptor text, e.g.
            "org.apache.hadoop.hive.ql.io.parquet.serde.ParquetHiveSerDe".

    Returns:
        FileFormat: First format whose marker occurs in the description.

    Raises:
        UnsupportedFormatError: If no marker matches.

    Examples:
        >>> parse_format("org.apache.hadoop.hive.ql.io.orc.OrcSerde")
        <FileFormat.ORC: 'orc'>
    """
    text = (serde or "").lower()
    for fmt in FileFormat:
        if fmt.value in text:
            return fmt
    raise UnsupportedFormatError(f"unknown partition format: {serde!r}")
