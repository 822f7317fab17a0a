"""
Partition names, partition values and binary partition keys.

Overview
- Source partitions are named Hive-style: "dt=2024-01-01/region=eu" with path-escaped values.
- Target partitions are addressed by a binary PartitionKey whose field order is the target
  schema's partition-column order (authoritative; source order is irrelevant once names match).
- PartitionKeyEncoder derives one encoder per partition column once, from the target types.

Binary layout of PartitionKey.data
- 4-byte big-endian arity, then per field: 1 null-marker byte (1 = null) followed, when not null,
  by the payload: integral → 8-byte signed big-endian; floating → IEEE-754 double;
  boolean → 1 byte; anything else → 4-byte length + UTF-8 bytes.

Notes:
    - Zero-IO; stdlib only.
    - Encoding is a pure function of (value mapping, target partition-column order).
"""

from __future__ import annotations

import struct
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from typing import Final

from .errors import ValidationError
from .schema import SchemaField
from .types import is_boolean, is_floating, is_integral

__all__ = [
    "DEFAULT_PARTITION_NAME",
    "escape_path_name",
    "unescape_path_name",
    "make_partition_name",
    "parse_partition_name",
    "PartitionKey",
    "PartitionKeyEncoder",
    "EMPTY_PARTITION_KEY",
]

DEFAULT_PARTITION_NAME: Final[str] = "__HIVE_DEFAULT_PARTITION__"

# Characters escaped as %XX inside partition path segments.
_ESCAPED: Final[frozenset[str]] = frozenset(
    '"#%\'*/:=?\\\x7f{[]^' + "".join(chr(c) for c in range(0x01, 0x20))
)


def escape_path_name(value: str) -> str:
    """Escape a partition value for use as a path segment ("a/b" → "a%2Fb")."""
    return "".join(f"%{ord(ch):02X}" if ch in _ESCAPED else ch for ch in value)


def unescape_path_name(value: str) -> str:
    """Inverse of escape_path_name; malformed escapes are kept verbatim."""
    out: list[str] = []
    i = 0
    while i < len(value):
        ch = value[i]
        if ch == "%" and i + 2 < len(value):
            try:
                out.append(chr(int(value[i + 1 : i + 3], 16)))
                i += 3
                continue
            except ValueError:
                pass
        out.append(ch)
        i += 1
    return "".join(out)


def make_partition_name(pairs: Iterable[tuple[str, str | None]]) -> str:
    """
    Build "k=v/k2=v2" from ordered (column, value) pairs.

    Null values render as DEFAULT_PARTITION_NAME.
    """
    segs = []
    for name, value in pairs:
        shown = DEFAULT_PARTITION_NAME if value is None else escape_path_name(value)
        segs.append(f"{escape_path_name(name)}={shown}")
    return "/".join(segs)


def parse_partition_name(name: str) -> dict[str, str]:
    """
    Parse a Hive-style partition name into an ordered column → value mapping.

    Raises:
        ValidationError: If a segment lacks "=".

    Examples:
        >>> parse_partition_name("dt=2024-01-01/path=a%2Fb")
        {'dt': '2024-01-01', 'path': 'a/b'}
    """
    out: dict[str, str] = {}
    if not name:
        return out
    for seg in name.split("/"):
        key, sep, value = seg.partition("=")
        if not sep or not key:
            raise ValidationError(f"malformed partition name segment {seg!r} in {name!r}")
        out[unescape_path_name(key)] = unescape_path_name(value)
    return out


@dataclass(frozen=True, slots=True)
class PartitionKey:
    """
    Binary partition key plus the ordered values it was built from.

    Attributes:
        columns (tuple[tuple[str, str | None], ...]): (column, value) pairs in target order.
        data (bytes): Binary encoding (see module docstring).
    """

    columns: tuple[tuple[str, str | None], ...]
    data: bytes

    @property
    def arity(self) -> int:
        return len(self.columns)

    def to_bytes(self) -> bytes:
        return self.data

    def hex(self) -> str:
        return self.data.hex()

    def spec(self) -> dict[str, str | None]:
        return dict(self.columns)

    def relative_path(self) -> str:
        """Directory path of the partition relative to the table root ("" when unpartitioned)."""
        return make_partition_name(self.columns)


EMPTY_PARTITION_KEY = PartitionKey(columns=(), data=struct.pack(">i", 0))

# Each encoder returns (payload, canonical value); paths are rendered from the canonical value
# so equal keys always address the same directory.
_Encoder = Callable[[str], tuple[bytes, str]]


def _encode_integral(raw: str) -> tuple[bytes, str]:
    value = int(raw)
    return struct.pack(">q", value), str(value)


def _encode_floating(raw: str) -> tuple[bytes, str]:
    value = float(raw)
    return struct.pack(">d", value), repr(value)


def _encode_boolean(raw: str) -> tuple[bytes, str]:
    lo = raw.strip().lower()
    if lo not in ("true", "false"):
        raise ValueError(f"not a boolean: {raw!r}")
    return struct.pack(">?", lo == "true"), lo


def _encode_string(raw: str) -> tuple[bytes, str]:
    b = raw.encode("utf-8")
    return struct.pack(">i", len(b)) + b, raw


def _encoder_for(target_type: str) -> _Encoder:
    if is_integral(target_type):
        return _encode_integral
    if is_floating(target_type):
        return _encode_floating
    if is_boolean(target_type):
        return _encode_boolean
    return _encode_string


class PartitionKeyEncoder:
    """
    Encodes partition value mappings into PartitionKeys for one target schema.

    Args:
        partition_fields (list[SchemaField]): Target partition columns, in the target's order.
    """

    def __init__(self, partition_fields: list[SchemaField]) -> None:
        self._names = [f.name for f in partition_fields]
        self._encoders = [(f.name, f.type, _encoder_for(f.type)) for f in partition_fields]

    @property
    def column_names(self) -> list[str]:
        return list(self._names)

    def encode(self, values: Mapping[str, str | None]) -> PartitionKey:
        """
        Encode a column → value mapping.

        Raises:
            ValidationError: If the mapping's columns differ from the target partition
                columns, or a value does not parse as its column type.
        """
        if set(values) != set(self._names):
            raise ValidationError(
                f"partition columns {sorted(values)!r} do not match target partition "
                f"columns {sorted(self._names)!r}"
            )
        if not self._names:
            return EMPTY_PARTITION_KEY

        chunks = [struct.pack(">i", len(self._names))]
        pairs: list[tuple[str, str | None]] = []
        for name, target_type, enc in self._encoders:
            raw = values[name]
            if raw is None or raw == DEFAULT_PARTITION_NAME:
                chunks.append(b"\x01")
                pairs.append((name, None))
                continue
            try:
                payload, canonical = enc(raw)
            except (ValueError, struct.error) as exc:
                raise ValidationError(
                    f"partition value {raw!r} is not a valid {target_type} for column {name!r}"
                ) from exc
            chunks.append(b"\x00" + payload)
            pairs.append((name, canonical))
        return PartitionKey(columns=tuple(pairs), data=b"".join(chunks))
