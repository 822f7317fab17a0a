"""
Translation of source (Hive-style) column types to target SQL type strings.

Responsibilities
- Map primitive source types to their target spelling (upper case, canonical spacing).
- Recurse through array<...>, map<...,...> and struct<name:type,...>.
- Normalize target type strings so comparisons ignore case and whitespace.

Notes:
    - Zero-IO; stdlib only.
    - Unknown or malformed types raise ValidationError; the migration never guesses.
"""

from __future__ import annotations

import re
from typing import Final

from .errors import ValidationError

__all__ = [
    "to_target_type",
    "normalize_type",
    "is_integral",
    "is_floating",
    "is_boolean",
]

_PRIMITIVES: Final[dict[str, str]] = {
    "tinyint": "TINYINT",
    "smallint": "SMALLINT",
    "int": "INT",
    "integer": "INT",
    "bigint": "BIGINT",
    "float": "FLOAT",
    "double": "DOUBLE",
    "double precision": "DOUBLE",
    "boolean": "BOOLEAN",
    "string": "STRING",
    "binary": "BYTES",
    "date": "DATE",
    "timestamp": "TIMESTAMP",
}

_PARAM_RE: Final[re.Pattern[str]] = re.compile(r"^(varchar|char|decimal)\s*(?:\((.*)\))?$")

_INTEGRAL: Final[frozenset[str]] = frozenset({"TINYINT", "SMALLINT", "INT", "BIGINT"})
_FLOATING: Final[frozenset[str]] = frozenset({"FLOAT", "DOUBLE"})


def _split_top_level(body: str) -> list[str]:
    """Split on commas that are not nested inside <...> or (...)."""
    out: list[str] = []
    depth = 0
    start = 0
    for i, ch in enumerate(body):
        if ch in "<(":
            depth += 1
        elif ch in ">)":
            depth -= 1
            if depth < 0:
                raise ValidationError(f"unbalanced type expression {body!r}")
        elif ch == "," and depth == 0:
            out.append(body[start:i].strip())
            start = i + 1
    if depth != 0:
        raise ValidationError(f"unbalanced type expression {body!r}")
    out.append(body[start:].strip())
    return out


def _int_param(raw: str, source: str) -> int:
    try:
        return int(raw.strip())
    except ValueError as exc:
        raise ValidationError(f"invalid type parameter in {source!r}") from exc


def to_target_type(source_type: str) -> str:
    """
    Translate a source column type into the target's SQL type string.

    Args:
        source_type (str): Type as declared in the source metastore (e.g., "decimal(10,2)").

    Returns:
        str: Target type string (e.g., "DECIMAL(10, 2)").

    Raises:
        ValidationError: If the type is unknown or malformed.

    Examples:
        >>> to_target_type("map<string,array<int>>")
        'MAP<STRING, ARRAY<INT>>'
        >>> to_target_type("struct<a:int,b:varchar(3)>")
        'ROW<a INT, b VARCHAR(3)>'
    """
    t = (source_type or "").strip()
    lo = t.lower()
    if lo in _PRIMITIVES:
        return _PRIMITIVES[lo]

    m = _PARAM_RE.match(lo)
    if m:
        kind, params = m.group(1), m.group(2)
        if kind == "decimal":
            if params is None:
                return "DECIMAL(10, 0)"
            parts = [p for p in params.split(",")]
            if len(parts) == 1:
                return f"DECIMAL({_int_param(parts[0], t)}, 0)"
            if len(parts) == 2:
                return f"DECIMAL({_int_param(parts[0], t)}, {_int_param(parts[1], t)})"
            raise ValidationError(f"invalid decimal type {source_type!r}")
        if params is None:
            raise ValidationError(f"{kind} requires a length: {source_type!r}")
        return f"{kind.upper()}({_int_param(params, t)})"

    if lo.startswith("array<") and lo.endswith(">"):
        return f"ARRAY<{to_target_type(t[6:-1])}>"

    if lo.startswith("map<") and lo.endswith(">"):
        parts = _split_top_level(t[4:-1])
        if len(parts) != 2:
            raise ValidationError(f"map requires key and value types: {source_type!r}")
        return f"MAP<{to_target_type(parts[0])}, {to_target_type(parts[1])}>"

    if lo.startswith("struct<") and lo.endswith(">"):
        fields = []
        for part in _split_top_level(t[7:-1]):
            name, sep, ftype = part.partition(":")
            if not sep or not name.strip():
                raise ValidationError(f"malformed struct field {part!r} in {source_type!r}")
            fields.append(f"{name.strip()} {to_target_type(ftype)}")
        return f"ROW<{', '.join(fields)}>"

    raise ValidationError(f"unsupported source column type {source_type!r}")


def normalize_type(target_type: str) -> str:
    """
    Canonical form of a target type string for equality checks.

    Upper-cases keywords and collapses whitespace around punctuation so that
    "decimal(10,2)" and "DECIMAL(10, 2)" compare equal.
    """
    s = re.sub(r"\s+", " ", (target_type or "").strip().upper())
    s = re.sub(r"\s*([(),<>])\s*", r"\1", s)
    return s


def _base(target_type: str) -> str:
    return normalize_type(target_type).split("(", 1)[0]


def is_integral(target_type: str) -> bool:
    return _base(target_type) in _INTEGRAL


def is_floating(target_type: str) -> bool:
    return _base(target_type) in _FLOATING


def is_boolean(target_type: str) -> bool:
    return _base(target_type) == "BOOLEAN"
