"""
Table identifiers shared by the source metastore and the target warehouse.

Notes:
    - Identifiers are (database, name) pairs; both parts are normalized to lower case.
    - The string form is "database.name"; parse_identifier accepts exactly that shape.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Final

from .errors import ValidationError

_NAME_RE: Final[re.Pattern[str]] = re.compile(r"^[A-Za-z0-9_]+$")


@dataclass(frozen=True, slots=True)
class TableIdentifier:
    """
    A (namespace, name) pair addressing a table inside a catalog.

    Attributes:
        database (str): Namespace / database name.
        name (str): Table name.
    """

    database: str
    name: str

    def __post_init__(self) -> None:
        for part in (self.database, self.name):
            if not part or not _NAME_RE.match(part):
                raise ValidationError(
                    f"illegal identifier part {part!r}; allowed pattern is [A-Za-z0-9_]+"
                )
        object.__setattr__(self, "database", self.database.lower())
        object.__setattr__(self, "name", self.name.lower())

    @property
    def full_name(self) -> str:
        return f"{self.database}.{self.name}"

    def __str__(self) -> str:
        return self.full_name


def parse_identifier(value: str) -> TableIdentifier:
    """
    Parse "database.table" into a TableIdentifier.

    Raises:
        ValidationError: If the value is not exactly two dot-separated parts.

    Examples:
        >>> parse_identifier("default.Orders")
        TableIdentifier(database='default', name='orders')
    """
    parts = (value or "").strip().split(".")
    if len(parts) != 2:
        raise ValidationError(f"expected 'database.table', got {value!r}")
    return TableIdentifier(parts[0], parts[1])
