"""
Pydantic v2 models for table schemas on both sides of a migration.

Responsibilities
- SchemaField / TableSchema describe the target table (types are target SQL strings).
- SourceColumn / SourceTable / SourcePartition describe what the source metastore reports
  (types are source type strings, translated through lakeshift.core.types).
- Validators enforce structural rules: unique column names, partition and primary keys
  drawn from the declared columns.

Style
- Zero-IO (stdlib + pydantic only).
- Models are frozen; "mutation" goes through model_copy(update=...).
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .errors import ValidationError
from .types import normalize_type, to_target_type

__all__ = [
    "BUCKET_OPTION",
    "UNAWARE_BUCKET",
    "LEGACY_COMMENT_OPTION",
    "SchemaField",
    "TableSchema",
    "SourceColumn",
    "SourceTable",
    "SourcePartition",
    "schema_from_source",
]

# Option key selecting the bucketing layout of a target table; "-1" is unaware-bucket mode.
BUCKET_OPTION = "bucket"
UNAWARE_BUCKET = "-1"
# Source comments are carried under this option for compatibility with the source comment system.
LEGACY_COMMENT_OPTION = "hive.comment"


class SchemaField(BaseModel):
    """
    One column of a target table.

    Attributes:
        name (str): Column name.
        type (str): Target SQL type string (e.g., "BIGINT", "DECIMAL(10, 2)").
        comment (str | None): Optional column comment.
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1)
    type: str = Field(min_length=1)
    comment: str | None = None

    def same_type(self, other_type: str) -> bool:
        return normalize_type(self.type) == normalize_type(other_type)


class TableSchema(BaseModel):
    """
    Ordered column list plus partitioning and options of a target table.

    Attributes:
        columns (list[SchemaField]): Ordered columns.
        partition_keys (list[str]): Partition columns, in the target's authoritative order.
        primary_keys (list[str]): Primary key columns (empty for append-only tables).
        options (dict[str, str]): Table options, forwarded verbatim at creation.
        comment (str | None): Table comment.
        schema_id (int): Schema version id; tables created by lakeshift start at 0.
    """

    model_config = ConfigDict(frozen=True)

    columns: list[SchemaField]
    partition_keys: list[str] = Field(default_factory=list)
    primary_keys: list[str] = Field(default_factory=list)
    options: dict[str, str] = Field(default_factory=dict)
    comment: str | None = None
    schema_id: int = 0

    @field_validator("options", mode="before")
    @classmethod
    def _stringify_options(cls, v: Any) -> Any:
        if isinstance(v, dict):
            return {str(k): str(val) for k, val in v.items()}
        return v

    @model_validator(mode="after")
    def _keys_reference_columns(self) -> TableSchema:
        names = [f.name for f in self.columns]
        if len(set(names)) != len(names):
            raise ValueError(f"duplicate column names in schema: {names!r}")
        for key in self.partition_keys:
            if key not in names:
                raise ValueError(f"partition key {key!r} is not a column")
        for key in self.primary_keys:
            if key not in names:
                raise ValueError(f"primary key {key!r} is not a column")
        return self

    def column(self, name: str) -> SchemaField:
        for f in self.columns:
            if f.name == name:
                return f
        raise KeyError(name)

    def partition_fields(self) -> list[SchemaField]:
        """Partition columns projected from columns, in partition_keys order."""
        return [self.column(k) for k in self.partition_keys]

    def column_names(self) -> list[str]:
        return [f.name for f in self.columns]


class SourceColumn(BaseModel):
    """A column as declared in the source metastore (source type spelling)."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1)
    type: str = Field(min_length=1)
    comment: str | None = None


class SourceTable(BaseModel):
    """
    Source table definition as reported by the metastore.

    Attributes:
        database (str): Source database.
        name (str): Source table name.
        columns (list[SourceColumn]): Data columns (excluding partition columns).
        partition_keys (list[SourceColumn]): Partition columns in source order.
        location (str): Table data directory (used directly for unpartitioned tables).
        serde (str): Serde / storage description the format is resolved from.
        parameters (dict[str, str]): Table properties (may carry "comment").
        primary_keys (list[str]): Declared primary key columns.
    """

    model_config = ConfigDict(frozen=True)

    database: str
    name: str
    columns: list[SourceColumn]
    partition_keys: list[SourceColumn] = Field(default_factory=list)
    location: str
    serde: str = ""
    parameters: dict[str, str] = Field(default_factory=dict)
    primary_keys: list[str] = Field(default_factory=list)

    @property
    def has_primary_key(self) -> bool:
        return bool(self.primary_keys)

    @property
    def comment(self) -> str | None:
        return self.parameters.get("comment")


class SourcePartition(BaseModel):
    """One partition of a source table: its column values, data directory and serde."""

    model_config = ConfigDict(frozen=True)

    values: dict[str, str]
    location: str
    serde: str = ""


def schema_from_source(source: SourceTable, options: dict[str, str] | None = None) -> TableSchema:
    """
    Derive the target schema for a source table.

    Args:
        source (SourceTable): Source definition.
        options (dict[str, str] | None): User options forwarded verbatim into the schema.

    Returns:
        TableSchema: Columns (data columns then partition columns) with translated types,
        partition keys in source order, the unaware-bucket option forced, and the source
        comment copied both as table comment and under LEGACY_COMMENT_OPTION.

    Raises:
        ValidationError: If a column type cannot be translated.
    """
    opts = {str(k): str(v) for k, v in (options or {}).items()}
    opts[BUCKET_OPTION] = UNAWARE_BUCKET
    comment = source.comment
    if comment is not None:
        opts[LEGACY_COMMENT_OPTION] = comment

    fields = [
        SchemaField(name=c.name, type=to_target_type(c.type), comment=c.comment)
        for c in [*source.columns, *source.partition_keys]
    ]
    try:
        return TableSchema(
            columns=fields,
            partition_keys=[c.name for c in source.partition_keys],
            options=opts,
            comment=comment,
        )
    except ValueError as exc:
        raise ValidationError(f"cannot derive target schema for {source.database}.{source.name}: {exc}") from exc
