"""
Pre-flight compatibility checks between a source table and its migration target.

Checks run in order, before any filesystem mutation:
1. The source has no primary key (upsert / merge-on-read sources are unsupported).
2. The target accepts relocated files: append-only and unaware-bucket.
3. Partition columns match by (name, type) once both sides are sorted by name.
"""

from __future__ import annotations

from lakeshift.core.errors import ValidationError
from lakeshift.core.schema import SourceTable
from lakeshift.core.types import normalize_type, to_target_type
from lakeshift.io.warehouse import FileStoreTable

__all__ = ["CompatibilityChecker"]


class CompatibilityChecker:
    """Validates a (source, target) pair; raises ValidationError on the first violation."""

    def check(self, source: SourceTable, target: FileStoreTable) -> None:
        self.check_primary_key(source)
        self.check_target_mode(target)
        self.check_partition_columns(source, target)

    def check_primary_key(self, source: SourceTable) -> None:
        if source.has_primary_key:
            raise ValidationError(
                f"cannot migrate primary key table {source.database}.{source.name} "
                f"(primary keys {source.primary_keys!r})"
            )

    def check_target_mode(self, target: FileStoreTable) -> None:
        if not target.supports_direct_relocation:
            raise ValidationError(
                f"target table {target.identifier} must be an append-only unaware-bucket table "
                f"(kind={target.kind.value}, bucket_mode={target.bucket_mode.value})"
            )

    def check_partition_columns(self, source: SourceTable, target: FileStoreTable) -> None:
        """
        Compare partition columns order-independently.

        Raises:
            ValidationError: If counts, names or types differ, or a source type cannot be
                translated.
        """
        src = sorted(
            ((c.name, normalize_type(to_target_type(c.type))) for c in source.partition_keys),
            key=lambda p: p[0],
        )
        tgt = sorted(
            ((f.name, normalize_type(f.type)) for f in target.schema.partition_fields()),
            key=lambda p: p[0],
        )
        if src != tgt:
            raise ValidationError(
                f"source partition columns {src!r} do not match target partition columns {tgt!r}"
            )
