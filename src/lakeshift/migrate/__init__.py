"""
lakeshift.migrate: In-place table migration engine.

## Components (leaves first)
- RollbackLedger: thread-safe undo log of relocations (new path → original path).
- CompatibilityChecker: primary key, target mode and partition-column checks.
- PartitionEnumerator: plans one relocation per source partition.
- FileRelocationTask: relocates one partition and builds its CommitMessage.
- MigrationCoordinator: resolves the target, fans tasks out, commits or rolls back.

## Example
```python
from lakeshift.core.identifiers import parse_identifier
from lakeshift.io import JsonMetastore, LocalFileIO, Warehouse
from lakeshift.migrate import MigrationCoordinator

result = MigrationCoordinator(  # doctest: +SKIP
    JsonMetastore("metastore"),
    Warehouse("warehouse"),
    LocalFileIO(),
    parse_identifier("default.orders"),
    parse_identifier("lake.orders"),
    {"file.format": "parquet"},
).migrate()
```
"""

from __future__ import annotations

from .compat import CompatibilityChecker
from .coordinator import MigrationCoordinator, MigrationResult, MigrationState
from .ledger import RollbackLedger, RollbackReport
from .partitions import PartitionEnumerator, PartitionPlan
from .task import FileRelocationTask

__all__ = [
    "CompatibilityChecker",
    "MigrationCoordinator",
    "MigrationResult",
    "MigrationState",
    "RollbackLedger",
    "RollbackReport",
    "PartitionEnumerator",
    "PartitionPlan",
    "FileRelocationTask",
]
