"""
lakeshift: In-place migration of metastore tables into warehouse tables.

Files are renamed into the target table's layout instead of copied; per-file statistics are
extracted for the target manifest and the whole migration is published as one snapshot.
A failure at any point moves every relocated file back and drops a target table the run
created.

Subpackages
- lakeshift.core: zero-IO contracts (identifiers, types, schemas, partition keys, messages).
- lakeshift.io: filesystem, metastore, warehouse, statistics extraction, settings.
- lakeshift.migrate: ledger, checks, partition planning, relocation tasks, coordinator.
"""

from __future__ import annotations

__version__ = "0.1.0"
