"""
Core package aggregator for lakeshift contracts (identifiers, types, schemas, partition keys, messages).

## Contracts (single source of truth)
- Identifiers: (database, name) pairs for source and target tables.
- Types: source column type → target SQL type translation.
- Schemas: Pydantic models for target schemas and source table definitions.
- Formats: the closed set of relocatable file formats.
- Partitions: Hive-style partition names and binary partition keys.
- Messages: data file descriptors, commit messages, relocation records.

## Notes
- Zero‑IO policy: stdlib + pydantic only; no file/network IO.
- Target partition-column order is authoritative for partition keys.

## Downstream usage
- lakeshift.io: persists schemas/snapshots built from these models.
- lakeshift.migrate: validates, encodes, relocates and commits using these contracts.

## Examples
```python
from lakeshift.core.schema import SchemaField
from lakeshift.core.partition import PartitionKeyEncoder
enc = PartitionKeyEncoder([SchemaField(name="dt", type="STRING")])
enc.encode({"dt": "2024-01-01"}).relative_path()  # 'dt=2024-01-01'
```
"""
