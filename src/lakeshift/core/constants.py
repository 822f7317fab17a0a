"""
lakeshift defaults shared by the IO and migration layers.

Notes:
    - Zero-IO; stdlib only.
    - Settings (lakeshift.io.config.MigrateSettings) source their defaults from here.
"""

from __future__ import annotations

__all__ = [
    "MAX_WORKERS",
    "HIDDEN_PREFIXES",
    "BUCKET_DIR",
    "WAREHOUSE_DIR",
    "METASTORE_DIR",
]

# Size of the relocation worker pool when none is injected.
MAX_WORKERS: int = 4

# Source entries whose names start with these prefixes are hidden/temporary and never relocated.
HIDDEN_PREFIXES: tuple[str, ...] = ("_", ".")

# Unaware-bucket tables keep every partition's files under a single bucket directory.
BUCKET_DIR: str = "bucket-0"

WAREHOUSE_DIR: str = "warehouse"
METASTORE_DIR: str = "metastore"
