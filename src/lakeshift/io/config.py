"""
Configuration for lakeshift.

Defines MigrateSettings, a frozen dataclass carrying runtime configuration for migrations.
Defaults are sourced from lakeshift.core.constants (the single source of truth).

Precedence
- environment (LAKESHIFT_*) > TOML (./lakeshift.toml [migrate] or pyproject.toml
  [tool.lakeshift.migrate]) > defaults.

Notes
- Migration options forwarded into created target schemas are not settings; they are a
  separate dict[str, str] (see parse_options).
"""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any

from lakeshift.core.constants import MAX_WORKERS as CORE_MAX_WORKERS
from lakeshift.core.constants import METASTORE_DIR as CORE_METASTORE_DIR
from lakeshift.core.constants import WAREHOUSE_DIR as CORE_WAREHOUSE_DIR
from lakeshift.core.errors import ConfigError

__all__ = ["MigrateSettings", "parse_options"]

_SUPPORTED_PROTOCOLS = frozenset({"file"})


def _bool(v: Any) -> bool:
    if isinstance(v, bool):
        return v
    if isinstance(v, (int, float)):
        return bool(v)
    if isinstance(v, str):
        lo = v.strip().lower()
        if lo in {"1", "true", "t", "yes", "y", "on"}:
            return True
        if lo in {"0", "false", "f", "no", "n", "off"}:
            return False
    raise ConfigError(f"not a boolean: {v!r}")


@dataclass(frozen=True)
class MigrateSettings:
    """
    Runtime settings for lakeshift.

    Attributes:
        warehouse_dir (str): Root of the target warehouse.
        metastore_dir (str): Root of the source metastore definitions.
        max_workers (int): Relocation worker pool size (>= 1).
        fs_protocol (str): Filesystem protocol; only "file" is supported.
        drop_source_data (bool): Remove the source data location when the source table is
            dropped after a successful commit.

    Examples:
        >>> MigrateSettings(max_workers=1)  # doctest: +ELLIPSIS
        MigrateSettings(...)
    """

    warehouse_dir: str = CORE_WAREHOUSE_DIR
    metastore_dir: str = CORE_METASTORE_DIR
    max_workers: int = CORE_MAX_WORKERS
    fs_protocol: str = "file"
    drop_source_data: bool = True

    def __post_init__(self) -> None:
        if self.max_workers < 1:
            raise ConfigError("max_workers must be >= 1")
        if self.fs_protocol not in _SUPPORTED_PROTOCOLS:
            raise ConfigError(f"unsupported filesystem protocol {self.fs_protocol!r}")

    @classmethod
    def _apply_mapping(cls, base: MigrateSettings, cfg: dict[str, Any] | None) -> MigrateSettings:
        """Apply a loose config mapping onto MigrateSettings, returning a new instance."""
        if not isinstance(cfg, dict):
            return base

        s = base
        for key in ("warehouse_dir", "metastore_dir", "fs_protocol"):
            if key in cfg:
                if not isinstance(cfg[key], str):
                    raise ConfigError(f"{key} must be a string")
                s = replace(s, **{key: cfg[key]})

        if "max_workers" in cfg:
            try:
                workers = int(cfg["max_workers"])
            except (TypeError, ValueError) as exc:
                raise ConfigError(f"max_workers must be an integer: {cfg['max_workers']!r}") from exc
            s = replace(s, max_workers=workers)

        if "drop_source_data" in cfg:
            s = replace(s, drop_source_data=_bool(cfg["drop_source_data"]))

        return s

    @classmethod
    def from_env(
        cls, base: MigrateSettings | None = None, prefix: str = "LAKESHIFT_"
    ) -> MigrateSettings:
        """
        Build MigrateSettings from environment variables. Precedence is env > base > defaults.

        Recognized variables:
            - LAKESHIFT_WAREHOUSE_DIR
            - LAKESHIFT_METASTORE_DIR
            - LAKESHIFT_MAX_WORKERS
            - LAKESHIFT_FS_PROTOCOL
            - LAKESHIFT_DROP_SOURCE_DATA (1/0/true/false/yes/no/on/off)
        """
        s = base or cls()
        mapping: dict[str, Any] = {}
        for key in ("warehouse_dir", "metastore_dir", "max_workers", "fs_protocol", "drop_source_data"):
            v = os.getenv(prefix + key.upper())
            if v:
                mapping[key] = v
        return cls._apply_mapping(s, mapping)

    @classmethod
    def from_toml(cls, path: str | os.PathLike[str] | None = None) -> MigrateSettings:
        """
        Build MigrateSettings from a TOML file.

        Search order when `path` is None:
            1) ./lakeshift.toml (with either a [migrate] table or top-level keys)
            2) ./pyproject.toml under [tool.lakeshift.migrate]

        Returns defaults if no file is present.

        Raises:
            ConfigError: If a candidate file exists but is not valid TOML.
        """
        s = cls()
        cand: list[Path] = []
        if path is not None:
            cand.append(Path(path))
        else:
            cand.append(Path.cwd() / "lakeshift.toml")
            cand.append(Path.cwd() / "pyproject.toml")

        cfg: dict[str, Any] | None = None
        for p in cand:
            if not p.exists():
                continue
            try:
                with p.open("rb") as fh:
                    data = tomllib.load(fh)
            except tomllib.TOMLDecodeError as exc:
                raise ConfigError(f"invalid TOML in {p}: {exc}") from exc
            if p.name == "pyproject.toml":
                tool = data.get("tool", {})
                cfg = tool.get("lakeshift", {}).get("migrate") if isinstance(tool, dict) else None
            elif isinstance(data.get("migrate"), dict):
                cfg = data["migrate"]
            else:
                cfg = data
            if cfg:
                break

        return cls._apply_mapping(s, cfg)

    @classmethod
    def load(cls, path: str | os.PathLike[str] | None = None) -> MigrateSettings:
        """
        Load MigrateSettings applying precedence: environment > TOML > defaults.

        Args:
            path: Optional explicit TOML path. If None, search defaults.
        """
        s = cls.from_toml(path)
        return cls.from_env(base=s)


def parse_options(raw: str | None) -> dict[str, str]:
    """
    Parse "k=v,k2=v2" migration options.

    Blank input means no options. Whitespace around keys and values is trimmed.

    Raises:
        ConfigError: If an item has no "=" or an empty key.

    Examples:
        >>> parse_options("file.format=parquet, owner=etl")
        {'file.format': 'parquet', 'owner': 'etl'}
    """
    out: dict[str, str] = {}
    if raw is None or not raw.strip():
        return out
    for item in raw.split(","):
        if not item.strip():
            continue
        key, sep, value = item.partition("=")
        if not sep or not key.strip():
            raise ConfigError(f"invalid option {item.strip()!r}; expected key=value")
        out[key.strip()] = value.strip()
    return out
