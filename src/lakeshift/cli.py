from __future__ import annotations

import argparse
import json
import sys
from dataclasses import replace

from pydantic import ValidationError as PydanticValidationError

from lakeshift.core.errors import LakeshiftError
from lakeshift.core.identifiers import parse_identifier
from lakeshift.io.config import MigrateSettings, parse_options
from lakeshift.io.fs import LocalFileIO
from lakeshift.io.metastore import JsonMetastore
from lakeshift.io.warehouse import Warehouse
from lakeshift.logging_config import setup_logging
from lakeshift.migrate.coordinator import MigrationCoordinator


def _nullable(arg: str | None) -> str | None:
    """Blank command-line strings count as not given."""
    return None if arg is None or not arg.strip() else arg


def _cmd_migrate_table(argv: list[str]) -> int:
    p = argparse.ArgumentParser(
        prog="migrate-table",
        description="Move a metastore table's files into a warehouse table without copying them.",
    )
    p.add_argument("--source", type=str, required=True, help="Source table as database.table.")
    p.add_argument("--target", type=str, required=True, help="Target table as database.table.")
    p.add_argument(
        "--options", type=str, default=None, help='Target table options, e.g. "k=v,k2=v2".'
    )
    p.add_argument("--warehouse", type=str, default=None, help="Warehouse root directory.")
    p.add_argument("--metastore", type=str, default=None, help="Metastore root directory.")
    p.add_argument("--max-workers", type=int, default=None, help="Relocation worker pool size.")
    p.add_argument("--config", type=str, default=None, help="Explicit TOML settings file.")
    p.add_argument("--log-level", type=str, default=None, help="Log level (default INFO).")
    args = p.parse_args(argv)

    setup_logging(args.log_level)
    try:
        settings = MigrateSettings.load(_nullable(args.config))
        overrides = {
            "warehouse_dir": _nullable(args.warehouse),
            "metastore_dir": _nullable(args.metastore),
            "max_workers": args.max_workers,
        }
        settings = replace(settings, **{k: v for k, v in overrides.items() if v is not None})
        coordinator = MigrationCoordinator(
            JsonMetastore(settings.metastore_dir),
            Warehouse(settings.warehouse_dir),
            LocalFileIO(),
            parse_identifier(args.source),
            parse_identifier(args.target),
            parse_options(_nullable(args.options)),
            max_workers=settings.max_workers,
            drop_source_data=settings.drop_source_data,
        )
        result = coordinator.migrate()
    except (LakeshiftError, PydanticValidationError, json.JSONDecodeError, OSError) as exc:
        print(f"[ERROR] {type(exc).__name__}: {exc}", file=sys.stderr)
        return 1

    if result.source_drop_error:
        print(f"[WARN] Source table was not dropped: {result.source_drop_error}")
    print("Success")
    return 0


def build_argparser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="lakeshift", description="In-place table migration CLI.")
    sub = p.add_subparsers(dest="cmd", required=True)
    sub.add_parser("migrate-table")
    return p


def main(argv: list[str] | None = None) -> None:
    argv = list(sys.argv[1:] if argv is None else argv)
    if not argv:
        build_argparser().print_help()
        return
    cmd, rest = argv[0], argv[1:]
    if cmd == "migrate-table":
        code = _cmd_migrate_table(rest)
    else:
        print(f"Unknown command: {cmd}", file=sys.stderr)
        code = 2
    raise SystemExit(code)


if __name__ == "__main__":
    main()
