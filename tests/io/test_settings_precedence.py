from __future__ import annotations

from pathlib import Path

import pytest

from lakeshift.core.errors import ConfigError
from lakeshift.io.config import MigrateSettings, parse_options

_ENV_KEYS = [
    "LAKESHIFT_WAREHOUSE_DIR",
    "LAKESHIFT_METASTORE_DIR",
    "LAKESHIFT_MAX_WORKERS",
    "LAKESHIFT_FS_PROTOCOL",
    "LAKESHIFT_DROP_SOURCE_DATA",
]


def _clear_env(monkeypatch) -> None:
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


def test_settings_precedence_env_over_toml(tmp_path: Path, monkeypatch) -> None:
    (tmp_path / "lakeshift.toml").write_text(
        """
        [migrate]
        warehouse_dir = "wh_toml"
        max_workers = 2
        """.strip()
    )
    monkeypatch.chdir(tmp_path)
    _clear_env(monkeypatch)
    monkeypatch.setenv("LAKESHIFT_MAX_WORKERS", "8")

    s = MigrateSettings.load()

    assert s.warehouse_dir == "wh_toml"
    assert s.max_workers == 8


def test_settings_from_pyproject(tmp_path: Path, monkeypatch) -> None:
    (tmp_path / "pyproject.toml").write_text(
        """
        [tool.lakeshift.migrate]
        metastore_dir = "ms"
        drop_source_data = false
        """.strip()
    )
    monkeypatch.chdir(tmp_path)
    _clear_env(monkeypatch)

    s = MigrateSettings.load()

    assert s.metastore_dir == "ms"
    assert s.drop_source_data is False


def test_settings_defaults_and_invalid_values(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    _clear_env(monkeypatch)
    s = MigrateSettings.load()
    assert s.warehouse_dir == "warehouse"
    assert s.max_workers >= 1

    monkeypatch.setenv("LAKESHIFT_MAX_WORKERS", "0")
    with pytest.raises(ConfigError):
        MigrateSettings.load()
    monkeypatch.setenv("LAKESHIFT_MAX_WORKERS", "many")
    with pytest.raises(ConfigError):
        MigrateSettings.load()
    with pytest.raises(ConfigError):
        MigrateSettings(fs_protocol="s3")


def test_parse_options() -> None:
    assert parse_options(None) == {}
    assert parse_options("   ") == {}
    assert parse_options("a=1, b = two,") == {"a": "1", "b": "two"}
    with pytest.raises(ConfigError):
        parse_options("novalue")
