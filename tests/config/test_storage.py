from __future__ import annotations

from pathlib import Path  # noqa: TC003

import pytest  # noqa: TC002

from valuation_recon.config import storage


def test_data_dir_prefers_explicit_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("VALUATION_RECON_DATA_DIR", str(tmp_path / "custom-data"))

    assert storage.data_dir() == (tmp_path / "custom-data").resolve()


def test_data_dir_follows_xdg_data_home(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.delenv("VALUATION_RECON_DATA_DIR", raising=False)
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path))

    assert storage.data_dir() == (tmp_path / "valuation-recon").resolve()


def test_database_uri_env_override_skips_local_file(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    monkeypatch.setenv("DATABASE_URI", " postgresql+psycopg://recon@db/recon ")
    monkeypatch.setenv("VALUATION_RECON_DATA_DIR", str(tmp_path / "unused"))

    config = storage.get_database_config()

    assert config.uri == "postgresql+psycopg://recon@db/recon"
    assert config.path is None
    assert not (tmp_path / "unused").exists()


def test_default_database_is_a_local_sqlite_file(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    monkeypatch.delenv("DATABASE_URI", raising=False)
    monkeypatch.setenv("VALUATION_RECON_DATA_DIR", str(tmp_path / "data-dir"))

    config = storage.get_database_config()

    expected = (tmp_path / "data-dir" / storage.DATABASE_FILENAME).resolve()
    assert config.path == expected
    assert config.uri == f"sqlite+pysqlite:///{expected}"
    assert expected.parent.is_dir()
