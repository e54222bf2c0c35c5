"""Where the reconciliation database lives.

``DATABASE_URI`` wins outright. Otherwise the ledger and snapshots go to a
SQLite file under the per-user data directory, which
``VALUATION_RECON_DATA_DIR`` can relocate.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Final

DATABASE_URI_ENV: Final[str] = "DATABASE_URI"
DATA_DIR_ENV: Final[str] = "VALUATION_RECON_DATA_DIR"
DATABASE_FILENAME: Final[str] = "valuation_recon.db"


@dataclass(frozen=True, slots=True)
class DatabaseConfig:
    uri: str
    # set when the database is the default local SQLite file
    path: Path | None = None


def data_dir() -> Path:
    override = os.getenv(DATA_DIR_ENV)
    if override and override.strip():
        return Path(override.strip()).expanduser().resolve()
    xdg_home = os.getenv("XDG_DATA_HOME")
    root = Path(xdg_home) if xdg_home else Path.home() / ".local" / "share"
    return (root / "valuation-recon").expanduser().resolve()


def get_database_config() -> DatabaseConfig:
    uri = os.getenv(DATABASE_URI_ENV)
    if uri and uri.strip():
        return DatabaseConfig(uri=uri.strip())

    directory = data_dir()
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / DATABASE_FILENAME
    return DatabaseConfig(uri=f"sqlite+pysqlite:///{path}", path=path)
