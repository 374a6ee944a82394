"""
SQLite connection helpers.

The live game state sits in memory; the DB only holds session snapshots and
the simulation clock anchors.  Routes that touch it take a short-lived
connection through get_db().
"""

import os
import sqlite3
from pathlib import Path
from typing import Generator

APP_DIR = Path(__file__).resolve().parent
DB_DIR = Path(os.environ.get("DB_DIR", str(APP_DIR / "data")))
DB_PATH = Path(os.environ.get("DB_PATH", str(DB_DIR / "hashrack.db")))

_BUSY_TIMEOUT_S = 30


def _open(target: str) -> sqlite3.Connection:
    # Snapshots are written from the persist loop and from request threads.
    conn = sqlite3.connect(target, timeout=_BUSY_TIMEOUT_S, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys=ON;")
    return conn


def connect_db() -> sqlite3.Connection:
    DB_PATH.parent.mkdir(parents=True, exist_ok=True)
    conn = _open(str(DB_PATH))
    conn.execute("PRAGMA journal_mode=WAL;")
    conn.execute(f"PRAGMA busy_timeout={_BUSY_TIMEOUT_S * 1000};")
    return conn


def connect_memory_db() -> sqlite3.Connection:
    """Throwaway in-process database, used by tests and tooling."""
    return _open(":memory:")


def get_db() -> Generator[sqlite3.Connection, None, None]:
    """FastAPI dependency that yields a DB connection and closes it after the request."""
    conn = connect_db()
    try:
        yield conn
    finally:
        conn.close()
