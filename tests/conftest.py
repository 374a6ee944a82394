"""
Shared pytest fixtures for Hashrack tests.

Provides:
  - In-memory SQLite DB with migrations applied
  - FastAPI TestClient on a throwaway DB file, background loops disabled
  - Catalog accessor
  - Fresh sessions on a fake clock, plus helpers for building rigs
"""

import os
import random
import sqlite3
import sys
import tempfile
from pathlib import Path
from typing import Any, Dict, Generator, Optional

import pytest

# ---------------------------------------------------------------------------
# Ensure the project root is on sys.path so we can import app modules
# ---------------------------------------------------------------------------
PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

# Tests drive ticks themselves.
os.environ["DISABLE_BACKGROUND_TASKS"] = "1"

# Use a writable temp directory for the test DB so the app startup succeeds.
_TEST_DB_DIR = tempfile.mkdtemp(prefix="hashrack_test_")
os.environ["DB_DIR"] = _TEST_DB_DIR

# Fixed game-time origin for engine tests.
T0 = 1_000_000.0
DAY = 86400.0


# ---------------------------------------------------------------------------
# Database fixtures
# ---------------------------------------------------------------------------

@pytest.fixture()
def db_conn() -> Generator[sqlite3.Connection, None, None]:
    """Yield an in-memory SQLite connection with all migrations applied."""
    from db import connect_memory_db
    from db_migrations import apply_migrations

    conn = connect_memory_db()

    # Apply the game migrations (same as startup)
    apply_migrations(conn)

    yield conn
    conn.close()


# ---------------------------------------------------------------------------
# FastAPI TestClient
# ---------------------------------------------------------------------------

@pytest.fixture()
def client(tmp_path, monkeypatch):
    """Return a Starlette TestClient wired to the FastAPI app.

    Each test gets its own DB file, so the session starts fresh with the
    starter kit and the default balances.
    """
    from fastapi.testclient import TestClient
    import db
    from main import app

    monkeypatch.setattr(db, "DB_PATH", tmp_path / "hashrack_test.db")
    with TestClient(app) as c:
        yield c


# ---------------------------------------------------------------------------
# Catalog helpers (no DB needed)
# ---------------------------------------------------------------------------

@pytest.fixture(scope="session")
def catalog():
    import catalog_service
    return catalog_service.load_catalog()


# ---------------------------------------------------------------------------
# Session fixtures
# ---------------------------------------------------------------------------

class FakeClock:
    """Callable game clock that only moves when told to."""

    def __init__(self, start_s: float = T0):
        self.now_s = float(start_s)

    def __call__(self) -> float:
        return self.now_s

    def advance(self, seconds: float) -> float:
        self.now_s += float(seconds)
        return self.now_s


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def rng() -> random.Random:
    return random.Random(1234)


@pytest.fixture()
def fresh_session():
    """A session created at T0 with empty wallets and no starter kit."""
    from session_state import default_session
    return default_session(T0, random.Random(7), fiat_balance=0.0, token_balance=0.0)


@pytest.fixture()
def funded_session(fresh_session):
    fresh_session.token_balance = 10_000.0
    fresh_session.fiat_balance = 1_000.0
    return fresh_session


# ---------------------------------------------------------------------------
# Test data helpers
# ---------------------------------------------------------------------------

class TestHelpers:
    """Stateless helper methods for common test-data operations."""

    @staticmethod
    def add_item(state, catalog_id: str, category: str, now_s: float = T0, parent_uid: Optional[str] = None):
        from session_state import InventoryItem
        return state.add_item(InventoryItem.create(catalog_id, category, now_s, parent_uid=parent_uid))

    @staticmethod
    def build_rig(
        state,
        now_s: float = T0,
        room_id: str = "room_basic",
        shelf_id: str = "shelf_basic",
        miner_id: Optional[str] = "node_basic",
    ) -> Dict[str, Any]:
        """Room > shelf > miner, all installed at now_s. Returns the three items."""
        room = TestHelpers.add_item(state, room_id, "room", now_s)
        shelf = TestHelpers.add_item(state, shelf_id, "shelf", now_s, parent_uid=room.uid)
        miner = None
        if miner_id:
            miner = TestHelpers.add_item(state, miner_id, "miner", now_s, parent_uid=shelf.uid)
        return {"room": room, "shelf": shelf, "miner": miner}

    @staticmethod
    def prepay_rent(room, until_s: float) -> None:
        """Keep a room covered up to until_s without touching its power-on time."""
        from constants import RENT_CYCLE_DURATION_S
        room.last_rent_settled_at = until_s - RENT_CYCLE_DURATION_S


@pytest.fixture()
def helpers() -> TestHelpers:
    return TestHelpers()


# ---------------------------------------------------------------------------
# Simulation clock helpers
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def _reset_sim_clock():
    """Ensure the simulation clock is reset between tests."""
    from sim_service import reset_simulation_clock
    reset_simulation_clock()
    yield
    reset_simulation_clock()
