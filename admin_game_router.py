"""
Admin game-management API routes.

Handles:
  /api/admin/simulation/toggle_pause
  /api/admin/reset_game
  /api/admin/tick
"""

import sqlite3
from typing import Any, Dict

from fastapi import APIRouter, Depends

from db import get_db
from game_services import GameSession, get_game_session, persist_simulation_clock_state
from sim_service import clock_payload, game_now_s, reset_simulation_clock, set_simulation_paused, simulation_paused

router = APIRouter(tags=["admin"])


@router.post("/api/admin/simulation/toggle_pause")
def api_admin_toggle_pause(conn: sqlite3.Connection = Depends(get_db)) -> Dict[str, Any]:
    set_simulation_paused(not simulation_paused())
    persist_simulation_clock_state(conn)
    conn.commit()
    return {"ok": True, **clock_payload()}


@router.post("/api/admin/reset_game")
def api_admin_reset_game(
    session: GameSession = Depends(get_game_session),
    conn: sqlite3.Connection = Depends(get_db),
) -> Dict[str, Any]:
    reset_simulation_clock()
    session.reset()
    session.save(conn)

    return {
        "ok": True,
        **clock_payload(),
        "inventory_count": len(session.state.inventory),
    }


@router.post("/api/admin/tick")
def api_admin_tick(session: GameSession = Depends(get_game_session)) -> Dict[str, Any]:
    """Run every upkeep step now instead of waiting for the background loops."""
    events = session.tick_all()
    return {
        "ok": True,
        "server_time": game_now_s(),
        "events": events,
    }
