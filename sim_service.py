"""
Simulation clock.

Game time runs off a (real, game) anchor pair.  Every upkeep pass and every
action reads the clock once through game_now_s() so a single request sees a
single instant.  Pausing re-anchors; resetting starts game time over at the
current wall clock.
"""

import os
import threading
import time
from typing import Any, Dict

GAME_TIME_SCALE = float(os.environ.get("GAME_TIME_SCALE", "1"))

_SIMULATION_LOCK = threading.Lock()
_REAL_TIME_ANCHOR_S = time.time()
_GAME_TIME_ANCHOR_S = _REAL_TIME_ANCHOR_S
_SIMULATION_PAUSED = False


def _game_time_at(now_real_s: float) -> float:
    # Caller holds _SIMULATION_LOCK.
    if _SIMULATION_PAUSED:
        return _GAME_TIME_ANCHOR_S
    return _GAME_TIME_ANCHOR_S + (now_real_s - _REAL_TIME_ANCHOR_S) * GAME_TIME_SCALE


def game_now_s() -> float:
    now_real_s = time.time()
    with _SIMULATION_LOCK:
        return _game_time_at(now_real_s)


def simulation_paused() -> bool:
    with _SIMULATION_LOCK:
        return _SIMULATION_PAUSED


def set_simulation_paused(paused: bool) -> None:
    """Freeze or resume game time without losing elapsed progress."""
    global _REAL_TIME_ANCHOR_S, _GAME_TIME_ANCHOR_S, _SIMULATION_PAUSED

    now_real_s = time.time()
    with _SIMULATION_LOCK:
        _GAME_TIME_ANCHOR_S = _game_time_at(now_real_s)
        _REAL_TIME_ANCHOR_S = now_real_s
        _SIMULATION_PAUSED = bool(paused)


def reset_simulation_clock() -> None:
    """Re-anchor game time to the current wall clock and unpause."""
    global _REAL_TIME_ANCHOR_S, _GAME_TIME_ANCHOR_S, _SIMULATION_PAUSED

    now_real_s = time.time()
    with _SIMULATION_LOCK:
        _REAL_TIME_ANCHOR_S = now_real_s
        _GAME_TIME_ANCHOR_S = now_real_s
        _SIMULATION_PAUSED = False


def clock_payload() -> Dict[str, Any]:
    """Snapshot for /api/time and the admin clock routes."""
    now_real_s = time.time()
    with _SIMULATION_LOCK:
        return {
            "server_time": _game_time_at(now_real_s),
            "time_scale": 0.0 if _SIMULATION_PAUSED else GAME_TIME_SCALE,
            "paused": _SIMULATION_PAUSED,
        }


def export_simulation_state() -> Dict[str, Any]:
    with _SIMULATION_LOCK:
        return {
            "real_time_anchor_s": _REAL_TIME_ANCHOR_S,
            "game_time_anchor_s": _GAME_TIME_ANCHOR_S,
            "paused": _SIMULATION_PAUSED,
        }


def import_simulation_state(real_time_anchor_s: float, game_time_anchor_s: float, paused: bool) -> None:
    global _REAL_TIME_ANCHOR_S, _GAME_TIME_ANCHOR_S, _SIMULATION_PAUSED

    with _SIMULATION_LOCK:
        _REAL_TIME_ANCHOR_S = float(real_time_anchor_s)
        _GAME_TIME_ANCHOR_S = float(game_time_anchor_s)
        _SIMULATION_PAUSED = bool(paused)
