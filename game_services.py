"""
Game services — the single-writer holder around one SessionState.

Every mutation (user action or periodic tick) runs under one lock, so no
caller ever sees a half-applied update.  Actions settle upkeep first
(settle-on-access), so the session is current even when the background
interval tasks are disabled.

Also owns the persistence boundary (snapshot + game clock in sqlite) and
the notification sink drained by the presentation layer.
"""

import json
import logging
import random
import sqlite3
import threading
import time
from collections import deque
from typing import Any, Callable, Deque, Dict, List, Optional

from fastapi import Request

import catalog_service
import economy_service
import inventory_service
import production_service
import upkeep_service
from constants import AUTO_PAY_TIERS, MIN_POOL_COLLECT, REFERRAL_LEVELS, TOKEN_PRICE_FIAT, TOKEN_SYMBOL
from session_state import SessionState, restore_session, session_to_snapshot
from sim_service import export_simulation_state, game_now_s, import_simulation_state

DEFAULT_SESSION_ID = "default"
MAX_NOTIFICATIONS = 50

SIM_CLOCK_META_REAL_ANCHOR = "sim_real_time_anchor_s"
SIM_CLOCK_META_GAME_ANCHOR = "sim_game_time_anchor_s"
SIM_CLOCK_META_PAUSED = "sim_paused"

Action = Callable[[SessionState, float], Dict[str, Any]]


class GameSession:
    def __init__(
        self,
        state: SessionState,
        clock: Callable[[], float] = game_now_s,
        rng: Optional[random.Random] = None,
        session_id: str = DEFAULT_SESSION_ID,
    ):
        self.state = state
        self.clock = clock
        self.rng = rng or random.Random()
        self.session_id = session_id
        self._lock = threading.RLock()
        self._notifications: Deque[Dict[str, Any]] = deque(maxlen=MAX_NOTIFICATIONS)
        self._next_notification_id = 1

    # ── Notifications ─────────────────────────────────────────────────────

    def emit(self, message: str, severity: str = "info", kind: str = "notice") -> None:
        with self._lock:
            self._notifications.append(
                {
                    "id": self._next_notification_id,
                    "kind": kind,
                    "message": message,
                    "severity": severity,
                    "at": self.clock(),
                }
            )
            self._next_notification_id += 1

    def drain_notifications(self) -> List[Dict[str, Any]]:
        with self._lock:
            items = list(self._notifications)
            self._notifications.clear()
            return items

    def _emit_events(self, events: List[Dict[str, Any]]) -> None:
        for event in events:
            self.emit(event["message"], event["severity"], event["kind"])

    # ── Ticks ─────────────────────────────────────────────────────────────

    def tick_decay(self) -> List[Dict[str, Any]]:
        with self._lock:
            events = upkeep_service.decay_health(self.state, self.clock())
            self._emit_events(events)
            return events

    def tick_rent(self) -> List[Dict[str, Any]]:
        with self._lock:
            now_s = self.clock()
            events = upkeep_service.settle_rent(self.state, now_s)
            upkeep_service.accrue_pool(self.state, now_s)
            self._emit_events(events)
            return events

    def tick_all(self) -> List[Dict[str, Any]]:
        with self._lock:
            events = upkeep_service.run_upkeep(self.state, self.clock())
            self._emit_events(events)
            return events

    # ── Actions ───────────────────────────────────────────────────────────

    def run(self, action: Action) -> Dict[str, Any]:
        """Settle upkeep, then apply one action atomically."""
        with self._lock:
            now_s = self.clock()
            self._emit_events(upkeep_service.run_upkeep(self.state, now_s))
            return action(self.state, now_s)

    def reset(self) -> None:
        with self._lock:
            self.state = restore_session(None, self.clock(), self.rng)
            self._notifications.clear()

    # ── Persistence ───────────────────────────────────────────────────────

    def save(self, conn: sqlite3.Connection) -> None:
        with self._lock:
            payload = json.dumps(session_to_snapshot(self.state), sort_keys=True)
            game_time_s = self.clock()
        save_snapshot(conn, self.session_id, payload, game_time_s)
        persist_simulation_clock_state(conn)
        conn.commit()

    @classmethod
    def load(
        cls,
        conn: sqlite3.Connection,
        clock: Callable[[], float] = game_now_s,
        rng: Optional[random.Random] = None,
        session_id: str = DEFAULT_SESSION_ID,
    ) -> "GameSession":
        rng = rng or random.Random()
        blob = load_snapshot(conn, session_id)
        state = restore_session(blob, clock(), rng)
        return cls(state, clock=clock, rng=rng, session_id=session_id)


# ── Snapshot store ────────────────────────────────────────────────────────


def save_snapshot(conn: sqlite3.Connection, session_id: str, payload_json: str, game_time_s: float) -> None:
    conn.execute(
        """
        INSERT INTO session_snapshots (session_id,payload_json,saved_at,game_time_s)
        VALUES (?,?,?,?)
        ON CONFLICT(session_id) DO UPDATE SET
          payload_json=excluded.payload_json,
          saved_at=excluded.saved_at,
          game_time_s=excluded.game_time_s
        """,
        (session_id, payload_json, time.time(), game_time_s),
    )


def load_snapshot(conn: sqlite3.Connection, session_id: str) -> Optional[str]:
    row = conn.execute(
        "SELECT payload_json FROM session_snapshots WHERE session_id=?",
        (session_id,),
    ).fetchone()
    return str(row["payload_json"]) if row else None


def persist_simulation_clock_state(conn: sqlite3.Connection) -> None:
    state = export_simulation_state()
    kv_rows = [
        (SIM_CLOCK_META_REAL_ANCHOR, str(float(state["real_time_anchor_s"]))),
        (SIM_CLOCK_META_GAME_ANCHOR, str(float(state["game_time_anchor_s"]))),
        (SIM_CLOCK_META_PAUSED, "1" if bool(state["paused"]) else "0"),
    ]
    conn.executemany(
        "INSERT OR REPLACE INTO game_meta (key,value) VALUES (?,?)",
        kv_rows,
    )


def load_simulation_clock_state(conn: sqlite3.Connection) -> None:
    rows = conn.execute(
        "SELECT key,value FROM game_meta WHERE key IN (?,?,?)",
        (SIM_CLOCK_META_REAL_ANCHOR, SIM_CLOCK_META_GAME_ANCHOR, SIM_CLOCK_META_PAUSED),
    ).fetchall()
    by_key = {str(r["key"]): str(r["value"]) for r in rows}

    real_raw = by_key.get(SIM_CLOCK_META_REAL_ANCHOR)
    game_raw = by_key.get(SIM_CLOCK_META_GAME_ANCHOR)
    paused_raw = by_key.get(SIM_CLOCK_META_PAUSED)

    if real_raw is None or game_raw is None or paused_raw is None:
        persist_simulation_clock_state(conn)
        return

    try:
        real_anchor_s = float(real_raw)
        game_anchor_s = float(game_raw)
        paused = str(paused_raw).strip().lower() in {"1", "true", "yes", "on"}
    except (TypeError, ValueError):
        logging.warning("Ignoring unreadable simulation clock state")
        persist_simulation_clock_state(conn)
        return

    import_simulation_state(real_anchor_s, game_anchor_s, paused)


# ── Payloads ──────────────────────────────────────────────────────────────


def _item_payload(state: SessionState, item, now_s: float) -> Dict[str, Any]:
    entry = catalog_service.get_catalog_entry(item.category, item.catalog_id)
    payload = item.to_dict()
    payload["name"] = entry.name if entry else item.catalog_id
    payload["tier"] = entry.tier if entry else ""
    if item.category in ("shelf", "room"):
        payload["slot_capacity"] = entry.slot_capacity if entry else 0
        payload["children"] = [c.uid for c in inventory_service.children_of(state.inventory, item.uid)]
    if item.category == "room":
        payload["rent_cost"] = entry.rent_cost if entry else 0.0
        payload["rent_time_left_s"] = max(0.0, inventory_service.rent_time_left_s(item, now_s))
        payload["auto_pay_available"] = bool(entry and entry.tier in AUTO_PAY_TIERS)
    if item.category == "miner":
        payload["active"] = inventory_service.is_active(state.inventory, item, now_s)
        payload["health"] = inventory_service.miner_health(item)
    return payload


def build_inventory_payload(state: SessionState, now_s: float) -> Dict[str, Any]:
    return {
        "items": [_item_payload(state, item, now_s) for item in state.inventory.values()],
        "stored_uids": [i.uid for i in inventory_service.stored_items(state.inventory)],
    }


def build_state_payload(state: SessionState, now_s: float) -> Dict[str, Any]:
    fee_rate = economy_service.withdrawal_fee_rate(economy_service.account_age_days(state, now_s))
    return {
        "server_time": now_s,
        "username": state.username,
        "token_symbol": TOKEN_SYMBOL,
        "token_price": TOKEN_PRICE_FIAT,
        "fiat_balance": state.fiat_balance,
        "token_balance": state.token_balance,
        "pending_pool_balance": state.pending_pool_balance,
        "pool_collectable": state.pending_pool_balance >= MIN_POOL_COLLECT,
        "production": production_service.build_production_payload(state.inventory, now_s),
        "miners_needing_repair": inventory_service.miners_needing_repair(state.inventory),
        "withdraw_fee_rate": fee_rate,
        "pending_demolition_uid": state.pending_demolition_uid,
        "recent_log": [
            {
                "id": e.id,
                "timestamp": e.timestamp,
                "description": e.description,
                "amount": e.amount,
                "kind": e.kind,
            }
            for e in state.log[-20:]
        ],
    }


def build_profile_payload(state: SessionState, now_s: float) -> Dict[str, Any]:
    return {
        "username": state.username,
        "account_created_at": state.account_created_at,
        "account_age_days": economy_service.account_age_days(state, now_s),
        "referral": {
            "code": state.referral.code,
            "balance": state.referral.balance,
            "total_earned": state.referral.total_earned,
            "total_users": state.referral.total_users,
            "levels": [
                {**level, "count": int(state.referral.users.get(level["key"], 0))}
                for level in REFERRAL_LEVELS
            ],
        },
    }


def get_game_session(request: Request) -> GameSession:
    """FastAPI dependency returning the session owned by the running app."""
    return request.app.state.game_session
