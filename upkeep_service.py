"""
Upkeep service — time-driven state transitions over a session.

Settle-on-tick pattern: every step works from elapsed game time since the
timestamp stored on the item (or session), never from how many ticks ran,
so a late or skipped tick produces the same result as a punctual one.
Running a step twice at the same now_s is a no-op the second time.

A miner only wears and produces inside its room's power window: from the
room's powered_since up to the instant its rent lapses.  Auto-pay settles
each lapsed cycle at its lapse instant, so coverage stays unbroken however
late the rent tick runs.

Steps return a list of notification events ({kind, message, severity, uid})
for the presentation layer; they never raise for gameplay reasons.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

import catalog_service
from constants import (
    AUTO_PAY_TIERS,
    HEALTH_EPSILON,
    HEALTH_FULL_DEPLETION_S,
    LOG_KIND_DEBIT,
    MAX_HEALTH,
    RENT_CYCLE_DURATION_S,
    SECONDS_PER_DAY,
)
from inventory_service import containing_room, items_of_category, miner_health, rent_time_left_s
from session_state import InventoryItem, SessionState

Event = Dict[str, Any]


def _event(kind: str, message: str, severity: str, uid: str = "") -> Event:
    return {"kind": kind, "message": message, "severity": severity, "uid": uid}


def power_window(state: SessionState, miner: InventoryItem, now_s: float) -> Optional[Tuple[float, float]]:
    """(from, until) bounds of the power feeding a miner, clipped to now; None when it has none."""
    room = containing_room(state.inventory, miner)
    if room is None or room.last_rent_settled_at is None:
        return None
    lapse_at = room.last_rent_settled_at + RENT_CYCLE_DURATION_S
    if room.powered is False and lapse_at > now_s:
        # Switched off with rent still paid.
        return None
    powered_from = room.powered_since if room.powered_since is not None else float("-inf")
    return powered_from, min(now_s, lapse_at)


def _failure_instant(miner: InventoryItem, powered_from: float) -> float:
    # Health falls linearly from the later of its last update and power-on.
    start = max(miner.last_health_update_at, powered_from)
    return start + miner_health(miner) * HEALTH_FULL_DEPLETION_S / MAX_HEALTH


def decay_health(state: SessionState, now_s: float) -> List[Event]:
    events: List[Event] = []
    for miner in items_of_category(state.inventory, "miner"):
        if miner.last_health_update_at is None:
            # Legacy miners start tracking from now, without decay this tick.
            miner.health = miner_health(miner)
            miner.last_health_update_at = now_s
            continue

        current = miner_health(miner)
        if current <= 0:
            # Broken miners keep the failure instant until repaired.
            continue

        window = power_window(state, miner, now_s)
        if window is None:
            # Idle time does not wear the miner down.
            miner.last_health_update_at = now_s
            continue

        powered_from, powered_until = window
        start = max(miner.last_health_update_at, powered_from)
        elapsed_s = max(0.0, powered_until - start)
        new_health = current - MAX_HEALTH * elapsed_s / HEALTH_FULL_DEPLETION_S
        if new_health > HEALTH_EPSILON:
            miner.health = min(MAX_HEALTH, new_health)
            # Stops at a pending lapse so a late auto-pay can still charge the rest.
            miner.last_health_update_at = max(miner.last_health_update_at, powered_until)
            continue

        miner.last_health_update_at = _failure_instant(miner, powered_from)
        miner.health = 0.0
        room = containing_room(state.inventory, miner)
        miner_entry = catalog_service.get_catalog_entry("miner", miner.catalog_id)
        room_entry = catalog_service.get_catalog_entry("room", room.catalog_id)
        miner_name = miner_entry.name if miner_entry else "A miner"
        room_name = room_entry.name if room_entry else "room"
        logging.info("Miner %s failed in room %s", miner.uid, room.uid)
        events.append(
            _event(
                "equipment_failure",
                f"Alert: {miner_name} stopped working in {room_name}!",
                "error",
                miner.uid,
            )
        )
    return events


def settle_rent(state: SessionState, now_s: float) -> List[Event]:
    events: List[Event] = []
    for room in items_of_category(state.inventory, "room"):
        if room.last_rent_settled_at is None:
            room.last_rent_settled_at = now_s
            room.powered = True
            room.powered_since = now_s
            continue

        if rent_time_left_s(room, now_s) > 0:
            continue

        entry = catalog_service.get_catalog_entry("room", room.catalog_id)
        if entry is None or entry.rent_cost <= 0:
            continue

        can_auto_pay = entry.tier in AUTO_PAY_TIERS and bool(room.auto_pay_enabled)
        cycles = 0
        if can_auto_pay and room.powered is False:
            if state.token_balance >= entry.rent_cost:
                state.token_balance -= entry.rent_cost
                state.append_log(now_s, f"Auto-rent: {entry.name}", -entry.rent_cost, LOG_KIND_DEBIT)
                room.last_rent_settled_at = now_s
                room.powered = True
                room.powered_since = now_s
                cycles = 1
        elif can_auto_pay:
            # Each missed cycle is paid at its own lapse instant.
            while rent_time_left_s(room, now_s) <= 0 and state.token_balance >= entry.rent_cost:
                lapse_at = room.last_rent_settled_at + RENT_CYCLE_DURATION_S
                state.token_balance -= entry.rent_cost
                state.append_log(lapse_at, f"Auto-rent: {entry.name}", -entry.rent_cost, LOG_KIND_DEBIT)
                room.last_rent_settled_at = lapse_at
                cycles += 1

        if cycles:
            logging.info("Auto-paid %d rent cycle(s) of %.2f for room %s", cycles, entry.rent_cost, room.uid)
            events.append(_event("auto_pay_settled", f"Rent auto-paid for {entry.name}", "info", room.uid))
        if rent_time_left_s(room, now_s) > 0:
            continue

        if room.powered is not False:
            room.powered = False
            logging.info("Room %s lost power (rent lapsed)", room.uid)
            events.append(_event("room_unpowered", f"{entry.name} lost power: rent is due", "error", room.uid))
    return events


def accrue_pool(state: SessionState, now_s: float) -> float:
    """Move production since the last accrual into the pending pool; returns the amount added."""
    last = state.last_pool_accrual_at
    state.last_pool_accrual_at = now_s
    if last is None or now_s <= last:
        return 0.0

    produced = 0.0
    for miner in items_of_category(state.inventory, "miner"):
        window = power_window(state, miner, now_s)
        entry = catalog_service.get_catalog_entry("miner", miner.catalog_id)
        if window is None or entry is None:
            continue
        powered_from, powered_until = window
        if miner.last_health_update_at is not None:
            powered_until = min(powered_until, _failure_instant(miner, powered_from))
        elapsed_s = powered_until - max(last, powered_from)
        if elapsed_s > 0:
            produced += entry.daily_yield * elapsed_s / SECONDS_PER_DAY
    state.pending_pool_balance += produced
    return produced


def run_upkeep(state: SessionState, now_s: float) -> List[Event]:
    """All periodic steps in dependency order: rent, then production, then wear."""
    events = settle_rent(state, now_s)
    accrue_pool(state, now_s)
    events.extend(decay_health(state, now_s))
    return events
