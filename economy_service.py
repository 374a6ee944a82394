"""
Economy service — every user-initiated action that moves balances or items.

Economy model:
  - Token buys hardware, pays room rent (per 12h cycle) and repairs.
  - Fiat enters via deposit (1 fiat -> 1 token) and leaves via withdrawal,
    which quotes an account-age fee but debits the gross amount.
  - Selling token for fiat costs a flat 5% exchange fee.
  - Boxes roll a tier (60/25/10/4/1) and pick a uniform catalog entry of
    that tier in the box's target category.

Each action validates everything first and only then mutates the session,
returning a dict of the fields it changed.  Failures raise a
game_errors.GameActionError subclass with nothing mutated.
"""

import logging
import math
import random
from typing import Any, Dict, List, Optional

import catalog_service
import inventory_service
from catalog_service import CatalogEntry
from constants import (
    AUTO_PAY_TIERS,
    BOX_FALLBACK_TIER,
    BOX_TIER_THRESHOLDS,
    DEMOLITION_REWARD,
    DEPOSIT_RATE,
    EXCHANGE_FEE,
    LOG_KIND_CREDIT,
    LOG_KIND_DEBIT,
    LOG_KIND_TOKEN_EVENT,
    MAX_HEALTH,
    MAX_USERNAME_LENGTH,
    MIN_POOL_COLLECT,
    OWNABLE_CATEGORIES,
    RENT_CYCLE_DURATION_S,
    REPAIR_COST,
    ROLLABLE_TIERS,
    SCRAP_VALUES,
    SECONDS_PER_DAY,
    TOKEN_PRICE_FIAT,
    TOKEN_SYMBOL,
    WITHDRAW_FEE_SCHEDULE,
)
from game_errors import (
    DataIntegrityError,
    InsufficientBalanceError,
    InvalidStateError,
    ItemNotFoundError,
    NotEmptyError,
)
from inventory_service import children_of, require_item, rent_time_left_s
from session_state import InventoryItem, SessionState


def _require_positive_amount(amount: Any) -> float:
    try:
        value = float(amount)
    except (TypeError, ValueError):
        raise InvalidStateError("amount must be numeric")
    if not math.isfinite(value) or value <= 0:
        raise InvalidStateError("amount must be greater than zero")
    return value


def _require_token(state: SessionState, cost: float) -> None:
    if state.token_balance < cost:
        raise InsufficientBalanceError(
            f"Insufficient {TOKEN_SYMBOL} balance: need {cost:.2f}, have {state.token_balance:.2f}"
        )


def _room_entry(room: InventoryItem) -> CatalogEntry:
    entry = catalog_service.get_catalog_entry("room", room.catalog_id)
    if entry is None:
        raise InvalidStateError(f"Room {room.uid} references unknown catalog id {room.catalog_id}")
    return entry


def _item_name(item: InventoryItem) -> str:
    entry = catalog_service.get_catalog_entry(item.category, item.catalog_id)
    return entry.name if entry else item.catalog_id


# ── Rent ──────────────────────────────────────────────────────────────────


def _restore_power(room: InventoryItem, now_s: float) -> None:
    if room.powered is False or rent_time_left_s(room, now_s) <= 0:
        room.powered_since = now_s
    room.last_rent_settled_at = now_s
    room.powered = True


def pay_rent(state: SessionState, room_uid: str, now_s: float) -> Dict[str, Any]:
    room = require_item(state.inventory, room_uid, "room")
    entry = _room_entry(room)
    _require_token(state, entry.rent_cost)

    state.token_balance -= entry.rent_cost
    _restore_power(room, now_s)
    state.append_log(now_s, f"Rent: {entry.name}", -entry.rent_cost, LOG_KIND_DEBIT)
    return {
        "room_uid": room.uid,
        "paid": entry.rent_cost,
        "token_balance": state.token_balance,
        "last_rent_settled_at": room.last_rent_settled_at,
        "powered": room.powered,
    }


def rooms_due_for_tier(state: SessionState, tier: str, now_s: float) -> List[InventoryItem]:
    """Rooms of a tier that are lapsed or anywhere short of a full 12h cycle."""
    due: List[InventoryItem] = []
    for room in inventory_service.items_of_category(state.inventory, "room"):
        entry = catalog_service.get_catalog_entry("room", room.catalog_id)
        if entry is None or entry.tier != tier:
            continue
        time_left = rent_time_left_s(room, now_s)
        if time_left <= 0 or time_left < RENT_CYCLE_DURATION_S:
            due.append(room)
    return due


def quote_rent_bulk(state: SessionState, tier: str, now_s: float) -> Dict[str, Any]:
    rooms = rooms_due_for_tier(state, tier, now_s)
    total = sum(_room_entry(r).rent_cost for r in rooms)
    return {"tier": tier, "count": len(rooms), "total": total, "room_uids": [r.uid for r in rooms]}


def pay_rent_bulk(state: SessionState, tier: str, now_s: float) -> Dict[str, Any]:
    tier = str(tier or "").strip().lower()
    if tier not in ROLLABLE_TIERS:
        raise InvalidStateError(f"Unknown room tier '{tier}'")
    quote = quote_rent_bulk(state, tier, now_s)
    if not quote["count"]:
        raise InvalidStateError(f"Every {tier} room already has a full cycle of energy")
    _require_token(state, quote["total"])

    state.token_balance -= quote["total"]
    for uid in quote["room_uids"]:
        _restore_power(state.inventory[uid], now_s)
    state.append_log(now_s, f"Energy: {quote['count']} rooms", -quote["total"], LOG_KIND_DEBIT)
    return {
        "tier": tier,
        "settled_count": quote["count"],
        "room_uids": quote["room_uids"],
        "paid": quote["total"],
        "token_balance": state.token_balance,
    }


def toggle_auto_pay(state: SessionState, room_uid: str) -> Dict[str, Any]:
    room = require_item(state.inventory, room_uid, "room")
    entry = _room_entry(room)
    enable = not bool(room.auto_pay_enabled)
    if enable and entry.tier not in AUTO_PAY_TIERS:
        raise InvalidStateError(f"Auto-pay is only available for {', '.join(sorted(AUTO_PAY_TIERS))} rooms")
    room.auto_pay_enabled = enable
    return {"room_uid": room.uid, "auto_pay_enabled": room.auto_pay_enabled}


# ── Maintenance ───────────────────────────────────────────────────────────


def repair(state: SessionState, miner_uid: str, now_s: float) -> Dict[str, Any]:
    miner = require_item(state.inventory, miner_uid, "miner")
    _require_token(state, REPAIR_COST)

    state.token_balance -= REPAIR_COST
    miner.health = MAX_HEALTH
    miner.last_health_update_at = now_s
    state.append_log(now_s, "Miner repair", -REPAIR_COST, LOG_KIND_TOKEN_EVENT)
    return {"miner_uid": miner.uid, "health": miner.health, "token_balance": state.token_balance}


def scrap_value(category: str) -> float:
    return SCRAP_VALUES.get(category, 0.0)


def recycle(state: SessionState, item_uid: str, now_s: float) -> Dict[str, Any]:
    """Scrap a stored item for a fixed token credit.

    Teardown is strictly bottom-up: the item must be uninstalled, and a
    shelf or room must already be empty.
    """
    item = require_item(state.inventory, item_uid)
    if item.parent_uid:
        raise NotEmptyError("Uninstall the item before recycling it")
    if children_of(state.inventory, item.uid):
        raise NotEmptyError(f"Empty the {item.category} before recycling it")

    value = scrap_value(item.category)
    name = _item_name(item)
    inventory_service.dispose(state, item.uid)
    state.token_balance += value
    state.append_log(now_s, f"Scrap: {name}", value, LOG_KIND_TOKEN_EVENT)
    return {"item_uid": item.uid, "scrap_value": value, "token_balance": state.token_balance}


def propose_demolition(state: SessionState, room_uid: str) -> Dict[str, Any]:
    room = require_item(state.inventory, room_uid, "room")
    if children_of(state.inventory, room.uid):
        raise NotEmptyError("Remove every shelf before demolishing the room")
    state.pending_demolition_uid = room.uid
    return {
        "room_uid": room.uid,
        "room_name": _item_name(room),
        "reward": DEMOLITION_REWARD,
        "requires_confirmation": True,
    }


def confirm_demolition(state: SessionState, room_uid: str, now_s: float) -> Dict[str, Any]:
    if not room_uid or state.pending_demolition_uid != room_uid:
        raise InvalidStateError("No demolition is awaiting confirmation for this room")
    room = require_item(state.inventory, room_uid, "room")
    if children_of(state.inventory, room.uid):
        raise NotEmptyError("Remove every shelf before demolishing the room")

    name = _item_name(room)
    inventory_service.dispose(state, room.uid)
    state.pending_demolition_uid = None
    state.token_balance += DEMOLITION_REWARD
    state.append_log(now_s, f"Demolished: {name}", DEMOLITION_REWARD, LOG_KIND_TOKEN_EVENT)
    return {"room_uid": room.uid, "reward": DEMOLITION_REWARD, "token_balance": state.token_balance}


def cancel_demolition(state: SessionState) -> Dict[str, Any]:
    state.pending_demolition_uid = None
    return {"pending_demolition_uid": None}


# ── Bank ──────────────────────────────────────────────────────────────────


def account_age_days(state: SessionState, now_s: float) -> int:
    return int(max(0.0, now_s - state.account_created_at) // SECONDS_PER_DAY)


def withdrawal_fee_rate(age_days: int) -> float:
    for max_days, rate in WITHDRAW_FEE_SCHEDULE:
        if age_days <= max_days:
            return rate
    return WITHDRAW_FEE_SCHEDULE[-1][1]


def quote_withdrawal(state: SessionState, amount: float, now_s: float) -> Dict[str, Any]:
    age = account_age_days(state, now_s)
    rate = withdrawal_fee_rate(age)
    fee = amount * rate
    return {
        "amount": amount,
        "account_age_days": age,
        "fee_rate": rate,
        "fee": fee,
        "net_amount": amount - fee,
    }


def deposit(state: SessionState, fiat_amount: Any, now_s: float) -> Dict[str, Any]:
    amount = _require_positive_amount(fiat_amount)
    credited = amount * DEPOSIT_RATE
    state.token_balance += credited
    state.append_log(now_s, f"Deposit (fiat -> {TOKEN_SYMBOL})", credited, LOG_KIND_TOKEN_EVENT)
    return {"deposited": amount, "token_credited": credited, "token_balance": state.token_balance}


def withdraw(state: SessionState, fiat_amount: Any, now_s: float) -> Dict[str, Any]:
    """Debit the gross amount from fiat; the fee only shapes the quoted external payout."""
    amount = _require_positive_amount(fiat_amount)
    if amount > state.fiat_balance:
        raise InsufficientBalanceError(
            f"Insufficient fiat balance: need {amount:.2f}, have {state.fiat_balance:.2f}"
        )
    quote = quote_withdrawal(state, amount, now_s)
    state.fiat_balance -= amount
    state.append_log(now_s, "Bank withdrawal", -amount, LOG_KIND_DEBIT)
    return {**quote, "fiat_balance": state.fiat_balance}


def exchange_all(state: SessionState, now_s: float, token_price: float = TOKEN_PRICE_FIAT) -> Dict[str, Any]:
    if state.token_balance <= 0:
        raise InsufficientBalanceError(f"No {TOKEN_SYMBOL} to exchange")
    sold = state.token_balance
    gross = sold * token_price
    fee = gross * EXCHANGE_FEE
    net = gross - fee

    state.fiat_balance += net
    state.token_balance = 0.0
    state.append_log(now_s, f"Exchange {TOKEN_SYMBOL} -> fiat", net, LOG_KIND_CREDIT)
    return {
        "token_sold": sold,
        "gross_fiat": gross,
        "fee": fee,
        "net_fiat": net,
        "fiat_balance": state.fiat_balance,
        "token_balance": state.token_balance,
    }


def collect_pending_pool(state: SessionState, now_s: float) -> Dict[str, Any]:
    amount = state.pending_pool_balance
    if amount < MIN_POOL_COLLECT:
        raise InsufficientBalanceError(
            f"Pool needs at least {MIN_POOL_COLLECT:.2f} {TOKEN_SYMBOL}; {MIN_POOL_COLLECT - amount:.2f} to go"
        )
    state.token_balance += amount
    state.pending_pool_balance = 0.0
    state.append_log(now_s, "Pool collection", amount, LOG_KIND_TOKEN_EVENT)
    return {"collected": amount, "token_balance": state.token_balance, "pending_pool_balance": 0.0}


# ── Shop ──────────────────────────────────────────────────────────────────


def roll_box_tier(rng: random.Random) -> str:
    roll = rng.random() * 100.0
    for threshold, tier in BOX_TIER_THRESHOLDS:
        if roll > threshold:
            return tier
    return BOX_FALLBACK_TIER


def pick_box_reward(category: str, tier: str, rng: random.Random) -> CatalogEntry:
    candidates = sorted(catalog_service.box_reward_candidates(category, tier), key=lambda e: e.id)
    if not candidates:
        logging.error("Catalog has no %s %s entry for a box roll", tier, category)
        raise DataIntegrityError(f"No {tier} {category} exists for this box")
    return candidates[min(len(candidates) - 1, int(rng.random() * len(candidates)))]


def _require_purchasable(entry: CatalogEntry) -> None:
    if not entry.purchasable:
        raise InvalidStateError(f"{entry.name} cannot be bought directly")


def open_box(state: SessionState, box_id: str, now_s: float, rng: random.Random) -> Dict[str, Any]:
    """Buy a box and open it at once; the roll happens before any debit."""
    box = catalog_service.get_catalog_entry("box", box_id)
    if box is None:
        raise ItemNotFoundError(f"Unknown box {box_id}")
    _require_purchasable(box)
    _require_token(state, box.price)
    if box.contained_category not in OWNABLE_CATEGORIES:
        raise DataIntegrityError(f"Box {box.id} has no valid target category")

    tier = roll_box_tier(rng)
    won = pick_box_reward(box.contained_category, tier, rng)

    state.token_balance -= box.price
    state.append_log(now_s, f"Purchase: {box.name}", -box.price, LOG_KIND_TOKEN_EVENT)
    item = state.add_item(InventoryItem.create(won.id, won.category, now_s))
    return {
        "box_id": box.id,
        "tier": tier,
        "won": won.to_payload(),
        "item": item.to_dict(),
        "token_balance": state.token_balance,
    }


def purchase(
    state: SessionState,
    catalog_id: str,
    category: str,
    now_s: float,
    rng: Optional[random.Random] = None,
) -> Dict[str, Any]:
    cat = catalog_service.canonical_item_category(category)
    entry = catalog_service.get_catalog_entry(cat, catalog_id) if cat else None
    if entry is None:
        raise ItemNotFoundError(f"Unknown {category} item {catalog_id}")
    if entry.category == "box":
        return open_box(state, entry.id, now_s, rng or random.Random())

    _require_purchasable(entry)
    _require_token(state, entry.price)

    state.token_balance -= entry.price
    state.append_log(now_s, f"Purchase: {entry.name}", -entry.price, LOG_KIND_TOKEN_EVENT)
    item = state.add_item(InventoryItem.create(entry.id, entry.category, now_s))
    return {"item": item.to_dict(), "token_balance": state.token_balance}


# ── Profile ───────────────────────────────────────────────────────────────


def rename_user(state: SessionState, new_name: Any) -> Dict[str, Any]:
    name = str(new_name or "").strip()
    if not name:
        raise InvalidStateError("Name cannot be empty")
    if len(name) > MAX_USERNAME_LENGTH:
        raise InvalidStateError(f"Name must be at most {MAX_USERNAME_LENGTH} characters")
    state.username = name
    return {"username": state.username}


def redeem_referral(state: SessionState, now_s: float) -> Dict[str, Any]:
    amount = state.referral.balance
    if amount <= 0:
        raise InsufficientBalanceError("No referral balance to redeem")
    state.fiat_balance += amount
    state.referral.balance = 0.0
    state.append_log(now_s, "Referral redemption", amount, LOG_KIND_CREDIT)
    return {"redeemed": amount, "fiat_balance": state.fiat_balance, "referral_balance": 0.0}
