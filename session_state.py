"""
Session state — the aggregate root of one player's game.

Holds wallet balances, the owned-item forest (flat uid map with parent
back-references), the append-only transaction log, referral counters and
identity.  Also owns the snapshot format written to the persistence store:

  - Snapshots are plain JSON dicts, versioned informally by which keys exist.
  - Loading back-fills miners that predate health tracking with full health.
  - Anything unparseable falls back to a fresh default session.
"""

import json
import logging
import os
import random
import uuid
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

from constants import (
    DEFAULT_USERNAME,
    LOG_KIND_CREDIT,
    LOG_KINDS,
    MAX_HEALTH,
    OWNABLE_CATEGORIES,
    REFERRAL_LEVELS,
)

STARTER_FIAT_BALANCE = float(os.environ.get("STARTER_FIAT_BALANCE", "1000000"))
STARTER_TOKEN_BALANCE = float(os.environ.get("STARTER_TOKEN_BALANCE", "1000000"))

STARTER_ROOM_ID = "room_basic"
STARTER_SHELF_ID = "shelf_basic"


def new_uid() -> str:
    return f"uid_{uuid.uuid4().hex}"


def generate_referral_code(rng: Optional[random.Random] = None) -> str:
    rng = rng or random.Random()
    return f"USER-{rng.randint(10000, 99999)}"


def _opt_float(value: Any) -> Optional[float]:
    if value is None:
        return None
    return float(value)


def _opt_bool(value: Any) -> Optional[bool]:
    if value is None:
        return None
    return bool(value)


@dataclass
class InventoryItem:
    uid: str
    catalog_id: str
    category: str
    parent_uid: Optional[str] = None
    acquired_at: float = 0.0
    # room
    last_rent_settled_at: Optional[float] = None
    powered: Optional[bool] = None
    # start of the current unbroken powered stretch
    powered_since: Optional[float] = None
    auto_pay_enabled: Optional[bool] = None
    # miner
    health: Optional[float] = None
    last_health_update_at: Optional[float] = None

    @classmethod
    def create(cls, catalog_id: str, category: str, now_s: float, parent_uid: Optional[str] = None) -> "InventoryItem":
        """A freshly acquired unit with the runtime fields its category needs."""
        item = cls(uid=new_uid(), catalog_id=catalog_id, category=category, parent_uid=parent_uid, acquired_at=now_s)
        if category == "room":
            item.last_rent_settled_at = now_s
            item.powered = True
            item.powered_since = now_s
            item.auto_pay_enabled = False
        elif category == "miner":
            item.health = MAX_HEALTH
            item.last_health_update_at = now_s
        return item

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "InventoryItem":
        uid = str(raw.get("uid") or "").strip()
        catalog_id = str(raw.get("catalog_id") or "").strip()
        category = str(raw.get("category") or "").strip()
        if not uid or not catalog_id:
            raise ValueError("inventory item needs uid and catalog_id")
        if category not in OWNABLE_CATEGORIES:
            raise ValueError(f"inventory item {uid} has invalid category '{category}'")
        parent = raw.get("parent_uid")
        return cls(
            uid=uid,
            catalog_id=catalog_id,
            category=category,
            parent_uid=str(parent) if parent else None,
            acquired_at=float(raw.get("acquired_at") or 0.0),
            last_rent_settled_at=_opt_float(raw.get("last_rent_settled_at")),
            powered=_opt_bool(raw.get("powered")),
            powered_since=_opt_float(raw.get("powered_since")),
            auto_pay_enabled=_opt_bool(raw.get("auto_pay_enabled")),
            health=_opt_float(raw.get("health")),
            last_health_update_at=_opt_float(raw.get("last_health_update_at")),
        )


@dataclass(frozen=True)
class TransactionLogEntry:
    id: int
    timestamp: float
    description: str
    amount: float
    kind: str


@dataclass
class ReferralState:
    code: str
    users: Dict[str, int] = field(default_factory=lambda: {lvl["key"]: 0 for lvl in REFERRAL_LEVELS})
    balance: float = 0.0
    total_earned: float = 0.0

    @property
    def total_users(self) -> int:
        return sum(int(v) for v in self.users.values())


@dataclass
class SessionState:
    fiat_balance: float
    token_balance: float
    account_created_at: float
    referral: ReferralState
    pending_pool_balance: float = 0.0
    inventory: Dict[str, InventoryItem] = field(default_factory=dict)
    log: List[TransactionLogEntry] = field(default_factory=list)
    username: str = DEFAULT_USERNAME
    starter_kit_granted: bool = False
    last_pool_accrual_at: Optional[float] = None
    # Demolition awaiting confirmation; never persisted.
    pending_demolition_uid: Optional[str] = None

    def items(self) -> List[InventoryItem]:
        return list(self.inventory.values())

    def add_item(self, item: InventoryItem) -> InventoryItem:
        if item.uid in self.inventory:
            raise ValueError(f"duplicate uid {item.uid}")
        self.inventory[item.uid] = item
        return item

    def append_log(self, now_s: float, description: str, amount: float, kind: str) -> TransactionLogEntry:
        if kind not in LOG_KINDS:
            raise ValueError(f"unknown log kind '{kind}'")
        next_id = (self.log[-1].id + 1) if self.log else 1
        entry = TransactionLogEntry(
            id=next_id,
            timestamp=float(now_s),
            description=description,
            amount=float(amount),
            kind=kind,
        )
        self.log.append(entry)
        return entry


def default_session(
    now_s: float,
    rng: Optional[random.Random] = None,
    fiat_balance: float = STARTER_FIAT_BALANCE,
    token_balance: float = STARTER_TOKEN_BALANCE,
) -> SessionState:
    return SessionState(
        fiat_balance=float(fiat_balance),
        token_balance=float(token_balance),
        account_created_at=float(now_s),
        referral=ReferralState(code=generate_referral_code(rng)),
        last_pool_accrual_at=float(now_s),
    )


def grant_starter_kit(state: SessionState, now_s: float) -> bool:
    """Give a first-time player one basic room with one basic shelf installed."""
    if state.starter_kit_granted or state.inventory:
        return False
    room = state.add_item(InventoryItem.create(STARTER_ROOM_ID, "room", now_s))
    state.add_item(InventoryItem.create(STARTER_SHELF_ID, "shelf", now_s, parent_uid=room.uid))
    state.append_log(now_s, "Starter kit: free room + rack", 0.0, LOG_KIND_CREDIT)
    state.starter_kit_granted = True
    return True


# ── Snapshots ─────────────────────────────────────────────────────────────


def session_to_snapshot(state: SessionState) -> Dict[str, Any]:
    return {
        "fiat_balance": state.fiat_balance,
        "token_balance": state.token_balance,
        "pending_pool_balance": state.pending_pool_balance,
        "inventory": [item.to_dict() for item in state.inventory.values()],
        "log": [asdict(entry) for entry in state.log],
        "username": state.username,
        "account_created_at": state.account_created_at,
        "referral": asdict(state.referral),
        "starter_kit_granted": state.starter_kit_granted,
        "last_pool_accrual_at": state.last_pool_accrual_at,
    }


def session_from_snapshot(raw: Dict[str, Any], now_s: float, rng: Optional[random.Random] = None) -> SessionState:
    """Rebuild a session from a snapshot dict; missing keys take defaults.

    Raises ValueError/TypeError on malformed content.
    """
    if not isinstance(raw, dict):
        raise ValueError("snapshot root must be an object")
    base = default_session(now_s, rng)

    referral_raw = raw.get("referral") or {}
    if not isinstance(referral_raw, dict):
        raise ValueError("referral must be an object")
    users = dict(base.referral.users)
    users.update({str(k): int(v) for k, v in (referral_raw.get("users") or {}).items()})
    referral = ReferralState(
        code=str(referral_raw.get("code") or base.referral.code),
        users=users,
        balance=float(referral_raw.get("balance") or 0.0),
        total_earned=float(referral_raw.get("total_earned") or 0.0),
    )

    state = SessionState(
        fiat_balance=float(raw.get("fiat_balance", base.fiat_balance)),
        token_balance=float(raw.get("token_balance", base.token_balance)),
        account_created_at=float(raw.get("account_created_at") or base.account_created_at),
        referral=referral,
        pending_pool_balance=float(raw.get("pending_pool_balance") or 0.0),
        username=str(raw.get("username") or base.username),
        starter_kit_granted=bool(raw.get("starter_kit_granted", False)),
        last_pool_accrual_at=_opt_float(raw.get("last_pool_accrual_at")) or float(now_s),
    )

    for item_raw in raw.get("inventory") or []:
        item = InventoryItem.from_dict(item_raw)
        if item.category == "miner" and item.health is None:
            item.health = MAX_HEALTH
            item.last_health_update_at = float(now_s)
        state.add_item(item)

    for entry_raw in raw.get("log") or []:
        kind = str(entry_raw.get("kind") or "")
        if kind not in LOG_KINDS:
            raise ValueError(f"unknown log kind '{kind}'")
        state.log.append(
            TransactionLogEntry(
                id=int(entry_raw["id"]),
                timestamp=float(entry_raw["timestamp"]),
                description=str(entry_raw.get("description") or ""),
                amount=float(entry_raw.get("amount") or 0.0),
                kind=kind,
            )
        )
    return state


def restore_session(blob: Optional[str], now_s: float, rng: Optional[random.Random] = None) -> SessionState:
    """Parse a persisted blob, falling back to a fresh session when it is absent or corrupt."""
    state: Optional[SessionState] = None
    if blob:
        try:
            state = session_from_snapshot(json.loads(blob), now_s, rng)
        except (ValueError, TypeError, KeyError, AttributeError) as exc:
            logging.warning("Discarding unreadable session snapshot: %s", exc)
    if state is None:
        state = default_session(now_s, rng)
    grant_starter_kit(state, now_s)
    return state
