"""
Canonical shared constants for the Hashrack mining simulation.

Catalog loading, the engine services and the routers all read from here;
this module is the single source of truth.
"""

import math
from typing import Any, Dict, List, Tuple

# ---------------------------------------------------------------------------
# Item categories
# ---------------------------------------------------------------------------

ITEM_CATEGORIES: List[Dict[str, Any]] = [
    {
        "id": "miner",
        "name": "Miner",
        "kind": "hardware",
        "description": "Mining rig that produces token while installed in a powered room.",
    },
    {
        "id": "shelf",
        "name": "Shelf",
        "kind": "container",
        "description": "Rack that holds miners. Installed inside a room.",
    },
    {
        "id": "room",
        "name": "Room",
        "kind": "container",
        "description": "Rented space that holds shelves. Pays rent every 12 hours.",
    },
    {
        "id": "box",
        "name": "Box",
        "kind": "consumable",
        "description": "Opens into one random item of its target category.",
    },
]

ITEM_CATEGORY_BY_ID: Dict[str, Dict[str, Any]] = {c["id"]: c for c in ITEM_CATEGORIES}

ITEM_CATEGORY_ALIASES: Dict[str, str] = {
    "miners": "miner",
    "rig": "miner",
    "rigs": "miner",
    "special": "miner",
    "shelves": "shelf",
    "rack": "shelf",
    "racks": "shelf",
    "rooms": "room",
    "boxes": "box",
    "crate": "box",
}

# Categories that become an InventoryItem when acquired.
OWNABLE_CATEGORIES = ("miner", "shelf", "room")

# Which category may hold which.
PARENT_CATEGORY: Dict[str, str] = {
    "miner": "shelf",
    "shelf": "room",
}

# ---------------------------------------------------------------------------
# Tiers
# ---------------------------------------------------------------------------

TIERS: List[str] = ["basic", "common", "rare", "epic", "legendary", "box", "special"]
ROLLABLE_TIERS: List[str] = ["basic", "common", "rare", "epic", "legendary"]

# Rooms of these tiers may enable automatic rent payment.
AUTO_PAY_TIERS = frozenset({"rare", "epic", "legendary"})

# Box roll thresholds over a uniform [0, 100) roll, checked in order.
BOX_TIER_THRESHOLDS: List[Tuple[float, str]] = [
    (99.0, "legendary"),
    (95.0, "epic"),
    (85.0, "rare"),
    (60.0, "common"),
]
BOX_FALLBACK_TIER = "basic"

# ---------------------------------------------------------------------------
# Time
# ---------------------------------------------------------------------------

SECONDS_PER_DAY = 86400.0
RENT_CYCLE_DURATION_S = 12.0 * 3600.0
RENT_CYCLES_PER_DAY = SECONDS_PER_DAY / RENT_CYCLE_DURATION_S

# ---------------------------------------------------------------------------
# Economy
# ---------------------------------------------------------------------------

TOKEN_SYMBOL = "DPIX"
TOKEN_PRICE_FIAT = 1.0
DEPOSIT_RATE = 1.0  # token per fiat unit
EXCHANGE_FEE = 0.05

REPAIR_COST = 50.0
REPAIR_WARNING_HEALTH = 20.0
MAX_HEALTH = 100.0
# Continuous active time that takes a miner from full health to zero.
HEALTH_FULL_DEPLETION_S = 30.0 * SECONDS_PER_DAY
HEALTH_DECAY_PER_DAY = MAX_HEALTH * SECONDS_PER_DAY / HEALTH_FULL_DEPLETION_S  # ~3.33
HEALTH_EPSILON = 1e-9

WATT_OVERHEAD_FACTOR = 0.8

SCRAP_VALUES: Dict[str, float] = {
    "miner": 20.0,
    "room": 8.0,
    "shelf": 4.0,
}
DEMOLITION_REWARD = 8.0

MIN_POOL_COLLECT = 10.0

# (max account age in whole days, fee rate); first match wins.
WITHDRAW_FEE_SCHEDULE: List[Tuple[float, float]] = [
    (10, 0.30),
    (20, 0.15),
    (math.inf, 0.05),
]

PROJECTION_PERIODS: List[Dict[str, Any]] = [
    {"id": "day", "label": "Day (24h)", "days": 1},
    {"id": "week", "label": "Week (7d)", "days": 7},
    {"id": "month", "label": "Month (30d)", "days": 30},
]

# ---------------------------------------------------------------------------
# Profile
# ---------------------------------------------------------------------------

DEFAULT_USERNAME = "CEO"
MAX_USERNAME_LENGTH = 12

REFERRAL_LEVELS: List[Dict[str, Any]] = [
    {"level": 1, "key": "lvl1", "label": "Level 1 (Direct)", "commission": 0.05},
    {"level": 2, "key": "lvl2", "label": "Level 2 (Indirect)", "commission": 0.03},
    {"level": 3, "key": "lvl3", "label": "Level 3 (Deep)", "commission": 0.01},
]

# ---------------------------------------------------------------------------
# Transaction log kinds
# ---------------------------------------------------------------------------

LOG_KIND_CREDIT = "credit"
LOG_KIND_DEBIT = "debit"
LOG_KIND_TOKEN_EVENT = "tokenEvent"
LOG_KINDS = (LOG_KIND_CREDIT, LOG_KIND_DEBIT, LOG_KIND_TOKEN_EVENT)
