"""
Inventory model helpers over a session's flat uid -> item map.

Containment is expressed only through parent_uid back-references
(miner -> shelf -> room), so "children of X" is computed on demand.
is_active is the single eligibility predicate every production and
upkeep computation reuses.
"""

from typing import Dict, Iterable, List, Optional

import catalog_service
from constants import MAX_HEALTH, PARENT_CATEGORY, RENT_CYCLE_DURATION_S, REPAIR_WARNING_HEALTH
from game_errors import CapacityExceededError, InvalidStateError, ItemNotFoundError, NotEmptyError
from session_state import InventoryItem, SessionState

Inventory = Dict[str, InventoryItem]


def require_item(inventory: Inventory, uid: str, category: Optional[str] = None) -> InventoryItem:
    item = inventory.get(str(uid or ""))
    if item is None:
        raise ItemNotFoundError(f"No item with uid {uid}")
    if category is not None and item.category != category:
        raise InvalidStateError(f"Item {uid} is a {item.category}, not a {category}")
    return item


def children_of(inventory: Inventory, uid: str) -> List[InventoryItem]:
    return [item for item in inventory.values() if item.parent_uid == uid]


def items_of_category(inventory: Inventory, category: str) -> List[InventoryItem]:
    return [item for item in inventory.values() if item.category == category]


def rent_time_left_s(room: InventoryItem, now_s: float) -> float:
    """Seconds until the room's current rent cycle lapses (<= 0 once lapsed)."""
    return (room.last_rent_settled_at or 0.0) + RENT_CYCLE_DURATION_S - now_s


def miner_health(miner: InventoryItem) -> float:
    return MAX_HEALTH if miner.health is None else float(miner.health)


def containing_room(inventory: Inventory, miner: InventoryItem) -> Optional[InventoryItem]:
    """Room at the top of a miner's chain, if the chain is intact."""
    shelf = inventory.get(miner.parent_uid or "")
    if shelf is None or shelf.category != "shelf":
        return None
    room = inventory.get(shelf.parent_uid or "")
    if room is None or room.category != "room":
        return None
    return room


def is_active(inventory: Inventory, miner: InventoryItem, now_s: float) -> bool:
    if miner.category != "miner":
        return False
    room = containing_room(inventory, miner)
    if room is None or room.powered is False:
        return False
    if rent_time_left_s(room, now_s) <= 0:
        return False
    return miner_health(miner) > 0


def active_miners(inventory: Inventory, now_s: float) -> List[InventoryItem]:
    return [m for m in items_of_category(inventory, "miner") if is_active(inventory, m, now_s)]


def unlink(state: SessionState, uid: str) -> InventoryItem:
    item = require_item(state.inventory, uid)
    if item.category in ("shelf", "room") and children_of(state.inventory, uid):
        raise NotEmptyError(f"Empty the {item.category} before removing it")
    item.parent_uid = None
    return item


def dispose(state: SessionState, uid: str) -> InventoryItem:
    item = require_item(state.inventory, uid)
    if item.category in ("shelf", "room") and children_of(state.inventory, uid):
        raise NotEmptyError(f"Empty the {item.category} before disposing of it")
    del state.inventory[uid]
    if state.pending_demolition_uid == uid:
        state.pending_demolition_uid = None
    return item


def slot_capacity(item: InventoryItem) -> int:
    entry = catalog_service.get_catalog_entry(item.category, item.catalog_id)
    return entry.slot_capacity if entry else 0


def install(state: SessionState, item_uid: str, parent_uid: str, now_s: float) -> InventoryItem:
    """Place a miner on a shelf or a shelf in a room.

    Rejects broken miners, wrong parent types and parents already at their
    slot capacity.
    """
    item = require_item(state.inventory, item_uid)
    parent = require_item(state.inventory, parent_uid)

    needed = PARENT_CATEGORY.get(item.category)
    if needed is None:
        raise InvalidStateError(f"A {item.category} cannot be installed anywhere")
    if parent.category != needed:
        raise InvalidStateError(f"A {item.category} must be installed in a {needed}")
    if item.category == "miner" and miner_health(item) <= 0:
        raise InvalidStateError("This miner is broken and must be repaired before installing")
    if item.parent_uid == parent.uid:
        return item

    occupied = [c for c in children_of(state.inventory, parent.uid) if c.uid != item.uid]
    capacity = slot_capacity(parent)
    if len(occupied) >= capacity:
        raise CapacityExceededError(f"{parent.category} {parent.uid} is full ({capacity} slots)")

    item.parent_uid = parent.uid
    if item.category == "miner":
        item.last_health_update_at = now_s
    return item


def uninstall(state: SessionState, item_uid: str, now_s: float) -> InventoryItem:
    item = unlink(state, item_uid)
    if item.category == "miner":
        item.last_health_update_at = now_s
    return item


def miners_needing_repair(inventory: Inventory) -> int:
    return sum(
        1
        for m in items_of_category(inventory, "miner")
        if m.parent_uid and miner_health(m) <= REPAIR_WARNING_HEALTH
    )


def stored_items(inventory: Inventory, categories: Iterable[str] = ("miner", "shelf")) -> List[InventoryItem]:
    """Unplaced miners and shelves (rooms never have a parent)."""
    wanted = set(categories)
    return [i for i in inventory.values() if i.category in wanted and i.parent_uid is None]
