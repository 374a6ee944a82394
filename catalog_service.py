import json
import re
from dataclasses import asdict, dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional

from constants import (
    ITEM_CATEGORIES,
    ITEM_CATEGORY_ALIASES,
    ITEM_CATEGORY_BY_ID,
    OWNABLE_CATEGORIES,
    ROLLABLE_TIERS,
    TIERS,
)
from db import APP_DIR

ITEMS_DIR = APP_DIR / "items"


class CatalogError(ValueError):
    pass


@dataclass(frozen=True)
class CatalogEntry:
    id: str
    category: str
    tier: str
    name: str
    price: float
    description: str = ""
    hidden: bool = False
    # miner
    daily_yield: float = 0.0
    power_draw: float = 0.0
    fan_count: int = 0
    skin_style: str = ""
    is_special: bool = False
    # shelf / room
    slot_capacity: int = 0
    # room
    rent_cost: float = 0.0
    # box
    contained_category: str = ""

    @property
    def purchasable(self) -> bool:
        return self.price > 0 and (not self.hidden or self.is_special)

    def to_payload(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["purchasable"] = self.purchasable
        return payload


def canonical_item_category(raw: Any) -> str:
    text = str(raw or "").strip().lower()
    if not text:
        return ""
    text = re.sub(r"[^a-z0-9]+", "_", text).strip("_")
    if text in ITEM_CATEGORY_BY_ID:
        return text
    return ITEM_CATEGORY_ALIASES.get(text, "")


def _load_json_file(path: Path) -> Dict[str, Any]:
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except Exception as exc:
        raise CatalogError(f"Invalid JSON in {path}: {exc}") from exc
    if not isinstance(payload, dict):
        raise CatalogError(f"Top-level JSON in {path} must be an object")
    return payload


def _entry_from_json(category: str, entry: Dict[str, Any], path: Path) -> CatalogEntry:
    item_id = str(entry.get("id") or "").strip()
    if not item_id:
        raise CatalogError(f"{path}: 'id' must be a non-empty string")
    tier = str(entry.get("tier") or "").strip().lower()
    if tier not in TIERS:
        raise CatalogError(f"{path}: unknown tier '{tier}'")
    try:
        return CatalogEntry(
            id=item_id,
            category=category,
            tier=tier,
            name=str(entry.get("name") or item_id),
            price=max(0.0, float(entry.get("price") or 0.0)),
            description=str(entry.get("description") or ""),
            hidden=bool(entry.get("hidden", False)),
            daily_yield=max(0.0, float(entry.get("daily_yield") or 0.0)),
            power_draw=max(0.0, float(entry.get("power_draw") or 0.0)),
            fan_count=int(entry.get("fan_count") or 0),
            skin_style=str(entry.get("skin_style") or ""),
            is_special=bool(entry.get("is_special", False)),
            slot_capacity=int(entry.get("slot_capacity") or 0),
            rent_cost=max(0.0, float(entry.get("rent_cost") or 0.0)),
            contained_category=canonical_item_category(entry.get("contained_category")),
        )
    except (TypeError, ValueError) as exc:
        raise CatalogError(f"{path}: {exc}") from exc


def load_catalog_from(root: Path) -> Dict[str, Dict[str, CatalogEntry]]:
    """Load items/<category>/*.json into {category: {id: entry}}."""
    catalog: Dict[str, Dict[str, CatalogEntry]] = {c["id"]: {} for c in ITEM_CATEGORIES}
    seen_ids: Dict[str, Path] = {}
    for category in catalog:
        cat_root = root / category
        if not cat_root.exists() or not cat_root.is_dir():
            continue
        for path in sorted(cat_root.glob("*.json"), key=lambda p: p.name.lower()):
            entry = _entry_from_json(category, _load_json_file(path), path)
            if entry.id in seen_ids:
                raise CatalogError(f"Duplicate item id {entry.id} in {path} and {seen_ids[entry.id]}")
            seen_ids[entry.id] = path
            catalog[category][entry.id] = entry
    return catalog


@lru_cache(maxsize=1)
def load_catalog() -> Dict[str, Dict[str, CatalogEntry]]:
    return load_catalog_from(ITEMS_DIR)


def get_catalog_entry(category: str, item_id: str) -> Optional[CatalogEntry]:
    return load_catalog().get(category, {}).get(item_id)


def list_shop_entries(category: str) -> List[CatalogEntry]:
    """Entries offered in a shop tab.

    The miner tab hides special miners; they have their own "special" tab.
    """
    catalog = load_catalog()
    if category == "special":
        rows = [e for e in catalog["miner"].values() if e.is_special]
    else:
        cat = canonical_item_category(category)
        rows = [
            e
            for e in catalog.get(cat, {}).values()
            if not e.hidden and not e.is_special
        ]
        # Boxes are listed alongside the category they open into.
        rows.extend(e for e in catalog["box"].values() if e.contained_category == cat)
    return sorted(rows, key=lambda e: (e.price, e.name.lower()))


def box_reward_candidates(category: str, tier: str) -> List[CatalogEntry]:
    return [
        e
        for e in load_catalog().get(category, {}).values()
        if e.tier == tier and e.category != "box" and not e.is_special
    ]


def validate_catalog(catalog: Dict[str, Dict[str, CatalogEntry]]) -> List[str]:
    """Return a list of authoring problems; empty when the catalog is sound."""
    errors: List[str] = []
    for entry in catalog.get("miner", {}).values():
        if entry.daily_yield <= 0 or entry.power_draw <= 0:
            errors.append(f"miner {entry.id} needs positive daily_yield and power_draw")
    for category in ("shelf", "room"):
        for entry in catalog.get(category, {}).values():
            if entry.slot_capacity <= 0:
                errors.append(f"{category} {entry.id} needs a positive slot_capacity")
    for entry in catalog.get("room", {}).values():
        if entry.rent_cost <= 0:
            errors.append(f"room {entry.id} needs a positive rent_cost")

    for box in catalog.get("box", {}).values():
        target = box.contained_category
        if target not in OWNABLE_CATEGORIES:
            errors.append(f"box {box.id} has invalid contained_category '{target}'")
            continue
        for tier in ROLLABLE_TIERS:
            matches = [
                e for e in catalog.get(target, {}).values()
                if e.tier == tier and not e.is_special
            ]
            if not matches:
                errors.append(f"box {box.id} can roll {tier} {target} but no entry exists")
    return errors


def build_catalog_payload() -> Dict[str, Any]:
    catalog = load_catalog()
    return {
        "item_categories": ITEM_CATEGORIES,
        "items": {
            category: [e.to_payload() for e in sorted(entries.values(), key=lambda e: e.id)]
            for category, entries in catalog.items()
        },
    }
