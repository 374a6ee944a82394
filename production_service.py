"""
Production math — pure functions over an inventory snapshot.

Nothing here mutates state; callers pass the current game time so the
rent-lapse part of the eligibility chain is evaluated consistently.
"""

import math
from typing import Any, Dict, List, Optional

import catalog_service
from catalog_service import CatalogEntry
from constants import (
    EXCHANGE_FEE,
    PROJECTION_PERIODS,
    RENT_CYCLES_PER_DAY,
    TOKEN_PRICE_FIAT,
    WATT_OVERHEAD_FACTOR,
)
from inventory_service import Inventory, active_miners, items_of_category
from session_state import InventoryItem


def _miner_entry(miner: InventoryItem) -> Optional[CatalogEntry]:
    return catalog_service.get_catalog_entry("miner", miner.catalog_id)


def active_power(inventory: Inventory, now_s: float) -> float:
    total = 0.0
    for miner in active_miners(inventory, now_s):
        entry = _miner_entry(miner)
        if entry:
            total += entry.power_draw
    return total


def active_daily_yield(inventory: Inventory, now_s: float) -> float:
    total = 0.0
    for miner in active_miners(inventory, now_s):
        entry = _miner_entry(miner)
        if entry:
            total += entry.daily_yield
    return total


def active_watt_draw(inventory: Inventory, now_s: float) -> int:
    total = 0
    for miner in active_miners(inventory, now_s):
        entry = _miner_entry(miner)
        if entry:
            total += math.floor(entry.power_draw * WATT_OVERHEAD_FACTOR)
    return total


def total_rent_liability(inventory: Inventory) -> float:
    """Rent per 12h cycle across every owned room, powered or not."""
    total = 0.0
    for room in items_of_category(inventory, "room"):
        entry = catalog_service.get_catalog_entry("room", room.catalog_id)
        if entry:
            total += entry.rent_cost
    return total


def financial_projection(
    daily_yield: float,
    rent_per_cycle: float,
    token_price: float = TOKEN_PRICE_FIAT,
    exchange_fee_rate: float = EXCHANGE_FEE,
) -> Dict[str, Any]:
    """Daily gross / energy / fee / net figures and their 1, 7 and 30 day multiples.

    Energy cost is the per-cycle rent doubled, since a day has two 12h cycles.
    """
    daily_gross = daily_yield * token_price
    daily_energy = rent_per_cycle * RENT_CYCLES_PER_DAY
    daily_fee = daily_gross * exchange_fee_rate
    daily_net = daily_gross - daily_energy - daily_fee
    margin = (daily_net / daily_gross) if daily_gross > 0 else 0.0

    periods: List[Dict[str, Any]] = []
    for period in PROJECTION_PERIODS:
        mult = period["days"]
        periods.append(
            {
                "id": period["id"],
                "label": period["label"],
                "days": mult,
                "token_produced": daily_yield * mult,
                "gross": daily_gross * mult,
                "energy_cost": daily_energy * mult,
                "exchange_fee": daily_fee * mult,
                "net": daily_net * mult,
            }
        )

    return {
        "daily_yield": daily_yield,
        "token_price": token_price,
        "daily_gross": daily_gross,
        "daily_energy_cost": daily_energy,
        "daily_exchange_fee": daily_fee,
        "daily_net": daily_net,
        "margin": margin,
        "periods": periods,
    }


def build_production_payload(inventory: Inventory, now_s: float) -> Dict[str, Any]:
    daily = active_daily_yield(inventory, now_s)
    rent = total_rent_liability(inventory)
    return {
        "active_power": active_power(inventory, now_s),
        "active_daily_yield": daily,
        "active_watt_draw": active_watt_draw(inventory, now_s),
        "active_miner_count": len(active_miners(inventory, now_s)),
        "rent_liability_per_cycle": rent,
        "projection": financial_projection(daily, rent),
    }
