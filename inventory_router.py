"""
Inventory, room and miner API routes.

Handles:
  /api/inventory
  /api/inventory/install
  /api/inventory/uninstall
  /api/inventory/recycle
  /api/rooms/rent_quote
  /api/rooms/pay_rent_bulk
  /api/rooms/{room_uid}/pay_rent
  /api/rooms/{room_uid}/auto_pay
  /api/rooms/{room_uid}/demolish
  /api/rooms/{room_uid}/demolish/confirm
  /api/rooms/demolish/cancel
  /api/miners/{miner_uid}/repair
"""

from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

import economy_service
import inventory_service
from game_services import GameSession, build_inventory_payload, get_game_session

router = APIRouter(tags=["inventory"])


# ── Pydantic models ────────────────────────────────────────

class InstallReq(BaseModel):
    item_uid: str
    parent_uid: str


class ItemReq(BaseModel):
    item_uid: str


class BulkRentReq(BaseModel):
    tier: str


def _require_uid(raw: str, field: str) -> str:
    uid = (raw or "").strip()
    if not uid:
        raise HTTPException(status_code=400, detail=f"{field} is required")
    return uid


# ── Inventory ──────────────────────────────────────────────

@router.get("/api/inventory")
def api_inventory(session: GameSession = Depends(get_game_session)) -> Dict[str, Any]:
    return session.run(build_inventory_payload)


@router.post("/api/inventory/install")
def api_inventory_install(req: InstallReq, session: GameSession = Depends(get_game_session)) -> Dict[str, Any]:
    item_uid = _require_uid(req.item_uid, "item_uid")
    parent_uid = _require_uid(req.parent_uid, "parent_uid")
    item = session.run(
        lambda state, now_s: inventory_service.install(state, item_uid, parent_uid, now_s).to_dict()
    )
    return {"ok": True, "item": item}


@router.post("/api/inventory/uninstall")
def api_inventory_uninstall(req: ItemReq, session: GameSession = Depends(get_game_session)) -> Dict[str, Any]:
    item_uid = _require_uid(req.item_uid, "item_uid")
    item = session.run(lambda state, now_s: inventory_service.uninstall(state, item_uid, now_s).to_dict())
    return {"ok": True, "item": item}


@router.post("/api/inventory/recycle")
def api_inventory_recycle(req: ItemReq, session: GameSession = Depends(get_game_session)) -> Dict[str, Any]:
    item_uid = _require_uid(req.item_uid, "item_uid")
    result = session.run(lambda state, now_s: economy_service.recycle(state, item_uid, now_s))
    return {"ok": True, **result}


# ── Rooms ──────────────────────────────────────────────────

@router.get("/api/rooms/rent_quote")
def api_rooms_rent_quote(tier: str, session: GameSession = Depends(get_game_session)) -> Dict[str, Any]:
    tier_id = (tier or "").strip().lower()
    return session.run(lambda state, now_s: economy_service.quote_rent_bulk(state, tier_id, now_s))


@router.post("/api/rooms/pay_rent_bulk")
def api_rooms_pay_rent_bulk(req: BulkRentReq, session: GameSession = Depends(get_game_session)) -> Dict[str, Any]:
    result = session.run(lambda state, now_s: economy_service.pay_rent_bulk(state, req.tier, now_s))
    session.emit(f"Energy restored for {result['settled_count']} {result['tier']} rooms", "success", "rent_paid")
    return {"ok": True, **result}


@router.post("/api/rooms/demolish/cancel")
def api_rooms_demolish_cancel(session: GameSession = Depends(get_game_session)) -> Dict[str, Any]:
    result = session.run(lambda state, now_s: economy_service.cancel_demolition(state))
    return {"ok": True, **result}


@router.post("/api/rooms/{room_uid}/pay_rent")
def api_room_pay_rent(room_uid: str, session: GameSession = Depends(get_game_session)) -> Dict[str, Any]:
    uid = _require_uid(room_uid, "room_uid")
    result = session.run(lambda state, now_s: economy_service.pay_rent(state, uid, now_s))
    return {"ok": True, **result}


@router.post("/api/rooms/{room_uid}/auto_pay")
def api_room_toggle_auto_pay(room_uid: str, session: GameSession = Depends(get_game_session)) -> Dict[str, Any]:
    uid = _require_uid(room_uid, "room_uid")
    result = session.run(lambda state, now_s: economy_service.toggle_auto_pay(state, uid))
    return {"ok": True, **result}


@router.post("/api/rooms/{room_uid}/demolish")
def api_room_demolish(room_uid: str, session: GameSession = Depends(get_game_session)) -> Dict[str, Any]:
    uid = _require_uid(room_uid, "room_uid")
    result = session.run(lambda state, now_s: economy_service.propose_demolition(state, uid))
    return {"ok": True, **result}


@router.post("/api/rooms/{room_uid}/demolish/confirm")
def api_room_demolish_confirm(room_uid: str, session: GameSession = Depends(get_game_session)) -> Dict[str, Any]:
    uid = _require_uid(room_uid, "room_uid")
    result = session.run(lambda state, now_s: economy_service.confirm_demolition(state, uid, now_s))
    session.emit(f"Room demolished (+{result['reward']:.2f})", "success", "room_demolished")
    return {"ok": True, **result}


# ── Miners ─────────────────────────────────────────────────

@router.post("/api/miners/{miner_uid}/repair")
def api_miner_repair(miner_uid: str, session: GameSession = Depends(get_game_session)) -> Dict[str, Any]:
    uid = _require_uid(miner_uid, "miner_uid")
    result = session.run(lambda state, now_s: economy_service.repair(state, uid, now_s))
    return {"ok": True, **result}
