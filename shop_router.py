"""
Shop API routes.

Handles:
  /api/shop/{category}
  /api/shop/purchase
  /api/shop/open_box
"""

from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

import catalog_service
import economy_service
from game_services import GameSession, get_game_session

router = APIRouter(tags=["shop"])


# ── Pydantic models ────────────────────────────────────────

class PurchaseReq(BaseModel):
    catalog_id: str
    category: str


class OpenBoxReq(BaseModel):
    box_id: str


# ── Routes ─────────────────────────────────────────────────

@router.post("/api/shop/purchase")
def api_shop_purchase(req: PurchaseReq, session: GameSession = Depends(get_game_session)) -> Dict[str, Any]:
    catalog_id = (req.catalog_id or "").strip()
    if not catalog_id:
        raise HTTPException(status_code=400, detail="catalog_id is required")

    result = session.run(
        lambda state, now_s: economy_service.purchase(state, catalog_id, req.category, now_s, session.rng)
    )
    return {"ok": True, **result}


@router.post("/api/shop/open_box")
def api_shop_open_box(req: OpenBoxReq, session: GameSession = Depends(get_game_session)) -> Dict[str, Any]:
    box_id = (req.box_id or "").strip()
    if not box_id:
        raise HTTPException(status_code=400, detail="box_id is required")

    result = session.run(lambda state, now_s: economy_service.open_box(state, box_id, now_s, session.rng))
    session.emit(f"Box opened: {result['won']['name']} ({result['tier']})", "success", "box_opened")
    return {"ok": True, **result}


@router.get("/api/shop/{category}")
def api_shop_listing(category: str) -> Dict[str, Any]:
    tab = (category or "").strip().lower()
    if tab != "special" and not catalog_service.canonical_item_category(tab):
        raise HTTPException(status_code=404, detail=f"Unknown shop category '{category}'")

    return {
        "category": tab,
        "items": [e.to_payload() for e in catalog_service.list_shop_entries(tab)],
    }
