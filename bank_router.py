"""
Bank and mining-pool API routes.

Handles:
  /api/bank/deposit
  /api/bank/withdraw
  /api/bank/withdraw_fee
  /api/bank/exchange
  /api/pool/collect
"""

from typing import Any, Dict

from fastapi import APIRouter, Depends
from pydantic import BaseModel

import economy_service
from game_services import GameSession, get_game_session

router = APIRouter(tags=["bank"])


# ── Pydantic models ────────────────────────────────────────

class AmountReq(BaseModel):
    amount: float


# ── Routes ─────────────────────────────────────────────────

@router.post("/api/bank/deposit")
def api_bank_deposit(req: AmountReq, session: GameSession = Depends(get_game_session)) -> Dict[str, Any]:
    result = session.run(lambda state, now_s: economy_service.deposit(state, req.amount, now_s))
    return {"ok": True, **result}


@router.get("/api/bank/withdraw_fee")
def api_bank_withdraw_fee(amount: float = 0.0, session: GameSession = Depends(get_game_session)) -> Dict[str, Any]:
    return session.run(lambda state, now_s: economy_service.quote_withdrawal(state, max(0.0, amount), now_s))


@router.post("/api/bank/withdraw")
def api_bank_withdraw(req: AmountReq, session: GameSession = Depends(get_game_session)) -> Dict[str, Any]:
    result = session.run(lambda state, now_s: economy_service.withdraw(state, req.amount, now_s))
    return {"ok": True, **result}


@router.post("/api/bank/exchange")
def api_bank_exchange(session: GameSession = Depends(get_game_session)) -> Dict[str, Any]:
    result = session.run(economy_service.exchange_all)
    return {"ok": True, **result}


@router.post("/api/pool/collect")
def api_pool_collect(session: GameSession = Depends(get_game_session)) -> Dict[str, Any]:
    result = session.run(economy_service.collect_pending_pool)
    session.emit(f"Collected {result['collected']:.2f} from the pool", "success", "pool_collected")
    return {"ok": True, **result}
