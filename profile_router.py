"""
Profile API routes.

Handles:
  /api/profile
  /api/profile/rename
  /api/profile/referral/redeem
"""

from typing import Any, Dict

from fastapi import APIRouter, Depends
from pydantic import BaseModel

import economy_service
from game_services import GameSession, build_profile_payload, get_game_session

router = APIRouter(tags=["profile"])


class RenameReq(BaseModel):
    username: str


@router.get("/api/profile")
def api_profile(session: GameSession = Depends(get_game_session)) -> Dict[str, Any]:
    return session.run(build_profile_payload)


@router.post("/api/profile/rename")
def api_profile_rename(req: RenameReq, session: GameSession = Depends(get_game_session)) -> Dict[str, Any]:
    result = session.run(lambda state, now_s: economy_service.rename_user(state, req.username))
    return {"ok": True, **result}


@router.post("/api/profile/referral/redeem")
def api_profile_referral_redeem(session: GameSession = Depends(get_game_session)) -> Dict[str, Any]:
    result = session.run(economy_service.redeem_referral)
    return {"ok": True, **result}
