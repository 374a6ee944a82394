import asyncio
import logging
import os
from typing import Any, Dict, List

from fastapi import Depends, FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from admin_game_router import router as admin_game_router
from bank_router import router as bank_router
from catalog_router import router as catalog_router
from db import connect_db
from db_migrations import apply_migrations
from game_errors import GameActionError
from game_services import (
    GameSession,
    build_state_payload,
    get_game_session,
    load_simulation_clock_state,
)
from inventory_router import router as inventory_router
from profile_router import router as profile_router
from shop_router import router as shop_router
from sim_service import clock_payload

DECAY_INTERVAL_S = float(os.environ.get("DECAY_INTERVAL_S", "5"))
RENT_INTERVAL_S = float(os.environ.get("RENT_INTERVAL_S", "1"))
PERSIST_INTERVAL_S = float(os.environ.get("PERSIST_INTERVAL_S", "10"))
DISABLE_BACKGROUND_TASKS = os.environ.get("DISABLE_BACKGROUND_TASKS", "").strip().lower() in {"1", "true", "yes", "on"}

app = FastAPI()
app.include_router(catalog_router)
app.include_router(shop_router)
app.include_router(inventory_router)
app.include_router(bank_router)
app.include_router(profile_router)
app.include_router(admin_game_router)


@app.exception_handler(GameActionError)
def _game_action_error(request: Request, exc: GameActionError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"ok": False, "error": exc.kind, "detail": exc.detail},
    )


def persist_game_session(session: GameSession) -> None:
    conn = connect_db()
    try:
        session.save(conn)
    finally:
        conn.close()


async def _interval_loop(name: str, interval_s: float, step) -> None:
    while True:
        await asyncio.sleep(interval_s)
        try:
            # Steps take the session lock and hit sqlite; keep them off the event loop.
            await run_in_threadpool(step)
        except Exception:
            logging.exception("Background %s step failed", name)


@app.on_event("startup")
async def _startup():
    conn = connect_db()
    try:
        apply_migrations(conn)
        load_simulation_clock_state(conn)
        session = GameSession.load(conn)
        session.save(conn)
    finally:
        conn.close()

    app.state.game_session = session
    app.state.background_tasks = []
    if DISABLE_BACKGROUND_TASKS:
        return

    app.state.background_tasks = [
        asyncio.create_task(_interval_loop("decay", DECAY_INTERVAL_S, lambda: app.state.game_session.tick_decay())),
        asyncio.create_task(_interval_loop("rent", RENT_INTERVAL_S, lambda: app.state.game_session.tick_rent())),
        asyncio.create_task(
            _interval_loop("persist", PERSIST_INTERVAL_S, lambda: persist_game_session(app.state.game_session))
        ),
    ]


@app.on_event("shutdown")
async def _shutdown():
    tasks: List[asyncio.Task] = getattr(app.state, "background_tasks", [])
    for task in tasks:
        task.cancel()
    if tasks:
        await asyncio.gather(*tasks, return_exceptions=True)

    session = getattr(app.state, "game_session", None)
    if session is not None:
        await run_in_threadpool(persist_game_session, session)


@app.get("/api/time")
def api_time() -> Dict[str, Any]:
    return clock_payload()


@app.get("/api/state")
def api_state(session: GameSession = Depends(get_game_session)) -> Dict[str, Any]:
    return session.run(build_state_payload)


@app.get("/api/notifications")
def api_notifications(session: GameSession = Depends(get_game_session)) -> Dict[str, Any]:
    return {"notifications": session.drain_notifications()}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        app,
        host=os.environ.get("HOST", "127.0.0.1"),
        port=int(os.environ.get("PORT", "8000")),
        log_level="info",
    )
