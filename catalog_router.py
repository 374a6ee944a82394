"""
Catalog API routes.

Handles:
  /api/health
  /api/catalog/items
"""

import sqlite3
from typing import Any, Dict

from fastapi import APIRouter, Depends

import catalog_service
from db import get_db

router = APIRouter(tags=["catalog"])


@router.get("/api/catalog/items")
def api_catalog_items() -> Dict[str, Any]:
    return catalog_service.build_catalog_payload()


@router.get("/api/health")
def api_health(conn: sqlite3.Connection = Depends(get_db)) -> Dict[str, Any]:
    conn.execute("SELECT 1")
    return {
        "ok": True,
        "service": "hashrack-db",
    }
