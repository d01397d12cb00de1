"""
Analytics API endpoint for the dashboard.
"""

from typing import Any, Dict
import sqlite3

from fastapi import APIRouter, Depends

from ..auth import get_current_user
from ..db import get_db_conn
from ..services import statistics_service

router = APIRouter(prefix="/api/analytics", tags=["analytics"])


@router.get("")
async def api_get_analytics(
    user: Dict[str, Any] = Depends(get_current_user),
    db_conn: sqlite3.Connection = Depends(get_db_conn),
) -> Dict[str, Any]:
    """Totals, expenses per category, last six months, top expenses and month-over-month change."""
    return statistics_service.get_analytics(db_conn, user["id"])
