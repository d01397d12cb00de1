import sqlite3
from typing import Any, Dict

from fastapi import HTTPException

_TABLES = {"recurring_transactions", "budgets", "goals", "transactions"}


def get_owned_row(
    db_conn: sqlite3.Connection,
    table: str,
    row_id: int,
    user_id: int,
    not_found: str = "Not found",
) -> Dict[str, Any]:
    """Load a row by id; 404 if missing, 403 if it belongs to another user."""
    if table not in _TABLES:
        raise ValueError(f"unknown table {table!r}")
    row = db_conn.execute(f"SELECT * FROM {table} WHERE id = ?", (row_id,)).fetchone()
    if not row:
        raise HTTPException(status_code=404, detail=not_found)
    if row["user_id"] != user_id:
        raise HTTPException(status_code=403, detail="Access denied")
    return dict(row)
