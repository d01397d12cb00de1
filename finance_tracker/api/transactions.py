from datetime import date
from typing import Any, Dict, List, Optional
import sqlite3

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse

from .. import schemas
from ..auth import get_current_user
from ..db import get_db_conn
from ..schemas.transactions import TransactionType

router = APIRouter(prefix="/api/transactions", tags=["transactions"])


def _get_user_transaction(db_conn: sqlite3.Connection, tx_id: int, user_id: int) -> sqlite3.Row:
    row = db_conn.execute(
        "SELECT * FROM transactions WHERE id = ? AND user_id = ?",
        (tx_id, user_id),
    ).fetchone()
    if not row:
        raise HTTPException(status_code=404, detail="Transaction not found")
    return row


@router.get("", response_model=List[schemas.Transaction])
async def api_get_transactions(
    type: Optional[TransactionType] = None,
    category: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    user: Dict[str, Any] = Depends(get_current_user),
    db_conn: sqlite3.Connection = Depends(get_db_conn),
) -> List[schemas.Transaction]:
    """Get the caller's transactions with optional filtering."""
    query = "SELECT * FROM transactions WHERE user_id = ?"
    params: List[Any] = [user["id"]]

    if type:
        query += " AND type = ?"
        params.append(type)
    if category:
        query += " AND category = ?"
        params.append(category)
    if start_date:
        query += " AND date >= ?"
        params.append(start_date.isoformat())
    if end_date:
        query += " AND date <= ?"
        params.append(end_date.isoformat())

    query += " ORDER BY date DESC, id DESC"
    rows = db_conn.execute(query, params).fetchall()
    return [schemas.Transaction(**dict(row)) for row in rows]


@router.get("/{tx_id}", response_model=schemas.Transaction)
async def api_get_transaction(
    tx_id: int,
    user: Dict[str, Any] = Depends(get_current_user),
    db_conn: sqlite3.Connection = Depends(get_db_conn),
) -> schemas.Transaction:
    return schemas.Transaction(**dict(_get_user_transaction(db_conn, tx_id, user["id"])))


@router.post("", response_model=schemas.Transaction, status_code=status.HTTP_201_CREATED)
async def api_create_transaction(
    tr: schemas.TransactionCreate,
    user: Dict[str, Any] = Depends(get_current_user),
    db_conn: sqlite3.Connection = Depends(get_db_conn),
) -> schemas.Transaction:
    """Create a new transaction; date defaults to today."""
    tx_date = tr.date or date.today()
    cur = db_conn.execute(
        "INSERT INTO transactions (user_id, amount, type, category, description, date) "
        "VALUES (?, ?, ?, ?, ?, ?)",
        (
            user["id"],
            tr.amount,
            tr.type,
            tr.category,
            tr.description or None,
            tx_date.isoformat(),
        ),
    )
    db_conn.commit()
    row = db_conn.execute("SELECT * FROM transactions WHERE id = ?", (cur.lastrowid,)).fetchone()
    return schemas.Transaction(**dict(row))


@router.put("/{tx_id}", response_model=schemas.Transaction)
async def api_update_transaction(
    tx_id: int,
    update: schemas.TransactionUpdate,
    user: Dict[str, Any] = Depends(get_current_user),
    db_conn: sqlite3.Connection = Depends(get_db_conn),
) -> schemas.Transaction:
    """Update an existing transaction."""
    _get_user_transaction(db_conn, tx_id, user["id"])

    fields = update.model_dump(exclude_unset=True)
    # NOT NULL columns cannot be cleared
    for key in ("amount", "type", "category", "date"):
        if key in fields and fields[key] is None:
            del fields[key]
    if "date" in fields:
        fields["date"] = fields["date"].isoformat()
    if not fields:
        raise HTTPException(status_code=400, detail="No fields to update")

    set_clause = ", ".join([f"{k} = ?" for k in fields.keys()])
    params = list(fields.values()) + [tx_id, user["id"]]
    db_conn.execute(f"UPDATE transactions SET {set_clause} WHERE id = ? AND user_id = ?", params)
    db_conn.commit()

    return schemas.Transaction(**dict(_get_user_transaction(db_conn, tx_id, user["id"])))


@router.delete("/{tx_id}")
async def api_delete_transaction(
    tx_id: int,
    user: Dict[str, Any] = Depends(get_current_user),
    db_conn: sqlite3.Connection = Depends(get_db_conn),
) -> JSONResponse:
    """Delete a transaction."""
    _get_user_transaction(db_conn, tx_id, user["id"])
    db_conn.execute("DELETE FROM transactions WHERE id = ? AND user_id = ?", (tx_id, user["id"]))
    db_conn.commit()
    return JSONResponse(content={"deleted": True})
