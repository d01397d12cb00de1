from typing import Any, Dict, List
import logging
import sqlite3

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse

from .. import recurrence
from .. import schemas
from ..auth import get_current_user
from ..core import config
from ..db import get_db_conn
from .ownership import get_owned_row

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/recurring", tags=["recurring"])
system_router = APIRouter(prefix="/api/system", tags=["system"])

_NOT_FOUND = "Recurring transaction not found"


def _to_schema(rec: Dict[str, Any]) -> schemas.RecurringTransaction:
    rec = dict(rec)
    rec["is_active"] = bool(rec["is_active"])
    rec["next_due_date"] = recurrence.due_date(rec) if rec["is_active"] else None
    return schemas.RecurringTransaction(**rec)


@router.get("", response_model=List[schemas.RecurringTransaction])
async def api_get_recurring(
    user: Dict[str, Any] = Depends(get_current_user),
    db_conn: sqlite3.Connection = Depends(get_db_conn),
) -> List[schemas.RecurringTransaction]:
    """Get the caller's recurring transactions, newest first."""
    rows = db_conn.execute(
        "SELECT * FROM recurring_transactions WHERE user_id = ? ORDER BY created_at DESC, id DESC",
        (user["id"],),
    ).fetchall()
    return [_to_schema(dict(row)) for row in rows]


@router.post("", response_model=schemas.RecurringTransaction, status_code=status.HTTP_201_CREATED)
async def api_create_recurring(
    rec: schemas.RecurringCreate,
    user: Dict[str, Any] = Depends(get_current_user),
    db_conn: sqlite3.Connection = Depends(get_db_conn),
) -> schemas.RecurringTransaction:
    """Create a new recurring transaction. It is first due on its start date."""
    cur = db_conn.execute(
        "INSERT INTO recurring_transactions "
        "(user_id, amount, type, category, description, frequency, start_date, end_date, is_active) "
        "VALUES (?, ?, ?, ?, ?, ?, ?, ?, 1)",
        (
            user["id"],
            rec.amount,
            rec.type,
            rec.category,
            rec.description or None,
            rec.frequency,
            rec.start_date.isoformat(),
            rec.end_date.isoformat() if rec.end_date else None,
        ),
    )
    db_conn.commit()
    row = db_conn.execute("SELECT * FROM recurring_transactions WHERE id = ?", (cur.lastrowid,)).fetchone()
    return _to_schema(dict(row))


@router.put("/{rec_id}", response_model=schemas.RecurringTransaction)
async def api_update_recurring(
    rec_id: int,
    update: schemas.RecurringUpdate,
    user: Dict[str, Any] = Depends(get_current_user),
    db_conn: sqlite3.Connection = Depends(get_db_conn),
) -> schemas.RecurringTransaction:
    """Update amount, description or active flag of a recurring transaction."""
    get_owned_row(db_conn, "recurring_transactions", rec_id, user["id"], _NOT_FOUND)

    fields = update.model_dump(exclude_unset=True)
    for key in ("amount", "is_active"):
        if key in fields and fields[key] is None:
            del fields[key]
    if "is_active" in fields:
        fields["is_active"] = 1 if fields["is_active"] else 0
    if not fields:
        raise HTTPException(status_code=400, detail="No fields to update")

    set_clause = ", ".join([f"{k} = ?" for k in fields.keys()])
    params = list(fields.values()) + [rec_id]
    db_conn.execute(f"UPDATE recurring_transactions SET {set_clause} WHERE id = ?", params)
    db_conn.commit()

    row = db_conn.execute("SELECT * FROM recurring_transactions WHERE id = ?", (rec_id,)).fetchone()
    if not row:
        raise HTTPException(status_code=404, detail=_NOT_FOUND)
    return _to_schema(dict(row))


@router.delete("/{rec_id}")
async def api_delete_recurring(
    rec_id: int,
    user: Dict[str, Any] = Depends(get_current_user),
    db_conn: sqlite3.Connection = Depends(get_db_conn),
) -> JSONResponse:
    """Delete a recurring transaction. Transactions it already generated are kept."""
    get_owned_row(db_conn, "recurring_transactions", rec_id, user["id"], _NOT_FOUND)
    db_conn.execute("DELETE FROM recurring_transactions WHERE id = ?", (rec_id,))
    db_conn.commit()
    return JSONResponse(content={"deleted": True})


@router.patch("/{rec_id}/toggle", response_model=schemas.RecurringTransaction)
async def api_toggle_recurring(
    rec_id: int,
    user: Dict[str, Any] = Depends(get_current_user),
    db_conn: sqlite3.Connection = Depends(get_db_conn),
) -> schemas.RecurringTransaction:
    """Flip the active flag. The processing marker and end date are left as they are."""
    get_owned_row(db_conn, "recurring_transactions", rec_id, user["id"], _NOT_FOUND)
    db_conn.execute(
        "UPDATE recurring_transactions SET is_active = CASE WHEN is_active THEN 0 ELSE 1 END WHERE id = ?",
        (rec_id,),
    )
    db_conn.commit()
    row = db_conn.execute("SELECT * FROM recurring_transactions WHERE id = ?", (rec_id,)).fetchone()
    return _to_schema(dict(row))


@system_router.post("/process-recurring")
def api_process_recurring() -> JSONResponse:
    """Run recurring transaction processing once, on demand."""
    if not config.MANUAL_PROCESSING_ENABLED:
        raise HTTPException(status_code=403, detail="On-demand processing is disabled")
    processed = recurrence.process_all()
    logger.info("On-demand recurring processing: processed=%s", processed)
    return JSONResponse(content={"processed": processed, "status": "ok"})
