from typing import Any, Dict, List, Optional
import sqlite3

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import JSONResponse

from .. import schemas
from ..auth import get_current_user
from ..db import get_db_conn
from ..schemas.budgets import MONTH_PATTERN
from ..services.statistics_service import get_category_spent
from .ownership import get_owned_row

router = APIRouter(prefix="/api/budgets", tags=["budgets"])

_NOT_FOUND = "Budget not found"


def _with_spent(db_conn: sqlite3.Connection, row: Dict[str, Any]) -> schemas.Budget:
    limit = float(row["amount_limit"])
    spent = get_category_spent(db_conn, row["user_id"], row["category"], row["month"])
    return schemas.Budget(
        id=row["id"],
        user_id=row["user_id"],
        category=row["category"],
        limit=limit,
        month=row["month"],
        spent=spent,
        remaining=limit - spent,
        percentage=(spent / limit) * 100 if limit else 0.0,
        created_at=row["created_at"],
    )


@router.get("", response_model=List[schemas.Budget])
async def api_get_budgets(
    month: Optional[str] = Query(default=None, pattern=MONTH_PATTERN),
    user: Dict[str, Any] = Depends(get_current_user),
    db_conn: sqlite3.Connection = Depends(get_db_conn),
) -> List[schemas.Budget]:
    """Budgets with the amount spent in their category during their month."""
    query = "SELECT * FROM budgets WHERE user_id = ?"
    params: List[Any] = [user["id"]]
    if month:
        query += " AND month = ?"
        params.append(month)
    query += " ORDER BY created_at DESC, id DESC"
    rows = db_conn.execute(query, params).fetchall()
    return [_with_spent(db_conn, dict(row)) for row in rows]


@router.post("", response_model=schemas.Budget, status_code=status.HTTP_201_CREATED)
async def api_create_budget(
    budget: schemas.BudgetCreate,
    user: Dict[str, Any] = Depends(get_current_user),
    db_conn: sqlite3.Connection = Depends(get_db_conn),
) -> schemas.Budget:
    exists = db_conn.execute(
        "SELECT 1 FROM budgets WHERE user_id = ? AND category = ? AND month = ?",
        (user["id"], budget.category, budget.month),
    ).fetchone()
    if exists:
        raise HTTPException(status_code=400, detail="Budget for this category and month already exists")

    cur = db_conn.execute(
        "INSERT INTO budgets (user_id, category, amount_limit, month) VALUES (?, ?, ?, ?)",
        (user["id"], budget.category, budget.limit, budget.month),
    )
    db_conn.commit()
    row = db_conn.execute("SELECT * FROM budgets WHERE id = ?", (cur.lastrowid,)).fetchone()
    return _with_spent(db_conn, dict(row))


@router.put("/{budget_id}", response_model=schemas.Budget)
async def api_update_budget(
    budget_id: int,
    update: schemas.BudgetUpdate,
    user: Dict[str, Any] = Depends(get_current_user),
    db_conn: sqlite3.Connection = Depends(get_db_conn),
) -> schemas.Budget:
    get_owned_row(db_conn, "budgets", budget_id, user["id"], _NOT_FOUND)
    if update.limit is None:
        raise HTTPException(status_code=400, detail="No fields to update")
    db_conn.execute("UPDATE budgets SET amount_limit = ? WHERE id = ?", (update.limit, budget_id))
    db_conn.commit()
    row = db_conn.execute("SELECT * FROM budgets WHERE id = ?", (budget_id,)).fetchone()
    return _with_spent(db_conn, dict(row))


@router.delete("/{budget_id}")
async def api_delete_budget(
    budget_id: int,
    user: Dict[str, Any] = Depends(get_current_user),
    db_conn: sqlite3.Connection = Depends(get_db_conn),
) -> JSONResponse:
    get_owned_row(db_conn, "budgets", budget_id, user["id"], _NOT_FOUND)
    db_conn.execute("DELETE FROM budgets WHERE id = ?", (budget_id,))
    db_conn.commit()
    return JSONResponse(content={"deleted": True})
