from typing import Any, Dict, List
import sqlite3

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse

from .. import schemas
from ..auth import get_current_user
from ..db import get_db_conn

router = APIRouter(prefix="/api/goals", tags=["goals"])


def _get_user_goal(db_conn: sqlite3.Connection, goal_id: int, user_id: int) -> sqlite3.Row:
    row = db_conn.execute(
        "SELECT * FROM goals WHERE id = ? AND user_id = ?",
        (goal_id, user_id),
    ).fetchone()
    if not row:
        raise HTTPException(status_code=404, detail="Goal not found")
    return row


@router.get("", response_model=List[schemas.Goal])
async def api_get_goals(
    user: Dict[str, Any] = Depends(get_current_user),
    db_conn: sqlite3.Connection = Depends(get_db_conn),
) -> List[schemas.Goal]:
    rows = db_conn.execute(
        "SELECT * FROM goals WHERE user_id = ? ORDER BY created_at DESC, id DESC",
        (user["id"],),
    ).fetchall()
    return [schemas.Goal(**dict(row)) for row in rows]


@router.post("", response_model=schemas.Goal, status_code=status.HTTP_201_CREATED)
async def api_create_goal(
    goal: schemas.GoalCreate,
    user: Dict[str, Any] = Depends(get_current_user),
    db_conn: sqlite3.Connection = Depends(get_db_conn),
) -> schemas.Goal:
    cur = db_conn.execute(
        "INSERT INTO goals (user_id, title, target_amount, current_amount, deadline) VALUES (?, ?, ?, ?, ?)",
        (
            user["id"],
            goal.title,
            goal.target_amount,
            goal.current_amount,
            goal.deadline.isoformat() if goal.deadline else None,
        ),
    )
    db_conn.commit()
    return schemas.Goal(**dict(_get_user_goal(db_conn, cur.lastrowid, user["id"])))


@router.put("/{goal_id}", response_model=schemas.Goal)
async def api_update_goal(
    goal_id: int,
    update: schemas.GoalUpdate,
    user: Dict[str, Any] = Depends(get_current_user),
    db_conn: sqlite3.Connection = Depends(get_db_conn),
) -> schemas.Goal:
    """Partial update; an explicit null deadline clears it."""
    _get_user_goal(db_conn, goal_id, user["id"])

    fields = update.model_dump(exclude_unset=True)
    for key in ("title", "target_amount", "current_amount"):
        if key in fields and fields[key] is None:
            del fields[key]
    if fields.get("deadline") is not None:
        fields["deadline"] = fields["deadline"].isoformat()
    if not fields:
        raise HTTPException(status_code=400, detail="No fields to update")

    set_clause = ", ".join([f"{k} = ?" for k in fields.keys()])
    params = list(fields.values()) + [goal_id, user["id"]]
    db_conn.execute(f"UPDATE goals SET {set_clause} WHERE id = ? AND user_id = ?", params)
    db_conn.commit()
    return schemas.Goal(**dict(_get_user_goal(db_conn, goal_id, user["id"])))


@router.delete("/{goal_id}")
async def api_delete_goal(
    goal_id: int,
    user: Dict[str, Any] = Depends(get_current_user),
    db_conn: sqlite3.Connection = Depends(get_db_conn),
) -> JSONResponse:
    _get_user_goal(db_conn, goal_id, user["id"])
    db_conn.execute("DELETE FROM goals WHERE id = ? AND user_id = ?", (goal_id, user["id"]))
    db_conn.commit()
    return JSONResponse(content={"deleted": True})


@router.patch("/{goal_id}/add-progress", response_model=schemas.Goal)
async def api_add_goal_progress(
    goal_id: int,
    progress: schemas.GoalProgress,
    user: Dict[str, Any] = Depends(get_current_user),
    db_conn: sqlite3.Connection = Depends(get_db_conn),
) -> schemas.Goal:
    """Add a saved amount to the goal's current amount."""
    _get_user_goal(db_conn, goal_id, user["id"])
    db_conn.execute(
        "UPDATE goals SET current_amount = current_amount + ? WHERE id = ? AND user_id = ?",
        (progress.amount, goal_id, user["id"]),
    )
    db_conn.commit()
    return schemas.Goal(**dict(_get_user_goal(db_conn, goal_id, user["id"])))
