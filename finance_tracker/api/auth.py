import logging
import sqlite3
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, status

from .. import schemas
from ..auth import (
    create_access_token,
    get_current_user,
    hash_password,
    public,
    verify_password,
)
from ..db import get_db_conn

logger = logging.getLogger("finance_tracker.auth")

router = APIRouter(prefix="/api/auth", tags=["auth"])


def _user_out(row: sqlite3.Row) -> schemas.User:
    return schemas.User(id=row["id"], email=row["email"], name=row["name"], created_at=row["created_at"])


@router.post("/register", response_model=schemas.AuthResponse, status_code=status.HTTP_201_CREATED)
@public
async def api_register(
    payload: schemas.UserCreate,
    db_conn: sqlite3.Connection = Depends(get_db_conn),
) -> schemas.AuthResponse:
    """Create an account and return a signed access token."""
    email = payload.email.lower()
    exists = db_conn.execute("SELECT 1 FROM users WHERE email = ?", (email,)).fetchone()
    if exists:
        raise HTTPException(status_code=400, detail="User already exists")

    cur = db_conn.execute(
        "INSERT INTO users (email, password_hash, name) VALUES (?, ?, ?)",
        (email, hash_password(payload.password), payload.name),
    )
    db_conn.commit()
    row = db_conn.execute("SELECT * FROM users WHERE id = ?", (cur.lastrowid,)).fetchone()
    logger.info("Registered user %s", row["id"])
    return schemas.AuthResponse(
        message="User registered",
        user=_user_out(row),
        token=create_access_token(row["id"], row["email"]),
    )


@router.post("/login", response_model=schemas.AuthResponse)
@public
async def api_login(
    payload: schemas.UserLogin,
    db_conn: sqlite3.Connection = Depends(get_db_conn),
) -> schemas.AuthResponse:
    row = db_conn.execute("SELECT * FROM users WHERE email = ?", (payload.email.lower(),)).fetchone()
    if not row or not verify_password(payload.password, row["password_hash"]):
        logger.info("Failed login for %s", payload.email)
        raise HTTPException(status_code=401, detail="Invalid email or password")
    return schemas.AuthResponse(
        message="Logged in",
        user=_user_out(row),
        token=create_access_token(row["id"], row["email"]),
    )


@router.get("/me", response_model=schemas.User)
async def api_me(
    user: Dict[str, Any] = Depends(get_current_user),
    db_conn: sqlite3.Connection = Depends(get_db_conn),
) -> schemas.User:
    row = db_conn.execute("SELECT * FROM users WHERE id = ?", (user["id"],)).fetchone()
    if not row:
        raise HTTPException(status_code=404, detail="User not found")
    return _user_out(row)
