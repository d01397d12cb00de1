# finance_tracker/db.py
"""
Database connection and initialization helpers.
This file is the single source of truth for opening the SQLite connection.
"""

import logging
import os
import sqlite3
from pathlib import Path
from typing import Generator

from .core import config

logger = logging.getLogger(__name__)

# Can be overridden with FINANCE_DB_PATH so tests run against a throwaway copy
DB_PATH = Path(config.DB_PATH)


def get_connection() -> sqlite3.Connection:
    conn = sqlite3.connect(
        str(DB_PATH),
        check_same_thread=False,  # connections cross the threadpool and the scheduler thread
    )
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


def get_db_conn() -> Generator[sqlite3.Connection, None, None]:
    """
    Dependency for FastAPI to get database connection.
    """
    conn = get_connection()
    try:
        yield conn
    finally:
        conn.close()


def get_db_path() -> str:
    """Get the database file path."""
    return str(DB_PATH)


def _reset_database_if_requested() -> None:
    """Delete the database file when FORCE_DB_RESET=1."""
    flag = os.environ.get("FORCE_DB_RESET", "").strip()
    if flag != "1":
        return
    if DB_PATH.exists():
        logger.warning("FORCE_DB_RESET=1: removing %s", DB_PATH)
        DB_PATH.unlink()


def _ensure_column(cur: sqlite3.Cursor, table: str, column: str, ddl: str) -> None:
    cols = [r[1] for r in cur.execute(f"PRAGMA table_info('{table}')").fetchall()]
    if column not in cols:
        cur.execute(f"ALTER TABLE {table} ADD COLUMN {column} {ddl}")


def initialise_database() -> None:
    """Create database tables if they don't exist."""
    _reset_database_if_requested()
    DB_PATH.parent.mkdir(parents=True, exist_ok=True)
    conn = get_connection()

    cur = conn.cursor()

    cur.execute("""
        CREATE TABLE IF NOT EXISTS users (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            email TEXT NOT NULL UNIQUE,
            password_hash TEXT NOT NULL,
            name TEXT,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    """)

    cur.execute("""
        CREATE TABLE IF NOT EXISTS recurring_transactions (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id INTEGER NOT NULL,
            amount REAL NOT NULL CHECK (amount > 0),
            type TEXT NOT NULL CHECK (type IN ('income', 'expense')),
            category TEXT NOT NULL,
            description TEXT,
            frequency TEXT NOT NULL,
            start_date TEXT NOT NULL,
            end_date TEXT,
            last_processed_date TEXT,
            is_active BOOLEAN NOT NULL DEFAULT 1,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            FOREIGN KEY (user_id) REFERENCES users (id) ON DELETE CASCADE
        )
    """)

    # recurring_id is a soft link: deleting a series keeps the transactions it generated
    cur.execute("""
        CREATE TABLE IF NOT EXISTS transactions (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id INTEGER NOT NULL,
            amount REAL NOT NULL CHECK (amount > 0),
            type TEXT NOT NULL CHECK (type IN ('income', 'expense')),
            category TEXT NOT NULL,
            description TEXT,
            date TEXT NOT NULL,
            recurring_id INTEGER,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            FOREIGN KEY (user_id) REFERENCES users (id) ON DELETE CASCADE
        )
    """)
    cur.execute("CREATE INDEX IF NOT EXISTS idx_transactions_user_date ON transactions (user_id, date)")

    cur.execute("""
        CREATE TABLE IF NOT EXISTS budgets (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id INTEGER NOT NULL,
            category TEXT NOT NULL,
            amount_limit REAL NOT NULL,
            month TEXT NOT NULL,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            FOREIGN KEY (user_id) REFERENCES users (id) ON DELETE CASCADE,
            UNIQUE (user_id, category, month)
        )
    """)

    cur.execute("""
        CREATE TABLE IF NOT EXISTS goals (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id INTEGER NOT NULL,
            title TEXT NOT NULL,
            target_amount REAL NOT NULL,
            current_amount REAL NOT NULL DEFAULT 0,
            deadline TEXT,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            FOREIGN KEY (user_id) REFERENCES users (id) ON DELETE CASCADE
        )
    """)

    # --- Migrations ---
    try:
        _ensure_column(cur, "transactions", "recurring_id", "INTEGER")
        _ensure_column(cur, "recurring_transactions", "last_processed_date", "TEXT")
    except sqlite3.Error:
        # Migration best-effort; do not fail app startup
        logger.exception("Schema migration failed")

    conn.commit()
    conn.close()
