# finance_tracker/recurrence.py
"""
Logic for materializing recurring transactions.

A recurring series produces at most one concrete transaction per run.
Its `last_processed_date` marker records the last day it produced one,
and the next occurrence is computed from that marker (or from
`start_date` when the series has never run). A series whose next
occurrence is today or earlier is due: one transaction is inserted,
dated today, and the marker moves to today. Missed periods are not
replayed; a gap of several periods collapses into a single catch-up
transaction.

`process_all` is called once at startup and then daily by the
CronService, and on demand from the system API.
"""
from __future__ import annotations

import logging
import sqlite3
from datetime import date, datetime
from typing import Any, Mapping, Optional, Union

from dateutil.relativedelta import relativedelta

from . import db

# Runs inside the scheduler job, so it logs to scheduler.log as well
logger = logging.getLogger("finance_tracker.scheduler.recurrence")

FREQUENCIES = ("daily", "weekly", "monthly", "yearly")
AUTO_DESCRIPTION_PREFIX = "[AUTO]"

_STEPS = {
    "daily": relativedelta(days=1),
    "weekly": relativedelta(weeks=1),
    "monthly": relativedelta(months=1),
    "yearly": relativedelta(years=1),
}

DateLike = Union[date, datetime, str]


# --------- Helpers: dates ---------

def as_date(value: DateLike) -> date:
    """Normalize a date, datetime or ISO string to a calendar date (time-of-day dropped)."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value).strip()[:10])


def next_date(last_date: DateLike, frequency: Optional[str]) -> date:
    """Return the occurrence that follows `last_date`.

    Month and year steps clamp to the last valid day of the target month
    (Jan 31 -> Feb 28, Feb 29 -> Feb 28 next year). An unknown frequency
    is treated as monthly.
    """
    step = _STEPS.get((frequency or "").lower())
    if step is None:
        logger.debug("Unknown frequency %r; falling back to monthly", frequency)
        step = _STEPS["monthly"]
    return as_date(last_date) + step


def due_date(series: Mapping[str, Any]) -> date:
    """Next date on which the series should produce a transaction."""
    last = series.get("last_processed_date")
    if last:
        return next_date(last, series.get("frequency"))
    return as_date(series["start_date"])


def is_expired(series: Mapping[str, Any], today: date) -> bool:
    end = series.get("end_date")
    return bool(end) and today > as_date(end)


# --------- Core ---------

def _deactivate(conn: sqlite3.Connection, series_id: int) -> None:
    conn.execute(
        "UPDATE recurring_transactions SET is_active = 0 WHERE id = ? AND is_active = 1",
        (series_id,),
    )
    conn.commit()


def _materialize(conn: sqlite3.Connection, rec: Mapping[str, Any], today: date) -> bool:
    """Advance the marker and insert the generated transaction as one unit of work.

    The marker update only applies when the row still carries the marker
    read at scan time and is still active, so a concurrent edit, toggle,
    delete or overlapping run makes this a no-op instead of a duplicate.
    """
    cur = conn.execute(
        "UPDATE recurring_transactions SET last_processed_date = ? "
        "WHERE id = ? AND is_active = 1 AND last_processed_date IS ?",
        (today.isoformat(), rec["id"], rec["last_processed_date"]),
    )
    if cur.rowcount != 1:
        conn.rollback()
        logger.info("Recurring series %s changed during processing; skipped", rec["id"])
        return False

    description = rec["description"] or f"{AUTO_DESCRIPTION_PREFIX} {rec['category']}"
    conn.execute(
        "INSERT INTO transactions (user_id, amount, type, category, description, date, recurring_id) "
        "VALUES (?, ?, ?, ?, ?, ?, ?)",
        (
            rec["user_id"],
            rec["amount"],
            rec["type"],
            rec["category"],
            description,
            today.isoformat(),
            rec["id"],
        ),
    )
    conn.commit()
    return True


def process_all(today: Optional[DateLike] = None) -> int:
    """
    Materialize every due recurring series for `today` (defaults to the local date).

    Expired series are deactivated without producing a transaction. Each
    series is committed on its own; an error aborts the rest of the pass
    but keeps what was already committed. Errors are logged, never raised.
    Returns the number of transactions generated.
    """
    today = as_date(today) if today is not None else date.today()

    processed = 0
    conn: Optional[sqlite3.Connection] = None
    try:
        conn = db.get_connection()
        rows = conn.execute(
            "SELECT * FROM recurring_transactions WHERE is_active = 1"
        ).fetchall()

        for row in rows:
            rec = dict(row)

            if is_expired(rec, today):
                _deactivate(conn, rec["id"])
                logger.info("Recurring series %s expired on %s; deactivated", rec["id"], rec["end_date"])
                continue

            if due_date(rec) > today:
                continue

            if _materialize(conn, rec, today):
                processed += 1

        logger.info("Processed %s recurring transactions for %s", processed, today.isoformat())
    except Exception:
        logger.exception("Recurring transaction processing failed after %s series", processed)
        if conn is not None:
            conn.rollback()
    finally:
        if conn is not None:
            conn.close()
    return processed
