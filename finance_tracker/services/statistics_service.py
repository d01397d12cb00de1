import sqlite3
from datetime import date
from decimal import ROUND_FLOOR, Decimal
from typing import Any, Dict, List, Optional

from dateutil.relativedelta import relativedelta


def round_half_up(value: float) -> int:
    """Round to an integer with halves going up (2.5 -> 3, -2.5 -> -2)."""
    return int((Decimal(str(value)) + Decimal("0.5")).to_integral_value(rounding=ROUND_FLOOR))


def month_key(d: date) -> str:
    return d.strftime("%Y-%m")


def month_bounds(month: str) -> tuple:
    """[first day, first day of next month) for a 'YYYY-MM' key, as ISO strings."""
    start = date.fromisoformat(f"{month}-01")
    return start.isoformat(), (start + relativedelta(months=1)).isoformat()


def _pct_change(current: float, previous: float) -> int:
    if previous <= 0:
        return 0
    return round_half_up((current - previous) / previous * 100)


def get_category_spent(db_conn: sqlite3.Connection, user_id: int, category: str, month: str) -> float:
    start, end = month_bounds(month)
    row = db_conn.execute(
        """
        SELECT COALESCE(SUM(amount), 0) AS spent
        FROM transactions
        WHERE user_id = ? AND type = 'expense' AND category = ?
          AND date >= ? AND date < ?
        """,
        (user_id, category, start, end),
    ).fetchone()
    return float(row["spent"] or 0.0)


def get_totals(db_conn: sqlite3.Connection, user_id: int, since: Optional[date] = None) -> Dict[str, Any]:
    """Income, expense and count, optionally limited to transactions dated on/after `since`."""
    query = """
        SELECT COALESCE(SUM(CASE WHEN type = 'income' THEN amount ELSE 0 END), 0) AS income,
               COALESCE(SUM(CASE WHEN type = 'expense' THEN amount ELSE 0 END), 0) AS expense,
               COUNT(*) AS cnt
        FROM transactions
        WHERE user_id = ?
    """
    params: List[Any] = [user_id]
    if since is not None:
        query += " AND date >= ?"
        params.append(since.isoformat())
    row = db_conn.execute(query, params).fetchone()
    return {"income": float(row["income"]), "expense": float(row["expense"]), "count": int(row["cnt"])}


def get_expenses_by_category(
    db_conn: sqlite3.Connection, user_id: int, since: Optional[date] = None
) -> List[Dict[str, Any]]:
    """Expense totals per category, largest first."""
    query = """
        SELECT category, SUM(amount) AS total
        FROM transactions
        WHERE user_id = ? AND type = 'expense'
    """
    params: List[Any] = [user_id]
    if since is not None:
        query += " AND date >= ?"
        params.append(since.isoformat())
    query += " GROUP BY category ORDER BY total DESC, category"
    rows = db_conn.execute(query, params).fetchall()
    return [{"category": r["category"], "amount": float(r["total"])} for r in rows]


def get_monthly_totals(
    db_conn: sqlite3.Connection, user_id: int, since: Optional[date] = None
) -> Dict[str, Dict[str, float]]:
    """{'YYYY-MM': {'income': x, 'expense': y}} for months that have transactions."""
    query = """
        SELECT strftime('%Y-%m', date) AS ym,
               COALESCE(SUM(CASE WHEN type = 'income' THEN amount ELSE 0 END), 0) AS income,
               COALESCE(SUM(CASE WHEN type = 'expense' THEN amount ELSE 0 END), 0) AS expense
        FROM transactions
        WHERE user_id = ?
    """
    params: List[Any] = [user_id]
    if since is not None:
        query += " AND date >= ?"
        params.append(since.isoformat())
    query += " GROUP BY ym ORDER BY ym"
    rows = db_conn.execute(query, params).fetchall()
    return {r["ym"]: {"income": float(r["income"]), "expense": float(r["expense"])} for r in rows}


def get_analytics(db_conn: sqlite3.Connection, user_id: int, today: Optional[date] = None) -> Dict[str, Any]:
    """Dashboard figures for one user."""
    today = today or date.today()

    totals = get_totals(db_conn, user_id)
    by_category = get_expenses_by_category(db_conn, user_id)
    monthly = get_monthly_totals(db_conn, user_id)

    last_months = sorted(monthly.keys())[-6:]
    monthly_data = [
        {
            "month": ym,
            "income": round_half_up(monthly[ym]["income"]),
            "expense": round_half_up(monthly[ym]["expense"]),
        }
        for ym in last_months
    ]

    top_rows = db_conn.execute(
        """
        SELECT id, category, amount, description, date
        FROM transactions
        WHERE user_id = ? AND type = 'expense'
        ORDER BY amount DESC, date DESC, id DESC
        LIMIT 5
        """,
        (user_id,),
    ).fetchall()

    current_key = month_key(today)
    previous_key = month_key(today - relativedelta(months=1))
    current_expense = monthly.get(current_key, {}).get("expense", 0.0)
    previous_expense = monthly.get(previous_key, {}).get("expense", 0.0)

    return {
        "summary": {
            "total_income": round_half_up(totals["income"]),
            "total_expense": round_half_up(totals["expense"]),
            "balance": round_half_up(totals["income"] - totals["expense"]),
            "transaction_count": totals["count"],
        },
        "category_data": [{"name": c["category"], "value": round_half_up(c["amount"])} for c in by_category],
        "monthly_data": monthly_data,
        "top_expenses": [dict(r) for r in top_rows],
        "comparison": {
            "current_month": round_half_up(current_expense),
            "previous_month": round_half_up(previous_expense),
            "change_percent": _pct_change(current_expense, previous_expense),
        },
    }
