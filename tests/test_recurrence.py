import logging
import sqlite3
from datetime import date, datetime

import pytest

from finance_tracker import db, recurrence
from finance_tracker.recurrence import next_date, process_all


@pytest.fixture()
def store(tmp_path, monkeypatch):
    """Fresh database with one user; yields a connection to it."""
    monkeypatch.setattr(db, "DB_PATH", tmp_path / "recurrence.sqlite3")
    db.initialise_database()
    conn = db.get_connection()
    conn.execute("INSERT INTO users (email, password_hash) VALUES ('owner@example.com', 'x')")
    conn.commit()
    try:
        yield conn
    finally:
        conn.close()


def add_series(conn, **overrides):
    values = {
        "user_id": 1,
        "amount": 1200.0,
        "type": "expense",
        "category": "Rent",
        "description": None,
        "frequency": "monthly",
        "start_date": "2025-01-01",
        "end_date": None,
        "last_processed_date": None,
        "is_active": 1,
    }
    values.update(overrides)
    cols = ", ".join(values)
    marks = ", ".join("?" for _ in values)
    cur = conn.execute(f"INSERT INTO recurring_transactions ({cols}) VALUES ({marks})", list(values.values()))
    conn.commit()
    return cur.lastrowid


def series(conn, rec_id):
    return dict(conn.execute("SELECT * FROM recurring_transactions WHERE id = ?", (rec_id,)).fetchone())


def generated(conn, rec_id=None):
    if rec_id is None:
        return conn.execute("SELECT * FROM transactions ORDER BY id").fetchall()
    return conn.execute("SELECT * FROM transactions WHERE recurring_id = ? ORDER BY id", (rec_id,)).fetchall()


# --------- next_date ---------

@pytest.mark.parametrize(
    "frequency, start, expected",
    [
        ("daily", date(2025, 1, 31), date(2025, 2, 1)),
        ("weekly", date(2025, 12, 29), date(2026, 1, 5)),
        ("monthly", date(2025, 1, 15), date(2025, 2, 15)),
        ("yearly", date(2025, 3, 1), date(2026, 3, 1)),
    ],
)
def test_next_date_advances_one_unit(frequency, start, expected):
    assert next_date(start, frequency) == expected


def test_next_date_month_end_clamps():
    assert next_date(date(2025, 1, 31), "monthly") == date(2025, 2, 28)
    assert next_date(date(2024, 1, 31), "monthly") == date(2024, 2, 29)
    assert next_date(date(2025, 3, 31), "monthly") == date(2025, 4, 30)
    assert next_date(date(2024, 2, 29), "yearly") == date(2025, 2, 28)


def test_next_date_unknown_frequency_is_monthly():
    assert next_date(date(2025, 1, 15), "fortnightly") == date(2025, 2, 15)
    assert next_date(date(2025, 1, 15), None) == date(2025, 2, 15)


def test_next_date_strips_time_of_day():
    assert next_date(datetime(2025, 1, 1, 23, 59), "daily") == date(2025, 1, 2)
    assert next_date("2025-01-01T10:30:00", "weekly") == date(2025, 1, 8)


def test_due_date_uses_start_until_first_run():
    assert recurrence.due_date({"start_date": "2025-03-10", "last_processed_date": None, "frequency": "weekly"}) == date(2025, 3, 10)
    assert recurrence.due_date({"start_date": "2025-03-10", "last_processed_date": "2025-03-10", "frequency": "weekly"}) == date(2025, 3, 17)


# --------- process_all ---------

def test_first_run_materializes_from_start_date(store):
    rec_id = add_series(store, amount=1200.0, category="Rent", description="Flat")

    assert process_all(date(2025, 1, 1)) == 1

    rows = generated(store, rec_id)
    assert len(rows) == 1
    tx = rows[0]
    assert tx["amount"] == 1200.0
    assert tx["type"] == "expense"
    assert tx["category"] == "Rent"
    assert tx["description"] == "Flat"
    assert tx["date"] == "2025-01-01"
    assert tx["user_id"] == 1
    assert series(store, rec_id)["last_processed_date"] == "2025-01-01"


def test_not_due_before_next_month(store):
    rec_id = add_series(store)
    process_all(date(2025, 1, 1))

    assert process_all(date(2025, 1, 15)) == 0
    assert len(generated(store, rec_id)) == 1
    assert series(store, rec_id)["last_processed_date"] == "2025-01-01"


def test_start_date_in_future_is_not_due(store):
    rec_id = add_series(store, start_date="2025-02-01")
    assert process_all(date(2025, 1, 31)) == 0
    assert series(store, rec_id)["last_processed_date"] is None


def test_same_day_rerun_is_idempotent(store):
    rec_id = add_series(store, frequency="daily")

    assert process_all(date(2025, 1, 1)) == 1
    assert process_all(date(2025, 1, 1)) == 0
    assert len(generated(store, rec_id)) == 1


def test_marker_equal_to_today_is_skipped(store):
    rec_id = add_series(store, frequency="daily", last_processed_date="2025-05-05")
    assert process_all(date(2025, 5, 5)) == 0
    assert generated(store, rec_id) == []


def test_expired_series_is_deactivated_without_transaction(store):
    rec_id = add_series(store, start_date="2025-01-01", end_date="2025-01-10", last_processed_date="2024-12-01")

    assert process_all(date(2025, 1, 11)) == 0

    row = series(store, rec_id)
    assert row["is_active"] == 0
    assert row["last_processed_date"] == "2024-12-01"
    assert generated(store, rec_id) == []


def test_series_still_runs_on_its_end_date(store):
    rec_id = add_series(store, frequency="daily", end_date="2025-01-10", last_processed_date="2025-01-09")
    assert process_all(date(2025, 1, 10)) == 1
    assert series(store, rec_id)["is_active"] == 1


def test_gap_collapses_to_one_catch_up_transaction(store):
    rec_id = add_series(store, frequency="weekly", last_processed_date="2025-01-01")

    assert process_all(date(2025, 2, 20)) == 1

    rows = generated(store, rec_id)
    assert [r["date"] for r in rows] == ["2025-02-20"]
    assert series(store, rec_id)["last_processed_date"] == "2025-02-20"


def test_missing_description_gets_auto_tag(store):
    rec_id = add_series(store, category="Salary", type="income", description=None)
    process_all(date(2025, 1, 1))
    assert generated(store, rec_id)[0]["description"] == "[AUTO] Salary"


def test_inactive_series_is_ignored(store):
    rec_id = add_series(store, is_active=0)
    assert process_all(date(2025, 6, 1)) == 0
    assert generated(store, rec_id) == []


def test_unknown_frequency_in_store_uses_monthly(store):
    rec_id = add_series(store, frequency="quarterly", last_processed_date="2025-01-01")
    assert process_all(date(2025, 1, 31)) == 0
    assert process_all(date(2025, 2, 1)) == 1
    assert len(generated(store, rec_id)) == 1


def test_stale_marker_does_not_materialize(store):
    rec_id = add_series(store)
    stale = series(store, rec_id)
    # Another run (or an owner edit) advanced the marker after this snapshot was read
    store.execute("UPDATE recurring_transactions SET last_processed_date = '2025-01-01' WHERE id = ?", (rec_id,))
    store.commit()

    assert recurrence._materialize(store, stale, date(2025, 1, 1)) is False
    assert generated(store, rec_id) == []


def test_series_toggled_off_mid_pass_does_not_materialize(store):
    rec_id = add_series(store)
    snapshot = series(store, rec_id)
    store.execute("UPDATE recurring_transactions SET is_active = 0 WHERE id = ?", (rec_id,))
    store.commit()

    assert recurrence._materialize(store, snapshot, date(2025, 1, 1)) is False
    assert series(store, rec_id)["last_processed_date"] is None


def test_failure_keeps_earlier_series_and_is_not_raised(store, monkeypatch):
    first = add_series(store, category="Rent")
    second = add_series(store, category="Gym")

    real_materialize = recurrence._materialize
    calls = []

    def flaky(conn, rec, today):
        calls.append(rec["id"])
        if len(calls) == 2:
            raise sqlite3.OperationalError("disk I/O error")
        return real_materialize(conn, rec, today)

    monkeypatch.setattr(recurrence, "_materialize", flaky)

    assert process_all(date(2025, 1, 1)) == 1

    done, failed = (first, second) if calls[0] == first else (second, first)
    assert len(generated(store, done)) == 1
    assert generated(store, failed) == []
    assert series(store, failed)["last_processed_date"] is None


def test_storage_unavailable_returns_zero(monkeypatch):
    def broken():
        raise sqlite3.OperationalError("unable to open database file")

    monkeypatch.setattr(db, "get_connection", broken)
    assert process_all(date(2025, 1, 1)) == 0


def test_failures_are_logged_under_scheduler_logger(monkeypatch, caplog):
    def broken():
        raise sqlite3.OperationalError("unable to open database file")

    monkeypatch.setattr(db, "get_connection", broken)
    with caplog.at_level(logging.ERROR, logger="finance_tracker.scheduler"):
        assert process_all(date(2025, 1, 1)) == 0

    records = [r for r in caplog.records if r.name == "finance_tracker.scheduler.recurrence"]
    assert records and records[0].exc_info is not None
