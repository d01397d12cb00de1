import os
import sqlite3
import sys
import tempfile
import uuid
from pathlib import Path

import pytest

# Ensure project root is on sys.path for imports like 'finance_tracker.db'
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

# Config is read at import time: point data/logs at a scratch dir and keep the scheduler off
_SCRATCH = Path(tempfile.mkdtemp(prefix="finance_tracker_tests_"))
os.environ.setdefault("FINANCE_DATA_DIR", str(_SCRATCH / "data"))
os.environ.setdefault("FINANCE_LOG_DIR", str(_SCRATCH / "logs"))
os.environ["RECURRING_SCHEDULER_ENABLED"] = "0"
os.environ.pop("ADVICE_API_KEY", None)


@pytest.fixture(scope="session")
def temp_db_path(tmp_path_factory) -> Path:
    return tmp_path_factory.mktemp("db") / "finance_test.sqlite3"


@pytest.fixture(scope="session")
def app_client(temp_db_path):
    import finance_tracker.db as db_module

    db_module.DB_PATH = temp_db_path
    db_module.initialise_database()

    from fastapi.testclient import TestClient
    import finance_tracker.main as main_app

    client = TestClient(main_app.app)
    return client


@pytest.fixture()
def db_conn(app_client, temp_db_path):
    conn = sqlite3.connect(str(temp_db_path))
    conn.row_factory = sqlite3.Row
    try:
        yield conn
    finally:
        conn.close()


def register_user(client, name: str = "pytest"):
    """Register a fresh user and return (user dict, auth headers)."""
    email = f"{name}-{uuid.uuid4().hex[:8]}@example.com"
    r = client.post("/api/auth/register", json={"email": email, "password": "secret123", "name": name})
    assert r.status_code == 201, r.text
    body = r.json()
    return body["user"], {"Authorization": f"Bearer {body['token']}"}


@pytest.fixture()
def auth_headers(app_client):
    _, headers = register_user(app_client)
    return headers


@pytest.fixture()
def user_and_headers(app_client):
    return register_user(app_client)


@pytest.fixture()
def new_user(app_client):
    """Factory: register another user, returns (user dict, auth headers)."""
    return lambda name="pytest": register_user(app_client, name)
