from __future__ import annotations

import os
from pathlib import Path


def _project_root() -> Path:
    # core/config.py -> finance_tracker/core -> finance_tracker -> project root
    return Path(__file__).resolve().parents[2]


def _env_flag(name: str, default: str = "1") -> bool:
    return str(os.getenv(name, default)).strip().lower() in {"1", "true", "yes", "on"}


PROJECT_ROOT: Path = _project_root()

# Data directory (SQLite DB)
DATA_DIR: Path = Path(os.getenv("FINANCE_DATA_DIR", str(PROJECT_ROOT / "data")))
DATA_DIR.mkdir(parents=True, exist_ok=True)
DB_PATH: Path = Path(os.getenv("FINANCE_DB_PATH", str(DATA_DIR / "finance.db")))

LOG_DIR: Path = Path(os.getenv("FINANCE_LOG_DIR", str(PROJECT_ROOT / "logs")))
IS_PRODUCTION: bool = os.getenv("ENVIRONMENT") == "production"

# Signed access tokens
JWT_SECRET: str = os.getenv("JWT_SECRET", "finance_tracker_dev_secret_change_me")
JWT_ALGORITHM: str = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES: int = int(os.getenv("JWT_EXPIRE_MINUTES", str(60 * 24 * 7)))

CORS_ORIGINS: list[str] = [
    o.strip()
    for o in os.getenv(
        "CORS_ORIGINS",
        "http://localhost:3000,http://localhost:3001,http://localhost:5173",
    ).split(",")
    if o.strip()
]

# Recurring transactions job (server local time)
SCHEDULER_ENABLED: bool = _env_flag("RECURRING_SCHEDULER_ENABLED", "1")
RECURRING_CRON_HOUR: int = int(os.getenv("RECURRING_CRON_HOUR", "0"))
RECURRING_CRON_MINUTE: int = int(os.getenv("RECURRING_CRON_MINUTE", "0"))
# POST /api/system/process-recurring runs a pass over every user's series
MANUAL_PROCESSING_ENABLED: bool = _env_flag("RECURRING_MANUAL_TRIGGER_ENABLED", "1")

# Optional text provider for /api/ai
ADVICE_API_KEY: str = os.getenv("ADVICE_API_KEY", "")
ADVICE_API_URL: str = os.getenv(
    "ADVICE_API_URL",
    "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent",
)
ADVICE_MODEL: str = os.getenv("ADVICE_MODEL", "gemini-2.5-flash")
