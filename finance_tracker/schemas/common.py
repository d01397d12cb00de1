from datetime import date
from typing import Any, Optional

from ..recurrence import as_date


def to_date(value: Any) -> Optional[date]:
    """Validator helper: accept date, datetime or ISO string; drop time-of-day."""
    if value is None or value == "":
        return None
    return as_date(value)
