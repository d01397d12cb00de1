"""Personal finance tracker: FastAPI service and recurring transactions job."""

from . import db, recurrence

__all__ = [
    'db',
    'recurrence',
]
