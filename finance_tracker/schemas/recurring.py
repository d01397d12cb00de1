from datetime import date
from typing import Literal, Optional
from pydantic import BaseModel, Field, field_validator, model_validator

from .common import to_date
from .transactions import TransactionType

Frequency = Literal["daily", "weekly", "monthly", "yearly"]


class RecurringBase(BaseModel):
    amount: float = Field(gt=0)
    type: TransactionType
    category: str = Field(min_length=1, max_length=50)
    description: Optional[str] = None
    frequency: Frequency
    start_date: date
    end_date: Optional[date] = None

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def _normalize_dates(cls, v):
        return to_date(v)


class RecurringCreate(RecurringBase):
    @model_validator(mode="after")
    def _check_range(self):
        if self.end_date is not None and self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class RecurringUpdate(BaseModel):
    """Owner edits; schedule fields are fixed once a series exists."""
    amount: Optional[float] = Field(default=None, gt=0)
    description: Optional[str] = None
    is_active: Optional[bool] = None


class RecurringTransaction(RecurringBase):
    id: int
    user_id: int
    frequency: str
    last_processed_date: Optional[date] = None
    is_active: bool = True
    next_due_date: Optional[date] = None
    created_at: Optional[str] = None

    @field_validator("last_processed_date", mode="before")
    @classmethod
    def _normalize_marker(cls, v):
        return to_date(v)
