from datetime import date as date_type
from typing import Literal, Optional
from pydantic import BaseModel, Field, field_validator

from .common import to_date

TransactionType = Literal["income", "expense"]


class TransactionBase(BaseModel):
    amount: float = Field(gt=0)
    type: TransactionType
    category: str = Field(min_length=1, max_length=50)
    description: Optional[str] = None
    date: Optional[date_type] = None      # server defaults to today

    @field_validator("date", mode="before")
    @classmethod
    def _normalize_date(cls, v):
        return to_date(v)


class TransactionCreate(TransactionBase):
    pass


class TransactionUpdate(BaseModel):
    amount: Optional[float] = Field(default=None, gt=0)
    type: Optional[TransactionType] = None
    category: Optional[str] = Field(default=None, min_length=1, max_length=50)
    description: Optional[str] = None
    date: Optional[date_type] = None

    @field_validator("date", mode="before")
    @classmethod
    def _normalize_date(cls, v):
        return to_date(v)


class Transaction(TransactionBase):
    id: int
    user_id: int
    date: date_type
    recurring_id: Optional[int] = None
    created_at: Optional[str] = None
