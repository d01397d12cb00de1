from datetime import date
from typing import Optional
from pydantic import BaseModel, Field, field_validator

from .common import to_date


class GoalBase(BaseModel):
    title: str = Field(min_length=1, max_length=100)
    target_amount: float = Field(gt=0)
    current_amount: float = Field(default=0.0, ge=0)
    deadline: Optional[date] = None

    @field_validator("deadline", mode="before")
    @classmethod
    def _normalize_deadline(cls, v):
        return to_date(v)


class GoalCreate(GoalBase):
    pass


class GoalUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=100)
    target_amount: Optional[float] = Field(default=None, gt=0)
    current_amount: Optional[float] = Field(default=None, ge=0)
    deadline: Optional[date] = None

    @field_validator("deadline", mode="before")
    @classmethod
    def _normalize_deadline(cls, v):
        return to_date(v)


class GoalProgress(BaseModel):
    amount: float = Field(gt=0)


class Goal(GoalBase):
    id: int
    user_id: int
    created_at: Optional[str] = None
