from typing import Optional
from pydantic import BaseModel, Field

MONTH_PATTERN = r"^\d{4}-(0[1-9]|1[0-2])$"


class BudgetCreate(BaseModel):
    category: str = Field(min_length=1, max_length=50)
    limit: float = Field(gt=0)
    month: str = Field(pattern=MONTH_PATTERN)   # "YYYY-MM"


class BudgetUpdate(BaseModel):
    limit: Optional[float] = Field(default=None, gt=0)


class Budget(BaseModel):
    id: int
    user_id: int
    category: str
    limit: float
    month: str
    spent: float = 0.0
    remaining: float = 0.0
    percentage: float = 0.0
    created_at: Optional[str] = None
