from datetime import datetime
from decimal import Decimal
from pydantic import BaseModel, Field

class SettlementHistoryCreate(BaseModel):
    to_user_id: int
    amount: Decimal = Field(..., gt=0)
    method: str = "cash"
    note: str | None = None

class SettlementHistoryOut(BaseModel):
    id: int
    group_id: int
    from_user_id: int
    to_user_id: int
    amount: float
    currency: str
    method: str
    note: str | None = None
    created_at: datetime | None = None

    class Config:
        from_attributes = True
