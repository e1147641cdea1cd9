from decimal import Decimal
from pydantic import BaseModel, Field
from typing import Dict, List
from app.core.splits import SplitData, SplitType

class ShareInput(BaseModel):
    user_id: int
    amount: Decimal = Field(..., gt=0)

class SplitDataInput(BaseModel):
    amounts: Dict[int, Decimal] = {}
    percentages: Dict[int, Decimal] = {}
    shares: Dict[int, Decimal] = {}
    adjustments: Dict[int, Decimal] = {}

    def to_split_data(self) -> SplitData:
        return SplitData(
            amounts=dict(self.amounts),
            percentages=dict(self.percentages),
            shares=dict(self.shares),
            adjustments=dict(self.adjustments),
        )

class ExpenseCreate(BaseModel):
    group_id : int
    amount : Decimal = Field(..., gt=0)
    currency: str | None = Field(None, min_length=3, max_length=3)
    description : str | None = None
    split_type: SplitType = SplitType.EQUAL
    participant_ids: List[int] | None = None
    split_data: SplitDataInput = SplitDataInput()
    # Explicit payers win over payer_ids; neither means the creator paid it all
    payers: List[ShareInput] | None = None
    payer_ids: List[int] | None = None

class ShareOut(BaseModel):
    user_id: int
    amount: float

    class Config:
        from_attributes = True

class ExpenseOut(BaseModel):
    id: int
    group_id: int
    amount: float
    currency: str
    description: str | None = None
    split_type: str
    is_settlement: bool
    created_by: int
    payers: List[ShareOut]
    splits : List[ShareOut]

    class Config:
        from_attributes = True

class ExpensePage(BaseModel):
    expenses: List[ExpenseOut]
    total: int

class FriendExpenseCreate(BaseModel):
    friend_id: int
    description: str
    amount: Decimal = Field(..., gt=0)
    currency: str | None = Field(None, min_length=3, max_length=3)
    paid_by: int | None = None
    note: str | None = None

class FriendExpenseOut(BaseModel):
    id: int
    user_id: int
    friend_id: int
    description: str
    amount: float
    currency: str
    paid_by: int
    note: str | None = None

    class Config:
        from_attributes = True
