from pydantic import BaseModel
from typing import List

class DebtOut(BaseModel):
    from_id: int
    from_name: str | None = None
    to_id: int
    to_name: str | None = None
    amount: float

class MemberBalanceOut(BaseModel):
    user_id: int
    name: str | None = None
    balance: float

class GroupBalanceOut(BaseModel):
    simplified: bool
    currency: str
    balances: List[MemberBalanceOut]
    debts: List[DebtOut]

class UserGroupDebtsOut(BaseModel):
    owes: List[DebtOut]
    owed: List[DebtOut]

class CounterpartyOut(BaseModel):
    user_id: int
    name: str | None = None
    amount: float

class UserTotalBalanceOut(BaseModel):
    owes: List[CounterpartyOut]
    owed: List[CounterpartyOut]
