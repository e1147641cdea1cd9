from pydantic import BaseModel, Field

class GroupCreate(BaseModel):
    name: str
    currency: str | None = Field(None, min_length=3, max_length=3)
    simplify_debts: bool = True

class GroupEdit(BaseModel):
    name: str | None = None
    currency: str | None = Field(None, min_length=3, max_length=3)
    simplify_debts: bool | None = None

class GroupOut(BaseModel):
    id: int
    name: str
    currency: str
    simplify_debts: bool
    created_by: int | None = None

    class Config:
        from_attributes = True

class GroupMemberOut(BaseModel):
    id: int
    group_id: int
    user_id: int

    class Config:
        from_attributes = True
