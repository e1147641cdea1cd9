from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from app.db.session import get_db
from app.schemas.expense import FriendExpenseCreate, FriendExpenseOut
from app.services.expense_services import create_friend_expense, list_friend_expenses
from app.core.dependencies import get_current_user

router = APIRouter()

@router.post("/expenses", response_model=FriendExpenseOut)
async def add_friend_expense(
    data: FriendExpenseCreate,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    return await create_friend_expense(db, data, current_user.id)

@router.get("/{friend_id}/expenses", response_model=list[FriendExpenseOut])
async def friend_expenses(
    friend_id: int,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    return await list_friend_expenses(db, current_user.id, friend_id)
