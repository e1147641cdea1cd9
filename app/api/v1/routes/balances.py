from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from app.db.session import get_db
from app.core.dependencies import get_current_user
from app.schemas.balances import UserTotalBalanceOut
from app.services.balance_services import get_user_total_balance_view

router = APIRouter()

@router.get("/me", response_model=UserTotalBalanceOut)
async def my_total_balance(
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    return await get_user_total_balance_view(db, current_user.id)
