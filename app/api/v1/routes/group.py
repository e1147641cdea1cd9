from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from app.db.session import get_db
from app.services.group_services import create_group, add_member, list_group_for_user, list_group_members, delete_group, remove_member, exit_group, edit_group
from app.services.balance_services import get_group_balance_summary, get_user_group_debts_view
from app.services.expense_services import list_group_expenses
from app.services.settlement_service import add_settlement, get_settlement_history, undo_settlement
from app.schemas.group import GroupCreate, GroupEdit, GroupMemberOut, GroupOut
from app.schemas.balances import GroupBalanceOut, UserGroupDebtsOut
from app.schemas.expense import ExpensePage
from app.schemas.settlements import SettlementHistoryCreate, SettlementHistoryOut
from app.schemas.user import UserOut
from app.core.dependencies import get_current_user, check_group_membership

router = APIRouter()

@router.post("/", response_model=GroupOut, description="create new group")
async def create_new_group(
    data:GroupCreate,
    db: AsyncSession = Depends(get_db),
    user = Depends(get_current_user)
):
    return await create_group(db, data, user.id)

@router.get("/my-groups", response_model=list[GroupOut], description="get user groups")
async def my_groups(db: AsyncSession = Depends(get_db), user = Depends(get_current_user)):
    return await list_group_for_user(db, user.id)

@router.patch("/{group_id}", response_model=GroupOut, description="edit name, currency or debt simplification")
async def edit(group_id: int, data: GroupEdit, db: AsyncSession = Depends(get_db), current_user = Depends(get_current_user)):
    await check_group_membership(db, group_id, current_user.id)
    return await edit_group(db, group_id, current_user.id, data)

@router.delete("/{group_id}")
async def del_group(group_id: int, db: AsyncSession = Depends(get_db), current_user = Depends(get_current_user)):
    return await delete_group(db, group_id=group_id, creator_id=current_user.id)

@router.post("/{group_id}/add/{user_id}", response_model=GroupMemberOut)
async def add_user_to_group(
    group_id: int,
    user_id: int,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    return await add_member(db, group_id, user_id, current_user.id)

@router.delete("/{group_id}/remove/{user_id}")
async def rem_mem(group_id: int, user_id : int, db: AsyncSession = Depends(get_db), current_user = Depends(get_current_user)):
    await check_group_membership(db, group_id, current_user.id)
    return await remove_member(db, group_id=group_id, user_id=user_id, creator_id = current_user.id)

@router.delete("/{group_id}/exit")
async def exit(group_id: int, db:AsyncSession = Depends(get_db), current_user = Depends(get_current_user)):
    await check_group_membership(db, group_id, current_user.id)
    return await exit_group(db, group_id=group_id, user_id=current_user.id)

@router.get("/{group_id}/group-members", response_model=list[UserOut])
async def group_members(group_id: int, db: AsyncSession = Depends(get_db), current_user=Depends(get_current_user)):
    return await list_group_members(db, current_user.id, group_id=group_id)

@router.get("/{group_id}/balances", response_model=GroupBalanceOut)
async def group_balances(group_id: int, db: AsyncSession = Depends(get_db), current_user = Depends(get_current_user)):
    await check_group_membership(db, group_id, current_user.id)
    return await get_group_balance_summary(db, group_id=group_id)

@router.get("/{group_id}/my-debts", response_model=UserGroupDebtsOut)
async def my_group_debts(group_id: int, db: AsyncSession = Depends(get_db), current_user = Depends(get_current_user)):
    await check_group_membership(db, group_id, current_user.id)
    return await get_user_group_debts_view(db, group_id, current_user.id)

@router.post("/{group_id}/settlements/add", response_model=SettlementHistoryOut)
async def add_manual_settlement(
    group_id: int,
    data: SettlementHistoryCreate,
    db: AsyncSession = Depends(get_db),
    user = Depends(get_current_user)
):
    return await add_settlement(db, user.id, group_id, data)

@router.delete("/{group_id}/settlements/undo/{settlement_id}")
async def undo_settlement_route(
    group_id: int,
    settlement_id: int,
    db: AsyncSession = Depends(get_db),
    user = Depends(get_current_user)
):
    return await undo_settlement(db, group_id, settlement_id, user.id)

@router.get("/{group_id}/settlement-history", response_model=list[SettlementHistoryOut])
async def fetch_history(
    group_id: int,
    db: AsyncSession = Depends(get_db),
    user = Depends(get_current_user)
):
    return await get_settlement_history(db, group_id, user.id)

@router.get("/{group_id}/expenses", response_model=ExpensePage, description="get expenses of the group")
async def fetch_expenses(
    group_id: int,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    user = Depends(get_current_user)
):
    return await list_group_expenses(db, user.id, group_id, limit=limit, offset=offset)
