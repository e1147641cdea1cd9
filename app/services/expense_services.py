import logging
from typing import List
from fastapi import HTTPException
from sqlalchemy import select, func, or_, and_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from app.core.splits import SplitError, calculate_splits, validate_splits, SPLIT_TOLERANCE
from app.core.config import settings
from app.core.utils import ZERO, qround
from app.models.expense import Expense
from app.models.expense_payer import ExpensePayer
from app.models.expense_split import ExpenseSplit
from app.models.friend_expense import FriendExpense
from app.models.group_member import GroupMember
from app.models.user import User
from app.services.balance_services import get_group_or_404

logger = logging.getLogger(__name__)

async def get_member_ids(db: AsyncSession, group_id: int) -> List[int]:
    q = (
        select(GroupMember.user_id)
        .where(GroupMember.group_id == group_id)
        .order_by(GroupMember.id)
    )
    res = await db.execute(q)
    return list(res.scalars().all())

def resolve_payers(data, user_id: int):
    if data.payers:
        return [(p.user_id, p.amount) for p in data.payers]

    if data.payer_ids:
        # Equal shares, the first payer absorbs the rounding remainder
        count = len(data.payer_ids)
        base = qround(data.amount / count)
        remainder = data.amount - base * count
        return [
            (uid, base + remainder if i == 0 else base)
            for i, uid in enumerate(data.payer_ids)
        ]

    return [(user_id, data.amount)]

async def create_expense(db: AsyncSession, data, user_id: int):
    group = await get_group_or_404(db, data.group_id)

    # 1. Creator must be a member of the group
    member_ids = await get_member_ids(db, group.id)
    if user_id not in member_ids:
        raise HTTPException(403, "You are not a member of this group")

    # 2. Payers
    payers = resolve_payers(data, user_id)
    payer_ids = [uid for uid, _ in payers]

    if len(payer_ids) != len(set(payer_ids)):
        raise HTTPException(400, "Duplicate users found in payers")

    total_paid = sum((amount for _, amount in payers), ZERO)
    if total_paid <= 0:
        logger.warning("Rejected expense in group %s with no paid amount", group.id)
        raise HTTPException(400, "Payers must pay a positive total")

    if abs(total_paid - data.amount) >= SPLIT_TOLERANCE:
        raise HTTPException(400, "Sum of payer amounts must equal total amount")

    # 3. Splits
    participants = data.participant_ids or member_ids
    if len(participants) != len(set(participants)):
        raise HTTPException(400, "Duplicate users found in splits")

    try:
        splits = calculate_splits(data.amount, participants, data.split_type, data.split_data.to_split_data())
    except SplitError as e:
        raise HTTPException(400, str(e))

    if not validate_splits(splits, data.amount):
        raise HTTPException(400, "Sum of split amounts must equal total amount")

    # 4. Everyone involved must belong to the group
    if not set(payer_ids + list(participants)) <= set(member_ids):
        raise HTTPException(400, "Some users in split are not group members")

    # 5. Create expense
    expense = Expense(
        group_id=group.id,
        created_by=user_id,
        amount=data.amount,
        currency=data.currency or group.currency,
        description=data.description,
        split_type=data.split_type.value
    )
    db.add(expense)
    await db.flush()  # gives expense.id

    # 6. Payer and split records
    for uid, amount in payers:
        db.add(ExpensePayer(expense_id=expense.id, user_id=uid, amount=amount))

    for s in splits:
        db.add(ExpenseSplit(
            expense_id=expense.id,
            user_id=s.user_id,
            amount=s.amount,
            share_value=s.share_value,
            percentage=s.percentage
        ))

    await db.commit()
    logger.info("Expense %s created in group %s by user %s", expense.id, group.id, user_id)

    return await get_expense(db, expense.id)

async def get_expense(db: AsyncSession, expense_id: int) -> Expense:
    q = (
        select(Expense)
        .options(selectinload(Expense.payers), selectinload(Expense.splits))
        .where(Expense.id == expense_id)
        .execution_options(populate_existing=True)
    )
    res = await db.execute(q)
    expense = res.scalar_one_or_none()

    if not expense:
        raise HTTPException(404, "Expense not found")

    return expense

async def get_expense_by_id(db: AsyncSession, expense_id: int, user_id: int):
    expense = await get_expense(db, expense_id)

    if user_id not in await get_member_ids(db, expense.group_id):
        raise HTTPException(403, "Unauthorized access")

    return expense

async def delete_expense(db: AsyncSession, user_id: int, expense_id: int):
    expense = await get_expense(db, expense_id)

    if expense.is_settlement:
        raise HTTPException(400, "Undo the settlement instead")

    # Authorization: only the creator can delete
    if expense.created_by != user_id:
        raise HTTPException(403, "You cannot delete this expense")

    await db.delete(expense)
    await db.commit()
    logger.info("Expense %s deleted by user %s", expense_id, user_id)

    return {"status": "deleted"}

async def list_group_expenses(
    db: AsyncSession,
    user_id: int,
    group_id: int,
    limit: int = 50,
    offset: int = 0
):
    await get_group_or_404(db, group_id)

    if user_id not in await get_member_ids(db, group_id):
        raise HTTPException(status_code=403, detail="Unauthorized Access")

    expense_q = (
        select(Expense)
        .options(selectinload(Expense.payers), selectinload(Expense.splits))
        .where(Expense.group_id == group_id)
        .order_by(Expense.created_at.desc(), Expense.id.desc())
        .limit(limit)
        .offset(offset)
    )
    expenses = (await db.execute(expense_q)).scalars().all()

    count_q = select(func.count(Expense.id)).where(Expense.group_id == group_id)
    total = (await db.execute(count_q)).scalar_one()

    return {"expenses": expenses, "total": total}

async def create_friend_expense(db: AsyncSession, data, user_id: int):
    if data.friend_id == user_id:
        raise HTTPException(400, "You cannot share an expense with yourself")

    res = await db.execute(select(User).where(User.id == data.friend_id))
    if not res.scalar_one_or_none():
        raise HTTPException(404, "Friend not found")

    paid_by = data.paid_by or user_id
    if paid_by not in (user_id, data.friend_id):
        raise HTTPException(400, "Payer must be you or your friend")

    expense = FriendExpense(
        user_id=user_id,
        friend_id=data.friend_id,
        description=data.description,
        amount=data.amount,
        currency=data.currency or settings.DEFAULT_CURRENCY,
        paid_by=paid_by,
        note=data.note
    )
    db.add(expense)
    await db.commit()
    await db.refresh(expense)
    logger.info("Friend expense %s created between %s and %s", expense.id, user_id, data.friend_id)

    return expense

async def list_friend_expenses(db: AsyncSession, user_id: int, friend_id: int):
    q = (
        select(FriendExpense)
        .where(
            or_(
                and_(FriendExpense.user_id == user_id, FriendExpense.friend_id == friend_id),
                and_(FriendExpense.user_id == friend_id, FriendExpense.friend_id == user_id)
            )
        )
        .order_by(FriendExpense.created_at.desc(), FriendExpense.id.desc())
    )
    res = await db.execute(q)
    return res.scalars().all()
