import logging
from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from app.models.expense import Expense
from app.models.expense_payer import ExpensePayer
from app.models.expense_split import ExpenseSplit
from app.models.settlement import Settlement
from app.services.balance_services import get_group_or_404
from app.services.expense_services import get_member_ids

logger = logging.getLogger(__name__)

async def add_settlement(db: AsyncSession, user_id: int, group_id: int, data):
    group = await get_group_or_404(db, group_id)
    member_ids = await get_member_ids(db, group_id)

    if user_id not in member_ids:
        raise HTTPException(403, "You are not a member of this group")

    if data.to_user_id not in member_ids:
        raise HTTPException(400, "Recipient is not a member of this group")

    if data.to_user_id == user_id:
        raise HTTPException(400, "You cannot settle with yourself")

    # Mirror expense: the payer paid, the recipient's share is the whole amount
    expense = Expense(
        group_id=group_id,
        created_by=user_id,
        amount=data.amount,
        currency=group.currency,
        description="Settlement",
        split_type="exact",
        is_settlement=True
    )
    db.add(expense)
    await db.flush()

    db.add(ExpensePayer(expense_id=expense.id, user_id=user_id, amount=data.amount))
    db.add(ExpenseSplit(expense_id=expense.id, user_id=data.to_user_id, amount=data.amount))

    settlement = Settlement(
        group_id=group_id,
        from_user_id=user_id,
        to_user_id=data.to_user_id,
        amount=data.amount,
        currency=group.currency,
        method=data.method,
        note=data.note,
        expense_id=expense.id
    )
    db.add(settlement)
    await db.commit()
    await db.refresh(settlement)

    logger.info(
        "Settlement %s in group %s: %s paid %s %s",
        settlement.id, group_id, user_id, data.to_user_id, data.amount
    )
    return settlement

async def get_settlement_history(db: AsyncSession, group_id: int, user_id: int):
    await get_group_or_404(db, group_id)

    if user_id not in await get_member_ids(db, group_id):
        raise HTTPException(403, "Unauthorized access")

    q = (
        select(Settlement)
        .where(Settlement.group_id == group_id)
        .order_by(Settlement.created_at.desc(), Settlement.id.desc())
    )
    res = await db.execute(q)
    return res.scalars().all()

async def undo_settlement(db: AsyncSession, group_id: int, settlement_id: int, user_id: int):
    q = select(Settlement).where(Settlement.id == settlement_id, Settlement.group_id == group_id)
    res = await db.execute(q)
    settlement = res.scalar_one_or_none()

    if not settlement:
        raise HTTPException(404, "Settlement not found")

    if settlement.from_user_id != user_id:
        raise HTTPException(403, "Only the payer can undo a settlement")

    expense_id = settlement.expense_id
    await db.delete(settlement)
    await db.flush()

    if expense_id is not None:
        expense_q = (
            select(Expense)
            .options(selectinload(Expense.payers), selectinload(Expense.splits))
            .where(Expense.id == expense_id)
        )
        expense = (await db.execute(expense_q)).scalar_one_or_none()
        if expense:
            await db.delete(expense)

    await db.commit()
    logger.info("Settlement %s undone by user %s", settlement_id, user_id)

    return {"status": "undone"}
