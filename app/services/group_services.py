import logging
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import delete
from sqlalchemy.future import select
from sqlalchemy.orm import selectinload
from fastapi import HTTPException
from app.core.config import settings
from app.models.expense import Expense
from app.models.group import Group
from app.models.group_member import GroupMember
from app.models.settlement import Settlement
from app.models.user import User
from app.services.balance_services import get_group_or_404, get_user_group_debts

logger = logging.getLogger(__name__)

async def create_group(db: AsyncSession, data, creator_id: int):
    group = Group(
        name=data.name,
        currency=(data.currency or settings.DEFAULT_CURRENCY).upper(),
        simplify_debts=data.simplify_debts,
        created_by=creator_id
    )
    db.add(group)
    await db.flush()

    member = GroupMember(group_id=group.id, user_id=creator_id)
    db.add(member)

    await db.commit()
    await db.refresh(group)
    logger.info("Group %s created by user %s", group.id, creator_id)
    return group

async def delete_group(db: AsyncSession, group_id: int, creator_id: int):
    group = await get_group_or_404(db, group_id)

    if group.created_by != creator_id:
        raise HTTPException(404, "Group doesn't exist")

    # Settlements point at their mirror expenses, drop them first
    await db.execute(delete(Settlement).where(Settlement.group_id == group_id))

    q = (
        select(Group)
        .options(
            selectinload(Group.members),
            selectinload(Group.settlements),
            selectinload(Group.expenses).selectinload(Expense.payers),
            selectinload(Group.expenses).selectinload(Expense.splits),
        )
        .where(Group.id == group_id)
        .execution_options(populate_existing=True)
    )
    group = (await db.execute(q)).scalar_one()

    await db.delete(group)
    await db.commit()
    logger.info("Group %s deleted", group_id)

    return {"status": "deleted"}

async def get_membership(db: AsyncSession, group_id: int, user_id: int):
    res = await db.execute(
        select(GroupMember).where(
            GroupMember.group_id == group_id,
            GroupMember.user_id == user_id
        )
    )
    return res.scalar_one_or_none()

async def add_member(db: AsyncSession, group_id: int, user_id: int, creator_id: int):
    group = await get_group_or_404(db, group_id)

    if group.created_by != creator_id:
        raise HTTPException(403, "Only the group creator can add members")

    user = await db.execute(select(User).where(User.id == user_id))
    if not user.scalar_one_or_none():
        raise HTTPException(404, "User doesn't exist")

    if await get_membership(db, group_id, user_id):
        raise HTTPException(400, "User already exist in this group")

    new_member = GroupMember(group_id=group_id, user_id=user_id)
    db.add(new_member)
    await db.commit()
    await db.refresh(new_member)
    return new_member

async def ensure_settled_up(db: AsyncSession, group_id: int, user_id: int):
    debts = await get_user_group_debts(db, group_id, user_id)
    if debts.owes or debts.owed:
        raise HTTPException(400, "Balance is not settled in this group")

async def remove_member(db: AsyncSession, group_id: int, user_id: int, creator_id: int):
    group = await get_group_or_404(db, group_id)

    if group.created_by != creator_id:
        raise HTTPException(403, "Only group admin can remove members")

    if user_id == creator_id:
        raise HTTPException(400, "Transfer admin role before removing yourself")

    member = await get_membership(db, group_id, user_id)

    if not member:
        raise HTTPException(404, "User is not a member of this group")

    await ensure_settled_up(db, group_id, user_id)

    await db.delete(member)
    await db.commit()

    return {"status": "member_removed"}

async def exit_group(db: AsyncSession, group_id: int, user_id: int):
    group = await get_group_or_404(db, group_id)

    if group.created_by == user_id:
        raise HTTPException(400, "Group admin cannot exit. Transfer admin role first.")

    member = await get_membership(db, group_id, user_id)

    if not member:
        raise HTTPException(404, "You are not a member of this group")

    await ensure_settled_up(db, group_id, user_id)

    await db.delete(member)
    await db.commit()

    return {"status": "exited_group"}

async def list_group_for_user(db: AsyncSession, user_id: int):
    q = (
        select(Group)
        .join(GroupMember)
        .where(GroupMember.user_id == user_id)
        .order_by(Group.id)
    )
    result = await db.execute(q)
    return result.scalars().all()

async def list_group_members(db: AsyncSession, user_id: int, group_id: int):
    if not await get_membership(db, group_id, user_id):
        raise HTTPException(status_code=403, detail="Unauthorized access")

    members__q = (
        select(User)
        .join(GroupMember, User.id == GroupMember.user_id)
        .where(GroupMember.group_id == group_id)
        .order_by(GroupMember.id)
    )

    result = await db.execute(members__q)
    return result.scalars().all()

async def edit_group(db: AsyncSession, group_id: int, user_id: int, data):
    group = await get_group_or_404(db, group_id)

    if group.created_by != user_id:
        raise HTTPException(403, "Only group admin can edit group")

    if data.name:
        group.name = data.name

    if data.currency:
        group.currency = data.currency.upper()

    if data.simplify_debts is not None:
        group.simplify_debts = data.simplify_debts

    await db.commit()
    await db.refresh(group)
    return group
