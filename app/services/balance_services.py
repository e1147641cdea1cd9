import logging
from decimal import Decimal
from typing import Dict, Iterable, List, Tuple
from fastapi import HTTPException
from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession
from app.core.ledger import (
    ExpenseRecord,
    FriendExpenseRecord,
    MalformedExpenseError,
    SettlementRecord,
    Share,
    Transfer,
    UserDebts,
    compute_balances,
    compute_direct_debts,
    net_by_counterparty,
    simplify_debts,
    split_user_debts,
)
from app.core.utils import qround, to_decimal
from app.models.expense import Expense
from app.models.expense_payer import ExpensePayer
from app.models.expense_split import ExpenseSplit
from app.models.friend_expense import FriendExpense
from app.models.group import Group
from app.models.group_member import GroupMember
from app.models.settlement import Settlement
from app.models.user import User

logger = logging.getLogger(__name__)

async def get_group_or_404(db: AsyncSession, group_id: int) -> Group:
    res = await db.execute(select(Group).where(Group.id == group_id))
    group = res.scalar_one_or_none()

    if not group:
        raise HTTPException(404, "Group doesn't exist")

    return group

async def load_group_history(
    db: AsyncSession,
    group_id: int
) -> Tuple[List[ExpenseRecord], List[SettlementRecord]]:
    # Settlement mirror expenses are skipped, the settlements table is folded instead
    expense_q = (
        select(Expense.id)
        .where(Expense.group_id == group_id, Expense.is_settlement == False)
        .order_by(Expense.id)
    )
    expense_ids = (await db.execute(expense_q)).scalars().all()

    payers: Dict[int, List[Share]] = {eid: [] for eid in expense_ids}
    splits: Dict[int, List[Share]] = {eid: [] for eid in expense_ids}

    if expense_ids:
        payer_q = (
            select(ExpensePayer.expense_id, ExpensePayer.user_id, ExpensePayer.amount)
            .where(ExpensePayer.expense_id.in_(expense_ids))
            .order_by(ExpensePayer.id)
        )
        for expense_id, user_id, amount in (await db.execute(payer_q)).all():
            payers[expense_id].append(Share(user_id, to_decimal(amount)))

        split_q = (
            select(ExpenseSplit.expense_id, ExpenseSplit.user_id, ExpenseSplit.amount)
            .where(ExpenseSplit.expense_id.in_(expense_ids))
            .order_by(ExpenseSplit.id)
        )
        for expense_id, user_id, amount in (await db.execute(split_q)).all():
            splits[expense_id].append(Share(user_id, to_decimal(amount)))

    expenses = [
        ExpenseRecord(eid, tuple(payers[eid]), tuple(splits[eid]))
        for eid in expense_ids
    ]

    settlement_q = (
        select(Settlement.from_user_id, Settlement.to_user_id, Settlement.amount)
        .where(Settlement.group_id == group_id)
        .order_by(Settlement.id)
    )
    settlements = [
        SettlementRecord(f, t, to_decimal(a))
        for f, t, a in (await db.execute(settlement_q)).all()
    ]

    return expenses, settlements

async def get_group_balances(db: AsyncSession, group_id: int) -> Dict[int, Decimal]:
    expenses, settlements = await load_group_history(db, group_id)
    return compute_balances(expenses, settlements)

async def get_group_direct_debts(db: AsyncSession, group_id: int) -> List[Transfer]:
    expenses, settlements = await load_group_history(db, group_id)
    try:
        return compute_direct_debts(expenses, settlements)
    except MalformedExpenseError as e:
        logger.warning("Group %s has a malformed expense %s", group_id, e.expense_id)
        raise HTTPException(422, str(e))

async def get_pairwise_debts(db: AsyncSession, group_id: int) -> List[Transfer]:
    group = await get_group_or_404(db, group_id)

    if group.simplify_debts:
        balances = await get_group_balances(db, group_id)
        return simplify_debts(balances)

    return await get_group_direct_debts(db, group_id)

async def get_user_group_debts(db: AsyncSession, group_id: int, user_id: int) -> UserDebts:
    debts = await get_pairwise_debts(db, group_id)
    return split_user_debts(debts, user_id)

async def get_user_total_balance(db: AsyncSession, user_id: int) -> UserDebts:
    group_q = (
        select(Group.id)
        .join(GroupMember, GroupMember.group_id == Group.id)
        .where(GroupMember.user_id == user_id)
        .order_by(Group.id)
    )
    group_ids = (await db.execute(group_q)).scalars().all()

    debts: List[Transfer] = []
    for group_id in group_ids:
        debts.extend(await get_pairwise_debts(db, group_id))

    friend_q = (
        select(FriendExpense)
        .where(or_(FriendExpense.user_id == user_id, FriendExpense.friend_id == user_id))
        .order_by(FriendExpense.id)
    )
    friend_expenses = [
        FriendExpenseRecord(fe.user_id, fe.friend_id, to_decimal(fe.amount), fe.paid_by)
        for fe in (await db.execute(friend_q)).scalars().all()
    ]

    return net_by_counterparty(user_id, debts, friend_expenses)

async def get_user_names(db: AsyncSession, user_ids: Iterable[int]) -> Dict[int, str]:
    user_ids = set(user_ids)
    if not user_ids:
        return {}

    q = select(User.id, User.name).where(User.id.in_(user_ids))
    res = await db.execute(q)
    return {uid: name for uid, name in res.all()}

def debts_out(debts: Iterable[Transfer], users: Dict[int, str]) -> List[dict]:
    return [
        {
            "from_id": d.from_user, "from_name": users.get(d.from_user),
            "to_id": d.to_user, "to_name": users.get(d.to_user),
            "amount": float(d.amount)
        }
        for d in debts
    ]

async def get_group_balance_summary(db: AsyncSession, group_id: int):
    group = await get_group_or_404(db, group_id)
    balances = await get_group_balances(db, group_id)
    debts = await get_pairwise_debts(db, group_id)

    users = await get_user_names(db, list(balances) + [u for d in debts for u in (d.from_user, d.to_user)])

    return {
        "simplified": bool(group.simplify_debts),
        "currency": group.currency,
        "balances": [
            {"user_id": uid, "name": users.get(uid), "balance": float(qround(bal))}
            for uid, bal in sorted(balances.items())
        ],
        "debts": debts_out(debts, users)
    }

async def get_user_group_debts_view(db: AsyncSession, group_id: int, user_id: int):
    view = await get_user_group_debts(db, group_id, user_id)
    users = await get_user_names(db, [u for d in view.owes + view.owed for u in (d.from_user, d.to_user)])

    return {
        "owes": debts_out(view.owes, users),
        "owed": debts_out(view.owed, users)
    }

async def get_user_total_balance_view(db: AsyncSession, user_id: int):
    view = await get_user_total_balance(db, user_id)
    users = await get_user_names(db, [c.user_id for c in view.owes + view.owed])

    def entries(items):
        return [
            {"user_id": c.user_id, "name": users.get(c.user_id), "amount": float(c.amount)}
            for c in items
        ]

    return {
        "owes": entries(view.owes),
        "owed": entries(view.owed)
    }
